import os
from typing import Optional


class ModelConfig:
    """Completion service configuration from environment with defaults."""

    CLASSIFIER_MODEL = os.getenv("SCOUT_CLASSIFIER_MODEL", "llama3-8b-8192")
    LLM_BASE_URL = os.getenv("SCOUT_LLM_BASE_URL", "https://api.groq.com/openai/v1")
    LLM_TIMEOUT = float(os.getenv("SCOUT_LLM_TIMEOUT", "30"))
    LLM_CONNECT_TIMEOUT = 10


class NoditConfig:
    """Nodit MCP server launch settings."""

    MCP_COMMAND = os.getenv("NODIT_MCP_COMMAND", "npx")
    MCP_PACKAGE = os.getenv("NODIT_MCP_PACKAGE", "@noditlabs/nodit-mcp-server@latest")
    MCP_TIMEOUT = float(os.getenv("NODIT_MCP_TIMEOUT", "60"))
    TOOL_NAME = "call_nodit_api"


class RetryConfig:
    MAX_CONNECT_ATTEMPTS = 3
    CONNECT_RETRY_DELAY = 2.0
    MAX_CALL_RETRIES = 2
    CALL_BACKOFF_STEP = 1.0
    CALL_BACKOFF_CAP = 3.0


# Routing
CONFIDENCE_THRESHOLD = 0.7
WALLET_NETWORKS = ("ethereum", "base")


def get_nodit_api_key() -> Optional[str]:
    # Read at call time so a missing key is an offline run, not an import error
    return os.getenv("NODIT_API_KEY") or None


def get_llm_api_key() -> Optional[str]:
    return (
        os.getenv("SCOUT_LLM_API_KEY")
        or os.getenv("GROQ_API_KEY")
        or os.getenv("OPENAI_API_KEY")
        or None
    )
