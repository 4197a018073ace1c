import json
import logging
from typing import Awaitable, Callable, Optional

import httpx
from agents import Agent, Runner, RunConfig, OpenAIChatCompletionsModel
from openai import AsyncOpenAI
from pydantic import ValidationError

from .config import ModelConfig, get_llm_api_key
from .models import ClassificationResult

logger = logging.getLogger(__name__)

CompletionFn = Callable[[str], Awaitable[str]]

FALLBACK_CLASSIFICATION = ClassificationResult(classification="non-web3", confidence=0.5)

CLASSIFICATION_PROMPT = """You are a Web3/cryptocurrency classifier. Analyze this input and determine if it's related to Web3, cryptocurrency, blockchain, DeFi, NFTs, or token trading.

User input: "{text}"

Respond with ONLY a JSON object in this exact format:
{{"classification": "web3", "confidence": 0.95}}
OR
{{"classification": "non-web3", "confidence": 0.95}}

Examples:
- Bitcoin questions = web3
- Ethereum questions = web3
- DeFi questions = web3
- Weather questions = non-web3
- General topics = non-web3"""


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


async def llm_complete(prompt: str) -> str:
    """Run a single prompt through the configured OpenAI-compatible chat model."""
    api_key = get_llm_api_key()
    if not api_key:
        raise RuntimeError("No completion service API key configured")

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(ModelConfig.LLM_TIMEOUT, connect=ModelConfig.LLM_CONNECT_TIMEOUT),
    )
    openai_client = AsyncOpenAI(
        api_key=api_key,
        base_url=ModelConfig.LLM_BASE_URL,
        http_client=http_client,
        max_retries=1,
    )
    agent = Agent(
        name="web3_classifier",
        instructions="Follow the user's instructions exactly and answer in the requested format only.",
        model=OpenAIChatCompletionsModel(
            model=ModelConfig.CLASSIFIER_MODEL,
            openai_client=openai_client,
        ),
    )
    try:
        result = await Runner.run(agent, input=prompt, run_config=RunConfig(tracing_disabled=True))
    finally:
        await openai_client.close()
    return str(result.final_output)


class Classifier:
    """Decides whether a query is about Web3 at all. Never raises."""

    def __init__(self, complete: Optional[CompletionFn] = None):
        self.complete = complete or llm_complete

    async def classify(self, text: str) -> ClassificationResult:
        output = ""
        try:
            logger.info(f"🔍 Classifying input: {text}")
            output = await self.complete(CLASSIFICATION_PROMPT.format(text=text))
            parsed = json.loads(strip_code_fences(output))
            result = ClassificationResult.model_validate(parsed)
            logger.info(f"📊 Classification result: {result.classification} ({result.confidence})")
            return result
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to parse classification output: {e}")
            logger.warning(f"Raw output: {output[:500]}")
            return FALLBACK_CLASSIFICATION
        except Exception as e:
            logger.warning(f"Classification error: {e}")
            return FALLBACK_CLASSIFICATION
