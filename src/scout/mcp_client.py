"""
Nodit MCP transport over stdio.
Spawns the Nodit MCP server with the provider key and forwards call_nodit_api requests.
"""
import logging
from typing import Any, Dict, List, Optional

from agents.mcp import MCPServerStdio

from .config import NoditConfig

logger = logging.getLogger(__name__)


class ToolCallError(Exception):
    """Raised when the MCP server reports a failed tool invocation."""


class NoditMCPTransport:
    def __init__(self, api_key: str, session_timeout: Optional[float] = None):
        self.api_key = api_key
        self.session_timeout = session_timeout or NoditConfig.MCP_TIMEOUT
        self.server: Optional[MCPServerStdio] = None

    def _create_server(self) -> MCPServerStdio:
        return MCPServerStdio(
            name="Nodit MCP Server",
            params={
                "command": NoditConfig.MCP_COMMAND,
                "args": [NoditConfig.MCP_PACKAGE],
                "env": {"NODIT_API_KEY": self.api_key},
            },
            client_session_timeout_seconds=self.session_timeout,
        )

    async def connect(self) -> List[str]:
        self.server = self._create_server()
        await self.server.connect()
        tools = await self.server.list_tools()
        return [tool.name for tool in tools]

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        if self.server is None:
            raise ToolCallError("MCP server not started")

        result = await self.server.call_tool(tool_name, arguments)
        text = _join_text_content(result.content)

        if result.isError:
            raise ToolCallError(text or f"{tool_name} failed")

        structured = getattr(result, "structuredContent", None)
        if structured is not None:
            return structured
        return text

    async def close(self) -> None:
        if self.server is not None:
            server, self.server = self.server, None
            await server.cleanup()


def _join_text_content(content: List[Any]) -> str:
    parts = [item.text for item in content if getattr(item, "type", None) == "text"]
    return "\n".join(parts).strip()
