"""
Protocol definition for tool-call transports.
Lets the stdio MCP transport and test doubles be used interchangeably by the ConnectionManager.
"""
from typing import Any, Dict, List, Protocol, runtime_checkable


@runtime_checkable
class ToolTransport(Protocol):
    """Protocol for blockchain-data tool transports."""

    async def connect(self) -> List[str]:
        """Open the transport and return the names of the tools it exposes."""
        ...

    async def call_tool(
        self,
        tool_name: str,
        arguments: Dict[str, Any]
    ) -> Any:
        """Invoke a tool. Result may be decoded JSON or raw text."""
        ...

    async def close(self) -> None:
        """Release the transport."""
        ...
