"""
Connection manager for the blockchain-data tool provider.

One instance per request: created, connected, used for every tool call of
that request, then closed. Owns the retry policy for connecting and for
individual calls, and the running ApiCallStats snapshot.
"""
import asyncio
import json
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .client_protocol import ToolTransport
from .config import NoditConfig, RetryConfig, get_nodit_api_key
from .mcp_client import NoditMCPTransport
from .models import ApiCallStats, ConnectResult, ConnectionState, ToolResult

logger = logging.getLogger(__name__)

MISSING_KEY_ERROR = "NODIT_API_KEY not configured"

_RETRYABLE_MARKERS = ("timeout", "network", "connection", "econnreset", "503", "502")
_FATAL_MARKERS = ("401", "403", "invalid")

_USE_ENV = object()


class MCPNotConnectedError(RuntimeError):
    pass


class ToolNotFoundError(RuntimeError):
    pass


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


def should_retry(error: BaseException) -> bool:
    """Network, timeout and gateway errors are retried; auth and validation errors are not."""
    message = f"{type(error).__name__}: {error}".lower()
    if any(marker in message for marker in _FATAL_MARKERS):
        return False
    return any(marker in message for marker in _RETRYABLE_MARKERS)


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before retry number `attempt` (1-based)."""
    return min(RetryConfig.CALL_BACKOFF_STEP * attempt, RetryConfig.CALL_BACKOFF_CAP)


def parse_tool_result(raw: Any) -> ToolResult:
    """
    Tool results arrive either already decoded or as JSON text.
    Raises ValueError when text is not valid JSON.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        return json.loads(text)
    return raw


class ConnectionManager:
    def __init__(
        self,
        api_key: Any = _USE_ENV,
        transport_factory: Optional[Callable[[str], ToolTransport]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key: Optional[str] = get_nodit_api_key() if api_key is _USE_ENV else api_key
        self.transport_factory = transport_factory or NoditMCPTransport
        self.transport: Optional[ToolTransport] = None
        self.status = ConnectionStatus.DISCONNECTED
        self.attempts = 0
        self._sleep = sleep
        self._stats = ApiCallStats()

    @property
    def connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def stats(self) -> ApiCallStats:
        return self._stats

    @property
    def state(self) -> ConnectionState:
        return ConnectionState(connected=self.connected, attempts=self.attempts, stats=self._stats)

    async def connect(self) -> ConnectResult:
        if not self.api_key:
            self.attempts += 1
            logger.error(f"❌ MCP connection unavailable: {MISSING_KEY_ERROR}")
            return ConnectResult(success=False, error=MISSING_KEY_ERROR)

        self.status = ConnectionStatus.CONNECTING
        last_error = "Connection failed after retries"

        for attempt in range(1, RetryConfig.MAX_CONNECT_ATTEMPTS + 1):
            self.attempts += 1
            try:
                self.transport = self.transport_factory(self.api_key)
                tool_names = await self.transport.connect()
                if NoditConfig.TOOL_NAME not in tool_names:
                    raise ToolNotFoundError("Nodit API tool not found")

                self.status = ConnectionStatus.CONNECTED
                logger.info(f"🔗 MCP Connected successfully (attempt {attempt})")
                logger.info(f"🛠️ Loaded {len(tool_names)} MCP tools")
                return ConnectResult(success=True)

            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.error(f"❌ MCP connection failed (attempt {attempt}): {last_error}")
                await self._discard_transport()

                if attempt < RetryConfig.MAX_CONNECT_ATTEMPTS:
                    logger.info(f"🔄 Retrying MCP connection in {RetryConfig.CONNECT_RETRY_DELAY:g} seconds...")
                    await self._sleep(RetryConfig.CONNECT_RETRY_DELAY)

        self.status = ConnectionStatus.DISCONNECTED
        return ConnectResult(success=False, error=last_error)

    async def call(
        self,
        operation_id: str,
        protocol: str,
        network: str,
        request_body: Dict[str, Any],
        retry_count: int = 0,
    ) -> Any:
        """
        Invoke one Nodit API operation through the tool transport.

        Retryable failures are retried until `RetryConfig.MAX_CALL_RETRIES`
        retries have been spent (counting `retry_count` already used);
        everything else propagates to the caller.
        """
        if not self.connected or self.transport is None:
            raise MCPNotConnectedError("MCP not connected or no tools available")

        arguments = {
            "protocol": protocol,
            "network": network,
            "operationId": operation_id,
            "requestBody": request_body,
        }
        attempt = retry_count

        while True:
            logger.info(f"🔧 Calling {operation_id} on {protocol}/{network}")
            logger.debug(f"📝 Request body: {json.dumps(request_body)}")
            start = time.monotonic()
            try:
                result = await self.transport.call_tool(NoditConfig.TOOL_NAME, arguments)
            except Exception as e:
                elapsed_ms = (time.monotonic() - start) * 1000
                self._stats = self._stats.record_failure()
                logger.warning(f"❌ {operation_id} failed after {elapsed_ms:.0f}ms: {e}")

                if attempt < RetryConfig.MAX_CALL_RETRIES and should_retry(e):
                    attempt += 1
                    logger.info(f"🔄 Retrying {operation_id} (attempt {attempt})")
                    await self._sleep(backoff_delay(attempt))
                    continue
                raise

            elapsed_ms = (time.monotonic() - start) * 1000
            self._stats = self._stats.record_success(elapsed_ms)
            logger.info(f"✅ {operation_id} successful ({elapsed_ms:.0f}ms)")
            logger.debug(f"📊 Response preview: {str(result)[:200]}...")
            return result

    async def close(self) -> None:
        if self.transport is not None and self.connected:
            try:
                await self.transport.close()
                logger.info("🔌 MCP connection closed")
            except Exception as e:
                logger.warning(f"⚠️ Error closing MCP connection: {e}")
            logger.info(f"📊 Final API call stats: {self._stats.model_dump()}")
        self.transport = None
        self.status = ConnectionStatus.CLOSED

    async def _discard_transport(self) -> None:
        if self.transport is None:
            return
        try:
            await self.transport.close()
        except Exception as e:
            logger.debug(f"Ignoring teardown error after failed connect: {e}")
        self.transport = None
