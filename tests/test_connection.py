"""
Tests for ConnectionManager: connect retries, call retry policy, stats and teardown.
"""

from __future__ import annotations

import asyncio

import pytest

from scout.connection import (
    MISSING_KEY_ERROR,
    ConnectionManager,
    ConnectionStatus,
    MCPNotConnectedError,
    backoff_delay,
    parse_tool_result,
    should_retry,
)
from scout.models import ApiCallStats

from conftest import Scripted


def test_missing_key_is_reportable_not_fatal(make_manager, sleep_recorder):
    manager, transport = make_manager(api_key=None)
    result = asyncio.run(manager.connect())
    assert result.success is False
    assert result.error == MISSING_KEY_ERROR
    assert not manager.connected
    assert sleep_recorder.delays == []


def test_missing_key_read_from_environment(no_provider_key):
    manager = ConnectionManager()
    assert manager.api_key is None
    assert asyncio.run(manager.connect()).error == MISSING_KEY_ERROR


def test_connect_retries_three_times_with_fixed_delay(make_manager, sleep_recorder):
    errors = [ConnectionError("spawn failed")] * 3
    manager, transport = make_manager(connect_errors=errors)
    result = asyncio.run(manager.connect())
    assert result.success is False
    assert result.error == "spawn failed"
    assert manager.attempts == 3
    assert sleep_recorder.delays == [2.0, 2.0]
    assert manager.status == ConnectionStatus.DISCONNECTED


def test_connect_succeeds_after_transient_failure(make_manager, sleep_recorder):
    manager, transport = make_manager(connect_errors=[ConnectionError("boom")])
    result = asyncio.run(manager.connect())
    assert result.success is True
    assert manager.connected
    assert manager.attempts == 2
    assert sleep_recorder.delays == [2.0]


def test_connect_fails_without_nodit_tool(make_manager):
    manager, transport = make_manager(tools=("something_else",))
    result = asyncio.run(manager.connect())
    assert result.success is False
    assert result.error == "Nodit API tool not found"


def test_connection_state_snapshot(make_manager, sleep_recorder):
    failing, _ = make_manager(connect_errors=[ConnectionError("npx not found")] * 3)
    asyncio.run(failing.connect())
    state = failing.state
    assert state.connected is False
    assert state.attempts == 3
    assert state.stats == ApiCallStats()

    manager, transport = make_manager({"isContract": {"result": True}})

    async def scenario():
        await manager.connect()
        await manager.call("isContract", "ethereum", "mainnet", {"address": "0xabc"})

    asyncio.run(scenario())
    state = manager.state
    assert state.connected is True
    assert state.attempts == 1
    assert state.stats.total == 1
    assert state.stats.successful == 1


def test_call_requires_connection(make_manager):
    manager, transport = make_manager({"isContract": {"result": True}})
    with pytest.raises(MCPNotConnectedError):
        asyncio.run(manager.call("isContract", "ethereum", "mainnet", {"address": "0x"}))


def test_call_forwards_nodit_arguments(make_manager):
    manager, transport = make_manager({"isContract": {"result": True}})

    async def scenario():
        await manager.connect()
        return await manager.call("isContract", "base", "mainnet", {"address": "0xabc"})

    assert asyncio.run(scenario()) == {"result": True}
    operation_id, arguments = transport.calls[0]
    assert arguments == {
        "protocol": "base",
        "network": "mainnet",
        "operationId": "isContract",
        "requestBody": {"address": "0xabc"},
    }
    assert manager.stats.total == 1
    assert manager.stats.successful == 1
    assert manager.stats.failed == 0


def test_retryable_error_retried_with_linear_backoff(make_manager, sleep_recorder):
    responses = {
        "getAccount": Scripted(TimeoutError("request timeout"), ConnectionError("ECONNRESET"), {"balance": "1"})
    }
    manager, transport = make_manager(responses)

    async def scenario():
        await manager.connect()
        return await manager.call("getAccount", "ethereum", "mainnet", {"address": "0x"})

    assert asyncio.run(scenario()) == {"balance": "1"}
    assert transport.operations() == ["getAccount"] * 3
    assert sleep_recorder.delays == [1.0, 2.0]
    assert manager.stats.total == 3
    assert manager.stats.failed == 2
    assert manager.stats.successful == 1


def test_retryable_error_exhausts_after_two_retries(make_manager, sleep_recorder):
    manager, transport = make_manager({"getAccount": Exception("502 Bad Gateway")})

    async def scenario():
        await manager.connect()
        await manager.call("getAccount", "ethereum", "mainnet", {"address": "0x"})

    with pytest.raises(Exception, match="502"):
        asyncio.run(scenario())
    assert len(transport.calls) == 3
    assert manager.stats.failed == 3


def test_non_retryable_error_aborts_immediately(make_manager, sleep_recorder):
    manager, transport = make_manager({"getAccount": Exception("401 Unauthorized connection")})

    async def scenario():
        await manager.connect()
        await manager.call("getAccount", "ethereum", "mainnet", {"address": "0x"})

    with pytest.raises(Exception, match="401"):
        asyncio.run(scenario())
    assert len(transport.calls) == 1
    assert sleep_recorder.delays == []


def test_retry_count_argument_consumes_budget(make_manager):
    manager, transport = make_manager({"getAccount": Exception("network unreachable")})

    async def scenario():
        await manager.connect()
        await manager.call("getAccount", "ethereum", "mainnet", {}, retry_count=2)

    with pytest.raises(Exception):
        asyncio.run(scenario())
    assert len(transport.calls) == 1


@pytest.mark.parametrize(
    "error,expected",
    [
        (Exception("Request timeout"), True),
        (Exception("network error"), True),
        (Exception("connection refused"), True),
        (Exception("ECONNRESET"), True),
        (Exception("503 Service Unavailable"), True),
        (Exception("502 Bad Gateway"), True),
        (TimeoutError(), True),
        (Exception("403 Forbidden"), False),
        (Exception("invalid address connection"), False),
        (Exception("not found"), False),
    ],
)
def test_should_retry(error, expected):
    assert should_retry(error) is expected


def test_backoff_is_capped():
    assert [backoff_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]


def test_stats_snapshots_are_immutable():
    stats = ApiCallStats()
    after = stats.record_success(100).record_success(300).record_failure()
    assert stats.total == 0
    assert after.total == 3
    assert after.successful == 2
    assert after.failed == 1
    assert after.avg_response_time_ms == 200


def test_close_swallows_teardown_errors(make_manager):
    manager, transport = make_manager()

    async def failing_close():
        raise RuntimeError("pipe closed")

    transport.close = failing_close

    async def scenario():
        await manager.connect()
        await manager.close()

    asyncio.run(scenario())
    assert manager.status == ConnectionStatus.CLOSED
    assert manager.transport is None


def test_parse_tool_result_accepts_both_shapes():
    assert parse_tool_result('{"result": true}') == {"result": True}
    assert parse_tool_result({"result": True}) == {"result": True}
    assert parse_tool_result("  ") is None
    with pytest.raises(ValueError):
        parse_tool_result("not json")
