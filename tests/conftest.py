"""
Pytest fixtures for Scout tests. The Nodit MCP transport and the completion
service are replaced by scripted fakes so no process or network is touched.
"""

from __future__ import annotations

import json

import pytest

from scout.connection import ConnectionManager

ADDRESS = "0x" + "ab" * 20
ADDRESS_2 = "0x" + "cd" * 20


class Scripted:
    """Successive outcomes for one operation; the last one repeats."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)

    def next(self):
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class FakeTransport:
    """In-memory ToolTransport keyed by Nodit operationId."""

    def __init__(self, responses=None, tools=("call_nodit_api",), connect_errors=()):
        self.responses = dict(responses or {})
        self.tools = list(tools)
        self.connect_errors = list(connect_errors)
        self.calls = []
        self.closed = False

    async def connect(self):
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        return self.tools

    async def call_tool(self, tool_name, arguments):
        operation_id = arguments["operationId"]
        self.calls.append((operation_id, arguments))
        if operation_id not in self.responses:
            raise Exception(f"invalid operation {operation_id}")
        outcome = self.responses[operation_id]
        if isinstance(outcome, Scripted):
            outcome = outcome.next()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True

    def operations(self):
        return [op for op, _ in self.calls]


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def completion_returning(payload):
    """Completion function stub; dicts are JSON-encoded."""
    text = json.dumps(payload) if isinstance(payload, dict) else payload

    async def complete(prompt):
        return text

    return complete


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def make_manager(sleep_recorder):
    """Build a ConnectionManager wired to a FakeTransport; returns (manager, transport)."""

    def _make(responses=None, api_key="test-key", **transport_kwargs):
        transport = FakeTransport(responses, **transport_kwargs)
        manager = ConnectionManager(
            api_key=api_key,
            transport_factory=lambda key: transport,
            sleep=sleep_recorder,
        )
        return manager, transport

    return _make


@pytest.fixture
def no_provider_key(monkeypatch):
    monkeypatch.delenv("NODIT_API_KEY", raising=False)
