"""Pytest configuration and fixtures for request-agent tests.

This file provides:
- make_options / make_resolved: option factories with sensible defaults
- FakeTransport: records requests and returns canned responses or errors
- Recorder: collects emitted events and log records
"""

from __future__ import annotations

from typing import Any

import pytest

from request_agent.config_loader import build_options
from request_agent.errors import RequestAgentError
from request_agent.models import AgentOptions, Event, ResolvedOptions
from request_agent.transport import TransportResponse


def make_options(**overrides: Any) -> AgentOptions:
    """Create validated AgentOptions for testing.

    Prefer this over constructing AgentOptions directly - it runs the same
    validation as loading from a file.
    """
    raw: dict[str, Any] = {"endpoint": "http://example.com/hook"}
    raw.update(overrides)
    return build_options(raw)


def make_resolved(**overrides: Any) -> ResolvedOptions:
    """Create ResolvedOptions as if already interpolated against an event."""
    fields: dict[str, Any] = {"endpoint": "http://example.com/hook", "method": "post"}
    fields.update(overrides)
    return ResolvedOptions(**fields)


def make_event(**payload: Any) -> Event:
    return Event(payload=payload)


class FakeTransport:
    """Transport double: records each run() call.

    Returns ``response`` for every call unless ``error`` is set, in which
    case it is raised instead.
    """

    def __init__(
        self,
        response: TransportResponse | None = None,
        error: RequestAgentError | None = None,
    ) -> None:
        self.response = response or TransportResponse(status=200, headers={}, body="ok")
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def run(
        self,
        method: str,
        url: str,
        body: Any,
        headers: dict[str, str],
        *,
        params: list[tuple[str, str]] | None = None,
        timeout: int | None = None,
        open_timeout: int | None = None,
    ) -> TransportResponse:
        self.calls.append({
            "method": method,
            "url": url,
            "body": body,
            "headers": dict(headers),
            "params": params,
            "timeout": timeout,
            "open_timeout": open_timeout,
        })
        if self.error is not None:
            raise self.error
        return self.response


class Recorder:
    """Collects emitted events and log records."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.logs: list[dict[str, Any]] = []

    def emit(self, payload: dict[str, Any]) -> None:
        self.events.append(payload)

    def log(self, record: dict[str, Any]) -> None:
        self.logs.append(record)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
