"""
Shared fixtures for the unit tests.

FakeTransport replays scripted responses (or raises scripted exceptions) and
records every attempt, so access layer behavior can be checked without a
network.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import AsyncMock
from multidict import CIMultiDict

from blogapi.auth.store import CredentialStore, MemoryKeyValueStore
from blogapi.client.access import AccessLayer
from blogapi.client.transport import TransportResponse
from blogapi.diagnostics import DiagnosticSink
from blogapi.host import EventBus, Navigator


def response(status: int, body: Any = None, headers: Optional[Dict[str, str]] = None) -> TransportResponse:
    return TransportResponse(status=status, headers=CIMultiDict(headers or {}), body=body)


class FakeTransport:
    """Transport double with a script of responses/exceptions."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def queue(self, *items) -> None:
        self.script.extend(items)

    async def send(self, method, path, headers=None, params=None, body=None):
        self.calls.append(
            {"method": method, "path": path, "headers": dict(headers or {}), "params": params, "body": body}
        )
        if not self.script:
            raise AssertionError(f"Unexpected request: {method} {path}")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced clock for expiry checks."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credentials(clock):
    return CredentialStore(MemoryKeyValueStore(), clock=clock)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def navigator():
    return Navigator()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def access(transport, credentials, sleep, navigator, events):
    """Access layer wired to the fake transport, with verbose diagnostics."""
    return AccessLayer(
        transport=transport,
        credentials=credentials,
        diagnostics=DiagnosticSink(verbose=True),
        navigator=navigator,
        events=events,
        sleep=sleep,
    )
