# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and helpers for all tests.

Provides a controllable clock, a recording HTTP transport and factories
for the broker shapes passed to hook callbacks.
"""
import json
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from io import StringIO

import httpx
import pytest
from loguru import logger

from brokerhooks.types import ClientInfo, ConnectPacket


class FakeClock:
    """Clock that only moves when told to.

    Usage:
        clock = FakeClock()
        hook = HttpAuthHook(clock=clock)
        clock.advance(seconds=61)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it receives.

    The response is ``status_code`` unless ``error`` is set, in which case
    every request raises it.
    """

    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def json_bodies(self) -> list[dict[str, object]]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock frozen at 2024-01-01 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def transport_factory() -> Callable[..., RecordingTransport]:
    """Factory fixture for RecordingTransport instances."""
    def _create(status_code: int = 200, error: Exception | None = None) -> RecordingTransport:
        return RecordingTransport(status_code=status_code, error=error)
    return _create


@pytest.fixture
def client_factory() -> Callable[..., ClientInfo]:
    """Factory fixture for ClientInfo instances with sensible defaults."""
    def _create(
        id: str = "default_client_id",
        username: str = "alice",
        remote: str | None = "10.0.0.5:51234",
    ) -> ClientInfo:
        return ClientInfo(id=id, username=username, remote=remote)
    return _create


@pytest.fixture
def connect_packet() -> ConnectPacket:
    """CONNECT credentials for the default client."""
    return ConnectPacket(username="alice", password="s3cret")


@pytest.fixture
def log_output() -> Iterator[StringIO]:
    """Capture loguru output at DEBUG and above."""
    output = StringIO()
    handler_id = logger.add(output, format="{level} {message} {extra}", level="DEBUG")
    yield output
    logger.remove(handler_id)
