# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Destinations for encoded event envelopes.

A sink accepts encoded envelopes without blocking the caller. The
fan-out hook never waits for delivery and never retries; batching and
delivery are entirely the sink's business.

BatchingPublisher buffers envelopes and hands them to a delivery target
when either threshold is reached:
    - count_threshold envelopes are buffered, or
    - delay_threshold seconds have passed since the oldest buffered one.
"""

import base64
import threading
import time
from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

import httpx
from loguru import logger

from brokerhooks.exceptions import SinkClosedError


@runtime_checkable
class EventSink(Protocol):
    """Protocol for envelope destinations.

    ``publish`` must be safe to call from many threads at once.
    """

    def publish(self, data: bytes) -> None:
        """Queue one encoded envelope for delivery without waiting for it."""
        ...

    def flush(self) -> None:
        """Deliver anything still buffered."""
        ...

    def close(self) -> None:
        """Flush and release resources. Later publishes fail."""
        ...


type DeliveryTarget = Callable[[Sequence[bytes]], None]


class BatchingPublisher:
    """Thread-safe sink that batches envelopes by count or delay.

    A daemon worker thread owns delivery. Delivery failures are logged and
    reported to ``on_error``; the batch is dropped.
    """

    def __init__(
        self,
        target: DeliveryTarget,
        count_threshold: int = 10,
        delay_threshold: float = 1.0,
        name: str = "sink",
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        """Start the publisher's worker thread.

        Args:
            target: Callable that delivers one batch. May raise.
            count_threshold: Buffered envelopes that trigger a delivery.
            delay_threshold: Seconds after the oldest buffered envelope that
                trigger a delivery.
            name: Destination name used in logs.
            on_error: Called with each delivery failure.
        """
        if count_threshold < 1:
            raise ValueError(f"count_threshold must be at least 1, got {count_threshold}")
        if delay_threshold <= 0:
            raise ValueError(f"delay_threshold must be positive, got {delay_threshold}")

        self.name = name
        self.count_threshold = count_threshold
        self.delay_threshold = delay_threshold
        self._target = target
        self._on_error = on_error
        self._buffer: list[bytes] = []
        self._oldest_at: float | None = None
        self._closed = False
        self._cond = threading.Condition()
        self._worker = threading.Thread(
            target=self._run,
            name=f"brokerhooks-sink-{name}",
            daemon=True,
        )
        self._worker.start()

    def publish(self, data: bytes) -> None:
        """Buffer ``data`` for the next batch.

        Raises:
            SinkClosedError: If the publisher has been closed.
        """
        with self._cond:
            if self._closed:
                raise SinkClosedError(f"Sink {self.name!r} is closed")
            if not self._buffer:
                self._oldest_at = time.monotonic()
            self._buffer.append(data)
            self._cond.notify()

    def flush(self) -> None:
        """Deliver the current buffer on the calling thread."""
        with self._cond:
            batch = self._take()
        self._deliver(batch)

    def close(self) -> None:
        """Stop accepting envelopes, deliver what is buffered and close the target."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify()
        self._worker.join()

        close_target = getattr(self._target, "close", None)
        if callable(close_target):
            close_target()

    @property
    def closed(self) -> bool:
        return self._closed

    def _take(self) -> list[bytes]:
        batch = self._buffer
        self._buffer = []
        self._oldest_at = None
        return batch

    def _due(self) -> bool:
        if len(self._buffer) >= self.count_threshold:
            return True
        return (
            self._oldest_at is not None
            and time.monotonic() - self._oldest_at >= self.delay_threshold
        )

    def _wait_time(self) -> float | None:
        if self._oldest_at is None:
            return None
        return max(0.0, self.delay_threshold - (time.monotonic() - self._oldest_at))

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._closed and not self._due():
                    self._cond.wait(self._wait_time())
                batch = self._take()
                stopping = self._closed
            self._deliver(batch)
            if stopping:
                return

    def _deliver(self, batch: list[bytes]) -> None:
        if not batch:
            return
        try:
            self._target(batch)
        except Exception as e:
            logger.warning(
                "Sink delivery failed, dropping {count} envelopes: {error}",
                count=len(batch),
                error=str(e),
                sink=self.name,
            )
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception as observer_error:
                    logger.warning(
                        "Error observer failed: {error}",
                        error=str(observer_error),
                        sink=self.name,
                    )
        else:
            logger.debug("Delivered batch", count=len(batch), sink=self.name)


class HttpBatchTarget:
    """Delivers batches to an HTTP publish endpoint.

    The request body follows the Pub/Sub REST publish shape:
    ``{"messages": [{"data": "<base64>"}, ...]}``.
    """

    def __init__(self, url: str, client: httpx.Client | None = None) -> None:
        """Initialize the target.

        Args:
            url: Publish endpoint for this destination.
            client: HTTP client to send through. A default client is created
                when omitted.
        """
        self.url = url
        self._client = client or httpx.Client(timeout=httpx.Timeout(30.0, connect=5.0))

    def __call__(self, batch: Sequence[bytes]) -> None:
        """POST one batch.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response.
        """
        body = {
            "messages": [
                {"data": base64.b64encode(data).decode("ascii")} for data in batch
            ]
        }
        response = self._client.post(self.url, json=body)
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()
