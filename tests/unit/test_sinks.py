# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Tests for envelope sinks."""
import base64
import threading
from collections.abc import Sequence

import httpx
import pytest

from brokerhooks.exceptions import SinkClosedError
from brokerhooks.sinks import BatchingPublisher, EventSink, HttpBatchTarget
from brokerhooks.transport import build_http_client


class CollectingTarget:
    """Delivery target that records batches and signals each delivery."""

    def __init__(self, error: Exception | None = None) -> None:
        self.batches: list[list[bytes]] = []
        self.delivered = threading.Event()
        self.error = error
        self.closed = False

    def __call__(self, batch: Sequence[bytes]) -> None:
        self.batches.append(list(batch))
        self.delivered.set()
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        self.closed = True


class FailOnceTarget(CollectingTarget):
    """Delivery target whose first delivery fails."""

    def __call__(self, batch: Sequence[bytes]) -> None:
        first = not self.batches
        self.batches.append(list(batch))
        if first:
            raise RuntimeError("collector down")
        self.delivered.set()


@pytest.fixture
def target() -> CollectingTarget:
    return CollectingTarget()


class TestBatchingPublisher:
    """Batching by count and delay."""

    def test_is_an_event_sink(self, target) -> None:
        publisher = BatchingPublisher(target)
        try:
            assert isinstance(publisher, EventSink)
        finally:
            publisher.close()

    def test_delivers_when_count_threshold_reached(self, target) -> None:
        publisher = BatchingPublisher(target, count_threshold=3, delay_threshold=60)
        try:
            for i in range(3):
                publisher.publish(f"m{i}".encode())

            assert target.delivered.wait(timeout=5)
            assert target.batches == [[b"m0", b"m1", b"m2"]]
        finally:
            publisher.close()

    def test_delivers_when_delay_threshold_passes(self, target) -> None:
        publisher = BatchingPublisher(target, count_threshold=100, delay_threshold=0.05)
        try:
            publisher.publish(b"lonely")

            assert target.delivered.wait(timeout=5)
            assert target.batches == [[b"lonely"]]
        finally:
            publisher.close()

    def test_publish_does_not_wait_for_delivery(self) -> None:
        release = threading.Event()

        def slow_target(batch: Sequence[bytes]) -> None:
            release.wait(timeout=5)

        publisher = BatchingPublisher(slow_target, count_threshold=1, delay_threshold=60)
        try:
            publisher.publish(b"first")
            # Worker is stuck delivering; publish still returns immediately.
            publisher.publish(b"second")
        finally:
            release.set()
            publisher.close()

    def test_flush_delivers_on_caller_thread(self, target) -> None:
        publisher = BatchingPublisher(target, count_threshold=100, delay_threshold=60)
        try:
            publisher.publish(b"a")
            publisher.publish(b"b")
            publisher.flush()

            assert target.batches == [[b"a", b"b"]]
        finally:
            publisher.close()

    def test_close_delivers_remaining_and_closes_target(self, target) -> None:
        publisher = BatchingPublisher(target, count_threshold=100, delay_threshold=60)
        publisher.publish(b"pending")

        publisher.close()

        assert target.batches == [[b"pending"]]
        assert target.closed is True
        assert publisher.closed is True

    def test_close_is_idempotent(self, target) -> None:
        publisher = BatchingPublisher(target)
        publisher.close()
        publisher.close()

    def test_publish_after_close_raises(self, target) -> None:
        publisher = BatchingPublisher(target)
        publisher.close()

        with pytest.raises(SinkClosedError, match="closed"):
            publisher.publish(b"late")

    def test_delivery_failure_is_reported_and_dropped(self) -> None:
        target = CollectingTarget(error=RuntimeError("collector down"))
        errors: list[Exception] = []
        publisher = BatchingPublisher(
            target, count_threshold=1, delay_threshold=60, on_error=errors.append
        )
        publisher.publish(b"x")
        publisher.close()

        assert target.batches == [[b"x"]]
        assert len(errors) == 1
        assert str(errors[0]) == "collector down"

    def test_failing_observer_keeps_worker_running(self, log_output) -> None:
        target = FailOnceTarget()
        observed = threading.Event()

        def broken_observer(error: Exception) -> None:
            observed.set()
            raise ValueError("observer broken")

        publisher = BatchingPublisher(
            target, count_threshold=1, delay_threshold=60, on_error=broken_observer
        )
        try:
            publisher.publish(b"a")
            assert observed.wait(2)
            publisher.publish(b"b")
            assert target.delivered.wait(2)
        finally:
            publisher.close()

        assert target.batches == [[b"a"], [b"b"]]
        assert "Error observer failed: observer broken" in log_output.getvalue()

    def test_concurrent_publishers_lose_nothing(self, target) -> None:
        publisher = BatchingPublisher(target, count_threshold=7, delay_threshold=0.01)

        def worker(n: int) -> None:
            for i in range(50):
                publisher.publish(f"{n}-{i}".encode())

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        publisher.close()

        delivered = [item for batch in target.batches for item in batch]
        assert len(delivered) == 200
        assert len(set(delivered)) == 200

    @pytest.mark.parametrize(
        "kwargs,message",
        [
            ({"count_threshold": 0}, "count_threshold"),
            ({"delay_threshold": 0}, "delay_threshold"),
        ],
    )
    def test_rejects_invalid_thresholds(self, target, kwargs, message) -> None:
        with pytest.raises(ValueError, match=message):
            BatchingPublisher(target, **kwargs)


class TestHttpBatchTarget:
    """Batch delivery over HTTP."""

    def test_posts_base64_messages(self, transport_factory) -> None:
        transport = transport_factory(status_code=200)
        target = HttpBatchTarget(
            "https://events.internal/topics/publish:publish",
            build_http_client(transport),
        )

        target([b"one", b"\x00two"])

        assert transport.call_count == 1
        assert transport.requests[0].method == "POST"
        assert transport.json_bodies() == [
            {
                "messages": [
                    {"data": base64.b64encode(b"one").decode()},
                    {"data": base64.b64encode(b"\x00two").decode()},
                ]
            }
        ]

    def test_raises_on_error_status(self, transport_factory) -> None:
        target = HttpBatchTarget("https://events.internal/p", build_http_client(transport_factory(503)))

        with pytest.raises(httpx.HTTPStatusError):
            target([b"x"])

    def test_through_publisher(self, transport_factory) -> None:
        transport = transport_factory(status_code=200)
        publisher = BatchingPublisher(
            HttpBatchTarget("https://events.internal/p", build_http_client(transport)),
            count_threshold=100,
            delay_threshold=60,
        )
        publisher.publish(b"a")
        publisher.publish(b"b")
        publisher.close()

        assert transport.call_count == 1
        assert len(transport.json_bodies()[0]["messages"]) == 2
