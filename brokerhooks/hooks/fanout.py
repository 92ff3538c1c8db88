# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Event fan-out hook.

Turns broker lifecycle and traffic events into typed envelopes and
publishes each one to the sink bound to its category.

Per event:
    1. No sink bound for the category: return before any other work.
    2. Acting username on the disallow list: return.
    3. Build the envelope, encode it, hand it to the sink.
    4. Any failure in step 3 is logged, reported to ``on_error`` and
       swallowed. Telemetry never affects the broker's own delivery.
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from brokerhooks.envelopes import (
    ConnectEnvelope,
    DisconnectEnvelope,
    EventCategory,
    EventEnvelope,
    PublishedEnvelope,
    SessionEstablishedEnvelope,
    StartedEnvelope,
    StoppedEnvelope,
    SubscribedEnvelope,
    UnsubscribedEnvelope,
    WillSentEnvelope,
    encode_envelope,
)
from brokerhooks.exceptions import HookConfigError
from brokerhooks.hooks.blocklist import utc_now
from brokerhooks.protocols import HookDescriptor, HookEvent
from brokerhooks.sinks import EventSink
from brokerhooks.types import ClientInfo, ConnectPacket, PublishPacket, SubscribePacket


type ErrorObserver = Callable[[EventCategory, Exception], None]


class EventFanoutHookConfig(BaseModel):
    """Configuration for EventFanoutHook.

    Attributes:
        sinks: Destination per event category. Unbound categories are dropped.
            Several categories may share one sink.
        disallow_list: Usernames whose events are never forwarded.
        on_error: Called with every swallowed encode or publish failure.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sinks: Mapping[EventCategory, EventSink] = Field(default_factory=dict, validate_default=True)
    disallow_list: frozenset[str] = frozenset()
    on_error: ErrorObserver | None = None

    @field_validator("sinks", mode="after")
    @classmethod
    def freeze_sinks(cls, value: Mapping[EventCategory, EventSink]) -> Mapping[EventCategory, EventSink]:
        """Store sink bindings as an immutable mapping."""
        return MappingProxyType(dict(value))


class EventFanoutHook:
    """Observational hook that forwards broker events to sinks.

    Holds no locks; sinks must accept concurrent ``publish`` calls.
    """

    DESCRIPTOR = HookDescriptor(
        id="event-fanout-hook",
        capabilities=frozenset(
            {
                HookEvent.ON_STARTED,
                HookEvent.ON_STOPPED,
                HookEvent.ON_CONNECT,
                HookEvent.ON_DISCONNECT,
                HookEvent.ON_SESSION_ESTABLISHED,
                HookEvent.ON_PUBLISHED,
                HookEvent.ON_SUBSCRIBED,
                HookEvent.ON_UNSUBSCRIBED,
                HookEvent.ON_WILL_SENT,
            }
        ),
    )

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._config: EventFanoutHookConfig | None = None
        self._sinks: Mapping[EventCategory, EventSink] = MappingProxyType({})
        self._disallow_list: frozenset[str] = frozenset()
        self._on_error: ErrorObserver | None = None
        self.log = logger.bind(hook=self.id)

    @property
    def id(self) -> str:
        return self.DESCRIPTOR.id

    def provides(self, event: HookEvent) -> bool:
        return self.DESCRIPTOR.provides(event)

    def configure(self, config: Any) -> None:
        """Bind sinks and the disallow list.

        Raises:
            HookConfigError: If config is None, not an EventFanoutHookConfig,
                or the hook is already configured.
        """
        if self._config is not None:
            raise HookConfigError("hook is already configured", hook_id=self.id)
        if config is None:
            raise HookConfigError("configuration is required", hook_id=self.id)
        if not isinstance(config, EventFanoutHookConfig):
            raise HookConfigError(
                f"expected EventFanoutHookConfig, got {type(config).__name__}",
                hook_id=self.id,
            )

        self._sinks = config.sinks
        self._disallow_list = config.disallow_list
        self._on_error = config.on_error
        self._config = config

        unbound = sorted(c.value for c in EventCategory if c not in self._sinks)
        self.log.info(
            "Configured event fan-out",
            bound=sorted(c.value for c in self._sinks),
            unbound=unbound,
            disallowed_users=len(self._disallow_list),
        )

    def close(self) -> None:
        """Close every bound sink once."""
        seen: set[int] = set()
        for sink in self._sinks.values():
            if id(sink) in seen:
                continue
            seen.add(id(sink))
            try:
                sink.close()
            except Exception as e:
                self.log.error("Failed to close sink: {error}", error=str(e))

    # Broker callbacks

    def on_started(self) -> None:
        sink = self._sink_for(EventCategory.STARTED)
        if sink is None:
            return
        self._publish(sink, EventCategory.STARTED, lambda: StartedEnvelope(timestamp=self._clock()))

    def on_stopped(self) -> None:
        sink = self._sink_for(EventCategory.STOPPED)
        if sink is None:
            return
        self._publish(sink, EventCategory.STOPPED, lambda: StoppedEnvelope(timestamp=self._clock()))

    def on_connect(self, client: ClientInfo, packet: ConnectPacket) -> None:
        sink = self._sink_for(EventCategory.CONNECT, client.username)
        if sink is None:
            return
        self._publish(
            sink,
            EventCategory.CONNECT,
            lambda: ConnectEnvelope(
                timestamp=self._clock(),
                client_id=client.id,
                username=client.username,
                remote=client.remote,
            ),
        )

    def on_disconnect(
        self,
        client: ClientInfo,
        error: Exception | None = None,
        expired: bool = False,
    ) -> None:
        sink = self._sink_for(EventCategory.DISCONNECT, client.username)
        if sink is None:
            return
        self._publish(
            sink,
            EventCategory.DISCONNECT,
            lambda: DisconnectEnvelope(
                timestamp=self._clock(),
                client_id=client.id,
                username=client.username,
                reason=str(error) if error is not None else None,
                expired=expired,
            ),
        )

    def on_session_established(self, client: ClientInfo, packet: ConnectPacket) -> None:
        sink = self._sink_for(EventCategory.SESSION_ESTABLISHED, client.username)
        if sink is None:
            return
        self._publish(
            sink,
            EventCategory.SESSION_ESTABLISHED,
            lambda: SessionEstablishedEnvelope(
                timestamp=self._clock(),
                client_id=client.id,
                username=client.username,
            ),
        )

    def on_published(self, client: ClientInfo, packet: PublishPacket) -> None:
        sink = self._sink_for(EventCategory.PUBLISHED, client.username)
        if sink is None:
            return
        self._publish(
            sink,
            EventCategory.PUBLISHED,
            lambda: PublishedEnvelope(
                timestamp=self._clock(),
                client_id=client.id,
                username=client.username,
                topic=packet.topic,
                payload=packet.payload,
                qos=packet.qos,
                retain=packet.retain,
            ),
        )

    def on_subscribed(self, client: ClientInfo, packet: SubscribePacket) -> None:
        sink = self._sink_for(EventCategory.SUBSCRIBED, client.username)
        if sink is None:
            return
        # One envelope per topic filter.
        for topic in packet.filters:
            self._publish(
                sink,
                EventCategory.SUBSCRIBED,
                lambda topic=topic: SubscribedEnvelope(
                    timestamp=self._clock(),
                    client_id=client.id,
                    username=client.username,
                    topic=topic,
                ),
            )

    def on_unsubscribed(self, client: ClientInfo, packet: SubscribePacket) -> None:
        sink = self._sink_for(EventCategory.UNSUBSCRIBED, client.username)
        if sink is None:
            return
        for topic in packet.filters:
            self._publish(
                sink,
                EventCategory.UNSUBSCRIBED,
                lambda topic=topic: UnsubscribedEnvelope(
                    timestamp=self._clock(),
                    client_id=client.id,
                    username=client.username,
                    topic=topic,
                ),
            )

    def on_will_sent(self, client: ClientInfo, packet: PublishPacket) -> None:
        sink = self._sink_for(EventCategory.WILL_SENT, client.username)
        if sink is None:
            return
        self._publish(
            sink,
            EventCategory.WILL_SENT,
            lambda: WillSentEnvelope(
                timestamp=self._clock(),
                client_id=client.id,
                username=client.username,
                topic=packet.topic,
                payload=packet.payload,
                qos=packet.qos,
                retain=packet.retain,
            ),
        )

    def is_disallowed(self, username: str | None) -> bool:
        """Return True if events for ``username`` must not be forwarded."""
        return bool(username) and username in self._disallow_list

    def _sink_for(self, category: EventCategory, username: str | None = None) -> EventSink | None:
        sink = self._sinks.get(category)
        if sink is None:
            return None
        if self.is_disallowed(username):
            return None
        return sink

    def _publish(
        self,
        sink: EventSink,
        category: EventCategory,
        build: Callable[[], EventEnvelope],
    ) -> None:
        try:
            sink.publish(encode_envelope(build()))
        except Exception as e:
            self.log.error(
                "Failed to publish {category} event: {error}",
                category=category.value,
                error=str(e),
            )
            self._report(category, e)

    def _report(self, category: EventCategory, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(category, error)
        except Exception as e:
            self.log.warning(
                "Error observer failed: {error}",
                error=str(e),
                category=category.value,
            )
