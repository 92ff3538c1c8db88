# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Typed event envelopes published by the fan-out hook.

One envelope model per event category. Envelopes are JSON on the wire:
``payload`` is base64, ``timestamp`` is ISO 8601, and the ``event`` field
names the category so consumers can decode any stream with
``decode_envelope``.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class EventCategory(StrEnum):
    """Categories of broker events forwarded to sinks."""

    STARTED = "started"
    STOPPED = "stopped"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    SESSION_ESTABLISHED = "session_established"
    PUBLISHED = "published"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    WILL_SENT = "will_sent"


class _Envelope(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    timestamp: datetime


class _ClientEnvelope(_Envelope):
    client_id: str
    username: str = ""


class StartedEnvelope(_Envelope):
    """The broker started serving."""

    event: Literal["started"] = "started"


class StoppedEnvelope(_Envelope):
    """The broker stopped serving."""

    event: Literal["stopped"] = "stopped"


class ConnectEnvelope(_ClientEnvelope):
    """A client connected."""

    event: Literal["connect"] = "connect"
    connected: bool = True
    remote: str | None = None


class DisconnectEnvelope(_ClientEnvelope):
    """A client disconnected.

    Attributes:
        reason: Error that ended the session, if any.
        expired: True when the session itself expired rather than the
            connection dropping.
    """

    event: Literal["disconnect"] = "disconnect"
    connected: bool = False
    reason: str | None = None
    expired: bool = False


class SessionEstablishedEnvelope(_ClientEnvelope):
    """A client finished the handshake and its session is live."""

    event: Literal["session_established"] = "session_established"


class PublishedEnvelope(_ClientEnvelope):
    """A client published an application message."""

    event: Literal["published"] = "published"
    topic: str
    payload: bytes = b""
    qos: int = 0
    retain: bool = False


class SubscribedEnvelope(_ClientEnvelope):
    """A client subscribed to a topic filter."""

    event: Literal["subscribed"] = "subscribed"
    topic: str
    subscribed: bool = True


class UnsubscribedEnvelope(_ClientEnvelope):
    """A client unsubscribed from a topic filter."""

    event: Literal["unsubscribed"] = "unsubscribed"
    topic: str
    subscribed: bool = False


class WillSentEnvelope(_ClientEnvelope):
    """The broker delivered a client's last-will message."""

    event: Literal["will_sent"] = "will_sent"
    topic: str
    payload: bytes = b""
    qos: int = 0
    retain: bool = False


EventEnvelope = Annotated[
    StartedEnvelope
    | StoppedEnvelope
    | ConnectEnvelope
    | DisconnectEnvelope
    | SessionEstablishedEnvelope
    | PublishedEnvelope
    | SubscribedEnvelope
    | UnsubscribedEnvelope
    | WillSentEnvelope,
    Field(discriminator="event"),
]

_envelope_adapter: TypeAdapter[EventEnvelope] = TypeAdapter(EventEnvelope)


def encode_envelope(envelope: EventEnvelope) -> bytes:
    """Serialize an envelope to JSON bytes."""
    return _envelope_adapter.dump_json(envelope)


def decode_envelope(data: bytes | str) -> EventEnvelope:
    """Parse JSON produced by ``encode_envelope`` back into its envelope type.

    Raises:
        pydantic.ValidationError: If the data is not a known envelope.
    """
    return _envelope_adapter.validate_json(data)
