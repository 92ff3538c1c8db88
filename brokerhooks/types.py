# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shapes the broker hands to hook callbacks.

The broker owns parsing and session state; these models carry only the
fields the hooks read. All of them are frozen so a callback can never
mutate what the broker passed in.
"""
from pydantic import BaseModel, ConfigDict, Field


class ClientInfo(BaseModel):
    """A connected (or connecting) client as seen by the broker.

    Attributes:
        id: Client identifier presented in the CONNECT packet.
        username: Username bound to the session (empty when anonymous).
        remote: Remote address of the connection, if known.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    username: str = ""
    remote: str | None = None


class ConnectPacket(BaseModel):
    """Credentials presented in a CONNECT packet."""

    model_config = ConfigDict(frozen=True)

    username: str = ""
    password: str = ""


class PublishPacket(BaseModel):
    """An application message flowing through the broker."""

    model_config = ConfigDict(frozen=True)

    topic: str
    payload: bytes = b""
    qos: int = Field(default=0, ge=0, le=2)
    retain: bool = False


class SubscribePacket(BaseModel):
    """Topic filters carried by a SUBSCRIBE or UNSUBSCRIBE packet."""

    model_config = ConfigDict(frozen=True)

    filters: tuple[str, ...] = ()
