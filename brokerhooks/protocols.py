# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Hook contract shared by the broker and every extension.

A hook declares, once and for all, which broker events it wants delivered.
The broker asks ``provides()`` at registration time, calls ``configure()``
exactly once, and from then on invokes the callback named after each
provided event.

Note: Hooks satisfy these protocols structurally; there is no base class
to inherit from, so each hook can be tested without a running broker.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


if TYPE_CHECKING:
    from brokerhooks.types import ClientInfo, ConnectPacket


class HookEvent(StrEnum):
    """Broker event tags.

    Each value is the name of the callback method invoked for that event.
    """

    ON_CONNECT_AUTHENTICATE = "on_connect_authenticate"
    ON_ACL_CHECK = "on_acl_check"
    ON_STARTED = "on_started"
    ON_STOPPED = "on_stopped"
    ON_CONNECT = "on_connect"
    ON_DISCONNECT = "on_disconnect"
    ON_SESSION_ESTABLISHED = "on_session_established"
    ON_PUBLISHED = "on_published"
    ON_SUBSCRIBED = "on_subscribed"
    ON_UNSUBSCRIBED = "on_unsubscribed"
    ON_WILL_SENT = "on_will_sent"
    ON_RETAIN_MESSAGE = "on_retain_message"
    ON_CLIENT_EXPIRED = "on_client_expired"


DECISION_EVENTS: frozenset[HookEvent] = frozenset(
    {HookEvent.ON_CONNECT_AUTHENTICATE, HookEvent.ON_ACL_CHECK}
)


class HookDescriptor(BaseModel):
    """Identity and capability set of a hook.

    Attributes:
        id: Stable, human-readable identity used in logs and diagnostics.
        capabilities: Events this hook wants delivered.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    capabilities: frozenset[HookEvent]

    def provides(self, event: HookEvent) -> bool:
        """Return True if ``event`` is in the capability set."""
        return event in self.capabilities


@runtime_checkable
class Hook(Protocol):
    """Protocol every extension implements.

    Callbacks are looked up by ``HookEvent`` value, so a hook providing
    ``HookEvent.ON_PUBLISHED`` must define ``on_published``.
    """

    @property
    def id(self) -> str:
        """Stable identity of the hook."""
        ...

    def provides(self, event: HookEvent) -> bool:
        """Return True if the hook wants ``event`` delivered.

        Must give the same answer before and after ``configure``.
        """
        ...

    def configure(self, config: Any) -> None:
        """Apply the hook's typed configuration.

        Args:
            config: The hook's own configuration model.

        Raises:
            HookConfigError: If the configuration is absent, of the wrong
                type, incomplete, or the hook is already configured.
        """
        ...


@runtime_checkable
class AuthHook(Hook, Protocol):
    """Protocol for hooks that decide on connects and topic access.

    Callbacks may run concurrently for different clients and must return
    a plain boolean; any ambiguity is reported as a deny.
    """

    def on_connect_authenticate(self, client: ClientInfo, packet: ConnectPacket) -> bool:
        """Return True to let ``client`` establish a session."""
        ...

    def on_acl_check(self, client: ClientInfo, topic: str, write: bool) -> bool:
        """Return True to let ``client`` write (or read) ``topic``."""
        ...
