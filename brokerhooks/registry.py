# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Broker-side hook registry and dispatch.

The registry is what a broker embeds to drive hooks: it configures each
hook exactly once at registration, so no callback can reach an
unconfigured hook, and it routes every event to the hooks that provide it.

Usage:
    registry = HookRegistry()
    registry.register(HttpAuthHook(), auth_config)
    registry.register(EventFanoutHook(), fanout_config)

    # Decision events
    if not registry.on_connect_authenticate(client, packet):
        reject(client)

    # Observational events
    registry.emit(HookEvent.ON_PUBLISHED, client, packet)
"""

import threading
from typing import Any

from loguru import logger

from brokerhooks.exceptions import HookConfigError
from brokerhooks.protocols import DECISION_EVENTS, Hook, HookEvent
from brokerhooks.types import ClientInfo, ConnectPacket


class HookRegistry:
    """Ordered set of configured hooks.

    Thread-safety: registration takes a lock; dispatch reads a snapshot of
    the hook list and may run concurrently from any number of threads.
    """

    def __init__(self) -> None:
        self._hooks: dict[str, Hook] = {}
        self._lock = threading.Lock()

    def register(self, hook: Hook, config: Any) -> None:
        """Configure ``hook`` and add it to the registry.

        Args:
            hook: Hook implementation.
            config: The hook's typed configuration.

        Raises:
            TypeError: If ``hook`` does not implement the Hook protocol.
            ValueError: If a hook with the same id is already registered.
            HookConfigError: If the hook lacks a callback for a provided
                event or rejects ``config``. The hook is not registered.
        """
        if not isinstance(hook, Hook):
            raise TypeError(f"{type(hook).__name__} does not implement the Hook protocol")

        with self._lock:
            if hook.id in self._hooks:
                raise ValueError(f"Hook already registered: {hook.id}")

            missing = [
                event.value
                for event in HookEvent
                if hook.provides(event) and not callable(getattr(hook, event.value, None))
            ]
            if missing:
                raise HookConfigError(
                    f"provides events without callbacks: {', '.join(missing)}",
                    hook_id=hook.id,
                )

            hook.configure(config)
            self._hooks[hook.id] = hook

        logger.info("Registered hook: {hook}", hook=hook.id)

    def unregister(self, hook_id: str) -> None:
        """Remove a hook by id. Unknown ids are ignored."""
        with self._lock:
            hook = self._hooks.pop(hook_id, None)
        if hook is not None:
            logger.info("Unregistered hook: {hook}", hook=hook_id)

    @property
    def hooks(self) -> list[Hook]:
        """Registered hooks in registration order."""
        with self._lock:
            return list(self._hooks.values())

    def providers(self, event: HookEvent) -> list[Hook]:
        """Registered hooks that provide ``event``."""
        return [hook for hook in self.hooks if hook.provides(event)]

    def on_connect_authenticate(self, client: ClientInfo, packet: ConnectPacket) -> bool:
        """Return True if any hook providing connect checks allows ``client``.

        With no such hook registered, every connect is denied.
        """
        return self._decide(HookEvent.ON_CONNECT_AUTHENTICATE, client, packet)

    def on_acl_check(self, client: ClientInfo, topic: str, write: bool) -> bool:
        """Return True if any hook providing ACL checks allows the access."""
        return self._decide(HookEvent.ON_ACL_CHECK, client, topic, write)

    def emit(self, event: HookEvent, *args: Any, **kwargs: Any) -> None:
        """Deliver an observational event to every hook providing it.

        A failing hook is logged and skipped; it never prevents delivery to
        the others or reaches the broker.

        Raises:
            ValueError: If ``event`` is a decision event.
        """
        if event in DECISION_EVENTS:
            raise ValueError(f"{event.value} is a decision event; call it directly")

        for hook in self.providers(event):
            try:
                getattr(hook, event.value)(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    "Hook failed handling {event}: {error}",
                    event=event.value,
                    error=str(e),
                    hook=hook.id,
                )

    def stop(self) -> None:
        """Release resources held by registered hooks."""
        for hook in self.hooks:
            close = getattr(hook, "close", None)
            if not callable(close):
                continue
            try:
                close()
                logger.info("Stopped hook: {hook}", hook=hook.id)
            except Exception as e:
                logger.error(
                    "Failed to stop hook {hook}: {error}",
                    hook=hook.id,
                    error=str(e),
                )

    def list_hooks(self) -> list[dict[str, Any]]:
        """Describe registered hooks for diagnostics."""
        return [
            {
                "id": hook.id,
                "type": type(hook).__name__,
                "capabilities": sorted(e.value for e in HookEvent if hook.provides(e)),
            }
            for hook in self.hooks
        ]

    def _decide(self, event: HookEvent, *args: Any) -> bool:
        for hook in self.providers(event):
            try:
                allowed = getattr(hook, event.value)(*args)
            except Exception as e:
                logger.error(
                    "Hook error during {event}, counting as deny: {error}",
                    event=event.value,
                    error=str(e),
                    hook=hook.id,
                )
                continue
            if allowed is True:
                return True
        return False
