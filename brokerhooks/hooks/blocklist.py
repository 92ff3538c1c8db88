# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Short-lived, advisory blocklist of client identifiers.

The blocklist only ever short-circuits a check to deny; it is never the
source of an allow. Entries expire lazily: the first lookup that finds an
expired entry removes it, so a client reconnecting after its window is
treated as fresh without any background sweep.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class ClientBlocklist:
    """Mapping of client id to block expiry, guarded by a single lock.

    The lock is held only for the dictionary access itself. Callers must
    never hold it across network I/O; they check, release, call out, then
    record the outcome.
    """

    def __init__(
        self,
        duration: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize an empty blocklist.

        Args:
            duration: Length of the block window recorded by ``block()``.
            clock: Source of the current time.
        """
        if duration <= timedelta(0):
            raise ValueError(f"Block duration must be positive, got {duration}")
        self.duration = duration
        self._clock = clock
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def is_blocked(self, client_id: str) -> bool:
        """Return True if ``client_id`` is inside an active block window.

        An expired entry is removed before returning False.
        """
        now = self._clock()
        with self._lock:
            expiry = self._entries.get(client_id)
            if expiry is None:
                return False
            if now < expiry:
                return True
            del self._entries[client_id]
            return False

    def block(self, client_id: str) -> datetime:
        """Start (or restart) the block window for ``client_id``.

        Returns:
            The instant the new window expires.
        """
        expiry = self._clock() + self.duration
        with self._lock:
            self._entries[client_id] = expiry
        return expiry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, client_id: object) -> bool:
        # Raw membership, expired or not. Use is_blocked() for decisions.
        with self._lock:
            return client_id in self._entries
