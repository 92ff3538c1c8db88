# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Custom exceptions for brokerhooks."""


class BrokerHooksError(Exception):
    """Base exception for all brokerhooks errors."""

    pass


class HookConfigError(BrokerHooksError):
    """Raised when a hook's configuration is missing, malformed or reapplied.

    Attributes:
        hook_id: Identity of the hook that rejected the configuration (if known).
    """

    def __init__(self, message: str, hook_id: str | None = None) -> None:
        """Initialize HookConfigError.

        Args:
            message: Human-readable description of the problem.
            hook_id: Identity of the hook that rejected the configuration (optional).
        """
        self.hook_id = hook_id

        if hook_id:
            message = f"{hook_id}: {message}"

        super().__init__(message)


class SinkClosedError(BrokerHooksError):
    """Raised when publishing to a sink that has already been closed."""

    pass
