# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Built-in hooks."""

from brokerhooks.hooks.blocklist import ClientBlocklist
from brokerhooks.hooks.fanout import EventFanoutHook, EventFanoutHookConfig
from brokerhooks.hooks.http_auth import HttpAuthHook, HttpAuthHookConfig


__all__ = [
    "ClientBlocklist",
    "EventFanoutHook",
    "EventFanoutHookConfig",
    "HttpAuthHook",
    "HttpAuthHookConfig",
]
