# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Pluggable decision and observation hooks for an MQTT broker.

Hooks:
    - HttpAuthHook: delegate connect and ACL checks to remote endpoints,
      with an optional short-lived blocklist for abusive clients
    - EventFanoutHook: publish typed envelopes for broker events to
      per-category sinks

Example:
    >>> from brokerhooks import HookRegistry, HttpAuthHook, HttpAuthHookConfig
    >>> registry = HookRegistry()
    >>> registry.register(HttpAuthHook(), HttpAuthHookConfig(
    ...     connect_url="https://auth.internal/connect",
    ...     acl_url="https://auth.internal/acl",
    ... ))
"""

from brokerhooks.envelopes import (
    EventCategory,
    EventEnvelope,
    decode_envelope,
    encode_envelope,
)
from brokerhooks.exceptions import BrokerHooksError, HookConfigError, SinkClosedError
from brokerhooks.hooks import (
    ClientBlocklist,
    EventFanoutHook,
    EventFanoutHookConfig,
    HttpAuthHook,
    HttpAuthHookConfig,
)
from brokerhooks.protocols import AuthHook, Hook, HookDescriptor, HookEvent
from brokerhooks.registry import HookRegistry
from brokerhooks.sinks import BatchingPublisher, EventSink, HttpBatchTarget
from brokerhooks.types import ClientInfo, ConnectPacket, PublishPacket, SubscribePacket


__all__ = [
    # Contract
    "Hook",
    "AuthHook",
    "HookDescriptor",
    "HookEvent",
    "HookRegistry",
    # Broker shapes
    "ClientInfo",
    "ConnectPacket",
    "PublishPacket",
    "SubscribePacket",
    # Hooks
    "HttpAuthHook",
    "HttpAuthHookConfig",
    "ClientBlocklist",
    "EventFanoutHook",
    "EventFanoutHookConfig",
    # Envelopes and sinks
    "EventCategory",
    "EventEnvelope",
    "encode_envelope",
    "decode_envelope",
    "EventSink",
    "BatchingPublisher",
    "HttpBatchTarget",
    # Exceptions
    "BrokerHooksError",
    "HookConfigError",
    "SinkClosedError",
]
