# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Remote authorization hook.

Delegates connect and ACL decisions to two external HTTP endpoints. The
response status is the only decision signal; the body is ignored.

Status contract:
    - 2xx: allow
    - 401 / 403: deny, and block the client id if a block duration is set
    - anything else, or a transport failure: deny without blocking

Usage:
    hook = HttpAuthHook()
    hook.configure(
        HttpAuthHookConfig(
            connect_url="https://auth.internal/connect",
            acl_url="https://auth.internal/acl",
            block_duration=timedelta(minutes=1),
        )
    )
    allowed = hook.on_connect_authenticate(client, packet)
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from brokerhooks.exceptions import HookConfigError
from brokerhooks.hooks.blocklist import ClientBlocklist, utc_now
from brokerhooks.protocols import HookDescriptor, HookEvent
from brokerhooks.transport import build_http_client
from brokerhooks.types import ClientInfo, ConnectPacket


class AuthOutcome(Enum):
    """Result of one remote decision, before it is collapsed to a bool."""

    ALLOW = "allow"
    DENY = "deny"
    DENY_AND_BLOCK = "deny_and_block"


BLOCKING_STATUSES = frozenset({401, 403})


def outcome_for_status(status_code: int) -> AuthOutcome:
    """Map a decision endpoint's HTTP status to an AuthOutcome."""
    if 200 <= status_code < 300:
        return AuthOutcome.ALLOW
    if status_code in BLOCKING_STATUSES:
        return AuthOutcome.DENY_AND_BLOCK
    return AuthOutcome.DENY


class ConnectCheckRequest(BaseModel):
    """Body sent to the connect-check endpoint."""

    client_id: str
    username: str
    password: str


class AclCheckRequest(BaseModel):
    """Body sent to the ACL-check endpoint.

    Attributes:
        access: "true" for a write check, "false" for a read check.
    """

    username: str
    client_id: str
    topic: str
    access: Literal["true", "false"]


class HttpAuthHookConfig(BaseModel):
    """Configuration for HttpAuthHook.

    Attributes:
        connect_url: Connect-check endpoint. Required.
        acl_url: ACL-check endpoint. Required.
        block_duration: Block window recorded after a 401/403. None disables
            blocking entirely.
        method: POST sends the check as a JSON body. GET sends no body and
            lets the endpoint's status alone decide.
        transport: Transport the checks are sent through. Defaults to a
            plain HTTP transport.
        timeout: Request timeout in seconds applied to the client wrapping
            the transport. None leaves timeouts to the transport.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    connect_url: str | None = None
    acl_url: str | None = None
    block_duration: timedelta | None = None
    method: Literal["POST", "GET"] = "POST"
    transport: httpx.BaseTransport | None = None
    timeout: float | None = Field(default=None, gt=0)

    @field_validator("connect_url", "acl_url")
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        """Reject endpoints that are not http(s) URLs."""
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"Endpoint must be an http(s) URL, got {value!r}")
        return value

    @field_validator("block_duration")
    @classmethod
    def validate_block_duration(cls, value: timedelta | None) -> timedelta | None:
        """Reject zero or negative block windows."""
        if value is not None and value <= timedelta(0):
            raise ValueError(f"block_duration must be positive, got {value}")
        return value


class HttpAuthHook:
    """Authorization hook backed by remote decision endpoints.

    The only shared mutable state is the optional blocklist, which is
    allocated only when a block duration is configured. HTTP requests are
    made outside its lock.
    """

    DESCRIPTOR = HookDescriptor(
        id="http-auth-hook",
        capabilities=frozenset(
            {HookEvent.ON_CONNECT_AUTHENTICATE, HookEvent.ON_ACL_CHECK}
        ),
    )

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        """Create an unconfigured hook.

        Args:
            clock: Source of the current time for block windows.
        """
        self._clock = clock
        self._config: HttpAuthHookConfig | None = None
        self._client: httpx.Client | None = None
        self._blocklist: ClientBlocklist | None = None
        self.log = logger.bind(hook=self.id)

    @property
    def id(self) -> str:
        return self.DESCRIPTOR.id

    def provides(self, event: HookEvent) -> bool:
        return self.DESCRIPTOR.provides(event)

    @property
    def blocklist(self) -> ClientBlocklist | None:
        """The active blocklist, or None when blocking is not configured."""
        return self._blocklist

    def configure(self, config: Any) -> None:
        """Validate endpoints and build the HTTP client.

        Raises:
            HookConfigError: If config is None, not an HttpAuthHookConfig,
                lacks an endpoint, or the hook is already configured.
        """
        if self._config is not None:
            raise HookConfigError("hook is already configured", hook_id=self.id)
        if config is None:
            raise HookConfigError("configuration is required", hook_id=self.id)
        if not isinstance(config, HttpAuthHookConfig):
            raise HookConfigError(
                f"expected HttpAuthHookConfig, got {type(config).__name__}",
                hook_id=self.id,
            )

        missing = []
        if not config.connect_url:
            missing.append("connect_url")
        if not config.acl_url:
            missing.append("acl_url")
        if missing:
            raise HookConfigError(
                f"missing required endpoints: {', '.join(missing)}",
                hook_id=self.id,
            )

        self._client = build_http_client(config.transport, config.timeout)
        if config.block_duration is not None:
            self._blocklist = ClientBlocklist(config.block_duration, clock=self._clock)
        self._config = config

        self.log.info(
            "Configured remote authorization",
            connect_url=config.connect_url,
            acl_url=config.acl_url,
            method=config.method,
            block_seconds=(
                config.block_duration.total_seconds() if config.block_duration else None
            ),
        )

    def on_connect_authenticate(self, client: ClientInfo, packet: ConnectPacket) -> bool:
        """Ask the connect-check endpoint whether ``client`` may connect."""
        assert self._config is not None and self._config.connect_url
        request = ConnectCheckRequest(
            client_id=client.id,
            username=packet.username,
            password=packet.password,
        )
        return self._check(client.id, self._config.connect_url, request)

    def on_acl_check(self, client: ClientInfo, topic: str, write: bool) -> bool:
        """Ask the ACL-check endpoint whether ``client`` may access ``topic``."""
        assert self._config is not None and self._config.acl_url
        request = AclCheckRequest(
            username=client.username,
            client_id=client.id,
            topic=topic,
            access="true" if write else "false",
        )
        return self._check(client.id, self._config.acl_url, request)

    def close(self) -> None:
        """Release the HTTP client."""
        if self._client is not None:
            self._client.close()

    def _check(self, client_id: str, url: str, request: BaseModel) -> bool:
        if self._blocklist is not None and self._blocklist.is_blocked(client_id):
            self.log.debug("Client is blocked, denying", client_id=client_id)
            return False

        outcome = self._decide(url, request)

        if outcome is AuthOutcome.DENY_AND_BLOCK and self._blocklist is not None:
            expiry = self._blocklist.block(client_id)
            self.log.info(
                "Blocking client until {expiry}",
                expiry=expiry.isoformat(),
                client_id=client_id,
            )

        return outcome is AuthOutcome.ALLOW

    def _decide(self, url: str, request: BaseModel) -> AuthOutcome:
        assert self._client is not None and self._config is not None
        try:
            if self._config.method == "GET":
                response = self._client.get(url)
            else:
                response = self._client.post(url, json=request.model_dump())
        except Exception as e:
            # Fail closed on any transport failure.
            self.log.error(
                "Decision request failed, denying: {error}",
                error=str(e),
                url=url,
            )
            return AuthOutcome.DENY

        outcome = outcome_for_status(response.status_code)
        if outcome is not AuthOutcome.ALLOW:
            self.log.info(
                "Decision endpoint denied with status {status}",
                status=response.status_code,
                url=url,
            )
        return outcome
