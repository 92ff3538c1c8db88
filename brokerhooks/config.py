# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Settings file loading and hook construction.

Operators describe hooks in YAML:

    log_level: INFO
    http_auth:
      connect_url: https://auth.internal/mqtt/connect
      acl_url: https://auth.internal/mqtt/acl
      block_duration_seconds: 60
    fanout:
      destinations:
        connect: https://events.internal/topics/connect:publish
        disconnect: https://events.internal/topics/connect:publish
        published: https://events.internal/topics/publish:publish
      disallow_list: [healthcheck]

Any setting can also come from the environment with the BROKERHOOKS_
prefix (nested fields use ``__``, e.g. BROKERHOOKS_HTTP_AUTH__ACL_URL).
"""
import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

import httpx
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from brokerhooks.envelopes import EventCategory
from brokerhooks.exceptions import HookConfigError
from brokerhooks.hooks.fanout import ErrorObserver, EventFanoutHook, EventFanoutHookConfig
from brokerhooks.hooks.http_auth import HttpAuthHook, HttpAuthHookConfig
from brokerhooks.registry import HookRegistry
from brokerhooks.sinks import BatchingPublisher, EventSink, HttpBatchTarget
from brokerhooks.transport import build_http_client


DEFAULT_SETTINGS_FILE = "brokerhooks.yaml"


class HttpAuthSettings(BaseModel):
    """File/env settings for the remote authorization hook."""

    connect_url: str | None = None
    acl_url: str | None = None
    block_duration_seconds: float | None = Field(default=None, gt=0)
    method: Literal["POST", "GET"] = "POST"
    timeout_seconds: float | None = Field(default=10.0, gt=0)


class FanoutSettings(BaseModel):
    """File/env settings for the event fan-out hook.

    Attributes:
        destinations: Publish URL per event category. Categories sharing a URL
            share one batching publisher.
        disallow_list: Usernames excluded from fan-out.
        count_threshold: Envelopes per batch before delivery.
        delay_threshold_seconds: Maximum age of a batch before delivery.
        timeout_seconds: Request timeout for batch delivery.
    """

    destinations: dict[EventCategory, str] = Field(default_factory=dict)
    disallow_list: list[str] = Field(default_factory=list)
    count_threshold: int = Field(default=10, ge=1)
    delay_threshold_seconds: float = Field(default=1.0, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("destinations")
    @classmethod
    def validate_destinations(cls, value: dict[EventCategory, str]) -> dict[EventCategory, str]:
        """Reject destinations that are not http(s) URLs."""
        for category, url in value.items():
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"Destination for {category.value} must be an http(s) URL, got {url!r}")
        return value


class HooksSettings(BaseSettings):
    """Top-level brokerhooks settings.

    A hook is only built when its section is present.
    """

    model_config = SettingsConfigDict(
        env_prefix="BROKERHOOKS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    http_auth: HttpAuthSettings | None = None
    fanout: FanoutSettings | None = None


def load_settings(config_path: Path | None = None) -> HooksSettings:
    """Load settings from a YAML file.

    Resolution order:
    1. Explicit config_path parameter (if provided)
    2. BROKERHOOKS_SETTINGS environment variable (if set)
    3. Default: 'brokerhooks.yaml' in the current directory

    Args:
        config_path: Optional explicit path to the settings file.

    Returns:
        HooksSettings populated from the file and the environment.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        yaml.YAMLError: If the YAML file is malformed.
        HookConfigError: If the settings fail validation.
    """
    if config_path is None:
        env_path = os.environ.get("BROKERHOOKS_SETTINGS")
        config_path = Path(env_path) if env_path else Path(DEFAULT_SETTINGS_FILE)

    if not config_path.exists():
        raise FileNotFoundError(f"Settings file not found at {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise HookConfigError(f"{config_path} must contain a mapping, got {type(data).__name__}")

    try:
        return HooksSettings(**data)
    except ValidationError as e:
        raise HookConfigError(f"Invalid settings in {config_path}: {e}") from e


def build_http_auth_config(
    settings: HttpAuthSettings,
    transport: httpx.BaseTransport | None = None,
) -> HttpAuthHookConfig:
    """Translate file settings into an HttpAuthHookConfig.

    Raises:
        HookConfigError: If the resulting configuration is malformed.
    """
    block_duration = (
        timedelta(seconds=settings.block_duration_seconds)
        if settings.block_duration_seconds is not None
        else None
    )
    try:
        return HttpAuthHookConfig(
            connect_url=settings.connect_url,
            acl_url=settings.acl_url,
            block_duration=block_duration,
            method=settings.method,
            transport=transport,
            timeout=settings.timeout_seconds,
        )
    except ValidationError as e:
        raise HookConfigError(str(e), hook_id=HttpAuthHook.DESCRIPTOR.id) from e


def build_fanout_config(
    settings: FanoutSettings,
    transport: httpx.BaseTransport | None = None,
    on_error: ErrorObserver | None = None,
) -> EventFanoutHookConfig:
    """Translate file settings into an EventFanoutHookConfig.

    Starts one BatchingPublisher per distinct destination URL.
    """
    publishers: dict[str, EventSink] = {}
    sinks: dict[EventCategory, EventSink] = {}

    for category, url in settings.destinations.items():
        if url not in publishers:
            target = HttpBatchTarget(url, build_http_client(transport, settings.timeout_seconds))
            publishers[url] = BatchingPublisher(
                target,
                count_threshold=settings.count_threshold,
                delay_threshold=settings.delay_threshold_seconds,
                name=category.value,
            )
        sinks[category] = publishers[url]

    return EventFanoutHookConfig(
        sinks=sinks,
        disallow_list=frozenset(settings.disallow_list),
        on_error=on_error,
    )


def build_registry(
    settings: HooksSettings,
    transport: httpx.BaseTransport | None = None,
) -> HookRegistry:
    """Build and configure every hook that has a settings section.

    Raises:
        HookConfigError: If any hook rejects its configuration.
    """
    registry = HookRegistry()

    if settings.http_auth is not None:
        registry.register(HttpAuthHook(), build_http_auth_config(settings.http_auth, transport))

    if settings.fanout is not None:
        try:
            fanout_config = build_fanout_config(settings.fanout, transport)
        except HookConfigError:
            registry.stop()
            raise
        try:
            registry.register(EventFanoutHook(), fanout_config)
        except HookConfigError:
            for sink in set(fanout_config.sinks.values()):
                sink.close()
            registry.stop()
            raise

    return registry
