# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Tests for HTTP client construction."""
import httpx

from brokerhooks.transport import build_http_client


def test_uses_injected_transport(transport_factory) -> None:
    transport = transport_factory(status_code=204)

    with build_http_client(transport) as client:
        response = client.get("http://example.com")

    assert response.status_code == 204
    assert transport.call_count == 1


def test_default_transport() -> None:
    with build_http_client() as client:
        assert isinstance(client._transport, httpx.HTTPTransport)


def test_timeout_applied() -> None:
    with build_http_client(timeout=2.5) as client:
        assert client.timeout == httpx.Timeout(2.5)


def test_no_timeout_by_default() -> None:
    with build_http_client() as client:
        assert client.timeout == httpx.Timeout(None)
