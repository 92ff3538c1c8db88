# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""HTTP client construction around an injected transport."""
import httpx


def build_http_client(
    transport: httpx.BaseTransport | None = None,
    timeout: float | None = None,
) -> httpx.Client:
    """Wrap a transport in a synchronous HTTP client.

    Args:
        transport: Transport to send requests through. Defaults to a plain
            ``httpx.HTTPTransport``.
        timeout: Overall request timeout in seconds. None disables the
            client-side timeout, leaving it to the transport.

    Returns:
        Configured httpx.Client instance.
    """
    if transport is None:
        transport = httpx.HTTPTransport()

    return httpx.Client(
        transport=transport,
        timeout=httpx.Timeout(timeout),
    )
