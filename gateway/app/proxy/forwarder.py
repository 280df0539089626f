"""
Upstream Forwarding
===================

Builds the outbound request from the incoming one and issues it through the
shared httpx.AsyncClient.

Security Model:
---------------
1. Edge-injected client identifying headers are dropped (inbound drop list)
2. Host, Origin and Referer are set to the target so the upstream sees a
   direct visit
3. The Cookie header is dropped entirely; the gateway session cookie never
   reaches the proxied origin
4. Redirects are never followed; the 3xx goes back to the sanitizer so its
   Location can be rewritten
"""

import logging
from typing import AsyncIterator, Optional

import httpx
from starlette.datastructures import Headers

from ..exceptions import UpstreamTransportError
from ..models import TargetURL
from .headers import HOP_BY_HOP_HEADERS, HeaderPolicy

logger = logging.getLogger(__name__)

# Content codings httpx can decode without optional packages
DECODABLE_ENCODINGS = "gzip, deflate"


def has_request_body(headers: Headers) -> bool:
    """True when the incoming request declares a body."""
    if "transfer-encoding" in headers:
        return True
    try:
        return int(headers.get("content-length", "0")) > 0
    except ValueError:
        return False


class ProxyForwarder:
    """
    Issues exactly one upstream request per incoming request.

    Args:
        client: Shared HTTP client; redirects are never followed
        policy: Header rules
    """

    def __init__(self, client: httpx.AsyncClient, policy: HeaderPolicy):
        self.client = client
        self.policy = policy

    def build_headers(self, incoming: Headers, target: TargetURL) -> httpx.Headers:
        """
        Build headers for the upstream request.

        Args:
            incoming: Headers of the incoming request (not modified)
            target: Resolved target

        Returns:
            New header set for the upstream request
        """
        headers = httpx.Headers(incoming.raw)

        HeaderPolicy.strip(headers, self.policy.drop_request)
        HeaderPolicy.strip(headers, HOP_BY_HOP_HEADERS)

        headers["Host"] = target.host
        headers["Origin"] = target.origin
        headers["Referer"] = target.origin

        HeaderPolicy.strip(headers, ("cookie",))

        if "accept-encoding" in headers:
            headers["Accept-Encoding"] = DECODABLE_ENCODINGS

        return headers

    async def forward(
        self,
        method: str,
        target: TargetURL,
        headers: httpx.Headers,
        body: Optional[AsyncIterator[bytes]] = None,
    ) -> httpx.Response:
        """
        Send the request upstream and return the response, unread.

        The caller owns the returned response and must close it.

        Args:
            method: HTTP method of the incoming request
            target: Resolved target
            headers: Headers from build_headers
            body: Incoming body stream, or None when there is no body

        Returns:
            Streaming httpx.Response (3xx responses are returned as-is)

        Raises:
            UpstreamTransportError: On any network or protocol failure
        """
        request = self.client.build_request(
            method,
            target.href,
            headers=headers,
            content=body,
        )

        try:
            response = await self.client.send(request, stream=True, follow_redirects=False)
        except httpx.HTTPError as e:
            logger.error(
                f"Upstream request failed: {e}",
                extra={"method": method, "target_host": target.host},
            )
            raise UpstreamTransportError(str(e) or type(e).__name__) from e

        logger.info(
            "Proxied request",
            extra={
                "method": method,
                "target_host": target.host,
                "status_code": response.status_code,
            },
        )

        return response
