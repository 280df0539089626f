"""
Response Sanitizing
===================

Turns the raw upstream response into the response the client receives:

- security headers that would block the page from loading through the
  gateway are dropped, and the configured CORS headers are stamped on
- every Set-Cookie loses its Domain attribute so it binds to the gateway
- redirects get their Location rewritten to re-enter the gateway
- HTML bodies are streamed through the attribute rewriter; every other body
  is streamed through byte-for-byte
"""

import logging
import re
from typing import AsyncIterator

import httpx
from fastapi.responses import Response, StreamingResponse

from ..exceptions import ProcessingError
from ..models import TargetURL
from ..rewrite.html import HtmlRewriteEngine
from .headers import HOP_BY_HOP_HEADERS, HeaderPolicy

logger = logging.getLogger(__name__)

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

COOKIE_DOMAIN = re.compile(r";\s*Domain=[^;]*", re.IGNORECASE)

# Invalid once the body has been decoded, rewritten or dropped
REWRITTEN_BODY_HEADERS = ("content-length", "content-encoding")


def strip_cookie_domain(set_cookie: str) -> str:
    """
    Remove the Domain attribute from one Set-Cookie value.

    Example:
        >>> strip_cookie_domain("sid=1; Domain=.site.com; Path=/")
        'sid=1; Path=/'
    """
    return COOKIE_DOMAIN.sub("", set_cookie)


def is_html(headers: httpx.Headers) -> bool:
    return "text/html" in headers.get("content-type", "").lower()


class ResponseSanitizer:
    """
    Applies the response side of the header policy and picks the body path.

    Args:
        policy: Header rules
    """

    def __init__(self, policy: HeaderPolicy):
        self.policy = policy

    def sanitize_headers(self, upstream_headers: httpx.Headers) -> httpx.Headers:
        """
        Build client-safe headers from the upstream response headers.

        Args:
            upstream_headers: Upstream response headers (not modified)

        Returns:
            New header set with drop lists applied, CORS set and every
            Set-Cookie scoped to the gateway
        """
        headers = httpx.Headers(upstream_headers)

        HeaderPolicy.strip(headers, self.policy.drop_response)
        HeaderPolicy.strip(headers, HOP_BY_HOP_HEADERS)
        self.policy.apply_cors(headers)

        # each Set-Cookie is rewritten on its own, never folded into one value
        items = [
            (name, strip_cookie_domain(value) if name == "set-cookie" else value)
            for name, value in headers.multi_items()
        ]
        return httpx.Headers(items)

    def rewrite_location(self, location: str, target: TargetURL, gateway_origin: str) -> str:
        """
        Point a redirect Location back at the gateway.

        Args:
            location: Location header from the upstream
            target: Target of the request that produced the redirect
            gateway_origin: Origin the client uses to reach the gateway

        Returns:
            <gateway_origin>/<absolute location>

        Raises:
            ProcessingError: If a relative location cannot be resolved
        """
        if not location.startswith("http"):
            try:
                location = str(httpx.URL(target.href).join(location))
            except (httpx.InvalidURL, ValueError) as e:
                raise ProcessingError(f"Invalid redirect location: {location}") from e
        return f"{gateway_origin}/{location}"

    async def build_response(
        self,
        upstream: httpx.Response,
        target: TargetURL,
        gateway_origin: str,
    ) -> Response:
        """
        Build the client response for an upstream response.

        Takes ownership of the upstream response and closes it once the body
        is fully sent, the client disconnects, or right away for redirects.
        """
        headers = self.sanitize_headers(upstream.headers)

        if upstream.status_code in REDIRECT_STATUS_CODES:
            await upstream.aclose()
            HeaderPolicy.strip(headers, REWRITTEN_BODY_HEADERS)
            location = headers.get("location")
            if location:
                headers["location"] = self.rewrite_location(location, target, gateway_origin)
                logger.debug(
                    "Rewrote redirect",
                    extra={"status_code": upstream.status_code, "location": headers["location"]},
                )
            return self._response(Response(status_code=upstream.status_code), headers)

        if is_html(upstream.headers):
            HeaderPolicy.strip(headers, REWRITTEN_BODY_HEADERS)
            engine = HtmlRewriteEngine(gateway_origin, target.origin)
            body = engine.transform(upstream.aiter_bytes())
        else:
            body = upstream.aiter_raw()

        return self._response(
            StreamingResponse(self._stream(upstream, body), status_code=upstream.status_code),
            headers,
        )

    @staticmethod
    def _response(response: Response, headers: httpx.Headers) -> Response:
        # Starlette sets content-length on empty bodies; upstream headers win
        for name in headers.keys():
            if name in response.headers:
                del response.headers[name]
        for name, value in headers.multi_items():
            response.headers.append(name, value)
        return response

    @staticmethod
    async def _stream(upstream: httpx.Response, body: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        try:
            async for chunk in body:
                yield chunk
        except httpx.HTTPError as e:
            logger.warning(
                f"Upstream body stream failed: {e}",
                extra={"status_code": upstream.status_code},
            )
            raise
        finally:
            await upstream.aclose()
