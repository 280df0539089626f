"""
Header Policy
=============

Static allow/deny rules applied to every proxied exchange:

- inbound headers that must never reach the upstream (client identifying
  headers injected by the hosting edge: connecting IP, ray IDs, forwarded-for
  chains)
- upstream response headers that must never reach the client (CSP, frame
  options, HSTS, clear-site-data)
- hop-by-hop headers (RFC 7230 section 6.1), which belong to a single
  connection and are dropped in both directions
- the configured CORS headers, stamped on every proxied response
"""

from typing import Dict, FrozenSet, Iterable

import httpx

from ..config import Settings


# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
})


class HeaderPolicy:
    """
    Header rules derived from the gateway settings.

    Attributes:
        drop_request: Lower-cased inbound header names removed before forwarding
        drop_response: Lower-cased upstream header names removed before responding
        cors: CORS header name -> value, overriding any upstream value
    """

    def __init__(self, settings: Settings):
        self.drop_request: FrozenSet[str] = frozenset(settings.drop_request_headers_list)
        self.drop_response: FrozenSet[str] = frozenset(settings.drop_response_headers_list)
        self.cors: Dict[str, str] = dict(settings.cors_headers)

    @staticmethod
    def strip(headers: httpx.Headers, names: Iterable[str]) -> None:
        """Delete every occurrence of each named header (case-insensitive)."""
        for name in names:
            if name in headers:
                del headers[name]

    def apply_cors(self, headers: httpx.Headers) -> None:
        for name, value in self.cors.items():
            headers[name] = value
