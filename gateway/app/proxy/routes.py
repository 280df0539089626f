"""
Proxy Routes - Gateway Request Dispatch
=======================================

A single catch-all route that runs every incoming request through the
gateway pipeline, strictly in this order:

1. /favicon.ico             -> 204, before any authentication
2. SessionAuth              -> login redirect, 401 login page, or continue
3. /                        -> dashboard page
4. OPTIONS                  -> 204 preflight with CORS headers
5. TargetResolver           -> absolute target URL from the path
6. ProxyForwarder           -> one upstream request, redirects not followed
7. ResponseSanitizer        -> client headers, redirect rewrite, body stream
   (HtmlRewriteEngine for text/html bodies)

Path conventions:
-----------------
- /<secret>[/<path>]        : login, sets the session cookie
- /<url>                    : proxy to <url> (scheme optional, https default)
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import HTMLResponse, Response

from ..auth.session import AuthDecision, SessionAuth
from ..config import Settings
from ..pages import render_dashboard
from .forwarder import ProxyForwarder, has_request_body
from .headers import HeaderPolicy
from .sanitizer import ResponseSanitizer
from .target import TargetResolver

logger = logging.getLogger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Create router
proxy_router = APIRouter()


class Gateway:
    """
    The gateway components, built once per application from frozen settings.

    Attributes:
        settings: Gateway settings
        auth: Session gate
        resolver: Target URL resolution
        forwarder: Upstream request issuing
        sanitizer: Client response building
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        policy = HeaderPolicy(settings)
        self.settings = settings
        self.policy = policy
        self.auth = SessionAuth(settings)
        self.resolver = TargetResolver()
        self.forwarder = ProxyForwarder(client, policy)
        self.sanitizer = ResponseSanitizer(policy)

    def gateway_origin(self, request: Request) -> str:
        """Origin the client used, unless PUBLIC_ORIGIN overrides it."""
        return self.settings.public_origin or f"{request.url.scheme}://{request.url.netloc}"


# ============================================================================
# Dependencies
# ============================================================================

def get_gateway(request: Request) -> Gateway:
    """
    Get the gateway pipeline from app state.

    Raises:
        HTTPException: If the application lifespan has not started
    """
    gateway: Optional[Gateway] = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Gateway not initialized",
        )
    return gateway


def raw_request_path(request: Request) -> str:
    """
    Path as sent by the client, still percent-encoded.

    Falls back to the decoded path when the server does not provide raw_path.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return request.url.path


def raw_query_string(request: Request) -> str:
    """
    Query string as sent by the client, without the leading '?'.

    request.url is rebuilt from the decoded path, so an encoded %3F in the
    path would show up there as a second query.
    """
    return request.scope.get("query_string", b"").decode("latin-1")


# ============================================================================
# Catch-all Route
# ============================================================================

@proxy_router.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def gateway_entry(request: Request, full_path: str) -> Response:
    """
    Run one request through the gateway pipeline.

    Raises:
        ProcessingError: If the target cannot be resolved or reached; turned
            into a 500 JSON response by the application exception handler
    """
    path = raw_request_path(request)
    query = raw_query_string(request)

    if path == "/favicon.ico":
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    gateway = get_gateway(request)

    decision = gateway.auth.evaluate(path, request.headers.get("cookie"))
    if decision is AuthDecision.LOGIN:
        return gateway.auth.login_redirect(path, query)
    if decision is AuthDecision.UNAUTHORIZED:
        logger.warning("Unauthorized request", extra={"path": request.url.path})
        return gateway.auth.unauthorized_response()

    if path == "/":
        return HTMLResponse(content=render_dashboard(), media_type="text/html; charset=utf-8")

    if request.method == "OPTIONS":
        return Response(
            status_code=status.HTTP_204_NO_CONTENT,
            headers=gateway.policy.cors,
        )

    raw_target = path[1:]
    if query:
        raw_target = f"{raw_target}?{query}"
    target = gateway.resolver.resolve(raw_target)

    headers = gateway.forwarder.build_headers(request.headers, target)
    body = request.stream() if has_request_body(request.headers) else None
    upstream = await gateway.forwarder.forward(request.method, target, headers, body)

    return await gateway.sanitizer.build_response(
        upstream,
        target,
        gateway.gateway_origin(request),
    )
