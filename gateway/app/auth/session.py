"""
Shared-Secret Session Module
============================

Handles the gateway's single session credential: a cookie whose value is the
configured shared secret.

There is no server-side session record. A request is authorized when its
Cookie header carries the pair GW_Auth=<secret>. A one-time login is done by
visiting /<secret>/<path>, which answers with a redirect to /<path> and sets
the long-lived session cookie.
"""

import enum
import hmac
import logging
from typing import Dict, Optional

from fastapi import status
from fastapi.responses import HTMLResponse, Response

from ..config import Settings
from ..pages import render_login

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "GW_Auth"
SESSION_MAX_AGE_SECONDS = 31536000  # 1 year


class AuthDecision(enum.Enum):
    LOGIN = "login"
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"


# =============================================================================
# Cookie Parsing
# =============================================================================

def parse_cookie_pairs(cookie_header: Optional[str]) -> Dict[str, str]:
    """
    Split a raw Cookie header into name/value pairs.

    Malformed pairs (no '=') are skipped. When a name appears more than once
    the first occurrence wins, matching how browsers order cookies with the
    most specific path first.

    Args:
        cookie_header: Raw Cookie header value

    Returns:
        Dictionary of cookie name to raw (undecoded) value
    """
    pairs: Dict[str, str] = {}
    if not cookie_header:
        return pairs

    for chunk in cookie_header.split(";"):
        name, sep, value = chunk.strip().partition("=")
        if not sep or not name:
            continue
        pairs.setdefault(name.strip(), value.strip())

    return pairs


def build_session_cookie(secret: str) -> str:
    """Set-Cookie value for the gateway session."""
    return (
        f"{SESSION_COOKIE_NAME}={secret}; Path=/; Max-Age={SESSION_MAX_AGE_SECONDS}; "
        "HttpOnly; SameSite=Lax; Secure"
    )


# =============================================================================
# Session Gate
# =============================================================================

class SessionAuth:
    """
    Authentication gate evaluated before any routing.

    Args:
        settings: Gateway settings providing the shared secret
    """

    def __init__(self, settings: Settings):
        self._secret = settings.GATEWAY_SECRET
        self.login_prefix = "/" + settings.GATEWAY_SECRET

    def is_login_path(self, path: str) -> bool:
        return path.startswith(self.login_prefix)

    def has_valid_session(self, cookie_header: Optional[str]) -> bool:
        """
        Check the session cookie pair in a raw Cookie header.

        Other cookies are ignored and never validated.
        """
        value = parse_cookie_pairs(cookie_header).get(SESSION_COOKIE_NAME)
        if value is None:
            return False
        return hmac.compare_digest(value.encode("utf-8"), self._secret.encode("utf-8"))

    def evaluate(self, path: str, cookie_header: Optional[str]) -> AuthDecision:
        """
        Decide how to handle a request.

        Args:
            path: Request path
            cookie_header: Raw Cookie header, if any

        Returns:
            AuthDecision.LOGIN for the secret-prefixed login path,
            AuthDecision.AUTHORIZED for a valid session cookie,
            AuthDecision.UNAUTHORIZED otherwise
        """
        if self.is_login_path(path):
            return AuthDecision.LOGIN
        if self.has_valid_session(cookie_header):
            return AuthDecision.AUTHORIZED
        return AuthDecision.UNAUTHORIZED

    def login_redirect(self, path: str, query: str = "") -> Response:
        """
        Build the redirect that turns a secret-in-path login into a session cookie.

        Args:
            path: Request path starting with the login prefix
            query: Raw query string without '?'

        Returns:
            302 response with an empty body, the cleaned Location and the
            session cookie
        """
        location = path[len(self.login_prefix):] or "/"
        if query:
            location = f"{location}?{query}"

        logger.info("Session established via login path")

        return Response(
            status_code=status.HTTP_302_FOUND,
            headers={
                "Location": location,
                "Set-Cookie": build_session_cookie(self._secret),
            },
        )

    def unauthorized_response(self) -> HTMLResponse:
        """401 with the login page."""
        return HTMLResponse(
            content=render_login(),
            status_code=status.HTTP_401_UNAUTHORIZED,
            media_type="text/html; charset=utf-8",
        )
