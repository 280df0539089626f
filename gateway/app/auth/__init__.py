"""
Authentication Package

This package handles the gateway's shared-secret session.

Key responsibilities:
- Login via the secret path prefix (/<secret>/<path>)
- Session cookie issuance (GW_Auth, one year, HttpOnly, Secure, SameSite=Lax)
- Session cookie validation on every request
- The 401 login page for unauthenticated requests

The authentication flow:
1. Unauthenticated request → 401 with the login page
2. Login page navigates to /<secret>
3. Gateway redirects to / and sets the session cookie
4. Subsequent requests carry the cookie
"""

from .session import SESSION_COOKIE_NAME, AuthDecision, SessionAuth

__all__ = [
    "SESSION_COOKIE_NAME",
    "AuthDecision",
    "SessionAuth",
]
