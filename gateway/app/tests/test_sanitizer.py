"""
Unit Tests for Response Sanitizing
==================================

Tests for gateway/app/proxy/sanitizer.py

Test Coverage:
--------------
1. Outbound drop list and hop-by-hop removal
2. CORS headers override upstream values
3. Every Set-Cookie kept separately with its Domain removed
4. Redirect Location rewriting (absolute, root-relative, path-relative)
5. Body paths: raw passthrough, HTML rewrite, empty redirect
"""

import gzip

import httpx
import pytest

from gateway.app.exceptions import ProcessingError
from gateway.app.proxy.headers import HeaderPolicy
from gateway.app.proxy.sanitizer import ResponseSanitizer, strip_cookie_domain
from gateway.app.proxy.target import TargetResolver

from conftest import upstream_response

GATEWAY = "https://gw.test"


@pytest.fixture
def sanitizer(settings):
    return ResponseSanitizer(HeaderPolicy(settings))


@pytest.fixture
def target():
    return TargetResolver().resolve("https://site.com/dir/page")


async def read_body(response):
    return b"".join([chunk async for chunk in response.body_iterator])


# ============================================================================
# Headers
# ============================================================================

def test_security_headers_dropped(sanitizer):
    upstream = httpx.Headers({
        "Content-Security-Policy": "default-src 'self'",
        "Content-Security-Policy-Report-Only": "default-src 'self'",
        "X-Frame-Options": "DENY",
        "Strict-Transport-Security": "max-age=63072000",
        "Clear-Site-Data": '"cookies"',
        "Connection": "close",
        "Content-Type": "text/plain",
    })

    headers = sanitizer.sanitize_headers(upstream)

    for name in (
        "content-security-policy",
        "content-security-policy-report-only",
        "x-frame-options",
        "strict-transport-security",
        "clear-site-data",
        "connection",
    ):
        assert name not in headers
    assert headers["content-type"] == "text/plain"


def test_cors_overrides_upstream(sanitizer):
    upstream = httpx.Headers({
        "Access-Control-Allow-Origin": "https://site.com",
        "Access-Control-Allow-Credentials": "false",
    })

    headers = sanitizer.sanitize_headers(upstream)

    assert headers.get_list("access-control-allow-origin") == ["*"]
    assert headers["access-control-allow-methods"] == "*"
    assert headers["access-control-allow-headers"] == "*"
    assert headers["access-control-allow-credentials"] == "true"


def test_set_cookies_kept_separate_without_domain(sanitizer):
    upstream = httpx.Headers([
        ("Set-Cookie", "a=1; Domain=.site.com; Path=/"),
        ("Set-Cookie", "b=2; path=/; domain=site.com"),
        ("Set-Cookie", "c=3; HttpOnly"),
    ])

    headers = sanitizer.sanitize_headers(upstream)

    assert headers.get_list("set-cookie") == ["a=1; Path=/", "b=2; path=/", "c=3; HttpOnly"]


def test_upstream_headers_not_mutated(sanitizer):
    upstream = httpx.Headers([("X-Frame-Options", "DENY"), ("Set-Cookie", "a=1; Domain=x")])

    sanitizer.sanitize_headers(upstream)

    assert upstream["x-frame-options"] == "DENY"
    assert upstream["set-cookie"] == "a=1; Domain=x"


def test_strip_cookie_domain_leaves_other_attributes():
    assert strip_cookie_domain("id=a; Secure; Domain=example.com; SameSite=None") == (
        "id=a; Secure; SameSite=None"
    )


# ============================================================================
# Redirects
# ============================================================================

@pytest.mark.parametrize("location, expected", [
    ("https://other.com/x", "https://gw.test/https://other.com/x"),
    ("http://plain.com/", "https://gw.test/http://plain.com/"),
    ("/login?next=/", "https://gw.test/https://site.com/login?next=/"),
    ("next", "https://gw.test/https://site.com/dir/next"),
    ("//cdn.com/a", "https://gw.test/https://cdn.com/a"),
])
def test_rewrite_location(sanitizer, target, location, expected):
    assert sanitizer.rewrite_location(location, target, GATEWAY) == expected


def test_unresolvable_location_raises(sanitizer, target):
    with pytest.raises(ProcessingError, match="Invalid redirect location"):
        sanitizer.rewrite_location("//site.com:port/x", target, GATEWAY)


@pytest.mark.asyncio
async def test_redirect_response(sanitizer, target):
    upstream = upstream_response(
        301,
        [("Location", "/moved"), ("Content-Length", "42"), ("Set-Cookie", "s=1; Domain=site.com")],
        b"<html>moved</html>" * 2,
    )

    response = await sanitizer.build_response(upstream, target, GATEWAY)

    assert response.status_code == 301
    assert response.headers["location"] == "https://gw.test/https://site.com/moved"
    assert response.headers["set-cookie"] == "s=1"
    assert response.headers.get("content-length") in (None, "0")
    assert response.body == b""
    assert upstream.is_closed


@pytest.mark.asyncio
async def test_redirect_without_location(sanitizer, target):
    response = await sanitizer.build_response(upstream_response(307), target, GATEWAY)

    assert response.status_code == 307
    assert "location" not in response.headers


# ============================================================================
# Bodies
# ============================================================================

@pytest.mark.asyncio
async def test_non_html_streamed_raw(sanitizer, target):
    compressed = gzip.compress(b'{"ok": true}')
    upstream = upstream_response(
        200,
        {
            "Content-Type": "application/json",
            "Content-Encoding": "gzip",
            "Content-Length": str(len(compressed)),
        },
        compressed[:5],
        compressed[5:],
    )

    response = await sanitizer.build_response(upstream, target, GATEWAY)

    assert response.headers["content-encoding"] == "gzip"
    assert response.headers["content-length"] == str(len(compressed))
    assert await read_body(response) == compressed
    assert upstream.is_closed


@pytest.mark.asyncio
async def test_html_rewritten_and_decoded(sanitizer, target):
    html = b'<html><body><a href="/about">About</a><img src="pic.png"></body></html>'
    compressed = gzip.compress(html)
    upstream = upstream_response(
        200,
        {
            "Content-Type": "text/html; charset=utf-8",
            "Content-Encoding": "gzip",
            "Content-Length": str(len(compressed)),
        },
        compressed,
    )

    response = await sanitizer.build_response(upstream, target, GATEWAY)

    assert "content-encoding" not in response.headers
    assert "content-length" not in response.headers
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert await read_body(response) == (
        b'<html><body><a href="https://gw.test/https://site.com/about">About</a>'
        b'<img src="pic.png"></body></html>'
    )
    assert upstream.is_closed


@pytest.mark.asyncio
async def test_status_code_preserved(sanitizer, target):
    upstream = upstream_response(404, {"Content-Type": "text/plain"}, b"missing")

    response = await sanitizer.build_response(upstream, target, GATEWAY)

    assert response.status_code == 404
    assert await read_body(response) == b"missing"
