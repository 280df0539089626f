"""
Proxy Package
=============

This package implements the gateway's request/response pipeline: target
resolution, upstream forwarding and response sanitizing.

Main Components:
----------------
- headers.py: HeaderPolicy (drop lists, hop-by-hop headers, CORS)
- target.py: TargetResolver (path -> absolute target URL)
- forwarder.py: ProxyForwarder (outbound headers, one upstream request)
- sanitizer.py: ResponseSanitizer (client headers, redirects, body streaming)
- routes.py: catch-all router wiring the pipeline

Usage:
------
    from gateway.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import Gateway, proxy_router

__all__ = ["Gateway", "proxy_router"]
