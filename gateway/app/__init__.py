"""
Secret Gateway Application Package

A single-tenant forward/reverse proxy: browsers authenticate with a
shared-secret session cookie, name any target URL in the request path, and
receive the upstream response with privacy-scrubbed request headers, relaxed
security headers, gateway-scoped cookies, rewritten redirects and, for HTML,
streaming-rewritten resource URLs.

Packages:
- auth: shared-secret session gate
- proxy: target resolution, forwarding, response sanitizing, routing
- rewrite: streaming HTML tokenizer and attribute rewriting rules
"""
