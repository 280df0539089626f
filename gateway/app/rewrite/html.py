"""
HTML Attribute Rewriting
========================

Rewrites resource-referencing attributes of a proxied HTML page so that the
page keeps working when viewed through the gateway origin.

URL forms (value V, gateway origin G, target origin T):

    http...          absolute             -> G/V
    //host/path      protocol-relative    -> G/https:V
    /path            root-relative        -> G/T + V
    anything else    relative, fragment   -> unchanged

Subresource integrity and nonce attributes are removed from <script> and
<link>: the bytes are re-served from another origin, so the hashes would no
longer be honoured.
"""

import re
from typing import AsyncIterable, AsyncIterator, Optional

from .tokenizer import Element, ElementHandler, HTMLRewriter


# (tag, URL attribute) pairs rewritten with the URL-form rules
URL_ATTRIBUTES = (
    ("a", "href"),
    ("img", "src"),
    ("link", "href"),
    ("script", "src"),
    ("form", "action"),
)

# Attributes dropped unconditionally per tag
STRIPPED_ATTRIBUTES = {
    "script": ("integrity", "nonce"),
    "link": ("integrity", "nonce"),
}

SRCSET_ROOT_RELATIVE = re.compile(r"(\s|^)/(?!/)")


class HtmlRewriteEngine:
    """
    Attribute rules for one proxied page.

    Args:
        gateway_origin: Origin the browser sees (e.g. https://gw.example.com)
        target_origin: Origin of the proxied page (e.g. https://site.com)
    """

    def __init__(self, gateway_origin: str, target_origin: str):
        self.gateway_origin = gateway_origin.rstrip("/")
        self.target_origin = target_origin.rstrip("/")

    def rewrite_url(self, value: str) -> Optional[str]:
        """
        Map one URL attribute value to its gateway form.

        Returns:
            The rewritten value, or None when the value is left alone
        """
        if not value:
            return None
        if value.startswith("http"):
            return f"{self.gateway_origin}/{value}"
        if value.startswith("//"):
            return f"{self.gateway_origin}/https:{value}"
        if value.startswith("/"):
            return f"{self.gateway_origin}/{self.target_origin}{value}"
        return None

    def rewrite_srcset(self, value: str) -> str:
        prefix = f"{self.gateway_origin}/{self.target_origin}/"
        return SRCSET_ROOT_RELATIVE.sub(lambda m: m.group(1) + prefix, value)

    # =========================================================================
    # Element Handlers
    # =========================================================================

    def url_handler(self, attribute: str) -> ElementHandler:
        def handle(element: Element) -> None:
            rewritten = self.rewrite_url(element.get_attribute(attribute) or "")
            if rewritten is not None:
                element.set_attribute(attribute, rewritten)
        return handle

    def srcset_handler(self, element: Element) -> None:
        value = element.get_attribute("srcset")
        if value:
            element.set_attribute("srcset", self.rewrite_srcset(value))

    @staticmethod
    def strip_handler(*attributes: str) -> ElementHandler:
        def handle(element: Element) -> None:
            for attribute in attributes:
                element.remove_attribute(attribute)
        return handle

    def build_rewriter(self) -> HTMLRewriter:
        """Fresh rewriter with every rule registered; one per document."""
        rewriter = HTMLRewriter()
        for tag, attribute in URL_ATTRIBUTES:
            rewriter.on(tag, self.url_handler(attribute))
        for tag, attributes in STRIPPED_ATTRIBUTES.items():
            rewriter.on(tag, self.strip_handler(*attributes))
        rewriter.on("img", self.srcset_handler)
        return rewriter

    async def transform(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        """
        Rewrite an HTML byte stream chunk by chunk.

        Output for each chunk is yielded as soon as it is complete; nothing
        beyond a partially received tag is held back.
        """
        async for piece in self.build_rewriter().transform(chunks):
            yield piece
