"""
HTML Rewriting Package

- tokenizer: incremental byte-level HTML tokenizer with per-element callbacks
- html: the gateway's attribute rewriting rules on top of it
"""

from .html import HtmlRewriteEngine
from .tokenizer import Element, HTMLRewriter

__all__ = ["Element", "HTMLRewriter", "HtmlRewriteEngine"]
