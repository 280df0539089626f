"""
Target Resolution
=================

Turns the incoming request path into the absolute URL to proxy to.

The path carries the target URL without its leading slash, usually still
percent-encoded by the browser:

    /https://example.com/a?b=1          -> https://example.com/a?b=1
    /https%3A%2F%2Fexample.com%2Fa      -> https://example.com/a
    /https:/example.com/a               -> https://example.com/a   (collapsed slash)
    /example.com/a                      -> https://example.com/a   (default scheme)
"""

import logging
import re
from urllib.parse import unquote

import httpx

from ..exceptions import TargetParseError
from ..models import TargetURL

logger = logging.getLogger(__name__)

MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
COLLAPSED_SCHEME = re.compile(r"^(https?):/(?=[^/])", re.IGNORECASE)
HAS_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


class TargetResolver:
    """Normalizes a raw path+query string into a TargetURL."""

    def decode(self, raw: str) -> str:
        """
        Percent-decode the whole path+query.

        A malformed escape or an escape sequence that is not valid UTF-8
        makes the whole decode fail; the raw string is then used as-is.

        Args:
            raw: Path and query as received, without the leading slash

        Returns:
            Decoded string, or the raw string if decoding failed
        """
        if MALFORMED_ESCAPE.search(raw):
            logger.debug("Malformed percent-escape in target, using raw value")
            return raw

        try:
            return unquote(raw, errors="strict")
        except UnicodeDecodeError:
            logger.debug("Target is not valid UTF-8 after decoding, using raw value")
            return raw

    def normalize(self, value: str) -> str:
        """Repair a collapsed 'scheme:/' and default to https."""
        value = COLLAPSED_SCHEME.sub(r"\1://", value, count=1)
        if not HAS_SCHEME.match(value):
            value = "https://" + value
        return value

    def resolve(self, raw: str) -> TargetURL:
        """
        Resolve the raw target string into a TargetURL.

        Args:
            raw: Path and query as received, without the leading slash

        Returns:
            Normalized absolute TargetURL

        Raises:
            TargetParseError: If the normalized string is not a valid absolute URL
        """
        candidate = self.normalize(self.decode(raw))

        try:
            url = httpx.URL(candidate)
        except (httpx.InvalidURL, ValueError) as e:
            raise TargetParseError(f"Invalid URL: {candidate}") from e

        if not url.host:
            raise TargetParseError(f"Invalid URL: {candidate}")

        return TargetURL(
            href=str(url),
            scheme=url.scheme,
            host=url.netloc.decode("ascii"),
            path=url.raw_path.split(b"?", 1)[0].decode("ascii"),
            query=url.query.decode("ascii"),
        )
