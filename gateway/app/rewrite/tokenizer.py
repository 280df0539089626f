"""
Streaming HTML Rewriter
=======================

An incremental, byte-level HTML tokenizer that lets callers register
per-element callbacks and re-emits everything else verbatim.

Usage:
------
    rewriter = HTMLRewriter().on("a", lambda el: el.set_attribute("href", "/x"))
    out = rewriter.feed(chunk)      # bytes that can be emitted so far
    out += rewriter.close()         # flush whatever is still held back

or, over an async byte stream:

    async for piece in rewriter.transform(response.aiter_bytes()):
        ...

Only start tags are parsed into elements. Text, comments, doctypes, end tags,
start tags without a handler and the contents of raw-text elements
(<script>, <style>, <textarea>, ...) pass through byte-for-byte. A start tag
nobody modified is re-emitted with its original bytes as well.

Attribute values are exposed in their markup form: character references are
not decoded, and values written back are only escaped for double quotes.
Bytes are mapped to str with UTF-8 + surrogateescape so any source encoding
round-trips unchanged.
"""

import re
from typing import AsyncIterable, AsyncIterator, Callable, Dict, List, Optional, Tuple

# Elements whose content is text up to the matching end tag
RAW_TEXT_ELEMENTS = frozenset({
    b"script",
    b"style",
    b"textarea",
    b"title",
    b"xmp",
    b"iframe",
    b"noembed",
    b"noframes",
})

# Incomplete markup held back longer than this is emitted as plain text
MAX_PENDING_BYTES = 64 * 1024

# Start tags may carry large attribute values (inline data: URIs, JSON)
MAX_START_TAG_BYTES = 1024 * 1024

START_TAG = re.compile(rb"""<([A-Za-z][^\s/>]*)((?:[^>"']|"[^"]*"|'[^']*')*)>""")
TAG_NAME = re.compile(rb"<[A-Za-z][^\s/>]*")
TAG_DELIMITER = re.compile(rb"[>\"']")
ATTRIBUTE = re.compile(
    rb"""([^\s"'>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?"""
)

ENCODING = "utf-8"
ERRORS = "surrogateescape"


def _to_text(value: bytes) -> str:
    return value.decode(ENCODING, ERRORS)


def _to_bytes(value: str) -> bytes:
    return value.encode(ENCODING, ERRORS)


class Attribute:
    __slots__ = ("name", "value", "raw")

    def __init__(self, name: str, value: Optional[str], raw: Optional[bytes] = None):
        self.name = name
        self.value = value
        self.raw = raw

    def serialize(self) -> bytes:
        if self.raw is not None:
            return self.raw
        if self.value is None:
            return _to_bytes(self.name)
        escaped = self.value.replace('"', "&quot;")
        return _to_bytes(self.name) + b'="' + _to_bytes(escaped) + b'"'


class Element:
    """
    A start tag handed to element callbacks.

    Attributes:
        tag_name: Lower-cased tag name
        modified: True once any attribute was set or removed
    """

    def __init__(
        self,
        tag_name: str,
        raw_name: bytes,
        attributes: List[Attribute],
        raw: bytes,
        self_closing: bool = False,
    ):
        self.tag_name = tag_name
        self.modified = False
        self._raw_name = raw_name
        self._attributes = attributes
        self._raw = raw
        self._self_closing = self_closing

    @classmethod
    def from_match(cls, match: "re.Match[bytes]") -> "Element":
        raw_name, body = match.group(1), match.group(2)

        attributes = []
        last_end = 0
        for attr in ATTRIBUTE.finditer(body):
            value = attr.group(2)
            if value is None:
                value = attr.group(3)
            if value is None:
                value = attr.group(4)
            attributes.append(
                Attribute(
                    name=_to_text(attr.group(1)).lower(),
                    value=None if value is None else _to_text(value),
                    raw=attr.group(0),
                )
            )
            last_end = attr.end()

        return cls(
            tag_name=raw_name.decode("latin-1").lower(),
            raw_name=raw_name,
            attributes=attributes,
            raw=match.group(0),
            self_closing=b"/" in body[last_end:],
        )

    @property
    def attributes(self) -> Dict[str, Optional[str]]:
        result: Dict[str, Optional[str]] = {}
        for attr in self._attributes:
            result.setdefault(attr.name, attr.value)
        return result

    def has_attribute(self, name: str) -> bool:
        name = name.lower()
        return any(attr.name == name for attr in self._attributes)

    def get_attribute(self, name: str) -> Optional[str]:
        """Value of the first attribute called name; "" for a valueless one."""
        name = name.lower()
        for attr in self._attributes:
            if attr.name == name:
                return "" if attr.value is None else attr.value
        return None

    def set_attribute(self, name: str, value: str) -> None:
        name = name.lower()
        for attr in self._attributes:
            if attr.name == name:
                attr.value = value
                attr.raw = None
                break
        else:
            self._attributes.append(Attribute(name, value))
        self.modified = True

    def remove_attribute(self, name: str) -> None:
        name = name.lower()
        kept = [attr for attr in self._attributes if attr.name != name]
        if len(kept) != len(self._attributes):
            self._attributes = kept
            self.modified = True

    def serialize(self) -> bytes:
        if not self.modified:
            return self._raw

        parts = [b"<", self._raw_name]
        for attr in self._attributes:
            parts.append(b" ")
            parts.append(attr.serialize())
        if self._self_closing:
            parts.append(b" /")
        parts.append(b">")
        return b"".join(parts)


ElementHandler = Callable[[Element], None]


class HTMLRewriter:
    """
    Pull-based streaming rewriter driven by per-tag element callbacks.

    One instance handles one document. Handlers for the same tag run in
    registration order and see each other's changes.
    """

    def __init__(self):
        self._handlers: Dict[str, List[ElementHandler]] = {}
        self._buffer = b""
        self._raw_text_tag: Optional[bytes] = None
        self._raw_text_end: Optional["re.Pattern[bytes]"] = None
        # (offset from the tag start, open quote) of a start tag still arriving
        self._tag_scan: Optional[Tuple[int, Optional[bytes]]] = None

    def on(self, tag_name: str, handler: ElementHandler) -> "HTMLRewriter":
        self._handlers.setdefault(tag_name.lower(), []).append(handler)
        return self

    # =========================================================================
    # Feeding
    # =========================================================================

    def feed(self, data: bytes) -> bytes:
        """
        Consume a chunk and return the output that is complete so far.

        Args:
            data: Next chunk of the document

        Returns:
            Rewritten bytes; may be empty while a tag is split across chunks
        """
        self._buffer += data
        return self._drain(final=False)

    def close(self) -> bytes:
        """Flush everything still held back, rewriting what can be parsed."""
        out = self._drain(final=True)
        rest, self._buffer = self._buffer, b""
        return out + rest

    async def transform(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        async for chunk in chunks:
            out = self.feed(chunk)
            if out:
                yield out
        tail = self.close()
        if tail:
            yield tail

    # =========================================================================
    # Tokenizing
    # =========================================================================

    def _drain(self, final: bool) -> bytes:
        buf = self._buffer
        out = bytearray()
        pos = 0

        while pos < len(buf):
            if self._raw_text_tag is not None:
                match = self._raw_text_end.search(buf, pos)
                if match is None:
                    # hold back anything that could be the start of the end tag
                    safe = len(buf) if final else len(buf) - (len(self._raw_text_tag) + 3)
                    if safe > pos:
                        out += buf[pos:safe]
                        pos = safe
                    break
                out += buf[pos:match.start()]
                pos = match.start()
                self._raw_text_tag = None
                self._raw_text_end = None
                continue

            lt = buf.find(b"<", pos)
            if lt < 0:
                out += buf[pos:]
                pos = len(buf)
                break
            if lt > pos:
                out += buf[pos:lt]
                pos = lt

            end = self._consume_markup(buf, pos, out)
            if end is None:
                if final or len(buf) - pos > self._pending_limit(buf, pos):
                    self._tag_scan = None
                    out += b"<"
                    pos += 1
                    continue
                break
            pos = end

        self._buffer = buf[pos:]
        return bytes(out)

    def _consume_markup(self, buf: bytes, pos: int, out: bytearray) -> Optional[int]:
        """
        Emit the markup construct starting at buf[pos] ('<').

        Returns:
            Index just past the construct, or None if it is not complete yet
        """
        if buf.startswith(b"<!--", pos):
            # "<!-->" and "<!--->" are complete (empty) comments
            for empty in (b"<!-->", b"<!--->"):
                if buf.startswith(empty, pos):
                    out += empty
                    return pos + len(empty)
            end = buf.find(b"-->", pos + 4)
            if end < 0:
                return None
            out += buf[pos:end + 3]
            return end + 3

        nxt = buf[pos + 1:pos + 2]
        if not nxt:
            return None

        if nxt in (b"!", b"?", b"/"):
            if nxt == b"!" and b"<!--".startswith(buf[pos:pos + 4]):
                # "<!" or "<!-" at the end of the buffer
                return None
            end = buf.find(b">", pos + 1)
            if end < 0:
                return None
            out += buf[pos:end + 1]
            return end + 1

        if not nxt.isalpha():
            out += b"<"
            return pos + 1

        end = self._find_start_tag_end(buf, pos)
        if end is None:
            return None

        match = START_TAG.match(buf, pos, end)
        if match is None:
            out += b"<"
            return pos + 1

        self._emit_start_tag(match, out)
        return match.end()

    def _find_start_tag_end(self, buf: bytes, pos: int) -> Optional[int]:
        """
        Find the '>' closing the start tag at buf[pos], skipping quoted values.

        Scanning resumes where the previous call stopped, so a long tag
        arriving in many chunks is scanned once.

        Returns:
            Index just past the tag, or None if it is not complete yet
        """
        if self._tag_scan is None:
            name_end = TAG_NAME.match(buf, pos).end()
            if name_end == len(buf):
                return None
            self._tag_scan = (name_end - pos, None)

        offset, quote = self._tag_scan
        i = pos + offset
        while i < len(buf):
            if quote is not None:
                close = buf.find(quote, i)
                if close < 0:
                    i = len(buf)
                    break
                quote = None
                i = close + 1
                continue

            delimiter = TAG_DELIMITER.search(buf, i)
            if delimiter is None:
                i = len(buf)
                break
            if delimiter.group(0) == b">":
                self._tag_scan = None
                return delimiter.end()
            quote = delimiter.group(0)
            i = delimiter.end()

        self._tag_scan = (i - pos, quote)
        return None

    
    @staticmethod
    def _pending_limit(buf: bytes, pos: int) -> int:
        if buf[pos + 1:pos + 2].isalpha():
            return MAX_START_TAG_BYTES
        return MAX_PENDING_BYTES

    def _emit_start_tag(self, match: "re.Match[bytes]", out: bytearray) -> None:
        name = match.group(1).lower()
        handlers = self._handlers.get(name.decode("latin-1"))

        if handlers:
            element = Element.from_match(match)
            for handler in handlers:
                handler(element)
            out += element.serialize()
        else:
            out += match.group(0)

        if name in RAW_TEXT_ELEMENTS:
            self._raw_text_tag = name
            self._raw_text_end = re.compile(rb"</" + re.escape(name) + rb"[\s/>]", re.IGNORECASE)
