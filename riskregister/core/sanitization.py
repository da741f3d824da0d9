"""
Sanitization — strips unsafe markup from free text and guards CSV imports.

Free text keeps a small safelist of formatting tags (no attributes). Script,
embed, frame and form-control elements are dropped together with their
content; any other tag is unwrapped and its text kept. Sanitization never
raises: oversized text is truncated and unsafe markup removed, with a
diagnostic logged.
"""

from __future__ import annotations

import html
import logging
import re
from html.parser import HTMLParser
from typing import Any

logger = logging.getLogger("riskregister.sanitization")

ALLOWED_TAGS = frozenset({
    "p", "br", "strong", "em", "b", "i", "u", "ol", "ul", "li",
    "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre", "code",
})

VOID_TAGS = frozenset({"br"})

# Content inside these is discarded, not just the tags
DROP_CONTENT_TAGS = frozenset({
    "script", "style", "object", "embed", "iframe", "frame", "frameset",
    "noscript", "template", "textarea", "select", "button", "title", "svg", "math",
})

FIELD_MAX_LENGTHS: dict[str, int] = {
    "title": 200,
    "description": 5000,
    "mitigation_plan": 5000,
    "category": 100,
}

_CSV_INJECTION = re.compile(r"(?:\A|[\r\n])[\s\ufeff]*[=+\-@]")

# Entity or tag left open at the end of a cut
_PARTIAL_MARKUP = re.compile(r"&[^;\s&<>]*\Z|<[^>]*\Z")


class _SafelistParser(HTMLParser):
    """Re-serializes HTML keeping only safelisted, attribute-free tags."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._out: list[str] = []
        self._open: list[str] = []
        self._skip_depth = 0
        self.stripped = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth += 1
            self.stripped = True
            return
        if self._skip_depth:
            return
        if tag not in ALLOWED_TAGS:
            self.stripped = True
            return
        if attrs:
            self.stripped = True
        self._out.append(f"<{tag}>")
        if tag not in VOID_TAGS:
            self._open.append(tag)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self.stripped = True
            return
        if self._skip_depth:
            return
        if tag in VOID_TAGS:
            if attrs:
                self.stripped = True
            self._out.append(f"<{tag}>")
        else:
            self.stripped = True

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            if self._skip_depth:
                self._skip_depth -= 1
            return
        if self._skip_depth or tag not in self._open:
            return
        while self._open:
            current = self._open.pop()
            self._out.append(f"</{current}>")
            if current == tag:
                break

    def handle_data(self, data: str) -> None:
        if self._skip_depth:
            return
        self._out.append(html.escape(data, quote=False))

    def handle_comment(self, data: str) -> None:
        self.stripped = True

    def handle_decl(self, decl: str) -> None:
        self.stripped = True

    def handle_pi(self, data: str) -> None:
        self.stripped = True

    def result(self) -> str:
        self.close()
        while self._open:
            self._out.append(f"</{self._open.pop()}>")
        return "".join(self._out)


def _sanitize_html(text: str) -> tuple[str, bool]:
    if not text:
        return text, False
    parser = _SafelistParser()
    parser.feed(text)
    return parser.result(), parser.stripped


def sanitize_text_input(text: Any) -> Any:
    """
    Strip disallowed markup from a string and trim surrounding whitespace.

    Non-string values are returned unchanged.
    """
    if not isinstance(text, str):
        return text
    cleaned, stripped = _sanitize_html(text)
    if stripped:
        logger.info("Stripped disallowed markup from text input")
    return cleaned.strip()


def _truncate_sanitized(text: str, max_length: int) -> str:
    """
    Cut already-sanitized text to at most ``max_length`` characters.

    The cut backs off past any entity or tag it would split, and tags left
    open are closed again, so the result sanitizes to itself.
    """
    limit = max_length
    while True:
        cut = _PARTIAL_MARKUP.sub("", text[:limit])
        result, _ = _sanitize_html(cut)
        result = result.strip()
        if len(result) <= max_length:
            return result
        limit -= len(result) - max_length


def sanitize_risk_input(record: dict[str, Any]) -> dict[str, Any]:
    """
    Sanitize and length-limit every text field present on a risk payload.

    Limits apply to the sanitized (escaped) text, which is what gets stored
    and exported. Works on a shallow copy; non-text fields pass through
    untouched. Accepts snake_case or camelCase for the mitigation plan key.
    """
    sanitized = dict(record)
    for field, max_length in FIELD_MAX_LENGTHS.items():
        keys = [field]
        if field == "mitigation_plan":
            keys.append("mitigationPlan")
        for key in keys:
            value = sanitized.get(key)
            if not isinstance(value, str):
                continue
            value = sanitize_text_input(value)
            if len(value) > max_length:
                logger.warning(
                    f"Input for '{key}' exceeds maximum length of {max_length} "
                    f"characters ({len(value)}); truncating"
                )
                value = _truncate_sanitized(value, max_length)
            sanitized[key] = value
    return sanitized


def validate_csv_content(csv_text: str) -> bool:
    """
    Reject CSV text with a formula-injection line.

    Returns False if any line starts (after leading whitespace) with
    ``=``, ``+``, ``-`` or ``@``.
    """
    if _CSV_INJECTION.search(csv_text):
        logger.warning("CSV validation failed: potential formula injection detected")
        return False
    return True
