"""
HTML sanitizer applied to header, content and footer before rendering.

Scripts are rejected outright; everything else outside the allowlist is
stripped, including inline event handlers.
"""

import logging
import re

import bleach
from bleach.css_sanitizer import CSSSanitizer

from .errors import ValidationFailure
from .interfaces import ISanitizer

logger = logging.getLogger(__name__)

ALLOWED_TAGS = [
    "p", "br", "strong", "b", "em", "i", "u", "s", "a", "span", "div",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ol", "ul", "li",
    "table", "thead", "tbody", "tfoot", "tr", "th", "td",
    "img", "hr", "blockquote", "pre", "code", "sup", "sub",
]

ALLOWED_ATTRIBUTES = {
    "*": ["class", "id", "style"],
    "a": ["href", "title", "target"],
    "img": ["src", "alt", "title", "width", "height"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan"],
    "table": ["border", "cellpadding", "cellspacing"],
}

ALLOWED_PROTOCOLS = ["http", "https", "mailto", "data"]

ALLOWED_CSS_PROPERTIES = [
    "color", "background-color", "font-size", "font-weight", "font-style", "font-family",
    "text-align", "text-decoration", "margin", "padding", "border", "width", "height",
    "page-break-after", "page-break-before", "break-after", "break-before",
]

SCRIPT_PATTERN = re.compile(r"<\s*script\b", re.IGNORECASE)
IFRAME_PATTERN = re.compile(r"<\s*iframe\b", re.IGNORECASE)
TABLE_OPEN_PATTERN = re.compile(r"<\s*table\b", re.IGNORECASE)
TABLE_CLOSE_PATTERN = re.compile(r"<\s*/\s*table\s*>", re.IGNORECASE)
ROW_CLOSE_PATTERN = re.compile(r"<\s*/\s*tr\s*>", re.IGNORECASE)


def close_dangling_tables(html: str) -> str:
    """Close unclosed tables right after their last row.

    The HTML parser would otherwise pull everything after an unclosed table
    into it and drop what cannot live there.
    """
    missing = len(TABLE_OPEN_PATTERN.findall(html)) - len(TABLE_CLOSE_PATTERN.findall(html))
    if missing <= 0:
        return html
    rows = list(ROW_CLOSE_PATTERN.finditer(html))
    cut = rows[-1].end() if rows else len(html)
    return html[:cut] + "</table>" * missing + html[cut:]


class BleachSanitizer(ISanitizer):
    """Allowlist sanitizer backed by bleach."""

    def __init__(self):
        self.css_sanitizer = CSSSanitizer(allowed_css_properties=ALLOWED_CSS_PROPERTIES)

    def sanitize(self, html: str, context: str) -> str:
        if not html:
            return ""

        if SCRIPT_PATTERN.search(html):
            raise ValidationFailure(f"Script tags not allowed in {context}", {"field": context})

        iframes = len(IFRAME_PATTERN.findall(html))
        if iframes:
            logger.warning(f"Removing {iframes} iframe(s) from {context}")

        closed = close_dangling_tables(html)
        if closed != html:
            logger.warning(f"Closing unclosed table in {context}")
            html = closed

        try:
            return bleach.clean(
                html,
                tags=ALLOWED_TAGS,
                attributes=ALLOWED_ATTRIBUTES,
                protocols=ALLOWED_PROTOCOLS,
                css_sanitizer=self.css_sanitizer,
                strip=True,
                strip_comments=True,
            )
        except Exception as e:
            logger.error(f"HTML sanitization failed for {context}: {e}", exc_info=True)
            raise ValidationFailure(f"Invalid HTML in {context}", {"field": context}) from e
