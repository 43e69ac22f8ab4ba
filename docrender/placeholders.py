"""Placeholder substitution for ``{{name}}`` tokens."""

import re
from typing import Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")


def format_value(value) -> str:
    """String form of a placeholder value as a JSON client would write it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def substitute(text: str, placeholders: Optional[Mapping[str, object]]) -> str:
    """Replace every ``{{name}}`` whose name is in ``placeholders``.

    Unknown names are left as they are. Substituted values are inserted
    verbatim and never scanned again, so one call does one level of expansion.
    """
    if not text or not placeholders:
        return text

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in placeholders:
            return match.group(0)
        return format_value(placeholders[name])

    return PLACEHOLDER_PATTERN.sub(replace, text)


def substitute_all(
    header: str,
    content: str,
    footer: str,
    placeholders: Optional[Mapping[str, object]],
) -> tuple[str, str, str]:
    """Apply the same mapping to header, content and footer independently."""
    return (
        substitute(header, placeholders),
        substitute(content, placeholders),
        substitute(footer, placeholders),
    )


def substitute_page_numbers(footer: str, page: int, total: int) -> str:
    """Fill ``{{page}}`` and ``{{total}}`` for one DOCX section."""
    return substitute(footer, {"page": page, "total": total})
