"""
HTML escaping for submitted form values.

Every field value is escaped before it reaches the document store or the
submission queue. There is no rejection path: markup is neutralised, never
refused.
"""

import re
from typing import Any, Dict, Mapping

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}
_ESCAPE_PATTERN = re.compile(r"[&<>\"'/]")


def escape_html(value: str) -> str:
    """Escape ``& < > " ' /`` for safe inclusion in HTML text or attributes."""
    return _ESCAPE_PATTERN.sub(lambda match: _ESCAPES[match.group(0)], value)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def sanitize_fields(fields: Mapping[str, Any]) -> Dict[str, str]:
    """Stringify and escape every key and value of a submitted form."""
    return {escape_html(str(key)): escape_html(_to_text(value)) for key, value in fields.items()}
