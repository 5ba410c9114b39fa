"""Placeholder capture and interpretation for response templates.

Replaces ``{path.to.value}`` placeholders with values looked up in the
per-request context. Double-brace ``{{category.field}}`` placeholders
belong to the filler generator and are consumed before this runs.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from typing import Any

from specmock.paths import get_value

PLACEHOLDER_PATTERN = re.compile(r"\{([a-z0-9.\-_]+)\}", re.IGNORECASE)


def capture(text: str) -> Iterator[str]:
    """Yield every placeholder name found in ``text``, in order.

    Malformed placeholders (spaces, nested braces) are not matched.
    Calling it again restarts the scan from the beginning.
    """
    for match in PLACEHOLDER_PATTERN.finditer(text):
        yield match.group(1)


def render_value(value: Any) -> str:
    """Render a value the way it appears inside generated text.

    Lists are comma-joined, booleans are lowercase and integral floats
    drop their fractional part.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, list):
        return ",".join(render_value(each) for each in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def interpret(text: str, context: Any, lower: bool = False) -> str:
    """Substitute ``{placeholder}`` tokens in ``text`` from ``context``.

    Each captured token is looked up as a dotted path. A resolved token
    replaces the first remaining literal occurrence, so repeated tokens
    are filled left to right. Unresolved tokens are left as they are.

    Args:
        text: The template string.
        context: The value placeholders are resolved against.
        lower: Lowercase each token before the lookup (used for headers).

    Returns:
        The interpreted string.
    """
    for variable in list(capture(text)):
        needle = variable.lower() if lower else variable
        if "" in needle.split("."):
            continue
        value = get_value(context, needle)
        if value is not None:
            text = text.replace(f"{{{variable}}}", render_value(value), 1)

    return text
