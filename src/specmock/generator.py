"""Structural content generation and post-processing.

``generate_content`` rebuilds a JSON-shaped template leaf by leaf.
``repeat_content`` and ``cast_content`` run afterwards, driven by the
response's ``$data`` metadata.
"""

from __future__ import annotations

import copy
import math
import random
from collections.abc import Callable
from typing import Any

from specmock.interpolation import render_value

RANGE_SEPARATOR = ".."


def generate_content(template: Any, transform: Callable[[str], str] | None = None) -> Any:
    """Rebuild ``template`` with every scalar leaf passed through ``transform``.

    Lists and dicts are rebuilt with the same length and keys; the input
    is never modified. Scalars are rendered to text first, so the output
    leaves are strings until a cast restores their type. ``None`` leaves
    stay ``None``.

    Args:
        template: Any JSON-shaped value.
        transform: Text-to-text function applied at each leaf.

    Returns:
        A new value with the same container shape.
    """
    if isinstance(template, list):
        return [generate_content(each, transform) for each in template]
    if isinstance(template, dict):
        return {key: generate_content(value, transform) for key, value in template.items()}
    if template is None:
        return None

    text = render_value(template)
    return transform(text) if transform is not None else text


def _parse_count(text: str) -> int:
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        raise ValueError(f"Invalid repeat number: {text!r}")
    return int(text)


def parse_repeat(formula: str, length: int) -> tuple[int, int]:
    """Parse a repeat formula into inclusive ``(min, max)`` bounds.

    ``"5"`` means exactly five copies. ``"5..10"`` means between five and
    ten; an omitted bound defaults to ``length``.

    Raises:
        ValueError: For negative, non-numeric or inverted bounds.
    """
    if RANGE_SEPARATOR not in formula:
        count = _parse_count(formula)
        return count, count

    low, high = formula.split(RANGE_SEPARATOR, 1)
    minimum = _parse_count(low) if low.strip() else length
    maximum = _parse_count(high) if high.strip() else length
    if minimum > maximum:
        raise ValueError(f"Invalid repeat options: min({minimum}) max({maximum})")
    return minimum, maximum


def repeat_content(
    items: list[Any],
    formula: str,
    rng: random.Random | None = None,
) -> list[Any]:
    """Concatenate whole copies of ``items`` a fixed or random number of times.

    Each copy is independent of the others, so later casts touch every
    element exactly once.

    Args:
        items: The generated list.
        formula: ``"N"`` or ``"min..max"`` (see :func:`parse_repeat`).
        rng: Random source for range draws.

    Returns:
        The expanded list.
    """
    minimum, maximum = parse_repeat(formula, len(items))
    total = (rng or random).randint(minimum, maximum)
    return [copy.deepcopy(each) for _ in range(total) for each in items]


def _parse_number(text: str) -> int | float | None:
    text = text.strip()
    if not text.isascii() or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def cast_content(kind: str, value: Any) -> Any:
    """Cast a generated value to ``number``, ``boolean`` or ``string``.

    Failures never raise: a conspicuous ``<...>`` diagnostic string takes
    the value's place instead.

    Raises:
        ValueError: For an unsupported ``kind`` (rejected at load time).
    """
    if value is None:
        return f"<cannot cast missing value as {kind}>"

    text = render_value(value)
    if kind == "number":
        if isinstance(value, int | float) and not isinstance(value, bool):
            return value
        number = _parse_number(text)
        if number is None:
            return f'<"{text}" is not a number>'
        return number
    if kind == "boolean":
        if text.lower() == "true":
            return True
        if text.lower() == "false":
            return False
        return f'<"{text}" is not a boolean>'
    if kind == "string":
        return text

    raise ValueError(f"Unsupported cast type {kind!r}")
