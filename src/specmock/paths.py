"""Dotted-path addressing over JSON-shaped values.

A path such as ``payload.books.*.id`` is split on ``.`` into segments.
Each segment is either a literal key (or list index) or the ``*``
wildcard, which fans out over every element of a list. The same
addressing is shared by placeholder interpretation, casting, and
predicate field access.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeAlias

JSONValue: TypeAlias = None | bool | int | float | str | list[Any] | dict[str, Any]

WILDCARD = "*"


class PathError(LookupError):
    """Raised when a write has to traverse a missing intermediate key.

    ``at`` holds the concrete segments (wildcards expanded to indexes) of
    the last value reached before the traversal stopped.
    """

    def __init__(self, message: str, at: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.at = tuple(at)


def parse_path(path: str | Sequence[str]) -> tuple[str, ...]:
    """Split a dotted path into its segments.

    Args:
        path: A dotted string (``a.b.c``) or an already split sequence.

    Returns:
        A non-empty tuple of segments.

    Raises:
        ValueError: If the path is empty or has an empty segment.
    """
    segments = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
    if not segments or any(segment == "" for segment in segments):
        raise ValueError(f"Invalid path: {path!r}")
    return segments


def is_blank(value: Any) -> bool:
    """Return True for values a lookup treats the same as a missing key.

    Empty containers are not blank; only ``None``, ``False``, zero and the
    empty string are.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, int | float) and not isinstance(value, bool):
        return value == 0
    return False


def _child(source: Any, segment: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(segment)
    if isinstance(source, list) and segment.isdigit():
        index = int(segment)
        return source[index] if index < len(source) else None
    return None


def get_value(value: Any, path: str | Sequence[str], *, keep_falsy: bool = False) -> Any:
    """Look up the value addressed by ``path``.

    A wildcard segment over a list collects the sub-lookup of every
    element, dropping elements where it yields ``None``. Scalars are
    returned with their native type as soon as they are reached.

    Args:
        value: The value to search.
        path: Dotted path or segment sequence.
        keep_falsy: Keep ``False``/``0``/``""`` instead of treating them as
            missing.

    Returns:
        The addressed value, or None when nothing is there.
    """
    return _read(value, parse_path(path), 0, keep_falsy)


def _read(source: Any, segments: tuple[str, ...], index: int, keep_falsy: bool) -> Any:
    if index == len(segments):
        return source

    segment = segments[index]
    if segment == WILDCARD and isinstance(source, list):
        dataset = []
        for each in source:
            found = _read(each, segments, index + 1, keep_falsy)
            if found is not None:
                dataset.append(found)
        return dataset

    found = _child(source, segment)
    if found is None or (not keep_falsy and is_blank(found)):
        return None
    if isinstance(found, Mapping | list):
        return _read(found, segments, index + 1, keep_falsy)
    return found


def set_value(
    value: Any,
    path: str | Sequence[str],
    transform: Callable[[Any], Any],
) -> Any:
    """Replace the value addressed by ``path`` with ``transform(current)``.

    The container is changed in place and also returned, so a top-level
    path of a single wildcard can rewrite a list's elements. A missing
    final key is created holding ``transform(None)``; missing keys before
    the final segment are an error.

    Args:
        value: The container to update.
        path: Dotted path or segment sequence.
        transform: Called with the current value (None when absent).

    Returns:
        The updated value.

    Raises:
        PathError: If an intermediate segment does not exist.
    """
    return _write(value, parse_path(path), 0, transform)


def _write(
    source: Any,
    segments: tuple[str, ...],
    index: int,
    transform: Callable[[Any], Any],
    trail: tuple[str, ...] = (),
) -> Any:
    if index == len(segments):
        return transform(source)

    segment = segments[index]
    last = index == len(segments) - 1

    if segment == WILDCARD and isinstance(source, list):
        for position, each in enumerate(source):
            source[position] = _write(
                each, segments, index + 1, transform, (*trail, str(position))
            )
        return source

    if isinstance(source, dict):
        if segment in source:
            source[segment] = _write(
                source[segment], segments, index + 1, transform, (*trail, segment)
            )
        elif last:
            source[segment] = transform(None)
        else:
            raise PathError(f"Missing key {segment!r} in path {'.'.join(segments)!r}", at=trail)
        return source

    if isinstance(source, list) and segment.isdigit() and int(segment) < len(source):
        position = int(segment)
        source[position] = _write(
            source[position], segments, index + 1, transform, (*trail, segment)
        )
        return source

    raise PathError(
        f"Cannot address {segment!r} on {type(source).__name__} in path {'.'.join(segments)!r}",
        at=trail,
    )


def resolves(value: Any, path: str | Sequence[str]) -> bool:
    """Return True if every segment of ``path`` addresses an existing value.

    Unlike :func:`get_value`, traversal never stops early at a scalar: a
    wildcard must land on a list and every element must resolve the rest
    of the path. A wildcard over an empty list resolves.
    """
    return _resolves(value, parse_path(path), 0)


def _resolves(source: Any, segments: tuple[str, ...], index: int) -> bool:
    if index == len(segments):
        return source is not None

    segment = segments[index]
    if segment == WILDCARD:
        if not isinstance(source, list):
            return False
        return all(_resolves(each, segments, index + 1) for each in source)

    if isinstance(source, Mapping):
        return segment in source and _resolves(source[segment], segments, index + 1)
    if isinstance(source, list) and segment.isdigit() and int(segment) < len(source):
        return _resolves(source[int(segment)], segments, index + 1)
    return False
