"""Case-insensitive header maps."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from specmock.errors import DuplicateHeaderError


class HeaderMap(Mapping[str, Any]):
    """A read-only mapping whose keys are folded to lowercase.

    Adding two names that fold to the same key is rejected, so a map
    built from a contract document can never hold ``Content-Type`` and
    ``content-type`` at once. Lookups accept any casing.
    """

    def __init__(self, items: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None):
        self._items: dict[str, Any] = {}
        if items is None:
            return
        pairs = items.items() if isinstance(items, Mapping) else items
        for key, value in pairs:
            self._add(key, value)

    def _add(self, key: str, value: Any) -> None:
        folded = key.lower()
        if folded in self._items:
            raise DuplicateHeaderError(f"Duplicated headers not allowed: {key}/{folded}")
        self._items[folded] = value

    def __getitem__(self, key: str) -> Any:
        return self._items[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"HeaderMap({self._items!r})"

    def merged(self, overrides: Mapping[str, Any] | None) -> dict[str, Any]:
        """Return a plain dict of these headers with ``overrides`` applied.

        Override keys are folded too; on a clash the override wins.
        """
        result = dict(self._items)
        for key, value in (overrides or {}).items():
            result[key.lower()] = value
        return result


def normalize_headers(headers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Fold header names to lowercase, rejecting case-insensitive duplicates.

    Raises:
        DuplicateHeaderError: If two names differ only by case.
    """
    return dict(HeaderMap(headers))
