"""Contract loading and normalization.

Contract documents are JSON files of the form::

    {"request": {...}, "response": {...}, "except": {"<name>": {...}}}

Each document is validated on its own. A broken document is reported and
skipped; it never stops the others from loading.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from specmock.errors import SpecValidationError
from specmock.models import Contract

logger = logging.getLogger(__name__)

STARTER_CONTRACT: dict[str, Any] = {
    "request": {
        "route": "/users/:username",
        "method": "get",
        "query": {"per_page": "10"},
        "headers": {"X-Client": "specmock"},
    },
    "response": {
        "code": 200,
        "headers": {"X-Powered-By": "specmock", "X-Client-Echo": "{headers.x-client}"},
        "data": [
            {
                "username": "{route.username}",
                "email": "{{internet.email}}",
                "id": "{{random.number}}",
                "active": "true",
            }
        ],
        "$data": {"cast": {"*.id": "number", "*.active": "boolean"}, "repeat": "..5"},
    },
    "except": {
        "Username must be lowercase": {
            "validate": ["route.username == lower(route.username)"],
            "response": {"code": 400, "data": {"error": "invalid username"}},
        }
    },
}


def _format_errors(exc: ValidationError, raw: Mapping[str, Any]) -> list[str]:
    cases = raw.get("except")
    names = list(cases) if isinstance(cases, Mapping) else []
    messages = []
    for error in exc.errors():
        loc = list(error["loc"])
        if len(loc) > 1 and loc[0] == "except" and isinstance(loc[1], int) and loc[1] < len(names):
            loc[1] = names[loc[1]]
        msg = error["msg"].removeprefix("Value error, ")
        where = ".".join(str(part) for part in loc)
        messages.append(f"{where}: {msg}" if where else msg)
    return messages


def load_contract(raw: Any, source: str | None = None) -> Contract:
    """Validate and normalize one contract document.

    Args:
        raw: The parsed JSON document.
        source: Where it came from, used in error messages.

    Returns:
        An immutable Contract.

    Raises:
        SpecValidationError: If the document violates any contract rule.
    """
    if not isinstance(raw, Mapping):
        raise SpecValidationError(
            f"Contract must be an object, got {type(raw).__name__}", source=source
        )
    try:
        return Contract.model_validate(raw)
    except ValidationError as exc:
        errors = _format_errors(exc, raw)
        raise SpecValidationError(errors[0], source=source, errors=errors) from exc
    except SpecValidationError as exc:
        raise SpecValidationError(str(exc), source=source) from exc


def scan_directory(path: str | Path) -> Iterator[Path]:
    """Yield every ``*.json`` file below ``path``, recursively, in sorted order."""
    root = Path(path)
    for candidate in sorted(root.rglob("*.json")):
        if candidate.is_file():
            yield candidate


@dataclass
class LoadedContract:
    """A contract together with the file it was read from."""

    path: Path
    contract: Contract


@dataclass
class LoadReport:
    """Outcome of loading a directory of contracts."""

    loaded: list[LoadedContract] = field(default_factory=list)
    skipped: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped


def load_contract_file(path: str | Path) -> Contract:
    """Read and validate a single contract file.

    Raises:
        FileNotFoundError: If the file does not exist.
        SpecValidationError: If the file is not valid JSON or not a valid contract.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise SpecValidationError(f"Invalid JSON: {exc}", source=str(path)) from exc
    return load_contract(raw, source=str(path))


def load_contracts(path: str | Path, allow_except: bool = True) -> LoadReport:
    """Load every contract under ``path``.

    Invalid files are logged and recorded in the report's ``skipped``
    list. A later contract claiming an already loaded method and route
    is skipped as well.

    Args:
        path: Directory to scan.
        allow_except: If False, contracts declaring except cases are skipped.

    Returns:
        A LoadReport of loaded and skipped files.
    """
    report = LoadReport()
    seen: dict[tuple[str, str], Path] = {}

    for file in scan_directory(path):
        try:
            contract = load_contract_file(file)
        except SpecValidationError as exc:
            logger.error("Skipping contract %s", exc)
            report.skipped.append((file, "\n".join(exc.errors)))
            continue

        if contract.except_cases and not allow_except:
            reason = "except cases are disabled"
            logger.warning("Skipping contract %s: %s", file, reason)
            report.skipped.append((file, reason))
            continue

        key = (contract.request.method.value, contract.request.route)
        if key in seen:
            reason = f"{contract.request} already served by {seen[key]}"
            logger.warning("Skipping contract %s: %s", file, reason)
            report.skipped.append((file, reason))
            continue

        seen[key] = file
        report.loaded.append(LoadedContract(path=file, contract=contract))
        logger.info("%s - %s", file, contract.request)

    return report
