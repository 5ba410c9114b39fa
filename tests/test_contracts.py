"""Tests for contract loading from documents and directories."""

import json
from pathlib import Path

import pytest

from specmock.contracts import (
    STARTER_CONTRACT,
    load_contract,
    load_contract_file,
    load_contracts,
    scan_directory,
)
from specmock.errors import SpecValidationError


def _write(path: Path, document: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def _contract(route: str = "/books", method: str = "get", **extra: object) -> dict:
    return {"request": {"route": route, "method": method}, "response": {"code": 200}, **extra}


def test_starter_contract_is_valid() -> None:
    """The contract written by `dump` must load cleanly."""
    contract = load_contract(STARTER_CONTRACT)
    assert str(contract.request) == "GET /users/:username"
    assert contract.except_cases[0].name == "Username must be lowercase"


def test_load_contract_rejects_non_object() -> None:
    """Top-level arrays are not contracts."""
    with pytest.raises(SpecValidationError, match="Contract must be an object"):
        load_contract([1, 2, 3])


def test_load_contract_collects_errors() -> None:
    """All violations are reported, each with its location."""
    raw = {"request": {"route": "", "method": "fetch"}, "response": {"code": 42}}
    with pytest.raises(SpecValidationError) as excinfo:
        load_contract(raw, source="bad.json")

    err = excinfo.value
    assert err.source == "bad.json"
    assert len(err.errors) == 3
    assert any(e.startswith("request.route:") for e in err.errors)
    assert any("Unsupported request HTTP method: fetch" in e for e in err.errors)
    assert str(err).startswith("bad.json: 3 validation errors")


def test_load_contract_names_except_cases() -> None:
    """Errors inside except cases mention the case name."""
    raw = _contract(
        **{"except": {"Needs token": {"validate": ["exec('x')"], "response": {"code": 401}}}}
    )
    with pytest.raises(SpecValidationError, match="except.Needs token.validate"):
        load_contract(raw)


def test_load_contract_file_invalid_json(tmp_path: Path) -> None:
    """Broken JSON is reported as a validation error."""
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SpecValidationError, match="Invalid JSON"):
        load_contract_file(path)


def test_scan_directory_is_recursive_and_sorted(tmp_path: Path) -> None:
    """Nested *.json files are found in a stable order; other files are ignored."""
    _write(tmp_path / "b.json", _contract())
    _write(tmp_path / "a" / "nested.json", _contract())
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    found = [path.relative_to(tmp_path).as_posix() for path in scan_directory(tmp_path)]
    assert found == ["a/nested.json", "b.json"]


def test_load_contracts_skips_invalid_files(tmp_path: Path) -> None:
    """One broken file does not stop the rest from loading."""
    _write(tmp_path / "good.json", _contract())
    _write(tmp_path / "bad.json", {"request": {"route": "/x"}, "response": {"code": 200}})

    report = load_contracts(tmp_path)
    assert [entry.path.name for entry in report.loaded] == ["good.json"]
    assert [path.name for path, _ in report.skipped] == ["bad.json"]
    assert not report.ok


def test_load_contracts_skips_duplicate_routes(tmp_path: Path) -> None:
    """The first contract for a method and route wins."""
    _write(tmp_path / "a.json", _contract())
    _write(tmp_path / "b.json", _contract(method="GET"))
    _write(tmp_path / "c.json", _contract(method="post"))

    report = load_contracts(tmp_path)
    assert [entry.path.name for entry in report.loaded] == ["a.json", "c.json"]
    path, reason = report.skipped[0]
    assert path.name == "b.json"
    assert "already served by" in reason


def test_load_contracts_without_except(tmp_path: Path) -> None:
    """allow_except=False skips contracts declaring except cases."""
    case = {"Always": {"validate": ["False"], "response": {"code": 400}}}
    _write(tmp_path / "plain.json", _contract())
    _write(tmp_path / "cases.json", _contract(route="/other", **{"except": case}))

    report = load_contracts(tmp_path, allow_except=False)
    assert [entry.path.name for entry in report.loaded] == ["plain.json"]
    assert report.skipped[0][1] == "except cases are disabled"

    assert len(load_contracts(tmp_path).loaded) == 2


def test_load_contracts_empty_directory(tmp_path: Path) -> None:
    """An empty directory loads nothing and reports no errors."""
    report = load_contracts(tmp_path)
    assert report.loaded == []
    assert report.ok
