"""Tests for case-insensitive header maps and error formatting."""

import pytest

from specmock.errors import DuplicateHeaderError, SpecValidationError
from specmock.headers import HeaderMap, normalize_headers


def test_keys_are_folded() -> None:
    """Names are stored in lowercase and read in any case."""
    headers = HeaderMap({"Content-Type": "application/json"})
    assert list(headers) == ["content-type"]
    assert headers["CONTENT-TYPE"] == "application/json"
    assert "Content-type" in headers
    assert headers.get("missing") is None


def test_duplicates_are_rejected() -> None:
    """Two names folding to the same key are an error."""
    with pytest.raises(DuplicateHeaderError, match="X-A/x-a"):
        normalize_headers({"x-a": "1", "X-A": "2"})


def test_merged_override_wins() -> None:
    """Merging applies live values over defaults regardless of case."""
    merged = HeaderMap({"Accept": "text/plain", "X-Id": "1"}).merged({"ACCEPT": "*/*"})
    assert merged == {"accept": "*/*", "x-id": "1"}


def test_validation_error_formatting() -> None:
    """Errors carry their source and list every message."""
    single = SpecValidationError("broken", source="a.json")
    assert str(single) == "a.json: broken"

    multiple = SpecValidationError("first", errors=["first", "second"])
    assert str(multiple) == "2 validation errors\n  - first\n  - second"
    assert isinstance(multiple, ValueError)
