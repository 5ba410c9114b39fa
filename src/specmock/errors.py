"""Exception types raised while loading contracts."""

from __future__ import annotations


class SpecValidationError(ValueError):
    """A contract document failed validation and cannot be served.

    Fatal for that one contract only; loaders skip it and continue.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        self.source = source
        self.errors = errors or [message]
        super().__init__(message)

    def __str__(self) -> str:
        prefix = f"{self.source}: " if self.source else ""
        if len(self.errors) == 1:
            return f"{prefix}{self.errors[0]}"
        details = "\n".join(f"  - {error}" for error in self.errors)
        return f"{prefix}{len(self.errors)} validation errors\n{details}"


class DuplicateHeaderError(SpecValidationError):
    """Two header names differ only by case."""


class UnsafeExpression(SpecValidationError):
    """A predicate uses syntax outside the closed predicate grammar."""
