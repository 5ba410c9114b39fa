"""Core data models for specmock contracts and generated responses."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from specmock.generator import parse_repeat
from specmock.headers import HeaderMap, normalize_headers
from specmock.paths import parse_path, resolves
from specmock.predicates import Predicate, parse_predicate, validate_predicate

ASSERTION_HEADER = "X-Assertion"


class HttpMethod(enum.StrEnum):
    """HTTP verbs a contract route may be registered for."""

    HEAD = "head"
    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"


class CastKind(enum.StrEnum):
    """Types a generated field can be cast back into."""

    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


def _headers(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Headers must be an object, got {type(value).__name__}")
    return normalize_headers(value)


class RequestSpec(BaseModel):
    """The request side of a contract: route, verb and default inputs.

    Defaults for query, payload and headers are merged under the live
    request's values when a call is handled.
    """

    model_config = ConfigDict(frozen=True)

    route: str = Field(description="Endpoint with optional :name route parameters")
    method: HttpMethod = Field(description="HTTP verb, case-insensitive in documents")
    query: dict[str, str | list[str]] = Field(
        default_factory=dict, description="Default query string values"
    )
    payload: dict[str, Any] | str | None = Field(
        default=None, description="Default request body fields"
    )
    headers: dict[str, Any] = Field(
        default_factory=dict, description="Default request headers, keys folded to lowercase"
    )

    @field_validator("route", mode="before")
    @classmethod
    def _check_route(cls, value: Any) -> Any:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Request route must be a non-empty string")
        return value

    @field_validator("method", mode="before")
    @classmethod
    def _check_method(cls, value: Any) -> Any:
        supported = {method.value for method in HttpMethod}
        if not isinstance(value, str) or value.lower() not in supported:
            raise ValueError(f"Unsupported request HTTP method: {value}")
        return value.lower()

    @field_validator("query", mode="before")
    @classmethod
    def _check_query(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError(f"Request query must be object, got {type(value).__name__}")
        return value

    @field_validator("payload", mode="before")
    @classmethod
    def _check_payload(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, Mapping | str):
            raise ValueError("Request payload must be an object or a string")
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _check_headers(cls, value: Any) -> dict[str, Any]:
        return _headers(value)

    def __str__(self) -> str:
        return f"{self.method.upper()} {self.route}"


class ResponseMetadata(BaseModel):
    """Post-processing options stored under a response's ``$data`` key."""

    model_config = ConfigDict(frozen=True)

    cast: dict[str, CastKind] = Field(
        default_factory=dict, description="Path to cast kind, applied after repeat"
    )
    repeat: str | None = Field(default=None, description="'N' or 'min..max' copies of the data")

    @field_validator("cast", mode="before")
    @classmethod
    def _check_cast(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("Cast must be a key-value object")
        for path in value:
            parse_path(path)
        return value

    @field_validator("repeat", mode="before")
    @classmethod
    def _check_repeat(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            raise ValueError("Repeat must be a string")
        return value


class ResponseSpec(BaseModel):
    """The response side of a contract (or of an except case)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: int = Field(description="HTTP status code, 100-599")
    headers: dict[str, Any] = Field(default_factory=dict)
    data: Any = Field(default=None, description="JSON-shaped template for the body")
    meta: ResponseMetadata | None = Field(default=None, alias="$data")

    @field_validator("code", mode="before")
    @classmethod
    def _check_code(cls, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Response HTTP status code invalid: {value}")
        try:
            code = int(str(value).strip())
        except ValueError:
            raise ValueError(f"Response HTTP status code invalid: {value}") from None
        if code < 100 or code > 599:
            raise ValueError(f"Unsupported response HTTP status: {code}")
        return code

    @field_validator("headers", mode="before")
    @classmethod
    def _check_headers(cls, value: Any) -> dict[str, Any]:
        # Names keep their written casing; folding is only for the clash check.
        _headers(value)
        headers = dict(value or {})
        for key, header in headers.items():
            if isinstance(header, list | dict):
                raise ValueError(f"Response header {key!r} must be a scalar value")
        return headers

    @model_validator(mode="after")
    def _check_metadata(self) -> ResponseSpec:
        if self.meta is None:
            return self

        if self.meta.repeat is not None:
            if not isinstance(self.data, list):
                raise ValueError("Cannot use meta repeat on a non-array data")
            parse_repeat(self.meta.repeat, len(self.data))

        if self.meta.cast:
            if not isinstance(self.data, dict | list):
                raise ValueError("Casting works only with response data objects")
            for path in self.meta.cast:
                if not resolves(self.data, path):
                    raise ValueError(f"Nothing to cast on {path}")

        return self


class ExceptCase(BaseModel):
    """A named group of predicates with an alternate response.

    The case fires when any of its predicates fails; the first case to
    fire replaces the contract's default response.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(description="Assertion message, also sent as a response header")
    predicates: list[str] = Field(alias="validate", min_length=1)
    response: ResponseSpec

    _compiled: tuple[Predicate, ...] = PrivateAttr(default=())

    @field_validator("predicates", mode="before")
    @classmethod
    def _check_predicates(cls, value: Any) -> Any:
        if not isinstance(value, list):
            raise ValueError(f'Field "validate" must be string[], got {type(value).__name__}')
        for position, source in enumerate(value):
            if not isinstance(source, str):
                raise ValueError(
                    f'Field "validate" must be string on position {position}, '
                    f"got {type(source).__name__} instead"
                )
            validate_predicate(source)
        return value

    def model_post_init(self, context: Any) -> None:
        self._compiled = tuple(parse_predicate(source) for source in self.predicates)

    @property
    def compiled(self) -> tuple[Predicate, ...]:
        return self._compiled


class Contract(BaseModel):
    """A full contract document: request, default response and except cases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    request: RequestSpec
    response: ResponseSpec
    except_cases: list[ExceptCase] = Field(default_factory=list, alias="except")

    @field_validator("except_cases", mode="before")
    @classmethod
    def _cases_from_mapping(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, Mapping):
            raise ValueError("Except must be an object of named cases")
        return [
            {**case, "name": name} if isinstance(case, Mapping) else case
            for name, case in value.items()
        ]


class IncomingRequest(BaseModel):
    """What the HTTP layer hands over for one call."""

    params: dict[str, Any] = Field(default_factory=dict, description="Route parameters")
    query: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, Any] = Field(default_factory=dict)
    body: Any = Field(default=None, description="Decoded JSON/form body or raw text")


class RequestContext(BaseModel):
    """Per-call snapshot placeholders and predicates are resolved against."""

    model_config = ConfigDict(frozen=True)

    route: dict[str, Any] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, Any] = Field(default_factory=dict)
    payload: Any = None
    time: str = Field(description="Milliseconds since the epoch, as text")

    def as_value(self) -> dict[str, Any]:
        return {
            "route": self.route,
            "query": self.query,
            "headers": self.headers,
            "payload": self.payload,
            "time": self.time,
        }

    def predicate_scope(self) -> dict[str, Any]:
        """The names predicates may read; ``time`` is not exposed."""
        return {
            "route": self.route,
            "query": self.query,
            "headers": HeaderMap(self.headers),
            "payload": self.payload,
        }


class GeneratedResponse(BaseModel):
    """The response description returned to the HTTP layer."""

    code: int
    headers: dict[str, str] = Field(default_factory=dict)
    content: Any = None
    flow: str | None = Field(default=None, description="Name of the except case that fired")
