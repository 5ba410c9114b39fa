"""Per-request response generation for a loaded contract.

``ResponseBuilder`` owns one validated contract. Every call builds a
fresh request context, picks the default or an except-case response,
generates headers and data from the templates and applies repeat and
cast. Nothing from one call is kept for the next.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Mapping
from typing import Any

from specmock.filler import default_filler
from specmock.generator import cast_content, generate_content, repeat_content
from specmock.headers import HeaderMap
from specmock.interpolation import interpret
from specmock.models import (
    ASSERTION_HEADER,
    Contract,
    GeneratedResponse,
    IncomingRequest,
    RequestContext,
    ResponseSpec,
)
from specmock.overrides import select_override
from specmock.paths import PathError, set_value

logger = logging.getLogger(__name__)

Filler = Callable[[str], str]


def _merge(defaults: Any, live: Any) -> Any:
    if live is None:
        return dict(defaults) if isinstance(defaults, Mapping) else defaults
    if isinstance(live, Mapping):
        base = dict(defaults) if isinstance(defaults, Mapping) else {}
        base.update(live)
        return base
    # Only text replaces the defaults; JSON arrays and scalars are ignored.
    if isinstance(live, str):
        return live
    return _merge(defaults, None)


class ResponseBuilder:
    """Generates responses for one contract.

    The contract is read-only; concurrent calls share it safely.
    """

    def __init__(
        self,
        contract: Contract,
        filler: Filler | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            contract: A contract already validated by ``load_contract``.
            filler: Text-to-text filler run before interpretation; a shared
                Faker filler is used if omitted.
            rng: Random source for repeat ranges.
        """
        self.contract = contract
        self.filler = filler or default_filler()
        self.rng = rng

    def build_context(self, incoming: IncomingRequest) -> RequestContext:
        """Merge the contract's request defaults under the live request."""
        spec = self.contract.request
        return RequestContext(
            route=dict(incoming.params),
            query=_merge(spec.query, incoming.query),
            headers=HeaderMap(spec.headers).merged(incoming.headers),
            payload=_merge(spec.payload, incoming.body),
            time=f"{time.time() * 1000:.0f}",
        )

    def generate(self, incoming: IncomingRequest | None = None) -> GeneratedResponse:
        """Produce the response for one call.

        Args:
            incoming: Route params, query, headers and body of the call.

        Returns:
            The generated code, headers, content and the fired case name.
        """
        ctx = self.build_context(incoming or IncomingRequest())

        case = select_override(self.contract.except_cases, ctx.predicate_scope())
        spec = case.response if case else self.contract.response

        headers = self.render_headers(spec, ctx)
        if case is not None:
            headers = {k: v for k, v in headers.items() if k.lower() != ASSERTION_HEADER.lower()}
            headers[ASSERTION_HEADER] = case.name

        content = self.postprocess(spec, self.render_content(spec, ctx))
        logger.debug("%s -> %d (%s)", self.contract.request, spec.code, case.name if case else "-")
        return GeneratedResponse(
            code=spec.code,
            headers=headers,
            content=content,
            flow=case.name if case else None,
        )

    def render_headers(self, spec: ResponseSpec, ctx: RequestContext) -> dict[str, str]:
        value = ctx.as_value()

        def transform(text: str) -> str:
            return interpret(self.filler(text), value, lower=True)

        rendered = generate_content(spec.headers, transform)
        return {key: "" if header is None else str(header) for key, header in rendered.items()}

    def render_content(self, spec: ResponseSpec, ctx: RequestContext) -> Any:
        value = ctx.as_value()

        def transform(text: str) -> str:
            return interpret(self.filler(text), value)

        return generate_content(spec.data, transform)

    def postprocess(self, spec: ResponseSpec, content: Any) -> Any:
        """Apply ``$data`` repeat, then cast, to generated content."""
        if spec.meta is None:
            return content

        if spec.meta.repeat and isinstance(content, list):
            content = repeat_content(content, spec.meta.repeat, self.rng)

        for path, kind in spec.meta.cast.items():
            try:
                content = set_value(content, path, lambda data, kind=kind: cast_content(kind, data))
            except PathError as exc:
                logger.warning("Cannot cast %s on %s: %s", path, self.contract.request, exc)
                diagnostic = f"<cannot cast {path} as {kind}>"
                if not exc.at:
                    content = diagnostic
                else:
                    content = set_value(content, exc.at, lambda _: diagnostic)

        return content
