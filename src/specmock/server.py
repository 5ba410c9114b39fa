"""FastAPI server for specmock.

Registers one route per loaded contract and answers every call with a
freshly generated response.
"""

from __future__ import annotations

import json
import logging
import re
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from specmock.config import SpecmockConfig, load_config
from specmock.contracts import LoadReport, load_contracts
from specmock.engine import ResponseBuilder
from specmock.filler import default_filler
from specmock.models import IncomingRequest

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

logger = logging.getLogger(__name__)

ROUTE_PARAM = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def to_fastapi_route(route: str) -> str:
    """Convert ``/users/:id`` route parameters into ``/users/{id}``."""
    route = route if route.startswith("/") else f"/{route}"
    return ROUTE_PARAM.sub(r"{\1}", route)


class ContractServer:
    """Core server that turns a directory of contracts into an API.

    Loads contracts, builds one ResponseBuilder per contract and mounts
    the matching routes on a FastAPI application.
    """

    def __init__(self, config: SpecmockConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional configuration. If None, loads from specmock.yaml.
        """
        self.config = config or load_config()
        self.filler = default_filler(self.config.filler.locale, self.config.filler.seed)
        self.builders: list[ResponseBuilder] = []
        self.report = LoadReport()
        self.app = self._create_app()
        self._mount_contracts()

    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI application.

        Returns:
            A configured FastAPI instance.
        """

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            logger.info(
                "specmock serving %d contract(s) on %s:%d",
                len(self.builders),
                self.config.server.host,
                self.config.server.port,
            )
            yield
            logger.info("specmock shutting down")

        app = FastAPI(
            title="specmock",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=lifespan,
        )
        return app

    def _mount_contracts(self) -> None:
        """Load contracts and register their routes.

        The health check is registered last so contract routes match first.
        """
        self.report = load_contracts(
            self.config.contracts.directory,
            allow_except=self.config.contracts.allow_except,
        )
        for loaded in self.report.loaded:
            self.add_contract(ResponseBuilder(loaded.contract, filler=self.filler))

        @self.app.get("/health")
        async def health_check() -> dict[str, Any]:
            return {"status": "ok", "contracts": len(self.builders)}

    def add_contract(self, builder: ResponseBuilder) -> None:
        """Register the route of one contract."""
        spec = builder.contract.request
        self.app.add_api_route(
            to_fastapi_route(spec.route),
            self._make_endpoint(builder),
            methods=[spec.method.upper()],
            name=str(spec),
        )
        self.builders.append(builder)

    def _make_endpoint(self, builder: ResponseBuilder) -> Callable[[Request], Awaitable[Response]]:
        async def endpoint(request: Request) -> Response:
            incoming = await read_incoming(request)
            result = builder.generate(incoming)
            logger.info(
                "%s %s (%d; %s)",
                request.method,
                request.url.path,
                result.code,
                result.flow or "happy path",
            )
            return JSONResponse(result.content, status_code=result.code, headers=result.headers)

        return endpoint


async def read_incoming(request: Request) -> IncomingRequest:
    """Collect params, query, headers and body of a call.

    JSON bodies are decoded, form bodies become a flat mapping and any
    other body is kept as text. Repeated query keys become lists.

    Args:
        request: The incoming FastAPI Request.

    Returns:
        The IncomingRequest handed to the engine.
    """
    query: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key not in query:
            query[key] = value
        elif isinstance(query[key], list):
            query[key].append(value)
        else:
            query[key] = [query[key], value]

    body_bytes = await request.body()
    body: Any = None
    if body_bytes:
        body_str = body_bytes.decode("utf-8", errors="replace")
        body = body_str
        content_type = request.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            with suppress(json.JSONDecodeError):
                body = json.loads(body_str)
        elif content_type.startswith("application/x-www-form-urlencoded"):
            body = dict(parse_qsl(body_str, keep_blank_values=True))

    return IncomingRequest(
        params=dict(request.path_params),
        query=query,
        headers=dict(request.headers),
        body=body,
    )


def create_app(config_path: str | None = None) -> FastAPI:
    """Create a specmock FastAPI application.

    This is the main entry point for ASGI servers like uvicorn.

    Args:
        config_path: Optional path to the specmock.yaml config file.

    Returns:
        A configured FastAPI application.
    """
    config = load_config(config_path)
    server = ContractServer(config)
    return server.app
