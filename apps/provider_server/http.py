from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Body, FastAPI
from fastapi.responses import JSONResponse

from .dispatch import ProviderDispatcher
from .errors import RpcError
from .logging import get_logger, log_event
from .protocol import PROTOCOL_VERSION
from .provider import ProviderService

__all__ = ["build_router", "create_app"]

LOGGER = get_logger("http")


def build_router(dispatcher: ProviderDispatcher) -> APIRouter:
    router = APIRouter()

    @router.post("/rpc/{method}")
    async def call(method: str, payload: dict[str, Any] | None = Body(default=None)) -> JSONResponse:
        try:
            result = await dispatcher.handle(method, payload)
        except RpcError as exc:
            return JSONResponse(content={"error": exc.to_jsonrpc_error()}, status_code=exc.http_status)
        return JSONResponse(content=result)

    @router.get("/healthz")
    def health() -> dict[str, Any]:
        return {"status": "ok", "protocol_version": PROTOCOL_VERSION, "methods": list(dispatcher.methods)}

    return router


def create_app(provider: ProviderService, *, enable_openapi: bool = False) -> FastAPI:
    """Return a FastAPI application exposing the provider RPC surface.

    The provider's ``stop`` hook runs once when the application shuts down.
    """

    dispatcher = ProviderDispatcher(provider)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        try:
            await provider.stop()
        except Exception as exc:
            log_event("provider stop failed", level=logging.WARNING, logger=LOGGER, error=str(exc))

    docs_url = "/docs" if enable_openapi else None
    openapi_url = "/openapi.json" if enable_openapi else None
    app = FastAPI(
        title="Hemmer Provider",
        docs_url=docs_url,
        openapi_url=openapi_url,
        lifespan=lifespan,
    )
    app.state.dispatcher = dispatcher
    app.include_router(build_router(dispatcher))
    return app
