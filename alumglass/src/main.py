"""
AlumGlass - Application Entry Point
====================================
FastAPI application factory plus the ``alumglass`` console script.

``create_app()`` wires the production dependencies during lifespan
start-up:

    MongoSessionStore (+ session_id index)
    GeminiGateway      (generation + embedding credential pools)
    VectorStore        (Astra or LanceDB, per ``VECTOR_BACKEND``)
    RetrievalFusion    (web providers in declared order)
    └─► ChatGateway    → app.state.gateway

Tests pass a ready ``ChatGateway`` and skip all of the above.

Usage:
    alumglass                                     # console script
    uvicorn alumglass.src.main:create_app --factory
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from alumglass.config.prompt_templates import ERROR_INVALID_REQUEST
from alumglass.config.settings import settings
from alumglass.src.api.routes import router
from alumglass.src.core.gemini_client import GeminiGateway
from alumglass.src.core.rag_engine import ChatGateway
from alumglass.src.core.retrieval import RetrievalFusion
from alumglass.src.core.web_search import providers_for
from alumglass.src.database.session_store import MongoSessionStore, close_mongo_client
from alumglass.src.database.vector_store import build_vector_store
from alumglass.src.utils.logger import get_logger

logger = get_logger(__name__)


async def build_gateway() -> ChatGateway:
    store = MongoSessionStore()
    await store.ensure_indexes()

    gemini = GeminiGateway.from_settings()
    vector_store = build_vector_store()
    retrieval = RetrievalFusion(providers_for(settings.WEB_SEARCH_PROVIDERS), gemini, vector_store)

    logger.info("[STARTUP] Gateway ready | vector=%s | web=%s", settings.VECTOR_BACKEND, settings.WEB_SEARCH_PROVIDERS)
    return ChatGateway(store, gemini, retrieval)


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("[HTTP] Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": ERROR_INVALID_REQUEST})


def create_app(gateway: ChatGateway | None = None) -> FastAPI:
    """Build the FastAPI app; *gateway* overrides the production wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_gateway = getattr(app.state, "gateway", None) is None
        if owns_gateway:
            app.state.gateway = await build_gateway()
        yield
        if owns_gateway:
            close_mongo_client()

    app = FastAPI(title="AlumGlass Chat Gateway", version="1.0.0", lifespan=lifespan)
    if gateway is not None:
        app.state.gateway = gateway

    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.include_router(router)
    return app


def main() -> None:
    uvicorn.run("alumglass.src.main:create_app", factory=True, host=settings.HOST, port=settings.PORT, log_level="debug" if settings.ENV == "dev" else "warning")


if __name__ == "__main__":
    main()
