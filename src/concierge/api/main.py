"""FastAPI entrypoint for the chat and health endpoints."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from concierge.agent.pipeline import ConciergePipeline, extract_query
from concierge.config import get_settings
from concierge.context import ConciergeContext, build_context
from concierge.obs.logging import configure_logging

logger = structlog.get_logger(__name__)

CHAT_ROUTE = "/api/chat"


def create_app(context: ConciergeContext | None = None) -> FastAPI:
    """Build the app; production collaborators are wired at startup unless injected."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "pipeline", None) is None:
            settings = get_settings()
            configure_logging(settings)
            app.state.pipeline = ConciergePipeline(build_context(settings))
        yield

    app = FastAPI(title="Sovereign Concierge", version="0.1.0", lifespan=lifespan)
    app.state.pipeline = ConciergePipeline(context) if context is not None else None

    @app.get("/health")
    def health() -> dict[str, Any]:
        pipeline: ConciergePipeline = app.state.pipeline
        return {
            "status": "ok",
            "web_search_enabled": pipeline.context.web_search.enabled,
            "vector_store": pipeline.context.vector_store.name,
        }

    @app.api_route(CHAT_ROUTE, methods=["GET", "PUT", "PATCH", "DELETE", "POST"])
    async def chat(request: Request) -> JSONResponse:
        if request.method != "POST":
            return JSONResponse(status_code=405, content={"error": "Method not allowed"})

        try:
            body = json.loads(await request.body() or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(
                status_code=400, content={"error": "Request body must be valid JSON."}
            )

        query = extract_query(body)
        if query is None:
            return JSONResponse(
                status_code=400, content={"error": 'Missing "query" in request body.'}
            )

        try:
            result = await app.state.pipeline.handle(query)
        except Exception:
            logger.error("chat_request_failed", exc_info=True)
            return JSONResponse(status_code=500, content={"error": "Unexpected server error."})
        return JSONResponse(content=result.as_payload())

    return app
