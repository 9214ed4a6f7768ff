"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the in-process studio services.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from workflow_studio import __version__
from workflow_studio.errors import BlueprintRequired, NotFound, NotReady
from workflow_studio.logging import configure_logging
from workflow_studio.server.router import router
from workflow_studio.studio import Studio
from workflow_studio.workflow.state_machine import IllegalTransitionError

logger = logging.getLogger(__name__)


def create_app(studio: Studio | None = None, *, configure_logs: bool = False) -> FastAPI:
    studio = studio or Studio()
    settings = studio.settings
    if configure_logs:
        configure_logging(settings.log_level, json_output=settings.log_json)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        studio.control_room.detach()

    app = FastAPI(
        title="Workflow Studio",
        version=__version__,
        description="REST API over the in-process workflow studio services.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.state.studio = studio
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFound)
    async def _not_found(_request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.message})

    @app.exception_handler(IllegalTransitionError)
    async def _illegal_transition(_request: Request, exc: IllegalTransitionError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(NotReady)
    async def _not_ready(_request: Request, exc: NotReady) -> JSONResponse:
        return JSONResponse(status_code=409, content={"isReady": False, "errors": list(exc.errors)})

    @app.exception_handler(BlueprintRequired)
    async def _blueprint_required(_request: Request, exc: BlueprintRequired) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def _invalid(_request: Request, exc: ValidationError) -> JSONResponse:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        return JSONResponse(status_code=422, content={"detail": errors})

    app.include_router(router, prefix="/api")

    # The dashboard view lives as long as the app.
    studio.control_room.attach()
    logger.info("Studio app created", extra={"version": __version__})
    return app
