"""FastAPI application for the portrait variation studio."""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portrait_studio.gateway.config import StudioConfig, load_config
from portrait_studio.gateway.log_config import logger, setup_logging
from portrait_studio.gateway.routes.studio.route import router as studio_router
from portrait_studio.studio.errors import StudioError
from portrait_studio.studio.provider import StudioProvider
from portrait_studio.studio.workspace import Workspace


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    workspace: Workspace | None = getattr(request.app.state, "workspace", None)
    if workspace is not None:
        workspace.record_error(exc.message)
    logger.info(
        "studio.error path=%s kind=%s status=%s message=%s",
        request.url.path,
        type(exc).__name__,
        exc.status_code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    config: StudioConfig | None = None,
    provider: StudioProvider | None = None,
) -> FastAPI:
    config = config or load_config()
    setup_logging(config.log_level)

    app = FastAPI(
        title="Portrait Variation Studio",
        description="Pads a portrait to an aspect ratio and generates nine styled variations.",
        version="0.1.0",
    )
    app.state.config = config
    app.state.workspace = Workspace()
    app.state.provider = provider

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StudioError, studio_error_handler)
    app.include_router(studio_router)

    logger.info(
        "studio.app created analysisModel=%s imageModel=%s apiKeyConfigured=%s",
        config.analysis_model,
        config.image_model,
        bool(config.gemini_api_key),
    )
    return app
