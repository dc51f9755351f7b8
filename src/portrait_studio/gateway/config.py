"""Gateway configuration loaded from the environment."""
from __future__ import annotations

import os

from dotenv import load_dotenv
from fastapi import HTTPException, Request, status
from pydantic import BaseModel, Field

DEFAULT_ANALYSIS_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"


class StudioConfig(BaseModel):
    """Runtime settings for the studio gateway."""

    gemini_api_key: str | None = Field(default=None, description="Credential for the Gemini API")
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


def _split_origins(value: str | None) -> list[str]:
    if not value:
        return ["*"]
    origins = [item.strip() for item in value.split(",") if item.strip()]
    return origins or ["*"]


def load_config() -> StudioConfig:
    """Build a config from ``.env`` and the process environment."""
    load_dotenv()
    return StudioConfig(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        analysis_model=os.getenv("STUDIO_ANALYSIS_MODEL", DEFAULT_ANALYSIS_MODEL),
        image_model=os.getenv("STUDIO_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
        log_level=os.getenv("STUDIO_LOG_LEVEL", "INFO"),
        cors_origins=_split_origins(os.getenv("STUDIO_CORS_ORIGINS")),
    )


def get_config(request: Request) -> StudioConfig:
    return request.app.state.config


def get_gemini_api_key(config: StudioConfig) -> str:
    if not config.gemini_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="GEMINI_API_KEY is not configured",
        )
    return config.gemini_api_key
