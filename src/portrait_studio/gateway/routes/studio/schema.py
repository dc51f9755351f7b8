"""Schema definitions for the portrait studio routes."""
from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from portrait_studio.studio.models import AspectRatioType

SlotType = Literal["source", "style"]
GenerationStateType = Literal["idle", "preprocessing", "generating", "done", "failed"]


class ImageInfo(BaseModel):
    slot: SlotType
    previewHandle: str | None = None
    previewUrl: str | None = None
    mimeType: str
    filename: str | None = None
    size: int


class StyleDescriptionPayload(BaseModel):
    outfit: str = Field(default="", description="Outfit description")
    background: str = Field(default="", description="Background description")


class AspectRatioRequest(BaseModel):
    aspectRatio: AspectRatioType


class VariationPromptRequest(BaseModel):
    prompt: str = Field(..., description="Camera angle and expression for one variation")


class GenerationResponse(BaseModel):
    token: str
    state: GenerationStateType
    currentIndex: int | None = None
    aspectRatio: AspectRatioType
    images: List[str]
    mimeType: str = "image/png"
    error: str | None = None


class StudioStateResponse(BaseModel):
    source: ImageInfo | None = None
    style: ImageInfo | None = None
    outfit: str
    background: str
    aspectRatio: AspectRatioType
    variationPrompts: List[str]
    isAnalyzing: bool
    isGenerating: bool
    lastError: str | None = None
    session: GenerationResponse | None = None


class GalleryItemResponse(BaseModel):
    key: str
    label: str
    dataUrl: str
    previewHandle: str | None = None


class GalleryResponse(BaseModel):
    items: List[GalleryItemResponse]
    selected: str | None = None


class SelectionRequest(BaseModel):
    target: Literal["source"] | int = Field(..., description="'source' or a variation index")


class SelectionResponse(BaseModel):
    selected: str | None = None
