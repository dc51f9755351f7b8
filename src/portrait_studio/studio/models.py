"""Domain types shared by ingestion, preprocessing and orchestration."""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Literal, get_args

from .errors import StudioError

AspectRatioType = Literal["1:1", "3:4", "16:9", "9:16"]
ASPECT_RATIOS: tuple[str, ...] = get_args(AspectRatioType)
DEFAULT_ASPECT_RATIO: AspectRatioType = "1:1"

VARIATION_COUNT = 9

DEFAULT_VARIATION_PROMPTS: tuple[str, ...] = (
    "chính diện, biểu cảm chuyên nghiệp, nhìn thẳng ống kính",
    "chính diện, mỉm cười nhẹ nhàng, thân thiện",
    "chính diện, biểu cảm tự tin, hơi ngẩng cao đầu",
    "góc nghiêng 3/4 từ bên trái, ánh mắt nhìn xa xăm",
    "góc nghiêng 3/4 từ bên phải, mỉm cười duyên dáng",
    "chụp từ góc thấp hướng lên, biểu cảm quyền lực",
    "chụp từ góc cao hướng xuống, biểu cảm suy tư",
    "hồ sơ bên (profile view) từ trái, đường nét sắc sảo",
    "góc nghiêng nhẹ, nhìn qua vai, biểu cảm bí ẩn",
)


def parse_aspect_ratio(value: str) -> tuple[int, int]:
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid aspect ratio: {value!r}")
    width = int(parts[0])
    height = int(parts[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid aspect ratio: {value!r}")
    return width, height


@dataclass
class EncodedImage:
    """Image bytes together with their base64 form and preview handle.

    ``base64`` always encodes ``raw_bytes`` and ``mime_type`` describes them.
    """

    raw_bytes: bytes
    base64: str
    mime_type: str
    preview_handle: str | None = None
    filename: str | None = None

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


@dataclass
class StyleDescription:
    outfit: str = ""
    background: str = ""

    def is_complete(self) -> bool:
        return bool(self.outfit.strip()) and bool(self.background.strip())


class GenerationState(str, enum.Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    GENERATING = "generating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class VariationOutcome:
    """One step of a generation run: an image payload or the error that ended it."""

    index: int
    image_base64: str | None = None
    error: StudioError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GenerationSession:
    source_image: EncodedImage | None
    style: StyleDescription
    aspect_ratio: AspectRatioType
    prompts: list[str]
    produced_images: list[str] = field(default_factory=list)
    last_error: str | None = None
    state: GenerationState = GenerationState.IDLE
    current_index: int | None = None
    token: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def finished(self) -> bool:
        return self.state in (GenerationState.DONE, GenerationState.FAILED)
