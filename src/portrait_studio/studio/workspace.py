"""Per-process studio state: uploads, editable fields and the current session."""
from __future__ import annotations

from typing import Any, Callable, Coroutine

from portrait_studio.gateway.log_config import logger

from .errors import InvalidInputError, MissingFieldError, StudioError
from .gallery import ResultGallery
from .ingestion import ImageSlot, PreviewRegistry
from .models import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_VARIATION_PROMPTS,
    VARIATION_COUNT,
    AspectRatioType,
    EncodedImage,
    GenerationSession,
    GenerationState,
    StyleDescription,
    VariationOutcome,
)
from .orchestrator import ProgressCallback, VariationOrchestrator

SOURCE_SLOT = "source"
STYLE_SLOT = "style"
GENERATION_ERROR_PREFIX = "Lỗi tạo biến thể ảnh:"

OutcomeCallback = Callable[[VariationOutcome], Coroutine[Any, Any, None]]


class Workspace:
    def __init__(self) -> None:
        self.previews = PreviewRegistry()
        self.slots: dict[str, ImageSlot] = {
            SOURCE_SLOT: ImageSlot(SOURCE_SLOT, self.previews),
            STYLE_SLOT: ImageSlot(STYLE_SLOT, self.previews),
        }
        self.style = StyleDescription()
        self.aspect_ratio: AspectRatioType = DEFAULT_ASPECT_RATIO
        self.variation_prompts: list[str] = list(DEFAULT_VARIATION_PROMPTS)
        self.gallery = ResultGallery()
        self.session: GenerationSession | None = None
        self.last_error: str | None = None
        self.is_analyzing = False

    @property
    def is_generating(self) -> bool:
        return (
            self.session is not None
            and self.session.state in (GenerationState.PREPROCESSING, GenerationState.GENERATING)
        )

    def slot(self, name: str) -> ImageSlot:
        try:
            return self.slots[name]
        except KeyError:
            raise LookupError(f"Unknown image slot: {name}") from None

    @property
    def source_image(self) -> EncodedImage | None:
        return self.slots[SOURCE_SLOT].image

    @property
    def style_image(self) -> EncodedImage | None:
        return self.slots[STYLE_SLOT].image

    def set_image(self, name: str, image: EncodedImage | None) -> None:
        self.slot(name).replace(image)
        if name == SOURCE_SLOT:
            self.gallery.set_source(image)

    def set_aspect_ratio(self, value: str) -> None:
        if value not in ASPECT_RATIOS:
            raise InvalidInputError(f"Tỉ lệ khung hình không hợp lệ: {value}")
        self.aspect_ratio = value  # type: ignore[assignment]

    def set_variation_prompt(self, index: int, value: str) -> None:
        if index < 0 or index >= VARIATION_COUNT:
            raise LookupError(f"No variation prompt at index {index}")
        self.variation_prompts[index] = value

    def reset_variation_prompts(self) -> None:
        self.variation_prompts = list(DEFAULT_VARIATION_PROMPTS)

    def start_session(self) -> GenerationSession:
        """Snapshot the editable fields into a new session that supersedes the last."""
        session = GenerationSession(
            source_image=self.source_image,
            style=StyleDescription(self.style.outfit, self.style.background),
            aspect_ratio=self.aspect_ratio,
            prompts=list(self.variation_prompts),
        )
        self.session = session
        self.last_error = None
        self.gallery.reset(session.token, self.source_image)
        return session

    def is_current(self, session: GenerationSession) -> bool:
        return self.session is not None and self.session.token == session.token

    def record_error(self, message: str) -> None:
        self.last_error = message

    async def run_generation(
        self,
        orchestrator: VariationOrchestrator,
        session: GenerationSession,
        on_progress: ProgressCallback | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> GenerationSession:
        """Run ``session`` and publish its outcomes while it is still current.

        A run that has been superseded stops at its next outcome and its
        late images never reach the gallery.
        """
        outcomes = orchestrator.run(session, on_progress=on_progress)
        try:
            async for outcome in outcomes:
                if not self.is_current(session):
                    logger.info("studio.generate superseded token=%s", session.token)
                    break
                if outcome.image_base64 is not None:
                    self.gallery.append(session.token, outcome.image_base64)
                elif outcome.error is not None:
                    self.record_error(outcome_error_message(outcome.error))
                if on_outcome is not None:
                    await on_outcome(outcome)
        except StudioError as exc:
            if self.is_current(session):
                self.record_error(exc.message)
            raise
        finally:
            await outcomes.aclose()
            if not session.finished:
                session.state = GenerationState.FAILED
        return session


def outcome_error_message(error: StudioError) -> str:
    if isinstance(error, MissingFieldError):
        return error.message
    return f"{GENERATION_ERROR_PREFIX}\n{error.message}"
