"""Sequential generation of the nine portrait variations."""
from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable, Coroutine

from portrait_studio.gateway.log_config import logger

from .errors import MissingFieldError, StudioError, wrap_error
from .models import (
    VARIATION_COUNT,
    EncodedImage,
    GenerationSession,
    GenerationState,
    StyleDescription,
    VariationOutcome,
)
from .preprocess import decode_image, preprocess
from .provider import StudioProvider

MISSING_SOURCE_MESSAGE = "Vui lòng tải ảnh gốc."
MISSING_STYLE_MESSAGE = "Vui lòng phân tích ảnh hoặc điền mô tả trang phục và bối cảnh."

ProgressCallback = Callable[[str, str], Coroutine[Any, Any, None]]


async def _noop_progress(stage: str, message: str) -> None:
    pass


def missing_prompt_message(index: int) -> str:
    return f"Vui lòng điền mô tả cho Biến thể {index + 1}."


def check_preconditions(source_image: EncodedImage | None, style: StyleDescription) -> None:
    if source_image is None:
        raise MissingFieldError(MISSING_SOURCE_MESSAGE)
    if not style.is_complete():
        raise MissingFieldError(MISSING_STYLE_MESSAGE)


class VariationOrchestrator:
    """Drives one generation session through its states.

    IDLE -> PREPROCESSING -> GENERATING(i) -> DONE | FAILED(i). Images are
    appended to ``session.produced_images`` and yielded as soon as each call
    returns; a failed call ends the run but keeps what was produced.
    """

    def __init__(self, provider: StudioProvider, count: int = VARIATION_COUNT) -> None:
        self.provider = provider
        self.count = count

    def _fail(self, session: GenerationSession, error: StudioError) -> None:
        session.state = GenerationState.FAILED
        session.last_error = error.message

    async def _prepare(self, session: GenerationSession) -> EncodedImage:
        assert session.source_image is not None
        session.state = GenerationState.PREPROCESSING
        decoded = await asyncio.to_thread(decode_image, session.source_image.raw_bytes)
        return await asyncio.to_thread(preprocess, decoded, session.aspect_ratio)

    async def run(
        self,
        session: GenerationSession,
        on_progress: ProgressCallback | None = None,
    ) -> AsyncIterator[VariationOutcome]:
        report_progress = on_progress or _noop_progress
        session.produced_images = []
        session.last_error = None
        session.current_index = None

        try:
            check_preconditions(session.source_image, session.style)
            await report_progress("preprocess", "Đang chuẩn bị ảnh gốc")
            prepared = await self._prepare(session)
        except Exception as exc:
            error = wrap_error(exc)
            self._fail(session, error)
            logger.warning("studio.generate aborted token=%s error=%s", session.token, error.message)
            if error is exc:
                raise
            raise error from exc

        session.state = GenerationState.GENERATING
        for index in range(self.count):
            session.current_index = index
            camera_angle = session.prompts[index].strip() if index < len(session.prompts) else ""
            if not camera_angle:
                error = MissingFieldError(missing_prompt_message(index), index=index)
                self._fail(session, error)
                logger.info("studio.generate missing prompt token=%s index=%d", session.token, index)
                yield VariationOutcome(index=index, error=error)
                return

            await report_progress("generate", f"Đang tạo biến thể {index + 1}/{self.count}")
            try:
                image_base64 = await self.provider.generate_variation(
                    prepared,
                    session.style,
                    session.aspect_ratio,
                    camera_angle,
                )
            except Exception as exc:
                error = wrap_error(exc)
                self._fail(session, error)
                logger.error(
                    "studio.generate variation failed token=%s index=%d produced=%d error=%s",
                    session.token,
                    index,
                    len(session.produced_images),
                    error.message,
                )
                yield VariationOutcome(index=index, error=error)
                return

            session.produced_images.append(image_base64)
            logger.info(
                "studio.generate variation done token=%s index=%d size=%d",
                session.token,
                index,
                len(image_base64),
            )
            yield VariationOutcome(index=index, image_base64=image_base64)

        session.state = GenerationState.DONE
        session.current_index = None
        await report_progress("complete", "Hoàn tất")
