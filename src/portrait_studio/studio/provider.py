"""Capability interface to the external AI service and its Gemini adapter."""
from __future__ import annotations

import asyncio
from typing import Any, Protocol

from portrait_studio.gateway import genai_helper
from portrait_studio.gateway.config import StudioConfig
from portrait_studio.gateway.log_config import logger

from .errors import AnalysisError, GenerationCallError, StudioError, UnknownError
from .models import AspectRatioType, EncodedImage, StyleDescription
from .parser import parse_json
from .prompt import STYLE_ANALYSIS_INSTRUCTION, STYLE_ANALYSIS_SCHEMA, build_variation_prompt

ANALYSIS_FAILED_MESSAGE = "Không thể phân tích ảnh. Vui lòng thử lại."
NO_IMAGE_MESSAGE = "Không có ảnh nào được tạo trong phản hồi."
GENERATION_UNKNOWN_MESSAGE = "Một lỗi không xác định đã xảy ra khi tạo ảnh."


class StudioProvider(Protocol):
    async def analyze_style(self, image: EncodedImage) -> StyleDescription: ...

    async def generate_variation(
        self,
        image: EncodedImage,
        style: StyleDescription,
        aspect_ratio: AspectRatioType,
        camera_angle: str,
    ) -> str: ...


def parse_style_description(text: str | None) -> StyleDescription:
    """Parse the analysis answer, tolerating a markdown code fence."""
    parsed = parse_json(text)
    if not isinstance(parsed, dict):
        raise AnalysisError(ANALYSIS_FAILED_MESSAGE)
    outfit = parsed.get("outfit")
    background = parsed.get("background")
    if not isinstance(outfit, str) or not isinstance(background, str):
        raise AnalysisError(ANALYSIS_FAILED_MESSAGE)
    return StyleDescription(outfit=outfit.strip(), background=background.strip())


def extract_variation_image(response: Any) -> str:
    """Return the generated image payload or raise why there is none."""
    parts = genai_helper.get_response_parts(response)
    image_base64, _ = genai_helper.extract_first_image(parts)
    if image_base64:
        return image_base64

    text = genai_helper.extract_text_from_parts(parts)
    if text:
        raise GenerationCallError(f'AI trả về tin nhắn văn bản thay vì ảnh: "{text}"')

    finish_reason = genai_helper.get_finish_reason(response)
    if finish_reason and finish_reason.upper() != "STOP":
        raise GenerationCallError(f"Bị chặn bởi lý do an toàn hoặc lỗi khác: {finish_reason}")

    raise GenerationCallError(NO_IMAGE_MESSAGE)


class GeminiStudioProvider:
    """Runs analysis and variation calls against the Gemini API."""

    def __init__(self, client: Any, analysis_model: str, image_model: str) -> None:
        self._client = client
        self.analysis_model = analysis_model
        self.image_model = image_model

    @classmethod
    def from_config(cls, config: StudioConfig) -> "GeminiStudioProvider":
        client = genai_helper.create_genai_client(config)
        return cls(client, config.analysis_model, config.image_model)

    async def analyze_style(self, image: EncodedImage) -> StyleDescription:
        contents = genai_helper.build_multimodal_contents(STYLE_ANALYSIS_INSTRUCTION, [image])
        content_config = genai_helper.build_json_content_config(STYLE_ANALYSIS_SCHEMA)
        try:
            response = await asyncio.to_thread(
                genai_helper.generate_multimodal_content,
                self._client,
                self.analysis_model,
                contents,
                content_config,
            )
        except Exception as exc:
            logger.error("studio.analyze failed model=%s error=%s", self.analysis_model, exc)
            raise AnalysisError(ANALYSIS_FAILED_MESSAGE) from exc

        text = genai_helper.extract_text_from_parts(genai_helper.get_response_parts(response))
        try:
            return parse_style_description(text)
        except AnalysisError:
            logger.error(
                "studio.analyze invalid JSON response: %s",
                text[:500] if text else "empty",
            )
            raise

    async def generate_variation(
        self,
        image: EncodedImage,
        style: StyleDescription,
        aspect_ratio: AspectRatioType,
        camera_angle: str,
    ) -> str:
        prompt = build_variation_prompt(style, aspect_ratio, camera_angle)
        contents = genai_helper.build_multimodal_contents(prompt, [image])
        content_config = genai_helper.build_image_content_config()
        try:
            response = await asyncio.to_thread(
                genai_helper.generate_multimodal_content,
                self._client,
                self.image_model,
                contents,
                content_config,
            )
            return extract_variation_image(response)
        except StudioError:
            raise
        except Exception as exc:
            logger.error("studio.generate failed model=%s error=%s", self.image_model, exc)
            message = str(exc).strip()
            if message:
                raise GenerationCallError(message) from exc
            raise UnknownError(GENERATION_UNKNOWN_MESSAGE) from exc
