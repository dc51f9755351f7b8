"""Common helper functions for Google GenAI requests made by the studio."""
from __future__ import annotations

import base64
from typing import Any

from google import genai

from portrait_studio.gateway.config import StudioConfig, get_gemini_api_key
from portrait_studio.gateway.log_config import logger
from portrait_studio.studio.models import EncodedImage


def create_genai_client(config: StudioConfig) -> Any:
    """Create and return a genai Client instance."""
    api_key_value = get_gemini_api_key(config)
    return genai.Client(api_key=api_key_value)


def create_inline_part(image: EncodedImage) -> Any:
    return genai.types.Part.from_bytes(data=image.raw_bytes, mime_type=image.mime_type)


def build_multimodal_contents(prompt: str, images: list[EncodedImage]) -> list[Any]:
    """Build contents with the images first and the text prompt last."""
    parts: list[Any] = [create_inline_part(image) for image in images]
    parts.append(genai.types.Part.from_text(text=prompt))
    return [genai.types.Content(role="user", parts=parts)]


def build_json_content_config(response_schema: dict[str, Any]) -> Any:
    return genai.types.GenerateContentConfig(
        response_mime_type="application/json",
        response_schema=response_schema,
        candidate_count=1,
    )


def build_image_content_config() -> Any:
    return genai.types.GenerateContentConfig(
        response_modalities=["IMAGE", "TEXT"],
        candidate_count=1,
    )


def generate_multimodal_content(
    client: Any,
    model: str,
    contents: list[Any],
    config: Any,
) -> Any:
    """Blocking generate_content call; run it off the event loop."""
    logger.info("generate_multimodal_content: model=%s", model)
    return client.models.generate_content(
        model=model,
        contents=contents,
        config=config,
    )


def get_first_candidate(response: Any) -> Any | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    return candidates[0]


def get_response_parts(response: Any) -> list[Any]:
    parts = getattr(response, "parts", None) or []
    if parts:
        return parts
    candidate = get_first_candidate(response)
    if candidate is None:
        return []
    content = getattr(candidate, "content", None)
    return getattr(content, "parts", None) or []


def get_finish_reason(response: Any) -> str | None:
    candidate = get_first_candidate(response)
    if candidate is None:
        return None
    reason = getattr(candidate, "finish_reason", None)
    if reason is None:
        return None
    value = getattr(reason, "value", reason)
    return str(value)


def extract_text_from_parts(parts: list[Any]) -> str:
    fragments: list[str] = []
    for part in parts:
        if getattr(part, "thought", False):
            continue
        text_value = getattr(part, "text", None)
        if isinstance(text_value, str) and text_value.strip():
            fragments.append(text_value.strip())
    return "\n".join(fragments).strip()


def extract_first_image(parts: list[Any]) -> tuple[str | None, str | None]:
    """Return the base64 payload and mime type of the first inline image part."""
    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is None:
            continue
        mime_type = getattr(inline_data, "mime_type", None)
        data = getattr(inline_data, "data", None)
        if not data or not isinstance(mime_type, str) or not mime_type.startswith("image/"):
            continue
        if isinstance(data, (bytes, bytearray)):
            return base64.b64encode(bytes(data)).decode("utf-8"), mime_type
        if isinstance(data, str):
            return data, mime_type
    return None, None
