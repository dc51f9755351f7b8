"""Turn uploaded files into encoded images with releasable preview handles."""
from __future__ import annotations

import asyncio
import base64
import uuid
from dataclasses import dataclass

from portrait_studio.gateway.log_config import logger

from .errors import InvalidInputError
from .models import EncodedImage

INVALID_FILE_MESSAGE = "Vui lòng chọn một tệp hình ảnh."


@dataclass
class PreviewEntry:
    data: bytes
    mime_type: str


class PreviewRegistry:
    """Preview handles served back to the browser until released."""

    def __init__(self) -> None:
        self._entries: dict[str, PreviewEntry] = {}

    def allocate(self, data: bytes, mime_type: str) -> str:
        handle = uuid.uuid4().hex
        self._entries[handle] = PreviewEntry(data=data, mime_type=mime_type)
        return handle

    def get(self, handle: str) -> PreviewEntry | None:
        return self._entries.get(handle)

    def release(self, handle: str | None) -> bool:
        if not handle:
            return False
        if self._entries.pop(handle, None) is None:
            logger.warning("studio.preview release of unknown handle=%s", handle)
            return False
        return True

    def __contains__(self, handle: object) -> bool:
        return handle in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("utf-8")


async def ingest(
    registry: PreviewRegistry,
    data: bytes,
    content_type: str | None,
    filename: str | None = None,
) -> EncodedImage:
    """Validate an upload, base64-encode it and allocate its preview handle."""
    mime_type = (content_type or "").split(";", 1)[0].strip().lower()
    if not mime_type.startswith("image/") or not data:
        logger.info(
            "studio.ingest rejected filename=%s contentType=%s size=%d",
            filename,
            content_type,
            len(data),
        )
        raise InvalidInputError(INVALID_FILE_MESSAGE)

    payload = await asyncio.to_thread(_encode_base64, data)
    handle = registry.allocate(data, mime_type)
    logger.info(
        "studio.ingest accepted filename=%s mimeType=%s size=%d handle=%s",
        filename,
        mime_type,
        len(data),
        handle,
    )
    return EncodedImage(
        raw_bytes=data,
        base64=payload,
        mime_type=mime_type,
        preview_handle=handle,
        filename=filename,
    )


class ImageSlot:
    """Holds at most one image and releases its preview when superseded."""

    def __init__(self, name: str, registry: PreviewRegistry) -> None:
        self.name = name
        self._registry = registry
        self.image: EncodedImage | None = None

    def replace(self, image: EncodedImage | None) -> None:
        previous = self.image
        self.image = image
        if previous is not None and previous is not image:
            self._registry.release(previous.preview_handle)
            previous.preview_handle = None

    def remove(self) -> None:
        self.replace(None)

    @property
    def is_empty(self) -> bool:
        return self.image is None
