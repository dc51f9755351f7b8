"""Source and generated images shown to the user, with click-to-enlarge."""
from __future__ import annotations

from dataclasses import dataclass

from portrait_studio.gateway.log_config import logger

from .models import EncodedImage

SOURCE_KEY = "source"
GENERATED_MIME_TYPE = "image/png"


@dataclass
class GalleryItem:
    key: str
    label: str
    data_url: str
    preview_handle: str | None = None


class ResultGallery:
    """Shows the current session only; late images from older sessions are dropped."""

    def __init__(self) -> None:
        self.token: str | None = None
        self.source: EncodedImage | None = None
        self.images: list[str] = []
        self.selected: str | None = None

    def set_source(self, source: EncodedImage | None) -> None:
        self.source = source

    def reset(self, token: str, source: EncodedImage | None) -> None:
        self.token = token
        self.source = source
        self.images = []
        self.selected = None

    def append(self, token: str, image_base64: str) -> bool:
        if token != self.token:
            logger.info("studio.gallery dropped stale image token=%s current=%s", token, self.token)
            return False
        self.images.append(image_base64)
        return True

    def items(self) -> list[GalleryItem]:
        items: list[GalleryItem] = []
        if self.source is not None:
            items.append(
                GalleryItem(
                    key=SOURCE_KEY,
                    label="Gốc",
                    data_url=self.source.data_url,
                    preview_handle=self.source.preview_handle,
                )
            )
        for index, image_base64 in enumerate(self.images):
            items.append(
                GalleryItem(
                    key=str(index),
                    label=f"Biến thể {index + 1}",
                    data_url=f"data:{GENERATED_MIME_TYPE};base64,{image_base64}",
                )
            )
        return items

    def select(self, target: str | int) -> str:
        """Open the viewer on ``target`` (``"source"`` or a variation index)."""
        if target == SOURCE_KEY:
            if self.source is None:
                raise LookupError("No source image to show")
            self.selected = self.source.data_url
            return self.selected
        index = int(target)
        if index < 0 or index >= len(self.images):
            raise LookupError(f"No generated image at index {index}")
        self.selected = f"data:{GENERATED_MIME_TYPE};base64,{self.images[index]}"
        return self.selected

    def close(self) -> None:
        self.selected = None
