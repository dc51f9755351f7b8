"""Pad a portrait with chroma green so it matches a target aspect ratio."""
from __future__ import annotations

import base64
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from portrait_studio.gateway.log_config import logger

from .errors import PreprocessError
from .models import AspectRatioType, EncodedImage, parse_aspect_ratio

CHROMA_KEY_COLOR = (0, 255, 0)
OUTPUT_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 95

LOAD_FAILED_MESSAGE = "Không thể tải ảnh gốc để xử lý."
PREPROCESS_FAILED_MESSAGE = "Không thể chuẩn bị ảnh gốc theo tỉ lệ khung hình."


def decode_image(data: bytes) -> Image.Image:
    """Decode image bytes fully, upright as a browser would display them."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("studio.preprocess decode failed: %s", exc)
        raise PreprocessError(LOAD_FAILED_MESSAGE) from exc


def compute_canvas_size(width: int, height: int, aspect_ratio: AspectRatioType) -> tuple[int, int]:
    """Grow one side of ``width`` x ``height`` until it matches the ratio.

    The canvas never shrinks below the source on either axis.
    """
    ratio_w, ratio_h = parse_aspect_ratio(aspect_ratio)
    target_ratio = ratio_w / ratio_h
    image_ratio = width / height
    if image_ratio > target_ratio:
        canvas_width = width
        canvas_height = max(height, round(width / target_ratio))
    else:
        canvas_width = max(width, round(height * target_ratio))
        canvas_height = height
    return canvas_width, canvas_height


def compute_offset(canvas_size: tuple[int, int], image_size: tuple[int, int]) -> tuple[int, int]:
    return (
        (canvas_size[0] - image_size[0]) // 2,
        (canvas_size[1] - image_size[1]) // 2,
    )


def pad_to_aspect_ratio(image: Image.Image, aspect_ratio: AspectRatioType) -> Image.Image:
    """Return an RGB canvas with ``image`` centred, unscaled, on chroma green."""
    width, height = image.size
    if width <= 0 or height <= 0:
        raise PreprocessError(PREPROCESS_FAILED_MESSAGE)
    canvas_size = compute_canvas_size(width, height, aspect_ratio)
    offset = compute_offset(canvas_size, image.size)

    canvas = Image.new("RGB", canvas_size, CHROMA_KEY_COLOR)
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas.paste(rgba, offset, mask=rgba)
    else:
        canvas.paste(image.convert("RGB"), offset)
    return canvas


def encode_jpeg(canvas: Image.Image) -> bytes:
    output = io.BytesIO()
    canvas.save(output, format="JPEG", quality=JPEG_QUALITY)
    return output.getvalue()


def preprocess(image: Image.Image, aspect_ratio: AspectRatioType) -> EncodedImage:
    try:
        canvas = pad_to_aspect_ratio(image, aspect_ratio)
        jpeg_bytes = encode_jpeg(canvas)
    except PreprocessError:
        raise
    except (OSError, ValueError) as exc:
        logger.error("studio.preprocess failed aspectRatio=%s error=%s", aspect_ratio, exc)
        raise PreprocessError(PREPROCESS_FAILED_MESSAGE) from exc

    logger.info(
        "studio.preprocess source=%dx%d canvas=%dx%d aspectRatio=%s bytes=%d",
        image.size[0],
        image.size[1],
        canvas.size[0],
        canvas.size[1],
        aspect_ratio,
        len(jpeg_bytes),
    )
    return EncodedImage(
        raw_bytes=jpeg_bytes,
        base64=base64.b64encode(jpeg_bytes).decode("utf-8"),
        mime_type=OUTPUT_MIME_TYPE,
        filename="preprocessed_image.jpeg",
    )
