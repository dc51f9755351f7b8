import base64
import io

import pytest
from PIL import Image

from portrait_studio.studio.errors import PreprocessError
from portrait_studio.studio.models import ASPECT_RATIOS, parse_aspect_ratio
from portrait_studio.studio.preprocess import (
    CHROMA_KEY_COLOR,
    compute_canvas_size,
    compute_offset,
    decode_image,
    pad_to_aspect_ratio,
    preprocess,
)

SOURCE_SIZES = [(40, 20), (20, 40), (37, 23), (300, 300), (1001, 100), (97, 1000)]


def _patterned_image(size: tuple[int, int]) -> Image.Image:
    width, height = size
    image = Image.new("RGB", size)
    image.putdata(
        [((x * 7) % 256, (y * 11) % 256, (x + y) % 256) for y in range(height) for x in range(width)]
    )
    return image


@pytest.mark.parametrize("aspect_ratio", ASPECT_RATIOS)
@pytest.mark.parametrize("size", SOURCE_SIZES)
def test_canvas_matches_ratio_and_contains_source(size, aspect_ratio) -> None:
    width, height = size
    canvas_width, canvas_height = compute_canvas_size(width, height, aspect_ratio)
    ratio_w, ratio_h = parse_aspect_ratio(aspect_ratio)
    target = ratio_w / ratio_h

    assert canvas_width >= width
    assert canvas_height >= height
    # One axis keeps the source size, the other is rounded to whole pixels.
    assert canvas_width == width or canvas_height == height
    assert (
        abs(canvas_height - canvas_width / target) <= 0.5
        or abs(canvas_width - canvas_height * target) <= 0.5
    )


@pytest.mark.parametrize("aspect_ratio", ASPECT_RATIOS)
@pytest.mark.parametrize("size", SOURCE_SIZES)
def test_source_pixels_are_centred_and_unscaled(size, aspect_ratio) -> None:
    source = _patterned_image(size)
    canvas = pad_to_aspect_ratio(source, aspect_ratio)
    left, top = compute_offset(canvas.size, source.size)

    region = canvas.crop((left, top, left + source.width, top + source.height))
    assert region.tobytes() == source.tobytes()


def test_padding_is_chroma_green() -> None:
    source = Image.new("RGB", (40, 20), (200, 30, 30))
    canvas = pad_to_aspect_ratio(source, "1:1")

    assert canvas.size == (40, 40)
    assert canvas.getpixel((0, 9)) == CHROMA_KEY_COLOR
    assert canvas.getpixel((0, 10)) == (200, 30, 30)
    assert canvas.getpixel((39, 29)) == (200, 30, 30)
    assert canvas.getpixel((39, 30)) == CHROMA_KEY_COLOR


def test_transparent_source_pixels_show_chroma_fill() -> None:
    source = Image.new("RGBA", (10, 10), (0, 0, 255, 255))
    source.putpixel((0, 0), (0, 0, 0, 0))
    canvas = pad_to_aspect_ratio(source, "16:9")
    left, top = compute_offset(canvas.size, source.size)

    assert canvas.mode == "RGB"
    assert canvas.getpixel((left, top)) == CHROMA_KEY_COLOR
    assert canvas.getpixel((left + 1, top + 1)) == (0, 0, 255)


def test_matching_ratio_leaves_canvas_unchanged() -> None:
    source = _patterned_image((160, 90))
    canvas = pad_to_aspect_ratio(source, "16:9")

    assert canvas.size == (160, 90)
    assert canvas.tobytes() == source.tobytes()


def test_preprocess_encodes_jpeg_payload() -> None:
    source = Image.new("RGB", (30, 60), (10, 120, 200))
    result = preprocess(source, "3:4")

    assert result.mime_type == "image/jpeg"
    assert base64.b64decode(result.base64) == result.raw_bytes
    with Image.open(io.BytesIO(result.raw_bytes)) as decoded:
        assert decoded.format == "JPEG"
        assert decoded.size == (45, 60)


def test_decode_image_rejects_garbage() -> None:
    with pytest.raises(PreprocessError) as exc_info:
        decode_image(b"definitely not an image")
    assert exc_info.value.message == "Không thể tải ảnh gốc để xử lý."


def test_exif_orientation_is_applied_before_padding() -> None:
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 degrees clockwise to display
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), (200, 30, 30)).save(buffer, format="JPEG", exif=exif)

    decoded = decode_image(buffer.getvalue())
    canvas = pad_to_aspect_ratio(decoded, "9:16")

    assert decoded.size == (20, 40)
    assert canvas.size == compute_canvas_size(20, 40, "9:16")
    assert canvas.size[1] == 40
