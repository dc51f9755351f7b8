import asyncio
import base64
from types import SimpleNamespace

import pytest

from portrait_studio.gateway import genai_helper
from portrait_studio.studio.errors import AnalysisError, GenerationCallError
from portrait_studio.studio.models import EncodedImage, StyleDescription
from portrait_studio.studio.provider import (
    GeminiStudioProvider,
    extract_variation_image,
    parse_style_description,
)

ANALYSIS_JSON = '{"outfit": "áo sơ mi lụa trắng", "background": "quán cà phê ánh nắng"}'


class _FakeInlineData:
    def __init__(self, data, mime_type: str = "image/png") -> None:
        self.data = data
        self.mime_type = mime_type


class _FakePart:
    def __init__(self, text: str | None = None, inline_data=None) -> None:
        self.text = text
        self.inline_data = inline_data
        self.thought = False


def _response(parts, finish_reason=None):
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=parts),
        finish_reason=finish_reason,
    )
    return SimpleNamespace(parts=None, candidates=[candidate])


class _FakeModels:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict] = []

    def generate_content(self, *, model: str, contents, config):  # noqa: ANN001
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_genai(monkeypatch):
    namespace = SimpleNamespace(
        types=SimpleNamespace(
            Part=SimpleNamespace(
                from_bytes=lambda **kwargs: {"inline": kwargs},
                from_text=lambda **kwargs: {"text": kwargs["text"]},
            ),
            Content=lambda **kwargs: kwargs,
            GenerateContentConfig=lambda **kwargs: kwargs,
        ),
    )
    monkeypatch.setattr(genai_helper, "genai", namespace)
    return namespace


@pytest.fixture
def image() -> EncodedImage:
    raw = b"jpeg-bytes"
    return EncodedImage(raw_bytes=raw, base64=base64.b64encode(raw).decode(), mime_type="image/jpeg")


def _provider(models: _FakeModels) -> GeminiStudioProvider:
    return GeminiStudioProvider(SimpleNamespace(models=models), "analysis-model", "image-model")


def test_fenced_and_plain_analysis_parse_identically() -> None:
    plain = parse_style_description(ANALYSIS_JSON)
    fenced = parse_style_description(f"```json\n{ANALYSIS_JSON}\n```")

    assert plain == fenced
    assert plain == StyleDescription(outfit="áo sơ mi lụa trắng", background="quán cà phê ánh nắng")


@pytest.mark.parametrize(
    "text",
    [None, "", "không phải JSON", "[1, 2]", '{"outfit": "x"}', '{"outfit": 1, "background": "y"}'],
)
def test_malformed_analysis_raises(text) -> None:
    with pytest.raises(AnalysisError) as exc_info:
        parse_style_description(text)
    assert exc_info.value.message == "Không thể phân tích ảnh. Vui lòng thử lại."


def test_analyze_style_sends_image_and_json_schema(fake_genai, image) -> None:
    models = _FakeModels(response=_response([_FakePart(text=f"```json\n{ANALYSIS_JSON}\n```")]))

    result = asyncio.run(_provider(models).analyze_style(image))

    assert result.outfit == "áo sơ mi lụa trắng"
    request = models.requests[0]
    assert request["model"] == "analysis-model"
    assert request["config"]["response_mime_type"] == "application/json"
    parts = request["contents"][0]["parts"]
    assert parts[0] == {"inline": {"data": b"jpeg-bytes", "mime_type": "image/jpeg"}}
    assert "outfit" in parts[-1]["text"]


def test_analyze_style_wraps_service_errors(fake_genai, image) -> None:
    models = _FakeModels(error=RuntimeError("network down"))

    with pytest.raises(AnalysisError):
        asyncio.run(_provider(models).analyze_style(image))


def test_generate_variation_returns_base64_image(fake_genai, image) -> None:
    inline = _FakeInlineData(b"fake-png-bytes")
    models = _FakeModels(response=_response([_FakePart(inline_data=inline)], finish_reason="STOP"))
    style = StyleDescription(outfit="áo dài đỏ", background="vườn hoa")

    result = asyncio.run(
        _provider(models).generate_variation(image, style, "3:4", "chính diện, mỉm cười")
    )

    assert result == base64.b64encode(b"fake-png-bytes").decode("utf-8")
    request = models.requests[0]
    assert request["model"] == "image-model"
    assert request["config"]["response_modalities"] == ["IMAGE", "TEXT"]
    prompt = request["contents"][0]["parts"][-1]["text"]
    assert "3:4" in prompt
    assert "chính diện, mỉm cười" in prompt
    assert "áo dài đỏ" in prompt
    assert "vườn hoa" in prompt
    assert "#00FF00" in prompt
    assert "Đây là yêu cầu quan trọng nhất." in prompt


def test_generate_variation_wraps_transport_errors(fake_genai, image) -> None:
    models = _FakeModels(error=RuntimeError("quota exceeded"))

    with pytest.raises(GenerationCallError) as exc_info:
        asyncio.run(_provider(models).generate_variation(image, StyleDescription("a", "b"), "1:1", "x"))
    assert exc_info.value.message == "quota exceeded"


def test_text_instead_of_image_is_a_generation_error() -> None:
    response = _response([_FakePart(text="Tôi không thể tạo ảnh này.")], finish_reason="STOP")

    with pytest.raises(GenerationCallError) as exc_info:
        extract_variation_image(response)
    assert "Tôi không thể tạo ảnh này." in exc_info.value.message


def test_blocked_response_reports_finish_reason() -> None:
    reason = SimpleNamespace(value="IMAGE_SAFETY")
    response = _response([], finish_reason=reason)

    with pytest.raises(GenerationCallError) as exc_info:
        extract_variation_image(response)
    assert exc_info.value.message.endswith("IMAGE_SAFETY")


def test_empty_response_reports_no_image() -> None:
    with pytest.raises(GenerationCallError) as exc_info:
        extract_variation_image(SimpleNamespace(parts=None, candidates=[]))
    assert exc_info.value.message == "Không có ảnh nào được tạo trong phản hồi."


def test_first_image_part_wins() -> None:
    parts = [
        _FakePart(text="caption"),
        _FakePart(inline_data=_FakeInlineData("Zmlyc3Q=")),
        _FakePart(inline_data=_FakeInlineData(b"second")),
    ]

    assert extract_variation_image(_response(parts)) == "Zmlyc3Q="
