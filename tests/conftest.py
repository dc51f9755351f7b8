import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from portrait_studio.gateway.app import create_app
from portrait_studio.gateway.config import StudioConfig
from portrait_studio.studio.errors import AnalysisError, GenerationCallError
from portrait_studio.studio.models import StyleDescription


def make_png(size: tuple[int, int] = (40, 20), color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeStudioProvider:
    def __init__(
        self,
        fail_at: int | None = None,
        style: StyleDescription | None = None,
        analysis_error: Exception | None = None,
    ) -> None:
        self.fail_at = fail_at
        self.style = style or StyleDescription(outfit="áo dài lụa trắng", background="phố cổ Hội An")
        self.analysis_error = analysis_error
        self.analysis_calls = 0
        self.calls: list[dict] = []

    async def analyze_style(self, image):
        self.analysis_calls += 1
        if self.analysis_error is not None:
            raise self.analysis_error
        return self.style

    async def generate_variation(self, image, style, aspect_ratio, camera_angle):
        index = len(self.calls)
        self.calls.append(
            {
                "image": image,
                "style": style,
                "aspect_ratio": aspect_ratio,
                "camera_angle": camera_angle,
            }
        )
        if self.fail_at is not None and index == self.fail_at:
            raise GenerationCallError("Bị chặn bởi lý do an toàn hoặc lỗi khác: SAFETY")
        return base64.b64encode(f"variation-{index}".encode()).decode("utf-8")


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def fake_provider() -> FakeStudioProvider:
    return FakeStudioProvider()


@pytest.fixture
def app(fake_provider: FakeStudioProvider):
    config = StudioConfig(gemini_api_key="test-api-key")
    return create_app(config=config, provider=fake_provider)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def analysis_failure() -> AnalysisError:
    return AnalysisError("Không thể phân tích ảnh. Vui lòng thử lại.")


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def provider_factory():
    return FakeStudioProvider
