"""Shared test fixtures for form extractor tests."""

import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import ProviderRequestError
from models import RawExtraction
from rasterizer import PageImage, UploadedFile


@pytest.fixture(autouse=True)
def no_provider_keys(monkeypatch):
    """Start every test without credentials from the developer's shell."""
    for name in ("OPENAI_API_KEY", "GEMINI_API_KEY", "CLAUDE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Generate a minimal valid PNG form image for testing."""
    import cv2

    img = np.zeros((300, 200, 3), dtype=np.uint8)
    img[:] = (240, 240, 240)  # Light gray background

    # Dark rectangles simulate labels and input boxes
    cv2.rectangle(img, (20, 30), (180, 50), (30, 30, 30), -1)
    cv2.rectangle(img, (20, 70), (160, 90), (30, 30, 30), -1)

    _, buf = cv2.imencode(".png", img)
    return buf.tobytes()


@pytest.fixture
def wide_image_bytes() -> bytes:
    import cv2

    img = np.zeros((1000, 3000, 3), dtype=np.uint8)
    img[:] = (200, 200, 200)
    _, buf = cv2.imencode(".jpg", img)
    return buf.tobytes()


def make_pdf(pages: int) -> bytes:
    import fitz

    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page(width=300, height=400)
        page.insert_text((40, 60), f"Application form - page {number}")
        page.insert_text((40, 100), "Name: ____________")
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def three_page_pdf() -> bytes:
    return make_pdf(3)


@pytest.fixture
def one_page_pdf() -> bytes:
    return make_pdf(1)


@pytest.fixture
def image_upload(sample_image_bytes: bytes) -> UploadedFile:
    return UploadedFile(filename="form.png", data=sample_image_bytes, media_type="image/png")


@pytest.fixture
def pdf_upload(three_page_pdf: bytes) -> UploadedFile:
    return UploadedFile(filename="application.pdf", data=three_page_pdf, media_type="application/pdf")


@pytest.fixture
def page_image() -> PageImage:
    return PageImage(page=1, data=b"\x89PNG fake", media_type="image/png", width=100, height=150)


@pytest.fixture
def mock_form_response() -> str:
    """Mock model output for a two-field form."""
    return json.dumps({
        "fields": [
            {
                "label": "Full Name",
                "value": "Max Mustermann",
                "type": "text",
                "confidence": 0.95,
                "boundingBox": {"x": 0.1, "y": 0.1, "width": 0.5, "height": 0.05},
            },
            {
                "label": "Date of Birth",
                "value": "1990-01-15",
                "type": "date",
                "confidence": 0.9,
                "boundingBox": {"x": 0.1, "y": 0.2, "width": 0.4, "height": 0.05},
            },
        ],
        "formTitle": "Membership Application",
    })


@pytest.fixture
def mock_markdown_response(mock_form_response: str) -> str:
    return f"Here are the fields I found:\n```json\n{mock_form_response}\n```\nLet me know if you need more."


def raw_page(title: str | None, labels: list[str]) -> RawExtraction:
    return RawExtraction.model_validate({
        "formTitle": title,
        "fields": [{"label": label, "value": f"{label} value", "type": "text", "confidence": 0.9}
                   for label in labels],
    })


class FakeProvider:
    """Scripted VisionProvider: returns (or raises) one item per call."""

    def __init__(self, key="fake", name="Fake Vision", responses=None, configured=True):
        self.key = key
        self.name = name
        self.description = "Scripted provider for tests"
        self.cost = "Free"
        self.api_key_env = f"{key.upper()}_API_KEY"
        self.configured = configured
        self.responses = list(responses or [])
        self.calls: list[PageImage] = []
        self.on_call = None
        self.closed = False

    def is_configured(self) -> bool:
        return self.configured

    async def extract(self, image: PageImage) -> RawExtraction:
        self.calls.append(image)
        if self.on_call is not None:
            self.on_call(image)
        if not self.responses:
            raise ProviderRequestError("no scripted response", provider=self.name)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True
