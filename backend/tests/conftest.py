"""Shared test fixtures."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image


def make_image(size=(8, 6), color=(200, 40, 40), mode="RGB") -> Image.Image:
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 255)
    return Image.new(mode, size, color)


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def png_data_uri(img: Image.Image) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes(img)).decode("ascii")


def decode_data_uri(uri: str) -> Image.Image:
    payload = uri.split(",", 1)[1]
    return Image.open(io.BytesIO(base64.b64decode(payload)))


# Sample images

RED_PNG = png_data_uri(make_image(color=(200, 40, 40)))
BLUE_PNG = png_data_uri(make_image(color=(20, 40, 220)))
WHITE_MASK = png_data_uri(make_image(color=255, mode="L"))
BLACK_MASK = png_data_uri(make_image(color=0, mode="L"))

SCENE_JSON = """{
  "elements": [
    {"id": "element_1", "label": "red coffee mug", "category": "object",
     "position": "center", "size": "medium", "confidence": 0.92,
     "boundingBox": {"x": 30, "y": 30, "width": 20, "height": 25}},
    {"id": "element_2", "label": "Acme logo", "category": "logo",
     "position": "bottom-right", "size": "small", "confidence": 0.81}
  ],
  "lighting": {"type": "natural", "direction": "side", "quality": "soft", "colorTemperature": "warm"},
  "style": "photograph",
  "suggestedEdits": ["Remove the logo"]
}"""

PLAN_JSON = """{
  "operations": [
    {"type": "remove", "target": "Acme logo", "targetPosition": "bottom-right"},
    {"type": "upscale", "parameters": {"scale": 2}}
  ],
  "reasoning": "Remove the logo, then sharpen.",
  "confidence": 0.9
}"""


@pytest.fixture
def red_png() -> str:
    return RED_PNG


@pytest.fixture
def blue_png() -> str:
    return BLUE_PNG


@pytest.fixture
def no_sleep():
    """Records requested delays instead of sleeping."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep
