"""Mask compositor: confine a generative edit to the masked region."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
import numpy as np
from PIL import Image

from pixeldirector.engine.images import encode_png, load_pil, to_data_uri

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositeResult:
    image: Image.Image
    png: bytes

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.png, "image/png")


def _original_rgba(original: Image.Image) -> np.ndarray:
    if original.mode == "RGBA":
        return np.asarray(original, dtype=np.float64)
    if original.mode in ("LA", "PA") or (original.mode == "P" and "transparency" in original.info):
        return np.asarray(original.convert("RGBA"), dtype=np.float64)
    rgba = np.asarray(original.convert("RGBA"), dtype=np.float64).copy()
    rgba[..., 3] = 255.0
    return rgba


def composite(original: Image.Image, edited: Image.Image, mask: Image.Image) -> CompositeResult:
    """Blend ``edited`` into ``original`` weighted by ``mask``.

    ``edited`` and ``mask`` are resampled to the original's size first. Mask
    255 takes the edited pixel, 0 keeps the original, anything between is a
    linear blend rounded half-up. Output alpha is always the original's.
    """
    size = original.size
    if edited.size != size:
        edited = edited.resize(size, Image.Resampling.LANCZOS)
    if mask.size != size:
        mask = mask.resize(size, Image.Resampling.BILINEAR)

    base = _original_rgba(original)
    edit_rgb = np.asarray(edited.convert("RGB"), dtype=np.float64)
    weight = np.asarray(mask.convert("L"), dtype=np.float64)[..., None] / 255.0

    blended = base[..., :3] * (1.0 - weight) + edit_rgb * weight
    rgb = np.clip(np.floor(blended + 0.5), 0, 255)

    out = np.empty((size[1], size[0], 4), dtype=np.uint8)
    out[..., :3] = rgb.astype(np.uint8)
    out[..., 3] = base[..., 3].astype(np.uint8)

    result = Image.fromarray(out)
    logger.debug(
        "Composite %dx%d: %.1f%% of pixels touched",
        size[0],
        size[1],
        100.0 * float(np.count_nonzero(weight)) / weight.size,
    )
    return CompositeResult(image=result, png=encode_png(result))


async def composite_sources(
    original: str,
    edited: str,
    mask: str,
    client: httpx.AsyncClient | None = None,
) -> CompositeResult:
    """``composite`` over image references (URL, data URI, path or base64)."""
    original_img = await load_pil(original, client)
    edited_img = await load_pil(edited, client)
    mask_img = await load_pil(mask, client)
    return composite(original_img, edited_img, mask_img)
