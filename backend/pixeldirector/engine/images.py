"""Image references: classify, load and re-encode the forms callers pass in."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
import re
from enum import Enum

import httpx
from PIL import Image

from pixeldirector.errors import FatalServiceError, TransientServiceError, ValidationError

logger = logging.getLogger(__name__)

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[^;,]*)*;base64,(?P<data>.*)$", re.S)
_BASE64_CHARS = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_PATH_HINT = re.compile(r"^(~|\.{1,2}/|/|[A-Za-z]:\\)|\.(png|jpe?g|webp|gif|bmp|tiff?)$", re.I)


class SourceKind(str, Enum):
    URL = "url"
    DATA_URI = "data_uri"
    FILE = "file"
    BASE64 = "base64"


def _is_base64(text: str) -> bool:
    compact = re.sub(r"\s+", "", text)
    if not compact or len(compact) % 4 != 0 or not _BASE64_CHARS.match(compact):
        return False
    try:
        base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def classify_image_source(source: str) -> SourceKind:
    """Decide what kind of image reference ``source`` is.

    Order is fixed: URL, data URI, existing local file, raw base64. A string
    that looks like a path but names no file, and is not valid base64, is
    rejected instead of being reinterpreted.
    """
    if not isinstance(source, str) or not source.strip():
        raise ValidationError("image reference is empty")
    text = source.strip()

    if text.startswith(("http://", "https://")):
        return SourceKind.URL
    if text.startswith("data:"):
        if not _DATA_URI.match(text):
            raise ValidationError("malformed data URI image reference")
        return SourceKind.DATA_URI
    if len(text) < 4096 and "\n" not in text and os.path.isfile(os.path.expanduser(text)):
        return SourceKind.FILE
    if _is_base64(text):
        return SourceKind.BASE64
    if _PATH_HINT.search(text):
        raise ValidationError(f"image file not found: {text}")
    raise ValidationError("image reference is not a URL, data URI, file path or base64 payload")


def sniff_mime(data: bytes) -> str:
    """Best-effort MIME type for encoded image bytes."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            mime = Image.MIME.get(img.format or "")
    except (OSError, ValueError):
        mime = None
    return mime or "image/png"


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    match = _DATA_URI.match(uri.strip())
    if not match:
        raise ValidationError("malformed data URI image reference")
    try:
        data = base64.b64decode(match.group("data"))
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"data URI payload is not base64: {e}") from e
    return data, match.group("mime") or sniff_mime(data)


def to_data_uri(data: bytes, mime: str | None = None) -> str:
    mime = mime or sniff_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


async def fetch_url(url: str, client: httpx.AsyncClient | None = None) -> bytes:
    """GET an image URL. 5xx and connection errors are transient."""
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=60.0, follow_redirects=True)
    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        raise TransientServiceError(f"fetching {url} failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()
    if resp.status_code >= 500:
        raise TransientServiceError(f"fetching {url} returned HTTP {resp.status_code}")
    if resp.status_code >= 400:
        raise FatalServiceError(f"fetching {url} returned HTTP {resp.status_code}")
    return resp.content


async def load_image_bytes(
    source: str, client: httpx.AsyncClient | None = None
) -> tuple[bytes, str]:
    """Resolve any image reference to ``(bytes, mime_type)``."""
    kind = classify_image_source(source)
    text = source.strip()
    if kind == SourceKind.URL:
        data = await fetch_url(text, client)
        return data, sniff_mime(data)
    if kind == SourceKind.DATA_URI:
        return decode_data_uri(text)
    if kind == SourceKind.FILE:
        with open(os.path.expanduser(text), "rb") as fh:
            data = fh.read()
        return data, sniff_mime(data)
    data = base64.b64decode(re.sub(r"\s+", "", text))
    return data, sniff_mime(data)


async def to_remote_input(source: str, client: httpx.AsyncClient | None = None) -> str:
    """Form accepted by remote model inputs: URLs pass through, everything else becomes a data URI."""
    kind = classify_image_source(source)
    if kind in (SourceKind.URL, SourceKind.DATA_URI):
        return source.strip()
    data, mime = await load_image_bytes(source, client)
    return to_data_uri(data, mime)


async def load_pil(source: str, client: httpx.AsyncClient | None = None) -> Image.Image:
    data, _ = await load_image_bytes(source, client)
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, ValueError) as e:
        raise ValidationError(f"image reference does not decode to an image: {e}") from e
    return img


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
