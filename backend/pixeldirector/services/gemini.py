"""Native single-shot image editing and mask painting with Gemini image models (google-genai)."""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from pixeldirector.config import settings
from pixeldirector.engine.images import load_image_bytes
from pixeldirector.engine.retry import GENERATION_POLICY, RetryPolicy, with_retry
from pixeldirector.errors import (
    ConfigurationError,
    FatalServiceError,
    PixelDirectorError,
    RateLimitedError,
    TransientServiceError,
)
from pixeldirector.llm import prompts

logger = logging.getLogger(__name__)

EDIT_QUALITY_HINT = " [high quality, detailed, professional, preserve original style]"
MASK_QUALITY_HINT = " [high quality, detailed, seamless blend, professional]"
GENERATE_QUALITY_HINT = " [high quality, detailed, professional, 4K resolution]"


@dataclass(frozen=True)
class NativeEditResult:
    """Outcome of a native call. Failures are values here, not exceptions."""

    success: bool
    image: str | None = None  # data URI
    mime_type: str | None = None
    error: str | None = None
    text_response: str | None = None

    @classmethod
    def failure(cls, error: str, text_response: str | None = None) -> NativeEditResult:
        return cls(success=False, error=error, text_response=text_response)


@dataclass(frozen=True)
class ReferenceElement:
    label: str
    image: str


def translate_error(e: Exception, what: str) -> PixelDirectorError:
    """Map google-genai and transport exceptions onto the error taxonomy."""
    if isinstance(e, genai_errors.APIError):
        code = getattr(e, "code", None) or 0
        status = str(getattr(e, "status", "") or "")
        if code == 429 or status == "RESOURCE_EXHAUSTED":
            return RateLimitedError(f"{what}: {e}")
        if isinstance(e, genai_errors.ServerError) or code >= 500:
            return TransientServiceError(f"{what}: {e}")
        return FatalServiceError(f"{what}: {e}")
    if isinstance(e, (httpx.TimeoutException, httpx.TransportError)):
        return TransientServiceError(f"{what}: {e}")
    return FatalServiceError(f"{what}: {e}")


def extract_result(response: Any) -> NativeEditResult:
    """First inline image in the response, else the text the model said instead."""
    candidates = getattr(response, "candidates", None) or []
    parts = []
    if candidates and getattr(candidates[0], "content", None) is not None:
        parts = candidates[0].content.parts or []

    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            if isinstance(data, str):
                data = base64.b64decode(data)
            mime = inline.mime_type or "image/png"
            encoded = base64.b64encode(data).decode("ascii")
            return NativeEditResult(
                success=True, image=f"data:{mime};base64,{encoded}", mime_type=mime
            )

    text = "".join(getattr(p, "text", None) or "" for p in parts).strip()
    if text:
        return NativeEditResult.failure("model returned text instead of an image", text)
    return NativeEditResult.failure("no image in response")


class NativeImageEditor:
    """Single-shot edits: instruction + image(s) in, edited image out."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        quality: str | None = None,
        client: Any = None,
        policy: RetryPolicy = GENERATION_POLICY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if client is None:
            key = api_key if api_key is not None else settings.google_api_key
            if not key:
                raise ConfigurationError("GOOGLE_API_KEY is not set")
            client = genai.Client(api_key=key)
        self.client = client
        self.model = model or settings.model_native_edit
        self.quality = quality or settings.native_edit_quality
        self.policy = policy
        self._sleep = sleep
        self._http = http_client

    async def _image_part(self, source: str) -> types.Part:
        data, mime = await load_image_bytes(source, self._http)
        return types.Part.from_bytes(data=data, mime_type=mime)

    def _hint(self, hint: str) -> str:
        return hint if self.quality == "highest" else ""

    async def _generate(self, parts: list[types.Part], what: str) -> NativeEditResult:
        config = types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"])

        async def call():
            try:
                return await self.client.aio.models.generate_content(
                    model=self.model, contents=parts, config=config
                )
            except PixelDirectorError:
                raise
            except Exception as e:
                raise translate_error(e, what) from e

        try:
            response = await with_retry(call, name=what, policy=self.policy, sleep=self._sleep)
        except PixelDirectorError as e:
            logger.warning("%s failed: %s", what, e)
            return NativeEditResult.failure(str(e))

        result = extract_result(response)
        if result.success:
            logger.info("%s: got image (%s)", what, result.mime_type)
        else:
            logger.info("%s: %s", what, result.error)
            if result.text_response:
                logger.debug("%s text response: %.200s", what, result.text_response)
        return result

    async def _prepare(self, sources: list[str], what: str) -> list[types.Part] | NativeEditResult:
        try:
            return [await self._image_part(s) for s in sources]
        except PixelDirectorError as e:
            logger.warning("%s: could not load input image: %s", what, e)
            return NativeEditResult.failure(str(e))

    async def edit_image(self, image: str, instruction: str) -> NativeEditResult:
        logger.info("Native edit [%s, %s]: %r", self.model, self.quality, instruction)
        images = await self._prepare([image], "native edit")
        if isinstance(images, NativeEditResult):
            return images
        text = prompts.NATIVE_EDIT.format(instruction=instruction + self._hint(EDIT_QUALITY_HINT))
        return await self._generate([types.Part.from_text(text=text), *images], "native edit")

    async def edit_with_mask(self, image: str, mask: str, instruction: str) -> NativeEditResult:
        logger.info("Native masked edit [%s]: %r", self.model, instruction)
        images = await self._prepare([image, mask], "native masked edit")
        if isinstance(images, NativeEditResult):
            return images
        text = prompts.NATIVE_MASKED_EDIT.format(
            instruction=instruction + self._hint(MASK_QUALITY_HINT)
        )
        return await self._generate([types.Part.from_text(text=text), *images], "native masked edit")

    async def edit_with_references(
        self,
        image: str,
        instruction: str,
        references: list[ReferenceElement],
        mask: str | None = None,
    ) -> NativeEditResult:
        """Edit using labelled reference images; with ``mask`` the edit is confined to it."""
        what = "native reference edit"
        logger.info(
            "Native edit with %d reference(s) [%s]: %s",
            len(references),
            ", ".join(r.label for r in references),
            instruction,
        )
        sources = [image] + ([mask] if mask else []) + [r.image for r in references]
        images = await self._prepare(sources, what)
        if isinstance(images, NativeEditResult):
            return images
        listing = "\n".join(
            f'Reference {i} "{r.label}": use this when the instruction mentions "{r.label}"'
            for i, r in enumerate(references, start=1)
        )
        hint = MASK_QUALITY_HINT if mask else EDIT_QUALITY_HINT
        template = prompts.NATIVE_MASKED_REFERENCE_EDIT if mask else prompts.NATIVE_REFERENCE_EDIT
        text = template.format(instruction=instruction + self._hint(hint), references=listing)
        return await self._generate([types.Part.from_text(text=text), *images], what)

    async def generate_image(self, prompt: str) -> NativeEditResult:
        text = prompt + self._hint(GENERATE_QUALITY_HINT)
        return await self._generate([types.Part.from_text(text=text)], "native generate")

    async def segment_by_label(self, image: str, label: str) -> NativeEditResult:
        images = await self._prepare([image], "native segment")
        if isinstance(images, NativeEditResult):
            return images
        text = prompts.SEGMENT_BY_LABEL.format(label=label)
        return await self._generate([types.Part.from_text(text=text), *images], "native segment")

    async def segment_at_point(self, image: str, x: float, y: float) -> NativeEditResult:
        images = await self._prepare([image], "native point segment")
        if isinstance(images, NativeEditResult):
            return images
        text = prompts.SEGMENT_AT_POINT.format(x=x, y=y)
        return await self._generate(
            [types.Part.from_text(text=text), *images], "native point segment"
        )
