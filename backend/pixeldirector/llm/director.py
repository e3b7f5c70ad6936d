"""Planner: scene analysis, edit planning and verification through a LangChain chat model."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import anthropic
import httpx
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from pixeldirector.config import settings
from pixeldirector.engine.images import load_image_bytes, to_data_uri
from pixeldirector.engine.parser import parse_structured
from pixeldirector.engine.retry import GENERATION_POLICY, RetryPolicy, with_retry
from pixeldirector.errors import (
    ConfigurationError,
    FatalServiceError,
    PixelDirectorError,
    RateLimitedError,
    TransientServiceError,
)
from pixeldirector.llm.model_router import get_model_for_task
from pixeldirector.llm.prompts import get_prompt_template
from pixeldirector.models.edit_ops import EditPlan
from pixeldirector.models.scene import SceneAnalysis, Verification

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_MAX_TOKENS = {"analyze": 16384, "plan": 4096, "verify": 1024}


def translate_llm_error(e: Exception, what: str) -> PixelDirectorError:
    """Map Anthropic SDK exceptions onto the error taxonomy."""
    if isinstance(e, anthropic.RateLimitError):
        retry_after = None
        header = e.response.headers.get("retry-after") if e.response is not None else None
        if header:
            try:
                retry_after = float(header)
            except ValueError:
                retry_after = None
        return RateLimitedError(f"{what}: {e}", retry_after=retry_after)
    if isinstance(e, anthropic.APIStatusError):
        if e.status_code >= 500:
            return TransientServiceError(f"{what}: {e}")
        if e.status_code in (401, 403):
            return ConfigurationError(f"{what}: {e}")
        return FatalServiceError(f"{what}: {e}")
    if isinstance(e, (anthropic.APIConnectionError, httpx.TransportError, asyncio.TimeoutError)):
        return TransientServiceError(f"{what}: {e}")
    return FatalServiceError(f"{what}: {e}")


def _text_of(content: Any) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class Director:
    """Understands images and turns instructions into edit plans.

    Pass ``llm`` to use any LangChain chat model; otherwise a ``ChatAnthropic``
    is built per task from the configured model tiers.
    """

    def __init__(
        self,
        llm: BaseChatModel | None = None,
        *,
        api_key: str | None = None,
        policy: RetryPolicy = GENERATION_POLICY,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._llm = llm
        self._api_key = api_key if api_key is not None else settings.anthropic_api_key
        if llm is None and not self._api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")
        self.policy = policy
        self._sleep = sleep
        self._http = http_client

    def _model_for(self, task: str) -> BaseChatModel:
        if self._llm is not None:
            return self._llm

        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=get_model_for_task(task),
            api_key=self._api_key,
            max_tokens=_MAX_TOKENS.get(task, 4096),
            temperature=0.3 if task != "verify" else 0.2,
        )

    async def _image_block(self, source: str) -> dict[str, Any]:
        data, mime = await load_image_bytes(source, self._http)
        return {"type": "image_url", "image_url": {"url": to_data_uri(data, mime)}}

    async def _ask(self, task: str, messages: list, model: type[M]) -> M:
        llm = self._model_for(task)

        async def call() -> str:
            try:
                response = await llm.ainvoke(messages)
            except PixelDirectorError:
                raise
            except Exception as e:
                raise translate_llm_error(e, task) from e
            return _text_of(response.content)

        text = await with_retry(call, name=task, policy=self.policy, sleep=self._sleep)
        logger.debug("%s response (%d chars): %.300s", task, len(text), text)
        return parse_structured(text, task, model)

    async def analyze_scene(self, image: str) -> SceneAnalysis:
        """Inventory of everything editable in the image."""
        messages = [
            SystemMessage(content=get_prompt_template("analyze").format()),
            HumanMessage(content=[await self._image_block(image)]),
        ]
        scene = await self._ask("analyze", messages, SceneAnalysis)
        logger.info("Scene analysis: %d element(s)", len(scene.elements))
        return scene

    async def plan_edit(self, instruction: str, scene: SceneAnalysis) -> EditPlan:
        scene_json = json.dumps(scene.model_dump(by_alias=True, exclude_none=True), indent=2)
        prompt = get_prompt_template("plan").format(instruction=instruction, scene=scene_json)
        plan = await self._ask("plan", [HumanMessage(content=prompt)], EditPlan)
        logger.info(
            "Edit plan: %d operation(s), confidence %.2f", len(plan.operations), plan.confidence
        )
        return plan

    async def verify_edit(
        self,
        original: str,
        edited: str,
        instruction: str,
        expected_changes: list[str] | None = None,
    ) -> Verification:
        prompt = get_prompt_template("verify").format(
            instruction=instruction, expected=json.dumps(expected_changes or [])
        )
        messages = [
            HumanMessage(
                content=[
                    {"type": "text", "text": prompt},
                    {"type": "text", "text": "Original image:"},
                    await self._image_block(original),
                    {"type": "text", "text": "Edited image:"},
                    await self._image_block(edited),
                ]
            )
        ]
        return await self._ask("verify", messages, Verification)
