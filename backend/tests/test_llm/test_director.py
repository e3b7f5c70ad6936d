"""Tests for the planning Director (fake LangChain chat models, no API calls)."""

from __future__ import annotations

import asyncio

import anthropic
import httpx
import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.messages import AIMessage

from pixeldirector.engine.retry import RetryPolicy
from pixeldirector.errors import (
    ConfigurationError,
    ErrorKind,
    FatalServiceError,
    ParseError,
    RateLimitedError,
    TransientServiceError,
)
from pixeldirector.llm.director import Director, _text_of, translate_llm_error
from pixeldirector.llm.model_router import get_model_for_task
from pixeldirector.models.scene import SceneAnalysis
from tests.conftest import BLUE_PNG, PLAN_JSON, RED_PNG, SCENE_JSON

API_URL = "https://api.anthropic.com/v1/messages"


def _status_error(cls, status, headers=None):
    response = httpx.Response(status, request=httpx.Request("POST", API_URL), headers=headers or {})
    return cls(f"HTTP {status}", response=response, body=None)


class ScriptedLLM:
    """Chat model stand-in: raises or answers from a queue, recording messages."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return AIMessage(content=result)


def _director(llm, no_sleep):
    return Director(llm, policy=RetryPolicy(max_attempts=3, base_delay=1.0), sleep=no_sleep)


# ---------------------------------------------------------------------------
# Happy paths
# ---------------------------------------------------------------------------


def test_analyze_scene(no_sleep):
    llm = FakeListChatModel(responses=[f"```json\n{SCENE_JSON}\n```"])
    scene = asyncio.run(_director(llm, no_sleep).analyze_scene(RED_PNG))
    assert scene.labels() == ["red coffee mug", "Acme logo"]


def test_analyze_sends_image_block(no_sleep):
    llm = ScriptedLLM(SCENE_JSON)
    asyncio.run(_director(llm, no_sleep).analyze_scene(RED_PNG))
    system, human = llm.calls[0]
    assert "Analyze this image" in system.content
    block = human.content[0]
    assert block["type"] == "image_url"
    assert block["image_url"]["url"].startswith("data:image/png;base64,")


def test_plan_edit_includes_instruction_and_scene(no_sleep):
    llm = ScriptedLLM("Here is the plan:\n" + PLAN_JSON)
    scene = SceneAnalysis.model_validate_json(SCENE_JSON)

    plan = asyncio.run(_director(llm, no_sleep).plan_edit("remove the logo", scene))

    assert [op.type for op in plan.operations] == ["remove", "upscale"]
    prompt = llm.calls[0][0].content
    assert 'User instruction: "remove the logo"' in prompt
    assert '"boundingBox"' in prompt


def test_verify_edit(no_sleep):
    llm = ScriptedLLM('{"success": true, "changesDetected": ["logo removed"], "issues": [], "confidence": 0.9}')
    result = asyncio.run(_director(llm, no_sleep).verify_edit(RED_PNG, BLUE_PNG, "remove the logo", ["logo gone"]))
    assert result.success
    assert result.changes_detected == ["logo removed"]
    content = llm.calls[0][0].content
    assert sum(1 for block in content if block["type"] == "image_url") == 2
    assert '["logo gone"]' in content[0]["text"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_unparseable_response_is_parse_error_without_retry(no_sleep):
    llm = ScriptedLLM('{"elements": [{"label": "mug"')
    with pytest.raises(ParseError) as exc:
        asyncio.run(_director(llm, no_sleep).analyze_scene(RED_PNG))
    assert exc.value.context == "analyze"
    assert len(llm.calls) == 1


def test_overloaded_model_is_retried(no_sleep):
    llm = ScriptedLLM(_status_error(anthropic.InternalServerError, 529), SCENE_JSON)
    scene = asyncio.run(_director(llm, no_sleep).analyze_scene(RED_PNG))
    assert len(scene.elements) == 2
    assert no_sleep.delays == [1.0]


def test_rate_limit_uses_retry_after(no_sleep):
    llm = ScriptedLLM(_status_error(anthropic.RateLimitError, 429, {"retry-after": "7"}), PLAN_JSON)
    asyncio.run(_director(llm, no_sleep).plan_edit("x", SceneAnalysis()))
    assert no_sleep.delays == [7.0]


def test_bad_request_not_retried(no_sleep):
    llm = ScriptedLLM(_status_error(anthropic.BadRequestError, 400))
    with pytest.raises(FatalServiceError) as exc:
        asyncio.run(_director(llm, no_sleep).plan_edit("x", SceneAnalysis()))
    assert exc.value.operation == "plan"
    assert len(llm.calls) == 1


def test_requires_key_or_llm():
    with pytest.raises(ConfigurationError):
        Director(api_key="")


class TestTranslateLlmError:
    def test_rate_limit(self):
        err = translate_llm_error(_status_error(anthropic.RateLimitError, 429, {"retry-after": "3"}), "plan")
        assert isinstance(err, RateLimitedError)
        assert err.retry_after == 3.0

    def test_server_error(self):
        err = translate_llm_error(_status_error(anthropic.InternalServerError, 500), "plan")
        assert isinstance(err, TransientServiceError)

    def test_auth_error(self):
        err = translate_llm_error(_status_error(anthropic.AuthenticationError, 401), "plan")
        assert err.kind == ErrorKind.CONFIGURATION

    def test_timeout(self):
        assert translate_llm_error(asyncio.TimeoutError(), "plan").kind == ErrorKind.TRANSIENT


def test_text_of_content_blocks():
    assert _text_of("plain") == "plain"
    assert _text_of([{"type": "text", "text": "a"}, {"type": "tool_use"}, "b"]) == "ab"


def test_model_router():
    from pixeldirector.config import settings

    assert get_model_for_task("verify") == settings.model_planner_cheap
    assert get_model_for_task("plan") == settings.model_planner
    assert get_model_for_task("unknown") == settings.model_planner
