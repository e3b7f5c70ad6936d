"""Tests for native image editing (fake google-genai client)."""

from __future__ import annotations

import asyncio
import base64
from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors as genai_errors

from pixeldirector.engine.retry import RetryPolicy
from pixeldirector.errors import ErrorKind
from pixeldirector.services.gemini import (
    NativeImageEditor,
    ReferenceElement,
    extract_result,
    translate_error,
)
from tests.conftest import BLUE_PNG, RED_PNG, WHITE_MASK, make_image, png_bytes

EDITED_PNG = png_bytes(make_image(color=(1, 2, 3)))


def _response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _image_part(data=EDITED_PNG, mime="image/png"):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime), text=None)


def _text_part(text):
    return SimpleNamespace(inline_data=None, text=text)


class FakeGenaiClient:
    """Mimics ``client.aio.models.generate_content``; raises or returns queued results."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.aio = SimpleNamespace(models=SimpleNamespace(generate_content=self._generate))

    async def _generate(self, *, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _editor(client, no_sleep, quality="highest"):
    return NativeImageEditor(
        client=client,
        model="gemini-test",
        quality=quality,
        policy=RetryPolicy(max_attempts=3, base_delay=1.0),
        sleep=no_sleep,
    )


def _prompt(call) -> str:
    return call["contents"][0].text


# ---------------------------------------------------------------------------
# Response extraction and error mapping
# ---------------------------------------------------------------------------


def test_extract_inline_image():
    result = extract_result(_response(_text_part("Here you go"), _image_part()))
    assert result.success
    assert result.mime_type == "image/png"
    assert result.image == "data:image/png;base64," + base64.b64encode(EDITED_PNG).decode("ascii")


def test_extract_base64_string_payload():
    encoded = base64.b64encode(EDITED_PNG).decode("ascii")
    result = extract_result(_response(_image_part(data=encoded, mime="image/jpeg")))
    assert result.image == f"data:image/jpeg;base64,{encoded}"


def test_extract_text_only_is_failure_with_text():
    result = extract_result(_response(_text_part("I cannot edit this image.")))
    assert not result.success
    assert result.text_response == "I cannot edit this image."


def test_extract_no_candidates():
    result = extract_result(SimpleNamespace(candidates=[]))
    assert not result.success
    assert result.error == "no image in response"


@pytest.mark.parametrize(
    "error,kind",
    [
        (genai_errors.ServerError(503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}}), ErrorKind.TRANSIENT),
        (genai_errors.ClientError(429, {"error": {"message": "quota", "status": "RESOURCE_EXHAUSTED"}}), ErrorKind.RATE_LIMITED),
        (genai_errors.ClientError(400, {"error": {"message": "bad", "status": "INVALID_ARGUMENT"}}), ErrorKind.FATAL),
        (httpx.ConnectError("refused"), ErrorKind.TRANSIENT),
        (ValueError("weird"), ErrorKind.FATAL),
    ],
)
def test_translate_error(error, kind):
    assert translate_error(error, "native edit").kind == kind


# ---------------------------------------------------------------------------
# NativeImageEditor
# ---------------------------------------------------------------------------


def test_edit_image_success(no_sleep):
    client = FakeGenaiClient(_response(_image_part()))
    result = asyncio.run(_editor(client, no_sleep).edit_image(RED_PNG, "make it blue"))

    assert result.success
    call = client.calls[0]
    assert call["model"] == "gemini-test"
    assert call["config"].response_modalities == ["IMAGE", "TEXT"]
    assert "make it blue" in _prompt(call)
    assert "[high quality" in _prompt(call)
    assert len(call["contents"]) == 2


def test_standard_quality_has_no_hint(no_sleep):
    client = FakeGenaiClient(_response(_image_part()))
    asyncio.run(_editor(client, no_sleep, quality="standard").edit_image(RED_PNG, "make it blue"))
    assert "[high quality" not in _prompt(client.calls[0])


def test_transient_error_is_retried(no_sleep):
    overloaded = genai_errors.ServerError(503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}})
    client = FakeGenaiClient(overloaded, _response(_image_part()))

    result = asyncio.run(_editor(client, no_sleep).edit_image(RED_PNG, "x"))

    assert result.success
    assert len(client.calls) == 2
    assert no_sleep.delays == [1.0]


def test_exhausted_retries_become_failure_result(no_sleep):
    overloaded = genai_errors.ServerError(503, {"error": {"message": "overloaded", "status": "UNAVAILABLE"}})
    client = FakeGenaiClient(overloaded, overloaded, overloaded)

    result = asyncio.run(_editor(client, no_sleep).edit_image(RED_PNG, "x"))

    assert not result.success
    assert "native edit" in result.error
    assert len(client.calls) == 3


def test_fatal_error_not_retried(no_sleep):
    bad = genai_errors.ClientError(400, {"error": {"message": "bad", "status": "INVALID_ARGUMENT"}})
    client = FakeGenaiClient(bad)
    result = asyncio.run(_editor(client, no_sleep).edit_image(RED_PNG, "x"))
    assert not result.success
    assert len(client.calls) == 1


def test_unloadable_image_fails_without_calling_model(no_sleep):
    client = FakeGenaiClient()
    result = asyncio.run(_editor(client, no_sleep).edit_image("/missing/photo.png", "x"))
    assert not result.success
    assert client.calls == []


def test_edit_with_mask_sends_both_images(no_sleep):
    client = FakeGenaiClient(_response(_image_part()))
    asyncio.run(_editor(client, no_sleep).edit_with_mask(RED_PNG, WHITE_MASK, "add a hat"))
    call = client.calls[0]
    assert len(call["contents"]) == 3
    assert "mask" in _prompt(call)


def test_edit_with_references_lists_labels(no_sleep):
    client = FakeGenaiClient(_response(_image_part()))
    refs = [ReferenceElement("sofa", BLUE_PNG), ReferenceElement("lamp", RED_PNG)]
    asyncio.run(_editor(client, no_sleep).edit_with_references(RED_PNG, "use the sofa and lamp", refs))
    call = client.calls[0]
    assert len(call["contents"]) == 4
    assert 'Reference 1 "sofa"' in _prompt(call)
    assert 'Reference 2 "lamp"' in _prompt(call)


def test_edit_with_references_and_mask(no_sleep):
    client = FakeGenaiClient(_response(_image_part()))
    refs = [ReferenceElement("sofa", BLUE_PNG)]
    asyncio.run(_editor(client, no_sleep).edit_with_references(RED_PNG, "x", refs, mask=WHITE_MASK))
    assert len(client.calls[0]["contents"]) == 4


def test_segment_at_point_prompt(no_sleep):
    client = FakeGenaiClient(_response(_image_part()))
    result = asyncio.run(_editor(client, no_sleep).segment_at_point(RED_PNG, 12, 34))
    assert result.success
    assert "(12, 34)" in _prompt(client.calls[0])


def test_segment_by_label_prompt(no_sleep):
    client = FakeGenaiClient(_response(_text_part("nothing like that here")))
    result = asyncio.run(_editor(client, no_sleep).segment_by_label(RED_PNG, "giraffe"))
    assert not result.success
    assert '"giraffe"' in _prompt(client.calls[0])
