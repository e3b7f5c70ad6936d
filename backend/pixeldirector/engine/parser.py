"""Tolerant extraction of structured data from free-form model text."""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pixeldirector.errors import ParseError

M = TypeVar("M", bound=BaseModel)

_FENCED_BLOCK = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?([\s\S]*?)\n?\s*```")
_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_TAIL_CHARS = 100


def strip_fences(text: str) -> str:
    """Keep the interior of the first complete markdown code fence.

    Prose before or after the block is dropped. A dangling fence (one
    side missing, as in a truncated response) is stripped on its own.
    """
    cleaned = text.strip()
    match = _FENCED_BLOCK.search(cleaned)
    if match:
        return match.group(1).strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def find_json_span(text: str) -> str | None:
    """Return the first balanced JSON object or array in ``text``."""
    for start, ch in enumerate(text):
        if ch not in "{[":
            continue
        end = _match_brackets(text, start)
        if end is not None:
            return text[start : end + 1]
    return None


def _match_brackets(text: str, start: int) -> int | None:
    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return i
    return None


def clean_response(raw_text: str) -> str:
    cleaned = strip_fences(raw_text)
    if cleaned and cleaned[0] not in "{[":
        span = find_json_span(cleaned)
        if span is not None:
            cleaned = span
    return cleaned


def parse_structured(raw_text: str, context: str, model: type[M] | None = None) -> Any:
    """Parse model output that should contain one JSON value.

    Tolerates surrounding whitespace, a markdown fence and leading or
    trailing prose. With ``model`` the value is validated into that pydantic
    model. Failures raise ``ParseError`` with the cleaned text's length and
    its last 100 characters.
    """
    cleaned = clean_response(raw_text or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(context, len(cleaned), cleaned[-_TAIL_CHARS:], e.msg) from e

    if model is None:
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        reason = f"{e.error_count()} schema error(s)"
        raise ParseError(context, len(cleaned), cleaned[-_TAIL_CHARS:], reason) from e
