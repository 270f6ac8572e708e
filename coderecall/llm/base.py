"""
Shared AI generation types.

Backends return one of two result shapes: the vendor chat API yields only
question strings, the structured-output API yields full items. normalize()
turns either into the uniform GeneratedItem list the pipeline consumes, so
no caller branches on backend identity.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from coderecall.flashcards.models import ContentType


class AIGenerationError(Exception):
    """Base error for a failed AI generation call."""


class AIParseError(AIGenerationError):
    """Model response was not valid JSON or lacked the expected fields."""


class AITimeoutError(AIGenerationError):
    """Model backend did not answer within the client-side timeout."""


class AIUpstreamError(AIGenerationError):
    """Model backend unreachable or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GeneratedItem:
    question: str
    answer: str
    highlights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"question": self.question, "answer": self.answer, "highlights": list(self.highlights)}


@dataclass
class LegacyQuestionsOnly:
    """Questions without answers; every question shares the source text as its answer."""

    questions: list[str]


@dataclass
class StructuredItems:
    items: list[GeneratedItem]


GenerationResult = LegacyQuestionsOnly | StructuredItems


class GenerationClient(Protocol):
    async def generate(self, content: str, content_type: ContentType) -> GenerationResult: ...


def filter_highlights(highlights: list[str], *texts: str) -> list[str]:
    """Keep non-empty highlights that occur verbatim in any of ``texts``, dropping duplicates."""
    kept: list[str] = []
    for phrase in highlights:
        if isinstance(phrase, str) and phrase and phrase not in kept and any(phrase in t for t in texts):
            kept.append(phrase)
    return kept


def normalize(result: GenerationResult, source_text: str) -> list[GeneratedItem]:
    """
    Uniform item list from either result variant.

    Legacy questions are paired with ``source_text`` as their answer.
    Highlights on structured items are kept only if they are verbatim
    substrings of that item's answer or of ``source_text``.
    """
    if isinstance(result, LegacyQuestionsOnly):
        return [GeneratedItem(question=q, answer=source_text) for q in result.questions if q.strip()]

    normalized = []
    for item in result.items:
        if not item.question.strip():
            continue
        honest = filter_highlights(item.highlights, item.answer, source_text)
        normalized.append(GeneratedItem(question=item.question, answer=item.answer, highlights=honest))
    return normalized


_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?```$")


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN_RE.sub("", cleaned)
        cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def parse_question_list(content: str) -> list[str]:
    """
    Parse a JSON array of question strings.

    Raises:
        AIParseError: If content is not a JSON array of strings
    """
    try:
        data = json.loads(strip_code_fences(content))
    except (json.JSONDecodeError, TypeError) as e:
        raise AIParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, list) or not all(isinstance(q, str) for q in data):
        raise AIParseError("Response is not a JSON array of question strings")
    return data


def build_envelope(items: list[GeneratedItem]) -> dict[str, Any]:
    """Chat-completion style envelope whose message content is a JSON string of ``{"items": [...]}``."""
    content = json.dumps({"items": [item.to_dict() for item in items]}, ensure_ascii=False)
    return {
        "status": {"code": "200", "message": "OK"},
        "result": {"message": {"role": "assistant", "content": content}},
    }
