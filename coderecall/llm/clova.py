"""
HyperCLOVA X chat-completion backend.

Returns questions only: the model is asked for a JSON array of question
strings in ``result.message.content`` and every question is later paired
with the source text as its answer.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx

from coderecall.config import AI_TIMEOUT_SECONDS, CLOVA_CHAT_URL
from coderecall.flashcards.models import ContentType
from coderecall.llm.base import (
    AIParseError,
    AITimeoutError,
    AIUpstreamError,
    LegacyQuestionsOnly,
    parse_question_list,
)
from coderecall.llm.prompts import question_list_prompt
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter

logger = get_logger(__name__)


def _text_message(role: str, text: str) -> dict[str, Any]:
    return {"role": role, "content": [{"type": "text", "text": text}]}


class ClovaChatClient:
    """
    Vendor chat backend over the shared httpx client.

    Args:
        http_client: Shared AsyncClient (owned by the caller)
        api_key: CLOVA Studio API key
        url: Chat-completions endpoint for the model
        timeout: Client-side timeout in seconds
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        url: str = CLOVA_CHAT_URL,
        timeout: float = AI_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._url = url
        self._timeout = timeout

    def _build_body(self, system_prompt: str, text: str) -> dict[str, Any]:
        return {
            "messages": [_text_message("system", system_prompt), _text_message("user", text)],
            "thinking": {"effort": "low"},
            "topP": 0.8,
            "topK": 0,
            "maxCompletionTokens": 20480,
            "temperature": 0.5,
            "repetitionPenalty": 1.1,
            "seed": 0,
            "includeAiFilters": True,
        }

    async def generate(self, content: str, content_type: ContentType) -> LegacyQuestionsOnly:
        """
        Ask for a question list about ``content``.

        Raises:
            AITimeoutError: On client-side timeout
            AIUpstreamError: On transport failure or non-2xx status
            AIParseError: If the response content is not a JSON array of strings
        """
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "X-NCP-CLOVASTUDIO-REQUEST-ID": uuid.uuid4().hex,
        }
        body = self._build_body(question_list_prompt(content_type), content)

        try:
            response = await self._http.post(self._url, json=body, headers=headers, timeout=self._timeout)
        except httpx.TimeoutException:
            counter("llm.clova.timeout")
            logger.warning("CLOVA request timed out after %.0fs", self._timeout)
            raise AITimeoutError(f"AI request timed out after {self._timeout:.0f}s") from None
        except httpx.RequestError as e:
            counter("llm.clova.transport_error")
            logger.error("CLOVA request failed: %s", type(e).__name__)
            raise AIUpstreamError(f"AI request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            counter("llm.clova.http_error")
            logger.error("CLOVA API error %d: %s", response.status_code, response.text[:200])
            raise AIUpstreamError(f"AI backend returned {response.status_code}", status_code=response.status_code)

        try:
            content_text = response.json()["result"]["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            counter("llm.clova.parse_error")
            raise AIParseError("AI response envelope missing result.message.content") from e

        try:
            questions = parse_question_list(content_text)
        except AIParseError:
            counter("llm.clova.parse_error")
            logger.warning("CLOVA returned unparseable content: %s", str(content_text)[:200])
            raise

        counter("llm.clova.ok")
        return LegacyQuestionsOnly(questions=questions)
