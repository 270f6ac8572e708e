"""
Structured-output backend for any OpenAI-compatible chat-completions API.

The request carries a strict JSON schema so the backend returns
``{"items": [{question, answer, highlights}]}``. The message content is still
raw text inside the response envelope, so it is decoded and validated here.
"""

from __future__ import annotations

import json

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from coderecall.config import AI_TIMEOUT_SECONDS, OPENAI_BASE_URL, OPENAI_MODEL
from coderecall.flashcards.models import ContentType
from coderecall.llm.base import (
    AIParseError,
    AITimeoutError,
    AIUpstreamError,
    GeneratedItem,
    StructuredItems,
)
from coderecall.llm.prompts import FLASHCARD_RESPONSE_SCHEMA, STRUCTURED_PROMPT
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter

logger = get_logger(__name__)


class _ItemPayload(BaseModel):
    question: str
    answer: str
    highlights: list[str] = Field(default_factory=list)


class _ItemsPayload(BaseModel):
    items: list[_ItemPayload]


def parse_structured_content(content: str | None) -> StructuredItems:
    """
    Decode the model's JSON text into StructuredItems.

    Raises:
        AIParseError: If content is empty, not JSON, or does not match the schema
    """
    if not content:
        raise AIParseError("AI response content is empty")
    try:
        payload = _ItemsPayload.model_validate(json.loads(content))
    except json.JSONDecodeError as e:
        raise AIParseError(f"Response is not valid JSON: {e}") from e
    except ValidationError as e:
        raise AIParseError(f"Response does not match the flashcard schema ({e.error_count()} errors)") from e

    return StructuredItems(
        items=[GeneratedItem(question=i.question, answer=i.answer, highlights=i.highlights) for i in payload.items]
    )


class StructuredOutputClient:
    """
    Args:
        api_key: API key for the OpenAI-compatible endpoint
        base_url: API root (OpenAI or any compatible gateway)
        model: Chat model name
        timeout: Client-side timeout in seconds
        http_client: Shared AsyncClient; the SDK sends requests through it
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENAI_BASE_URL,
        model: str = OPENAI_MODEL,
        timeout: float = AI_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        # Zero retries: a failed window is skipped, not retried.
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    async def complete_structured(
        self,
        system_prompt: str,
        user_content: str,
        temperature: float = 0.5,
        max_tokens: int = 4096,
    ) -> StructuredItems:
        """
        One schema-constrained chat completion.

        Raises:
            AITimeoutError: On client-side timeout
            AIUpstreamError: On connection failure or non-2xx status
            AIParseError: If the content is not schema-conformant JSON
        """
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format=FLASHCARD_RESPONSE_SCHEMA,
            )
        except APITimeoutError:
            # Subclass of APIConnectionError; must be caught first
            counter("llm.openai.timeout")
            logger.warning("Structured AI request timed out after %.0fs", self.timeout)
            raise AITimeoutError(f"AI request timed out after {self.timeout:.0f}s") from None
        except APIConnectionError as e:
            counter("llm.openai.transport_error")
            logger.error("Structured AI connection failed: %s", type(e).__name__)
            raise AIUpstreamError("AI backend unreachable") from e
        except APIStatusError as e:
            counter("llm.openai.http_error")
            logger.error("Structured AI API error %d", e.status_code)
            raise AIUpstreamError(f"AI backend returned {e.status_code}", status_code=e.status_code) from e

        content = completion.choices[0].message.content if completion.choices else None
        try:
            result = parse_structured_content(content)
        except AIParseError:
            counter("llm.openai.parse_error")
            logger.warning("Structured AI returned unparseable content: %s", (content or "")[:200])
            raise

        counter("llm.openai.ok")
        return result

    async def generate(self, content: str, content_type: ContentType) -> StructuredItems:
        kind = "markdown document" if content_type == ContentType.MARKDOWN else "commit diff summary"
        return await self.complete_structured(STRUCTURED_PROMPT, f"Content type: {kind}\n\n{content}")
