"""Build the configured generation backend."""

from __future__ import annotations

import httpx

from coderecall.config import (
    AI_PROVIDER,
    AI_TIMEOUT_SECONDS,
    CLOVA_API_KEY,
    CLOVA_CHAT_URL,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
)
from coderecall.llm.base import GenerationClient
from coderecall.llm.clova import ClovaChatClient
from coderecall.llm.openai_compat import StructuredOutputClient


def make_structured_client(http_client: httpx.AsyncClient | None = None) -> StructuredOutputClient:
    return StructuredOutputClient(
        # SDK rejects an empty key at construction; /health reports the missing credential
        api_key=OPENAI_API_KEY or "unset",
        base_url=OPENAI_BASE_URL,
        model=OPENAI_MODEL,
        timeout=AI_TIMEOUT_SECONDS,
        http_client=http_client,
    )


def make_generation_client(
    provider: str = AI_PROVIDER,
    http_client: httpx.AsyncClient | None = None,
    structured_client: StructuredOutputClient | None = None,
) -> GenerationClient:
    """
    Args:
        provider: "openai" (structured output) or "clova" (question list)
        http_client: Shared AsyncClient; required for "clova"
        structured_client: Reused for "openai" when given

    Raises:
        ValueError: On unknown provider or missing http client
    """
    if provider == "clova":
        if http_client is None:
            raise ValueError("clova provider requires an http client")
        return ClovaChatClient(http_client, api_key=CLOVA_API_KEY, url=CLOVA_CHAT_URL, timeout=AI_TIMEOUT_SECONDS)
    if provider == "openai":
        return structured_client or make_structured_client(http_client)
    raise ValueError(f"Unknown AI provider: {provider!r}")
