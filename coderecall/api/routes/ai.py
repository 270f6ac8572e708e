"""
AI generation endpoint.

Returns a chat-completion style envelope whose ``result.message.content`` is
a JSON string of ``{"items": [{question, answer, highlights}]}`` regardless
of which backend produced it.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coderecall.api.dependencies import ServiceContainer, get_services
from coderecall.api.errors import ai_failure
from coderecall.config import API_MAX_TEXT_CHARS
from coderecall.flashcards.models import ContentType
from coderecall.flashcards.selector import infer_content_type
from coderecall.llm.base import AIGenerationError, build_envelope, normalize
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = get_logger(__name__)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str = Field(min_length=1, max_length=API_MAX_TEXT_CHARS)
    content_type: ContentType | None = None


@router.post("/generate", response_model=None)
async def generate(
    body: GenerateRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any] | JSONResponse:
    """Generate flashcard items for arbitrary text. 504 AI_TIMEOUT or 502 AI_FAILED on failure."""
    content_type = body.content_type or infer_content_type(body.text)
    try:
        result = await services.generator.generate(body.text, content_type)
    except AIGenerationError as e:
        counter("api.ai.generate.failed")
        logger.warning("AI generate failed: %s", type(e).__name__)
        return ai_failure(e)

    counter("api.ai.generate.ok")
    return build_envelope(normalize(result, body.text))
