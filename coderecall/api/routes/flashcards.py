"""
Flashcard endpoints.

- GET  /api/flashcards/today - today's set, generated on first access
- GET  /api/flashcards/dates - dates with a stored set
- GET  /api/flashcards/{date} - a stored set, read-only
- POST /api/flashcards/regenerate-question - new question for one card
- POST /api/flashcards/regenerate-today - delete today's set (pro only)
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coderecall.api.dependencies import ServiceContainer, get_commit_source, get_services
from coderecall.api.errors import ai_failure, limit_exceeded
from coderecall.api.middleware.user_auth import AuthenticatedUser, get_current_user, get_optional_user
from coderecall.flashcards.models import cards_to_json_list
from coderecall.flashcards.quota import QuotaIdentity
from coderecall.flashcards.regeneration import ProTierRequiredError, RateLimitedError
from coderecall.github.client import GitHubClient
from coderecall.llm.base import AIGenerationError
from coderecall.observability.logging import get_logger
from coderecall.utils.dates import parse_date_key

router = APIRouter(prefix="/api/flashcards", tags=["flashcards"])
logger = get_logger(__name__)


class RegenerateQuestionRequest(BaseModel):
    """Body for regenerate-question. ``demoDeviceId`` is required without a bearer token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    raw_diff: str = Field(min_length=1)
    existing_question: str
    existing_answer: str
    flashcard_date: str | None = None
    card_index: int | None = Field(default=None, ge=0)
    demo_device_id: str | None = Field(default=None, max_length=256)


def _validate_date(value: str, field_name: str) -> str:
    try:
        parse_date_key(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field_name} must be YYYY-MM-DD",
        ) from None
    return value


@router.get("/today")
async def get_today_flashcards(
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
    source: GitHubClient = Depends(get_commit_source),
) -> dict[str, Any]:
    """Today's day set; the first call of the day generates and stores it."""
    profile = services.users.get_or_create(user.id)
    result = await services.pipeline.run(user.id, profile.repositories, source)
    return {
        "date": result.date,
        "status": result.status.value,
        "cards": cards_to_json_list(result.cards),
    }


@router.get("/dates")
async def list_flashcard_dates(
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    """Dates with a stored set, newest first, for past-date review."""
    return {"dates": services.flashcards.list_dates(user.id)}


@router.get("/{card_date}")
async def get_flashcards_for_date(
    card_date: str,
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    """A previously stored day set (past-date review). Never generates."""
    _validate_date(card_date, "date")
    cards = services.flashcards.get(user.id, card_date)
    if cards is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No flashcards for this date")
    return {"date": card_date, "cards": cards_to_json_list(cards)}


@router.post("/regenerate-question", response_model=None)
async def regenerate_question(
    body: RegenerateQuestionRequest,
    user: AuthenticatedUser | None = Depends(get_optional_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any] | JSONResponse:
    """
    Replace one card's question, keeping its answer.

    Returns 429 ``{code: "LIMIT_EXCEEDED", limit}`` once the daily ceiling
    is reached.
    """
    if body.flashcard_date is not None:
        _validate_date(body.flashcard_date, "flashcardDate")

    if user is not None:
        profile = services.users.get_or_create(user.id)
        identity = QuotaIdentity.for_user(user.id, profile.tier)
    elif body.demo_device_id:
        identity = QuotaIdentity.for_demo(body.demo_device_id)
    else:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "demoDeviceId is required for demo mode",
                "invalid_fields": ["demoDeviceId"],
            },
        )

    try:
        regenerated = await services.regeneration.regenerate_question(
            identity,
            raw_diff=body.raw_diff,
            existing_question=body.existing_question,
            existing_answer=body.existing_answer,
            flashcard_date=body.flashcard_date,
            card_index=body.card_index,
        )
    except RateLimitedError as e:
        return limit_exceeded(e.limit)
    except AIGenerationError as e:
        logger.warning("Question regeneration failed: %s", type(e).__name__)
        return ai_failure(e)

    return regenerated.to_dict()


@router.post("/regenerate-today", response_model=None)
async def regenerate_today(
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any] | JSONResponse:
    """Delete today's set so the next /today call rebuilds it. Pro tier only."""
    profile = services.users.get_or_create(user.id)
    try:
        cleared = services.regeneration.regenerate_today(profile)
    except ProTierRequiredError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Regenerating today's cards requires a Pro subscription",
        ) from None
    except RateLimitedError as e:
        return limit_exceeded(e.limit)

    return {"success": True, "date": cleared}
