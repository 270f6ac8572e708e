"""Demo flashcards for anonymous visitors (public repositories, nothing stored)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coderecall.api.dependencies import ServiceContainer, get_services
from coderecall.flashcards.demo import generate_demo_flashcards
from coderecall.flashcards.models import cards_to_json_list
from coderecall.github.client import GitHubFetchError
from coderecall.github.models import RepositoryRef
from coderecall.observability.logging import get_logger

router = APIRouter(prefix="/api/demo", tags=["demo"])
logger = get_logger(__name__)


class DemoRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    repo_url: str = Field(min_length=1, max_length=500)


@router.post("/flashcards")
async def demo_flashcards(
    body: DemoRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    try:
        repo = RepositoryRef.parse(body.repo_url)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Enter a valid GitHub repository URL (e.g. https://github.com/owner/repo)",
        ) from None

    try:
        cards = await generate_demo_flashcards(repo, services.github_client(), services.generator)
    except GitHubFetchError as e:
        if e.status_code == status.HTTP_404_NOT_FOUND:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Repository not found. Make sure it is public.",
            ) from None
        logger.warning("Demo commit fetch failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="GitHub request failed. Please try again later.",
        ) from None

    if not cards:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Repository has no commits")

    return {"repository": repo.to_dict(), "cards": cards_to_json_list(cards)}
