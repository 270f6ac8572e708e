"""
User profile and repository settings.

Changing the repository list deletes today's day set so the next pipeline
call regenerates from the new sources.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coderecall.api.dependencies import ServiceContainer, get_services
from coderecall.api.middleware.user_auth import AuthenticatedUser, get_current_user
from coderecall.flashcards.quota import QuotaIdentity, regenerate_limit, repository_limit
from coderecall.github.models import RepositoryRef
from coderecall.observability.logging import get_logger
from coderecall.utils.dates import today_key

router = APIRouter(prefix="/api/users", tags=["users"])
logger = get_logger(__name__)


class RepositoryInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_name: str = Field(min_length=1, max_length=300)
    branch: str | None = Field(default=None, max_length=255)


class UpdateRepositoriesRequest(BaseModel):
    repositories: list[RepositoryInput] = Field(max_length=50)


@router.get("/me")
async def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    profile = services.users.get_or_create(user.id)
    today = today_key(services.tz, services.clock())
    used = services.quota.effective_count(QuotaIdentity.for_user(user.id, profile.tier), today)
    return {
        "userId": profile.user_id,
        "email": user.email,
        "subscriptionTier": profile.tier.value,
        "regenerateCountToday": used,
        "regenerateLimit": regenerate_limit(profile.tier),
        "repositories": [repo.to_dict() for repo in profile.repositories],
        "maxRepositories": repository_limit(profile.tier),
    }


@router.get("/me/repositories")
async def get_repositories(
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    profile = services.users.get_or_create(user.id)
    return {
        "repositories": [repo.to_dict() for repo in profile.repositories],
        "maxRepositories": repository_limit(profile.tier),
    }


@router.put("/me/repositories")
async def update_repositories(
    body: UpdateRepositoriesRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    """
    Replace the repository list.

    Side Effects:
        - Updates users.repositories
        - Deletes today's day set
    """
    profile = services.users.get_or_create(user.id)

    repositories: list[RepositoryRef] = []
    for item in body.repositories:
        try:
            repo = RepositoryRef.parse(item.full_name, branch=item.branch or None)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid repository. Use owner/repo or a github.com URL.",
            ) from None
        if repo not in repositories:
            repositories.append(repo)

    max_repositories = repository_limit(profile.tier)
    if len(repositories) > max_repositories:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Your plan allows up to {max_repositories} repositories",
        )

    services.users.set_repositories(user.id, repositories)
    today = today_key(services.tz, services.clock())
    services.flashcards.delete(user.id, today)
    logger.info("Updated repositories for %s (%d)", user.id, len(repositories))

    return {
        "repositories": [repo.to_dict() for repo in repositories],
        "maxRepositories": max_repositories,
    }
