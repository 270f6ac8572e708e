"""
Commit source proxy.

Thin pass-through to the GitHub adapter for clients that render commit
detail and file views. Upstream statuses are echoed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coderecall.api.dependencies import get_commit_source
from coderecall.api.errors import github_http_exception
from coderecall.api.middleware.user_auth import AuthenticatedUser, get_current_user, get_optional_user
from coderecall.github.client import GitHubClient, GitHubFetchError
from coderecall.github.models import RepositoryRef

router = APIRouter(prefix="/api/github", tags=["github"])


def _parse_repo(repo: str, branch: str | None = None) -> RepositoryRef:
    try:
        return RepositoryRef.parse(repo, branch=branch)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid repo. Use owner/repo.",
        ) from None


@router.get("/commits")
async def list_commits(
    repo: str = Query(..., max_length=300),
    since: datetime | None = None,
    until: datetime | None = None,
    branch: str | None = Query(default=None, max_length=255),
    user: AuthenticatedUser = Depends(get_current_user),
    source: GitHubClient = Depends(get_commit_source),
) -> list[dict[str, Any]]:
    repository = _parse_repo(repo, branch)
    try:
        commits = await source.list_commits(repository, since=since, until=until)
    except GitHubFetchError as e:
        raise github_http_exception(e) from None
    return [commit.to_dict() for commit in commits]


@router.get("/commit")
async def get_commit(
    repo: str = Query(..., max_length=300),
    sha: str = Query(..., min_length=4, max_length=64, pattern=r"^[0-9a-fA-F]+$"),
    user: AuthenticatedUser = Depends(get_current_user),
    source: GitHubClient = Depends(get_commit_source),
) -> dict[str, Any]:
    try:
        commit = await source.get_commit_detail(_parse_repo(repo), sha)
    except GitHubFetchError as e:
        raise github_http_exception(e) from None
    return commit.to_dict()


@router.get("/file")
async def get_file(
    repo: str | None = Query(default=None, max_length=300),
    filename: str | None = Query(default=None, max_length=1000),
    raw_url: str | None = Query(default=None, max_length=2000),
    ref: str | None = Query(default=None, max_length=255),
    user: AuthenticatedUser | None = Depends(get_optional_user),
    source: GitHubClient = Depends(get_commit_source),
) -> dict[str, Any]:
    """Raw file text by repository path or allow-listed raw URL. Auth optional for public reads."""
    if not raw_url and not (repo and filename):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide repo and filename, or raw_url",
        )

    repository = _parse_repo(repo) if repo else None
    try:
        content = await source.get_file_content(repository, path=filename, raw_url=raw_url, ref=ref)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="raw_url host is not allowed") from None
    except GitHubFetchError as e:
        raise github_http_exception(e) from None
    return {"content": content}
