"""
GitHub commit source.

Each call is one HTTP round trip on the injected httpx.AsyncClient with no
internal retry. Non-2xx responses and transport failures surface as
GitHubFetchError carrying the upstream status (0 when no response arrived,
504 on timeout).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from coderecall.config import (
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    HTTP_TIMEOUT_SECONDS,
    RAW_URL_ALLOWED_HOSTS,
)
from coderecall.github.models import Commit, RepositoryRef
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter
from coderecall.utils.dates import to_github_timestamp

logger = get_logger(__name__)


class GitHubFetchError(Exception):
    """Commit source unreachable or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_allowed_raw_url(raw_url: str) -> bool:
    """True if ``raw_url`` is https and points at an allow-listed source host."""
    try:
        parsed = urlparse(raw_url)
    except ValueError:
        return False
    return parsed.scheme == "https" and (parsed.hostname or "").lower() in RAW_URL_ALLOWED_HOSTS


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        counter("github.fetch.malformed")
        logger.warning("GitHub returned a non-JSON body: %s", response.text[:200])
        raise GitHubFetchError("Malformed GitHub payload", status_code=response.status_code) from None


def _parse_commit(data: Any, response: httpx.Response) -> Commit:
    try:
        return Commit.from_api(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        counter("github.fetch.malformed")
        logger.warning("GitHub commit payload missing fields: %s", type(e).__name__)
        raise GitHubFetchError("Malformed GitHub payload", status_code=response.status_code) from e


class GitHubClient:
    """
    Thin async adapter over the GitHub REST API.

    Args:
        http_client: Shared AsyncClient (owned by the caller)
        token: User's GitHub access token; optional for public repositories
        base_url: API root, overridable for GitHub Enterprise and tests
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token: str | None = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http_client
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _headers(self, accept: str = "application/vnd.github.v3+json") -> dict[str, str]:
        headers = {"Accept": accept, "X-GitHub-Api-Version": GITHUB_API_VERSION}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _get(self, url: str, params: dict[str, Any] | None = None, accept: str | None = None) -> httpx.Response:
        headers = self._headers(accept) if accept else self._headers()
        try:
            response = await self._http.get(url, params=params, headers=headers, timeout=self._timeout)
        except httpx.TimeoutException:
            counter("github.fetch.timeout")
            logger.warning("GitHub request timed out: %s", url)
            raise GitHubFetchError("GitHub request timed out", status_code=504) from None
        except httpx.RequestError as e:
            counter("github.fetch.transport_error")
            logger.error("GitHub request failed: %s (%s)", url, type(e).__name__)
            raise GitHubFetchError(f"GitHub request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            counter("github.fetch.http_error")
            logger.warning("GitHub API error %d for %s: %s", response.status_code, url, response.text[:200])
            raise GitHubFetchError(
                f"GitHub API returned {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def list_commits(
        self,
        repo: RepositoryRef,
        since: datetime | None = None,
        until: datetime | None = None,
        branch: str | None = None,
        per_page: int | None = None,
    ) -> list[Commit]:
        """
        List commit summaries, newest first (the API's default order).

        ``branch`` defaults to ``repo.branch``; when neither is set the
        repository's default branch is used.
        """
        params: dict[str, Any] = {}
        if since is not None:
            params["since"] = to_github_timestamp(since)
        if until is not None:
            params["until"] = to_github_timestamp(until)
        ref = branch or repo.branch
        if ref:
            params["sha"] = ref
        if per_page:
            params["per_page"] = per_page

        response = await self._get(f"{self._base_url}/repos/{repo.full_name}/commits", params=params)
        payload = _decode(response)
        if not isinstance(payload, list):
            raise GitHubFetchError("Unexpected commit list payload", status_code=response.status_code)
        return [_parse_commit(item, response) for item in payload]

    async def get_commit_detail(self, repo: RepositoryRef, sha: str) -> Commit:
        """Fetch one commit with its changed files and patches."""
        response = await self._get(f"{self._base_url}/repos/{repo.full_name}/commits/{quote(sha, safe='')}")
        return _parse_commit(_decode(response), response)

    async def get_file_content(
        self,
        repo: RepositoryRef | None,
        path: str | None = None,
        raw_url: str | None = None,
        ref: str | None = None,
    ) -> str:
        """
        Fetch a file's raw text, either by repository path or by raw URL.

        Raises:
            ValueError: If neither locator is given or raw_url is not allow-listed
        """
        if raw_url:
            if not is_allowed_raw_url(raw_url):
                raise ValueError("raw_url host is not allowed")
            response = await self._get(raw_url, accept="application/vnd.github.raw")
            return response.text

        if repo is None or not path:
            raise ValueError("repo and path, or raw_url, are required")

        params = {"ref": ref} if ref else None
        url = f"{self._base_url}/repos/{repo.full_name}/contents/{quote(path)}"
        response = await self._get(url, params=params, accept="application/vnd.github.raw")
        return response.text
