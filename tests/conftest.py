"""
Pytest configuration for CodeRecall tests

Provides fixtures shared across unit and integration tests:
- an isolated SQLite database per test
- a fixed, advanceable clock pinned to the reference timezone
- an in-memory GitHub + Google token-info stub served through httpx.MockTransport
- fake AI clients that record calls and can be told to fail
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from urllib.parse import unquote
from zoneinfo import ZoneInfo

import httpx
import pytest
from fastapi.testclient import TestClient

from coderecall.api.app import create_app
from coderecall.api.dependencies import ServiceContainer
from coderecall.api.middleware.user_auth import clear_token_cache
from coderecall.flashcards.models import ContentType
from coderecall.infrastructure.database import DatabaseConnectionPool
from coderecall.infrastructure.database_schema import init_database
from coderecall.llm.base import GeneratedItem, LegacyQuestionsOnly, StructuredItems
from coderecall.observability.telemetry import reset_counters

SEOUL = ZoneInfo("Asia/Seoul")

# 2025-03-10 12:00 in Seoul
FIXED_NOW = datetime(2025, 3, 10, 3, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


class GitHubStub:
    """In-memory GitHub REST API plus Google token-info endpoints."""

    def __init__(self):
        self.commits: dict[str, list[dict]] = {}
        self.files: dict[tuple[str, str, str | None], str] = {}
        self.raw_files: dict[str, str] = {}
        self.status_overrides: dict[str, int] = {}
        self.body_overrides: dict[str, str] = {}
        self.tokens: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []

    def add_commit(self, repo, sha, message, authored_at, files=()):
        self.commits.setdefault(repo, []).append(
            {
                "sha": sha,
                "commit": {"message": message, "author": {"name": "Dev", "date": authored_at.isoformat()}},
                "files": [dict(f) for f in files],
            }
        )

    def add_file(self, repo, path, text, ref=None):
        self.files[(repo, path, ref)] = text

    def add_user(self, token, user_id, email="dev@example.com"):
        self.tokens[token] = {"id": user_id, "email": email}

    def _commits_in_range(self, repo, since, until):
        items = []
        for item in self.commits.get(repo, []):
            authored = datetime.fromisoformat(item["commit"]["author"]["date"])
            if since and authored < datetime.fromisoformat(since):
                continue
            if until and authored > datetime.fromisoformat(until):
                continue
            items.append(item)
        return sorted(items, key=lambda i: i["commit"]["author"]["date"], reverse=True)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = unquote(request.url.path)

        if path in self.status_overrides:
            return httpx.Response(self.status_overrides[path], json={"message": "stubbed failure"})
        if path in self.body_overrides:
            return httpx.Response(200, text=self.body_overrides[path])

        if host == "oauth2.googleapis.com":
            token = request.url.params.get("access_token")
            if token in self.tokens:
                return httpx.Response(200, json={"aud": "", "expires_in": 3600})
            return httpx.Response(400, json={"error": "invalid_token"})

        if host == "www.googleapis.com":
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if token in self.tokens:
                return httpx.Response(200, json=self.tokens[token])
            return httpx.Response(401, json={"error": "invalid_token"})

        if host in ("raw.githubusercontent.com", "gist.githubusercontent.com"):
            text = self.raw_files.get(str(request.url))
            return httpx.Response(200, text=text) if text is not None else httpx.Response(404, text="404")

        parts = path.strip("/").split("/")
        if host == "api.github.com" and len(parts) >= 4 and parts[0] == "repos":
            repo = f"{parts[1]}/{parts[2]}"
            if parts[3] == "commits" and len(parts) == 4:
                items = self._commits_in_range(
                    repo, request.url.params.get("since"), request.url.params.get("until")
                )
                per_page = request.url.params.get("per_page")
                if per_page:
                    items = items[: int(per_page)]
                return httpx.Response(200, json=[{k: v for k, v in i.items() if k != "files"} for i in items])
            if parts[3] == "commits" and len(parts) == 5:
                for item in self.commits.get(repo, []):
                    if item["sha"] == parts[4]:
                        return httpx.Response(200, json=item)
                return httpx.Response(404, json={"message": "No commit found"})
            if parts[3] == "contents":
                file_path = "/".join(parts[4:])
                ref = request.url.params.get("ref")
                text = self.files.get((repo, file_path, ref), self.files.get((repo, file_path, None)))
                if text is None:
                    return httpx.Response(404, json={"message": "Not Found"})
                return httpx.Response(200, text=text)

        return httpx.Response(404, json={"message": "Not Found"})


class FakeGenerator:
    """Generation client double. Content containing a key of ``failures`` raises that error."""

    def __init__(self, result=None):
        self.result = result or LegacyQuestionsOnly(questions=["What does this change do?", "Why was it needed?"])
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, ContentType]] = []

    async def generate(self, content, content_type):
        self.calls.append((content, content_type))
        for marker, error in self.failures.items():
            if marker in content:
                raise error
        return self.result


class FakeStructuredClient:
    """Structured-output client double for regeneration."""

    def __init__(self):
        self.items = [GeneratedItem(question="How does the new retry loop terminate?", answer="", highlights=[])]
        self.error: Exception | None = None
        self.calls: list[dict] = []

    async def complete_structured(self, system_prompt, user_content, temperature=0.5, max_tokens=4096):
        self.calls.append(
            {"system": system_prompt, "user": user_content, "temperature": temperature, "max_tokens": max_tokens}
        )
        if self.error is not None:
            raise self.error
        return StructuredItems(items=list(self.items))

    async def generate(self, content, content_type):
        return await self.complete_structured("", content)


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch):
    """Fresh counters and token cache for every test; no OAuth audience pinning."""
    monkeypatch.delenv("GOOGLE_OAUTH_CLIENT_ID", raising=False)
    monkeypatch.setenv("CODERECALL_ENV", "development")
    reset_counters()
    clear_token_cache()
    yield
    clear_token_cache()


@pytest.fixture
def tz():
    return SEOUL


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool(tmp_path):
    db_path = tmp_path / "coderecall-test.db"
    init_database(db_path)
    test_pool = DatabaseConnectionPool(db_path, pool_size=2)
    yield test_pool
    test_pool.close_all()


@pytest.fixture
def github_stub():
    return GitHubStub()


@pytest.fixture
def http_client(github_stub):
    return httpx.AsyncClient(transport=httpx.MockTransport(github_stub.handler))


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def structured_client():
    return FakeStructuredClient()


@pytest.fixture
def services(http_client, pool, generator, structured_client, tz, clock):
    return ServiceContainer(
        http_client=http_client,
        pool=pool,
        generator=generator,
        structured_client=structured_client,
        tz=tz,
        clock=clock,
    )


@pytest.fixture
def api_client(services):
    return TestClient(create_app(services, rate_limit=False))


@pytest.fixture
def auth_headers(github_stub):
    """Bearer headers for a signed-in free-tier user ``user-1``."""
    github_stub.add_user("token-user-1", "user-1")
    return {"Authorization": "Bearer token-user-1"}
