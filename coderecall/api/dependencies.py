"""
Service wiring for request handlers.

Everything a handler needs is constructed once into a ServiceContainer held
on ``app.state.services``. Tests build the container themselves with fakes
(an httpx.MockTransport client, a temporary database, fake AI clients, a
fixed clock) and pass it to create_app().
"""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo

import httpx
from fastapi import Depends, Request

from coderecall.config import AI_PROVIDER, GITHUB_API_URL, HTTP_TIMEOUT_SECONDS, REFERENCE_TIMEZONE
from coderecall.flashcards.pipeline import DailyFlashcardPipeline
from coderecall.flashcards.quota import QuotaRepository
from coderecall.flashcards.regeneration import RegenerationService
from coderecall.flashcards.repository import DailyFlashcardRepository, UserRepository
from coderecall.github.client import GitHubClient
from coderecall.infrastructure.database import DatabaseConnectionPool, get_pool
from coderecall.llm.base import GenerationClient
from coderecall.llm.factory import make_generation_client, make_structured_client
from coderecall.llm.openai_compat import StructuredOutputClient
from coderecall.observability.logging import get_logger
from coderecall.utils.dates import Clock, utc_now

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    http_client: httpx.AsyncClient
    pool: DatabaseConnectionPool
    generator: GenerationClient
    structured_client: StructuredOutputClient
    tz: ZoneInfo
    clock: Clock = utc_now
    github_api_url: str = GITHUB_API_URL

    def __post_init__(self) -> None:
        self.flashcards = DailyFlashcardRepository(self.pool)
        self.users = UserRepository(self.pool)
        self.quota = QuotaRepository(self.pool)

    @classmethod
    def build(cls, provider: str = AI_PROVIDER) -> ServiceContainer:
        """Production wiring from config and environment."""
        http_client = httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)
        structured = make_structured_client(http_client)
        generator = make_generation_client(provider, http_client=http_client, structured_client=structured)
        logger.info("Using AI provider %s", provider)
        return cls(
            http_client=http_client,
            pool=get_pool(),
            generator=generator,
            structured_client=structured,
            tz=ZoneInfo(REFERENCE_TIMEZONE),
        )

    @property
    def pipeline(self) -> DailyFlashcardPipeline:
        return DailyFlashcardPipeline(self.generator, self.flashcards, tz=self.tz, clock=self.clock)

    @property
    def regeneration(self) -> RegenerationService:
        return RegenerationService(
            self.structured_client, self.quota, self.flashcards, tz=self.tz, clock=self.clock
        )

    def github_client(self, token: str | None = None) -> GitHubClient:
        return GitHubClient(self.http_client, token=token, base_url=self.github_api_url)

    async def aclose(self) -> None:
        await self.http_client.aclose()


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_commit_source(request: Request, services: ServiceContainer = Depends(get_services)) -> GitHubClient:
    """GitHub client authenticated with the caller's X-GitHub-Token, if sent."""
    token = request.headers.get("X-GitHub-Token") or None
    return services.github_client(token)
