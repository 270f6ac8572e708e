"""
Daily Flashcard Pipeline.

Per (user, day): return the stored set if one exists; otherwise sample each
repository at the fixed lookback windows, generate cards per window, and
store the result exactly once. A failing window is logged and contributes
no cards; it never aborts its siblings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from coderecall.config import LOOKBACK_WINDOWS
from coderecall.flashcards.models import FlashCard
from coderecall.flashcards.repository import DailyFlashcardRepository
from coderecall.flashcards.selector import ContentSelector
from coderecall.github.client import GitHubClient, GitHubFetchError
from coderecall.github.models import RepositoryRef
from coderecall.llm.base import AIGenerationError, GenerationClient, filter_highlights, normalize
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter, log_event, time_block
from coderecall.utils.dates import Clock, today_key, utc_now, window_bounds

logger = get_logger(__name__)


class PipelineStatus(str, Enum):
    EXISTS = "exists"
    CREATED = "created"
    EMPTY = "empty"
    NO_REPOSITORIES = "no_repositories"


@dataclass
class PipelineResult:
    status: PipelineStatus
    date: str
    cards: list[FlashCard] = field(default_factory=list)


class DailyFlashcardPipeline:
    """
    Args:
        generator: AI generation client (either backend)
        flashcards: Day set repository
        tz: Reference timezone; "today" and every window are computed in it
        clock: Returns the current instant (injectable for tests)
        windows: Lookback offsets in days, in output order
    """

    def __init__(
        self,
        generator: GenerationClient,
        flashcards: DailyFlashcardRepository,
        tz: ZoneInfo,
        clock: Clock = utc_now,
        windows: tuple[int, ...] = LOOKBACK_WINDOWS,
    ) -> None:
        self.generator = generator
        self.flashcards = flashcards
        self.tz = tz
        self.clock = clock
        self.windows = windows

    async def run(
        self,
        user_id: str,
        repositories: list[RepositoryRef],
        source: GitHubClient,
    ) -> PipelineResult:
        """
        Return today's set, generating and storing it on first access.

        Side Effects:
            - Calls the commit source and AI backend (only when no set exists)
            - Inserts today's set (possibly empty) into daily_flashcards
        """
        now = self.clock()
        today = today_key(self.tz, now)

        existing = self.flashcards.get(user_id, today)
        if existing is not None:
            counter("pipeline.run.cached")
            return PipelineResult(PipelineStatus.EXISTS, today, existing)

        if not repositories:
            logger.info("No repositories configured for %s; skipping generation", user_id)
            return PipelineResult(PipelineStatus.NO_REPOSITORIES, today)

        with time_block("pipeline.run.latency"):
            cards: list[FlashCard] = []
            for repo in repositories:
                per_window = await asyncio.gather(
                    *(self._run_window(repo, source, days_ago, now) for days_ago in self.windows)
                )
                for window_cards in per_window:
                    cards.extend(window_cards)

        if not self.flashcards.create_if_absent(user_id, today, cards):
            # Lost a create race; the other writer's set is authoritative
            counter("pipeline.run.race_lost")
            stored = self.flashcards.get(user_id, today) or []
            return PipelineResult(PipelineStatus.EXISTS, today, stored)

        status = PipelineStatus.CREATED if cards else PipelineStatus.EMPTY
        log_event("pipeline.run", user_id=user_id, date=today, status=status.value, cards=len(cards))
        return PipelineResult(status, today, cards)

    async def _run_window(
        self,
        repo: RepositoryRef,
        source: GitHubClient,
        days_ago: int,
        now: datetime,
    ) -> list[FlashCard]:
        since, until = window_bounds(days_ago, self.tz, now)
        try:
            commits = await source.list_commits(repo, since=since, until=until)
            selected = await ContentSelector(source, repo).select(commits)
            if selected is None:
                counter("pipeline.window.empty")
                logger.debug("No content for %s %d days ago", repo.full_name, days_ago)
                return []

            result = await self.generator.generate(selected.content, selected.content_type)
        except (GitHubFetchError, AIGenerationError) as e:
            counter("pipeline.window.error")
            logger.warning(
                "Skipping %s window %dd: %s (%s)", repo.full_name, days_ago, type(e).__name__, e
            )
            return []
        except Exception:
            counter("pipeline.window.error")
            logger.exception("Skipping %s window %dd after unexpected error", repo.full_name, days_ago)
            return []

        try:
            metadata = selected.to_metadata(repo.full_name)
            cards = [
                FlashCard(
                    question=item.question,
                    answer=selected.content,
                    highlights=filter_highlights(item.highlights, selected.content),
                    metadata=metadata,
                )
                for item in normalize(result, selected.content)
            ]
        except Exception:
            counter("pipeline.window.error")
            logger.exception("Skipping %s window %dd after card assembly failed", repo.full_name, days_ago)
            return []
        counter("pipeline.window.ok")
        return cards
