"""
Regeneration Service.

Single-question regeneration replaces one card's question (never its
answer) and is charged against the caller's daily quota. Day-level
regeneration deletes today's set so the next pipeline call rebuilds it;
it is pro-only and shares the same counter and ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo

from coderecall.flashcards.quota import QuotaIdentity, QuotaRepository, Tier, regenerate_limit
from coderecall.flashcards.repository import DailyFlashcardRepository, UserProfile
from coderecall.llm.base import AIGenerationError, AIParseError, filter_highlights
from coderecall.llm.openai_compat import StructuredOutputClient
from coderecall.llm.prompts import REGENERATE_QUESTION_PROMPT, build_regenerate_user_content
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter, log_event
from coderecall.utils.dates import Clock, today_key, utc_now

logger = get_logger(__name__)


class RateLimitedError(Exception):
    """Daily regeneration ceiling reached for this identity."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Daily regenerate limit reached ({limit})")
        self.limit = limit


class ProTierRequiredError(Exception):
    """Operation is only available on the pro tier."""


@dataclass
class RegeneratedQuestion:
    question: str
    highlights: list[str]

    def to_dict(self) -> dict[str, object]:
        return {"question": self.question, "highlights": list(self.highlights)}


class RegenerationService:
    """
    Args:
        client: Structured-output AI client
        quota: Quota repository
        flashcards: Day set repository, for in-place updates and day deletes
        tz: Reference timezone for "today"
        clock: Returns the current instant (injectable for tests)
    """

    def __init__(
        self,
        client: StructuredOutputClient,
        quota: QuotaRepository,
        flashcards: DailyFlashcardRepository,
        tz: ZoneInfo,
        clock: Clock = utc_now,
    ) -> None:
        self.client = client
        self.quota = quota
        self.flashcards = flashcards
        self.tz = tz
        self.clock = clock

    def today(self) -> str:
        return today_key(self.tz, self.clock())

    async def regenerate_question(
        self,
        identity: QuotaIdentity,
        raw_diff: str,
        existing_question: str,
        existing_answer: str,
        flashcard_date: str | None = None,
        card_index: int | None = None,
    ) -> RegeneratedQuestion:
        """
        Produce a different question for an existing answer.

        The quota slot is reserved before the AI call and refunded if the
        call fails, so failures never cost the caller.

        Raises:
            RateLimitedError: If the identity's ceiling is reached today
            AIGenerationError: If the AI call fails (slot refunded)
        """
        today = self.today()
        if not self.quota.try_consume(identity, today):
            log_event("regenerate.rate_limited", kind=identity.kind, limit=identity.limit)
            raise RateLimitedError(identity.limit)

        try:
            result = await self.client.complete_structured(
                REGENERATE_QUESTION_PROMPT,
                build_regenerate_user_content(raw_diff, existing_question, existing_answer),
                temperature=0.75,
                max_tokens=2048,
            )
            if not result.items or not result.items[0].question.strip():
                raise AIParseError("AI response contained no question")
        except AIGenerationError:
            self.quota.refund(identity, today)
            counter("regenerate.question.failed")
            raise

        item = result.items[0]
        regenerated = RegeneratedQuestion(
            question=item.question.strip(),
            highlights=filter_highlights(item.highlights, existing_answer, raw_diff),
        )

        if not identity.is_demo and flashcard_date is not None and card_index is not None:
            updated = self.flashcards.update_card_question(
                identity.key, flashcard_date, card_index, regenerated.question, regenerated.highlights
            )
            if not updated:
                logger.warning("No stored card %s[%d] for %s to update", flashcard_date, card_index, identity.key)

        counter("regenerate.question.ok")
        return regenerated

    def regenerate_today(self, user: UserProfile) -> str:
        """
        Delete today's set so the next pipeline call rebuilds it.

        Returns:
            The date key that was cleared

        Raises:
            ProTierRequiredError: If the user is not pro
            RateLimitedError: If today's ceiling is reached
        """
        if user.tier != Tier.PRO:
            raise ProTierRequiredError("Regenerating today's cards requires the pro tier")

        today = self.today()
        identity = QuotaIdentity.for_user(user.user_id, user.tier)
        limit = regenerate_limit(Tier.PRO)
        if not self.quota.try_consume(identity, today, limit=limit):
            raise RateLimitedError(limit)

        self.flashcards.delete(user.user_id, today)
        log_event("regenerate.today", user_id=user.user_id, date=today)
        return today
