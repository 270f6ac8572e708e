"""
Persistence for day sets and user profiles.

Day sets are written with a create-if-absent insert keyed by
(user_id, card_date), so concurrent first requests of the day produce exactly
one stored set. Individual card questions are rewritten in place under an
immediate transaction; answers and metadata are never touched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from coderecall.flashcards.models import FlashCard, cards_from_json_list, cards_to_json_list
from coderecall.flashcards.quota import Tier
from coderecall.github.models import RepositoryRef
from coderecall.infrastructure.database import DatabaseConnectionPool, retry_on_db_lock
from coderecall.observability.logging import get_logger
from coderecall.utils.dates import utc_now

logger = get_logger(__name__)


class DailyFlashcardRepository:
    """CRUD for the daily_flashcards table."""

    def __init__(self, pool: DatabaseConnectionPool) -> None:
        self.pool = pool

    def get(self, user_id: str, card_date: str) -> list[FlashCard] | None:
        """
        Returns:
            The stored cards (possibly empty), or None if no set exists
        """
        with self.pool.connection() as conn:
            row = conn.execute(
                "SELECT data FROM daily_flashcards WHERE user_id = ? AND card_date = ?",
                (user_id, card_date),
            ).fetchone()

        if row is None:
            return None
        return cards_from_json_list(json.loads(row["data"]))

    @retry_on_db_lock()
    def create_if_absent(self, user_id: str, card_date: str, cards: list[FlashCard]) -> bool:
        """
        Store a day set unless one already exists.

        Returns:
            True if this call created the set, False if another writer got there first

        Side Effects:
            - Inserts into daily_flashcards
        """
        now = utc_now().isoformat()
        data = json.dumps(cards_to_json_list(cards), ensure_ascii=False)
        with self.pool.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO daily_flashcards (user_id, card_date, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, card_date, data, now, now),
            )
            created = cursor.rowcount == 1

        if created:
            logger.info("Stored %d flashcards for %s on %s", len(cards), user_id, card_date)
        return created

    @retry_on_db_lock()
    def delete(self, user_id: str, card_date: str) -> bool:
        """
        Returns:
            True if a set was deleted

        Side Effects:
            - Deletes from daily_flashcards
        """
        with self.pool.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM daily_flashcards WHERE user_id = ? AND card_date = ?",
                (user_id, card_date),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted flashcards for %s on %s", user_id, card_date)
        return deleted

    @retry_on_db_lock()
    def update_card_question(
        self,
        user_id: str,
        card_date: str,
        index: int,
        question: str,
        highlights: list[str],
    ) -> bool:
        """
        Replace one card's question and highlights in place.

        Returns:
            False if the set or the index does not exist
        """
        now = utc_now().isoformat()
        with self.pool.transaction() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM daily_flashcards WHERE user_id = ? AND card_date = ?",
                (user_id, card_date),
            ).fetchone()
            if row is None:
                return False

            items: list[dict[str, Any]] = json.loads(row["data"])
            if not 0 <= index < len(items):
                return False

            items[index]["question"] = question
            items[index]["highlights"] = list(highlights)
            conn.execute(
                "UPDATE daily_flashcards SET data = ?, updated_at = ? WHERE user_id = ? AND card_date = ?",
                (json.dumps(items, ensure_ascii=False), now, user_id, card_date),
            )
        return True

    def list_dates(self, user_id: str, limit: int = 60) -> list[str]:
        """Dates with a stored set, newest first."""
        with self.pool.connection() as conn:
            rows = conn.execute(
                "SELECT card_date FROM daily_flashcards WHERE user_id = ? ORDER BY card_date DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [row["card_date"] for row in rows]


@dataclass
class UserProfile:
    user_id: str
    tier: Tier = Tier.FREE
    regenerate_count_today: int = 0
    last_regenerate_date: str | None = None
    repositories: list[RepositoryRef] = field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> UserProfile:
        repositories = []
        for item in json.loads(row.get("repositories") or "[]"):
            try:
                repositories.append(RepositoryRef.parse(item["fullName"], branch=item.get("branch")))
            except (KeyError, ValueError):
                logger.warning("Skipping malformed stored repository for %s: %r", row["user_id"], item)
        return cls(
            user_id=row["user_id"],
            tier=Tier.parse(row.get("subscription_tier")),
            regenerate_count_today=int(row.get("regenerate_count_today") or 0),
            last_regenerate_date=row.get("last_regenerate_date"),
            repositories=repositories,
        )


class UserRepository:
    """CRUD for the users table. Tier is written only by billing/admin paths."""

    def __init__(self, pool: DatabaseConnectionPool) -> None:
        self.pool = pool

    def get(self, user_id: str) -> UserProfile | None:
        with self.pool.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return UserProfile.from_db_row(dict(row)) if row else None

    @retry_on_db_lock()
    def get_or_create(self, user_id: str) -> UserProfile:
        """
        Load a profile, creating a free-tier one on first sight.

        Side Effects:
            - May insert into users
        """
        now = utc_now().isoformat()
        with self.pool.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO users (user_id, subscription_tier, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, Tier.FREE.value, now, now),
            )
            if cursor.rowcount == 1:
                logger.info("Created user profile for %s", user_id)
            row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
        return UserProfile.from_db_row(dict(row))

    @retry_on_db_lock()
    def set_repositories(self, user_id: str, repositories: list[RepositoryRef]) -> None:
        self.get_or_create(user_id)
        data = json.dumps([repo.to_dict() for repo in repositories])
        with self.pool.transaction() as conn:
            conn.execute(
                "UPDATE users SET repositories = ?, updated_at = ? WHERE user_id = ?",
                (data, utc_now().isoformat(), user_id),
            )

    @retry_on_db_lock()
    def set_subscription_tier(self, user_id: str, tier: Tier) -> None:
        self.get_or_create(user_id)
        with self.pool.transaction() as conn:
            conn.execute(
                "UPDATE users SET subscription_tier = ?, updated_at = ? WHERE user_id = ?",
                (tier.value, utc_now().isoformat(), user_id),
            )
        logger.info("Set subscription tier for %s to %s", user_id, tier.value)
