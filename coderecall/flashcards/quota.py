"""
Regeneration quota.

One counter per identity per calendar date. A stored date other than today
means the effective count is zero; that lazy reset is folded into the same
conditional statement that increments, so a slot is granted or refused
atomically without a separate read.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum

from coderecall.config import (
    DEMO_DEVICE_HASH_LENGTH,
    MAX_REPOSITORIES_FREE,
    MAX_REPOSITORIES_PRO,
    REGENERATE_LIMIT_DEMO,
    REGENERATE_LIMIT_FREE,
    REGENERATE_LIMIT_PRO,
)
from coderecall.infrastructure.database import DatabaseConnectionPool, retry_on_db_lock
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter
from coderecall.utils.dates import utc_now

logger = get_logger(__name__)


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"

    @classmethod
    def parse(cls, value: str | None) -> Tier:
        return cls.PRO if value == cls.PRO.value else cls.FREE


def regenerate_limit(tier: Tier) -> int:
    return REGENERATE_LIMIT_PRO if tier == Tier.PRO else REGENERATE_LIMIT_FREE


def repository_limit(tier: Tier) -> int:
    return MAX_REPOSITORIES_PRO if tier == Tier.PRO else MAX_REPOSITORIES_FREE


def hash_device_id(device_id: str) -> str:
    """One-way hash of a client-supplied demo device id; the raw id is never stored."""
    return hashlib.sha256(device_id.encode("utf-8")).hexdigest()[:DEMO_DEVICE_HASH_LENGTH]


@dataclass(frozen=True)
class QuotaIdentity:
    """
    Whose counter a regeneration is charged to.

    Authenticated users and demo devices live in separate tables, so the two
    kinds never share or block each other's counters.
    """

    kind: str  # "user" | "demo"
    key: str
    tier: Tier | None = None

    @classmethod
    def for_user(cls, user_id: str, tier: Tier) -> QuotaIdentity:
        return cls(kind="user", key=user_id, tier=tier)

    @classmethod
    def for_demo(cls, device_id: str) -> QuotaIdentity:
        return cls(kind="demo", key=hash_device_id(device_id))

    @property
    def is_demo(self) -> bool:
        return self.kind == "demo"

    @property
    def limit(self) -> int:
        if self.is_demo:
            return REGENERATE_LIMIT_DEMO
        return regenerate_limit(self.tier or Tier.FREE)


class QuotaRepository:
    """Atomic consume/refund of per-day regeneration slots."""

    def __init__(self, pool: DatabaseConnectionPool) -> None:
        self.pool = pool

    @retry_on_db_lock()
    def try_consume(self, identity: QuotaIdentity, today: str, limit: int | None = None) -> bool:
        """
        Take one slot if the identity is under ``limit`` for ``today``.

        Returns:
            True if granted (counter incremented), False if the ceiling is reached

        Side Effects:
            - Updates users or upserts demo_regenerate_counts
        """
        ceiling = identity.limit if limit is None else limit
        params = {"key": identity.key, "today": today, "limit": ceiling, "now": utc_now().isoformat()}

        with self.pool.transaction() as conn:
            if identity.is_demo:
                cursor = conn.execute(
                    """
                    INSERT INTO demo_regenerate_counts (device_hash, quota_count, quota_date, updated_at)
                    VALUES (:key, 1, :today, :now)
                    ON CONFLICT(device_hash) DO UPDATE SET
                        quota_count = CASE
                            WHEN demo_regenerate_counts.quota_date = :today
                            THEN demo_regenerate_counts.quota_count + 1
                            ELSE 1
                        END,
                        quota_date = :today,
                        updated_at = :now
                    WHERE demo_regenerate_counts.quota_date != :today
                       OR demo_regenerate_counts.quota_count < :limit
                    """,
                    params,
                )
            else:
                cursor = conn.execute(
                    """
                    UPDATE users SET
                        regenerate_count_today = CASE
                            WHEN last_regenerate_date = :today THEN regenerate_count_today + 1
                            ELSE 1
                        END,
                        last_regenerate_date = :today,
                        updated_at = :now
                    WHERE user_id = :key
                      AND (last_regenerate_date IS NULL
                           OR last_regenerate_date != :today
                           OR regenerate_count_today < :limit)
                    """,
                    params,
                )
            granted = cursor.rowcount == 1

        if granted:
            counter(f"quota.{identity.kind}.granted")
        else:
            counter(f"quota.{identity.kind}.rejected")
            logger.info("Regeneration quota exhausted for %s identity (limit=%d)", identity.kind, ceiling)
        return granted

    @retry_on_db_lock()
    def refund(self, identity: QuotaIdentity, today: str) -> None:
        """
        Give back a slot taken by try_consume for ``today``.

        Side Effects:
            - Decrements the counter (never below zero, never across dates)
        """
        now = utc_now().isoformat()
        with self.pool.transaction() as conn:
            if identity.is_demo:
                conn.execute(
                    """
                    UPDATE demo_regenerate_counts
                    SET quota_count = quota_count - 1, updated_at = ?
                    WHERE device_hash = ? AND quota_date = ? AND quota_count > 0
                    """,
                    (now, identity.key, today),
                )
            else:
                conn.execute(
                    """
                    UPDATE users
                    SET regenerate_count_today = regenerate_count_today - 1, updated_at = ?
                    WHERE user_id = ? AND last_regenerate_date = ? AND regenerate_count_today > 0
                    """,
                    (now, identity.key, today),
                )
        counter(f"quota.{identity.kind}.refunded")

    def effective_count(self, identity: QuotaIdentity, today: str) -> int:
        """Count used today; zero when the stored date is not ``today``."""
        with self.pool.connection() as conn:
            if identity.is_demo:
                row = conn.execute(
                    "SELECT quota_count AS count, quota_date AS date FROM demo_regenerate_counts WHERE device_hash = ?",
                    (identity.key,),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT regenerate_count_today AS count, last_regenerate_date AS date FROM users WHERE user_id = ?",
                    (identity.key,),
                ).fetchone()

        if row is None or row["date"] != today:
            return 0
        return int(row["count"])
