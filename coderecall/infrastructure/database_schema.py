"""
Database schema for CodeRecall.

Three tables back the pipeline and the regeneration quota:
- daily_flashcards: one row per (user, calendar date), cards stored as JSON
- users: profile, subscription tier, regeneration counter, repository list
- demo_regenerate_counts: anonymous quota keyed by hashed device id
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from coderecall.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES = ("daily_flashcards", "users", "demo_regenerate_counts")

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS daily_flashcards (
        user_id TEXT NOT NULL,
        card_date TEXT NOT NULL,
        data TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (user_id, card_date)
    );

    CREATE TABLE IF NOT EXISTS users (
        user_id TEXT PRIMARY KEY,
        subscription_tier TEXT NOT NULL DEFAULT 'free',
        regenerate_count_today INTEGER NOT NULL DEFAULT 0,
        last_regenerate_date TEXT,
        repositories TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS demo_regenerate_counts (
        device_hash TEXT PRIMARY KEY,
        quota_count INTEGER NOT NULL DEFAULT 0,
        quota_date TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
"""


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Side Effects:
        - Creates the parent directory if needed
        - Creates tables if they don't exist
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema initialized at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected tables

    Raises:
        ValueError: If tables are missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    existing = {row[0] for row in rows}
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        raise ValueError(f"Missing tables: {', '.join(missing)}")
    return True
