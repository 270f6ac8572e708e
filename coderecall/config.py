"""Centralized configuration for the CodeRecall backend.

Typed constants for database, pipeline, LLM, quota, rate-limiting, and API
settings. Environment variable overrides use safe defaults so the app starts
without extra env configuration.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Values below are read at import time, so .env must be loaded first
load_dotenv()

# --- App ---
APP_VERSION: str = "1.0.0"
APP_ENV: str = os.getenv("CODERECALL_ENV", "development")

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("CODERECALL_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("CODERECALL_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("CODERECALL_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("CODERECALL_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("CODERECALL_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("CODERECALL_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("CODERECALL_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("CODERECALL_DB_RETRY_JITTER", "0.1"))

# --- Flashcard Pipeline ---
# All calendar dates ("today", "N days ago") are computed in this zone, not the caller's.
REFERENCE_TIMEZONE: str = os.getenv("CODERECALL_TIMEZONE", "Asia/Seoul")
LOOKBACK_WINDOWS: tuple[int, ...] = (1, 7, 30)
MARKDOWN_EXTENSIONS: tuple[str, ...] = (".md", ".markdown")
DEMO_COMMIT_COUNT: int = 3

# --- Outbound HTTP ---
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("CODERECALL_HTTP_TIMEOUT", "30"))
GITHUB_API_URL: str = os.getenv("CODERECALL_GITHUB_API_URL", "https://api.github.com")
GITHUB_API_VERSION: str = "2022-11-28"
RAW_URL_ALLOWED_HOSTS: tuple[str, ...] = (
    "raw.githubusercontent.com",
    "github.com",
    "gist.githubusercontent.com",
)

# --- LLM ---
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
CLOVA_API_KEY: str = os.getenv("CLOVA_API_KEY", "")
AI_PROVIDER: str = os.getenv("CODERECALL_AI_PROVIDER", "openai").lower()
AI_TIMEOUT_SECONDS: float = float(os.getenv("CODERECALL_AI_TIMEOUT", "30"))
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL: str = os.getenv("CODERECALL_OPENAI_MODEL", "gpt-4o-mini")
CLOVA_CHAT_URL: str = os.getenv(
    "CODERECALL_CLOVA_URL",
    "https://clovastudio.stream.ntruss.com/v3/chat-completions/HCX-007",
)

# --- Regeneration Quota ---
REGENERATE_LIMIT_FREE: int = 3
REGENERATE_LIMIT_PRO: int = 20
REGENERATE_LIMIT_DEMO: int = 3
DEMO_DEVICE_HASH_LENGTH: int = 32

# --- Tiers ---
MAX_REPOSITORIES_FREE: int = 1
MAX_REPOSITORIES_PRO: int = 5

# --- Auth ---
TOKEN_CACHE_TTL_SECONDS: int = 600

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = 60
RATE_LIMIT_RPH: int = 1000
RATE_LIMIT_GENERATION_PM: int = 10
RATE_LIMIT_MAX_IPS: int = 10000

# --- API ---
API_MAX_TEXT_CHARS: int = 200_000
CORS_ALLOWED_ORIGINS: tuple[str, ...] = tuple(
    origin.strip() for origin in os.getenv("CODERECALL_CORS_ORIGINS", "").split(",") if origin.strip()
)
