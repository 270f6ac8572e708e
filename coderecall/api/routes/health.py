"""Health check endpoints for the CodeRecall API.

- /health - Service health including AI credential presence
- /health/db - Database connection pool health
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends

from coderecall.api.dependencies import ServiceContainer, get_services
from coderecall.config import AI_PROVIDER, APP_VERSION

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Service status, version, and AI credential readiness (presence only, no API call)."""
    has_openai_key = bool(os.getenv("OPENAI_API_KEY"))
    has_clova_key = bool(os.getenv("CLOVA_API_KEY"))
    ready = has_clova_key if AI_PROVIDER == "clova" else has_openai_key

    return {
        "status": "healthy",
        "service": "CodeRecall API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "ai": {
            "provider": AI_PROVIDER,
            "ready": ready,
            "openai_api_key": has_openai_key,
            "clova_api_key": has_clova_key,
        },
    }


@router.get("/health/db")
async def database_health(services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    """Connection pool metrics. Degraded above 80% usage."""
    stats = services.pool.stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }
