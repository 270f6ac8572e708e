"""Error responses with a machine-readable ``code`` next to ``detail``."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from coderecall.github.client import GitHubFetchError
from coderecall.llm.base import AIGenerationError, AITimeoutError
from coderecall.utils.error_sanitizer import sanitize_error_message


def error_response(status_code: int, code: str, detail: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code, **extra})


def limit_exceeded(limit: int) -> JSONResponse:
    return error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "LIMIT_EXCEEDED",
        "Daily regenerate limit reached",
        limit=limit,
    )


def ai_failure(error: AIGenerationError) -> JSONResponse:
    if isinstance(error, AITimeoutError):
        return error_response(
            status.HTTP_504_GATEWAY_TIMEOUT, "AI_TIMEOUT", "The AI took too long to respond. Please try again."
        )
    return error_response(
        status.HTTP_502_BAD_GATEWAY, "AI_FAILED", sanitize_error_message(str(error), status.HTTP_502_BAD_GATEWAY)
    )


def github_http_exception(error: GitHubFetchError) -> HTTPException:
    """Echo the upstream status when it is an HTTP error status, else 502."""
    status_code = error.status_code if 400 <= error.status_code < 600 else status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=status_code, detail=sanitize_error_message(str(error), status_code))
