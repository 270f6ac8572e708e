"""
Error message sanitization utility.

Prevents information leakage by sanitizing error messages before returning
them to clients. Upstream GitHub and AI errors often echo request details
(tokens, URLs, raw bodies) that must stay in the server log.
"""

from __future__ import annotations

import re

from coderecall.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack trace indicators
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    # Database errors
    r"sqlite3?\.",
    r"UNIQUE constraint",
    r"no such table",
    r"no such column",
    # API keys / secrets patterns
    r"[A-Za-z0-9_-]{32,}",
    r"Bearer [A-Za-z0-9._-]+",
    r"gh[pousr]_[A-Za-z0-9]+",
    r"sk-[A-Za-z0-9]+",
    # Internal module names
    r"coderecall\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    502: "Upstream service failed. Please try again later.",
    503: "Service temporarily unavailable.",
    504: "Upstream service timed out.",
}


def sanitize_error_message(
    message: str,
    status_code: int = 500,
    allow_field_names: bool = True,
) -> str:
    """
    Sanitize an error message to prevent information leakage.

    Short, single-line client errors (4xx) pass through unchanged; anything
    matching a sensitive pattern, and every 5xx message, is replaced with a
    generic message for the status code.
    """
    if not message:
        return GENERIC_MESSAGES.get(status_code, "An error occurred.")

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return GENERIC_MESSAGES.get(status_code, "An error occurred.")

    if (
        400 <= status_code < 500
        and allow_field_names
        and len(message) < 120
        and not any(c in message for c in ["{", "}", "[", "]", "\n"])
    ):
        return message

    return GENERIC_MESSAGES.get(status_code, "An error occurred.")
