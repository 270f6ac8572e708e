"""
User authentication for the CodeRecall API.

Verifies Google OAuth bearer tokens and extracts user identity. Session
management lives with the identity provider; this module only checks tokens.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import httpx
from cachetools import TTLCache
from fastapi import HTTPException, Request, status

from coderecall.config import TOKEN_CACHE_TTL_SECONDS
from coderecall.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_INFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

_CACHE_MAX_SIZE = 1000


@dataclass
class AuthenticatedUser:
    """Represents an authenticated user from Google OAuth."""

    id: str
    email: str
    name: str | None = None
    picture: str | None = None

    def __str__(self) -> str:
        return f"User({self.id})"


# Shorter than Google's 1 hour token expiry so revoked tokens age out
_token_cache: TTLCache[str, AuthenticatedUser] = TTLCache(maxsize=_CACHE_MAX_SIZE, ttl=TOKEN_CACHE_TTL_SECONDS)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def verify_google_token(token: str, client: httpx.AsyncClient) -> AuthenticatedUser:
    """
    Verify a Google OAuth token and return user info.

    Args:
        token: OAuth access token from the client
        client: Shared AsyncClient

    Raises:
        HTTPException: 401 if the token is invalid or expired, 503 if Google is unreachable
    """
    if token in _token_cache:
        return _token_cache[token]

    try:
        token_response = await client.get(GOOGLE_TOKEN_INFO_URL, params={"access_token": token}, timeout=10.0)
    except httpx.TimeoutException:
        logger.warning("Token validation timed out")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from None
    except httpx.RequestError as e:
        logger.error("Token validation request failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        ) from e

    if token_response.status_code != 200:
        logger.warning("Invalid token (status %d)", token_response.status_code)
        raise _unauthorized("Invalid or expired token")

    token_info = token_response.json()

    expected_client_id = os.getenv("GOOGLE_OAUTH_CLIENT_ID")
    is_production = os.getenv("CODERECALL_ENV", "development") == "production"

    if not expected_client_id and is_production:
        logger.error("GOOGLE_OAUTH_CLIENT_ID not configured in production!")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: OAuth client ID not set",
        )

    if expected_client_id:
        aud = token_info.get("aud", "")
        if aud != expected_client_id:
            logger.warning("Token audience mismatch: expected=%s, got=%s", expected_client_id, aud)
            raise _unauthorized("Token not issued for this application")
    else:
        logger.warning("GOOGLE_OAUTH_CLIENT_ID not set - skipping audience validation (dev mode only)")

    try:
        userinfo_response = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {token}"},
            timeout=10.0,
        )
    except (httpx.TimeoutException, httpx.RequestError) as e:
        logger.error("Failed to get user info: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to retrieve user information",
        ) from e

    if userinfo_response.status_code != 200:
        logger.warning("Failed to get user info (status %d)", userinfo_response.status_code)
        raise _unauthorized("Failed to retrieve user information")

    userinfo = userinfo_response.json()
    user = AuthenticatedUser(
        id=userinfo["id"],
        email=userinfo.get("email", ""),
        name=userinfo.get("name"),
        picture=userinfo.get("picture"),
    )

    _token_cache[token] = user
    logger.info("Authenticated user: %s (cache size: %d)", user, len(_token_cache))
    return user


def _extract_bearer_token(authorization: str | None) -> str:
    """Extract token from Authorization header."""
    if not authorization:
        raise _unauthorized("Missing authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized("Invalid authorization header format. Expected: Bearer <token>")

    return parts[1]


async def get_current_user(request: Request) -> AuthenticatedUser:
    """
    FastAPI dependency to get the current authenticated user (fails closed with 401).

    Usage:
        @router.get("/endpoint")
        async def endpoint(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    token = _extract_bearer_token(request.headers.get("Authorization"))
    return await verify_google_token(token, request.app.state.services.http_client)


async def get_optional_user(request: Request) -> AuthenticatedUser | None:
    """
    FastAPI dependency for optional authentication.

    Returns None only when no Authorization header is sent. A header that is
    present but invalid is still rejected with 401, never downgraded to
    anonymous access.
    """
    authorization = request.headers.get("Authorization")
    if not authorization:
        return None

    token = _extract_bearer_token(authorization)
    return await verify_google_token(token, request.app.state.services.http_client)


def clear_token_cache() -> None:
    """Clear the token cache. Useful for testing."""
    _token_cache.clear()
