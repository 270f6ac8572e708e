"""Rate limiting middleware for the CodeRecall API

Per-client-IP request buckets protect the service; a stricter per-minute
bucket on AI-generating paths bounds model spend.

Security features:
- IP spoofing protection (only trusts X-Forwarded-For behind a known proxy)
- Memory bound via TTLCache buckets plus periodic idle-IP cleanup
"""

from __future__ import annotations

import ipaddress
import os
import secrets
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from coderecall.config import (
    RATE_LIMIT_GENERATION_PM,
    RATE_LIMIT_MAX_IPS,
    RATE_LIMIT_RPH,
    RATE_LIMIT_RPM,
)
from coderecall.observability.telemetry import log_event

GENERATION_PATH_PREFIXES = ("/api/ai/generate", "/api/demo/")
EXEMPT_PATHS = ("/health", "/health/db", "/")


def is_generation_path(path: str) -> bool:
    return path.startswith(GENERATION_PATH_PREFIXES)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Request rate limiting per client IP.

    Limits:
    - All API paths: requests_per_minute and requests_per_hour
    - AI-generating paths: additionally generations_per_minute

    For multi-instance deployments, back these buckets with a shared store.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = RATE_LIMIT_RPM,
        requests_per_hour: int = RATE_LIMIT_RPH,
        generations_per_minute: int = RATE_LIMIT_GENERATION_PM,
        max_ips: int = RATE_LIMIT_MAX_IPS,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.generations_per_minute = generations_per_minute

        # {ip: [timestamp, ...]}
        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=max_ips, ttl=120)
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=max_ips, ttl=7200)
        self.generation_buckets: TTLCache[str, list[float]] = TTLCache(maxsize=max_ips, ttl=120)

        self._trusted_proxy_header = "X-Cloud-Trace-Context"

    def _is_valid_ip(self, ip_str: str) -> bool:
        """Validate that a string is a valid IPv4 or IPv6 address."""
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP with spoofing protection.

        X-Forwarded-For is trusted only behind the trusted proxy (or in
        development); otherwise the socket address is used.
        """
        is_from_trusted_proxy = self._trusted_proxy_header in request.headers
        is_development = os.getenv("CODERECALL_ENV", "development") == "development"

        if is_from_trusted_proxy or is_development:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                ip = forwarded.split(",")[0].strip()
                if self._is_valid_ip(ip):
                    return ip

        if is_development:
            real_ip = request.headers.get("X-Real-IP")
            if real_ip and self._is_valid_ip(real_ip):
                return real_ip

        return request.client.host if request.client else "unknown"

    def _clean_old_requests(self, bucket: list[float], max_age_seconds: int) -> list[float]:
        """Remove requests older than max_age_seconds"""
        now = time.time()
        return [ts for ts in bucket if now - ts < max_age_seconds]

    def _cleanup_old_buckets(self) -> None:
        """Drop IPs idle for more than 2 hours."""
        now = time.time()
        max_idle_time = 7200

        ips_to_remove = []
        for ip in list(self.minute_buckets.keys()):
            bucket = self.minute_buckets.get(ip, [])
            if not bucket or now - max(bucket) > max_idle_time:
                ips_to_remove.append(ip)

        for ip in ips_to_remove:
            self.minute_buckets.pop(ip, None)
            self.hour_buckets.pop(ip, None)
            self.generation_buckets.pop(ip, None)

    def _too_many(self, request: Request, detail: str, retry_after: int) -> JSONResponse:
        origin = request.headers.get("origin", "")
        cors_headers = {}
        if origin and origin in getattr(request.app.state, "allowed_origins", ()):
            cors_headers = {"Access-Control-Allow-Origin": origin, "Access-Control-Allow-Credentials": "true"}
        return JSONResponse(
            status_code=429,
            content={"detail": detail, "retry_after": retry_after},
            headers={"Retry-After": str(retry_after), **cors_headers},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limits before processing request."""
        path = request.url.path
        if path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        if secrets.randbelow(100) == 0:
            self._cleanup_old_buckets()

        client_ip = self._get_client_ip(request)
        now = time.time()

        self.minute_buckets[client_ip] = self._clean_old_requests(self.minute_buckets.get(client_ip, []), 60)
        self.hour_buckets[client_ip] = self._clean_old_requests(self.hour_buckets.get(client_ip, []), 3600)

        minute_requests = len(self.minute_buckets.get(client_ip, []))
        if minute_requests >= self.requests_per_minute:
            log_event("api.rate_limit.request_exceeded", ip=client_ip, limit="minute", count=minute_requests)
            return self._too_many(
                request, f"Rate limit exceeded. Maximum {self.requests_per_minute} requests per minute.", 60
            )

        hour_requests = len(self.hour_buckets.get(client_ip, []))
        if hour_requests >= self.requests_per_hour:
            log_event("api.rate_limit.request_exceeded", ip=client_ip, limit="hour", count=hour_requests)
            return self._too_many(
                request, f"Rate limit exceeded. Maximum {self.requests_per_hour} requests per hour.", 3600
            )

        generating = is_generation_path(path) and request.method == "POST"
        if generating:
            self.generation_buckets[client_ip] = self._clean_old_requests(
                self.generation_buckets.get(client_ip, []), 60
            )
            generations = len(self.generation_buckets.get(client_ip, []))
            if generations >= self.generations_per_minute:
                log_event("api.rate_limit.generation_exceeded", ip=client_ip, count=generations)
                return self._too_many(
                    request,
                    f"Generation rate limit exceeded. Maximum {self.generations_per_minute} per minute.",
                    60,
                )
            generation_bucket = self.generation_buckets.get(client_ip, [])
            generation_bucket.append(now)
            self.generation_buckets[client_ip] = generation_bucket

        minute_bucket = self.minute_buckets.get(client_ip, [])
        minute_bucket.append(now)
        self.minute_buckets[client_ip] = minute_bucket

        hour_bucket = self.hour_buckets.get(client_ip, [])
        hour_bucket.append(now)
        self.hour_buckets[client_ip] = hour_bucket

        response = await call_next(request)

        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(self.requests_per_minute - minute_requests - 1)
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(self.requests_per_hour - hour_requests - 1)
        return response
