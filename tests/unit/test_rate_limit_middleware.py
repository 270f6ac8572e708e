"""Unit tests for rate limiting middleware

Tests cover:
- Requests under limit allowed
- Minute and hour limit enforcement
- Stricter bucket on AI-generating POST paths
- Health endpoint bypass
- Per-IP isolation
- CORS headers on 429 responses for allowed origins
- Memory cleanup
"""

from __future__ import annotations

import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from coderecall.api.middleware.rate_limit import RateLimitMiddleware, is_generation_path


def _make_app(**limits):
    test_app = FastAPI()
    test_app.state.allowed_origins = ("https://app.coderecall.dev",)
    test_app.add_middleware(RateLimitMiddleware, **limits)

    @test_app.get("/api/test")
    async def test_endpoint():
        return {"status": "ok"}

    @test_app.post("/api/ai/generate")
    async def generate():
        return {"status": "generated"}

    @test_app.get("/health")
    async def health():
        return {"status": "healthy"}

    return test_app


@pytest.fixture
def app():
    """Test app with low limits"""
    return _make_app(requests_per_minute=5, requests_per_hour=20, generations_per_minute=2)


def test_requests_under_limit_allowed(app):
    """Requests under the limit pass and carry rate limit headers"""
    client = TestClient(app)

    for _ in range(3):
        response = client.get("/api/test")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit-Minute"] == "5"

    assert response.headers["X-RateLimit-Remaining-Minute"] == "2"
    assert response.headers["X-RateLimit-Remaining-Hour"] == "17"


def test_minute_limit_enforced(app):
    """The sixth request in a minute is rejected"""
    client = TestClient(app)

    for _ in range(5):
        assert client.get("/api/test").status_code == 200

    response = client.get("/api/test")
    assert response.status_code == 429
    assert "per minute" in response.json()["detail"]
    assert response.json()["retry_after"] == 60
    assert response.headers["Retry-After"] == "60"


def test_hour_limit_enforced():
    """Hour bucket applies even when the minute bucket has room"""
    client = TestClient(_make_app(requests_per_minute=100, requests_per_hour=3))

    for _ in range(3):
        assert client.get("/api/test").status_code == 200

    response = client.get("/api/test")
    assert response.status_code == 429
    assert "per hour" in response.json()["detail"]
    assert response.headers["Retry-After"] == "3600"


def test_generation_limit_enforced(app):
    """AI-generating POSTs have their own, stricter bucket"""
    client = TestClient(app)

    assert client.post("/api/ai/generate").status_code == 200
    assert client.post("/api/ai/generate").status_code == 200

    response = client.post("/api/ai/generate")
    assert response.status_code == 429
    assert "Generation rate limit" in response.json()["detail"]

    # Ordinary requests still have room in the general bucket
    assert client.get("/api/test").status_code == 200


def test_generation_paths():
    assert is_generation_path("/api/ai/generate")
    assert is_generation_path("/api/demo/flashcards")
    assert not is_generation_path("/api/flashcards/today")


def test_health_endpoints_bypass_rate_limit(app):
    """Health checks work after the limit is exhausted"""
    client = TestClient(app)
    for _ in range(6):
        client.get("/api/test")

    response = client.get("/health")
    assert response.status_code == 200
    assert "X-RateLimit-Limit-Minute" not in response.headers


def test_per_ip_isolation(app):
    """Limits are tracked per client IP"""
    client = TestClient(app)

    for _ in range(5):
        assert client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.1"}).status_code == 200
    assert client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.1"}).status_code == 429

    assert client.get("/api/test", headers={"X-Forwarded-For": "192.168.1.2"}).status_code == 200


def test_invalid_forwarded_ip_ignored(app):
    """A malformed X-Forwarded-For falls back to the socket address"""
    client = TestClient(app)

    for _ in range(5):
        client.get("/api/test", headers={"X-Forwarded-For": "not-an-ip"})

    assert client.get("/api/test").status_code == 429


def test_429_carries_cors_headers_for_allowed_origin(app):
    """Browsers can read the rejection from an allowed origin"""
    client = TestClient(app)
    for _ in range(5):
        client.get("/api/test")

    allowed = client.get("/api/test", headers={"Origin": "https://app.coderecall.dev"})
    other = client.get("/api/test", headers={"Origin": "https://evil.example"})

    assert allowed.status_code == 429
    assert allowed.headers["Access-Control-Allow-Origin"] == "https://app.coderecall.dev"
    assert "Access-Control-Allow-Origin" not in other.headers


def test_memory_cleanup():
    """Idle IPs are dropped from every bucket"""
    middleware = RateLimitMiddleware(FastAPI().router, requests_per_minute=100, requests_per_hour=1000)

    for i in range(10):
        middleware.minute_buckets[f"192.168.1.{i}"] = [time.time()]
    old_timestamp = time.time() - 10800
    for i in range(5):
        middleware.minute_buckets[f"192.168.2.{i}"] = [old_timestamp]
        middleware.hour_buckets[f"192.168.2.{i}"] = [old_timestamp]
        middleware.generation_buckets[f"192.168.2.{i}"] = [old_timestamp]

    middleware._cleanup_old_buckets()

    assert len(middleware.minute_buckets) == 10
    assert len(middleware.hour_buckets) == 0
    assert len(middleware.generation_buckets) == 0
