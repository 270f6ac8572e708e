"""FastAPI server for CodeRecall daily flashcards"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coderecall.api.dependencies import ServiceContainer
from coderecall.api.middleware.rate_limit import RateLimitMiddleware
from coderecall.api.routes.ai import router as ai_router
from coderecall.api.routes.demo import router as demo_router
from coderecall.api.routes.flashcards import router as flashcards_router
from coderecall.api.routes.github import router as github_router
from coderecall.api.routes.health import router as health_router
from coderecall.api.routes.users import router as users_router
from coderecall.config import APP_ENV, APP_VERSION, CORS_ALLOWED_ORIGINS
from coderecall.observability.logging import get_logger
from coderecall.observability.telemetry import counter

logger = get_logger(__name__)

DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def _allowed_origins() -> list[str]:
    origins = list(CORS_ALLOWED_ORIGINS)
    if APP_ENV == "development":
        origins.extend(DEV_ORIGINS)
    return origins


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    400 for malformed request bodies and parameters, exposing field names only.

    Side Effects:
        - Logs the full validation errors
        - Increments api.validation_errors
    """
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


def create_app(services: ServiceContainer | None = None, rate_limit: bool = True) -> FastAPI:
    """
    Build the API.

    Args:
        services: Pre-built services (tests); production wiring is built on startup when omitted
        rate_limit: Install the per-IP rate limiting middleware
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = services is None
        if owned:
            app.state.services = ServiceContainer.build()
        logger.info("CodeRecall API started (env=%s)", APP_ENV)
        try:
            yield
        finally:
            if owned:
                await app.state.services.aclose()

    app = FastAPI(title="CodeRecall API", version=APP_VERSION, lifespan=lifespan)
    if services is not None:
        app.state.services = services

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    allowed_origins = _allowed_origins()
    app.state.allowed_origins = tuple(allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-GitHub-Token", "X-Request-ID"],
    )
    if rate_limit:
        app.add_middleware(RateLimitMiddleware)

    app.include_router(health_router)
    app.include_router(flashcards_router)
    app.include_router(users_router)
    app.include_router(github_router)
    app.include_router(ai_router)
    app.include_router(demo_router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "coderecall.api.app:app",
        host=os.getenv("CODERECALL_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
