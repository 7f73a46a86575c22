import asyncio
import contextlib
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from serenity.app.api.chat import cors_headers, router as chat_router
from serenity.app.core.config import Settings, settings as default_settings
from serenity.app.core.http_client import init_http_client
from serenity.app.core.logging import get_logger, setup_logging
from serenity.app.exceptions import ProxyException, RateLimitExceededError, UpstreamError
from serenity.app.middleware.rate_limit import FixedWindowRateLimiter
from serenity.app.providers.openai import OpenAIProvider
from serenity.app.services.moderation import ModerationGate
from serenity.app.services.relay import CompletionRelay


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to run with, defaults to the environment

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings
    setup_logging(settings)
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Own the shared HTTP client and the rate limit store.

        Both are built once per process and torn down on shutdown.
        """
        if not settings.app_shared_secret:
            logger.warning("APP_SHARED_SECRET is not set, every request will be rejected")
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set, upstream calls will fail")

        async with init_http_client(settings) as http_client:
            provider = OpenAIProvider(
                base_url=settings.openai_base_url,
                api_key=settings.openai_api_key,
                http_client=http_client,
            )
            rate_limiter = FixedWindowRateLimiter(
                capacity=settings.rate_limit_requests_per_window,
                window_seconds=settings.rate_limit_window_seconds,
                max_entries=settings.rate_limit_max_entries,
            )
            app.state.rate_limiter = rate_limiter
            app.state.moderation_gate = ModerationGate(
                provider, fail_closed=settings.moderation_fail_closed
            )
            app.state.completion_relay = CompletionRelay(
                provider,
                model=settings.openai_model,
                temperature=settings.openai_temperature,
                max_tokens=settings.openai_max_tokens,
            )
            sweeper = asyncio.create_task(
                rate_limiter.run_sweeper(settings.rate_limit_sweep_seconds)
            )

            logger.info(
                "Application startup complete",
                extra={
                    "model": settings.openai_model,
                    "rate_limit": settings.rate_limit_requests_per_window,
                    "window_seconds": settings.rate_limit_window_seconds,
                },
            )
            try:
                yield
            finally:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Serenity Proxy",
        description="Chat proxy with a fixed persona, shared-secret access, rate limiting and moderation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(chat_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        limiter = getattr(app.state, "rate_limiter", None)
        return {
            "status": "ok",
            "model": settings.openai_model,
            "rate_limit_buckets": len(limiter) if limiter is not None else 0,
        }

    @app.exception_handler(ProxyException)
    async def proxy_exception_handler(request: Request, exc: ProxyException) -> JSONResponse:
        """Render any proxy rejection as ``{"error": message}``."""
        headers = cors_headers(settings)
        if isinstance(exc, RateLimitExceededError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        if isinstance(exc, UpstreamError):
            logger.warning(
                "Upstream API returned an error",
                extra={"path": request.url.path, "upstream_status": exc.status_code},
            )
        elif exc.status_code >= 500:
            logger.error(
                f"Request failed: {exc.message}",
                extra={"path": request.url.path, "status_code": exc.status_code},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Last resort handler; the full traceback only goes to the log."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exc(),
            },
        )
        content = {"error": str(exc) or "Proxy error"}
        if settings.debug:
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content, headers=cors_headers(settings))

    return app


# Create the application instance
app = create_app()
