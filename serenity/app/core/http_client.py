"""Shared HTTP client for upstream calls.

One ``httpx.AsyncClient`` is opened in the application lifespan and shared by
the completion and moderation calls for connection reuse.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from serenity.app.core.config import Settings


def build_timeout(config: Settings) -> httpx.Timeout:
    """Granular timeouts; ``read`` bounds the gap between streamed chunks."""
    return httpx.Timeout(
        connect=config.httpx_connect_timeout,
        read=config.httpx_read_timeout,
        write=config.httpx_write_timeout,
        pool=config.httpx_pool_timeout,
    )


@asynccontextmanager
async def init_http_client(config: Settings) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Open the shared HTTP client and close it on exit.

    Used from the FastAPI lifespan:

        async with init_http_client(settings) as http_client:
            yield
    """
    limits = httpx.Limits(
        max_connections=config.httpx_max_connections,
        max_keepalive_connections=config.httpx_max_keepalive_connections,
        keepalive_expiry=config.httpx_keepalive_expiry,
    )
    client = httpx.AsyncClient(timeout=build_timeout(config), limits=limits)
    try:
        yield client
    finally:
        await client.aclose()
