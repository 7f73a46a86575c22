"""API endpoints package for the proxy."""

from serenity.app.api.chat import router as chat_router

__all__ = [
    "chat_router",
]
