"""Upstream model API providers."""

from serenity.app.providers.base import BaseProvider
from serenity.app.providers.openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
]
