"""AI generation provider adapters."""

from animagenius.adapters.ai.base import AIProvider, AIResult
from animagenius.adapters.ai.openrouter import OpenRouterProvider
from animagenius.adapters.ai.stub import StubAIProvider
from animagenius.config import settings


def get_ai_provider(name: str | None = None) -> AIProvider:
    """Build the configured AI provider."""
    name = name or settings.ai_provider
    if name == "openrouter":
        return OpenRouterProvider()
    if name == "stub":
        return StubAIProvider()
    raise ValueError(f"Unknown AI provider: {name}")


__all__ = [
    "AIProvider",
    "AIResult",
    "OpenRouterProvider",
    "StubAIProvider",
    "get_ai_provider",
]
