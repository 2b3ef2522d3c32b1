"""Base interface for AI generation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class AIResult:
    """Result of one AI call.

    ``data`` is the analysis text, the parsed script payload, or the video
    output reference, depending on the call.
    """

    success: bool
    data: Any = None
    error: str | None = None
    model: str | None = None


class AIProvider(ABC):
    """Abstract base class for the AI collaborator.

    Implementations:
    - OpenRouterProvider: OpenAI-compatible chat completions endpoint
    - StubAIProvider: Returns canned results for development and tests
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def analyze(self, content: str, content_type: str) -> AIResult:
        """Analyze extracted content for video creation.

        Args:
            content: Extracted text
            content_type: Type label of the source (e.g. "PDF Document")

        Returns:
            AIResult whose data is the analysis text
        """
        ...

    @abstractmethod
    async def generate_script(self, analysis: str, duration_seconds: int, style: str) -> AIResult:
        """Write a timed video script from an analysis.

        Returns:
            AIResult whose data is a dict with either "script" segments or
            a "raw_script" string
        """
        ...

    @abstractmethod
    async def generate_video(self, prompt: str, duration_seconds: int) -> AIResult:
        """Render a video from a prompt.

        Returns:
            AIResult whose data is the output reference (URL)
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is available.

        Returns:
            True if provider is operational
        """
        return True
