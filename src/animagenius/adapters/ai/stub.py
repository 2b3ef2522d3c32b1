"""Stub AI provider for testing."""

from uuid import uuid4

from animagenius.adapters.ai.base import AIProvider, AIResult
from animagenius.logging import get_logger

logger = get_logger(__name__)


class StubAIProvider(AIProvider):
    """Stub provider that returns canned analysis, scripts and video URLs."""

    @property
    def name(self) -> str:
        return "stub"

    async def analyze(self, content: str, content_type: str) -> AIResult:
        logger.info("stub_ai_analyze", content_type=content_type, content_length=len(content))
        excerpt = " ".join(content.split())[:200]
        return AIResult(
            success=True,
            data=(
                f"Key themes of this {content_type}: {excerpt}\n"
                "Tone: informative. Recommended structure: hook, three key points, recap."
            ),
            model="stub-model",
        )

    async def generate_script(self, analysis: str, duration_seconds: int, style: str) -> AIResult:
        logger.info("stub_ai_script", duration=duration_seconds, style=style)
        sections = max(1, duration_seconds // 20)
        step = duration_seconds // sections
        segments = []
        for i in range(sections):
            start, end = i * step, duration_seconds if i == sections - 1 else (i + 1) * step
            segments.append(
                {
                    "timestamp": f"{start // 60:02d}:{start % 60:02d}-{end // 60:02d}:{end % 60:02d}",
                    "narration": f"Part {i + 1}: {analysis[:80]}",
                    "visual_cue": "Animated title card over a clean background",
                    "music_mood": "upbeat" if i == 0 else "calm",
                }
            )
        return AIResult(
            success=True,
            data={
                "title": "Stub Video",
                "duration": duration_seconds,
                "script": segments,
                "summary": f"A {style} {duration_seconds}-second overview.",
            },
            model="stub-model",
        )

    async def generate_video(self, prompt: str, duration_seconds: int) -> AIResult:
        logger.info("stub_ai_video", duration=duration_seconds, prompt_length=len(prompt))
        return AIResult(
            success=True,
            data=f"https://stub.animagenius.local/videos/{uuid4()}.mp4",
            model="stub-model",
        )
