"""OpenRouter (OpenAI-compatible chat completions) AI provider."""

import json
from typing import Any

import httpx

from animagenius.adapters.ai.base import AIProvider, AIResult
from animagenius.config import settings
from animagenius.logging import get_logger

logger = get_logger(__name__)

ANALYSIS_PROMPT = """You are an expert content analyzer for video creation. \
Analyze the provided {content_type} content and extract:
1. Key themes and topics
2. Main narrative points
3. Visual elements described or suggested
4. Target audience and tone
5. Recommended video structure
6. Key quotes or important segments

Provide a structured analysis that will help create an engaging video script."""

SCRIPT_PROMPT = """You are an expert video script writer. Create an engaging \
{duration}-second video script based on the content analysis.

Requirements:
- Script duration: {duration} seconds (approximately {sentences} sentences)
- Style: {style}
- Include timestamps for key sections
- Provide visual cues and suggestions
- Include clear narration text
- Suggest appropriate background music mood

Format your response as JSON with:
{{
  "title": "Video title",
  "duration": {duration},
  "script": [
    {{
      "timestamp": "00:00-00:10",
      "narration": "Opening narration text",
      "visual_cue": "Visual description",
      "music_mood": "upbeat/calm/dramatic"
    }}
  ],
  "summary": "Brief script summary"
}}"""

VIDEO_PROMPT = (
    "Create a {duration}-second video: {prompt}. "
    "High quality, professional, smooth transitions, engaging visuals."
)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def parse_script_payload(text: str) -> dict[str, Any]:
    """Parse the script model's reply, keeping unparseable text as a raw script."""
    try:
        payload = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError:
        return {"raw_script": text}
    if not isinstance(payload, dict):
        return {"raw_script": text}
    return payload


class OpenRouterProvider(AIProvider):
    """AI provider backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        analysis_model: str | None = None,
        script_model: str | None = None,
        video_model: str | None = None,
    ) -> None:
        self.api_key = api_key or settings.ai_api_key
        self.api_url = api_url or settings.ai_api_url
        self.analysis_model = analysis_model or settings.ai_analysis_model
        self.script_model = script_model or settings.ai_script_model
        self.video_model = video_model or settings.ai_video_model

        if not self.api_key:
            logger.warning("AI API key not configured")

    @property
    def name(self) -> str:
        return "openrouter"

    async def _chat(
        self,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
        timeout: float = 120.0,
    ) -> str:
        if not self.api_key:
            raise ValueError("AI API key not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload: dict[str, Any] = {"model": model, "messages": messages}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        logger.debug("ai_request", model=model, message_count=len(messages))

        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(self.api_url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()

        choice = data["choices"][0]
        logger.info(
            "ai_response",
            model=model,
            tokens_used=data.get("usage", {}).get("total_tokens", 0),
            finish_reason=choice.get("finish_reason"),
        )
        return choice["message"]["content"]

    async def analyze(self, content: str, content_type: str) -> AIResult:
        messages = [
            {"role": "system", "content": ANALYSIS_PROMPT.format(content_type=content_type)},
            {"role": "user", "content": f"Analyze this {content_type} content:\n\n{content}"},
        ]
        try:
            text = await self._chat(
                self.analysis_model, messages, max_tokens=2000, timeout=settings.analyze_timeout_seconds
            )
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.error("ai_analysis_failed", error=str(e))
            return AIResult(success=False, error=f"AI analysis failed: {e}")
        return AIResult(success=True, data=text, model=self.analysis_model)

    async def generate_script(self, analysis: str, duration_seconds: int, style: str) -> AIResult:
        system = SCRIPT_PROMPT.format(
            duration=duration_seconds,
            sentences=duration_seconds // 10,
            style=style,
        )
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": f"Create a video script based on this analysis:\n\n{analysis}"},
        ]
        try:
            text = await self._chat(
                self.script_model, messages, max_tokens=3000, timeout=settings.script_timeout_seconds
            )
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.error("ai_script_failed", error=str(e))
            return AIResult(success=False, error=f"Script generation failed: {e}")
        return AIResult(success=True, data=parse_script_payload(text), model=self.script_model)

    async def generate_video(self, prompt: str, duration_seconds: int) -> AIResult:
        messages = [
            {"role": "user", "content": VIDEO_PROMPT.format(duration=duration_seconds, prompt=prompt)}
        ]
        try:
            output_ref = await self._chat(
                self.video_model, messages, timeout=settings.render_timeout_seconds
            )
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.error("ai_video_failed", error=str(e))
            return AIResult(success=False, error=f"Video generation failed: {e}")
        output_ref = output_ref.strip()
        if not output_ref:
            return AIResult(success=False, error="Video generation returned no output")
        return AIResult(success=True, data=output_ref, model=self.video_model)

    async def health_check(self) -> bool:
        return bool(self.api_key)
