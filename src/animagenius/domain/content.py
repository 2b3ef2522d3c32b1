"""Versioned documents stored on a project between pipeline stages.

Each document carries a ``kind`` tag and a ``schema_version`` so a stage can
validate what an earlier stage stored before consuming it.
"""

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as SchemaError

from animagenius.domain.enums import ProcessingRequirement
from animagenius.errors import ValidationError

SCHEMA_VERSION = 1

DocumentT = TypeVar("DocumentT", bound=BaseModel)


class AnalysisDocument(BaseModel):
    """AI analysis of extracted content."""

    kind: Literal["analysis"] = "analysis"
    schema_version: int = SCHEMA_VERSION
    text: str = Field(..., min_length=1)
    content_type: str | None = None


class ExtractedContent(BaseModel):
    """Normalized output of the ingestion router, later augmented with analysis."""

    kind: Literal["extraction"] = "extraction"
    schema_version: int = SCHEMA_VERSION
    content: str = ""
    content_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)
    processing_required: ProcessingRequirement | None = None
    analysis: AnalysisDocument | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.content.strip())


class ScriptSegment(BaseModel):
    """One timed section of a video script."""

    timestamp_range: str
    narration: str
    visual_cue: str = ""
    music_mood: str = ""


class ScriptDocument(BaseModel):
    """Video script with ordered, timed segments."""

    kind: Literal["script"] = "script"
    schema_version: int = SCHEMA_VERSION
    title: str | None = None
    duration_seconds: int
    style: str
    segments: list[ScriptSegment] = Field(default_factory=list)
    summary: str | None = None
    raw_script: str | None = None

    @model_validator(mode="after")
    def _has_body(self) -> "ScriptDocument":
        if not self.segments and not (self.raw_script and self.raw_script.strip()):
            raise ValueError("script needs segments or raw_script")
        return self

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], duration_seconds: int, style: str
    ) -> "ScriptDocument":
        """Build from the JSON shape the script model is asked to produce.

        Accepts ``{"title", "script": [{"timestamp", "narration", "visual_cue",
        "music_mood"}], "summary"}`` or ``{"raw_script": "..."}``.
        """
        segments = [
            ScriptSegment(
                timestamp_range=str(item.get("timestamp") or item.get("timestamp_range") or ""),
                narration=str(item.get("narration") or ""),
                visual_cue=str(item.get("visual_cue") or ""),
                music_mood=str(item.get("music_mood") or ""),
            )
            for item in payload.get("script") or payload.get("segments") or []
            if isinstance(item, dict)
        ]
        return cls(
            title=payload.get("title"),
            duration_seconds=int(payload.get("duration") or duration_seconds),
            style=style,
            segments=segments,
            summary=payload.get("summary"),
            raw_script=payload.get("raw_script"),
        )

    def to_prompt_text(self) -> str:
        """Flatten the script into text for a video generation prompt."""
        if not self.segments:
            return self.raw_script or ""
        lines = [self.title] if self.title else []
        for segment in self.segments:
            line = f"[{segment.timestamp_range}] {segment.narration}"
            if segment.visual_cue:
                line += f" (visual: {segment.visual_cue})"
            lines.append(line)
        return "\n".join(lines)


def load_document(model: type[DocumentT], payload: dict[str, Any] | None, label: str) -> DocumentT:
    """Validate a stored payload against its document schema.

    Raises:
        ValidationError: If the payload is missing or has the wrong shape
    """
    if not payload:
        raise ValidationError(f"No {label} available")
    try:
        return model.model_validate(payload)
    except SchemaError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        raise ValidationError(f"Stored {label} is malformed", errors=errors) from e
