"""Base interface for per-format content extractors."""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

from animagenius.domain.enums import ProcessingRequirement

UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
EXTRACTION_FAILED = "extraction_failed"
NO_READABLE_TEXT = "no_readable_text"


class ExtractionError(Exception):
    """An extractor could not read the file."""

    error_code = EXTRACTION_FAILED


class NoReadableTextError(ExtractionError):
    """The file parsed but holds no readable text."""

    error_code = NO_READABLE_TEXT


@dataclass
class ExtractionResult:
    """Uniform outcome of extracting one file."""

    success: bool
    content: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    extracted_data: dict[str, Any] = field(default_factory=dict)
    processing_required: ProcessingRequirement | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def failure(cls, error: str, error_code: str) -> "ExtractionResult":
        return cls(success=False, error=error, error_code=error_code)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, {})}


class Extractor(ABC):
    """Turns the bytes of one file format into text and structured data."""

    # Lowercase extensions (without the dot) this extractor handles
    extensions: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, data: bytes, mime_type: str, extension: str) -> ExtractionResult:
        """Extract content from a file.

        Args:
            data: Raw file bytes
            mime_type: MIME type declared by the uploader
            extension: Lowercase file extension the router dispatched on

        Returns:
            A successful ExtractionResult

        Raises:
            ExtractionError: If the file cannot be read
        """
        ...


def word_count(text: str) -> int:
    return len(text.split())
