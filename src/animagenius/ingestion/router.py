"""Dispatch of uploaded files to per-format extractors."""

from collections.abc import Iterable

from animagenius.ingestion.base import (
    EXTRACTION_FAILED,
    UNSUPPORTED_FILE_TYPE,
    ExtractionError,
    ExtractionResult,
    Extractor,
)
from animagenius.ingestion.documents import PDFExtractor, TextExtractor, WordExtractor
from animagenius.ingestion.media import AudioExtractor, ImageExtractor, VideoExtractor
from animagenius.ingestion.spreadsheet import SpreadsheetExtractor
from animagenius.logging import get_logger

logger = get_logger(__name__)

DEFAULT_EXTRACTORS: tuple[Extractor, ...] = (
    PDFExtractor(),
    SpreadsheetExtractor(),
    WordExtractor(),
    ImageExtractor(),
    AudioExtractor(),
    VideoExtractor(),
    TextExtractor(),
)


def file_extension(filename: str) -> str:
    """Lowercase extension after the last dot, or "" when there is none."""
    _, dot, extension = filename.rpartition(".")
    return extension.lower() if dot else ""


class FileIngestionRouter:
    """Routes a file to the extractor registered for its extension.

    ``process`` never raises: unsupported types and extractor faults come
    back as failed results with an ``error_code``.
    """

    def __init__(self, extractors: Iterable[Extractor] = DEFAULT_EXTRACTORS) -> None:
        self._extractors: dict[str, Extractor] = {}
        for extractor in extractors:
            for extension in extractor.extensions:
                self._extractors[extension] = extractor

    def process(self, data: bytes, filename: str, mime_type: str) -> ExtractionResult:
        extension = file_extension(filename)
        extractor = self._extractors.get(extension)
        if extractor is None:
            logger.info("unsupported_file_type", filename=filename, extension=extension)
            return ExtractionResult.failure(
                f"Unsupported file type: {extension or 'none'}", UNSUPPORTED_FILE_TYPE
            )

        try:
            result = extractor.extract(data, mime_type, extension)
        except ExtractionError as e:
            logger.warning(
                "extraction_failed",
                filename=filename,
                extractor=type(extractor).__name__,
                error_code=e.error_code,
                error=str(e),
            )
            return ExtractionResult.failure(str(e), e.error_code)
        except Exception as e:
            logger.exception(
                "extraction_crashed",
                filename=filename,
                extractor=type(extractor).__name__,
            )
            return ExtractionResult.failure(f"Extraction failed: {e}", EXTRACTION_FAILED)

        result.metadata.setdefault("file_size", len(data))
        result.metadata.setdefault("extension", extension)
        logger.info(
            "file_extracted",
            filename=filename,
            extension=extension,
            content_length=len(result.content or ""),
        )
        return result
