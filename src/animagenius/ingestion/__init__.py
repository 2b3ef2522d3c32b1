"""File ingestion: per-format extraction behind a single router."""

from animagenius.ingestion.base import (
    EXTRACTION_FAILED,
    NO_READABLE_TEXT,
    UNSUPPORTED_FILE_TYPE,
    ExtractionError,
    ExtractionResult,
    Extractor,
    NoReadableTextError,
)
from animagenius.ingestion.router import FileIngestionRouter, file_extension
from animagenius.ingestion.spreadsheet import classify_column

__all__ = [
    "EXTRACTION_FAILED",
    "NO_READABLE_TEXT",
    "UNSUPPORTED_FILE_TYPE",
    "ExtractionError",
    "ExtractionResult",
    "Extractor",
    "FileIngestionRouter",
    "NoReadableTextError",
    "classify_column",
    "file_extension",
]
