"""Text-bearing document extractors: PDF, Word and plain text."""

import re
import zipfile
from io import BytesIO
from xml.etree import ElementTree

import fitz  # PyMuPDF

from animagenius.ingestion.base import (
    ExtractionError,
    ExtractionResult,
    Extractor,
    NoReadableTextError,
    word_count,
)

WORD_NS = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"

# Runs of printable ASCII long enough to be words rather than binary noise
PRINTABLE_RUN = re.compile(rb"[\x20-\x7e\t\r\n]{4,}")
MIN_LEGACY_TEXT_LENGTH = 10


class PDFExtractor(Extractor):
    """Extracts page text from PDF documents with PyMuPDF."""

    extensions = ("pdf",)

    def extract(self, data: bytes, mime_type: str, extension: str) -> ExtractionResult:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise ExtractionError(f"Could not open PDF: {e}") from e

        try:
            pages = [
                {"number": index + 1, "text": page.get_text().strip()}
                for index, page in enumerate(doc)
            ]
            title = (doc.metadata or {}).get("title") or None
        finally:
            doc.close()

        text = "\n\n".join(page["text"] for page in pages if page["text"])
        if not text:
            raise NoReadableTextError("No readable text found in PDF")

        return ExtractionResult(
            success=True,
            content=text,
            metadata={
                "pages": len(pages),
                "title": title,
                "text_length": len(text),
                "word_count": word_count(text),
            },
            extracted_data={"pages": pages, "page_count": len(pages)},
        )


def _docx_text(data: bytes) -> str:
    try:
        with zipfile.ZipFile(BytesIO(data)) as archive:
            xml = archive.read("word/document.xml")
    except (zipfile.BadZipFile, KeyError) as e:
        raise ExtractionError("Not a valid Word document") from e

    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as e:
        raise ExtractionError("Word document body is not valid XML") from e

    paragraphs = []
    for paragraph in root.iter(f"{WORD_NS}p"):
        parts = []
        for node in paragraph.iter():
            if node.tag == f"{WORD_NS}t" and node.text:
                parts.append(node.text)
            elif node.tag == f"{WORD_NS}tab":
                parts.append("\t")
            elif node.tag in (f"{WORD_NS}br", f"{WORD_NS}cr"):
                parts.append("\n")
        paragraphs.append("".join(parts))
    return "\n".join(paragraphs).strip()


def _legacy_doc_text(data: bytes) -> str:
    runs = (run.decode("ascii") for run in PRINTABLE_RUN.findall(data))
    return " ".join(" ".join(runs).split())


class WordExtractor(Extractor):
    """Extracts text from .docx (OOXML) and legacy binary .doc files."""

    extensions = ("docx", "doc")

    def extract(self, data: bytes, mime_type: str, extension: str) -> ExtractionResult:
        # A .doc upload is sometimes an OOXML zip under the old extension
        is_ooxml = extension == "docx" or data[:2] == b"PK"
        if is_ooxml:
            text = _docx_text(data)
            if not text:
                raise NoReadableTextError("No readable text found in document")
        else:
            text = _legacy_doc_text(data)
            if len(text) < MIN_LEGACY_TEXT_LENGTH:
                raise NoReadableTextError("No readable text found in document")

        return ExtractionResult(
            success=True,
            content=text,
            metadata={
                "format": "docx" if is_ooxml else "doc",
                "extracted_length": len(text),
                "word_count": word_count(text),
            },
        )


class TextExtractor(Extractor):
    """Plain text and Markdown passthrough."""

    extensions = ("txt", "md")

    def extract(self, data: bytes, mime_type: str, extension: str) -> ExtractionResult:
        text = data.decode("utf-8", errors="replace").lstrip("\ufeff")
        if not text.strip():
            raise NoReadableTextError("Text file is empty")
        return ExtractionResult(
            success=True,
            content=text,
            metadata={
                "type": "markdown" if extension == "md" else "text",
                "text_length": len(text),
                "word_count": word_count(text),
            },
        )
