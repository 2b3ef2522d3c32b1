"""Image, audio and video extractors.

Media files are carried as base64 for the AI collaborator. Audio and video
are flagged as needing transcription before they can be analyzed.
"""

import base64

from animagenius.domain.enums import ProcessingRequirement
from animagenius.ingestion.base import ExtractionResult, Extractor


class MediaExtractor(Extractor):
    """Base64-encodes the file and records what processing it still needs."""

    placeholder = "Media file uploaded"
    processing_required: ProcessingRequirement | None = None
    has_video = False

    def extract(self, data: bytes, mime_type: str, extension: str) -> ExtractionResult:
        metadata = {"mime_type": mime_type, "base64_available": True}
        if self.processing_required is not None:
            metadata["processing_required"] = self.processing_required.value
        return ExtractionResult(
            success=True,
            content=self.placeholder,
            metadata=metadata,
            extracted_data={
                "base64": base64.b64encode(data).decode("ascii"),
                "type": mime_type,
                "requires_transcription": self.processing_required is not None,
                "has_video": self.has_video,
            },
            processing_required=self.processing_required,
        )


class ImageExtractor(MediaExtractor):
    extensions = ("jpg", "jpeg", "png", "gif", "webp")
    placeholder = "Image uploaded - visual content will be analyzed by AI"


class AudioExtractor(MediaExtractor):
    extensions = ("mp3", "wav", "aac", "m4a")
    placeholder = "Audio file uploaded - transcription will be processed by AI service"
    processing_required = ProcessingRequirement.TRANSCRIPTION


class VideoExtractor(MediaExtractor):
    extensions = ("mp4", "avi", "mov", "webm")
    placeholder = "Video file uploaded - audio will be extracted and transcribed by AI service"
    processing_required = ProcessingRequirement.AUDIO_EXTRACTION_AND_TRANSCRIPTION
    has_video = True
