"""Domain enumerations."""

from enum import StrEnum


class SubscriptionTier(StrEnum):
    """Subscription levels, in ascending rank."""

    FREE = "FREE"
    STARTER = "STARTER"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(StrEnum):
    """Status of a billing-provider subscription."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"


class ProjectStatus(StrEnum):
    """Coarse project status shown to users."""

    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ProcessingStatus(StrEnum):
    """Position of a project in the analyze/script/render pipeline."""

    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    GENERATING_SCRIPT = "GENERATING_SCRIPT"
    RENDERING = "RENDERING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RenderJobStatus(StrEnum):
    """Status of a single render attempt."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """True once the job can no longer change."""
        return self in (RenderJobStatus.COMPLETED, RenderJobStatus.FAILED)


class UsageAction(StrEnum):
    """Countable actions recorded in the usage log."""

    FILE_UPLOAD = "FILE_UPLOAD"
    AI_PROCESSING = "AI_PROCESSING"
    VIDEO_GENERATION = "VIDEO_GENERATION"
    ADMIN_ACTION = "ADMIN_ACTION"


class ColumnType(StrEnum):
    """Inferred type of a spreadsheet column."""

    NUMERIC = "numeric"
    DATE = "date"
    TEXT = "text"
    EMPTY = "empty"


class ProcessingRequirement(StrEnum):
    """Further processing an extracted file needs before analysis."""

    TRANSCRIPTION = "transcription"
    AUDIO_EXTRACTION_AND_TRANSCRIPTION = "audio_extraction_and_transcription"
