"""Domain models - pure Python classes independent of database."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from animagenius.domain.enums import SubscriptionStatus, SubscriptionTier, UsageAction


@dataclass
class UsageEvent:
    """A usage event waiting to be appended to the usage log."""

    user_id: UUID
    action: UsageAction
    resource_type: str
    resource_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None


@dataclass
class RenderRequest:
    """Parameters of a render attempt after admission."""

    duration_seconds: int
    priority: int
    watermark: bool
    quality: str
    output_format: str = "MP4"
    provider: str = "proprietary"
    settings: dict[str, Any] = field(default_factory=dict)

    def as_settings(self) -> dict[str, Any]:
        """Render settings persisted on the job."""
        return {
            **self.settings,
            "duration": self.duration_seconds,
            "watermark": self.watermark,
            "quality": self.quality,
            "format": self.output_format,
        }


@dataclass
class SubscriptionState:
    """Current plan of a user as reported by the billing collaborator."""

    tier: SubscriptionTier
    status: SubscriptionStatus | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
