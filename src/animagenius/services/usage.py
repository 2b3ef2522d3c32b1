"""Usage metering over the append-only usage log."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from animagenius.config import settings
from animagenius.domain.enums import SubscriptionTier, UsageAction
from animagenius.domain.models import UsageEvent
from animagenius.domain.tiers import TierPolicy
from animagenius.errors import InternalError
from animagenius.logging import get_logger
from animagenius.services.store import PipelineStore

logger = get_logger(__name__)


class UsageMeter:
    """Records usage events and counts them per billing month.

    Months are calendar months in ``timezone`` (UTC unless configured);
    bounds are converted to UTC before they reach the store.
    """

    def __init__(
        self,
        store: PipelineStore,
        policy: TierPolicy | None = None,
        timezone: str | None = None,
    ) -> None:
        self.store = store
        self.policy = policy or TierPolicy()
        self.timezone = ZoneInfo(timezone or settings.usage_timezone)

    def record(
        self,
        user_id: UUID,
        action: UsageAction,
        resource_type: str,
        resource_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Append a usage event. Failures are logged, never raised.

        Returns:
            True if the event was written
        """
        event = UsageEvent(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=metadata or {},
        )
        try:
            self.store.add_usage_event(event)
        except InternalError as e:
            logger.error(
                "usage_record_failed",
                user_id=str(user_id),
                action=action,
                resource_id=resource_id,
                error=str(e),
            )
            return False
        return True

    def count_in_period(
        self,
        user_id: UUID,
        action: UsageAction,
        period_start: datetime,
        period_end: datetime | None = None,
    ) -> int:
        """Events with ``period_start <= timestamp < period_end``."""
        return self.store.count_usage(
            user_id,
            action,
            period_start.astimezone(UTC),
            period_end.astimezone(UTC) if period_end is not None else None,
        )

    def current_month_start(self, now: datetime | None = None) -> datetime:
        """First instant of the current calendar month, in UTC."""
        local = (now or datetime.now(UTC)).astimezone(self.timezone)
        start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return start.astimezone(UTC)

    def monthly_video_count(self, user_id: UUID, now: datetime | None = None) -> int:
        return self.count_in_period(
            user_id, UsageAction.VIDEO_GENERATION, self.current_month_start(now)
        )

    def usage_summary(
        self,
        user_id: UUID,
        tier: SubscriptionTier,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        used = self.monthly_video_count(user_id, now)
        limits = self.policy.get_limits(tier)
        return {
            "tier": tier.value,
            "period_start": self.current_month_start(now).isoformat(),
            "videos_used": used,
            "videos_limit": limits.videos_per_month,
            "videos_remaining": self.policy.remaining_videos(tier, used),
            "usage_percentage": round(self.policy.usage_percentage(tier, used), 2),
            "at_limit": self.policy.is_usage_at_limit(tier, used),
            "max_duration": limits.max_duration,
            "file_limit_mb": limits.file_limit_mb,
            "watermark": limits.watermark,
        }
