"""Subscription tier limits and admission decisions.

The tier table is immutable configuration built once at startup and handed
to ``TierPolicy``; tests can pass a different table. A limit of ``-1``
(``UNLIMITED``) means there is no cap.
"""

import calendar
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType

from animagenius.domain.enums import SubscriptionTier

UNLIMITED = -1

# Days in the proration month
PRORATION_DAYS = 30


class UnknownTierError(LookupError):
    """Raised when limits are requested for a tier missing from the table."""


@dataclass(frozen=True)
class TierLimits:
    """Resource limits and pricing for a tier."""

    price: float
    videos_per_month: int
    max_duration: int  # seconds, UNLIMITED for no cap
    file_limit_mb: int
    watermark: bool
    priority: int
    api_access: bool
    features: frozenset[str] = frozenset()

    @property
    def unlimited_videos(self) -> bool:
        return self.videos_per_month == UNLIMITED

    @property
    def unlimited_duration(self) -> bool:
        return self.max_duration == UNLIMITED


class TierTable(Mapping[SubscriptionTier, TierLimits]):
    """Read-only mapping of every tier to its limits.

    Construction fails if a tier is missing or priorities do not strictly
    increase with tier rank.
    """

    def __init__(self, limits: Mapping[SubscriptionTier, TierLimits]) -> None:
        missing = [tier for tier in SubscriptionTier if tier not in limits]
        if missing:
            raise ValueError(f"Tier table is missing limits for: {', '.join(missing)}")

        priorities = [limits[tier].priority for tier in SubscriptionTier]
        if any(a >= b for a, b in zip(priorities, priorities[1:])):
            raise ValueError("Tier priorities must strictly increase with tier rank")

        self._limits = MappingProxyType(dict(limits))

    def __getitem__(self, tier: SubscriptionTier) -> TierLimits:
        try:
            return self._limits[tier]
        except KeyError:
            raise UnknownTierError(f"Unknown subscription tier: {tier!r}") from None

    def __iter__(self):
        return iter(self._limits)

    def __len__(self) -> int:
        return len(self._limits)


DEFAULT_TIER_TABLE = TierTable(
    {
        SubscriptionTier.FREE: TierLimits(
            price=0,
            videos_per_month=5,
            max_duration=120,
            file_limit_mb=100,
            watermark=True,
            priority=1,
            api_access=False,
            features=frozenset(
                {"basic_templates", "standard_ai", "community_support", "basic_analytics"}
            ),
        ),
        SubscriptionTier.STARTER: TierLimits(
            price=29,
            videos_per_month=25,
            max_duration=600,
            file_limit_mb=500,
            watermark=False,
            priority=2,
            api_access=False,
            features=frozenset(
                {
                    "premium_templates",
                    "advanced_ai",
                    "custom_branding",
                    "email_support",
                    "hd_export",
                    "detailed_analytics",
                }
            ),
        ),
        SubscriptionTier.PRO: TierLimits(
            price=99,
            videos_per_month=100,
            max_duration=1800,
            file_limit_mb=2048,
            watermark=False,
            priority=3,
            api_access=True,
            features=frozenset(
                {
                    "all_templates",
                    "custom_avatars",
                    "api_access",
                    "priority_support",
                    "4k_export",
                    "advanced_analytics",
                    "team_collaboration",
                    "custom_fonts",
                    "batch_processing",
                }
            ),
        ),
        SubscriptionTier.ENTERPRISE: TierLimits(
            price=499,
            videos_per_month=UNLIMITED,
            max_duration=UNLIMITED,
            file_limit_mb=10240,
            watermark=False,
            priority=4,
            api_access=True,
            features=frozenset(
                {
                    "white_label",
                    "dedicated_support",
                    "custom_integrations",
                    "admin_panel",
                    "sso_integration",
                    "unlimited_exports",
                    "priority_processing",
                    "custom_ai_models",
                    "dedicated_account_manager",
                    "compliance_features",
                    "advanced_security",
                }
            ),
        ),
    }
)


class TierPolicy:
    """Answers admission questions against a tier table."""

    def __init__(self, table: TierTable = DEFAULT_TIER_TABLE) -> None:
        self.table = table

    def get_limits(self, tier: SubscriptionTier) -> TierLimits:
        """Limits for a tier; raises UnknownTierError for unknown tiers."""
        return self.table[tier]

    # Admission checks

    def can_create_video(self, tier: SubscriptionTier, monthly_count: int) -> bool:
        limits = self.get_limits(tier)
        if limits.unlimited_videos:
            return True
        return monthly_count < limits.videos_per_month

    def can_upload_file(self, tier: SubscriptionTier, size_mb: float) -> bool:
        return size_mb <= self.get_limits(tier).file_limit_mb

    def can_create_duration(self, tier: SubscriptionTier, seconds: float) -> bool:
        limits = self.get_limits(tier)
        if limits.unlimited_duration:
            return True
        return seconds <= limits.max_duration

    def get_processing_priority(self, tier: SubscriptionTier) -> int:
        return self.get_limits(tier).priority

    def should_watermark(self, tier: SubscriptionTier) -> bool:
        return self.get_limits(tier).watermark

    def has_feature(self, tier: SubscriptionTier, feature: str) -> bool:
        return feature in self.get_limits(tier).features

    def has_api_access(self, tier: SubscriptionTier) -> bool:
        return self.get_limits(tier).api_access

    # Pricing

    def monthly_price(self, tier: SubscriptionTier) -> float:
        return self.get_limits(tier).price

    def prorated_upgrade_cost(
        self,
        from_tier: SubscriptionTier,
        to_tier: SubscriptionTier,
        days_remaining: float,
    ) -> float:
        """Charge for switching plans with ``days_remaining`` left in the period.

        Downgrades never produce a negative amount.
        """
        daily_difference = (self.monthly_price(to_tier) - self.monthly_price(from_tier)) / (
            PRORATION_DAYS
        )
        return max(0.0, daily_difference * days_remaining)

    def upgrade_options(self, tier: SubscriptionTier) -> list[SubscriptionTier]:
        current = self.get_processing_priority(tier)
        return [t for t in self.table if self.table[t].priority > current]

    def downgrade_options(self, tier: SubscriptionTier) -> list[SubscriptionTier]:
        current = self.get_processing_priority(tier)
        return [t for t in self.table if self.table[t].priority < current]

    # Usage reporting

    def remaining_videos(self, tier: SubscriptionTier, used: int) -> int:
        limits = self.get_limits(tier)
        if limits.unlimited_videos:
            return UNLIMITED
        return max(0, limits.videos_per_month - used)

    def remaining_duration(self, tier: SubscriptionTier, used_seconds: int) -> int:
        limits = self.get_limits(tier)
        if limits.unlimited_duration:
            return UNLIMITED
        return max(0, limits.max_duration - used_seconds)

    def usage_percentage(self, tier: SubscriptionTier, used: float, kind: str = "videos") -> float:
        """Share of the limit consumed, 0 for unlimited, capped at 100."""
        limit = self._limit_for(tier, kind)
        if limit == UNLIMITED:
            return 0.0
        if limit == 0:
            return 100.0
        return min(100.0, used / limit * 100)

    def is_usage_at_limit(self, tier: SubscriptionTier, used: float, kind: str = "videos") -> bool:
        limit = self._limit_for(tier, kind)
        if limit == UNLIMITED:
            return False
        return used >= limit

    def _limit_for(self, tier: SubscriptionTier, kind: str) -> int:
        limits = self.get_limits(tier)
        if kind == "videos":
            return limits.videos_per_month
        if kind == "duration":
            return limits.max_duration
        raise ValueError(f"Unknown usage kind: {kind!r}")


def next_billing_date(period_start: datetime) -> datetime:
    """One calendar month after ``period_start``, clamped to the month's last day."""
    year = period_start.year + period_start.month // 12
    month = period_start.month % 12 + 1
    day = min(period_start.day, calendar.monthrange(year, month)[1])
    return period_start.replace(year=year, month=month, day=day)


def parse_tier(value: str) -> SubscriptionTier:
    """Parse a tier name case-insensitively; raises ValueError when unknown."""
    try:
        return SubscriptionTier(value.strip().upper())
    except ValueError:
        raise ValueError(f"Invalid subscription tier: {value!r}") from None
