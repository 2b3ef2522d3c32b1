"""Domain models and business logic."""

from animagenius.domain.content import (
    AnalysisDocument,
    ExtractedContent,
    ScriptDocument,
    ScriptSegment,
)
from animagenius.domain.enums import (
    ColumnType,
    ProcessingRequirement,
    ProcessingStatus,
    ProjectStatus,
    RenderJobStatus,
    SubscriptionStatus,
    SubscriptionTier,
    UsageAction,
)
from animagenius.domain.models import RenderRequest, SubscriptionState, UsageEvent
from animagenius.domain.tiers import (
    DEFAULT_TIER_TABLE,
    UNLIMITED,
    TierLimits,
    TierPolicy,
    TierTable,
    UnknownTierError,
)

__all__ = [
    "AnalysisDocument",
    "ColumnType",
    "DEFAULT_TIER_TABLE",
    "ExtractedContent",
    "ProcessingRequirement",
    "ProcessingStatus",
    "ProjectStatus",
    "RenderJobStatus",
    "RenderRequest",
    "ScriptDocument",
    "ScriptSegment",
    "SubscriptionState",
    "SubscriptionStatus",
    "SubscriptionTier",
    "TierLimits",
    "TierPolicy",
    "TierTable",
    "UNLIMITED",
    "UnknownTierError",
    "UsageAction",
    "UsageEvent",
]
