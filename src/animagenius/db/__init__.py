"""Database layer."""

from animagenius.db.models import (
    Base,
    ProjectModel,
    RenderJobModel,
    SubscriptionModel,
    UsageMetricModel,
    UserModel,
)
from animagenius.db.session import init_db, session_scope

__all__ = [
    "Base",
    "init_db",
    "session_scope",
    # Models
    "ProjectModel",
    "RenderJobModel",
    "SubscriptionModel",
    "UsageMetricModel",
    "UserModel",
]
