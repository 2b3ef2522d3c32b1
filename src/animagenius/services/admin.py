"""Admin operations over user accounts."""

from typing import Any
from uuid import UUID

from animagenius.db.models import UserModel, UsageMetricModel
from animagenius.domain.enums import SubscriptionStatus, SubscriptionTier, UsageAction
from animagenius.errors import PermissionDeniedError, ValidationError
from animagenius.logging import get_logger
from animagenius.services.store import PipelineStore
from animagenius.services.usage import UsageMeter

logger = get_logger(__name__)

ADMIN_FLAGS = ("is_admin", "is_super_admin")
EDITABLE_FIELDS = ("name", "subscription_tier", "subscription_status", *ADMIN_FLAGS)


class AdminService:
    """User administration; every action is logged as ADMIN_ACTION usage."""

    def __init__(self, store: PipelineStore | None = None, usage: UsageMeter | None = None) -> None:
        self.store = store or PipelineStore()
        self.usage = usage or UsageMeter(self.store)

    def require_admin(self, admin: UserModel, super_admin: bool = False) -> None:
        if super_admin and not admin.is_super_admin:
            raise PermissionDeniedError("Super admin access required")
        if not (admin.is_admin or admin.is_super_admin):
            raise PermissionDeniedError("Admin access required")

    def list_users(
        self,
        admin: UserModel,
        search: str | None = None,
        tier: SubscriptionTier | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        self.require_admin(admin)
        if page < 1 or not 1 <= limit <= 100:
            raise ValidationError("page must be >= 1 and limit between 1 and 100")

        users, total = self.store.list_users(
            search=search, tier=tier, limit=limit, offset=(page - 1) * limit
        )
        self._log(
            admin,
            "VIEW_USERS",
            "user_list",
            None,
            {
                "page": page,
                "limit": limit,
                "search": search,
                "tier": tier.value if tier else None,
                "resultCount": len(users),
            },
        )
        return {
            "users": users,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": -(-total // limit),
            },
        }

    def update_user(self, admin: UserModel, user_id: UUID, updates: dict[str, Any]) -> UserModel:
        """Apply field updates to a user.

        Raises:
            PermissionDeniedError: If a plain admin touches admin flags
            ValidationError: For unknown fields or values
        """
        self.require_admin(admin)
        if not updates:
            raise ValidationError("No updates given")
        unknown = sorted(set(updates) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError("Fields cannot be updated", fields=unknown)
        if any(flag in updates for flag in ADMIN_FLAGS):
            self.require_admin(admin, super_admin=True)

        fields = dict(updates)
        try:
            if "subscription_tier" in fields:
                fields["subscription_tier"] = SubscriptionTier(fields["subscription_tier"])
            if fields.get("subscription_status") is not None:
                fields["subscription_status"] = SubscriptionStatus(fields["subscription_status"])
        except ValueError as e:
            raise ValidationError(str(e)) from e

        user = self.store.update_user(user_id, **fields)
        logger.info(
            "admin_user_updated",
            admin_id=str(admin.id),
            user_id=str(user_id),
            fields=sorted(fields),
        )
        self._log(
            admin,
            "UPDATE_USER",
            "user",
            str(user_id),
            {"updates": {k: str(v) for k, v in fields.items()}, "updatedFields": sorted(fields)},
        )
        return user

    def user_usage(
        self, admin: UserModel, user_id: UUID, limit: int = 100
    ) -> tuple[dict[str, Any], list[UsageMetricModel]]:
        """Usage summary and recent events of any user."""
        self.require_admin(admin)
        user = self.store.require_user(user_id)
        summary = self.usage.usage_summary(user_id, SubscriptionTier(user.subscription_tier))
        events = self.store.list_usage_events(user_id, limit=limit)
        self._log(admin, "VIEW_USAGE", "user", str(user_id), {"eventCount": len(events)})
        return summary, events

    def _log(
        self,
        admin: UserModel,
        action: str,
        target_type: str,
        target_id: str | None,
        details: dict[str, Any],
    ) -> None:
        self.usage.record(
            admin.id,
            UsageAction.ADMIN_ACTION,
            target_type,
            target_id,
            {"action": action, **details},
        )
