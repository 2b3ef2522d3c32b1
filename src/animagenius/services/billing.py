"""Subscription lifecycle backed by the billing provider."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from animagenius.adapters.billing import (
    BillingProvider,
    BillingProviderError,
    get_billing_provider,
)
from animagenius.config import settings
from animagenius.db.models import SubscriptionModel
from animagenius.domain.enums import SubscriptionStatus, SubscriptionTier, UsageAction
from animagenius.domain.models import SubscriptionState
from animagenius.domain.tiers import PRORATION_DAYS, TierPolicy, next_billing_date
from animagenius.errors import (
    NotFoundError,
    PermissionDeniedError,
    SubscriptionExistsError,
    UpstreamFailureError,
    ValidationError,
)
from animagenius.logging import get_logger
from animagenius.services.store import PipelineStore
from animagenius.services.usage import UsageMeter

logger = get_logger(__name__)

# Webhook event type -> subscription status it moves to
SUBSCRIPTION_EVENTS = {
    "BILLING.SUBSCRIPTION.CREATED": SubscriptionStatus.PENDING,
    "BILLING.SUBSCRIPTION.ACTIVATED": SubscriptionStatus.ACTIVE,
    "BILLING.SUBSCRIPTION.CANCELLED": SubscriptionStatus.CANCELLED,
    "BILLING.SUBSCRIPTION.SUSPENDED": SubscriptionStatus.SUSPENDED,
    "BILLING.SUBSCRIPTION.EXPIRED": SubscriptionStatus.EXPIRED,
}
PAYMENT_COMPLETED = "PAYMENT.SALE.COMPLETED"
PAYMENT_DENIED = "PAYMENT.SALE.DENIED"

# Statuses that take the user back to the free tier
DOWNGRADE_STATUSES = (
    SubscriptionStatus.CANCELLED,
    SubscriptionStatus.SUSPENDED,
    SubscriptionStatus.EXPIRED,
)


def tier_from_plan_id(plan_id: str | None) -> SubscriptionTier | None:
    for tier_name, configured in settings.plan_ids.items():
        if configured == plan_id:
            return SubscriptionTier(tier_name)
    return None


def _subscription_view(subscription: SubscriptionModel) -> dict[str, Any]:
    tier = tier_from_plan_id(subscription.plan_id)
    return {
        "id": str(subscription.id),
        "tier": tier.value if tier else None,
        "status": subscription.status,
        "amount": subscription.amount,
        "currency": subscription.currency,
        "current_period_start": subscription.current_period_start,
        "current_period_end": subscription.current_period_end,
        "cancel_at_period_end": subscription.cancel_at_period_end,
    }


class BillingService:
    """Creates, reads and cancels subscriptions and applies provider webhooks."""

    def __init__(
        self,
        store: PipelineStore | None = None,
        provider: BillingProvider | None = None,
        policy: TierPolicy | None = None,
        usage: UsageMeter | None = None,
    ) -> None:
        self.store = store or PipelineStore()
        self.provider = provider or get_billing_provider()
        self.policy = policy or TierPolicy()
        self.usage = usage or UsageMeter(self.store, self.policy)

    def current_state(self, user_id: UUID) -> SubscriptionState:
        """The user's plan as the pipeline sees it."""
        user = self.store.require_user(user_id)
        subscription = self.store.open_subscription(user_id)
        return SubscriptionState(
            tier=SubscriptionTier(user.subscription_tier),
            status=SubscriptionStatus(subscription.status) if subscription else None,
            period_start=subscription.current_period_start if subscription else None,
            period_end=subscription.current_period_end if subscription else None,
        )

    def quote(
        self,
        from_tier: SubscriptionTier,
        to_tier: SubscriptionTier,
        days_remaining: float = PRORATION_DAYS,
    ) -> dict[str, Any]:
        if days_remaining < 0:
            raise ValidationError("days_remaining must not be negative")
        return {
            "from_tier": from_tier.value,
            "to_tier": to_tier.value,
            "days_remaining": days_remaining,
            "monthly_price": self.policy.monthly_price(to_tier),
            "prorated_cost": round(
                self.policy.prorated_upgrade_cost(from_tier, to_tier, days_remaining), 2
            ),
        }

    async def start_subscription(
        self,
        user_id: UUID,
        tier: SubscriptionTier,
        return_url: str | None = None,
        cancel_url: str | None = None,
    ) -> dict[str, Any]:
        """Create a PENDING subscription and return the provider approval URL.

        Raises:
            ValidationError: For the free tier or an unconfigured plan
            SubscriptionExistsError: If an ACTIVE or PENDING subscription exists
            UpstreamFailureError: If the billing provider rejects the request
        """
        if tier == SubscriptionTier.FREE:
            raise ValidationError("Cannot create a paid subscription for the free tier")
        plan_id = settings.plan_ids.get(tier.value)
        if not plan_id:
            raise ValidationError("Plan not configured", tier=tier.value)

        user = self.store.require_user(user_id)
        if self.store.open_subscription(user_id) is not None:
            raise SubscriptionExistsError(
                "User already has an active subscription. Cancel existing subscription first."
            )

        try:
            provider_subscription = await self.provider.create_subscription(
                plan_id=plan_id,
                email=user.email,
                name=user.name or "User",
                return_url=return_url or settings.billing_return_url,
                cancel_url=cancel_url or settings.billing_cancel_url,
            )
        except BillingProviderError as e:
            raise UpstreamFailureError(f"Subscription creation failed: {e}") from e

        now = datetime.now(UTC)
        amount = self.policy.monthly_price(tier)
        subscription = self.store.create_subscription(
            user_id=user_id,
            provider_subscription_id=provider_subscription.id,
            plan_id=plan_id,
            amount=amount,
            period_start=now,
            period_end=now + timedelta(days=PRORATION_DAYS),
        )
        logger.info(
            "subscription_created",
            user_id=str(user_id),
            tier=tier.value,
            provider_subscription_id=provider_subscription.id,
        )

        self.usage.record(
            user_id,
            UsageAction.ADMIN_ACTION,
            "subscription",
            str(subscription.id),
            {
                "action": "subscription_creation_initiated",
                "tier": tier.value,
                "planId": plan_id,
                "providerSubscriptionId": provider_subscription.id,
            },
        )
        return {
            "subscription_id": str(subscription.id),
            "provider_subscription_id": provider_subscription.id,
            "approval_url": provider_subscription.approval_url,
            "tier": tier.value,
            "amount": amount,
        }

    async def current(self, user_id: UUID) -> dict[str, Any]:
        """Current subscription with the provider's live status when reachable."""
        user = self.store.require_user(user_id)
        subscription = self.store.open_subscription(user_id)
        if subscription is None:
            return {"subscription": None, "tier": user.subscription_tier}

        view: dict[str, Any] = {
            "subscription": _subscription_view(subscription),
            "tier": user.subscription_tier,
        }
        try:
            remote = await self.provider.get_subscription(subscription.provider_subscription_id)
            view["provider_status"] = remote.status
        except BillingProviderError as e:
            logger.warning(
                "provider_subscription_lookup_failed",
                subscription_id=str(subscription.id),
                error=str(e),
            )
            view["provider_error"] = "Could not fetch provider status"
        return view

    async def cancel(
        self, user_id: UUID, reason: str = "User requested cancellation"
    ) -> SubscriptionModel:
        """Cancel the user's open subscription at the provider.

        The tier drops back to FREE when the provider confirms through the
        cancellation webhook.
        """
        subscription = self.store.open_subscription(user_id)
        if subscription is None:
            raise NotFoundError("No active subscription")

        try:
            accepted = await self.provider.cancel_subscription(
                subscription.provider_subscription_id, reason
            )
        except BillingProviderError as e:
            raise UpstreamFailureError(f"Subscription cancellation failed: {e}") from e
        if not accepted:
            raise UpstreamFailureError("Billing provider refused the cancellation")

        subscription = self.store.update_subscription(
            subscription.id,
            status=SubscriptionStatus.CANCELLED,
            cancel_at_period_end=True,
        )
        logger.info("subscription_cancelled", user_id=str(user_id), subscription_id=str(subscription.id))
        self.usage.record(
            user_id,
            UsageAction.ADMIN_ACTION,
            "subscription",
            str(subscription.id),
            {"action": "subscription_cancelled", "reason": reason},
        )
        return subscription

    async def handle_webhook(self, headers: Mapping[str, str], body: bytes) -> dict[str, Any]:
        """Verify and apply a billing provider webhook delivery.

        Raises:
            PermissionDeniedError: If the signature does not verify
            ValidationError: If the body is not a JSON event
        """
        if not await self.provider.verify_webhook_signature(headers, body):
            logger.warning("webhook_signature_invalid")
            raise PermissionDeniedError("Invalid webhook signature")
        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValidationError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict):
            raise ValidationError("Webhook body is not an event object")
        return self.apply_event(event)

    def apply_event(self, event: dict[str, Any]) -> dict[str, Any]:
        event_type = event.get("event_type", "")
        resource = event.get("resource") or {}

        if event_type in SUBSCRIPTION_EVENTS:
            return self._apply_subscription_event(
                event_type, resource.get("id"), SUBSCRIPTION_EVENTS[event_type]
            )
        if event_type == PAYMENT_COMPLETED:
            return self._apply_payment_completed(resource)
        if event_type == PAYMENT_DENIED:
            logger.warning(
                "payment_failed",
                payment_id=resource.get("id"),
                provider_subscription_id=resource.get("billing_agreement_id"),
            )
            return {"processed": True, "action": "payment_failed"}

        logger.info("webhook_event_unhandled", event_type=event_type)
        return {"processed": False, "event_type": event_type}

    def _apply_subscription_event(
        self,
        event_type: str,
        provider_subscription_id: str | None,
        status: SubscriptionStatus,
    ) -> dict[str, Any]:
        subscription = self._find(provider_subscription_id)
        if subscription is None:
            return {"processed": False, "event_type": event_type}

        user_fields: dict[str, Any] = {"subscription_status": status}
        if status == SubscriptionStatus.ACTIVE:
            tier = tier_from_plan_id(subscription.plan_id)
            if tier is not None:
                user_fields["subscription_tier"] = tier
        elif status in DOWNGRADE_STATUSES:
            user_fields["subscription_tier"] = SubscriptionTier.FREE

        self.store.update_subscription(subscription.id, user_fields=user_fields, status=status)
        logger.info(
            "subscription_status_changed",
            subscription_id=str(subscription.id),
            status=status,
            tier=user_fields.get("subscription_tier"),
        )
        self.usage.record(
            subscription.user_id,
            UsageAction.ADMIN_ACTION,
            "subscription",
            str(subscription.id),
            {"action": "webhook", "eventType": event_type, "status": status.value},
        )
        return {"processed": True, "action": event_type, "status": status.value}

    def _apply_payment_completed(self, resource: dict[str, Any]) -> dict[str, Any]:
        subscription = self._find(resource.get("billing_agreement_id"))
        if subscription is None:
            return {"processed": False, "event_type": PAYMENT_COMPLETED}

        now = datetime.now(UTC)
        self.store.update_subscription(
            subscription.id,
            status=SubscriptionStatus.ACTIVE,
            current_period_start=now,
            current_period_end=next_billing_date(now),
        )
        logger.info("payment_completed", subscription_id=str(subscription.id))
        return {"processed": True, "action": "payment_completed"}

    def _find(self, provider_subscription_id: str | None) -> SubscriptionModel | None:
        if not provider_subscription_id:
            return None
        subscription = self.store.get_subscription_by_provider_id(provider_subscription_id)
        if subscription is None:
            logger.warning(
                "webhook_subscription_unknown",
                provider_subscription_id=provider_subscription_id,
            )
        return subscription
