"""Tests for the subscription lifecycle and billing webhooks."""

import json
from collections.abc import Callable, Mapping

import pytest

from animagenius.adapters.billing import (
    BillingProviderError,
    ProviderSubscription,
    StubBillingProvider,
)
from animagenius.config import settings
from animagenius.db.models import UserModel
from animagenius.domain.enums import SubscriptionStatus, SubscriptionTier, UsageAction
from animagenius.errors import (
    NotFoundError,
    PermissionDeniedError,
    SubscriptionExistsError,
    UpstreamFailureError,
    ValidationError,
)
from animagenius.services.billing import BillingService, tier_from_plan_id
from animagenius.services.store import PipelineStore


class RejectingSignatures(StubBillingProvider):
    async def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        return False


class UnreachableProvider(StubBillingProvider):
    async def create_subscription(self, *args: object, **kwargs: object) -> ProviderSubscription:
        raise BillingProviderError("PayPal request failed: timeout")


def event(event_type: str, **resource: object) -> bytes:
    return json.dumps({"event_type": event_type, "resource": resource}).encode()


@pytest.fixture
def billing(store: PipelineStore, billing_provider: StubBillingProvider) -> BillingService:
    return BillingService(store=store, provider=billing_provider)


async def subscribe(
    billing: BillingService, user: UserModel, tier: SubscriptionTier = SubscriptionTier.PRO
) -> dict:
    return await billing.start_subscription(user.id, tier)


class TestQuote:
    def test_prorated_quote(self, billing: BillingService) -> None:
        quote = billing.quote(SubscriptionTier.FREE, SubscriptionTier.STARTER, 15)

        assert quote["prorated_cost"] == 14.5
        assert quote["monthly_price"] == 29

    def test_negative_days_rejected(self, billing: BillingService) -> None:
        with pytest.raises(ValidationError):
            billing.quote(SubscriptionTier.FREE, SubscriptionTier.PRO, -1)

    def test_plan_lookup(self) -> None:
        assert tier_from_plan_id(settings.paypal_pro_plan_id) == SubscriptionTier.PRO
        assert tier_from_plan_id("P-UNKNOWN") is None


class TestStartSubscription:
    """Tests for creating subscriptions."""

    @pytest.mark.asyncio
    async def test_creates_pending_subscription(
        self,
        billing: BillingService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        user = make_user()

        result = await subscribe(billing, user)

        assert result["approval_url"] == "https://billing.stub.local/approve/I-STUB000001"
        assert result["amount"] == 99
        subscription = store.open_subscription(user.id)
        assert subscription.status == SubscriptionStatus.PENDING
        assert subscription.plan_id == settings.paypal_pro_plan_id
        # The tier only changes once the provider activates the subscription
        assert store.require_user(user.id).subscription_tier == SubscriptionTier.FREE
        assert len(store.list_usage_events(user.id, UsageAction.ADMIN_ACTION)) == 1

    @pytest.mark.asyncio
    async def test_free_tier_rejected(
        self, billing: BillingService, make_user: Callable[..., UserModel]
    ) -> None:
        with pytest.raises(ValidationError):
            await subscribe(billing, make_user(), SubscriptionTier.FREE)

    @pytest.mark.asyncio
    async def test_second_subscription_rejected(
        self, billing: BillingService, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user()
        await subscribe(billing, user)

        with pytest.raises(SubscriptionExistsError) as exc_info:
            await subscribe(billing, user, SubscriptionTier.STARTER)

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "subscription_exists"

    @pytest.mark.asyncio
    async def test_provider_failure(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user()
        billing = BillingService(store=store, provider=UnreachableProvider())

        with pytest.raises(UpstreamFailureError):
            await subscribe(billing, user)

        assert store.open_subscription(user.id) is None


class TestWebhooks:
    """Tests for applying provider events."""

    @pytest.mark.asyncio
    async def test_activation_upgrades_tier(
        self,
        billing: BillingService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        user = make_user()
        await subscribe(billing, user)

        result = await billing.handle_webhook(
            {}, event("BILLING.SUBSCRIPTION.ACTIVATED", id="I-STUB000001")
        )

        assert result == {
            "processed": True,
            "action": "BILLING.SUBSCRIPTION.ACTIVATED",
            "status": "ACTIVE",
        }
        refreshed = store.require_user(user.id)
        assert refreshed.subscription_tier == SubscriptionTier.PRO
        assert refreshed.subscription_status == SubscriptionStatus.ACTIVE
        state = billing.current_state(user.id)
        assert state.tier == SubscriptionTier.PRO
        assert state.status == SubscriptionStatus.ACTIVE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event_type",
        [
            "BILLING.SUBSCRIPTION.CANCELLED",
            "BILLING.SUBSCRIPTION.SUSPENDED",
            "BILLING.SUBSCRIPTION.EXPIRED",
        ],
    )
    async def test_ending_events_downgrade_to_free(
        self,
        event_type: str,
        billing: BillingService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        user = make_user()
        await subscribe(billing, user)
        await billing.handle_webhook({}, event("BILLING.SUBSCRIPTION.ACTIVATED", id="I-STUB000001"))

        await billing.handle_webhook({}, event(event_type, id="I-STUB000001"))

        assert store.require_user(user.id).subscription_tier == SubscriptionTier.FREE
        assert store.open_subscription(user.id) is None

    @pytest.mark.asyncio
    async def test_payment_extends_period(
        self,
        billing: BillingService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        user = make_user()
        await subscribe(billing, user)

        result = await billing.handle_webhook(
            {}, event("PAYMENT.SALE.COMPLETED", id="PAY-1", billing_agreement_id="I-STUB000001")
        )

        assert result["action"] == "payment_completed"
        subscription = store.get_subscription_by_provider_id("I-STUB000001")
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.current_period_end > subscription.current_period_start

    @pytest.mark.asyncio
    async def test_payment_denied_is_acknowledged(self, billing: BillingService) -> None:
        result = await billing.handle_webhook(
            {}, event("PAYMENT.SALE.DENIED", id="PAY-2", billing_agreement_id="I-X")
        )
        assert result == {"processed": True, "action": "payment_failed"}

    @pytest.mark.asyncio
    async def test_unknown_subscription_is_ignored(self, billing: BillingService) -> None:
        result = await billing.handle_webhook(
            {}, event("BILLING.SUBSCRIPTION.ACTIVATED", id="I-MISSING")
        )
        assert result["processed"] is False

    @pytest.mark.asyncio
    async def test_unhandled_event_type(self, billing: BillingService) -> None:
        result = await billing.handle_webhook({}, event("CUSTOMER.DISPUTE.CREATED"))
        assert result == {"processed": False, "event_type": "CUSTOMER.DISPUTE.CREATED"}

    @pytest.mark.asyncio
    async def test_bad_signature(self, store: PipelineStore) -> None:
        billing = BillingService(store=store, provider=RejectingSignatures())

        with pytest.raises(PermissionDeniedError):
            await billing.handle_webhook({}, event("BILLING.SUBSCRIPTION.ACTIVATED", id="I-1"))

    @pytest.mark.asyncio
    async def test_body_not_json(self, billing: BillingService) -> None:
        with pytest.raises(ValidationError):
            await billing.handle_webhook({}, b"not json")


class TestCancel:
    """Tests for cancellation and the current subscription view."""

    @pytest.mark.asyncio
    async def test_cancel(
        self,
        billing: BillingService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        user = make_user()
        await subscribe(billing, user)

        subscription = await billing.cancel(user.id, "Too expensive")

        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.cancel_at_period_end is True
        with pytest.raises(NotFoundError):
            await billing.cancel(user.id)

    @pytest.mark.asyncio
    async def test_current_with_provider_status(
        self, billing: BillingService, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user()
        await subscribe(billing, user)

        view = await billing.current(user.id)

        assert view["subscription"]["tier"] == "PRO"
        assert view["subscription"]["status"] == SubscriptionStatus.PENDING
        assert view["provider_status"] == "APPROVAL_PENDING"

    @pytest.mark.asyncio
    async def test_current_without_subscription(
        self, billing: BillingService, make_user: Callable[..., UserModel]
    ) -> None:
        view = await billing.current(make_user().id)
        assert view == {"subscription": None, "tier": SubscriptionTier.FREE}
