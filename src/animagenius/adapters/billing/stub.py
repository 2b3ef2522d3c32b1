"""Stub billing provider for testing."""

from collections.abc import Mapping

from animagenius.adapters.billing.base import (
    BillingProvider,
    BillingProviderError,
    ProviderSubscription,
)
from animagenius.logging import get_logger

logger = get_logger(__name__)


class StubBillingProvider(BillingProvider):
    """Keeps subscriptions in memory and accepts every webhook."""

    def __init__(self) -> None:
        self.subscriptions: dict[str, ProviderSubscription] = {}

    @property
    def name(self) -> str:
        return "stub"

    async def create_subscription(
        self,
        plan_id: str,
        email: str,
        name: str,
        return_url: str,
        cancel_url: str,
    ) -> ProviderSubscription:
        subscription_id = f"I-STUB{len(self.subscriptions) + 1:06d}"
        subscription = ProviderSubscription(
            id=subscription_id,
            status="APPROVAL_PENDING",
            plan_id=plan_id,
            approval_url=f"https://billing.stub.local/approve/{subscription_id}",
        )
        self.subscriptions[subscription_id] = subscription
        logger.info("stub_subscription_created", subscription_id=subscription_id, email=email)
        return subscription

    async def get_subscription(self, subscription_id: str) -> ProviderSubscription:
        try:
            return self.subscriptions[subscription_id]
        except KeyError:
            raise BillingProviderError(f"Unknown subscription: {subscription_id}") from None

    async def cancel_subscription(
        self, subscription_id: str, reason: str = "User requested cancellation"
    ) -> bool:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            return False
        subscription.status = "CANCELLED"
        return True

    async def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        return True
