"""Base interface for billing providers."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


class BillingProviderError(Exception):
    """The billing provider rejected a request or could not be reached."""


@dataclass
class ProviderSubscription:
    """Subscription as reported by the billing provider."""

    id: str
    status: str
    plan_id: str | None = None
    approval_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class BillingProvider(ABC):
    """Abstract base class for billing providers.

    Implementations:
    - PayPalBillingProvider: PayPal subscriptions REST API
    - StubBillingProvider: In-memory subscriptions for development and tests
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def create_subscription(
        self,
        plan_id: str,
        email: str,
        name: str,
        return_url: str,
        cancel_url: str,
    ) -> ProviderSubscription:
        """Create a subscription awaiting the subscriber's approval.

        Raises:
            BillingProviderError: If the provider rejects the request
        """
        ...

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Fetch the provider's view of a subscription."""
        ...

    @abstractmethod
    async def cancel_subscription(
        self, subscription_id: str, reason: str = "User requested cancellation"
    ) -> bool:
        """Cancel a subscription. Returns True if the provider accepted it."""
        ...

    @abstractmethod
    async def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        """Check that a webhook delivery really comes from the provider."""
        ...

    async def health_check(self) -> bool:
        """Whether the provider is configured well enough to take requests."""
        return True
