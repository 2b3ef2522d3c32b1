"""Billing provider adapters."""

from animagenius.adapters.billing.base import (
    BillingProvider,
    BillingProviderError,
    ProviderSubscription,
)
from animagenius.adapters.billing.paypal import PayPalBillingProvider
from animagenius.adapters.billing.stub import StubBillingProvider
from animagenius.config import settings


def get_billing_provider(name: str | None = None) -> BillingProvider:
    """Build the configured billing provider."""
    name = name or settings.billing_provider
    if name == "paypal":
        return PayPalBillingProvider()
    if name == "stub":
        return StubBillingProvider()
    raise ValueError(f"Unknown billing provider: {name}")


__all__ = [
    "BillingProvider",
    "BillingProviderError",
    "PayPalBillingProvider",
    "ProviderSubscription",
    "StubBillingProvider",
    "get_billing_provider",
]
