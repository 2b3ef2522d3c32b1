"""PayPal subscriptions billing provider."""

import json
from collections.abc import Mapping
from typing import Any

import httpx

from animagenius.adapters.billing.base import (
    BillingProvider,
    BillingProviderError,
    ProviderSubscription,
)
from animagenius.config import settings
from animagenius.logging import get_logger

logger = get_logger(__name__)

PAYPAL_API_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

WEBHOOK_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_id": "paypal-cert-id",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


def _to_subscription(data: dict[str, Any]) -> ProviderSubscription:
    approval_url = next(
        (link.get("href") for link in data.get("links", []) if link.get("rel") == "approve"),
        None,
    )
    return ProviderSubscription(
        id=data["id"],
        status=data.get("status", "APPROVAL_PENDING"),
        plan_id=data.get("plan_id"),
        approval_url=approval_url,
        raw=data,
    )


class PayPalBillingProvider(BillingProvider):
    """Billing provider using the PayPal v1 billing subscriptions API."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        environment: str | None = None,
        webhook_id: str | None = None,
    ) -> None:
        self.client_id = client_id or settings.paypal_client_id
        self.client_secret = client_secret or settings.paypal_client_secret
        self.environment = environment or settings.paypal_environment
        self.webhook_id = webhook_id or settings.paypal_webhook_id
        self.base_url = PAYPAL_API_URLS[self.environment]

        if not self.client_id or not self.client_secret:
            logger.warning("PayPal credentials not configured")

    @property
    def name(self) -> str:
        return "paypal"

    async def health_check(self) -> bool:
        return bool(self.client_id and self.client_secret and self.webhook_id)

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        """Obtain an OAuth token via the client-credentials grant."""
        if not self.client_id or not self.client_secret:
            raise BillingProviderError("PayPal credentials not configured")

        response = await client.post(
            f"{self.base_url}/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        if response.status_code != 200:
            logger.error("paypal_auth_failed", status_code=response.status_code)
            raise BillingProviderError(f"PayPal authentication failed: {response.status_code}")
        return response.json()["access_token"]

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                token = await self._get_access_token(client)
                return await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error("paypal_request_failed", path=path, error=str(e))
            raise BillingProviderError(f"PayPal request failed: {e}") from e

    async def create_subscription(
        self,
        plan_id: str,
        email: str,
        name: str,
        return_url: str,
        cancel_url: str,
    ) -> ProviderSubscription:
        given_name, _, surname = name.partition(" ")
        payload = {
            "plan_id": plan_id,
            "subscriber": {
                "name": {"given_name": given_name or name, "surname": surname or "User"},
                "email_address": email,
            },
            "application_context": {
                "brand_name": "AnimaGenius",
                "locale": "en-US",
                "shipping_preference": "NO_SHIPPING",
                "user_action": "SUBSCRIBE_NOW",
                "payment_method": {
                    "payer_selected": "PAYPAL",
                    "payee_preferred": "IMMEDIATE_PAYMENT_REQUIRED",
                },
                "return_url": return_url,
                "cancel_url": cancel_url,
            },
        }
        response = await self._request("POST", "/v1/billing/subscriptions", payload)
        if response.status_code not in (200, 201):
            logger.error(
                "paypal_create_subscription_failed",
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise BillingProviderError(f"Subscription creation failed: {response.text[:200]}")

        subscription = _to_subscription(response.json())
        logger.info("paypal_subscription_created", subscription_id=subscription.id, plan_id=plan_id)
        return subscription

    async def get_subscription(self, subscription_id: str) -> ProviderSubscription:
        response = await self._request("GET", f"/v1/billing/subscriptions/{subscription_id}")
        if response.status_code != 200:
            raise BillingProviderError(f"Get subscription failed: {response.status_code}")
        return _to_subscription(response.json())

    async def cancel_subscription(
        self, subscription_id: str, reason: str = "User requested cancellation"
    ) -> bool:
        response = await self._request(
            "POST",
            f"/v1/billing/subscriptions/{subscription_id}/cancel",
            {"reason": reason},
        )
        # PayPal answers 204 No Content on success
        accepted = response.status_code in (200, 204)
        logger.info(
            "paypal_subscription_cancel",
            subscription_id=subscription_id,
            accepted=accepted,
            status_code=response.status_code,
        )
        return accepted

    async def verify_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        if not self.webhook_id:
            logger.warning("paypal_webhook_id_not_configured")
            return False

        lowered = {k.lower(): v for k, v in headers.items()}
        try:
            event = json.loads(body)
        except json.JSONDecodeError:
            return False

        payload: dict[str, Any] = {
            field: lowered.get(header) for field, header in WEBHOOK_HEADERS.items()
        }
        payload["webhook_id"] = self.webhook_id
        payload["webhook_event"] = event

        try:
            response = await self._request(
                "POST", "/v1/notifications/verify-webhook-signature", payload
            )
        except BillingProviderError as e:
            logger.error("paypal_webhook_verification_failed", error=str(e))
            return False
        if response.status_code != 200:
            return False
        return response.json().get("verification_status") == "SUCCESS"
