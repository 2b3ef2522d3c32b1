"""Subscription tier, billing and usage endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field

from animagenius.api.deps import BillingServiceDep, CurrentUserDep, PipelineServiceDep
from animagenius.domain.enums import SubscriptionTier
from animagenius.domain.tiers import PRORATION_DAYS, TierPolicy

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


class TierResponse(BaseModel):
    """One subscription tier and its limits."""

    tier: str
    price: float
    videos_per_month: int
    max_duration: int
    file_limit_mb: int
    watermark: bool
    priority: int
    api_access: bool
    features: list[str]


class CreateSubscriptionRequest(BaseModel):
    """Request to start a paid subscription."""

    tier: SubscriptionTier
    return_url: str | None = Field(default=None, max_length=2048)
    cancel_url: str | None = Field(default=None, max_length=2048)


class CancelSubscriptionRequest(BaseModel):
    reason: str = Field(default="User requested cancellation", max_length=500)


class SubscriptionResponse(BaseModel):
    id: str
    status: str
    cancel_at_period_end: bool
    current_period_end: datetime | None


@router.get(
    "/tiers",
    response_model=list[TierResponse],
    summary="List tiers",
    description="All subscription tiers with their limits, cheapest first.",
)
async def list_tiers() -> list[TierResponse]:
    policy = TierPolicy()
    tiers = []
    for tier in policy.table:
        limits = policy.get_limits(tier)
        tiers.append(
            TierResponse(
                tier=tier.value,
                price=limits.price,
                videos_per_month=limits.videos_per_month,
                max_duration=limits.max_duration,
                file_limit_mb=limits.file_limit_mb,
                watermark=limits.watermark,
                priority=limits.priority,
                api_access=limits.api_access,
                features=sorted(limits.features),
            )
        )
    return tiers


@router.get(
    "/quote",
    summary="Prorated upgrade quote",
    description="Cost of switching tiers with some days left in the billing period.",
)
async def quote(
    billing: BillingServiceDep,
    from_tier: SubscriptionTier = Query(...),
    to_tier: SubscriptionTier = Query(...),
    days_remaining: float = Query(default=PRORATION_DAYS, ge=0, le=31),
) -> dict[str, Any]:
    return billing.quote(from_tier, to_tier, days_remaining)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create subscription",
    description="Start a paid subscription; returns the provider approval URL.",
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    user: CurrentUserDep,
    billing: BillingServiceDep,
) -> dict[str, Any]:
    return await billing.start_subscription(
        user.id, request.tier, return_url=request.return_url, cancel_url=request.cancel_url
    )


@router.get(
    "/current",
    summary="Current subscription",
    description="The caller's open subscription, if any.",
)
async def current_subscription(user: CurrentUserDep, billing: BillingServiceDep) -> dict[str, Any]:
    return await billing.current(user.id)


@router.post(
    "/cancel",
    response_model=SubscriptionResponse,
    summary="Cancel subscription",
)
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    user: CurrentUserDep,
    billing: BillingServiceDep,
) -> SubscriptionResponse:
    subscription = await billing.cancel(user.id, request.reason)
    return SubscriptionResponse(
        id=str(subscription.id),
        status=subscription.status,
        cancel_at_period_end=subscription.cancel_at_period_end,
        current_period_end=subscription.current_period_end,
    )


@router.post(
    "/webhook",
    summary="Billing webhook",
    description="Receives billing provider events. Authenticated by signature.",
)
async def billing_webhook(request: Request, billing: BillingServiceDep) -> dict[str, Any]:
    body = await request.body()
    return await billing.handle_webhook(dict(request.headers), body)


@router.get(
    "/usage",
    summary="Usage summary",
    description="Videos used and remaining in the current month.",
)
async def usage_summary(user: CurrentUserDep, pipeline: PipelineServiceDep) -> dict[str, Any]:
    return pipeline.usage_summary(user.id)
