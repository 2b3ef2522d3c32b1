"""Admin endpoints for user management."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel

from animagenius.api.deps import AdminServiceDep, CurrentUserDep, parse_uuid
from animagenius.db.models import UserModel
from animagenius.domain.enums import SubscriptionTier

router = APIRouter(prefix="/admin", tags=["Admin"])


class UserResponse(BaseModel):
    id: str
    email: str
    name: str | None
    subscription_tier: str
    subscription_status: str | None
    is_admin: bool
    is_super_admin: bool
    last_login: datetime | None
    created_at: datetime


class UserListResponse(BaseModel):
    users: list[UserResponse]
    pagination: dict[str, int]


class UpdateUserRequest(BaseModel):
    """Fields an admin may change. Admin flags need a super admin."""

    name: str | None = None
    subscription_tier: SubscriptionTier | None = None
    subscription_status: str | None = None
    is_admin: bool | None = None
    is_super_admin: bool | None = None


class UsageEventResponse(BaseModel):
    id: str
    action: str
    resource_type: str
    resource_id: str | None
    metadata: dict[str, Any] | None
    timestamp: datetime


class UserUsageResponse(BaseModel):
    summary: dict[str, Any]
    events: list[UsageEventResponse]


def user_response(user: UserModel) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        subscription_tier=user.subscription_tier,
        subscription_status=user.subscription_status,
        is_admin=user.is_admin,
        is_super_admin=user.is_super_admin,
        last_login=user.last_login,
        created_at=user.created_at,
    )


@router.get("/users", response_model=UserListResponse, summary="List users")
async def list_users(
    admin: CurrentUserDep,
    service: AdminServiceDep,
    search: str | None = Query(default=None, max_length=255),
    tier: SubscriptionTier | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> UserListResponse:
    result = service.list_users(admin, search=search, tier=tier, page=page, limit=limit)
    return UserListResponse(
        users=[user_response(u) for u in result["users"]],
        pagination=result["pagination"],
    )


@router.patch("/users/{user_id}", response_model=UserResponse, summary="Update user")
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    admin: CurrentUserDep,
    service: AdminServiceDep,
) -> UserResponse:
    updates = request.model_dump(exclude_unset=True)
    user = service.update_user(admin, parse_uuid(user_id, "user ID"), updates)
    return user_response(user)


@router.get("/users/{user_id}/usage", response_model=UserUsageResponse, summary="User usage")
async def user_usage(
    user_id: str,
    admin: CurrentUserDep,
    service: AdminServiceDep,
    limit: int = Query(default=100, ge=1, le=1000),
) -> UserUsageResponse:
    summary, events = service.user_usage(admin, parse_uuid(user_id, "user ID"), limit=limit)
    return UserUsageResponse(
        summary=summary,
        events=[
            UsageEventResponse(
                id=str(e.id),
                action=e.action,
                resource_type=e.resource_type,
                resource_id=e.resource_id,
                metadata=e.metadata_,
                timestamp=e.timestamp,
            )
            for e in events
        ],
    )
