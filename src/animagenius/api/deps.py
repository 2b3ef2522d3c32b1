"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from animagenius.db.models import UserModel
from animagenius.errors import ValidationError
from animagenius.services.admin import AdminService
from animagenius.services.billing import BillingService
from animagenius.services.pipeline import PipelineService
from animagenius.services.store import PipelineStore


def get_store() -> PipelineStore:
    """Get the persistent store."""
    return PipelineStore()


StoreDep = Annotated[PipelineStore, Depends(get_store)]


def get_pipeline_service(store: StoreDep) -> PipelineService:
    """Get the pipeline service instance."""
    return PipelineService(store=store)


def get_billing_service(store: StoreDep) -> BillingService:
    return BillingService(store=store)


def get_admin_service(store: StoreDep) -> AdminService:
    return AdminService(store=store)


PipelineServiceDep = Annotated[PipelineService, Depends(get_pipeline_service)]
BillingServiceDep = Annotated[BillingService, Depends(get_billing_service)]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]


def get_current_user(
    store: StoreDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> UserModel:
    """Resolve the caller from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


CurrentUserDep = Annotated[UserModel, Depends(get_current_user)]


def parse_uuid(value: str, label: str = "ID") -> UUID:
    """Parse a path or body identifier, answering 400 when malformed."""
    try:
        return UUID(value)
    except ValueError:
        raise ValidationError(f"Invalid {label} format") from None
