"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text

from animagenius import __version__
from animagenius.api.deps import BillingServiceDep, PipelineServiceDep
from animagenius.config import settings
from animagenius.errors import InternalError
from animagenius.logging import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, bool] | None = None


class ReadinessResponse(BaseModel):
    """Readiness of the store and both external collaborators."""

    ready: bool
    database: bool
    ai: bool
    billing: bool


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Reports the API is up and which collaborators use a real provider.",
)
async def health_check() -> HealthResponse:
    providers = {"ai": settings.ai_provider, "billing": settings.billing_provider}
    return HealthResponse(
        status="healthy",
        version=__version__,
        components={name: provider != "stub" for name, provider in providers.items()},
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Verifies the database and the AI and billing providers.",
)
async def readiness_check(
    pipeline: PipelineServiceDep, billing: BillingServiceDep
) -> ReadinessResponse:
    database_ok = False
    try:
        with pipeline.store.session() as session:
            session.execute(text("SELECT 1"))
        database_ok = True
    except InternalError as e:
        logger.error("database_health_check_failed", error=str(e))

    ai_ok = await pipeline.health_check()
    billing_ok = await billing.provider.health_check()
    if not (ai_ok and billing_ok):
        logger.warning(
            "provider_not_ready",
            ai_provider=pipeline.ai.name,
            ai=ai_ok,
            billing_provider=billing.provider.name,
            billing=billing_ok,
        )
    return ReadinessResponse(
        ready=database_ok and ai_ok and billing_ok,
        database=database_ok,
        ai=ai_ok,
        billing=billing_ok,
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness probe for Kubernetes.",
)
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe - is the process alive?"""
    return {"status": "alive"}
