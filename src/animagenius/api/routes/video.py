"""Video render endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from animagenius.api.deps import CurrentUserDep, PipelineServiceDep, parse_uuid
from animagenius.db.models import RenderJobModel

router = APIRouter(prefix="/video", tags=["Video"])


class RenderRequestBody(BaseModel):
    """Request to render a project's script."""

    project_id: str
    duration: int | None = Field(default=None, gt=0)
    quality: str | None = Field(default=None, max_length=20)
    format: str | None = Field(default=None, max_length=20)
    settings: dict[str, Any] = Field(default_factory=dict)


class RenderJobResponse(BaseModel):
    """Render job response model."""

    id: str
    project_id: str
    provider: str
    status: str
    priority: int
    progress: int
    estimated_time: int | None
    actual_time: int | None
    render_settings: dict[str, Any] | None
    output_url: str | None
    error_message: str | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None


def render_job_response(job: RenderJobModel) -> RenderJobResponse:
    return RenderJobResponse(
        id=str(job.id),
        project_id=str(job.project_id),
        provider=job.provider,
        status=job.status,
        priority=job.priority,
        progress=job.progress,
        estimated_time=job.estimated_time,
        actual_time=job.actual_time,
        render_settings=job.render_settings,
        output_url=job.output_url,
        error_message=job.error_message,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


@router.post(
    "/render",
    response_model=RenderJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Render video",
    description="Render the project's script. Blocks until the render finishes.",
)
async def render(
    request: RenderRequestBody,
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
) -> RenderJobResponse:
    job = await pipeline.render(
        user.id,
        parse_uuid(request.project_id, "project ID"),
        duration_seconds=request.duration,
        quality=request.quality,
        output_format=request.format,
        extra_settings=request.settings,
    )
    return render_job_response(job)


@router.get(
    "/render",
    response_model=RenderJobResponse,
    summary="Latest render job",
    description="Most recent render job of a project.",
)
async def latest_render_job(
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
    project_id: str = Query(...),
) -> RenderJobResponse:
    job = pipeline.latest_render_job(user.id, parse_uuid(project_id, "project ID"))
    return render_job_response(job)


@router.get(
    "/render/{job_id}",
    response_model=RenderJobResponse,
    summary="Render job status",
    description="Status of a render job by ID.",
)
async def get_render_job(
    job_id: str,
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
) -> RenderJobResponse:
    job = pipeline.get_render_job(user.id, parse_uuid(job_id, "render job ID"))
    return render_job_response(job)
