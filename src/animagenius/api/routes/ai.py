"""Analysis and script generation endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from animagenius.api.deps import CurrentUserDep, PipelineServiceDep, parse_uuid
from animagenius.api.routes.projects import ProjectDetailResponse, project_detail_response

router = APIRouter(prefix="/ai", tags=["AI"])


class AnalyzeRequest(BaseModel):
    """Request to analyze a project's content."""

    project_id: str


class ScriptRequest(BaseModel):
    """Request to generate a video script."""

    project_id: str
    duration: int | None = Field(default=None, gt=0)
    style: str | None = Field(default=None, max_length=100)


@router.post(
    "/analyze",
    response_model=ProjectDetailResponse,
    summary="Analyze content",
    description="Run AI content analysis on an uploaded project.",
)
async def analyze(
    request: AnalyzeRequest,
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
) -> ProjectDetailResponse:
    project = await pipeline.analyze(user.id, parse_uuid(request.project_id, "project ID"))
    return project_detail_response(project)


@router.post(
    "/script",
    response_model=ProjectDetailResponse,
    summary="Generate script",
    description="Write a timed video script from the project's analysis.",
)
async def generate_script(
    request: ScriptRequest,
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
) -> ProjectDetailResponse:
    project = await pipeline.generate_script(
        user.id,
        parse_uuid(request.project_id, "project ID"),
        duration_seconds=request.duration,
        style=request.style,
    )
    return project_detail_response(project)
