"""Project upload and lookup endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, File, Query, UploadFile, status
from pydantic import BaseModel

from animagenius.api.deps import CurrentUserDep, PipelineServiceDep, parse_uuid
from animagenius.db.models import ProjectModel
from animagenius.logging import get_logger

router = APIRouter(prefix="/projects", tags=["Projects"])
logger = get_logger(__name__)


class ProjectResponse(BaseModel):
    """Project response model."""

    id: str
    title: str
    original_file_name: str | None
    original_file_type: str | None
    original_file_size: int | None
    status: str
    processing_status: str
    last_error: str | None
    has_analysis: bool
    has_script: bool
    video_url: str | None
    video_duration: int | None
    video_format: str | None
    created_at: datetime
    updated_at: datetime | None


class ProjectDetailResponse(ProjectResponse):
    """Project with its extracted content summary, analysis and script."""

    content: str | None
    content_type: str | None
    metadata: dict[str, Any]
    processing_required: str | None
    analysis: str | None
    script: dict[str, Any] | None


def project_response(project: ProjectModel) -> ProjectResponse:
    extracted = project.extracted_content or {}
    return ProjectResponse(
        id=str(project.id),
        title=project.title,
        original_file_name=project.original_file_name,
        original_file_type=project.original_file_type,
        original_file_size=project.original_file_size,
        status=project.status,
        processing_status=project.processing_status,
        last_error=project.last_error,
        has_analysis=bool(extracted.get("analysis")),
        has_script=project.script is not None,
        video_url=project.video_url,
        video_duration=project.video_duration,
        video_format=project.video_format,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def project_detail_response(project: ProjectModel) -> ProjectDetailResponse:
    extracted = project.extracted_content or {}
    analysis = extracted.get("analysis") or {}
    return ProjectDetailResponse(
        **project_response(project).model_dump(),
        content=extracted.get("content"),
        content_type=extracted.get("content_type"),
        metadata=extracted.get("metadata") or {},
        processing_required=extracted.get("processing_required"),
        analysis=analysis.get("text"),
        script=project.script,
    )


@router.post(
    "/upload",
    response_model=ProjectDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description="Extract an uploaded file and create a project from it.",
)
async def upload_file(
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
    file: UploadFile = File(...),
) -> ProjectDetailResponse:
    # Multipart parsing already spooled the body; reject by size before buffering it.
    if file.size is not None:
        pipeline.check_upload_size(user.id, file.size)
    data = await file.read()
    filename = file.filename or ""
    mime_type = file.content_type or "application/octet-stream"
    logger.info("upload_received", filename=filename, size=len(data), user_id=str(user.id))

    project = await pipeline.upload(user.id, data, filename, mime_type)
    return project_detail_response(project)


@router.get(
    "",
    response_model=list[ProjectResponse],
    summary="List projects",
    description="List the caller's projects, newest first.",
)
async def list_projects(
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[ProjectResponse]:
    projects = pipeline.list_projects(user.id, limit=limit, offset=offset)
    return [project_response(p) for p in projects]


@router.get(
    "/{project_id}",
    response_model=ProjectDetailResponse,
    summary="Get project",
    description="Get one of the caller's projects by ID.",
)
async def get_project(
    project_id: str,
    user: CurrentUserDep,
    pipeline: PipelineServiceDep,
) -> ProjectDetailResponse:
    project = pipeline.get_project(user.id, parse_uuid(project_id, "project ID"))
    return project_detail_response(project)
