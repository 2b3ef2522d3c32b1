"""Document-to-video pipeline: upload, analyze, script and render stages.

Each stage runs inside the request that triggers it. Admission checks run
before any state changes; the AI call happens outside any open transaction
and is bounded by a per-stage timeout. A stage interrupted after it claims
the project, by cancellation or a store fault, is marked FAILED before the
exception propagates.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any
from uuid import UUID

from animagenius.adapters.ai import AIProvider, AIResult, get_ai_provider
from animagenius.config import settings
from animagenius.db.models import ProjectModel, RenderJobModel, UserModel
from animagenius.domain.content import (
    AnalysisDocument,
    ExtractedContent,
    ScriptDocument,
    load_document,
)
from animagenius.domain.enums import ProcessingStatus, SubscriptionTier, UsageAction
from animagenius.domain.models import RenderRequest, UsageEvent
from animagenius.domain.tiers import TierPolicy
from animagenius.errors import (
    DurationExceededError,
    FileSizeExceededError,
    QuotaExceededError,
    UpstreamFailureError,
    ValidationError,
)
from animagenius.ingestion import FileIngestionRouter
from animagenius.logging import get_logger
from animagenius.services.store import PipelineStore
from animagenius.services.usage import UsageMeter

logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024
UNTITLED_PROJECT = "Untitled Project"
VIDEO_PROMPT_SCRIPT_CHARS = 1000


def project_title(filename: str) -> str:
    return filename.split(".")[0].strip() or UNTITLED_PROJECT


def user_tier(user: UserModel) -> SubscriptionTier:
    return SubscriptionTier(user.subscription_tier)


def interruption_reason(exc: BaseException) -> str:
    if isinstance(exc, asyncio.CancelledError):
        return "cancelled"
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


class PipelineService:
    """Runs the pipeline stages for a user's projects."""

    def __init__(
        self,
        store: PipelineStore | None = None,
        ai: AIProvider | None = None,
        policy: TierPolicy | None = None,
        usage: UsageMeter | None = None,
        router: FileIngestionRouter | None = None,
    ) -> None:
        self.store = store or PipelineStore()
        self.ai = ai or get_ai_provider()
        self.policy = policy or TierPolicy()
        self.usage = usage or UsageMeter(self.store, self.policy)
        self.router = router or FileIngestionRouter()

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload(
        self,
        user_id: UUID,
        data: bytes,
        filename: str,
        mime_type: str,
    ) -> ProjectModel:
        """Extract an uploaded file and create a DRAFT project from it.

        Raises:
            FileSizeExceededError: If the file is above the tier's size limit
            ValidationError: If the file type is unsupported or unreadable
        """
        self.check_upload_size(user_id, len(data))

        result = self.router.process(data, filename, mime_type)
        if not result.success:
            raise ValidationError(
                f"File processing failed: {result.error}",
                error_code=result.error_code,
            )

        extracted = ExtractedContent(
            content=result.content or "",
            content_type=mime_type or "document",
            metadata=result.metadata,
            data=result.extracted_data,
            processing_required=result.processing_required,
        )
        project = self.store.create_project(
            user_id=user_id,
            title=project_title(filename),
            file_name=filename,
            file_type=mime_type,
            file_size=len(data),
            extracted_content=extracted.model_dump(mode="json"),
        )
        logger.info(
            "project_created",
            project_id=str(project.id),
            user_id=str(user_id),
            file_type=mime_type,
            file_size=len(data),
        )

        self.usage.record(
            user_id,
            UsageAction.FILE_UPLOAD,
            "project",
            str(project.id),
            {"fileName": filename, "fileSize": len(data), "fileType": mime_type},
        )
        return project

    def check_upload_size(self, user_id: UUID, size_bytes: int) -> None:
        """Reject a file above the user's tier size limit.

        Raises:
            FileSizeExceededError: If ``size_bytes`` is above the limit
        """
        tier = user_tier(self.store.require_user(user_id))
        size_mb = size_bytes / BYTES_PER_MB
        if not self.policy.can_upload_file(tier, size_mb):
            limit_mb = self.policy.get_limits(tier).file_limit_mb
            raise FileSizeExceededError(
                f"File size exceeds limit. Maximum allowed: {limit_mb}MB",
                size_mb=round(size_mb, 2),
                limit_mb=limit_mb,
                tier=tier.value,
            )

    # =========================================================================
    # Analyze
    # =========================================================================

    async def analyze(self, user_id: UUID, project_id: UUID) -> ProjectModel:
        """Run AI content analysis on a project's extracted content.

        Raises:
            ValidationError: If there is no analyzable content
            ConflictingJobError: If another stage is in progress
            UpstreamFailureError: If the AI call fails (the project is FAILED)
        """
        project = self.store.get_project(project_id, user_id)
        extracted = load_document(ExtractedContent, project.extracted_content, "extracted content")
        if extracted.processing_required is not None:
            raise ValidationError(
                "File needs further processing before analysis",
                processing_required=extracted.processing_required.value,
            )
        if not extracted.has_content:
            raise ValidationError("No content available for analysis")

        self.store.start_stage(project.id, ProcessingStatus.ANALYZING)
        logger.info("analysis_started", project_id=str(project.id))

        try:
            result = await self._invoke(
                self.ai.analyze(extracted.content, extracted.content_type),
                settings.analyze_timeout_seconds,
                "analyze",
            )
            text = result.data if isinstance(result.data, str) else ""
            if result.success and not text.strip():
                result = AIResult(success=False, error="AI returned an empty analysis")
            if result.success:
                analysis = AnalysisDocument(text=text, content_type=extracted.content_type)
                project = self.store.finish_stage(
                    project.id,
                    ProcessingStatus.COMPLETED,
                    extracted_content=extracted.model_copy(
                        update={"analysis": analysis}
                    ).model_dump(mode="json"),
                )
        except BaseException as e:
            self._abandon_stage(project.id, "analyze", e)
            raise
        if not result.success:
            self._fail_stage(project.id, "analyze", result.error)
            raise UpstreamFailureError(f"Analysis failed: {result.error}", stage="analyze")
        logger.info("analysis_completed", project_id=str(project.id), analysis_length=len(text))

        self.usage.record(
            user_id,
            UsageAction.AI_PROCESSING,
            "project",
            str(project.id),
            {"analysisType": "content_analysis", "contentLength": len(extracted.content)},
        )
        return project

    # =========================================================================
    # Script
    # =========================================================================

    async def generate_script(
        self,
        user_id: UUID,
        project_id: UUID,
        duration_seconds: int | None = None,
        style: str | None = None,
    ) -> ProjectModel:
        """Write a timed script from the project's analysis.

        Raises:
            ValidationError: If the project has not been analyzed
            DurationExceededError: If the duration is above the tier maximum
            ConflictingJobError: If another stage is in progress
            UpstreamFailureError: If the AI call fails (the project is FAILED)
        """
        project = self.store.get_project(project_id, user_id)
        extracted = load_document(ExtractedContent, project.extracted_content, "extracted content")
        if extracted.analysis is None:
            raise ValidationError("No analysis available. Please analyze content first.")

        duration = (
            settings.default_script_duration if duration_seconds is None else duration_seconds
        )
        style = style or settings.default_script_style
        if duration <= 0:
            raise ValidationError("Duration must be positive", duration=duration)
        tier = user_tier(self.store.require_user(user_id))
        self._check_duration(tier, duration)

        self.store.start_stage(project.id, ProcessingStatus.GENERATING_SCRIPT)
        logger.info("script_started", project_id=str(project.id), duration=duration, style=style)

        script: ScriptDocument | None = None
        try:
            result = await self._invoke(
                self.ai.generate_script(extracted.analysis.text, duration, style),
                settings.script_timeout_seconds,
                "script",
            )
            if result.success:
                try:
                    if not isinstance(result.data, dict):
                        raise TypeError("script payload is not an object")
                    script = ScriptDocument.from_payload(result.data, duration, style)
                except (TypeError, ValueError) as e:
                    result = AIResult(success=False, error=f"AI returned an unusable script: {e}")
            if script is not None:
                project = self.store.finish_stage(
                    project.id,
                    ProcessingStatus.COMPLETED,
                    script=script.model_dump(mode="json"),
                )
        except BaseException as e:
            self._abandon_stage(project.id, "script", e)
            raise
        if script is None:
            self._fail_stage(project.id, "script", result.error)
            raise UpstreamFailureError(f"Script generation failed: {result.error}", stage="script")
        logger.info(
            "script_completed",
            project_id=str(project.id),
            segments=len(script.segments),
        )

        self.usage.record(
            user_id,
            UsageAction.AI_PROCESSING,
            "project",
            str(project.id),
            {"scriptGeneration": True, "duration": duration, "style": style},
        )
        return project

    # =========================================================================
    # Render
    # =========================================================================

    async def render(
        self,
        user_id: UUID,
        project_id: UUID,
        duration_seconds: int | None = None,
        quality: str | None = None,
        output_format: str | None = None,
        extra_settings: dict[str, Any] | None = None,
    ) -> RenderJobModel:
        """Render the project's script into a video.

        Admission (script present, monthly quota, duration) runs before any
        state change. Exactly one VIDEO_GENERATION usage event is written
        when the render completes; failed renders write none.

        Raises:
            ValidationError: If the project has no script
            QuotaExceededError: If the monthly video quota is used up
            DurationExceededError: If the duration is above the tier maximum
            ConflictingJobError: If a render is already in flight
            UpstreamFailureError: If the AI call fails (job and project FAILED)
        """
        project = self.store.get_project(project_id, user_id)
        script = load_document(ScriptDocument, project.script, "script")

        tier = user_tier(self.store.require_user(user_id))
        monthly_count = self.usage.monthly_video_count(user_id)
        if not self.policy.can_create_video(tier, monthly_count):
            limit = self.policy.get_limits(tier).videos_per_month
            raise QuotaExceededError(
                f"Monthly video limit reached. Your plan allows {limit} videos per month.",
                used=monthly_count,
                limit=limit,
                tier=tier.value,
            )

        duration = (
            settings.default_render_duration if duration_seconds is None else duration_seconds
        )
        if duration <= 0:
            raise ValidationError("Duration must be positive", duration=duration)
        self._check_duration(tier, duration)

        request = RenderRequest(
            duration_seconds=duration,
            priority=self.policy.get_processing_priority(tier),
            watermark=self.policy.should_watermark(tier),
            quality=quality or ("HD" if tier == SubscriptionTier.FREE else "4K"),
            output_format=output_format or "MP4",
            provider=settings.render_provider_tag,
            settings=extra_settings or {},
        )
        job = self.store.begin_render(project.id, request)
        logger.info(
            "render_job_created",
            render_job_id=str(job.id),
            project_id=str(project.id),
            priority=job.priority,
            duration=duration,
        )

        prompt = (
            "Create a professional video based on this script: "
            f"{script.to_prompt_text()[:VIDEO_PROMPT_SCRIPT_CHARS]}..."
        )
        try:
            self.store.mark_render_running(job.id)
            result = await self._invoke(
                self.ai.generate_video(prompt, duration),
                settings.render_timeout_seconds,
                "render",
            )
            output_ref = result.data if isinstance(result.data, str) else ""
            if result.success and not output_ref.strip():
                result = AIResult(success=False, error="Video generation returned no output")
            if result.success:
                usage_event = UsageEvent(
                    user_id=user_id,
                    action=UsageAction.VIDEO_GENERATION,
                    resource_type="video",
                    resource_id=str(project.id),
                    metadata={
                        "renderJobId": str(job.id),
                        "duration": duration,
                        "provider": request.provider,
                        "quality": request.quality,
                        "success": True,
                    },
                )
                job = self.store.complete_render(job.id, output_ref.strip(), duration, usage_event)
        except BaseException as e:
            self._abandon_render(job.id, e)
            raise

        if not result.success:
            error = result.error or "Video generation failed"
            self.store.fail_render(job.id, error)
            logger.warning(
                "render_failed",
                render_job_id=str(job.id),
                project_id=str(project.id),
                error=error,
            )
            raise UpstreamFailureError(
                f"Video generation failed: {error}",
                stage="render",
                render_job_id=str(job.id),
            )

        logger.info(
            "render_completed",
            render_job_id=str(job.id),
            project_id=str(project.id),
            output_url=job.output_url,
        )
        return job

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_project(self, user_id: UUID, project_id: UUID) -> ProjectModel:
        return self.store.get_project(project_id, user_id)

    def list_projects(self, user_id: UUID, limit: int = 100, offset: int = 0) -> list[ProjectModel]:
        return self.store.list_projects(user_id, limit=limit, offset=offset)

    def get_render_job(self, user_id: UUID, job_id: UUID) -> RenderJobModel:
        return self.store.get_render_job(job_id, user_id)

    def latest_render_job(self, user_id: UUID, project_id: UUID) -> RenderJobModel:
        return self.store.latest_render_job(project_id, user_id)

    def usage_summary(self, user_id: UUID) -> dict[str, Any]:
        user = self.store.require_user(user_id)
        return self.usage.usage_summary(user_id, user_tier(user))

    async def health_check(self) -> bool:
        return await self.ai.health_check()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_duration(self, tier: SubscriptionTier, duration: int) -> None:
        if not self.policy.can_create_duration(tier, duration):
            max_duration = self.policy.get_limits(tier).max_duration
            raise DurationExceededError(
                f"Duration exceeds limit. Maximum allowed: {max_duration} seconds",
                duration=duration,
                max_duration=max_duration,
                tier=tier.value,
            )

    def _abandon_stage(self, project_id: UUID, stage: str, exc: BaseException) -> None:
        """Fail a stage left mid-flight by cancellation or an unexpected error."""
        reason = interruption_reason(exc)
        logger.warning("stage_interrupted", project_id=str(project_id), stage=stage, error=reason)
        try:
            self._fail_stage(project_id, stage, reason)
        except Exception:
            logger.exception("stage_recovery_failed", project_id=str(project_id), stage=stage)

    def _abandon_render(self, job_id: UUID, exc: BaseException) -> None:
        """Fail a render job and release its slot after an interrupted render."""
        reason = interruption_reason(exc)
        logger.warning("render_interrupted", render_job_id=str(job_id), error=reason)
        try:
            self.store.fail_render(job_id, reason)
        except Exception:
            logger.exception("render_recovery_failed", render_job_id=str(job_id))

    def _fail_stage(self, project_id: UUID, stage: str, error: str | None) -> None:
        reason = error or f"{stage} failed"
        self.store.finish_stage(project_id, ProcessingStatus.FAILED, error=reason)
        logger.warning("stage_failed", project_id=str(project_id), stage=stage, error=reason)

    async def _invoke(self, call: Awaitable[AIResult], timeout: float, stage: str) -> AIResult:
        """Await an AI call; timeouts and exceptions become failed results."""
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except TimeoutError:
            logger.warning("ai_call_timed_out", stage=stage, timeout=timeout)
            return AIResult(success=False, error=f"{stage} timed out after {timeout:g}s")
        except Exception as e:
            logger.exception("ai_call_failed", stage=stage)
            return AIResult(success=False, error=str(e) or type(e).__name__)
