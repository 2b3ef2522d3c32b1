"""Transactional persistence for users, projects, render jobs and usage.

Every public method runs in its own transaction. Store faults surface as
``InternalError``; the render primitives (``begin_render``,
``complete_render``, ``fail_render``) keep the project's active-job slot and
the job status consistent inside a single transaction each.
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from animagenius.db.models import (
    ProjectModel,
    RenderJobModel,
    SubscriptionModel,
    UsageMetricModel,
    UserModel,
)
from animagenius.db.session import session_scope
from animagenius.domain.enums import (
    ProcessingStatus,
    ProjectStatus,
    RenderJobStatus,
    SubscriptionStatus,
    SubscriptionTier,
    UsageAction,
)
from animagenius.domain.models import RenderRequest, UsageEvent
from animagenius.domain.state_machine import (
    InvalidTransitionError,
    ProjectState,
    advance_project,
    advance_render_job,
)
from animagenius.errors import ConflictingJobError, InternalError, NotFoundError
from animagenius.logging import get_logger

logger = get_logger(__name__)

OPEN_SUBSCRIPTION_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.PENDING)


def _project_state(project: ProjectModel) -> ProjectState:
    return ProjectState(
        status=ProjectStatus(project.status),
        processing_status=ProcessingStatus(project.processing_status),
        has_video=project.video_url is not None,
    )


def _apply_state(project: ProjectModel, state: ProjectState) -> None:
    project.status = state.status
    project.processing_status = state.processing_status


def _usage_row(event: UsageEvent) -> UsageMetricModel:
    return UsageMetricModel(
        id=uuid4(),
        user_id=event.user_id,
        action=event.action,
        resource_type=event.resource_type,
        resource_id=event.resource_id,
        metadata_=event.metadata or None,
        timestamp=event.timestamp or datetime.now(UTC),
    )


class PipelineStore:
    """SQLAlchemy-backed store used by the pipeline and billing services."""

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Transaction scope; database faults become InternalError."""
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("store_operation_failed", error=str(e), error_type=type(e).__name__)
            raise InternalError("Persistent store failure") from e

    # =========================================================================
    # Users
    # =========================================================================

    def get_user(self, user_id: UUID) -> UserModel | None:
        with self.session() as session:
            return session.get(UserModel, user_id)

    def require_user(self, user_id: UUID) -> UserModel:
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def create_user(
        self,
        email: str,
        name: str | None = None,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        is_admin: bool = False,
        is_super_admin: bool = False,
    ) -> UserModel:
        with self.session() as session:
            user = UserModel(
                id=uuid4(),
                email=email,
                name=name,
                subscription_tier=tier,
                is_admin=is_admin,
                is_super_admin=is_super_admin,
            )
            session.add(user)
            return user

    def update_user(self, user_id: UUID, **fields: Any) -> UserModel:
        with self.session() as session:
            user = session.get(UserModel, user_id)
            if user is None:
                raise NotFoundError("User not found")
            for name, value in fields.items():
                setattr(user, name, value)
            return user

    def list_users(
        self,
        search: str | None = None,
        tier: SubscriptionTier | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[UserModel], int]:
        """Page through users, newest first, with the total match count."""
        with self.session() as session:
            query = select(UserModel)
            if search:
                pattern = f"%{search}%"
                query = query.where(
                    or_(UserModel.email.ilike(pattern), UserModel.name.ilike(pattern))
                )
            if tier is not None:
                query = query.where(UserModel.subscription_tier == tier)

            total = session.execute(
                select(func.count()).select_from(query.subquery())
            ).scalar_one()
            users = (
                session.execute(
                    query.order_by(UserModel.created_at.desc()).limit(limit).offset(offset)
                )
                .scalars()
                .all()
            )
            return list(users), total

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        user_id: UUID,
        title: str,
        file_name: str,
        file_type: str,
        file_size: int,
        extracted_content: dict[str, Any],
    ) -> ProjectModel:
        with self.session() as session:
            project = ProjectModel(
                id=uuid4(),
                user_id=user_id,
                title=title,
                original_file_name=file_name,
                original_file_type=file_type,
                original_file_size=file_size,
                extracted_content=extracted_content,
                status=ProjectStatus.DRAFT,
                processing_status=ProcessingStatus.IDLE,
            )
            session.add(project)
            return project

    def get_project(self, project_id: UUID, user_id: UUID) -> ProjectModel:
        """Load a project owned by ``user_id``.

        Raises:
            NotFoundError: If the project does not exist or belongs to someone else
        """
        with self.session() as session:
            project = session.get(ProjectModel, project_id)
            if project is None or project.user_id != user_id:
                raise NotFoundError("Project not found")
            return project

    def list_projects(self, user_id: UUID, limit: int = 100, offset: int = 0) -> list[ProjectModel]:
        with self.session() as session:
            projects = session.execute(
                select(ProjectModel)
                .where(ProjectModel.user_id == user_id)
                .order_by(ProjectModel.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).scalars()
            return list(projects)

    def start_stage(self, project_id: UUID, stage: ProcessingStatus) -> ProjectModel:
        """Move a project into an analyze or script stage.

        Raises:
            ConflictingJobError: If another stage is still in progress
        """
        with self.session() as session:
            project = self._locked_project(session, project_id)
            try:
                _apply_state(project, advance_project(_project_state(project), stage))
            except InvalidTransitionError as e:
                raise ConflictingJobError(
                    "Another stage is already in progress for this project",
                    processing_status=e.current,
                ) from e
            project.last_error = None
            return project

    def finish_stage(
        self,
        project_id: UUID,
        outcome: ProcessingStatus,
        extracted_content: dict[str, Any] | None = None,
        script: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> ProjectModel:
        """Complete or fail the analyze/script stage a project is in."""
        with self.session() as session:
            project = self._locked_project(session, project_id)
            _apply_state(project, advance_project(_project_state(project), outcome))
            if extracted_content is not None:
                project.extracted_content = extracted_content
            if script is not None:
                project.script = script
            if error is not None:
                project.last_error = error
            return project

    def _locked_project(self, session: Session, project_id: UUID) -> ProjectModel:
        project = session.execute(
            select(ProjectModel).where(ProjectModel.id == project_id).with_for_update()
        ).scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project not found")
        return project

    # =========================================================================
    # Render jobs
    # =========================================================================

    def begin_render(self, project_id: UUID, request: RenderRequest) -> RenderJobModel:
        """Create a QUEUED render job iff the project has no active job.

        The project's active-job slot is claimed with a compare-and-set in the
        same transaction that inserts the job and moves the project to
        PROCESSING/RENDERING.

        Raises:
            ConflictingJobError: If a render (or another stage) is in flight
        """
        job_id = uuid4()
        with self.session() as session:
            claimed = session.execute(
                update(ProjectModel)
                .where(
                    ProjectModel.id == project_id,
                    ProjectModel.active_render_job_id.is_(None),
                )
                .values(active_render_job_id=job_id)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise ConflictingJobError("A render job is already in progress for this project")

            project = session.get(ProjectModel, project_id, populate_existing=True)
            if project is None:
                raise NotFoundError("Project not found")
            try:
                _apply_state(
                    project,
                    advance_project(_project_state(project), ProcessingStatus.RENDERING),
                )
            except InvalidTransitionError as e:
                raise ConflictingJobError(
                    "Another stage is already in progress for this project",
                    processing_status=e.current,
                ) from e
            project.last_error = None

            job = RenderJobModel(
                id=job_id,
                project_id=project_id,
                provider=request.provider,
                status=RenderJobStatus.QUEUED,
                priority=request.priority,
                progress=0,
                estimated_time=request.duration_seconds,
                render_settings=request.as_settings(),
                created_at=datetime.now(UTC),
            )
            session.add(job)
            return job

    def mark_render_running(self, job_id: UUID) -> RenderJobModel:
        with self.session() as session:
            job = self._require_job(session, job_id)
            job.status = advance_render_job(RenderJobStatus(job.status), RenderJobStatus.RUNNING)
            job.started_at = datetime.now(UTC)
            return job

    def complete_render(
        self,
        job_id: UUID,
        output_ref: str,
        duration_seconds: int,
        usage_event: UsageEvent,
    ) -> RenderJobModel:
        """Mark a job and its project COMPLETED and append the usage event.

        The usage insert runs in a savepoint: if it fails the completion still
        commits and the failure is logged.
        """
        with self.session() as session:
            job = self._require_job(session, job_id)
            job.status = advance_render_job(
                RenderJobStatus(job.status), RenderJobStatus.COMPLETED
            )
            job.progress = 100
            job.output_url = output_ref
            job.actual_time = duration_seconds
            job.completed_at = datetime.now(UTC)

            project = self._locked_project(session, job.project_id)
            _apply_state(
                project,
                advance_project(_project_state(project), ProcessingStatus.COMPLETED),
            )
            project.video_url = output_ref
            project.video_duration = duration_seconds
            project.video_format = (job.render_settings or {}).get("format", "MP4")
            self._release_slot(project, job.id)

            try:
                with session.begin_nested():
                    session.add(_usage_row(usage_event))
            except SQLAlchemyError as e:
                logger.error(
                    "usage_record_failed",
                    action=usage_event.action,
                    render_job_id=str(job_id),
                    error=str(e),
                )
            return job

    def fail_render(self, job_id: UUID, error: str) -> RenderJobModel:
        """Mark a job and its project FAILED with the error message."""
        with self.session() as session:
            job = self._require_job(session, job_id)
            job.status = advance_render_job(RenderJobStatus(job.status), RenderJobStatus.FAILED)
            job.error_message = error
            job.completed_at = datetime.now(UTC)

            project = self._locked_project(session, job.project_id)
            _apply_state(
                project,
                advance_project(_project_state(project), ProcessingStatus.FAILED),
            )
            project.last_error = error
            self._release_slot(project, job.id)
            return job

    def get_render_job(self, job_id: UUID, user_id: UUID) -> RenderJobModel:
        with self.session() as session:
            job = session.get(RenderJobModel, job_id)
            if job is None or job.project.user_id != user_id:
                raise NotFoundError("Render job not found")
            return job

    def latest_render_job(self, project_id: UUID, user_id: UUID) -> RenderJobModel:
        with self.session() as session:
            job = session.execute(
                select(RenderJobModel)
                .join(ProjectModel)
                .where(RenderJobModel.project_id == project_id, ProjectModel.user_id == user_id)
                .order_by(RenderJobModel.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if job is None:
                raise NotFoundError("Render job not found")
            return job

    def list_render_jobs(self, project_id: UUID) -> list[RenderJobModel]:
        with self.session() as session:
            jobs = session.execute(
                select(RenderJobModel)
                .where(RenderJobModel.project_id == project_id)
                .order_by(RenderJobModel.created_at)
            ).scalars()
            return list(jobs)

    def _require_job(self, session: Session, job_id: UUID) -> RenderJobModel:
        job = session.get(RenderJobModel, job_id)
        if job is None:
            raise NotFoundError("Render job not found")
        return job

    @staticmethod
    def _release_slot(project: ProjectModel, job_id: UUID) -> None:
        if project.active_render_job_id == job_id:
            project.active_render_job_id = None

    # =========================================================================
    # Usage log
    # =========================================================================

    def add_usage_event(self, event: UsageEvent) -> None:
        with self.session() as session:
            session.add(_usage_row(event))

    def count_usage(
        self,
        user_id: UUID,
        action: UsageAction,
        period_start: datetime,
        period_end: datetime | None = None,
    ) -> int:
        """Count events in ``[period_start, period_end)``."""
        with self.session() as session:
            query = (
                select(func.count())
                .select_from(UsageMetricModel)
                .where(
                    UsageMetricModel.user_id == user_id,
                    UsageMetricModel.action == action,
                    UsageMetricModel.timestamp >= period_start,
                )
            )
            if period_end is not None:
                query = query.where(UsageMetricModel.timestamp < period_end)
            return session.execute(query).scalar_one()

    def list_usage_events(
        self,
        user_id: UUID,
        action: UsageAction | None = None,
        limit: int = 100,
    ) -> list[UsageMetricModel]:
        with self.session() as session:
            query = select(UsageMetricModel).where(UsageMetricModel.user_id == user_id)
            if action is not None:
                query = query.where(UsageMetricModel.action == action)
            rows = session.execute(
                query.order_by(UsageMetricModel.timestamp.desc()).limit(limit)
            ).scalars()
            return list(rows)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def open_subscription(self, user_id: UUID) -> SubscriptionModel | None:
        """Most recent ACTIVE or PENDING subscription of a user."""
        with self.session() as session:
            return session.execute(
                select(SubscriptionModel)
                .where(
                    SubscriptionModel.user_id == user_id,
                    SubscriptionModel.status.in_(OPEN_SUBSCRIPTION_STATUSES),
                )
                .order_by(SubscriptionModel.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()

    def create_subscription(
        self,
        user_id: UUID,
        provider_subscription_id: str,
        plan_id: str,
        amount: float,
        period_start: datetime,
        period_end: datetime,
        currency: str = "USD",
    ) -> SubscriptionModel:
        with self.session() as session:
            subscription = SubscriptionModel(
                id=uuid4(),
                user_id=user_id,
                provider_subscription_id=provider_subscription_id,
                plan_id=plan_id,
                status=SubscriptionStatus.PENDING,
                current_period_start=period_start,
                current_period_end=period_end,
                amount=amount,
                currency=currency,
                created_at=datetime.now(UTC),
            )
            session.add(subscription)
            return subscription

    def get_subscription_by_provider_id(
        self, provider_subscription_id: str
    ) -> SubscriptionModel | None:
        with self.session() as session:
            return session.execute(
                select(SubscriptionModel).where(
                    SubscriptionModel.provider_subscription_id == provider_subscription_id
                )
            ).scalar_one_or_none()

    def update_subscription(
        self,
        subscription_id: UUID,
        user_fields: dict[str, Any] | None = None,
        **fields: Any,
    ) -> SubscriptionModel:
        """Update a subscription and, in the same transaction, its user."""
        with self.session() as session:
            subscription = session.get(SubscriptionModel, subscription_id)
            if subscription is None:
                raise NotFoundError("Subscription not found")
            for name, value in fields.items():
                setattr(subscription, name, value)
            if user_fields:
                user = session.get(UserModel, subscription.user_id)
                if user is not None:
                    for name, value in user_fields.items():
                        setattr(user, name, value)
            return subscription
