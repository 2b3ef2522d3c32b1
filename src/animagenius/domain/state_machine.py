"""Project and render job status transitions.

All status changes go through ``advance_project`` and ``advance_render_job``
so that the coarse project status can never contradict the processing
status (e.g. COMPLETED while processing FAILED).
"""

from dataclasses import dataclass

from animagenius.domain.enums import ProcessingStatus, ProjectStatus, RenderJobStatus

STAGE_STATUSES = frozenset(
    {
        ProcessingStatus.ANALYZING,
        ProcessingStatus.GENERATING_SCRIPT,
        ProcessingStatus.RENDERING,
    }
)

# A new stage may start from any resting state
RESTING_STATUSES = frozenset(
    {ProcessingStatus.IDLE, ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
)

RENDER_JOB_TRANSITIONS: dict[RenderJobStatus, frozenset[RenderJobStatus]] = {
    RenderJobStatus.QUEUED: frozenset({RenderJobStatus.RUNNING, RenderJobStatus.FAILED}),
    RenderJobStatus.RUNNING: frozenset({RenderJobStatus.COMPLETED, RenderJobStatus.FAILED}),
    RenderJobStatus.COMPLETED: frozenset(),
    RenderJobStatus.FAILED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised for a status change the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot transition from {current} to {target}")
        self.current = current
        self.target = target


@dataclass(frozen=True)
class ProjectState:
    """The pair of status fields that describe a project."""

    status: ProjectStatus
    processing_status: ProcessingStatus
    has_video: bool = False


def advance_project(state: ProjectState, target: ProcessingStatus) -> ProjectState:
    """Validate a processing transition and derive the new coarse status.

    Args:
        state: Current project state
        target: Requested processing status

    Returns:
        The project state after the transition

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    current = state.processing_status

    if target in STAGE_STATUSES:
        if current not in RESTING_STATUSES:
            raise InvalidTransitionError(current, target)
        if target == ProcessingStatus.RENDERING:
            return ProjectState(ProjectStatus.PROCESSING, target, state.has_video)
        return ProjectState(state.status, target, state.has_video)

    if target in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED):
        if current not in STAGE_STATUSES:
            raise InvalidTransitionError(current, target)
        if target == ProcessingStatus.FAILED:
            return ProjectState(ProjectStatus.FAILED, target, state.has_video)
        if current == ProcessingStatus.RENDERING:
            return ProjectState(ProjectStatus.COMPLETED, target, True)
        return ProjectState(_status_after_side_stage(state), target, state.has_video)

    raise InvalidTransitionError(current, target)


def _status_after_side_stage(state: ProjectState) -> ProjectStatus:
    """Coarse status after a successful analyze or script stage."""
    if state.status != ProjectStatus.FAILED:
        return state.status
    return ProjectStatus.COMPLETED if state.has_video else ProjectStatus.DRAFT


def advance_render_job(current: RenderJobStatus, target: RenderJobStatus) -> RenderJobStatus:
    """Validate a render job transition.

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if target not in RENDER_JOB_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)
    return target
