"""Tests for project and render job status transitions."""

import pytest

from animagenius.domain.enums import ProcessingStatus, ProjectStatus, RenderJobStatus
from animagenius.domain.state_machine import (
    InvalidTransitionError,
    ProjectState,
    advance_project,
    advance_render_job,
)

DRAFT_IDLE = ProjectState(ProjectStatus.DRAFT, ProcessingStatus.IDLE)


class TestProjectTransitions:
    """Tests for advance_project."""

    def test_analyze_keeps_draft(self) -> None:
        state = advance_project(DRAFT_IDLE, ProcessingStatus.ANALYZING)
        assert state == ProjectState(ProjectStatus.DRAFT, ProcessingStatus.ANALYZING)

        done = advance_project(state, ProcessingStatus.COMPLETED)
        assert done.status == ProjectStatus.DRAFT
        assert done.processing_status == ProcessingStatus.COMPLETED

    def test_render_moves_to_processing_then_completed(self) -> None:
        rendering = advance_project(DRAFT_IDLE, ProcessingStatus.RENDERING)
        assert rendering.status == ProjectStatus.PROCESSING

        done = advance_project(rendering, ProcessingStatus.COMPLETED)
        assert done == ProjectState(ProjectStatus.COMPLETED, ProcessingStatus.COMPLETED, True)

    def test_failure_sets_both_fields(self) -> None:
        """A failed stage never leaves the coarse status COMPLETED."""
        state = ProjectState(ProjectStatus.COMPLETED, ProcessingStatus.COMPLETED, True)
        analyzing = advance_project(state, ProcessingStatus.ANALYZING)
        failed = advance_project(analyzing, ProcessingStatus.FAILED)

        assert failed.status == ProjectStatus.FAILED
        assert failed.processing_status == ProcessingStatus.FAILED

    def test_retry_after_failure_recovers_status(self) -> None:
        failed = ProjectState(ProjectStatus.FAILED, ProcessingStatus.FAILED, False)
        scripting = advance_project(failed, ProcessingStatus.GENERATING_SCRIPT)
        done = advance_project(scripting, ProcessingStatus.COMPLETED)

        assert done.status == ProjectStatus.DRAFT

    def test_retry_after_failure_keeps_existing_video(self) -> None:
        failed = ProjectState(ProjectStatus.FAILED, ProcessingStatus.FAILED, True)
        analyzing = advance_project(failed, ProcessingStatus.ANALYZING)
        done = advance_project(analyzing, ProcessingStatus.COMPLETED)

        assert done.status == ProjectStatus.COMPLETED

    @pytest.mark.parametrize(
        "busy",
        [
            ProcessingStatus.ANALYZING,
            ProcessingStatus.GENERATING_SCRIPT,
            ProcessingStatus.RENDERING,
        ],
    )
    def test_stage_cannot_start_while_busy(self, busy: ProcessingStatus) -> None:
        state = ProjectState(ProjectStatus.PROCESSING, busy)
        with pytest.raises(InvalidTransitionError):
            advance_project(state, ProcessingStatus.RENDERING)

    def test_cannot_finish_from_rest(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            advance_project(DRAFT_IDLE, ProcessingStatus.COMPLETED)
        assert exc_info.value.current == ProcessingStatus.IDLE

    def test_cannot_return_to_idle(self) -> None:
        analyzing = advance_project(DRAFT_IDLE, ProcessingStatus.ANALYZING)
        with pytest.raises(InvalidTransitionError):
            advance_project(analyzing, ProcessingStatus.IDLE)


class TestRenderJobTransitions:
    """Tests for advance_render_job."""

    def test_happy_path(self) -> None:
        status = advance_render_job(RenderJobStatus.QUEUED, RenderJobStatus.RUNNING)
        assert advance_render_job(status, RenderJobStatus.COMPLETED) == RenderJobStatus.COMPLETED

    def test_queued_can_fail(self) -> None:
        assert (
            advance_render_job(RenderJobStatus.QUEUED, RenderJobStatus.FAILED)
            == RenderJobStatus.FAILED
        )

    @pytest.mark.parametrize("terminal", [RenderJobStatus.COMPLETED, RenderJobStatus.FAILED])
    def test_terminal_states_are_final(self, terminal: RenderJobStatus) -> None:
        assert terminal.is_terminal
        with pytest.raises(InvalidTransitionError):
            advance_render_job(terminal, RenderJobStatus.RUNNING)

    def test_cannot_skip_running(self) -> None:
        with pytest.raises(InvalidTransitionError):
            advance_render_job(RenderJobStatus.QUEUED, RenderJobStatus.COMPLETED)
