"""Tests for usage metering."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from animagenius.db.models import UserModel
from animagenius.domain.enums import SubscriptionTier, UsageAction
from animagenius.domain.models import UsageEvent
from animagenius.errors import InternalError
from animagenius.services.store import PipelineStore
from animagenius.services.usage import UsageMeter

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=UTC)


def add_video(store: PipelineStore, user: UserModel, at: datetime) -> None:
    store.add_usage_event(
        UsageEvent(
            user_id=user.id,
            action=UsageAction.VIDEO_GENERATION,
            resource_type="video",
            timestamp=at,
        )
    )


class TestMonthBoundaries:
    """Tests for period start computation."""

    def test_utc_month_start(self, store: PipelineStore) -> None:
        meter = UsageMeter(store, timezone="UTC")
        assert meter.current_month_start(NOW) == datetime(2024, 5, 1, tzinfo=UTC)

    def test_configured_timezone(self, store: PipelineStore) -> None:
        """Late evening on Feb 29 in New York is still February there."""
        meter = UsageMeter(store, timezone="America/New_York")
        now = datetime(2024, 3, 1, 3, 0, tzinfo=UTC)

        assert meter.current_month_start(now) == datetime(2024, 2, 1, 5, 0, tzinfo=UTC)


class TestCounting:
    """Tests for counting events in a period."""

    def test_period_start_is_inclusive(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user()
        month_start = datetime(2024, 5, 1, tzinfo=UTC)
        add_video(store, user, month_start)
        add_video(store, user, month_start - timedelta(seconds=1))
        add_video(store, user, NOW - timedelta(hours=1))

        meter = UsageMeter(store, timezone="UTC")
        assert meter.monthly_video_count(user.id, NOW) == 2

    def test_period_end_is_exclusive(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user()
        start = datetime(2024, 4, 1, tzinfo=UTC)
        end = datetime(2024, 5, 1, tzinfo=UTC)
        add_video(store, user, start)
        add_video(store, user, end)

        meter = UsageMeter(store)
        assert meter.count_in_period(user.id, UsageAction.VIDEO_GENERATION, start, end) == 1

    def test_counts_only_the_requested_action_and_user(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user, other = make_user(), make_user()
        meter = UsageMeter(store)
        meter.record(user.id, UsageAction.FILE_UPLOAD, "project")
        meter.record(user.id, UsageAction.AI_PROCESSING, "project")
        add_video(store, other, datetime.now(UTC))

        assert meter.monthly_video_count(user.id) == 0
        assert meter.monthly_video_count(other.id) == 1


class TestRecording:
    """Tests for best-effort recording."""

    def test_record_returns_true(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user()
        meter = UsageMeter(store)

        assert meter.record(user.id, UsageAction.FILE_UPLOAD, "project", "p1", {"a": 1}) is True
        events = store.list_usage_events(user.id)
        assert len(events) == 1
        assert events[0].metadata_ == {"a": 1}
        assert events[0].resource_id == "p1"

    def test_record_failure_is_swallowed(
        self,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A store fault is logged and reported as False, never raised."""
        user = make_user()

        def broken(event: UsageEvent) -> None:
            raise InternalError("Persistent store failure")

        monkeypatch.setattr(store, "add_usage_event", broken)
        meter = UsageMeter(store)

        assert meter.record(user.id, UsageAction.FILE_UPLOAD, "project") is False


class TestSummary:
    def test_summary_for_limited_tier(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user(SubscriptionTier.FREE)
        for _ in range(2):
            add_video(store, user, NOW)

        summary = UsageMeter(store, timezone="UTC").usage_summary(
            user.id, SubscriptionTier.FREE, NOW
        )

        assert summary["videos_used"] == 2
        assert summary["videos_limit"] == 5
        assert summary["videos_remaining"] == 3
        assert summary["usage_percentage"] == 40.0
        assert summary["at_limit"] is False
        assert summary["watermark"] is True
        assert summary["period_start"] == "2024-05-01T00:00:00+00:00"

    def test_summary_for_unlimited_tier(
        self, store: PipelineStore, make_user: Callable[..., UserModel]
    ) -> None:
        user = make_user(SubscriptionTier.ENTERPRISE)
        summary = UsageMeter(store).usage_summary(user.id, SubscriptionTier.ENTERPRISE)

        assert summary["videos_limit"] == -1
        assert summary["videos_remaining"] == -1
        assert summary["usage_percentage"] == 0.0
