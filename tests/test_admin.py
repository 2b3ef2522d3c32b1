"""Tests for admin user management."""

import uuid
from collections.abc import Callable

import pytest

from animagenius.db.models import UserModel
from animagenius.domain.enums import SubscriptionTier, UsageAction
from animagenius.errors import NotFoundError, PermissionDeniedError, ValidationError
from animagenius.services.admin import AdminService
from animagenius.services.store import PipelineStore


@pytest.fixture
def admin_service(store: PipelineStore) -> AdminService:
    return AdminService(store=store)


class TestAccess:
    def test_plain_user_is_refused(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            admin_service.list_users(make_user())

    def test_super_admin_counts_as_admin(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        super_admin = make_user(is_super_admin=True)
        admin_service.require_admin(super_admin)
        admin_service.require_admin(super_admin, super_admin=True)

    def test_admin_is_not_super_admin(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        with pytest.raises(PermissionDeniedError, match="Super admin"):
            admin_service.require_admin(make_user(is_admin=True), super_admin=True)


class TestListUsers:
    """Tests for paging and filtering users."""

    def test_pagination(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        admin = make_user(is_admin=True)
        for _ in range(4):
            make_user()

        result = admin_service.list_users(admin, page=2, limit=2)

        assert len(result["users"]) == 2
        assert result["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}

    def test_filter_by_tier_and_search(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        admin = make_user(is_admin=True)
        pro = make_user(SubscriptionTier.PRO)
        make_user(SubscriptionTier.STARTER)

        by_tier = admin_service.list_users(admin, tier=SubscriptionTier.PRO)
        by_email = admin_service.list_users(admin, search=pro.email.split("@")[0])

        assert [u.id for u in by_tier["users"]] == [pro.id]
        assert [u.id for u in by_email["users"]] == [pro.id]

    def test_invalid_paging(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        with pytest.raises(ValidationError):
            admin_service.list_users(make_user(is_admin=True), page=0)

    def test_actions_are_logged(
        self,
        admin_service: AdminService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        admin = make_user(is_admin=True)
        admin_service.list_users(admin)

        [entry] = store.list_usage_events(admin.id, UsageAction.ADMIN_ACTION)
        assert entry.metadata_["action"] == "VIEW_USERS"
        assert entry.resource_type == "user_list"


class TestUpdateUser:
    """Tests for editing users."""

    def test_change_tier(
        self,
        admin_service: AdminService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        admin = make_user(is_admin=True)
        user = make_user()

        admin_service.update_user(admin, user.id, {"subscription_tier": "STARTER"})

        assert store.require_user(user.id).subscription_tier == SubscriptionTier.STARTER

    def test_admin_flags_need_super_admin(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        admin = make_user(is_admin=True)
        user = make_user()

        with pytest.raises(PermissionDeniedError):
            admin_service.update_user(admin, user.id, {"is_admin": True})

    def test_super_admin_grants_admin(
        self,
        admin_service: AdminService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        super_admin = make_user(is_super_admin=True)
        user = make_user()

        admin_service.update_user(super_admin, user.id, {"is_admin": True})

        assert store.require_user(user.id).is_admin is True

    @pytest.mark.parametrize(
        "updates",
        [{}, {"email": "new@example.com"}, {"subscription_tier": "GOLD"}],
    )
    def test_invalid_updates(
        self,
        updates: dict,
        admin_service: AdminService,
        make_user: Callable[..., UserModel],
    ) -> None:
        admin = make_user(is_admin=True)
        user = make_user()

        with pytest.raises(ValidationError):
            admin_service.update_user(admin, user.id, updates)

    def test_unknown_user(
        self, admin_service: AdminService, make_user: Callable[..., UserModel]
    ) -> None:
        with pytest.raises(NotFoundError):
            admin_service.update_user(make_user(is_admin=True), uuid.uuid4(), {"name": "X"})


class TestUserUsage:
    def test_summary_and_events(
        self,
        admin_service: AdminService,
        store: PipelineStore,
        make_user: Callable[..., UserModel],
    ) -> None:
        admin = make_user(is_admin=True)
        user = make_user(SubscriptionTier.STARTER)
        admin_service.usage.record(user.id, UsageAction.FILE_UPLOAD, "project", "p-1")

        summary, events = admin_service.user_usage(admin, user.id)

        assert summary["tier"] == "STARTER"
        assert summary["videos_limit"] == 25
        assert [e.action for e in events] == [UsageAction.FILE_UPLOAD]
