"""
Tests for identity webhook profile sync.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.exceptions import DatabaseError
from app.models.domain import WebhookEvent, WebhookUserData
from app.services.profiles import ProfileSyncService

Factory = Callable[..., MagicMock]


def make_event(event_type: str, email: str | None = "new@example.com") -> WebhookEvent:
    return WebhookEvent(
        event_type=event_type,
        data=WebhookUserData(user_id="user_1", email=email, first_name="Ada", last_name="L"),
    )


@pytest.fixture
def service(db_session: AsyncMock) -> ProfileSyncService:
    return ProfileSyncService(db_session)


class TestHandleEvent:
    """Tests for each event type."""

    @pytest.mark.asyncio
    async def test_user_created(self, service: ProfileSyncService, db_session: AsyncMock) -> None:
        """Created users get a profile with the starting grant."""
        message = await service.handle_event(make_event("user.created"))

        assert message == "User profile created successfully"
        profile = db_session.add.call_args[0][0]
        assert profile.clerk_id == "user_1"
        assert profile.email == "new@example.com"
        assert profile.first_name == "Ada"
        assert profile.credits == 10

    @pytest.mark.asyncio
    async def test_user_created_twice_updates_contact_details(
        self,
        service: ProfileSyncService,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """A profile made on first use keeps its credits."""
        existing = profile_factory(user_id="user_1", email=None, credits=4)
        db_session.flush.side_effect = [IntegrityError("INSERT", {}, Exception("dup")), None]
        db_session.execute.return_value = result_factory(existing)

        message = await service.handle_event(make_event("user.created"))

        assert message == "User profile created successfully"
        assert existing.email == "new@example.com"
        assert existing.credits == 4
        db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_user_created_database_failure(
        self, service: ProfileSyncService, db_session: AsyncMock
    ) -> None:
        db_session.flush.side_effect = OperationalError("INSERT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await service.handle_event(make_event("user.created"))

    @pytest.mark.asyncio
    async def test_user_updated(
        self,
        service: ProfileSyncService,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        existing = profile_factory(user_id="user_1", email="old@example.com", credits=2)
        db_session.execute.return_value = result_factory(existing)

        message = await service.handle_event(make_event("user.updated"))

        assert message == "User profile updated successfully"
        assert existing.email == "new@example.com"
        assert existing.last_name == "L"
        assert existing.credits == 2
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_user_updated_without_profile(
        self, service: ProfileSyncService, db_session: AsyncMock
    ) -> None:
        """Updates for unknown users are acknowledged without writes."""
        message = await service.handle_event(make_event("user.updated"))

        assert message == "User profile updated successfully"
        db_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_user_deleted(self, service: ProfileSyncService, db_session: AsyncMock) -> None:
        message = await service.handle_event(make_event("user.deleted", email=None))

        assert message == "User profile deleted successfully"
        stmt = str(db_session.execute.call_args[0][0])
        assert stmt.startswith("DELETE FROM profiles")
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_events_ignored(
        self, service: ProfileSyncService, db_session: AsyncMock
    ) -> None:
        message = await service.handle_event(make_event("session.created"))

        assert message == "Webhook processed successfully"
        db_session.execute.assert_not_called()
        db_session.add.assert_not_called()
