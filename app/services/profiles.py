"""
Profile Sync - Mirrors identity-provider user lifecycle into profiles.
"""

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import settings
from app.db.models import Profile, utc_now
from app.exceptions import DatabaseError
from app.models.domain import WebhookEvent, WebhookUserData
from app.observability.metrics import metrics

logger = get_logger(__name__)


class ProfileSyncService:
    """Applies verified identity webhook events to the profiles table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def handle_event(self, event: WebhookEvent) -> str:
        """
        Apply one event and return an acknowledgement message.

        Unknown event types are acknowledged without changes.

        Raises:
            DatabaseError: The profile write failed
        """
        if event.event_type == "user.created":
            await self._create_profile(event.data)
            return "User profile created successfully"
        if event.event_type == "user.updated":
            await self._update_profile(event.data)
            return "User profile updated successfully"
        if event.event_type == "user.deleted":
            await self._delete_profile(event.data.user_id)
            return "User profile deleted successfully"

        logger.info("webhook_event_ignored", event_type=event.event_type)
        return "Webhook processed successfully"

    async def _create_profile(self, data: WebhookUserData) -> None:
        profile = Profile(
            clerk_id=data.user_id,
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            credits=settings.starting_credits,
        )
        self.session.add(profile)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError:
            # Already created on first use; refresh contact details only
            await self.session.rollback()
            logger.info("profile_already_exists", user_id=data.user_id)
            await self._update_profile(data)
            return
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("profile_create_failed", user_id=data.user_id, error=str(e))
            raise DatabaseError(f"Error creating user profile: {e}") from e

        metrics.profiles_created_total.labels(source="webhook").inc()
        logger.info("profile_created", user_id=data.user_id, source="webhook")

    async def _update_profile(self, data: WebhookUserData) -> None:
        try:
            result = await self.session.execute(
                select(Profile).where(Profile.clerk_id == data.user_id)
            )
            profile = result.scalar_one_or_none()
            if profile is None:
                logger.warning("profile_update_missing", user_id=data.user_id)
                return

            profile.email = data.email
            profile.first_name = data.first_name
            profile.last_name = data.last_name
            profile.updated_at = utc_now()
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("profile_update_failed", user_id=data.user_id, error=str(e))
            raise DatabaseError(f"Error updating user profile: {e}") from e

        logger.info("profile_updated", user_id=data.user_id)

    async def _delete_profile(self, user_id: str) -> None:
        try:
            await self.session.execute(delete(Profile).where(Profile.clerk_id == user_id))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("profile_delete_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Error deleting user profile: {e}") from e

        logger.info("profile_deleted", user_id=user_id)
