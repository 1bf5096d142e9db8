"""
Credit Ledger - Per-user integer credit balances.

NO DICTIONARIES - All operations use strongly typed domain models.
"""

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.config import settings
from app.db.models import Profile, utc_now
from app.exceptions import (
    CreditDeductionError,
    DatabaseError,
    InsufficientCreditsError,
    ProfileNotFoundError,
)
from app.models.domain import DeductionResult, ProfileData
from app.observability.metrics import metrics

logger = get_logger(__name__)


class CreditLedger:
    """
    Credit balance operations.

    Deduction is a single conditional UPDATE, so concurrent deductions can
    never drive a balance below zero.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger with database session."""
        self.session = session

    async def get_balance(self, user_id: str) -> int:
        """Stored balance, or 0 when the user has no profile yet."""
        profile = await self._find_profile(user_id)
        return profile.credits if profile is not None else 0

    async def ensure_profile(self, user_id: str, email: str | None = None) -> ProfileData:
        """
        Get existing profile or create one with the starting grant.

        A concurrent insert for the same user resolves by re-reading.
        """
        profile = await self._find_profile(user_id)
        if profile is not None:
            return self._profile_to_domain(profile)

        new_profile = Profile(
            clerk_id=user_id,
            email=email,
            credits=settings.starting_credits,
        )
        self.session.add(new_profile)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            # Race condition - profile created by another request
            logger.warning("profile_creation_race", user_id=user_id, error=str(e))
            await self.session.rollback()
            profile = await self._find_profile(user_id)
            if profile is None:
                raise DatabaseError(f"Profile creation failed: {e}") from e
            return self._profile_to_domain(profile)

        metrics.profiles_created_total.labels(source="first_use").inc()
        logger.info("profile_created", user_id=user_id, credits=settings.starting_credits)
        return self._profile_to_domain(new_profile)

    def require_credit(self, profile: ProfileData, amount: int | None = None) -> None:
        """
        Check a profile can pay for a generation.

        Raises:
            InsufficientCreditsError: Balance is zero or below the amount
        """
        required = amount or settings.credits_per_generation
        if profile.credits <= 0 or profile.credits < required:
            raise InsufficientCreditsError(profile.credits, required)

    async def deduct(self, user_id: str, amount: int | None = None) -> DeductionResult:
        """
        Atomically deduct credits.

        Raises:
            InsufficientCreditsError: No row had enough credits
            CreditDeductionError: The update could not be written
        """
        required = amount or settings.credits_per_generation

        try:
            result = await self.session.execute(
                update(Profile)
                .where(Profile.clerk_id == user_id, Profile.credits >= required)
                .values(credits=Profile.credits - required, updated_at=utc_now())
                .returning(Profile.credits)
            )
            credits_after = result.scalar_one_or_none()

            if credits_after is None:
                await self.session.rollback()
                balance = await self.get_balance(user_id)
                raise InsufficientCreditsError(balance, required)

            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("credit_deduction_failed", user_id=user_id, error=str(e))
            raise CreditDeductionError(str(e)) from e

        return DeductionResult(
            credits_before=credits_after + required,
            credits_after=credits_after,
        )

    async def set_balance(self, user_id: str, credits: int) -> ProfileData:
        """
        Set an absolute balance (admin).

        Raises:
            ValueError: Negative balance
            ProfileNotFoundError: Profile doesn't exist
            DatabaseError: The new balance could not be written
        """
        if credits < 0:
            raise ValueError(f"Credits cannot be negative: {credits}")

        profile = await self._find_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(user_id)

        previous = profile.credits
        profile.credits = credits
        profile.updated_at = utc_now()
        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("credits_set_failed", user_id=user_id, error=str(e))
            raise DatabaseError(f"Failed to update credits: {e}") from e

        logger.info(
            "credits_set",
            user_id=user_id,
            credits_before=previous,
            credits_after=credits,
        )
        return self._profile_to_domain(profile)

    async def list_profiles(self) -> list[ProfileData]:
        """All profiles, newest first."""
        result = await self.session.execute(
            select(Profile).order_by(Profile.created_at.desc())
        )
        return [self._profile_to_domain(profile) for profile in result.scalars().all()]

    async def _find_profile(self, user_id: str) -> Profile | None:
        """Find profile by user ID."""
        stmt = select(Profile).where(Profile.clerk_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def _profile_to_domain(profile: Profile) -> ProfileData:
        """Convert ORM model to domain model."""
        return ProfileData(
            user_id=profile.clerk_id,
            email=profile.email,
            credits=profile.credits,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )
