"""
Tests for the credit ledger.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.exceptions import (
    CreditDeductionError,
    DatabaseError,
    InsufficientCreditsError,
    ProfileNotFoundError,
)
from app.services.credits import CreditLedger

Factory = Callable[..., MagicMock]


@pytest.fixture
def ledger(db_session: AsyncMock) -> CreditLedger:
    return CreditLedger(db_session)


class TestGetBalance:
    """Tests for balance lookups."""

    @pytest.mark.asyncio
    async def test_returns_stored_credits(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """Balance comes from the profile row."""
        db_session.execute.return_value = result_factory(profile_factory(credits=7))

        assert await ledger.get_balance("user_123") == 7

    @pytest.mark.asyncio
    async def test_missing_profile_reads_as_zero(self, ledger: CreditLedger) -> None:
        """No profile yet means no credits, not an error."""
        assert await ledger.get_balance("user_unknown") == 0


class TestEnsureProfile:
    """Tests for profile creation on first use."""

    @pytest.mark.asyncio
    async def test_existing_profile_returned_unchanged(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """An existing profile is not recreated."""
        db_session.execute.return_value = result_factory(profile_factory(credits=3))

        profile = await ledger.ensure_profile("user_123", "user@example.com")

        assert profile.credits == 3
        db_session.add.assert_not_called()
        db_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_profile_with_starting_grant(
        self, ledger: CreditLedger, db_session: AsyncMock
    ) -> None:
        """A new profile starts with the configured credits."""
        profile = await ledger.ensure_profile("user_new", "new@example.com")

        added = db_session.add.call_args[0][0]
        assert added.clerk_id == "user_new"
        assert added.email == "new@example.com"
        assert added.credits == 10
        assert profile.credits == 10
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_creation_rereads_profile(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """A unique-key race resolves to the row the other request wrote."""
        db_session.execute.side_effect = [
            result_factory(None),
            result_factory(profile_factory(user_id="user_race", credits=10)),
        ]
        db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))

        profile = await ledger.ensure_profile("user_race")

        assert profile.user_id == "user_race"
        db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_race_without_row_raises_database_error(
        self, ledger: CreditLedger, db_session: AsyncMock
    ) -> None:
        """An integrity failure with nothing to re-read is a database error."""
        db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("boom"))

        with pytest.raises(DatabaseError):
            await ledger.ensure_profile("user_ghost")


class TestRequireCredit:
    """Tests for the pre-dispatch balance check."""

    def test_positive_balance_passes(self, ledger: CreditLedger, profile_factory: Factory) -> None:
        profile = CreditLedger._profile_to_domain(profile_factory(credits=1))

        ledger.require_credit(profile)

    def test_zero_balance_rejected(self, ledger: CreditLedger, profile_factory: Factory) -> None:
        """Zero credits can never start a generation."""
        profile = CreditLedger._profile_to_domain(profile_factory(credits=0))

        with pytest.raises(InsufficientCreditsError) as exc_info:
            ledger.require_credit(profile)

        assert exc_info.value.balance == 0
        assert exc_info.value.required == 1

    def test_balance_below_amount_rejected(
        self, ledger: CreditLedger, profile_factory: Factory
    ) -> None:
        profile = CreditLedger._profile_to_domain(profile_factory(credits=2))

        with pytest.raises(InsufficientCreditsError):
            ledger.require_credit(profile, amount=3)


class TestDeduct:
    """Tests for the conditional decrement."""

    @pytest.mark.asyncio
    async def test_deducts_one_credit(
        self, ledger: CreditLedger, db_session: AsyncMock, result_factory: Factory
    ) -> None:
        """Successful deduction reports before and after balances."""
        db_session.execute.return_value = result_factory(4)

        result = await ledger.deduct("user_123")

        assert result.credits_before == 5
        assert result.credits_after == 4
        db_session.commit.assert_awaited_once()
        db_session.rollback.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_is_conditional_on_balance(
        self, ledger: CreditLedger, db_session: AsyncMock, result_factory: Factory
    ) -> None:
        """The UPDATE only matches rows that can afford the deduction."""
        db_session.execute.return_value = result_factory(0)

        await ledger.deduct("user_123")

        stmt = db_session.execute.call_args[0][0]
        where = str(stmt.whereclause)
        assert "profiles.clerk_id" in where
        assert "profiles.credits >=" in where
        assert "RETURNING" in str(stmt)

    @pytest.mark.asyncio
    async def test_no_matching_row_is_insufficient_credits(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """A balance that ran out between check and deduction is rejected."""
        db_session.execute.side_effect = [
            result_factory(None),
            result_factory(profile_factory(credits=0)),
        ]

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await ledger.deduct("user_123")

        assert exc_info.value.balance == 0
        db_session.rollback.assert_awaited_once()
        db_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_database_failure_is_deduction_error(
        self, ledger: CreditLedger, db_session: AsyncMock
    ) -> None:
        """Driver errors surface as CreditDeductionError."""
        db_session.execute.side_effect = OperationalError("UPDATE", {}, Exception("conn reset"))

        with pytest.raises(CreditDeductionError):
            await ledger.deduct("user_123")

        db_session.rollback.assert_awaited_once()


class TestSetBalance:
    """Tests for admin balance overrides."""

    @pytest.mark.asyncio
    async def test_sets_absolute_balance(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """The stored balance is replaced, not incremented."""
        profile = profile_factory(credits=3)
        db_session.execute.return_value = result_factory(profile)

        result = await ledger.set_balance("user_123", 50)

        assert profile.credits == 50
        assert result.credits == 50
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_zero_is_allowed(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        db_session.execute.return_value = result_factory(profile_factory(credits=3))

        result = await ledger.set_balance("user_123", 0)

        assert result.credits == 0

    @pytest.mark.asyncio
    async def test_negative_rejected(self, ledger: CreditLedger, db_session: AsyncMock) -> None:
        with pytest.raises(ValueError):
            await ledger.set_balance("user_123", -1)

        db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_profile_raises(self, ledger: CreditLedger) -> None:
        with pytest.raises(ProfileNotFoundError):
            await ledger.set_balance("user_unknown", 5)

    @pytest.mark.asyncio
    async def test_commit_failure_raises_database_error(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        """A failed write rolls back and surfaces as DatabaseError."""
        db_session.execute.return_value = result_factory(profile_factory(credits=3))
        db_session.commit.side_effect = OperationalError("UPDATE", {}, Exception("conn reset"))

        with pytest.raises(DatabaseError) as exc_info:
            await ledger.set_balance("user_123", 9)

        assert exc_info.value.message.startswith("Failed to update credits")
        db_session.rollback.assert_awaited_once()


class TestListProfiles:
    """Tests for the admin listing."""

    @pytest.mark.asyncio
    async def test_lists_all_profiles(
        self,
        ledger: CreditLedger,
        db_session: AsyncMock,
        result_factory: Factory,
        profile_factory: Factory,
    ) -> None:
        db_session.execute.return_value = result_factory(
            scalars=[
                profile_factory(user_id="user_b", credits=1),
                profile_factory(user_id="user_a", credits=2),
            ]
        )

        profiles = await ledger.list_profiles()

        assert [p.user_id for p in profiles] == ["user_b", "user_a"]
