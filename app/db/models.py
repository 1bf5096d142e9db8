"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Profile(Base):
    """
    ORM model for profiles table.

    One row per identity-provider user, holding the credit balance.
    """

    __tablename__ = "profiles"

    # Primary Key - identity provider user ID
    clerk_id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Contact information
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Balance
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
        Index("idx_profiles_created_at", "created_at"),
        Index("idx_profiles_email", "email"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Profile(clerk_id={self.clerk_id}, credits={self.credits})>"


class Generation(Base):
    """
    ORM model for generations table.

    One row per generation job, tracked from creation to a terminal status.
    """

    __tablename__ = "generations"

    # Primary Key - generated locally
    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    # Owner - references profiles.clerk_id (no FK: profiles can be deleted by webhook)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Request
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    job_id_external: Mapped[str | None] = mapped_column(String(255), nullable=True)
    result_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_generations_status",
        ),
        CheckConstraint(
            "type IN ('text_to_prompt', 'image', 'video', 'free_image')",
            name="ck_generations_type",
        ),
        Index("idx_generations_user_created", "user_id", "created_at"),
        Index(
            "idx_generations_job_id_external",
            "job_id_external",
            postgresql_where=(job_id_external.isnot(None)),
        ),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Generation(id={self.id}, user_id={self.user_id}, "
            f"type={self.type}, status={self.status})>"
        )
