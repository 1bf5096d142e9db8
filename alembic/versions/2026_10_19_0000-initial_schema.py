"""initial schema

Revision ID: 2026_10_19_0000
Revises:
Create Date: 2026-10-19 08:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_19_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create profiles and generations tables."""

    # ========================================================================
    # Create profiles table
    # ========================================================================
    op.create_table(
        'profiles',
        sa.Column('clerk_id', sa.String(255), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(255), nullable=True),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.CheckConstraint('credits >= 0', name='ck_profiles_credits_non_negative'),
    )

    op.create_index('idx_profiles_created_at', 'profiles', ['created_at'])
    op.create_index('idx_profiles_email', 'profiles', ['email'])

    # ========================================================================
    # Create generations table
    # ========================================================================
    op.create_table(
        'generations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('job_id_external', sa.String(255), nullable=True),
        sa.Column('result_url', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name='ck_generations_status',
        ),
        sa.CheckConstraint(
            "type IN ('text_to_prompt', 'image', 'video', 'free_image')",
            name='ck_generations_type',
        ),
    )

    op.create_index('idx_generations_user_created', 'generations', ['user_id', 'created_at'])
    op.create_index(
        'idx_generations_job_id_external',
        'generations',
        ['job_id_external'],
        postgresql_where=sa.text('job_id_external IS NOT NULL'),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('idx_generations_job_id_external', table_name='generations')
    op.drop_index('idx_generations_user_created', table_name='generations')
    op.drop_table('generations')

    op.drop_index('idx_profiles_email', table_name='profiles')
    op.drop_index('idx_profiles_created_at', table_name='profiles')
    op.drop_table('profiles')
