"""add_shotstack_jobs_table

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("last_activity", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("session_id"),
    )
    op.create_index(
        op.f("ix_users_session_id"), "users", ["session_id"], unique=True
    )

    op.create_table(
        "sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("secret_hash", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("scopes", sa.JSON(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.session_id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"], unique=False)

    # Render jobs accepted by the Shotstack API
    op.create_table(
        "shotstack_jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("shotstack_job_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        # Request details
        sa.Column("input_video_urls", sa.JSON(), nullable=False),
        sa.Column("output_format", sa.String(), nullable=False),
        sa.Column("output_resolution", sa.String(), nullable=False),
        # Result
        sa.Column("video_url", sa.String(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        # Timestamps
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shotstack_job_id"),
    )
    op.create_index(
        "ix_shotstack_jobs_user_id", "shotstack_jobs", ["user_id"], unique=False
    )
    op.create_index(
        "ix_shotstack_jobs_status", "shotstack_jobs", ["status"], unique=False
    )
    op.create_index(
        "ix_shotstack_jobs_created_at", "shotstack_jobs", ["created_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_shotstack_jobs_created_at", table_name="shotstack_jobs")
    op.drop_index("ix_shotstack_jobs_status", table_name="shotstack_jobs")
    op.drop_index("ix_shotstack_jobs_user_id", table_name="shotstack_jobs")
    op.drop_table("shotstack_jobs")

    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_table("sessions")

    op.drop_index(op.f("ix_users_session_id"), table_name="users")
    op.drop_table("users")
