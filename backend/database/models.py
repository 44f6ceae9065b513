from uuid import uuid4
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
)
from sqlalchemy.sql import func
from database.base import Base


class Session(Base):
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    secret_hash = Column(String(64), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.session_id"), nullable=True)
    scopes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_sessions_expires_at", expires_at),)


class User(Base):
    __tablename__ = "users"

    session_id = Column(
        Uuid, unique=True, index=True, nullable=False, primary_key=True, default=uuid4
    )
    last_activity = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<User session_id={self.session_id} last_activity={self.last_activity} created_at={self.created_at}>"


# =============================================================================
# RENDER JOB MODELS
# =============================================================================


class RenderJob(Base):
    """
    Render job tracking.

    One row per job accepted by the Shotstack render API. Rows are created
    as "submitted" and afterwards only advanced by status snapshots from
    polling or the webhook; they are never deleted here.
    """

    __tablename__ = "shotstack_jobs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, nullable=True)
    shotstack_job_id = Column(String, unique=True, nullable=False)  # Render API job id

    status = Column(
        String, nullable=False, default="submitted"
    )  # submitted, queued, fetching, rendering, done, failed

    # Request details
    input_video_urls = Column(JSON, nullable=False, default=list)
    output_format = Column(String, nullable=False, default="mp4")
    output_resolution = Column(String, nullable=False, default="full-hd")

    # Result
    video_url = Column(String, nullable=True)  # Only when done
    error_message = Column(String, nullable=True)  # Only when failed

    # Timestamps
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # projectName, editType, estimatedDuration, templateOptions, ...
    job_metadata = Column("metadata", JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_shotstack_jobs_user_id", user_id),
        Index("ix_shotstack_jobs_status", status),
        Index("ix_shotstack_jobs_created_at", created_at),
    )

    def __repr__(self):
        return (
            f"<RenderJob id={self.id} "
            f"shotstack_job_id={self.shotstack_job_id} "
            f"status={self.status}>"
        )
