import secrets
import hashlib
import logging
from uuid import UUID, uuid4
from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session as DBSession

from database.models import Session, User


logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 60 * 60 * 24 * 7  # 7 days


def _utcnow() -> datetime:
    # Stored as naive UTC so comparisons behave the same on Postgres and SQLite
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_session_secret() -> str:
    return secrets.token_urlsafe(32)


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def create_session(
    db: DBSession,
    user_id: UUID | None = None,
    scopes: list[str] | None = None,
    ttl_seconds: int = SESSION_TTL_SECONDS,
) -> tuple[UUID, str, datetime, UUID]:
    """Create a session and return (session_id, secret, expires_at, user_id).

    The client token is ``f"{session_id}.{secret}"``; only the secret's hash
    is stored.
    """
    now = _utcnow()

    if user_id is None:
        user = User(
            session_id=uuid4(),
            last_activity=now,
            created_at=now,
        )
        db.add(user)
        db.flush()
        user_id = user.session_id

    session_id = uuid4()
    session_secret = generate_session_secret()
    expires_at = now + timedelta(seconds=ttl_seconds)

    session = Session(
        id=session_id,
        secret_hash=hash_secret(session_secret),
        user_id=user_id,
        scopes=scopes or [],
        expires_at=expires_at,
    )
    db.add(session)
    db.commit()

    return session_id, session_secret, expires_at, user_id


def validate_session(session_id: UUID, secret: str, db: DBSession) -> dict | None:
    session = db.query(Session).filter(
        Session.id == session_id,
        Session.expires_at > _utcnow(),
    ).first()

    if not session:
        return None

    if not secrets.compare_digest(session.secret_hash, hash_secret(secret)):
        logger.warning(f"Session secret mismatch for {session_id}")
        return None

    return {
        "user_id": str(session.user_id) if session.user_id else None,
        "scopes": session.scopes or [],
    }


def invalidate_session(session_id: UUID, db: DBSession) -> None:
    db.query(Session).filter(Session.id == session_id).delete()
    db.commit()
