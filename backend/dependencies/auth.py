import os
import secrets
from dataclasses import dataclass, field
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from database.base import get_db
from operators.auth_operator import validate_session


DEV_USER_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass
class Principal:
    """The user a render request acts for; render jobs are owned by ``user_id``."""

    user_id: UUID | None
    session_id: UUID | None = None
    scopes: list[str] = field(default_factory=list)


def parse_session_token(token: str) -> tuple[UUID, str] | None:
    """Split a ``<session uuid>.<secret>`` token."""
    session_part, sep, secret = token.partition(".")
    if not sep or not secret:
        return None
    try:
        return UUID(session_part), secret
    except ValueError:
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def principal_from_token(token: str, db: Session) -> Principal:
    dev_token = os.getenv("DEV_API_TOKEN")
    if dev_token and secrets.compare_digest(token, dev_token):
        return Principal(user_id=DEV_USER_ID, scopes=["dev"])

    parsed = parse_session_token(token)
    if not parsed:
        raise _unauthorized("Invalid token")

    session_id, secret = parsed
    session_data = validate_session(session_id, secret, db)
    if not session_data:
        raise _unauthorized("Session expired or invalid")

    return Principal(
        user_id=UUID(session_data["user_id"]) if session_data["user_id"] else None,
        session_id=session_id,
        scopes=session_data["scopes"],
    )


def get_principal(
    authorization: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Principal:
    """Resolve the caller from ``Authorization: Bearer`` or ``X-Session-Token``."""
    token = _bearer(authorization) or (x_session_token or "").strip()
    if not token:
        raise _unauthorized("Not authenticated")
    return principal_from_token(token, db)
