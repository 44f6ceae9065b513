from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.base import get_db
from dependencies.auth import Principal, get_principal
from models.render_models import SessionCreateResponse
from operators.auth_operator import create_session, invalidate_session


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/session", response_model=SessionCreateResponse)
async def session_create(db: Session = Depends(get_db)):
    """Issue a session token for a new user; send it as ``Authorization: Bearer``."""
    session_id, session_secret, expires_at, user_id = create_session(db, scopes=["render"])
    return SessionCreateResponse(
        session_id=str(session_id),
        user_id=str(user_id),
        expires_at=expires_at,
        session_token=f"{session_id}.{session_secret}",
    )


@router.delete("/session")
async def session_delete(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    if principal.session_id:
        invalidate_session(principal.session_id, db)
    return {"ok": True}
