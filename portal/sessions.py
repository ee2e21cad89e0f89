# portal/sessions.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Cookie, Depends, Request, Response
from sqlalchemy.orm import Session

from .auth import create_token, decode_token
from .db import get_db
from .errors import NotAuthenticated
from .models import Admin, Client, UserSession
from .settings import settings

log = logging.getLogger(__name__)

CLIENT_COOKIE = "session_token"
ADMIN_COOKIE = "admin_session_token"

_COOKIE_BY_TYPE = {"client": CLIENT_COOKIE, "admin": ADMIN_COOKIE}


def session_lifetime(user_type: str) -> timedelta:
    if user_type == "admin":
        return timedelta(hours=settings.admin_session_hours)
    return timedelta(days=settings.client_session_days)


def create_session(db: Session, user_id: int, user_type: str, request: Optional[Request] = None) -> UserSession:
    purge_expired_sessions(db)
    expires_at = datetime.utcnow() + session_lifetime(user_type)
    ip = ua = None
    if request is not None:
        ip = (
            request.headers.get("x-forwarded-for")
            or request.headers.get("x-real-ip")
            or (request.client.host if request.client else None)
        )
        ua = request.headers.get("user-agent")

    s = UserSession(
        user_id=user_id,
        user_type=user_type,
        token=create_token(user_id, user_type, expires_at),
        expires_at=expires_at,
        ip_address=ip,
        user_agent=(ua or "")[:500] or None,
    )
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


def find_session(db: Session, token: Optional[str], user_type: str) -> Optional[UserSession]:
    """
    Resolve a cookie token to its session row.
    Expired rows are deleted here; nothing else sweeps them between logins.
    """
    if not token:
        return None

    s = db.query(UserSession).filter(UserSession.token == token).first()
    if not s:
        return None

    if s.expires_at <= datetime.utcnow():
        db.delete(s)
        db.commit()
        return None

    if s.user_type != user_type:
        return None

    claims = decode_token(token)
    if not claims or claims.get("type") != user_type or claims.get("sub") != str(s.user_id):
        return None

    return s


def delete_session(db: Session, token: Optional[str]) -> bool:
    if not token:
        return False
    n = db.query(UserSession).filter(UserSession.token == token).delete(synchronize_session=False)
    db.commit()
    return n > 0


def purge_expired_sessions(db: Session) -> int:
    n = (
        db.query(UserSession)
        .filter(UserSession.expires_at < datetime.utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    if n:
        log.info("purged %d expired sessions", n)
    return n


def set_session_cookie(response: Response, s: UserSession) -> None:
    response.set_cookie(
        key=_COOKIE_BY_TYPE[s.user_type],
        value=s.token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=int(session_lifetime(s.user_type).total_seconds()),
        path="/",
    )


def clear_session_cookie(response: Response, user_type: str) -> None:
    response.delete_cookie(
        key=_COOKIE_BY_TYPE[user_type],
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


# -------------------
# Principal dependencies
# -------------------
def require_client(
    db: Session = Depends(get_db),
    session_token: Optional[str] = Cookie(default=None, alias=CLIENT_COOKIE),
) -> Client:
    s = find_session(db, session_token, "client")
    if not s:
        raise NotAuthenticated("Authentication required")

    client = db.get(Client, s.user_id)
    if not client:
        raise NotAuthenticated("User not found")
    return client


def require_admin(
    db: Session = Depends(get_db),
    admin_session_token: Optional[str] = Cookie(default=None, alias=ADMIN_COOKIE),
) -> Admin:
    s = find_session(db, admin_session_token, "admin")
    if not s:
        raise NotAuthenticated("Admin authentication required")

    admin = db.get(Admin, s.user_id)
    if not admin:
        raise NotAuthenticated("User not found")
    return admin
