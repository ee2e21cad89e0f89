# portal/auth.py
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from .settings import settings


pwd = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(p: str) -> str:
    return pwd.hash(p)


def verify_password(p: str, h: str) -> bool:
    try:
        return pwd.verify(p, h)
    except ValueError:
        # malformed or unknown hash
        return False


def create_token(user_id: int, user_type: str, expires_at: datetime) -> str:
    """
    Signed session token. `expires_at` is naive UTC, matching the sessions table.
    The jti keeps two logins in the same second from minting the same token.
    """
    exp = expires_at.replace(tzinfo=timezone.utc)
    payload = {"sub": str(user_id), "type": user_type, "exp": exp, "jti": uuid4().hex}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except JWTError:
        return None
    if not data.get("sub") or data.get("type") not in {"client", "admin"}:
        return None
    return data


def new_reset_token() -> str:
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256((token or "").encode("utf-8")).hexdigest()
