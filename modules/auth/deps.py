"""
Auth Module - Dependencies
===========================
FastAPI dependencies that turn the bearer token (or auth_token cookie) into
a Principal. These are injected into route handlers via Depends().
"""

from typing import Optional

from fastapi import Request, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import AuthenticationError
from common.helpers import safe_int
from common.security import decode_token
from modules.auth.policy import Principal, ensure_admin
from modules.user.models import User, UserRole


def _read_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return request.cookies.get("auth_token")


def get_current_principal(request: Request, db: Session = Depends(get_db)) -> Optional[Principal]:
    """
    Identify the current user from the request token.
    Returns Principal or None.
    """
    token = _read_token(request)
    if not token:
        return None

    payload = decode_token(token)
    if not payload:
        return None

    user_id = safe_int(payload.get("sub"))
    if user_id is None:
        return None

    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
    if not user:
        return None
    role = user.role.value if isinstance(user.role, UserRole) else user.role
    return Principal(id=user.id, role=role)


def require_login(principal=Depends(get_current_principal)) -> Principal:
    """Require any authenticated active user. Raises 401 if not logged in."""
    if not principal:
        raise AuthenticationError()
    return principal


def require_admin(principal=Depends(require_login)) -> Principal:
    """Only allow admin users. Raises 403 otherwise."""
    ensure_admin(principal)
    return principal
