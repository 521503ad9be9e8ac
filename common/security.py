"""
Storefront - Security Utilities
================================
JWT encode/decode for the bearer token / auth_token cookie.

Token issuance belongs to the identity provider; create_token exists for
local tooling and tests.
"""

import logging
from datetime import timedelta
from typing import Optional

from jose import jwt, JWTError

from config.settings import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from common.helpers import now_utc

logger = logging.getLogger("storefront.security")


def create_token(data: dict) -> str:
    """Create a signed JWT with the standard expiry."""
    to_encode = data.copy()
    to_encode["exp"] = now_utc() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None
