"""
Password hashing and access tokens.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from family_taxi.core.config import settings
from family_taxi.core.exceptions import NotAuthenticatedError

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False

def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """Issue a signed token identifying ``user_id``."""
    minutes = expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> int:
    """Return the user id carried by ``token``."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticatedError("Session expired")
    except jwt.InvalidTokenError:
        raise NotAuthenticatedError("Invalid session token")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise NotAuthenticatedError("Invalid session token")
    return int(subject)
