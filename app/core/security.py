"""Access token helpers"""
from datetime import timedelta
from typing import Optional, Dict, Any, Union
import uuid

from jose import jwt, JWTError

from app.config import settings
from app.utils.time_utils import utc_now


def create_access_token(
    user_id: Union[str, uuid.UUID],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed bearer token for a user

    Args:
        user_id: Subject of the token
        expires_delta: Lifetime (defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        Encoded JWT
    """
    expire = utc_now() + (expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access"
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a bearer token; None if invalid or expired"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != "access" or not payload.get("sub"):
        return None

    return payload
