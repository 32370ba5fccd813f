from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from teamchat.core.config import settings


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a signed bearer token whose subject is the user id."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    # Raises jose.JWTError (ExpiredSignatureError included) on any failure
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
