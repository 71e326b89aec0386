from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf import catalog, config
from comicshelf.database import get_async_session
from comicshelf.models.user_model import User

ADMIN_ROLE = "admin"

# auto_error=False so a missing token is our own 401 message
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)
admin_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/admin/login", auto_error=False)


def _expiry(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def create_user_token(user: User) -> str:
    to_encode = {
        "id": user.id,  # what get_current_user expects
        "email": user.email,
        "exp": _expiry(config.USER_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.ALGORITHM)


def create_admin_token(username: str) -> str:
    to_encode = {
        "username": username,
        "role": ADMIN_ROLE,
        "exp": _expiry(config.ADMIN_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(to_encode, config.ADMIN_JWT_SECRET, algorithm=config.ALGORITHM)


def decode_admin_token(token: Optional[str]) -> dict:
    """
    Admin tokens are signed with their own secret, so a user token fails
    here with 401. A correctly signed token without the admin role is 403.
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied. No token provided.")
    try:
        payload = jwt.decode(token, config.ADMIN_JWT_SECRET, algorithms=[config.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return payload


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied. No token provided.")

    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("id")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await catalog.get_user(session, int(user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user  # SQLAlchemy user model
