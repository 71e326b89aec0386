import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from passlib.hash import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf import catalog, config
from comicshelf.database import get_async_session
from comicshelf.limiter import limiter
from comicshelf.models.user_model import User
from comicshelf.schemas.user_schemas import UserCreate, UserLogin, UserOut
from comicshelf.utils.token_utils import create_user_token, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(config.AUTH_RATE_LIMIT)
async def register(request: Request, user: UserCreate, db: AsyncSession = Depends(get_async_session)):
    email_norm = str(user.email).strip().lower()

    if await catalog.get_user_by_email(db, email_norm):
        raise HTTPException(status_code=400, detail="Email already registered")
    if await catalog.get_user_by_username(db, user.username):
        raise HTTPException(status_code=400, detail="Username already taken")

    try:
        new_user = await catalog.create_user(
            db,
            username=user.username,
            email=email_norm,
            password_hash=bcrypt.hash(user.password),
        )
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Email or username already registered")

    logger.info("Registered user %s (id=%s)", new_user.username, new_user.id)
    return {
        "success": True,
        "user": {"id": new_user.id, "username": new_user.username, "email": new_user.email},
        "token": create_user_token(new_user),
    }


@router.post("/login")
@limiter.limit(config.AUTH_RATE_LIMIT)
async def login(request: Request, user: UserLogin, db: AsyncSession = Depends(get_async_session)):
    if not user.email.strip() or not user.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    db_user = await catalog.get_user_by_email(db, user.email)
    if not db_user or not db_user.password_hash or not bcrypt.verify(user.password, db_user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "success": True,
        "user": {
            "id": db_user.id,
            "username": db_user.username,
            "email": db_user.email,
            "avatar_url": db_user.avatar_url,
        },
        "token": create_user_token(db_user),
    }


@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
