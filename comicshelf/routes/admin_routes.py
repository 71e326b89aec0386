import hmac
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf import catalog, config
from comicshelf.asset_cleanup import AssetCleanup, chapter_folder_path, comic_asset_paths
from comicshelf.cache import QueryCache
from comicshelf.database import get_async_session
from comicshelf.deps.admin import forwarded_token, require_admin
from comicshelf.deps.services import get_asset_cleanup, get_query_cache
from comicshelf.limiter import limiter
from comicshelf.schemas.comic_schemas import (
    ChapterCreate,
    ChapterUpdate,
    ComicCreate,
    ComicUpdate,
)
from comicshelf.schemas.user_schemas import AdminLogin
from comicshelf.utils.token_utils import create_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login")
@limiter.limit(config.AUTH_RATE_LIMIT)
async def admin_login(request: Request, credentials: AdminLogin):
    username_ok = hmac.compare_digest(credentials.username.encode(), config.ADMIN_USERNAME.encode())
    password_ok = hmac.compare_digest(credentials.password.encode(), config.ADMIN_PASSWORD.encode())
    if not (username_ok and password_ok):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {
        "success": True,
        "message": "Login successful",
        "token": create_admin_token(config.ADMIN_USERNAME),
    }


# ---------- comics ----------

@router.post("/comics", status_code=status.HTTP_201_CREATED)
async def create_comic(
    payload: ComicCreate,
    _admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    try:
        comic = await catalog.create_comic(db, payload.model_dump())
    except catalog.SlugConflict as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    cache.invalidate()
    logger.info("Created comic %s (id=%s)", comic.slug, comic.id)
    return catalog.comic_to_dict(comic)


@router.put("/comics/{comic_id}")
async def update_comic(
    comic_id: int,
    payload: ComicUpdate,
    _admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    comic = await catalog.get_comic(db, comic_id)
    if not comic:
        raise HTTPException(status_code=404, detail="Comic not found")

    try:
        comic = await catalog.update_comic(db, comic, payload.model_dump(exclude_unset=True))
    except catalog.SlugConflict as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    cache.invalidate()
    return catalog.comic_to_dict(comic)


@router.delete("/comics/{comic_id}")
async def delete_comic(
    comic_id: int,
    background_tasks: BackgroundTasks,
    _admin: dict = Depends(require_admin),
    token: Optional[str] = Depends(forwarded_token),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
    cleanup: AssetCleanup = Depends(get_asset_cleanup),
):
    comic = await catalog.get_comic(db, comic_id)
    if not comic:
        raise HTTPException(status_code=404, detail="Comic not found")

    chapters = await catalog.chapters_for_comic(db, comic_id)
    paths = comic_asset_paths(comic, chapters)

    await catalog.delete_comic(db, comic)
    cache.invalidate()

    # runs after the response; failures are only logged
    background_tasks.add_task(cleanup.delete_paths, paths, token)
    logger.info("Deleted comic id=%s with %d chapters", comic_id, len(chapters))
    return {"success": True}


# ---------- chapters ----------

@router.post("/chapters", status_code=status.HTTP_201_CREATED)
async def create_chapter(
    payload: ChapterCreate,
    _admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    try:
        chapter = await catalog.create_chapter(db, payload.model_dump())
    except LookupError:
        raise HTTPException(status_code=404, detail="Comic not found")

    cache.invalidate()
    return catalog.chapter_to_dict(chapter)


@router.put("/chapters/{chapter_id}")
async def update_chapter(
    chapter_id: int,
    payload: ChapterUpdate,
    _admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    chapter = await catalog.get_chapter(db, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")

    chapter = await catalog.update_chapter(db, chapter, payload.model_dump(exclude_unset=True))

    cache.invalidate()
    return catalog.chapter_to_dict(chapter)


@router.delete("/chapters/{chapter_id}")
async def delete_chapter(
    chapter_id: int,
    background_tasks: BackgroundTasks,
    _admin: dict = Depends(require_admin),
    token: Optional[str] = Depends(forwarded_token),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
    cleanup: AssetCleanup = Depends(get_asset_cleanup),
):
    chapter = await catalog.get_chapter(db, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")

    comic = await catalog.get_comic(db, chapter.comic_id)
    paths = [chapter_folder_path(comic.slug, chapter.chapter_number)] if comic else []

    await catalog.delete_chapter(db, chapter)
    cache.invalidate()

    background_tasks.add_task(cleanup.delete_paths, paths, token)
    return {"success": True}
