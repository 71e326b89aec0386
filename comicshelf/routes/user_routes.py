from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf import catalog
from comicshelf.database import get_async_session
from comicshelf.models.user_model import User
from comicshelf.schemas.user_schemas import HistoryAdd, SyncRequest
from comicshelf.utils.pagination import Page, paging, parse_limit
from comicshelf.utils.token_utils import get_current_user

router = APIRouter(prefix="/api/user", tags=["user"])


async def _require_comic(db: AsyncSession, comic_id: int) -> None:
    if not await catalog.comic_exists(db, comic_id):
        raise HTTPException(status_code=404, detail="Comic not found")


# ---------- history ----------

@router.get("/history")
async def get_history(
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    return await catalog.user_history(db, current_user.id, parse_limit(limit, 50))


@router.post("/history")
async def add_history(
    payload: HistoryAdd,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    await _require_comic(db, payload.comic_id)

    chapter_number = payload.chapter_number
    if chapter_number is None and payload.chapter_id is not None:
        chapter = await catalog.get_chapter(db, payload.chapter_id)
        if chapter and chapter.comic_id == payload.comic_id:
            chapter_number = chapter.chapter_number

    await catalog.add_to_history(db, current_user.id, payload.comic_id, chapter_number)
    return {"success": True}


@router.delete("/history")
async def clear_history(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    removed = await catalog.clear_history(db, current_user.id)
    return {"success": True, "removed": removed}


@router.delete("/history/{comic_id}")
async def remove_history(
    comic_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    await catalog.remove_from_history(db, current_user.id, comic_id)
    return {"success": True}


# ---------- follows ----------

@router.get("/follows")
async def get_follows(
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    return await catalog.user_follows(db, current_user.id)


@router.post("/follows/{comic_id}")
async def follow(
    comic_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    await _require_comic(db, comic_id)
    await catalog.follow_comic(db, current_user.id, comic_id)
    return {"success": True, "is_following": True}


@router.delete("/follows/{comic_id}")
async def unfollow(
    comic_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    await catalog.unfollow_comic(db, current_user.id, comic_id)
    return {"success": True, "is_following": False}


@router.get("/follows/{comic_id}/check")
async def check_follow(
    comic_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    return {"is_following": await catalog.is_following(db, current_user.id, comic_id)}


# ---------- sync / own comics ----------

@router.post("/sync")
async def sync(
    payload: SyncRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    merged = await catalog.sync_user_data(
        db,
        current_user.id,
        history=[item.model_dump() for item in payload.history],
        follows=[item.model_dump() for item in payload.follows],
    )
    return {"success": True, **merged}


@router.get("/comics")
async def my_comics(
    search: Optional[str] = Query(""),
    page: Page = Depends(paging(20)),
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    search = (search or "").strip()
    comics = await catalog.list_comics_by_owner(db, current_user.id, page.limit, page.offset, search)
    total = await catalog.count_comics_by_owner(db, current_user.id, search)
    return {"data": [catalog.comic_to_dict(c) for c in comics], "total": total}
