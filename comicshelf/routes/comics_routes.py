from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf import catalog, config
from comicshelf.cache import RECENT_COUNT, TOTAL_COUNT, QueryCache, ViewTracker
from comicshelf.database import get_async_session
from comicshelf.deps.services import client_ip, get_query_cache, get_view_tracker
from comicshelf.utils.pagination import Page, paging, parse_limit

router = APIRouter(prefix="/api", tags=["comics"])


async def total_comics(db: AsyncSession, cache: QueryCache, search: str = "") -> int:
    # search-filtered counts are never cached
    if search:
        return await catalog.count_comics(db, search)
    return await cache.get_or_compute(TOTAL_COUNT, lambda: catalog.count_comics(db))


@router.get("/config/tiktok-base-url")
async def tiktok_base_url():
    return {"baseUrl": config.TIKTOK_IMAGE_BASE_URL}


@router.get("/comics")
async def list_comics(
    search: Optional[str] = Query(""),
    page: Page = Depends(paging(20)),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    search = (search or "").strip()
    comics = await catalog.list_comics(db, page.limit, page.offset, search)
    total = await total_comics(db, cache, search)
    return {"data": [catalog.comic_to_dict(c) for c in comics], "total": total}


@router.get("/comics/top")
async def top_comics(
    page: Page = Depends(paging(10)),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    comics = await catalog.top_comics(db, page.limit, page.offset)
    total = await total_comics(db, cache)
    return {"data": [catalog.comic_to_dict(c) for c in comics], "total": total}


@router.get("/comics/featured")
async def featured_comics(
    count: Optional[str] = Query(None),
    fromTop: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session),
):
    comics = await catalog.featured_comics(
        db,
        count=parse_limit(count, 10),
        from_top=parse_limit(fromTop, 30),
    )
    return [catalog.comic_to_dict(c) for c in comics]


@router.get("/comics/recent")
async def recent_comics(
    page: Page = Depends(paging(12)),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    comics = await catalog.recent_comics(db, page.limit, page.offset)
    total = await cache.get_or_compute(RECENT_COUNT, lambda: catalog.count_recent_comics(db))
    return {"data": comics, "total": total}


async def _viewed(request: Request, db: AsyncSession, tracker: ViewTracker, comic) -> dict:
    data = catalog.comic_to_dict(comic)
    # once per hour per client ip
    if tracker.should_count(client_ip(request), comic.id):
        await catalog.increment_views(db, comic.id)
    return data


@router.get("/comics/slug/{slug}")
async def get_comic_by_slug(
    slug: str,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    tracker: ViewTracker = Depends(get_view_tracker),
):
    comic = await catalog.get_comic_by_slug(db, slug)
    if not comic:
        raise HTTPException(status_code=404, detail="Comic not found")
    return await _viewed(request, db, tracker, comic)


@router.get("/comics/slug/{slug}/chapter/{number}")
async def get_chapter_by_slug(slug: str, number: str, db: AsyncSession = Depends(get_async_session)):
    try:
        chapter_number = float(number)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid chapter number")

    found = await catalog.get_chapter_by_slug_and_number(db, slug, chapter_number)
    if not found:
        raise HTTPException(status_code=404, detail="Chapter not found")
    chapter, comic = found

    adjacent = await catalog.adjacent_chapters(db, chapter.comic_id, chapter.chapter_number)
    return catalog.chapter_to_dict(
        chapter,
        prev_chapter=adjacent["prev"],
        next_chapter=adjacent["next"],
        comic_slug=comic.slug,
        comic_title=comic.title,
    )


@router.get("/comics/{comic_id}")
async def get_comic(
    comic_id: int,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    tracker: ViewTracker = Depends(get_view_tracker),
):
    comic = await catalog.get_comic(db, comic_id)
    if not comic:
        raise HTTPException(status_code=404, detail="Comic not found")
    return await _viewed(request, db, tracker, comic)


@router.get("/comics/{comic_id}/chapters")
async def get_comic_chapters(comic_id: int, db: AsyncSession = Depends(get_async_session)):
    chapters = await catalog.chapters_for_comic(db, comic_id)
    return [catalog.chapter_to_dict(ch) for ch in chapters]


@router.get("/chapters/{chapter_id}")
async def get_chapter(chapter_id: int, db: AsyncSession = Depends(get_async_session)):
    chapter = await catalog.get_chapter(db, chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail="Chapter not found")

    adjacent = await catalog.adjacent_chapters(db, chapter.comic_id, chapter.chapter_number)
    return catalog.chapter_to_dict(chapter, prev_chapter=adjacent["prev"], next_chapter=adjacent["next"])
