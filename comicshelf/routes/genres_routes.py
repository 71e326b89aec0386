from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf import catalog
from comicshelf.cache import GENRE_LIST, QueryCache, genre_count_key
from comicshelf.database import get_async_session
from comicshelf.deps.services import get_query_cache
from comicshelf.utils.pagination import Page, paging

router = APIRouter(prefix="/api/genres", tags=["genres"])


@router.get("")
async def list_genres(
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    return await cache.get_or_compute(GENRE_LIST, lambda: catalog.all_genres(db))


@router.get("/{genre}/comics")
async def comics_in_genre(
    genre: str,
    page: Page = Depends(paging(20)),
    db: AsyncSession = Depends(get_async_session),
    cache: QueryCache = Depends(get_query_cache),
):
    comics = await catalog.comics_by_genre(db, genre, page.limit, page.offset)

    # only genres that exist get a cache slot; arbitrary path values are counted live
    known = await cache.get_or_compute(GENRE_LIST, lambda: catalog.all_genres(db))
    if genre in known:
        total = await cache.get_or_compute(genre_count_key(genre), lambda: catalog.count_comics_by_genre(db, genre))
    else:
        total = await catalog.count_comics_by_genre(db, genre)
    return {"data": [catalog.comic_to_dict(c) for c in comics], "total": total}
