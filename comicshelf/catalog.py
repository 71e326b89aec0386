# comicshelf/catalog.py
"""
Async query layer over the catalog tables.

Functions take an ``AsyncSession`` and return ORM objects or plain dicts
ready to be returned from a route. Writes commit on their own; the caller
is responsible for cache invalidation and asset cleanup.
"""
import json
import random
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from comicshelf.models.comic_model import Chapter, Comic, ComicStatus
from comicshelf.models.user_activity import UserFollow, UserHistory
from comicshelf.models.user_model import User
from comicshelf.utils.image_urls import dump_server_groups, read_image_urls
from comicshelf.utils.naming import slugify

COMIC_FIELDS = ("title", "description", "cover_url", "author", "status", "genres")
CHAPTER_FIELDS = ("chapter_number", "title", "image_urls")
RECENT_CHAPTERS_PER_COMIC = 3


class SlugConflict(Exception):
    """Another comic already uses the slug derived from this title."""


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _dump_genres(genres: Optional[Iterable[Any]]) -> str:
    return json.dumps([str(g) for g in (genres or [])], ensure_ascii=False)


def _status_value(status: Any) -> str:
    value = getattr(status, "value", status)
    return ComicStatus(str(value).strip().lower()).value


# ---------- serializers ----------

def comic_to_dict(comic: Comic, **extra) -> Dict[str, Any]:
    data = {
        "id": comic.id,
        "title": comic.title,
        "slug": comic.slug,
        "description": comic.description or "",
        "cover_url": comic.cover_url or "",
        "author": comic.author or "",
        "status": comic.status,
        "genres": comic.genre_list,
        "views": comic.views or 0,
        "created_by": comic.created_by,
        "created_at": comic.created_at,
        "updated_at": comic.updated_at,
    }
    data.update(extra)
    return data


def chapter_to_dict(chapter: Chapter, **extra) -> Dict[str, Any]:
    data = {
        "id": chapter.id,
        "comic_id": chapter.comic_id,
        "chapter_number": chapter.chapter_number,
        "title": chapter.title or "",
        "image_urls": read_image_urls(chapter.image_urls),
        "created_at": chapter.created_at,
    }
    data.update(extra)
    return data


# ---------- comics: reads ----------

def _search_clause(search: str):
    pattern = f"%{_like_escape(search)}%"
    return or_(Comic.title.like(pattern, escape="\\"), Comic.author.like(pattern, escape="\\"))


def _genre_clause(genre: str):
    # Prefix match on the quoted JSON element: "Action" also matches "Action-Comedy".
    return Comic.genres.like(f'%"{_like_escape(genre)}%', escape="\\")


async def list_comics(session: AsyncSession, limit: int, offset: int, search: str = "") -> List[Comic]:
    stmt = select(Comic)
    if search:
        stmt = stmt.where(_search_clause(search))
    stmt = stmt.order_by(Comic.updated_at.desc(), Comic.id.desc()).limit(limit).offset(offset)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_comics(session: AsyncSession, search: str = "") -> int:
    stmt = select(func.count(Comic.id))
    if search:
        stmt = stmt.where(_search_clause(search))
    return (await session.execute(stmt)).scalar_one()


async def list_comics_by_owner(
    session: AsyncSession, user_id: int, limit: int, offset: int, search: str = ""
) -> List[Comic]:
    stmt = select(Comic).where(Comic.created_by == user_id)
    if search:
        stmt = stmt.where(_search_clause(search))
    stmt = stmt.order_by(Comic.updated_at.desc(), Comic.id.desc()).limit(limit).offset(offset)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_comics_by_owner(session: AsyncSession, user_id: int, search: str = "") -> int:
    stmt = select(func.count(Comic.id)).where(Comic.created_by == user_id)
    if search:
        stmt = stmt.where(_search_clause(search))
    return (await session.execute(stmt)).scalar_one()


async def top_comics(session: AsyncSession, limit: int, offset: int) -> List[Comic]:
    stmt = select(Comic).order_by(Comic.views.desc(), Comic.id.asc()).limit(limit).offset(offset)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def featured_comics(session: AsyncSession, count: int = 10, from_top: int = 30) -> List[Comic]:
    """A random ``count`` comics out of the ``from_top`` most viewed."""
    pool = await top_comics(session, limit=from_top, offset=0)
    return random.sample(pool, min(count, len(pool)))


async def recent_comics(session: AsyncSession, limit: int, offset: int) -> List[Dict[str, Any]]:
    """
    Comics ordered by when their highest-numbered chapter was created.
    Two round trips: one for the page, one for the top chapters of every
    comic on that page.
    """
    ranked = select(
        Chapter.comic_id.label("comic_id"),
        Chapter.chapter_number.label("chapter_number"),
        Chapter.created_at.label("created_at"),
        func.row_number()
        .over(
            partition_by=Chapter.comic_id,
            order_by=(Chapter.chapter_number.desc(), Chapter.created_at.desc()),
        )
        .label("rn"),
    ).subquery("ranked")
    latest = (
        select(ranked.c.comic_id, ranked.c.chapter_number, ranked.c.created_at)
        .where(ranked.c.rn == 1)
        .subquery("latest")
    )

    stmt = (
        select(
            Comic,
            latest.c.created_at.label("last_chapter_at"),
            latest.c.chapter_number.label("latest_chapter"),
        )
        .outerjoin(latest, latest.c.comic_id == Comic.id)
        .order_by(latest.c.created_at.desc().nulls_last(), Comic.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = (await session.execute(stmt)).all()
    if not rows:
        return []

    comic_ids = [comic.id for comic, _, _ in rows]
    per_comic = await _recent_chapters_for(session, comic_ids)

    return [
        comic_to_dict(
            comic,
            last_chapter_at=last_chapter_at,
            latest_chapter=latest_chapter,
            recent_chapters=per_comic.get(comic.id, []),
        )
        for comic, last_chapter_at, latest_chapter in rows
    ]


async def _recent_chapters_for(session: AsyncSession, comic_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
    numbered = (
        select(
            Chapter.id,
            Chapter.comic_id,
            Chapter.chapter_number,
            Chapter.title,
            Chapter.created_at,
            func.row_number()
            .over(partition_by=Chapter.comic_id, order_by=Chapter.chapter_number.desc())
            .label("rn"),
        )
        .where(Chapter.comic_id.in_(comic_ids))
        .subquery("numbered")
    )
    stmt = (
        select(numbered)
        .where(numbered.c.rn <= RECENT_CHAPTERS_PER_COMIC)
        .order_by(numbered.c.comic_id, numbered.c.rn)
    )

    grouped: Dict[int, List[Dict[str, Any]]] = {}
    for row in (await session.execute(stmt)).mappings():
        grouped.setdefault(row["comic_id"], []).append({
            "id": row["id"],
            "chapter_number": row["chapter_number"],
            "title": row["title"] or "",
            "created_at": row["created_at"],
        })
    return grouped


async def count_recent_comics(session: AsyncSession) -> int:
    stmt = select(func.count(func.distinct(Chapter.comic_id)))
    return (await session.execute(stmt)).scalar_one()


async def comics_by_genre(session: AsyncSession, genre: str, limit: int, offset: int) -> List[Comic]:
    stmt = (
        select(Comic)
        .where(_genre_clause(genre))
        .order_by(Comic.updated_at.desc(), Comic.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_comics_by_genre(session: AsyncSession, genre: str) -> int:
    stmt = select(func.count(Comic.id)).where(_genre_clause(genre))
    return (await session.execute(stmt)).scalar_one()


async def all_genres(session: AsyncSession) -> List[str]:
    stmt = select(Comic.genres).where(Comic.genres.is_not(None), Comic.genres != "[]")
    found = set()
    for raw in (await session.execute(stmt)).scalars():
        try:
            values = json.loads(raw or "[]")
        except (TypeError, ValueError):
            continue
        if isinstance(values, list):
            found.update(str(g) for g in values if g)
    return sorted(found)


async def get_comic(session: AsyncSession, comic_id: int) -> Optional[Comic]:
    return await session.get(Comic, comic_id)


async def get_comic_by_slug(session: AsyncSession, slug: str) -> Optional[Comic]:
    result = await session.execute(select(Comic).where(Comic.slug == slug))
    return result.scalar_one_or_none()


async def comic_exists(session: AsyncSession, comic_id: int) -> bool:
    result = await session.execute(select(Comic.id).where(Comic.id == comic_id))
    return result.scalar_one_or_none() is not None


# ---------- comics: writes ----------

async def _ensure_slug_free(session: AsyncSession, slug: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(Comic.id).where(Comic.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(Comic.id != exclude_id)
    if (await session.execute(stmt)).first() is not None:
        raise SlugConflict(f"A comic with slug '{slug}' already exists")


async def _commit_comic(session: AsyncSession, slug: str) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise SlugConflict(f"A comic with slug '{slug}' already exists")


async def create_comic(session: AsyncSession, data: Dict[str, Any], created_by: Optional[int] = None) -> Comic:
    title = (data.get("title") or "").strip()
    if not title:
        raise ValueError("Title is required")
    slug = slugify(title)
    if not slug:
        raise ValueError("Title must contain at least one letter or digit")
    await _ensure_slug_free(session, slug)

    now = _now_utc()
    comic = Comic(
        title=title,
        slug=slug,
        description=data.get("description") or "",
        cover_url=data.get("cover_url") or "",
        author=data.get("author") or "",
        status=_status_value(data.get("status") or ComicStatus.ONGOING),
        genres=_dump_genres(data.get("genres")),
        views=0,
        created_by=created_by if created_by is not None else data.get("created_by"),
        created_at=now,
        updated_at=now,
    )
    session.add(comic)
    await _commit_comic(session, slug)
    await session.refresh(comic)
    return comic


async def update_comic(session: AsyncSession, comic: Comic, changes: Dict[str, Any]) -> Comic:
    """Partial update; keys set to None are left untouched."""
    payload = {k: v for k, v in changes.items() if k in COMIC_FIELDS and v is not None}

    if "title" in payload:
        title = str(payload["title"]).strip()
        if not title:
            raise ValueError("Title cannot be empty")
        slug = slugify(title)
        if not slug:
            raise ValueError("Title must contain at least one letter or digit")
        await _ensure_slug_free(session, slug, exclude_id=comic.id)
        comic.title = title
        comic.slug = slug

    if "genres" in payload:
        comic.genres = _dump_genres(payload["genres"])
    if "status" in payload:
        comic.status = _status_value(payload["status"])
    for field in ("description", "cover_url", "author"):
        if field in payload:
            setattr(comic, field, payload[field])

    comic.updated_at = _now_utc()
    await _commit_comic(session, comic.slug)
    await session.refresh(comic)
    return comic


async def delete_comic(session: AsyncSession, comic: Comic) -> None:
    # chapters go with it through ON DELETE CASCADE
    await session.delete(comic)
    await session.commit()


async def increment_views(session: AsyncSession, comic_id: int) -> None:
    await session.execute(
        update(Comic)
        .where(Comic.id == comic_id)
        .values(views=Comic.views + 1)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


# ---------- chapters ----------

async def chapters_for_comic(session: AsyncSession, comic_id: int) -> List[Chapter]:
    stmt = (
        select(Chapter)
        .where(Chapter.comic_id == comic_id)
        .order_by(Chapter.chapter_number.asc(), Chapter.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_chapter(session: AsyncSession, chapter_id: int) -> Optional[Chapter]:
    return await session.get(Chapter, chapter_id)


async def get_chapter_by_slug_and_number(
    session: AsyncSession, slug: str, chapter_number: float
) -> Optional[Tuple[Chapter, Comic]]:
    stmt = (
        select(Chapter, Comic)
        .join(Comic, Chapter.comic_id == Comic.id)
        .where(Comic.slug == slug, Chapter.chapter_number == float(chapter_number))
        .order_by(Chapter.id.asc())
        .limit(1)
    )
    row = (await session.execute(stmt)).first()
    return (row[0], row[1]) if row else None


async def adjacent_chapters(session: AsyncSession, comic_id: int, chapter_number: float) -> Dict[str, Any]:
    prev_stmt = (
        select(Chapter.id, Chapter.chapter_number)
        .where(Chapter.comic_id == comic_id, Chapter.chapter_number < chapter_number)
        .order_by(Chapter.chapter_number.desc())
        .limit(1)
    )
    next_stmt = (
        select(Chapter.id, Chapter.chapter_number)
        .where(Chapter.comic_id == comic_id, Chapter.chapter_number > chapter_number)
        .order_by(Chapter.chapter_number.asc())
        .limit(1)
    )
    prev_row = (await session.execute(prev_stmt)).mappings().first()
    next_row = (await session.execute(next_stmt)).mappings().first()
    return {
        "prev": dict(prev_row) if prev_row else None,
        "next": dict(next_row) if next_row else None,
    }


async def create_chapter(session: AsyncSession, data: Dict[str, Any]) -> Chapter:
    comic = await session.get(Comic, int(data["comic_id"]))
    if comic is None:
        raise LookupError("Comic not found")

    now = _now_utc()
    chapter = Chapter(
        comic_id=comic.id,
        chapter_number=float(data["chapter_number"]),
        title=data.get("title") or "",
        image_urls=dump_server_groups(data.get("image_urls") or []),
        created_at=data.get("created_at") or now,
    )
    session.add(chapter)
    comic.updated_at = now
    await session.commit()
    await session.refresh(chapter)
    return chapter


async def update_chapter(session: AsyncSession, chapter: Chapter, changes: Dict[str, Any]) -> Chapter:
    payload = {k: v for k, v in changes.items() if k in CHAPTER_FIELDS and v is not None}
    if "chapter_number" in payload:
        chapter.chapter_number = float(payload["chapter_number"])
    if "title" in payload:
        chapter.title = payload["title"]
    if "image_urls" in payload:
        chapter.image_urls = dump_server_groups(payload["image_urls"])
    await session.commit()
    await session.refresh(chapter)
    return chapter


async def delete_chapter(session: AsyncSession, chapter: Chapter) -> None:
    await session.delete(chapter)
    await session.commit()


# ---------- users ----------

async def create_user(
    session: AsyncSession,
    username: str,
    email: str,
    password_hash: str,
    avatar_url: Optional[str] = None,
    role: str = "user",
) -> User:
    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        avatar_url=avatar_url,
        role=role,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def get_user(session: AsyncSession, user_id: int) -> Optional[User]:
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalars().first()


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


# ---------- reading history ----------

async def _upsert_history(session: AsyncSession, user_id: int, comic_id: int, chapter_number: Optional[float]) -> None:
    result = await session.execute(
        select(UserHistory).where(UserHistory.user_id == user_id, UserHistory.comic_id == comic_id)
    )
    entry = result.scalar_one_or_none()
    number = float(chapter_number) if chapter_number is not None else None
    if entry is None:
        session.add(UserHistory(user_id=user_id, comic_id=comic_id, chapter_number=number, read_at=_now_utc()))
    else:
        entry.chapter_number = number
        entry.read_at = _now_utc()


async def add_to_history(session: AsyncSession, user_id: int, comic_id: int, chapter_number: Optional[float]) -> None:
    await _upsert_history(session, user_id, comic_id, chapter_number)
    await session.commit()


async def user_history(session: AsyncSession, user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
    stmt = (
        select(UserHistory, Comic.title, Comic.slug, Comic.cover_url, Comic.author)
        .join(Comic, UserHistory.comic_id == Comic.id)
        .where(UserHistory.user_id == user_id)
        .order_by(UserHistory.read_at.desc(), UserHistory.id.desc())
        .limit(limit)
    )
    rows = (await session.execute(stmt)).all()
    return [
        {
            "id": entry.id,
            "user_id": entry.user_id,
            "comic_id": entry.comic_id,
            "chapter_number": entry.chapter_number,
            "read_at": entry.read_at,
            "title": title,
            "slug": slug,
            "cover_url": cover_url,
            "author": author,
        }
        for entry, title, slug, cover_url, author in rows
    ]


async def remove_from_history(session: AsyncSession, user_id: int, comic_id: int) -> int:
    result = await session.execute(
        delete(UserHistory).where(UserHistory.user_id == user_id, UserHistory.comic_id == comic_id)
    )
    await session.commit()
    return result.rowcount or 0


async def clear_history(session: AsyncSession, user_id: int) -> int:
    result = await session.execute(delete(UserHistory).where(UserHistory.user_id == user_id))
    await session.commit()
    return result.rowcount or 0


# ---------- follows ----------

async def _insert_follow(session: AsyncSession, user_id: int, comic_id: int) -> bool:
    if await is_following(session, user_id, comic_id):
        return False
    session.add(UserFollow(user_id=user_id, comic_id=comic_id, followed_at=_now_utc()))
    return True


async def follow_comic(session: AsyncSession, user_id: int, comic_id: int) -> bool:
    """Insert-or-ignore. Returns True when a new follow row was created."""
    created = await _insert_follow(session, user_id, comic_id)
    if created:
        try:
            await session.commit()
        except IntegrityError:
            # concurrent follow of the same comic
            await session.rollback()
            return False
    return created


async def unfollow_comic(session: AsyncSession, user_id: int, comic_id: int) -> int:
    result = await session.execute(
        delete(UserFollow).where(UserFollow.user_id == user_id, UserFollow.comic_id == comic_id)
    )
    await session.commit()
    return result.rowcount or 0


async def is_following(session: AsyncSession, user_id: int, comic_id: int) -> bool:
    result = await session.execute(
        select(UserFollow.id).where(and_(UserFollow.user_id == user_id, UserFollow.comic_id == comic_id))
    )
    return result.first() is not None


async def user_follows(session: AsyncSession, user_id: int) -> List[Dict[str, Any]]:
    stmt = (
        select(UserFollow, Comic.title, Comic.slug, Comic.cover_url, Comic.author, Comic.status)
        .join(Comic, UserFollow.comic_id == Comic.id)
        .where(UserFollow.user_id == user_id)
        .order_by(UserFollow.followed_at.desc(), UserFollow.id.desc())
    )
    rows = (await session.execute(stmt)).all()
    return [
        {
            "id": follow.id,
            "user_id": follow.user_id,
            "comic_id": follow.comic_id,
            "followed_at": follow.followed_at,
            "title": title,
            "slug": slug,
            "cover_url": cover_url,
            "author": author,
            "status": status,
        }
        for follow, title, slug, cover_url, author, status in rows
    ]


# ---------- sync ----------

async def sync_user_data(
    session: AsyncSession,
    user_id: int,
    history: List[Dict[str, Any]],
    follows: List[Dict[str, Any]],
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Merge history/follows kept client-side before login. Entries for comics
    that no longer exist are skipped. Everything is committed at once.
    """
    wanted = {item["comic_id"] for item in history} | {item["comic_id"] for item in follows}
    existing = set()
    if wanted:
        result = await session.execute(select(Comic.id).where(Comic.id.in_(wanted)))
        existing = set(result.scalars().all())

    try:
        for item in history:
            if item["comic_id"] in existing:
                await _upsert_history(session, user_id, item["comic_id"], item.get("chapter_number") or 1)
        for item in follows:
            if item["comic_id"] in existing:
                await _insert_follow(session, user_id, item["comic_id"])
                await session.flush()
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return {
        "history": await user_history(session, user_id),
        "follows": await user_follows(session, user_id),
    }
