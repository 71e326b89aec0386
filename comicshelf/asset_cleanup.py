# comicshelf/asset_cleanup.py
import logging
from typing import Iterable, List, Optional

import httpx

from comicshelf import config
from comicshelf.utils.naming import format_chapter_number

logger = logging.getLogger(__name__)

INTERNAL_IMAGE_PREFIX = "/images/"


def chapter_folder_path(comic_slug: str, chapter_number) -> str:
    return f"/chapters/{comic_slug}/{format_chapter_number(chapter_number)}"


def cover_asset_path(cover_url: Optional[str]) -> Optional[str]:
    """Only covers served by the image service are ours to delete."""
    if cover_url and cover_url.startswith(INTERNAL_IMAGE_PREFIX):
        return cover_url
    return None


def comic_asset_paths(comic, chapters: Iterable) -> List[str]:
    paths = [chapter_folder_path(comic.slug, ch.chapter_number) for ch in chapters]
    cover = cover_asset_path(comic.cover_url)
    if cover:
        paths.append(cover)
    return paths


class AssetCleanup:
    """
    Best-effort DELETEs against the image service, run after the database
    change is committed. Failures are logged and never raised.
    """

    def __init__(self, base_url: str = None, timeout: float = 10.0):
        self.base_url = (base_url or config.IMAGE_SERVER_URL).rstrip("/")
        self.timeout = timeout

    async def delete_paths(self, paths: List[str], token: Optional[str]) -> None:
        if not paths:
            return
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                for path in paths:
                    await self._delete_one(client, path, headers)
        except Exception as e:
            logger.warning("Image cleanup aborted (%d paths): %r", len(paths), e)

    async def _delete_one(self, client: httpx.AsyncClient, path: str, headers: dict) -> None:
        try:
            res = await client.delete(f"{self.base_url}{path}", headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Failed to delete images at %s: %r", path, e)
            return
        if res.status_code >= 400:
            logger.warning("Image service refused delete of %s: %s", path, res.status_code)
        else:
            logger.info("Deleted images at %s", path)
