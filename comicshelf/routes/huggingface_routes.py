import logging
import re
from typing import List

import httpx
from fastapi import APIRouter, HTTPException

from comicshelf.schemas.comic_schemas import HuggingFaceFetch
from comicshelf.utils.naming import natural_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/huggingface", tags=["huggingface"])

HF_BASE = "https://huggingface.co"
MAX_URL_LENGTH = 500
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

_FOLDER_URL_RE = re.compile(
    r"^https://huggingface\.co/datasets/"
    r"(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+)/tree/(?P<branch>[A-Za-z0-9_.-]+)/(?P<path>.+)$"
)


def parse_folder_url(folder_url: str) -> dict:
    """Validate a dataset folder URL. Raises 400 before anything goes over the network."""
    if not folder_url or not isinstance(folder_url, str):
        raise HTTPException(status_code=400, detail="folder_url is required")
    if len(folder_url) > MAX_URL_LENGTH:
        raise HTTPException(status_code=400, detail="folder_url is too long")

    match = _FOLDER_URL_RE.fullmatch(folder_url)
    if not match:
        raise HTTPException(
            status_code=400,
            detail="Invalid HuggingFace URL format. Expected: "
                   "https://huggingface.co/datasets/{owner}/{repo}/tree/{branch}/{path}",
        )

    parts = match.groupdict()
    if ".." in parts["path"] or "~" in parts["path"]:
        raise HTTPException(status_code=400, detail="Invalid path")
    return parts


def image_urls_from_tree(files: list, owner: str, repo: str, branch: str) -> List[str]:
    paths = [
        f["path"]
        for f in files
        if isinstance(f, dict)
        and f.get("type") == "file"
        and str(f.get("path", "")).lower().endswith(IMAGE_EXTENSIONS)
    ]
    paths.sort(key=natural_key)
    return [f"{HF_BASE}/datasets/{owner}/{repo}/resolve/{branch}/{p}" for p in paths]


@router.post("/fetch-images")
async def fetch_images(payload: HuggingFaceFetch):
    parts = parse_folder_url(payload.folder_url)
    owner, repo, branch, path = parts["owner"], parts["repo"], parts["branch"], parts["path"]
    api_url = f"{HF_BASE}/api/datasets/{owner}/{repo}/tree/{branch}/{path}"

    try:
        async with httpx.AsyncClient(timeout=15) as client:
            res = await client.get(api_url)
    except httpx.HTTPError as e:
        logger.warning("HuggingFace request failed for %s: %r", api_url, e)
        raise HTTPException(status_code=502, detail=f"HuggingFace request failed: {e}")

    if res.status_code >= 400:
        raise HTTPException(
            status_code=res.status_code,
            detail=f"HuggingFace API error: {res.reason_phrase or res.status_code}",
        )

    files = res.json()
    if not isinstance(files, list):
        raise HTTPException(status_code=502, detail="Unexpected response from HuggingFace")

    image_urls = image_urls_from_tree(files, owner, repo, branch)
    return {"folder_url": payload.folder_url, "count": len(image_urls), "image_urls": image_urls}
