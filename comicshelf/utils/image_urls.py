# comicshelf/utils/image_urls.py
"""
Chapter page URLs are stored as JSON text in ``chapters.image_urls``.

Two shapes exist in the table:
  legacy:  ["a.jpg", "b.jpg"]
  current: [{"server_name": "Server 1", "image_urls": ["a.jpg", "b.jpg"]}, ...]

Everything outside this module only ever sees the current shape
(a list of server groups). ``tiktok:<id>`` entries are kept verbatim in the
database and only expanded on the way out.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from comicshelf import config

DEFAULT_SERVER_NAME = "Server 1"
TIKTOK_PREFIX = "tiktok:"

ServerGroup = Dict[str, Any]


def normalize_server_groups(value: Any) -> List[ServerGroup]:
    """Coerce either stored shape (already decoded) into a list of server groups."""
    if not isinstance(value, list) or not value:
        return []

    if all(isinstance(item, str) for item in value):
        return [{"server_name": DEFAULT_SERVER_NAME, "image_urls": list(value)}]

    groups: List[ServerGroup] = []
    for idx, item in enumerate(value, start=1):
        if isinstance(item, dict):
            urls = item.get("image_urls") or []
            groups.append({
                "server_name": str(item.get("server_name") or f"Server {idx}"),
                "image_urls": [u for u in urls if isinstance(u, str)],
            })
        elif isinstance(item, str):
            # stray string mixed in with groups: fold into the first implicit group
            if groups and groups[0]["server_name"] == DEFAULT_SERVER_NAME:
                groups[0]["image_urls"].append(item)
            else:
                groups.insert(0, {"server_name": DEFAULT_SERVER_NAME, "image_urls": [item]})
    return groups


def load_server_groups(raw: Optional[str]) -> List[ServerGroup]:
    try:
        decoded = json.loads(raw or "[]")
    except (TypeError, ValueError):
        return []
    return normalize_server_groups(decoded)


def dump_server_groups(value: Any) -> str:
    return json.dumps(normalize_server_groups(value), ensure_ascii=False)


def resolve_image_url(url: str, base_url: Optional[str] = None) -> str:
    if isinstance(url, str) and url.startswith(TIKTOK_PREFIX):
        base = (base_url if base_url is not None else config.TIKTOK_IMAGE_BASE_URL).rstrip("/")
        return f"{base}/{url[len(TIKTOK_PREFIX):]}"
    return url


def resolve_server_groups(groups: List[ServerGroup], base_url: Optional[str] = None) -> List[ServerGroup]:
    return [
        {**group, "image_urls": [resolve_image_url(u, base_url) for u in group.get("image_urls", [])]}
        for group in groups
    ]


def read_image_urls(raw: Optional[str]) -> List[ServerGroup]:
    """Stored text -> canonical groups with tiktok ids expanded against the current base."""
    return resolve_server_groups(load_server_groups(raw))
