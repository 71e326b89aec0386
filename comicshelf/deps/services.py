# comicshelf/deps/services.py
from fastapi import Request

from comicshelf.asset_cleanup import AssetCleanup
from comicshelf.cache import QueryCache, ViewTracker


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_view_tracker(request: Request) -> ViewTracker:
    return request.app.state.view_tracker


def get_asset_cleanup(request: Request) -> AssetCleanup:
    return request.app.state.asset_cleanup


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
