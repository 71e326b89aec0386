import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from comicshelf import catalog, config
from comicshelf.asset_cleanup import AssetCleanup
from comicshelf.cache import RECENT_COUNT, TOTAL_COUNT, QueryCache, ViewTracker
from comicshelf.database import AsyncSessionLocal, init_db
from comicshelf.errors import register_error_handlers
from comicshelf.limiter import limiter
from comicshelf.logging_config import setup_logging
from comicshelf.middleware import block_bots
from comicshelf.routes import admin_routes, auth, comics_routes, genres_routes, huggingface_routes, user_routes

setup_logging()
logger = logging.getLogger("comicshelf.main")

app = FastAPI(title="Comicshelf API")

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Shared per-process services, handed to routes through app.state
app.state.query_cache = QueryCache(ttl=config.CACHE_TTL_SECONDS)
app.state.view_tracker = ViewTracker(cooldown=config.VIEW_COOLDOWN_SECONDS)
app.state.asset_cleanup = AssetCleanup(config.IMAGE_SERVER_URL)

register_error_handlers(app)

app.middleware("http")(block_bots)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(comics_routes.router)
app.include_router(genres_routes.router)
app.include_router(user_routes.router)
app.include_router(admin_routes.router)
app.include_router(huggingface_routes.router)


async def warm_cache(cache: QueryCache) -> None:
    async with AsyncSessionLocal() as session:
        total = await cache.get_or_compute(TOTAL_COUNT, lambda: catalog.count_comics(session))
        recent = await cache.get_or_compute(RECENT_COUNT, lambda: catalog.count_recent_comics(session))
    logger.info("Count cache warmed: total=%s recent=%s", total, recent)


@app.on_event("startup")
async def on_startup():
    # Tiny retry so a momentary DB hiccup doesn't crash the app.
    for attempt in range(2):
        try:
            await init_db()
            break
        except Exception as e:
            if attempt == 0:
                logger.warning("DB init failed, retrying once: %r", e)
                await asyncio.sleep(0.5)
            else:
                logger.error("Skipping DB init due to error: %r", e)

    try:
        await warm_cache(app.state.query_cache)
    except Exception as e:
        logger.warning("Cache warmup failed: %r", e)

    if config.ADMIN_USERNAME == "admin" and config.ADMIN_PASSWORD == "admin123":
        logger.warning("Using default admin credentials. Set ADMIN_USERNAME / ADMIN_PASSWORD in .env!")
