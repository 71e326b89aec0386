import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from comicshelf import config
from comicshelf.deps.admin import require_admin
from comicshelf.errors import register_error_handlers
from comicshelf.imageserver.browser import FolderBrowser
from comicshelf.imageserver.storage import AssetStore
from comicshelf.logging_config import setup_logging

setup_logging()
logger = logging.getLogger("comicshelf.imageserver")


class CachedStaticFiles(StaticFiles):
    """Public image serving; FileResponse already sets ETag and Last-Modified."""

    def file_response(self, *args, **kwargs):
        response = super().file_response(*args, **kwargs)
        response.headers["Cache-Control"] = f"public, max-age={config.IMAGE_CACHE_MAX_AGE}"
        return response


class FolderCreate(BaseModel):
    path: str


class RenameRequest(BaseModel):
    oldPath: str
    newName: str


store = AssetStore(config.UPLOAD_DIR)

app = FastAPI(title="Comicshelf Image Server")
app.state.store = store
app.state.browser = FolderBrowser(store)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(request: Request) -> AssetStore:
    return request.app.state.store


def get_browser(request: Request) -> FolderBrowser:
    return request.app.state.browser


async def read_upload(upload: UploadFile):
    # one byte past the limit is enough to reject
    data = await upload.read(config.MAX_FILE_SIZE + 1)
    return upload.filename or "", data, upload.content_type


def full_url(request: Request, url: str) -> str:
    return str(request.base_url).rstrip("/") + url


@app.on_event("startup")
async def on_startup():
    app.state.store.ensure_layout()
    logger.info("Upload directory: %s", app.state.store.root)
    logger.info("Max width: %spx", config.MAX_WIDTH)
    logger.info("WebP conversion: %s", "enabled" if config.CONVERT_TO_WEBP else "disabled")


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uploadDir": config.UPLOAD_DIR,
    }


# ---------- uploads ----------

@app.post("/upload/cover")
async def upload_cover(
    request: Request,
    _admin: dict = Depends(require_admin),
    cover: Optional[UploadFile] = File(None),
    comic_slug: str = Form(""),
    assets: AssetStore = Depends(get_store),
):
    if cover is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not comic_slug.strip():
        raise HTTPException(status_code=400, detail="comic_slug is required")

    _name, data, content_type = await read_upload(cover)
    url = assets.save_cover(comic_slug, data, content_type)
    return {"success": True, "url": url, "fullUrl": full_url(request, url)}


@app.post("/upload/chapter")
async def upload_chapter(
    request: Request,
    _admin: dict = Depends(require_admin),
    images: Optional[List[UploadFile]] = File(None),
    comic_slug: str = Form(""),
    chapter_number: str = Form(""),
    assets: AssetStore = Depends(get_store),
):
    if not images:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if not comic_slug.strip() or not chapter_number.strip():
        raise HTTPException(status_code=400, detail="comic_slug and chapter_number are required")

    files = [await read_upload(f) for f in images]
    urls = assets.save_chapter_images(comic_slug, chapter_number, files)
    return {
        "success": True,
        "count": len(urls),
        "urls": urls,
        "fullUrls": [full_url(request, u) for u in urls],
    }


@app.post("/upload/to-folder")
async def upload_to_folder(
    _admin: dict = Depends(require_admin),
    images: Optional[List[UploadFile]] = File(None),
    folder_path: str = Form(""),
    assets: AssetStore = Depends(get_store),
):
    if not images:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if not folder_path.strip():
        raise HTTPException(status_code=400, detail="folder_path is required")

    files = [await read_upload(f) for f in images]
    saved = assets.upload_to_folder(folder_path, files)
    return {"success": True, "count": len(saved), "files": saved}


@app.put("/replace/{path:path}")
async def replace_image(
    path: str,
    _admin: dict = Depends(require_admin),
    image: Optional[UploadFile] = File(None),
    assets: AssetStore = Depends(get_store),
):
    if image is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    _name, data, content_type = await read_upload(image)
    new_path = assets.replace_image(path, data, content_type)
    return {"success": True, "newPath": new_path, "url": "/images" + new_path}


# ---------- deletes ----------

@app.delete("/images/{path:path}")
async def delete_image(
    path: str,
    _admin: dict = Depends(require_admin),
    assets: AssetStore = Depends(get_store),
):
    assets.delete_path(path)
    return {"success": True, "message": "Image deleted"}


@app.delete("/chapters/{comic_slug}/{chapter_number}")
async def delete_chapter_images(
    comic_slug: str,
    chapter_number: str,
    _admin: dict = Depends(require_admin),
    assets: AssetStore = Depends(get_store),
):
    assets.delete_chapter_folder(comic_slug, chapter_number)
    return {"success": True, "message": "Chapter images deleted"}


# ---------- browse / manage ----------

@app.get("/stats")
async def stats(_admin: dict = Depends(require_admin), assets: AssetStore = Depends(get_store)):
    return assets.get_storage_stats()


@app.get("/browse")
async def browse_root(_admin: dict = Depends(require_admin), browser: FolderBrowser = Depends(get_browser)):
    return browser.list_folder("/")


@app.get("/browse/{path:path}")
async def browse(path: str, _admin: dict = Depends(require_admin), browser: FolderBrowser = Depends(get_browser)):
    return browser.list_folder(path)


@app.post("/folder")
async def create_folder(
    payload: FolderCreate,
    _admin: dict = Depends(require_admin),
    browser: FolderBrowser = Depends(get_browser),
):
    return {"success": True, "path": browser.create_folder(payload.path)}


@app.delete("/folder/{path:path}")
async def delete_folder(path: str, _admin: dict = Depends(require_admin), browser: FolderBrowser = Depends(get_browser)):
    browser.delete_folder(path)
    return {"success": True, "message": "Folder deleted"}


@app.put("/rename")
async def rename(
    payload: RenameRequest,
    _admin: dict = Depends(require_admin),
    browser: FolderBrowser = Depends(get_browser),
):
    return {"success": True, "newPath": browser.rename_item(payload.oldPath, payload.newName)}


# after the DELETE /images route so that one still matches
app.mount("/images", CachedStaticFiles(directory=store.root, check_dir=False), name="images")
