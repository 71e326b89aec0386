# comicshelf/imageserver/storage.py
"""
Filesystem-backed asset store rooted at UPLOAD_DIR.

Virtual paths are slash-separated and relative to the root; a single
leading "/" means the root itself. Every public method resolves its path
argument through ``resolve_and_verify`` before touching the disk.
"""
import logging
import os
import re
import shutil
from typing import Iterable, List, Optional, Tuple

from comicshelf.errors import AssetForbidden, AssetNotFound, AssetValidationError
from comicshelf.imageserver.processing import ProcessedImage, process_image, validate_upload
from comicshelf.utils.naming import format_chapter_number, natural_key, slugify

logger = logging.getLogger(__name__)

COVERS_DIR = "covers"
CHAPTERS_DIR = "chapters"
TEMP_DIR = "temp"
LAYOUT = (COVERS_DIR, CHAPTERS_DIR, TEMP_DIR)

_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

# (original filename, bytes, content type)
Upload = Tuple[str, bytes, Optional[str]]


def resolve_and_verify(root: str, rel_path: Optional[str]) -> str:
    """
    Map a virtual path onto an absolute path under ``root``.

    Pure string work: nothing is read from or written to disk, so a
    rejected path never reaches the filesystem. Raises AssetForbidden
    for anything that normalizes outside the root.
    """
    rel = (rel_path or "").replace("\\", "/")
    if "\x00" in rel:
        raise AssetForbidden("Access denied")

    # one leading slash addresses the asset root
    if rel.startswith("/"):
        rel = rel[1:]
    if rel.startswith("/") or _DRIVE_RE.match(rel):
        raise AssetForbidden("Access denied")

    root_norm = os.path.normpath(root)
    target = os.path.normpath(os.path.join(root_norm, rel))
    if target != root_norm and not target.startswith(root_norm.rstrip(os.sep) + os.sep):
        raise AssetForbidden("Access denied")
    return target


def sanitize_filename(name: str) -> str:
    """
    Keep an uploaded file's base name usable on disk and in URLs:
    - trim whitespace, spaces -> '-'
    - unsafe chars -> '-', collapse repeats
    """
    name = os.path.basename((name or "").replace("\\", "/")).strip()
    name = re.sub(r"\s+", "-", name)
    name = _SAFE_FILENAME_RE.sub("-", name)
    name = re.sub(r"-{2,}", "-", name).strip(".-")
    return name or "file"


def format_size_mb(size: int) -> str:
    return f"{size / 1024 / 1024:.2f} MB"


def _unique_name(base: str, extension: str, taken) -> str:
    name = f"{base}.{extension}"
    counter = 1
    while name in taken:
        name = f"{base}-{counter}.{extension}"
        counter += 1
    return name


class AssetStore:
    def __init__(self, root: str):
        self.root = os.path.normpath(os.path.abspath(root))

    # ---------- paths ----------

    def resolve(self, rel_path: Optional[str]) -> str:
        return resolve_and_verify(self.root, rel_path)

    def virtual_path(self, abs_path: str) -> str:
        rel = os.path.relpath(abs_path, self.root).replace(os.sep, "/")
        return "/" if rel == "." else "/" + rel

    def url_for(self, abs_path: str) -> str:
        return "/images" + self.virtual_path(abs_path)

    def ensure_layout(self) -> None:
        for name in LAYOUT:
            os.makedirs(os.path.join(self.root, name), exist_ok=True)

    def is_protected(self, abs_path: str) -> bool:
        """The root and the top-level layout folders are never removed or renamed."""
        return abs_path == self.root or abs_path in {os.path.join(self.root, name) for name in LAYOUT}

    # ---------- writes ----------

    def _process(self, data: bytes, content_type: Optional[str]) -> ProcessedImage:
        validate_upload(data, content_type)
        return process_image(data)

    def _write(self, folder: str, file_name: str, processed: ProcessedImage) -> str:
        target = os.path.join(folder, file_name)
        with open(target, "wb") as fh:
            fh.write(processed.data)
        return target

    def save_cover(self, slug: str, data: bytes, content_type: Optional[str]) -> str:
        """Returns the public URL, e.g. /images/covers/one-piece.jpg."""
        safe_slug = slugify(slug)
        if not safe_slug:
            raise AssetValidationError("comic_slug is required")
        processed = self._process(data, content_type)

        covers = self.resolve(COVERS_DIR)
        os.makedirs(covers, exist_ok=True)
        file_name = f"{safe_slug}.{processed.extension}"
        path = self._write(covers, file_name, processed)

        # covers never accumulate: drop <slug>.* with any other extension
        for existing in os.listdir(covers):
            stem, _ext = os.path.splitext(existing)
            if stem == safe_slug and existing != file_name and os.path.isfile(os.path.join(covers, existing)):
                os.remove(os.path.join(covers, existing))

        logger.info("Saved cover %s", self.virtual_path(path))
        return self.url_for(path)

    def chapter_folder(self, slug: str, chapter_number) -> str:
        try:
            number = format_chapter_number(chapter_number)
        except (TypeError, ValueError):
            raise AssetValidationError("chapter_number must be a number")
        safe_slug = slugify(slug)
        if not safe_slug:
            raise AssetValidationError("comic_slug is required")
        return self.resolve(f"{CHAPTERS_DIR}/{safe_slug}/{number}")

    def save_chapter_images(self, slug: str, chapter_number, files: Iterable[Upload]) -> List[str]:
        """
        Pages are numbered 001, 002, ... in natural order of their original
        file names. Re-uploading a chapter replaces the whole folder, but only
        once every page has decoded.
        """
        files = sorted(files, key=lambda f: natural_key(f[0] or ""))
        if not files:
            raise AssetValidationError("No files uploaded")
        folder = self.chapter_folder(slug, chapter_number)
        pages = [self._process(data, content_type) for _name, data, content_type in files]

        if os.path.isdir(folder):
            shutil.rmtree(folder)
        os.makedirs(folder, exist_ok=True)

        urls = []
        for idx, processed in enumerate(pages, start=1):
            path = self._write(folder, f"{idx:03d}.{processed.extension}", processed)
            urls.append(self.url_for(path))
        logger.info("Saved %d pages to %s", len(urls), self.virtual_path(folder))
        return urls

    def upload_to_folder(self, folder_path: str, files: Iterable[Upload]) -> List[dict]:
        """
        Keeps original base names; extension follows the pipeline. A name that
        is already taken, on disk or earlier in the batch, gets a -1, -2, ... suffix.
        """
        target = self.resolve(folder_path)
        files = list(files)
        if not files:
            raise AssetValidationError("No files uploaded")
        processed = [(name, self._process(data, content_type)) for name, data, content_type in files]

        os.makedirs(target, exist_ok=True)
        taken = set(os.listdir(target))
        saved = []
        for name, image in processed:
            base = sanitize_filename(os.path.splitext(name or "")[0])
            file_name = _unique_name(base, image.extension, taken)
            taken.add(file_name)
            path = self._write(target, file_name, image)
            saved.append({"name": file_name, "url": self.url_for(path)})
        return saved

    def replace_image(self, rel_path: str, data: bytes, content_type: Optional[str]) -> str:
        """Swap the bytes of an existing image. Returns the (possibly re-extensioned) virtual path."""
        target = self.resolve(rel_path)
        if not os.path.isfile(target):
            raise AssetNotFound("Original file not found")
        processed = self._process(data, content_type)

        base = os.path.splitext(os.path.basename(target))[0]
        path = self._write(os.path.dirname(target), f"{base}.{processed.extension}", processed)
        if path != target:
            os.remove(target)
        return self.virtual_path(path)

    # ---------- deletes ----------

    def delete_path(self, rel_path: str) -> None:
        target = self.resolve(rel_path)
        if self.is_protected(target):
            raise AssetForbidden("Cannot delete root folders")
        if os.path.isdir(target):
            shutil.rmtree(target)
        elif os.path.isfile(target):
            os.remove(target)
        else:
            raise AssetNotFound("File or folder not found")
        logger.info("Deleted %s", self.virtual_path(target))

    def delete_chapter_folder(self, slug: str, chapter_number) -> None:
        folder = self.chapter_folder(slug, chapter_number)
        if not os.path.isdir(folder):
            raise AssetNotFound("Chapter folder not found")
        shutil.rmtree(folder)
        logger.info("Deleted chapter folder %s", self.virtual_path(folder))

    # ---------- stats ----------

    def _tree_size(self, abs_path: str) -> int:
        size = 0
        for dirpath, _dirnames, filenames in os.walk(abs_path):
            for name in filenames:
                try:
                    size += os.path.getsize(os.path.join(dirpath, name))
                except OSError:
                    continue
        return size

    def get_storage_stats(self) -> dict:
        covers = self._tree_size(self.resolve(COVERS_DIR))
        chapters = self._tree_size(self.resolve(CHAPTERS_DIR))
        total = covers + chapters
        return {
            "covers": {"size": covers, "sizeFormatted": format_size_mb(covers)},
            "chapters": {"size": chapters, "sizeFormatted": format_size_mb(chapters)},
            "total": {"size": total, "sizeFormatted": format_size_mb(total)},
        }
