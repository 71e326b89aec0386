# comicshelf/imageserver/browser.py
import os
import posixpath
import shutil
from datetime import datetime, timezone
from typing import Optional

from comicshelf.errors import AssetConflict, AssetForbidden, AssetNotFound, AssetValidationError
from comicshelf.imageserver.storage import CHAPTERS_DIR, COVERS_DIR, AssetStore
from comicshelf.utils.naming import natural_key

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")
ROOT_FOLDERS = (COVERS_DIR, CHAPTERS_DIR)


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.2f} MB"


def _modified(abs_path: str) -> str:
    return datetime.fromtimestamp(os.path.getmtime(abs_path), tz=timezone.utc).isoformat()


def _child_count(abs_path: str) -> int:
    try:
        return len(os.listdir(abs_path))
    except OSError:
        return 0


class FolderBrowser:
    """Admin-facing view of the asset tree: list, create, rename, delete."""

    def __init__(self, store: AssetStore):
        self.store = store

    def _is_root(self, abs_path: str) -> bool:
        return abs_path == self.store.root

    def _folder_entry(self, abs_path: str) -> dict:
        return {
            "name": os.path.basename(abs_path),
            "type": "folder",
            "path": self.store.virtual_path(abs_path),
            "modified": _modified(abs_path),
            "childCount": _child_count(abs_path),
        }

    def _file_entry(self, abs_path: str) -> dict:
        size = os.path.getsize(abs_path)
        return {
            "name": os.path.basename(abs_path),
            "type": "file",
            "path": self.store.virtual_path(abs_path),
            "url": self.store.url_for(abs_path),
            "size": size,
            "sizeFormatted": format_size(size),
            "modified": _modified(abs_path),
        }

    def list_folder(self, rel_path: Optional[str] = "") -> dict:
        target = self.store.resolve(rel_path)

        if self._is_root(target):
            folders = []
            for name in ROOT_FOLDERS:
                folder = os.path.join(target, name)
                if os.path.isdir(folder):
                    folders.append(self._folder_entry(folder))
            return {
                "path": "/",
                "parentPath": None,
                "folders": folders,
                "files": [],
                "totalFolders": len(folders),
                "totalFiles": 0,
            }

        if not os.path.isdir(target):
            raise AssetNotFound("Folder not found")

        folders, files = [], []
        for name in os.listdir(target):
            full = os.path.join(target, name)
            if os.path.isdir(full):
                folders.append(self._folder_entry(full))
            elif os.path.isfile(full) and name.lower().endswith(IMAGE_EXTENSIONS):
                files.append(self._file_entry(full))

        folders.sort(key=lambda f: natural_key(f["name"]))
        files.sort(key=lambda f: natural_key(f["name"]))

        virtual = self.store.virtual_path(target)
        return {
            "path": virtual,
            "parentPath": posixpath.dirname(virtual) or "/",
            "folders": folders,
            "files": files,
            "totalFolders": len(folders),
            "totalFiles": len(files),
        }

    def create_folder(self, rel_path: str) -> str:
        if not (rel_path or "").strip("/"):
            raise AssetValidationError("Folder path is required")
        target = self.store.resolve(rel_path)
        if os.path.exists(target):
            raise AssetConflict("Folder already exists")
        os.makedirs(target)
        return self.store.virtual_path(target)

    def _protected(self, abs_path: str) -> bool:
        return self.store.is_protected(abs_path)

    def delete_folder(self, rel_path: str) -> None:
        target = self.store.resolve(rel_path)
        if self._protected(target):
            raise AssetForbidden("Cannot delete root folders")
        if not os.path.isdir(target):
            raise AssetNotFound("Folder not found")
        shutil.rmtree(target)

    def rename_item(self, old_path: str, new_name: str) -> str:
        if not old_path or not new_name:
            raise AssetValidationError("oldPath and newName are required")
        if "/" in new_name or "\\" in new_name or "\x00" in new_name or new_name in (".", ".."):
            raise AssetValidationError("newName must be a plain file or folder name")

        source = self.store.resolve(old_path)
        if self._protected(source):
            raise AssetForbidden("Cannot rename root folders")
        destination = self.store.resolve(posixpath.join(self.store.virtual_path(os.path.dirname(source)), new_name))

        if not os.path.exists(source):
            raise AssetNotFound("File or folder not found")
        if os.path.exists(destination):
            raise AssetConflict("A file or folder with that name already exists")

        os.rename(source, destination)
        return self.store.virtual_path(destination)
