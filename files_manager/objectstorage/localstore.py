"""
Content store on the local filesystem.

Contents are stored as flat files named by their storage key (a random uuid) inside the
configured folder. Derived variants (thumbnails) are stored next to the original as
<storage_key>_<variant>. File I/O runs in a worker thread so request handlers are not blocked.
"""

import asyncio
import os
import re
import uuid
from pathlib import Path

from files_manager.errors import NotFound

STORAGE_KEY_PATTERN = re.compile(r"^[0-9a-f-]{36}$")


class LocalContentStore:
    def __init__(self, folder: Path | str):
        self.folder = Path(folder)

    def path(self, storage_key: str, variant: str | int | None = None) -> Path:
        if not STORAGE_KEY_PATTERN.match(storage_key):
            raise NotFound()
        name = storage_key if variant is None else f"{storage_key}_{variant}"
        return self.folder / name

    async def put(self, data: bytes) -> str:
        """Store the data under a new storage key and return the key"""
        storage_key = str(uuid.uuid4())
        await asyncio.to_thread(_write_file, self.path(storage_key), data)
        return storage_key

    async def put_variant(self, storage_key: str, variant: str | int, data: bytes) -> None:
        """Store a derived variant of a stored file, replacing an earlier version if it exists"""
        await asyncio.to_thread(_write_file, self.path(storage_key, variant), data)

    async def get(self, storage_key: str, variant: str | int | None = None) -> bytes:
        """Read stored data, or a variant of it. Raises NotFound if it does not exist."""
        try:
            return await asyncio.to_thread(self.path(storage_key, variant).read_bytes)
        except (FileNotFoundError, IsADirectoryError):
            raise NotFound()

    async def exists(self, storage_key: str, variant: str | int | None = None) -> bool:
        return await asyncio.to_thread(self.path(storage_key, variant).is_file)

    async def delete(self, storage_key: str) -> None:
        """Remove stored data and all its variants. Deleting a key that does not exist is a no-op."""
        await asyncio.to_thread(_delete_files, self.path(storage_key))


def _delete_files(path: Path) -> None:
    for p in [path, *path.parent.glob(f"{path.name}_*")]:
        p.unlink(missing_ok=True)


def _write_file(path: Path, data: bytes) -> None:
    """Write to a temporary file and rename it, so readers never see a partially written file"""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)
