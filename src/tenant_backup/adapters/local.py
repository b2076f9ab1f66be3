"""Directory-backed blob storage.

``LocalBlobStorage`` implements the ``BlobStorage`` protocol on top of a
local directory.  Object paths map onto relative file paths below the
root, so ``backups/2024/3/backup_full_2024-03-01_<id>.json`` lands in
``<root>/backups/2024/3/``.  Used by ``postgres`` profiles that have no
Supabase Storage bucket, and by tests.

Usage:
    from tenant_backup.adapters.local import LocalBlobStorage

    storage = LocalBlobStorage("./var/backups")
    await storage.put_object("backups/x.json", b"{}")
"""

import asyncio
from pathlib import Path

from tenant_backup.errors import StorageError


class LocalBlobStorage:
    """``BlobStorage`` over a directory tree.

    Args:
        root: Directory holding the objects.  Created on first write.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise StorageError(f"Object path escapes storage root: {path}")
        return target

    async def put_object(
        self, path: str, data: bytes, content_type: str = "application/json"
    ) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Cannot write '{path}': {e}") from e

    async def get_object(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise StorageError(f"Cannot read '{path}': {e}") from e

    async def delete_objects(self, paths: list[str]) -> None:
        targets = [self._resolve(p) for p in paths]

        def _remove() -> None:
            for target in targets:
                target.unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_remove)
        except OSError as e:
            raise StorageError(f"Cannot delete objects: {e}") from e
