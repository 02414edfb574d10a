from __future__ import annotations

import uuid
from pathlib import Path

from qcheck.infra.ports.storage import StoragePort, StoredObject


class LocalFileStorage(StoragePort):
    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, handle: str) -> Path:
        dest = (self.base_dir / handle).resolve()
        if self.base_dir.resolve() not in dest.parents:
            raise ValueError(f"Handle escapes the storage root: {handle}")
        return dest

    def upload(self, data: bytes, *, content_type: str | None, folder: str, suffix: str) -> StoredObject:
        handle = f"{folder}/{uuid.uuid4().hex}{suffix}"
        dest = self._resolve(handle)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return StoredObject(url=self.build_url(handle), handle=handle)

    def delete(self, handle: str) -> None:
        self._resolve(handle).unlink(missing_ok=True)

    def build_url(self, handle: str) -> str:
        return f"/uploads/{handle}"
