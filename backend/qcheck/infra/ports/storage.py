from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredObject:
    url: str
    handle: str


class StoragePort(ABC):
    @abstractmethod
    def upload(self, data: bytes, *, content_type: str | None, folder: str, suffix: str) -> StoredObject:
        """Persist bytes and return a retrievable URL plus a handle for deletion."""

    @abstractmethod
    def delete(self, handle: str) -> None:
        """Remove a stored object. Unknown handles are ignored."""
