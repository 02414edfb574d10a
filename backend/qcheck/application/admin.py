from __future__ import annotations

import logging
from dataclasses import dataclass

from qcheck.core.errors import ConflictError, NotFoundError, ValidationError
from qcheck.domain.models import Actor, PaperRecord, Role, UserRecord
from qcheck.domain.workflow import Capability, ensure_capability
from qcheck.infra.db.store import DatabaseStore
from qcheck.infra.ports.storage import StoragePort, StoredObject

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF-"


@dataclass(frozen=True)
class PaperUpload:
    filename: str
    payload: bytes


class PaperAdminService:
    def __init__(self, *, store: DatabaseStore, storage: StoragePort):
        self.store = store
        self.storage = storage

    def upload_papers(self, admin: Actor, uploads: list[PaperUpload]) -> list[PaperRecord]:
        """Store each PDF and register it as an unclaimed paper.

        All papers of one request are registered together; if any fails, the
        already stored files are removed again.
        """
        ensure_capability(admin, Capability.MANAGE_PAPERS)
        if not uploads:
            raise ValidationError("No files uploaded")
        names = [(item.filename or "").strip() for item in uploads]
        for name, item in zip(names, uploads):
            if not name:
                raise ValidationError("Every paper needs a file name")
            if not item.payload.startswith(_PDF_MAGIC):
                raise ValidationError(f"{name} is not a PDF")
        if len(set(names)) != len(names):
            raise ValidationError("Duplicate file names in one upload")

        stored: list[StoredObject] = []
        created: list[PaperRecord] = []
        try:
            with self.store.unit_of_work() as db:
                for name, item in zip(names, uploads):
                    obj = self.storage.upload(item.payload, content_type="application/pdf", folder="papers", suffix=".pdf")
                    stored.append(obj)
                    record = self.store.create_paper(
                        db, name=name, source_url=obj.url, storage_handle=obj.handle, uploaded_by=admin.id
                    )
                    if record is None:
                        raise ConflictError(f"A paper named {name} already exists")
                    created.append(record)
        except Exception:
            for obj in stored:
                self.storage.delete(obj.handle)
            raise

        logger.info("%d paper(s) uploaded by %s", len(created), admin.id)
        return created

    def list_papers(self, admin: Actor) -> list[PaperRecord]:
        ensure_capability(admin, Capability.MANAGE_PAPERS)
        return self.store.list_papers()

    def delete_paper(self, admin: Actor, paper_id: str) -> None:
        ensure_capability(admin, Capability.MANAGE_PAPERS)
        with self.store.unit_of_work() as db:
            handle = self.store.delete_paper(db, paper_id)
            if handle is None:
                raise NotFoundError(f"Paper {paper_id} not found")

        # File cleanup runs only once the row delete has committed.
        self.storage.delete(handle)
        logger.info("Paper %s deleted by %s", paper_id, admin.id)


class UserAdminService:
    def __init__(self, *, store: DatabaseStore):
        self.store = store

    def create_user(self, admin: Actor, *, name: str, email: str, role: Role) -> UserRecord:
        ensure_capability(admin, Capability.MANAGE_USERS)
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name or not email:
            raise ValidationError("Name and email are required")
        if "@" not in email:
            raise ValidationError("Email address is not valid")
        if role not in (Role.MAKER, Role.CHECKER):
            raise ValidationError("Role must be 'maker' or 'checker'")

        with self.store.unit_of_work() as db:
            record = self.store.create_user(db, name=name, email=email, role=role)
            if record is None:
                raise ConflictError("User with this email already exists")

        logger.info("User %s created with role %s", record.user_id, role.value)
        return record

    def list_users(self, admin: Actor, *, role: Role | None = None) -> list[UserRecord]:
        ensure_capability(admin, Capability.MANAGE_USERS)
        return self.store.list_users(role=role)

    def delete_user(self, admin: Actor, user_id: str) -> None:
        ensure_capability(admin, Capability.MANAGE_USERS)
        with self.store.unit_of_work() as db:
            if not self.store.delete_user(db, user_id):
                raise NotFoundError(f"User {user_id} not found")
        logger.info("User %s deleted by %s", user_id, admin.id)
