from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from qcheck.application.admin import PaperAdminService, UserAdminService
from qcheck.application.authoring import AuthoringService
from qcheck.application.claims import ClaimService
from qcheck.application.ledgers import LedgerQueryService
from qcheck.application.review import ReviewCoordinator
from qcheck.core.auth import InvalidTokenError, decode_token
from qcheck.core.config import get_settings
from qcheck.domain.models import Actor
from qcheck.infra.db.store import DatabaseStore
from qcheck.infra.ports.storage import StoragePort
from qcheck.infra.storage.local import LocalFileStorage

_bearer = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_store() -> DatabaseStore:
    return DatabaseStore()


@lru_cache(maxsize=1)
def get_storage() -> StoragePort:
    settings = get_settings()
    if settings.storage_backend != "local":
        raise RuntimeError(f"Unsupported QCHECK_STORAGE_BACKEND: {settings.storage_backend}")
    return LocalFileStorage(base_dir=settings.upload_dir)


def get_review_coordinator() -> ReviewCoordinator:
    return ReviewCoordinator(store=get_store(), bulk_limit=get_settings().bulk_approve_limit)


def get_claim_service() -> ClaimService:
    return ClaimService(store=get_store())


def get_authoring_service() -> AuthoringService:
    return AuthoringService(store=get_store(), storage=get_storage())


def get_paper_admin_service() -> PaperAdminService:
    return PaperAdminService(store=get_store(), storage=get_storage())


def get_user_admin_service() -> UserAdminService:
    return UserAdminService(store=get_store())


def get_ledger_service() -> LedgerQueryService:
    return LedgerQueryService(store=get_store())


def provide_store() -> DatabaseStore:
    return get_store()


def provide_review_coordinator() -> ReviewCoordinator:
    return get_review_coordinator()


def provide_claim_service() -> ClaimService:
    return get_claim_service()


def provide_authoring_service() -> AuthoringService:
    return get_authoring_service()


def provide_paper_admin_service() -> PaperAdminService:
    return get_paper_admin_service()


def provide_user_admin_service() -> UserAdminService:
    return get_user_admin_service()


def provide_ledger_service() -> LedgerQueryService:
    return get_ledger_service()


def provide_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    store: DatabaseStore = Depends(provide_store),
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    try:
        actor = decode_token(get_settings(), credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = store.get_user(actor.id)
    if user is None or user.role != actor.role:
        raise HTTPException(status_code=401, detail="Not authorized, unknown user")
    return actor
