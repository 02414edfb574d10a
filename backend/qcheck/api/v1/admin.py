from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from qcheck.api.v1.converters import ledger_response, user_response
from qcheck.api.v1.dependencies import provide_actor, provide_ledger_service, provide_user_admin_service
from qcheck.api.v1.schemas.ledger import LedgerResponse
from qcheck.api.v1.schemas.user import UserCreateRequest, UserDeleteResponse, UserListResponse, UserResponse
from qcheck.application.admin import UserAdminService
from qcheck.application.ledgers import LedgerQueryService
from qcheck.domain.models import Actor, LedgerOwner, Role

router = APIRouter(tags=["admin"])


@router.post("/admin/users", response_model=UserResponse, status_code=201)
def create_user(
    body: UserCreateRequest,
    actor: Actor = Depends(provide_actor),
    service: UserAdminService = Depends(provide_user_admin_service),
):
    row = service.create_user(actor, name=body.name, email=body.email, role=Role(body.role))
    return user_response(row)


@router.get("/admin/users", response_model=UserListResponse)
def list_users(
    role: Role | None = Query(default=None),
    actor: Actor = Depends(provide_actor),
    service: UserAdminService = Depends(provide_user_admin_service),
):
    return UserListResponse(users=[user_response(row) for row in service.list_users(actor, role=role)])


@router.delete("/admin/users/{userId}", response_model=UserDeleteResponse)
def delete_user(
    userId: str,
    actor: Actor = Depends(provide_actor),
    service: UserAdminService = Depends(provide_user_admin_service),
):
    service.delete_user(actor, userId)
    return UserDeleteResponse(userId=userId)


@router.get("/me/ledger", response_model=LedgerResponse)
def my_ledger(actor: Actor = Depends(provide_actor), service: LedgerQueryService = Depends(provide_ledger_service)):
    owner, entries = service.own_ledger(actor)
    return ledger_response(owner, actor.id, entries)


@router.get("/ledgers/{ownerKind}/{ownerId}", response_model=LedgerResponse)
def get_ledger(
    ownerKind: LedgerOwner,
    ownerId: str,
    actor: Actor = Depends(provide_actor),
    service: LedgerQueryService = Depends(provide_ledger_service),
):
    entries = service.ledger_for(actor, owner=ownerKind, owner_id=ownerId)
    return ledger_response(ownerKind, ownerId, entries)
