from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from qcheck.api.v1.converters import user_response
from qcheck.api.v1.dependencies import provide_actor, provide_store
from qcheck.api.v1.schemas.user import TokenRequest, TokenResponse, UserResponse
from qcheck.core.auth import create_token
from qcheck.core.config import get_settings
from qcheck.domain.models import Actor
from qcheck.infra.db.store import DatabaseStore

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=TokenResponse)
def issue_dev_token(body: TokenRequest, store: DatabaseStore = Depends(provide_store)):
    settings = get_settings()
    if not settings.dev_login_enabled:
        raise HTTPException(status_code=404, detail="Not found")

    user = store.get_user_by_email(body.email.strip().lower())
    if user is None:
        raise HTTPException(status_code=400, detail="Unknown email")

    token = create_token(settings, user_id=user.user_id, role=user.role)
    return TokenResponse(accessToken=token, user=user_response(user))


@router.get("/me", response_model=UserResponse)
def who_am_i(actor: Actor = Depends(provide_actor), store: DatabaseStore = Depends(provide_store)):
    user = store.get_user(actor.id)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authorized, unknown user")
    return user_response(user)
