from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.api.dependencies import get_store, require_user
from app.api.errors import failure_exception
from app.models.principal import Principal
from app.repos.store import Store
from app.services import membership_service, users_service

logger = logging.getLogger(__name__)

# Profile endpoints for the authenticated caller.  The account itself
# lives with the identity provider; this service keeps the profile the
# member listings show and reacts to upstream deletion.

router = APIRouter(prefix="/v1/users", tags=["users"])


class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    onboarding_status: str


class UserCreateIn(BaseModel):
    email: str
    full_name: str = ""


class MessageOut(BaseModel):
    message: str


@router.post("/me", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register_profile(
    payload: UserCreateIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> UserOut:
    try:
        user = await users_service.create_user(
            store, payload.email, payload.full_name, user_id=principal.user_id
        )
    except users_service.UserAlreadyExistsError:
        logger.warning("Duplicate user rejected email=%s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="user already exists",
        ) from None
    except users_service.UserValidationError as e:
        logger.warning("Invalid user payload: %s", e)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=str(e),
        ) from None

    return UserOut(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        onboarding_status=user.onboarding_status,
    )


@router.get("/me", response_model=UserOut)
async def get_profile(
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> UserOut:
    user = await users_service.get_user(store, principal.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserOut(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        onboarding_status=user.onboarding_status,
    )


@router.delete("/me/membership", response_model=MessageOut)
async def release_membership(
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> MessageOut:
    """Account-deletion hook: give up the caller's seat.

    Owners get 409 until they transfer ownership.
    """
    result = await membership_service.detach_deleted_account(store, principal.user_id)
    if not result.success:
        raise failure_exception(result.failure, result.message)
    return MessageOut(message=result.message)
