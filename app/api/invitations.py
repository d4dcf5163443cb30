"""Invitation endpoints.

Issuing, listing and canceling live under the organization; validating
and accepting are addressed by token only, since the invitee isn't a
member yet.  The token is returned to the inviting admin, who delivers
it to the invitee.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_store, require_org_role, require_user
from app.api.errors import failure_exception
from app.models.invitation import Invitation
from app.models.principal import Principal
from app.repos.store import Store
from app.services import invitation_service

logger = logging.getLogger(__name__)

org_router = APIRouter(prefix="/v1/organizations", tags=["invitations"])
router = APIRouter(prefix="/v1/invitations", tags=["invitations"])

_require_admin = require_org_role("admin")


class InviteIn(BaseModel):
    emails: list[str] = Field(min_length=1)


class InvitationOut(BaseModel):
    id: str
    email: str
    organization_id: str
    status: str
    token: str
    invited_by: str
    expires_at: datetime
    created_at: datetime
    accepted_at: datetime | None = None

    @staticmethod
    def of(invitation: Invitation) -> InvitationOut:
        return InvitationOut(
            id=str(invitation.id),
            email=invitation.email,
            organization_id=str(invitation.organization_id),
            status=invitation.status,
            token=invitation.token,
            invited_by=str(invitation.invited_by),
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
            accepted_at=invitation.accepted_at,
        )


class InviteOut(BaseModel):
    invited_count: int
    invitations: list[InvitationOut]
    errors: list[str]


class InvitationCheckOut(BaseModel):
    valid: bool
    email: str
    organization_id: str
    expires_at: datetime


class AcceptIn(BaseModel):
    token: str = Field(min_length=1)


class AcceptOut(BaseModel):
    message: str
    organization_id: str


@org_router.post(
    "/{org_id}/invitations",
    response_model=InviteOut,
    status_code=status.HTTP_201_CREATED,
)
async def invite_educators(
    org_id: UUID,
    body: InviteIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> InviteOut:
    """Invite a batch of educators. Admin or owner; all-or-nothing on seats."""
    result = await invitation_service.invite_educators(
        store,
        emails=body.emails,
        organization_id=org_id,
        invited_by=principal.user_id,
    )
    if not result.success:
        raise failure_exception(
            result.failure,
            {"message": result.errors[-1], "errors": list(result.errors)},
        )
    return InviteOut(
        invited_count=result.invited_count,
        invitations=[InvitationOut.of(i) for i in result.invitations],
        errors=list(result.errors),
    )


@org_router.get("/{org_id}/invitations", response_model=list[InvitationOut])
async def list_invitations(
    org_id: UUID,
    principal: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
    status_filter: Annotated[
        Literal["pending", "accepted", "expired", "canceled"] | None,
        Query(alias="status"),
    ] = None,
) -> list[InvitationOut]:
    invitations = await invitation_service.get_organization_invitations(
        store, org_id, status=status_filter
    )
    return [InvitationOut.of(i) for i in invitations]


@org_router.delete(
    "/{org_id}/invitations/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def cancel_invitation(
    org_id: UUID,
    invitation_id: UUID,
    principal: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> None:
    # Scope the lookup to the path's org so an admin of one org can't
    # probe invitation ids belonging to another
    async with store.transaction() as uow:
        invitation = await uow.invitations.get_by_id(invitation_id)
    if invitation is None or invitation.organization_id != org_id:
        raise HTTPException(status_code=404, detail="Invitation not found")

    if not await invitation_service.cancel_invitation(
        store, invitation_id, principal.user_id
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invitation has already been processed",
        )


@router.get("/validate", response_model=InvitationCheckOut)
async def validate_invitation(
    token: Annotated[str, Query(min_length=1)],
    store: Annotated[Store, Depends(get_store)],
) -> InvitationCheckOut:
    """Public: is this token redeemable right now?"""
    check = await invitation_service.validate_invitation(store, token)
    if not check.valid or check.invitation is None:
        raise failure_exception(check.failure, check.error)
    return InvitationCheckOut(
        valid=True,
        email=check.invitation.email,
        organization_id=str(check.invitation.organization_id),
        expires_at=check.invitation.expires_at,
    )


@router.post("/accept", response_model=AcceptOut)
async def accept_invitation(
    body: AcceptIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> AcceptOut:
    result = await invitation_service.accept_invitation(
        store, body.token, principal.user_id
    )
    if not result.success:
        raise failure_exception(result.failure, result.message)
    return AcceptOut(message=result.message, organization_id=str(result.organization_id))
