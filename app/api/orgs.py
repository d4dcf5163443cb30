"""Organization management endpoints.

Org context is resolved from the URL path and checked against the
caller's membership on every request.  Handlers stay thin: they call
membership_service / seat_ledger and translate the result.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import (
    get_store,
    require_org_role,
    require_user,
    resolve_org_principal,
)
from app.api.errors import failure_exception
from app.models.principal import Principal
from app.models.results import MemberView
from app.repos.store import Store
from app.services import membership_service, seat_ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/organizations", tags=["organizations"])

_require_admin = require_org_role("admin")
_require_owner = require_org_role("owner")


def _org_id(principal: Principal) -> UUID:
    """org_id from an org-scoped Principal, or 500 if the guard didn't run."""
    if principal.org_id is None:
        raise HTTPException(status_code=500, detail="org context not resolved")
    return principal.org_id


# --- Pydantic schemas ---


class OrgCreateIn(BaseModel):
    name: str
    type: str
    plan: str = "trial"
    max_seats: int = Field(default=5, ge=1)


class OrgOut(BaseModel):
    id: str
    name: str
    type: str
    owner_id: str


class SubscriptionOut(BaseModel):
    plan: str
    status: str
    max_seats: int
    active_seats: int


class MemberOut(BaseModel):
    id: str
    name: str
    email: str
    role: str
    onboarding_status: str
    joined_at: datetime

    @staticmethod
    def of(view: MemberView) -> MemberOut:
        return MemberOut(
            id=str(view.id),
            name=view.name,
            email=view.email,
            role=view.role,
            onboarding_status=view.onboarding_status,
            joined_at=view.joined_at,
        )


class PendingInvitationOut(BaseModel):
    id: str
    email: str
    expires_at: datetime


class OrgDetailsOut(BaseModel):
    organization: OrgOut
    subscription: SubscriptionOut | None
    members: list[MemberOut]
    pending_invitations: list[PendingInvitationOut]


class TransferOwnershipIn(BaseModel):
    new_owner_id: UUID
    reason: str | None = None


class OwnershipTransferOut(BaseModel):
    previous_owner_id: str
    new_owner_id: str
    transferred_by: str
    reason: str
    created_at: datetime


class MessageOut(BaseModel):
    message: str


class SeatAvailabilityOut(BaseModel):
    available: bool
    max_seats: int
    active_seats: int
    message: str | None = None


# --- Endpoints ---


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
async def create_org(
    body: OrgCreateIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> OrgOut:
    """Create an organization. The caller becomes its owner."""
    try:
        org = await membership_service.create_organization(
            store,
            owner_id=principal.user_id,
            name=body.name,
            org_type=body.type,
            plan=body.plan,
            max_seats=body.max_seats,
        )
    except membership_service.OrganizationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except membership_service.OwnerNotFoundError:
        raise HTTPException(status_code=404, detail="User not found") from None
    except membership_service.OrganizationConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None

    return OrgOut(id=str(org.id), name=org.name, type=org.type, owner_id=str(org.owner_id))


@router.get("/{org_id}", response_model=OrgDetailsOut)
async def get_org(
    principal: Annotated[Principal, Depends(resolve_org_principal)],
    store: Annotated[Store, Depends(get_store)],
) -> OrgDetailsOut:
    """Organization, subscription, members and pending invitations. Members only."""
    details = await membership_service.get_organization_details(
        store, _org_id(principal)
    )
    if details is None:
        raise HTTPException(status_code=404, detail="Organization not found")

    org, sub = details.organization, details.subscription
    return OrgDetailsOut(
        organization=OrgOut(
            id=str(org.id), name=org.name, type=org.type, owner_id=str(org.owner_id)
        ),
        subscription=(
            SubscriptionOut(
                plan=sub.plan,
                status=sub.status,
                max_seats=sub.max_seats,
                active_seats=sub.active_seats,
            )
            if sub is not None
            else None
        ),
        members=[MemberOut.of(m) for m in details.members],
        pending_invitations=[
            PendingInvitationOut(id=str(i.id), email=i.email, expires_at=i.expires_at)
            for i in details.pending_invitations
        ],
    )


@router.get("/{org_id}/members", response_model=list[MemberOut])
async def list_members(
    principal: Annotated[Principal, Depends(resolve_org_principal)],
    store: Annotated[Store, Depends(get_store)],
) -> list[MemberOut]:
    views = await membership_service.get_organization_members(store, _org_id(principal))
    return [MemberOut.of(v) for v in views]


@router.delete("/{org_id}/members/{member_id}", response_model=MessageOut)
async def remove_member(
    member_id: UUID,
    principal: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> MessageOut:
    """Remove an educator and free their seat. Admin or owner."""
    result = await membership_service.remove_educator(
        store, _org_id(principal), member_id, principal.user_id
    )
    if not result.success:
        raise failure_exception(result.failure, result.message)
    return MessageOut(message=result.message)


@router.post("/{org_id}/ownership", response_model=MessageOut)
async def transfer_ownership(
    body: TransferOwnershipIn,
    principal: Annotated[Principal, Depends(_require_owner)],
    store: Annotated[Store, Depends(get_store)],
) -> MessageOut:
    """Hand ownership to another member. Owner only."""
    result = await membership_service.transfer_ownership(
        store,
        organization_id=_org_id(principal),
        current_owner_id=principal.user_id,
        new_owner_id=body.new_owner_id,
        reason=body.reason,
    )
    if not result.success:
        raise failure_exception(result.failure, result.message)
    return MessageOut(message=result.message)


@router.get("/{org_id}/ownership", response_model=list[OwnershipTransferOut])
async def ownership_history(
    principal: Annotated[Principal, Depends(_require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> list[OwnershipTransferOut]:
    """Past ownership transfers, oldest first. Admin or owner."""
    transfers = await membership_service.get_ownership_history(
        store, _org_id(principal)
    )
    return [
        OwnershipTransferOut(
            previous_owner_id=str(t.previous_owner_id),
            new_owner_id=str(t.new_owner_id),
            transferred_by=str(t.transferred_by),
            reason=t.reason,
            created_at=t.created_at,
        )
        for t in transfers
    ]


@router.get("/{org_id}/seats", response_model=SeatAvailabilityOut)
async def seat_availability(
    principal: Annotated[Principal, Depends(resolve_org_principal)],
    store: Annotated[Store, Depends(get_store)],
    requested_seats: Annotated[int, Query(ge=1)] = 1,
) -> SeatAvailabilityOut:
    async with store.transaction() as uow:
        availability = await seat_ledger.check_availability(
            uow, _org_id(principal), requested_seats
        )
    return SeatAvailabilityOut(
        available=availability.available,
        max_seats=availability.max_seats,
        active_seats=availability.active_seats,
        message=availability.message,
    )
