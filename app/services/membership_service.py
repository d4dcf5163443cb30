"""Membership registry: who belongs to an organization, and as what.

Roles are ordered member < admin < owner.  Every organization has exactly
one owner; the owner can't be removed, only replaced through
transfer_ownership().  Removing a member and releasing their seat happen
in one transaction, as do the two role writes of an ownership transfer.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core.metrics import OWNERSHIP_TRANSFERS
from app.models.organization import (
    ORG_TYPES,
    ROLE_RANK,
    Member,
    Organization,
    OwnershipTransfer,
    Subscription,
)
from app.models.results import MemberView, OperationResult, OrganizationDetails
from app.repos.errors import StoreConflictError
from app.repos.store import Store, UnitOfWork
from app.services import seat_ledger

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_REASON = "Ownership transfer"
MSG_OWNER_REMOVAL = "Cannot remove organization owner; transfer ownership first"
MSG_OWNER_DELETION = "Organization owner must transfer ownership before deletion"


class OrganizationValidationError(ValueError):
    pass


class OrganizationConflictError(Exception):
    pass


class OwnerNotFoundError(LookupError):
    pass


async def _has_role(
    uow: UnitOfWork, user_id: UUID, organization_id: UUID, minimum_role: str
) -> bool:
    member = await uow.members.get(organization_id, user_id)
    return member is not None and member.has_at_least(minimum_role)


async def check_permission(
    store: Store, user_id: UUID, organization_id: UUID, minimum_role: str
) -> bool:
    """True iff the user belongs to the organization with role >= minimum_role."""
    if minimum_role not in ROLE_RANK:
        raise ValueError(f"unknown role {minimum_role!r}")
    async with store.transaction() as uow:
        return await _has_role(uow, user_id, organization_id, minimum_role)


async def _member_views(uow: UnitOfWork, organization_id: UUID) -> list[MemberView]:
    members = await uow.members.list_by_org(organization_id)
    users = {
        u.id: u for u in await uow.users.list_by_ids([m.user_id for m in members])
    }
    views = [
        MemberView(
            id=m.user_id,
            name=users[m.user_id].full_name if m.user_id in users else "",
            email=users[m.user_id].email if m.user_id in users else "",
            role=m.role,
            onboarding_status=(
                users[m.user_id].onboarding_status
                if m.user_id in users
                else "incomplete"
            ),
            joined_at=m.joined_at,
        )
        for m in members
    ]
    # Owner first, then admins, then members; newest first within a role
    views.sort(key=lambda v: v.joined_at, reverse=True)
    views.sort(key=lambda v: ROLE_RANK[v.role], reverse=True)
    return views


async def get_organization_members(
    store: Store, organization_id: UUID
) -> list[MemberView]:
    async with store.transaction() as uow:
        return await _member_views(uow, organization_id)


async def create_organization(
    store: Store,
    *,
    owner_id: UUID,
    name: str,
    org_type: str,
    plan: str,
    max_seats: int,
) -> Organization:
    """Create an organization, its trialing subscription, and the owner seat.

    Raises OrganizationValidationError for bad input, OwnerNotFoundError for
    an unknown user and OrganizationConflictError when the user already
    belongs to an organization.
    """
    name = name.strip()
    if not name:
        raise OrganizationValidationError("name must be non-empty")
    if org_type not in ORG_TYPES:
        raise OrganizationValidationError(
            f"type must be one of {'|'.join(ORG_TYPES)} (got {org_type!r})"
        )
    if max_seats < 1:
        raise OrganizationValidationError("max_seats must be at least 1")

    async with store.transaction() as uow:
        if await uow.users.get_by_id(owner_id) is None:
            raise OwnerNotFoundError(str(owner_id))
        if await uow.members.get_by_user(owner_id) is not None:
            raise OrganizationConflictError("user already belongs to an organization")

        org = Organization.new(name=name, type=org_type, owner_id=owner_id)
        await uow.organizations.add(org)
        # The owner's seat is counted up front: active_seats starts at 1
        await uow.subscriptions.add(
            Subscription.new(organization_id=org.id, plan=plan, max_seats=max_seats)
        )
        await uow.members.add(
            Member.new(organization_id=org.id, user_id=owner_id, role="owner")
        )

    logger.info(
        "Created organization id=%s type=%s plan=%s max_seats=%d owner=%s",
        org.id,
        org.type,
        plan,
        max_seats,
        owner_id,
    )
    return org


async def get_organization_details(
    store: Store, organization_id: UUID
) -> OrganizationDetails | None:
    async with store.transaction() as uow:
        org = await uow.organizations.get_by_id(organization_id)
        if org is None:
            return None
        return OrganizationDetails(
            organization=org,
            subscription=await uow.subscriptions.get(organization_id),
            members=await _member_views(uow, organization_id),
            pending_invitations=await uow.invitations.list_by_org(
                organization_id, status="pending"
            ),
        )


async def remove_educator(
    store: Store, organization_id: UUID, member_id: UUID, acting_user_id: UUID
) -> OperationResult:
    """Detach a member and release their seat, atomically."""
    try:
        async with store.transaction() as uow:
            # Serializes with transfer_ownership, which locks the same row
            await uow.organizations.get_by_id(organization_id, for_update=True)
            if not await _has_role(uow, acting_user_id, organization_id, "admin"):
                logger.warning(
                    "Remove denied: user=%s lacks admin in org=%s",
                    acting_user_id,
                    organization_id,
                )
                return OperationResult.fail("permission", "Insufficient permissions")

            target = await uow.members.get(organization_id, member_id)
            if target is None:
                return OperationResult.fail(
                    "not_found", "Educator not found in organization"
                )
            if target.role == "owner":
                logger.warning(
                    "Remove rejected: user=%s is the owner of org=%s",
                    member_id,
                    organization_id,
                )
                return OperationResult.fail("conflict", MSG_OWNER_REMOVAL)

            if not await uow.members.remove(organization_id, member_id):
                if await uow.members.get(organization_id, member_id) is not None:
                    # Promoted to owner after the role check above
                    return OperationResult.fail("conflict", MSG_OWNER_REMOVAL)
                return OperationResult.fail(
                    "not_found", "Educator not found in organization"
                )
            await seat_ledger.decrement_active_seats(uow, organization_id)
    except seat_ledger.SubscriptionNotFound:
        logger.error("Remove aborted: org=%s has no subscription", organization_id)
        return OperationResult.fail("not_found", "No subscription found")

    logger.info(
        "Removed educator user=%s from org=%s by=%s",
        member_id,
        organization_id,
        acting_user_id,
    )
    return OperationResult.ok("Educator removed successfully")


async def detach_deleted_account(store: Store, user_id: UUID) -> OperationResult:
    """Release the membership and seat of an account deleted upstream."""
    try:
        async with store.transaction() as uow:
            member = await uow.members.get_by_user(user_id)
            if member is None:
                return OperationResult.ok("User was not part of an organization")
            await uow.organizations.get_by_id(member.organization_id, for_update=True)
            member = await uow.members.get(member.organization_id, user_id)
            if member is None:
                return OperationResult.ok("User was not part of an organization")
            if member.role == "owner":
                logger.warning(
                    "Account deletion blocked: user=%s owns org=%s",
                    user_id,
                    member.organization_id,
                )
                return OperationResult.fail("conflict", MSG_OWNER_DELETION)
            if not await uow.members.remove(member.organization_id, user_id):
                if await uow.members.get(member.organization_id, user_id) is not None:
                    return OperationResult.fail("conflict", MSG_OWNER_DELETION)
                return OperationResult.ok("User was not part of an organization")
            await seat_ledger.decrement_active_seats(uow, member.organization_id)
    except seat_ledger.SubscriptionNotFound:
        return OperationResult.fail("not_found", "No subscription found")

    logger.info(
        "Detached deleted account user=%s from org=%s", user_id, member.organization_id
    )
    return OperationResult.ok("Membership released")


async def transfer_ownership(
    store: Store,
    *,
    organization_id: UUID,
    current_owner_id: UUID,
    new_owner_id: UUID,
    reason: str | None = None,
) -> OperationResult:
    """Hand ownership to an existing member; the old owner becomes admin.

    Both role writes, the organization's owner pointer and the audit record
    commit together, so no other transaction ever sees zero or two owners.
    """
    if current_owner_id == new_owner_id:
        return OperationResult.fail("validation", "New owner is already the owner")

    try:
        async with store.transaction() as uow:
            # Serialize concurrent transfers on the organization row
            org = await uow.organizations.get_by_id(organization_id, for_update=True)
            if org is None:
                return OperationResult.fail("not_found", "Organization not found")

            current = await uow.members.get(organization_id, current_owner_id)
            if (
                current is None
                or current.role != "owner"
                or org.owner_id != current_owner_id
            ):
                logger.warning(
                    "Transfer rejected: user=%s is not the owner of org=%s",
                    current_owner_id,
                    organization_id,
                )
                return OperationResult.fail("permission", "Invalid current owner")

            if await uow.members.get(organization_id, new_owner_id) is None:
                return OperationResult.fail(
                    "conflict", "New owner must be a member of the organization"
                )

            # Demote first so the one-owner constraint holds statement by statement
            await uow.members.update_role(organization_id, current_owner_id, "admin")
            await uow.members.update_role(organization_id, new_owner_id, "owner")
            await uow.organizations.set_owner(organization_id, new_owner_id)
            await uow.ownership_transfers.add(
                OwnershipTransfer.new(
                    organization_id=organization_id,
                    previous_owner_id=current_owner_id,
                    new_owner_id=new_owner_id,
                    transferred_by=current_owner_id,
                    reason=(reason or "").strip() or DEFAULT_TRANSFER_REASON,
                )
            )
    except StoreConflictError:
        logger.warning("Transfer conflict in org=%s, rolled back", organization_id)
        return OperationResult.fail("conflict", "Ownership changed concurrently")

    OWNERSHIP_TRANSFERS.inc()
    logger.info(
        "Transferred ownership of org=%s from=%s to=%s",
        organization_id,
        current_owner_id,
        new_owner_id,
    )
    return OperationResult.ok("Ownership transferred successfully")


async def get_ownership_history(
    store: Store, organization_id: UUID
) -> list[OwnershipTransfer]:
    async with store.transaction() as uow:
        return await uow.ownership_transfers.list_by_org(organization_id)
