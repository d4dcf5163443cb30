"""Invitation lifecycle: issue, validate, expire, cancel, accept.

    pending ──accept──▶ accepted
       │ ├────cancel──▶ canceled
       │ └────expiry──▶ expired

Every transition is a compare-and-set on ``status = 'pending'``, so terminal
states never change again and two requests can't both move the same
invitation.  Expiry is lazy: an overdue invitation is marked expired the
next time something reads it through validate/accept (or when the optional
expire_stale_invitations sweep runs).

Acceptance is one transaction: mark accepted, admit the member, consume a
seat.  If the seat can't be consumed the whole thing rolls back and the
invitation stays pending, so it can be accepted later once a seat frees up.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from uuid import UUID

from app.core.config import SETTINGS
from app.core.metrics import INVITATION_BATCHES, INVITATION_TRANSITIONS
from app.models.invitation import Invitation
from app.models.organization import Member
from app.models.results import AcceptResult, InvitationCheck, InviteResult
from app.models.user import normalize_email
from app.repos.errors import StoreConflictError
from app.repos.store import Store, UnitOfWork
from app.services import seat_ledger

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MSG_NOT_FOUND = "Invalid invitation token"
MSG_PROCESSED = "Invitation has already been processed"
MSG_EXPIRED = "Invitation has expired"
MSG_NO_SEATS = "No seats available in organization"


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def _check_token(
    uow: UnitOfWork, token: str, now: datetime
) -> tuple[Invitation | None, InvitationCheck | None]:
    """Shared validate/accept guard. Returns (invitation, None) when the
    invitation is usable, else (None, failed check).  Overdue invitations
    are moved to expired as a side effect."""
    invitation = await uow.invitations.get_by_token(token)
    if invitation is None:
        return None, InvitationCheck(
            valid=False, error=MSG_NOT_FOUND, failure="not_found"
        )

    if not invitation.is_pending:
        return None, InvitationCheck(
            valid=False, error=MSG_PROCESSED, failure="conflict"
        )

    if invitation.is_overdue(now):
        if await uow.invitations.transition(invitation.id, "pending", "expired"):
            INVITATION_TRANSITIONS.labels(to_status="expired").inc()
            logger.info(
                "Invitation expired on read id=%s org=%s",
                invitation.id,
                invitation.organization_id,
                extra={"invitation_id": str(invitation.id)},
            )
        return None, InvitationCheck(valid=False, error=MSG_EXPIRED, failure="conflict")

    return invitation, None


async def invite_educators(
    store: Store,
    emails: list[str],
    organization_id: UUID,
    invited_by: UUID,
) -> InviteResult:
    """Invite a batch of educators, all-or-nothing on seat capacity.

    Malformed addresses, in-batch duplicates, emails with a pending
    invitation and emails that already belong to a member are skipped and
    reported in ``errors``.  If the survivors don't all fit in the
    remaining seats, nothing is created.
    """
    errors: list[str] = []
    candidates: list[str] = []
    for raw in emails:
        email = normalize_email(raw)
        if not is_valid_email(email):
            errors.append(f"Invalid email format: {raw}")
        elif email in candidates:
            errors.append(f"Duplicate email in request: {email}")
        else:
            candidates.append(email)

    if not candidates:
        errors.append("No valid emails provided")
        INVITATION_BATCHES.labels(outcome="rejected").inc()
        return InviteResult(success=False, errors=tuple(errors), failure="validation")

    async with store.transaction() as uow:
        inviter = await uow.members.get(organization_id, invited_by)
        if inviter is None or not inviter.has_at_least("admin"):
            logger.warning(
                "Invite denied: user=%s lacks admin in org=%s",
                invited_by,
                organization_id,
            )
            INVITATION_BATCHES.labels(outcome="rejected").inc()
            return InviteResult(
                success=False,
                errors=(*errors, "Insufficient permissions"),
                failure="permission",
            )

        pending = await uow.invitations.list_pending_emails(organization_id, candidates)
        members = await uow.members.list_by_org(organization_id)
        member_emails = {
            u.email for u in await uow.users.list_by_ids([m.user_id for m in members])
        }

        survivors: list[str] = []
        for email in candidates:
            if email in pending:
                errors.append(f"Invitation already pending: {email}")
            elif email in member_emails:
                errors.append(f"Already a member of the organization: {email}")
            else:
                survivors.append(email)

        if not survivors:
            errors.append(
                "All provided emails are already invited or part of the organization"
            )
            INVITATION_BATCHES.labels(outcome="rejected").inc()
            return InviteResult(success=False, errors=tuple(errors), failure="conflict")

        # Lock the subscription row so a concurrent batch can't read the
        # same remaining-seat count
        availability = await seat_ledger.check_availability(
            uow, organization_id, len(survivors), for_update=True
        )
        if not availability.available:
            logger.warning(
                "Invite batch rejected org=%s requested=%d active=%d max=%d",
                organization_id,
                len(survivors),
                availability.active_seats,
                availability.max_seats,
            )
            INVITATION_BATCHES.labels(outcome="rejected").inc()
            return InviteResult(
                success=False,
                errors=(*errors, availability.message or "Not enough seats available"),
                failure="capacity",
            )

        created: list[Invitation] = []
        for email in survivors:
            invitation = Invitation.new(
                email=email,
                organization_id=organization_id,
                invited_by=invited_by,
                ttl_days=SETTINGS.invitation_ttl_days,
            )
            await uow.invitations.add(invitation)
            created.append(invitation)

    INVITATION_BATCHES.labels(outcome="issued").inc()
    logger.info(
        "Issued %d invitation(s) org=%s by=%s skipped=%d",
        len(created),
        organization_id,
        invited_by,
        len(errors),
    )
    return InviteResult(
        success=True,
        invited_count=len(created),
        invitations=tuple(created),
        errors=tuple(errors),
    )


async def validate_invitation(store: Store, token: str) -> InvitationCheck:
    if not token:
        return InvitationCheck(
            valid=False, error="Invitation token is required", failure="validation"
        )
    async with store.transaction() as uow:
        invitation, failed = await _check_token(uow, token, _utcnow())
    if failed is not None:
        return failed
    return InvitationCheck(valid=True, invitation=invitation)


async def accept_invitation(store: Store, token: str, user_id: UUID) -> AcceptResult:
    """Redeem a token: accepted + member admitted + seat consumed, or nothing."""
    if not token:
        return AcceptResult(
            success=False, message="Invitation token is required", failure="validation"
        )

    try:
        async with store.transaction() as uow:
            now = _utcnow()
            # Re-validated here even if the caller just called validate_invitation
            invitation, failed = await _check_token(uow, token, now)
            if failed is not None:
                return AcceptResult(
                    success=False, message=failed.error or "", failure=failed.failure
                )
            org_id = invitation.organization_id

            if await uow.users.get_by_id(user_id) is None:
                return AcceptResult(
                    success=False, message="User not found", failure="not_found"
                )
            if await uow.members.get_by_user(user_id) is not None:
                return AcceptResult(
                    success=False,
                    message="User already belongs to an organization",
                    failure="conflict",
                )

            availability = await seat_ledger.check_availability(uow, org_id)
            if not availability.available:
                logger.warning(
                    "Accept rejected, no seats: invitation=%s org=%s",
                    invitation.id,
                    org_id,
                )
                return AcceptResult(
                    success=False,
                    message=availability.message or MSG_NO_SEATS,
                    failure="capacity",
                )

            if (
                await uow.invitations.transition(
                    invitation.id, "pending", "accepted", accepted_at=now
                )
                is None
            ):
                return AcceptResult(
                    success=False, message=MSG_PROCESSED, failure="conflict"
                )
            await uow.members.add(
                Member.new(organization_id=org_id, user_id=user_id, role="member")
            )
            await seat_ledger.increment_active_seats(uow, org_id)
    except seat_ledger.SeatLimitExceeded:
        logger.warning("Accept rolled back, organization filled concurrently")
        return AcceptResult(success=False, message=MSG_NO_SEATS, failure="capacity")
    except seat_ledger.SubscriptionNotFound:
        return AcceptResult(
            success=False, message="No active subscription found", failure="capacity"
        )
    except StoreConflictError as e:
        logger.warning("Accept rolled back on conflict: %s", e)
        return AcceptResult(
            success=False,
            message="User already belongs to an organization",
            failure="conflict",
        )

    INVITATION_TRANSITIONS.labels(to_status="accepted").inc()
    logger.info(
        "Invitation accepted id=%s org=%s user=%s",
        invitation.id,
        org_id,
        user_id,
        extra={"invitation_id": str(invitation.id), "organization_id": str(org_id)},
    )
    return AcceptResult(
        success=True,
        message="Invitation accepted successfully",
        organization_id=org_id,
    )


async def cancel_invitation(
    store: Store, invitation_id: UUID, acting_user_id: UUID
) -> bool:
    """Cancel a pending invitation. False (never an exception) when it's
    missing, already terminal, or the caller isn't an admin of its org."""
    async with store.transaction() as uow:
        invitation = await uow.invitations.get_by_id(invitation_id)
        if invitation is None or not invitation.is_pending:
            return False

        actor = await uow.members.get(invitation.organization_id, acting_user_id)
        if actor is None or not actor.has_at_least("admin"):
            logger.warning(
                "Cancel denied: user=%s lacks admin in org=%s",
                acting_user_id,
                invitation.organization_id,
            )
            return False

        if await uow.invitations.transition(invitation_id, "pending", "canceled") is None:
            return False

    INVITATION_TRANSITIONS.labels(to_status="canceled").inc()
    logger.info(
        "Invitation canceled id=%s by=%s",
        invitation_id,
        acting_user_id,
        extra={"invitation_id": str(invitation_id)},
    )
    return True


async def get_organization_invitations(
    store: Store, organization_id: UUID, status: str | None = None
) -> list[Invitation]:
    """Newest first. Pass status="pending" for the usual display listing."""
    async with store.transaction() as uow:
        return await uow.invitations.list_by_org(organization_id, status=status)


async def expire_stale_invitations(store: Store, now: datetime | None = None) -> int:
    """Mark every overdue pending invitation expired. Returns how many moved.

    Produces the same end state lazy expiry would on the next read.
    """
    now = now or _utcnow()
    expired = 0
    async with store.transaction() as uow:
        for invitation in await uow.invitations.list_overdue_pending(now):
            if await uow.invitations.transition(invitation.id, "pending", "expired"):
                expired += 1
    if expired:
        INVITATION_TRANSITIONS.labels(to_status="expired").inc(expired)
        logger.info("Expired %d stale invitation(s)", expired)
    return expired
