"""Result objects returned by the membership core.

Business-rule failures never raise across the service boundary.  Each
failed result names its FailureKind so HTTP handlers can pick a status
code without parsing the message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal
from uuid import UUID

from app.models.invitation import Invitation
from app.models.organization import Organization, Subscription

FailureKind = Literal["validation", "not_found", "permission", "capacity", "conflict"]


@dataclass(frozen=True, slots=True)
class SeatAvailability:
    available: bool
    max_seats: int
    active_seats: int
    message: str | None = None


@dataclass(frozen=True, slots=True)
class OperationResult:
    success: bool
    message: str
    failure: FailureKind | None = None

    @staticmethod
    def ok(message: str) -> OperationResult:
        return OperationResult(success=True, message=message)

    @staticmethod
    def fail(failure: FailureKind, message: str) -> OperationResult:
        return OperationResult(success=False, message=message, failure=failure)


@dataclass(frozen=True, slots=True)
class InviteResult:
    success: bool
    invited_count: int = 0
    invitations: tuple[Invitation, ...] = ()
    errors: tuple[str, ...] = ()
    failure: FailureKind | None = None


@dataclass(frozen=True, slots=True)
class InvitationCheck:
    valid: bool
    invitation: Invitation | None = None
    error: str | None = None
    failure: FailureKind | None = None


@dataclass(frozen=True, slots=True)
class AcceptResult:
    success: bool
    message: str
    organization_id: UUID | None = None
    failure: FailureKind | None = None


@dataclass(frozen=True, slots=True)
class MemberView:
    id: UUID
    name: str
    email: str
    role: str
    onboarding_status: str
    joined_at: datetime


@dataclass(frozen=True, slots=True)
class OrganizationDetails:
    organization: Organization
    subscription: Subscription | None
    members: list[MemberView] = field(default_factory=list)
    pending_invitations: list[Invitation] = field(default_factory=list)
