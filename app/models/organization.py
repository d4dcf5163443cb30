from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

OrgType = Literal["school", "district", "center"]
OrgRole = Literal["owner", "admin", "member"]
SubscriptionStatus = Literal["trialing", "active", "past_due", "canceled"]

ORG_TYPES: tuple[str, ...] = ("school", "district", "center")

# member < admin < owner
ROLE_RANK: dict[str, int] = {"member": 0, "admin": 1, "owner": 2}

# Seats can only be consumed while the subscription is in good standing
SEAT_CONSUMING_STATUSES: frozenset[str] = frozenset({"active", "trialing"})


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    type: str  # school|district|center
    owner_id: UUID
    created_at: datetime

    @staticmethod
    def new(*, name: str, type: str, owner_id: UUID) -> Organization:
        return Organization(
            id=uuid4(),
            name=name,
            type=type,
            owner_id=owner_id,
            created_at=datetime.now(UTC),
        )


@dataclass(frozen=True, slots=True)
class Subscription:
    organization_id: UUID
    plan: str
    max_seats: int
    active_seats: int
    status: str  # trialing|active|past_due|canceled

    @property
    def remaining_seats(self) -> int:
        return self.max_seats - self.active_seats

    @staticmethod
    def new(*, organization_id: UUID, plan: str, max_seats: int) -> Subscription:
        # The owner occupies the first seat
        return Subscription(
            organization_id=organization_id,
            plan=plan,
            max_seats=max_seats,
            active_seats=1,
            status="trialing",
        )


@dataclass(frozen=True, slots=True)
class Member:
    organization_id: UUID
    user_id: UUID
    role: str  # owner|admin|member
    joined_at: datetime

    def has_at_least(self, minimum_role: str) -> bool:
        return ROLE_RANK[self.role] >= ROLE_RANK[minimum_role]

    @staticmethod
    def new(*, organization_id: UUID, user_id: UUID, role: str) -> Member:
        return Member(
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            joined_at=datetime.now(UTC),
        )


@dataclass(frozen=True, slots=True)
class OwnershipTransfer:
    id: UUID
    organization_id: UUID
    previous_owner_id: UUID
    new_owner_id: UUID
    transferred_by: UUID
    reason: str
    created_at: datetime

    @staticmethod
    def new(
        *,
        organization_id: UUID,
        previous_owner_id: UUID,
        new_owner_id: UUID,
        transferred_by: UUID,
        reason: str,
    ) -> OwnershipTransfer:
        return OwnershipTransfer(
            id=uuid4(),
            organization_id=organization_id,
            previous_owner_id=previous_owner_id,
            new_owner_id=new_owner_id,
            transferred_by=transferred_by,
            reason=reason,
            created_at=datetime.now(UTC),
        )
