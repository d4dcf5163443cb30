from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal
from uuid import UUID, uuid4

InvitationStatus = Literal["pending", "accepted", "expired", "canceled"]

def generate_invitation_token() -> str:
    """32 random bytes, hex-encoded (64 chars)."""
    return secrets.token_hex(32)


@dataclass(frozen=True, slots=True)
class Invitation:
    id: UUID
    email: str
    organization_id: UUID
    invited_by: UUID
    token: str
    status: str  # pending|accepted|expired|canceled
    expires_at: datetime
    created_at: datetime
    accepted_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def is_overdue(self, now: datetime) -> bool:
        return self.expires_at < now

    @staticmethod
    def new(
        *,
        email: str,
        organization_id: UUID,
        invited_by: UUID,
        ttl_days: int,
    ) -> Invitation:
        now = datetime.now(UTC)
        return Invitation(
            id=uuid4(),
            email=email,
            organization_id=organization_id,
            invited_by=invited_by,
            token=generate_invitation_token(),
            status="pending",
            expires_at=now + timedelta(days=ttl_days),
            created_at=now,
        )
