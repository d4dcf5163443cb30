from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    full_name: str
    onboarding_status: str = "incomplete"  # incomplete|complete
    created_at: datetime | None = None

    @staticmethod
    def new(*, email: str, full_name: str) -> User:
        return User(
            id=uuid4(),
            email=normalize_email(email),
            full_name=full_name,
            onboarding_status="incomplete",
            created_at=datetime.now(UTC),
        )
