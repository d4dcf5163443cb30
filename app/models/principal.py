from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.models.organization import ROLE_RANK


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.

    Always set:
        user_id: subject from JWT

    Set by resolve_org_principal when the request is org-scoped:
        org_id: organization addressed by the request path
        org_role: caller's role within that org (owner|admin|member)
    """

    user_id: UUID
    org_id: UUID | None = None
    org_role: str | None = None

    def has_org_role_at_least(self, minimum_role: str) -> bool:
        if self.org_role is None:
            return False
        return ROLE_RANK[self.org_role] >= ROLE_RANK[minimum_role]
