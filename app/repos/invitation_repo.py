from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.models.invitation import Invitation
from app.repos.errors import StoreConflictError


class InvitationRepo(Protocol):
    async def add(self, invitation: Invitation) -> None: ...
    async def get_by_id(self, invitation_id: UUID) -> Invitation | None: ...
    async def get_by_token(self, token: str) -> Invitation | None: ...
    async def list_pending_emails(
        self, org_id: UUID, emails: list[str]
    ) -> set[str]: ...
    async def list_by_org(
        self, org_id: UUID, status: str | None = None
    ) -> list[Invitation]: ...
    async def list_overdue_pending(self, now: datetime) -> list[Invitation]: ...
    async def transition(
        self,
        invitation_id: UUID,
        from_status: str,
        to_status: str,
        *,
        accepted_at: datetime | None = None,
    ) -> Invitation | None: ...


class InMemoryInvitationRepo:
    def __init__(self) -> None:
        self._store: dict[UUID, Invitation] = {}

    async def add(self, invitation: Invitation) -> None:
        if invitation.id in self._store:
            raise StoreConflictError("invitation already exists")
        if await self.get_by_token(invitation.token) is not None:
            raise StoreConflictError("invitation token already exists")
        self._store[invitation.id] = invitation

    async def get_by_id(self, invitation_id: UUID) -> Invitation | None:
        return self._store.get(invitation_id)

    async def get_by_token(self, token: str) -> Invitation | None:
        return next((i for i in self._store.values() if i.token == token), None)

    async def list_pending_emails(self, org_id: UUID, emails: list[str]) -> set[str]:
        wanted = set(emails)
        return {
            i.email
            for i in self._store.values()
            if i.organization_id == org_id and i.is_pending and i.email in wanted
        }

    async def list_by_org(
        self, org_id: UUID, status: str | None = None
    ) -> list[Invitation]:
        found = [
            i
            for i in self._store.values()
            if i.organization_id == org_id and (status is None or i.status == status)
        ]
        return sorted(found, key=lambda i: i.created_at, reverse=True)

    async def list_overdue_pending(self, now: datetime) -> list[Invitation]:
        return [i for i in self._store.values() if i.is_pending and i.is_overdue(now)]

    async def transition(
        self,
        invitation_id: UUID,
        from_status: str,
        to_status: str,
        *,
        accepted_at: datetime | None = None,
    ) -> Invitation | None:
        """Compare-and-set on status. Returns the updated record, or None if
        the invitation is missing or no longer in from_status."""
        existing = self._store.get(invitation_id)
        if existing is None or existing.status != from_status:
            return None
        updated = replace(
            existing,
            status=to_status,
            accepted_at=accepted_at if accepted_at is not None else existing.accepted_at,
        )
        self._store[invitation_id] = updated
        return updated
