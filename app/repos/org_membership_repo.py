from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.organization import Member
from app.repos.errors import StoreConflictError


class OrgMembershipRepo(Protocol):
    async def get(self, org_id: UUID, user_id: UUID) -> Member | None: ...
    async def get_by_user(self, user_id: UUID) -> Member | None: ...
    async def add(self, member: Member) -> None: ...
    async def remove(self, org_id: UUID, user_id: UUID) -> bool: ...
    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: str
    ) -> Member | None: ...
    async def list_by_org(self, org_id: UUID) -> list[Member]: ...


class InMemoryOrgMembershipRepo:
    # Keyed by user: an educator belongs to at most one organization
    def __init__(self) -> None:
        self._store: dict[UUID, Member] = {}

    async def get(self, org_id: UUID, user_id: UUID) -> Member | None:
        member = self._store.get(user_id)
        if member is None or member.organization_id != org_id:
            return None
        return member

    async def get_by_user(self, user_id: UUID) -> Member | None:
        return self._store.get(user_id)

    async def add(self, member: Member) -> None:
        if member.user_id in self._store:
            raise StoreConflictError("user already belongs to an organization")
        if member.role == "owner" and any(
            m.organization_id == member.organization_id and m.role == "owner"
            for m in self._store.values()
        ):
            raise StoreConflictError("organization already has an owner")
        self._store[member.user_id] = member

    async def remove(self, org_id: UUID, user_id: UUID) -> bool:
        """Delete a non-owner membership. Owners are never removed."""
        existing = await self.get(org_id, user_id)
        if existing is None or existing.role == "owner":
            return False
        del self._store[user_id]
        return True

    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: str
    ) -> Member | None:
        existing = await self.get(org_id, user_id)
        if existing is None:
            return None
        if new_role == "owner" and any(
            m.organization_id == org_id and m.role == "owner" and m.user_id != user_id
            for m in self._store.values()
        ):
            raise StoreConflictError("organization already has an owner")
        updated = replace(existing, role=new_role)
        self._store[user_id] = updated
        return updated

    async def list_by_org(self, org_id: UUID) -> list[Member]:
        return [m for m in self._store.values() if m.organization_id == org_id]
