from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.organization import Organization
from app.repos.errors import StoreConflictError


class OrgRepo(Protocol):
    async def get_by_id(
        self, org_id: UUID, *, for_update: bool = False
    ) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...
    async def set_owner(self, org_id: UUID, owner_id: UUID) -> Organization | None: ...


class InMemoryOrgRepo:
    def __init__(self) -> None:
        self._store: dict[UUID, Organization] = {}

    async def get_by_id(
        self, org_id: UUID, *, for_update: bool = False
    ) -> Organization | None:
        # Row locks are moot here: InMemoryStore serializes whole transactions
        return self._store.get(org_id)

    async def add(self, org: Organization) -> None:
        if org.id in self._store:
            raise StoreConflictError("organization already exists")
        self._store[org.id] = org

    async def set_owner(self, org_id: UUID, owner_id: UUID) -> Organization | None:
        existing = self._store.get(org_id)
        if existing is None:
            return None
        updated = replace(existing, owner_id=owner_id)
        self._store[org_id] = updated
        return updated
