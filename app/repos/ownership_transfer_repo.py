from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.organization import OwnershipTransfer


class OwnershipTransferRepo(Protocol):
    async def add(self, record: OwnershipTransfer) -> None: ...
    async def list_by_org(self, org_id: UUID) -> list[OwnershipTransfer]: ...


class InMemoryOwnershipTransferRepo:
    def __init__(self) -> None:
        self._store: dict[UUID, OwnershipTransfer] = {}

    async def add(self, record: OwnershipTransfer) -> None:
        self._store[record.id] = record

    async def list_by_org(self, org_id: UUID) -> list[OwnershipTransfer]:
        found = [r for r in self._store.values() if r.organization_id == org_id]
        return sorted(found, key=lambda r: r.created_at)
