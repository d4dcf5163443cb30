"""PostgreSQL implementation of OwnershipTransferRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import OwnershipTransferRow
from app.models.organization import OwnershipTransfer


class PgOwnershipTransferRepo:
    """Satisfies the OwnershipTransferRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, record: OwnershipTransfer) -> None:
        row = OwnershipTransferRow(
            id=record.id,
            organization_id=record.organization_id,
            previous_owner_id=record.previous_owner_id,
            new_owner_id=record.new_owner_id,
            transferred_by=record.transferred_by,
            reason=record.reason,
            created_at=record.created_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def list_by_org(self, org_id: UUID) -> list[OwnershipTransfer]:
        stmt = (
            select(OwnershipTransferRow)
            .where(OwnershipTransferRow.organization_id == org_id)
            .order_by(OwnershipTransferRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            OwnershipTransfer(
                id=r.id,
                organization_id=r.organization_id,
                previous_owner_id=r.previous_owner_id,
                new_owner_id=r.new_owner_id,
                transferred_by=r.transferred_by,
                reason=r.reason,
                created_at=r.created_at,
            )
            for r in rows
        ]
