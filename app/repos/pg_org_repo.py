"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import OrganizationRow
from app.models.organization import Organization


class PgOrgRepo:
    """Satisfies the OrgRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self, org_id: UUID, *, for_update: bool = False
    ) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.id == org_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_org(row)

    async def add(self, org: Organization) -> None:
        row = OrganizationRow(
            id=org.id,
            name=org.name,
            type=org.type,
            owner_id=org.owner_id,
            created_at=org.created_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def set_owner(self, org_id: UUID, owner_id: UUID) -> Organization | None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(owner_id=owner_id)
            .returning(
                OrganizationRow.id,
                OrganizationRow.name,
                OrganizationRow.type,
                OrganizationRow.owner_id,
                OrganizationRow.created_at,
            )
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_org(row)


def _row_to_org(row) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        type=row.type,
        owner_id=row.owner_id,
        created_at=row.created_at,
    )
