"""PostgreSQL implementation of OrgMembershipRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import MemberRow
from app.models.organization import Member

_COLUMNS = (
    MemberRow.organization_id,
    MemberRow.user_id,
    MemberRow.role,
    MemberRow.joined_at,
)


class PgOrgMembershipRepo:
    """Satisfies the OrgMembershipRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, org_id: UUID, user_id: UUID) -> Member | None:
        stmt = select(*_COLUMNS).where(
            MemberRow.organization_id == org_id, MemberRow.user_id == user_id
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_member(row)

    async def get_by_user(self, user_id: UUID) -> Member | None:
        stmt = select(*_COLUMNS).where(MemberRow.user_id == user_id)
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_member(row)

    async def add(self, member: Member) -> None:
        row = MemberRow(
            organization_id=member.organization_id,
            user_id=member.user_id,
            role=member.role,
            joined_at=member.joined_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def remove(self, org_id: UUID, user_id: UUID) -> bool:
        stmt = delete(MemberRow).where(
            MemberRow.organization_id == org_id,
            MemberRow.user_id == user_id,
            # Re-checked after any row lock wait: a concurrent transfer may
            # have promoted this member
            MemberRow.role != "owner",
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: str
    ) -> Member | None:
        stmt = (
            update(MemberRow)
            .where(MemberRow.organization_id == org_id, MemberRow.user_id == user_id)
            .values(role=new_role)
            .returning(*_COLUMNS)
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_member(row)

    async def list_by_org(self, org_id: UUID) -> list[Member]:
        stmt = select(*_COLUMNS).where(MemberRow.organization_id == org_id)
        rows = (await self._session.execute(stmt)).all()
        return [_row_to_member(r) for r in rows]


def _row_to_member(row) -> Member:
    return Member(
        organization_id=row.organization_id,
        user_id=row.user_id,
        role=row.role,
        joined_at=row.joined_at,
    )
