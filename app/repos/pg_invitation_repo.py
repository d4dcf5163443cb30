"""PostgreSQL implementation of InvitationRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import InvitationRow
from app.models.invitation import Invitation

_COLUMNS = (
    InvitationRow.id,
    InvitationRow.email,
    InvitationRow.organization_id,
    InvitationRow.invited_by,
    InvitationRow.token,
    InvitationRow.status,
    InvitationRow.expires_at,
    InvitationRow.created_at,
    InvitationRow.accepted_at,
)


class PgInvitationRepo:
    """Satisfies the InvitationRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, invitation: Invitation) -> None:
        row = InvitationRow(
            id=invitation.id,
            email=invitation.email,
            organization_id=invitation.organization_id,
            invited_by=invitation.invited_by,
            token=invitation.token,
            status=invitation.status,
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
            accepted_at=invitation.accepted_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def get_by_id(self, invitation_id: UUID) -> Invitation | None:
        stmt = select(*_COLUMNS).where(InvitationRow.id == invitation_id)
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_invitation(row)

    async def get_by_token(self, token: str) -> Invitation | None:
        stmt = select(*_COLUMNS).where(InvitationRow.token == token)
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_invitation(row)

    async def list_pending_emails(self, org_id: UUID, emails: list[str]) -> set[str]:
        if not emails:
            return set()
        stmt = select(InvitationRow.email).where(
            InvitationRow.organization_id == org_id,
            InvitationRow.status == "pending",
            InvitationRow.email.in_(emails),
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def list_by_org(
        self, org_id: UUID, status: str | None = None
    ) -> list[Invitation]:
        stmt = select(*_COLUMNS).where(InvitationRow.organization_id == org_id)
        if status is not None:
            stmt = stmt.where(InvitationRow.status == status)
        stmt = stmt.order_by(InvitationRow.created_at.desc())
        rows = (await self._session.execute(stmt)).all()
        return [_row_to_invitation(r) for r in rows]

    async def list_overdue_pending(self, now: datetime) -> list[Invitation]:
        stmt = select(*_COLUMNS).where(
            InvitationRow.status == "pending", InvitationRow.expires_at < now
        )
        rows = (await self._session.execute(stmt)).all()
        return [_row_to_invitation(r) for r in rows]

    async def transition(
        self,
        invitation_id: UUID,
        from_status: str,
        to_status: str,
        *,
        accepted_at: datetime | None = None,
    ) -> Invitation | None:
        """Compare-and-set on status; None means a concurrent request got
        there first (or the invitation doesn't exist)."""
        values: dict[str, object] = {"status": to_status}
        if accepted_at is not None:
            values["accepted_at"] = accepted_at
        stmt = (
            update(InvitationRow)
            .where(InvitationRow.id == invitation_id)
            .where(InvitationRow.status == from_status)
            .values(**values)
            .returning(*_COLUMNS)
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None
        return _row_to_invitation(row)


def _row_to_invitation(row) -> Invitation:
    return Invitation(
        id=row.id,
        email=row.email,
        organization_id=row.organization_id,
        invited_by=row.invited_by,
        token=row.token,
        status=row.status,
        expires_at=row.expires_at,
        created_at=row.created_at,
        accepted_at=row.accepted_at,
    )
