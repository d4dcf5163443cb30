"""PostgreSQL implementation of SubscriptionRepo.

Seat counters only move through single conditional UPDATE statements,
so two concurrent acceptances can never both take the last seat and a
retried removal can never push the counter below zero.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import SubscriptionRow
from app.models.organization import Subscription


class PgSubscriptionRepo:
    """Satisfies the SubscriptionRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, organization_id: UUID, *, for_update: bool = False
    ) -> Subscription | None:
        stmt = select(SubscriptionRow).where(
            SubscriptionRow.organization_id == organization_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_subscription(row)

    async def add(self, subscription: Subscription) -> None:
        row = SubscriptionRow(
            organization_id=subscription.organization_id,
            plan=subscription.plan,
            max_seats=subscription.max_seats,
            active_seats=subscription.active_seats,
            status=subscription.status,
        )
        self._session.add(row)
        await self._session.flush()

    async def increment_active_seats(
        self, organization_id: UUID
    ) -> Subscription | None:
        stmt = (
            update(SubscriptionRow)
            .where(SubscriptionRow.organization_id == organization_id)
            .where(SubscriptionRow.active_seats < SubscriptionRow.max_seats)
            .values(active_seats=SubscriptionRow.active_seats + 1)
            .returning(*_COLUMNS)
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None  # missing, or the ceiling blocked it
        return _row_to_subscription(row)

    async def decrement_active_seats(
        self, organization_id: UUID
    ) -> Subscription | None:
        stmt = (
            update(SubscriptionRow)
            .where(SubscriptionRow.organization_id == organization_id)
            .where(SubscriptionRow.active_seats > 0)
            .values(active_seats=SubscriptionRow.active_seats - 1)
            .returning(*_COLUMNS)
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            return None  # missing, or already at zero
        return _row_to_subscription(row)


# Plain columns, not the entity: an ORM object already in the identity map
# would come back with its stale pre-UPDATE values
_COLUMNS = (
    SubscriptionRow.organization_id,
    SubscriptionRow.plan,
    SubscriptionRow.max_seats,
    SubscriptionRow.active_seats,
    SubscriptionRow.status,
)


def _row_to_subscription(row) -> Subscription:
    return Subscription(
        organization_id=row.organization_id,
        plan=row.plan,
        max_seats=row.max_seats,
        active_seats=row.active_seats,
        status=row.status,
    )
