from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from app.models.invitation import Invitation
from app.models.organization import Member, Subscription
from app.repos.errors import StoreConflictError
from app.repos.store import InMemoryStore


def _run(coro):
    return asyncio.run(coro)


# ---- transactions ----


def test_exception_rolls_back_every_table(store: InMemoryStore) -> None:
    org_id = uuid4()

    async def _seed() -> None:
        async with store.transaction() as uow:
            await uow.subscriptions.add(
                Subscription.new(organization_id=org_id, plan="trial", max_seats=3)
            )

    async def _fail() -> None:
        async with store.transaction() as uow:
            await uow.members.add(
                Member.new(organization_id=org_id, user_id=uuid4(), role="member")
            )
            await uow.subscriptions.increment_active_seats(org_id)
            raise RuntimeError("boom")

    async def _read():
        async with store.transaction() as uow:
            return (
                await uow.subscriptions.get(org_id),
                await uow.members.list_by_org(org_id),
            )

    _run(_seed())
    with pytest.raises(RuntimeError):
        _run(_fail())
    subscription, members = _run(_read())

    assert subscription.active_seats == 1
    assert members == []


def test_transactions_are_serialized(store: InMemoryStore) -> None:
    org_id = uuid4()
    seen: list[int] = []

    async def _bump() -> None:
        async with store.transaction() as uow:
            sub = await uow.subscriptions.get(org_id)
            await asyncio.sleep(0)
            seen.append(sub.active_seats)
            await uow.subscriptions.increment_active_seats(org_id)

    async def _main() -> None:
        async with store.transaction() as uow:
            await uow.subscriptions.add(
                Subscription.new(organization_id=org_id, plan="trial", max_seats=10)
            )
        await asyncio.gather(*(_bump() for _ in range(4)))

    _run(_main())

    assert seen == [1, 2, 3, 4]


# ---- seat counter bounds ----


def test_seat_counter_stays_within_bounds(store: InMemoryStore) -> None:
    org_id = uuid4()

    async def _main():
        async with store.transaction() as uow:
            await uow.subscriptions.add(
                Subscription.new(organization_id=org_id, plan="trial", max_seats=2)
            )
            full = await uow.subscriptions.increment_active_seats(org_id)
            over = await uow.subscriptions.increment_active_seats(org_id)
            await uow.subscriptions.decrement_active_seats(org_id)
            await uow.subscriptions.decrement_active_seats(org_id)
            under = await uow.subscriptions.decrement_active_seats(org_id)
            return full, over, under, await uow.subscriptions.get(org_id)

    full, over, under, final = _run(_main())

    assert full.active_seats == 2
    assert over is None
    assert under is None
    assert final.active_seats == 0


# ---- membership constraints ----


def test_user_cannot_join_two_organizations(store: InMemoryStore) -> None:
    user_id = uuid4()

    async def _main() -> None:
        async with store.transaction() as uow:
            await uow.members.add(
                Member.new(organization_id=uuid4(), user_id=user_id, role="member")
            )
            await uow.members.add(
                Member.new(organization_id=uuid4(), user_id=user_id, role="member")
            )

    with pytest.raises(StoreConflictError):
        _run(_main())


def test_second_owner_is_rejected(store: InMemoryStore) -> None:
    org_id = uuid4()
    admin_id = uuid4()

    async def _main() -> None:
        async with store.transaction() as uow:
            await uow.members.add(
                Member.new(organization_id=org_id, user_id=uuid4(), role="owner")
            )
            await uow.members.add(
                Member.new(organization_id=org_id, user_id=admin_id, role="admin")
            )
            await uow.members.update_role(org_id, admin_id, "owner")

    with pytest.raises(StoreConflictError):
        _run(_main())


def test_owner_membership_is_never_removed(store: InMemoryStore) -> None:
    org_id = uuid4()
    owner_id = uuid4()

    async def _main():
        async with store.transaction() as uow:
            await uow.members.add(
                Member.new(organization_id=org_id, user_id=owner_id, role="owner")
            )
            removed = await uow.members.remove(org_id, owner_id)
            return removed, await uow.members.get(org_id, owner_id)

    removed, still_there = _run(_main())

    assert removed is False
    assert still_there.role == "owner"


# ---- invitation compare-and-set ----


def test_invitation_transition_is_compare_and_set(store: InMemoryStore) -> None:
    invitation = Invitation.new(
        email="teacher@school.test",
        organization_id=uuid4(),
        invited_by=uuid4(),
        ttl_days=7,
    )
    accepted_at = datetime.now(UTC)

    async def _main():
        async with store.transaction() as uow:
            await uow.invitations.add(invitation)
            first = await uow.invitations.transition(
                invitation.id, "pending", "accepted", accepted_at=accepted_at
            )
            second = await uow.invitations.transition(
                invitation.id, "pending", "canceled"
            )
            return first, second, await uow.invitations.get_by_id(invitation.id)

    first, second, stored = _run(_main())

    assert first.status == "accepted"
    assert second is None
    assert stored.status == "accepted"
    assert stored.accepted_at == accepted_at


def test_overdue_listing_only_returns_pending(store: InMemoryStore) -> None:
    org_id = uuid4()
    later = datetime.now(UTC) + timedelta(days=30)
    pending = Invitation.new(
        email="a@school.test", organization_id=org_id, invited_by=uuid4(), ttl_days=7
    )
    canceled = Invitation.new(
        email="b@school.test", organization_id=org_id, invited_by=uuid4(), ttl_days=7
    )

    async def _main():
        async with store.transaction() as uow:
            await uow.invitations.add(pending)
            await uow.invitations.add(canceled)
            await uow.invitations.transition(canceled.id, "pending", "canceled")
            return await uow.invitations.list_overdue_pending(later)

    assert [i.id for i in _run(_main())] == [pending.id]
