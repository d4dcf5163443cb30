"""Unit-of-work abstraction over the membership tables.

The services never touch a repo outside a transaction:

    async with store.transaction() as uow:
        invitation = await uow.invitations.get_by_token(token)
        ...

Leaving the block normally commits every write made through ``uow``;
leaving it with an exception rolls all of them back and re-raises.  That
is the only transactional boundary the core relies on: member admission
plus seat increment, member removal plus seat decrement, and the two role
writes of an ownership transfer each happen inside one block.

Two implementations:

  InMemoryStore: dict-backed repos.  Transactions are serialized by an
    asyncio.Lock and rolled back by restoring a snapshot of every table.
    Used by the test suite and whenever DATABASE_URL is unset.

  PgStore (app/repos/pg_store.py): one SQLAlchemy AsyncSession per
    transaction; seat counters and invitation status change through
    conditional UPDATEs so concurrent requests can't lose updates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from app.repos.invitation_repo import InMemoryInvitationRepo, InvitationRepo
from app.repos.org_membership_repo import (
    InMemoryOrgMembershipRepo,
    OrgMembershipRepo,
)
from app.repos.org_repo import InMemoryOrgRepo, OrgRepo
from app.repos.ownership_transfer_repo import (
    InMemoryOwnershipTransferRepo,
    OwnershipTransferRepo,
)
from app.repos.subscription_repo import InMemorySubscriptionRepo, SubscriptionRepo
from app.repos.user_repo import InMemoryUserRepo, UserRepo

logger = logging.getLogger(__name__)


class UnitOfWork(Protocol):
    users: UserRepo
    organizations: OrgRepo
    subscriptions: SubscriptionRepo
    members: OrgMembershipRepo
    invitations: InvitationRepo
    ownership_transfers: OwnershipTransferRepo


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[UnitOfWork]: ...


@dataclass
class InMemoryUnitOfWork:
    users: InMemoryUserRepo
    organizations: InMemoryOrgRepo
    subscriptions: InMemorySubscriptionRepo
    members: InMemoryOrgMembershipRepo
    invitations: InMemoryInvitationRepo
    ownership_transfers: InMemoryOwnershipTransferRepo

    def _tables(self) -> list[dict]:
        return [
            self.users._store,
            self.organizations._store,
            self.subscriptions._store,
            self.members._store,
            self.invitations._store,
            self.ownership_transfers._store,
        ]

    def snapshot(self) -> list[dict]:
        # Values are frozen dataclasses, so a shallow copy per table suffices
        return [dict(table) for table in self._tables()]

    def restore(self, snapshot: list[dict]) -> None:
        for table, saved in zip(self._tables(), snapshot, strict=True):
            table.clear()
            table.update(saved)


class InMemoryStore:
    """In-memory Store for tests and database-less dev runs."""

    def __init__(self) -> None:
        self._uow = InMemoryUnitOfWork(
            users=InMemoryUserRepo(),
            organizations=InMemoryOrgRepo(),
            subscriptions=InMemorySubscriptionRepo(),
            members=InMemoryOrgMembershipRepo(),
            invitations=InMemoryInvitationRepo(),
            ownership_transfers=InMemoryOwnershipTransferRepo(),
        )
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryUnitOfWork]:
        async with self._lock:
            saved = self._uow.snapshot()
            try:
                yield self._uow
            except BaseException:
                self._uow.restore(saved)
                logger.debug("In-memory transaction rolled back")
                raise

    def reset(self) -> None:
        """Drop all rows. The autouse fixture in conftest.py calls this."""
        self._uow.restore([{} for _ in self._uow._tables()])
        # A lock that saw contention is bound to that test's event loop
        self._lock = asyncio.Lock()
