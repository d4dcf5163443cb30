"""PostgreSQL Store: one AsyncSession per transaction."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.repos.errors import StoreConflictError
from app.repos.pg_invitation_repo import PgInvitationRepo
from app.repos.pg_org_membership_repo import PgOrgMembershipRepo
from app.repos.pg_org_repo import PgOrgRepo
from app.repos.pg_ownership_transfer_repo import PgOwnershipTransferRepo
from app.repos.pg_subscription_repo import PgSubscriptionRepo
from app.repos.pg_user_repo import PgUserRepo

logger = logging.getLogger(__name__)


@dataclass
class PgUnitOfWork:
    users: PgUserRepo
    organizations: PgOrgRepo
    subscriptions: PgSubscriptionRepo
    members: PgOrgMembershipRepo
    invitations: PgInvitationRepo
    ownership_transfers: PgOwnershipTransferRepo

    @staticmethod
    def bind(session: AsyncSession) -> PgUnitOfWork:
        return PgUnitOfWork(
            users=PgUserRepo(session),
            organizations=PgOrgRepo(session),
            subscriptions=PgSubscriptionRepo(session),
            members=PgOrgMembershipRepo(session),
            invitations=PgInvitationRepo(session),
            ownership_transfers=PgOwnershipTransferRepo(session),
        )


class PgStore:
    """Satisfies the Store Protocol using PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PgUnitOfWork]:
        """Commits on success, rolls back on exception.

        Unique/check constraint violations (including the commit-time ones)
        surface as StoreConflictError so services can report a conflict
        instead of a 500.
        """
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield PgUnitOfWork.bind(session)
            except IntegrityError as e:
                logger.warning(
                    "Transaction rolled back on constraint violation: %s", e.orig
                )
                raise StoreConflictError(str(e.orig)) from e
