"""Shared test state and seed helpers.

Lives outside conftest.py so test modules can import it by name without
creating a second copy of the store.
"""

from __future__ import annotations

import asyncio
from uuid import UUID

from app.api.dependencies import get_store
from app.main import app
from app.models.organization import Member, Organization
from app.models.user import User
from app.repos.store import InMemoryStore
from app.services import membership_service, token_service

# One in-memory store for the whole suite, emptied before every test.
# The app is pointed at it even when DATABASE_URL is set in the shell.
shared_store = InMemoryStore()
app.dependency_overrides[get_store] = lambda: shared_store


def mint_token(user_id: UUID) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id))


def auth(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(user.id)}"}


# ---------------------------------------------------------------------------
# Seed helpers (write straight through the store, bypassing the services)
# ---------------------------------------------------------------------------


def seed_user(store: InMemoryStore, email: str, full_name: str = "") -> User:
    user = User.new(email=email, full_name=full_name or email.split("@")[0])

    async def _add() -> None:
        async with store.transaction() as uow:
            await uow.users.add(user)

    asyncio.run(_add())
    return user


def seed_org(
    store: InMemoryStore,
    owner: User,
    *,
    max_seats: int = 5,
    name: str = "Sunrise Preschool",
) -> Organization:
    return asyncio.run(
        membership_service.create_organization(
            store,
            owner_id=owner.id,
            name=name,
            org_type="school",
            plan="trial",
            max_seats=max_seats,
        )
    )


def seed_member(
    store: InMemoryStore, org: Organization, user: User, role: str = "member"
) -> Member:
    """Admit a member and consume a seat, like an accepted invitation would."""
    member = Member.new(organization_id=org.id, user_id=user.id, role=role)

    async def _add() -> None:
        async with store.transaction() as uow:
            await uow.members.add(member)
            await uow.subscriptions.increment_active_seats(org.id)

    asyncio.run(_add())
    return member


def get_subscription(store: InMemoryStore, org: Organization):
    async def _get():
        async with store.transaction() as uow:
            return await uow.subscriptions.get(org.id)

    return asyncio.run(_get())


def get_invitation(store: InMemoryStore, invitation_id: UUID):
    async def _get():
        async with store.transaction() as uow:
            return await uow.invitations.get_by_id(invitation_id)

    return asyncio.run(_get())


def list_members(store: InMemoryStore, org: Organization) -> list[Member]:
    async def _list():
        async with store.transaction() as uow:
            return await uow.members.list_by_org(org.id)

    return asyncio.run(_list())
