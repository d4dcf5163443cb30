from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.user import User
from app.repos.errors import StoreConflictError


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def list_by_ids(self, user_ids: list[UUID]) -> list[User]: ...
    async def add(self, user: User) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._store: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._store.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        # Emails are normalized on the way in (User.new)
        return next((u for u in self._store.values() if u.email == email), None)

    async def list_by_ids(self, user_ids: list[UUID]) -> list[User]:
        return [self._store[uid] for uid in user_ids if uid in self._store]

    async def add(self, user: User) -> None:
        if user.id in self._store:
            raise StoreConflictError("user already exists")
        if await self.get_by_email(user.email) is not None:
            raise StoreConflictError("email already exists")
        self._store[user.id] = user
