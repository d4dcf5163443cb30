from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.organization import Subscription
from app.repos.errors import StoreConflictError


class SubscriptionRepo(Protocol):
    async def get(
        self, organization_id: UUID, *, for_update: bool = False
    ) -> Subscription | None: ...
    async def add(self, subscription: Subscription) -> None: ...
    async def increment_active_seats(
        self, organization_id: UUID
    ) -> Subscription | None: ...
    async def decrement_active_seats(
        self, organization_id: UUID
    ) -> Subscription | None: ...


class InMemorySubscriptionRepo:
    def __init__(self) -> None:
        self._store: dict[UUID, Subscription] = {}

    async def get(
        self, organization_id: UUID, *, for_update: bool = False
    ) -> Subscription | None:
        return self._store.get(organization_id)

    async def add(self, subscription: Subscription) -> None:
        if subscription.organization_id in self._store:
            raise StoreConflictError("organization already has a subscription")
        self._store[subscription.organization_id] = subscription

    async def increment_active_seats(
        self, organization_id: UUID
    ) -> Subscription | None:
        """Add one seat if that stays within max_seats. Returns the updated
        record, or None if the subscription is missing or already full."""
        existing = self._store.get(organization_id)
        if existing is None or existing.active_seats >= existing.max_seats:
            return None
        updated = replace(existing, active_seats=existing.active_seats + 1)
        self._store[organization_id] = updated
        return updated

    async def decrement_active_seats(
        self, organization_id: UUID
    ) -> Subscription | None:
        """Release one seat if any are in use. Returns the updated record, or
        None if the subscription is missing or already at zero."""
        existing = self._store.get(organization_id)
        if existing is None or existing.active_seats <= 0:
            return None
        updated = replace(existing, active_seats=existing.active_seats - 1)
        self._store[organization_id] = updated
        return updated
