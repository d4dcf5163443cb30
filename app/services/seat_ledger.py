"""Seat ledger: subscription capacity accounting.

The only code allowed to write ``Subscription.active_seats``.  Every
function takes the caller's open UnitOfWork so a seat change commits or
rolls back together with the membership change it pays for.

check_availability() is advisory: it reserves nothing.  The hard ceiling
is enforced by increment_active_seats(), which is a conditional update at
the storage layer (increment only while active_seats < max_seats).
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core.metrics import SEAT_CHANGES, SEAT_LEDGER_ANOMALIES
from app.models.organization import SEAT_CONSUMING_STATUSES, Subscription
from app.models.results import SeatAvailability
from app.repos.store import UnitOfWork

logger = logging.getLogger(__name__)


class SeatLimitExceeded(Exception):
    def __init__(self, organization_id: UUID, max_seats: int) -> None:
        super().__init__(
            f"organization {organization_id} has no free seats (max {max_seats})"
        )
        self.organization_id = organization_id
        self.max_seats = max_seats


class SubscriptionNotFound(LookupError):
    pass


async def check_availability(
    uow: UnitOfWork,
    organization_id: UUID,
    requested_seats: int = 1,
    *,
    for_update: bool = False,
) -> SeatAvailability:
    """Can ``requested_seats`` more educators join right now?

    Never raises for business-rule failures; the message is always set when
    ``available`` is False.  Pass ``for_update=True`` to hold a row lock on
    the subscription for the rest of the transaction.
    """
    if requested_seats < 1:
        raise ValueError("requested_seats must be at least 1")

    subscription = await uow.subscriptions.get(organization_id, for_update=for_update)
    if subscription is None:
        return SeatAvailability(
            available=False,
            max_seats=0,
            active_seats=0,
            message="No active subscription found",
        )

    if subscription.status not in SEAT_CONSUMING_STATUSES:
        return SeatAvailability(
            available=False,
            max_seats=subscription.max_seats,
            active_seats=subscription.active_seats,
            message="Subscription is not active",
        )

    if subscription.remaining_seats < requested_seats:
        return SeatAvailability(
            available=False,
            max_seats=subscription.max_seats,
            active_seats=subscription.active_seats,
            message=(
                f"Your subscription allows only {subscription.max_seats} "
                "educators. Upgrade to add more."
            ),
        )

    return SeatAvailability(
        available=True,
        max_seats=subscription.max_seats,
        active_seats=subscription.active_seats,
    )


async def increment_active_seats(uow: UnitOfWork, organization_id: UUID) -> Subscription:
    """Consume one seat.

    Raises SeatLimitExceeded when the organization is already full and
    SubscriptionNotFound when it has no subscription.  Either exception is
    expected to abort the caller's transaction.
    """
    updated = await uow.subscriptions.increment_active_seats(organization_id)
    if updated is None:
        current = await uow.subscriptions.get(organization_id)
        if current is None:
            raise SubscriptionNotFound(str(organization_id))
        SEAT_CHANGES.labels(direction="rejected").inc()
        logger.warning(
            "Seat increment blocked org=%s active=%d max=%d",
            organization_id,
            current.active_seats,
            current.max_seats,
            extra={"organization_id": str(organization_id)},
        )
        raise SeatLimitExceeded(organization_id, current.max_seats)

    SEAT_CHANGES.labels(direction="increment").inc()
    logger.info(
        "Seat consumed org=%s active=%d/%d",
        organization_id,
        updated.active_seats,
        updated.max_seats,
    )
    return updated


async def decrement_active_seats(uow: UnitOfWork, organization_id: UUID) -> Subscription:
    """Release one seat, floored at zero.

    Releasing a seat from an empty ledger means some earlier removal was
    counted twice (e.g. a retried account-deletion webhook).  The counter
    stays at zero, and the event is logged at ERROR and counted in
    seat_ledger_anomalies_total so it can be alerted on.
    """
    updated = await uow.subscriptions.decrement_active_seats(organization_id)
    if updated is not None:
        SEAT_CHANGES.labels(direction="decrement").inc()
        logger.info(
            "Seat released org=%s active=%d/%d",
            organization_id,
            updated.active_seats,
            updated.max_seats,
        )
        return updated

    current = await uow.subscriptions.get(organization_id)
    if current is None:
        raise SubscriptionNotFound(str(organization_id))

    SEAT_LEDGER_ANOMALIES.inc()
    logger.error(
        "Seat ledger anomaly: decrement with active_seats=0 org=%s",
        organization_id,
        extra={"organization_id": str(organization_id)},
    )
    return current
