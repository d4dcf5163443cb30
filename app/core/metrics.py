"""Prometheus metric inventory.

Every metric the service exposes is declared here; the modules that own
the behavior import and update them at the point of action.

HTTP metrics are populated by MetricsMiddleware.  Domain metrics track the
membership lifecycle:

  invitations_total{outcome}          batches issued vs rejected
  invitation_transitions_total        pending -> accepted|expired|canceled
  seat_changes_total{direction}       ledger increments / decrements
  seat_ledger_anomalies_total         decrement attempted on an empty ledger,
                                      a bookkeeping bug somewhere upstream
  ownership_transfers_total           completed ownership hand-overs
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Membership lifecycle metrics
# ---------------------------------------------------------------------------

INVITATION_BATCHES = Counter(
    "invitations_total",
    "Invitation batches by outcome",
    ["outcome"],  # "issued" or "rejected"
)

INVITATION_TRANSITIONS = Counter(
    "invitation_transitions_total",
    "Invitation status transitions out of pending",
    ["to_status"],  # "accepted", "expired", "canceled"
)

SEAT_CHANGES = Counter(
    "seat_changes_total",
    "Seat ledger changes by direction",
    ["direction"],  # "increment", "decrement", "rejected"
)

SEAT_LEDGER_ANOMALIES = Counter(
    "seat_ledger_anomalies_total",
    "Seat decrements attempted while active_seats was already zero",
)

OWNERSHIP_TRANSFERS = Counter(
    "ownership_transfers_total",
    "Completed organization ownership transfers",
)
