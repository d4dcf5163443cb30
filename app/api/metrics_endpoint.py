"""Prometheus scrape endpoint (text exposition format, not JSON).

Besides the HTTP metrics this exposes the membership counters declared
in app/core/metrics.py, e.g.:

  seat_changes_total{direction="increment"} 42.0
  seat_ledger_anomalies_total 0.0

Restrict access at the ingress in production; seat and invitation
counts are business data.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
