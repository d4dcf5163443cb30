from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.dependencies import get_store
from app.api.health import router as health_router
from app.api.invitations import org_router as org_invitations_router
from app.api.invitations import router as invitations_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.orgs import router as orgs_router
from app.api.users import router as users_router
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.services.invitation_service import expire_stale_invitations

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db() as schema_ready:
        if schema_ready:
            # Pending invitations that lapsed while the service was down
            await expire_stale_invitations(get_store())
        yield


# only app setup + router registration

app = FastAPI(
    title="classroom-seats",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler,
# so every metric and log line is recorded under a request id.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(orgs_router)
app.include_router(org_invitations_router)
app.include_router(invitations_router)
app.include_router(users_router)

logger.info(
    "classroom-seats started  env=%s log_level=%s port=%d invitation_ttl=%dd store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.invitation_ttl_days,
    "postgres" if SETTINGS.database_url else "memory",
)
