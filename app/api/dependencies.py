from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.db.engine import async_session_factory
from app.models.principal import Principal
from app.repos.pg_store import PgStore
from app.repos.store import InMemoryStore, Store
from app.services import token_service

logger = logging.getLogger(__name__)

# Tokens are minted by the upstream identity provider; tokenUrl only
# feeds the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# --- Store singleton: PostgreSQL when configured, in-memory otherwise ---
store: Store = (
    PgStore(async_session_factory)
    if async_session_factory is not None
    else InMemoryStore()
)


def get_store() -> Store:
    """Route dependency; tests override it or reset the in-memory store."""
    return store


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
        user_id = UUID(claims["sub"])
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    logger.debug("Token validated for user=%s", user_id)
    return Principal(user_id=user_id)


# ---------------------------------------------------------------------------
# Org-scoped access guards
# ---------------------------------------------------------------------------


async def resolve_org_principal(
    org_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> Principal:
    """Enrich the Principal with the caller's role in ``org_id``.

    Reads org_id from the path and looks the membership up on every
    request, so role changes apply immediately.  403 for non-members.
    """
    async with store.transaction() as uow:
        membership = await uow.members.get(org_id, principal.user_id)
    if membership is None:
        logger.warning(
            "Access denied: user=%s not a member of org=%s",
            principal.user_id,
            org_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this organization",
        )
    return Principal(
        user_id=principal.user_id, org_id=org_id, org_role=membership.role
    )


def require_org_role(minimum_role: str):
    """Dependency factory: demand at least ``minimum_role`` in the path's org.

    Usage::

        @router.get("/v1/organizations/{org_id}/invitations")
        async def list_invites(
            principal: Annotated[Principal, Depends(require_org_role("admin"))],
        ): ...
    """

    def _guard(
        principal: Annotated[Principal, Depends(resolve_org_principal)],
    ) -> Principal:
        if not principal.has_org_role_at_least(minimum_role):
            logger.warning(
                "Access denied: user=%s org_role=%s required=%s org=%s",
                principal.user_id,
                principal.org_role,
                minimum_role,
                principal.org_id,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard
