from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from app.models.user import User, normalize_email
from app.repos.errors import StoreConflictError
from app.repos.store import Store

logger = logging.getLogger(__name__)


class UserValidationError(ValueError):
    pass


class UserAlreadyExistsError(Exception):
    pass


async def create_user(
    store: Store, email: str, full_name: str = "", *, user_id: UUID | None = None
) -> User:
    """Register a profile.  ``user_id`` pins the id to the identity
    provider's subject; a fresh UUID is generated otherwise."""
    email = normalize_email(email)
    if not email:
        logger.warning("Rejected blank email")
        raise UserValidationError("email must be non-empty")

    try:
        async with store.transaction() as uow:
            if await uow.users.get_by_email(email) is not None:
                logger.warning("Rejected duplicate email=%s", email)
                raise UserAlreadyExistsError(email)
            user = User.new(email=email, full_name=full_name.strip())
            if user_id is not None:
                if await uow.users.get_by_id(user_id) is not None:
                    raise UserAlreadyExistsError(str(user_id))
                user = replace(user, id=user_id)
            await uow.users.add(user)
    except StoreConflictError:
        # Lost a race with a concurrent registration of the same email
        raise UserAlreadyExistsError(email) from None

    logger.info("Created user id=%s email=%s", user.id, user.email)
    return user


async def get_user(store: Store, user_id: UUID) -> User | None:
    async with store.transaction() as uow:
        return await uow.users.get_by_id(user_id)
