"""Request-boundary authorization.

The acting user is identified by the ``X-User-Id`` header and resolved once
per request.  Routes declare the roles they accept with ``require_roles``;
core operations receive the actor's role explicitly where it matters.
"""

import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from catalog import models
from catalog.crud import get_user_by_id
from catalog.exceptions import UnauthorizedError, UserNotFoundError
from catalog.storage import get_db

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Optional[int] = Header(None), db: Session = Depends(get_db)
) -> models.User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
        )
    try:
        return get_user_by_id(db, x_user_id)
    except UserNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user"
        )


def has_role(user: Optional[models.User], roles) -> bool:
    return user is not None and models.Role(user.role) in set(roles)


def require_roles(*roles: models.Role):
    """Dependency factory: the current user, if their role is in ``roles``."""

    def dependency(user: models.User = Depends(get_current_user)) -> models.User:
        if not has_role(user, roles):
            logger.warning(f"User {user.id} with role {user.role} denied")
            raise UnauthorizedError(
                f"Role {user.role} may not perform this action"
            )
        return user

    return dependency


any_user = require_roles(models.Role.USER, models.Role.LIBRARIAN, models.Role.ADMIN)
staff_only = require_roles(models.Role.LIBRARIAN, models.Role.ADMIN)
admin_only = require_roles(models.Role.ADMIN)
