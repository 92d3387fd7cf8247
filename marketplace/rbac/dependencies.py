"""
RBAC dependencies: role checks layered on the authentication gate.

The auth and user routes in this package need only the gate itself.
These dependencies are the authorization surface for the business
routers (catalogue, orders) that mount alongside this service and
guard their endpoints by role or by record ownership.

`require_roles` is a *dependency factory*:  call it with one or more
roles and it returns a FastAPI dependency that will:

1. Run the gate (`get_current_user_token`), so token + session checks
   always happen first and an unauthenticated caller gets 401.
2. Compare the caller's role with the allowed set.
3. Return 403 on failure, without naming the roles that would pass.

Usage in a route:
    @router.get("/orders", dependencies=[Depends(require_roles(UserRole.VENDOR))])
    async def list_orders(...): ...

Or inject the auth context:
    @router.get("/me")
    async def me(ctx: AuthContext = Depends(require_roles(UserRole.ADMIN, UserRole.BUYER))): ...

`ensure_owner` is the record-level counterpart for handlers that load a
resource and need to confirm the caller owns it.
"""

import logging
import uuid

from fastapi import Depends

from marketplace.core.errors import Forbidden
from marketplace.core.security import AuthContext, get_current_user_token
from marketplace.models.user import UserRole

logger = logging.getLogger(__name__)


class require_roles:
    """
    Dependency factory.

    Can be used as:
        Depends(require_roles(UserRole.ADMIN))
        Depends(require_roles("vendor", "buyer"))
    """

    def __init__(self, *roles: UserRole | str):
        self.allowed = {UserRole(role) for role in roles}

    async def __call__(
        self,
        context: AuthContext = Depends(get_current_user_token),
    ) -> AuthContext:
        if context.role not in self.allowed:
            logger.warning(
                "Role %s denied for user %s; allowed: %s",
                context.role.value,
                context.user_id,
                sorted(role.value for role in self.allowed),
            )
            raise Forbidden()
        return context


def ensure_owner(context: AuthContext, owner_id: uuid.UUID | str) -> None:
    """Raise Forbidden unless the caller owns the record.  Admins always pass."""
    if context.role is UserRole.ADMIN:
        return
    if str(owner_id) != context.user_id:
        logger.warning("User %s denied access to a record owned by %s", context.user_id, owner_id)
        raise Forbidden()
