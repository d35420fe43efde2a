"""
Shared route dependencies.
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.core.exceptions import Forbidden, InvalidArgument, NotFound, Unauthorized
from library_lending.core.logging import get_logger
from library_lending.db.session import get_db
from library_lending.models.user import User

logger = get_logger(__name__)


async def require_admin(
    x_admin_user_id: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the acting admin from the X-Admin-User-Id header.

    The header is set by the identity front end after sign-in; this only
    checks that it names an existing admin account.
    """
    if not x_admin_user_id:
        raise Unauthorized("Admin user id not provided", reason="adminIdMissing")
    if not x_admin_user_id.isdigit() or int(x_admin_user_id) <= 0:
        raise InvalidArgument("Invalid admin user id format")

    admin = await db.get(User, int(x_admin_user_id))
    if not admin:
        raise NotFound("Admin user not found", reason="adminNotFound")
    if not admin.is_admin:
        logger.warning("admin_access_denied", user_id=admin.id, role=admin.role)
        raise Forbidden("User does not have admin privileges", reason="notAdmin")
    return admin
