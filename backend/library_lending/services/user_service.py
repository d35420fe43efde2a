"""
User service: the identity boundary (profile lookup and completion by
email) and the admin operations on user accounts.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.core.config import get_settings
from library_lending.core.exceptions import NotFound
from library_lending.core.logging import get_logger
from library_lending.models.user import User, ROLE_ADMIN, ROLE_USER
from library_lending.schemas.user import ProfileComplete
from library_lending.services import guards

logger = get_logger(__name__)
settings = get_settings()


async def find_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    guards.ensure_identifier(user_id, "user_id")
    user = await db.get(User, user_id, populate_existing=True)
    if not user:
        raise NotFound("User not found", reason="userNotFound")
    return user


async def complete_profile(db: AsyncSession, profile: ProfileComplete) -> User:
    """
    Create the profile for a signed-in email, or update name and phone of
    an existing one. Role and blocked state are never touched here.
    """
    email = profile.email.lower()
    user = await find_user_by_email(db, email)

    if user:
        user.name = profile.name
        user.phone_number = profile.phone_number
        await db.flush()
        await db.refresh(user)
        logger.info("profile_updated", user_id=user.id)
        return user

    admin_emails = {address.lower() for address in settings.ADMIN_EMAILS}
    user = User(
        email=email,
        name=profile.name,
        phone_number=profile.phone_number,
        role=ROLE_ADMIN if email in admin_emails else ROLE_USER,
        is_blocked=False,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("profile_created", user_id=user.id, role=user.role)
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc(), User.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def set_user_blocked(db: AsyncSession, user_id: int, blocked: bool) -> User:
    """Block or unblock a user. Blocking only stops new borrows; returns still work."""
    user = await get_user(db, user_id)
    user.is_blocked = blocked
    await db.flush()
    await db.refresh(user)

    logger.info("user_blocked" if blocked else "user_unblocked", user_id=user.id)
    return user
