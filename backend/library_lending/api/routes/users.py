"""
Identity boundary: profile lookup after sign-in and profile completion.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from library_lending.db.session import get_db
from library_lending.schemas.user import (
    ProfileLookup,
    ProfileComplete,
    ProfileLookupResponse,
    UserResponse,
)
from library_lending.services.user_service import find_user_by_email, complete_profile

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/lookup", response_model=ProfileLookupResponse)
async def lookup_profile(lookup: ProfileLookup, db: AsyncSession = Depends(get_db)):
    """Return the profile for a signed-in email, or ask for completion."""
    user = await find_user_by_email(db, lookup.email)
    if user:
        return ProfileLookupResponse(
            needs_completion=False,
            user=UserResponse.model_validate(user),
            email=user.email,
        )
    return ProfileLookupResponse(
        needs_completion=True,
        email=lookup.email.lower(),
        suggested_name=lookup.name or "",
    )


@router.post("/complete-profile", response_model=UserResponse)
async def complete_profile_endpoint(profile: ProfileComplete, db: AsyncSession = Depends(get_db)):
    """Create or update the profile for a signed-in email."""
    return await complete_profile(db, profile)
