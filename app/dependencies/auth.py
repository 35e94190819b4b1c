from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError

from app.core.database import get_db
from app.core.security import decode_access_token
from app.database_model.profile import Profile
from app.core.errors import AuthenticationError, AuthorizationError

security = HTTPBearer(auto_error=False)


async def get_current_profile(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Profile:
    """Get the profile of the bearer token's subject.

    Tokens are issued by the hosted auth service; ``sub`` holds the profile id.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired,
            or the profile does not exist or is deactivated
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    subject = payload.get("sub")
    try:
        profile_id = int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")

    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = result.scalar_one_or_none()

    if profile is None:
        raise AuthenticationError("Could not validate credentials")
    if not profile.is_active:
        raise AuthenticationError("Account is deactivated")

    return profile


async def get_current_admin(
    current_profile: Profile = Depends(get_current_profile)
) -> Profile:
    """Get the current profile, requiring admin rights."""
    if not current_profile.is_admin:
        raise AuthorizationError("Admin access required")
    return current_profile
