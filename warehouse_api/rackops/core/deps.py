from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.logging import user_id_var
from rackops.core.security import decode_token
from rackops.db.session import get_async_session
from rackops.repositories.security import ProfileRepository
from rackops.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

# Tokens are issued by the identity platform; the URL is only used by the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


# PUBLIC_INTERFACE
async def get_session(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession for the request.

    Kept as a separate dependency so tests and tools can override the database
    without touching the engine helpers.
    """
    yield session


# PUBLIC_INTERFACE
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> CurrentUser:
    """
    Resolve the current operator from the Authorization bearer token.

    Validates the platform JWT, then loads the operator profile for username and role.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    repo = ProfileRepository(session)
    profile = await repo.get_profile(str(user_id))
    if not profile:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Profile not found")

    user_id_var.set(profile.id)
    return CurrentUser(
        id=profile.id,
        email=payload.get("email"),
        username=profile.username,
        full_name=profile.full_name,
        role=profile.role,
        is_active=profile.is_active,
    )


# PUBLIC_INTERFACE
async def get_current_active_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to have one of the specified roles.
    """

    async def _dep(user: CurrentUser = Depends(get_current_active_user)) -> CurrentUser:
        if user.role not in set(required):
            logger.info("Role %s rejected; required one of %s", user.role, ", ".join(required))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return _dep
