from __future__ import annotations

from fastapi import APIRouter, Depends

from rackops.core.deps import get_current_active_user
from rackops.schemas.auth import CurrentUser

router = APIRouter(prefix="/auth", tags=["Auth"])


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=CurrentUser,
    summary="Current operator",
    description="Identity and role resolved from the platform token and the operator profile.",
)
async def me(user: CurrentUser = Depends(get_current_active_user)) -> CurrentUser:
    return user
