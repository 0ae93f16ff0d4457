from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import MessageResponse
from rackops.schemas.workflow import (
    KobetsuSessionRead,
    MovementRead,
    QuantityRequest,
    ScanLabelRequest,
    ScanLocationRequest,
)
from rackops.services.kobetsu import KobetsuService, KobetsuSession
from rackops.services.sessions import kobetsu_sessions

router = APIRouter(prefix="/kobetsu", tags=["Kobetsu"])


# PUBLIC_INTERFACE
@router.post(
    "/sessions",
    response_model=KobetsuSessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open a kobetsu session",
)
async def open_session(user: CurrentUser = Depends(get_current_active_user)) -> KobetsuSessionRead:
    kobetsu = kobetsu_sessions.add(KobetsuSession(owner_id=user.id))
    return kobetsu.snapshot()


# PUBLIC_INTERFACE
@router.get("/sessions/{session_id}", response_model=KobetsuSessionRead, summary="Get a kobetsu session")
async def get_session_state(
    session_id: UUID = Path(..., description="Kobetsu session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> KobetsuSessionRead:
    return kobetsu_sessions.get(session_id, user.id).snapshot()


# PUBLIC_INTERFACE
@router.post("/sessions/{session_id}/rack", response_model=KobetsuSessionRead, summary="Scan a rack")
async def scan_rack(
    payload: ScanLocationRequest,
    session_id: UUID = Path(..., description="Kobetsu session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> KobetsuSessionRead:
    kobetsu = kobetsu_sessions.get(session_id, user.id)
    async with kobetsu_sessions.lock(session_id):
        KobetsuService(session).scan_rack(kobetsu, payload.location)
    return kobetsu.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/part",
    response_model=KobetsuSessionRead,
    summary="Scan a part label",
    description="Parse the label; a BOM line must place the part at the scanned rack.",
)
async def scan_part(
    payload: ScanLabelRequest,
    session_id: UUID = Path(..., description="Kobetsu session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> KobetsuSessionRead:
    kobetsu = kobetsu_sessions.get(session_id, user.id)
    async with kobetsu_sessions.lock(session_id):
        await KobetsuService(session).scan_part(kobetsu, payload.label)
    return kobetsu.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/commit",
    response_model=MovementRead,
    summary="Remove stock",
    description=(
        "Remove the quantity from the rack and write the transaction log, stock ledger and activity "
        "log in one transaction. Aborted with 409 if stock changed since the part was scanned."
    ),
)
async def commit_kobetsu(
    payload: QuantityRequest,
    session_id: UUID = Path(..., description="Kobetsu session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> MovementRead:
    kobetsu = kobetsu_sessions.get(session_id, user.id)
    async with kobetsu_sessions.lock(session_id):
        return await KobetsuService(session).commit(kobetsu, payload.qty, user)


# PUBLIC_INTERFACE
@router.post("/sessions/{session_id}/back", response_model=KobetsuSessionRead, summary="Go back one step")
async def step_back(
    session_id: UUID = Path(..., description="Kobetsu session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> KobetsuSessionRead:
    kobetsu = kobetsu_sessions.get(session_id, user.id)
    async with kobetsu_sessions.lock(session_id):
        kobetsu.back()
    return kobetsu.snapshot()


# PUBLIC_INTERFACE
@router.delete("/sessions/{session_id}", response_model=MessageResponse, summary="Cancel a kobetsu session")
async def cancel_session(
    session_id: UUID = Path(..., description="Kobetsu session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> MessageResponse:
    kobetsu_sessions.get(session_id, user.id)
    kobetsu_sessions.discard(session_id)
    return MessageResponse(message="Kobetsu session cancelled")
