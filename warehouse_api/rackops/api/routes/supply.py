from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import MessageResponse
from rackops.schemas.workflow import (
    MovementRead,
    QuantityRequest,
    ScanLabelRequest,
    ScanLocationRequest,
    SupplySessionRead,
)
from rackops.services.sessions import supply_sessions
from rackops.services.supply import SupplyService, SupplySession

router = APIRouter(prefix="/supply", tags=["Supply"])


# PUBLIC_INTERFACE
@router.post(
    "/sessions",
    response_model=SupplySessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open a supply session",
)
async def open_session(user: CurrentUser = Depends(get_current_active_user)) -> SupplySessionRead:
    supply = supply_sessions.add(SupplySession(owner_id=user.id))
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.get("/sessions/{session_id}", response_model=SupplySessionRead, summary="Get a supply session")
async def get_session_state(
    session_id: UUID = Path(..., description="Supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> SupplySessionRead:
    return supply_sessions.get(session_id, user.id).snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/rack",
    response_model=SupplySessionRead,
    summary="Scan a rack",
    description="Load the BOM lines allocated to the rack location.",
)
async def scan_rack(
    payload: ScanLocationRequest,
    session_id: UUID = Path(..., description="Supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> SupplySessionRead:
    supply = supply_sessions.get(session_id, user.id)
    async with supply_sessions.lock(session_id):
        await SupplyService(session).scan_rack(supply, payload.location)
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/item",
    response_model=SupplySessionRead,
    summary="Scan an item label",
    description="Parse the label; the part must be one of the rack's BOM lines.",
)
async def scan_item(
    payload: ScanLabelRequest,
    session_id: UUID = Path(..., description="Supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> SupplySessionRead:
    supply = supply_sessions.get(session_id, user.id)
    async with supply_sessions.lock(session_id):
        await SupplyService(session).scan_item(supply, payload.label)
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/commit",
    response_model=MovementRead,
    summary="Add stock",
    description=(
        "Add the quantity to the rack (creating the inventory row on first supply) and write the "
        "transaction log, stock ledger and activity log in one transaction. The session returns to "
        "the rack scan step."
    ),
)
async def commit_supply(
    payload: QuantityRequest,
    session_id: UUID = Path(..., description="Supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> MovementRead:
    supply = supply_sessions.get(session_id, user.id)
    async with supply_sessions.lock(session_id):
        return await SupplyService(session).commit(supply, payload.qty, user)


# PUBLIC_INTERFACE
@router.post("/sessions/{session_id}/back", response_model=SupplySessionRead, summary="Go back one step")
async def step_back(
    session_id: UUID = Path(..., description="Supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> SupplySessionRead:
    supply = supply_sessions.get(session_id, user.id)
    async with supply_sessions.lock(session_id):
        supply.back()
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.delete("/sessions/{session_id}", response_model=MessageResponse, summary="Cancel a supply session")
async def cancel_session(
    session_id: UUID = Path(..., description="Supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> MessageResponse:
    supply_sessions.get(session_id, user.id)
    supply_sessions.discard(session_id)
    return MessageResponse(message="Supply session cancelled")
