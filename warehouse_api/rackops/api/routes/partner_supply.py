from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import MessageResponse
from rackops.schemas.workflow import (
    MovementRead,
    PartNumberRequest,
    PartnerSupplyRequest,
    PartnerSupplySessionRead,
)
from rackops.services.partner_supply import PartnerSupplyService, PartnerSupplySession
from rackops.services.sessions import partner_supply_sessions

router = APIRouter(prefix="/supply-big-part", tags=["Big Part Supply"])


# PUBLIC_INTERFACE
@router.post(
    "/sessions",
    response_model=PartnerSupplySessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open a big part supply session",
)
async def open_session(user: CurrentUser = Depends(get_current_active_user)) -> PartnerSupplySessionRead:
    supply = partner_supply_sessions.add(PartnerSupplySession(owner_id=user.id))
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.get(
    "/sessions/{session_id}",
    response_model=PartnerSupplySessionRead,
    summary="Get a big part supply session",
)
async def get_session_state(
    session_id: UUID = Path(..., description="Big part supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> PartnerSupplySessionRead:
    return partner_supply_sessions.get(session_id, user.id).snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/part",
    response_model=PartnerSupplySessionRead,
    summary="Scan a part number",
    description="List the partner racks the part can be supplied to, with their current stock.",
)
async def scan_part(
    payload: PartNumberRequest,
    session_id: UUID = Path(..., description="Big part supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> PartnerSupplySessionRead:
    supply = partner_supply_sessions.get(session_id, user.id)
    async with partner_supply_sessions.lock(session_id):
        await PartnerSupplyService(session).scan_part(supply, payload.part_no)
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/commit",
    response_model=MovementRead,
    summary="Add stock to a partner rack",
    description=(
        "Add the quantity to the chosen partner rack (creating the inventory row on first supply) and "
        "write the transaction log, stock ledger and activity log in one transaction."
    ),
)
async def commit_supply(
    payload: PartnerSupplyRequest,
    session_id: UUID = Path(..., description="Big part supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> MovementRead:
    supply = partner_supply_sessions.get(session_id, user.id)
    async with partner_supply_sessions.lock(session_id):
        return await PartnerSupplyService(session).commit(supply, payload.qty, user, payload.location)


# PUBLIC_INTERFACE
@router.post("/sessions/{session_id}/back", response_model=PartnerSupplySessionRead, summary="Go back to the part scan")
async def step_back(
    session_id: UUID = Path(..., description="Big part supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> PartnerSupplySessionRead:
    supply = partner_supply_sessions.get(session_id, user.id)
    async with partner_supply_sessions.lock(session_id):
        supply.back()
    return supply.snapshot()


# PUBLIC_INTERFACE
@router.delete(
    "/sessions/{session_id}",
    response_model=MessageResponse,
    summary="Cancel a big part supply session",
)
async def cancel_session(
    session_id: UUID = Path(..., description="Big part supply session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> MessageResponse:
    partner_supply_sessions.get(session_id, user.id)
    partner_supply_sessions.discard(session_id)
    return MessageResponse(message="Big part supply session cancelled")
