from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import MessageResponse
from rackops.schemas.picking import (
    KanbanScanRequest,
    PickingCompletionRead,
    PickingInputRequest,
    PickingSessionRead,
    SelectItemRequest,
)
from rackops.services.picking import PickingService, PickingSession
from rackops.services.sessions import picking_sessions

router = APIRouter(prefix="/picking", tags=["Picking"])


# PUBLIC_INTERFACE
@router.post(
    "/sessions",
    response_model=PickingSessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open a picking session",
    description="Start a picking session waiting for a kanban code.",
)
async def open_session(user: CurrentUser = Depends(get_current_active_user)) -> PickingSessionRead:
    picking = picking_sessions.add(PickingSession(owner_id=user.id))
    return picking.snapshot()


# PUBLIC_INTERFACE
@router.get(
    "/sessions/{session_id}",
    response_model=PickingSessionRead,
    summary="Get a picking session",
)
async def get_session_state(
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> PickingSessionRead:
    return picking_sessions.get(session_id, user.id).snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/kanban",
    response_model=PickingSessionRead,
    summary="Load a kanban",
    description=(
        "Load the BOM lines of the kanban ordered by sequence, with the current stock of each "
        "(part, location). Fails and keeps the session unchanged when the kanban has no lines."
    ),
)
async def load_kanban(
    payload: KanbanScanRequest,
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> PickingSessionRead:
    picking = picking_sessions.get(session_id, user.id)
    async with picking_sessions.lock(session_id):
        await PickingService(session).load_kanban(picking, payload.kanban_code)
    return picking.snapshot()


# PUBLIC_INTERFACE
@router.patch(
    "/sessions/{session_id}/inputs",
    response_model=PickingSessionRead,
    summary="Fill the current item's inputs",
    description="Set the rack location, the label and the quantity, strictly in that order.",
)
async def update_inputs(
    payload: PickingInputRequest,
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> PickingSessionRead:
    picking = picking_sessions.get(session_id, user.id)
    async with picking_sessions.lock(session_id):
        picking.update_inputs(location=payload.location, label=payload.label, qty=payload.qty)
    return picking.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/submit",
    response_model=PickingSessionRead,
    summary="Verify the current item",
    description=(
        "Check label, location, part, exact quantity and stock, in that order. A rejected item "
        "is reported through the returned alert and the item's error_message."
    ),
)
async def submit_item(
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> PickingSessionRead:
    picking = picking_sessions.get(session_id, user.id)
    async with picking_sessions.lock(session_id):
        await PickingService(session).submit(picking)
    return picking.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/select",
    response_model=PickingSessionRead,
    summary="Select an item",
    description="Move the operator to another item, e.g. to re-scan it.",
)
async def select_item(
    payload: SelectItemRequest,
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> PickingSessionRead:
    picking = picking_sessions.get(session_id, user.id)
    async with picking_sessions.lock(session_id):
        picking.select_item(payload.index)
    return picking.snapshot()


# PUBLIC_INTERFACE
@router.post(
    "/sessions/{session_id}/complete",
    response_model=PickingCompletionRead,
    summary="Verify and complete picking",
    description=(
        "Commit every item in one transaction: decrement inventory and write the transaction log, "
        "stock ledger and activity log. Refused while any item is not valid; aborted with 409 if "
        "stock changed since the kanban was loaded."
    ),
)
async def complete_picking(
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> PickingCompletionRead:
    picking = picking_sessions.get(session_id, user.id)
    async with picking_sessions.lock(session_id):
        result = await PickingService(session).complete(picking, user)
    picking_sessions.discard(session_id)
    return result


# PUBLIC_INTERFACE
@router.delete(
    "/sessions/{session_id}",
    response_model=MessageResponse,
    summary="Cancel a picking session",
    description="Discard the session. Nothing has been written before completion, so nothing is undone.",
)
async def cancel_session(
    session_id: UUID = Path(..., description="Picking session ID"),
    user: CurrentUser = Depends(get_current_active_user),
) -> MessageResponse:
    picking_sessions.get(session_id, user.id)
    picking_sessions.discard(session_id)
    return MessageResponse(message="Picking session cancelled")
