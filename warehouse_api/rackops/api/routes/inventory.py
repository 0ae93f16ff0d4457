from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session, require_roles
from rackops.repositories.inventory import RackInventoryRepository, StockAdjustmentRepository
from rackops.repositories.ledger import StockTransactionRepository, TransactionLogRepository
from rackops.schemas.auth import CurrentUser
from rackops.schemas.inventory import (
    RackInventoryRead,
    ReconciliationRow,
    StockAdjustmentRead,
    StockAdjustmentRequest,
    StockTransactionRead,
    TransactionLogRead,
)
from rackops.services.inventory import InventoryService

router = APIRouter(prefix="/inventory", tags=["Inventory"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[RackInventoryRead],
    summary="List rack inventory",
    description="Stock per (part, rack location) ordered by location and part.",
    dependencies=[Depends(get_current_active_user)],
)
async def list_inventory(
    session: AsyncSession = Depends(get_session),
    location: Optional[str] = Query(None, description="Filter by rack location"),
    part_no: Optional[str] = Query(None, description="Filter by part number"),
    limit: int = Query(100, ge=1, le=1000, description="Max records"),
    offset: int = Query(0, ge=0, description="Records to skip"),
) -> List[RackInventoryRead]:
    repo = RackInventoryRepository(session)
    rows = await repo.list_inventory(rack_location=location, part_no=part_no, limit=limit, offset=offset)
    return [RackInventoryRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/transactions",
    response_model=List[StockTransactionRead],
    summary="List stock transactions",
    description="Signed stock ledger, newest first.",
    dependencies=[Depends(get_current_active_user)],
)
async def list_stock_transactions(
    session: AsyncSession = Depends(get_session),
    type: Optional[str] = Query(None, description="SUPPLY | PICKING | KOBETSU | ADJUSTMENT"),
    part_no: Optional[str] = Query(None, description="Filter by item code"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[StockTransactionRead]:
    repo = StockTransactionRepository(session)
    rows = await repo.list_transactions(transaction_type=type, item_code=part_no, limit=limit, offset=offset)
    return [StockTransactionRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/transaction-log",
    response_model=List[TransactionLogRead],
    summary="List process executions",
    description="Transaction log of supply, picking and kobetsu executions, newest first.",
    dependencies=[Depends(get_current_active_user)],
)
async def list_transaction_log(
    session: AsyncSession = Depends(get_session),
    process_type: Optional[str] = Query(None, description="SUPPLY | PICKING | KOBETSU"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[TransactionLogRead]:
    repo = TransactionLogRepository(session)
    rows = await repo.list_entries(process_type=process_type, limit=limit, offset=offset)
    return [TransactionLogRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/reconciliation",
    response_model=List[ReconciliationRow],
    summary="Inventory vs ledger reconciliation",
    description="Pairs whose rack_inventory quantity differs from the sum of their stock transactions.",
    dependencies=[Depends(get_current_active_user)],
)
async def reconciliation(session: AsyncSession = Depends(get_session)) -> List[ReconciliationRow]:
    return await InventoryService(session).reconcile()


# PUBLIC_INTERFACE
@router.get(
    "/adjustments",
    response_model=List[StockAdjustmentRead],
    summary="List stock adjustments",
    dependencies=[Depends(get_current_active_user)],
)
async def list_adjustments(
    session: AsyncSession = Depends(get_session),
    part_no: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[StockAdjustmentRead]:
    repo = StockAdjustmentRepository(session)
    rows = await repo.list_adjustments(part_no=part_no, limit=limit, offset=offset)
    return [StockAdjustmentRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.post(
    "/{inventory_id}/adjust",
    response_model=StockAdjustmentRead,
    summary="Adjust stock",
    description=(
        "Apply a signed correction to an inventory row with a reason. Writes the adjustment, "
        "an activity log entry and an ADJUSTMENT ledger entry in one transaction. "
        "Admins and controllers only."
    ),
)
async def adjust_stock(
    payload: StockAdjustmentRequest,
    inventory_id: int = Path(..., description="Inventory row ID"),
    user: CurrentUser = Depends(require_roles("admin", "controller")),
    session: AsyncSession = Depends(get_session),
) -> StockAdjustmentRead:
    adjustment = await InventoryService(session).adjust_stock(inventory_id, payload.adjust_qty, payload.reason, user)
    return StockAdjustmentRead.model_validate(adjustment)
