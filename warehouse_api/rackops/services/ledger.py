from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.repositories.ledger import (
    ActivityLogRepository,
    StockTransactionRepository,
    TransactionLogRepository,
)
from rackops.schemas.auth import CurrentUser
from rackops.schemas.records import (
    ActivityLogCreate,
    StockTransactionCreate,
    TransactionLogCreate,
    TransactionType,
)


# PUBLIC_INTERFACE
def make_transaction_id(prefix: str, session_id: UUID, seq: int, part_no: str) -> str:
    """
    Build a ledger transaction id such as SUP-1a2b3c4d-1-9632107140.

    The id is stable for a given session step, so the unique constraint on
    stock_transactions.transaction_id rejects a replayed commit.
    """
    return f"{prefix}-{session_id.hex[:8]}-{seq}-{part_no}"


# PUBLIC_INTERFACE
def display_name(user: CurrentUser) -> str:
    """Username stamped on audit rows."""
    return user.username or user.email or "Unknown"


# PUBLIC_INTERFACE
def duration_seconds(started_at: datetime, ended_at: datetime) -> int:
    return max(0, int((ended_at - started_at).total_seconds()))


class StockMovement(BaseModel):
    """One change of a rack_inventory quantity, described for the audit tables."""
    transaction_type: TransactionType
    action_type: str
    transaction_id: str
    part_no: str
    part_name: str
    rack_location: str
    delta: int
    old_qty: int
    new_qty: int
    started_at: datetime
    ended_at: datetime
    document_ref: Optional[str] = None
    source_location: Optional[str] = None
    remarks: Optional[str] = None
    description: Optional[str] = None


class MovementLedger:
    """
    Stage the audit rows that accompany a stock movement.

    For SUPPLY, PICKING and KOBETSU that is a transaction_log entry, a signed
    stock_transactions entry and an activity_log entry; adjustments skip the
    transaction log. Nothing is committed here.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.transaction_logs = TransactionLogRepository(session)
        self.stock_transactions = StockTransactionRepository(session)
        self.activity = ActivityLogRepository(session)

    # PUBLIC_INTERFACE
    async def record(self, movement: StockMovement, user: CurrentUser) -> List[Any]:
        """Stage the rows for movement and return them in insert order."""
        username = display_name(user)
        rows: List[Any] = []

        if movement.transaction_type != "ADJUSTMENT":
            rows.append(
                await self.transaction_logs.add_entry(
                    TransactionLogCreate(
                        process_type=movement.transaction_type,
                        part_no=movement.part_no,
                        rack_location=movement.rack_location,
                        qty=abs(movement.delta),
                        start_time=movement.started_at,
                        end_time=movement.ended_at,
                        duration_sec=duration_seconds(movement.started_at, movement.ended_at),
                        remarks=movement.remarks,
                        user_id=user.id,
                    )
                )
            )

        rows.append(
            await self.stock_transactions.add_transaction(
                StockTransactionCreate(
                    transaction_id=movement.transaction_id,
                    transaction_type=movement.transaction_type,
                    item_code=movement.part_no,
                    item_name=movement.part_name,
                    qty=movement.delta,
                    rack_location=movement.rack_location,
                    source_location=movement.source_location,
                    document_ref=movement.document_ref,
                    user_id=user.id,
                    username=username,
                    timestamp=movement.ended_at,
                )
            )
        )

        rows.append(
            await self.activity.add_entry(
                ActivityLogCreate(
                    table_name="rack_inventory",
                    action_type=movement.action_type,
                    record_id=movement.part_no,
                    user_id=user.id,
                    username=username,
                    description=movement.description,
                    old_data={"qty": movement.old_qty},
                    new_data={"qty": movement.new_qty},
                )
            )
        )
        return rows
