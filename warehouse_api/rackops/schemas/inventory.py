from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RackInventoryRead(BaseModel):
    """Read model for one part at one rack location."""
    id: int = Field(..., description="Inventory row ID")
    part_no: str = Field(..., description="Part number")
    part_name: str = Field(..., description="Part name")
    rack_location: str = Field(..., description="Rack location")
    qty: int = Field(..., description="Quantity on hand")
    max_capacity: Optional[int] = Field(None, description="Rack capacity for this part")
    last_supply: Optional[datetime] = Field(None, description="Last supply timestamp")
    last_picking: Optional[datetime] = Field(None, description="Last picking timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")

    model_config = ConfigDict(from_attributes=True)


class StockAdjustmentRequest(BaseModel):
    """Manual stock correction payload."""
    adjust_qty: int = Field(..., description="Signed quantity to add (negative to remove)")
    reason: str = Field(..., description="Why the physical count differs")


class StockAdjustmentRead(BaseModel):
    """Read model for a recorded stock adjustment."""
    id: int = Field(..., description="Adjustment ID")
    part_no: str = Field(...)
    part_name: str = Field(...)
    rack_location: str = Field(...)
    current_stock: int = Field(..., description="Quantity before the adjustment")
    adjust_qty: int = Field(..., description="Signed adjustment")
    new_stock: int = Field(..., description="Quantity after the adjustment")
    reason: str = Field(...)
    adjusted_by: Optional[str] = Field(None)
    adjusted_at: datetime = Field(...)

    model_config = ConfigDict(from_attributes=True)


class StockTransactionRead(BaseModel):
    """Read model for a stock ledger entry."""
    id: int = Field(..., description="Ledger row ID")
    transaction_id: str = Field(..., description="Business transaction id")
    transaction_type: str = Field(..., description="SUPPLY | PICKING | KOBETSU | ADJUSTMENT")
    item_code: str = Field(...)
    item_name: str = Field(...)
    qty: int = Field(..., description="Signed quantity (+IN / -OUT)")
    rack_location: str = Field(...)
    source_location: Optional[str] = Field(None)
    document_ref: Optional[str] = Field(None, description="Kanban/PO/reason reference")
    user_id: Optional[str] = Field(None)
    username: Optional[str] = Field(None)
    timestamp: datetime = Field(...)

    model_config = ConfigDict(from_attributes=True)


class TransactionLogRead(BaseModel):
    """Read model for a process execution audit entry."""
    id: int = Field(...)
    process_type: str = Field(..., description="SUPPLY | PICKING | KOBETSU")
    part_no: str = Field(...)
    rack_location: str = Field(...)
    qty: int = Field(...)
    start_time: datetime = Field(...)
    end_time: Optional[datetime] = Field(None)
    duration_sec: Optional[int] = Field(None)
    is_error: bool = Field(False)
    remarks: Optional[str] = Field(None)
    user_id: Optional[str] = Field(None)

    model_config = ConfigDict(from_attributes=True)


class ActivityLogRead(BaseModel):
    """Read model for the human-readable audit trail."""
    id: int = Field(...)
    table_name: str = Field(...)
    action_type: str = Field(...)
    record_id: Optional[str] = Field(None)
    user_id: Optional[str] = Field(None)
    username: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    old_data: Optional[dict[str, Any]] = Field(None)
    new_data: Optional[dict[str, Any]] = Field(None)
    created_at: datetime = Field(...)

    model_config = ConfigDict(from_attributes=True)


class ReconciliationRow(BaseModel):
    """A (part, location) pair whose inventory disagrees with its ledger."""
    part_no: str = Field(...)
    rack_location: str = Field(...)
    inventory_qty: int = Field(..., description="rack_inventory.qty (0 when no row)")
    ledger_qty: int = Field(..., description="Sum of signed stock_transactions.qty")
    difference: int = Field(..., description="inventory_qty - ledger_qty")
