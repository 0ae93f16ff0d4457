"""
Write records for the append-only tables and inventory rows.

Every write goes through one of these models; unknown or missing fields are
rejected before anything reaches the database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


ProcessType = Literal["SUPPLY", "PICKING", "KOBETSU"]
TransactionType = Literal["SUPPLY", "PICKING", "KOBETSU", "ADJUSTMENT"]


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RackInventoryCreate(_Record):
    part_no: str = Field(..., min_length=1)
    part_name: str
    rack_location: str = Field(..., min_length=1)
    qty: int = Field(..., ge=0)
    max_capacity: Optional[int] = None
    last_supply: Optional[datetime] = None
    last_picking: Optional[datetime] = None


class TransactionLogCreate(_Record):
    process_type: ProcessType
    part_no: str = Field(..., min_length=1)
    rack_location: str = Field(..., min_length=1)
    qty: int = Field(..., gt=0)
    start_time: datetime
    end_time: datetime
    duration_sec: int = Field(..., ge=0)
    is_error: bool = False
    remarks: Optional[str] = None
    user_id: Optional[str] = None


class StockTransactionCreate(_Record):
    transaction_id: str = Field(..., min_length=1)
    transaction_type: TransactionType
    item_code: str = Field(..., min_length=1)
    item_name: str
    qty: int
    rack_location: str = Field(..., min_length=1)
    source_location: Optional[str] = None
    document_ref: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    timestamp: datetime


class ActivityLogCreate(_Record):
    table_name: str
    action_type: str
    record_id: Optional[str] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    description: Optional[str] = None
    old_data: Optional[dict[str, Any]] = None
    new_data: Optional[dict[str, Any]] = None


class StockAdjustmentCreate(_Record):
    part_no: str
    part_name: str
    rack_location: str
    current_stock: int = Field(..., ge=0)
    adjust_qty: int
    new_stock: int = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    adjusted_by: Optional[str] = None
