from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from rackops.schemas.common import Alert


class PickingItem(BaseModel):
    """One BOM line being worked through a picking session, with its scan results."""
    id: int = Field(..., description="BOM line ID")
    sequence: int = Field(0, description="Pick sequence")
    child_part: str = Field(..., description="Expected part number")
    part_name: str = Field("", description="Part name")
    location: str = Field("", description="Expected rack location")
    qty_bom: int = Field(1, description="Exact quantity to pick")
    current_stock: int = Field(0, description="Stock snapshot taken when the kanban was loaded")
    scanned_part_no: str = Field("", description="Part number read from the label")
    scanned_location: str = Field("", description="Rack location scanned")
    scanned_qty: int = Field(0, description="Quantity entered")
    scanned_po: Optional[str] = Field(None, description="PO captured from the label")
    is_scanned: bool = Field(False, description="A submission was attempted")
    is_valid: bool = Field(False, description="Last submission passed every check")
    error_message: Optional[str] = Field(None, description="Why the last submission was rejected")


class PickingInputs(BaseModel):
    """Per-item input buffer, filled in location -> label -> quantity order."""
    location: str = Field("", description="Scanned rack location")
    label: str = Field("", description="Scanned label payload")
    qty: Optional[int] = Field(None, description="Entered quantity")


class KanbanScanRequest(BaseModel):
    """Start a picking session from a kanban code."""
    kanban_code: str = Field(..., description="Kanban code printed on the card")


class PickingInputRequest(BaseModel):
    """Fill one or more input fields of the current item; omitted fields are left as they are."""
    location: Optional[str] = Field(None)
    label: Optional[str] = Field(None)
    qty: Optional[int] = Field(None)


class SelectItemRequest(BaseModel):
    """Reposition the operator on an item."""
    index: int = Field(..., ge=0)


class PickingSessionRead(BaseModel):
    """Snapshot of a picking session."""
    id: UUID = Field(..., description="Session ID")
    state: str = Field(..., description="awaiting_kanban | items_loaded | all_items_processed | completed")
    step: Optional[str] = Field(None, description="awaiting_location | awaiting_label | awaiting_qty | ready_to_submit")
    kanban_code: str = Field("", description="Loaded kanban code")
    current_item_index: int = Field(0)
    items: List[PickingItem] = Field(default_factory=list)
    inputs: PickingInputs = Field(default_factory=PickingInputs)
    can_submit: bool = Field(False, description="All three inputs are present")
    all_items_processed: bool = Field(False, description="Every item has been submitted")
    all_items_valid: bool = Field(False, description="Every item passed verification")
    started_at: Optional[datetime] = Field(None)
    alert: Optional[Alert] = Field(None, description="Outcome of the last action")


class PickingCompletionRead(BaseModel):
    """Result of Verify & Complete."""
    kanban_code: str = Field(...)
    items_committed: int = Field(..., description="Number of items written to inventory and the ledgers")
    duration_sec: int = Field(...)
    alert: Alert = Field(...)
