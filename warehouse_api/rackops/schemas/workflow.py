from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rackops.schemas.common import Alert


class ScanLocationRequest(BaseModel):
    """Rack location scanned or typed by the operator."""
    location: str = Field(..., description="Rack location code")


class ScanLabelRequest(BaseModel):
    """Part label scanned or typed by the operator."""
    label: str = Field(..., description="Label payload")


class QuantityRequest(BaseModel):
    """Quantity entered for the commit step."""
    qty: int = Field(..., description="Positive integer quantity")


class RackItem(BaseModel):
    """A BOM line allocated to a rack."""
    child_part: str = Field(...)
    part_name: str = Field(...)
    qty_per_set: int = Field(1)
    location: str = Field("")

    model_config = ConfigDict(from_attributes=True)


class SupplySessionRead(BaseModel):
    """Snapshot of a supply (put-away) session."""
    id: UUID = Field(...)
    step: str = Field(..., description="scan_rack | scan_item | input_qty")
    rack_location: str = Field("")
    rack_items: List[RackItem] = Field(default_factory=list)
    selected_item: Optional[RackItem] = Field(None)
    current_stock: Optional[int] = Field(None)
    scanned_po: Optional[str] = Field(None)
    alert: Optional[Alert] = Field(None)


class KobetsuSessionRead(BaseModel):
    """Snapshot of a kobetsu (manual pick) session."""
    id: UUID = Field(...)
    step: str = Field(..., description="scan_rack | scan_part | input_qty")
    rack_location: str = Field("")
    part: Optional[RackItem] = Field(None, description="BOM line matched by the scanned label")
    current_stock: Optional[int] = Field(None)
    scanned_po: Optional[str] = Field(None)
    alert: Optional[Alert] = Field(None)


class PartNumberRequest(BaseModel):
    """Part number scanned or typed by the operator."""
    part_no: str = Field(..., description="Part number")


class PartnerSupplyRequest(BaseModel):
    """Quantity and destination for a big part supply."""
    qty: int = Field(..., description="Positive integer quantity")
    location: Optional[str] = Field(None, description="Destination rack; may be omitted when the part has only one")


class PartnerRackOption(BaseModel):
    """A rack the scanned big part can be supplied to."""
    rack_location: str = Field(...)
    part_type: Optional[str] = Field(None, description="Big | Small")
    current_stock: int = Field(0)


class PartnerSupplySessionRead(BaseModel):
    """Snapshot of a big part supply session."""
    id: UUID = Field(...)
    step: str = Field(..., description="scan_part | input_details")
    part_no: str = Field("")
    part_name: str = Field("")
    qty_per_box: Optional[int] = Field(None, description="Standard pack size")
    locations: List[PartnerRackOption] = Field(default_factory=list)
    selected_location: Optional[str] = Field(None)
    alert: Optional[Alert] = Field(None)


class MovementRead(BaseModel):
    """Result of a committed single-item movement."""
    part_no: str = Field(...)
    rack_location: str = Field(...)
    qty: int = Field(..., description="Quantity moved (unsigned)")
    old_stock: int = Field(...)
    new_stock: int = Field(...)
    transaction_id: str = Field(..., description="Ledger transaction id")
    alert: Alert = Field(...)
