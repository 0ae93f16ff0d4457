from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BomEntryRead(BaseModel):
    """BOM master line read model."""
    id: int = Field(..., description="BOM line ID")
    parent_part: str = Field(..., description="Parent assembly part number")
    child_part: str = Field(..., description="Required child part number")
    part_name: str = Field(..., description="Child part name")
    model: str = Field(..., description="Model")
    cyl: Optional[str] = Field(None, description="Cylinder variant")
    qty_per_set: int = Field(..., description="Quantity per set")
    qty_bom: Optional[int] = Field(None, description="Picking quantity")
    location: Optional[str] = Field(None, description="Expected rack location")
    kanban_code: Optional[str] = Field(None, description="Kanban code grouping the pick list")
    sequence: Optional[int] = Field(None, description="Pick sequence within the kanban")
    safety_stock: Optional[int] = Field(None)
    created_at: datetime = Field(..., description="Created at")
    updated_at: datetime = Field(..., description="Updated at")

    model_config = ConfigDict(from_attributes=True)


class PartnerRackRead(BaseModel):
    """Partner rack read model."""
    id: int = Field(..., description="Partner rack ID")
    part_no: str = Field(..., description="Part number")
    part_name: Optional[str] = Field(None)
    rack_location: str = Field(..., description="Rack the part can be supplied to")
    qty_per_box: Optional[int] = Field(None, description="Standard pack size")
    part_type: Optional[str] = Field(None, description="Big | Small")

    model_config = ConfigDict(from_attributes=True)
