from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class LabelParseRequest(BaseModel):
    """Raw scanned or typed label payload."""
    label: str = Field(..., min_length=1, description="Barcode/QR payload as scanned")


class LabelResult(BaseModel):
    """
    Outcome of parsing one label and checking its part number against the BOM master.

    Serialised with the field names scanners already understand (PO, PartNo, ...).
    """
    model_config = ConfigDict(populate_by_name=True)

    po: Optional[str] = Field(None, alias="PO", description="Purchase-order reference (version 1 only)")
    part_no: Optional[str] = Field(None, alias="PartNo", description="Extracted part number, even if invalid")
    status_bom: bool = Field(False, alias="StatusBOM", description="True when the part is a known BOM child part")
    label_version: Optional[Literal[1, 2]] = Field(None, alias="LabelVersion", description="1 = multi-field, 2 = bare code")
    message: str = Field("", alias="Message", description="Human-readable outcome")

    @property
    def accepted(self) -> bool:
        return self.status_bom and bool(self.part_no)
