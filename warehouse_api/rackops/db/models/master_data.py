from __future__ import annotations

from typing import Optional
from sqlalchemy import Text, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from rackops.db.base import Base, IntPkMixin, TimestampMixin


class BomMaster(IntPkMixin, TimestampMixin, Base):
    """Bill of Materials line: one required child part of a parent assembly."""
    __tablename__ = "bom_master"
    __table_args__ = (
        Index("ix_bom_master_kanban_code_sequence", "kanban_code", "sequence"),
        Index("ix_bom_master_child_part_location", "child_part", "location"),
    )

    parent_part: Mapped[str] = mapped_column(Text, nullable=False)
    child_part: Mapped[str] = mapped_column(Text, nullable=False)
    part_name: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    cyl: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unix_no: Mapped[str] = mapped_column(Text, nullable=False, default="")
    qty_per_set: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    qty_bom: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # picking quantity
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # expected rack
    kanban_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    label_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rack: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assy_line_no: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bom: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    safety_stock: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class PartnerRack(IntPkMixin, TimestampMixin, Base):
    """Rack a part may be supplied to directly, without a BOM line (big parts)."""
    __tablename__ = "partner_rack"
    __table_args__ = (
        Index("ix_partner_rack_part_no", "part_no"),
    )

    part_no: Mapped[str] = mapped_column(Text, nullable=False)
    part_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    qty_per_box: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    part_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # Big | Small
    rack_location: Mapped[str] = mapped_column(Text, nullable=False)
