from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlalchemy import CheckConstraint, DateTime, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from rackops.db.base import Base, IntPkMixin, TimestampMixin


class RackInventory(IntPkMixin, TimestampMixin, Base):
    """Physical stock of one part at one rack location."""
    __tablename__ = "rack_inventory"
    __table_args__ = (
        UniqueConstraint("part_no", "rack_location", name="uq_rack_inventory_part_location"),
        CheckConstraint("qty >= 0", name="qty_non_negative"),
    )

    part_no: Mapped[str] = mapped_column(Text, nullable=False)
    part_name: Mapped[str] = mapped_column(Text, nullable=False)
    rack_location: Mapped[str] = mapped_column(Text, nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_supply: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_picking: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class StockAdjustment(IntPkMixin, TimestampMixin, Base):
    """Manual correction of a rack_inventory quantity with its reason."""
    __tablename__ = "stock_adjustments"

    part_no: Mapped[str] = mapped_column(Text, nullable=False)
    part_name: Mapped[str] = mapped_column(Text, nullable=False)
    rack_location: Mapped[str] = mapped_column(Text, nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    adjust_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    adjusted_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    adjusted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
