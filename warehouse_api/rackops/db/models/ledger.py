from __future__ import annotations

from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, Integer, Text, Index, false
from sqlalchemy.orm import Mapped, mapped_column

from rackops.db.base import Base, IntPkMixin, TimestampMixin, JSONType


class TransactionLog(IntPkMixin, TimestampMixin, Base):
    """Append-only audit of one process execution (SUPPLY/PICKING/KOBETSU)."""
    __tablename__ = "transaction_log"

    process_type: Mapped[str] = mapped_column(Text, nullable=False)
    part_no: Mapped[str] = mapped_column(Text, nullable=False)
    rack_location: Mapped[str] = mapped_column(Text, nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_sec: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_error: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class StockTransaction(IntPkMixin, TimestampMixin, Base):
    """Signed stock movement; the system of record for what moved, when, by whom."""
    __tablename__ = "stock_transactions"
    __table_args__ = (
        Index("ix_stock_transactions_item_location", "item_code", "rack_location"),
    )

    transaction_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    transaction_type: Mapped[str] = mapped_column(Text, nullable=False)
    item_code: Mapped[str] = mapped_column(Text, nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)  # +IN / -OUT
    rack_location: Mapped[str] = mapped_column(Text, nullable=False)
    source_location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    document_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    username: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ActivityLog(IntPkMixin, TimestampMixin, Base):
    """Human-readable audit trail with before/after snapshots."""
    __tablename__ = "activity_log"

    table_name: Mapped[str] = mapped_column(Text, nullable=False)
    action_type: Mapped[str] = mapped_column(Text, nullable=False)
    record_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    username: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    old_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
