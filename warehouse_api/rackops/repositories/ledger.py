from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select

from rackops.db.models.ledger import ActivityLog, StockTransaction, TransactionLog
from rackops.schemas.records import ActivityLogCreate, StockTransactionCreate, TransactionLogCreate
from .base import BaseRepository


class TransactionLogRepository(BaseRepository):
    """Repository for the process execution log."""

    async def add_entry(self, payload: TransactionLogCreate) -> TransactionLog:
        row = TransactionLog(**payload.model_dump())
        await self.add(row)
        return row

    async def list_entries(
        self, *, process_type: Optional[str], limit: int, offset: int
    ) -> List[TransactionLog]:
        stmt = select(TransactionLog)
        if process_type:
            stmt = stmt.where(TransactionLog.process_type == process_type)
        stmt = stmt.order_by(TransactionLog.start_time.desc(), TransactionLog.id.desc()).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)


class StockTransactionRepository(BaseRepository):
    """Repository for the signed stock ledger."""

    async def add_transaction(self, payload: StockTransactionCreate) -> StockTransaction:
        row = StockTransaction(**payload.model_dump())
        await self.add(row)
        return row

    async def list_transactions(
        self,
        *,
        transaction_type: Optional[str],
        item_code: Optional[str],
        limit: int,
        offset: int,
    ) -> List[StockTransaction]:
        stmt = select(StockTransaction)
        if transaction_type:
            stmt = stmt.where(StockTransaction.transaction_type == transaction_type)
        if item_code:
            stmt = stmt.where(StockTransaction.item_code == item_code)
        stmt = stmt.order_by(StockTransaction.timestamp.desc(), StockTransaction.id.desc()).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def ledger_totals(self) -> Dict[Tuple[str, str], int]:
        """Running sum of signed quantities per (item_code, rack_location)."""
        stmt = select(
            StockTransaction.item_code,
            StockTransaction.rack_location,
            func.coalesce(func.sum(StockTransaction.qty), 0),
        ).group_by(StockTransaction.item_code, StockTransaction.rack_location)
        res = await self.execute(stmt)
        return {(code, loc): int(total) for code, loc, total in res.all()}


class ActivityLogRepository(BaseRepository):
    """Repository for the human-readable audit trail."""

    async def add_entry(self, payload: ActivityLogCreate) -> ActivityLog:
        row = ActivityLog(**payload.model_dump())
        await self.add(row)
        return row

    async def list_entries(
        self, *, table_name: Optional[str], action_type: Optional[str], limit: int, offset: int
    ) -> List[ActivityLog]:
        stmt = select(ActivityLog)
        if table_name:
            stmt = stmt.where(ActivityLog.table_name == table_name)
        if action_type:
            stmt = stmt.where(ActivityLog.action_type == action_type)
        stmt = stmt.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)
