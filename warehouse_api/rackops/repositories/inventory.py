from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.db.models.inventory import RackInventory, StockAdjustment
from rackops.schemas.records import RackInventoryCreate, StockAdjustmentCreate
from .base import BaseRepository


class RackInventoryRepository(BaseRepository):
    """
    Repository for rack inventory rows.

    Rows loaded with for_update=True are locked until the surrounding transaction
    ends (no-op on sqlite).
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_inventory(self, inventory_id: int, *, for_update: bool = False) -> Optional[RackInventory]:
        stmt = select(RackInventory).where(RackInventory.id == inventory_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def get_by_part_and_location(
        self, part_no: str, rack_location: str, *, for_update: bool = False
    ) -> Optional[RackInventory]:
        stmt = select(RackInventory).where(
            RackInventory.part_no == part_no,
            RackInventory.rack_location == rack_location,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def current_qty(self, part_no: str, rack_location: str) -> int:
        """Quantity on hand, 0 when the pair has never been supplied."""
        row = await self.get_by_part_and_location(part_no, rack_location)
        return row.qty if row else 0

    async def stock_map(self, pairs: Iterable[Tuple[str, str]]) -> Dict[Tuple[str, str], int]:
        """Quantities for many (part_no, rack_location) pairs in one query."""
        wanted = set(pairs)
        if not wanted:
            return {}
        parts = {p for p, _ in wanted}
        stmt = select(RackInventory.part_no, RackInventory.rack_location, RackInventory.qty).where(
            RackInventory.part_no.in_(parts)
        )
        res = await self.execute(stmt)
        return {(p, loc): qty for p, loc, qty in res.all() if (p, loc) in wanted}

    async def list_inventory(
        self, *, rack_location: Optional[str], part_no: Optional[str], limit: int, offset: int
    ) -> List[RackInventory]:
        stmt = select(RackInventory)
        if rack_location:
            stmt = stmt.where(RackInventory.rack_location == rack_location)
        if part_no:
            stmt = stmt.where(RackInventory.part_no == part_no)
        stmt = stmt.order_by(RackInventory.rack_location, RackInventory.part_no).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def all_quantities(self) -> Dict[Tuple[str, str], int]:
        res = await self.execute(select(RackInventory.part_no, RackInventory.rack_location, RackInventory.qty))
        return {(p, loc): qty for p, loc, qty in res.all()}

    async def create_inventory(self, payload: RackInventoryCreate) -> RackInventory:
        row = RackInventory(**payload.model_dump())
        await self.add(row)
        await self.flush()
        return row


class StockAdjustmentRepository(BaseRepository):
    """Repository for stock adjustments."""

    async def add_adjustment(self, payload: StockAdjustmentCreate) -> StockAdjustment:
        row = StockAdjustment(**payload.model_dump())
        await self.add(row)
        await self.flush()
        return row

    async def list_adjustments(self, *, part_no: Optional[str], limit: int, offset: int) -> List[StockAdjustment]:
        stmt = select(StockAdjustment)
        if part_no:
            stmt = stmt.where(StockAdjustment.part_no == part_no)
        stmt = stmt.order_by(StockAdjustment.adjusted_at.desc(), StockAdjustment.id.desc()).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)
