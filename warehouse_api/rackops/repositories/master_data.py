from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.db.models.master_data import BomMaster, PartnerRack
from .base import BaseRepository


class BomRepository(BaseRepository):
    """Repository for BOM master lines."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def child_part_exists(self, part_no: str) -> bool:
        """True when at least one BOM line uses part_no as its child part."""
        stmt = select(BomMaster.child_part).where(BomMaster.child_part == part_no).limit(1)
        res = await self.execute(stmt)
        return res.first() is not None

    async def list_by_kanban(self, kanban_code: str) -> List[BomMaster]:
        stmt = (
            select(BomMaster)
            .where(BomMaster.kanban_code == kanban_code)
            .order_by(BomMaster.sequence.asc().nullslast(), BomMaster.id.asc())
        )
        res = await self.scalars(stmt)
        return list(res)

    async def list_by_location(self, location: str) -> List[BomMaster]:
        stmt = select(BomMaster).where(BomMaster.location == location).order_by(BomMaster.id.asc())
        res = await self.scalars(stmt)
        return list(res)

    async def get_by_part_and_location(self, part_no: str, location: str) -> Optional[BomMaster]:
        # Several models may share a part at the same rack; the oldest line wins.
        stmt = (
            select(BomMaster)
            .where(BomMaster.child_part == part_no, BomMaster.location == location)
            .order_by(BomMaster.id.asc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    async def list_entries(
        self,
        *,
        kanban_code: Optional[str],
        location: Optional[str],
        model: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> List[BomMaster]:
        stmt = select(BomMaster)
        if kanban_code:
            stmt = stmt.where(BomMaster.kanban_code == kanban_code)
        if location:
            stmt = stmt.where(BomMaster.location == location)
        if model:
            stmt = stmt.where(BomMaster.model == model)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(
                or_(
                    BomMaster.child_part.ilike(like),
                    BomMaster.part_name.ilike(like),
                    BomMaster.parent_part.ilike(like),
                )
            )
        stmt = stmt.order_by(BomMaster.model, BomMaster.parent_part, BomMaster.sequence).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)


class PartnerRackRepository(BaseRepository):
    """Repository for partner rack assignments."""

    async def list_partner_racks(
        self, *, part_no: Optional[str], limit: int, offset: int
    ) -> List[PartnerRack]:
        stmt = select(PartnerRack)
        if part_no:
            stmt = stmt.where(PartnerRack.part_no == part_no)
        stmt = stmt.order_by(PartnerRack.part_no).offset(offset).limit(limit)
        res = await self.scalars(stmt)
        return list(res)

    async def list_for_part(self, part_no: str) -> List[PartnerRack]:
        stmt = select(PartnerRack).where(PartnerRack.part_no == part_no).order_by(PartnerRack.rack_location)
        res = await self.scalars(stmt)
        return list(res)
