"""
Database seeding utilities for minimal reference data.

Seeds:
- Admin operator profile (id from SEED_ADMIN_ID, default "admin")
- A sample kanban (KB-DEMO-01) of three BOM lines on racks A-01-01..A-01-03
- A big part with two partner rack locations

Usage:
  python -m rackops.db.run_migrations upgrade head
  python -m rackops.db.seed
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.db.models.master_data import BomMaster, PartnerRack
from rackops.db.session import get_async_session
from rackops.repositories.security import ProfileRepository

logger = logging.getLogger(__name__)

SAMPLE_KANBAN = "KB-DEMO-01"

SAMPLE_BOM: List[dict] = [
    {"child_part": "9632107140", "part_name": "BUCKET ASSY", "location": "A-01-01", "sequence": 1, "qty_bom": 2},
    {"child_part": "4471820030", "part_name": "SEAL RING", "location": "A-01-02", "sequence": 2, "qty_bom": 4},
    {"child_part": "8812300510", "part_name": "BRACKET LH", "location": "A-01-03", "sequence": 3, "qty_bom": 1},
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with minimal reference data.

    Idempotent: existing profiles and BOM lines of the sample kanban are left as they are.
    """
    async for session in get_async_session():
        await _seed_admin(session)
        await _seed_bom(session)
        await _seed_partner_racks(session)
        await session.commit()


async def _seed_admin(session: AsyncSession) -> None:
    admin_id = os.getenv("SEED_ADMIN_ID", "admin")
    await ProfileRepository(session).ensure_profile(admin_id, username="admin", role="admin", full_name="Administrator")


async def _seed_bom(session: AsyncSession) -> None:
    res = await session.execute(select(BomMaster.id).where(BomMaster.kanban_code == SAMPLE_KANBAN).limit(1))
    if res.first() is not None:
        return
    session.add_all(
        BomMaster(
            parent_part="ASSY-DEMO-100",
            model="DEMO",
            kanban_code=SAMPLE_KANBAN,
            qty_per_set=line["qty_bom"],
            created_by="seed",
            **line,
        )
        for line in SAMPLE_BOM
    )
    logger.info("Seeded %d BOM lines for kanban %s", len(SAMPLE_BOM), SAMPLE_KANBAN)


async def _seed_partner_racks(session: AsyncSession) -> None:
    res = await session.execute(select(PartnerRack.id).limit(1))
    if res.first() is not None:
        return
    session.add_all(
        PartnerRack(part_no="8812300510", part_name="BRACKET LH", qty_per_box=10, part_type="Big", rack_location=location)
        for location in ("B-07-01", "B-07-02")
    )


if __name__ == "__main__":
    asyncio.run(seed_all())
