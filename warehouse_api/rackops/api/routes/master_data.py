from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.repositories.master_data import BomRepository, PartnerRackRepository
from rackops.schemas.master_data import BomEntryRead, PartnerRackRead

router = APIRouter(prefix="/master-data", tags=["Master Data"])


# PUBLIC_INTERFACE
@router.get(
    "/bom",
    response_model=List[BomEntryRead],
    summary="List BOM master lines",
    description="BOM lines ordered by model, parent part and sequence, with optional filters.",
    dependencies=[Depends(get_current_active_user)],
)
async def list_bom(
    session: AsyncSession = Depends(get_session),
    kanban_code: Optional[str] = Query(None, description="Filter by kanban code"),
    location: Optional[str] = Query(None, description="Filter by rack location"),
    model: Optional[str] = Query(None, description="Filter by model"),
    search: Optional[str] = Query(None, description="Substring of child part, parent part or part name"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[BomEntryRead]:
    repo = BomRepository(session)
    rows = await repo.list_entries(
        kanban_code=kanban_code, location=location, model=model, search=search, limit=limit, offset=offset
    )
    return [BomEntryRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/partner-racks",
    response_model=List[PartnerRackRead],
    summary="List partner racks",
    dependencies=[Depends(get_current_active_user)],
)
async def list_partner_racks(
    session: AsyncSession = Depends(get_session),
    part_no: Optional[str] = Query(None, description="Filter by part number"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[PartnerRackRead]:
    repo = PartnerRackRepository(session)
    rows = await repo.list_partner_racks(part_no=part_no, limit=limit, offset=offset)
    return [PartnerRackRead.model_validate(r) for r in rows]
