from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_session, require_roles
from rackops.repositories.ledger import ActivityLogRepository
from rackops.schemas.inventory import ActivityLogRead

router = APIRouter(prefix="/activity-log", tags=["Activity Log"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ActivityLogRead],
    summary="List activity log",
    description="Human-readable audit trail with before/after quantities, newest first.",
    dependencies=[Depends(require_roles("admin", "controller"))],
)
async def list_activity(
    session: AsyncSession = Depends(get_session),
    table_name: Optional[str] = Query(None, description="Filter by table"),
    action_type: Optional[str] = Query(None, description="e.g. SUPPLY, PICKING, KOBETSU, ADJUST_STOCK"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[ActivityLogRead]:
    repo = ActivityLogRepository(session)
    rows = await repo.list_entries(table_name=table_name, action_type=action_type, limit=limit, offset=offset)
    return [ActivityLogRead.model_validate(r) for r in rows]
