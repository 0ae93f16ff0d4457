from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.core.settings import get_app_settings
from rackops.repositories.master_data import BomRepository
from rackops.schemas.label import LabelParseRequest, LabelResult
from rackops.services.label_processor import LabelProcessor

router = APIRouter(prefix="/labels", tags=["Labels"])


# PUBLIC_INTERFACE
@router.post(
    "/parse",
    response_model=LabelResult,
    response_model_by_alias=True,
    summary="Parse a part label",
    description=(
        "Classify a scanned label (version 1 multi-field or version 2 bare code), extract the PO "
        "and part number, and check the part number against the BOM master. Never fails on an "
        "unreadable label; StatusBOM is false instead."
    ),
    dependencies=[Depends(get_current_active_user)],
)
async def parse_label(
    payload: LabelParseRequest,
    session: AsyncSession = Depends(get_session),
) -> LabelResult:
    processor = LabelProcessor(BomRepository(session), get_app_settings().LABEL_PART_MATCH_POLICY)
    return await processor.process(payload.label)
