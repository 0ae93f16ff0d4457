from __future__ import annotations

import io
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.deps import get_current_active_user, get_session
from rackops.db.models.inventory import RackInventory
from rackops.db.models.ledger import StockTransaction
from rackops.db.models.master_data import BomMaster
from rackops.services.inventory import InventoryService

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    dependencies=[Depends(get_current_active_user)],
)

EXPORT_FORMAT = Query("xlsx", pattern="^(csv|xlsx)$", description="Export format: csv | xlsx")


# PUBLIC_INTERFACE
def export_dataframe(df: pd.DataFrame, filename_base: str, export_format: str, sheet_name: str) -> StreamingResponse:
    """
    Stream df as a CSV or an Excel workbook (openpyxl engine).

    The filename gets today's date appended, e.g. Stock_Inventory_2024-05-01.xlsx.
    """
    filename = f"{filename_base}_{date.today().isoformat()}"
    if export_format == "csv":
        text = io.StringIO()
        df.to_csv(text, index=False)
        return StreamingResponse(
            io.BytesIO(text.getvalue().encode("utf-8")),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
        )

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    buffer.seek(0)
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}.xlsx"'},
    )


def _frame(records: List[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
    df = pd.DataFrame.from_records(records, columns=columns)
    # Excel cannot store tz-aware datetimes.
    for col in df.select_dtypes(include=["datetimetz"]).columns:
        df[col] = df[col].dt.tz_localize(None)
    return df


# PUBLIC_INTERFACE
@router.get(
    "/stock-inventory",
    summary="Stock inventory export",
    description="All rack inventory rows with their stock status against capacity.",
    response_description="File stream (CSV/XLSX)",
)
async def stock_inventory_report(
    session: AsyncSession = Depends(get_session),
    format: str = EXPORT_FORMAT,
):
    res = await session.execute(select(RackInventory).order_by(RackInventory.rack_location, RackInventory.part_no))
    records = []
    for row in res.scalars():
        capacity = row.max_capacity or 0
        fill = (row.qty / capacity * 100.0) if capacity else None
        records.append(
            {
                "Part No": row.part_no,
                "Part Name": row.part_name,
                "Rack Location": row.rack_location,
                "Qty": row.qty,
                "Max Capacity": row.max_capacity,
                "Fill %": round(fill, 1) if fill is not None else None,
                "Last Supply": row.last_supply,
                "Last Picking": row.last_picking,
            }
        )
    columns = ["Part No", "Part Name", "Rack Location", "Qty", "Max Capacity", "Fill %", "Last Supply", "Last Picking"]
    return export_dataframe(_frame(records, columns), "Stock_Inventory", format, "Stock Inventory")


# PUBLIC_INTERFACE
@router.get(
    "/bom-master",
    summary="BOM master export",
    response_description="File stream (CSV/XLSX)",
)
async def bom_master_report(
    session: AsyncSession = Depends(get_session),
    format: str = EXPORT_FORMAT,
):
    res = await session.execute(
        select(BomMaster).order_by(BomMaster.model, BomMaster.parent_part, BomMaster.sequence, BomMaster.id)
    )
    columns = [
        "parent_part", "child_part", "part_name", "model", "cyl", "qty_per_set", "qty_bom",
        "location", "kanban_code", "sequence", "safety_stock",
    ]
    records = [{c: getattr(row, c) for c in columns} for row in res.scalars()]
    return export_dataframe(_frame(records, columns), "BOM_Master", format, "BOM Master")


# PUBLIC_INTERFACE
@router.get(
    "/stock-transactions",
    summary="Stock ledger export",
    response_description="File stream (CSV/XLSX)",
)
async def stock_transactions_report(
    session: AsyncSession = Depends(get_session),
    type: Optional[str] = Query(None, description="SUPPLY | PICKING | KOBETSU | ADJUSTMENT"),
    format: str = EXPORT_FORMAT,
):
    stmt = select(StockTransaction).order_by(StockTransaction.timestamp.desc(), StockTransaction.id.desc())
    if type:
        stmt = stmt.where(StockTransaction.transaction_type == type)
    res = await session.execute(stmt)
    columns = [
        "transaction_id", "transaction_type", "item_code", "item_name", "qty", "rack_location",
        "source_location", "document_ref", "username", "timestamp",
    ]
    records = [{c: getattr(row, c) for c in columns} for row in res.scalars()]
    return export_dataframe(_frame(records, columns), "Stock_Transactions", format, "Stock Transactions")


# PUBLIC_INTERFACE
@router.get(
    "/reconciliation",
    summary="Reconciliation export",
    description="Inventory/ledger mismatches as a file.",
    response_description="File stream (CSV/XLSX)",
)
async def reconciliation_report(
    session: AsyncSession = Depends(get_session),
    format: str = EXPORT_FORMAT,
):
    rows = await InventoryService(session).reconcile()
    columns = ["part_no", "rack_location", "inventory_qty", "ledger_qty", "difference"]
    return export_dataframe(_frame([r.model_dump() for r in rows], columns), "Reconciliation", format, "Reconciliation")
