from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from rackops.db.models.inventory import StockAdjustment
from rackops.repositories.inventory import RackInventoryRepository, StockAdjustmentRepository
from rackops.repositories.ledger import StockTransactionRepository
from rackops.schemas.auth import CurrentUser
from rackops.schemas.inventory import ReconciliationRow
from rackops.schemas.records import StockAdjustmentCreate
from rackops.services.base import BaseService
from rackops.services.errors import InputError, NotFoundError
from rackops.services.ledger import MovementLedger, StockMovement, display_name
from rackops.services.realtime import broadcast_manager, change_event

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    """
    Stock corrections and the inventory/ledger reconciliation report.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.inv_repo = RackInventoryRepository(session)
        self.adj_repo = StockAdjustmentRepository(session)
        self.tx_repo = StockTransactionRepository(session)
        self.ledger = MovementLedger(session)

    # PUBLIC_INTERFACE
    async def adjust_stock(
        self, inventory_id: int, adjust_qty: int, reason: str, user: CurrentUser
    ) -> StockAdjustment:
        """
        Apply a signed correction to one inventory row.

        Writes the stock_adjustments row, an ADJUST_STOCK activity entry and an
        ADJUSTMENT ledger entry together with the new quantity.
        """
        reason = (reason or "").strip()
        if not reason:
            raise InputError("Enter a reason for the adjustment")
        if not adjust_qty:
            raise InputError("Enter a non-zero adjustment quantity")

        now = datetime.now(timezone.utc)
        async with self.unit_of_work("Error adjusting stock"):
            row = await self.inv_repo.get_inventory(inventory_id, for_update=True)
            if row is None:
                raise NotFoundError("Inventory row not found", str(inventory_id))
            old_qty = row.qty
            new_qty = old_qty + adjust_qty
            if new_qty < 0:
                raise InputError(
                    "Stock cannot go below zero",
                    f"Current: {old_qty}, Adjustment: {adjust_qty}",
                )
            row.qty = new_qty
            adjustment = await self.adj_repo.add_adjustment(
                StockAdjustmentCreate(
                    part_no=row.part_no,
                    part_name=row.part_name,
                    rack_location=row.rack_location,
                    current_stock=old_qty,
                    adjust_qty=adjust_qty,
                    new_stock=new_qty,
                    reason=reason,
                    adjusted_by=display_name(user),
                )
            )
            rows = await self.ledger.record(
                StockMovement(
                    transaction_type="ADJUSTMENT",
                    action_type="ADJUST_STOCK",
                    transaction_id=f"ADJ-{adjustment.id}-{row.part_no}",
                    part_no=row.part_no,
                    part_name=row.part_name,
                    rack_location=row.rack_location,
                    delta=adjust_qty,
                    old_qty=old_qty,
                    new_qty=new_qty,
                    started_at=now,
                    ended_at=now,
                    document_ref=reason,
                    source_location="ADJUSTMENT",
                    description=f"Adjusted stock of {row.part_no} at {row.rack_location} by {adjust_qty}: {reason}",
                ),
                user,
            )
            await self.session.flush()

        logger.info("Stock of %s at %s adjusted %+d to %d", row.part_no, row.rack_location, adjust_qty, new_qty)
        await broadcast_manager.publish_changes(
            [change_event(row, "UPDATE", user.id), change_event(adjustment, "INSERT", user.id)]
            + [change_event(entry, "INSERT", user.id) for entry in rows]
        )
        return adjustment

    # PUBLIC_INTERFACE
    async def reconcile(self) -> List[ReconciliationRow]:
        """
        Pairs whose rack_inventory.qty differs from the sum of their ledger entries.

        A pair missing on one side counts as 0 there.
        """
        inventory = await self.read_guard("Error loading inventory", self.inv_repo.all_quantities())
        ledger = await self.read_guard("Error loading stock transactions", self.tx_repo.ledger_totals())
        rows: List[ReconciliationRow] = []
        for part_no, location in sorted(set(inventory) | set(ledger)):
            inv_qty = inventory.get((part_no, location), 0)
            ledger_qty = ledger.get((part_no, location), 0)
            if inv_qty != ledger_qty:
                rows.append(
                    ReconciliationRow(
                        part_no=part_no,
                        rack_location=location,
                        inventory_qty=inv_qty,
                        ledger_qty=ledger_qty,
                        difference=inv_qty - ledger_qty,
                    )
                )
        return rows
