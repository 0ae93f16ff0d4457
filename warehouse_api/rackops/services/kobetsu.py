from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.settings import get_app_settings
from rackops.repositories.inventory import RackInventoryRepository
from rackops.repositories.master_data import BomRepository
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import Alert
from rackops.schemas.workflow import KobetsuSessionRead, MovementRead, RackItem
from rackops.services.base import BaseService
from rackops.services.errors import ConflictError, InputError, VerificationError
from rackops.services.label_processor import LabelProcessor
from rackops.services.ledger import MovementLedger, StockMovement, make_transaction_id
from rackops.services.realtime import broadcast_manager, change_event

logger = logging.getLogger(__name__)


class KobetsuStep(str, Enum):
    SCAN_RACK = "scan_rack"
    SCAN_PART = "scan_part"
    INPUT_QTY = "input_qty"


class KobetsuSession:
    """Manual pick of one part from one rack: scan_rack -> scan_part -> input_qty."""

    def __init__(self, owner_id: str) -> None:
        self.id: UUID = uuid4()
        self.owner_id = owner_id
        self.touched_at = datetime.now(timezone.utc)
        self.step = KobetsuStep.SCAN_RACK
        self.rack_location = ""
        self.part: Optional[RackItem] = None
        self.current_stock: Optional[int] = None
        self.scanned_po: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.commits = 0
        self.alert: Optional[Alert] = None

    def set_rack(self, location: str) -> None:
        location = (location or "").strip().upper()
        if not location:
            raise InputError("Scan the rack location first")
        self.rack_location = location
        self.started_at = datetime.now(timezone.utc)
        self.step = KobetsuStep.SCAN_PART
        self.alert = Alert(type="success", title=f"Rack location: {location}")

    def set_part(self, part: RackItem, current_stock: int, po: Optional[str]) -> None:
        self.part = part
        self.current_stock = current_stock
        self.scanned_po = po
        self.step = KobetsuStep.INPUT_QTY
        self.alert = Alert(
            type="success",
            title="Part found",
            description=f"{part.part_name} (stock: {current_stock}, PO: {po or 'N/A'})",
        )

    def reset(self, alert: Optional[Alert] = None) -> None:
        self.step = KobetsuStep.SCAN_RACK
        self.rack_location = ""
        self.part = None
        self.current_stock = None
        self.scanned_po = None
        self.started_at = None
        self.alert = alert

    def back(self) -> None:
        """Go back one step, forgetting what that step captured."""
        if self.step is KobetsuStep.INPUT_QTY:
            self.part = None
            self.current_stock = None
            self.scanned_po = None
            self.step = KobetsuStep.SCAN_PART
        elif self.step is KobetsuStep.SCAN_PART:
            self.reset()
        self.alert = None

    def require_step(self, step: KobetsuStep, title: str) -> None:
        if self.step is not step:
            raise InputError(title, f"Current step is {self.step.value}.")

    def snapshot(self) -> KobetsuSessionRead:
        return KobetsuSessionRead(
            id=self.id,
            step=self.step.value,
            rack_location=self.rack_location,
            part=self.part,
            current_stock=self.current_stock,
            scanned_po=self.scanned_po,
            alert=self.alert,
        )


class KobetsuService(BaseService):
    """
    Domain service for kobetsu (manual, single-item) picking.

    Removes stock from one (part, rack) pair. The stock seen at scan time is
    checked first and checked again under a row lock before the decrement.
    """

    def __init__(self, session: AsyncSession, processor: Optional[LabelProcessor] = None) -> None:
        super().__init__(session)
        self.bom_repo = BomRepository(session)
        self.inv_repo = RackInventoryRepository(session)
        self.ledger = MovementLedger(session)
        self.processor = processor or LabelProcessor(self.bom_repo, get_app_settings().LABEL_PART_MATCH_POLICY)

    # PUBLIC_INTERFACE
    def scan_rack(self, kobetsu: KobetsuSession, location: str) -> KobetsuSession:
        """Record the rack; no lookup happens until a part is scanned."""
        kobetsu.require_step(KobetsuStep.SCAN_RACK, "Rack already scanned")
        kobetsu.set_rack(location)
        return kobetsu

    # PUBLIC_INTERFACE
    async def scan_part(self, kobetsu: KobetsuSession, label: str) -> KobetsuSession:
        """Identify the part from its label; a BOM line must place it at the scanned rack."""
        kobetsu.require_step(KobetsuStep.SCAN_PART, "Scan the rack location first")
        label = (label or "").strip().upper()
        if not label:
            raise InputError("Scan the part label first")

        result = await self.processor.process(label)
        if not result.accepted:
            raise VerificationError(result.message)

        line = await self.read_guard(
            "Error processing label",
            self.bom_repo.get_by_part_and_location(result.part_no, kobetsu.rack_location),
        )
        if line is None:
            raise VerificationError("Part not found in BOM master for this rack", f"Part No: {result.part_no}")

        stock = await self.read_guard(
            "Error processing label",
            self.inv_repo.current_qty(line.child_part, kobetsu.rack_location),
        )
        part = RackItem(
            child_part=line.child_part,
            part_name=line.part_name or f"Part {line.child_part}",
            qty_per_set=line.qty_per_set or 1,
            location=line.location or kobetsu.rack_location,
        )
        kobetsu.set_part(part, stock, result.po)
        return kobetsu

    # PUBLIC_INTERFACE
    async def commit(self, kobetsu: KobetsuSession, qty: int, user: CurrentUser) -> MovementRead:
        """Remove qty from the rack and record the movement."""
        kobetsu.require_step(KobetsuStep.INPUT_QTY, "Scan the part label first")
        if qty is None or qty <= 0:
            raise InputError("Enter a valid quantity", "Quantity must be a positive whole number.")

        part = kobetsu.part
        location = kobetsu.rack_location
        if kobetsu.current_stock is None or kobetsu.current_stock < qty:
            raise VerificationError(
                "Insufficient stock",
                f"Available: {kobetsu.current_stock or 0}, Requested: {qty}",
            )

        ended_at = datetime.now(timezone.utc)
        transaction_id = make_transaction_id("KOB", kobetsu.id, kobetsu.commits + 1, part.child_part)

        async with self.unit_of_work("Error processing kobetsu"):
            row = await self.inv_repo.get_by_part_and_location(part.child_part, location, for_update=True)
            available = row.qty if row is not None else 0
            if row is None or available < qty:
                raise ConflictError(
                    "Stock changed since the part was scanned",
                    f"Available: {available}, Requested: {qty}",
                )
            old_qty = row.qty
            row.qty = old_qty - qty
            row.last_picking = ended_at
            rows = await self.ledger.record(
                StockMovement(
                    transaction_type="KOBETSU",
                    action_type="KOBETSU",
                    transaction_id=transaction_id,
                    part_no=part.child_part,
                    part_name=part.part_name,
                    rack_location=location,
                    delta=-qty,
                    old_qty=old_qty,
                    new_qty=row.qty,
                    started_at=kobetsu.started_at or ended_at,
                    ended_at=ended_at,
                    document_ref=kobetsu.scanned_po,
                    description=f"Kobetsu picking: {qty} units of {part.part_name} from {location}",
                ),
                user,
            )
            await self.session.flush()

        new_qty = row.qty
        kobetsu.commits += 1
        alert = Alert(
            type="success",
            title="Stock reduced",
            description=f"{qty} units removed from {location} (Remaining: {new_qty})",
        )
        kobetsu.reset(alert)
        logger.info("Kobetsu committed: %s -%d at %s (now %d)", part.child_part, qty, location, new_qty)

        await broadcast_manager.publish_changes(
            [change_event(row, "UPDATE", user.id)] + [change_event(entry, "INSERT", user.id) for entry in rows]
        )
        return MovementRead(
            part_no=part.child_part,
            rack_location=location,
            qty=qty,
            old_stock=old_qty,
            new_stock=new_qty,
            transaction_id=transaction_id,
            alert=alert,
        )
