from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.settings import get_app_settings
from rackops.db.models.inventory import RackInventory
from rackops.repositories.inventory import RackInventoryRepository
from rackops.repositories.master_data import BomRepository
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import Alert
from rackops.schemas.records import RackInventoryCreate
from rackops.schemas.workflow import MovementRead, RackItem, SupplySessionRead
from rackops.services.base import BaseService
from rackops.services.errors import InputError, NotFoundError, VerificationError
from rackops.services.label_processor import LabelProcessor
from rackops.services.ledger import MovementLedger, StockMovement, make_transaction_id
from rackops.services.realtime import broadcast_manager, change_event

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def stock_in(
    inv_repo: RackInventoryRepository,
    part_no: str,
    part_name: str,
    location: str,
    qty: int,
    *,
    max_capacity: int,
    at: datetime,
) -> Tuple[RackInventory, int, str]:
    """
    Stage qty more units of part_no at location, reading the row under a lock.

    The first supply to a location creates its inventory row with max_capacity.
    Returns the row, its quantity before the change and the change event name.
    """
    row = await inv_repo.get_by_part_and_location(part_no, location, for_update=True)
    if row is None:
        row = await inv_repo.create_inventory(
            RackInventoryCreate(
                part_no=part_no,
                part_name=part_name,
                rack_location=location,
                qty=qty,
                max_capacity=max_capacity,
                last_supply=at,
            )
        )
        return row, 0, "INSERT"
    old_qty = row.qty
    row.qty = old_qty + qty
    row.part_name = part_name
    row.last_supply = at
    return row, old_qty, "UPDATE"


class SupplyStep(str, Enum):
    SCAN_RACK = "scan_rack"
    SCAN_ITEM = "scan_item"
    INPUT_QTY = "input_qty"


class SupplySession:
    """
    Put-away of one part into one rack: scan_rack -> scan_item -> input_qty.

    After each commit the session returns to scan_rack and can be reused.
    """

    def __init__(self, owner_id: str) -> None:
        self.id: UUID = uuid4()
        self.owner_id = owner_id
        self.touched_at = datetime.now(timezone.utc)
        self.step = SupplyStep.SCAN_RACK
        self.rack_location = ""
        self.rack_items: List[RackItem] = []
        self.selected_item: Optional[RackItem] = None
        self.current_stock: Optional[int] = None
        self.scanned_po: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.commits = 0
        self.alert: Optional[Alert] = None

    def set_rack(self, location: str, items: List[RackItem]) -> None:
        self.rack_location = location
        self.rack_items = items
        self.selected_item = None
        self.current_stock = None
        self.scanned_po = None
        self.started_at = datetime.now(timezone.utc)
        self.step = SupplyStep.SCAN_ITEM
        self.alert = Alert(type="success", title=f"Found {len(items)} items for rack {location}")

    def find_item(self, part_no: str) -> Optional[RackItem]:
        wanted = part_no.upper()
        for item in self.rack_items:
            if item.child_part.upper() == wanted:
                return item
        return None

    def set_item(self, item: RackItem, current_stock: int, po: Optional[str]) -> None:
        self.selected_item = item
        self.current_stock = current_stock
        self.scanned_po = po
        self.step = SupplyStep.INPUT_QTY
        self.alert = Alert(
            type="success",
            title="Item found",
            description=f"{item.part_name} (stock: {current_stock}, PO: {po or 'N/A'})",
        )

    def reset(self, alert: Optional[Alert] = None) -> None:
        self.step = SupplyStep.SCAN_RACK
        self.rack_location = ""
        self.rack_items = []
        self.selected_item = None
        self.current_stock = None
        self.scanned_po = None
        self.started_at = None
        self.alert = alert

    def back(self) -> None:
        """Go back one step, forgetting what that step captured."""
        if self.step is SupplyStep.INPUT_QTY:
            self.selected_item = None
            self.current_stock = None
            self.scanned_po = None
            self.step = SupplyStep.SCAN_ITEM
        elif self.step is SupplyStep.SCAN_ITEM:
            self.reset()
        self.alert = None

    def require_step(self, step: SupplyStep, title: str) -> None:
        if self.step is not step:
            raise InputError(title, f"Current step is {self.step.value}.")

    def snapshot(self) -> SupplySessionRead:
        return SupplySessionRead(
            id=self.id,
            step=self.step.value,
            rack_location=self.rack_location,
            rack_items=list(self.rack_items),
            selected_item=self.selected_item,
            current_stock=self.current_stock,
            scanned_po=self.scanned_po,
            alert=self.alert,
        )


class SupplyService(BaseService):
    """
    Domain service for supply (put-away).

    Adds stock to one (part, rack) pair, creating the inventory row on first
    supply, and writes the matching log, ledger and activity entries in the
    same transaction.
    """

    def __init__(self, session: AsyncSession, processor: Optional[LabelProcessor] = None) -> None:
        super().__init__(session)
        self.settings = get_app_settings()
        self.bom_repo = BomRepository(session)
        self.inv_repo = RackInventoryRepository(session)
        self.ledger = MovementLedger(session)
        self.processor = processor or LabelProcessor(self.bom_repo, self.settings.LABEL_PART_MATCH_POLICY)

    # PUBLIC_INTERFACE
    async def scan_rack(self, supply: SupplySession, location: str) -> SupplySession:
        """Load the BOM lines allocated to the scanned rack."""
        supply.require_step(SupplyStep.SCAN_RACK, "Rack already scanned")
        location = (location or "").strip().upper()
        if not location:
            raise InputError("Scan the rack location first")

        lines = await self.read_guard("Error loading rack items", self.bom_repo.list_by_location(location))
        if not lines:
            raise NotFoundError("No BOM material for this rack", location)

        items = [
            RackItem(
                child_part=line.child_part,
                part_name=line.part_name or "",
                qty_per_set=line.qty_per_set or 1,
                location=line.location or location,
            )
            for line in lines
        ]
        supply.set_rack(location, items)
        return supply

    # PUBLIC_INTERFACE
    async def scan_item(self, supply: SupplySession, label: str) -> SupplySession:
        """Identify the part from its label; it must be one of the rack's BOM lines."""
        supply.require_step(SupplyStep.SCAN_ITEM, "Scan the rack location first")
        label = (label or "").strip().upper()
        if not label:
            raise InputError("Scan the part label first")

        result = await self.processor.process(label)
        if not result.accepted:
            raise VerificationError(result.message)

        item = supply.find_item(result.part_no or "")
        if item is None:
            raise VerificationError("Item is not required by this rack", f"Part No: {result.part_no}")

        stock = await self.read_guard(
            "Error fetching inventory",
            self.inv_repo.current_qty(item.child_part, supply.rack_location),
        )
        supply.set_item(item, stock, result.po)
        return supply

    # PUBLIC_INTERFACE
    async def commit(self, supply: SupplySession, qty: int, user: CurrentUser) -> MovementRead:
        """Add qty to the rack and record the movement."""
        supply.require_step(SupplyStep.INPUT_QTY, "Scan the part label first")
        if qty is None or qty <= 0:
            raise InputError("Enter a valid quantity", "Quantity must be a positive whole number.")

        item = supply.selected_item
        location = supply.rack_location
        ended_at = datetime.now(timezone.utc)
        transaction_id = make_transaction_id("SUP", supply.id, supply.commits + 1, item.child_part)

        async with self.unit_of_work("Error processing supply"):
            row, old_qty, event = await stock_in(
                self.inv_repo,
                item.child_part,
                item.part_name,
                location,
                qty,
                max_capacity=self.settings.DEFAULT_MAX_CAPACITY,
                at=ended_at,
            )
            rows = await self.ledger.record(
                StockMovement(
                    transaction_type="SUPPLY",
                    action_type="SUPPLY",
                    transaction_id=transaction_id,
                    part_no=item.child_part,
                    part_name=item.part_name,
                    rack_location=location,
                    delta=qty,
                    old_qty=old_qty,
                    new_qty=row.qty,
                    started_at=supply.started_at or ended_at,
                    ended_at=ended_at,
                    document_ref=supply.scanned_po,
                    description=f"Supply {qty} units of {item.part_name} to {location}",
                ),
                user,
            )
            await self.session.flush()

        new_qty = row.qty
        supply.commits += 1
        alert = Alert(
            type="success",
            title="Stock added",
            description=f"{qty} units {item.part_name} -> {location} (Total: {new_qty})",
        )
        supply.reset(alert)
        logger.info("Supply committed: %s +%d at %s (now %d)", item.child_part, qty, location, new_qty)

        await broadcast_manager.publish_changes(
            [change_event(row, event, user.id)] + [change_event(entry, "INSERT", user.id) for entry in rows]
        )
        return MovementRead(
            part_no=item.child_part,
            rack_location=location,
            qty=qty,
            old_stock=old_qty,
            new_stock=new_qty,
            transaction_id=transaction_id,
            alert=alert,
        )
