"""
Big part supply: put a part away on one of its partner racks.

Big parts have no BOM line at the rack they are stored in, so the scanned part
number is looked up in partner_rack and the operator picks the destination
from the racks listed there.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from rackops.core.settings import get_app_settings
from rackops.repositories.inventory import RackInventoryRepository
from rackops.repositories.master_data import PartnerRackRepository
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import Alert
from rackops.schemas.workflow import MovementRead, PartnerRackOption, PartnerSupplySessionRead
from rackops.services.base import BaseService
from rackops.services.errors import InputError, NotFoundError, VerificationError
from rackops.services.ledger import MovementLedger, StockMovement, make_transaction_id
from rackops.services.realtime import broadcast_manager, change_event
from rackops.services.supply import stock_in

logger = logging.getLogger(__name__)


class PartnerSupplyStep(str, Enum):
    SCAN_PART = "scan_part"
    INPUT_DETAILS = "input_details"


class PartnerSupplySession:
    """Supply of one big part: scan_part -> input_details (quantity and destination)."""

    def __init__(self, owner_id: str) -> None:
        self.id: UUID = uuid4()
        self.owner_id = owner_id
        self.touched_at = datetime.now(timezone.utc)
        self.step = PartnerSupplyStep.SCAN_PART
        self.part_no = ""
        self.part_name = ""
        self.qty_per_box: Optional[int] = None
        self.locations: List[PartnerRackOption] = []
        self.selected_location: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.commits = 0
        self.alert: Optional[Alert] = None

    def set_part(
        self,
        part_no: str,
        part_name: str,
        qty_per_box: Optional[int],
        locations: List[PartnerRackOption],
    ) -> None:
        self.part_no = part_no
        self.part_name = part_name
        self.qty_per_box = qty_per_box
        self.locations = locations
        # A single destination needs no choice.
        self.selected_location = locations[0].rack_location if len(locations) == 1 else None
        self.started_at = datetime.now(timezone.utc)
        self.step = PartnerSupplyStep.INPUT_DETAILS
        self.alert = Alert(type="success", title=f"Found {len(locations)} partner racks for {part_no}")

    def choose_location(self, location: Optional[str]) -> str:
        """Select the destination rack; it must be one of the part's partner racks."""
        location = (location or "").strip().upper()
        if location:
            if location not in {option.rack_location.upper() for option in self.locations}:
                raise VerificationError(
                    "Location is not a partner rack for this part",
                    f"Part No: {self.part_no}, Location: {location}",
                )
            self.selected_location = next(
                option.rack_location for option in self.locations if option.rack_location.upper() == location
            )
        if not self.selected_location:
            raise InputError("Select a destination location")
        return self.selected_location

    def reset(self, alert: Optional[Alert] = None) -> None:
        self.step = PartnerSupplyStep.SCAN_PART
        self.part_no = ""
        self.part_name = ""
        self.qty_per_box = None
        self.locations = []
        self.selected_location = None
        self.started_at = None
        self.alert = alert

    def back(self) -> None:
        self.reset()

    def require_step(self, step: PartnerSupplyStep, title: str) -> None:
        if self.step is not step:
            raise InputError(title, f"Current step is {self.step.value}.")

    def snapshot(self) -> PartnerSupplySessionRead:
        return PartnerSupplySessionRead(
            id=self.id,
            step=self.step.value,
            part_no=self.part_no,
            part_name=self.part_name,
            qty_per_box=self.qty_per_box,
            locations=[option.model_copy() for option in self.locations],
            selected_location=self.selected_location,
            alert=self.alert,
        )


class PartnerSupplyService(BaseService):
    """
    Domain service for big part supply.

    Writes the same rows as a regular supply: the inventory upsert plus the
    transaction log, ledger and activity entries, in one transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.settings = get_app_settings()
        self.partner_repo = PartnerRackRepository(session)
        self.inv_repo = RackInventoryRepository(session)
        self.ledger = MovementLedger(session)

    # PUBLIC_INTERFACE
    async def scan_part(self, supply: PartnerSupplySession, part_no: str) -> PartnerSupplySession:
        """List the partner racks of the scanned part with their current stock."""
        supply.require_step(PartnerSupplyStep.SCAN_PART, "Part already scanned")
        part_no = (part_no or "").strip().upper()
        if not part_no:
            raise InputError("Enter a part number")

        racks = await self.read_guard("Error loading partner racks", self.partner_repo.list_for_part(part_no))
        if not racks:
            raise NotFoundError("Part number not found in partner rack", part_no)

        stock = await self.read_guard(
            "Error fetching inventory",
            self.inv_repo.stock_map([(part_no, rack.rack_location) for rack in racks]),
        )
        options = [
            PartnerRackOption(
                rack_location=rack.rack_location,
                part_type=rack.part_type,
                current_stock=stock.get((part_no, rack.rack_location), 0),
            )
            for rack in racks
        ]
        first = racks[0]
        supply.set_part(part_no, first.part_name or part_no, first.qty_per_box, options)
        return supply

    # PUBLIC_INTERFACE
    async def commit(
        self,
        supply: PartnerSupplySession,
        qty: int,
        user: CurrentUser,
        location: Optional[str] = None,
    ) -> MovementRead:
        """Add qty of the scanned part to the chosen partner rack and record the movement."""
        supply.require_step(PartnerSupplyStep.INPUT_DETAILS, "Scan a part number first")
        if qty is None or qty <= 0:
            raise InputError("Enter a valid quantity", "Quantity must be a positive whole number.")
        location = supply.choose_location(location)

        part_no = supply.part_no
        part_name = supply.part_name
        ended_at = datetime.now(timezone.utc)
        transaction_id = make_transaction_id("SUP-BIG", supply.id, supply.commits + 1, part_no)

        async with self.unit_of_work("Error processing big part supply"):
            row, old_qty, event = await stock_in(
                self.inv_repo,
                part_no,
                part_name,
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
                    part_no=part_no,
                    part_name=part_name,
                    rack_location=location,
                    delta=qty,
                    old_qty=old_qty,
                    new_qty=row.qty,
                    started_at=supply.started_at or ended_at,
                    ended_at=ended_at,
                    remarks="Big part",
                    description=f"Supply big part: {qty} units of {part_name} to {location}",
                ),
                user,
            )
            await self.session.flush()

        new_qty = row.qty
        supply.commits += 1
        alert = Alert(
            type="success",
            title="Stock added",
            description=f"{qty} pcs -> {location} (Total: {new_qty})",
        )
        supply.reset(alert)
        logger.info("Big part supply committed: %s +%d at %s (now %d)", part_no, qty, location, new_qty)

        await broadcast_manager.publish_changes(
            [change_event(row, event, user.id)] + [change_event(entry, "INSERT", user.id) for entry in rows]
        )
        return MovementRead(
            part_no=part_no,
            rack_location=location,
            qty=qty,
            old_stock=old_qty,
            new_stock=new_qty,
            transaction_id=transaction_id,
            alert=alert,
        )
