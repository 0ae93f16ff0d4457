"""
Kanban picking: load a kanban's BOM lines, verify each pick, then commit them together.

PickingSession is the state machine and performs no IO; PickingService loads
BOM lines and stock, runs the label parser and writes the completed pick list
in one transaction.
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
from rackops.repositories.master_data import BomRepository
from rackops.schemas.auth import CurrentUser
from rackops.schemas.common import Alert
from rackops.schemas.label import LabelResult
from rackops.schemas.picking import (
    PickingCompletionRead,
    PickingInputs,
    PickingItem,
    PickingSessionRead,
)
from rackops.services.base import BaseService
from rackops.services.errors import ConflictError, InputError, NotFoundError, VerificationError
from rackops.services.label_processor import LabelProcessor
from rackops.services.ledger import MovementLedger, StockMovement, duration_seconds, make_transaction_id
from rackops.services.realtime import broadcast_manager, change_event

logger = logging.getLogger(__name__)


class PickingState(str, Enum):
    AWAITING_KANBAN = "awaiting_kanban"
    ITEMS_LOADED = "items_loaded"
    ALL_ITEMS_PROCESSED = "all_items_processed"
    COMPLETED = "completed"


class ItemStep(str, Enum):
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_LABEL = "awaiting_label"
    AWAITING_QTY = "awaiting_qty"
    READY_TO_SUBMIT = "ready_to_submit"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PickingSession:
    """
    State of one operator working through one kanban.

    States: awaiting_kanban -> items_loaded -> all_items_processed -> completed.
    While items are loaded, the current item collects a location, then a label,
    then a quantity; submission is possible only once all three are present.
    """

    def __init__(self, owner_id: str) -> None:
        self.id: UUID = uuid4()
        self.owner_id = owner_id
        self.touched_at = _now()
        self.state = PickingState.AWAITING_KANBAN
        self.kanban_code = ""
        self.items: List[PickingItem] = []
        self.current_item_index = 0
        self.inputs = PickingInputs()
        self.started_at: Optional[datetime] = None
        self.alert: Optional[Alert] = None

    def load_items(self, kanban_code: str, items: List[PickingItem]) -> None:
        if self.state is PickingState.COMPLETED:
            raise InputError("Picking already completed", "Start a new picking session.")
        if not items:
            raise NotFoundError("No items found for this kanban", kanban_code)
        self.kanban_code = kanban_code
        self.items = items
        self.current_item_index = 0
        self.inputs = PickingInputs()
        self.started_at = _now()
        self.state = PickingState.ITEMS_LOADED
        self.alert = Alert(type="success", title=f"Loaded {len(items)} items from kanban {kanban_code}")

    @property
    def current_item(self) -> Optional[PickingItem]:
        if 0 <= self.current_item_index < len(self.items):
            return self.items[self.current_item_index]
        return None

    @property
    def step(self) -> Optional[ItemStep]:
        if self.state not in (PickingState.ITEMS_LOADED, PickingState.ALL_ITEMS_PROCESSED):
            return None
        if not self.inputs.location:
            return ItemStep.AWAITING_LOCATION
        if not self.inputs.label:
            return ItemStep.AWAITING_LABEL
        if self.inputs.qty is None:
            return ItemStep.AWAITING_QTY
        return ItemStep.READY_TO_SUBMIT

    def _require_items_loaded(self) -> None:
        if self.state is not PickingState.ITEMS_LOADED:
            if self.state is PickingState.ALL_ITEMS_PROCESSED:
                raise InputError("All items have been processed", "Select an item to re-scan it or complete the picking.")
            raise InputError("Scan a kanban code first")

    def update_inputs(
        self,
        location: Optional[str] = None,
        label: Optional[str] = None,
        qty: Optional[int] = None,
    ) -> None:
        """
        Fill the current item's inputs in location -> label -> quantity order.

        Changing an earlier field clears the later ones. The inputs are only
        replaced when every given field is acceptable.
        """
        self._require_items_loaded()
        buffer = self.inputs.model_copy()

        if location is not None:
            location = location.strip().upper()
            if not location:
                raise InputError("Scan the rack location first")
            buffer = PickingInputs(location=location)

        if label is not None:
            label = label.strip().upper()
            if not buffer.location:
                raise InputError("Scan the rack location first")
            if not label:
                raise InputError("Scan the part label first")
            buffer = PickingInputs(location=buffer.location, label=label)

        if qty is not None:
            if not buffer.label:
                raise InputError("Scan the part label first")
            if qty <= 0:
                raise InputError("Enter a valid quantity", "Quantity must be a positive whole number.")
            buffer.qty = qty

        self.inputs = buffer
        self.alert = None

    @property
    def can_submit(self) -> bool:
        return self.state is PickingState.ITEMS_LOADED and self.step is ItemStep.READY_TO_SUBMIT

    def require_submission(self) -> PickingItem:
        """Return the item to verify, or raise InputError naming the missing input."""
        self._require_items_loaded()
        if not self.inputs.location:
            raise InputError("Scan the rack location first")
        if not self.inputs.label:
            raise InputError("Scan the part label first")
        if self.inputs.qty is None or self.inputs.qty <= 0:
            raise InputError("Enter a valid quantity")
        return self.items[self.current_item_index]

    def _first_failure(self, item: PickingItem, result: LabelResult) -> Optional[str]:
        qty = self.inputs.qty or 0
        scanned_location = self.inputs.location
        if not result.accepted:
            return result.message
        if scanned_location.upper() != item.location.upper():
            return f"Wrong location! Expected: {item.location}, Scanned: {scanned_location}"
        if (result.part_no or "").upper() != item.child_part.upper():
            return f"Part mismatch! Expected: {item.child_part}, Scanned: {result.part_no}"
        if qty > item.qty_bom:
            return f"Quantity exceeds standard! Expected: {item.qty_bom}, Input: {qty}"
        if qty < item.qty_bom:
            return f"Quantity below standard! Expected: {item.qty_bom}, Input: {qty}"
        if item.current_stock < qty:
            return f"Insufficient stock at {item.location}. Available: {item.current_stock}, Requested: {qty}"
        return None

    def apply_verification(self, result: LabelResult) -> bool:
        """
        Record the outcome of verifying the current item against result.

        Checks run in order (label, location, part, quantity, stock) and stop at
        the first failure. Returns True when the item was accepted.
        """
        item = self.require_submission()
        failure = self._first_failure(item, result)
        item.is_scanned = True

        if failure is not None:
            item.is_valid = False
            item.error_message = failure
            item.scanned_part_no = ""
            item.scanned_location = ""
            item.scanned_qty = 0
            item.scanned_po = None
            self.inputs = PickingInputs()
            self.alert = Alert(type="error", title="Verification failed", description=failure)
            logger.info("Picking %s item %d rejected: %s", self.kanban_code, item.sequence, failure)
            return False

        item.is_valid = True
        item.error_message = None
        item.scanned_part_no = result.part_no or ""
        item.scanned_location = self.inputs.location
        item.scanned_qty = self.inputs.qty or 0
        item.scanned_po = result.po
        self.inputs = PickingInputs()
        self.alert = Alert(
            type="success",
            title=f"Item sequence {item.sequence} processed",
            description=f"Part No: {item.scanned_part_no} - Item: {item.part_name} - PO: {item.scanned_po or 'N/A'}",
        )
        self._advance()
        return True

    def _advance(self) -> None:
        count = len(self.items)
        for offset in range(1, count + 1):
            index = (self.current_item_index + offset) % count
            if not self.items[index].is_valid:
                self.current_item_index = index
                return
        self.state = PickingState.ALL_ITEMS_PROCESSED
        self.alert = Alert(
            type="info",
            title="All items have been processed",
            description="Verify and complete the picking to commit it.",
        )

    def select_item(self, index: int) -> None:
        """Reposition the operator on any item so it can be scanned again."""
        if self.state not in (PickingState.ITEMS_LOADED, PickingState.ALL_ITEMS_PROCESSED):
            raise InputError("Scan a kanban code first")
        if not 0 <= index < len(self.items):
            raise InputError("Item not found", f"Index {index} is outside 0..{len(self.items) - 1}")
        self.current_item_index = index
        self.inputs = PickingInputs()
        self.state = PickingState.ITEMS_LOADED
        self.alert = None

    @property
    def all_items_processed(self) -> bool:
        return bool(self.items) and all(item.is_scanned for item in self.items)

    @property
    def all_items_valid(self) -> bool:
        return bool(self.items) and all(item.is_valid for item in self.items)

    def invalid_items(self) -> List[PickingItem]:
        return [item for item in self.items if not item.is_valid]

    def begin_completion(self) -> List[PickingItem]:
        """Return the items to commit; refuses while any item is not valid."""
        if self.state not in (PickingState.ITEMS_LOADED, PickingState.ALL_ITEMS_PROCESSED):
            raise InputError("Scan a kanban code first")
        invalid = self.invalid_items()
        if invalid:
            raise VerificationError(
                "Cannot complete picking",
                f"{len(invalid)} item(s) have errors or are not scanned yet. Fix them first.",
            )
        return list(self.items)

    def mark_completed(self, alert: Alert) -> None:
        self.state = PickingState.COMPLETED
        self.alert = alert

    def snapshot(self) -> PickingSessionRead:
        step = self.step
        return PickingSessionRead(
            id=self.id,
            state=self.state.value,
            step=step.value if step else None,
            kanban_code=self.kanban_code,
            current_item_index=self.current_item_index,
            items=[item.model_copy() for item in self.items],
            inputs=self.inputs.model_copy(),
            can_submit=self.can_submit,
            all_items_processed=self.all_items_processed,
            all_items_valid=self.all_items_valid,
            started_at=self.started_at,
            alert=self.alert,
        )


class PickingService(BaseService):
    """
    Domain service for kanban picking.

    Reads BOM lines and stock for a PickingSession, verifies labels, and writes
    the completed pick list (inventory, transaction log, ledger, activity log)
    as one transaction.
    """

    def __init__(self, session: AsyncSession, processor: Optional[LabelProcessor] = None) -> None:
        super().__init__(session)
        self.bom_repo = BomRepository(session)
        self.inv_repo = RackInventoryRepository(session)
        self.ledger = MovementLedger(session)
        self.processor = processor or LabelProcessor(self.bom_repo, get_app_settings().LABEL_PART_MATCH_POLICY)

    # PUBLIC_INTERFACE
    async def load_kanban(self, picking: PickingSession, kanban_code: str) -> PickingSession:
        """
        Materialise one PickingItem per BOM line of the kanban, with a stock snapshot.

        The session is left untouched when the code is empty or has no lines.
        """
        code = (kanban_code or "").strip().upper()
        if not code:
            raise InputError("Enter a kanban code")

        lines = await self.read_guard("Error loading BOM items", self.bom_repo.list_by_kanban(code))
        if not lines:
            raise NotFoundError("No items found for this kanban", code)

        pairs = [(line.child_part, line.location or "") for line in lines]
        stock = await self.read_guard("Error loading BOM items", self.inv_repo.stock_map(pairs))
        items = [
            PickingItem(
                id=line.id,
                sequence=line.sequence or 0,
                child_part=line.child_part,
                part_name=line.part_name or "",
                location=line.location or "",
                qty_bom=line.qty_bom or 1,
                current_stock=stock.get((line.child_part, line.location or ""), 0),
            )
            for line in lines
        ]
        picking.load_items(code, items)
        logger.info("Loaded %d picking items for kanban %s", len(items), code)
        return picking

    # PUBLIC_INTERFACE
    async def submit(self, picking: PickingSession) -> bool:
        """Verify the current item; returns whether it was accepted."""
        picking.require_submission()
        result = await self.processor.process(picking.inputs.label)
        return picking.apply_verification(result)

    # PUBLIC_INTERFACE
    async def complete(self, picking: PickingSession, user: CurrentUser) -> PickingCompletionRead:
        """
        Commit every verified item of the kanban in one transaction.

        Each inventory row is re-read under a row lock; a missing row or stock
        below the picked quantity aborts the whole completion.
        """
        items = picking.begin_completion()
        ended_at = _now()
        started_at = picking.started_at or ended_at
        touched = []

        async with self.unit_of_work("Error completing picking"):
            for index, item in enumerate(items):
                row = await self.inv_repo.get_by_part_and_location(item.child_part, item.location, for_update=True)
                available = row.qty if row is not None else 0
                if row is None or available < item.scanned_qty:
                    raise ConflictError(
                        "Stock changed since the kanban was loaded",
                        f"{item.child_part} at {item.location}: available {available}, requested {item.scanned_qty}",
                    )
                old_qty = row.qty
                row.qty = old_qty - item.scanned_qty
                row.last_picking = ended_at
                document_ref = f"Kanban: {picking.kanban_code}"
                if item.scanned_po:
                    document_ref += f", PO: {item.scanned_po}"
                rows = await self.ledger.record(
                    StockMovement(
                        transaction_type="PICKING",
                        action_type="PICKING",
                        transaction_id=make_transaction_id("PICK", picking.id, index + 1, item.child_part),
                        part_no=item.child_part,
                        part_name=row.part_name or item.part_name,
                        rack_location=item.location,
                        delta=-item.scanned_qty,
                        old_qty=old_qty,
                        new_qty=row.qty,
                        started_at=started_at,
                        ended_at=ended_at,
                        document_ref=document_ref,
                        remarks=f"Kanban: {picking.kanban_code}, Seq: {item.sequence}",
                        description=f"Picking: {item.scanned_qty} units of {item.part_name} from {item.location}",
                    ),
                    user,
                )
                await self.session.flush()
                touched.append(row)
                touched.extend(rows)

        alert = Alert(
            type="success",
            title="Picking completed",
            description=f"{len(items)} items processed for kanban {picking.kanban_code}",
        )
        picking.mark_completed(alert)
        logger.info("Picking committed for kanban %s (%d items)", picking.kanban_code, len(items))

        await broadcast_manager.publish_changes(
            change_event(entity, "UPDATE" if entity.__tablename__ == "rack_inventory" else "INSERT", user.id)
            for entity in touched
        )
        return PickingCompletionRead(
            kanban_code=picking.kanban_code,
            items_committed=len(items),
            duration_sec=duration_seconds(started_at, ended_at),
            alert=alert,
        )
