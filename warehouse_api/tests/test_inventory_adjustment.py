from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from rackops.db.models.inventory import RackInventory, StockAdjustment
from rackops.db.models.ledger import ActivityLog, StockTransaction, TransactionLog
from rackops.services.errors import InputError, NotFoundError
from rackops.services.inventory import InventoryService

from conftest import BUCKET, SEAL


async def bucket_id(session):
    res = await session.execute(
        select(RackInventory.id).where(RackInventory.part_no == BUCKET, RackInventory.rack_location == "A-01-01")
    )
    return res.scalar_one()


async def test_adjust_stock_writes_adjustment_and_ledger(seeded, admin):
    inventory_id = await bucket_id(seeded)

    adjustment = await InventoryService(seeded).adjust_stock(inventory_id, -3, " damaged ", admin)

    assert (adjustment.current_stock, adjustment.adjust_qty, adjustment.new_stock) == (10, -3, 7)
    assert adjustment.reason == "damaged"
    assert adjustment.adjusted_by == "admin"

    res = await seeded.execute(select(RackInventory.qty).where(RackInventory.id == inventory_id))
    assert res.scalar_one() == 7

    res = await seeded.execute(select(StockTransaction))
    (ledger,) = res.scalars().all()
    assert ledger.transaction_type == "ADJUSTMENT"
    assert ledger.qty == -3
    assert ledger.source_location == "ADJUSTMENT"
    assert ledger.document_ref == "damaged"
    assert ledger.transaction_id == f"ADJ-{adjustment.id}-{BUCKET}"

    res = await seeded.execute(select(ActivityLog))
    (activity,) = res.scalars().all()
    assert activity.action_type == "ADJUST_STOCK"
    assert (activity.old_data, activity.new_data) == ({"qty": 10}, {"qty": 7})

    res = await seeded.execute(select(TransactionLog))
    assert res.scalars().all() == []


@pytest.mark.parametrize(
    "adjust_qty, reason, message",
    [
        (5, "  ", "Enter a reason for the adjustment"),
        (0, "recount", "Enter a non-zero adjustment quantity"),
        (-11, "recount", "Stock cannot go below zero"),
    ],
)
async def test_rejected_adjustments_change_nothing(seeded, admin, adjust_qty, reason, message):
    inventory_id = await bucket_id(seeded)

    with pytest.raises(InputError, match=message):
        await InventoryService(seeded).adjust_stock(inventory_id, adjust_qty, reason, admin)

    res = await seeded.execute(select(RackInventory.qty).where(RackInventory.id == inventory_id))
    assert res.scalar_one() == 10
    res = await seeded.execute(select(StockAdjustment))
    assert res.scalars().all() == []


async def test_adjust_unknown_row(seeded, admin):
    with pytest.raises(NotFoundError):
        await InventoryService(seeded).adjust_stock(99999, 1, "recount", admin)


async def test_reconcile_reports_pairs_without_matching_ledger(seeded):
    service = InventoryService(seeded)
    rows = await service.reconcile()

    assert [(r.part_no, r.rack_location, r.inventory_qty, r.ledger_qty, r.difference) for r in rows] == [
        (SEAL, "A-01-02", 4, 0, 4),
        (BUCKET, "A-01-01", 10, 0, 10),
    ]


async def test_reconcile_counts_ledger_only_pairs(seeded):
    seeded.add(
        StockTransaction(
            transaction_id="SUP-manual-1", transaction_type="SUPPLY", item_code="5550001112",
            item_name="ORPHAN", qty=6, rack_location="C-01-01", timestamp=datetime.now(timezone.utc),
        )
    )
    await seeded.commit()

    rows = await InventoryService(seeded).reconcile()
    orphan = next(r for r in rows if r.part_no == "5550001112")

    assert (orphan.inventory_qty, orphan.ledger_qty, orphan.difference) == (0, 6, -6)
