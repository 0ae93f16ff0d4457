import pytest
from sqlalchemy import select

from rackops.db.models.inventory import RackInventory
from rackops.db.models.ledger import ActivityLog, StockTransaction, TransactionLog
from rackops.services.errors import ConflictError, InputError, NotFoundError, StoreError, VerificationError
from rackops.services.ledger import make_transaction_id
from rackops.services.picking import PickingService, PickingSession, PickingState

from conftest import BUCKET, KANBAN, SEAL, occupy_transaction_id


async def qty_at(session, part_no, location):
    res = await session.execute(
        select(RackInventory.qty).where(RackInventory.part_no == part_no, RackInventory.rack_location == location)
    )
    return res.scalar_one()


async def count(session, model):
    res = await session.execute(select(model))
    return len(res.scalars().all())


async def pick_all(service, picking, labels=None):
    labels = labels or {}
    for item in list(picking.items):
        picking.update_inputs(location=item.location, label=labels.get(item.child_part, item.child_part), qty=item.qty_bom)
        assert await service.submit(picking) is True


async def test_load_kanban_normalises_code_and_snapshots_stock(seeded):
    picking = PickingSession(owner_id="u-op")
    await PickingService(seeded).load_kanban(picking, "  kb-test-01 ")

    assert picking.kanban_code == KANBAN
    assert [item.child_part for item in picking.items] == [BUCKET, SEAL]
    assert [item.current_stock for item in picking.items] == [10, 4]
    assert [item.qty_bom for item in picking.items] == [2, 4]


async def test_load_unknown_kanban_keeps_session(seeded):
    picking = PickingSession(owner_id="u-op")
    with pytest.raises(NotFoundError, match="No items found for this kanban"):
        await PickingService(seeded).load_kanban(picking, "KB-NOPE")
    assert picking.state is PickingState.AWAITING_KANBAN


async def test_load_empty_kanban_code(seeded):
    with pytest.raises(InputError, match="Enter a kanban code"):
        await PickingService(seeded).load_kanban(PickingSession(owner_id="u-op"), "   ")


async def test_complete_commits_every_item(seeded, operator):
    service = PickingService(seeded)
    picking = PickingSession(owner_id=operator.id)
    await service.load_kanban(picking, KANBAN)
    await pick_all(service, picking, labels={BUCKET: f"LOT PO-777 {BUCKET}"})
    assert picking.state is PickingState.ALL_ITEMS_PROCESSED

    result = await service.complete(picking, operator)

    assert result.items_committed == 2
    assert result.alert.title == "Picking completed"
    assert picking.state is PickingState.COMPLETED
    assert await qty_at(seeded, BUCKET, "A-01-01") == 8
    assert await qty_at(seeded, SEAL, "A-01-02") == 0

    res = await seeded.execute(select(StockTransaction).order_by(StockTransaction.id))
    ledger = res.scalars().all()
    assert [(t.item_code, t.qty, t.transaction_type) for t in ledger] == [(BUCKET, -2, "PICKING"), (SEAL, -4, "PICKING")]
    assert ledger[0].document_ref == f"Kanban: {KANBAN}, PO: PO-777"
    assert ledger[1].document_ref == f"Kanban: {KANBAN}"
    assert ledger[0].username == "operator1"
    assert ledger[0].transaction_id.startswith("PICK-")

    res = await seeded.execute(select(TransactionLog).order_by(TransactionLog.id))
    logs = res.scalars().all()
    assert [(t.process_type, t.qty) for t in logs] == [("PICKING", 2), ("PICKING", 4)]
    assert logs[0].remarks == f"Kanban: {KANBAN}, Seq: 1"

    res = await seeded.execute(select(ActivityLog).order_by(ActivityLog.id))
    activity = res.scalars().all()
    assert [a.action_type for a in activity] == ["PICKING", "PICKING"]
    assert activity[0].old_data == {"qty": 10}
    assert activity[0].new_data == {"qty": 8}


async def test_complete_refused_with_invalid_item_writes_nothing(seeded, operator):
    service = PickingService(seeded)
    picking = PickingSession(owner_id=operator.id)
    await service.load_kanban(picking, KANBAN)
    picking.update_inputs(location="A-01-01", label=BUCKET, qty=2)
    await service.submit(picking)
    picking.update_inputs(location="A-01-02", label=SEAL, qty=1)
    assert await service.submit(picking) is False

    with pytest.raises(VerificationError, match="Cannot complete picking"):
        await service.complete(picking, operator)

    assert await count(seeded, StockTransaction) == 0
    assert await count(seeded, TransactionLog) == 0
    assert await qty_at(seeded, BUCKET, "A-01-01") == 10


async def test_stock_change_before_completion_aborts_everything(seeded, operator):
    service = PickingService(seeded)
    picking = PickingSession(owner_id=operator.id)
    await service.load_kanban(picking, KANBAN)
    await pick_all(service, picking)

    res = await seeded.execute(
        select(RackInventory).where(RackInventory.part_no == SEAL, RackInventory.rack_location == "A-01-02")
    )
    res.scalar_one().qty = 1
    await seeded.commit()

    with pytest.raises(ConflictError, match="Stock changed since the kanban was loaded"):
        await service.complete(picking, operator)

    assert picking.state is PickingState.ALL_ITEMS_PROCESSED
    assert await qty_at(seeded, BUCKET, "A-01-01") == 10
    assert await qty_at(seeded, SEAL, "A-01-02") == 1
    assert await count(seeded, StockTransaction) == 0
    assert await count(seeded, ActivityLog) == 0


async def test_submit_uses_label_parser(seeded):
    service = PickingService(seeded)
    picking = PickingSession(owner_id="u-op")
    await service.load_kanban(picking, KANBAN)
    picking.update_inputs(location="A-01-01", label="0000000000", qty=2)

    assert await service.submit(picking) is False
    assert picking.items[0].error_message == "V2 ERROR: Part Number 0000000000 not found in BOM master. PO: N/A."


async def test_store_error_on_a_later_item_rolls_back_earlier_ones(seeded, operator):
    service = PickingService(seeded)
    picking = PickingSession(owner_id=operator.id)
    await service.load_kanban(picking, KANBAN)
    await pick_all(service, picking)
    taken = make_transaction_id("PICK", picking.id, 2, SEAL)
    await occupy_transaction_id(seeded, taken, SEAL, "A-01-02")

    with pytest.raises(StoreError, match="Error completing picking"):
        await service.complete(picking, operator)

    assert picking.state is PickingState.ALL_ITEMS_PROCESSED
    assert await qty_at(seeded, BUCKET, "A-01-01") == 10
    assert await qty_at(seeded, SEAL, "A-01-02") == 4
    assert await count(seeded, TransactionLog) == 0
    assert await count(seeded, ActivityLog) == 0
    res = await seeded.execute(select(StockTransaction.transaction_id))
    assert res.scalars().all() == [taken]
