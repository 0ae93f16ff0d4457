import pytest
from sqlalchemy import select

from rackops.db.models.inventory import RackInventory
from rackops.db.models.ledger import ActivityLog, StockTransaction, TransactionLog
from rackops.db.models.master_data import BomMaster
from rackops.schemas.workflow import RackItem
from rackops.services.errors import InputError, NotFoundError, StoreError, VerificationError
from rackops.services.inventory import InventoryService
from rackops.services.ledger import make_transaction_id
from rackops.services.supply import SupplyService, SupplySession, SupplyStep

from conftest import BRACKET, BUCKET, SEAL, occupy_transaction_id


async def inventory_row(session, part_no, location):
    res = await session.execute(
        select(RackInventory).where(RackInventory.part_no == part_no, RackInventory.rack_location == location)
    )
    return res.scalar_one_or_none()


async def test_scan_rack_lists_bom_lines(seeded):
    supply = SupplySession(owner_id="u-op")
    await SupplyService(seeded).scan_rack(supply, " A-01-03 ")

    assert supply.step is SupplyStep.SCAN_ITEM
    assert supply.rack_location == "A-01-03"
    assert [item.child_part for item in supply.rack_items] == [BRACKET]
    assert supply.alert.title == "Found 1 items for rack A-01-03"


def test_rack_item_reads_bom_line_attributes():
    line = BomMaster(parent_part="ASSY-200", child_part=BRACKET, part_name="BRACKET LH", model="M2",
                     qty_per_set=2, location="A-01-03")

    item = RackItem.model_validate(line)

    assert (item.child_part, item.qty_per_set, item.location) == (BRACKET, 2, "A-01-03")


async def test_lowercase_scans_are_normalised(seeded):
    seeded.add(
        BomMaster(parent_part="ASSY-200", child_part="AB12CD34EF", part_name="COVER", model="M2",
                  qty_bom=1, location="A-01-03", kanban_code="KB-TEST-02", sequence=2)
    )
    await seeded.commit()
    service = SupplyService(seeded)
    supply = SupplySession(owner_id="u-op")

    await service.scan_rack(supply, "a-01-03")
    assert supply.rack_location == "A-01-03"
    assert {item.child_part for item in supply.rack_items} == {BRACKET, "AB12CD34EF"}

    await service.scan_item(supply, "ab12cd34ef")
    assert supply.step is SupplyStep.INPUT_QTY
    assert supply.selected_item.child_part == "AB12CD34EF"


async def test_scan_rack_without_bom_lines(seeded):
    supply = SupplySession(owner_id="u-op")
    with pytest.raises(NotFoundError, match="No BOM material for this rack"):
        await SupplyService(seeded).scan_rack(supply, "Z-99-99")
    assert supply.step is SupplyStep.SCAN_RACK


async def test_scan_item_requires_rack_first(seeded):
    with pytest.raises(InputError):
        await SupplyService(seeded).scan_item(SupplySession(owner_id="u-op"), BUCKET)


async def test_scan_item_not_required_by_rack(seeded):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id="u-op")
    await service.scan_rack(supply, "A-01-01")

    with pytest.raises(VerificationError, match="Item is not required by this rack"):
        await service.scan_item(supply, SEAL)
    assert supply.step is SupplyStep.SCAN_ITEM


async def test_scan_item_with_unknown_label(seeded):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id="u-op")
    await service.scan_rack(supply, "A-01-01")

    with pytest.raises(VerificationError) as excinfo:
        await service.scan_item(supply, "NOT A LABEL")
    assert excinfo.value.title.startswith("V1 ERROR")


async def test_first_supply_creates_inventory_row(seeded, operator):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id=operator.id)
    await service.scan_rack(supply, "A-01-03")
    await service.scan_item(supply, f"LOT PO-555 {BRACKET}")
    assert supply.step is SupplyStep.INPUT_QTY
    assert supply.current_stock == 0
    assert supply.scanned_po == "PO-555"

    result = await service.commit(supply, 7, operator)

    assert (result.old_stock, result.new_stock, result.qty) == (0, 7, 7)
    assert result.transaction_id.startswith("SUP-")
    assert result.alert.title == "Stock added"
    assert supply.step is SupplyStep.SCAN_RACK
    assert supply.commits == 1

    row = await inventory_row(seeded, BRACKET, "A-01-03")
    assert row.qty == 7
    assert row.max_capacity == 100
    assert row.last_supply is not None

    res = await seeded.execute(select(StockTransaction))
    (ledger,) = res.scalars().all()
    assert (ledger.transaction_type, ledger.qty, ledger.document_ref) == ("SUPPLY", 7, "PO-555")
    res = await seeded.execute(select(TransactionLog))
    assert [(t.process_type, t.qty) for t in res.scalars()] == [("SUPPLY", 7)]
    res = await seeded.execute(select(ActivityLog))
    (activity,) = res.scalars().all()
    assert activity.action_type == "SUPPLY"
    assert activity.new_data == {"qty": 7}

    mismatches = await InventoryService(seeded).reconcile()
    assert BRACKET not in {m.part_no for m in mismatches}


async def test_supply_adds_to_existing_row(seeded, operator):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id=operator.id)
    await service.scan_rack(supply, "A-01-01")
    await service.scan_item(supply, BUCKET)
    assert supply.current_stock == 10

    result = await service.commit(supply, 5, operator)

    assert (result.old_stock, result.new_stock) == (10, 15)
    assert (await inventory_row(seeded, BUCKET, "A-01-01")).qty == 15


async def test_consecutive_commits_get_distinct_transaction_ids(seeded, operator):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id=operator.id)
    ids = []
    for _ in range(2):
        await service.scan_rack(supply, "A-01-01")
        await service.scan_item(supply, BUCKET)
        ids.append((await service.commit(supply, 1, operator)).transaction_id)

    assert ids[0] != ids[1]


@pytest.mark.parametrize("qty", [0, -1])
async def test_commit_rejects_non_positive_quantity(seeded, operator, qty):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id=operator.id)
    await service.scan_rack(supply, "A-01-01")
    await service.scan_item(supply, BUCKET)

    with pytest.raises(InputError, match="Enter a valid quantity"):
        await service.commit(supply, qty, operator)
    assert supply.step is SupplyStep.INPUT_QTY


async def test_back_steps(seeded):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id="u-op")
    await service.scan_rack(supply, "A-01-01")
    await service.scan_item(supply, BUCKET)

    supply.back()
    assert supply.step is SupplyStep.SCAN_ITEM
    assert supply.selected_item is None
    assert supply.rack_location == "A-01-01"

    supply.back()
    assert supply.step is SupplyStep.SCAN_RACK
    assert supply.rack_location == ""


async def test_store_error_does_not_create_inventory_row(seeded, operator):
    service = SupplyService(seeded)
    supply = SupplySession(owner_id=operator.id)
    await service.scan_rack(supply, "A-01-03")
    await service.scan_item(supply, BRACKET)
    taken = make_transaction_id("SUP", supply.id, 1, BRACKET)
    await occupy_transaction_id(seeded, taken, BRACKET, "A-01-03")

    with pytest.raises(StoreError, match="Error processing supply"):
        await service.commit(supply, 7, operator)

    assert supply.step is SupplyStep.INPUT_QTY
    assert await inventory_row(seeded, BRACKET, "A-01-03") is None
    res = await seeded.execute(select(TransactionLog))
    assert res.scalars().all() == []
    res = await seeded.execute(select(ActivityLog))
    assert res.scalars().all() == []
