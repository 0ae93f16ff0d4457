import pytest
from sqlalchemy import select

from rackops.db.models.inventory import RackInventory
from rackops.db.models.ledger import StockTransaction, TransactionLog
from rackops.services.errors import ConflictError, InputError, StoreError, VerificationError
from rackops.services.kobetsu import KobetsuService, KobetsuSession, KobetsuStep
from rackops.services.ledger import make_transaction_id

from conftest import BUCKET, SEAL, occupy_transaction_id


async def bucket_row(session):
    res = await session.execute(
        select(RackInventory).where(RackInventory.part_no == BUCKET, RackInventory.rack_location == "A-01-01")
    )
    return res.scalar_one()


async def ready_session(service, label=BUCKET):
    kobetsu = KobetsuSession(owner_id="u-op")
    service.scan_rack(kobetsu, "A-01-01")
    await service.scan_part(kobetsu, label)
    return kobetsu


async def test_scan_rack_requires_location(seeded):
    kobetsu = KobetsuSession(owner_id="u-op")
    with pytest.raises(InputError, match="Scan the rack location first"):
        KobetsuService(seeded).scan_rack(kobetsu, "  ")
    assert kobetsu.step is KobetsuStep.SCAN_RACK


async def test_scan_part_loads_stock_and_po(seeded):
    kobetsu = await ready_session(KobetsuService(seeded), f"LOT PO-42 {BUCKET}")

    assert kobetsu.step is KobetsuStep.INPUT_QTY
    assert kobetsu.part.child_part == BUCKET
    assert kobetsu.current_stock == 10
    assert kobetsu.scanned_po == "PO-42"
    assert kobetsu.alert.title == "Part found"


async def test_lowercase_scans_are_normalised(seeded):
    service = KobetsuService(seeded)
    kobetsu = KobetsuSession(owner_id="u-op")
    service.scan_rack(kobetsu, "a-01-01")
    await service.scan_part(kobetsu, f"lot po-42 {BUCKET}")

    assert kobetsu.rack_location == "A-01-01"
    assert kobetsu.part.child_part == BUCKET
    assert kobetsu.scanned_po == "PO-42"


async def test_scan_part_must_belong_to_rack(seeded):
    service = KobetsuService(seeded)
    kobetsu = KobetsuSession(owner_id="u-op")
    service.scan_rack(kobetsu, "A-01-01")

    with pytest.raises(VerificationError, match="Part not found in BOM master for this rack"):
        await service.scan_part(kobetsu, SEAL)
    assert kobetsu.step is KobetsuStep.SCAN_PART


async def test_commit_decrements_and_records(seeded, operator):
    service = KobetsuService(seeded)
    kobetsu = await ready_session(service, f"LOT PO-42 {BUCKET}")

    result = await service.commit(kobetsu, 3, operator)

    assert (result.old_stock, result.new_stock) == (10, 7)
    assert result.alert.title == "Stock reduced"
    assert kobetsu.step is KobetsuStep.SCAN_RACK
    assert (await bucket_row(seeded)).qty == 7

    res = await seeded.execute(select(StockTransaction))
    (ledger,) = res.scalars().all()
    assert (ledger.transaction_type, ledger.qty, ledger.document_ref) == ("KOBETSU", -3, "PO-42")
    assert ledger.transaction_id.startswith("KOB-")
    res = await seeded.execute(select(TransactionLog))
    assert [(t.process_type, t.qty) for t in res.scalars()] == [("KOBETSU", 3)]


async def test_commit_more_than_scanned_stock(seeded, operator):
    service = KobetsuService(seeded)
    kobetsu = await ready_session(service)

    with pytest.raises(VerificationError, match="Insufficient stock"):
        await service.commit(kobetsu, 11, operator)

    assert kobetsu.step is KobetsuStep.INPUT_QTY
    res = await seeded.execute(select(StockTransaction))
    assert res.scalars().all() == []


async def test_stock_taken_after_scan_aborts_commit(seeded, operator):
    service = KobetsuService(seeded)
    kobetsu = await ready_session(service)
    row = await bucket_row(seeded)
    row.qty = 2
    await seeded.commit()

    with pytest.raises(ConflictError, match="Stock changed since the part was scanned"):
        await service.commit(kobetsu, 5, operator)

    res = await seeded.execute(select(RackInventory.qty).where(RackInventory.part_no == BUCKET))
    assert res.scalar_one() == 2
    assert kobetsu.step is KobetsuStep.INPUT_QTY


async def test_back_from_quantity_forgets_part(seeded):
    kobetsu = await ready_session(KobetsuService(seeded))
    kobetsu.back()

    assert kobetsu.step is KobetsuStep.SCAN_PART
    assert kobetsu.part is None
    assert kobetsu.rack_location == "A-01-01"


async def test_store_error_leaves_stock_and_ledger_untouched(seeded, operator):
    service = KobetsuService(seeded)
    kobetsu = await ready_session(service)
    taken = make_transaction_id("KOB", kobetsu.id, 1, BUCKET)
    await occupy_transaction_id(seeded, taken, BUCKET, "A-01-01")

    with pytest.raises(StoreError, match="Error processing kobetsu"):
        await service.commit(kobetsu, 3, operator)

    assert kobetsu.step is KobetsuStep.INPUT_QTY
    assert kobetsu.commits == 0
    assert (await bucket_row(seeded)).qty == 10
    res = await seeded.execute(select(TransactionLog))
    assert res.scalars().all() == []
    res = await seeded.execute(select(StockTransaction.transaction_id))
    assert res.scalars().all() == [taken]
