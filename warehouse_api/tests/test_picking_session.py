import pytest

from rackops.schemas.label import LabelResult
from rackops.schemas.picking import PickingItem
from rackops.services.errors import InputError, NotFoundError, VerificationError
from rackops.services.picking import ItemStep, PickingSession, PickingState


def make_items():
    return [
        PickingItem(id=1, sequence=1, child_part="9632107140", part_name="BUCKET ASSY",
                    location="A-01-01", qty_bom=20, current_stock=30),
        PickingItem(id=2, sequence=2, child_part="4471820030", part_name="SEAL RING",
                    location="A-01-02", qty_bom=4, current_stock=3),
    ]


def accepted(part_no, po=None):
    return LabelResult(po=po, part_no=part_no, status_bom=True, label_version=1 if po else 2, message="ok")


@pytest.fixture
def picking():
    session = PickingSession(owner_id="u-op")
    session.load_items("KB-1", make_items())
    return session


def fill(picking, location, label, qty):
    picking.update_inputs(location=location)
    picking.update_inputs(label=label)
    picking.update_inputs(qty=qty)


def test_load_items_positions_on_first_item(picking):
    assert picking.state is PickingState.ITEMS_LOADED
    assert picking.current_item_index == 0
    assert picking.step is ItemStep.AWAITING_LOCATION
    assert picking.started_at is not None
    assert picking.alert.title == "Loaded 2 items from kanban KB-1"


def test_load_items_rejects_empty_list():
    session = PickingSession(owner_id="u-op")
    with pytest.raises(NotFoundError):
        session.load_items("KB-1", [])
    assert session.state is PickingState.AWAITING_KANBAN


def test_inputs_before_kanban_are_rejected():
    with pytest.raises(InputError, match="Scan a kanban code first"):
        PickingSession(owner_id="u-op").update_inputs(location="A-01-01")


def test_inputs_follow_location_label_qty_order(picking):
    with pytest.raises(InputError, match="Scan the rack location first"):
        picking.update_inputs(label="9632107140")
    picking.update_inputs(location="A-01-01")
    assert picking.step is ItemStep.AWAITING_LABEL
    with pytest.raises(InputError, match="Scan the part label first"):
        picking.update_inputs(qty=20)
    picking.update_inputs(label="9632107140")
    assert picking.step is ItemStep.AWAITING_QTY
    picking.update_inputs(qty=20)
    assert picking.step is ItemStep.READY_TO_SUBMIT
    assert picking.can_submit


def test_changing_location_clears_later_inputs(picking):
    fill(picking, "A-01-01", "9632107140", 20)
    picking.update_inputs(location="A-01-09")

    assert picking.inputs.location == "A-01-09"
    assert picking.inputs.label == ""
    assert picking.inputs.qty is None


def test_scanned_inputs_are_upper_cased(picking):
    picking.update_inputs(location=" a-01-01 ", label="lot po-7 9632107140")

    assert picking.inputs.location == "A-01-01"
    assert picking.inputs.label == "LOT PO-7 9632107140"


@pytest.mark.parametrize("qty", [0, -3])
def test_non_positive_quantity_is_rejected(picking, qty):
    picking.update_inputs(location="A-01-01", label="9632107140")
    with pytest.raises(InputError, match="Enter a valid quantity"):
        picking.update_inputs(qty=qty)
    assert picking.inputs.qty is None


def test_rejected_update_leaves_inputs_unchanged(picking):
    picking.update_inputs(location="A-01-01")
    with pytest.raises(InputError):
        picking.update_inputs(location="A-01-05", label="   ")
    assert picking.inputs.location == "A-01-01"


def test_submission_requires_every_input(picking):
    picking.update_inputs(location="A-01-01", label="9632107140")
    with pytest.raises(InputError, match="Enter a valid quantity"):
        picking.require_submission()


def test_accepted_item_advances(picking):
    fill(picking, "a-01-01", "9632107140", 20)

    assert picking.apply_verification(accepted("9632107140", po="PO-9")) is True

    item = picking.items[0]
    assert item.is_scanned and item.is_valid
    assert item.scanned_location == "A-01-01"
    assert item.scanned_qty == 20
    assert item.scanned_po == "PO-9"
    assert picking.current_item_index == 1
    assert picking.inputs.location == ""
    assert picking.alert.title == "Item sequence 1 processed"
    assert picking.alert.description == "Part No: 9632107140 - Item: BUCKET ASSY - PO: PO-9"


@pytest.mark.parametrize(
    "qty, message",
    [
        (15, "Quantity below standard! Expected: 20, Input: 15"),
        (25, "Quantity exceeds standard! Expected: 20, Input: 25"),
    ],
)
def test_quantity_must_match_exactly(picking, qty, message):
    fill(picking, "A-01-01", "9632107140", qty)

    assert picking.apply_verification(accepted("9632107140")) is False

    item = picking.items[0]
    assert item.is_scanned is True
    assert item.is_valid is False
    assert item.error_message == message
    assert item.scanned_qty == 0
    assert item.scanned_part_no == ""
    assert picking.current_item_index == 0
    assert picking.step is ItemStep.AWAITING_LOCATION
    assert picking.alert.type == "error"
    assert picking.alert.description == message


def test_label_failure_reports_parser_message(picking):
    fill(picking, "A-01-01", "junk", 20)
    result = LabelResult(part_no="JUNK", status_bom=False, label_version=2, message="V2 ERROR: nope")

    assert picking.apply_verification(result) is False
    assert picking.items[0].error_message == "V2 ERROR: nope"


def test_location_checked_before_part(picking):
    fill(picking, "B-02-02", "4471820030", 20)
    picking.apply_verification(accepted("4471820030"))

    assert picking.items[0].error_message == "Wrong location! Expected: A-01-01, Scanned: B-02-02"


def test_part_mismatch(picking):
    fill(picking, "A-01-01", "4471820030", 20)
    picking.apply_verification(accepted("4471820030"))

    assert picking.items[0].error_message == "Part mismatch! Expected: 9632107140, Scanned: 4471820030"


def test_insufficient_stock_is_checked_last(picking):
    picking.select_item(1)
    fill(picking, "A-01-02", "4471820030", 4)
    picking.apply_verification(accepted("4471820030"))

    assert picking.items[1].error_message == "Insufficient stock at A-01-02. Available: 3, Requested: 4"


def test_advance_wraps_to_earlier_unprocessed_item(picking):
    picking.items[1].current_stock = 10
    picking.select_item(1)
    fill(picking, "A-01-02", "4471820030", 4)

    assert picking.apply_verification(accepted("4471820030")) is True
    assert picking.current_item_index == 0
    assert picking.state is PickingState.ITEMS_LOADED


def test_last_item_flags_all_processed_without_completing(picking):
    picking.items[1].current_stock = 10
    fill(picking, "A-01-01", "9632107140", 20)
    picking.apply_verification(accepted("9632107140"))
    fill(picking, "A-01-02", "4471820030", 4)
    picking.apply_verification(accepted("4471820030"))

    assert picking.state is PickingState.ALL_ITEMS_PROCESSED
    assert picking.all_items_processed and picking.all_items_valid
    assert picking.alert.title == "All items have been processed"
    with pytest.raises(InputError, match="All items have been processed"):
        picking.update_inputs(location="A-01-01")
    assert len(picking.begin_completion()) == 2


def test_select_item_reopens_a_processed_session(picking):
    picking.items[0].is_valid = picking.items[1].is_valid = True
    picking.state = PickingState.ALL_ITEMS_PROCESSED

    picking.select_item(0)

    assert picking.state is PickingState.ITEMS_LOADED
    assert picking.step is ItemStep.AWAITING_LOCATION


def test_select_item_out_of_range(picking):
    with pytest.raises(InputError, match="Item not found"):
        picking.select_item(5)


def test_completion_refused_while_items_invalid(picking):
    fill(picking, "A-01-01", "9632107140", 20)
    picking.apply_verification(accepted("9632107140"))

    with pytest.raises(VerificationError) as excinfo:
        picking.begin_completion()
    assert excinfo.value.title == "Cannot complete picking"
    assert excinfo.value.description.startswith("1 item(s) have errors")


def test_snapshot_copies_items(picking):
    snap = picking.snapshot()
    snap.items[0].is_valid = True

    assert picking.items[0].is_valid is False
    assert snap.state == "items_loaded"
    assert snap.step == "awaiting_location"
