import pytest

from rackops.services.label_processor import (
    LabelProcessor,
    MatchPolicy,
    extract_label,
    is_part_no_format,
)

SAMPLE_V1 = "IKKYB1GNP418101 25-PRCB-60585 0000982680SY235 00020B6415-69372 BUCKET 9632107140 ..."


class FakeLookup:
    def __init__(self, parts=(), fail=False):
        self.parts = set(parts)
        self.fail = fail
        self.calls = []

    async def child_part_exists(self, part_no):
        self.calls.append(part_no)
        if self.fail:
            raise ConnectionError("store unreachable")
        return part_no in self.parts


async def test_version_1_sample_label():
    lookup = FakeLookup(parts={"9632107140"})
    result = await LabelProcessor(lookup).process(SAMPLE_V1)

    assert result.label_version == 1
    assert result.po == "25-PRCB-60585"
    assert result.part_no == "9632107140"
    assert result.status_bom is True
    assert result.message == "V1: Part Number 9632107140 matches BOM master. PO: 25-PRCB-60585."
    assert lookup.calls == ["9632107140"]


async def test_version_1_unknown_part_reports_error_message():
    result = await LabelProcessor(FakeLookup()).process(SAMPLE_V1)

    assert result.status_bom is False
    assert result.message == "V1 ERROR: Part Number 9632107140 not found in BOM master. PO: 25-PRCB-60585."


async def test_version_1_single_token_has_no_po():
    lookup = FakeLookup(parts={"9632107140"})
    result = await LabelProcessor(lookup).process("9632107140 ")

    assert result.label_version == 1
    assert result.po is None
    assert result.part_no == "9632107140"
    assert result.status_bom is True
    assert result.message.endswith("PO: N/A.")


async def test_version_1_without_candidate_skips_lookup():
    lookup = FakeLookup(parts={"9632107140"})
    result = await LabelProcessor(lookup).process("SHORT PO-1 XYZ")

    assert result.part_no is None
    assert result.po == "PO-1"
    assert result.status_bom is False
    assert result.message == "V1 ERROR: Part Number not detected not found in BOM master. PO: PO-1."
    assert lookup.calls == []


async def test_version_1_first_match_wins():
    lookup = FakeLookup(parts={"9632107140"})
    result = await LabelProcessor(lookup).process("X AB12345678 9632107140")

    assert result.part_no == "AB12345678"
    assert result.status_bom is False


def test_po_is_taken_verbatim():
    extraction = extract_label("LOT  po/77-a  9632107140")
    assert extraction.po == "po/77-a"


def test_exact_policy_prefers_token_already_in_format():
    raw = "X 25-PRCB-6058 9632107140"
    assert extract_label(raw, MatchPolicy.FIRST).part_no == "25PRCB6058"
    assert extract_label(raw, MatchPolicy.EXACT).part_no == "9632107140"
    assert extract_label(raw, "exact").part_no == "9632107140"


def test_exact_policy_falls_back_to_cleaned_token():
    assert extract_label("X 9632-107140", MatchPolicy.EXACT).part_no == "9632107140"


async def test_version_2_strips_punctuation():
    lookup = FakeLookup(parts={"9632107140"})
    result = await LabelProcessor(lookup).process("9632-107140")

    assert result.label_version == 2
    assert result.po is None
    assert result.part_no == "9632107140"
    assert result.status_bom is True
    assert result.message == "V2: Part Number 9632107140 matches BOM master. PO: N/A."


async def test_version_2_wrong_length_is_returned_without_lookup():
    lookup = FakeLookup(parts={"SINGLEPARTNO1234"})
    result = await LabelProcessor(lookup).process("SINGLEPARTNO1234")

    assert result.part_no == "SINGLEPARTNO1234"
    assert result.status_bom is False
    assert lookup.calls == []


async def test_version_2_without_alphanumerics():
    lookup = FakeLookup()
    result = await LabelProcessor(lookup).process("--//--")

    assert result.label_version == 2
    assert result.part_no == ""
    assert result.status_bom is False
    assert "not detected" in result.message
    assert lookup.calls == []


async def test_lookup_failure_fails_closed(caplog):
    result = await LabelProcessor(FakeLookup(parts={"9632107140"}, fail=True)).process("9632107140")

    assert result.status_bom is False
    assert result.message.startswith("V2 ERROR")
    assert "BOM lookup failed" in caplog.text


@pytest.mark.parametrize(
    "candidate, expected",
    [("9632107140", True), ("AB12CD34EF", True), ("ab12cd34ef", False), ("963210714", False), (None, False)],
)
def test_part_no_format(candidate, expected):
    assert is_part_no_format(candidate) is expected


async def test_result_serialises_with_scanner_field_names():
    result = await LabelProcessor(FakeLookup(parts={"9632107140"})).process(SAMPLE_V1)
    payload = result.model_dump(by_alias=True)

    assert payload["PartNo"] == "9632107140"
    assert payload["PO"] == "25-PRCB-60585"
    assert payload["StatusBOM"] is True
    assert payload["LabelVersion"] == 1
