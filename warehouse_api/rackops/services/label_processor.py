"""
Label parsing and BOM verification for scanned part labels.

Two label layouts are in circulation:

  Version 1: a multi-field label with space separated tokens, for example
             "IKKYB1GNP418101 25-PRCB-60585 0000982680SY235 ...". The second
             token is the purchase order; the part number is the token that
             cleans down to exactly ten upper-case letters or digits.
  Version 2: a bare code with no spaces; the part number is the input with
             every non-alphanumeric character removed.

Only a candidate in the ten character format is looked up in bom_master.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import List, Optional, Protocol, Union

from pydantic import BaseModel

from rackops.schemas.label import LabelResult

logger = logging.getLogger(__name__)

PART_NO_CLEAN_RE = re.compile(r"[^A-Z0-9]")
NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
PART_NO_FORMAT_RE = re.compile(r"^[A-Z0-9]{10}$")


class MatchPolicy(str, Enum):
    """How a version 1 part number is chosen when several tokens qualify."""

    # First token (left to right) whose cleaned form is in part number format.
    FIRST = "first"
    # A token already in part number format before cleaning beats one that only
    # qualifies after punctuation is stripped; falls back to FIRST.
    EXACT = "exact"


class LabelExtraction(BaseModel):
    """Result of the pure extraction step, before any lookup."""
    label_version: int
    po: Optional[str] = None
    part_no: Optional[str] = None


class PartLookup(Protocol):
    async def child_part_exists(self, part_no: str) -> bool: ...


# PUBLIC_INTERFACE
def is_part_no_format(candidate: Optional[str]) -> bool:
    """True for exactly ten upper-case letters or digits."""
    return bool(candidate) and PART_NO_FORMAT_RE.match(candidate) is not None


def _pick_part_no(tokens: List[str], policy: MatchPolicy) -> Optional[str]:
    if policy is MatchPolicy.EXACT:
        for token in tokens:
            if PART_NO_FORMAT_RE.match(token):
                return token
    for token in tokens:
        cleaned = PART_NO_CLEAN_RE.sub("", token)
        if PART_NO_FORMAT_RE.match(cleaned):
            return cleaned
    return None


# PUBLIC_INTERFACE
def extract_label(raw: str, policy: Union[MatchPolicy, str] = MatchPolicy.FIRST) -> LabelExtraction:
    """
    Split a raw label into its version, PO and part number candidate.

    Pure function: no lookups, no logging. The part number of a version 2 label
    is returned whatever its length so callers can show what was read.
    """
    policy = MatchPolicy(policy)
    if " " in raw:
        tokens = raw.split()
        po = tokens[1] if len(tokens) >= 2 else None
        return LabelExtraction(label_version=1, po=po, part_no=_pick_part_no(tokens, policy))
    return LabelExtraction(label_version=2, po=None, part_no=NON_ALNUM_RE.sub("", raw))


def _message(extraction: LabelExtraction, found: bool) -> str:
    po = extraction.po or "N/A"
    version = extraction.label_version
    if found:
        return f"V{version}: Part Number {extraction.part_no} matches BOM master. PO: {po}."
    part_no = extraction.part_no or "not detected"
    return f"V{version} ERROR: Part Number {part_no} not found in BOM master. PO: {po}."


class LabelProcessor:
    """
    Parse a label and verify its part number against the BOM master.

    Performs at most one read-only lookup per label. Lookup failures are logged
    and reported as "not found"; they never propagate to the caller.
    """

    def __init__(self, lookup: PartLookup, policy: Union[MatchPolicy, str] = MatchPolicy.FIRST) -> None:
        self.lookup = lookup
        self.policy = MatchPolicy(policy)

    # PUBLIC_INTERFACE
    async def process(self, raw: str) -> LabelResult:
        """Parse raw and return the structured LabelResult."""
        extraction = extract_label(raw, self.policy)

        found = False
        if is_part_no_format(extraction.part_no):
            try:
                found = await self.lookup.child_part_exists(extraction.part_no)
            except Exception:
                logger.exception("BOM lookup failed for part %s; treating as not found", extraction.part_no)
                found = False

        return LabelResult(
            po=extraction.po,
            part_no=extraction.part_no,
            status_bom=found,
            label_version=extraction.label_version,
            message=_message(extraction, found),
        )
