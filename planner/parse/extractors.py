"""Slot extractors.

One function per trip attribute, each mapping a raw traveler message to an
optional typed value. They never raise: no match is ``None``. Matching is
keyword and regex based and deliberately shallow; the first hit wins.
"""

import re
from typing import Any, Callable, Dict, Iterable, Optional

from planner.types import LodgingTier, PartyType, Slot
from planner.utils.dates import to_iso_date


# Keyword-band anchors (INR) used when the traveler names a band, not a number
BUDGET_BAND_LOW = 30000
BUDGET_BAND_MID = 50000
BUDGET_BAND_HIGH = 100000

_SUFFIX_MULTIPLIER = {
    "k": 1_000,
    "thousand": 1_000,
    "l": 100_000,
    "lac": 100_000,
    "lacs": 100_000,
    "lakh": 100_000,
    "lakhs": 100_000,
}

DIGITS = re.compile(r"\d+")
# ₹60,000 / Rs 1,50,000 / 60000 / 50k / 1.5L / 2 lakh
AMOUNT = re.compile(
    r"(?:₹|rs\.?|inr)?\s*"
    r"(?P<num>\d{1,3}(?:,\d{2,3})+|\d+)(?P<frac>\.\d+)?"
    r"(?:\s*(?P<suffix>thousand|lakhs|lakh|lacs|lac|k|l)(?![a-z]))?",
    re.IGNORECASE,
)

BUDGET_BANDS = [
    (("budget", "cheap", "affordable"), BUDGET_BAND_LOW),
    (("mid", "moderate"), BUDGET_BAND_MID),
    (("luxury", "premium", "expensive"), BUDGET_BAND_HIGH),
]

# Checked in priority order: exact answers and quick-reply option numbers first
LODGING_PRIMARY = [
    (LodgingTier.BUDGET, {"budget", "1"}, ("budget",)),
    (LodgingTier.MID_RANGE, {"mid-range", "mid range", "midrange", "2"}, ()),
    (LodgingTier.LUXURY, {"luxury", "3"}, ("luxury", "premium")),
    (LodgingTier.BOUTIQUE, {"boutique", "4"}, ("boutique", "unique")),
]

LODGING_SYNONYMS = [
    (LodgingTier.BUDGET, re.compile(r"cheap|hostel|economy|\b(?:3|three)\s*-?\s*star", re.IGNORECASE)),
    (LodgingTier.MID_RANGE, re.compile(r"moderate|standard|\b(?:4|four)\s*-?\s*star", re.IGNORECASE)),
    (LodgingTier.LUXURY, re.compile(r"\b(?:5|five)\s*-?\s*star", re.IGNORECASE)),
]

PARTY_KEYWORDS = [
    (PartyType.SOLO, re.compile(r"\b(solo|alone|myself)\b", re.IGNORECASE)),
    (PartyType.FAMILY, re.compile(r"\b(family|families|kids|children)\b", re.IGNORECASE)),
    (PartyType.COUPLE, re.compile(r"\b(couple|romantic|honeymoon)\b", re.IGNORECASE)),
    (PartyType.FRIENDS, re.compile(r"\b(friends|group)\b", re.IGNORECASE)),
]


def extract_destination(text: str, destination_names: Iterable[str]) -> Optional[str]:
    """Return the first known destination named anywhere in the message.

    Names are tried in catalog order; "Goa or Bali" resolves to whichever
    the catalog lists first.
    """
    lowered = (text or "").lower()
    if not lowered.strip():
        return None
    for name in destination_names:
        if name and name.lower() in lowered:
            return name
    return None


def extract_date(text: str) -> Optional[str]:
    try:
        return to_iso_date(text or "")
    except Exception:
        return None


def extract_days(text: str) -> Optional[int]:
    """First run of digits. Bounds are the caller's concern."""
    m = DIGITS.search(text or "")
    return int(m.group(0)) if m else None


def extract_budget(text: str) -> Optional[int]:
    m = AMOUNT.search(text or "")
    if m:
        amount = float(m.group("num").replace(",", "") + (m.group("frac") or ""))
        suffix = (m.group("suffix") or "").lower()
        amount *= _SUFFIX_MULTIPLIER.get(suffix, 1)
        return int(round(amount))

    lowered = (text or "").lower()
    for keywords, anchor in BUDGET_BANDS:
        if any(k in lowered for k in keywords):
            return anchor
    return None


def extract_lodging(text: str) -> Optional[LodgingTier]:
    lowered = (text or "").lower().strip()
    if not lowered:
        return None
    for tier, exact, contains in LODGING_PRIMARY:
        if lowered in exact or any(k in lowered for k in contains):
            return tier
        if tier is LodgingTier.MID_RANGE and "mid" in lowered and "range" in lowered:
            return tier
    for tier, rx in LODGING_SYNONYMS:
        if rx.search(lowered):
            return tier
    return None


def extract_party(text: str) -> Optional[PartyType]:
    for party, rx in PARTY_KEYWORDS:
        if rx.search(text or ""):
            return party
    return None


SLOT_EXTRACTORS: Dict[Slot, Callable[[str], Any]] = {
    Slot.TRAVEL_DATE: extract_date,
    Slot.TRIP_LENGTH: extract_days,
    Slot.BUDGET: extract_budget,
    Slot.LODGING: extract_lodging,
    Slot.PARTY: extract_party,
}


def extract_slot(slot: Slot, text: str, destination_names: Iterable[str] = ()) -> Any:
    """Run the extractor that owns ``slot``."""
    if slot is Slot.DESTINATION:
        return extract_destination(text, destination_names)
    return SLOT_EXTRACTORS[slot](text)
