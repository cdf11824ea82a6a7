import dateparser
from datetime import date, datetime, timedelta
from typing import Optional
import pytz
import re

from planner.config import settings

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}
_SHORT_MONTHS = {name[:3]: num for name, num in MONTHS.items()}
_SHORT_MONTHS["sept"] = 9

_MONTH_ALT = (
    r"(january|february|march|april|may|june|july|august|september|october|november|december"
    r"|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec)"
)

ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
# MM/DD/YYYY or MM-DD-YYYY; DD/MM when the first number can't be a month
NUMERIC_DATE = re.compile(r"\b(\d{1,2})\s*([/-])\s*(\d{1,2})\s*\2\s*(\d{4}|\d{2})\b")
DAY_FIRST = re.compile(
    r"\b(\d{1,2})(?:st|nd|rd|th)?\s*(?:of\s+)?" + _MONTH_ALT + r"\b(?:,?\s+(\d{4}))?",
    re.IGNORECASE,
)
MONTH_FIRST = re.compile(
    r"\b" + _MONTH_ALT + r"\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s*(\d{4}))?",
    re.IGNORECASE,
)
# Abbreviations only with a year after them ("Dec 2026")
MONTH_YEAR = re.compile(r"\b" + _MONTH_ALT + r"\.?\s+(\d{4})\b", re.IGNORECASE)
# Full names only; abbreviations like "mar" or "jun" collide with ordinary words
MONTH_NAME = re.compile(
    r"\b(january|february|march|april|may|june|july|august|september|october|november|december)\b",
    re.IGNORECASE,
)
RELATIVE_CUE = re.compile(
    r"\b(today|tomorrow|tonight|next|this|coming|in\s+\d+\s+(?:days?|weeks?|months?))\b",
    re.IGNORECASE,
)
WEEKDAY = re.compile(r"\b(next|this)?\s*(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.IGNORECASE)


def get_current_datetime(tz: Optional[str] = None) -> datetime:
    """Current time in the configured timezone."""
    return datetime.now(pytz.timezone(tz or settings.TZ))


def _month_number(token: str) -> Optional[int]:
    t = token.lower()
    return MONTHS.get(t) or _SHORT_MONTHS.get(t)


def _safe_iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _parse_next_weekday(text: str, base_date: datetime) -> Optional[datetime]:
    """'next Monday', 'this Friday', 'friday' relative to base_date."""
    weekdays = {
        'monday': 0, 'tuesday': 1, 'wednesday': 2, 'thursday': 3,
        'friday': 4, 'saturday': 5, 'sunday': 6
    }
    m = WEEKDAY.search(text)
    if not m:
        return None
    qualifier = (m.group(1) or "").lower()
    day_num = weekdays[m.group(2).lower()]
    days_until = (day_num - base_date.weekday()) % 7
    # "this friday" on a friday is today; bare or "next" means the coming one
    if days_until == 0 and qualifier != "this":
        days_until = 7
    return base_date + timedelta(days=days_until)


def parse_relative_date(text: str, tz: Optional[str] = None) -> Optional[str]:
    """Resolve 'tomorrow', 'next friday', 'in 3 weeks' to an ISO date.

    Only attempted when a relative cue word is present, so ordinary sentences
    are never handed to dateparser.
    """
    if not RELATIVE_CUE.search(text) and not WEEKDAY.search(text):
        return None
    base = get_current_datetime(tz)
    lowered = text.lower()

    if WEEKDAY.search(lowered):
        dt = _parse_next_weekday(lowered, base)
        if dt:
            return dt.date().isoformat()
    if re.search(r"\btoday\b|\btonight\b", lowered):
        return base.date().isoformat()
    if re.search(r"\btomorrow\b", lowered):
        return (base + timedelta(days=1)).date().isoformat()

    cue = RELATIVE_CUE.search(lowered)
    phrase = lowered[cue.start():] if cue else lowered
    try:
        dt = dateparser.parse(
            phrase,
            settings={"RELATIVE_BASE": base.replace(tzinfo=None), "PREFER_DATES_FROM": "future"},
        )
    except Exception:
        return None
    if dt:
        return dt.date().isoformat()
    return None


def _numeric_date(first: int, second: int, year: int) -> Optional[str]:
    if year < 100:
        year += 2000
    if first > 12:
        first, second = second, first
    return _safe_iso(year, first, second)


def _bare_month(text: str) -> Optional[int]:
    """Month named on its own; any other month beats "may", which is usually the verb."""
    names = [m.group(1).lower() for m in MONTH_NAME.finditer(text)]
    if not names:
        return None
    others = [n for n in names if n != "may"]
    return MONTHS[(others or names)[-1]]


def to_iso_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """Best-effort conversion of a traveler's phrase to YYYY-MM-DD.

    Order: ISO, MM/DD/YYYY or MM-DD-YYYY (DD/MM when the first number is over
    12, 2-digit years are 20YY), day-and-month phrases, month and year, bare
    month name (first of that month, current year), then relative phrases. The
    first pattern that matches decides; an impossible calendar date there
    yields None.
    """
    if not text:
        return None
    today = today or get_current_datetime().date()

    m = ISO_DATE.search(text)
    if m:
        return _safe_iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = NUMERIC_DATE.search(text)
    if m:
        return _numeric_date(int(m.group(1)), int(m.group(3)), int(m.group(4)))

    m = DAY_FIRST.search(text)
    if m:
        year = int(m.group(3)) if m.group(3) else today.year
        return _safe_iso(year, _month_number(m.group(2)), int(m.group(1)))

    m = MONTH_FIRST.search(text)
    if m:
        year = int(m.group(3)) if m.group(3) else today.year
        return _safe_iso(year, _month_number(m.group(1)), int(m.group(2)))

    m = MONTH_YEAR.search(text)
    if m:
        return _safe_iso(int(m.group(2)), _month_number(m.group(1)), 1)

    month = _bare_month(text)
    if month:
        return _safe_iso(today.year, month, 1)

    return parse_relative_date(text)
