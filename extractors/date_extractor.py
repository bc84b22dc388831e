"""Free-text date/time extraction for timestamps selected from arbitrary pages.

Selections rarely match one canonical format, so extraction runs an ordered
chain of named matchers and the first reading that yields a valid point in time
wins. Least ambiguous readings go first; the positional guess runs last.
"""

import calendar
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from dateutil import parser as dateutil_parser

logger = logging.getLogger("incident_api.date_extractor")

ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}(?:$|[T ])")
TRAILING_ZONE_LABEL = re.compile(r"\s+(?:UTC|GMT)$", re.I)
FULL_ISO_SHAPE = re.compile(
    r"^\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?)?(?:Z|[+-]\d{2}(?::?\d{2})?)?(?:\s+(?:UTC|GMT))?$", re.I
)
RFC2822_SHAPE = re.compile(r"^(?:[A-Za-z]{3},\s*)?\d{1,2}\s+[A-Za-z]{3}\s+\d{2,4}(\s+\d{1,2}:\d{2}|\s*$)")

TIME_TOKEN = r"(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?"
YEAR_FIRST_DATE_REGEX = re.compile(
    r"(?<!\d)(\d{4})([/\-.])(\d{1,2})\2(\d{1,2})(?!\d)(?:[ ,T]*" + TIME_TOKEN + r")?"
)
NUMERIC_DATE_REGEX = re.compile(
    r"(?<!\d)(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})(?!\d)(?:[ ,T]*" + TIME_TOKEN + r")?"
)
MONTH_NAME_REGEX = re.compile(
    r"\b([A-Za-z]{3,9})\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})(?:[^\d]*?" + TIME_TOKEN + r")?"
)
DIGIT_RUN_REGEX = re.compile(r"\d{1,4}")

MONTH_NAMES = [name.lower() for name in calendar.month_name[1:]]


def _to_local(dt: datetime) -> Optional[datetime]:
    """
    Naive readings are local wall-clock time; aware ones keep their offset.
    Anything that cannot also be expressed in UTC (e.g. 9999-12-31T23:00-05:00) is rejected.
    """
    try:
        local = dt if dt.tzinfo is not None else dt.astimezone()
        local.astimezone(timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Outside the platform's localtime range or past year 9999 in UTC
        return None
    return local


def _expand_year(year: int, digits: int) -> int:
    # Two-digit years follow the browser convention: 00-49 -> 2000s, 50-99 -> 1900s.
    if digits <= 2:
        return 2000 + year if year < 50 else 1900 + year
    return year


def _valid_date(year: int, month: int, day: int) -> bool:
    if not 1 <= year <= 9999 or not 1 <= month <= 12:
        return False
    return 1 <= day <= calendar.monthrange(year, month)[1]


def _clock(hour: str, minute: str, second: Optional[str], meridiem: Optional[str]) -> Optional[tuple[int, int, int]]:
    """Return (hour, minute, second) on a 24h clock, or None when out of range."""
    h, m = int(hour), int(minute)
    s = int(second) if second else 0
    if m > 59 or s > 59:
        return None
    if meridiem:
        if not 1 <= h <= 12:
            return None
        h = h % 12
        if meridiem.lower() == "pm":
            h += 12
    elif h > 23:
        return None
    return h, m, s


def _build(year: int, month: int, day: int, time_groups: tuple) -> Optional[datetime]:
    if not _valid_date(year, month, day):
        return None
    hour = minute = second = 0
    if time_groups[0] is not None:
        clock = _clock(*time_groups)
        if clock is None:
            return None
        hour, minute, second = clock
    return _to_local(datetime(year, month, day, hour, minute, second))


def _month_number(name: str) -> Optional[int]:
    word = name.lower()
    if word == "sept":
        return 9
    for index, full in enumerate(MONTH_NAMES, start=1):
        if full.startswith(word):
            return index
    return None


def match_iso(text: str) -> Optional[datetime]:
    """Extended ISO-8601 with a full calendar date, e.g. 2025-10-30T12:11:00Z (a trailing UTC/GMT label is allowed)."""
    if not ISO_DATE_PREFIX.match(text):
        return None
    try:
        parsed = dateutil_parser.isoparse(TRAILING_ZONE_LABEL.sub("", text))
    except (ValueError, OverflowError):
        return None
    return _to_local(parsed)


def match_rfc2822(text: str) -> Optional[datetime]:
    """RFC-2822 style, e.g. Thu, 30 Oct 2025 12:11:00 +0000. A bare date is midnight local."""
    m = RFC2822_SHAPE.match(text)
    if not m:
        return None
    if not m.group(1).strip():
        # email.utils needs a time field
        text = f"{text} 00:00:00"
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    return _to_local(parsed)


def match_year_first_date(text: str) -> Optional[datetime]:
    """YYYY/MM/DD (also - or .) with an optional time, e.g. 2025/10/30 12:11."""
    for m in YEAR_FIRST_DATE_REGEX.finditer(text):
        result = _build(int(m.group(1)), int(m.group(3)), int(m.group(4)), m.group(5, 6, 7, 8))
        if result is not None:
            return result
    return None


def match_numeric_date(text: str) -> Optional[datetime]:
    """M/D/Y (or M-D-Y) with an optional H:MM[:SS] [AM|PM] time, anywhere in the text."""
    for m in NUMERIC_DATE_REGEX.finditer(text):
        month, day, year_raw = m.group(1), m.group(2), m.group(3)
        year = _expand_year(int(year_raw), len(year_raw))
        result = _build(year, int(month), int(day), m.group(4, 5, 6, 7))
        if result is not None:
            return result
    return None


def match_month_name(text: str) -> Optional[datetime]:
    """MonthName D[,] YYYY with an optional trailing time, e.g. Oct 30, 2025 12:11 PM."""
    for m in MONTH_NAME_REGEX.finditer(text):
        month = _month_number(m.group(1))
        if month is None:
            continue
        return _build(int(m.group(3)), month, int(m.group(2)), m.group(4, 5, 6, 7))
    return None


def match_numeric_heuristic(text: str) -> Optional[datetime]:
    """
    Last resort: guess from bare digit runs.
    Year is the first value > 31 (else the last value); the remaining values are
    read month first, then day. Day-first input is misread or rejected here.
    Years 0-99 mean 1900-1999, as in the browser Date constructor ("1 2 3" -> 1903-01-02).
    """
    numbers = [int(n) for n in DIGIT_RUN_REGEX.findall(text)]
    if len(numbers) < 3:
        return None
    year = next((n for n in numbers if n > 31), numbers[-1])
    others = [n for n in numbers if n != year]
    if len(others) < 2:
        return None
    month, day = others[0], others[1]
    if year < 100:
        year += 1900
    if not _valid_date(year, month, day):
        return None
    return _to_local(datetime(year, month, day))


MATCHERS: tuple[tuple[str, Callable[[str], Optional[datetime]]], ...] = (
    ("iso", match_iso),
    ("rfc2822", match_rfc2822),
    ("year_first_date", match_year_first_date),
    ("numeric_date", match_numeric_date),
    ("month_name", match_month_name),
    ("numeric_heuristic", match_numeric_heuristic),
)


def extract_timestamp_with_matcher(text: Optional[str]) -> Optional[tuple[datetime, str]]:
    """Run the matcher chain; return (timestamp, matcher name) or None when nothing matches."""
    text_clean = (text or "").strip()
    if not text_clean:
        logger.debug("date extract skipped empty text")
        return None
    for name, matcher in MATCHERS:
        result = matcher(text_clean)
        if result is not None:
            logger.debug("date extract matcher=%s text=%r -> %s", name, text_clean, result.isoformat())
            return result, name
        logger.debug("date extract matcher=%s missed", name)
        if name == "iso" and FULL_ISO_SHAPE.match(text_clean):
            # Complete ISO text that isoparse rejected is not re-read without its offset
            logger.info("date extract rejected invalid iso text=%r", text_clean)
            return None
    logger.info("date extract failed text_len=%d", len(text_clean))
    return None


def extract_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Extract a timezone-aware timestamp from selected text. None means no reading was found."""
    found = extract_timestamp_with_matcher(text)
    return found[0] if found else None
