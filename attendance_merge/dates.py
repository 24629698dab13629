"""
Date/time parsing for attendance exports.

Cells arrive as native date/time objects (from workbooks), spreadsheet serial
numbers, or text in whatever format the exporting tool used. Everything is
normalised to a naive ``datetime``; ``None`` means "no usable value".
"""

from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Sequence

import pandas as pd

from attendance_merge.config import DEFAULT_DATE_FORMATS

EXCEL_EPOCH = datetime(1899, 12, 30)
EXCEL_SERIAL_MAX = 2_958_466
# Serials above this include the phantom 1900-02-29.
EXCEL_LEAP_BUG_SERIAL = 60
SECONDS_PER_DAY = 86_400

TWO_DIGIT_YEAR_PIVOT = 68

TIME_TEXT_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
EMBEDDED_TIME_RE = re.compile(r"(?<![\d:])(\d{1,2}):(\d{2})(?::(\d{2}))?(?![\d:])")


def correct_two_digit_year(value: datetime) -> datetime | None:
    """Map years 0-68 to 2000-2068 and 69-99 to 1969-1999; None if the result is invalid."""
    year = value.year
    if not 0 <= year < 100:
        return value
    year += 2000 if year <= TWO_DIGIT_YEAR_PIVOT else 1900
    try:
        return value.replace(year=year)
    except ValueError:
        return None


def _naive(value: datetime) -> datetime:
    # Keep the wall-clock reading; the calendar day is what groups rows.
    return value.replace(tzinfo=None)


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def _from_native(value: Any) -> datetime | None:
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return correct_two_digit_year(_naive(value))


def _from_serial(number: float) -> datetime | None:
    if not 0 < number < EXCEL_SERIAL_MAX:
        return None
    if number > EXCEL_LEAP_BUG_SERIAL:
        number -= 1
    try:
        parsed = EXCEL_EPOCH + timedelta(seconds=round(number * SECONDS_PER_DAY))
    except OverflowError:
        return None
    return correct_two_digit_year(parsed)


def _from_text(text: str, formats: Sequence[str]) -> datetime | None:
    for fmt in formats:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        corrected = correct_two_digit_year(parsed)
        if corrected is not None:
            return corrected

    parsed = pd.to_datetime(text, format="ISO8601", errors="coerce")
    if pd.isna(parsed):
        return None
    return correct_two_digit_year(_naive(parsed.to_pydatetime()))


def parse_datetime(value: Any, *, formats: Sequence[str] | None = None) -> datetime | None:
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return _from_native(value)
    if isinstance(value, numbers.Real):
        return _from_serial(float(value))
    if not isinstance(value, str):
        return None
    text = value.replace("\ufeff", "").strip()
    if not text:
        return None
    return _from_text(text, DEFAULT_DATE_FORMATS if formats is None else formats)


def _time_from_parts(hours: str, minutes: str, seconds: str | None) -> time | None:
    h, m, s = int(hours), int(minutes), int(seconds or 0)
    if h > 23 or m > 59 or s > 59:
        return None
    return time(h, m, s)


def find_time_in_text(text: Any) -> time | None:
    """First valid H:MM[:SS] embedded in free text, e.g. 'Giriş 08:15'."""
    if not isinstance(text, str):
        return None
    for match in EMBEDDED_TIME_RE.finditer(text):
        found = _time_from_parts(*match.groups())
        if found is not None:
            return found
    return None


def parse_time_of_day(value: Any, *, formats: Sequence[str] | None = None) -> time | None:
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return _naive(value).time()
    if isinstance(value, date):
        return None
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % SECONDS_PER_DAY
        return (datetime.min + timedelta(seconds=seconds)).time()
    if isinstance(value, numbers.Real):
        number = float(value)
        if 0 <= number < 1:
            seconds = round(number * SECONDS_PER_DAY) % SECONDS_PER_DAY
            return (datetime.min + timedelta(seconds=seconds)).time()
        parsed = _from_serial(number)
        return parsed.time() if parsed else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = TIME_TEXT_RE.fullmatch(text)
    if match:
        return _time_from_parts(*match.groups())
    parsed = parse_datetime(text, formats=formats)
    return parsed.time() if parsed else None


def format_dmy(value: datetime | date | None) -> str:
    return value.strftime("%d.%m.%Y") if value else ""


def format_hms(value: datetime | time | None) -> str:
    return value.strftime("%H:%M:%S") if value is not None else ""


def format_dmy_hms(value: datetime | None) -> str:
    return value.strftime("%d.%m.%Y %H:%M:%S") if value else ""


def format_iso_date(value: datetime | date | None) -> str:
    return value.strftime("%Y-%m-%d") if value else ""
