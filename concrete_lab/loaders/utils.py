"""
Shared utilities for data ingestion: header normalisation, header-row
detection, date and number coercion.
"""

import datetime as dt
import logging
import math
import re
import unicodedata
from typing import Any, Iterable, Sequence

import pandas as pd

from ..config import (
    DATE_DAYFIRST,
    EXCEL_UNIX_OFFSET,
    RATIO_PERCENT_THRESHOLD,
    UNIX_EPOCH,
)

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}")
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def is_blank(val: Any) -> bool:
    """True for None, NaN, and whitespace-only strings."""
    if val is None:
        return True
    if isinstance(val, str):
        return not val.strip()
    if isinstance(val, float):
        return math.isnan(val)
    return False


def clean_string(val: Any) -> str:
    """Strip accents/diacritics and surrounding whitespace."""
    if is_blank(val):
        return ""
    decomposed = unicodedata.normalize("NFD", str(val))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip()


def normalise_header(name: Any) -> str:
    """Normalise a column header for lookup in COLUMN_MAP.

    "Fecha Ensayo", "Fecha  Ensayo" and "FECHA_ENSAYO" all become
    "fecha_ensayo". "Guía No" becomes "guia_no".
    """
    s = clean_string(name)
    s = re.sub(r"[\s_]+", "_", s)
    return s.lower()


def text_value(val: Any) -> str:
    """Render a cell as text; whole floats lose their trailing '.0'."""
    if is_blank(val):
        return ""
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def find_header_row(
    rows: Sequence[Sequence[Any]],
    signature: Iterable[str],
    max_rows: int = 20,
) -> int | None:
    """Scan leading rows for the one holding the column headers.

    Returns the 0-based index of the first row where at least two cells,
    once normalised, match values in `signature`, or None if not found
    within `max_rows`.
    """
    known = set(signature)
    for row_idx, row in enumerate(rows[:max_rows]):
        matches = sum(1 for cell in row if normalise_header(cell) in known)
        if matches >= 2:
            return row_idx
    return None


def excel_serial_to_timestamp(serial: float) -> pd.Timestamp:
    """Convert a spreadsheet serial day number to a timestamp.

    Day 0 is 1899-12-30; the serial is shifted by EXCEL_UNIX_OFFSET onto the
    Unix epoch and floored to whole days.
    """
    days = math.floor(serial - EXCEL_UNIX_OFFSET)
    return pd.Timestamp(UNIX_EPOCH) + pd.Timedelta(days=days)


def normalise_date(val: Any) -> pd.Timestamp | None:
    """Convert a native date, spreadsheet serial, or date string to pd.Timestamp.

    Native datetime objects are kept as they are. Timezone-aware values are
    converted to naive UTC. Returns None for blank or unparseable values and
    for dates outside the nanosecond range pandas can store (year typos
    such as 3025).
    """
    if is_blank(val):
        return None

    ts: pd.Timestamp | None
    if isinstance(val, pd.Timestamp):
        ts = val
    elif isinstance(val, (dt.datetime, dt.date)):
        ts = pd.Timestamp(val)
    elif isinstance(val, (int, float)) and not isinstance(val, bool):
        try:
            ts = excel_serial_to_timestamp(val)
        except (ValueError, OverflowError):
            logger.warning("Could not convert serial number %s to date", val)
            return None
    else:
        text = str(val).strip()
        try:
            if _ISO_DATE.match(text):
                ts = pd.Timestamp(text)
            else:
                ts = pd.to_datetime(text, dayfirst=DATE_DAYFIRST)
        except (ValueError, TypeError, OverflowError):
            logger.debug("Could not parse date value: %s", val)
            return None

    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    try:
        return ts.as_unit("ns")
    except (pd.errors.OutOfBoundsDatetime, OverflowError):
        logger.debug("Date value out of range: %s", val)
        return None


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values.

    Strings accept a trailing '%', a decimal comma ("210,5") and a leading
    numeric token followed by text ("28 dias"). NaN and infinities are not
    numbers here and also give None.
    """
    if is_blank(val):
        return None
    if isinstance(val, bool):
        return float(val)
    if isinstance(val, (int, float)):
        try:
            result = float(val)
        except OverflowError:
            return None
        return result if math.isfinite(result) else None
    if isinstance(val, str):
        s = val.strip()
        if s.startswith("="):
            return None
        if s.endswith("%"):
            s = s[:-1].strip()
        if "," in s and "." not in s and s.count(",") == 1:
            s = s.replace(",", ".")
        try:
            result = float(s)
        except ValueError:
            match = _LEADING_NUMBER.match(s)
            if not match:
                return None
            result = float(match.group(0))
        return result if math.isfinite(result) else None
    try:
        result = float(val)
    except (ValueError, TypeError, OverflowError):
        return None
    return result if math.isfinite(result) else None


def normalise_ratio(val: Any) -> float | None:
    """Normalise a measured/design strength ratio to a decimal fraction.

    "95%" and "95,0 %" -> 0.95; 95 -> 0.95; 0.95 -> 0.95. Values above
    RATIO_PERCENT_THRESHOLD are read as whole-number percentages.
    Returns None when the value cannot be read as a number.
    """
    if isinstance(val, str) and "%" in val:
        number = safe_float(val.replace("%", "").replace(",", "."))
        return None if number is None else number / 100.0

    number = safe_float(val)
    if number is None:
        return None
    if number > RATIO_PERCENT_THRESHOLD:
        return number / 100.0
    return number
