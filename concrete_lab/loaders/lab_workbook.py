"""
Loader for concrete laboratory cylinder-break workbooks.

Source: Base_Datos_Laboratorio_<year>.xlsx, one sheet per month (ENE, FEB, ...)
or a single consolidated sheet.

Structure per sheet:
    Header row: first row (within HEADER_SCAN_ROWS) with two or more known
                column names, e.g. Fecha Toma, Cliente, Tipo, Fecha Ensayo
    Data rows:  one cylinder break per row below the header; column order
                varies between sheets and is resolved by header name

Dates may be datetime objects, Excel serial numbers, or text.
"""

import asyncio
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import openpyxl
import pandas as pd

from ..config import (
    COLUMN_ALIASES,
    COLUMN_MAP,
    DATE_FIELDS,
    DEFAULT_LOCALE,
    FLOAT_FIELDS,
    HEADER_SCAN_ROWS,
    INGEST_TIMEOUT_S,
    INT_FIELDS,
    MIN_VALID_RUPTURE,
    MONTH_ABBREVIATIONS,
    OTHER_ELEMENT,
    UNKNOWN_CLIENT,
)
from ..models import conform_samples, validate_samples
from .utils import (
    find_header_row,
    is_blank,
    normalise_date,
    normalise_header,
    normalise_ratio,
    safe_float,
    text_value,
)

logger = logging.getLogger(__name__)

_SIGNATURE = set(COLUMN_MAP) | set(COLUMN_ALIASES)


class IngestionError(RuntimeError):
    """Raised when a workbook cannot be read or yields no valid samples."""


@dataclass(frozen=True)
class IngestWarning:
    """A field that was coerced to a default instead of rejecting its row."""

    sheet: str
    row: int
    field: str
    value: Any
    message: str


@dataclass
class IngestResult:
    samples: pd.DataFrame
    warnings: list[IngestWarning] = field(default_factory=list)
    skipped_rows: int = 0
    dropped_rows: int = 0
    sheets_processed: list[str] = field(default_factory=list)


def month_label(ts: pd.Timestamp, locale: str = DEFAULT_LOCALE) -> str:
    """Three-letter uppercase month abbreviation, e.g. 'ENE' for January."""
    names = MONTH_ABBREVIATIONS.get(locale, MONTH_ABBREVIATIONS["es"])
    return names[ts.month - 1]


def _column_fields(header: tuple) -> dict[int, str]:
    """Map column index -> canonical field for one header row."""
    mapping: dict[int, str] = {}
    seen: set[str] = set()
    for col_idx, name in enumerate(header):
        key = normalise_header(name)
        field_name = COLUMN_MAP.get(key) or COLUMN_ALIASES.get(key)
        if field_name is None or field_name in seen:
            continue
        mapping[col_idx] = field_name
        seen.add(field_name)
    return mapping


def _build_record(
    raw: dict[str, Any],
    now: pd.Timestamp,
    locale: str,
    warn: Callable[[str, Any, str], None],
) -> dict[str, Any]:
    """Coerce one mapped row into sample field values.

    Every field gets a value: bad dates fall back to `now`, bad numbers to 0,
    blank text to its placeholder.
    """
    record: dict[str, Any] = {}

    for name in DATE_FIELDS:
        value = raw.get(name)
        ts = normalise_date(value)
        if ts is None:
            reason = "missing date" if is_blank(value) else "unparseable date"
            warn(name, value, f"{reason}, using {now.date().isoformat()}")
            ts = now
        record[name] = ts

    for name in FLOAT_FIELDS + INT_FIELDS:
        value = raw.get(name)
        if name == "strength_ratio":
            number = normalise_ratio(value)
        else:
            number = safe_float(value)
        if number is None:
            if not is_blank(value):
                warn(name, value, "not a number, using 0")
            number = 0.0
        if number < 0:
            warn(name, value, "negative value, using 0")
            number = 0.0
        record[name] = int(number) if name in INT_FIELDS else number

    record["client"] = text_value(raw.get("client")) or UNKNOWN_CLIENT
    record["element"] = text_value(raw.get("element")) or OTHER_ELEMENT
    record["design_type"] = text_value(raw.get("design_type"))
    record["guide_number"] = text_value(raw.get("guide_number"))
    record["truck_code"] = text_value(raw.get("truck_code"))
    record["month_label"] = month_label(record["sampling_date"], locale)
    return record


def parse_workbook(
    data: bytes,
    *,
    now: pd.Timestamp | None = None,
    locale: str = DEFAULT_LOCALE,
) -> IngestResult:
    """Parse every sheet of a lab workbook into one sample collection.

    Assumptions
    -----------
    - Sheets are read in workbook order; rows keep their order within a sheet.
    - A row with neither sampling date nor client is a blank trailing row
      and is skipped.
    - Rows whose rupture strength is at or below MIN_VALID_RUPTURE are
      instrument/data errors and are dropped.
    - Ids are "<sheet index>-<row number>-<sequence>", stable across parses
      of the same file.

    Parameters
    ----------
    data : Raw .xlsx bytes.
    now : Fallback for missing or unparseable dates. Defaults to today.
    locale : Month-label language ('es' or 'en').

    Returns
    -------
    IngestResult with a conformed, validated samples DataFrame.

    Raises
    ------
    IngestionError
        When the bytes are not a readable workbook, a sheet is damaged, or
        no sheet yields a valid sample.
    """
    if now is None:
        now = pd.Timestamp.now().normalize()

    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    except Exception as exc:  # noqa: BLE001
        logger.error("Failed to open workbook: %s", exc)
        raise IngestionError(
            "Could not read the file as a spreadsheet. "
            "Make sure it is a valid Excel workbook (.xlsx)."
        ) from exc

    result = IngestResult(samples=pd.DataFrame())
    records: list[dict[str, Any]] = []
    seq = 0

    try:
        for sheet_idx, sheet_name in enumerate(wb.sheetnames):
            # read_only sheets are parsed lazily, so a damaged sheet fails here
            try:
                rows = list(wb[sheet_name].iter_rows(values_only=True))
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to read sheet '%s': %s", sheet_name, exc)
                raise IngestionError(
                    f"Sheet '{sheet_name}' is damaged and could not be read. "
                    "Save the workbook again from Excel and retry."
                ) from exc
            if not rows:
                continue

            header_idx = find_header_row(rows, _SIGNATURE, HEADER_SCAN_ROWS)
            if header_idx is None:
                logger.warning("No recognised header row in sheet '%s', skipping", sheet_name)
                continue

            columns = _column_fields(rows[header_idx])
            result.sheets_processed.append(sheet_name)
            sheet_count = 0

            for offset, row in enumerate(rows[header_idx + 1:]):
                # 1-based spreadsheet row number
                row_number = header_idx + offset + 2
                raw = {name: row[idx] for idx, name in columns.items() if idx < len(row)}

                if is_blank(raw.get("sampling_date")) and is_blank(raw.get("client")):
                    result.skipped_rows += 1
                    continue

                def warn(name: str, value: Any, message: str) -> None:
                    result.warnings.append(
                        IngestWarning(sheet_name, row_number, name, value, message)
                    )

                record = _build_record(raw, now, locale, warn)
                if record["rupture_strength"] <= MIN_VALID_RUPTURE:
                    result.dropped_rows += 1
                    continue

                seq += 1
                record["id"] = f"{sheet_idx:02d}-{row_number:05d}-{seq:06d}"
                records.append(record)
                sheet_count += 1

            logger.info("Loaded %d samples from sheet '%s'", sheet_count, sheet_name)
    finally:
        wb.close()

    if not records:
        raise IngestionError(
            "No valid samples were found in the file. "
            "Check that the sheets have the expected column headers."
        )

    result.samples = validate_samples(conform_samples(pd.DataFrame(records)))

    if result.warnings:
        logger.warning("%d field values were coerced to defaults", len(result.warnings))
    logger.info(
        "Parsed %d samples from %d sheets (%d blank rows skipped, %d invalid rows dropped)",
        len(result.samples), len(result.sheets_processed),
        result.skipped_rows, result.dropped_rows,
    )
    return result


async def ingest_workbook(
    data: bytes,
    *,
    timeout: float | None = INGEST_TIMEOUT_S,
    now: pd.Timestamp | None = None,
    locale: str = DEFAULT_LOCALE,
) -> IngestResult:
    """Parse a workbook off the event loop, bounded by `timeout` seconds.

    Cancelling the awaiting task abandons the parse.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(parse_workbook, data, now=now, locale=locale),
            timeout,
        )
    except asyncio.TimeoutError as exc:
        raise IngestionError(f"Processing the file took longer than {timeout} seconds.") from exc


def load_lab_workbook(path: str | Path, **kwargs: Any) -> IngestResult:
    """Read and parse a workbook from disk."""
    path_obj = Path(path)
    try:
        data = path_obj.read_bytes()
    except OSError as exc:
        logger.exception("Failed to open lab workbook: %s", path_obj)
        raise IngestionError(f"Could not open {path_obj}") from exc
    return parse_workbook(data, **kwargs)
