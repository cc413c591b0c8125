from __future__ import annotations

import datetime as dt

import pandas as pd
import pytest

from concrete_lab.loaders.utils import (
    excel_serial_to_timestamp,
    find_header_row,
    normalise_date,
    normalise_header,
    normalise_ratio,
    safe_float,
    text_value,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Fecha Ensayo", "fecha_ensayo"),
        ("  Fecha   Ensayo ", "fecha_ensayo"),
        ("FECHA_ENSAYO", "fecha_ensayo"),
        ("Guía No", "guia_no"),
        ("fc Diseño Kgcm2", "fc_diseno_kgcm2"),
        ("fc %", "fc_%"),
        (None, ""),
    ],
)
def test_normalise_header(raw: object, expected: str) -> None:
    assert normalise_header(raw) == expected


def test_find_header_row_skips_title_rows() -> None:
    rows = [
        ("Laboratorio de Concreto", None, None),
        (None, None, None),
        ("Fecha Toma", "Cliente", "Tipo"),
        ("2025-01-06", "Acme", "210"),
    ]
    assert find_header_row(rows, {"fecha_toma", "cliente", "tipo"}) == 2


def test_find_header_row_needs_two_known_headers() -> None:
    rows = [("Cliente", "Observaciones"), ("Acme", "ok")]
    assert find_header_row(rows, {"cliente", "fecha_toma"}) is None


def test_find_header_row_respects_scan_limit() -> None:
    rows = [("x",)] * 5 + [("Fecha Toma", "Cliente")]
    assert find_header_row(rows, {"fecha_toma", "cliente"}, max_rows=5) is None


def test_excel_serial_to_timestamp() -> None:
    assert excel_serial_to_timestamp(45658) == pd.Timestamp("2025-01-01")
    assert excel_serial_to_timestamp(45658.75) == pd.Timestamp("2025-01-01")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (dt.datetime(2025, 3, 15, 10, 30), pd.Timestamp("2025-03-15 10:30")),
        (dt.date(2025, 3, 15), pd.Timestamp("2025-03-15")),
        (45658, pd.Timestamp("2025-01-01")),
        ("2025-03-04", pd.Timestamp("2025-03-04")),
        ("04/03/2025", pd.Timestamp("2025-03-04")),
        ("2025-03-04T12:00:00+02:00", pd.Timestamp("2025-03-04 10:00")),
    ],
)
def test_normalise_date(raw: object, expected: pd.Timestamp) -> None:
    assert normalise_date(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [None, "", "   ", float("nan"), "no es fecha", dt.datetime(3025, 2, 3), "3025-02-03", "03/02/3025"],
)
def test_normalise_date_unreadable_returns_none(raw: object) -> None:
    assert normalise_date(raw) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (210, 210.0),
        ("210", 210.0),
        ("210,5", 210.5),
        ("28 dias", 28.0),
        ("95%", 95.0),
        ("-3", -3.0),
    ],
)
def test_safe_float(raw: object, expected: float) -> None:
    assert safe_float(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw",
    [None, "", "N/A", "=A1*2", float("nan"), "inf", "-Infinity", float("inf"), "1e400"],
)
def test_safe_float_non_numeric(raw: object) -> None:
    assert safe_float(raw) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("95%", 0.95),
        ("95,5 %", 0.955),
        (95, 0.95),
        (0.95, 0.95),
        (2, 2.0),
        ("1.1", 1.1),
    ],
)
def test_normalise_ratio(raw: object, expected: float) -> None:
    assert normalise_ratio(raw) == pytest.approx(expected)


def test_normalise_ratio_unparseable() -> None:
    assert normalise_ratio("N/A") is None
    assert normalise_ratio(None) is None


def test_text_value_drops_trailing_zero() -> None:
    assert text_value(1001.0) == "1001"
    assert text_value(12.5) == "12.5"
    assert text_value("  C-001 ") == "C-001"
    assert text_value(None) == ""
