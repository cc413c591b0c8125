from __future__ import annotations

import io

import openpyxl
import pandas as pd

from concrete_lab.loaders import parse_workbook
from concrete_lab.simulator import HEADERS, generate_samples, generate_workbook, write_workbook


def test_generate_samples_is_reproducible() -> None:
    first = generate_samples(50, seed=7)
    second = generate_samples(50, seed=7)

    pd.testing.assert_frame_equal(first, second)
    assert list(first.columns) == HEADERS


def test_workbook_has_one_sheet_per_month() -> None:
    rows = generate_samples(60, start_date="2025-01-06", span_days=84, seed=1)

    wb = openpyxl.load_workbook(io.BytesIO(write_workbook(rows)), read_only=True)
    try:
        assert wb.sheetnames == ["ENE", "FEB", "MAR"]
    finally:
        wb.close()


def test_single_sheet_workbook() -> None:
    rows = generate_samples(10, seed=3)

    wb = openpyxl.load_workbook(io.BytesIO(write_workbook(rows, split_by_month=False)), read_only=True)
    try:
        assert wb.sheetnames == ["Datos"]
    finally:
        wb.close()


def test_simulated_workbook_parses() -> None:
    rows = generate_samples(120, seed=11, aberrant_rate=0.1)
    aberrant = int((rows["fc Rotura Kgcm2"] <= 1).sum())

    result = parse_workbook(write_workbook(rows), now=pd.Timestamp("2025-12-31"))

    assert len(result.samples) == 120 - aberrant
    assert result.dropped_rows == aberrant
    assert result.warnings == []
    assert result.samples["id"].is_unique
    assert set(result.samples["month_label"]) <= {"ENE", "FEB", "MAR", "ABR", "MAY", "JUN"}


def test_generate_workbook_defaults() -> None:
    result = parse_workbook(generate_workbook(), now=pd.Timestamp("2025-12-31"))

    assert len(result.samples) > 200
    assert len(result.sheets_processed) >= 5
