from __future__ import annotations

import io
import itertools
import pathlib
from typing import Any, Callable, Iterable

import openpyxl
import pandas as pd
import pytest

from concrete_lab.models import Sample, samples_to_frame
from concrete_lab.store import BlobStore, SampleStore

HEADER = [
    "Fecha Toma",
    "Guía No",
    "Cliente",
    "Elemento",
    "fc Diseño Kgcm2",
    "Tipo",
    "Fecha Ensayo",
    "Edad A Ensayo",
    "fc Rotura Kgcm2",
    "fc %",
]


def build_workbook(sheets: dict[str, Iterable[Iterable[Any]]]) -> bytes:
    """Write {sheet name: rows} to .xlsx bytes; rows are written as given."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def lab_row(
    *,
    sampled: Any = "2025-01-06",
    guide: Any = 1001,
    client: Any = "Constructora Andina",
    element: Any = "Losa",
    design: Any = 210,
    design_type: Any = "210-Y13 28D",
    tested: Any = "2025-02-03",
    age: Any = 28,
    rupture: Any = 225.0,
    ratio: Any = "107%",
) -> list[Any]:
    return [sampled, guide, client, element, design, design_type, tested, age, rupture, ratio]


@pytest.fixture()
def now() -> pd.Timestamp:
    return pd.Timestamp("2025-06-30")


@pytest.fixture()
def make_sample() -> Callable[..., Sample]:
    counter = itertools.count(1)

    def _make(**overrides: Any) -> Sample:
        values: dict[str, Any] = {
            "id": f"00-{next(counter):05d}-000000",
            "sampling_date": pd.Timestamp("2025-01-06"),
            "test_date": pd.Timestamp("2025-02-03"),
            "rupture_strength": 220.0,
            "month_label": "ENE",
            "client": "Constructora Andina",
            "element": "Losa",
            "design_strength": 210.0,
            "design_type": "210-Y13 28D",
            "test_age": 28,
        }
        values.update(overrides)
        for name in ("sampling_date", "test_date"):
            values[name] = pd.Timestamp(values[name])
        return Sample(**values)

    return _make


@pytest.fixture()
def make_samples(make_sample: Callable[..., Sample]) -> Callable[..., pd.DataFrame]:
    def _make(*rows: dict[str, Any]) -> pd.DataFrame:
        return samples_to_frame(make_sample(**row) for row in rows)

    return _make


@pytest.fixture()
def test_db_path(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "test.sqlite"


@pytest.fixture()
def sample_store(test_db_path: pathlib.Path) -> SampleStore:
    return SampleStore(BlobStore(test_db_path))
