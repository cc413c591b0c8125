"""
Simulated workbook generator for the ConcreteLab dashboard.

Generates realistic cylinder-break records laid out like the lab's monthly
spreadsheets (one sheet per sampling month, Spanish headers).
All values are synthetic — no real laboratory data is used.
"""

import io
import math

import numpy as np
import openpyxl
import pandas as pd

from .config import MONTH_ABBREVIATIONS

# ---------------------------------------------------------------------------
# Typical lab parameters
# ---------------------------------------------------------------------------
# (design type label, design strength kg/cm2, rated age in days)
_DESIGNS = [
    ("175-Y13 28D", 175, 28),
    ("210-Y13 28D", 210, 28),
    ("280-Y13 7D", 280, 7),
    ("280 Tipo Estandar", 280, 28),
    ("350-Y19 14D", 350, 14),
]

_CLIENTS = [
    "Constructora Andina",
    "Inmobiliaria del Sur",
    "Obras Civiles Norte",
    "Municipalidad Central",
    "Grupo Vial Pacifico",
]

_ELEMENTS = ["Losa", "Columna", "Viga", "Zapata", "Muro", "Pavimento"]

_TEST_AGES = [3, 7, 14, 28]
_TEST_AGE_WEIGHTS = [0.15, 0.35, 0.15, 0.35]

HEADERS = [
    "Fecha Toma", "Mes", "Guía No", "Cliente", "Elemento", "fc Diseño Kgcm2",
    "Tipo", "Fecha Ensayo", "Edad Actual", "Edad A Ensayo", "Diámetro mm",
    "Altura mm", "Área cm2", "Volumen cm3", "Peso Kg", "Densidad g cm3",
    "Carga Ton", "fc Rotura Kgcm2", "fc Rotura MPa", "Cemento Kg m3", "fc %",
    "Camión Código",
]

_DIAMETER_MM = 150.0
_HEIGHT_MM = 300.0
_KGCM2_TO_MPA = 0.0980665


def _strength_gain(age: int, rated_age: int) -> float:
    """Fraction of design strength expected at `age` days."""
    return min(1.2, 0.35 + 0.75 * math.sqrt(age / rated_age))


def generate_samples(
    n_samples: int = 240,
    start_date: str = "2025-01-06",
    span_days: int = 150,
    seed: int = 42,
    aberrant_rate: float = 0.02,
) -> pd.DataFrame:
    """Generate simulated lab rows with spreadsheet headers.

    Roughly `aberrant_rate` of the rows carry a zero rupture strength, as
    broken sensor reads do in real exports.
    """
    rng = np.random.default_rng(seed)
    start = pd.Timestamp(start_date)
    reference = start + pd.Timedelta(days=span_days + 28)
    area_cm2 = math.pi * (_DIAMETER_MM / 20) ** 2
    volume_cm3 = area_cm2 * _HEIGHT_MM / 10

    rows = []
    for i in range(n_samples):
        design_type, design_strength, rated_age = _DESIGNS[rng.integers(len(_DESIGNS))]
        sampled = start + pd.Timedelta(days=int(rng.integers(span_days)))
        age = int(rng.choice(_TEST_AGES, p=_TEST_AGE_WEIGHTS))
        tested = sampled + pd.Timedelta(days=age)

        rupture = design_strength * _strength_gain(age, rated_age) * rng.normal(1.0, 0.08)
        if rng.random() < aberrant_rate:
            rupture = 0.0
        rupture = round(max(rupture, 0.0), 1)

        weight = round(rng.normal(12.6, 0.25), 2)
        rows.append({
            "Fecha Toma": sampled.to_pydatetime(),
            "Mes": MONTH_ABBREVIATIONS["es"][sampled.month - 1],
            "Guía No": 10_000 + i,
            "Cliente": _CLIENTS[rng.integers(len(_CLIENTS))],
            "Elemento": _ELEMENTS[rng.integers(len(_ELEMENTS))],
            "fc Diseño Kgcm2": design_strength,
            "Tipo": design_type,
            "Fecha Ensayo": tested.to_pydatetime(),
            "Edad Actual": (reference - sampled).days,
            "Edad A Ensayo": age,
            "Diámetro mm": _DIAMETER_MM,
            "Altura mm": _HEIGHT_MM,
            "Área cm2": round(area_cm2, 2),
            "Volumen cm3": round(volume_cm3, 1),
            "Peso Kg": weight,
            "Densidad g cm3": round(weight * 1000 / volume_cm3, 3),
            "Carga Ton": round(rupture * area_cm2 / 1000, 2),
            "fc Rotura Kgcm2": rupture,
            "fc Rotura MPa": round(rupture * _KGCM2_TO_MPA, 2),
            "Cemento Kg m3": int(rng.integers(300, 421)),
            "fc %": f"{rupture / design_strength * 100:.0f}%",
            "Camión Código": f"C-{int(rng.integers(1, 40)):03d}",
        })

    return pd.DataFrame(rows, columns=HEADERS)


def write_workbook(rows: pd.DataFrame, split_by_month: bool = True) -> bytes:
    """Write spreadsheet rows to .xlsx bytes, one sheet per sampling month."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)

    if split_by_month and not rows.empty:
        ordered = rows.sort_values("Fecha Toma", kind="mergesort")
        months = pd.to_datetime(ordered["Fecha Toma"]).dt.to_period("M")
        groups = [(p, g) for p, g in ordered.groupby(months)]
    else:
        groups = [(None, rows)]

    for period, group in groups:
        if period is None:
            sheet_name = "Datos"
        else:
            sheet_name = MONTH_ABBREVIATIONS["es"][period.month - 1]
            if sheet_name in wb.sheetnames:
                sheet_name = f"{sheet_name} {period.year}"
        ws = wb.create_sheet(sheet_name)
        ws.append(list(rows.columns))
        for record in group.itertuples(index=False):
            ws.append([_cell_value(v) for v in record])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _cell_value(value):
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value


def generate_workbook(n_samples: int = 240, seed: int = 42, **kwargs) -> bytes:
    """Generate a complete simulated lab workbook as .xlsx bytes."""
    return write_workbook(generate_samples(n_samples, seed=seed, **kwargs))
