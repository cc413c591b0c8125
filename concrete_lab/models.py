"""
Sample schema shared by the loaders, the store and the metrics functions.

The working collection is a pandas DataFrame with exactly SAMPLE_COLUMNS.
Sample mirrors one row for callers that want typed record access.
"""

from dataclasses import asdict, dataclass
from typing import Iterable, Iterator

import pandas as pd

from .config import (
    DATE_FIELDS,
    FLOAT_FIELDS,
    INT_FIELDS,
    MIN_VALID_RUPTURE,
    STRENGTH_FIELDS,
    UNSPECIFIED_DESIGN,
)


class SchemaError(ValueError):
    """Raised when a sample frame breaks the schema invariants."""


class StaleSchemaError(SchemaError):
    """Raised when persisted samples carry a different schema version."""


@dataclass(frozen=True)
class Sample:
    """One cylinder-break test result."""

    id: str
    sampling_date: pd.Timestamp
    test_date: pd.Timestamp
    rupture_strength: float
    month_label: str = ""
    guide_number: str = ""
    client: str = ""
    element: str = ""
    design_strength: float = 0.0
    design_type: str = ""
    current_age: int = 0
    test_age: int = 0
    diameter: float = 0.0
    height: float = 0.0
    area: float = 0.0
    volume: float = 0.0
    weight: float = 0.0
    density: float = 0.0
    load: float = 0.0
    rupture_strength_alt: float = 0.0
    cement_content: float = 0.0
    strength_ratio: float = 0.0
    truck_code: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Sample":
        values = {name: row[name] for name in SAMPLE_COLUMNS}
        for name in INT_FIELDS:
            values[name] = int(values[name])
        for name in FLOAT_FIELDS:
            values[name] = float(values[name])
        for name in DATE_FIELDS:
            values[name] = pd.Timestamp(values[name])
        return cls(**values)


SAMPLE_COLUMNS: list[str] = [
    "id",
    "sampling_date",
    "month_label",
    "guide_number",
    "client",
    "element",
    "design_strength",
    "design_type",
    "test_date",
    "current_age",
    "test_age",
    "diameter",
    "height",
    "area",
    "volume",
    "weight",
    "density",
    "load",
    "rupture_strength",
    "rupture_strength_alt",
    "cement_content",
    "strength_ratio",
    "truck_code",
]

STRING_FIELDS = tuple(
    c for c in SAMPLE_COLUMNS if c not in DATE_FIELDS + INT_FIELDS + FLOAT_FIELDS
)


def empty_samples_frame() -> pd.DataFrame:
    """Return an empty collection with the full schema and dtypes."""
    return conform_samples(pd.DataFrame(columns=SAMPLE_COLUMNS))


def conform_samples(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of df with SAMPLE_COLUMNS in order and canonical dtypes.

    Missing columns raise SchemaError; extra columns are dropped.
    """
    missing = [c for c in SAMPLE_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaError(f"Sample frame is missing columns: {missing}")

    out = df.loc[:, SAMPLE_COLUMNS].copy()
    for col in DATE_FIELDS:
        out[col] = pd.to_datetime(out[col]).astype("datetime64[ns]")
    for col in INT_FIELDS:
        out[col] = out[col].astype("int64")
    for col in FLOAT_FIELDS:
        out[col] = out[col].astype("float64")
    for col in STRING_FIELDS:
        out[col] = out[col].astype(object)
    return out


def validate_samples(df: pd.DataFrame) -> pd.DataFrame:
    """Check the collection invariants and return df unchanged.

    Raises
    ------
    SchemaError
        On duplicate ids, rupture strength at or below MIN_VALID_RUPTURE,
        negative ages or strengths, or null values.
    """
    if df.empty:
        return df

    if df["id"].duplicated().any():
        dupes = df.loc[df["id"].duplicated(), "id"].tolist()
        raise SchemaError(f"Duplicate sample ids: {dupes[:5]}")

    if df[SAMPLE_COLUMNS].isna().any().any():
        bad = [c for c in SAMPLE_COLUMNS if df[c].isna().any()]
        raise SchemaError(f"Null values in columns: {bad}")

    if (df["rupture_strength"] <= MIN_VALID_RUPTURE).any():
        raise SchemaError(
            f"Samples with rupture strength <= {MIN_VALID_RUPTURE} are not valid"
        )

    for col in INT_FIELDS + STRENGTH_FIELDS:
        if (df[col] < 0).any():
            raise SchemaError(f"Negative values in '{col}'")

    return df


def samples_to_frame(samples: Iterable[Sample]) -> pd.DataFrame:
    """Build a conformed collection from Sample records."""
    rows = [asdict(s) for s in samples]
    if not rows:
        return empty_samples_frame()
    return conform_samples(pd.DataFrame(rows))


def iter_samples(df: pd.DataFrame) -> Iterator[Sample]:
    for row in df.to_dict(orient="records"):
        yield Sample.from_row(row)


def design_label(design_type: str) -> str:
    """Design type as shown in selectors; empty types share one label."""
    return design_type or UNSPECIFIED_DESIGN


def design_labels(df: pd.DataFrame) -> pd.Series:
    return df["design_type"].map(design_label)
