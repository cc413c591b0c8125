from __future__ import annotations

import datetime as dt

import pandas as pd
import pytest

from concrete_lab.config import WILDCARD
from concrete_lab.filters import (
    MATCH_ALL,
    FilterPredicate,
    apply_filter,
    get_filter_options,
    normalize_filter,
)
from concrete_lab.models import empty_samples_frame


@pytest.fixture()
def samples(make_samples) -> pd.DataFrame:
    return make_samples(
        {"client": "Andina", "element": "Losa", "design_type": "210-Y13 28D", "test_date": "2025-01-10"},
        {"client": "Sur", "element": "Viga", "design_type": "280-Y13 7D", "test_date": "2025-01-20"},
        {"client": "Andina", "element": "Viga", "design_type": "", "test_date": "2025-02-05"},
        {"client": "Norte", "element": "Losa", "design_type": "1000 Especial", "test_date": "2025-02-28 16:00"},
    )


def test_match_all_is_identity(samples: pd.DataFrame) -> None:
    pd.testing.assert_frame_equal(apply_filter(samples, MATCH_ALL), samples)


def test_filter_is_idempotent(samples: pd.DataFrame) -> None:
    predicate = FilterPredicate(client="Andina")

    once = apply_filter(samples, predicate)
    twice = apply_filter(once, predicate)

    pd.testing.assert_frame_equal(once, twice)


def test_date_bounds_are_inclusive(samples: pd.DataFrame) -> None:
    predicate = FilterPredicate(start=pd.Timestamp("2025-01-20"), end=pd.Timestamp("2025-02-05"))

    result = apply_filter(samples, predicate)

    assert result["client"].tolist() == ["Sur", "Andina"]


def test_selectors_combine(samples: pd.DataFrame) -> None:
    result = apply_filter(samples, FilterPredicate(client="Andina", element="Viga"))

    assert len(result) == 1
    assert result["design_type"].iloc[0] == ""


def test_unspecified_design_label_selects_blank_types(samples: pd.DataFrame) -> None:
    result = apply_filter(samples, FilterPredicate(design_type="Sin Especificar"))

    assert result["client"].tolist() == ["Andina"]


def test_filter_preserves_order_and_index(samples: pd.DataFrame) -> None:
    result = apply_filter(samples, FilterPredicate(element="Losa"))

    assert result.index.tolist() == [0, 3]


def test_no_match_returns_empty_frame(samples: pd.DataFrame) -> None:
    result = apply_filter(samples, FilterPredicate(client="Nadie"))

    assert result.empty
    assert list(result.columns) == list(samples.columns)


def test_apply_filter_on_empty_collection() -> None:
    assert apply_filter(empty_samples_frame(), FilterPredicate(client="x")).empty


def test_normalize_filter_from_ui_state() -> None:
    predicate = normalize_filter(
        {
            "date_range": (dt.date(2025, 1, 1), "31/01/2025"),
            "client": "Andina",
            "design_type": "",
            "element": None,
        }
    )

    assert predicate == FilterPredicate(
        start=pd.Timestamp("2025-01-01"),
        end=pd.Timestamp("2025-01-31"),
        client="Andina",
        design_type=WILDCARD,
        element=WILDCARD,
    )


def test_normalize_filter_without_dates() -> None:
    assert normalize_filter({}) == MATCH_ALL


def test_filter_options(samples: pd.DataFrame) -> None:
    options = get_filter_options(samples)

    assert options["clients"] == ["Andina", "Norte", "Sur"]
    assert options["elements"] == ["Losa", "Viga"]
    assert options["designs"] == ["Sin Especificar", "210-Y13 28D", "280-Y13 7D", "1000 Especial"]


def test_filter_options_empty() -> None:
    assert get_filter_options(empty_samples_frame()) == {"clients": [], "designs": [], "elements": []}
