"""
Declarative sample filters: date range plus client, design and element
selectors. Each selector is either WILDCARD or an exact value.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from .config import WILDCARD
from .loaders.utils import is_blank, normalise_date
from .models import design_labels

_LEADING_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class FilterPredicate:
    start: Optional[pd.Timestamp] = None
    end: Optional[pd.Timestamp] = None
    client: str = WILDCARD
    design_type: str = WILDCARD
    element: str = WILDCARD


MATCH_ALL = FilterPredicate()


def _selector(value: Any) -> str:
    if is_blank(value):
        return WILDCARD
    return str(value)


def normalize_filter(raw: dict) -> FilterPredicate:
    """Build a FilterPredicate from UI state.

    Accepts either "date_range": (start, end) or separate "start"/"end"
    keys. Blank selectors become the wildcard.
    """
    start, end = raw.get("date_range") or (raw.get("start"), raw.get("end"))
    return FilterPredicate(
        start=normalise_date(start),
        end=normalise_date(end),
        client=_selector(raw.get("client")),
        design_type=_selector(raw.get("design_type")),
        element=_selector(raw.get("element")),
    )


def apply_filter(samples: pd.DataFrame, predicate: FilterPredicate) -> pd.DataFrame:
    """Return the samples matching every condition of `predicate`, in input order.

    The date bounds apply to the test date and are inclusive. Design types
    are compared by label, so "Sin Especificar" selects samples with no type.
    """
    if samples.empty:
        return samples

    mask = pd.Series(True, index=samples.index)
    if predicate.start is not None:
        mask &= samples["test_date"] >= pd.Timestamp(predicate.start)
    if predicate.end is not None:
        mask &= samples["test_date"] <= pd.Timestamp(predicate.end)
    if predicate.client != WILDCARD:
        mask &= samples["client"] == predicate.client
    if predicate.design_type != WILDCARD:
        mask &= design_labels(samples) == predicate.design_type
    if predicate.element != WILDCARD:
        mask &= samples["element"] == predicate.element

    return samples[mask]


def _design_sort_key(label: str) -> tuple[int, str]:
    match = _LEADING_DIGITS.search(label)
    return (int(match.group(0)) if match else 0, label)


def get_filter_options(samples: pd.DataFrame) -> dict[str, list[str]]:
    """Distinct selector values for UI dropdowns.

    Designs sort by their first number (the design strength in labels like
    "280-Y13 7D"), then alphabetically.
    """
    if samples.empty:
        return {"clients": [], "designs": [], "elements": []}
    return {
        "clients": sorted(samples["client"].unique().tolist()),
        "designs": sorted(design_labels(samples).unique().tolist(), key=_design_sort_key),
        "elements": sorted(samples["element"].unique().tolist()),
    }
