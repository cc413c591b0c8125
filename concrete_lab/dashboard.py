"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end. Each view
is a pure function of (samples, predicate) and returns a plain dict of
scalars and DataFrames for rendering cards, charts, and tables.
"""

import logging

import pandas as pd

from .config import DEFAULT_LOCALE, RECENT_SAMPLES_LIMIT, TOP_N
from .filters import FilterPredicate, apply_filter, get_filter_options
from .metrics import (
    client_performance,
    design_compliance,
    design_evolution,
    design_samples,
    design_target_stats,
    element_distribution,
    get_executive_summary,
    monthly_evolution,
    target_age,
)
from .quality import control_chart, control_limits, non_conformities

logger = logging.getLogger(__name__)


def get_executive_view(
    samples: pd.DataFrame,
    predicate: FilterPredicate,
    top_n: int = TOP_N,
    locale: str = DEFAULT_LOCALE,
) -> dict:
    """Executive summary page: KPI cards, monthly trend, design and client rankings."""
    filtered = apply_filter(samples, predicate)
    return {
        "sample_count": len(filtered),
        "summary": get_executive_summary(filtered),
        "monthly": monthly_evolution(filtered, locale),
        "design_compliance": design_compliance(filtered, top_n),
        "client_performance": client_performance(filtered, top_n),
    }


def _sample_status(samples: pd.DataFrame, goal: int) -> list[str]:
    statuses = []
    for age, rupture, design in zip(
        samples["test_age"], samples["rupture_strength"], samples["design_strength"]
    ):
        if age < goal:
            statuses.append("in_progress")
        elif rupture >= design:
            statuses.append("ok")
        else:
            statuses.append("fail")
    return statuses


def recent_design_samples(
    samples: pd.DataFrame,
    design: str,
    limit: int = RECENT_SAMPLES_LIMIT,
) -> pd.DataFrame:
    """Most recent samples of one design, newest first, with a status column.

    status is 'in_progress' before the design's target age, otherwise
    'ok' or 'fail'; strength_pct is rupture as a percentage of design.
    """
    subset = design_samples(samples, design)
    if subset.empty:
        return subset.assign(strength_pct=pd.Series(dtype=float), status=pd.Series(dtype=object))

    recent = subset.sort_values("test_date", ascending=False, kind="mergesort").head(limit)
    design_strength = recent["design_strength"].where(recent["design_strength"] > 0)
    return recent.assign(
        strength_pct=(recent["rupture_strength"] / design_strength * 100).fillna(0.0),
        status=_sample_status(recent, target_age(design)),
    )


def get_design_view(
    samples: pd.DataFrame,
    predicate: FilterPredicate,
    design: str | None = None,
) -> dict:
    """Design analysis page for a single design label.

    The design list comes from the unfiltered collection so the selector
    stays stable while other filters change. Defaults to the first design.
    """
    designs = get_filter_options(samples)["designs"]
    if design is None:
        design = designs[0] if designs else ""

    filtered = apply_filter(samples, predicate)
    return {
        "designs": designs,
        "design": design,
        "stats": design_target_stats(filtered, design),
        "evolution": design_evolution(filtered, design),
        "elements": element_distribution(design_samples(filtered, design)),
        "recent": recent_design_samples(filtered, design),
    }


def get_quality_view(samples: pd.DataFrame, predicate: FilterPredicate) -> dict:
    """Quality control page: control chart and non-conformity list.

    "limits" is None when fewer than two samples pass the filter.
    """
    filtered = apply_filter(samples, predicate)
    limits = control_limits(filtered)
    if limits is None:
        logger.info("Not enough samples (%d) for statistical control", len(filtered))
    return {
        "limits": limits,
        "chart": control_chart(filtered, limits),
        "non_conformities": non_conformities(filtered),
    }
