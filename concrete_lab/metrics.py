"""
Compliance metrics: pure functions with no side effects.

Provides target-age resolution, maturity split, compliance and
over-strength rates, monthly and per-age evolution, and client / design
aggregation. Every function accepts an empty frame and returns zeros or an
empty frame rather than raising.
"""

import logging
import re

import pandas as pd

from .config import (
    CLIENT_REVIEW_THRESHOLD,
    COMPLIANCE_AMBER,
    COMPLIANCE_GREEN,
    DEFAULT_LOCALE,
    DEFAULT_TARGET_AGE,
    MONTH_ABBREVIATIONS,
    TOP_N,
)
from .models import design_labels

logger = logging.getLogger(__name__)

_TARGET_AGE = re.compile(r"(\d+)\s*[dD]")


def target_age(design_type: str) -> int:
    """Curing age in days a design is rated for.

    "280-Y13 7D" -> 7. Designs without a "<n>D" token, and empty designs,
    default to 28 days.
    """
    if not design_type:
        return DEFAULT_TARGET_AGE
    match = _TARGET_AGE.search(design_type)
    return int(match.group(1)) if match else DEFAULT_TARGET_AGE


def maturity_mask(samples: pd.DataFrame) -> pd.Series:
    """True where the sample was broken at or after its design's target age."""
    if samples.empty:
        return pd.Series(dtype=bool, index=samples.index)
    return samples["test_age"] >= samples["design_type"].map(target_age)


def split_by_maturity(samples: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Return (mature, in_progress) samples."""
    mask = maturity_mask(samples)
    return samples[mask], samples[~mask]


def compliance_mask(samples: pd.DataFrame) -> pd.Series:
    return samples["rupture_strength"] >= samples["design_strength"]


def compliance_rate(samples: pd.DataFrame) -> float:
    """Percentage of mature samples reaching their design strength.

    Immature samples are ignored. Returns 0.0 when no sample is mature.
    """
    mature, _ = split_by_maturity(samples)
    if mature.empty:
        return 0.0
    return float(compliance_mask(mature).sum()) / len(mature) * 100


def over_strength_margin(samples: pd.DataFrame) -> float:
    """Mean relative excess of rupture over design strength, in percent.

    Only mature samples with a non-zero design strength take part.
    """
    mature, _ = split_by_maturity(samples)
    rated = mature[mature["design_strength"] > 0]
    if rated.empty:
        return 0.0
    excess = (rated["rupture_strength"] - rated["design_strength"]) / rated["design_strength"]
    return float(excess.mean()) * 100


def classify_compliance(
    rate: float,
    green: float = COMPLIANCE_GREEN,
    amber: float = COMPLIANCE_AMBER,
) -> str:
    """Return 'green', 'amber', or 'red' RAG classification.

    Logic
    -----
    green  if rate >= green
    amber  if rate >= amber
    red    otherwise
    """
    if pd.isna(rate):
        return "grey"
    if rate >= green:
        return "green"
    if rate >= amber:
        return "amber"
    return "red"


def get_executive_summary(samples: pd.DataFrame) -> dict:
    """Return a dict suitable for top-level dashboard cards.

    Returns
    -------
    {
        "total": 412,
        "mature": 300,
        "in_progress": 112,
        "compliance_pct": 96.3,
        "over_strength_pct": 12.4,
        "avg_strength": 298.1,
        "rag": "green",
    }
    """
    total = len(samples)
    mature, in_progress = split_by_maturity(samples)
    compliance = compliance_rate(samples)
    return {
        "total": total,
        "mature": len(mature),
        "in_progress": len(in_progress),
        "compliance_pct": compliance,
        "over_strength_pct": over_strength_margin(samples),
        "avg_strength": float(samples["rupture_strength"].mean()) if total else 0.0,
        "rag": classify_compliance(compliance) if len(mature) else "grey",
    }


def monthly_evolution(samples: pd.DataFrame, locale: str = DEFAULT_LOCALE) -> pd.DataFrame:
    """Mean design vs. mean rupture strength per calendar month of test date.

    Returns
    -------
    DataFrame sorted chronologically with columns:
        year, month, label, design_mean, rupture_mean, count
    """
    columns = ["year", "month", "label", "design_mean", "rupture_mean", "count"]
    if samples.empty:
        return pd.DataFrame(columns=columns)

    df = samples.assign(
        year=samples["test_date"].dt.year,
        month=samples["test_date"].dt.month,
    )
    result = (
        df.groupby(["year", "month"], sort=False)
        .agg(
            first_date=("test_date", "min"),
            design_mean=("design_strength", "mean"),
            rupture_mean=("rupture_strength", "mean"),
            count=("id", "size"),
        )
        .reset_index()
        .sort_values("first_date", kind="mergesort")
        .reset_index(drop=True)
    )

    names = MONTH_ABBREVIATIONS.get(locale, MONTH_ABBREVIATIONS["es"])
    result["label"] = [
        f"{names[m - 1]} {y % 100:02d}" for y, m in zip(result["year"], result["month"])
    ]
    return result[columns]


def design_samples(samples: pd.DataFrame, design: str) -> pd.DataFrame:
    """Samples whose design label equals `design`."""
    if samples.empty:
        return samples
    return samples[design_labels(samples) == design]


def design_evolution(samples: pd.DataFrame, design: str) -> pd.DataFrame:
    """Strength gain curve for one design: mean rupture per exact test age.

    Returns
    -------
    DataFrame sorted by age with columns:
        test_age, label, rupture_mean, count, is_target
    """
    columns = ["test_age", "label", "rupture_mean", "count", "is_target"]
    subset = design_samples(samples, design)
    if subset.empty:
        return pd.DataFrame(columns=columns)

    goal = target_age(design)
    result = (
        subset.groupby("test_age")
        .agg(rupture_mean=("rupture_strength", "mean"), count=("id", "size"))
        .reset_index()
        .sort_values("test_age")
        .reset_index(drop=True)
    )
    result["label"] = result["test_age"].map(lambda age: f"{age} días")
    result["is_target"] = result["test_age"] == goal
    return result[columns]


def design_target_stats(samples: pd.DataFrame, design: str) -> dict:
    """Headline numbers for one design, judged at its exact target age.

    The design strength of the first sample is taken as the target
    strength for the whole design.

    Returns
    -------
    Dict with keys: design, target_age, target_strength, count,
    avg_strength, compliance_pct
    """
    subset = design_samples(samples, design)
    goal = target_age(design)
    target_strength = float(subset["design_strength"].iloc[0]) if not subset.empty else 0.0

    at_target = subset[subset["test_age"] == goal] if not subset.empty else subset
    count = len(at_target)
    if count == 0:
        avg, compliance = 0.0, 0.0
    else:
        avg = float(at_target["rupture_strength"].mean())
        compliance = float((at_target["rupture_strength"] >= target_strength).sum()) / count * 100

    return {
        "design": design,
        "target_age": goal,
        "target_strength": target_strength,
        "count": count,
        "avg_strength": avg,
        "compliance_pct": compliance,
    }


def element_distribution(samples: pd.DataFrame) -> pd.DataFrame:
    """Sample count per structural element, largest first."""
    if samples.empty:
        return pd.DataFrame(columns=["element", "count"])
    counts = samples["element"].value_counts(sort=False)
    result = counts.rename_axis("element").reset_index(name="count")
    return result.sort_values("count", ascending=False, kind="mergesort").reset_index(drop=True)


def _group_compliance(mature: pd.DataFrame, keys: pd.Series) -> pd.DataFrame:
    grouped = mature.assign(
        name=keys,
        compliant=compliance_mask(mature),
    ).groupby("name", sort=False)
    result = grouped.agg(
        count=("id", "size"),
        compliant=("compliant", "sum"),
        avg_strength=("rupture_strength", "mean"),
    ).reset_index()
    result["compliance_pct"] = result["compliant"] / result["count"] * 100
    return result


def client_performance(samples: pd.DataFrame, top_n: int | None = TOP_N) -> pd.DataFrame:
    """Client league table over mature samples, busiest clients first.

    Returns
    -------
    DataFrame with columns:
        client, count, compliance_pct, avg_strength, status
    where status is 'ok' at or above CLIENT_REVIEW_THRESHOLD, else 'review'.
    """
    columns = ["client", "count", "compliance_pct", "avg_strength", "status"]
    mature, _ = split_by_maturity(samples)
    if mature.empty:
        return pd.DataFrame(columns=columns)

    result = _group_compliance(mature, mature["client"]).rename(columns={"name": "client"})
    result["status"] = [
        "ok" if rate >= CLIENT_REVIEW_THRESHOLD else "review" for rate in result["compliance_pct"]
    ]
    result = result.sort_values("count", ascending=False, kind="mergesort")
    if top_n is not None:
        result = result.head(top_n)
    return result[columns].reset_index(drop=True)


def design_compliance(samples: pd.DataFrame, top_n: int | None = TOP_N) -> pd.DataFrame:
    """Compliance per design label over mature samples, best first.

    Compliance is rounded to one decimal before ranking.

    Returns
    -------
    DataFrame with columns: design, count, compliance_pct, rag
    """
    columns = ["design", "count", "compliance_pct", "rag"]
    mature, _ = split_by_maturity(samples)
    if mature.empty:
        return pd.DataFrame(columns=columns)

    result = _group_compliance(mature, design_labels(mature)).rename(columns={"name": "design"})
    result["compliance_pct"] = result["compliance_pct"].round(1)
    result["rag"] = result["compliance_pct"].map(classify_compliance)
    result = result.sort_values("compliance_pct", ascending=False, kind="mergesort")
    if top_n is not None:
        result = result.head(top_n)

    logger.debug("Ranked %d designs by compliance", len(result))
    return result[columns].reset_index(drop=True)
