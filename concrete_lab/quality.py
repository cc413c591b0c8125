"""
Statistical quality control over rupture strength.

Control limits use the population standard deviation (divisor n) and a
band of CONTROL_SIGMA sigmas; the lower limit never drops below zero.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import CONTROL_SIGMA, MIN_SPC_SAMPLES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlLimits:
    mean: float
    std_dev: float
    upper: float
    lower: float
    count: int


def chronological(samples: pd.DataFrame) -> pd.DataFrame:
    """Samples ordered by test date; ties keep their input order."""
    return samples.sort_values("test_date", kind="mergesort")


def control_limits(samples: pd.DataFrame, sigma: float = CONTROL_SIGMA) -> ControlLimits | None:
    """Mean, population sigma and control limits of rupture strength.

    Returns None with fewer than MIN_SPC_SAMPLES samples; callers must
    treat that as "not enough data" rather than as zero limits.
    """
    if len(samples) < MIN_SPC_SAMPLES:
        logger.debug("Only %d samples, control limits unavailable", len(samples))
        return None

    values = chronological(samples)["rupture_strength"].to_numpy(dtype=float)
    mean = float(np.mean(values))
    std_dev = float(np.std(values, ddof=0))
    return ControlLimits(
        mean=mean,
        std_dev=std_dev,
        upper=mean + sigma * std_dev,
        lower=max(0.0, mean - sigma * std_dev),
        count=len(values),
    )


def control_chart(samples: pd.DataFrame, limits: ControlLimits | None = None) -> pd.DataFrame:
    """Control-chart series in test-date order.

    Returns
    -------
    DataFrame with columns:
        seq, id, test_date, guide_number, rupture_strength, design_strength,
        mean, upper, lower, out_of_control
    Empty when control limits are unavailable.
    """
    columns = [
        "seq", "id", "test_date", "guide_number", "rupture_strength",
        "design_strength", "mean", "upper", "lower", "out_of_control",
    ]
    if limits is None:
        limits = control_limits(samples)
    if limits is None:
        return pd.DataFrame(columns=columns)

    chart = chronological(samples).reset_index(drop=True)
    chart.insert(0, "seq", range(1, len(chart) + 1))
    chart["mean"] = limits.mean
    chart["upper"] = limits.upper
    chart["lower"] = limits.lower
    chart["out_of_control"] = (chart["rupture_strength"] > limits.upper) | (
        chart["rupture_strength"] < limits.lower
    )
    return chart[columns]


def non_conformities(samples: pd.DataFrame) -> pd.DataFrame:
    """Every sample below its design strength, mature or not.

    A sample exactly at design strength conforms. Results are in test-date
    order with an added deficit_pct = (design - rupture) / design * 100.
    """
    if samples.empty:
        return samples.assign(deficit_pct=pd.Series(dtype=float))

    failing = chronological(samples)
    failing = failing[failing["rupture_strength"] < failing["design_strength"]]
    deficit = (failing["design_strength"] - failing["rupture_strength"]) / failing["design_strength"]
    return failing.assign(deficit_pct=deficit * 100)
