"""Distribution statistics over simulated paths.

All functions are order-independent: shuffling the paths does not change
any percentile, mean or tail measure.
"""

import math
from typing import Sequence, Tuple

import numpy as np

from src.core.constants import CONFIDENCE_LEVELS, TAIL_CONFIDENCE
from src.simulation.models import Band, ConfidenceIntervals, FanChartPoint, HistogramBin


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def percentile(values: Sequence[float], p: float) -> float:
    """
    Percentile with linear interpolation between the two closest ranks.

    index = p/100 * (n - 1) on the sorted sample. Empty input returns 0.
    """
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(np.percentile(arr, p))


def mean(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation; fewer than two values gives 0."""
    arr = _as_array(values)
    if arr.size < 2:
        return 0.0
    return float(arr.std())


def value_at_risk(values: Sequence[float], confidence: float = TAIL_CONFIDENCE) -> float:
    """Boundary of the worst (100 - confidence)% of outcomes."""
    return percentile(values, 100 - confidence)


def conditional_var(values: Sequence[float], confidence: float = TAIL_CONFIDENCE) -> float:
    """Expected shortfall: mean of outcomes at or beyond the VaR boundary."""
    arr = _as_array(values)
    var = value_at_risk(arr, confidence)
    tail = arr[arr <= var]
    if tail.size == 0:
        return var
    return float(tail.mean())


def exhaustion_probability(runway_days: Sequence[float], reference_days: int) -> float:
    """Percentage of paths whose runway falls short of `reference_days`, 2 dp."""
    arr = _as_array(runway_days)
    if arr.size == 0:
        return 0.0
    exhausted = int(np.count_nonzero(arr < reference_days))
    return round(exhausted / arr.size * 100, 2)


def histogram(values: Sequence[float], bins: int = 30) -> Tuple[HistogramBin, ...]:
    """
    Equal-width histogram between the sample min and max.

    The last bin is closed on the right. A constant sample puts every value
    in the first bin and leaves the remaining (zero-width) bins empty.
    """
    arr = _as_array(values)
    if arr.size == 0:
        return ()

    lo, hi = float(arr.min()), float(arr.max())
    if hi == lo:
        counts = np.zeros(bins, dtype=int)
        counts[0] = arr.size
        edges = np.full(bins + 1, lo)
    else:
        counts, edges = np.histogram(arr, bins=bins, range=(lo, hi))

    return tuple(
        HistogramBin(
            min=float(edges[i]),
            max=float(edges[i + 1]),
            count=int(counts[i]),
            frequency=float(counts[i]) / arr.size,
        )
        for i in range(bins)
    )


def _money(value: float) -> float:
    return round(float(value), 2)


def _days(value: float) -> float:
    return float(math.floor(float(value) + 0.5))


def confidence_intervals(
    runway_days: Sequence[float],
    final_balances: Sequence[float],
    reference_days: int,
) -> ConfidenceIntervals:
    """
    Build percentile bands and tail-risk measures.

    Runway values are rounded to whole days (std dev to 0.1 day), balances
    to cents.
    """
    runways = _as_array(runway_days)
    finals = _as_array(final_balances)

    bands = {
        f"p{level}": Band(
            runway=_days(percentile(runways, level)),
            final_balance=_money(percentile(finals, level)),
        )
        for level in CONFIDENCE_LEVELS
    }

    return ConfidenceIntervals(
        **bands,
        mean=Band(runway=_days(mean(runways)), final_balance=_money(mean(finals))),
        std_dev=Band(runway=round(std_dev(runways), 1), final_balance=_money(std_dev(finals))),
        exhaustion_probability=exhaustion_probability(runways, reference_days),
        var95=Band(
            runway=_days(value_at_risk(runways)),
            final_balance=_money(value_at_risk(finals)),
        ),
        cvar95=Band(
            runway=_days(conditional_var(runways)),
            final_balance=_money(conditional_var(finals)),
        ),
    )


def fan_chart(balance_matrix: np.ndarray) -> Tuple[FanChartPoint, ...]:
    """
    Per-day percentile bands across paths.

    Args:
        balance_matrix: shape (n_paths, horizon_days + 1), row = one path

    Returns:
        One FanChartPoint per day, day 0 first
    """
    matrix = np.asarray(balance_matrix, dtype=float)
    if matrix.size == 0:
        return ()

    bands = np.percentile(matrix, CONFIDENCE_LEVELS, axis=0)
    means = matrix.mean(axis=0)

    return tuple(
        FanChartPoint(
            day=day,
            p10=_money(bands[0, day]),
            p25=_money(bands[1, day]),
            p50=_money(bands[2, day]),
            p75=_money(bands[3, day]),
            p90=_money(bands[4, day]),
            mean=_money(means[day]),
        )
        for day in range(matrix.shape[1])
    )
