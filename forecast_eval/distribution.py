"""
Distribution builders: fixed-width histograms, cumulative display domains
and MAPE error-threshold buckets.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .aggregate import UNKNOWN_LABEL, group_records, order_groups
from .model import FlatRecord


# Right-inclusive upper bounds of the MAPE error ranges (percent)
ERROR_CATEGORIES: Tuple[Tuple[str, float], ...] = (
    ("Very Accurate (< 1%)", 1.0),
    ("Good (1-5%)", 5.0),
    ("Acceptable (5-10%)", 10.0),
    ("Poor (10-20%)", 20.0),
    ("Very Poor (20-50%)", 50.0),
    ("Unreliable (50-100%)", 100.0),
    ("Extreme Error (> 100%)", math.inf),
)

TREND_DEFAULT_DOMAIN = (0, 100)
SAVINGS_DEFAULT_DOMAIN = (-15, 25)
TREND_BINS = 50
SAVINGS_BINS = 120


@dataclass
class HistogramBin:
    """One fixed-width bin of a continuous histogram."""
    midpoint: float
    count: int
    percentage: float

    def to_dict(self) -> dict:
        return {"value": self.midpoint, "count": self.count, "percentage": self.percentage}


def histogram(
    values: Sequence[float],
    lo: float,
    hi: float,
    num_bins: int,
) -> List[HistogramBin]:
    """
    Fixed-width histogram over [lo, hi].

    Values outside the domain are clamped to it. The bin index is clamped to
    the last bin so a value equal to ``hi`` is counted. A degenerate domain
    (hi <= lo) is widened to [lo, lo + 1].

    Returns:
        ``num_bins`` bins, or an empty list when there are no values
    """
    if num_bins <= 0:
        raise ValueError(f"num_bins must be positive, got {num_bins}")
    if len(values) == 0:
        return []
    if hi <= lo:
        hi = lo + 1

    width = (hi - lo) / num_bins
    clamped = np.clip(np.asarray(values, dtype=float), lo, hi)
    indices = np.floor((clamped - lo) / width).astype(int)
    indices = np.clip(indices, 0, num_bins - 1)
    counts = np.bincount(indices, minlength=num_bins)

    total = len(values)
    return [
        HistogramBin(
            midpoint=lo + i * width + width / 2,
            count=int(count),
            percentage=100.0 * int(count) / total,
        )
        for i, count in enumerate(counts)
    ]


def value_domain(values: Sequence[float], default: Tuple[float, float]) -> Tuple[int, int]:
    """``[floor(min), ceil(max)]`` of the values, or the default when empty."""
    if len(values) == 0:
        return (int(default[0]), int(default[1]))
    return (math.floor(min(values)), math.ceil(max(values)))


# --- Cumulative display domain ---

@dataclass
class CumulativeBin:
    """Unit-width bin with its share and the running share up to it."""
    value: int
    percentage: float = 0.0
    cumulative_percentage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "percentage": self.percentage,
            "cumulativePercentage": self.cumulative_percentage,
        }


@dataclass
class CumulativeDistribution:
    """Cumulative view of a histogram plus the trimmed display domain."""
    bins: List[CumulativeBin] = field(default_factory=list)
    display_bins: List[CumulativeBin] = field(default_factory=list)
    lower: float = 0
    upper: float = 0
    domain: Tuple[float, float] = (0, 0)

    def to_dict(self) -> dict:
        return {
            "bins": [b.to_dict() for b in self.display_bins],
            "lower": self.lower,
            "upper": self.upper,
            "domain": list(self.domain),
        }


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def cumulative_distribution(
    bins: Sequence[HistogramBin],
    default_domain: Tuple[float, float],
    step: int = 10,
    low_pct: float = 2.0,
    high_pct: float = 98.0,
) -> CumulativeDistribution:
    """
    Re-bin a histogram into unit-width bins and derive a display domain.

    The unit bins span the union of the histogram's midpoints and
    ``default_domain``. ``lower`` is the smallest value whose cumulative
    share reaches ``low_pct`` and ``upper`` the smallest reaching
    ``high_pct``. The display domain is the union of [lower, upper] and its
    mirror image around the midpoint of the unit-bin range. No values are
    discarded; ``display_bins`` keeps bins that are non-empty, on the tick
    ``step`` or at either bound.
    """
    midpoints = [b.midpoint for b in bins]
    lo = math.floor(min(midpoints + [default_domain[0]]))
    hi = math.ceil(max(midpoints + [default_domain[1]]))

    unit_bins = [CumulativeBin(value=lo + i) for i in range(hi - lo + 1)]
    for b in bins:
        idx = min(max(_round_half_up(b.midpoint) - lo, 0), len(unit_bins) - 1)
        unit_bins[idx].percentage += b.percentage

    running = 0.0
    for ub in unit_bins:
        running += ub.percentage
        ub.cumulative_percentage = round(running, 2)

    lower = next((ub.value for ub in unit_bins if ub.cumulative_percentage >= low_pct), lo)
    upper = next((ub.value for ub in unit_bins if ub.cumulative_percentage >= high_pct), hi)

    mirror_low = lo + hi - upper
    mirror_high = lo + hi - lower
    domain = (min(lower, mirror_low), max(upper, mirror_high))

    display = [
        ub for ub in unit_bins
        if ub.percentage > 0 or ub.value % step == 0 or ub.value in (lower, upper)
    ]
    return CumulativeDistribution(
        bins=unit_bins,
        display_bins=display,
        lower=lower,
        upper=upper,
        domain=domain,
    )


# --- Per-instance metric distributions ---

@dataclass
class MetricsDistribution:
    """Trend-accuracy and cost-savings distributions across instances."""
    trend: List[HistogramBin] = field(default_factory=list)
    savings: List[HistogramBin] = field(default_factory=list)
    trend_domain: Tuple[int, int] = TREND_DEFAULT_DOMAIN
    savings_domain: Tuple[int, int] = SAVINGS_DEFAULT_DOMAIN
    trend_cumulative: Optional[CumulativeDistribution] = None
    savings_cumulative: Optional[CumulativeDistribution] = None

    def to_dict(self) -> dict:
        return {
            "continuous": {
                "trend": [b.to_dict() for b in self.trend],
                "savings": [b.to_dict() for b in self.savings],
            },
            "minMaxValues": {
                "trendMin": self.trend_domain[0],
                "trendMax": self.trend_domain[1],
                "savingsMin": self.savings_domain[0],
                "savingsMax": self.savings_domain[1],
            },
            "cumulative": {
                "trend": self.trend_cumulative.to_dict() if self.trend_cumulative else None,
                "savings": self.savings_cumulative.to_dict() if self.savings_cumulative else None,
            },
        }


def first_record_per_instance(records: Sequence[FlatRecord]) -> List[FlatRecord]:
    """The first record seen for each instance id, in input order."""
    seen = set()
    unique = []
    for record in records:
        if record.instance_id in seen:
            continue
        seen.add(record.instance_id)
        unique.append(record)
    return unique


def metrics_distribution(
    records: Sequence[FlatRecord],
    trend_bins: int = TREND_BINS,
    savings_bins: int = SAVINGS_BINS,
    trend_default: Tuple[float, float] = TREND_DEFAULT_DOMAIN,
    savings_default: Tuple[float, float] = SAVINGS_DEFAULT_DOMAIN,
    trend_step: int = 10,
    savings_step: int = 5,
    low_pct: float = 2.0,
    high_pct: float = 98.0,
) -> MetricsDistribution:
    """
    Histograms of trend accuracy and cost savings, one value per instance.

    Each histogram's domain is the floored/ceiled data range, or the
    default domain when there is no data. The cumulative trend view is
    anchored to ``trend_default``; the savings view to the savings domain.
    """
    unique = first_record_per_instance(records)
    trend_values = [r.get("sgnif_trend_acc") for r in unique if r.get("sgnif_trend_acc") is not None]
    savings_values = [r.get("cost_savings") for r in unique if r.get("cost_savings") is not None]

    trend_domain = value_domain(trend_values, trend_default)
    savings_domain = value_domain(savings_values, savings_default)

    trend = histogram(trend_values, trend_domain[0], trend_domain[1], trend_bins)
    savings = histogram(savings_values, savings_domain[0], savings_domain[1], savings_bins)

    return MetricsDistribution(
        trend=trend,
        savings=savings,
        trend_domain=trend_domain,
        savings_domain=savings_domain,
        trend_cumulative=cumulative_distribution(trend, trend_default, trend_step, low_pct, high_pct),
        savings_cumulative=cumulative_distribution(savings, savings_domain, savings_step, low_pct, high_pct),
    )


# --- Error-threshold buckets ---

def classify_mape(mape: float) -> str:
    """Name of the error range containing ``mape`` (ranges are right-inclusive)."""
    for label, upper in ERROR_CATEGORIES:
        if mape <= upper:
            return label
    return ERROR_CATEGORIES[-1][0]


@dataclass
class ErrorBucketRow:
    """Share of a group's records in each MAPE error range."""
    key: Optional[str]
    count: int
    percentages: Dict[str, float] = field(default_factory=dict)

    def to_dict(self, key_name: str = "key") -> dict:
        d = {key_name: UNKNOWN_LABEL if self.key is None else self.key, "count": self.count}
        d.update(self.percentages)
        return d


def error_buckets(records: Sequence[FlatRecord], key: str = "size") -> List[ErrorBucketRow]:
    """
    Percentage of each group's records per MAPE error range.

    Args:
        records: Filtered records
        key: "size" (ordered by size rank) or "av_zone" (alphabetical)

    Every row's percentages sum to 100.
    """
    if key not in ("size", "av_zone"):
        raise ValueError(f"Error buckets group by 'size' or 'av_zone', got {key!r}")

    groups = group_records(records, key)
    rows = []
    for value in order_groups(key, list(groups)):
        group = groups[value]
        counts = {label: 0 for label, _ in ERROR_CATEGORIES}
        for record in group:
            counts[classify_mape(record.mape)] += 1
        total = len(group)
        rows.append(ErrorBucketRow(
            key=value,
            count=total,
            percentages={label: 100.0 * n / total for label, n in counts.items()},
        ))
    return rows
