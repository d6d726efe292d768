"""
Global summary statistics over a filtered record set.

Two conventions for "the" mean of a metric coexist and both are kept:

- per-instance: each instance contributes its earliest-horizon sample once,
  giving steady-state model quality independent of horizon degradation.
- timestep-weighted: metric means per horizon, averaged with each horizon's
  record count as weight, matching the time-horizon chart.

Example:
    from forecast_eval.overall import compute_overall_metrics

    overall = compute_overall_metrics(filtered)
    print(overall.to_dict()["avg_mape"])
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from .aggregate import group_records, mean_of
from .model import FlatRecord, METRIC_FIELDS


# Metrics whose headline average uses the per-instance convention
PER_INSTANCE_HEADLINE = ("mape", "mse")
# Metrics whose headline average uses the timestep-weighted convention
WEIGHTED_HEADLINE = ("sgnif_trend_acc", "cost_savings", "perfect_savings", "savings_efficiency")


def sample_std(values: Sequence[float]) -> float:
    """Sample standard deviation (n-1 denominator); 0 for n <= 1."""
    if len(values) <= 1:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


@dataclass
class MetricStats:
    """Mean, sample std-dev, min and max of one metric."""
    avg: float
    std: float
    min: float
    max: float
    count: int

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "MetricStats":
        arr = np.asarray(values, dtype=float)
        return cls(
            avg=float(arr.mean()),
            std=sample_std(values),
            min=float(arr.min()),
            max=float(arr.max()),
            count=len(values),
        )

    def to_dict(self) -> dict:
        return {"avg": self.avg, "std": self.std, "min": self.min,
                "max": self.max, "count": self.count}


@dataclass
class OverallMetrics:
    """Summary of a record set under both averaging conventions."""
    per_instance: Dict[str, MetricStats] = field(default_factory=dict)
    timestep_weighted: Dict[str, float] = field(default_factory=dict)
    total_instances: int = 0
    total_data_points: int = 0

    def to_dict(self) -> dict:
        """
        Flat summary with headline keys plus both full variants.

        Headline ``avg/std/min/max_mape`` and ``_mse`` are per-instance;
        ``avg_sgnif_trend_acc``, ``avg_cost_savings``, ``avg_perfect_savings``
        and ``avg_savings_efficiency`` are timestep-weighted. Metrics with no
        data are left out.
        """
        d: Dict[str, object] = {}
        for name in PER_INSTANCE_HEADLINE:
            stats = self.per_instance.get(name)
            if stats is None:
                continue
            d[f"avg_{name}"] = stats.avg
            d[f"std_{name}"] = stats.std
            d[f"min_{name}"] = stats.min
            d[f"max_{name}"] = stats.max
        for name in WEIGHTED_HEADLINE:
            if name in self.timestep_weighted:
                d[f"avg_{name}"] = self.timestep_weighted[name]
        d["total_instances"] = self.total_instances
        d["total_data_points"] = self.total_data_points
        d["per_instance"] = {k: v.to_dict() for k, v in self.per_instance.items()}
        d["timestep_weighted"] = dict(self.timestep_weighted)
        return d


def earliest_sample_per_instance(records: Sequence[FlatRecord]) -> List[FlatRecord]:
    """For each instance, its record with the smallest n_timestep (first wins ties)."""
    earliest = []
    for group in group_records(records, "instance_id").values():
        earliest.append(min(group, key=lambda r: r.n_timestep))
    return earliest


def per_instance_stats(records: Sequence[FlatRecord]) -> Dict[str, MetricStats]:
    """Stats over one earliest-horizon sample per instance."""
    earliest = earliest_sample_per_instance(records)
    stats = {}
    for name in METRIC_FIELDS:
        values = [r.get(name) for r in earliest if r.get(name) is not None]
        if values:
            stats[name] = MetricStats.from_values(values)
    return stats


def timestep_weighted_means(records: Sequence[FlatRecord]) -> Dict[str, float]:
    """
    Count-weighted average of per-timestep means.

    A metric no record defines is omitted.
    """
    groups = group_records(records, "n_timestep")
    means: Dict[str, float] = {}
    for name in METRIC_FIELDS:
        if not any(r.get(name) is not None for r in records):
            continue
        weighted = 0.0
        weight = 0
        for group in groups.values():
            weighted += mean_of(group, name) * len(group)
            weight += len(group)
        means[name] = weighted / weight if weight else 0.0
    return means


def compute_overall_metrics(records: Sequence[FlatRecord]) -> OverallMetrics:
    """Compute both summary conventions; an empty input gives zero counts."""
    if not records:
        return OverallMetrics()
    return OverallMetrics(
        per_instance=per_instance_stats(records),
        timestep_weighted=timestep_weighted_means(records),
        total_instances=len({r.instance_id for r in records}),
        total_data_points=len(records),
    )
