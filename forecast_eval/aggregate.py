"""
Grouped mean aggregation over filtered records.

Every chart that plots a metric against a categorical axis (time horizon,
size, region, generation, instance family) is fed by an AggregateRow per
group. Groups are ordered per dimension: size by SIZE_ORDER rank,
generation and timestep numerically, everything else alphabetically.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from .model import FlatRecord, parse_instance_type, size_rank


UNKNOWN_LABEL = "Unknown"

# Metrics averaged for each chart
TIME_HORIZON_FIELDS = ("mse", "mape", "sgnif_trend_acc", "cost_savings")
GROUP_FIELDS = ("mape", "sgnif_trend_acc", "cost_savings")

GROUP_KEYS = ("size", "region", "generation", "instance_family", "av_zone", "n_timestep")

INSTANCE_SORT_CRITERIA = ("family", "generation", "modifier", "size")


def mean_of(records: Sequence[FlatRecord], name: str) -> float:
    """
    Mean of a field over the records that define it.

    Records without a value are left out of the mean; when none define it
    the result is 0 so charts never receive NaN.
    """
    total = 0.0
    n = 0
    for record in records:
        value = record.get(name)
        if value is None:
            continue
        total += value
        n += 1
    return total / n if n else 0.0


def group_records(
    records: Sequence[FlatRecord],
    key: str,
) -> Dict[Any, List[FlatRecord]]:
    """Group records by a field value, preserving first-seen group order."""
    groups: Dict[Any, List[FlatRecord]] = {}
    for record in records:
        groups.setdefault(record.get(key), []).append(record)
    return groups


def _sort_key(key: str) -> Callable[[Any], Tuple]:
    """Ordering for group values of a dimension, missing values last."""
    if key == "size":
        return lambda v: (v is None, size_rank(v), v or "")
    if key in ("generation", "n_timestep"):
        return lambda v: (v is None, v if v is not None else 0)
    return lambda v: (v is None, str(v) if v is not None else "")


def order_groups(key: str, values: Sequence[Any]) -> List[Any]:
    """Sort group values the way the chart for ``key`` expects them."""
    return sorted(values, key=_sort_key(key))


@dataclass
class AggregateRow:
    """Summary of one group: key, record count and metric means."""
    key: Any
    count: int
    metrics: Dict[str, float] = field(default_factory=dict)

    def __getitem__(self, name: str) -> float:
        return self.metrics[name]

    def to_dict(self, key_name: str = "key") -> dict:
        d = {key_name: UNKNOWN_LABEL if self.key is None else self.key, "count": self.count}
        d.update(self.metrics)
        return d


def aggregate(
    records: Sequence[FlatRecord],
    key: str,
    fields: Sequence[str] = GROUP_FIELDS,
) -> List[AggregateRow]:
    """
    Group records by ``key`` and average each of ``fields`` per group.

    Args:
        records: Filtered records
        key: One of GROUP_KEYS
        fields: Metric names to average

    Returns:
        One AggregateRow per distinct key value, in the dimension's order
    """
    if key not in GROUP_KEYS:
        raise ValueError(f"Unknown group key: {key}. Valid: {list(GROUP_KEYS)}")

    groups = group_records(records, key)
    rows = []
    for value in order_groups(key, list(groups)):
        group = groups[value]
        rows.append(AggregateRow(
            key=value,
            count=len(group),
            metrics={name: mean_of(group, name) for name in fields},
        ))
    return rows


# --- Named collections consumed by the charts ---

def time_horizon_series(records: Sequence[FlatRecord]) -> List[AggregateRow]:
    """Mean error and savings per forecast horizon."""
    return aggregate(records, "n_timestep", TIME_HORIZON_FIELDS)


def size_rows(records: Sequence[FlatRecord]) -> List[AggregateRow]:
    return aggregate(records, "size")


def region_rows(records: Sequence[FlatRecord]) -> List[AggregateRow]:
    return aggregate(records, "region")


def family_rows(records: Sequence[FlatRecord]) -> List[AggregateRow]:
    return aggregate(records, "instance_family")


def generation_rows(records: Sequence[FlatRecord]) -> List[AggregateRow]:
    return aggregate(records, "generation")


def trend_accuracy_rows(records: Sequence[FlatRecord]) -> List[dict]:
    """Average trend accuracy and cost savings per instance family."""
    rows = []
    for row in aggregate(records, "instance_family", ("sgnif_trend_acc", "cost_savings")):
        rows.append({
            "instance_family": UNKNOWN_LABEL if row.key is None else row.key,
            "count": row.count,
            "avg_trend_accuracy": row["sgnif_trend_acc"],
            "avg_cost_savings": row["cost_savings"],
        })
    return rows


# --- Instance type x timestep heatmap ---

@dataclass
class HeatmapCell:
    """Mean MAPE of one instance type at one forecast horizon."""
    instance_type: str
    time_step: int
    mape: float
    count: int

    def to_dict(self) -> dict:
        return {
            "instance_type": self.instance_type,
            "time_step": self.time_step,
            "mape": self.mape,
            "count": self.count,
        }


def instance_time_series(records: Sequence[FlatRecord]) -> List[HeatmapCell]:
    """
    One cell per (instance type, timestep) pair holding mean MAPE.

    Types and timesteps appear in first-seen order; ordering of the axes is
    left to sort_instance_types. Records without an instance type are
    skipped.
    """
    by_type: Dict[str, Dict[int, List[float]]] = {}
    for record in records:
        instance_type = record.instance_type
        if not instance_type:
            continue
        steps = by_type.setdefault(instance_type, {})
        steps.setdefault(record.n_timestep, []).append(record.mape)

    cells = []
    for instance_type, steps in by_type.items():
        for step, values in steps.items():
            cells.append(HeatmapCell(
                instance_type=instance_type,
                time_step=step,
                mape=sum(values) / len(values),
                count=len(values),
            ))
    return cells


def _instance_sort_key(by: str) -> Callable[[str], Tuple]:
    def key(instance_type: str) -> Tuple:
        parts = parse_instance_type(instance_type)
        if by == "family":
            primary: Hashable = parts.family
        elif by == "generation":
            primary = parts.generation
        elif by == "modifier":
            primary = parts.modifier
        else:
            primary = size_rank(parts.size)
        return (primary, instance_type)
    return key


def sort_instance_types(
    instance_types: Sequence[str],
    by: str = "family",
    descending: bool = False,
) -> List[str]:
    """
    Order heatmap rows by a component of the instance type name.

    Args:
        instance_types: Instance type names, e.g. ``["m5.large", "c6g.xlarge"]``
        by: "family" (prefix letters), "generation" (digits), "modifier"
            (letters after the digits) or "size" (size rank)
        descending: Reverse the order

    Names that don't parse sort as generation 0 with empty family and
    modifier; ties fall back to the full name.
    """
    if by not in INSTANCE_SORT_CRITERIA:
        raise ValueError(f"Unknown sort criterion: {by}. Valid: {list(INSTANCE_SORT_CRITERIA)}")
    return sorted(dict.fromkeys(instance_types), key=_instance_sort_key(by), reverse=descending)


def heatmap_matrix(
    cells: Sequence[HeatmapCell],
    by: str = "family",
    descending: bool = False,
) -> Tuple[List[str], List[int], List[List[Optional[float]]]]:
    """
    Arrange heatmap cells as a dense matrix.

    Returns:
        (row instance types, column timesteps, values) with None where an
        instance type has no sample at a timestep
    """
    types = sort_instance_types([c.instance_type for c in cells], by=by, descending=descending)
    steps = sorted({c.time_step for c in cells})
    lookup = {(c.instance_type, c.time_step): c.mape for c in cells}
    values = [[lookup.get((t, s)) for s in steps] for t in types]
    return types, steps, values
