"""
Cost-efficiency per instance size: how much of the theoretically perfect
savings the forecast-driven policy actually captured.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

from .aggregate import UNKNOWN_LABEL, group_records, mean_of, order_groups
from .model import FlatRecord


def savings_efficiency(actual: float, perfect: float) -> float:
    """
    Efficiency score in [0, 100] from actual and perfect savings.

    ``actual / perfect`` clamped to [0, 1] and scaled to percent. When the
    perfect savings are exactly 0 any positive actual saving scores 100.
    """
    if perfect != 0:
        return min(1.0, max(0.0, actual / perfect)) * 100.0
    if actual > 0:
        return 100.0
    return 0.0


@dataclass
class CostEfficiencyRow:
    size: str
    count: int
    cost_savings: float
    perfect_savings: float
    savings_efficiency: float

    def is_finite(self) -> bool:
        return not any(
            math.isnan(v) for v in (self.cost_savings, self.perfect_savings, self.savings_efficiency)
        )

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "count": self.count,
            "cost_savings": self.cost_savings,
            "perfect_savings": self.perfect_savings,
            "savings_efficiency": self.savings_efficiency,
        }


def cost_efficiency(
    records: Sequence[FlatRecord],
    use_recorded: bool = True,
) -> List[CostEfficiencyRow]:
    """
    Mean savings and efficiency per size, ordered by size rank.

    Args:
        records: Filtered records
        use_recorded: Average each record's own ``savings_efficiency`` when
            the group carries it; otherwise derive it from the mean savings

    Rows with a NaN component are dropped.
    """
    if not records:
        return []

    groups = group_records(records, "size")
    rows = []
    for size in order_groups("size", list(groups)):
        group = groups[size]
        actual = mean_of(group, "cost_savings")
        perfect = mean_of(group, "perfect_savings")
        recorded = [r.get("savings_efficiency") for r in group if r.get("savings_efficiency") is not None]
        if use_recorded and recorded:
            efficiency = sum(recorded) / len(recorded)
        else:
            efficiency = savings_efficiency(actual, perfect)
        row = CostEfficiencyRow(
            size=UNKNOWN_LABEL if size is None else size,
            count=len(group),
            cost_savings=actual,
            perfect_savings=perfect,
            savings_efficiency=efficiency,
        )
        if row.is_finite():
            rows.append(row)
    return rows
