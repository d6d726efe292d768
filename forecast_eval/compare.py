"""
Model comparison utilities.

Pairs the overall summaries of two (or more) loaded documents and reports
which model is ahead on each headline metric, and diffs their opaque model
configs.

Example:
    from forecast_eval.compare import compare_models, diff_configs

    rows = compare_models(primary_summary, secondary_summary)
    for diff in diff_configs(primary_doc.config, secondary_doc.config):
        print(readable_label(diff.path), diff.primary, diff.secondary)
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class MetricSpec:
    """A headline metric: summary key, display label, direction."""
    key: str
    label: str
    lower_is_better: bool


METRICS: Tuple[MetricSpec, ...] = (
    MetricSpec("avg_mape", "Average MAPE (%)", True),
    MetricSpec("avg_mse", "Average MSE", True),
    MetricSpec("std_mape", "MAPE Std Dev", True),
    MetricSpec("min_mape", "Min MAPE (%)", True),
    MetricSpec("max_mape", "Max MAPE (%)", True),
    MetricSpec("avg_sgnif_trend_acc", "Trend Accuracy (%)", False),
    MetricSpec("avg_cost_savings", "Cost Savings (%)", False),
    MetricSpec("avg_perfect_savings", "Perfect Savings (%)", False),
    MetricSpec("avg_savings_efficiency", "Savings Efficiency (%)", False),
)


@dataclass
class MetricComparison:
    """One metric of two models side by side."""
    key: str
    label: str
    primary: Optional[float]
    secondary: Optional[float]
    better: Optional[str]  # "primary", "secondary" or None if either is missing

    @property
    def difference(self) -> Optional[float]:
        """secondary - primary, None if either value is missing."""
        if self.primary is None or self.secondary is None:
            return None
        return self.secondary - self.primary

    @property
    def pct_difference(self) -> Optional[float]:
        """Difference relative to the primary value, in percent."""
        diff = self.difference
        if diff is None:
            return None
        return _pct_diff(self.secondary, self.primary)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "primary": self.primary,
            "secondary": self.secondary,
            "difference": self.difference,
            "pct_difference": self.pct_difference,
            "better": self.better,
        }


def _pct_diff(value: float, baseline: float) -> float:
    """Calculate percentage difference from baseline."""
    if baseline == 0:
        return 0.0
    return ((value - baseline) / baseline) * 100


def better_of(primary: Optional[float], secondary: Optional[float], lower_is_better: bool) -> Optional[str]:
    """
    Which side wins a metric.

    Only a strict improvement counts for the primary model; a tie goes to
    the secondary model. None when either value is missing.
    """
    if primary is None or secondary is None:
        return None
    if lower_is_better:
        return "primary" if primary < secondary else "secondary"
    return "primary" if primary > secondary else "secondary"


def compare_models(
    primary: Dict[str, Any],
    secondary: Optional[Dict[str, Any]],
    metrics: Sequence[MetricSpec] = METRICS,
) -> List[MetricComparison]:
    """
    Pair two overall-metric summaries metric by metric.

    Args:
        primary: Summary dict of the primary model (OverallMetrics.to_dict()
            or a document's precomputed overall_metrics)
        secondary: Summary dict of the secondary model, or None
        metrics: Metrics to compare

    Returns:
        One MetricComparison per metric
    """
    secondary = secondary or {}
    rows = []
    for spec in metrics:
        p = primary.get(spec.key)
        s = secondary.get(spec.key)
        rows.append(MetricComparison(
            key=spec.key,
            label=spec.label,
            primary=p,
            secondary=s,
            better=better_of(p, s, spec.lower_is_better),
        ))
    return rows


def rank_models(
    models: Dict[str, Dict[str, Any]],
    metrics: Sequence[MetricSpec] = METRICS,
) -> Dict[str, Dict[str, Any]]:
    """
    Best value of each metric across any number of models.

    Args:
        models: Model name -> summary dict

    Returns:
        Metric key -> {"best": value, "models": [names holding it],
        "values": {name: value}}. Metrics no model reports are omitted.
    """
    ranking = {}
    for spec in metrics:
        values = {name: summary.get(spec.key) for name, summary in models.items()}
        present = {name: v for name, v in values.items() if v is not None}
        if not present:
            continue
        best = min(present.values()) if spec.lower_is_better else max(present.values())
        ranking[spec.key] = {
            "label": spec.label,
            "best": best,
            "models": [name for name, v in present.items() if v == best],
            "values": values,
        }
    return ranking


# --- Config diff ---

@dataclass
class ConfigDifference:
    """A leaf path whose value differs between two configs."""
    path: str
    primary: Any
    secondary: Any

    def to_dict(self) -> dict:
        return {"path": self.path, "primary": self.primary, "secondary": self.secondary}


def _same(a: Any, b: Any) -> bool:
    return json.dumps(a, sort_keys=True, default=str) == json.dumps(b, sort_keys=True, default=str)


def diff_configs(
    primary: Optional[Dict[str, Any]],
    secondary: Optional[Dict[str, Any]],
    prefix: str = "",
) -> List[ConfigDifference]:
    """
    Recursive diff of two untyped JSON configs.

    Keys from both sides are visited (primary's order first). Nested objects
    are descended into; any other pair of values, lists included, is
    compared structurally and reported whole when it differs. A key missing
    on one side reports None for that side.
    """
    primary = primary or {}
    secondary = secondary or {}
    differences: List[ConfigDifference] = []

    keys = list(dict.fromkeys(list(primary) + list(secondary)))
    for key in keys:
        path = f"{prefix}.{key}" if prefix else str(key)
        a = primary.get(key)
        b = secondary.get(key)
        if _same(a, b):
            continue
        if isinstance(a, dict) and isinstance(b, dict):
            differences.extend(diff_configs(a, b, path))
        else:
            differences.append(ConfigDifference(path=path, primary=a, secondary=b))
    return differences


def readable_label(path: str) -> str:
    """``model_config.hidden_size`` -> ``Model_config > Hidden_size``."""
    return " > ".join(part[:1].upper() + part[1:] for part in path.split("."))


def format_config_value(value: Any, max_items: int = 3) -> str:
    """Short display form of a config value."""
    if value is None:
        return "-"
    if isinstance(value, list):
        if len(value) > max_items:
            head = ", ".join(str(v) for v in value[:2])
            return f"[{head}, ... ({len(value)} items)]"
        return "[" + ", ".join(str(v) for v in value) + "]"
    if isinstance(value, dict):
        return "{...}"
    return str(value)
