"""
Dashboard pipeline: filtered records -> bundle of aggregate collections.

Orchestrates filter -> aggregate -> structured output for every loaded
document, and keeps the dashboard state (loaded documents, active filters,
primary/secondary selection) that drives recomputation.

Example:
    from forecast_eval.pipeline import DashboardState

    state = DashboardState()
    state.load("results/model_a.json")
    state.load("results/model_b.json")
    state.set_filters(FilterState(region={"us-east-1"}))
    bundle = state.bundle("model_a.json")
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .aggregate import (
    AggregateRow,
    HeatmapCell,
    family_rows,
    generation_rows,
    instance_time_series,
    region_rows,
    size_rows,
    time_horizon_series,
    trend_accuracy_rows,
)
from .compare import MetricComparison, compare_models, diff_configs, ConfigDifference, rank_models
from .config import DashboardConfig
from .distribution import ErrorBucketRow, MetricsDistribution, error_buckets, metrics_distribution
from .efficiency import CostEfficiencyRow, cost_efficiency
from .filters import FilterState, apply_filters, filter_options
from .loader import Document, load_document
from .model import FlatRecord, size_rank
from .overall import OverallMetrics, compute_overall_metrics


VERSION = "1.0.0"


def _format_timestamp() -> str:
    """Return ISO 8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DashboardBundle:
    """
    Every aggregate collection the charts render for one document.

    The shape of ``to_dict()`` is the contract with the rendering layer.
    """
    time_horizon: List[AggregateRow] = field(default_factory=list)
    generation: List[AggregateRow] = field(default_factory=list)
    size: List[AggregateRow] = field(default_factory=list)
    error_thresholds: List[ErrorBucketRow] = field(default_factory=list)
    region: List[AggregateRow] = field(default_factory=list)
    instance_family: List[AggregateRow] = field(default_factory=list)
    az_error: List[ErrorBucketRow] = field(default_factory=list)
    instance_time_series: List[HeatmapCell] = field(default_factory=list)
    trend_accuracy: List[dict] = field(default_factory=list)
    metrics_distribution: MetricsDistribution = field(default_factory=MetricsDistribution)
    cost_efficiency: List[CostEfficiencyRow] = field(default_factory=list)
    overall_metrics: OverallMetrics = field(default_factory=OverallMetrics)
    record_count: int = 0

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "time_horizon_data": [r.to_dict("timestep") for r in self.time_horizon],
            "generation_data": [r.to_dict("generation") for r in self.generation],
            "size_data": [
                {**r.to_dict("size"), "order": size_rank(r.key)} for r in self.size
            ],
            "error_threshold_data": [
                {**r.to_dict("size"), "order": size_rank(r.key)} for r in self.error_thresholds
            ],
            "region_data": [r.to_dict("region") for r in self.region],
            "instance_family_data": [r.to_dict("instance_family") for r in self.instance_family],
            "az_error_data": [r.to_dict("av_zone") for r in self.az_error],
            "instance_time_series_data": [c.to_dict() for c in self.instance_time_series],
            "trend_accuracy_data": list(self.trend_accuracy),
            "metrics_distribution_data": self.metrics_distribution.to_dict(),
            "cost_efficiency_data": [r.to_dict() for r in self.cost_efficiency],
            "overall_metrics": self.overall_metrics.to_dict(),
            "record_count": self.record_count,
        }


def compute_bundle(
    records: Sequence[FlatRecord],
    filters: Optional[FilterState] = None,
    config: Optional[DashboardConfig] = None,
) -> DashboardBundle:
    """
    Run the full pipeline over a document's records.

    Pure: filters are applied to the full record set and every collection
    is rebuilt from scratch.
    """
    config = config or DashboardConfig()
    filtered = apply_filters(records, filters or FilterState())

    trend = config.trend_histogram
    savings = config.savings_histogram
    return DashboardBundle(
        time_horizon=time_horizon_series(filtered),
        generation=generation_rows(filtered),
        size=size_rows(filtered),
        error_thresholds=error_buckets(filtered, "size"),
        region=region_rows(filtered),
        instance_family=family_rows(filtered),
        az_error=error_buckets(filtered, "av_zone"),
        instance_time_series=instance_time_series(filtered),
        trend_accuracy=trend_accuracy_rows(filtered),
        metrics_distribution=metrics_distribution(
            filtered,
            trend_bins=trend.bins,
            savings_bins=savings.bins,
            trend_default=trend.default_domain,
            savings_default=savings.default_domain,
            trend_step=trend.tick_step,
            savings_step=savings.tick_step,
            low_pct=config.cumulative.low_pct,
            high_pct=config.cumulative.high_pct,
        ),
        cost_efficiency=cost_efficiency(filtered, config.use_recorded_efficiency),
        overall_metrics=compute_overall_metrics(filtered),
        record_count=len(filtered),
    )


class DocumentRegistry:
    """
    Loaded documents keyed by upload name, in load order.

    Registering a name that is already present is a no-op. A failed load
    leaves the registry unchanged.
    """

    def __init__(self, trend_acc_unit: str = "auto"):
        self.trend_acc_unit = trend_acc_unit
        self._documents: "OrderedDict[str, Document]" = OrderedDict()

    def __contains__(self, name: str) -> bool:
        return name in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self):
        return iter(self._documents.values())

    @property
    def names(self) -> List[str]:
        return list(self._documents)

    def get(self, name: str) -> Document:
        if name not in self._documents:
            raise KeyError(f"Unknown document: {name}. Loaded: {self.names}")
        return self._documents[name]

    def add(self, document: Document) -> Document:
        """Register a document; returns the existing one on a duplicate name."""
        if document.name in self._documents:
            return self._documents[document.name]
        self._documents[document.name] = document
        return document

    def add_text(self, text: str, name: str) -> Document:
        """Parse and register an upload given as text."""
        if name in self._documents:
            return self._documents[name]
        return self.add(Document.from_text(text, name, self.trend_acc_unit))

    def load(self, path: str | Path) -> Document:
        """Load and register a file; a file name already loaded is skipped."""
        name = Path(path).name
        if name in self._documents:
            return self._documents[name]
        return self.add(load_document(path, self.trend_acc_unit))

    def remove(self, name: str) -> None:
        self._documents.pop(name, None)


class DashboardState:
    """
    Application state owned by the front end.

    Holds the loaded documents, the active filter state and which documents
    are shown as primary and secondary. Bundles are recomputed from each
    document's cached records; documents share no mutable state.
    """

    def __init__(self, config: Optional[DashboardConfig] = None):
        self.config = config or DashboardConfig()
        self.registry = DocumentRegistry(self.config.trend_acc_unit)
        self.filters: FilterState = self.config.filters
        self.primary: Optional[str] = None
        self.secondary: Optional[str] = None

    def load(self, path: str | Path) -> Document:
        """Load a file; the first document becomes primary, the second secondary."""
        document = self.registry.load(path)
        self._assign(document.name)
        return document

    def load_text(self, text: str, name: str) -> Document:
        document = self.registry.add_text(text, name)
        self._assign(document.name)
        return document

    def _assign(self, name: str) -> None:
        if self.primary is None:
            self.primary = name
        elif self.secondary is None and name != self.primary:
            self.secondary = name

    def select(self, primary: str, secondary: Optional[str] = None) -> None:
        self.registry.get(primary)
        if secondary is not None:
            self.registry.get(secondary)
        self.primary = primary
        self.secondary = secondary

    def reset_secondary(self) -> None:
        self.secondary = None

    @property
    def comparison_mode(self) -> bool:
        return self.primary is not None and self.secondary is not None

    def set_filters(self, filters: FilterState) -> None:
        self.filters = filters

    def set_filter(self, dimension: str, values) -> None:
        self.filters = self.filters.with_values(dimension, values)

    def clear_filters(self) -> None:
        self.filters = FilterState()

    def bundle(self, name: str) -> DashboardBundle:
        """Recompute the bundle of one document under the current filters."""
        return compute_bundle(self.registry.get(name).records, self.filters, self.config)

    def bundles(self) -> Dict[str, DashboardBundle]:
        return {doc.name: self.bundle(doc.name) for doc in self.registry}

    def filter_options(self) -> Dict[str, List[Any]]:
        """Selectable filter values, taken from the primary document."""
        if self.primary is None:
            return filter_options([])
        return filter_options(self.registry.get(self.primary).records)

    def summary_metrics(self, name: str) -> Dict[str, Any]:
        """
        Headline summary of a document.

        The document's precomputed ``overall_metrics`` is used while no
        filter is active; once filters apply, the summary is recomputed.
        """
        document = self.registry.get(name)
        if not self.filters.is_active() and document.overall_metrics:
            return dict(document.overall_metrics)
        filtered = apply_filters(document.records, self.filters)
        return compute_overall_metrics(filtered).to_dict()

    def compare(self) -> List[MetricComparison]:
        """Metric-by-metric comparison of primary against secondary."""
        if self.primary is None:
            return []
        secondary = self.summary_metrics(self.secondary) if self.secondary else None
        return compare_models(self.summary_metrics(self.primary), secondary)

    def config_differences(self) -> List[ConfigDifference]:
        if not self.comparison_mode:
            return []
        return diff_configs(
            self.registry.get(self.primary).config,
            self.registry.get(self.secondary).config,
        )

    def rank_all(self) -> Dict[str, Dict[str, Any]]:
        """Best value per metric across every loaded document, by model name."""
        models = {}
        for doc in self.registry:
            label = doc.model_name if doc.model_name not in models else doc.name
            models[label] = self.summary_metrics(doc.name)
        return rank_models(models)

    def meta(self) -> Dict[str, Any]:
        return {
            "version": VERSION,
            "timestamp": _format_timestamp(),
            "documents": {doc.name: doc.model_name for doc in self.registry},
            "primary": self.primary,
            "secondary": self.secondary,
            "filters": self.filters.to_dict(),
        }
