"""
Forecast Evaluation Dashboard Model

Loads result documents produced by a cloud-instance forecasting model,
flattens them into per-instance, per-timestep records, and derives the
filtered aggregate views a dashboard renders: time-horizon series, grouped
tables, MAPE error ranges, distributions with cumulative display domains,
cost efficiency and an instance-type heatmap. Two documents can be compared
metric by metric and config by config.

Example usage (programmatic):
    from forecast_eval import DashboardState, FilterState

    state = DashboardState()
    state.load("results/model_a.json")
    state.load("results/model_b.json")
    state.set_filters(FilterState(region={"us-east-1"}, time_horizons={0, 1}))

    bundle = state.bundle("model_a.json")
    print(bundle.overall_metrics.to_dict()["avg_mape"])
    for row in state.compare():
        print(row.label, row.primary, row.secondary, row.better)

Example usage (pure pipeline):
    from forecast_eval import load_document, compute_bundle

    doc = load_document("results/model_a.json")
    bundle = compute_bundle(doc.records)

CLI usage:
    python -m forecast_eval results/model_a.json results/model_b.json --output-dir out/
"""

from .model import (
    SIZE_ORDER,
    METRIC_FIELDS,
    InstanceMetadata,
    InstanceTypeParts,
    MetricSample,
    FlatRecord,
    RawDocument,
    size_rank,
    parse_instance_type,
)

from .loader import (
    InvalidDocumentError,
    Document,
    parse_document,
    flatten_document,
    load_document,
    load_documents,
)

from .filters import (
    FILTER_FIELDS,
    FilterState,
    apply_filters,
    filter_options,
)

from .aggregate import (
    AggregateRow,
    HeatmapCell,
    aggregate,
    time_horizon_series,
    instance_time_series,
    sort_instance_types,
    heatmap_matrix,
)

from .distribution import (
    ERROR_CATEGORIES,
    HistogramBin,
    MetricsDistribution,
    histogram,
    cumulative_distribution,
    metrics_distribution,
    error_buckets,
)

from .overall import (
    MetricStats,
    OverallMetrics,
    compute_overall_metrics,
)

from .efficiency import (
    CostEfficiencyRow,
    savings_efficiency,
    cost_efficiency,
)

from .compare import (
    MetricComparison,
    ConfigDifference,
    compare_models,
    rank_models,
    diff_configs,
)

from .config import (
    DashboardConfig,
    HistogramSpec,
    CumulativeSpec,
    load_config,
    save_config,
    validate_config,
)

from .pipeline import (
    DashboardBundle,
    DocumentRegistry,
    DashboardState,
    compute_bundle,
)

from .output import (
    OutputWriter,
    save_results,
    load_results,
)

# Plotting (optional, requires matplotlib)
try:
    from .plot import (
        plot_time_horizon,
        plot_error_buckets,
        plot_heatmap,
        plot_distributions,
        plot_cost_efficiency,
        plot_bundle,
    )
    _HAS_PLOT = True
except ImportError:
    _HAS_PLOT = False
    plot_time_horizon = None
    plot_error_buckets = None
    plot_heatmap = None
    plot_distributions = None
    plot_cost_efficiency = None
    plot_bundle = None

__all__ = [
    # Records
    'SIZE_ORDER',
    'METRIC_FIELDS',
    'InstanceMetadata',
    'InstanceTypeParts',
    'MetricSample',
    'FlatRecord',
    'RawDocument',
    'size_rank',
    'parse_instance_type',
    # Loading
    'InvalidDocumentError',
    'Document',
    'parse_document',
    'flatten_document',
    'load_document',
    'load_documents',
    # Filtering
    'FILTER_FIELDS',
    'FilterState',
    'apply_filters',
    'filter_options',
    # Aggregation
    'AggregateRow',
    'HeatmapCell',
    'aggregate',
    'time_horizon_series',
    'instance_time_series',
    'sort_instance_types',
    'heatmap_matrix',
    # Distributions
    'ERROR_CATEGORIES',
    'HistogramBin',
    'MetricsDistribution',
    'histogram',
    'cumulative_distribution',
    'metrics_distribution',
    'error_buckets',
    # Overall metrics
    'MetricStats',
    'OverallMetrics',
    'compute_overall_metrics',
    # Cost efficiency
    'CostEfficiencyRow',
    'savings_efficiency',
    'cost_efficiency',
    # Comparison
    'MetricComparison',
    'ConfigDifference',
    'compare_models',
    'rank_models',
    'diff_configs',
    # Config
    'DashboardConfig',
    'HistogramSpec',
    'CumulativeSpec',
    'load_config',
    'save_config',
    'validate_config',
    # Pipeline
    'DashboardBundle',
    'DocumentRegistry',
    'DashboardState',
    'compute_bundle',
    # Output
    'OutputWriter',
    'save_results',
    'load_results',
    # Plotting (optional)
    'plot_time_horizon',
    'plot_error_buckets',
    'plot_heatmap',
    'plot_distributions',
    'plot_cost_efficiency',
    'plot_bundle',
]

__version__ = '0.1.0'
