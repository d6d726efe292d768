"""
Chart rendering for dashboard bundles.

Requires the 'plot' optional dependency: pip install -e ".[plot]"

Usage:
    from forecast_eval import DashboardState
    from forecast_eval.plot import plot_time_horizon, plot_bundle

    state = DashboardState()
    state.load("results/model_a.json")
    bundle = state.bundle("model_a.json")

    # Plot and show
    plot_time_horizon(bundle.time_horizon)

    # Or write every chart of the bundle to a directory
    plot_bundle(bundle, "plots/", prefix="model_a")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

try:
    import matplotlib.pyplot as plt
    import numpy as np
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

from .aggregate import AggregateRow, HeatmapCell, heatmap_matrix
from .distribution import ERROR_CATEGORIES, CumulativeDistribution, ErrorBucketRow, HistogramBin
from .efficiency import CostEfficiencyRow


COLORS = {
    'mape': '#1a5276',
    'mse': '#884ea0',
    'trend': '#27ae60',
    'savings': '#2e86c1',
    'perfect': '#aed6f1',
    'cumulative': '#e67e22',
    'neutral': '#7f8c8d',
}

# Green through red, one per MAPE error category
ERROR_COLORS = ['#1e8449', '#52be80', '#f4d03f', '#f5b041', '#e67e22', '#e74c3c', '#922b21']


@dataclass
class PlotStyle:
    """Centralized style configuration for all plots.

    Override individual fields to customize: ``PlotStyle(bar_alpha=1.0, dpi=150)``.
    """

    # Bar properties
    bar_width: float = 0.8
    bar_alpha: float = 0.85
    bar_edgecolor: str = 'black'
    bar_linewidth: float = 0.5

    # Line plot properties
    line_width: float = 1.8
    line_alpha: float = 0.9
    marker_size: int = 6

    # Grid
    grid: bool = True
    grid_axis: str = 'y'
    grid_alpha: float = 0.3
    grid_linestyle: str = '--'
    grid_color: str = '#cccccc'

    # Figure
    dpi: int = 150
    facecolor: str = 'white'
    heatmap_cmap: str = 'RdYlGn_r'

    # Font sizes
    title_fontsize: int = 13
    axis_label_fontsize: int = 11
    tick_fontsize: int = 9
    annotation_fontsize: int = 8
    legend_fontsize: int = 9

    # Spines
    hide_top_spine: bool = True
    hide_right_spine: bool = True
    spine_color: str = '#cccccc'

    # Colors (override COLORS dict entries)
    colors: Optional[Dict[str, str]] = None

    def color(self, name: str) -> str:
        if self.colors and name in self.colors:
            return self.colors[name]
        return COLORS[name]


DEFAULT_STYLE = PlotStyle()


def _apply_common_style(ax, style: PlotStyle):
    """Apply shared style settings (grid, spines, background) to an axes."""
    ax.set_facecolor(style.facecolor)
    if style.grid:
        ax.grid(True, axis=style.grid_axis, alpha=style.grid_alpha,
                linestyle=style.grid_linestyle, color=style.grid_color)
        ax.set_axisbelow(True)
    if style.hide_top_spine:
        ax.spines['top'].set_visible(False)
    if style.hide_right_spine:
        ax.spines['right'].set_visible(False)
    ax.spines['left'].set_color(style.spine_color)
    ax.spines['bottom'].set_color(style.spine_color)


def _check_matplotlib():
    """Raise helpful error if matplotlib is not installed."""
    if not HAS_MATPLOTLIB:
        raise ImportError(
            "Plotting requires matplotlib. Install with: pip install -e '.[plot]'"
        )


def _no_data(ax, style: PlotStyle):
    ax.text(0.5, 0.5, 'No data available', ha='center', va='center',
            transform=ax.transAxes, fontsize=style.axis_label_fontsize,
            color=COLORS['neutral'])
    _apply_common_style(ax, style)


def _finish(fig, save_path, show: bool, style: PlotStyle):
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=style.dpi, bbox_inches='tight',
                    facecolor=style.facecolor)

    if show:
        plt.show()

    return fig


def plot_time_horizon(
    rows: Sequence[AggregateRow],
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[float, float] = (10, 5),
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    MAPE and trend accuracy against forecast horizon.

    MAPE is drawn on the left axis, trend accuracy and cost savings (both
    percent) on a twin right axis.

    Args:
        rows: DashboardBundle.time_horizon
        save_path: Optional path to save the figure
        figsize: Figure size (width, height) in inches
        show: Whether to display the plot (default True)
        title: Optional custom title
        style: Optional PlotStyle for customizing appearance

    Returns:
        matplotlib Figure object
    """
    _check_matplotlib()
    style = style or DEFAULT_STYLE

    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor(style.facecolor)
    if not rows:
        _no_data(ax, style)
        return _finish(fig, save_path, show, style)

    steps = [r.key for r in rows]
    ax.plot(steps, [r['mape'] for r in rows], marker='o', color=style.color('mape'),
            linewidth=style.line_width, alpha=style.line_alpha,
            markersize=style.marker_size, label='MAPE')
    ax.set_xlabel('Timestep', fontsize=style.axis_label_fontsize)
    ax.set_ylabel('MAPE (%)', fontsize=style.axis_label_fontsize)

    ax2 = ax.twinx()
    ax2.plot(steps, [r['sgnif_trend_acc'] for r in rows], marker='s',
             color=style.color('trend'), linewidth=style.line_width,
             alpha=style.line_alpha, markersize=style.marker_size, label='Trend accuracy')
    ax2.plot(steps, [r['cost_savings'] for r in rows], marker='^', linestyle='--',
             color=style.color('savings'), linewidth=style.line_width,
             alpha=style.line_alpha, markersize=style.marker_size, label='Cost savings')
    ax2.set_ylabel('Percent', fontsize=style.axis_label_fontsize)
    ax2.spines['top'].set_visible(False)

    handles, labels = ax.get_legend_handles_labels()
    handles2, labels2 = ax2.get_legend_handles_labels()
    ax.legend(handles + handles2, labels + labels2, loc='best',
              fontsize=style.legend_fontsize)

    _apply_common_style(ax, style)
    ax.set_title(title or 'Metrics by Time Horizon', fontsize=style.title_fontsize,
                 fontweight='bold', color='#333333')
    return _finish(fig, save_path, show, style)


def plot_error_buckets(
    rows: Sequence[ErrorBucketRow],
    group_label: str = 'Size',
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[float, float] = (12, 5),
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    100% stacked bars of MAPE error categories per group.

    Args:
        rows: DashboardBundle.error_thresholds or DashboardBundle.az_error
        group_label: X axis label
    """
    _check_matplotlib()
    style = style or DEFAULT_STYLE

    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor(style.facecolor)
    if not rows:
        _no_data(ax, style)
        return _finish(fig, save_path, show, style)

    labels = [str(r.to_dict('group')['group']) for r in rows]
    x = np.arange(len(rows))
    bottom = np.zeros(len(rows))
    for (category, _), color in zip(ERROR_CATEGORIES, ERROR_COLORS):
        heights = np.array([r.percentages[category] for r in rows])
        ax.bar(x, heights, style.bar_width, bottom=bottom, label=category,
               color=color, alpha=style.bar_alpha, edgecolor=style.bar_edgecolor,
               linewidth=style.bar_linewidth)
        bottom += heights

    ax.set_xticks(x)
    ax.set_xticklabels(labels, rotation=45, ha='right', fontsize=style.tick_fontsize)
    ax.set_ylim(0, 100)
    ax.set_xlabel(group_label, fontsize=style.axis_label_fontsize)
    ax.set_ylabel('Share of records (%)', fontsize=style.axis_label_fontsize)
    ax.legend(loc='upper left', bbox_to_anchor=(1.01, 1), fontsize=style.legend_fontsize)

    _apply_common_style(ax, style)
    ax.set_title(title or f'MAPE Error Ranges by {group_label}',
                 fontsize=style.title_fontsize, fontweight='bold', color='#333333')
    return _finish(fig, save_path, show, style)


def plot_heatmap(
    cells: Sequence[HeatmapCell],
    sort_by: str = 'family',
    descending: bool = False,
    save_path: Optional[Union[str, Path]] = None,
    figsize: Optional[Tuple[float, float]] = None,
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    Instance type x timestep heatmap of mean MAPE.

    Rows are ordered by ``sort_by`` (family, generation, modifier or size).
    Missing cells are left blank.
    """
    _check_matplotlib()
    style = style or DEFAULT_STYLE

    types, steps, values = heatmap_matrix(cells, by=sort_by, descending=descending)
    if figsize is None:
        figsize = (max(6, 0.6 * len(steps) + 3), max(4, 0.25 * len(types) + 2))
    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor(style.facecolor)
    if not types:
        _no_data(ax, style)
        return _finish(fig, save_path, show, style)

    matrix = np.array([[np.nan if v is None else v for v in row] for row in values], dtype=float)
    image = ax.imshow(np.ma.masked_invalid(matrix), aspect='auto', cmap=style.heatmap_cmap)
    cbar = fig.colorbar(image, ax=ax)
    cbar.set_label('MAPE (%)', fontsize=style.axis_label_fontsize)

    ax.set_xticks(np.arange(len(steps)))
    ax.set_xticklabels([str(s) for s in steps], fontsize=style.tick_fontsize)
    ax.set_yticks(np.arange(len(types)))
    ax.set_yticklabels(types, fontsize=style.tick_fontsize)
    ax.set_xlabel('Timestep', fontsize=style.axis_label_fontsize)
    ax.set_ylabel('Instance type', fontsize=style.axis_label_fontsize)
    ax.set_title(title or 'MAPE by Instance Type and Time Horizon',
                 fontsize=style.title_fontsize, fontweight='bold', color='#333333')
    return _finish(fig, save_path, show, style)


def _plot_distribution_axes(
    ax,
    bins: List[HistogramBin],
    cumulative: Optional[CumulativeDistribution],
    color: str,
    xlabel: str,
    style: PlotStyle,
):
    if not bins:
        _no_data(ax, style)
        return

    width = bins[1].midpoint - bins[0].midpoint if len(bins) > 1 else 1.0
    ax.bar([b.midpoint for b in bins], [b.percentage for b in bins], width * 0.95,
           color=color, alpha=style.bar_alpha, edgecolor=style.bar_edgecolor,
           linewidth=style.bar_linewidth * 0.5)
    ax.set_xlabel(xlabel, fontsize=style.axis_label_fontsize)
    ax.set_ylabel('Share of instances (%)', fontsize=style.axis_label_fontsize)
    _apply_common_style(ax, style)

    if cumulative is None or not cumulative.display_bins:
        return
    ax.set_xlim(*cumulative.domain)
    ax2 = ax.twinx()
    ax2.plot([b.value for b in cumulative.display_bins],
             [b.cumulative_percentage for b in cumulative.display_bins],
             color=style.color('cumulative'), linewidth=style.line_width,
             alpha=style.line_alpha)
    ax2.set_ylim(0, 100)
    ax2.set_ylabel('Cumulative (%)', fontsize=style.axis_label_fontsize)
    ax2.spines['top'].set_visible(False)


def plot_distributions(
    distribution,
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[float, float] = (14, 5),
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    Side-by-side histograms of per-instance trend accuracy and cost savings,
    each with its cumulative share on a twin axis.

    Args:
        distribution: DashboardBundle.metrics_distribution
    """
    _check_matplotlib()
    style = style or DEFAULT_STYLE

    fig, (ax_trend, ax_savings) = plt.subplots(1, 2, figsize=figsize)
    fig.patch.set_facecolor(style.facecolor)

    _plot_distribution_axes(ax_trend, distribution.trend, distribution.trend_cumulative,
                            style.color('trend'), 'Trend accuracy (%)', style)
    _plot_distribution_axes(ax_savings, distribution.savings, distribution.savings_cumulative,
                            style.color('savings'), 'Cost savings (%)', style)

    ax_trend.set_title('Trend Accuracy', fontsize=style.title_fontsize,
                       fontweight='bold', color='#333333')
    ax_savings.set_title('Cost Savings', fontsize=style.title_fontsize,
                         fontweight='bold', color='#333333')
    if title:
        fig.suptitle(title, fontsize=style.title_fontsize + 1, fontweight='bold')
    return _finish(fig, save_path, show, style)


def plot_cost_efficiency(
    rows: Sequence[CostEfficiencyRow],
    save_path: Optional[Union[str, Path]] = None,
    figsize: Tuple[float, float] = (12, 5),
    show: bool = True,
    title: Optional[str] = None,
    style: Optional[PlotStyle] = None,
) -> Optional[Any]:
    """
    Actual vs perfect cost savings per size, annotated with efficiency.
    """
    _check_matplotlib()
    style = style or DEFAULT_STYLE

    fig, ax = plt.subplots(figsize=figsize)
    fig.patch.set_facecolor(style.facecolor)
    if not rows:
        _no_data(ax, style)
        return _finish(fig, save_path, show, style)

    x = np.arange(len(rows))
    half = style.bar_width / 2
    ax.bar(x - half / 2, [r.perfect_savings for r in rows], half, label='Perfect savings',
           color=style.color('perfect'), alpha=style.bar_alpha,
           edgecolor=style.bar_edgecolor, linewidth=style.bar_linewidth)
    ax.bar(x + half / 2, [r.cost_savings for r in rows], half, label='Actual savings',
           color=style.color('savings'), alpha=style.bar_alpha,
           edgecolor=style.bar_edgecolor, linewidth=style.bar_linewidth)

    for i, row in enumerate(rows):
        top = max(row.perfect_savings, row.cost_savings, 0)
        ax.annotate(f'{row.savings_efficiency:.0f}%', (i, top), textcoords='offset points',
                    xytext=(0, 4), ha='center', fontsize=style.annotation_fontsize,
                    color='#333333')

    ax.axhline(0, color=style.spine_color, linewidth=0.8)
    ax.set_xticks(x)
    ax.set_xticklabels([r.size for r in rows], rotation=45, ha='right',
                       fontsize=style.tick_fontsize)
    ax.set_xlabel('Size', fontsize=style.axis_label_fontsize)
    ax.set_ylabel('Savings (%)', fontsize=style.axis_label_fontsize)
    ax.legend(loc='best', fontsize=style.legend_fontsize)

    _apply_common_style(ax, style)
    ax.set_title(title or 'Cost Efficiency by Size', fontsize=style.title_fontsize,
                 fontweight='bold', color='#333333')
    return _finish(fig, save_path, show, style)


def plot_bundle(
    bundle,
    output_dir: Union[str, Path],
    prefix: str = 'model',
    model_name: Optional[str] = None,
    heatmap_sort: str = 'family',
    heatmap_descending: bool = False,
    style: Optional[PlotStyle] = None,
) -> List[Path]:
    """
    Write every chart of a DashboardBundle as PNG files.

    Args:
        bundle: DashboardBundle to render
        output_dir: Directory for the image files
        prefix: File name prefix, usually the document name
        model_name: Shown in chart titles

    Returns:
        Paths of the written files
    """
    _check_matplotlib()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    name = model_name or prefix

    charts = [
        ('time_horizon', lambda p: plot_time_horizon(
            bundle.time_horizon, save_path=p, show=False, style=style,
            title=f'{name}: Metrics by Time Horizon')),
        ('error_by_size', lambda p: plot_error_buckets(
            bundle.error_thresholds, group_label='Size', save_path=p, show=False,
            style=style, title=f'{name}: MAPE Error Ranges by Size')),
        ('error_by_zone', lambda p: plot_error_buckets(
            bundle.az_error, group_label='Availability Zone', save_path=p, show=False,
            style=style, title=f'{name}: MAPE Error Ranges by Zone')),
        ('heatmap', lambda p: plot_heatmap(
            bundle.instance_time_series, sort_by=heatmap_sort, descending=heatmap_descending,
            save_path=p, show=False, style=style, title=f'{name}: MAPE Heatmap')),
        ('distributions', lambda p: plot_distributions(
            bundle.metrics_distribution, save_path=p, show=False, style=style, title=name)),
        ('cost_efficiency', lambda p: plot_cost_efficiency(
            bundle.cost_efficiency, save_path=p, show=False, style=style,
            title=f'{name}: Cost Efficiency by Size')),
    ]

    written = []
    for chart, render in charts:
        path = output_dir / f'{prefix}_{chart}.png'
        fig = render(path)
        plt.close(fig)
        written.append(path)
    return written
