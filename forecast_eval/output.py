"""
Output management for dashboard results.

Provides structured directory output with:
- results.json: Metadata plus the bundle of every loaded document
- config.json: Echoed dashboard config
- summary.md: Human-readable summary
- comparison.csv: Primary vs secondary headline metrics (comparison mode)
- config_diff.csv: Differing model config leaves (comparison mode)
- bundles/: Per-document bundle JSON files
- plots/: Generated charts (if matplotlib available)
"""

import csv
import json
from pathlib import Path
from typing import Any, Dict, TYPE_CHECKING

from .formatter import separator
from .report import (
    format_bundle_summary,
    format_comparison,
    format_config_diff,
    format_ranking,
)

if TYPE_CHECKING:
    from .pipeline import DashboardBundle, DashboardState


def _safe_name(name: str) -> str:
    stem = name[:-5] if name.endswith('.json') else name
    return stem.replace(' ', '_').replace('/', '_')


class OutputWriter:
    """
    Write dashboard results to a structured directory.

    Output structure:
        output_dir/
            results.json
            config.json
            summary.md
            comparison.csv      # only with two documents selected
            config_diff.csv     # only with two documents selected
            bundles/
                model_a.json
                model_b.json
            plots/
                model_a_time_horizon.png
                ...
    """

    def __init__(self, output_dir: str | Path):
        """
        Initialize writer.

        Args:
            output_dir: Path to output directory (will be created if needed)
        """
        self.output_dir = Path(output_dir)

    def write(self, state: 'DashboardState', generate_plots: bool = False) -> Dict[str, 'DashboardBundle']:
        """
        Write all output files for the current state.

        Args:
            state: Dashboard state holding loaded documents and filters
            generate_plots: Whether to render charts (requires matplotlib)

        Returns:
            The bundles that were written, keyed by document name
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        bundles_dir = self.output_dir / 'bundles'
        bundles_dir.mkdir(exist_ok=True)

        bundles = state.bundles()
        self._write_results(state, bundles)
        self._write_config(state)
        self._write_summary(state, bundles)
        self._write_bundles(bundles, bundles_dir)

        if state.comparison_mode:
            self._write_comparison_csv(state)
            self._write_config_diff_csv(state)

        if generate_plots:
            self._write_plots(state, bundles)
        return bundles

    def _write_results(self, state: 'DashboardState', bundles: Dict[str, 'DashboardBundle']) -> None:
        results = {
            "meta": state.meta(),
            "bundles": {name: bundle.to_dict() for name, bundle in bundles.items()},
        }
        with open(self.output_dir / 'results.json', 'w') as f:
            json.dump(results, f, indent=2, default=str)

    def _write_config(self, state: 'DashboardState') -> None:
        with open(self.output_dir / 'config.json', 'w') as f:
            json.dump(state.config.to_dict(), f, indent=2)

    def _write_summary(self, state: 'DashboardState', bundles: Dict[str, 'DashboardBundle']) -> None:
        sections = []
        for doc in state.registry:
            sections.append(format_bundle_summary(doc.model_name, bundles[doc.name]))

        if state.primary is not None:
            primary = state.registry.get(state.primary).model_name
            secondary = state.registry.get(state.secondary).model_name if state.secondary else None
            sections.append(format_comparison(state.compare(), primary, secondary))
            if secondary:
                sections.append(format_config_diff(state.config_differences(), primary, secondary))
        if len(state.registry) > 2:
            sections.append(format_ranking(state.rank_all()))

        with open(self.output_dir / 'summary.md', 'w') as f:
            f.write(("\n\n" + separator() + "\n\n").join(sections) + "\n")

    def _write_bundles(self, bundles: Dict[str, 'DashboardBundle'], bundles_dir: Path) -> None:
        for name, bundle in bundles.items():
            with open(bundles_dir / f'{_safe_name(name)}.json', 'w') as f:
                json.dump(bundle.to_dict(), f, indent=2, default=str)

    def _write_comparison_csv(self, state: 'DashboardState') -> None:
        rows = [row.to_dict() for row in state.compare()]
        with open(self.output_dir / 'comparison.csv', 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=[
                'key', 'label', 'primary', 'secondary', 'difference', 'pct_difference', 'better',
            ])
            writer.writeheader()
            writer.writerows(rows)

    def _write_config_diff_csv(self, state: 'DashboardState') -> None:
        with open(self.output_dir / 'config_diff.csv', 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['path', 'primary', 'secondary'])
            for diff in state.config_differences():
                writer.writerow([
                    diff.path,
                    json.dumps(diff.primary, default=str),
                    json.dumps(diff.secondary, default=str),
                ])

    def _write_plots(self, state: 'DashboardState', bundles: Dict[str, 'DashboardBundle']) -> None:
        """Render charts per document; silently skipped without matplotlib."""
        try:
            from .plot import HAS_MATPLOTLIB, plot_bundle
        except ImportError:
            return
        if not HAS_MATPLOTLIB:
            return

        plots_dir = self.output_dir / 'plots'
        plots_dir.mkdir(exist_ok=True)
        for doc in state.registry:
            plot_bundle(
                bundles[doc.name],
                plots_dir,
                prefix=_safe_name(doc.name),
                model_name=doc.model_name,
                heatmap_sort=state.config.heatmap_sort,
                heatmap_descending=state.config.heatmap_descending,
            )


def save_results(state: 'DashboardState', output_dir: str | Path, generate_plots: bool = False) -> None:
    """
    Convenience function to save dashboard results.

    Args:
        state: DashboardState to save
        output_dir: Output directory path
        generate_plots: Whether to render charts
    """
    OutputWriter(output_dir).write(state, generate_plots=generate_plots)


def load_results(output_dir: str | Path) -> Dict[str, Any]:
    """
    Load results from output directory.

    Args:
        output_dir: Output directory path

    Returns:
        Dict containing the results
    """
    results_path = Path(output_dir) / 'results.json'
    with open(results_path, 'r') as f:
        return json.load(f)
