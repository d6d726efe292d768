"""
Command-line interface for evaluating forecast result documents.

Usage:
    python -m forecast_eval results/model_a.json
    python -m forecast_eval results/model_a.json results/model_b.json --output-dir out/
    python -m forecast_eval results/*.json --filter region=us-east-1 --filter time_horizons=0,1
    python -m forecast_eval results/model_a.json --stdout
    python -m forecast_eval results/model_a.json --output-dir out/ --plot
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from .aggregate import INSTANCE_SORT_CRITERIA
from .config import DashboardConfig, load_config, validate_config
from .filters import FilterState
from .formatter import colorize, separator, supports_color
from .loader import InvalidDocumentError
from .output import OutputWriter
from .pipeline import DashboardState
from .report import format_bundle_summary, format_comparison, format_config_diff, format_ranking


def _print_summary(text: str, use_color: bool) -> None:
    """Print summary with optional ANSI colorization."""
    print(colorize(text) if use_color else text)


def _load_config(path: Optional[Path]) -> Optional[DashboardConfig]:
    if path is None:
        return DashboardConfig()
    try:
        config = load_config(path)
    except FileNotFoundError:
        print(f"Error: Config file not found: {path}", file=sys.stderr)
        return None
    except (ValueError, KeyError) as e:
        print(f"Error: Invalid config {path}: {e}", file=sys.stderr)
        return None

    errors = validate_config(config)
    if errors:
        print(f"Error: Invalid config {path}:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        return None
    return config


def load_into_state(state: DashboardState, paths: List[Path]) -> int:
    """
    Load every document into the state, reporting failures on stderr.

    A failing file does not stop the others. Returns the number of failures.
    """
    failures = 0
    for path in paths:
        if path.name in state.registry:
            print(f"Warning: {path.name} is already loaded, skipping {path}", file=sys.stderr)
            continue
        try:
            state.load(path)
        except FileNotFoundError:
            print(f"Error: File not found: {path}", file=sys.stderr)
            failures += 1
        except InvalidDocumentError as e:
            print(f"Error: {e}", file=sys.stderr)
            failures += 1
    return failures


def format_state_summary(state: DashboardState) -> str:
    """Per-document summaries followed by the comparison sections."""
    bundles = state.bundles()
    sections = [format_bundle_summary(doc.model_name, bundles[doc.name]) for doc in state.registry]

    if state.comparison_mode:
        primary = state.registry.get(state.primary).model_name
        secondary = state.registry.get(state.secondary).model_name
        sections.append(format_comparison(state.compare(), primary, secondary))
        sections.append(format_config_diff(state.config_differences(), primary, secondary))
    if len(state.registry) > 2:
        sections.append(format_ranking(state.rank_all()))

    return ("\n\n" + separator() + "\n\n").join(sections)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Evaluate and compare forecasting model result documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s results/model_a.json
  %(prog)s results/model_a.json results/model_b.json --output-dir out/
  %(prog)s results/*.json --filter region=us-east-1 --filter sizes=large,xlarge
  %(prog)s results/model_a.json --stdout
  %(prog)s results/model_a.json --output-dir out/ --plot
        """,
    )

    parser.add_argument(
        "documents",
        nargs="+",
        type=Path,
        help="Result document(s) to load",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Dashboard config file (JSON, or JSONC with json5 installed)",
    )
    parser.add_argument(
        "-f", "--filter",
        action="append",
        default=[],
        metavar="DIMENSION=VALUES",
        help=("Restrict records, e.g. region=us-east-1 or time_horizons=0,1 (repeatable). "
              "Values are added to the config file's filters for the same dimension"),
    )
    parser.add_argument(
        "--primary",
        default=None,
        help="File name of the primary document (default: first loaded)",
    )
    parser.add_argument(
        "--secondary",
        default=None,
        help="File name of the secondary document (default: second loaded)",
    )
    parser.add_argument(
        "--heatmap-sort",
        choices=INSTANCE_SORT_CRITERIA,
        default=None,
        help="Heatmap row order (default: from config, else family)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write results.json, summary.md and bundles to this directory",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the JSON bundles to stdout instead of summaries",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress summary output",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Render charts into <output-dir>/plots (requires matplotlib)",
    )

    args = parser.parse_args(argv)

    if args.plot and args.output_dir is None:
        parser.error("--plot requires --output-dir")

    config = _load_config(args.config)
    if config is None:
        return 1
    if args.heatmap_sort:
        config.heatmap_sort = args.heatmap_sort

    try:
        cli_filters = FilterState.from_args(args.filter)
    except ValueError as e:
        parser.error(str(e))

    state = DashboardState(config)
    if cli_filters.is_active():
        state.set_filters(config.filters.merged(cli_filters))

    failures = load_into_state(state, args.documents)
    if len(state.registry) == 0:
        print("Error: No documents could be loaded", file=sys.stderr)
        return 1

    if args.primary or args.secondary:
        primary = args.primary or state.primary
        secondary = args.secondary or state.secondary
        try:
            state.select(primary, secondary if secondary != primary else None)
        except KeyError as e:
            print(f"Error: {e.args[0]}", file=sys.stderr)
            return 1

    if args.stdout:
        bundles = {name: bundle.to_dict() for name, bundle in state.bundles().items()}
        print(json.dumps({"meta": state.meta(), "bundles": bundles}, indent=2, default=str))
    elif not args.quiet:
        _print_summary(format_state_summary(state), supports_color())

    if args.output_dir is not None:
        if args.plot:
            from .plot import HAS_MATPLOTLIB
            if not HAS_MATPLOTLIB:
                print("Warning: --plot requires matplotlib. Install with: pip install -e '.[plot]'",
                      file=sys.stderr)
        OutputWriter(args.output_dir).write(state, generate_plots=args.plot)
        if not args.quiet and not args.stdout:
            print(f"\nResults saved to: {args.output_dir}")

    return 0 if failures == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
