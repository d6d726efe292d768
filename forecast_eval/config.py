"""
Configuration loading and serialization for dashboard settings.

Provides JSON-serializable config structures and conversion utilities.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Tuple
import json
from pathlib import Path

try:
    import json5
    _HAS_JSON5 = True
except ImportError:
    _HAS_JSON5 = False

from .aggregate import INSTANCE_SORT_CRITERIA
from .distribution import (
    SAVINGS_BINS,
    SAVINGS_DEFAULT_DOMAIN,
    TREND_BINS,
    TREND_DEFAULT_DOMAIN,
)
from .filters import FilterState
from .loader import TREND_ACC_UNITS


# --- Config Dataclasses ---

@dataclass
class HistogramSpec:
    """Bin count, fallback domain and tick step of one distribution chart."""
    bins: int = TREND_BINS
    default_min: float = TREND_DEFAULT_DOMAIN[0]
    default_max: float = TREND_DEFAULT_DOMAIN[1]
    tick_step: int = 10

    @property
    def default_domain(self) -> Tuple[float, float]:
        return (self.default_min, self.default_max)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict, defaults: Optional["HistogramSpec"] = None) -> "HistogramSpec":
        base = defaults or cls()
        return cls(
            bins=data.get("bins", base.bins),
            default_min=data.get("default_min", base.default_min),
            default_max=data.get("default_max", base.default_max),
            tick_step=data.get("tick_step", base.tick_step),
        )


def _trend_defaults() -> HistogramSpec:
    return HistogramSpec()


def _savings_defaults() -> HistogramSpec:
    return HistogramSpec(
        bins=SAVINGS_BINS,
        default_min=SAVINGS_DEFAULT_DOMAIN[0],
        default_max=SAVINGS_DEFAULT_DOMAIN[1],
        tick_step=5,
    )


@dataclass
class CumulativeSpec:
    """Cumulative shares that bound the trimmed display domain (percent)."""
    low_pct: float = 2.0
    high_pct: float = 98.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CumulativeSpec":
        return cls(
            low_pct=data.get("low_pct", 2.0),
            high_pct=data.get("high_pct", 98.0),
        )


@dataclass
class DashboardConfig:
    """
    Complete dashboard configuration.

    This is the top-level config that gets serialized to/from JSON.
    """
    name: str = "dashboard"
    trend_acc_unit: str = "auto"  # "auto", "fraction" or "percent"
    use_recorded_efficiency: bool = True
    trend_histogram: HistogramSpec = field(default_factory=_trend_defaults)
    savings_histogram: HistogramSpec = field(default_factory=_savings_defaults)
    cumulative: CumulativeSpec = field(default_factory=CumulativeSpec)
    filters: FilterState = field(default_factory=FilterState)
    heatmap_sort: str = "family"
    heatmap_descending: bool = False
    output_dir: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert config to JSON-serializable dict."""
        return {
            "name": self.name,
            "trend_acc_unit": self.trend_acc_unit,
            "use_recorded_efficiency": self.use_recorded_efficiency,
            "trend_histogram": self.trend_histogram.to_dict(),
            "savings_histogram": self.savings_histogram.to_dict(),
            "cumulative": self.cumulative.to_dict(),
            "filters": self.filters.to_dict(),
            "heatmap_sort": self.heatmap_sort,
            "heatmap_descending": self.heatmap_descending,
            "output_dir": self.output_dir,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DashboardConfig":
        """Create config from dict (e.g., from JSON)."""
        return cls(
            name=data.get("name", "dashboard"),
            trend_acc_unit=data.get("trend_acc_unit", "auto"),
            use_recorded_efficiency=data.get("use_recorded_efficiency", True),
            trend_histogram=HistogramSpec.from_dict(
                data.get("trend_histogram", {}), _trend_defaults()),
            savings_histogram=HistogramSpec.from_dict(
                data.get("savings_histogram", {}), _savings_defaults()),
            cumulative=CumulativeSpec.from_dict(data.get("cumulative", {})),
            filters=FilterState.from_dict(data.get("filters") or {}),
            heatmap_sort=data.get("heatmap_sort", "family"),
            heatmap_descending=data.get("heatmap_descending", False),
            output_dir=data.get("output_dir"),
        )


def load_config(path: str | Path) -> DashboardConfig:
    """
    Load a dashboard configuration from a JSON file.

    Supports JSON with comments (JSONC) if json5 is installed.

    Args:
        path: Path to JSON config file

    Returns:
        DashboardConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If JSON is invalid
        KeyError: If the filters block names an unknown dimension
    """
    path = Path(path)
    with open(path, 'r') as f:
        if _HAS_JSON5:
            data = json5.load(f)
        else:
            data = json.load(f)
    return DashboardConfig.from_dict(data)


def save_config(config: DashboardConfig, path: str | Path) -> None:
    """
    Save a dashboard configuration to a JSON file.

    Args:
        config: DashboardConfig to save
        path: Path to output file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: DashboardConfig) -> List[str]:
    """
    Validate a configuration and return list of error messages.

    Returns empty list if config is valid.
    """
    errors = []

    if config.trend_acc_unit not in TREND_ACC_UNITS:
        errors.append(f"Unknown trend_acc_unit: {config.trend_acc_unit}. "
                      f"Valid: {list(TREND_ACC_UNITS)}")

    for label, spec in (("trend_histogram", config.trend_histogram),
                        ("savings_histogram", config.savings_histogram)):
        if not _is_int(spec.bins):
            errors.append(f"{label} bins must be an integer, got {spec.bins!r}")
        elif spec.bins <= 0:
            errors.append(f"{label} bins must be positive, got {spec.bins}")
        bounds = (spec.default_min, spec.default_max, spec.tick_step)
        if not all(_is_number(v) for v in bounds):
            errors.append(f"{label} default_min, default_max and tick_step must be numbers")
            continue
        if spec.default_min >= spec.default_max:
            errors.append(f"{label} default_min must be < default_max")
        if spec.tick_step <= 0:
            errors.append(f"{label} tick_step must be positive, got {spec.tick_step}")

    low, high = config.cumulative.low_pct, config.cumulative.high_pct
    if not (_is_number(low) and _is_number(high)):
        errors.append(f"cumulative bounds must be numbers, got {low!r}, {high!r}")
    elif not 0.0 <= low < high <= 100.0:
        errors.append(f"cumulative bounds must satisfy 0 <= low_pct < high_pct <= 100, "
                      f"got {low}, {high}")

    if config.heatmap_sort not in INSTANCE_SORT_CRITERIA:
        errors.append(f"Unknown heatmap_sort: {config.heatmap_sort}. "
                      f"Valid: {list(INSTANCE_SORT_CRITERIA)}")

    return errors
