"""
Filter engine over flat records.

A FilterState holds one set of accepted values per dimension. An empty set
places no constraint on its dimension; a record passes when it satisfies
every non-empty dimension.

Example:
    from forecast_eval.filters import FilterState, apply_filters

    state = FilterState(region={"us-east-1"}, time_horizons={0, 1})
    filtered = apply_filters(records, state)
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, FrozenSet, Iterable, List, Sequence

from .model import FlatRecord, size_rank


# Dimension name -> record field it constrains
FILTER_FIELDS: Dict[str, str] = {
    "time_horizons": "n_timestep",
    "region": "region",
    "av_zones": "av_zone",
    "instance_types": "instance_type",
    "sizes": "size",
    "generations": "generation",
    "modifiers": "modifiers",
    "instance_family": "instance_family",
}

# Dimensions whose values are integers (0 is a valid value)
NUMERIC_DIMENSIONS = frozenset({"time_horizons", "generations"})


def _as_frozenset(values: Iterable[Any], numeric: bool) -> FrozenSet[Any]:
    if values is None:
        return frozenset()
    if isinstance(values, (str, int)):
        values = [values]
    if numeric:
        return frozenset(int(v) for v in values)
    return frozenset(str(v) for v in values)


@dataclass(frozen=True)
class FilterState:
    """Accepted values per filter dimension. Empty means accept all."""
    time_horizons: FrozenSet[int] = field(default_factory=frozenset)
    region: FrozenSet[str] = field(default_factory=frozenset)
    av_zones: FrozenSet[str] = field(default_factory=frozenset)
    instance_types: FrozenSet[str] = field(default_factory=frozenset)
    sizes: FrozenSet[str] = field(default_factory=frozenset)
    generations: FrozenSet[int] = field(default_factory=frozenset)
    modifiers: FrozenSet[str] = field(default_factory=frozenset)
    instance_family: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # Accept any iterable at construction and normalise to frozensets
        for f in fields(self):
            value = getattr(self, f.name)
            normalised = _as_frozenset(value, f.name in NUMERIC_DIMENSIONS)
            object.__setattr__(self, f.name, normalised)

    def is_active(self) -> bool:
        """Return True if any dimension constrains the records."""
        return any(getattr(self, name) for name in FILTER_FIELDS)

    def with_values(self, dimension: str, values: Iterable[Any]) -> "FilterState":
        """Return a copy with one dimension replaced."""
        if dimension not in FILTER_FIELDS:
            raise KeyError(f"Unknown filter dimension: {dimension}. "
                           f"Valid: {list(FILTER_FIELDS)}")
        data = {name: getattr(self, name) for name in FILTER_FIELDS}
        data[dimension] = values
        return FilterState(**data)

    def merged(self, other: "FilterState") -> "FilterState":
        """Return a copy with the accepted values of ``other`` added per dimension."""
        data = {name: getattr(self, name) | getattr(other, name) for name in FILTER_FIELDS}
        return FilterState(**data)

    def to_dict(self) -> dict:
        return {name: sorted(getattr(self, name)) for name in FILTER_FIELDS}

    @classmethod
    def from_dict(cls, data: dict) -> "FilterState":
        unknown = set(data) - set(FILTER_FIELDS)
        if unknown:
            raise KeyError(f"Unknown filter dimension(s): {sorted(unknown)}. "
                           f"Valid: {list(FILTER_FIELDS)}")
        return cls(**{name: data.get(name) or () for name in FILTER_FIELDS})

    @classmethod
    def from_args(cls, specs: Sequence[str]) -> "FilterState":
        """
        Build a filter state from ``dimension=value[,value...]`` strings.

        Repeating a dimension adds to its accepted set.

        Examples:
            FilterState.from_args(["region=us-east-1", "time_horizons=0,1"])
        """
        collected: Dict[str, List[str]] = {}
        for spec in specs:
            name, sep, raw = spec.partition("=")
            name = name.strip()
            if not sep or not name:
                raise ValueError(f"Filter must be dimension=value, got: {spec!r}")
            if name not in FILTER_FIELDS:
                raise ValueError(f"Unknown filter dimension: {name}. "
                                 f"Valid: {list(FILTER_FIELDS)}")
            values = [v.strip() for v in raw.split(",") if v.strip()]
            collected.setdefault(name, []).extend(values)
        try:
            return cls.from_dict(collected)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid filter value: {e}") from e


def record_passes(record: FlatRecord, state: FilterState) -> bool:
    """Check a single record against every non-empty dimension."""
    for dimension, field_name in FILTER_FIELDS.items():
        accepted = getattr(state, dimension)
        if not accepted:
            continue
        value = record.get(field_name)
        if dimension == "modifiers":
            if not value or not any(code in accepted for code in value):
                return False
        elif value is None or value not in accepted:
            return False
    return True


def apply_filters(records: Sequence[FlatRecord], state: FilterState) -> List[FlatRecord]:
    """
    Return the records that pass every active filter, in input order.

    Pure: the same (records, state) pair always yields the same list.
    """
    if not state.is_active():
        return list(records)
    return [r for r in records if record_passes(r, state)]


def _instance_type_key(instance_type: str):
    prefix, _, suffix = instance_type.partition(".")
    return (prefix, size_rank(suffix), instance_type)


def filter_options(records: Sequence[FlatRecord]) -> Dict[str, List[Any]]:
    """
    Distinct selectable values per dimension, in display order.

    Sizes follow the size rank, instance types sort by prefix and then size
    rank, numeric dimensions sort numerically and the rest alphabetically.
    """
    seen: Dict[str, set] = {name: set() for name in FILTER_FIELDS}
    for record in records:
        for dimension, field_name in FILTER_FIELDS.items():
            value = record.get(field_name)
            if dimension == "modifiers":
                seen[dimension].update(value or ())
            elif value is not None:
                seen[dimension].add(value)

    return {
        "time_horizons": sorted(seen["time_horizons"]),
        "region": sorted(seen["region"]),
        "av_zones": sorted(seen["av_zones"]),
        "instance_types": sorted(seen["instance_types"], key=_instance_type_key),
        "sizes": sorted(seen["sizes"], key=lambda s: (size_rank(s), s)),
        "generations": sorted(seen["generations"]),
        "modifiers": sorted(seen["modifiers"]),
        "instance_family": sorted(seen["instance_family"]),
    }
