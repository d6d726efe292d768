"""
Core data model for forecast evaluation records.

An uploaded document describes instances (static metadata) and, for each
instance, one metric sample per forecast horizon. The flattened join of the
two is the unit every aggregation works on.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Tuple, Dict, Any


# Ordinal rank of each instance size, used for every size-ordered axis.
SIZE_ORDER: Dict[str, int] = {
    "nano": 1,
    "micro": 2,
    "small": 3,
    "medium": 4,
    "large": 5,
    "xlarge": 6,
    "2xlarge": 7,
    "3xlarge": 8,
    "4xlarge": 9,
    "6xlarge": 10,
    "8xlarge": 11,
    "9xlarge": 12,
    "10xlarge": 13,
    "12xlarge": 14,
    "16xlarge": 15,
    "18xlarge": 16,
    "24xlarge": 17,
    "32xlarge": 18,
    "48xlarge": 19,
    "metal": 20,
    "metal-16xl": 21,
    "metal-24xl": 22,
    "metal-32xl": 23,
    "metal-48xl": 24,
}

UNKNOWN_SIZE_RANK = 999

# Single-character modifier codes found after the generation digits
MODIFIER_CODES: Dict[str, str] = {
    "g": "Graviton",
    "i": "Intel",
    "a": "AMD",
    "d": "NVMe",
    "n": "Network",
}

METRIC_FIELDS: Tuple[str, ...] = (
    "mape",
    "mse",
    "sgnif_trend_acc",
    "cost_savings",
    "perfect_savings",
    "savings_efficiency",
)

# A sample missing any of these is dropped at load time
REQUIRED_METRIC_FIELDS: Tuple[str, ...] = (
    "mape",
    "mse",
    "sgnif_trend_acc",
    "cost_savings",
)

_INSTANCE_TYPE_RE = re.compile(r'^([a-z]+)(\d+)([a-z-]*)\.(.+)$')


def size_rank(size: Optional[str]) -> int:
    """Rank of a size in SIZE_ORDER, 999 for unknown or missing sizes."""
    if size is None:
        return UNKNOWN_SIZE_RANK
    return SIZE_ORDER.get(size, UNKNOWN_SIZE_RANK)


@dataclass(frozen=True)
class InstanceTypeParts:
    """Components of an instance type name such as ``m5ad.2xlarge``."""
    family: str = ""
    generation: int = 0
    modifier: str = ""
    size: str = ""

    @property
    def prefix(self) -> str:
        """Everything before the size, e.g. ``m5ad``."""
        if not self.family:
            return ""
        return f"{self.family}{self.generation}{self.modifier}"


def parse_instance_type(instance_type: Optional[str]) -> InstanceTypeParts:
    """
    Split an instance type into family letters, generation digits,
    modifier suffix and size.

    Names that do not match ``family+digits+letters.size`` keep whatever
    can be recovered: the part after the first dot becomes the size, the
    rest is reported as generation 0 with empty strings.
    """
    if not instance_type:
        return InstanceTypeParts()
    match = _INSTANCE_TYPE_RE.match(instance_type)
    if match:
        family, digits, modifier, size = match.groups()
        return InstanceTypeParts(
            family=family,
            generation=int(digits),
            modifier=modifier,
            size=size,
        )
    _, dot, size = instance_type.partition(".")
    return InstanceTypeParts(size=size if dot else "")


@dataclass(frozen=True)
class InstanceMetadata:
    """Static attributes of one forecast instance. Immutable once parsed."""
    region: Optional[str] = None
    av_zone: Optional[str] = None
    instance_type: Optional[str] = None
    instance_family: Optional[str] = None
    generation: Optional[int] = None
    modifiers: Tuple[str, ...] = ()
    size: Optional[str] = None
    vcpu: Optional[float] = None
    memory: Optional[float] = None
    architectures: Tuple[str, ...] = ()
    product_description: Optional[str] = None
    on_demand_price: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> "InstanceMetadata":
        """
        Build metadata from a document's ``metadata`` block.

        Family, generation, size and modifiers missing from the block are
        derived from the instance type name.
        """
        instance_type = data.get("instance_type")
        parts = parse_instance_type(instance_type)

        family = data.get("instance_family")
        if family is None and instance_type:
            family = instance_type.split(".")[0]

        generation = data.get("generation")
        if generation is None and parts.family:
            generation = parts.generation
        elif generation is not None:
            generation = int(generation)

        size = data.get("size")
        if size is None and parts.size:
            size = parts.size

        modifiers = data.get("modifiers")
        if modifiers is None:
            modifiers = [c for c in parts.modifier if c in MODIFIER_CODES]

        return cls(
            region=data.get("region"),
            av_zone=data.get("av_zone"),
            instance_type=instance_type,
            instance_family=family,
            generation=generation,
            modifiers=tuple(modifiers),
            size=size,
            vcpu=data.get("vcpu"),
            memory=data.get("memory"),
            architectures=tuple(data.get("architectures") or ()),
            product_description=data.get("product_description"),
            on_demand_price=data.get("on_demand_price"),
        )


@dataclass(frozen=True)
class MetricSample:
    """One evaluation of an instance's forecast at horizon ``n_timestep``."""
    n_timestep: int
    mape: Optional[float] = None
    mse: Optional[float] = None
    sgnif_trend_acc: Optional[float] = None
    cost_savings: Optional[float] = None
    perfect_savings: Optional[float] = None
    savings_efficiency: Optional[float] = None
    rmse: Optional[float] = None
    smape: Optional[float] = None

    def is_complete(self) -> bool:
        """Return True if every required metric field has a value."""
        return all(getattr(self, name) is not None for name in REQUIRED_METRIC_FIELDS)


@dataclass(frozen=True)
class FlatRecord:
    """
    Join of one instance's metadata with one of its metric samples.

    Records for the same instance share a single metadata object.
    """
    instance_id: str
    metadata: InstanceMetadata
    sample: MetricSample

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a metadata or metric field by name, None if absent."""
        if name == "instance_id":
            return self.instance_id
        if hasattr(self.sample, name):
            return getattr(self.sample, name)
        if hasattr(self.metadata, name):
            return getattr(self.metadata, name)
        return default

    # Shorthand properties for the fields the pipeline touches most
    @property
    def n_timestep(self) -> int:
        return self.sample.n_timestep

    @property
    def mape(self) -> Optional[float]:
        return self.sample.mape

    @property
    def size(self) -> Optional[str]:
        return self.metadata.size

    @property
    def instance_type(self) -> Optional[str]:
        return self.metadata.instance_type

    def to_dict(self) -> dict:
        """Flat dict with metadata and metric fields side by side."""
        m = self.metadata
        s = self.sample
        return {
            "instance_id": self.instance_id,
            "region": m.region,
            "av_zone": m.av_zone,
            "instance_type": m.instance_type,
            "instance_family": m.instance_family,
            "generation": m.generation,
            "modifiers": list(m.modifiers),
            "size": m.size,
            "vcpu": m.vcpu,
            "memory": m.memory,
            "architectures": list(m.architectures),
            "product_description": m.product_description,
            "on_demand_price": m.on_demand_price,
            "n_timestep": s.n_timestep,
            "mape": s.mape,
            "mse": s.mse,
            "sgnif_trend_acc": s.sgnif_trend_acc,
            "cost_savings": s.cost_savings,
            "perfect_savings": s.perfect_savings,
            "savings_efficiency": s.savings_efficiency,
        }


@dataclass
class RawDocument:
    """A parsed upload before flattening."""
    name: str
    config: Dict[str, Any] = field(default_factory=dict)
    overall_metrics: Optional[Dict[str, Any]] = None
    instances: Dict[str, Any] = field(default_factory=dict)

    @property
    def model_name(self) -> str:
        """Model name from the config block, falling back to the file stem."""
        name = self.config.get("model_name") if isinstance(self.config, dict) else None
        if name:
            return str(name)
        return self.name.rsplit(".", 1)[0] if "." in self.name else self.name
