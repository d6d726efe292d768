"""
Document loading and flattening.

Turns the uploaded JSON text into a RawDocument and then into a flat list
of FlatRecords, one per (instance, timestep) sample that passes validation.

Example:
    from forecast_eval.loader import load_document

    doc = load_document("results/model_a.json")
    print(doc.model_name, len(doc.records))
"""

import json
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .model import (
    FlatRecord,
    InstanceMetadata,
    MetricSample,
    RawDocument,
)


TREND_ACC_UNITS = ("auto", "fraction", "percent")

# Numeric fields whose unquoted non-finite literals are rewritten to null
NUMERIC_METRIC_FIELDS: Tuple[str, ...] = (
    "mape",
    "mse",
    "rmse",
    "smape",
    "sgnif_trend_acc",
    "cost_savings",
    "perfect_savings",
    "savings_efficiency",
)

_NON_FINITE_RE = re.compile(
    r'("(?:' + "|".join(NUMERIC_METRIC_FIELDS) + r')"\s*:\s*)-?(?:Infinity|NaN)\b'
)


class InvalidDocumentError(ValueError):
    """Raised when an upload cannot be parsed into a document."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid document {name}: {reason}")


def sanitize_non_finite(text: str) -> str:
    """Replace ``Infinity``/``-Infinity``/``NaN`` metric values with ``null``."""
    return _NON_FINITE_RE.sub(r'\1null', text)


def _constant_to_none(token: str) -> None:
    # Any non-finite literal left after sanitizing is read as null
    return None


def _finite_or_none(value: Any) -> Optional[float]:
    """Coerce a JSON value to a finite float, None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def _numeric_overall(block: Any) -> Optional[Dict[str, float]]:
    """Finite numeric entries of a precomputed ``overall_metrics`` block."""
    if not isinstance(block, dict):
        return None
    numeric = {}
    for key, value in block.items():
        value = _finite_or_none(value)
        if value is not None:
            numeric[str(key)] = value
    return numeric or None


def parse_document(text: str, name: str = "document.json") -> RawDocument:
    """
    Parse document text into a RawDocument.

    Args:
        text: Raw JSON text of the upload
        name: Identifier of the upload (normally the file name)

    Raises:
        InvalidDocumentError: If the JSON is malformed or ``instances`` is
            absent or not a mapping
    """
    try:
        data = json.loads(sanitize_non_finite(text), parse_constant=_constant_to_none)
    except json.JSONDecodeError as e:
        raise InvalidDocumentError(name, f"malformed JSON ({e})") from e

    if not isinstance(data, dict):
        raise InvalidDocumentError(name, "top-level value must be an object")

    instances = data.get("instances")
    if not isinstance(instances, dict):
        raise InvalidDocumentError(name, "'instances' must be an object")

    config = data.get("config")
    overall = _numeric_overall(data.get("overall_metrics"))
    return RawDocument(
        name=name,
        config=config if isinstance(config, dict) else {},
        overall_metrics=overall,
        instances=instances,
    )


def _parse_sample(entry: dict, trend_scale: float) -> Optional[MetricSample]:
    """Build a MetricSample, or None if the entry fails validation."""
    if not isinstance(entry, dict):
        return None
    timestep = entry.get("n_timestep")
    if timestep is None or isinstance(timestep, bool):
        return None
    try:
        timestep = int(timestep)
    except (TypeError, ValueError):
        return None

    values = {
        key: _finite_or_none(entry.get(key))
        for key in NUMERIC_METRIC_FIELDS
    }
    if values["mse"] is None and values["rmse"] is not None:
        values["mse"] = values["rmse"] ** 2
    if values["mape"] is not None and values["mape"] < 0:
        values["mape"] = 0.0
    if values["sgnif_trend_acc"] is not None:
        values["sgnif_trend_acc"] *= trend_scale

    sample = MetricSample(n_timestep=timestep, **values)
    if not sample.is_complete():
        return None
    return sample


def detect_trend_scale(doc: RawDocument, unit: str = "auto") -> float:
    """
    Multiplier that brings sgnif_trend_acc to percent for this document.

    ``auto`` treats the document as fractions when every finite value lies
    in [0, 1]; the decision is made once per document.
    """
    if unit not in TREND_ACC_UNITS:
        raise ValueError(f"Unknown trend_acc_unit: {unit}. Valid: {list(TREND_ACC_UNITS)}")
    if unit == "fraction":
        return 100.0
    if unit == "percent":
        return 1.0

    seen = False
    for instance in doc.instances.values():
        if not isinstance(instance, dict):
            continue
        metrics = instance.get("metrics") or ()
        if not isinstance(metrics, list):
            continue
        for entry in metrics:
            if not isinstance(entry, dict):
                continue
            value = _finite_or_none(entry.get("sgnif_trend_acc"))
            if value is None:
                continue
            seen = True
            if value < 0.0 or value > 1.0:
                return 1.0
    return 100.0 if seen else 1.0


def _instance_parts(name: str, instance_id: Any, instance: dict) -> Tuple[InstanceMetadata, list]:
    """
    Metadata and metric entries of one instance.

    Raises:
        InvalidDocumentError: If ``metadata`` is not an object, ``metrics``
            is not an array, or a metadata field has the wrong type
    """
    block = instance.get("metadata")
    if block is None:
        block = {}
    if not isinstance(block, dict):
        raise InvalidDocumentError(name, f"instance {instance_id}: 'metadata' must be an object")

    metrics = instance.get("metrics")
    if metrics is None:
        metrics = []
    if not isinstance(metrics, list):
        raise InvalidDocumentError(name, f"instance {instance_id}: 'metrics' must be an array")

    try:
        metadata = InstanceMetadata.from_dict(block)
    except (AttributeError, TypeError, ValueError) as e:
        raise InvalidDocumentError(name, f"instance {instance_id}: invalid metadata ({e})") from e
    return metadata, metrics


def flatten_document(doc: RawDocument, trend_acc_unit: str = "auto") -> List[FlatRecord]:
    """
    Flatten a document into per-(instance, timestep) records.

    Output order follows the document: instances in insertion order, then
    each instance's metrics in array order. Entries with a missing or
    non-finite required field contribute no record.

    Raises:
        InvalidDocumentError: If an instance's metadata or metrics block is
            malformed
    """
    trend_scale = detect_trend_scale(doc, trend_acc_unit)
    records: List[FlatRecord] = []
    for instance_id, instance in doc.instances.items():
        if not isinstance(instance, dict):
            continue
        metadata, metrics = _instance_parts(doc.name, instance_id, instance)
        for entry in metrics:
            sample = _parse_sample(entry, trend_scale)
            if sample is None:
                continue
            records.append(FlatRecord(
                instance_id=str(instance_id),
                metadata=metadata,
                sample=sample,
            ))
    return records


def count_metric_entries(doc: RawDocument) -> int:
    """Total number of metric entries across all instances, valid or not."""
    total = 0
    for instance in doc.instances.values():
        if isinstance(instance, dict):
            metrics = instance.get("metrics")
            if isinstance(metrics, list):
                total += len(metrics)
    return total


@dataclass
class Document:
    """
    A loaded upload with its flattened records cached.

    The records are computed once at load time and reused for every filter
    change.
    """
    raw: RawDocument
    records: Tuple[FlatRecord, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.raw.name

    @property
    def model_name(self) -> str:
        return self.raw.model_name

    @property
    def config(self) -> Dict[str, Any]:
        return self.raw.config

    @property
    def overall_metrics(self) -> Optional[Dict[str, Any]]:
        return self.raw.overall_metrics

    @classmethod
    def from_text(cls, text: str, name: str, trend_acc_unit: str = "auto") -> "Document":
        raw = parse_document(text, name)
        return cls(raw=raw, records=tuple(flatten_document(raw, trend_acc_unit)))


def load_document(path: str | Path, trend_acc_unit: str = "auto") -> Document:
    """
    Load and flatten a document from disk.

    Args:
        path: Path to the JSON document
        trend_acc_unit: Unit of sgnif_trend_acc in the file
            ("auto", "fraction" or "percent")

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidDocumentError: If the content is not a valid document
    """
    path = Path(path)
    with open(path, 'r') as f:
        text = f.read()
    return Document.from_text(text, path.name, trend_acc_unit)


def load_documents(
    paths: Sequence[str | Path],
    trend_acc_unit: str = "auto",
) -> Tuple[List[Document], Dict[str, str]]:
    """
    Load several documents, collecting failures instead of stopping.

    Returns:
        (documents, errors) where errors maps path -> message
    """
    documents: List[Document] = []
    errors: Dict[str, str] = {}
    for path in paths:
        try:
            documents.append(load_document(path, trend_acc_unit))
        except FileNotFoundError:
            errors[str(path)] = "file not found"
        except InvalidDocumentError as e:
            errors[str(path)] = e.reason
    return documents, errors
