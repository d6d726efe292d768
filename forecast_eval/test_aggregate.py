"""
Tests for grouped aggregation and the instance-type heatmap.

Run with: pytest forecast_eval/test_aggregate.py -v
"""

import pytest

from .aggregate import (
    aggregate,
    heatmap_matrix,
    instance_time_series,
    mean_of,
    order_groups,
    size_rows,
    sort_instance_types,
    time_horizon_series,
    trend_accuracy_rows,
)
from .model import FlatRecord, InstanceMetadata, MetricSample


def make_record(instance_id, n_timestep=0, mape=10.0, mse=1.0, trend=50.0, savings=2.0, **meta):
    sample = MetricSample(n_timestep=n_timestep, mape=mape, mse=mse,
                          sgnif_trend_acc=trend, cost_savings=savings)
    return FlatRecord(instance_id=instance_id, metadata=InstanceMetadata.from_dict(meta), sample=sample)


@pytest.fixture
def records():
    return [
        make_record("a", 0, mape=10.0, instance_type="m5.large", region="us-east-1"),
        make_record("a", 1, mape=20.0, instance_type="m5.large", region="us-east-1"),
        make_record("b", 0, mape=30.0, instance_type="c6g.metal", region="eu-west-1"),
        make_record("b", 1, mape=50.0, instance_type="c6g.metal", region="eu-west-1"),
        make_record("c", 0, mape=40.0, instance_type="m5.small", region="us-east-1"),
    ]


class TestMeanOf:
    """Tests for mean_of."""

    def test_mean(self, records):
        """mean_of averages a metric over all records."""
        assert mean_of(records, "mape") == pytest.approx(30.0)

    def test_empty_is_zero(self):
        """No records give a mean of 0."""
        assert mean_of([], "mape") == 0.0

    def test_skips_missing_values(self, records):
        """Records without the metric are skipped."""
        assert mean_of(records, "perfect_savings") == 0.0


class TestAggregate:
    """Tests for aggregate and the named collections."""

    def test_counts_sum_to_records(self, records):
        """Group counts add up to the record count for every key."""
        for key in ("size", "region", "generation", "instance_family", "n_timestep"):
            assert sum(row.count for row in aggregate(records, key)) == len(records)

    def test_time_horizon_means(self, records):
        """Each timestep row holds the per-metric means of its records."""
        rows = time_horizon_series(records)
        assert [r.key for r in rows] == [0, 1]
        assert rows[0]["mape"] == pytest.approx(80.0 / 3)
        assert rows[1]["mape"] == pytest.approx(35.0)
        assert rows[0].count == 3
        assert set(rows[0].metrics) == {"mse", "mape", "sgnif_trend_acc", "cost_savings"}

    def test_single_record_group_mean_equals_value(self, records):
        """A group of one record reports that record's value."""
        small = [r for r in size_rows(records) if r.key == "small"][0]
        assert small.count == 1
        assert small["mape"] == 40.0

    def test_sizes_ordered_by_rank(self, records):
        """Size rows follow the size rank, not the alphabet."""
        assert [r.key for r in size_rows(records)] == ["small", "large", "metal"]

    def test_region_alphabetical(self, records):
        """Region rows are sorted by name."""
        assert [r.key for r in aggregate(records, "region")] == ["eu-west-1", "us-east-1"]

    def test_unknown_key_rejected(self, records):
        """Grouping by an unsupported key raises ValueError."""
        with pytest.raises(ValueError):
            aggregate(records, "colour")

    def test_missing_group_value_last_and_labelled(self):
        """Records without the group value form a final "Unknown" row."""
        recs = [make_record("x", region=None), make_record("y", region="us-east-1")]
        rows = aggregate(recs, "region")
        assert rows[-1].key is None
        assert rows[-1].to_dict("region")["region"] == "Unknown"

    def test_empty_records(self):
        """No records give no rows."""
        assert time_horizon_series([]) == []

    def test_trend_accuracy_rows(self, records):
        """Trend accuracy is averaged per instance family."""
        rows = trend_accuracy_rows(records)
        assert [r["instance_family"] for r in rows] == ["c6g", "m5"]
        assert rows[0]["avg_trend_accuracy"] == 50.0
        assert rows[1]["count"] == 3


class TestSizeOrdering:
    """Size values order by rank with unknown sizes last."""

    def test_order_groups(self):
        """Unrecognized sizes sort after every ranked size."""
        assert order_groups("size", ["metal", "small", "2xlarge", "unknownsize"]) == [
            "small", "2xlarge", "metal", "unknownsize",
        ]

    def test_none_after_unknown(self):
        """A missing size sorts after unrecognized ones."""
        assert order_groups("size", [None, "unknownsize", "nano"]) == ["nano", "unknownsize", None]


class TestHeatmap:
    """Tests for the instance type x timestep heatmap."""

    def test_cells_are_means(self):
        """Cells average MAPE per (instance type, timestep); untyped records are dropped."""
        recs = [
            make_record("a", 0, mape=10.0, instance_type="m5.large"),
            make_record("b", 0, mape=30.0, instance_type="m5.large"),
            make_record("c", 1, mape=5.0, instance_type="c5.large"),
            make_record("d", 1, mape=7.0),
        ]
        cells = instance_time_series(recs)
        lookup = {(c.instance_type, c.time_step): c for c in cells}
        assert lookup[("m5.large", 0)].mape == 20.0
        assert lookup[("m5.large", 0)].count == 2
        assert len(cells) == 2

    def test_sort_by_family(self):
        """Family order sorts by prefix, then by full name."""
        types = ["m5.large", "c6g.xlarge", "c5.large"]
        assert sort_instance_types(types, "family") == ["c5.large", "c6g.xlarge", "m5.large"]

    def test_sort_by_generation_descending(self):
        """Generation order can be reversed."""
        types = ["m5.large", "c6g.xlarge", "r7i.large"]
        assert sort_instance_types(types, "generation", descending=True) == [
            "r7i.large", "c6g.xlarge", "m5.large",
        ]

    def test_sort_by_size(self):
        """Size order uses the size rank."""
        types = ["m5.metal", "m5.large", "c5.2xlarge"]
        assert sort_instance_types(types, "size") == ["m5.large", "c5.2xlarge", "m5.metal"]

    def test_sort_unknown_criterion(self):
        """An unknown sort criterion raises ValueError."""
        with pytest.raises(ValueError):
            sort_instance_types(["m5.large"], "price")

    def test_matrix_fills_gaps_with_none(self):
        """Missing (type, timestep) cells are None in the matrix."""
        recs = [
            make_record("a", 0, mape=10.0, instance_type="m5.large"),
            make_record("a", 2, mape=12.0, instance_type="m5.large"),
            make_record("b", 0, mape=3.0, instance_type="c5.large"),
        ]
        types, steps, values = heatmap_matrix(instance_time_series(recs))
        assert types == ["c5.large", "m5.large"]
        assert steps == [0, 2]
        assert values == [[3.0, None], [10.0, 12.0]]
