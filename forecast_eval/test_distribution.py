"""
Tests for histograms, cumulative display domains and MAPE error buckets.

Run with: pytest forecast_eval/test_distribution.py -v
"""

import pytest

from .distribution import (
    ERROR_CATEGORIES,
    HistogramBin,
    classify_mape,
    cumulative_distribution,
    error_buckets,
    first_record_per_instance,
    histogram,
    metrics_distribution,
    value_domain,
)
from .model import FlatRecord, InstanceMetadata, MetricSample


def make_record(instance_id, n_timestep=0, mape=10.0, trend=50.0, savings=2.0, **meta):
    sample = MetricSample(n_timestep=n_timestep, mape=mape, mse=1.0,
                          sgnif_trend_acc=trend, cost_savings=savings)
    return FlatRecord(instance_id=instance_id, metadata=InstanceMetadata.from_dict(meta), sample=sample)


class TestHistogram:
    """Tests for the fixed-width histogram."""

    def test_counts_and_percentages(self):
        """Counts cover every value and percentages add to 100."""
        values = [0.0, 1.0, 2.5, 9.9, 10.0]
        bins = histogram(values, 0, 10, 5)
        assert len(bins) == 5
        assert sum(b.count for b in bins) == len(values)
        assert sum(b.percentage for b in bins) == pytest.approx(100.0)

    def test_max_value_lands_in_last_bin(self):
        """The upper bound falls in the last bin."""
        bins = histogram([10.0], 0, 10, 5)
        assert bins[-1].count == 1

    def test_midpoints(self):
        """Bins are labelled by their midpoints."""
        bins = histogram([1.0], 0, 10, 5)
        assert [b.midpoint for b in bins] == [1.0, 3.0, 5.0, 7.0, 9.0]

    def test_out_of_range_values_clamped(self):
        """Values outside the domain go to the edge bins."""
        bins = histogram([-5.0, 50.0], 0, 10, 2)
        assert [b.count for b in bins] == [1, 1]

    def test_empty_values(self):
        """No values give no bins."""
        assert histogram([], 0, 10, 5) == []

    def test_degenerate_domain(self):
        """An empty domain is widened by one unit."""
        bins = histogram([3.0, 3.0], 3, 3, 4)
        assert sum(b.count for b in bins) == 2
        assert bins[0].midpoint == pytest.approx(3.125)

    def test_invalid_bin_count(self):
        """A bin count below one raises ValueError."""
        with pytest.raises(ValueError):
            histogram([1.0], 0, 10, 0)

    def test_to_dict_keys(self):
        """Bins export value, count and percentage."""
        assert set(histogram([1.0], 0, 2, 1)[0].to_dict()) == {"value", "count", "percentage"}


class TestValueDomain:
    """Tests for value_domain."""

    def test_floor_and_ceil(self):
        """The domain is the floor of the minimum and ceil of the maximum."""
        assert value_domain([1.5, 7.2], (0, 100)) == (1, 8)

    def test_default_when_empty(self):
        """No values fall back to the default domain."""
        assert value_domain([], (-15, 25)) == (-15, 25)


class TestCumulative:
    """Tests for the cumulative re-binning and display domain."""

    def test_cumulative_reaches_100(self):
        """Unit bins span the domain and the cumulative share ends at 100."""
        bins = histogram([10.0, 20.0, 30.0, 40.0], 0, 100, 50)
        cum = cumulative_distribution(bins, (0, 100))
        assert cum.bins[-1].cumulative_percentage == pytest.approx(100.0)
        assert cum.bins[0].value == 0
        assert cum.bins[-1].value == 100

    def test_bounds_are_smallest_reaching_threshold(self):
        """Bounds are the first values reaching the low and high shares."""
        bins = [
            HistogramBin(midpoint=10.0, count=1, percentage=50.0),
            HistogramBin(midpoint=20.0, count=1, percentage=50.0),
        ]
        cum = cumulative_distribution(bins, (0, 30), low_pct=2, high_pct=98)
        assert cum.lower == 10
        assert cum.upper == 20

    def test_domain_is_symmetric_union(self):
        """The display domain adds the mirror of the bounds."""
        bins = [
            HistogramBin(midpoint=10.0, count=1, percentage=50.0),
            HistogramBin(midpoint=20.0, count=1, percentage=50.0),
        ]
        cum = cumulative_distribution(bins, (0, 40))
        # Mirror of [10, 20] around 20 is [20, 30]
        assert cum.domain == (10, 30)

    def test_display_bins_keep_ticks_and_data(self):
        """Display bins keep tick values and bins holding data."""
        bins = [HistogramBin(midpoint=13.0, count=1, percentage=100.0)]
        cum = cumulative_distribution(bins, (0, 20), step=10)
        values = [b.value for b in cum.display_bins]
        assert 0 in values and 10 in values and 20 in values
        assert 13 in values
        assert 7 not in values

    def test_half_up_rounding(self):
        """Midpoints on .5 round up to the next unit."""
        bins = [HistogramBin(midpoint=2.5, count=1, percentage=100.0)]
        cum = cumulative_distribution(bins, (0, 5))
        assert [b.value for b in cum.bins if b.percentage > 0] == [3]

    def test_empty_histogram_uses_default_domain(self):
        """An empty histogram spans the default domain."""
        cum = cumulative_distribution([], (-15, 25), step=5)
        assert cum.bins[0].value == -15
        assert cum.bins[-1].value == 25


class TestMetricsDistribution:
    """Tests for per-instance distributions."""

    def test_one_value_per_instance(self):
        """Only each instance's earliest sample is counted."""
        recs = [
            make_record("a", 0, trend=60.0),
            make_record("a", 1, trend=10.0),
            make_record("b", 0, trend=80.0),
        ]
        assert [r.n_timestep for r in first_record_per_instance(recs)] == [0, 0]
        dist = metrics_distribution(recs)
        assert sum(b.count for b in dist.trend) == 2
        assert dist.trend_domain == (60, 80)

    def test_empty_uses_defaults(self):
        """No records give empty histograms over the default domains."""
        dist = metrics_distribution([])
        assert dist.trend == []
        assert dist.trend_domain == (0, 100)
        assert dist.savings_domain == (-15, 25)
        d = dist.to_dict()
        assert d["minMaxValues"]["savingsMin"] == -15
        assert d["cumulative"]["trend"]["domain"] == [0, 100]


class TestErrorBuckets:
    """Tests for MAPE error-range buckets."""

    def test_classification_boundaries(self):
        """Category upper bounds are inclusive."""
        assert classify_mape(0.0) == "Very Accurate (< 1%)"
        assert classify_mape(1.0) == "Very Accurate (< 1%)"
        assert classify_mape(1.01) == "Good (1-5%)"
        assert classify_mape(100.0) == "Unreliable (50-100%)"
        assert classify_mape(250.0) == "Extreme Error (> 100%)"

    def test_rows_sum_to_100(self):
        """Each row's category shares add up to 100."""
        recs = [
            make_record("a", mape=0.5, instance_type="m5.large", av_zone="z1"),
            make_record("b", mape=3.0, instance_type="m5.large", av_zone="z1"),
            make_record("c", mape=15.0, instance_type="m5.large", av_zone="z2"),
            make_record("d", mape=150.0, instance_type="c5.xlarge", av_zone="z2"),
        ]
        for key in ("size", "av_zone"):
            for row in error_buckets(recs, key):
                assert sum(row.percentages.values()) == pytest.approx(100.0)
                assert set(row.percentages) == {label for label, _ in ERROR_CATEGORIES}

    def test_size_rows_ordered(self):
        """Size rows follow the size rank."""
        recs = [
            make_record("a", instance_type="m5.metal"),
            make_record("b", instance_type="m5.nano"),
        ]
        assert [r.key for r in error_buckets(recs, "size")] == ["nano", "metal"]

    def test_invalid_key(self):
        """Only size and zone groupings are supported."""
        with pytest.raises(ValueError):
            error_buckets([], "region")
