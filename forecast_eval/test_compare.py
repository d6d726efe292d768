"""
Tests for model comparison and config diffs.

Run with: pytest forecast_eval/test_compare.py -v
"""

import pytest

from .compare import (
    METRICS,
    better_of,
    compare_models,
    diff_configs,
    format_config_value,
    rank_models,
    readable_label,
)


class TestBetterOf:
    """Tests for choosing the winning side of a metric."""

    def test_lower_is_better(self):
        """For error metrics the smaller value wins."""
        assert better_of(5.0, 7.0, lower_is_better=True) == "primary"
        assert better_of(9.0, 7.0, lower_is_better=True) == "secondary"

    def test_higher_is_better(self):
        """For accuracy metrics the larger value wins."""
        assert better_of(80.0, 70.0, lower_is_better=False) == "primary"

    def test_tie_goes_to_secondary(self):
        """Equal values go to the secondary model."""
        assert better_of(5.0, 5.0, lower_is_better=True) == "secondary"
        assert better_of(5.0, 5.0, lower_is_better=False) == "secondary"

    def test_missing_value(self):
        """No winner when either side is missing."""
        assert better_of(None, 5.0, lower_is_better=True) is None


class TestCompareModels:
    """Tests for compare_models."""

    def test_rows_per_metric(self):
        """One row per known metric with differences relative to primary."""
        rows = compare_models({"avg_mape": 10.0}, {"avg_mape": 12.0})
        assert [r.key for r in rows] == [m.key for m in METRICS]
        mape = rows[0]
        assert mape.better == "primary"
        assert mape.difference == pytest.approx(2.0)
        assert mape.pct_difference == pytest.approx(20.0)

    def test_trend_higher_wins(self):
        """Higher trend accuracy wins the row."""
        rows = compare_models({"avg_sgnif_trend_acc": 60.0}, {"avg_sgnif_trend_acc": 70.0})
        trend = [r for r in rows if r.key == "avg_sgnif_trend_acc"][0]
        assert trend.better == "secondary"

    def test_without_secondary(self):
        """Without a secondary model rows carry no winner or difference."""
        rows = compare_models({"avg_mape": 10.0}, None)
        assert rows[0].secondary is None
        assert rows[0].better is None
        assert rows[0].difference is None

    def test_to_dict(self):
        """Rows export their winner and differences."""
        d = compare_models({"avg_mape": 10.0}, {"avg_mape": 10.0})[0].to_dict()
        assert d["better"] == "secondary"
        assert d["pct_difference"] == 0.0


class TestRankModels:
    """Tests for rank_models."""

    def test_best_per_metric(self):
        """Every model reaching the best value is listed."""
        ranking = rank_models({
            "a": {"avg_mape": 10.0, "avg_cost_savings": 3.0},
            "b": {"avg_mape": 8.0, "avg_cost_savings": 3.0},
            "c": {"avg_mape": 12.0},
        })
        assert ranking["avg_mape"]["best"] == 8.0
        assert ranking["avg_mape"]["models"] == ["b"]
        assert ranking["avg_cost_savings"]["models"] == ["a", "b"]
        assert ranking["avg_cost_savings"]["values"]["c"] is None

    def test_unreported_metric_omitted(self):
        """Metrics no model reports are left out."""
        assert "avg_mse" not in rank_models({"a": {"avg_mape": 1.0}})


class TestDiffConfigs:
    """Tests for diff_configs."""

    def test_identical(self):
        """Equal configs give no differences."""
        config = {"lr": 0.01, "layers": [64, 32], "opt": {"name": "adam"}}
        assert diff_configs(config, dict(config)) == []

    def test_nested_leaf_paths(self):
        """Nested differences are reported by dotted leaf path."""
        a = {"model": {"hidden": 64, "dropout": 0.1}, "epochs": 10}
        b = {"model": {"hidden": 128, "dropout": 0.1}, "epochs": 10}
        diffs = diff_configs(a, b)
        assert [(d.path, d.primary, d.secondary) for d in diffs] == [("model.hidden", 64, 128)]

    def test_lists_compared_whole(self):
        """Lists are compared as single values."""
        diffs = diff_configs({"layers": [64, 32]}, {"layers": [64, 16]})
        assert len(diffs) == 1
        assert diffs[0].path == "layers"
        assert diffs[0].secondary == [64, 16]

    def test_key_on_one_side_only(self):
        """A key present on one side is reported with None on the other."""
        diffs = diff_configs({"a": 1}, {"b": 2})
        assert [(d.path, d.primary, d.secondary) for d in diffs] == [("a", 1, None), ("b", None, 2)]

    def test_dict_against_scalar(self):
        """A mapping against a scalar is one difference at that path."""
        diffs = diff_configs({"opt": {"name": "adam"}}, {"opt": "sgd"})
        assert diffs[0].path == "opt"

    def test_missing_configs(self):
        """Two missing configs give no differences."""
        assert diff_configs(None, None) == []


class TestDisplayHelpers:
    """Tests for the config display helpers."""

    def test_readable_label(self):
        """Dotted paths become capitalized breadcrumbs."""
        assert readable_label("model_config.hidden_size") == "Model_config > Hidden_size"

    def test_format_long_list(self):
        """Long lists are shortened with an item count."""
        assert format_config_value([1, 2, 3, 4]) == "[1, 2, ... (4 items)]"

    def test_format_values(self):
        """None, short lists, mappings and numbers each get a compact form."""
        assert format_config_value(None) == "-"
        assert format_config_value([1, 2]) == "[1, 2]"
        assert format_config_value({"a": 1}) == "{...}"
        assert format_config_value(0.5) == "0.5"
