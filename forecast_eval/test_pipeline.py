"""
Tests for the dashboard pipeline, state and output directory.

Run with: pytest forecast_eval/test_pipeline.py -v
"""

import json

import pytest

from .config import DashboardConfig
from .filters import FilterState
from .loader import Document, InvalidDocumentError
from .output import OutputWriter, load_results
from .pipeline import DashboardState, DocumentRegistry, compute_bundle


def _metric(n, mape, trend=0.6, savings=4.0, perfect=8.0):
    return {"n_timestep": n, "mape": mape, "mse": mape / 10, "sgnif_trend_acc": trend,
            "cost_savings": savings, "perfect_savings": perfect}


def _doc_text(model_name, offset=0.0, overall=None, hidden=64):
    doc = {
        "config": {"model_name": model_name, "model": {"hidden": hidden, "layers": 2}},
        "instances": {
            "i-1": {
                "metadata": {"instance_type": "m5.large", "region": "us-east-1", "av_zone": "us-east-1a"},
                "metrics": [_metric(0, 4.0 + offset), _metric(1, 8.0 + offset)],
            },
            "i-2": {
                "metadata": {"instance_type": "c6g.xlarge", "region": "eu-west-1", "av_zone": "eu-west-1a"},
                "metrics": [_metric(0, 12.0 + offset), _metric(1, 30.0 + offset)],
            },
            "i-3": {
                "metadata": {"instance_type": "m5.metal", "region": "us-east-1", "av_zone": "us-east-1b"},
                "metrics": [_metric(0, 60.0 + offset, savings=-2.0)],
            },
        },
    }
    if overall is not None:
        doc["overall_metrics"] = overall
    return json.dumps(doc)


@pytest.fixture
def doc_files(tmp_path):
    a = tmp_path / "model_a.json"
    a.write_text(_doc_text("alpha"))
    b = tmp_path / "model_b.json"
    b.write_text(_doc_text("beta", offset=2.0, hidden=128))
    return a, b


class TestComputeBundle:
    """Tests for compute_bundle."""

    def test_bundle_shape(self):
        """The bundle exports every collection under its output key."""
        doc = Document.from_text(_doc_text("alpha"), "a.json")
        d = compute_bundle(doc.records).to_dict()
        assert set(d) == {
            "time_horizon_data", "generation_data", "size_data", "error_threshold_data",
            "region_data", "instance_family_data", "az_error_data",
            "instance_time_series_data", "trend_accuracy_data", "metrics_distribution_data",
            "cost_efficiency_data", "overall_metrics", "record_count",
        }
        assert d["record_count"] == 5
        assert [row["timestep"] for row in d["time_horizon_data"]] == [0, 1]
        assert [row["size"] for row in d["size_data"]] == ["large", "xlarge", "metal"]
        assert [row["order"] for row in d["size_data"]] == [5, 6, 20]

    def test_filters_applied(self):
        """Filters restrict every collection."""
        doc = Document.from_text(_doc_text("alpha"), "a.json")
        bundle = compute_bundle(doc.records, FilterState(region={"eu-west-1"}))
        assert bundle.record_count == 2
        assert [r.key for r in bundle.region] == ["eu-west-1"]

    def test_empty_filter_result(self):
        """A filter matching nothing gives an empty, serializable bundle."""
        doc = Document.from_text(_doc_text("alpha"), "a.json")
        bundle = compute_bundle(doc.records, FilterState(region={"nowhere"}))
        assert bundle.record_count == 0
        assert bundle.time_horizon == []
        assert bundle.cost_efficiency == []
        assert bundle.overall_metrics.total_instances == 0
        json.dumps(bundle.to_dict())

    def test_trend_fractions_become_percent(self):
        """Trend fractions are reported in percent."""
        doc = Document.from_text(_doc_text("alpha"), "a.json")
        bundle = compute_bundle(doc.records)
        assert bundle.time_horizon[0]["sgnif_trend_acc"] == pytest.approx(60.0)

    def test_config_bins(self):
        """Histogram bin counts come from the config."""
        doc = Document.from_text(_doc_text("alpha"), "a.json")
        config = DashboardConfig.from_dict({"trend_histogram": {"bins": 10}})
        bundle = compute_bundle(doc.records, config=config)
        assert len(bundle.metrics_distribution.trend) == 10


class TestDocumentRegistry:
    """Tests for DocumentRegistry."""

    def test_duplicate_name_registered_once(self, doc_files):
        """Loading the same file twice keeps the first document."""
        registry = DocumentRegistry()
        first = registry.load(doc_files[0])
        second = registry.load(doc_files[0])
        assert first is second
        assert len(registry) == 1

    def test_duplicate_text_upload(self):
        """A second upload under the same name is ignored."""
        registry = DocumentRegistry()
        registry.add_text(_doc_text("alpha"), "x.json")
        registry.add_text(_doc_text("other"), "x.json")
        assert registry.names == ["x.json"]
        assert registry.get("x.json").model_name == "alpha"

    def test_failed_load_leaves_registry_unchanged(self):
        """An invalid upload adds nothing."""
        registry = DocumentRegistry()
        with pytest.raises(InvalidDocumentError):
            registry.add_text("{}", "bad.json")
        assert len(registry) == 0

    def test_unknown_name(self):
        """Looking up an unknown name raises KeyError."""
        with pytest.raises(KeyError):
            DocumentRegistry().get("missing.json")

    def test_remove(self, doc_files):
        """Removed documents are no longer registered."""
        registry = DocumentRegistry()
        registry.load(doc_files[0])
        registry.remove("model_a.json")
        assert "model_a.json" not in registry


class TestDashboardState:
    """Tests for DashboardState."""

    def test_primary_secondary_assignment(self, doc_files):
        """The first two documents become primary and secondary."""
        state = DashboardState()
        state.load(doc_files[0])
        assert state.primary == "model_a.json"
        assert not state.comparison_mode
        state.load(doc_files[1])
        assert state.secondary == "model_b.json"
        assert state.comparison_mode

    def test_reload_does_not_become_secondary(self, doc_files):
        """Reloading the primary does not start comparison mode."""
        state = DashboardState()
        state.load(doc_files[0])
        state.load(doc_files[0])
        assert state.secondary is None

    def test_select_unknown(self, doc_files):
        """Selecting an unknown document raises KeyError."""
        state = DashboardState()
        state.load(doc_files[0])
        with pytest.raises(KeyError):
            state.select("model_a.json", "missing.json")

    def test_filter_recomputation(self, doc_files):
        """Bundles follow filter changes and clearing restores them."""
        state = DashboardState()
        state.load(doc_files[0])
        full = state.bundle("model_a.json").record_count
        state.set_filter("time_horizons", [0])
        assert state.bundle("model_a.json").record_count == 3
        state.clear_filters()
        assert state.bundle("model_a.json").record_count == full

    def test_filter_options_from_primary(self, doc_files):
        """Filter options come from the primary document."""
        state = DashboardState()
        assert state.filter_options()["region"] == []
        state.load(doc_files[0])
        assert state.filter_options()["sizes"] == ["large", "xlarge", "metal"]

    def test_summary_uses_precomputed_when_unfiltered(self):
        """Precomputed metrics are used only while no filter is active."""
        state = DashboardState()
        state.load_text(_doc_text("alpha", overall={"avg_mape": 1.23}), "pre.json")
        assert state.summary_metrics("pre.json")["avg_mape"] == 1.23
        state.set_filter("region", ["us-east-1"])
        assert state.summary_metrics("pre.json")["avg_mape"] == pytest.approx((4.0 + 60.0) / 2)

    def test_unusable_precomputed_values_still_compare(self):
        """Non-numeric precomputed values are dropped before comparing."""
        state = DashboardState()
        state.load_text(_doc_text("alpha", overall={"avg_mape": "12.5", "avg_mse": "abc"}), "pre.json")
        state.load_text(_doc_text("beta"), "plain.json")
        summary = state.summary_metrics("pre.json")
        assert summary == {"avg_mape": 12.5}
        rows = {r.key: r for r in state.compare()}
        assert rows["avg_mape"].primary == 12.5
        assert rows["avg_mse"].primary is None

    def test_compare(self, doc_files):
        """The lower-MAPE primary wins its row."""
        state = DashboardState()
        state.load(doc_files[0])
        state.load(doc_files[1])
        rows = {r.key: r for r in state.compare()}
        assert rows["avg_mape"].better == "primary"
        assert rows["avg_mape"].difference == pytest.approx(2.0)

    def test_config_differences(self, doc_files):
        """Config differences list the changed leaf paths."""
        state = DashboardState()
        state.load(doc_files[0])
        state.load(doc_files[1])
        paths = [d.path for d in state.config_differences()]
        assert paths == ["model_name", "model.hidden"]

    def test_rank_all_by_model_name(self, doc_files):
        """Rankings name models by their configured model name."""
        state = DashboardState()
        state.load(doc_files[0])
        state.load(doc_files[1])
        ranking = state.rank_all()
        assert ranking["avg_mape"]["models"] == ["alpha"]

    def test_documents_are_independent(self, doc_files):
        """Loading a second document leaves the first one's bundle unchanged."""
        state = DashboardState()
        state.load(doc_files[0])
        before = state.bundle("model_a.json").to_dict()
        state.load(doc_files[1])
        assert state.bundle("model_a.json").to_dict()["size_data"] == before["size_data"]


class TestOutputWriter:
    """Tests for the output directory."""

    def test_single_document(self, doc_files, tmp_path):
        """One document writes results, config, summary and its bundle."""
        state = DashboardState()
        state.load(doc_files[0])
        out = tmp_path / "out"
        OutputWriter(out).write(state)

        assert (out / "results.json").exists()
        assert (out / "config.json").exists()
        assert (out / "summary.md").exists()
        assert (out / "bundles" / "model_a.json").exists()
        assert not (out / "comparison.csv").exists()

        results = load_results(out)
        assert results["meta"]["primary"] == "model_a.json"
        assert results["bundles"]["model_a.json"]["record_count"] == 5

    def test_comparison_files(self, doc_files, tmp_path):
        """Two documents also write comparison and config diff CSVs."""
        state = DashboardState()
        state.load(doc_files[0])
        state.load(doc_files[1])
        out = tmp_path / "out"
        OutputWriter(out).write(state)

        comparison = (out / "comparison.csv").read_text().splitlines()
        assert comparison[0].startswith("key,label,primary,secondary")
        diff = (out / "config_diff.csv").read_text().splitlines()
        assert diff[0] == "path,primary,secondary"
        assert any(line.startswith("model.hidden,64,128") for line in diff)

    def test_plots_written(self, doc_files, tmp_path):
        """generate_plots renders every chart of each document."""
        matplotlib = pytest.importorskip("matplotlib")
        matplotlib.use("Agg")
        state = DashboardState()
        state.load(doc_files[0])
        out = tmp_path / "out"
        OutputWriter(out).write(state, generate_plots=True)

        plots = out / "plots"
        for chart in ("time_horizon", "error_by_size", "error_by_zone",
                      "heatmap", "distributions", "cost_efficiency"):
            assert (plots / f"model_a_{chart}.png").exists()
