"""
Human-readable summaries of dashboard bundles and model comparisons.
"""

from typing import Dict, Optional, Sequence

from .compare import ConfigDifference, MetricComparison, format_config_value, readable_label
from .distribution import ERROR_CATEGORIES
from .formatter import (
    badge,
    fmt_signed_pct,
    fmt_value,
    heading,
    kv_block,
    mark_best,
    note_block,
    table,
    title,
)
from .pipeline import DashboardBundle


def _pct(value: Optional[float]) -> str:
    return "N/A" if value is None else fmt_value(value) + "%"


def format_bundle_summary(name: str, bundle: DashboardBundle) -> str:
    """Headline numbers and the main grouped tables of one document."""
    overall = bundle.overall_metrics
    headline = overall.to_dict()
    lines = [title(name), ""]

    lines.append(kv_block([
        ("Records", str(bundle.record_count)),
        ("Instances", str(overall.total_instances)),
        ("Timesteps", str(len(bundle.time_horizon))),
    ]))
    lines.append("")

    if bundle.record_count == 0:
        lines.append(note_block(["No records match the active filters"]))
        return "\n".join(lines)

    lines.append(badge("Average MAPE (per instance)", fmt_value(headline.get("avg_mape"))))
    lines.append(badge("Average MAPE (timestep weighted)",
                       fmt_value(overall.timestep_weighted.get("mape"))))
    lines.append(badge("Trend accuracy", _pct(headline.get("avg_sgnif_trend_acc"))))
    lines.append(badge("Cost savings", _pct(headline.get("avg_cost_savings"))))
    lines.append(badge("Savings efficiency", _pct(headline.get("avg_savings_efficiency"))))
    lines.append("")

    lines.append(heading("Time horizon"))
    lines.append(table(
        ["Timestep", "Count", "MAPE", "MSE", "Trend acc %", "Savings %"],
        [[r.key, r.count, fmt_value(r["mape"]), fmt_value(r["mse"], 4),
          fmt_value(r["sgnif_trend_acc"]), fmt_value(r["cost_savings"])]
         for r in bundle.time_horizon],
        aligns=['r'] * 6,
    ))
    lines.append("")

    lines.append(heading("By size"))
    lines.append(table(
        ["Size", "Count", "MAPE", "Trend acc %", "Savings %"],
        [[r.to_dict("size")["size"], r.count, fmt_value(r["mape"]),
          fmt_value(r["sgnif_trend_acc"]), fmt_value(r["cost_savings"])]
         for r in bundle.size],
        aligns=['l', 'r', 'r', 'r', 'r'],
    ))
    lines.append("")

    lines.append(heading("MAPE error ranges by size (%)"))
    short = [label.split(" (")[1].rstrip(")") for label, _ in ERROR_CATEGORIES]
    lines.append(table(
        ["Size"] + short,
        [[r.to_dict("size")["size"]] + [fmt_value(r.percentages[label], 1)
                                       for label, _ in ERROR_CATEGORIES]
         for r in bundle.error_thresholds],
        aligns=['l'] + ['r'] * len(short),
    ))
    lines.append("")

    if bundle.cost_efficiency:
        lines.append(heading("Cost efficiency by size"))
        lines.append(table(
            ["Size", "Savings %", "Perfect %", "Efficiency %"],
            [[r.size, fmt_value(r.cost_savings), fmt_value(r.perfect_savings),
              fmt_value(r.savings_efficiency)] for r in bundle.cost_efficiency],
            aligns=['l', 'r', 'r', 'r'],
        ))

    return "\n".join(lines)


def format_comparison(
    rows: Sequence[MetricComparison],
    primary_name: str,
    secondary_name: Optional[str],
) -> str:
    """Side-by-side metric table with the better value marked."""
    headers = ["Metric", primary_name]
    if secondary_name:
        headers += [secondary_name, "Diff"]
    body = []
    for row in rows:
        cells = [row.label, mark_best(fmt_value(row.primary), row.better == "primary")]
        if secondary_name:
            cells.append(mark_best(fmt_value(row.secondary), row.better == "secondary"))
            cells.append(fmt_signed_pct(row.pct_difference))
        body.append(cells)
    return "\n".join([
        heading("Model comparison"),
        table(headers, body, aligns=['l'] + ['r'] * (len(headers) - 1)),
    ])


def format_config_diff(
    differences: Sequence[ConfigDifference],
    primary_name: str,
    secondary_name: str,
) -> str:
    if not differences:
        return note_block(["Both models have identical configurations"])
    return "\n".join([
        heading("Configuration differences"),
        table(
            ["Parameter", primary_name, secondary_name],
            [[readable_label(d.path), format_config_value(d.primary),
              format_config_value(d.secondary)] for d in differences],
        ),
    ])


def format_ranking(ranking: Dict[str, Dict]) -> str:
    """All loaded models per metric, best value marked."""
    if not ranking:
        return note_block(["No metrics to rank"])
    model_names = list(next(iter(ranking.values()))["values"])
    rows = []
    for info in ranking.values():
        cells = [info["label"]]
        for name in model_names:
            value = info["values"].get(name)
            cells.append(mark_best(fmt_value(value), name in info["models"]))
        rows.append(cells)
    return "\n".join([
        heading("All models"),
        table(["Metric"] + model_names, rows, aligns=['l'] + ['r'] * len(model_names)),
    ])
