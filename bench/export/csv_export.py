"""
CSV export helpers (pure functions).

Two variants are produced for a run:
- summary:  one row per scenario with the aggregated result metrics
- detailed: one row per rollout, with error recomputed against ground truth

Scenario records are opaque mappings, so every field is read defensively:
a scenario missing `groundTruth` still exports, just with blank cells.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

from bench.schemas.run import BenchmarkRun

ExportVariant = Literal["summary", "detailed"]

REASONING_PREVIEW_CHARS = 200

SUMMARY_HEADERS = [
    "Scenario ID",
    "Anchor",
    "Deltas",
    "Distractors",
    "Ground Truth",
    "Tolerance",
    "Mean Prediction",
    "Std Deviation",
    "Error",
    "Absolute Error",
    "Within Tolerance",
    "Rollout Consistency",
    "Status",
]

DETAILED_HEADERS = [
    "Scenario ID",
    "Anchor",
    "Deltas",
    "Distractors",
    "Ground Truth",
    "Tolerance",
    "Rollout Index",
    "Prediction",
    "Error",
    "Absolute Error",
    "Within Tolerance",
    "Latency (ms)",
    "Reasoning Preview",
]


def _cell(value: Any) -> str:
    """Render one value the way spreadsheet users expect (true/false, 5 not 5.0)."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return buf.getvalue()


def _join(values: Any) -> str:
    if not values:
        return ""
    if isinstance(values, str):
        return values
    return "; ".join(str(v) for v in values)


def _ground_truth(scenario: dict[str, Any]) -> tuple[float | None, float | None]:
    truth = scenario.get("groundTruth")
    if not isinstance(truth, dict):
        return None, None
    return truth.get("value"), truth.get("tolerance")


def _scenario_columns(scenario: dict[str, Any]) -> list[Any]:
    """The six leading columns shared by both variants."""

    value, tolerance = _ground_truth(scenario)
    anchor = scenario.get("anchor")
    return [
        scenario.get("id"),
        anchor.replace("_", " ") if isinstance(anchor, str) else anchor,
        _join(scenario.get("appliedDeltas")),
        _join(scenario.get("distractors")),
        value,
        tolerance,
    ]


def _reasoning_preview(reasoning: str) -> str:
    if not reasoning:
        return ""
    preview = reasoning[:REASONING_PREVIEW_CHARS].replace("\n", " ")
    if len(reasoning) > REASONING_PREVIEW_CHARS:
        preview += "..."
    return preview


def generate_summary_csv(run: BenchmarkRun) -> str:
    """One row per scenario; scenarios without a result are reported as 'pending'."""

    rows: list[list[Any]] = []
    for scenario in run.scenarios:
        result = run.result_for(scenario.get("id"))
        if result is None:
            rows.append(_scenario_columns(scenario) + [None] * 6 + ["pending"])
            continue
        rows.append(
            _scenario_columns(scenario)
            + [
                result.mean_prediction,
                result.std_deviation,
                result.error,
                result.absolute_error,
                result.within_tolerance,
                result.rollout_consistency,
                result.status,
            ]
        )
    return _to_csv(SUMMARY_HEADERS, rows)


def generate_detailed_csv(run: BenchmarkRun) -> str:
    """One row per rollout; a scenario with no rollouts gets a single placeholder row."""

    rows: list[list[Any]] = []
    for scenario in run.scenarios:
        leading = _scenario_columns(scenario)
        truth, tolerance = _ground_truth(scenario)
        result = run.result_for(scenario.get("id"))

        if result is None or not result.rollouts:
            rows.append(leading + [0] + [None] * 6)
            continue

        for index, rollout in enumerate(result.rollouts, start=1):
            error = abs_error = within = None
            if truth is not None:
                error = rollout.prediction - truth
                abs_error = abs(error)
                within = tolerance is not None and abs_error <= tolerance
                error = round(error, 3)
                abs_error = round(abs_error, 3)
            rows.append(
                leading
                + [
                    index,
                    rollout.prediction,
                    error,
                    abs_error,
                    within,
                    rollout.latency_ms,
                    _reasoning_preview(rollout.reasoning),
                ]
            )
    return _to_csv(DETAILED_HEADERS, rows)


def _run_date(run: BenchmarkRun) -> str:
    if run.timestamp:
        try:
            stamp = datetime.fromisoformat(run.timestamp.replace("Z", "+00:00"))
        except ValueError:
            stamp = None
        if stamp is not None:
            if stamp.tzinfo is not None:
                stamp = stamp.astimezone(timezone.utc)
            return stamp.date().isoformat()
    return datetime.now(timezone.utc).date().isoformat()


def generate_export_filename(run: BenchmarkRun, variant: ExportVariant) -> str:
    """
    Build a download filename, e.g. `benchmark-8995522b-gpt-4o-detailed-2026-01-18.csv`.

    The model part is the tail after the last '/', so 'openai/gpt-4o' -> 'gpt-4o'.
    """

    model_short = (run.model or "").split("/")[-1] or run.model or "unknown"
    suffix = "-detailed" if variant == "detailed" else ""
    return f"benchmark-{run.id[:8]}-{model_short}{suffix}-{_run_date(run)}.csv"
