"""
Benchmark run schemas (Pydantic v2).

What this file does
-------------------
A "benchmark run" is the persisted record of one evaluation: which domain the
scenarios came from, which model answered them, and how each answer scored.

Runs are written by the benchmark execution process, not by this service.
We only read, export and delete them, so these models are deliberately
*permissive*:

- scenario records are opaque mappings (their shape belongs to the scenario
  generator, not to us)
- unknown keys are kept (`extra="allow"`) so a run read from disk and written
  back is unchanged

Wire format note
----------------
Run documents on disk use camelCase keys (`domainId`, `promptStrategy`).
The models below use snake_case attributes with camelCase aliases, and
`populate_by_name=True` so Python code can construct them either way.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Shared config for every run document model.
_DOCUMENT_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class RolloutResult(BaseModel):
    """One model answer for one scenario (runs can repeat a scenario several times)."""

    model_config = _DOCUMENT_CONFIG

    prediction: float = Field(..., description="Numeric estimate returned by the model.")
    reasoning: str = Field(default="", description="Free-text reasoning returned by the model.")
    latency_ms: float = Field(default=0, description="Wall-clock latency of the call in ms.")


class ScenarioResult(BaseModel):
    """
    Aggregated outcome for a single scenario.

    Results start as "pending" placeholders and are filled in as the run
    progresses, so every metric is optional.
    """

    model_config = _DOCUMENT_CONFIG

    scenario_id: str = Field(..., description="ID of the scenario this result belongs to.")
    status: str = Field(default="pending", description="pending/running/completed/failed.")
    rollouts: list[RolloutResult] = Field(default_factory=list)
    mean_prediction: float | None = None
    std_deviation: float | None = None
    error: float | None = Field(default=None, description="meanPrediction - groundTruth.")
    absolute_error: float | None = None
    within_tolerance: bool | None = None
    rollout_consistency: float | None = Field(
        default=None, description="Percent of rollouts within tolerance."
    )


class AggregateMetrics(BaseModel):
    """Run-level metrics computed once all scenarios are finished."""

    model_config = _DOCUMENT_CONFIG

    hit_rate: float | None = Field(
        default=None, description="Percent of scenarios within tolerance."
    )
    mean_error: float | None = None
    rmse: float | None = None
    avg_latency_ms: float | None = None


class BenchmarkRun(BaseModel):
    """
    Stored/returned benchmark run.

    Only `id`, `domainId` and `scenarios` are required; everything else is
    descriptive metadata recorded by the execution process.
    """

    model_config = _DOCUMENT_CONFIG

    id: str = Field(..., min_length=1, description="Opaque unique run identifier.")
    timestamp: str | None = Field(default=None, description="ISO-8601 start time of the run.")
    domain_id: str = Field(..., description="Scenario domain used to generate the run.")
    model: str | None = Field(default=None, description="Model identifier (e.g. 'openai/gpt-4o').")
    prompt_strategy: str | None = None
    prompt_template: str | None = None
    status: str | None = None

    # Scenario records are opaque: the only key this service ever interprets
    # for derivation is `twinId`.
    scenarios: list[dict[str, Any]] = Field(..., description="Ordered scenario records.")
    results: list[ScenarioResult] = Field(default_factory=list)

    use_narrative_descriptions: bool = Field(
        default=False, description="Whether scenarios carry LLM-written narratives."
    )
    narrative_model: str | None = Field(
        default=None, description="Model used to write narratives (if any)."
    )
    aggregate_metrics: AggregateMetrics | None = None

    def result_for(self, scenario_id: Any) -> ScenarioResult | None:
        """Return the result recorded for `scenario_id`, or None."""

        for result in self.results:
            if result.scenario_id == scenario_id:
                return result
        return None


class RunSummary(BaseModel):
    """Compact run view for list endpoints (no scenarios or results)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    timestamp: str | None = None
    domain_id: str
    model: str | None = None
    prompt_strategy: str | None = None
    status: str | None = None
    scenario_count: int = Field(..., ge=0)
    hit_rate: float | None = None

    @classmethod
    def from_run(cls, run: BenchmarkRun) -> RunSummary:
        return cls(
            id=run.id,
            timestamp=run.timestamp,
            domain_id=run.domain_id,
            model=run.model,
            prompt_strategy=run.prompt_strategy,
            status=run.status,
            scenario_count=len(run.scenarios),
            hit_rate=run.aggregate_metrics.hit_rate if run.aggregate_metrics else None,
        )
