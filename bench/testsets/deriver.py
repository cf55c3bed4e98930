"""
Derive a reusable test set from a benchmark run (pure function).

Why derive test sets from runs?
-------------------------------
Scenario generation is randomized. Once a run has produced a scenario list
worth keeping (a good baseline, an interesting failure mix), we freeze that
list as a named test set so later runs against other models or prompts see
exactly the same inputs.

This module does no I/O. Persisting the result is a separate, explicit step
(`storage.BACKEND.save_test_set(...)`), which is where name uniqueness is
enforced.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from bench.errors import InvalidInput
from bench.schemas.run import BenchmarkRun
from bench.schemas.test_set import TestSet

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"


def has_twins(scenarios: list[dict[str, Any]]) -> bool:
    """True if any scenario is paired with a twin (non-empty `twinId`)."""

    return any(scenario.get("twinId") for scenario in scenarios)


def default_description(run: BenchmarkRun) -> str:
    """
    Provenance text used when the caller does not supply a description.

    Example:
        "Test set extracted from run 8995522b. 11 scenarios using
         google/gemini-3-flash with persona prompt. Hit rate: 90.0%"
    """

    text = (
        f"Test set extracted from run {run.id[:8]}. "
        f"{len(run.scenarios)} scenarios using {run.model or 'unknown model'} "
        f"with {run.prompt_strategy or 'unknown'} prompt."
    )
    if run.aggregate_metrics is not None and run.aggregate_metrics.hit_rate is not None:
        text += f" Hit rate: {run.aggregate_metrics.hit_rate:.1f}%"
    return text


def _coerce_run(run: BenchmarkRun | Mapping[str, Any] | None) -> BenchmarkRun:
    if run is None:
        raise InvalidInput("run is required")
    if isinstance(run, BenchmarkRun):
        return run
    if isinstance(run, Mapping):
        try:
            return BenchmarkRun.model_validate(run)
        except ValidationError as e:
            raise InvalidInput(f"invalid run document: {e}") from e
    raise InvalidInput(f"run must be a BenchmarkRun or mapping, got {type(run).__name__}")


def derive_test_set(
    run: BenchmarkRun | Mapping[str, Any] | None,
    name: str,
    description: str | None = None,
    version_label: str = DEFAULT_VERSION,
    *,
    seed: int | None = None,
    now: datetime | None = None,
) -> TestSet:
    """
    Build a TestSet that freezes `run`'s scenario list.

    What gets copied:
    - domainId, useNarrativeDescriptions, narrativeModel: verbatim
    - scenarios: deep copy (later edits to the run never leak into the test set)
    - sourceRunId: run.id (provenance only; deleting the run leaves the test set valid)

    What gets computed:
    - scenarioCount = len(scenarios)
    - generateTwins = any scenario has a twinId
    - created = `now` (defaults to the current UTC time)

    The seed of the original generation is not stored on runs, so `seed` is
    None unless the caller passes the value explicitly.

    Raises InvalidInput if `run` is missing/invalid or `name` is blank.
    """

    source = _coerce_run(run)
    if not name or not name.strip():
        raise InvalidInput("name must be a non-empty string")

    created = now or datetime.now(timezone.utc)
    scenarios = copy.deepcopy(source.scenarios)

    test_set = TestSet(
        name=name,
        version=version_label,
        description=description or default_description(source),
        created=created,
        domain_id=source.domain_id,
        scenario_count=len(scenarios),
        seed=seed,
        generate_twins=has_twins(scenarios),
        use_narrative_descriptions=source.use_narrative_descriptions,
        narrative_model=source.narrative_model,
        source_run_id=source.id,
        scenarios=scenarios,
        changelog=[
            f"v{version_label} ({created.date().isoformat()}): "
            f"Initial version from run {source.id[:8]}"
        ],
    )

    logger.debug(
        "derived test set %s from run %s (%d scenarios)", name, source.id, test_set.scenario_count
    )
    return test_set
