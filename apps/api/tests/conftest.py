"""
pytest configuration (fixtures).

Every test gets its own empty JSON data directory under `tmp_path`, and the
API's active storage backend is pointed at it. That keeps tests independent
and never touches the real `data/` directory.
"""

from typing import Any

import pytest

from apps.api import storage


@pytest.fixture(autouse=True)
def backend(tmp_path, monkeypatch) -> storage.JsonFileStorageBackend:
    """Fresh JSON-file backend per test, installed as `storage.BACKEND`."""

    json_backend = storage.JsonFileStorageBackend(tmp_path / "data")
    monkeypatch.setattr(storage, "BACKEND", json_backend)
    return json_backend


@pytest.fixture
def run_payload() -> dict[str, Any]:
    """A small completed run document, in the camelCase shape written to disk."""

    return {
        "id": "8995522b-0b4b-4379-a231-0ea1a53e43f0",
        "timestamp": "2026-01-18T09:30:00.000Z",
        "domainId": "real-estate-yield",
        "model": "google/gemini-3-flash",
        "promptStrategy": "persona",
        "promptTemplate": "You are an expert...",
        "status": "completed",
        "useNarrativeDescriptions": True,
        "narrativeModel": "openai/gpt-4o-mini",
        "scenarios": [
            {
                "id": "s1",
                "anchor": "office_oslo_cbd",
                "appliedDeltas": ["new_build", "long_lease"],
                "distractors": ["Nice view, with a fjord"],
                "contextDescription": "Modern office in Oslo CBD.",
                "groundTruth": {"value": 4.25, "tolerance": 0.25, "calculation": "4.5 - 0.25"},
            },
            {
                "id": "s2",
                "anchor": "retail_bergen",
                "appliedDeltas": [],
                "distractors": [],
                "contextDescription": "High-street retail in Bergen.",
                "groundTruth": {"value": 6.0, "tolerance": 0.5, "calculation": "6.0"},
                "twinId": "s1",
                "twinDeltaChanged": "new_build",
            },
        ],
        "results": [
            {
                "scenarioId": "s1",
                "status": "completed",
                "rollouts": [
                    {
                        "prediction": 4.3,
                        "reasoning": "Prime CBD office.\nLong lease.",
                        "latencyMs": 812,
                    },
                    {"prediction": 4.9, "reasoning": "x" * 250, "latencyMs": 640},
                ],
                "meanPrediction": 4.6,
                "stdDeviation": 0.3,
                "error": 0.35,
                "absoluteError": 0.35,
                "withinTolerance": False,
                "rolloutConsistency": 50,
            }
        ],
        "aggregateMetrics": {"hitRate": 90.0, "meanError": 0.1, "rmse": 0.24, "avgLatencyMs": 726},
    }
