"""
Test-set API tests.

These exercise the canonical workflow:
- a run exists
- derive a test set from it (POST /api/test-sets/from-run)
- list / fetch / delete the test set
"""

import json

from fastapi.testclient import TestClient

from apps.api.main import app
from bench.schemas.run import BenchmarkRun


def _derive(client: TestClient, run_id: str, name: str = "baseline-v1", **extra) -> dict:
    res = client.post("/api/test-sets/from-run", json={"runId": run_id, "name": name, **extra})
    assert res.status_code == 201, res.text
    return res.json()


def test_derive_from_run_then_get_by_name(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))

    created = _derive(client, run_payload["id"], description="Baseline from Gemini run")

    assert created["name"] == "baseline-v1"
    assert created["version"] == "1.0.0"
    assert created["scenarioCount"] == 2
    assert created["generateTwins"] is True
    assert created["sourceRunId"] == run_payload["id"]
    assert created["seed"] is None
    assert created["useNarrativeDescriptions"] is True
    assert created["narrativeModel"] == "openai/gpt-4o-mini"

    res = client.get("/api/test-sets/baseline-v1")
    assert res.status_code == 200
    fetched = res.json()
    assert fetched["description"] == "Baseline from Gemini run"
    assert fetched["scenarios"] == run_payload["scenarios"]


def test_derive_accepts_version_and_seed(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))

    created = _derive(client, run_payload["id"], name="seeded", version="2.0.0", seed=7)

    assert created["version"] == "2.0.0"
    assert created["seed"] == 7
    assert created["changelog"][0].startswith("v2.0.0 (")


def test_derive_duplicate_name_returns_409(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))
    _derive(client, run_payload["id"])

    res = client.post(
        "/api/test-sets/from-run", json={"runId": run_payload["id"], "name": "baseline-v1"}
    )

    assert res.status_code == 409
    assert res.json() == {"error": 'Test set "baseline-v1" already exists'}


def test_derive_from_missing_run_returns_404() -> None:
    client = TestClient(app)

    res = client.post("/api/test-sets/from-run", json={"runId": "missing", "name": "x"})

    assert res.status_code == 404
    assert res.json() == {"error": "Run not found"}


def test_derive_with_blank_or_unsafe_name_returns_400(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))

    blank = client.post(
        "/api/test-sets/from-run", json={"runId": run_payload["id"], "name": "   "}
    )
    unsafe = client.post(
        "/api/test-sets/from-run", json={"runId": run_payload["id"], "name": "../evil"}
    )

    assert blank.status_code == 400
    assert unsafe.status_code == 400
    assert "error" in unsafe.json()


def test_list_test_sets_returns_metadata_only(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))
    _derive(client, run_payload["id"], name="first")
    _derive(client, run_payload["id"], name="second")

    res = client.get("/api/test-sets")

    assert res.status_code == 200
    items = res.json()
    assert {i["name"] for i in items} == {"first", "second"}
    assert all("scenarios" not in i for i in items)
    assert all(i["scenarioCount"] == 2 for i in items)


def test_get_unknown_test_set_returns_404() -> None:
    client = TestClient(app)

    res = client.get("/api/test-sets/does-not-exist")

    assert res.status_code == 404
    assert res.json() == {"error": "Test set not found"}


def test_delete_test_set(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))
    _derive(client, run_payload["id"])

    res = client.delete("/api/test-sets/baseline-v1")
    assert res.status_code == 200
    assert res.json() == {"success": True}

    missing = client.delete("/api/test-sets/baseline-v1")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Test set not found"}


def test_deleting_source_run_does_not_affect_test_set(backend, run_payload) -> None:
    client = TestClient(app)
    backend.save_run(BenchmarkRun.model_validate(run_payload))
    _derive(client, run_payload["id"])

    assert client.delete(f"/api/runs/{run_payload['id']}").status_code == 200

    res = client.get("/api/test-sets/baseline-v1")
    assert res.status_code == 200
    assert res.json()["sourceRunId"] == run_payload["id"]


def test_corrupt_test_set_file_returns_500_with_message(backend) -> None:
    client = TestClient(app)
    backend.test_sets_dir.mkdir(parents=True)
    backend.test_set_path("broken").write_text("{not json", encoding="utf-8")

    res = client.get("/api/test-sets/broken")

    assert res.status_code == 500
    assert "error" in res.json()
    assert res.json()["error"]


def test_delete_failure_returns_500(monkeypatch) -> None:
    client = TestClient(app)

    def _boom(name: str) -> bool:
        raise PermissionError("read-only file system")

    from apps.api import storage

    monkeypatch.setattr(storage.BACKEND, "delete_test_set", _boom)

    res = client.delete("/api/test-sets/anything")

    assert res.status_code == 500
    assert res.json() == {"error": "read-only file system"}


def test_get_returns_the_stored_document_unchanged(backend) -> None:
    client = TestClient(app)
    stored = {
        "name": "annotated",
        "version": "1.0.0",
        "description": "",
        "created": "2026-01-18T12:00:00.123Z",
        "domainId": "real-estate-yield",
        "scenarioCount": 1,
        "seed": None,
        "generateTwins": False,
        "useNarrativeDescriptions": False,
        "narrativeModel": None,
        "sourceRunId": "r1",
        "changelog": [],
        "scenarios": [{"id": "a", "anchor": "office_oslo_cbd"}],
        "notes": "keep me",
    }
    backend.test_sets_dir.mkdir(parents=True)
    backend.test_set_path("annotated").write_text(json.dumps(stored), encoding="utf-8")

    res = client.get("/api/test-sets/annotated")

    assert res.status_code == 200
    assert res.json() == stored
