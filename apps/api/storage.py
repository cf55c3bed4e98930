"""
Storage for benchmark runs and test sets.

Important concept
-----------------
Every run and every test set is one JSON document, stored under a key:
- runs are keyed by `id`
- test sets are keyed by `name`

On disk this becomes:

    <DATA_DIR>/runs/<id>.json
    <DATA_DIR>/test-sets/<name>.json

Route handlers never touch files directly. They go through `BACKEND`, which
implements the `StorageBackend` interface below, so the same routes (and the
same test suite) work against the JSON-file store or the in-memory store.

Write policy (concurrency)
--------------------------
Two requests deriving a test set with the same name at the same time is a
race. The JSON backend resolves it with the filesystem:
- `overwrite=False`: exclusive create (`open(..., "x")`). The second writer
  gets `AlreadyExists`. This is "reject on conflict".
- `overwrite=True`: write a temp file, then `os.replace` it into place.
  Readers never see a half-written file. This is "last write wins".
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from bench.errors import AlreadyExists, InvalidInput
from bench.schemas.run import BenchmarkRun
from bench.schemas.test_set import TestSet, TestSetSummary
from apps.api.correlation import get_correlation_id

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_DATA_DIR = ROOT / "data"

# Keys become filenames, so they must not contain path separators or start with a dot.
_SAFE_KEY = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def is_safe_key(key: str) -> bool:
    return bool(_SAFE_KEY.match(key or ""))


def _require_safe_key(kind: str, key: str) -> None:
    if not is_safe_key(key):
        raise InvalidInput(
            f"invalid {kind} key {key!r}: use letters, digits, '.', '_' or '-'"
        )


def write_json_document(path: Path, payload: Any, *, overwrite: bool) -> None:
    """
    Write `payload` as pretty-printed JSON (indent=2) to `path`.

    Creates parent directories as needed. See the module docstring for the
    overwrite/conflict semantics.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, ensure_ascii=False)

    if not overwrite:
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(text)
        except FileExistsError as e:
            raise AlreadyExists("Document", path.stem) from e
        return

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _dump(model: BenchmarkRun | TestSet) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _sort_key_created(summary: TestSetSummary) -> float:
    return summary.created.timestamp()


def _log_write(action: str, kind: str, key: str) -> None:
    correlation_id = get_correlation_id()
    logger.info(
        json.dumps(
            {
                "event": "storage_write",
                "action": action,
                "kind": kind,
                "key": key,
                "correlation_id": str(correlation_id) if correlation_id else None,
            }
        )
    )


# -----------------------------
# Storage interface (swap-ready)
# -----------------------------


class StorageBackend(Protocol):
    """Interface that any storage backend (JSON files, in-memory, ...) must implement."""

    def reset(self) -> None: ...

    def save_run(self, run: BenchmarkRun) -> None: ...
    def get_run(self, run_id: str) -> BenchmarkRun | None: ...
    def list_runs(self) -> list[BenchmarkRun]: ...
    def delete_run(self, run_id: str) -> bool: ...

    def save_test_set(self, test_set: TestSet, *, overwrite: bool = False) -> None: ...
    def get_test_set(self, name: str) -> TestSet | None: ...
    def list_test_sets(self) -> list[TestSetSummary]: ...
    def delete_test_set(self, name: str) -> bool: ...


class JsonFileStorageBackend:
    """
    One JSON file per document under `data_dir`.

    Reads:
    - a missing file means "not found" (None / False)
    - a malformed file raises; the caller decides whether that is a 500
    - list operations skip malformed files with a warning so one bad file
      does not hide the rest
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)
        self.runs_dir = self.data_dir / "runs"
        self.test_sets_dir = self.data_dir / "test-sets"

    def reset(self) -> None:
        """Delete every stored document (useful for tests)."""

        for directory in (self.runs_dir, self.test_sets_dir):
            if directory.is_dir():
                for path in directory.glob("*.json"):
                    path.unlink()

    def run_path(self, run_id: str) -> Path:
        return self.runs_dir / f"{run_id}.json"

    def test_set_path(self, name: str) -> Path:
        return self.test_sets_dir / f"{name}.json"

    # ---- runs ----

    def save_run(self, run: BenchmarkRun) -> None:
        _require_safe_key("run", run.id)
        write_json_document(self.run_path(run.id), _dump(run), overwrite=True)
        _log_write("save", "run", run.id)

    def get_run(self, run_id: str) -> BenchmarkRun | None:
        if not is_safe_key(run_id):
            return None
        path = self.run_path(run_id)
        if not path.is_file():
            return None
        return BenchmarkRun.model_validate_json(path.read_text(encoding="utf-8"))

    def list_runs(self) -> list[BenchmarkRun]:
        runs: list[BenchmarkRun] = []
        for path in sorted(self.runs_dir.glob("*.json")) if self.runs_dir.is_dir() else []:
            try:
                runs.append(BenchmarkRun.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable run file %s: %s", path.name, e)
        runs.sort(key=lambda r: r.timestamp or "", reverse=True)
        return runs

    def delete_run(self, run_id: str) -> bool:
        if not is_safe_key(run_id):
            return False
        try:
            self.run_path(run_id).unlink()
        except FileNotFoundError:
            return False
        _log_write("delete", "run", run_id)
        return True

    # ---- test sets ----

    def save_test_set(self, test_set: TestSet, *, overwrite: bool = False) -> None:
        _require_safe_key("test set", test_set.name)
        try:
            write_json_document(
                self.test_set_path(test_set.name), _dump(test_set), overwrite=overwrite
            )
        except AlreadyExists as e:
            raise AlreadyExists("Test set", test_set.name) from e
        _log_write("save", "test_set", test_set.name)

    def get_test_set(self, name: str) -> TestSet | None:
        if not is_safe_key(name):
            return None
        path = self.test_set_path(name)
        if not path.is_file():
            return None
        return TestSet.model_validate_json(path.read_text(encoding="utf-8"))

    def list_test_sets(self) -> list[TestSetSummary]:
        summaries: list[TestSetSummary] = []
        if self.test_sets_dir.is_dir():
            for path in sorted(self.test_sets_dir.glob("*.json")):
                try:
                    test_set = TestSet.model_validate_json(path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as e:
                    logger.warning("Skipping unreadable test set file %s: %s", path.name, e)
                    continue
                summaries.append(test_set.summary())
        summaries.sort(key=_sort_key_created, reverse=True)
        return summaries

    def delete_test_set(self, name: str) -> bool:
        if not is_safe_key(name):
            return False
        try:
            self.test_set_path(name).unlink()
        except FileNotFoundError:
            return False
        _log_write("delete", "test_set", name)
        return True


class InMemoryStorageBackend:
    """
    Dict-backed implementation of StorageBackend.

    Fast and dependency-free, but it resets on restart. Documents are stored
    in their serialized (JSON-mode) form so callers can never mutate what
    is stored through a returned object.
    """

    def __init__(self) -> None:
        self._runs: dict[str, dict[str, Any]] = {}
        self._test_sets: dict[str, dict[str, Any]] = {}

    def reset(self) -> None:
        self._runs.clear()
        self._test_sets.clear()

    def save_run(self, run: BenchmarkRun) -> None:
        _require_safe_key("run", run.id)
        self._runs[run.id] = _dump(run)

    def get_run(self, run_id: str) -> BenchmarkRun | None:
        data = self._runs.get(run_id)
        return BenchmarkRun.model_validate(data) if data is not None else None

    def list_runs(self) -> list[BenchmarkRun]:
        runs = [BenchmarkRun.model_validate(d) for d in self._runs.values()]
        runs.sort(key=lambda r: r.timestamp or "", reverse=True)
        return runs

    def delete_run(self, run_id: str) -> bool:
        return self._runs.pop(run_id, None) is not None

    def save_test_set(self, test_set: TestSet, *, overwrite: bool = False) -> None:
        _require_safe_key("test set", test_set.name)
        if not overwrite and test_set.name in self._test_sets:
            raise AlreadyExists("Test set", test_set.name)
        self._test_sets[test_set.name] = _dump(test_set)

    def get_test_set(self, name: str) -> TestSet | None:
        data = self._test_sets.get(name)
        return TestSet.model_validate(data) if data is not None else None

    def list_test_sets(self) -> list[TestSetSummary]:
        summaries = [TestSet.model_validate(d).summary() for d in self._test_sets.values()]
        summaries.sort(key=_sort_key_created, reverse=True)
        return summaries

    def delete_test_set(self, name: str) -> bool:
        return self._test_sets.pop(name, None) is not None


def create_backend(name: str | None = None, data_dir: Path | str | None = None) -> StorageBackend:
    """
    Build a backend by name.

    Configure with environment variables:
      STORAGE_BACKEND=json       (default) one JSON file per document under DATA_DIR
      STORAGE_BACKEND=inmemory   dicts; data is lost on restart
      DATA_DIR=/path/to/data     defaults to <repo>/data
    """

    backend_name = (name or os.getenv("STORAGE_BACKEND", "json")).strip().lower()
    if backend_name == "inmemory":
        return InMemoryStorageBackend()
    if backend_name != "json":
        raise RuntimeError(
            f"Unknown STORAGE_BACKEND {backend_name!r} (expected 'json' or 'inmemory')"
        )
    return JsonFileStorageBackend(data_dir or os.getenv("DATA_DIR") or DEFAULT_DATA_DIR)


# The active backend.
BACKEND: StorageBackend = create_backend()
