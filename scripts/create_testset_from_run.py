"""
Convert a stored benchmark run into a reusable test set file.

Usage (from repo root):
  python scripts/create_testset_from_run.py --run <run-id> [--name baseline-v1]
      [--description TEXT] [--version 1.0.0] [--seed N]
      [--data-dir DIR] [--output PATH] [--no-overwrite]

The run is read from <data-dir>/runs/<run-id>.json and the test set is written
(pretty-printed) to <data-dir>/test-sets/<name>.json unless --output is given.
An existing file is overwritten unless --no-overwrite is passed.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api.storage import JsonFileStorageBackend, is_safe_key, write_json_document  # noqa: E402
from bench.errors import AlreadyExists, InvalidInput  # noqa: E402
from bench.testsets.deriver import DEFAULT_VERSION, derive_test_set  # noqa: E402

DEFAULT_NAME = "baseline-v1"
MAX_LISTED_RUNS = 10


def _default_data_dir() -> Path:
    return Path(os.getenv("DATA_DIR") or ROOT / "data")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a test set from an existing run")
    parser.add_argument("--run", required=True, dest="run_id", help="Source run ID")
    parser.add_argument(
        "--name", default=DEFAULT_NAME, help=f"Test set name (default: {DEFAULT_NAME})"
    )
    parser.add_argument("--description", default=None, help="Description override")
    parser.add_argument(
        "--version", default=DEFAULT_VERSION, help=f"Version label (default: {DEFAULT_VERSION})"
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Original generation seed, if known"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Data directory holding runs/ and test-sets/ (default: $DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output file (default: <data-dir>/test-sets/<name>.json)",
    )
    parser.add_argument(
        "--overwrite",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Overwrite an existing test set file (default: yes)",
    )
    return parser


def _print_available_runs(backend: JsonFileStorageBackend) -> None:
    print("\nAvailable runs:", file=sys.stderr)
    paths = sorted(backend.runs_dir.glob("*.json")) if backend.runs_dir.is_dir() else []
    if not paths:
        print("  (No runs found)", file=sys.stderr)
    for path in paths[:MAX_LISTED_RUNS]:
        print(f"  {path.stem}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    load_dotenv(ROOT / ".env")
    args = build_parser().parse_args(argv)

    backend = JsonFileStorageBackend(args.data_dir or _default_data_dir())

    print(f"Loading run: {args.run_id}")
    try:
        run = backend.get_run(args.run_id)
    except ValueError as e:
        print(f"Run file is not a valid run document: {e}", file=sys.stderr)
        return 1
    if run is None:
        print(f"Run not found: {args.run_id}", file=sys.stderr)
        _print_available_runs(backend)
        return 1

    try:
        test_set = derive_test_set(
            run, args.name, args.description, args.version, seed=args.seed
        )
    except InvalidInput as e:
        print(f"Failed to create test set: {e}", file=sys.stderr)
        return 1

    if args.output is None and not is_safe_key(test_set.name):
        print(f"Invalid test set name for a file: {test_set.name!r}", file=sys.stderr)
        return 1

    output = args.output or backend.test_set_path(test_set.name)
    try:
        write_json_document(
            output, test_set.model_dump(mode="json", by_alias=True), overwrite=args.overwrite
        )
    except AlreadyExists:
        print(f"{output} already exists (pass --overwrite to replace it)", file=sys.stderr)
        return 1

    print("Test set created.")
    print(f"  Name:        {test_set.name}")
    print(f"  Version:     {test_set.version}")
    print(f"  Description: {test_set.description}")
    print(f"  Scenarios:   {test_set.scenario_count}")
    print(f"  Source run:  {run.id}")
    print(f"  File:        {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
