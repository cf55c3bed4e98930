"""
Benchmark run routes.

Runs are produced by the benchmark execution process; this API only lets
clients read them, export them as CSV, and delete them.
"""

import logging

from fastapi import APIRouter, HTTPException
from starlette.responses import Response

from bench.export.csv_export import (
    generate_detailed_csv,
    generate_export_filename,
    generate_summary_csv,
)
from bench.schemas.run import BenchmarkRun, RunSummary
from apps.api import storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/runs", tags=["runs"])

RUN_NOT_FOUND = "Run not found"
SUPPORTED_EXPORT_FORMATS = {"csv"}


def _load_run(run_id: str) -> BenchmarkRun:
    """Load a run or raise the HTTP error for it (404 missing, 500 unreadable)."""

    try:
        run = storage.BACKEND.get_run(run_id)
    except Exception as e:
        logger.exception("Error loading run %s", run_id)
        raise HTTPException(status_code=500, detail=str(e)) from e

    if run is None:
        raise HTTPException(status_code=404, detail=RUN_NOT_FOUND)
    return run


@router.get("", response_model=list[RunSummary])
def list_runs() -> list[RunSummary]:
    """List all runs (newest first) as compact summaries."""

    return [RunSummary.from_run(r) for r in storage.BACKEND.list_runs()]


@router.get("/{run_id}", response_model=BenchmarkRun)
def get_run(run_id: str) -> BenchmarkRun:
    """
    Get a single run by ID.

    Returns the full run document (scenarios, results, metrics), or 404.
    """

    return _load_run(run_id)


@router.delete("/{run_id}")
def delete_run(run_id: str) -> dict:
    """
    Delete a run.

    Test sets derived from this run keep working: `sourceRunId` is only a
    provenance link, so nothing cascades.
    """

    if not storage.BACKEND.delete_run(run_id):
        raise HTTPException(status_code=404, detail=RUN_NOT_FOUND)
    return {"success": True}


@router.get("/{run_id}/export")
def export_run(run_id: str, format: str = "csv", detailed: str | None = None) -> Response:
    """
    Download a run as CSV.

    Query parameters:
    - format:   only "csv" is supported; empty means "csv" (anything else -> 400)
    - detailed: "true" for one row per rollout; otherwise one row per scenario

    Examples:
    - GET /api/runs/<id>/export                 -> summary CSV
    - GET /api/runs/<id>/export?detailed=true   -> detailed CSV
    """

    if (format or "csv") not in SUPPORTED_EXPORT_FORMATS:
        raise HTTPException(
            status_code=400, detail="Unsupported format. Only 'csv' is supported."
        )

    run = _load_run(run_id)

    is_detailed = detailed == "true"
    content = generate_detailed_csv(run) if is_detailed else generate_summary_csv(run)
    filename = generate_export_filename(run, "detailed" if is_detailed else "summary")

    # Starlette appends "; charset=utf-8" to text/* media types.
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
