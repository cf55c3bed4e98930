"""Health check and storage diagnostics."""

from fastapi import APIRouter

from apps.api import storage

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check():
    """Basic health check endpoint."""
    return {"status": "ok"}


@router.get("/health/storage")
def storage_health_check():
    """
    Report which storage backend is active and where it keeps data.

    Useful when a run "disappears": usually the API is pointed at a
    different DATA_DIR than the benchmark process that wrote it.
    """

    backend = storage.BACKEND
    data_dir = getattr(backend, "data_dir", None)
    return {
        "backend": type(backend).__name__,
        "data_dir": str(data_dir) if data_dir is not None else None,
        "data_dir_exists": data_dir.is_dir() if data_dir is not None else None,
    }
