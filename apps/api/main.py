import json
import logging
import os
import time
from pathlib import Path
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env (if it exists) before the storage
# module picks its backend (STORAGE_BACKEND, DATA_DIR).
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

from fastapi import FastAPI  # noqa: E402
from starlette.exceptions import HTTPException as StarletteHTTPException  # noqa: E402
from starlette.middleware.cors import CORSMiddleware  # noqa: E402
from starlette.requests import Request  # noqa: E402
from starlette.responses import JSONResponse, Response  # noqa: E402

from apps.api import storage  # noqa: E402
from apps.api.correlation import set_correlation_id  # noqa: E402
from apps.api.routes.health import router as health_router  # noqa: E402
from apps.api.routes.runs import router as runs_router  # noqa: E402
from apps.api.routes.test_sets import router as test_sets_router  # noqa: E402

# Logger for request-level structured logs.
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(), format="%(levelname)s:%(name)s:%(message)s"
)
logger = logging.getLogger("bench_testsets.api")

app = FastAPI(title="Benchmark Test Sets")

logger.info("Storage backend: %s", type(storage.BACKEND).__name__)

# CORS: allow the dashboard dev server (and configured origins) to call the API.
_cors_origins = os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(StarletteHTTPException)
async def error_body_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as `{"error": <message>}` (the shape the dashboard reads)."""

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.middleware("http")
async def request_log_middleware(request: Request, call_next) -> Response:
    """
    Tag the request with a correlation id and log one JSON line per request.

    Storage writes made while handling the request log the same id, and the
    response carries it in `X-Correlation-ID`.
    """

    request_id = uuid4()
    set_correlation_id(request_id)

    started = time.perf_counter()
    response: Response = await call_next(request)
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)

    logger.info(
        json.dumps(
            {
                "event": "http_request",
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query or None,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "correlation_id": str(request_id),
            }
        )
    )
    response.headers["X-Correlation-ID"] = str(request_id)
    return response


app.include_router(health_router)
app.include_router(runs_router)
app.include_router(test_sets_router)
