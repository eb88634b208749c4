"""
FastAPI application for the livestock programme dashboard.

Usage:
    python -m api.app                                   # Dev server on port 8000
    APP_SEED_PATH=data/seed.json python -m api.app      # In-memory store seeded from JSON
    APP_DATA_SOURCE=firestore python -m api.app         # Google Cloud Firestore
    python main.py --seed data/seed.json                # Same, via the launcher

Interactive docs are served at /docs once the server is up.

Every list, export and summary is computed from the repository's current
snapshot of a collection, never from a partially refreshed one.  Cached
aggregates are dropped by a repository listener whenever a collection's
snapshot is replaced.

Logging goes to stderr; APP_LOG_FORMAT=json switches to one JSON object per
line.  CORS origins come from APP_CORS_ORIGINS.
"""

import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.database import get_repository, on_snapshot, set_repository
from api.routes import dashboard, download, records, reference, upload
from pipeline.errors import FetchError, MutationError
from pipeline.repository import SnapshotRepository
from utils.config import AppConfig, KnownValues

_cfg = AppConfig.from_env()

_SLOW_REQUEST_MS = 500

# Exception type -> (status code, error label).  Starlette picks the most
# specific match along the exception's MRO.
_ERROR_RESPONSES = (
    (ValueError, 400, "Bad request"),
    (FetchError, 503, "Data source unavailable"),
    (MutationError, 503, "Write rejected"),
)


# ── Logging ───────────────────────────────────────────────────────────────────

class _JsonFormatter(logging.Formatter):
    """One JSON object per log record, including request/collection extras."""

    EXTRA_FIELDS = ("method", "path", "status", "duration_ms", "client_ip",
                    "request_id", "collection", "generation")

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in self.EXTRA_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _configure_logging(cfg: AppConfig) -> logging.Logger:
    """Install the root handler for *cfg.log_format* and return the API logger."""
    handler = logging.StreamHandler()
    if cfg.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    logging.basicConfig(handlers=[handler], level=logging.INFO, force=True)
    return logging.getLogger("livestock_dashboard_api")


_logger = _configure_logging(_cfg)
_app_start_time: float = time.time()


def _invalidate_caches(collection: str) -> None:
    """Repository listener: a new snapshot makes cached aggregates stale."""
    dashboard.invalidate(collection)
    reference.invalidate(collection)


def _error_body(status_code: int, label: str, detail: str) -> dict:
    return {"error": label, "detail": detail, "status_code": status_code}


def _register_error_handlers(app: FastAPI) -> None:
    for exc_type, status_code, label in _ERROR_RESPONSES:
        async def handler(request: Request, exc: Exception,
                    status_code: int = status_code, label: str = label):
            return JSONResponse(status_code=status_code,
                                content=_error_body(status_code, label, str(exc)))
        app.add_exception_handler(exc_type, handler)

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        _logger.error("unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500,
                            content=_error_body(500, "Internal server error", str(exc)))


def create_app(repository: SnapshotRepository | None = None) -> FastAPI:
    """Build the dashboard API.

    Args:
        repository: Serve from this repository instead of one built from
            the environment.  Tests pass a MemoryDataSource-backed one.
    """
    _logger.info("settings: %s", _cfg.to_dict())
    on_snapshot(_invalidate_caches)
    if repository is not None:
        set_repository(repository)
        # Module-level caches outlive any one app; start clean for this store.
        for name in KnownValues.COLLECTIONS:
            _invalidate_caches(name)

    app = FastAPI(
        title="Livestock Programme Dashboard API",
        summary="REST API behind the livestock programme admin dashboard.",
        description=(
            "Browse, filter, export and maintain the programme's field records: "
            "livestock farmers, capacity-building attendance, infrastructure, "
            "boreholes, fodder farmers, livestock and fodder offtake, and "
            "animal health outreach.\n\n"
            "- **Entities**: `farmers`, `training`, `infrastructure`, `boreholes`, `fodder`, "
            "`livestock-offtake`, `fodder-offtake`, `animal-health`.\n"
            "- **Filters** combine with AND: categorical fields, region/location, "
            "an inclusive date range and a case-insensitive text search.\n"
            "- **Stats** on a list response cover every filtered record, not just the page.\n"
            "- **Trained** farmers are those with a Capacity Building record "
            "matching their phone number or name.\n"
            "- **Generation** numbers identify snapshots; a newer generation always "
            "replaces an older one, never the reverse."
        ),
        version="1.0.0",
        openapi_tags=[
            {"name": "records", "description": "List, inspect, edit, delete and refresh records."},
            {"name": "download", "description": "Export filtered records as CSV or Excel."},
            {"name": "reference", "description": "Entity metadata, filter options and quick date ranges."},
            {"name": "dashboard", "description": "Programme summary and report figures."},
            {"name": "upload", "description": "Validated bulk insert from CSV or JSON files."},
            {"name": "meta", "description": "Health check."},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cfg.cors_origins,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Total-Count", "X-Request-ID"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Tag each response with a short request id and log its timing."""
        request_id = uuid.uuid4().hex[:8]
        started = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - started) * 1000, 1)
        response.headers["X-Request-ID"] = request_id

        fields = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client_ip": request.client.host if request.client else "unknown",
            "request_id": request_id,
        }
        level = logging.WARNING if elapsed_ms > _SLOW_REQUEST_MS else logging.INFO
        _logger.log(level, "%s %s -> %d in %.1f ms [%s]", fields["method"],
                    fields["path"], fields["status"], elapsed_ms, request_id,
                    extra=fields)
        return response

    _register_error_handlers(app)

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Report the data source and what each collection currently holds.

        Does not fetch; collections not read since start-up show
        ``loaded: false``.
        """
        try:
            repo = get_repository()
        except Exception as exc:
            return JSONResponse(status_code=503,
                                content={"status": "no_data_source", "error": str(exc)})
        collections = {}
        for name in KnownValues.COLLECTIONS:
            snapshot = repo.current(name)
            collections[name] = {
                "loaded": snapshot.is_loaded,
                "records": len(snapshot),
                "generation": snapshot.generation,
            }
        return {
            "status": "ok",
            "data_source": repo.source_name,
            "uptime_seconds": round(time.time() - _app_start_time, 2),
            "collections": collections,
        }

    for module in (records, download, reference, dashboard, upload):
        app.include_router(module.router, prefix="/api/v1")

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.app:app", host=_cfg.api_host, port=_cfg.api_port,
                reload=True, log_level="info")
