"""
Store access for the API.

Provides a get_repository() dependency returning the process-wide
SnapshotRepository.  The repository is built lazily from AppConfig
(APP_DATA_SOURCE, APP_SEED_PATH, APP_SNAPSHOT_TTL) unless create_app()
was handed one explicitly (tests inject a MemoryDataSource-backed one).
"""

import logging
import threading
from typing import Callable

from fastapi import HTTPException

from pipeline.entities import EntityDefinition, get_entity
from pipeline.errors import UnknownEntityError
from pipeline.repository import SnapshotRepository, build_data_source
from utils.config import AppConfig

logger = logging.getLogger(__name__)

_REPOSITORY: SnapshotRepository | None = None
_repo_lock = threading.Lock()
_listeners: list[Callable[[str], None]] = []


def _attach(repository: SnapshotRepository) -> None:
    for callback in _listeners:
        repository.add_listener(callback)


def on_snapshot(callback: Callable[[str], None]) -> None:
    """Register *callback(collection)* on the current and any future repository."""
    if callback in _listeners:
        return
    _listeners.append(callback)
    if _REPOSITORY is not None:
        _REPOSITORY.add_listener(callback)


def set_repository(repository: SnapshotRepository | None) -> None:
    """Install *repository* as the one every request uses."""
    global _REPOSITORY
    with _repo_lock:
        _REPOSITORY = repository
        if repository is not None:
            _attach(repository)


def build_repository(cfg: AppConfig | None = None) -> SnapshotRepository:
    """Create a repository from configuration."""
    cfg = cfg or AppConfig.from_env()
    source = build_data_source(cfg)
    return SnapshotRepository(source, ttl_seconds=cfg.snapshot_ttl)


def get_repository() -> SnapshotRepository:
    """FastAPI dependency: the shared SnapshotRepository.

    Usage in a route::

        from api.database import get_repository
        from fastapi import Depends

        @router.get("/example")
        def example(repo=Depends(get_repository)):
            ...
    """
    global _REPOSITORY
    if _REPOSITORY is None:
        with _repo_lock:
            if _REPOSITORY is None:
                try:
                    repository = build_repository()
                except (ValueError, OSError, ImportError) as exc:
                    logger.error("Cannot open data source: %s", exc)
                    raise HTTPException(
                        status_code=503,
                        detail=f"Data source unavailable: {exc}",
                    ) from exc
                _attach(repository)
                _REPOSITORY = repository
    return _REPOSITORY


def get_definition(entity: str) -> EntityDefinition:
    """FastAPI dependency: resolve the ``{entity}`` path segment, 404 if unknown."""
    try:
        return get_entity(entity)
    except UnknownEntityError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
