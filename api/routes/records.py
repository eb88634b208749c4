"""
Record browsing and mutation endpoints.

GET   /api/v1/records/{entity}               → filtered, paginated page + stats
GET   /api/v1/records/{entity}/{record_id}   → one canonical record
PATCH /api/v1/records/{entity}/{record_id}   → merge fields into one document
POST  /api/v1/records/{entity}/delete        → bulk delete in a single batch
POST  /api/v1/records/{entity}/refresh       → re-fetch the collection now

Every mutation re-fetches the collection, so the response's generation is
the snapshot later list calls will see.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from api.database import get_definition, get_repository
from api.filters import filter_state, filters_out
from api.models import (
    BulkDeleteRequest,
    MutationResponse,
    RecordPage,
    RecordUpdate,
)
from pipeline.entities import EntityDefinition, load_records
from pipeline.filters import FilterState, apply_filters
from pipeline.pagination import paginate
from pipeline.repository import SnapshotRepository
from utils.config import AppConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["records"])

_DEFAULT_LIMIT = AppConfig.from_env().page_limit


def _find_record(definition: EntityDefinition, repo: SnapshotRepository,
                 record_id: str):
    for record in load_records(repo, definition):
        if record.id == record_id:
            return record
    raise HTTPException(status_code=404,
                        detail=f"{definition.label} record {record_id!r} not found")


def _mutation_response(definition: EntityDefinition, repo: SnapshotRepository,
                       affected: int) -> dict:
    snapshot = repo.current(definition.collection)
    return {
        "entity": definition.name,
        "affected": affected,
        "generation": snapshot.generation,
        "records": len(snapshot),
    }


@router.get(
    "/{entity}",
    response_model=RecordPage,
    summary="List records with filters, stats and pagination",
)
def list_records(
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(_DEFAULT_LIMIT, ge=1, le=500, description="Records per page"),
    state: FilterState = Depends(filter_state),
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    """Return one page of the filtered records plus stats over all of them.

    A page past the end comes back empty; the pagination block still
    reports the real total so the client can step back.
    """
    records = load_records(repo, definition)
    result = apply_filters(records, state, definition.filter_spec)
    current = paginate(result.filtered, page=page, limit=limit)
    return {
        "entity": definition.name,
        "items": [r.to_dict() for r in current.page_records],
        "stats": result.stats,
        "pagination": {
            "page": current.page,
            "limit": current.limit,
            "total": current.total,
            "total_pages": current.total_pages,
            "has_next": current.has_next,
            "has_prev": current.has_prev,
        },
        "filters": filters_out(state),
        "generation": repo.current(definition.collection).generation,
    }


@router.get("/{entity}/{record_id}", summary="Get one record by id")
def get_record(
    record_id: str,
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    """Return the canonical form of a single document."""
    return _find_record(definition, repo, record_id).to_dict()


@router.patch(
    "/{entity}/{record_id}",
    response_model=MutationResponse,
    summary="Update fields of one record",
)
def update_record(
    record_id: str,
    body: RecordUpdate,
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    """Merge fields into an existing record; 404 if the id is unknown."""
    _find_record(definition, repo, record_id)
    repo.update_record(definition.collection, record_id, body.changes)
    return _mutation_response(definition, repo, affected=1)


@router.post(
    "/{entity}/delete",
    response_model=MutationResponse,
    summary="Delete several records in one batch",
)
def delete_records(
    body: BulkDeleteRequest,
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    """Delete every id in the body atomically; either all go or none do."""
    deleted = repo.delete_records(definition.collection, body.ids)
    return _mutation_response(definition, repo, affected=deleted)


@router.post(
    "/{entity}/refresh",
    response_model=MutationResponse,
    summary="Re-fetch the collection from the store",
)
def refresh_records(
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    snapshot = repo.refresh(definition.collection)
    logger.info("manual refresh of %s -> generation %d",
                definition.collection, snapshot.generation)
    return _mutation_response(definition, repo, affected=0)
