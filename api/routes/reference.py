"""
Reference data endpoints.

GET /api/v1/reference/entities             → browsable entities and their filters
GET /api/v1/reference/{entity}/options     → dropdown values (locations narrowed by region)
GET /api/v1/reference/date-ranges          → "this week" / "this month" quick filters
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from api.database import get_definition, get_repository
from api.models import DateRangeOut, EntityOut, FilterOptionsOut
from pipeline.entities import ENTITIES, EntityDefinition, load_records
from pipeline.filters import ALL, filter_options
from pipeline.repository import SnapshotRepository
from utils.cache import TTLCache
from utils.config import AppConfig
from utils.dates import current_month_range, current_week_range

router = APIRouter(prefix="/reference", tags=["reference"])

_CACHE_HEADER = {"Cache-Control": "max-age=300"}

_options_cache: TTLCache = TTLCache(
    maxsize=64, ttl_seconds=AppConfig.from_env().summary_cache_ttl,
)


def invalidate(collection: str) -> None:
    """Drop cached options built from *collection* (repository listener)."""
    _options_cache.invalidate(collection)


@router.get(
    "/entities",
    response_model=list[EntityOut],
    summary="List browsable entities",
)
def list_entities() -> JSONResponse:
    data = [
        {
            "name": d.name,
            "label": d.label,
            "collection": d.collection,
            "categorical_filters": list(d.filter_spec.categorical),
            "search_fields": list(d.filter_spec.search_fields),
        }
        for d in ENTITIES.values()
    ]
    return JSONResponse(content=data, headers=_CACHE_HEADER)


@router.get(
    "/date-ranges",
    response_model=dict[str, DateRangeOut],
    summary="Quick-filter date ranges",
)
def date_ranges(
    today: date | None = Query(None, description="Reference day (defaults to today)"),
) -> dict:
    """Sunday-to-Saturday week and calendar month containing *today*."""
    today = today or date.today()
    week_start, week_end = current_week_range(today)
    month_start, month_end = current_month_range(today)
    return {
        "week": {"start_date": week_start, "end_date": week_end},
        "month": {"start_date": month_start, "end_date": month_end},
    }


@router.get(
    "/{entity}/options",
    response_model=FilterOptionsOut,
    summary="Distinct filter values for an entity",
)
def list_options(
    region: str = Query(ALL, description="Narrow locations to this region"),
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    """Return the dropdown choices for *entity*'s categorical filters."""
    def compute() -> dict:
        records = load_records(repo, definition)
        return {
            "entity": definition.name,
            "region": region,
            "options": filter_options(records, definition.filter_spec, region),
        }

    return _options_cache.get_or_set(
        ("options", definition.name, region), compute, (definition.collection,),
    )
