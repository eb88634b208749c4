"""
Shared filter-parameter handling for the list and download routes.

Both endpoints accept the same query parameters; filter_state() turns them
into a FilterState scoped to the entity's categorical fields.
"""

from fastapi import Depends, Query

from api.database import get_definition
from pipeline.entities import EntityDefinition
from pipeline.filters import ALL, FilterState

_DAY = r"^(\d{4}-\d{2}-\d{2})?$"


def filter_state(
    q: str = Query("", description="Free-text search (case-insensitive substring)"),
    start_date: str = Query("", pattern=_DAY, description="Inclusive start day, YYYY-MM-DD"),
    end_date: str = Query("", pattern=_DAY, description="Inclusive end day, YYYY-MM-DD"),
    region: str = Query(ALL, description="Region, or 'all'"),
    location: str = Query(ALL, description="Location, or 'all'"),
    gender: str = Query(ALL, description="Gender (farmers, training, livestock-offtake)"),
    modules: str = Query(ALL, description="Training module (training)"),
    facility_type: str = Query(ALL, alias="type", description="Facility type (infrastructure)"),
    status: str = Query(ALL, description="Facility status (infrastructure)"),
    model: str = Query(ALL, description="Fodder model (fodder)"),
    definition: EntityDefinition = Depends(get_definition),
) -> FilterState:
    """FastAPI dependency building the FilterState for ``{entity}``."""
    supplied = {
        "gender": gender,
        "modules": modules,
        "type": facility_type,
        "status": status,
        "model": model,
        "location": location,
    }
    categories = tuple(
        (field, supplied.get(field) or ALL)
        for field in definition.filter_spec.categorical
    )
    return FilterState(
        search=q,
        start_date=start_date,
        end_date=end_date,
        region=region or ALL,
        location=location or ALL,
        categories=categories,
    )


def filters_out(state: FilterState) -> dict:
    """Serializable echo of *state* for responses."""
    return {
        "search": state.search,
        "start_date": state.start_date,
        "end_date": state.end_date,
        "region": state.region,
        "location": state.location,
        "categories": dict(state.categories),
        "active": not state.is_empty,
    }
