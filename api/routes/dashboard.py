"""Dashboard summary endpoint for the overview and report pages."""

from fastapi import APIRouter, Depends, Query

from api.database import get_repository
from pipeline.entities import FARMERS, TRAINING, load_records
from pipeline.repository import SnapshotRepository
from pipeline.reports import build_summary
from utils.cache import TTLCache
from utils.config import AppConfig

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

_summary_cache: TTLCache = TTLCache(
    maxsize=32, ttl_seconds=AppConfig.from_env().summary_cache_ttl,
)

_SOURCES = (FARMERS.collection, TRAINING.collection)


def invalidate(collection: str) -> None:
    """Forget cached summaries computed from *collection* (repository listener)."""
    _summary_cache.invalidate(collection)


@router.get("/summary", summary="Dashboard summary statistics")
def dashboard_summary(
    start_date: str = Query("", pattern=r"^(\d{4}-\d{2}-\d{2})?$",
                            description="Inclusive first submission day"),
    end_date: str = Query("", pattern=r"^(\d{4}-\d{2}-\d{2})?$",
                          description="Inclusive last submission day"),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    """Return aggregated statistics for the dashboard overview page.

    Includes:
    - Farmer totals by gender and training status
    - Training rate and number of Capacity Building records
    - Farmers per region with the top region's share
    - New-breed distribution and vaccination coverage with a comment

    start_date and end_date restrict farmers by submission date.
    """
    def compute() -> dict:
        farmers = load_records(repo, FARMERS)
        training = load_records(repo, TRAINING)
        return build_summary(farmers, training, start_date, end_date)

    return _summary_cache.get_or_set(
        ("dashboard_summary", start_date, end_date), compute, _SOURCES,
    )
