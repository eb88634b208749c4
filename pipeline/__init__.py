"""
Pipeline package -- record handling behind the livestock dashboard.

Re-exports key entry points so callers can do::

    from pipeline import SnapshotRepository, apply_filters, paginate
"""

from pipeline.entities import ENTITIES, get_entity, load_records
from pipeline.filters import FilterState, apply_filters
from pipeline.pagination import paginate
from pipeline.repository import MemoryDataSource, SnapshotRepository
from pipeline.export import export_csv

__all__ = [
    "ENTITIES",
    "get_entity",
    "load_records",
    "FilterState",
    "apply_filters",
    "paginate",
    "MemoryDataSource",
    "SnapshotRepository",
    "export_csv",
]
