"""
GET /api/v1/download/{entity} endpoint.

Exports the currently filtered records as CSV or Excel.  Accepts the same
filter parameters as GET /api/v1/records/{entity}; pagination does not
apply, every matching record is exported.

CSV cells are always quoted with embedded quotes doubled.  An empty
selection is refused with 400 "No Data to Export".
X-Total-Count carries the number of exported records.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from api.database import get_definition, get_repository
from api.filters import filter_state
from pipeline.entities import EntityDefinition, load_records
from pipeline.export import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, export_csv, export_xlsx
from pipeline.filters import FilterState, apply_filters
from pipeline.repository import SnapshotRepository

router = APIRouter(prefix="/download", tags=["download"])


@router.get("/{entity}", summary="Download filtered records as CSV or Excel")
def download(
    fmt: str = Query("csv", pattern="^(csv|xlsx)$", description="Output format"),
    today: date | None = Query(None, description="Override the date stamped into the filename"),
    state: FilterState = Depends(filter_state),
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> StreamingResponse:
    """Stream the filtered selection as an attachment."""
    records = load_records(repo, definition)
    filtered = apply_filters(records, state, definition.filter_spec).filtered

    if fmt == "xlsx":
        filename, content = export_xlsx(definition, filtered,
                                        state.start_date, state.end_date, today)
        return StreamingResponse(
            iter([content]),
            media_type=XLSX_MEDIA_TYPE,
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Content-Length": str(len(content)),
                "X-Total-Count": str(len(filtered)),
            },
        )

    filename, text = export_csv(definition, filtered,
                                state.start_date, state.end_date, today)
    return StreamingResponse(
        iter([text]),
        media_type=f"{CSV_MEDIA_TYPE}; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "X-Total-Count": str(len(filtered)),
        },
    )
