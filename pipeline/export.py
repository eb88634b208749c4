"""CSV and Excel export of filtered records.

``to_csv`` quotes every cell (header included), separates cells with ``,``
and rows with ``\\n``, and doubles embedded double quotes so values such as
``12" pipe`` survive a round trip through a spreadsheet.

An empty selection is not an exporter failure: :func:`export_csv` is the
caller-level helper that refuses it with :class:`EmptyExportError` before
anything is serialized.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone
from typing import Any

from pipeline.entities import EntityDefinition
from pipeline.errors import EmptyExportError

logger = logging.getLogger(__name__)

RowMapper = Callable[[Any], Sequence[str]]

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def to_csv(records: Sequence[Any], header: Sequence[str], row_mapper: RowMapper) -> str:
    """Serialize *records* as a fully quoted CSV string.

    Args:
        records: Records to export, in output order.
        header: Column titles, in the order *row_mapper* emits cells.
        row_mapper: Maps one record to its ordered string cells.

    Returns:
        Header line plus one line per record, joined by ``\\n`` with no
        trailing newline.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for record in records:
        writer.writerow(row_mapper(record))
    text = buf.getvalue()
    return text[:-1] if text.endswith("\n") else text


def to_xlsx(records: Sequence[Any], header: Sequence[str], row_mapper: RowMapper,
            sheet_title: str = "Export") -> bytes:
    """Serialize *records* as an Excel workbook using write-only mode."""
    import openpyxl

    wb = openpyxl.Workbook(write_only=True)
    ws = wb.create_sheet(sheet_title[:31])
    ws.append(list(header))
    for record in records:
        ws.append(list(row_mapper(record)))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_filename(prefix: str, start_date: str = "", end_date: str = "",
                    today: date | None = None, extension: str = "csv") -> str:
    """Build ``<prefix>[_<start>_to_<end>]_<YYYY-MM-DD>.<extension>``.

    The date-range part only appears when at least one bound is set; a
    missing bound reads ``start`` or ``end``.  *today* defaults to the
    current UTC date.
    """
    today = today or datetime.now(timezone.utc).date()
    name = prefix
    if start_date or end_date:
        name += f"_{start_date or 'start'}_to_{end_date or 'end'}"
    return f"{name}_{today.isoformat()}.{extension}"


def _require_rows(definition: EntityDefinition, records: Sequence[Any]) -> None:
    if not records:
        logger.warning("export refused: no %s records match filters", definition.name)
        raise EmptyExportError(definition.label)


def export_csv(definition: EntityDefinition, records: Sequence[Any],
               start_date: str = "", end_date: str = "",
               today: date | None = None) -> tuple[str, str]:
    """Export a filtered selection for *definition* as CSV.

    Returns:
        ``(filename, csv_text)``.

    Raises:
        EmptyExportError: If *records* is empty.
    """
    _require_rows(definition, records)
    filename = export_filename(definition.export_prefix, start_date, end_date, today)
    text = to_csv(records, definition.csv_header, definition.row_mapper)
    logger.info("exported %d %s records to %s", len(records), definition.name, filename)
    return filename, text


def export_xlsx(definition: EntityDefinition, records: Sequence[Any],
                start_date: str = "", end_date: str = "",
                today: date | None = None) -> tuple[str, bytes]:
    """Excel counterpart of :func:`export_csv`."""
    _require_rows(definition, records)
    filename = export_filename(definition.export_prefix, start_date, end_date,
                               today, extension="xlsx")
    content = to_xlsx(records, definition.csv_header, definition.row_mapper,
                      sheet_title=definition.label)
    logger.info("exported %d %s records to %s", len(records), definition.name, filename)
    return filename, content
