"""
Pydantic request/response models for the API.

Record payloads are the canonical records' ``to_dict()`` output, so item
lists are typed loosely; the envelope around them (pagination, stats,
mutation results, errors) is typed strictly.

Field() descriptions and examples feed the OpenAPI docs.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ── Listing ───────────────────────────────────────────────────────────────────

class PaginationOut(BaseModel):
    """Navigation state for one page of filtered records."""
    page: int = Field(..., ge=1, description="1-based page number", examples=[1])
    limit: int = Field(..., ge=1, description="Page size", examples=[15])
    total: int = Field(..., ge=0, description="Records matching the filters", examples=[42])
    total_pages: int = Field(..., ge=1, description="max(1, ceil(total / limit))", examples=[3])
    has_next: bool = Field(..., description="A later page exists")
    has_prev: bool = Field(..., description="An earlier page exists")


class FiltersOut(BaseModel):
    """Echo of the filters that produced a page."""
    search: str = Field("", description="Free-text search term")
    start_date: str = Field("", description="Inclusive start day (YYYY-MM-DD)", examples=["2024-03-01"])
    end_date: str = Field("", description="Inclusive end day (YYYY-MM-DD)", examples=["2024-03-31"])
    region: str = Field("all", description="Region filter, 'all' for none", examples=["North"])
    location: str = Field("all", description="Location filter, 'all' for none")
    categories: dict[str, str] = Field(default_factory=dict, description="Entity-specific categorical filters")
    active: bool = Field(False, description="Whether any filter constrains the page")


class RecordPage(BaseModel):
    """Response body for GET /api/v1/records/{entity}."""
    entity: str = Field(..., description="Entity name", examples=["farmers"])
    items: list[dict[str, Any]] = Field(..., description="Canonical records on this page")
    stats: dict[str, Any] = Field(..., description="Aggregates over all filtered records (not just this page)")
    pagination: PaginationOut
    filters: FiltersOut
    generation: int = Field(..., description="Snapshot generation the page was computed from", examples=[7])


class FilterOptionsOut(BaseModel):
    """Dropdown choices for an entity page."""
    entity: str = Field(..., examples=["farmers"])
    region: str = Field("all", description="Region the location list is narrowed to")
    options: dict[str, list[str]] = Field(..., description="Distinct values per filterable field")


class EntityOut(BaseModel):
    """One entity the dashboard can browse."""
    name: str = Field(..., examples=["infrastructure"])
    label: str = Field(..., examples=["Infrastructure Data"])
    collection: str = Field(..., description="Store collection name", examples=["Infrastructure Data"])
    categorical_filters: list[str] = Field(..., examples=[["type", "status"]])
    search_fields: list[str] = Field(..., examples=[["location", "region", "type"]])


class DateRangeOut(BaseModel):
    """Quick-filter date range."""
    start_date: str = Field(..., examples=["2024-03-01"])
    end_date: str = Field(..., examples=["2024-03-31"])


# ── Mutations ─────────────────────────────────────────────────────────────────

class RecordUpdate(BaseModel):
    """Body for PATCH /api/v1/records/{entity}/{record_id}."""
    changes: dict[str, Any] = Field(..., min_length=1, description="Fields to merge into the stored document",
                                    examples=[{"status": "Active", "currentStock": 120}])


class BulkDeleteRequest(BaseModel):
    """Body for POST /api/v1/records/{entity}/delete."""
    ids: list[str] = Field(..., min_length=1, description="Document ids to delete in one batch",
                           examples=[["a1b2c3", "d4e5f6"]])


class MutationResponse(BaseModel):
    """Result of an edit, delete or refresh."""
    entity: str = Field(..., examples=["farmers"])
    affected: int = Field(..., ge=0, description="Documents written or deleted", examples=[2])
    generation: int = Field(..., description="Snapshot generation after the operation", examples=[8])
    records: int = Field(..., ge=0, description="Documents in the refreshed snapshot", examples=[140])


# ── Upload ────────────────────────────────────────────────────────────────────

class ValidationIssueOut(BaseModel):
    record: int = Field(..., ge=1, description="1-based record number in the upload")
    field: str = Field(..., examples=["phoneNo"])
    message: str = Field(..., examples=["Required field is missing or empty"])
    severity: str = Field("error", examples=["error"])
    sample: str | None = Field(None, description="Offending value")
    expected: str | None = Field(None, description="Expected type", examples=["number"])


class UploadResponse(BaseModel):
    """Result of POST /api/v1/upload/{entity}."""
    success: bool
    message: str = Field(..., examples=["Successfully uploaded 12 records that match the database schema."])
    success_count: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    errors: list[str] = Field(default_factory=list)
    validation_errors: list[ValidationIssueOut] = Field(default_factory=list)
    total_records: int = Field(0, ge=0)
    report: str = Field("", description="Validation errors grouped by record, as text")


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="Short error category", examples=["Bad request"])
    detail: str | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[400])
