"""Bulk upload of CSV/JSON files into a collection, with validation.

The target collection's existing documents define what an upload must look
like: :func:`infer_schema` samples a few of them for field types and
required fields.  Every uploaded row is checked against that schema; if any
row fails, nothing is written and the per-record problems are returned.
Valid uploads are coerced to the schema types, stamped with
``createdAt``/``updatedAt``, and written in batches of 500.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any

from pipeline.errors import MutationError, UploadError
from utils.config import KnownValues
from utils.dates import parse_date
from utils.validation import (
    ValidationIssue,
    ValidationRegistry,
    ValidationResult,
    is_valid_email,
    is_valid_phone,
)

logger = logging.getLogger(__name__)

SCHEMA_SAMPLE_SIZE = 5

_TRUE_WORDS = ("true", "1", "yes")
_BOOL_WORDS = ("true", "false", "1", "0", "yes", "no")


@dataclass
class FieldSchema:
    type: str = "string"  # string | number | boolean | date | array | object
    required: bool = False
    pattern: str | None = None  # "email" | "phone"
    min_length: int | None = None


Schema = dict[str, FieldSchema]


@dataclass
class UploadResult:
    success: bool
    message: str
    success_count: int = 0
    error_count: int = 0
    errors: list[str] = field(default_factory=list)
    validation_errors: list[ValidationIssue] = field(default_factory=list)
    total_records: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "validation_errors": [e.to_dict() for e in self.validation_errors],
            "total_records": self.total_records,
        }


# ── Parsing ───────────────────────────────────────────────────────────────────

def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text into row dicts with lower-cased, trimmed headers.

    Blank lines are skipped; quoted cells may contain commas.  A header
    with no data rows yields an empty list.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        return []
    headers = [h.strip().lower() for h in rows[0]]
    parsed = []
    for row in rows[1:]:
        cells = [c.strip() for c in row]
        parsed.append({
            header: cells[i] if i < len(cells) else ""
            for i, header in enumerate(headers)
        })
    return parsed


def parse_json(text: str) -> list[dict[str, Any]]:
    """Parse a JSON array of objects, or a single object.

    Raises:
        UploadError: If the text is not JSON or holds something other than
            objects.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise UploadError("Invalid JSON format") from exc
    items = data if isinstance(data, list) else [data]
    if not all(isinstance(item, dict) for item in items):
        raise UploadError("JSON upload must contain objects")
    return items


def parse_upload(filename: str, content: bytes | str) -> list[dict[str, Any]]:
    """Dispatch on the file extension (``.csv`` or ``.json``).

    Raises:
        UploadError: For other extensions or undecodable content.
    """
    extension = PurePath(filename).suffix.lower().lstrip(".")
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise UploadError("Uploaded file is not UTF-8 text") from exc
    if extension == "csv":
        return parse_csv(content)
    if extension == "json":
        return parse_json(content)
    raise UploadError(f"Unsupported file format: {extension or 'none'}. Please use CSV or JSON.")


# ── Schema ────────────────────────────────────────────────────────────────────

def field_type(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, datetime) or callable(getattr(value, "to_datetime", None)):
        return "date"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, Mapping):
        return "object"
    return "string"


def _present(value: Any) -> bool:
    return value is not None and value != ""


def infer_schema(documents: Sequence[Mapping[str, Any]],
                 sample_size: int = SCHEMA_SAMPLE_SIZE) -> Schema:
    """Derive field types and required flags from sample documents.

    A field's type comes from the first sample holding it; it is required
    if any sample gives it a non-empty value.  Field names containing
    ``email`` or ``phone`` get a format check; ``id``-like names must be
    non-empty.
    """
    schema: Schema = {}
    for doc in list(documents)[:sample_size]:
        for name, value in doc.items():
            if name == "id":
                continue
            entry = schema.get(name)
            if entry is None:
                entry = FieldSchema(type=field_type(value), required=_present(value))
                lowered = name.lower()
                if "email" in lowered:
                    entry.pattern = "email"
                elif "phone" in lowered:
                    entry.pattern = "phone"
                elif "id" in lowered:
                    entry.min_length = 1
                schema[name] = entry
            elif _present(value):
                entry.required = True
    return schema


def align_to_schema(record: Mapping[str, Any], schema: Schema) -> dict[str, Any]:
    """Rename keys that match a schema field case-insensitively.

    CSV headers arrive lower-cased, while stored fields are usually
    camelCase (``phoneNo``); this maps ``phoneno`` back to ``phoneNo``.
    """
    by_lower = {name.lower(): name for name in schema}
    return {by_lower.get(key.lower(), key): value for key, value in record.items()}


# ── Validation ────────────────────────────────────────────────────────────────

def _type_issue(number: int, name: str, value: Any, spec: FieldSchema) -> ValidationIssue | None:
    ok = True
    if spec.type == "number":
        if isinstance(value, bool):
            ok = False
        elif not isinstance(value, (int, float)):
            try:
                float(str(value).replace(",", ""))
            except ValueError:
                ok = False
    elif spec.type == "boolean":
        ok = isinstance(value, bool) or str(value).strip().lower() in _BOOL_WORDS
    elif spec.type == "date":
        ok = parse_date(value) is not None
    elif spec.type == "array":
        if isinstance(value, str):
            try:
                ok = isinstance(json.loads(value), list) or "," in value
            except json.JSONDecodeError:
                ok = True  # comma-separated fallback
        else:
            ok = isinstance(value, (list, tuple))
    elif spec.type == "object":
        ok = isinstance(value, Mapping)
    if ok:
        return None
    return ValidationIssue(number, name, f"Expected {spec.type}", sample=value,
                           expected=spec.type)


def build_registry(schema: Schema) -> ValidationRegistry:
    """Checks run against each aligned upload row."""

    def required(number: int, record: Mapping[str, Any]) -> list[ValidationIssue]:
        return [
            ValidationIssue(number, name, "Required field is missing or empty")
            for name, spec in schema.items()
            if spec.required and not _present(record.get(name))
        ]

    def types(number: int, record: Mapping[str, Any]) -> list[ValidationIssue]:
        issues = []
        for name, spec in schema.items():
            value = record.get(name)
            if not _present(value):
                continue
            issue = _type_issue(number, name, value, spec)
            if issue is not None:
                issues.append(issue)
        return issues

    def constraints(number: int, record: Mapping[str, Any]) -> list[ValidationIssue]:
        issues = []
        for name, spec in schema.items():
            value = record.get(name)
            if not _present(value):
                continue
            if spec.pattern == "email" and not is_valid_email(value):
                issues.append(ValidationIssue(number, name, "Invalid email format", sample=value))
            elif spec.pattern == "phone" and not is_valid_phone(value):
                issues.append(ValidationIssue(number, name, "Invalid phone number format", sample=value))
            if spec.min_length and len(str(value).strip()) < spec.min_length:
                issues.append(ValidationIssue(
                    number, name, f"Must be at least {spec.min_length} characters", sample=value,
                ))
        return issues

    def unknown_fields(number: int, record: Mapping[str, Any]) -> list[ValidationIssue]:
        return [
            ValidationIssue(number, name, "Field not in database schema", sample=value)
            for name, value in record.items()
            if name not in schema and name != "id" and _present(value)
        ]

    registry = ValidationRegistry()
    registry.register("required", required)
    registry.register("types", types)
    registry.register("constraints", constraints)
    registry.register("unknown_fields", unknown_fields)
    return registry


def validate_records(records: Sequence[Mapping[str, Any]], schema: Schema) -> ValidationResult:
    """Run every schema check against every (already aligned) record."""
    return build_registry(schema).run_all(list(records))


# ── Transformation ────────────────────────────────────────────────────────────

_EMPTY_DEFAULTS = {
    "string": "",
    "number": 0,
    "array": [],
    "boolean": False,
}


def _coerce(value: Any, spec: FieldSchema, now: datetime) -> Any:
    if spec.type == "string":
        return str(value)
    if spec.type == "number":
        if isinstance(value, (int, float)):
            return value
        number = float(str(value).replace(",", ""))
        return int(number) if number.is_integer() else number
    if spec.type == "boolean":
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_WORDS
        return bool(value)
    if spec.type == "date":
        return parse_date(value) or now
    if spec.type == "array":
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return parsed
            return [v.strip() for v in value.split(",")]
        return list(value) if isinstance(value, (list, tuple)) else [value]
    return value


def transform_record(record: Mapping[str, Any], schema: Schema,
                     now: datetime | None = None) -> dict[str, Any]:
    """Coerce a validated record to the schema and add timestamps.

    Fields missing from the record are filled with a type default only
    when required.
    """
    now = now or datetime.now(timezone.utc)
    transformed: dict[str, Any] = {}
    for name, spec in schema.items():
        value = record.get(name)
        if not _present(value):
            if spec.required:
                if spec.type == "date":
                    transformed[name] = now
                else:
                    default = _EMPTY_DEFAULTS.get(spec.type)
                    transformed[name] = list(default) if isinstance(default, list) else default
            continue
        transformed[name] = _coerce(value, spec, now)
    transformed["createdAt"] = now
    transformed["updatedAt"] = now
    return transformed


def format_validation_errors(issues: Sequence[ValidationIssue]) -> str:
    """Human-readable listing of issues grouped under ``Record N``."""
    if not issues:
        return ""
    grouped: dict[int, list[ValidationIssue]] = {}
    for issue in issues:
        grouped.setdefault(issue.record, []).append(issue)
    lines = ["Validation Errors:", ""]
    for number, record_issues in grouped.items():
        lines.append(f"Record {number}:")
        for issue in record_issues:
            line = f"  - {issue.field}: {issue.message}"
            if issue.sample is not None:
                line += f' (value: "{issue.sample}")'
            if issue.expected:
                line += f" [Expected: {issue.expected}]"
            lines.append(line)
        lines.append("")
    return "\n".join(lines)


# ── Upload ────────────────────────────────────────────────────────────────────

def upload_with_validation(repository, collection: str, filename: str,
                           content: bytes | str,
                           batch_size: int = KnownValues.BATCH_SIZE) -> UploadResult:
    """Validate an uploaded file against *collection* and insert it.

    Nothing is written unless every record passes.  Parse problems and
    store failures come back as an unsuccessful result rather than an
    exception.
    """
    try:
        existing = repository.get(collection).records
        schema = infer_schema(existing)
        if not schema:
            return UploadResult(
                success=False,
                message=(f'Cannot determine schema for collection "{collection}". '
                         "The collection might be empty."),
                errors=["No schema found"],
            )

        parsed = parse_upload(filename, content)
        if not parsed:
            return UploadResult(success=False, message="No data found in the file",
                                errors=["Empty file"])

        aligned = [align_to_schema(record, schema) for record in parsed]
        result = validate_records(aligned, schema)
        if not result.is_valid():
            logger.info("Upload of %s rejected: %s", filename,
                        result.summary_text().replace("\n", " "))
            return UploadResult(
                success=False,
                message=("Data validation failed. Please update your data to "
                         "match the database schema."),
                error_count=len(parsed),
                validation_errors=result.issues,
                total_records=len(parsed),
            )

        now = datetime.now(timezone.utc)
        documents = [transform_record(record, schema, now) for record in aligned]
        inserted = repository.insert_records(collection, documents, batch_size=batch_size)
    except UploadError as exc:
        return UploadResult(success=False, message=str(exc), errors=[str(exc)])
    except MutationError as exc:
        logger.error("Upload to '%s' failed after %d records", collection, exc.applied)
        return UploadResult(
            success=False,
            message=f"Upload failed: {exc}",
            success_count=exc.applied,
            error_count=len(parsed) - exc.applied,
            errors=[f"Upload error: {exc}"],
            total_records=len(parsed),
        )

    logger.info("Uploaded %d records from %s into '%s'", len(inserted), filename, collection)
    return UploadResult(
        success=True,
        message=(f"Successfully uploaded {len(inserted)} records that match "
                 "the database schema."),
        success_count=len(inserted),
        total_records=len(parsed),
    )
