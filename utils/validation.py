"""Data validation utilities for uploaded dashboard records.

Provides reusable pieces for:
- Describing a single validation problem (record, field, message)
- Collecting problems across a whole upload
- Running a registry of per-record check functions
- Simple value-shape predicates (email, phone)
"""

import re
from typing import List, Dict, Any, Callable, Optional, Mapping

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE = re.compile(r"^\+?[\d\s\-()]{7,}$")


class ValidationIssue:
    """Represents a single validation issue found in an uploaded record."""

    def __init__(self, record: int, field: str, message: str,
                 severity: str = "error", sample: Optional[Any] = None,
                 expected: Optional[str] = None):
        """Initialize a validation issue.

        Args:
            record: 1-based position of the record in the upload
            field: Field the issue concerns (``"*"`` for whole-record issues)
            message: Human-readable description of the issue
            severity: Issue severity ('error', 'warning')
            sample: Offending value, if any
            expected: Expected type name for type mismatches
        """
        self.record = record
        self.field = field
        self.message = message
        self.severity = severity
        self.sample = sample
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "record": self.record,
            "field": self.field,
            "message": self.message,
            "severity": self.severity,
            "sample": None if self.sample is None else str(self.sample),
            "expected": self.expected,
        }

    def __repr__(self) -> str:
        return (f"ValidationIssue(record={self.record}, field={self.field}, "
                f"severity={self.severity})")


class ValidationResult:
    """Collects validation issues across an upload."""

    def __init__(self):
        self.issues: List[ValidationIssue] = []
        self.checked_records = 0

    def add_issue(self, record: int, field: str, message: str,
                  severity: str = "error", sample: Optional[Any] = None) -> None:
        """Add a validation issue."""
        self.issues.append(ValidationIssue(record, field, message, severity, sample))

    def extend(self, issues: List[ValidationIssue]) -> None:
        self.issues.extend(issues)

    def get_issues_by_severity(self, severity: str) -> List[ValidationIssue]:
        """Get all issues of a specific severity."""
        return [i for i in self.issues if i.severity == severity]

    def error_count(self) -> int:
        """Get total number of error-level issues."""
        return len(self.get_issues_by_severity("error"))

    def warning_count(self) -> int:
        """Get total number of warning-level issues."""
        return len(self.get_issues_by_severity("warning"))

    def invalid_records(self) -> List[int]:
        """Record numbers carrying at least one error, in upload order."""
        return sorted({i.record for i in self.issues if i.severity == "error"})

    def is_valid(self) -> bool:
        """Check if validation passed (no errors)."""
        return self.error_count() == 0

    def by_record(self) -> Dict[int, List[ValidationIssue]]:
        """Group issues by record number, preserving insertion order."""
        grouped: Dict[int, List[ValidationIssue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.record, []).append(issue)
        return grouped

    def summary_text(self) -> str:
        """Generate human-readable validation summary."""
        lines = []
        lines.append("Validation Summary:")
        lines.append(f"  Records Checked: {self.checked_records}")
        lines.append(f"  Invalid Records: {len(self.invalid_records())}")
        lines.append(f"  Issues: {len(self.issues)}")
        lines.append(f"    - Errors: {self.error_count()}")
        lines.append(f"    - Warnings: {self.warning_count()}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "issues": [i.to_dict() for i in self.issues],
            "summary": {
                "records": self.checked_records,
                "invalid_records": len(self.invalid_records()),
                "errors": self.error_count(),
                "warnings": self.warning_count(),
            },
        }


RecordCheck = Callable[[int, Mapping[str, Any]], List[ValidationIssue]]


class ValidationRegistry:
    """Manages a collection of per-record validation check functions."""

    def __init__(self):
        self.checks: Dict[str, RecordCheck] = {}

    def register(self, name: str, check_fn: RecordCheck) -> None:
        """Register a check taking ``(record_number, record)``.

        Args:
            name: Human-readable check name
            check_fn: Function that returns List[ValidationIssue]
        """
        self.checks[name] = check_fn

    def run_all(self, records: List[Mapping[str, Any]],
                skip_checks: Optional[List[str]] = None) -> ValidationResult:
        """Run every registered check against every record.

        Args:
            records: Parsed upload rows
            skip_checks: List of check names to skip

        Returns:
            ValidationResult with all issues found
        """
        skip = skip_checks or []
        result = ValidationResult()
        for number, record in enumerate(records, start=1):
            for name, check_fn in self.checks.items():
                if name in skip:
                    continue
                result.extend(check_fn(number, record))
        result.checked_records = len(records)
        return result


def is_valid_email(value: Any) -> bool:
    """Check that *value* looks like an email address."""
    return isinstance(value, str) and bool(_EMAIL.match(value.strip()))


def is_valid_phone(value: Any) -> bool:
    """Check that *value* looks like a phone number (7+ digits/separators)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        value = str(value)
    return isinstance(value, str) and bool(_PHONE.match(value.strip()))
