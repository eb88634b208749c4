"""
Tests for utils/validation.py: issue collection, the check registry and
the email/phone shape predicates used by upload validation.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.validation import (
    ValidationIssue,
    ValidationRegistry,
    ValidationResult,
    is_valid_email,
    is_valid_phone,
)


def _needs_name(number, record):
    if not record.get("name"):
        return [ValidationIssue(number, "name", "Required field is missing or empty")]
    return []


def _warn_on_zero_goats(number, record):
    if record.get("goats") == 0:
        return [ValidationIssue(number, "goats", "No goats recorded", severity="warning")]
    return []


# ── ValidationResult ──────────────────────────────────────────────────────────

class TestValidationResult:
    def test_empty_is_valid(self):
        result = ValidationResult()
        assert result.is_valid()
        assert result.error_count() == 0

    def test_counts_by_severity(self):
        result = ValidationResult()
        result.add_issue(1, "name", "missing")
        result.add_issue(2, "goats", "zero", severity="warning")
        result.add_issue(2, "phone", "bad")
        assert result.error_count() == 2
        assert result.warning_count() == 1
        assert not result.is_valid()

    def test_invalid_records_only_counts_errors(self):
        result = ValidationResult()
        result.add_issue(3, "name", "missing")
        result.add_issue(1, "goats", "zero", severity="warning")
        result.add_issue(3, "phone", "bad")
        assert result.invalid_records() == [3]

    def test_by_record_groups_in_order(self):
        result = ValidationResult()
        result.add_issue(2, "a", "x")
        result.add_issue(1, "b", "y")
        result.add_issue(2, "c", "z")
        grouped = result.by_record()
        assert list(grouped) == [2, 1]
        assert [i.field for i in grouped[2]] == ["a", "c"]

    def test_to_dict_summary(self):
        result = ValidationResult()
        result.checked_records = 4
        result.add_issue(1, "name", "missing", sample="")
        data = result.to_dict()
        assert data["summary"] == {"records": 4, "invalid_records": 1,
                                   "errors": 1, "warnings": 0}
        assert data["issues"][0]["sample"] == ""

    def test_summary_text(self):
        result = ValidationResult()
        result.checked_records = 2
        text = result.summary_text()
        assert "Records Checked: 2" in text
        assert "Errors: 0" in text


# ── ValidationIssue ───────────────────────────────────────────────────────────

class TestValidationIssue:
    def test_to_dict_stringifies_sample(self):
        issue = ValidationIssue(4, "goatsMale", "Expected number", sample=12.5,
                                expected="number")
        assert issue.to_dict() == {
            "record": 4,
            "field": "goatsMale",
            "message": "Expected number",
            "severity": "error",
            "sample": "12.5",
            "expected": "number",
        }

    def test_repr(self):
        assert "record=4" in repr(ValidationIssue(4, "x", "y"))


# ── ValidationRegistry ────────────────────────────────────────────────────────

class TestValidationRegistry:
    def test_runs_every_check_with_one_based_numbers(self):
        registry = ValidationRegistry()
        registry.register("name", _needs_name)
        registry.register("goats", _warn_on_zero_goats)
        result = registry.run_all([
            {"name": "Jane", "goats": 3},
            {"name": "", "goats": 0},
        ])
        assert result.checked_records == 2
        assert result.invalid_records() == [2]
        assert {(i.record, i.field, i.severity) for i in result.issues} == {
            (2, "name", "error"), (2, "goats", "warning"),
        }

    def test_skip_checks(self):
        registry = ValidationRegistry()
        registry.register("name", _needs_name)
        result = registry.run_all([{"name": ""}], skip_checks=["name"])
        assert result.is_valid()


# ── Shape predicates ──────────────────────────────────────────────────────────

class TestPredicates:
    @pytest.mark.parametrize("value", ["jane@example.org", " a.b@c.co "])
    def test_valid_email(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", ["jane", "jane@", "jane@example", "a b@c.co", None, 5])
    def test_invalid_email(self, value):
        assert not is_valid_email(value)

    @pytest.mark.parametrize("value", ["0712345678", "+254 712 345 678", "(020) 123-4567", 712345678])
    def test_valid_phone(self, value):
        assert is_valid_phone(value)

    @pytest.mark.parametrize("value", ["12345", "07123abc45", "", True, None])
    def test_invalid_phone(self, value):
        assert not is_valid_phone(value)
