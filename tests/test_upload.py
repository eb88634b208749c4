"""
Tests for pipeline/upload.py: file parsing, schema inference from stored
documents, per-record validation, coercion, and the all-or-nothing upload.
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.errors import UploadError
from pipeline.upload import (
    FieldSchema,
    align_to_schema,
    field_type,
    format_validation_errors,
    infer_schema,
    parse_csv,
    parse_json,
    parse_upload,
    transform_record,
    upload_with_validation,
    validate_records,
)
from sample_records import TRAINING_DOCS
from utils.config import KnownValues
from utils.validation import ValidationIssue

TRAINING = KnownValues.TRAINING_COLLECTION
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

CSV_HEADER = "name,gender,phone,location,region,modules,date"


# ── Parsing ───────────────────────────────────────────────────────────────────

class TestParsing:
    def test_csv_headers_lowered_and_cells_trimmed(self):
        rows = parse_csv("Name , Phone\n Ann , 0711\n")
        assert rows == [{"name": "Ann", "phone": "0711"}]

    def test_csv_quoted_commas_and_blank_lines(self):
        rows = parse_csv('name,notes\n\n"Ann","a, b"\n')
        assert rows == [{"name": "Ann", "notes": "a, b"}]

    def test_csv_short_rows_padded(self):
        assert parse_csv("a,b\n1\n") == [{"a": "1", "b": ""}]

    def test_csv_header_only(self):
        assert parse_csv("a,b\n") == []

    def test_csv_bom_stripped(self):
        assert parse_csv("\ufeffname\nAnn") == [{"name": "Ann"}]

    def test_json_array_and_object(self):
        assert parse_json('[{"a": 1}]') == [{"a": 1}]
        assert parse_json('{"a": 1}') == [{"a": 1}]

    @pytest.mark.parametrize("text", ["not json", "[1, 2]"])
    def test_json_rejects(self, text):
        with pytest.raises(UploadError):
            parse_json(text)

    def test_dispatch_on_extension(self):
        assert parse_upload("data.CSV", b"a\n1") == [{"a": "1"}]
        assert parse_upload("data.json", '[{"a": 1}]') == [{"a": 1}]

    def test_unsupported_extension(self):
        with pytest.raises(UploadError, match="Unsupported file format: xlsx"):
            parse_upload("data.xlsx", b"")

    def test_non_utf8_bytes(self):
        with pytest.raises(UploadError):
            parse_upload("data.csv", b"\xff\xfe\xfa")


# ── Schema ────────────────────────────────────────────────────────────────────

class TestSchema:
    @pytest.mark.parametrize("value,expected", [
        ([1], "array"), (datetime(2024, 1, 1), "date"), (True, "boolean"),
        (3, "number"), (2.5, "number"), ({"a": 1}, "object"), ("x", "string"),
        (None, "string"),
    ])
    def test_field_type(self, value, expected):
        assert field_type(value) == expected

    def test_infer_from_training_docs(self):
        schema = infer_schema(TRAINING_DOCS)
        assert "id" not in schema
        assert schema["Phone"].pattern == "phone"
        assert schema["Name"].required
        assert schema["Name"].type == "string"

    def test_required_if_any_sample_has_value(self):
        schema = infer_schema([{"a": "", "b": ""}, {"a": "x"}])
        assert schema["a"].required
        assert not schema["b"].required

    def test_id_like_and_email_fields(self):
        schema = infer_schema([{"idNumber": "1", "contactEmail": "a@b.co", "n": 2}])
        assert schema["idNumber"].min_length == 1
        assert schema["contactEmail"].pattern == "email"
        assert schema["n"].type == "number"

    def test_sample_size_limit(self):
        docs = [{"a": 1}] * 5 + [{"late": 1}]
        assert "late" not in infer_schema(docs)

    def test_align_restores_stored_case(self):
        schema = {"phoneNo": FieldSchema(), "Name": FieldSchema()}
        assert align_to_schema({"phoneno": "1", "name": "A", "other": 2}, schema) == \
            {"phoneNo": "1", "Name": "A", "other": 2}


# ── Validation ────────────────────────────────────────────────────────────────

class TestValidateRecords:
    SCHEMA = {
        "name": FieldSchema(required=True),
        "goats": FieldSchema(type="number"),
        "active": FieldSchema(type="boolean"),
        "phone": FieldSchema(pattern="phone"),
        "email": FieldSchema(pattern="email"),
        "visited": FieldSchema(type="date"),
        "members": FieldSchema(type="array"),
    }

    def test_valid_record(self):
        result = validate_records([{
            "name": "Ann", "goats": "1,200", "active": "yes", "phone": "0711222333",
            "email": "ann@example.org", "visited": "2024-03-01", "members": "a, b",
        }], self.SCHEMA)
        assert result.is_valid()

    def test_each_problem_reported(self):
        result = validate_records([{
            "name": "", "goats": "many", "active": "maybe", "phone": "12ab",
            "email": "nope", "visited": "someday", "extra": "x",
        }], self.SCHEMA)
        fields = sorted(i.field for i in result.issues)
        assert fields == ["active", "email", "extra", "goats", "name", "phone", "visited"]
        assert result.invalid_records() == [1]

    def test_empty_optional_values_skip_checks(self):
        result = validate_records([{"name": "Ann", "goats": "", "phone": None}], self.SCHEMA)
        assert result.is_valid()

    def test_record_numbers_are_one_based(self):
        result = validate_records([{"name": "Ann"}, {"name": ""}], self.SCHEMA)
        assert [i.record for i in result.issues] == [2]


class TestTransform:
    def test_coerces_to_schema(self):
        schema = {
            "goats": FieldSchema(type="number"),
            "weight": FieldSchema(type="number"),
            "active": FieldSchema(type="boolean"),
            "members": FieldSchema(type="array"),
            "tags": FieldSchema(type="array"),
            "visited": FieldSchema(type="date"),
            "name": FieldSchema(),
        }
        record = transform_record({
            "goats": "1,200", "weight": "12.5", "active": "Yes",
            "members": "a, b", "tags": '["x"]', "visited": "2024-03-01", "name": 7,
        }, schema, now=NOW)
        assert record["goats"] == 1200
        assert record["weight"] == 12.5
        assert record["active"] is True
        assert record["members"] == ["a", "b"]
        assert record["tags"] == ["x"]
        assert record["visited"] == datetime(2024, 3, 1)
        assert record["name"] == "7"
        assert record["createdAt"] == record["updatedAt"] == NOW

    def test_missing_required_gets_default(self):
        schema = {
            "count": FieldSchema(type="number", required=True),
            "when": FieldSchema(type="date", required=True),
            "note": FieldSchema(),
        }
        record = transform_record({}, schema, now=NOW)
        assert record["count"] == 0
        assert record["when"] == NOW
        assert "note" not in record


def test_format_validation_errors():
    text = format_validation_errors([
        ValidationIssue(1, "Phone", "Invalid phone number format", sample="12ab"),
        ValidationIssue(1, "goats", "Expected number", sample="x", expected="number"),
        ValidationIssue(3, "Name", "Required field is missing or empty"),
    ])
    assert text.split("\n") == [
        "Validation Errors:",
        "",
        "Record 1:",
        '  - Phone: Invalid phone number format (value: "12ab")',
        '  - goats: Expected number (value: "x") [Expected: number]',
        "",
        "Record 3:",
        "  - Name: Required field is missing or empty",
        "",
    ]
    assert format_validation_errors([]) == ""


# ── End to end ────────────────────────────────────────────────────────────────

class TestUploadWithValidation:
    def test_valid_csv_inserted(self, repository):
        content = (CSV_HEADER + "\n"
                   "Ann,Female,0712000000,Embu,East,Goat Husbandry,2024-05-01\n"
                   "Ben,Male,0712000001,Embu,East,Fodder Production,2024-05-02\n")
        result = upload_with_validation(repository, TRAINING, "training.csv", content.encode())
        assert result.success, result.message
        assert result.success_count == 2
        assert result.total_records == 2
        docs = repository.get(TRAINING).records
        assert len(docs) == 4
        names = {d["Name"] for d in docs}
        assert {"Ann", "Ben"} <= names

    def test_invalid_row_blocks_whole_upload(self, repository):
        content = (CSV_HEADER + "\n"
                   "Ann,Female,0712000000,Embu,East,Goat Husbandry,2024-05-01\n"
                   ",Male,12ab,Embu,East,Fodder Production,2024-05-02\n")
        result = upload_with_validation(repository, TRAINING, "training.csv", content)
        assert not result.success
        assert result.error_count == 2
        assert {(i.record, i.field) for i in result.validation_errors} == {
            (2, "Name"), (2, "Phone"),
        }
        assert len(repository.get(TRAINING).records) == 2

    def test_empty_collection_has_no_schema(self, repository):
        result = upload_with_validation(repository, "Empty", "x.csv", "a\n1")
        assert not result.success
        assert result.errors == ["No schema found"]

    def test_empty_file(self, repository):
        result = upload_with_validation(repository, TRAINING, "x.csv", CSV_HEADER)
        assert not result.success
        assert result.message == "No data found in the file"

    def test_bad_format_is_a_result(self, repository):
        result = upload_with_validation(repository, TRAINING, "x.txt", "hello")
        assert not result.success
        assert "Unsupported file format" in result.message

    def test_store_rejection_reported(self, flaky_source, flaky_repository):
        flaky_repository.get(TRAINING)
        flaky_source.fail_batch = True
        content = CSV_HEADER + "\nAnn,Female,0712000000,Embu,East,Goat Husbandry,2024-05-01"
        result = upload_with_validation(flaky_repository, TRAINING, "t.csv", content)
        assert not result.success
        assert result.success_count == 0
        assert result.error_count == 1
        assert result.errors[0].startswith("Upload error:")

    def test_to_dict(self, repository):
        result = upload_with_validation(repository, TRAINING, "x.csv", CSV_HEADER)
        data = result.to_dict()
        assert data["success"] is False
        assert data["validation_errors"] == []
