"""
Tests for pipeline/matcher.py: farmers matched to training attendance by
trimmed phone or case-insensitive trimmed name.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pipeline.matcher import (
    TrainingIndex,
    get_training_details,
    is_trained,
    reconcile_training,
)
from pipeline.models import Farmer, TrainingRecord
from pipeline.normalize import normalize_all, normalize_farmer, normalize_training
from sample_records import FARMER_DOCS, TRAINING_DOCS


def _training():
    return normalize_all(TRAINING_DOCS, normalize_training)


class TestIsTrained:
    def test_name_match_ignores_case_and_spaces(self):
        farmer = Farmer(name="Jane Doe", phone="0712345678")
        records = [TrainingRecord(name="jane doe ", phone="0700000000")]
        assert is_trained(farmer, records) is True

    def test_phone_match(self):
        farmer = Farmer(name="John Smith", phone=" 0798765432 ")
        records = [TrainingRecord(name="Someone Else", phone="0798765432")]
        assert is_trained(farmer, records) is True

    def test_no_match(self):
        farmer = Farmer(name="Peter Otieno", phone="0700111222")
        assert is_trained(farmer, _training()) is False

    def test_empty_training(self):
        assert is_trained(Farmer(name="Jane Doe"), []) is False

    def test_blank_farmer_never_matches(self):
        records = [TrainingRecord(name="", phone="")]
        assert is_trained(Farmer(name="  ", phone=""), records) is False

    def test_blank_fields_do_not_match_each_other(self):
        farmer = Farmer(name="Mary Wanjiku", phone="")
        records = [TrainingRecord(name="Someone", phone="")]
        assert is_trained(farmer, records) is False

    def test_phone_is_not_case_folded_but_trimmed(self):
        farmer = Farmer(phone="0711")
        assert is_trained(farmer, [TrainingRecord(phone="0711 ")]) is True


class TestTrainingDetails:
    def test_returns_first_match_in_order(self):
        records = [
            TrainingRecord(id="a", name="Other", phone="0799"),
            TrainingRecord(id="b", name="Jane", phone="0711"),
            TrainingRecord(id="c", name="jane", phone="0722"),
        ]
        assert get_training_details(Farmer(name="JANE", phone="0722"), records).id == "b"

    def test_none_without_match(self):
        assert get_training_details(Farmer(name="Nobody"), _training()) is None


class TestTrainingIndex:
    def test_agrees_with_linear_scan(self):
        training = _training()
        index = TrainingIndex(training)
        assert len(index) == 2
        for farmer in normalize_all(FARMER_DOCS, normalize_farmer):
            assert index.lookup(farmer) == get_training_details(farmer, training)
            assert index.is_trained(farmer) == is_trained(farmer, training)

    def test_earliest_of_phone_and_name_hits(self):
        records = [
            TrainingRecord(id="a", name="Other", phone="0799"),
            TrainingRecord(id="b", name="Jane", phone="0711"),
            TrainingRecord(id="c", name="Zed", phone="0722"),
        ]
        index = TrainingIndex(records)
        assert index.lookup(Farmer(name="jane", phone="0722")).id == "b"


class TestReconcile:
    def test_sets_trained_and_modules(self):
        farmers = normalize_all(FARMER_DOCS, normalize_farmer)
        reconciled = reconcile_training(farmers, _training())
        by_id = {f.id: f for f in reconciled}
        assert by_id["f1"].trained and by_id["f1"].training_modules == "Goat Husbandry"
        assert by_id["f2"].trained and by_id["f2"].training_modules == "Fodder Production"
        assert not by_id["f3"].trained and by_id["f3"].training_modules == ""
        assert not by_id["f4"].trained

    def test_preserves_order_and_inputs(self):
        farmers = normalize_all(FARMER_DOCS, normalize_farmer)
        reconciled = reconcile_training(farmers, _training())
        assert [f.id for f in reconciled] == [f.id for f in farmers]
        assert all(not f.trained for f in farmers)

    def test_previous_flag_is_recomputed(self):
        stale = Farmer(id="x", name="Nobody", trained=True, training_modules="Old")
        (fresh,) = reconcile_training([stale], _training())
        assert fresh.trained is False
        assert fresh.training_modules == ""
