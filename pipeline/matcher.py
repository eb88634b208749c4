"""Cross-collection matching of farmers against training attendance.

A farmer counts as trained when any Capacity Building record carries the
same phone number (trimmed) or the same name (trimmed, case-insensitive).
Only existence matters; several farmers sharing a phone all match the same
record, which is accepted.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Sequence

from pipeline.models import Farmer, TrainingRecord
from utils.strings import as_text, fold


def _phone_key(value) -> str:
    return as_text(value).strip()


def _name_key(value) -> str:
    return fold(value)


def _matches(phone: str, name: str, record: TrainingRecord) -> bool:
    record_phone = _phone_key(record.phone)
    if phone and record_phone and phone == record_phone:
        return True
    record_name = _name_key(record.name)
    return bool(name and record_name and name == record_name)


def get_training_details(
    farmer: Farmer, training_records: Iterable[TrainingRecord],
) -> TrainingRecord | None:
    """Return the first training record matching *farmer*, or None."""
    phone = _phone_key(farmer.phone)
    name = _name_key(farmer.name)
    if not phone and not name:
        return None
    for record in training_records:
        if _matches(phone, name, record):
            return record
    return None


def is_trained(farmer: Farmer, training_records: Iterable[TrainingRecord]) -> bool:
    """True iff some training record matches *farmer* by phone or name.

    A farmer with neither a phone nor a name never matches.
    """
    return get_training_details(farmer, training_records) is not None


class TrainingIndex:
    """Phone and name lookups over a training collection.

    Gives the same answers as :func:`get_training_details` (first match in
    list order) without rescanning the collection for every farmer.
    """

    def __init__(self, training_records: Sequence[TrainingRecord]) -> None:
        self._records = tuple(training_records)
        self._by_phone: dict[str, int] = {}
        self._by_name: dict[str, int] = {}
        for position, record in enumerate(self._records):
            phone = _phone_key(record.phone)
            if phone:
                self._by_phone.setdefault(phone, position)
            name = _name_key(record.name)
            if name:
                self._by_name.setdefault(name, position)

    def __len__(self) -> int:
        return len(self._records)

    def lookup(self, farmer: Farmer) -> TrainingRecord | None:
        phone = _phone_key(farmer.phone)
        name = _name_key(farmer.name)
        candidates = []
        if phone and phone in self._by_phone:
            candidates.append(self._by_phone[phone])
        if name and name in self._by_name:
            candidates.append(self._by_name[name])
        if not candidates:
            return None
        return self._records[min(candidates)]

    def is_trained(self, farmer: Farmer) -> bool:
        return self.lookup(farmer) is not None


def reconcile_training(
    farmers: Iterable[Farmer], training_records: Sequence[TrainingRecord],
) -> tuple[Farmer, ...]:
    """Attach ``trained`` and ``training_modules`` to every farmer.

    Returns new Farmer records in the original order; inputs are untouched.
    """
    index = TrainingIndex(training_records)
    reconciled = []
    for farmer in farmers:
        match = index.lookup(farmer)
        reconciled.append(dataclasses.replace(
            farmer,
            trained=match is not None,
            training_modules=match.modules if match is not None else "",
        ))
    return tuple(reconciled)
