"""Record normalization: raw store documents -> canonical records.

Field-entry apps have written the same field under several names over the
years (``goatsMale``, ``GoatsMale``, ``maleGoats``...).  Each entity type
has an ordered alias table of ``(canonical_field, (source_alias, ...))``
pairs; :func:`resolve_field` takes the first alias holding a real value.

The canonical field name is always one of its own aliases, so feeding a
record (or its ``to_dict()`` form) back through its normalizer returns an
equal record.  Every function here is pure and never raises.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from pipeline.models import (
    AnimalHealthActivity,
    BoreholeRecord,
    Farmer,
    FodderOfftakeRecord,
    FodderRecord,
    InfrastructureRecord,
    LivestockOfftakeRecord,
    TrainingRecord,
)
from utils.dates import parse_date
from utils.strings import as_text, safe_float, safe_int

AliasTable = tuple[tuple[str, tuple[str, ...]], ...]

R = TypeVar("R")

# ── Alias tables ──────────────────────────────────────────────────────────────

FARMER_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("name", ("name", "Name", "farmerName")),
    ("gender", ("gender", "Gender")),
    ("phone", ("phone", "phoneNo", "Phone", "phoneNumber")),
    ("id_number", ("idNumber", "idNo", "IdNumber", "nationalId", "id_number")),
    ("region", ("region", "Region", "county", "County")),
    ("location", ("location", "Location", "village", "Village")),
    ("county", ("county", "County")),
    ("subcounty", ("subcounty", "Subcounty", "subCounty", "SubCounty", "sub_county")),
    ("submitted_at", ("dateSubmitted", "createdAt", "date", "submitted_at")),
    ("goats_male", ("goatsMale", "GoatsMale", "maleGoats", "goats_male")),
    ("goats_female", ("goatsFemale", "GoatsFemale", "femaleGoats", "female_goats", "goats_female")),
    ("new_breed_males", ("newBreedMales", "newBreedMale", "new_breed_males")),
    ("new_breed_females", ("newBreedFemales", "newBreedFemale", "new_breed_females")),
    ("new_breed_young", ("newBreedYoung", "newBreedYoungs", "new_breed_young")),
    ("number_of_breeds", ("numberOfBreeds", "NumberOfBreeds", "breeds", "totalBreeds", "number_of_breeds")),
    ("vaccinated_animals", ("vaccinatedAnimals", "vaccinated", "animalsVaccinated", "vaccinated_animals")),
    ("vaccine_type", ("vaccineType", "VaccineType", "vaccine", "vaccine_type")),
    ("vaccination_date", ("vaccinationDate", "VaccinationDate", "vaccination_date")),
    ("deworming_date", ("dewormingDate", "DewormingDate", "deworming_date")),
    ("dipping_date", ("dippingDate", "DippingDate", "dipping_date")),
    ("training_type", ("trainingType", "TrainingType", "training", "training_type")),
    ("live_weight", ("liveWeight", "live_weight", "weight")),
    ("carcass_weight", ("carcassWeight", "carcass_weight")),
    ("tag_number", ("tagNumber", "tagNo", "earTag", "tag_number")),
    ("traceability_id", ("traceabilityId", "traceability", "traceabilityCode", "traceability_id")),
    ("trained", ("trained",)),
    ("training_modules", ("training_modules",)),
)

TRAINING_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("name", ("Name", "name")),
    ("gender", ("Gender", "gender")),
    ("phone", ("Phone", "phone", "phoneNo")),
    ("region", ("region", "Region", "county", "County")),
    ("location", ("Location", "location")),
    ("modules", ("Modules", "modules")),
    ("date", ("date", "timestamp", "Date")),
)

INFRASTRUCTURE_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "Date", "createdAt", "timestamp")),
    ("location", ("location", "Location", "area", "Area")),
    ("region", ("region", "Region", "county", "County")),
    ("type", ("type", "Type", "facilityType", "FacilityType")),
    ("capacity", ("capacity", "Capacity", "storageCapacity", "StorageCapacity")),
    ("current_stock", ("currentStock", "CurrentStock", "stock", "Stock", "current_stock")),
    ("status", ("status", "Status", "condition", "Condition")),
    ("manager", ("manager", "Manager", "contactPerson", "ContactPerson")),
    ("contact", ("contact", "Contact", "phone", "Phone", "telephone", "Telephone")),
)

BOREHOLE_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "Date", "createdAt", "timestamp")),
    ("location", ("BoreholeLocation", "location", "Location")),
    ("people", ("PeopleUsingBorehole", "people", "peopleUsingBorehole")),
    ("water_used", ("WaterUsed", "waterUsed", "water_used")),
    ("drilled", ("drilled", "Drilled")),
    ("maintained", ("maintained", "Maintained")),
)

FODDER_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "Date", "createdAt", "timestamp")),
    ("location", ("location", "Location")),
    ("region", ("region", "Region", "county", "County")),
    ("model", ("model", "Model")),
    ("land_size", ("landSize", "LandSize", "land_size")),
    ("total_acres_pasture", ("totalAcresPasture", "TotalAcresPasture", "total_acres_pasture")),
    ("total_bales", ("totalBales", "TotalBales", "total_bales")),
    ("yield_per_harvest", ("yieldPerHarvest", "YieldPerHarvest", "yield_per_harvest")),
    ("farmer_count", ("farmers", "Farmers", "farmerCount", "farmer_count")),
)

LIVESTOCK_OFFTAKE_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "Date", "createdAt", "timestamp")),
    ("farmer_name", ("farmerName", "farmername", "farmer_name", "name")),
    ("gender", ("gender", "Gender")),
    ("id_number", ("idNumber", "idnumber", "id_number", "IDNumber")),
    ("phone", ("phoneNumber", "phonenumber", "phone_number", "phone", "Phone")),
    ("region", ("region", "Region", "county", "County")),
    ("location", ("location", "Location", "area", "Area")),
    ("animals", ("noSheepGoats", "nosheepgoats", "no_sheep_goats", "quantity", "animals")),
    ("live_weights", ("liveWeight", "live_weight", "LiveWeight", "live_weights")),
    ("carcass_weights", ("carcassWeight", "carcass_weight", "CarcassWeight", "carcass_weights")),
    ("unit_prices", ("pricePerGoatAndSheep", "price_per_goat_sheep", "unitPrice", "unit_prices")),
    ("total_price", ("totalprice", "totalPrice", "total_price", "sheepGoatPrice")),
)

FODDER_OFFTAKE_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "Date", "createdAt", "timestamp")),
    ("farmer_name", ("farmerName", "name", "Name", "farmer_name")),
    ("phone", ("phoneNumber", "phone", "Phone")),
    ("region", ("region", "Region", "county", "County")),
    ("location", ("location", "Location")),
    ("bales", ("bales", "Bales", "noOfBales", "quantity")),
    ("price_per_bale", ("pricePerBale", "price_per_bale", "unitPrice")),
    ("total_price", ("totalPrice", "totalprice", "total_price", "amount")),
)

ANIMAL_HEALTH_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "Date")),
    ("county", ("county", "County")),
    ("subcounty", ("subcounty", "Subcounty", "subCounty")),
    ("location", ("location", "Location")),
    ("comment", ("comment", "Comment")),
    ("vaccines", ("vaccines",)),
    ("field_officers", ("fieldofficers", "fieldOfficers", "field_officers")),
    ("created_by", ("createdBy", "created_by")),
    ("status", ("status", "Status")),
)

# Older outreach documents carry a single vaccine in flat fields.
_LEGACY_VACCINE = ("vaccinetype", "vaccineType")
_LEGACY_DOSES = ("number_doses", "numberDoses")

# ── Field coercion ────────────────────────────────────────────────────────────


def resolve_field(raw: Mapping[str, Any], aliases: tuple[str, ...]) -> Any:
    """Return the first alias value that is neither None nor ``""``.

    Zero and False count as present values.

    Args:
        raw: Source document.
        aliases: Candidate keys in priority order.

    Returns:
        The resolved value, or None when no alias holds a value.
    """
    for key in aliases:
        value = raw.get(key)
        if value is None or value == "":
            continue
        return value
    return None


def as_flag(value: Any) -> bool:
    """Interpret yes/no style form values as a boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return as_text(value).strip().lower() in ("yes", "y", "true", "1")


def count_of(value: Any) -> int:
    """A list counts its members; anything else parses as an integer."""
    if isinstance(value, (list, tuple)):
        return len(value)
    return safe_int(value)


def as_amounts(value: Any) -> tuple[float, ...]:
    """Per-animal figures: a list keeps one entry per animal, a scalar is one."""
    if isinstance(value, (list, tuple)):
        return tuple(safe_float(v) for v in value)
    return (safe_float(value),)


def _pair(entry: Any, first: str, second: str) -> tuple[Any, Any]:
    if isinstance(entry, Mapping):
        return entry.get(first), entry.get(second)
    if isinstance(entry, (list, tuple)) and len(entry) == 2:
        return entry[0], entry[1]
    return None, None


def as_vaccines(value: Any) -> tuple[tuple[str, int], ...]:
    """``[{"type", "doses"}, ...]`` as pairs, dropping entries without doses."""
    if not isinstance(value, (list, tuple)):
        return ()
    vaccines = []
    for entry in value:
        kind, doses = _pair(entry, "type", "doses")
        kind, doses = as_text(kind).strip() or "Unknown", safe_int(doses)
        if doses > 0:
            vaccines.append((kind, doses))
    return tuple(vaccines)


def as_officers(value: Any) -> tuple[tuple[str, str], ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(
        (as_text(name), as_text(role))
        for name, role in (_pair(entry, "name", "role") for entry in value)
        if name is not None
    )


Coercer = Callable[[Any], Any]


def _coercers(default: Coercer, **overrides: Coercer) -> Callable[[str], Coercer]:
    return lambda field: overrides.get(field, default)


_FARMER_COERCE = _coercers(
    as_text,
    submitted_at=parse_date,
    vaccination_date=parse_date,
    deworming_date=parse_date,
    dipping_date=parse_date,
    goats_male=safe_int,
    goats_female=safe_int,
    new_breed_males=safe_int,
    new_breed_females=safe_int,
    new_breed_young=safe_int,
    number_of_breeds=safe_int,
    vaccinated_animals=safe_int,
    trained=as_flag,
)

_TRAINING_COERCE = _coercers(as_text, date=parse_date)

_INFRASTRUCTURE_COERCE = _coercers(
    as_text, date=parse_date, capacity=safe_float, current_stock=safe_float,
)

_BOREHOLE_COERCE = _coercers(
    as_text,
    date=parse_date,
    people=safe_int,
    water_used=safe_float,
    drilled=as_flag,
    maintained=as_flag,
)

_FODDER_COERCE = _coercers(
    as_text,
    date=parse_date,
    land_size=safe_float,
    total_acres_pasture=safe_float,
    total_bales=safe_int,
    yield_per_harvest=safe_float,
    farmer_count=count_of,
)


_LIVESTOCK_OFFTAKE_COERCE = _coercers(
    as_text,
    date=parse_date,
    animals=safe_int,
    live_weights=as_amounts,
    carcass_weights=as_amounts,
    unit_prices=as_amounts,
    total_price=safe_float,
)

_FODDER_OFFTAKE_COERCE = _coercers(
    as_text,
    date=parse_date,
    bales=safe_int,
    price_per_bale=safe_float,
    total_price=safe_float,
)

_ANIMAL_HEALTH_COERCE = _coercers(
    as_text,
    date=parse_date,
    vaccines=as_vaccines,
    field_officers=as_officers,
)


def _source(raw: Any, record_type: type) -> Mapping[str, Any]:
    if isinstance(raw, record_type):
        return raw.to_mapping()
    if isinstance(raw, Mapping):
        return raw
    return {}


def _build(raw: Any, record_type: type[R], table: AliasTable,
           coerce: Callable[[str], Coercer]) -> R:
    source = _source(raw, record_type)
    values: dict[str, Any] = {}
    for field, aliases in table:
        value = resolve_field(source, aliases)
        if value is None:
            continue
        values[field] = coerce(field)(value)
    return record_type(**values)


# ── Normalizers ───────────────────────────────────────────────────────────────

def normalize_farmer(raw: Mapping[str, Any] | Farmer) -> Farmer:
    """Canonical Farmer from a raw document (or an existing Farmer)."""
    return _build(raw, Farmer, FARMER_ALIASES, _FARMER_COERCE)


def normalize_training(raw: Mapping[str, Any] | TrainingRecord) -> TrainingRecord:
    """Canonical TrainingRecord from a Capacity Building document."""
    return _build(raw, TrainingRecord, TRAINING_ALIASES, _TRAINING_COERCE)


def normalize_infrastructure(raw: Mapping[str, Any] | InfrastructureRecord) -> InfrastructureRecord:
    """Canonical InfrastructureRecord from a hay storage document."""
    return _build(raw, InfrastructureRecord, INFRASTRUCTURE_ALIASES, _INFRASTRUCTURE_COERCE)


def normalize_borehole(raw: Mapping[str, Any] | BoreholeRecord) -> BoreholeRecord:
    """Canonical BoreholeRecord; a missing location reads "No location"."""
    return _build(raw, BoreholeRecord, BOREHOLE_ALIASES, _BOREHOLE_COERCE)


def normalize_fodder(raw: Mapping[str, Any] | FodderRecord) -> FodderRecord:
    """Canonical FodderRecord; ``farmers`` lists collapse to their length."""
    return _build(raw, FodderRecord, FODDER_ALIASES, _FODDER_COERCE)


def normalize_livestock_offtake(raw: Mapping[str, Any] | LivestockOfftakeRecord) -> LivestockOfftakeRecord:
    """Canonical LivestockOfftakeRecord; scalar weights become one-animal lists."""
    return _build(raw, LivestockOfftakeRecord, LIVESTOCK_OFFTAKE_ALIASES,
                  _LIVESTOCK_OFFTAKE_COERCE)


def normalize_fodder_offtake(raw: Mapping[str, Any] | FodderOfftakeRecord) -> FodderOfftakeRecord:
    return _build(raw, FodderOfftakeRecord, FODDER_OFFTAKE_ALIASES, _FODDER_OFFTAKE_COERCE)


def normalize_animal_health(raw: Mapping[str, Any] | AnimalHealthActivity) -> AnimalHealthActivity:
    """Canonical AnimalHealthActivity.

    Documents without a ``vaccines`` list fall back to the flat
    ``vaccinetype``/``number_doses`` pair.  Vaccines without doses are
    dropped either way.
    """
    record = _build(raw, AnimalHealthActivity, ANIMAL_HEALTH_ALIASES, _ANIMAL_HEALTH_COERCE)
    if record.vaccines:
        return record
    source = _source(raw, AnimalHealthActivity)
    kind = resolve_field(source, _LEGACY_VACCINE)
    if kind is None:
        return record
    doses = safe_int(resolve_field(source, _LEGACY_DOSES))
    if doses <= 0:
        return record
    return dataclasses.replace(record, vaccines=((as_text(kind), doses),))


def normalize_all(raws, normalizer: Callable[[Any], R]) -> tuple[R, ...]:
    """Normalize a whole collection, preserving order."""
    return tuple(normalizer(raw) for raw in raws)
