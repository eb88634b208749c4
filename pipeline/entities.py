"""Per-entity wiring: collection, normalizer, filters, stats and export.

Each dashboard page works on one :class:`EntityDefinition`.  The API looks
definitions up by their URL name (``farmers``, ``training``...) and runs the
same normalize -> filter -> paginate/export pipeline for all of them.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pipeline.errors import UnknownEntityError
from pipeline.filters import (
    FilterSpec,
    count_where,
    distinct_count,
    total,
)
from pipeline.matcher import reconcile_training
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
from pipeline.normalize import (
    normalize_all,
    normalize_animal_health,
    normalize_borehole,
    normalize_farmer,
    normalize_fodder,
    normalize_fodder_offtake,
    normalize_infrastructure,
    normalize_livestock_offtake,
    normalize_training,
)
from utils.config import KnownValues
from utils.dates import format_date
from utils.formatting import format_number, yes_no
from utils.strings import fold


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    label: str
    collection: str
    normalize: Callable[[Any], Any]
    filter_spec: FilterSpec
    csv_header: tuple[str, ...]
    row_mapper: Callable[[Any], list[str]]
    export_prefix: str


def _text(value: Any) -> str:
    text = "" if value is None else str(value)
    return text if text.strip() else "N/A"


def _is_gender(record: Any, gender: str) -> bool:
    return fold(record.gender) == gender


# ── Farmers ───────────────────────────────────────────────────────────────────

def farmer_stats(farmers: Sequence[Farmer]) -> dict[str, Any]:
    return {
        "total_farmers": len(farmers),
        "male_farmers": count_where(farmers, lambda f: _is_gender(f, "male")),
        "female_farmers": count_where(farmers, lambda f: _is_gender(f, "female")),
        "trained_farmers": count_where(farmers, lambda f: f.trained),
        "total_animals": sum(f.total_animals for f in farmers),
        "total_goats_male": total(farmers, "goats_male"),
        "total_goats_female": total(farmers, "goats_female"),
        "total_new_breeds": sum(f.new_breeds for f in farmers),
        "regions": distinct_count(farmers, "region"),
    }


FARMER_HEADER = (
    "Date", "Name", "Gender", "Phone", "ID Number", "Region", "Location",
    "Subcounty", "Male Goats", "Female Goats", "Total Animals",
    "New Breed Males", "New Breed Females", "New Breed Young",
    "Number of Breeds", "Vaccine Type", "Vaccination Date",
    "Deworming Date", "Dipping Date", "Live Weight", "Carcass Weight",
    "Tag Number", "Traceability ID", "Trained",
)


def farmer_row(f: Farmer) -> list[str]:
    return [
        format_date(f.submitted_at),
        _text(f.name),
        _text(f.gender),
        _text(f.phone),
        _text(f.id_number),
        _text(f.region),
        _text(f.location),
        _text(f.subcounty),
        str(f.goats_male),
        str(f.goats_female),
        str(f.total_animals),
        str(f.new_breed_males),
        str(f.new_breed_females),
        str(f.new_breed_young),
        str(f.number_of_breeds),
        _text(f.vaccine_type),
        format_date(f.vaccination_date),
        format_date(f.deworming_date),
        format_date(f.dipping_date),
        _text(f.live_weight),
        _text(f.carcass_weight),
        _text(f.tag_number),
        _text(f.traceability_id),
        yes_no(f.trained),
    ]


FARMERS = EntityDefinition(
    name="farmers",
    label="Livestock Farmers",
    collection=KnownValues.FARMERS_COLLECTION,
    normalize=normalize_farmer,
    filter_spec=FilterSpec(
        categorical=("gender",),
        search_fields=("name", "gender", "id_number", "phone", "location",
                       "vaccine_type", "training_type", "tag_number"),
        date_field="submitted_at",
        stats=farmer_stats,
    ),
    csv_header=FARMER_HEADER,
    row_mapper=farmer_row,
    export_prefix="livestock-farmers-data",
)

# ── Capacity building ─────────────────────────────────────────────────────────


def training_stats(records: Sequence[TrainingRecord]) -> dict[str, Any]:
    return {
        "total_records": len(records),
        "male_participants": count_where(records, lambda r: _is_gender(r, "male")),
        "female_participants": count_where(records, lambda r: _is_gender(r, "female")),
        "total_modules": distinct_count(records, "modules"),
    }


def training_row(r: TrainingRecord) -> list[str]:
    return [
        format_date(r.date),
        _text(r.name),
        _text(r.gender),
        _text(r.phone),
        _text(r.location),
        _text(r.region),
        _text(r.modules),
    ]


TRAINING = EntityDefinition(
    name="training",
    label="Capacity Building",
    collection=KnownValues.TRAINING_COLLECTION,
    normalize=normalize_training,
    filter_spec=FilterSpec(
        categorical=("gender", "modules"),
        search_fields=("name", "gender", "phone", "location", "region", "modules"),
        date_field="date",
        stats=training_stats,
    ),
    csv_header=("Date", "Name", "Gender", "Phone", "Location", "Region", "Modules"),
    row_mapper=training_row,
    export_prefix="capacity-building",
)

# ── Hay storage / infrastructure ──────────────────────────────────────────────


def infrastructure_stats(records: Sequence[InfrastructureRecord]) -> dict[str, Any]:
    return {
        "total_facilities": len(records),
        "total_regions": distinct_count(records, "region"),
        "total_types": distinct_count(records, "type"),
        "total_capacity": total(records, "capacity"),
        "total_stock": total(records, "current_stock"),
    }


def infrastructure_row(r: InfrastructureRecord) -> list[str]:
    return [
        format_date(r.date),
        _text(r.location),
        _text(r.region),
        _text(r.type),
        format_number(r.capacity),
        format_number(r.current_stock),
        _text(r.status),
        _text(r.manager),
        _text(r.contact),
    ]


INFRASTRUCTURE = EntityDefinition(
    name="infrastructure",
    label="Infrastructure Data",
    collection=KnownValues.INFRASTRUCTURE_COLLECTION,
    normalize=normalize_infrastructure,
    filter_spec=FilterSpec(
        categorical=("type", "status"),
        search_fields=("location", "region", "type", "status", "manager"),
        date_field="date",
        stats=infrastructure_stats,
    ),
    csv_header=("Date", "Location", "Region", "Type", "Capacity",
                "Current Stock", "Status", "Manager", "Contact"),
    row_mapper=infrastructure_row,
    export_prefix="infrastructure-data",
)

# ── Boreholes ─────────────────────────────────────────────────────────────────


def borehole_stats(records: Sequence[BoreholeRecord]) -> dict[str, Any]:
    return {
        "total_boreholes": len(records),
        "drilled": count_where(records, lambda r: r.drilled),
        "maintained": count_where(records, lambda r: r.maintained),
        "total_people": total(records, "people"),
        "total_water_used": total(records, "water_used"),
    }


def borehole_row(r: BoreholeRecord) -> list[str]:
    return [
        format_date(r.date),
        _text(r.location),
        str(r.people),
        format_number(r.water_used),
        yes_no(r.drilled),
        yes_no(r.maintained),
    ]


BOREHOLES = EntityDefinition(
    name="boreholes",
    label="Boreholes",
    collection=KnownValues.BOREHOLE_COLLECTION,
    normalize=normalize_borehole,
    filter_spec=FilterSpec(
        categorical=("location",),
        search_fields=("location",),
        date_field="date",
        dependent=None,
        stats=borehole_stats,
    ),
    csv_header=("Date", "Borehole Location", "People Using Water",
                "Water Used", "Drilled", "Maintained"),
    row_mapper=borehole_row,
    export_prefix="borehole-data",
)

# ── Fodder farmers ────────────────────────────────────────────────────────────


def fodder_stats(records: Sequence[FodderRecord]) -> dict[str, Any]:
    return {
        "total_farmers": total(records, "farmer_count"),
        "total_regions": distinct_count(records, "region"),
        "total_models": distinct_count(records, "model"),
        "total_bales": total(records, "total_bales"),
    }


def fodder_row(r: FodderRecord) -> list[str]:
    return [
        format_date(r.date),
        _text(r.location),
        _text(r.region),
        _text(r.model),
        str(r.farmer_count),
        format_number(r.land_size),
        format_number(r.total_acres_pasture),
        str(r.total_bales),
        format_number(r.yield_per_harvest),
    ]


FODDER = EntityDefinition(
    name="fodder",
    label="Fodder Farmers",
    collection=KnownValues.FODDER_COLLECTION,
    normalize=normalize_fodder,
    filter_spec=FilterSpec(
        categorical=("model",),
        search_fields=("location", "region", "model"),
        date_field="date",
        stats=fodder_stats,
    ),
    csv_header=("Date", "Location", "Region", "Model", "Number of Farmers",
                "Land Size", "Total Acres Pasture", "Total Bales",
                "Yield per Harvest"),
    row_mapper=fodder_row,
    export_prefix="fodder-farmers",
)


# ── Livestock offtake ─────────────────────────────────────────────────────────


def _per_animal(total_value: float, animals: int) -> float:
    return round(total_value / animals, 2) if animals else 0.0


def livestock_offtake_stats(records: Sequence[LivestockOfftakeRecord]) -> dict[str, Any]:
    animals = int(total(records, "animals"))
    revenue = total(records, "total_price")
    return {
        "total_farmers": len(records),
        "total_regions": distinct_count(records, "region"),
        "total_animals": animals,
        "total_revenue": revenue,
        "average_live_weight": _per_animal(sum(r.total_live_weight for r in records), animals),
        "average_carcass_weight": _per_animal(sum(r.total_carcass_weight for r in records), animals),
        "average_revenue": _per_animal(revenue, animals),
    }


def _amounts(values: Sequence[float], precision: int) -> str:
    shown = [f"{v:.{precision}f}" for v in values if v > 0]
    return "; ".join(shown) if shown else "N/A"


def livestock_offtake_row(r: LivestockOfftakeRecord) -> list[str]:
    return [
        format_date(r.date),
        _text(r.farmer_name),
        _text(r.gender),
        _text(r.id_number),
        _text(r.location),
        _text(r.phone),
        _text(r.region),
        str(r.animals),
        _amounts(r.live_weights, 1),
        _amounts(r.carcass_weights, 1),
        _amounts(r.unit_prices, 0),
        format_number(r.total_price),
    ]


LIVESTOCK_OFFTAKE = EntityDefinition(
    name="livestock-offtake",
    label="Livestock Offtake",
    collection=KnownValues.LIVESTOCK_OFFTAKE_COLLECTION,
    normalize=normalize_livestock_offtake,
    filter_spec=FilterSpec(
        categorical=("gender",),
        search_fields=("farmer_name", "location", "region", "id_number", "phone"),
        date_field="date",
        stats=livestock_offtake_stats,
    ),
    csv_header=("Date", "Farmer Name", "Gender", "ID Number", "Location",
                "Phone Number", "Region", "Total Animals", "Live Weight (kg)",
                "Carcass Weight (kg)", "Price per Animal (KES)",
                "Total Price (KES)"),
    row_mapper=livestock_offtake_row,
    export_prefix="livestock-offtake",
)

# ── Fodder offtake ────────────────────────────────────────────────────────────


def fodder_offtake_stats(records: Sequence[FodderOfftakeRecord]) -> dict[str, Any]:
    return {
        "total_records": len(records),
        "total_regions": distinct_count(records, "region"),
        "total_bales": int(total(records, "bales")),
        "total_revenue": total(records, "total_price"),
    }


def fodder_offtake_row(r: FodderOfftakeRecord) -> list[str]:
    return [
        format_date(r.date),
        _text(r.farmer_name),
        _text(r.phone),
        _text(r.region),
        _text(r.location),
        str(r.bales),
        format_number(r.price_per_bale),
        format_number(r.total_price),
    ]


FODDER_OFFTAKE = EntityDefinition(
    name="fodder-offtake",
    label="Fodder Offtake Data",
    collection=KnownValues.FODDER_OFFTAKE_COLLECTION,
    normalize=normalize_fodder_offtake,
    filter_spec=FilterSpec(
        search_fields=("farmer_name", "phone", "region", "location"),
        date_field="date",
        stats=fodder_offtake_stats,
    ),
    csv_header=("Date", "Farmer Name", "Phone", "Region", "Location", "Bales",
                "Price per Bale", "Total Price"),
    row_mapper=fodder_offtake_row,
    export_prefix="fodder-offtake",
)

# ── Animal health ─────────────────────────────────────────────────────────────


def animal_health_stats(records: Sequence[AnimalHealthActivity]) -> dict[str, Any]:
    return {
        "total_activities": len(records),
        "total_doses": sum(r.total_doses for r in records),
        "total_counties": distinct_count(records, "county"),
        "vaccine_types": len({kind for r in records for kind, _ in r.vaccines}),
    }


def animal_health_row(r: AnimalHealthActivity) -> list[str]:
    return [
        format_date(r.date),
        _text(r.county),
        _text(r.subcounty),
        _text(r.location),
        "; ".join(f"{kind} ({doses} doses)" for kind, doses in r.vaccines),
        str(r.total_doses),
        "; ".join(f"{name} ({role})" for name, role in r.field_officers),
        r.comment,
    ]


ANIMAL_HEALTH = EntityDefinition(
    name="animal-health",
    label="Animal Health",
    collection=KnownValues.ANIMAL_HEALTH_COLLECTION,
    normalize=normalize_animal_health,
    filter_spec=FilterSpec(
        search_fields=("comment", "location", "county", "vaccine_types"),
        date_field="date",
        dependent=("county", "location"),
        stats=animal_health_stats,
    ),
    csv_header=("Date", "County", "Subcounty", "Location", "Vaccines",
                "Total Doses", "Field Officers", "Comment"),
    row_mapper=animal_health_row,
    export_prefix="vaccination-activities",
)


ENTITIES: dict[str, EntityDefinition] = {
    d.name: d for d in (FARMERS, TRAINING, INFRASTRUCTURE, BOREHOLES, FODDER,
                        LIVESTOCK_OFFTAKE, FODDER_OFFTAKE, ANIMAL_HEALTH)
}


def get_entity(name: str) -> EntityDefinition:
    """Look up a definition by URL name.

    Raises:
        UnknownEntityError: For names outside :data:`ENTITIES`.
    """
    try:
        return ENTITIES[name]
    except KeyError:
        raise UnknownEntityError(name) from None


def load_records(repository, definition: EntityDefinition) -> tuple[Any, ...]:
    """Current canonical records for *definition* from the repository.

    Farmers come back reconciled against the Capacity Building snapshot so
    ``trained`` is populated.
    """
    snapshot = repository.get(definition.collection)
    records = normalize_all(snapshot.records, definition.normalize)
    if definition is FARMERS:
        training = normalize_all(
            repository.get(TRAINING.collection).records, normalize_training,
        )
        records = reconcile_training(records, training)
    return records
