"""Canonical record types produced by the normalizer.

Each type is a frozen dataclass: snapshots hand out tuples of these and
nothing downstream mutates them.  Derived values (``trained`` on Farmer)
are attached by building a new record with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

from utils.formatting import format_utilization, utilization


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class _Record:
    """Shared (de)serialization for canonical records."""

    def to_mapping(self) -> dict[str, Any]:
        """Field values keyed by canonical name, as stored."""
        return {f.name: getattr(self, f.name) for f in fields(self)}  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form: datetimes become ISO strings."""
        return {k: _jsonable(v) for k, v in self.to_mapping().items()}


@dataclass(frozen=True)
class Farmer(_Record):
    """One registered livestock farmer."""

    id: str = ""
    name: str = ""
    gender: str = ""
    phone: str = ""
    id_number: str = ""
    region: str = ""
    location: str = ""
    county: str = ""
    subcounty: str = ""
    submitted_at: datetime | None = None
    goats_male: int = 0
    goats_female: int = 0
    new_breed_males: int = 0
    new_breed_females: int = 0
    new_breed_young: int = 0
    number_of_breeds: int = 0
    vaccinated_animals: int = 0
    vaccine_type: str = ""
    vaccination_date: datetime | None = None
    deworming_date: datetime | None = None
    dipping_date: datetime | None = None
    training_type: str = ""
    live_weight: str = ""
    carcass_weight: str = ""
    tag_number: str = ""
    traceability_id: str = ""
    trained: bool = False
    training_modules: str = ""

    @property
    def total_animals(self) -> int:
        return self.goats_male + self.goats_female

    @property
    def new_breeds(self) -> int:
        return self.new_breed_males + self.new_breed_females + self.new_breed_young

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["total_animals"] = self.total_animals
        return data


@dataclass(frozen=True)
class TrainingRecord(_Record):
    """One capacity-building session attendance."""

    id: str = ""
    name: str = ""
    gender: str = ""
    phone: str = ""
    region: str = ""
    location: str = ""
    modules: str = ""
    date: datetime | None = None


@dataclass(frozen=True)
class InfrastructureRecord(_Record):
    """One hay store or similar facility."""

    id: str = ""
    date: datetime | None = None
    location: str = ""
    region: str = ""
    type: str = ""
    capacity: float = 0.0
    current_stock: float = 0.0
    status: str = ""
    manager: str = ""
    contact: str = ""

    @property
    def utilization(self) -> float:
        return utilization(self.current_stock, self.capacity)

    @property
    def utilization_display(self) -> str:
        return format_utilization(self.current_stock, self.capacity)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["utilization"] = self.utilization
        data["utilization_display"] = self.utilization_display
        return data


@dataclass(frozen=True)
class BoreholeRecord(_Record):
    """One borehole and its usage figures."""

    id: str = ""
    date: datetime | None = None
    location: str = "No location"
    people: int = 0
    water_used: float = 0.0
    drilled: bool = False
    maintained: bool = False


@dataclass(frozen=True)
class FodderRecord(_Record):
    """One fodder production group."""

    id: str = ""
    date: datetime | None = None
    location: str = ""
    region: str = ""
    model: str = ""
    land_size: float = 0.0
    total_acres_pasture: float = 0.0
    total_bales: int = 0
    yield_per_harvest: float = 0.0
    farmer_count: int = 0


@dataclass(frozen=True)
class LivestockOfftakeRecord(_Record):
    """One sale of sheep and goats by a farmer.

    Weights and prices are recorded per animal; a single figure stands for
    a one-animal list.
    """

    id: str = ""
    date: datetime | None = None
    farmer_name: str = ""
    gender: str = ""
    id_number: str = ""
    phone: str = ""
    region: str = ""
    location: str = ""
    animals: int = 0
    live_weights: tuple[float, ...] = ()
    carcass_weights: tuple[float, ...] = ()
    unit_prices: tuple[float, ...] = ()
    total_price: float = 0.0

    @property
    def total_live_weight(self) -> float:
        return sum(self.live_weights)

    @property
    def total_carcass_weight(self) -> float:
        return sum(self.carcass_weights)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        for name in ("live_weights", "carcass_weights", "unit_prices"):
            data[name] = list(data[name])
        return data


@dataclass(frozen=True)
class FodderOfftakeRecord(_Record):
    """One purchase of fodder bales from a producer."""

    id: str = ""
    date: datetime | None = None
    farmer_name: str = ""
    phone: str = ""
    region: str = ""
    location: str = ""
    bales: int = 0
    price_per_bale: float = 0.0
    total_price: float = 0.0


@dataclass(frozen=True)
class AnimalHealthActivity(_Record):
    """One vaccination outreach.

    ``vaccines`` holds ``(type, doses)`` pairs and ``field_officers``
    holds ``(name, role)`` pairs.
    """

    id: str = ""
    date: datetime | None = None
    county: str = ""
    subcounty: str = ""
    location: str = ""
    comment: str = ""
    vaccines: tuple[tuple[str, int], ...] = ()
    field_officers: tuple[tuple[str, str], ...] = ()
    created_by: str = ""
    status: str = "completed"

    @property
    def total_doses(self) -> int:
        return sum(doses for _, doses in self.vaccines)

    @property
    def vaccine_types(self) -> str:
        return "; ".join(kind for kind, _ in self.vaccines)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["vaccines"] = [{"type": t, "doses": d} for t, d in self.vaccines]
        data["field_officers"] = [{"name": n, "role": r} for n, r in self.field_officers]
        data["total_doses"] = self.total_doses
        return data
