"""Filter engine: composable predicates plus stats over canonical records.

A :class:`FilterState` is plain immutable data coming from the
presentation layer (query parameters).  :func:`apply_filters` ANDs every
active predicate, keeps the input order, and recomputes stats from the
filtered subset only.

Predicates run cheapest first: categorical equality, then the dependent
region/location pair, then the date range, then free-text search.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from utils.config import KnownValues
from utils.dates import is_date_in_range
from utils.strings import as_text, fold

ALL = KnownValues.ALL

StatsFn = Callable[[Sequence[Any]], dict[str, Any]]


def _is_active(value: str) -> bool:
    return bool(value) and fold(value) != ALL


def count_stats(records: Sequence[Any]) -> dict[str, Any]:
    return {"total": len(records)}


# ── Filter state ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FilterState:
    """Current predicates for one entity page.

    ``categories`` holds ``(field, value)`` pairs for the entity's
    categorical filters; a value of ``"all"`` (or empty) means no
    constraint.  Dates are ``YYYY-MM-DD`` strings, empty when unset.
    """

    search: str = ""
    start_date: str = ""
    end_date: str = ""
    region: str = ALL
    location: str = ALL
    categories: tuple[tuple[str, str], ...] = ()

    def category(self, field: str) -> str:
        for name, value in self.categories:
            if name == field:
                return value
        return ALL

    def with_change(self, key: str, value: str) -> "FilterState":
        """Return a new state with *key* set to *value*.

        Changing the region always resets the location to ``"all"``: a
        location picked under the old region would otherwise silently
        filter out everything.
        """
        value = value if value is not None else ""
        if key == "region":
            return dataclasses.replace(self, region=value or ALL, location=ALL)
        if key == "location":
            return dataclasses.replace(self, location=value or ALL)
        if key in ("search", "start_date", "end_date"):
            return dataclasses.replace(self, **{key: value})
        others = tuple((k, v) for k, v in self.categories if k != key)
        return dataclasses.replace(self, categories=others + ((key, value or ALL),))

    @property
    def is_empty(self) -> bool:
        return not (
            self.search
            or self.start_date
            or self.end_date
            or _is_active(self.region)
            or _is_active(self.location)
            or any(_is_active(v) for _, v in self.categories)
        )


@dataclass(frozen=True)
class FilterSpec:
    """Which fields an entity filters, searches and dates on."""

    categorical: tuple[str, ...] = ()
    search_fields: tuple[str, ...] = ()
    date_field: str | None = "date"
    dependent: tuple[str, str] | None = ("region", "location")
    stats: StatsFn = count_stats


@dataclass(frozen=True)
class FilterResult:
    filtered: tuple[Any, ...]
    stats: dict[str, Any]


# ── Predicates ────────────────────────────────────────────────────────────────

def _field(record: Any, name: str) -> Any:
    return getattr(record, name, None)


def _build_predicates(state: FilterState, spec: FilterSpec) -> list[Callable[[Any], bool]]:
    predicates: list[Callable[[Any], bool]] = []

    for field in spec.categorical:
        wanted = state.category(field)
        if _is_active(wanted):
            target = fold(wanted)
            predicates.append(
                lambda r, f=field, t=target: fold(_field(r, f)) == t
            )

    if spec.dependent is not None:
        parent, child = spec.dependent
        for field, wanted in ((parent, state.region), (child, state.location)):
            if _is_active(wanted):
                target = fold(wanted)
                predicates.append(
                    lambda r, f=field, t=target: fold(_field(r, f)) == t
                )

    if spec.date_field and (state.start_date or state.end_date):
        date_field = spec.date_field
        start, end = state.start_date, state.end_date
        predicates.append(
            lambda r: is_date_in_range(_field(r, date_field), start, end)
        )

    if state.search and spec.search_fields:
        term = state.search.lower()
        fields = spec.search_fields
        predicates.append(
            lambda r: any(term in as_text(_field(r, f)).lower() for f in fields)
        )

    return predicates


def apply_filters(records: Iterable[Any], state: FilterState,
                  spec: FilterSpec) -> FilterResult:
    """Filter *records* by *state* and compute stats over the survivors.

    Args:
        records: Canonical records in display order.
        state: Active filters.
        spec: The entity's filterable fields and stats function.

    Returns:
        FilterResult whose ``filtered`` keeps the input's relative order.
    """
    predicates = _build_predicates(state, spec)
    filtered = tuple(
        record for record in records
        if all(predicate(record) for predicate in predicates)
    )
    return FilterResult(filtered=filtered, stats=spec.stats(filtered))


# ── Aggregation helpers ───────────────────────────────────────────────────────

def total(records: Iterable[Any], field: str) -> float:
    """Sum of a numeric field."""
    return sum(_field(r, field) or 0 for r in records)


def distinct_values(records: Iterable[Any], field: str) -> list[str]:
    """Sorted distinct non-empty values of a text field (trimmed)."""
    values = {as_text(_field(r, field)).strip() for r in records}
    values.discard("")
    return sorted(values, key=str.lower)


def distinct_count(records: Iterable[Any], field: str) -> int:
    return len(distinct_values(records, field))


def count_where(records: Iterable[Any], predicate: Callable[[Any], bool]) -> int:
    return sum(1 for r in records if predicate(r))


def filter_options(records: Sequence[Any], spec: FilterSpec,
                   region: str = ALL) -> dict[str, list[str]]:
    """Dropdown choices for an entity page.

    Locations are narrowed to the selected region when one is active.
    """
    options = {field: distinct_values(records, field) for field in spec.categorical}
    if spec.dependent is not None:
        parent, child = spec.dependent
        options[parent] = distinct_values(records, parent)
        scoped = records
        if _is_active(region):
            target = fold(region)
            scoped = [r for r in records if fold(_field(r, parent)) == target]
        options[child] = distinct_values(scoped, child)
    return options
