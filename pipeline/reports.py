"""Programme report statistics for the dashboard overview.

Everything is computed from reconciled Farmer records (``trained`` already
set) restricted to the requested submission-date range.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Any

from pipeline.filters import count_where
from pipeline.models import Farmer, TrainingRecord
from utils.dates import is_date_in_range
from utils.strings import fold

UNKNOWN_REGION = "Unknown"


def vaccination_comment(rate: float, total_animals: int) -> str:
    """Headline for the vaccination coverage card."""
    if total_animals <= 0:
        return "No data available"
    if rate < 50:
        return "Action needed"
    if rate < 75:
        return "EVARGE action needed"
    return "Good progress"


def _rate(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def region_breakdown(farmers: Sequence[Farmer]) -> list[dict[str, Any]]:
    """Farmers per region, largest first; ties keep first-seen order."""
    counts = Counter((f.region.strip() or UNKNOWN_REGION) for f in farmers)
    return [{"name": name, "farmers": n} for name, n in counts.most_common()]


def build_summary(farmers: Sequence[Farmer], training: Sequence[TrainingRecord],
                  start_date: str = "", end_date: str = "") -> dict[str, Any]:
    """Aggregate report figures for farmers submitted within the range.

    Args:
        farmers: Reconciled farmers (``trained`` populated).
        training: Capacity Building records, counted in full.
        start_date: Inclusive first day, or empty.
        end_date: Inclusive last day, or empty.
    """
    scoped = [f for f in farmers if is_date_in_range(f.submitted_at, start_date, end_date)]

    def is_male(f: Farmer) -> bool:
        return fold(f.gender) == "male"

    def is_female(f: Farmer) -> bool:
        return fold(f.gender) == "female"

    total_farmers = len(scoped)
    trained = count_where(scoped, lambda f: f.trained)
    total_animals = sum(f.total_animals for f in scoped)
    vaccinated = sum(f.vaccinated_animals for f in scoped)
    # Comment thresholds use the unrounded rate.
    raw_vaccination_rate = vaccinated / total_animals * 100 if total_animals else 0.0

    regions = region_breakdown(scoped)
    top = regions[0] if regions else {"name": "N/A", "farmers": 0}

    breeds = {
        "new_breed_females": sum(f.new_breed_females for f in scoped),
        "new_breed_males": sum(f.new_breed_males for f in scoped),
        "new_breed_young": sum(f.new_breed_young for f in scoped),
    }

    return {
        "total_farmers": total_farmers,
        "male_farmers": count_where(scoped, is_male),
        "female_farmers": count_where(scoped, is_female),
        "trained_farmers": trained,
        "trained_male": count_where(scoped, lambda f: f.trained and is_male(f)),
        "trained_female": count_where(scoped, lambda f: f.trained and is_female(f)),
        "training_rate": _rate(trained, total_farmers),
        "training_records": len(training),
        "total_animals": total_animals,
        "regions": regions,
        "top_region": top,
        "top_region_share": _rate(top["farmers"], total_farmers),
        "breed_distribution": breeds,
        "total_breeds_distributed": sum(breeds.values()),
        "farmers_receiving_breeds": count_where(
            scoped, lambda f: f.number_of_breeds > 0 or f.new_breeds > 0,
        ),
        "vaccination": {
            "vaccinated_animals": vaccinated,
            "total_animals": total_animals,
            "rate": round(raw_vaccination_rate, 1),
            "comment": vaccination_comment(raw_vaccination_rate, total_animals),
        },
    }
