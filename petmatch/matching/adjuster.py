"""Contextual adjustment of visual match scores.

This is the authoritative, server-side tier: it runs after the visual
scorer (and therefore after the Embedding Provider) and nudges a visual
combined score with small metadata bonuses. The cheap metadata-only proxy
used for client polling lives in ``petmatch.alerts.heuristic`` and uses a
much larger bonus scale. The two are not interchangeable.
"""

from __future__ import annotations

from dataclasses import dataclass

from petmatch.data.schemas import Report
from petmatch.geo import haversine_km

_SPECIES_SYNONYMS: dict[str, tuple[str, ...]] = {
    "dog": ("dog", "dogs", "puppy", "puppies", "canine"),
    "cat": ("cat", "cats", "kitten", "kittens", "feline"),
    "bird": ("bird", "birds", "parrot", "parrots"),
    "rabbit": ("rabbit", "rabbits", "bunny", "bunnies"),
}


def normalize_species(animal_type: str | None) -> str | None:
    """Lowercase and map common variants ('Puppy', 'canine') to one name."""
    if not animal_type:
        return None
    normalized = animal_type.strip().lower()
    for species, variants in _SPECIES_SYNONYMS.items():
        if normalized in variants:
            return species
    return normalized


def species_match(a: str | None, b: str | None) -> bool:
    sa, sb = normalize_species(a), normalize_species(b)
    return sa is not None and sa == sb


def breed_mentioned(breed: str | None, text: str) -> bool:
    """True if ``breed`` occurs case-insensitively inside ``text``."""
    if not breed or not breed.strip():
        return False
    return breed.strip().lower() in text.lower()


def report_distance_km(lost_pet: Report, spotted: Report) -> float | None:
    """Distance between the lost pet's last-known and the spotted location.

    Rounded to one decimal, the same precision distances are shown with.
    """
    a, b = lost_pet.coordinates, spotted.coordinates
    if a is None or b is None:
        return None
    return round(haversine_km(a.latitude, a.longitude, b.latitude, b.longitude), 1)


def report_days_apart(lost_pet: Report, spotted: Report) -> float:
    delta = spotted.reference_time - lost_pet.reference_time
    return abs(delta.total_seconds()) / 86400.0


@dataclass(frozen=True)
class ContextBonuses:
    """Bonus points added on top of a visual combined score."""

    species: int = 5
    within_1km: int = 5
    within_3km: int = 3
    within_1day: int = 3
    within_3days: int = 2
    breed: int = 10


DEFAULT_BONUSES = ContextBonuses()


def context_bonuses(
    lost_pet: Report,
    spotted: Report,
    bonuses: ContextBonuses = DEFAULT_BONUSES,
) -> dict[str, int]:
    """Compute the individual bonuses that apply to a pair of reports."""
    applied: dict[str, int] = {}

    if species_match(lost_pet.animal_type, spotted.animal_type):
        applied["species"] = bonuses.species

    distance = report_distance_km(lost_pet, spotted)
    if distance is not None:
        if distance <= 1.0:
            applied["distance"] = bonuses.within_1km
        elif distance <= 3.0:
            applied["distance"] = bonuses.within_3km

    days = report_days_apart(lost_pet, spotted)
    if days <= 1.0:
        applied["time"] = bonuses.within_1day
    elif days <= 3.0:
        applied["time"] = bonuses.within_3days

    if breed_mentioned(lost_pet.breed, spotted.description):
        applied["breed"] = bonuses.breed

    return applied


def adjust_score(
    visual_score: int,
    lost_pet: Report,
    spotted: Report,
    bonuses: ContextBonuses = DEFAULT_BONUSES,
) -> tuple[int, dict[str, int]]:
    """Add contextual bonuses to a visual score, capped at 100.

    Args:
        visual_score: Best combined visual score for the pair (0-100).
        lost_pet: The lost-pet report.
        spotted: The spotted-animal report.
        bonuses: Bonus magnitudes.

    Returns:
        Tuple of (adjusted score, applied bonuses by name).
    """
    applied = context_bonuses(lost_pet, spotted, bonuses)
    adjusted = min(100, max(0, visual_score) + sum(applied.values()))
    return adjusted, applied
