"""Metadata-only match score for client-side alert polling.

This is the cheap proxy tier: it never calls the Embedding Provider and
relies on species, place, time and breed alone, so it can run for every
viewer every few minutes. Its bonuses are on a much larger scale than the
contextual adjuster's because here they make up the whole score instead
of nudging a visual one. Persisted Matches come only from the visual
ranker in ``petmatch.matching.ranker``.
"""

from __future__ import annotations

from dataclasses import dataclass

from petmatch.data.schemas import Report
from petmatch.matching.adjuster import (
    breed_mentioned,
    report_days_apart,
    report_distance_km,
    species_match,
)


@dataclass(frozen=True)
class ProximityWeights:
    species: int = 40
    within_1km: int = 30
    within_3km: int = 20
    within_5km: int = 10
    within_1day: int = 20
    within_3days: int = 15
    within_7days: int = 10
    breed: int = 10


DEFAULT_WEIGHTS = ProximityWeights()


def metadata_match_score(
    lost_pet: Report,
    spotted: Report,
    weights: ProximityWeights = DEFAULT_WEIGHTS,
) -> int:
    """Score (0-100) how plausibly ``spotted`` is ``lost_pet`` without photos."""
    score = 0

    if species_match(lost_pet.animal_type, spotted.animal_type):
        score += weights.species

    distance = report_distance_km(lost_pet, spotted)
    if distance is not None:
        if distance <= 1.0:
            score += weights.within_1km
        elif distance <= 3.0:
            score += weights.within_3km
        elif distance <= 5.0:
            score += weights.within_5km

    days = report_days_apart(lost_pet, spotted)
    if days <= 1.0:
        score += weights.within_1day
    elif days <= 3.0:
        score += weights.within_3days
    elif days <= 7.0:
        score += weights.within_7days

    if breed_mentioned(lost_pet.breed, spotted.description):
        score += weights.breed

    return min(100, score)
