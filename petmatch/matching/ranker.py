"""Rank lost-pet reports against a newly spotted animal."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from petmatch.config import Config
from petmatch.data.schemas import (
    Embedding,
    MatchCandidate,
    Report,
    ReportKind,
    ScoreResult,
)
from petmatch.embeddings.provider import EmbeddingProvider
from petmatch.errors import InputError, ProviderError
from petmatch.matching.adjuster import DEFAULT_BONUSES, ContextBonuses, adjust_score
from petmatch.matching.similarity import score_embeddings

logger = logging.getLogger(__name__)


class CandidateRanker:
    """Visual + contextual ranking of lost pets for one spotted report.

    Embeddings of the spotted report are extracted once; each lost pet's
    photos are then extracted (lost pets in parallel, bounded by
    ``config.ranker_workers``) and every photo pair is scored. The best
    pair becomes the pet's visual score, which the contextual adjuster
    turns into the final match score.

    Args:
        provider: Shared embedding provider.
        config: Application configuration (threshold, cosine calibration).
        bonuses: Contextual bonus magnitudes.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        config: Config,
        bonuses: ContextBonuses = DEFAULT_BONUSES,
    ) -> None:
        self.provider = provider
        self.config = config
        self.bonuses = bonuses

    def _score(self, a: Embedding, b: Embedding) -> ScoreResult:
        return score_embeddings(
            a, b, penalty=self.config.cosine_penalty, cutoff=self.config.cosine_cutoff
        )

    def best_visual_score(
        self,
        spotted_embeddings: Sequence[Embedding],
        lost_embeddings: Sequence[Embedding],
    ) -> int:
        """Maximum combined score over every (spotted, lost) photo pair."""
        return max(
            self._score(spotted, lost).combined_score
            for spotted in spotted_embeddings
            for lost in lost_embeddings
        )

    def compare_photos(self, photo_a: str, photo_b: str) -> ScoreResult:
        """Score two photo references directly.

        Raises:
            ProviderError: If either photo cannot be embedded.
        """
        return self._score(self.provider.extract(photo_a), self.provider.extract(photo_b))

    def _evaluate(
        self,
        spotted: Report,
        spotted_embeddings: list[Embedding],
        lost_pet: Report,
    ) -> MatchCandidate | None:
        if lost_pet.resolved or lost_pet.kind != ReportKind.LOST:
            return None
        if not lost_pet.photos:
            logger.debug("Lost pet %s has no photos, skipping", lost_pet.report_id)
            return None

        try:
            lost_embeddings = self.provider.extract_all(lost_pet.photos)
            if not lost_embeddings:
                raise ProviderError("no photo could be embedded")
            visual = self.best_visual_score(spotted_embeddings, lost_embeddings)
        except (ProviderError, InputError) as exc:
            logger.warning("Skipping lost pet %s: %s", lost_pet.report_id, exc)
            return None

        adjusted, applied = adjust_score(visual, lost_pet, spotted, self.bonuses)
        logger.debug(
            "%-15s | visual %3d | %s -> %d",
            lost_pet.pet_name or lost_pet.report_id,
            visual,
            " ".join(f"{k}+{v}" for k, v in applied.items()) or "-",
            adjusted,
        )

        return MatchCandidate(
            spotted_report_id=spotted.report_id,
            lost_pet_id=lost_pet.report_id,
            owner_id=lost_pet.reported_by,
            lost_pet_name=lost_pet.pet_name,
            match_score=adjusted,
            visual_similarity=visual,
            bonuses=applied,
        )

    def rank_candidates(
        self,
        spotted: Report,
        lost_pets: Sequence[Report],
        threshold: int | None = None,
    ) -> list[MatchCandidate]:
        """Rank lost pets by likelihood of being the spotted animal.

        Args:
            spotted: The spotted-on-streets report; must have photos.
            lost_pets: Candidate lost-pet reports.
            threshold: Minimum adjusted score (defaults to config).

        Returns:
            Candidates with score >= threshold, highest first; ties keep
            input order.

        Raises:
            InputError: If the spotted report is not a sighting or has no photos.
        """
        if threshold is None:
            threshold = self.config.match_threshold
        if spotted.kind != ReportKind.SPOTTED:
            raise InputError(f"Report {spotted.report_id} is not a spotted report")
        if not spotted.photos:
            raise InputError(f"Spotted report {spotted.report_id} has no photos")

        start = time.monotonic()
        spotted_embeddings = self.provider.extract_all(spotted.photos)
        if not spotted_embeddings:
            logger.warning("No usable photos in spotted report %s", spotted.report_id)
            return []

        logger.info(
            "Ranking spotted report %s (%d photos) against %d lost pets, threshold %d",
            spotted.report_id,
            len(spotted_embeddings),
            len(lost_pets),
            threshold,
        )

        workers = max(1, min(len(lost_pets), self.config.ranker_workers))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            evaluated = list(
                executor.map(
                    lambda pet: self._evaluate(spotted, spotted_embeddings, pet),
                    lost_pets,
                )
            )

        matches = [c for c in evaluated if c is not None and c.match_score >= threshold]
        matches.sort(key=lambda c: c.match_score, reverse=True)

        logger.info(
            "Found %d matches above %d for %s in %.1f ms",
            len(matches),
            threshold,
            spotted.report_id,
            (time.monotonic() - start) * 1000,
        )
        return matches
