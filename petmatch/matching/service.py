"""Ranking workflow: rank a spotted report and persist its matches."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from elasticsearch import ApiError, TransportError

from petmatch.data.schemas import (
    MatchRecord,
    MatchStatus,
    ProcessResult,
    Report,
    ReportKind,
    ReprocessStats,
)
from petmatch.errors import InputError
from petmatch.matching.ranker import CandidateRanker
from petmatch.store.matches import MatchStore
from petmatch.store.reports import ReportStore

logger = logging.getLogger(__name__)


class MatchingService:
    """Glue between the report store, the ranker and the match store.

    Args:
        report_store: Source of spotted and lost-pet reports.
        match_store: Destination of Match records.
        ranker: Candidate ranker.
    """

    def __init__(
        self,
        report_store: ReportStore,
        match_store: MatchStore,
        ranker: CandidateRanker,
    ) -> None:
        self.reports = report_store
        self.matches = match_store
        self.ranker = ranker

    def process_spotted_report(self, report_id: str) -> ProcessResult:
        """Rank one spotted report against all active lost pets and upsert matches.

        Raises:
            LookupError: If the report does not exist.
            InputError: If the report is not a spotted report.
            TransientFetchError: If reports cannot be fetched.
        """
        spotted = self.reports.get(report_id)
        if spotted is None:
            raise LookupError(f"Report {report_id} not found")
        if spotted.kind != ReportKind.SPOTTED:
            raise InputError("Only spotted-on-streets reports can be processed for matching")

        try:
            return self._rank_and_store(spotted, self.reports.list_lost_pets())
        except InputError as exc:
            logger.warning("Ranking rejected report %s: %s", report_id, exc)
            return ProcessResult(spotted_report_id=report_id)

    def _rank_and_store(self, spotted: Report, lost_pets: Sequence[Report]) -> ProcessResult:
        """Rank ``spotted`` against an already fetched lost-pet list and upsert.

        Raises:
            InputError: If the ranker rejects the spotted report.
        """
        result = ProcessResult(spotted_report_id=spotted.report_id)
        if not lost_pets:
            logger.info("No lost pets to compare against %s", spotted.report_id)
            return result

        result.matches = self.ranker.rank_candidates(spotted, lost_pets)

        for candidate in result.matches:
            try:
                outcome = self.matches.upsert(candidate)
            except (ApiError, TransportError) as exc:
                logger.error("Could not save match %s: %s", candidate.match_id, exc)
                continue
            if outcome == "created":
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            "Report %s: %d matches, %d created, %d updated",
            spotted.report_id,
            len(result.matches),
            result.created,
            result.updated,
        )
        return result

    def reprocess_all(
        self,
        progress: Callable[[int, int], None] | None = None,
    ) -> ReprocessStats:
        """Re-rank every active spotted report.

        Spotted reports and lost pets are each fetched once for the run.

        Args:
            progress: Called with (done, total) after each report.

        Returns:
            Aggregate counts; one failing report does not stop the others.

        Raises:
            TransientFetchError: If the report lists cannot be fetched.
        """
        stats = ReprocessStats()
        spotted_reports = self.reports.list_spotted()
        lost_pets = self.reports.list_lost_pets()
        total = len(spotted_reports)
        logger.info(
            "Reprocessing %d spotted reports against %d lost pets", total, len(lost_pets)
        )

        for i, spotted in enumerate(spotted_reports, start=1):
            try:
                result = self._rank_and_store(spotted, lost_pets)
            except InputError as exc:
                logger.error("Reprocessing %s failed: %s", spotted.report_id, exc)
                stats.failed += 1
            else:
                stats.processed += 1
                stats.created += result.created
                stats.updated += result.updated
            if progress is not None:
                progress(i, total)

        return stats

    def update_match(
        self,
        match_id: str,
        status: MatchStatus | None = None,
        checked: bool | None = None,
    ) -> MatchRecord | None:
        """Record the owner's status change and/or checked flag for a Match."""
        return self.matches.update_feedback(match_id, status=status, checked=checked)
