"""Match quality analysis from owner feedback on persisted matches."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from petmatch.data.schemas import MatchQualityStats, MatchRecord, MatchStatus

logger = logging.getLogger(__name__)


def analyze_match_quality(records: Sequence[MatchRecord]) -> MatchQualityStats:
    """Estimate precision from confirmed vs dismissed matches.

    A confirmed match counts as correct, a dismissed one as a false
    positive; pending and viewed matches carry no feedback.

    Args:
        records: Persisted matches, typically for one owner.

    Returns:
        Counts, precision and threshold recommendations.
    """
    stats = MatchQualityStats(total=len(records))
    if not records:
        return stats

    stats.correct = sum(1 for r in records if r.status == MatchStatus.CONFIRMED)
    stats.false_positives = sum(1 for r in records if r.status == MatchStatus.DISMISSED)
    stats.average_score = sum(r.match_score for r in records) / len(records)

    judged = stats.correct + stats.false_positives
    if judged == 0:
        stats.recommendations.append("No feedback yet: confirm or dismiss matches first")
        return stats

    stats.precision = stats.correct / judged
    recs = stats.recommendations

    if stats.false_positives > stats.correct:
        suggested = min(85, round(stats.average_score + 5))
        recs.append("High false positives: increase the match threshold by 5-10 points")
        recs.append(f"Suggested threshold: {suggested}")
    elif stats.precision > 0.9 and stats.correct < 5:
        recs.append("Good precision but few matches: consider lowering the threshold slightly")
    elif stats.precision > 0.8:
        recs.append("Good balance: current settings are working well")
    elif stats.precision < 0.5:
        recs.append("Low precision: increase the threshold significantly (+10-15)")

    logger.info(
        "Match quality: %d matches, precision %.1f%%, average score %.1f",
        stats.total,
        stats.precision * 100,
        stats.average_score,
    )
    return stats
