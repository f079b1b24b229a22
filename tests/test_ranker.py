"""Tests for petmatch/matching/ranker.py."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from petmatch.data.schemas import Embedding, ReportKind
from petmatch.embeddings.provider import EmbeddingProvider
from petmatch.errors import InputError
from petmatch.matching.ranker import CandidateRanker


@pytest.fixture
def ranker(fake_provider, config) -> CandidateRanker:
    return CandidateRanker(fake_provider, config)


@pytest.fixture
def spotted(make_report):
    return make_report("s-1", photos=["spotted.jpg"])


class TestBestVisualScore:
    """Tests for best-of-all-pairs visual scoring."""

    def test_takes_maximum_pair(self, ranker: CandidateRanker) -> None:
        """The best photo pair determines the visual score."""
        spotted = [Embedding(vector=[1, 0, 0], provider_version="fake/1")]
        lost = [
            Embedding(vector=[0, 1, 0], provider_version="fake/1"),
            Embedding(vector=[1, 0, 0], provider_version="fake/1"),
        ]
        assert ranker.best_visual_score(spotted, lost) == 100


class TestRankCandidates:
    """Tests for CandidateRanker.rank_candidates."""

    def test_identical_photo_ranks_first(self, ranker, spotted, make_report) -> None:
        """An identical photo yields a top match; an orthogonal one is filtered."""
        twin = make_report("l-twin", ReportKind.LOST, photos=["same.jpg"], reported_by="owner-9")
        other = make_report("l-other", ReportKind.LOST, photos=["ortho.jpg"])

        matches = ranker.rank_candidates(spotted, [other, twin])

        assert [m.lost_pet_id for m in matches] == ["l-twin"]
        top = matches[0]
        assert top.match_score == 100
        assert top.visual_similarity == 100
        assert top.owner_id == "owner-9"
        assert top.spotted_report_id == "s-1"

    def test_threshold_filter(self, ranker, spotted, make_report) -> None:
        """Lowering the threshold admits the orthogonal candidate (57 + 13)."""
        other = make_report("l-other", ReportKind.LOST, photos=["ortho.jpg"])
        matches = ranker.rank_candidates(spotted, [other], threshold=70)
        assert len(matches) == 1
        assert matches[0].visual_similarity == 57
        assert matches[0].match_score == 70

    def test_sorted_descending_and_above_threshold(self, ranker, spotted, make_report) -> None:
        """Output is sorted by adjusted score and never below threshold."""
        pets = [
            make_report("a", ReportKind.LOST, photos=["ortho.jpg"]),
            make_report("b", ReportKind.LOST, photos=["same.jpg"], latitude=3.0),
            make_report("c", ReportKind.LOST, photos=["same.jpg"]),
        ]
        matches = ranker.rank_candidates(spotted, pets, threshold=60)
        scores = [m.match_score for m in matches]
        assert scores == sorted(scores, reverse=True)
        assert all(s >= 60 for s in scores)
        assert [m.lost_pet_id for m in matches] == ["b", "c", "a"]

    def test_ties_preserve_input_order(self, ranker, spotted, make_report) -> None:
        """Equal scores keep the order the lost pets were given in."""
        pets = [make_report(pid, ReportKind.LOST, photos=["same.jpg"]) for pid in ("x", "y", "z")]
        matches = ranker.rank_candidates(spotted, pets)
        assert [m.lost_pet_id for m in matches] == ["x", "y", "z"]

    def test_skips_pets_without_photos(self, ranker, spotted, make_report) -> None:
        """A lost pet with no photos is skipped, not an error."""
        pets = [
            make_report("no-photos", ReportKind.LOST, photos=[]),
            make_report("ok", ReportKind.LOST, photos=["same.jpg"]),
        ]
        assert [m.lost_pet_id for m in ranker.rank_candidates(spotted, pets)] == ["ok"]

    def test_extraction_failure_does_not_abort(self, ranker, spotted, make_report) -> None:
        """One unreadable lost pet is skipped and the batch continues."""
        pets = [
            make_report("broken", ReportKind.LOST, photos=["missing.jpg"]),
            make_report("ok", ReportKind.LOST, photos=["missing.jpg", "same.jpg"]),
        ]
        matches = ranker.rank_candidates(spotted, pets)
        assert [m.lost_pet_id for m in matches] == ["ok"]

    def test_dimension_mismatch_skips_candidate(self, ranker, spotted, make_report) -> None:
        """A candidate whose embeddings cannot be compared is skipped."""
        ranker.provider.vectors["short.jpg"] = [1.0, 0.0]
        pets = [
            make_report("short", ReportKind.LOST, photos=["short.jpg"]),
            make_report("ok", ReportKind.LOST, photos=["same.jpg"]),
        ]
        assert [m.lost_pet_id for m in ranker.rank_candidates(spotted, pets)] == ["ok"]

    def test_resolved_pets_excluded(self, ranker, spotted, make_report) -> None:
        """Found pets take no part in ranking."""
        pets = [make_report("found", ReportKind.LOST, photos=["same.jpg"], resolved=True)]
        assert ranker.rank_candidates(spotted, pets) == []

    def test_spotted_photos_extracted_once(self, ranker, spotted, make_report) -> None:
        """Spotted photos are embedded once regardless of candidate count."""
        pets = [make_report(pid, ReportKind.LOST, photos=["same.jpg"]) for pid in "abcd"]
        ranker.rank_candidates(spotted, pets)
        assert ranker.provider.calls.count("spotted.jpg") == 1

    def test_reference_scenario(self, ranker, make_report) -> None:
        """Visual 70 with species, ~1 km and same-day bonuses is kept at 83."""
        spotted = make_report("s-1", photos=["spotted.jpg"], latitude=0.0, longitude=0.009)
        lost = make_report("l-1", ReportKind.LOST, photos=["same.jpg"])
        with patch.object(CandidateRanker, "best_visual_score", return_value=70):
            matches = ranker.rank_candidates(spotted, [lost])
        assert len(matches) == 1
        assert matches[0].match_score == 83
        assert matches[0].visual_similarity == 70

    def test_no_spotted_photos_is_input_error(self, ranker, make_report) -> None:
        """A spotted report without photos is rejected."""
        with pytest.raises(InputError):
            ranker.rank_candidates(make_report("s-1", photos=[]), [])

    def test_lost_report_as_spotted_rejected(self, ranker, make_report) -> None:
        """Only sightings can be ranked."""
        with pytest.raises(InputError):
            ranker.rank_candidates(make_report("l-1", ReportKind.LOST), [])

    def test_unusable_spotted_photos_return_empty(self, ranker, make_report) -> None:
        """If no spotted photo can be embedded the result is empty."""
        spotted = make_report("s-1", photos=["missing.jpg"])
        pets = [make_report("ok", ReportKind.LOST, photos=["same.jpg"])]
        assert ranker.rank_candidates(spotted, pets) == []


class TestComparePhotos:
    """Tests for direct photo comparison."""

    def test_compare_identical(self, ranker) -> None:
        """Identical photos score 100."""
        assert ranker.compare_photos("spotted.jpg", "same.jpg").combined_score == 100


class TestRankWithPhotoLoading:
    """Ranking through the real provider and photo loader."""

    def test_oversized_photo_does_not_abort(
        self, config, make_report, small_photo_ref, oversized_photo_ref
    ) -> None:
        """A lost pet whose only photo is oversized is skipped; the rest are ranked."""
        encoder = MagicMock()
        encoder.encode_photo.return_value = [1.0, 0.0, 0.0]
        ranker = CandidateRanker(
            EmbeddingProvider(config, encoder_factory=lambda: encoder), config
        )
        spotted = make_report("s-1", photos=[small_photo_ref])
        pets = [
            make_report("huge", ReportKind.LOST, photos=[oversized_photo_ref]),
            make_report("ok", ReportKind.LOST, photos=[small_photo_ref]),
        ]

        matches = ranker.rank_candidates(spotted, pets)

        assert [m.lost_pet_id for m in matches] == ["ok"]
        assert matches[0].visual_similarity == 100
