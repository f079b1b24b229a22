"""Tests for petmatch/store/matches.py."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from elasticsearch import NotFoundError

from petmatch.data.schemas import MatchCandidate, MatchStatus
from petmatch.store.matches import MatchStore


@pytest.fixture
def store(mock_es_client: MagicMock) -> MatchStore:
    return MatchStore(mock_es_client, index_name="test_matches")


@pytest.fixture
def candidate() -> MatchCandidate:
    return MatchCandidate(
        spotted_report_id="s-1",
        lost_pet_id="l-1",
        owner_id="owner-1",
        match_score=88,
        visual_similarity=80,
    )


def _match_doc(**overrides) -> dict:
    doc = {
        "match_id": "s-1__l-1",
        "spotted_report_id": "s-1",
        "lost_pet_id": "l-1",
        "owner_id": "owner-1",
        "match_score": 88,
        "visual_similarity": 80,
        "status": "pending",
        "checked": False,
        "notified": False,
        "created_at": "2024-01-01T12:00:00+00:00",
    }
    doc.update(overrides)
    return {"_id": doc["match_id"], "_source": doc}


class TestUpsert:
    """Tests for pair-keyed upserts."""

    def test_upsert_uses_pair_id(self, store, mock_es_client, candidate) -> None:
        """The document id is the (spotted, lost) natural key."""
        mock_es_client.update.return_value = {"result": "created"}
        assert store.upsert(candidate) == "created"
        kwargs = mock_es_client.update.call_args.kwargs
        assert kwargs["id"] == "s-1__l-1"
        assert kwargs["retry_on_conflict"] == 3

    def test_repeat_only_refreshes_scores(self, store, mock_es_client, candidate) -> None:
        """An existing pair gets new scores; status lives only in the upsert body."""
        mock_es_client.update.return_value = {"result": "updated"}
        assert store.upsert(candidate) == "updated"
        kwargs = mock_es_client.update.call_args.kwargs
        assert kwargs["doc"] == {"match_score": 88, "visual_similarity": 80}
        assert kwargs["upsert"]["status"] == "pending"
        assert kwargs["upsert"]["checked"] is False

    def test_same_pair_same_document(self, store, mock_es_client, candidate) -> None:
        """Two computations for one pair address one document."""
        mock_es_client.update.return_value = {"result": "updated"}
        store.upsert(candidate)
        store.upsert(candidate.model_copy(update={"match_score": 95}))
        ids = {c.kwargs["id"] for c in mock_es_client.update.call_args_list}
        assert ids == {"s-1__l-1"}


class TestMatchUpdates:
    """Tests for owner feedback updates."""

    def test_mark_checked(self, store, mock_es_client) -> None:
        """Checking sets the flag and a timestamp."""
        mock_es_client.get.return_value = _match_doc(
            checked=True, checked_at="2024-01-02T00:00:00+00:00"
        )
        record = store.update_feedback("s-1__l-1", checked=True)
        doc = mock_es_client.update.call_args.kwargs["doc"]
        assert doc["checked"] is True
        assert doc["checked_at"] is not None
        assert record is not None and record.checked

    def test_uncheck_clears_timestamp(self, store, mock_es_client) -> None:
        """Clearing the flag also clears the timestamp."""
        mock_es_client.get.return_value = _match_doc(checked=False)
        record = store.update_feedback("s-1__l-1", checked=False)
        doc = mock_es_client.update.call_args.kwargs["doc"]
        assert doc == {"checked": False, "checked_at": None}
        assert record is not None and not record.checked

    def test_status_and_check_in_one_update(self, store, mock_es_client) -> None:
        """Status and checked flag are written together."""
        mock_es_client.get.return_value = _match_doc(status="confirmed", checked=True)
        store.update_feedback("s-1__l-1", status=MatchStatus.CONFIRMED, checked=True)
        assert mock_es_client.update.call_count == 1
        doc = mock_es_client.update.call_args.kwargs["doc"]
        assert doc["status"] == "confirmed"
        assert doc["checked"] is True

    def test_update_missing(self, store, mock_es_client) -> None:
        """Unknown matches return None."""
        mock_es_client.update.side_effect = NotFoundError("missing", MagicMock(status=404), {})
        assert store.update_feedback("nope", checked=True) is None

    def test_update_nothing(self, store) -> None:
        """An update without fields is rejected."""
        with pytest.raises(ValueError):
            store.update_feedback("s-1__l-1")

    def test_update_status(self, store, mock_es_client) -> None:
        """Status changes are written as plain strings."""
        mock_es_client.get.return_value = _match_doc(status="confirmed")
        record = store.update_feedback("s-1__l-1", status=MatchStatus.CONFIRMED)
        assert mock_es_client.update.call_args.kwargs["doc"] == {"status": "confirmed"}
        assert record.status == MatchStatus.CONFIRMED

    def test_list_for_owner(self, store, mock_es_client) -> None:
        """Owner listings filter by owner and optional status."""
        mock_es_client.search.return_value = {"hits": {"hits": [_match_doc()]}}
        records = store.list_for_owner("owner-1", status=MatchStatus.PENDING)
        body = mock_es_client.search.call_args.kwargs["body"]
        assert {"term": {"owner_id": "owner-1"}} in body["query"]["bool"]["filter"]
        assert {"term": {"status": "pending"}} in body["query"]["bool"]["filter"]
        assert body["size"] == 50
        assert records[0].match_id == "s-1__l-1"
