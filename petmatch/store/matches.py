"""Elasticsearch-backed Match persistence keyed by (spotted, lost) pair."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError

from petmatch.data.schemas import MatchCandidate, MatchRecord, MatchStatus
from petmatch.errors import TransientFetchError

logger = logging.getLogger(__name__)


def _parse_hit(hit: dict) -> MatchRecord:
    source = dict(hit["_source"])
    source.setdefault("match_id", hit.get("_id"))
    return MatchRecord(**source)


class MatchStore:
    """Persist Match records without ever duplicating a pair.

    The document id is the pair's natural key, and writes go through the
    update API with an ``upsert`` body, so concurrent ranking runs over
    overlapping lost pets converge on one document per pair.

    Args:
        es_client: Connected Elasticsearch client.
        index_name: Match index.
        retry_on_conflict: Version-conflict retries for concurrent upserts.
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        index_name: str = "matches",
        retry_on_conflict: int = 3,
    ) -> None:
        self.es = es_client
        self.index_name = index_name
        self.retry_on_conflict = retry_on_conflict

    def upsert(
        self,
        candidate: MatchCandidate,
        status: MatchStatus = MatchStatus.PENDING,
    ) -> str:
        """Create the Match for a pair, or refresh its scores if it exists.

        Status, checked flag and notification state of an existing Match
        are preserved; only a new Match takes ``status``.

        Returns:
            ``"created"`` or ``"updated"`` (``"noop"`` if nothing changed).
        """
        record = MatchRecord(
            match_id=candidate.match_id,
            spotted_report_id=candidate.spotted_report_id,
            lost_pet_id=candidate.lost_pet_id,
            owner_id=candidate.owner_id,
            match_score=candidate.match_score,
            visual_similarity=candidate.visual_similarity,
            status=status,
        )
        resp = self.es.update(
            index=self.index_name,
            id=record.match_id,
            doc={
                "match_score": record.match_score,
                "visual_similarity": record.visual_similarity,
            },
            upsert=record.model_dump(mode="json"),
            retry_on_conflict=self.retry_on_conflict,
        )
        result = resp["result"]
        logger.info("Match %s %s (score %d)", record.match_id, result, record.match_score)
        return result

    def get(self, match_id: str) -> MatchRecord | None:
        try:
            resp = self.es.get(index=self.index_name, id=match_id)
        except NotFoundError:
            return None
        return _parse_hit(resp)

    def _update(self, match_id: str, doc: dict) -> MatchRecord | None:
        try:
            self.es.update(
                index=self.index_name,
                id=match_id,
                doc=doc,
                retry_on_conflict=self.retry_on_conflict,
            )
        except NotFoundError:
            return None
        return self.get(match_id)

    def update_feedback(
        self,
        match_id: str,
        status: MatchStatus | None = None,
        checked: bool | None = None,
    ) -> MatchRecord | None:
        """Apply an owner's feedback to a Match in one update.

        Setting ``checked`` stamps ``checked_at``; clearing it removes the
        stamp, so an owner can take back a confirmation made by mistake.

        Returns:
            The updated record, or None if the Match does not exist.

        Raises:
            ValueError: If neither field is given.
        """
        doc: dict = {}
        if status is not None:
            doc["status"] = status.value
        if checked is not None:
            doc["checked"] = checked
            doc["checked_at"] = datetime.now(timezone.utc).isoformat() if checked else None
        if not doc:
            raise ValueError("No feedback fields given")
        return self._update(match_id, doc)

    def list_for_owner(
        self,
        owner_id: str,
        status: MatchStatus | None = None,
        limit: int = 50,
    ) -> list[MatchRecord]:
        """Matches for a lost-pet owner, newest first."""
        filters: list[dict] = [{"term": {"owner_id": owner_id}}]
        if status is not None:
            filters.append({"term": {"status": status.value}})
        body = {
            "size": limit,
            "query": {"bool": {"filter": filters}},
            "sort": [{"created_at": {"order": "desc"}}],
        }
        try:
            resp = self.es.search(index=self.index_name, body=body)
        except (ApiError, TransportError) as exc:
            raise TransientFetchError(f"Match query failed: {exc}") from exc
        return [_parse_hit(hit) for hit in resp["hits"]["hits"]]
