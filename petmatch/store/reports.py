"""Elasticsearch-backed report store."""

from __future__ import annotations

import logging

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError

from petmatch.data.schemas import Coordinates, Report, ReportKind
from petmatch.errors import TransientFetchError

logger = logging.getLogger(__name__)


def report_to_doc(report: Report) -> dict:
    """Serialize a report, adding a ``geo_point`` when it has coordinates."""
    doc = report.model_dump(mode="json")
    coords = report.coordinates
    if coords is not None:
        doc["location"] = {"lat": coords.latitude, "lon": coords.longitude}
    return doc


def _parse_hits(hits: list[dict]) -> list[Report]:
    reports = []
    for hit in hits:
        source = dict(hit["_source"])
        source.pop("location", None)
        source.setdefault("report_id", hit.get("_id"))
        reports.append(Report(**source))
    return reports


class ReportStore:
    """Read access to reports plus the soft-delete used when a pet is found.

    Every listing excludes resolved reports. Transport and API failures
    surface as TransientFetchError so callers can retry on their next cycle.

    Args:
        es_client: Connected Elasticsearch client.
        index_name: Report index.
        page_size: Documents fetched per search request.
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        index_name: str = "reports",
        page_size: int = 500,
    ) -> None:
        self.es = es_client
        self.index_name = index_name
        self.page_size = page_size

    def _search(self, filters: list[dict]) -> list[Report]:
        """Fetch every matching report, one page at a time.

        Pages are walked with ``search_after`` on (created_at, report_id),
        so result sets larger than one page are returned in full.
        """
        body: dict = {
            "size": self.page_size,
            "query": {
                "bool": {
                    "filter": filters,
                    "must_not": [{"term": {"resolved": True}}],
                }
            },
            "sort": [
                {"created_at": {"order": "desc"}},
                {"report_id": {"order": "asc"}},
            ],
        }
        reports: list[Report] = []
        while True:
            try:
                resp = self.es.search(index=self.index_name, body=body)
            except (ApiError, TransportError) as exc:
                raise TransientFetchError(f"Report query failed: {exc}") from exc
            hits = resp["hits"]["hits"]
            reports.extend(_parse_hits(hits))
            if len(hits) < self.page_size or "sort" not in hits[-1]:
                break
            body = {**body, "search_after": hits[-1]["sort"]}

        logger.debug("Fetched %d reports from '%s'", len(reports), self.index_name)
        return reports

    def get(self, report_id: str) -> Report | None:
        try:
            resp = self.es.get(index=self.index_name, id=report_id)
        except NotFoundError:
            return None
        except (ApiError, TransportError) as exc:
            raise TransientFetchError(f"Fetching report {report_id} failed: {exc}") from exc
        return _parse_hits([resp])[0]

    def save(self, report: Report) -> None:
        self.es.index(index=self.index_name, id=report.report_id, document=report_to_doc(report))

    def list_active(self) -> list[Report]:
        """All unresolved reports, newest first."""
        return self._search([])

    def list_lost_pets(self) -> list[Report]:
        return self._search([{"term": {"kind": ReportKind.LOST.value}}])

    def list_spotted(self) -> list[Report]:
        return self._search([{"term": {"kind": ReportKind.SPOTTED.value}}])

    def get_lost_pets_for_owner(self, owner_id: str) -> list[Report]:
        return self._search(
            [
                {"term": {"kind": ReportKind.LOST.value}},
                {"term": {"reported_by": owner_id}},
            ]
        )

    def get_spotted_within_radius(self, center: Coordinates, radius_km: float) -> list[Report]:
        """Spotted reports whose location lies within ``radius_km`` of ``center``."""
        return self._search(
            [
                {"term": {"kind": ReportKind.SPOTTED.value}},
                {
                    "geo_distance": {
                        "distance": f"{radius_km}km",
                        "location": {"lat": center.latitude, "lon": center.longitude},
                    }
                },
            ]
        )

    def mark_resolved(self, report_id: str) -> bool:
        """Soft-delete a report; existing matches are left untouched.

        Returns:
            False if the report does not exist.
        """
        try:
            self.es.update(index=self.index_name, id=report_id, doc={"resolved": True})
        except NotFoundError:
            return False
        logger.info("Report %s marked resolved", report_id)
        return True
