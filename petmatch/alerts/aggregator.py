"""Periodic alert scan: injured animals nearby and likely sightings of a viewer's pets."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from petmatch.alerts.heuristic import DEFAULT_WEIGHTS, ProximityWeights, metadata_match_score
from petmatch.config import Config
from petmatch.data.schemas import Alert, AlertType, Coordinates, Report, ReportKind
from petmatch.errors import TransientFetchError
from petmatch.geo import haversine_km
from petmatch.geocoding import NominatimGeocoder, resolve_label
from petmatch.store.reports import ReportStore

logger = logging.getLogger(__name__)


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'' if value == 1 else 's'} ago"


def time_ago(then: datetime, now: datetime) -> str:
    """Human-readable age: minutes under an hour, hours under a day, else days."""
    minutes = max(0, int((now - then).total_seconds() // 60))
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(hours // 24, "day")


class AlertAggregator:
    """Build the deduplicated, priority-ordered alert list for one viewer.

    Match alerts here come from the metadata heuristic only; no photo is
    embedded during a scan. The report set is fetched fresh every scan. If
    the fetch fails the viewer's previous alert list is returned unchanged.

    Args:
        report_store: Source of active reports.
        geocoder: Reverse geocoder for location labels (None: coordinates only).
        config: Application configuration (radius, thresholds).
        weights: Heuristic bonus weights.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        report_store: ReportStore,
        geocoder: NominatimGeocoder | None,
        config: Config,
        weights: ProximityWeights = DEFAULT_WEIGHTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.report_store = report_store
        self.geocoder = geocoder
        self.config = config
        self.weights = weights
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_alerts: dict[str, list[Alert]] = {}
        self._lock = threading.Lock()

    def last_alerts(self, viewer_id: str) -> list[Alert]:
        with self._lock:
            return list(self._last_alerts.get(viewer_id, []))

    def scan_alerts(
        self,
        viewer_id: str,
        viewer_coords: Coordinates,
        radius_km: float | None = None,
    ) -> list[Alert]:
        """Run one scan for a viewer.

        Args:
            viewer_id: The viewing user; their own lost pets drive match alerts.
            viewer_coords: Current viewer location.
            radius_km: Alert radius (defaults to config).

        Returns:
            Alerts sorted high-match, moderate-match, injured, then by distance.
        """
        radius = self.config.alert_radius_km if radius_km is None else radius_km
        try:
            reports = self.report_store.list_active()
        except TransientFetchError as exc:
            logger.warning("Alert scan for %s failed, keeping previous alerts: %s", viewer_id, exc)
            return self.last_alerts(viewer_id)

        alerts = self.build_alerts(viewer_id, viewer_coords, radius, reports)
        with self._lock:
            self._last_alerts[viewer_id] = alerts
        logger.info("Alert scan for %s: %d alerts within %.1f km", viewer_id, len(alerts), radius)
        return alerts

    def build_alerts(
        self,
        viewer_id: str,
        viewer_coords: Coordinates,
        radius_km: float,
        reports: Sequence[Report],
    ) -> list[Alert]:
        """Pure part of a scan, given an already fetched report set."""
        now = self._clock()
        nearby: list[tuple[Report, float]] = []
        own_lost_pets: list[Report] = []

        for report in reports:
            if report.resolved:
                continue
            if report.kind == ReportKind.LOST and report.reported_by == viewer_id:
                own_lost_pets.append(report)
                continue
            coords = report.coordinates
            if report.kind != ReportKind.SPOTTED or coords is None:
                continue
            distance = haversine_km(
                viewer_coords.latitude, viewer_coords.longitude,
                coords.latitude, coords.longitude,
            )
            if distance <= radius_km:
                nearby.append((report, distance))

        labels: dict[str, str] = {}
        alerts: dict[str, Alert] = {}

        def _add(alert: Alert) -> None:
            alerts.setdefault(alert.key, alert)

        for lost_pet in own_lost_pets:
            for spotted, distance in nearby:
                score = metadata_match_score(lost_pet, spotted, self.weights)
                if score < self.config.alert_match_threshold:
                    continue
                alert_type = (
                    AlertType.HIGH_MATCH
                    if score >= self.config.high_match_threshold
                    else AlertType.MODERATE_MATCH
                )
                _add(
                    self._make_alert(
                        alert_type, spotted, distance, now, labels,
                        match_score=score,
                        lost_pet_id=lost_pet.report_id,
                        lost_pet_name=lost_pet.pet_name,
                    )
                )

        for spotted, distance in nearby:
            if spotted.injured and spotted.reported_by != viewer_id:
                _add(self._make_alert(AlertType.INJURED, spotted, distance, now, labels))

        return sorted(alerts.values(), key=lambda a: (a.alert_type.priority, a.distance_km))

    def _make_alert(
        self,
        alert_type: AlertType,
        spotted: Report,
        distance: float,
        now: datetime,
        labels: dict[str, str],
        **match_fields,
    ) -> Alert:
        coords = spotted.coordinates
        if spotted.report_id not in labels:
            labels[spotted.report_id] = resolve_label(self.geocoder, coords)

        return Alert(
            alert_type=alert_type,
            report_id=spotted.report_id,
            animal_type=spotted.animal_type or "animal",
            location=labels[spotted.report_id],
            distance_km=round(distance, 1),
            time_ago=time_ago(spotted.reference_time, now),
            latitude=coords.latitude,
            longitude=coords.longitude,
            **match_fields,
        )
