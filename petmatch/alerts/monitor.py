"""Background alert polling for one viewer session."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from petmatch.alerts.aggregator import AlertAggregator
from petmatch.data.schemas import Alert, Coordinates

logger = logging.getLogger(__name__)


class AlertMonitor:
    """Run alert scans on a timer while location permission is granted.

    Granting permission starts a background thread that scans immediately
    and then every ``interval_seconds``. Revoking permission or stopping the
    session cancels the loop and clears the published alerts. Each start or
    stop bumps a generation counter; a scan that finishes under an older
    generation is discarded instead of published.

    Args:
        aggregator: Alert aggregator to run.
        viewer_id: The session's user.
        radius_km: Alert radius (None: aggregator default).
        interval_seconds: Delay between scans (None: the aggregator config's
            ``scan_interval_seconds``).
        on_alerts: Called with each published alert list.
    """

    def __init__(
        self,
        aggregator: AlertAggregator,
        viewer_id: str,
        radius_km: float | None = None,
        interval_seconds: float | None = None,
        on_alerts: Callable[[list[Alert]], None] | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.viewer_id = viewer_id
        self.radius_km = radius_km
        if interval_seconds is None:
            interval_seconds = aggregator.config.scan_interval_seconds
        self.interval_seconds = interval_seconds
        self.on_alerts = on_alerts

        self._lock = threading.Lock()
        self._generation = 0
        self._coords: Coordinates | None = None
        self._alerts: list[Alert] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def alerts(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def update_location(self, coords: Coordinates) -> None:
        with self._lock:
            self._coords = coords

    def grant_permission(self, coords: Coordinates) -> None:
        """Start polling from ``coords``; no-op besides the location if already running."""
        with self._lock:
            self._coords = coords
            if self._thread is not None and self._thread.is_alive():
                return
            self._generation += 1
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name=f"alert-monitor-{self.viewer_id}",
                daemon=True,
            )
            thread = self._thread
        logger.info("Alert monitoring started for %s", self.viewer_id)
        thread.start()

    def revoke_permission(self) -> None:
        self.stop()
        with self._lock:
            self._coords = None

    def stop(self, timeout: float | None = 5.0) -> None:
        """Cancel polling, discard any in-flight scan and clear alerts."""
        with self._lock:
            self._generation += 1
            self._alerts = []
            self._stop_event.set()
            thread, self._thread = self._thread, None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.info("Alert monitoring stopped for %s", self.viewer_id)

    def refresh(self) -> list[Alert] | None:
        """Scan now and publish the result.

        Returns:
            The published alerts, or None if there is no location yet or the
            scan was cancelled while running.
        """
        with self._lock:
            generation = self._generation
            coords = self._coords
        if coords is None:
            return None

        alerts = self.aggregator.scan_alerts(self.viewer_id, coords, self.radius_km)

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding alert scan cancelled mid-flight for %s", self.viewer_id)
                return None
            self._alerts = alerts

        if self.on_alerts is not None:
            self.on_alerts(alerts)
        return alerts

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.refresh()
            except Exception:
                logger.exception("Alert scan failed for %s", self.viewer_id)
            stop_event.wait(self.interval_seconds)
