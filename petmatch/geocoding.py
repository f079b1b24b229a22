"""Best-effort reverse geocoding of report locations."""

from __future__ import annotations

import logging

import requests

from petmatch.data.schemas import Coordinates, GeocodeResult

logger = logging.getLogger(__name__)


def format_coordinates(coords: Coordinates) -> str:
    """Fallback label: ``"lat, lon"`` with 4 decimals."""
    return f"{coords.latitude:.4f}, {coords.longitude:.4f}"


def _label_from_address(address: dict) -> str | None:
    parts = []
    street = address.get("road") or address.get("pedestrian")
    city = address.get("city") or address.get("town") or address.get("village")
    for part in (street, city):
        if part and isinstance(part, str):
            parts.append(part)
    return ", ".join(parts) or None


class NominatimGeocoder:
    """Reverse geocoder for a Nominatim-compatible ``/reverse`` endpoint.

    Failures are returned as a GeocodeResult with ``error`` set rather
    than raised; callers decide how to fall back.

    Args:
        url: Reverse endpoint URL.
        user_agent: User-Agent header (required by the public Nominatim policy).
        timeout: Request timeout in seconds.
        session: Optional requests session.
    """

    def __init__(
        self,
        url: str = "https://nominatim.openstreetmap.org/reverse",
        user_agent: str = "petmatch/0.1",
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def label_for(self, coords: Coordinates) -> GeocodeResult:
        params = {
            "lat": coords.latitude,
            "lon": coords.longitude,
            "format": "jsonv2",
            "zoom": 17,
        }
        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Reverse geocoding failed for %s: %s", format_coordinates(coords), exc)
            return GeocodeResult(error=str(exc))

        address = payload.get("address") if isinstance(payload, dict) else None
        if not isinstance(address, dict):
            return GeocodeResult(error="response has no address object")

        label = _label_from_address(address)
        if label is None:
            return GeocodeResult(error="no street or city in response")
        return GeocodeResult(label=label)


def resolve_label(geocoder: NominatimGeocoder | None, coords: Coordinates) -> str:
    """Human-readable label for ``coords``, falling back to the coordinates."""
    if geocoder is None:
        return format_coordinates(coords)
    result = geocoder.label_for(coords)
    return result.label if result.ok else format_coordinates(coords)
