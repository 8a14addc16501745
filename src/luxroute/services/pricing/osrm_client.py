"""HTTP client for OSRM, used as a live ground-transport quote source."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from ...config import settings
from ...data.geo_reference import taxi_rate
from ...errors import ProviderError
from .models import Quote

logger = logging.getLogger(__name__)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float = 8.0,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout

    def _get_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)))

    def route_summary(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Driving distance (m) and duration (s) through the given (lat, lon) waypoints."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        # OSRM route endpoint expects coordinates as "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        params = {"overview": "false", "steps": "false"}

        client = self._get_client()
        try:
            response = client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        finally:
            client.close()

        if data.get("code") != "Ok" or not data.get("routes"):
            raise ValueError(f"OSRM route request failed: {data.get('message', 'no route')}")
        route = data["routes"][0]
        return {"distance": float(route["distance"]), "duration": float(route["duration"])}


class OSRMGroundProvider:
    """Prices a ground transfer from the OSRM driving route and city taxi tariffs."""

    name = "osrm"

    def __init__(self, client: OSRMClient) -> None:
        self.client = client

    def quote(self, params: Mapping[str, Any]) -> Quote | None:
        try:
            origin = (float(params["origin_lat"]), float(params["origin_lon"]))
            destination = (float(params["destination_lat"]), float(params["destination_lon"]))
        except (KeyError, TypeError, ValueError):
            return None

        try:
            summary = self.client.route_summary([origin, destination])
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(self.name, str(exc)) from exc

        km = summary["distance"] / 1000.0
        minutes = summary["duration"] / 60.0
        rate = taxi_rate(params.get("origin_city"))
        amount = rate.base + rate.per_km * km + rate.per_minute * minutes
        logger.debug(f"OSRM ground quote {km:.1f} km / {minutes:.0f} min -> {amount:.2f}")
        return Quote(
            amount=round(amount, 2),
            currency="EUR",
            provider=self.name,
            duration_minutes=minutes,
            details={"distance_km": round(km, 1)},
        )


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by requesting a short route between two points."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
