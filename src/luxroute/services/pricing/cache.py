"""TTL cache for external pricing quotes with bucketed keys."""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from ...config import Settings, settings as default_settings
from .models import CacheEntry, Quote, ServiceType

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value:
        moment = datetime.fromisoformat(value)
    else:
        raise ValueError("Pricing lookup requires a departure time.")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class PricingCacheStore:
    """Per-service quote cache.

    Keys are coarse on purpose so near-identical requests share an entry:
    transport services key on origin, destination and a departure time
    bucket; parcel quotes key on postcodes, a rounded-up weight and the
    product. Expiry is only evaluated on read.
    """

    def __init__(self, config: Settings | None = None, clock: Clock | None = None) -> None:
        config = config or default_settings
        self._ttl_minutes = {ServiceType(name): minutes for name, minutes in config.cache_ttl_minutes.items()}
        self._bucket_hours = {ServiceType(name): hours for name, hours in config.date_bucket_hours.items()}
        self._weight_bucket_kg = config.weight_bucket_kg
        self._clock = clock or utc_now
        self._entries: dict[ServiceType, dict[str, CacheEntry]] = {service: {} for service in ServiceType}
        self._lock = threading.RLock()

    def now(self) -> datetime:
        return self._clock()

    def ttl_minutes(self, service: ServiceType) -> int:
        return self._ttl_minutes.get(service, 60)

    def make_key(self, service: ServiceType, params: Mapping[str, Any]) -> str:
        if service is ServiceType.DHL:
            weight = float(params.get("weight_kg") or 0.0)
            bucket = math.ceil(weight / self._weight_bucket_kg) * self._weight_bucket_kg
            product = params.get("product") or "standard"
            return f"{params.get('origin_postcode')}-{params.get('destination_postcode')}-{bucket:g}kg-{product}"

        departure = _parse_time(params.get("departure"))
        hours = self._bucket_hours.get(service, 6)
        bucket_hour = (departure.hour // hours) * hours
        bucket = departure.replace(hour=bucket_hour, minute=0, second=0, microsecond=0)
        return f"{params.get('origin')}-{params.get('destination')}-{bucket.strftime('%Y-%m-%dT%H')}"

    def lookup(self, service: ServiceType, key: str) -> tuple[CacheEntry | None, bool]:
        """Return the entry for a key and whether it is still inside its TTL."""
        with self._lock:
            entry = self._entries[service].get(key)
        if entry is None:
            return None, False
        fresh = entry.age_minutes(self.now()) < self.ttl_minutes(service)
        return entry, fresh

    def store(self, service: ServiceType, key: str, quote: Quote, params: Mapping[str, Any] | None = None) -> CacheEntry:
        entry = CacheEntry(
            service_type=service,
            key=key,
            payload=quote,
            timestamp=self.now(),
            params=dict(params or {}),
        )
        with self._lock:
            self._entries[service][key] = entry
        logger.debug(f"Cached {service.value} quote under {key}")
        return entry

    def clear(self, services: Iterable[ServiceType] | None = None) -> int:
        targets = list(services) if services else list(ServiceType)
        cleared = 0
        with self._lock:
            for service in targets:
                cleared += len(self._entries[service])
                self._entries[service].clear()
        logger.info(f"Cleared {cleared} cached quotes for {[service.value for service in targets]}")
        return cleared

    def sizes(self) -> dict[str, int]:
        with self._lock:
            return {service.value: len(entries) for service, entries in self._entries.items()}
