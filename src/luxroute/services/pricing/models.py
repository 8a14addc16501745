"""Pricing data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ServiceType(str, Enum):
    FLIGHTS = "flights"
    TRAINS = "trains"
    GROUND = "ground"
    DHL = "dhl"


class CallReason(str, Enum):
    CACHE_HIT = "CACHE_HIT"
    CACHE_MISS = "CACHE_MISS"
    FORCE_REFRESH = "FORCE_REFRESH"
    HARD_CAP_REACHED = "HARD_CAP_REACHED"


class QuoteSource(str, Enum):
    CACHE = "cache"
    LIVE = "live"
    FALLBACK = "fallback"


@dataclass(slots=True, frozen=True)
class Quote:
    amount: float
    currency: str = "EUR"
    provider: str = ""
    duration_minutes: Optional[float] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CacheEntry:
    service_type: ServiceType
    key: str
    payload: Quote
    timestamp: datetime
    params: dict[str, Any] = field(default_factory=dict)

    def age_minutes(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds() / 60.0


@dataclass(slots=True, frozen=True)
class StalePart:
    service_type: ServiceType
    key: str
    cached_at: datetime


@dataclass(slots=True, frozen=True)
class CallDecision:
    should_call: bool
    reason: CallReason
    cache_key: str
    cached: Optional[CacheEntry] = None
    stale_parts: tuple[StalePart, ...] = ()


@dataclass(slots=True, frozen=True)
class PricingResult:
    quote: Quote
    source: QuoteSource
    fresh: bool
    reason: CallReason
    cache_key: str


@dataclass(slots=True, frozen=True)
class CallRecord:
    service_type: ServiceType
    key: str
    provider: str
    success: bool
    at: datetime
    error: Optional[str] = None
