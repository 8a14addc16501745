"""Per-session live call budget for external pricing providers."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping

from .cache import PricingCacheStore
from .models import CallDecision, CallReason, CallRecord, Quote, ServiceType, StalePart

logger = logging.getLogger(__name__)

WARNING_USAGE_RATIO = 0.8


@dataclass(slots=True)
class Session:
    session_id: str
    hard_cap: int
    started_at: datetime
    count: int = 0
    cache_hits: int = 0
    stale_parts: list[StalePart] = field(default_factory=list)
    calls: list[CallRecord] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def remaining(self) -> int:
        return max(0, self.hard_cap - self.count)


class APICallBudget:
    """Tracks live pricing calls per session and enforces the hard cap.

    Only successful live quotes consume budget; failed attempts are kept as
    call records for the cost report.
    """

    def __init__(
        self,
        cache: PricingCacheStore,
        hard_cap: int = 8,
        session_ttl: timedelta | None = None,
    ) -> None:
        self.cache = cache
        self.hard_cap = hard_cap
        self.session_ttl = session_ttl
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()

    def start_session(self, session_id: str | None = None) -> Session:
        with self._lock:
            self._evict_expired()
            if session_id and session_id in self._sessions:
                return self._sessions[session_id]
            session = Session(
                session_id=session_id or uuid.uuid4().hex,
                hard_cap=self.hard_cap,
                started_at=self.cache.now(),
            )
            self._sessions[session.session_id] = session
            logger.info(f"Started pricing session {session.session_id} (hard cap {self.hard_cap})")
            return session

    def _evict_expired(self) -> None:
        if self.session_ttl is None:
            return
        cutoff = self.cache.now() - self.session_ttl
        expired = [sid for sid, session in self._sessions.items() if session.started_at < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Evicted {len(expired)} pricing session(s) older than {self.session_ttl}")

    def session_lock(self, session_id: str) -> threading.Lock:
        """Held across check, live call and record for one session."""
        return self._session(session_id).lock

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def _session(self, session_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return self.start_session(session_id)
        return session

    def check_call(
        self,
        session_id: str,
        service: ServiceType,
        params: Mapping[str, Any],
        force_refresh: bool = False,
    ) -> CallDecision:
        """Decide whether a live provider call may be made for this lookup.

        Repeating the check without recording a call returns the same decision.
        """
        key = self.cache.make_key(service, params)
        with self._lock:
            session = self._session(session_id)
            entry, fresh = self.cache.lookup(service, key)

            if force_refresh:
                return CallDecision(True, CallReason.FORCE_REFRESH, key, entry, tuple(session.stale_parts))

            if entry is not None and fresh:
                return CallDecision(False, CallReason.CACHE_HIT, key, entry, tuple(session.stale_parts))

            if entry is not None and not any(part.key == key and part.service_type is service for part in session.stale_parts):
                session.stale_parts.append(StalePart(service, key, entry.timestamp))
                logger.warning(f"Stale {service.value} quote for {key} in session {session_id}")

            if session.count >= session.hard_cap:
                logger.warning(f"Session {session_id} reached its hard cap of {session.hard_cap} live calls")
                return CallDecision(False, CallReason.HARD_CAP_REACHED, key, entry, tuple(session.stale_parts))

            return CallDecision(True, CallReason.CACHE_MISS, key, entry, tuple(session.stale_parts))

    def record_call(
        self,
        session_id: str,
        service: ServiceType,
        params: Mapping[str, Any],
        quote: Quote | None,
        provider: str,
        error: str | None = None,
    ) -> None:
        """Record a live provider attempt. Successful quotes are counted and cached."""
        key = self.cache.make_key(service, params)
        success = quote is not None and error is None
        with self._lock:
            session = self._session(session_id)
            session.calls.append(CallRecord(service, key, provider, success, self.cache.now(), error))
            if not success:
                return
            session.count += 1
            session.stale_parts = [
                part for part in session.stale_parts if not (part.key == key and part.service_type is service)
            ]
            self.cache.store(service, key, quote, params)
        logger.info(f"Live {service.value} call via {provider} ({session.count}/{session.hard_cap}) for session {session_id}")

    def record_cache_hit(self, session_id: str, service: ServiceType) -> None:
        with self._lock:
            self._session(session_id).cache_hits += 1
        logger.debug(f"Served {service.value} quote from cache for session {session_id}")

    def cost_report(self, session_id: str) -> dict[str, Any]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(session_id)
            calls_by_service = Counter(record.service_type.value for record in session.calls if record.success)
            failed = sum(1 for record in session.calls if not record.success)
            lookups = session.cache_hits + session.count
            hit_rate = round(session.cache_hits / lookups * 100, 1) if lookups else 0.0
            report = {
                "sessionId": session.session_id,
                "totalCalls": session.count,
                "hardCap": session.hard_cap,
                "remainingCalls": session.remaining,
                "callsByService": {service.value: calls_by_service.get(service.value, 0) for service in ServiceType},
                "failedCalls": failed,
                "staleParts": [
                    {
                        "service": part.service_type.value,
                        "key": part.key,
                        "cachedAt": part.cached_at.isoformat(),
                    }
                    for part in session.stale_parts
                ],
                "cacheHits": session.cache_hits,
                "cacheHitRate": hit_rate,
                "startTime": session.started_at.isoformat(),
            }
        report["badgeStatus"] = _badge_status(report)
        report["recommendations"] = _recommendations(report)
        report["cacheSizes"] = self.cache.sizes()
        return report

    def end_session(self, session_id: str) -> dict[str, Any] | None:
        """Return the final report for a session and forget it."""
        with self._lock:
            if session_id not in self._sessions:
                return None
            report = self.cost_report(session_id)
            del self._sessions[session_id]
        logger.info(f"Closed pricing session {session_id} after {report['totalCalls']} live calls")
        return report


def _badge_status(report: Mapping[str, Any]) -> str:
    if report["staleParts"]:
        return "stale-parts"
    if report["totalCalls"] >= report["hardCap"]:
        return "cap-reached"
    if report["hardCap"] and report["totalCalls"] / report["hardCap"] >= WARNING_USAGE_RATIO:
        return "warning"
    return "good"


def _recommendations(report: Mapping[str, Any]) -> list[str]:
    recommendations = []
    if report["totalCalls"] >= report["hardCap"]:
        recommendations.append("Live call budget exhausted: remaining quotes come from cache or fallback tables.")
    elif report["hardCap"] and report["totalCalls"] / report["hardCap"] >= WARNING_USAGE_RATIO:
        recommendations.append(
            f"Only {report['remainingCalls']} live calls left; reuse cached quotes where possible."
        )
    if report["staleParts"]:
        recommendations.append(
            f"{len(report['staleParts'])} quote(s) are past their TTL; refresh those services before confirming."
        )
    if report["totalCalls"] + report["cacheHits"] >= 4 and report["cacheHitRate"] < 50:
        recommendations.append("Cache hit rate is low; consider widening the date buckets.")
    if report["failedCalls"]:
        recommendations.append(f"{report['failedCalls']} provider call(s) failed; check provider health.")
    return recommendations
