import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from src.luxroute.config import Settings
from src.luxroute.services.pricing import (
    APICallBudget,
    CallReason,
    ExternalPricingCache,
    PricingCacheStore,
    Quote,
    QuoteSource,
    ServiceType,
)

START = datetime(2025, 3, 4, 0, tzinfo=timezone.utc)


class CountingProvider:
    name = "flights-live"

    def __init__(self) -> None:
        self.calls = 0

    def quote(self, params):
        self.calls += 1
        return Quote(amount=100.0 + self.calls, currency="EUR", provider=self.name)


class SlowProvider(CountingProvider):
    def quote(self, params):
        time.sleep(0.05)
        return super().quote(params)


class Clock:
    def __init__(self) -> None:
        self.now = START

    def __call__(self) -> datetime:
        return self.now


def _budget(hard_cap: int = 8, clock: Clock | None = None) -> APICallBudget:
    return APICallBudget(PricingCacheStore(Settings(), clock or Clock()), hard_cap=hard_cap)


def _params(bucket: int) -> dict:
    # Flight keys bucket departures into 4h windows, so each index is a distinct key.
    departure = START + timedelta(hours=4 * bucket)
    return {"origin": "LON", "destination": "MIL", "departure": departure.isoformat()}


def test_hard_cap_stops_live_calls_after_eight():
    budget = _budget()
    provider = CountingProvider()
    pricing = ExternalPricingCache(budget, {ServiceType.FLIGHTS: [provider]})
    session = budget.start_session()

    results = [pricing.get(session.session_id, ServiceType.FLIGHTS, _params(i)) for i in range(9)]

    assert provider.calls == 8
    assert [result.source for result in results[:8]] == [QuoteSource.LIVE] * 8
    assert results[8].source is QuoteSource.FALLBACK
    assert results[8].reason is CallReason.HARD_CAP_REACHED
    report = budget.cost_report(session.session_id)
    assert report["totalCalls"] == 8
    assert report["hardCap"] == 8
    assert report["remainingCalls"] == 0
    assert report["badgeStatus"] == "cap-reached"


def test_cache_hit_is_served_after_cap_is_reached():
    budget = _budget(hard_cap=1)
    pricing = ExternalPricingCache(budget, {ServiceType.FLIGHTS: [CountingProvider()]})
    session = budget.start_session()
    pricing.get(session.session_id, ServiceType.FLIGHTS, _params(0))

    again = pricing.get(session.session_id, ServiceType.FLIGHTS, _params(0))

    assert again.source is QuoteSource.CACHE
    assert again.fresh


def test_force_refresh_is_allowed_past_the_cap():
    budget = _budget(hard_cap=0)
    session = budget.start_session()

    decision = budget.check_call(session.session_id, ServiceType.FLIGHTS, _params(0), force_refresh=True)

    assert decision.should_call
    assert decision.reason is CallReason.FORCE_REFRESH


def test_check_call_is_idempotent():
    clock = Clock()
    budget = _budget(clock=clock)
    session = budget.start_session()
    key = budget.cache.make_key(ServiceType.FLIGHTS, _params(0))
    budget.cache.store(ServiceType.FLIGHTS, key, Quote(90.0))
    clock.now = START + timedelta(hours=3)

    first = budget.check_call(session.session_id, ServiceType.FLIGHTS, _params(0))
    second = budget.check_call(session.session_id, ServiceType.FLIGHTS, _params(0))

    assert first == second
    assert first.reason is CallReason.CACHE_MISS
    assert len(first.stale_parts) == 1
    assert budget.cost_report(session.session_id)["totalCalls"] == 0


def test_successful_call_clears_stale_part_and_counts():
    clock = Clock()
    budget = _budget(clock=clock)
    session = budget.start_session("stale-session")
    params = _params(0)
    key = budget.cache.make_key(ServiceType.FLIGHTS, params)
    budget.cache.store(ServiceType.FLIGHTS, key, Quote(90.0))
    clock.now = START + timedelta(hours=3)
    budget.check_call(session.session_id, ServiceType.FLIGHTS, params)

    budget.record_call(session.session_id, ServiceType.FLIGHTS, params, Quote(95.0), "flights-live")

    report = budget.cost_report("stale-session")
    assert report["staleParts"] == []
    assert report["totalCalls"] == 1
    assert report["callsByService"]["flights"] == 1
    entry, fresh = budget.cache.lookup(ServiceType.FLIGHTS, key)
    assert fresh and entry.payload.amount == 95.0


def test_failed_call_does_not_consume_budget():
    budget = _budget()
    session = budget.start_session()

    budget.record_call(session.session_id, ServiceType.DHL, {"weight_kg": 1}, None, "dhl-live", error="timeout")

    report = budget.cost_report(session.session_id)
    assert report["totalCalls"] == 0
    assert report["failedCalls"] == 1
    assert report["badgeStatus"] == "good"


def test_cost_report_shape_and_session_lifecycle():
    budget = _budget()
    session = budget.start_session("abc")

    report = budget.cost_report("abc")

    for key in ("sessionId", "totalCalls", "hardCap", "callsByService", "staleParts", "cacheHitRate", "startTime"):
        assert key in report
    assert report["sessionId"] == "abc"
    assert report["startTime"] == START.isoformat()
    assert budget.start_session("abc") is session

    final = budget.end_session("abc")
    assert final["sessionId"] == "abc"
    assert not budget.has_session("abc")
    with pytest.raises(KeyError):
        budget.cost_report("abc")


def test_sessions_past_their_ttl_are_evicted():
    clock = Clock()
    budget = APICallBudget(PricingCacheStore(Settings(), clock), hard_cap=8, session_ttl=timedelta(minutes=60))
    budget.start_session("old")

    clock.now = START + timedelta(minutes=30)
    budget.start_session("recent")
    assert budget.has_session("old")

    clock.now = START + timedelta(minutes=61)
    budget.start_session("new")

    assert not budget.has_session("old")
    assert budget.has_session("recent")
    assert budget.has_session("new")


def test_concurrent_lookups_never_exceed_the_cap():
    budget = _budget(hard_cap=2)
    provider = SlowProvider()
    pricing = ExternalPricingCache(budget, {ServiceType.FLIGHTS: [provider]})
    session = budget.start_session()

    with ThreadPoolExecutor(max_workers=6) as executor:
        results = list(executor.map(lambda i: pricing.get(session.session_id, ServiceType.FLIGHTS, _params(i)), range(6)))

    assert provider.calls == 2
    assert budget.cost_report(session.session_id)["totalCalls"] == 2
    assert sum(result.source is QuoteSource.LIVE for result in results) == 2
    assert sum(result.reason is CallReason.HARD_CAP_REACHED for result in results) == 4
