import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from src.luxroute.config import Settings
from src.luxroute.data.hub_price_book import HubPriceBook
from src.luxroute.errors import HubUnavailableError, ValidationError
from src.luxroute.models.domain import HubSnapshot, Party, Shipment
from src.luxroute.services.pricing import Quote, ServiceType
from src.luxroute.services.routing.leg_builder import validate_route_pattern
from src.luxroute.services.routing.models import LegType, ProcessingStep, RouteTemplate, TransportMode
from src.luxroute.services.routing.service import RouteCalculationEngine, validate_shipment
from src.luxroute.services.routing.templates import template_spec

NOW = datetime(2025, 3, 4, 7, tzinfo=timezone.utc)
PICKUP = datetime(2025, 3, 4, 9, tzinfo=timezone.utc)


class FlatProvider:
    def __init__(self, name: str, amount: float) -> None:
        self.name = name
        self.amount = amount
        self.calls = 0

    def quote(self, params):
        self.calls += 1
        return Quote(amount=self.amount, currency="EUR", provider=self.name)


def _engine(providers=None, price_book=None) -> RouteCalculationEngine:
    return RouteCalculationEngine(
        price_book=price_book or HubPriceBook(),
        providers={} if providers is None else providers,
        config=Settings(),
        clock=lambda: NOW,
    )


def _live_providers() -> dict:
    return {
        ServiceType.FLIGHTS: [FlatProvider("air", 210.0)],
        ServiceType.TRAINS: [FlatProvider("rail", 95.0)],
        ServiceType.GROUND: [FlatProvider("road", 40.0)],
        ServiceType.DHL: [FlatProvider("parcel", 55.0)],
    }


def _shipment(tier: int = 3, sender=("London", "GB"), buyer=("Nice", "FR"), **overrides) -> Shipment:
    values = dict(
        tier=tier,
        sender=Party(city=sender[0], country=sender[1], address="Atelier"),
        buyer=Party(city=buyer[0], country=buyer[1], address="Residence"),
        declared_value=12000.0,
        sla_target_date=PICKUP + timedelta(days=14),
        weight_kg=2.0,
        pickup_window_start=PICKUP,
    )
    values.update(overrides)
    return Shipment(**values)


def test_tier3_london_to_nice_returns_three_ranked_options():
    result = _engine().calculate_route_options(_shipment())

    assert len(result.options) == 3
    assert result.rejected == []
    assert result.hubs.hub_cou is not None
    assert result.hubs.hub_cou.has_sewing_capability
    assert result.hubs.hub_cou_id != result.hubs.hub_id
    assert {option.template for option in result.options} == {
        RouteTemplate.FULL_WG,
        RouteTemplate.HYBRID_WG_DHL,
        RouteTemplate.HYBRID_DHL_WG,
    }
    totals = [option.score.total for option in result.options]
    assert totals == sorted(totals, reverse=True)
    for option in result.options:
        expected = template_spec(option.template).expected_leg_types(result.hubs.same_hub)
        assert tuple(leg.type for leg in option.legs) == expected
        assert validate_route_pattern(option.template, option.legs, 3) == []
        assert not any(leg.type is LegType.DHL and leg.is_hub_transfer for leg in option.legs)
        assert option.feasible and not option.is_blocked
        assert option.grade in {"A", "B", "C"}
        assert option.cost_breakdown.margin_percentage >= 20.0
        assert option.pricing_sources.get("live", 0) == 0


def test_tier2_local_delivery_uses_single_hub_and_no_long_haul():
    result = _engine().calculate_route_options(_shipment(2, ("Paris", "FR"), ("Suresnes", "FR")))

    assert result.hubs.hub_id == "PARIS_HUB1"
    assert result.hubs.hub_cou is None
    assert len(result.options) == 2
    for option in result.options:
        assert len(option.legs) == 2
        assert option.cost_breakdown.transport["flights"] == []
        assert option.cost_breakdown.transport["trains"] == []
        assert {line.service for line in option.cost_breakdown.hub_fees} == {"authentication", "tag"}


def test_repeat_calculation_in_session_is_served_from_cache():
    providers = _live_providers()
    engine = _engine(providers)

    first = engine.calculate_route_options(_shipment(), session_id="repeat")
    second = engine.calculate_route_options(_shipment(), session_id="repeat")

    assert 0 < first.cost_report["totalCalls"] <= 8
    assert second.cost_report["totalCalls"] == first.cost_report["totalCalls"]
    assert second.cost_report["cacheHits"] > first.cost_report["cacheHits"]
    assert sum(provider.calls for chain in providers.values() for provider in chain) == first.cost_report["totalCalls"]


def test_live_calls_never_exceed_the_hard_cap():
    engine = RouteCalculationEngine(
        price_book=HubPriceBook(),
        providers=_live_providers(),
        config=Settings(api_hard_cap=2),
        clock=lambda: NOW,
    )

    result = engine.calculate_route_options(_shipment())

    assert result.cost_report["totalCalls"] == 2
    assert result.cost_report["badgeStatus"] == "cap-reached"
    assert any(option.pricing_sources.get("fallback") for option in result.options)


def test_unreachable_sla_moves_every_option_to_rejected():
    result = _engine().calculate_route_options(_shipment(sla_target_date=PICKUP + timedelta(hours=12)))

    assert result.options == []
    assert len(result.rejected) == 3
    assert all("misses the SLA target" in rejected.reasons[0] for rejected in result.rejected)


def test_snapshot_can_force_one_hub_for_both_roles():
    snapshot = [
        HubSnapshot("LONDON_HUB1", nfc_stock=0),
        HubSnapshot("PARIS_HUB1", nfc_stock=0),
        HubSnapshot("FRANKFURT_HUB1", nfc_stock=0),
    ]

    result = _engine().calculate_route_options(_shipment(), hub_snapshot=snapshot)

    assert result.hubs.same_hub
    for option in result.options:
        assert len(option.legs) == 2
        assert option.legs[0].processing_label == "authentication-sewing-qa"


def test_empty_hub_book_raises_hub_unavailable():
    with pytest.raises(HubUnavailableError):
        _engine(price_book=HubPriceBook(hubs=[])).calculate_route_options(_shipment())


def test_cost_report_follows_session_lifecycle():
    engine = _engine()
    result = engine.calculate_route_options(_shipment(), session_id="lifecycle")

    assert engine.cost_report("lifecycle")["sessionId"] == result.session_id
    engine.end_session("lifecycle")
    with pytest.raises(KeyError):
        engine.cost_report("lifecycle")


def test_refresh_services_clears_cached_quotes():
    engine = _engine(_live_providers())
    engine.calculate_route_options(_shipment())

    assert engine.refresh_services([ServiceType.DHL]) >= 1
    assert engine.refresh_services() >= 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"tier": 1},
        {"sla_target_date": None},
        {"declared_value": -1.0},
        {"weight_kg": 0.0},
        {"fragility": "extreme"},
        {"buyer": Party(city="", country="FR")},
        {"sender": Party(city="London", country="")},
    ],
)
def test_invalid_shipments_are_rejected(overrides):
    with pytest.raises(ValidationError):
        validate_shipment(replace(_shipment(), **overrides))


class SlowProvider(FlatProvider):
    def quote(self, params):
        time.sleep(0.05)
        return super().quote(params)


class RecordingProvider(FlatProvider):
    def __init__(self, name: str, amount: float) -> None:
        super().__init__(name, amount)
        self.departures: list[datetime] = []

    def quote(self, params):
        self.departures.append(datetime.fromisoformat(params["departure"]))
        return super().quote(params)


@pytest.mark.parametrize("parallel", [False, True])
def test_parallel_and_sequential_evaluation_respect_the_same_cap(parallel):
    providers = {
        ServiceType.FLIGHTS: [SlowProvider("air", 210.0)],
        ServiceType.TRAINS: [SlowProvider("rail", 95.0)],
        ServiceType.GROUND: [SlowProvider("road", 40.0)],
        ServiceType.DHL: [SlowProvider("parcel", 55.0)],
    }
    engine = RouteCalculationEngine(
        price_book=HubPriceBook(),
        providers=providers,
        config=Settings(api_hard_cap=2, parallel_template_evaluation=parallel),
        clock=lambda: NOW,
    )

    result = engine.calculate_route_options(_shipment())

    assert result.cost_report["totalCalls"] == 2
    assert sum(provider.calls for chain in providers.values() for provider in chain) == 2


def test_flights_are_priced_for_the_scheduled_departure():
    flights = RecordingProvider("air", 210.0)
    engine = RouteCalculationEngine(
        price_book=HubPriceBook(),
        providers={ServiceType.FLIGHTS: [flights]},
        config=Settings(api_hard_cap=50),
        clock=lambda: NOW,
    )

    result = engine.calculate_route_options(_shipment())

    flight_legs = [
        leg for option in result.options for leg in option.legs if leg.plan.mode is TransportMode.FLIGHT
    ]
    assert flight_legs
    for leg in flight_legs:
        assert any(leg.window.departure <= departure <= leg.window.arrival for departure in flights.departures)


def test_london_to_nice_low_value_scenario_returns_three_options():
    result = _engine().calculate_route_options(_shipment(declared_value=450.0))

    assert len(result.options) == 3
    for option in result.options:
        for leg in option.legs:
            if ProcessingStep.SEWING in leg.processing:
                assert leg.destination.hub.has_sewing_capability
