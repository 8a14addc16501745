from datetime import datetime, timezone

import pytest

from src.luxroute.data.hub_price_book import HubPriceBook
from src.luxroute.errors import ValidationError
from src.luxroute.models.domain import Party, Shipment
from src.luxroute.services.routing.leg_builder import LegBuilder, validate_route_pattern
from src.luxroute.services.routing.models import EndpointKind, LegType, RouteTemplate, SelectedHubs
from src.luxroute.services.routing.templates import ROUTE_TEMPLATES, rules_for_tier, template_spec


def _shipment(tier: int = 3, priority: bool = False) -> Shipment:
    return Shipment(
        tier=tier,
        sender=Party(city="London", country="GB", address="1 Bond Street"),
        buyer=Party(city="Nice", country="FR", address="10 Promenade des Anglais"),
        declared_value=8000.0,
        sla_target_date=datetime(2025, 3, 20, tzinfo=timezone.utc),
        priority=priority,
    )


def _hubs(same: bool = False) -> SelectedHubs:
    book = HubPriceBook()
    paris = book.get("PARIS_HUB1")
    return SelectedHubs(hub=paris, hub_cou=paris if same else book.get("MILAN_HUB1"))


@pytest.mark.parametrize("template", rules_for_tier(3).templates)
def test_tier3_templates_follow_their_skeleton(template):
    legs = LegBuilder().build(template, _shipment(), _hubs())

    assert tuple(leg.type for leg in legs) == template_spec(template).leg_types
    assert legs[1].type is LegType.INTERNAL_ROLLOUT
    assert legs[1].origin.hub.hub_id == "PARIS_HUB1"
    assert legs[1].destination.hub.hub_id == "MILAN_HUB1"
    assert legs[0].processing_label == "authentication"
    assert legs[1].processing_label == "sewing-qa"
    assert not any(leg.type is LegType.DHL and leg.is_hub_transfer for leg in legs)
    assert validate_route_pattern(template, legs, 3) == []


def test_same_hub_drops_rollout_and_merges_processing():
    legs = LegBuilder().build(RouteTemplate.FULL_WG, _shipment(), _hubs(same=True))

    assert [leg.type for leg in legs] == [LegType.WHITE_GLOVE, LegType.WHITE_GLOVE]
    assert legs[0].processing_label == "authentication-sewing-qa"
    assert legs[0].destination.kind is EndpointKind.HUB
    assert validate_route_pattern(RouteTemplate.FULL_WG, legs, 3) == []


def test_tier2_routes_use_one_carrier_and_no_sewing():
    book = HubPriceBook()
    hubs = SelectedHubs(hub=book.get("PARIS_HUB1"))

    for template in rules_for_tier(2).templates:
        legs = LegBuilder().build(template, _shipment(tier=2), hubs)
        assert len(legs) == 2
        assert len({leg.carrier for leg in legs}) == 1
        assert legs[0].processing_label == "authentication-tagging"
        assert validate_route_pattern(template, legs, 2) == []


def test_dhl_service_follows_priority():
    legs = LegBuilder().build(RouteTemplate.HYBRID_WG_DHL, _shipment(priority=True), _hubs())

    assert legs[-1].service == "express"
    assert legs[-1].origin.postcode == "MLN1"


def test_build_rejects_template_from_other_tier():
    with pytest.raises(ValidationError):
        LegBuilder().build(RouteTemplate.WG_END_TO_END, _shipment(tier=3), _hubs())


def test_validate_route_pattern_flags_hub_to_hub_parcel_leg():
    legs = LegBuilder().build(RouteTemplate.FULL_WG, _shipment(), _hubs())
    legs[1].type = LegType.DHL
    legs[1].carrier = "dhl"

    violations = validate_route_pattern(RouteTemplate.FULL_WG, legs, 3)

    assert any("parcel carrier" in violation for violation in violations)


def test_validate_route_pattern_flags_wrong_tier():
    legs = LegBuilder().build(RouteTemplate.FULL_WG, _shipment(), _hubs())

    assert validate_route_pattern(RouteTemplate.FULL_WG, legs, 2)


def test_catalog_is_closed():
    assert set(ROUTE_TEMPLATES) == set(RouteTemplate)
    assert rules_for_tier(3).option_count == 3
    assert rules_for_tier(2).option_count == 2
    with pytest.raises(ValidationError):
        rules_for_tier(1)
