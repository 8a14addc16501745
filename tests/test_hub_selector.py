from datetime import datetime, timezone

import pytest

from src.luxroute.data.hub_price_book import HubPriceBook
from src.luxroute.errors import HubUnavailableError, NoHubAvailable
from src.luxroute.models.domain import HubSnapshot, Party, Shipment
from src.luxroute.services.routing.hub_selector import HubSelector
from src.luxroute.services.routing.templates import rules_for_tier


def _shipment(tier: int = 3, sender: str = "London", buyer: str = "Nice") -> Shipment:
    countries = {"London": "GB", "Nice": "FR", "Paris": "FR", "Suresnes": "FR", "Milan": "IT"}
    return Shipment(
        tier=tier,
        sender=Party(city=sender, country=countries[sender]),
        buyer=Party(city=buyer, country=countries[buyer]),
        declared_value=12000.0,
        sla_target_date=datetime(2025, 3, 20, tzinfo=timezone.utc),
    )


def test_tier3_selects_distinct_sewing_capable_couturier():
    book = HubPriceBook()
    selector = HubSelector(book)

    selected = selector.select(_shipment(), book.merge_snapshot(None), rules_for_tier(3))

    assert selected.hub_cou is not None
    assert selected.hub_cou.has_sewing_capability
    assert selected.hub_cou_id != selected.hub_id
    assert set(selected.scores) == {"LONDON_HUB1", "PARIS_HUB1", "MILAN_HUB1"}


def test_tier2_returns_single_hub():
    book = HubPriceBook()

    selected = HubSelector(book).select(_shipment(2, "Paris", "Suresnes"), book.merge_snapshot(None), rules_for_tier(2))

    assert selected.hub_id == "PARIS_HUB1"
    assert selected.hub_cou is None


def test_inventory_filter_can_leave_one_hub_for_both_roles():
    book = HubPriceBook()
    snapshot = [
        HubSnapshot("LONDON_HUB1", nfc_stock=0),
        HubSnapshot("PARIS_HUB1", nfc_stock=0),
        HubSnapshot("FRANKFURT_HUB1", nfc_stock=0),
    ]

    selected = HubSelector(book).select(_shipment(), book.merge_snapshot(snapshot), rules_for_tier(3))

    assert selected.hub_id == "MILAN_HUB1"
    assert selected.hub_cou_id == "MILAN_HUB1"
    assert selected.same_hub


def test_relaxes_to_active_hubs_when_no_hub_meets_constraints():
    book = HubPriceBook()
    snapshot = [HubSnapshot(hub_id, auth_available=0) for hub_id in ("LONDON_HUB1", "PARIS_HUB1", "MILAN_HUB1")]
    snapshot.append(HubSnapshot("FRANKFURT_HUB1", active=False))

    selected = HubSelector(book).select(_shipment(2, "Paris", "Suresnes"), book.merge_snapshot(snapshot), rules_for_tier(2))

    assert selected.hub_id in {"LONDON_HUB1", "PARIS_HUB1", "MILAN_HUB1"}


def test_falls_back_to_last_resort_hubs_when_snapshot_has_no_active_hub():
    book = HubPriceBook()
    snapshot = [HubSnapshot(hub.hub_id, active=False) for hub in book.all_hubs()]

    selected = HubSelector(book).select(_shipment(), book.merge_snapshot(snapshot), rules_for_tier(3))

    assert {selected.hub_id, selected.hub_cou_id} == {"LONDON_HUB1", "PARIS_HUB1"}


def test_raises_when_even_last_resort_is_empty():
    book = HubPriceBook(hubs=[])

    with pytest.raises(HubUnavailableError) as excinfo:
        HubSelector(book).select(_shipment(), [], rules_for_tier(3))

    assert "sewing capability" in excinfo.value.constraint
    assert NoHubAvailable is HubUnavailableError


def test_missing_sewing_penalty_is_scaled_by_capacity_multiplier():
    book = HubPriceBook()
    selector = HubSelector(book)
    frankfurt = book.get("FRANKFURT_HUB1")
    equipped = book.get("FRANKFURT_HUB1")
    equipped.has_sewing_capability = True
    rules = rules_for_tier(3)

    gap = selector.score_hub(equipped, _shipment(), rules) - selector.score_hub(frankfurt, _shipment(), rules)

    assert gap == pytest.approx(50.0 * 1.1)


def test_rank_orders_by_score_then_hub_id():
    book = HubPriceBook()
    selector = HubSelector(book)

    ranked = selector.rank(_shipment(), book.active_hubs(), rules_for_tier(3))

    scores = [score for score, _ in ranked]
    assert scores == sorted(scores, reverse=True)
    assert all(score >= 0 for score in scores)
