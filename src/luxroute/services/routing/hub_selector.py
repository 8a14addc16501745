"""Hub filtering and scoring."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import Settings, settings as default_settings
from ...data.hub_price_book import HubPriceBook
from ...errors import HubUnavailableError
from ...models.domain import Hub, Shipment
from ..geospatial import haversine_km, resolve_coordinates
from .models import SelectedHubs
from .templates import TierRules

logger = logging.getLogger(__name__)

BASE_SCORE = 100.0
DISTANCE_DIVISOR_KM = 50.0
FEE_FLOOR = 200.0
FEE_DIVISOR = 5.0
LOW_AUTH_RATIO = 0.1


def _hub_coords(hub: Hub) -> tuple[float, float] | None:
    return resolve_coordinates(hub.city, hub.latitude, hub.longitude)


class HubSelector:
    """Pick the authentication hub (and the couturier hub for tier 3).

    Filtering degrades instead of failing: hubs meeting every tier
    constraint, else any active hub, else the built-in last-resort pair.
    """

    def __init__(self, price_book: HubPriceBook, config: Settings | None = None) -> None:
        self.price_book = price_book
        self.settings = config or default_settings

    def select(self, shipment: Shipment, hubs: Sequence[Hub], rules: TierRules) -> SelectedHubs:
        candidates = [hub for hub in hubs if hub.active and self.meets_constraints(hub, rules)]
        if not candidates:
            candidates = [hub for hub in hubs if hub.active]
            logger.warning(
                f"No hub meets tier {rules.tier} constraints; relaxing to {len(candidates)} active hub(s)"
            )
        if not candidates:
            candidates = self.price_book.last_resort_hubs()
            logger.warning(f"No active hub in snapshot; using {len(candidates)} last-resort hub(s)")
        if not candidates:
            raise HubUnavailableError(self._describe_constraint(rules))

        ranked = self.rank(shipment, candidates, rules)
        scores = {hub.hub_id: score for score, hub in ranked}
        primary = ranked[0][1]
        if rules.tier == 2:
            logger.info(f"Selected hub {primary.hub_id} for tier 2 shipment {shipment.shipment_id}")
            return SelectedHubs(hub=primary, hub_cou=None, scores=scores)

        couturier = self._select_couturier(primary, ranked)
        if couturier is None:
            fallback_ranked = self.rank(shipment, self.price_book.last_resort_hubs(), rules)
            couturier = self._select_couturier(primary, fallback_ranked)
        if couturier is None:
            raise HubUnavailableError("sewing capability with available sewing capacity")

        logger.info(
            f"Selected hubs {primary.hub_id} -> {couturier.hub_id} for tier 3 shipment {shipment.shipment_id}"
        )
        return SelectedHubs(hub=primary, hub_cou=couturier, scores=scores)

    def meets_constraints(self, hub: Hub, rules: TierRules) -> bool:
        if hub.capacity.auth_available <= 0:
            return False
        if rules.requires_sewing and not (hub.has_sewing_capability and hub.capacity.sewing_available > 0):
            return False
        if rules.required_inventory == "nfc":
            return hub.inventory.nfc_stock > 0
        return hub.inventory.tag_stock > 0

    def rank(self, shipment: Shipment, hubs: Sequence[Hub], rules: TierRules) -> list[tuple[float, Hub]]:
        scored = [(self.score_hub(hub, shipment, rules), hub) for hub in hubs]
        return sorted(scored, key=lambda item: (-item[0], item[1].hub_id))

    def score_hub(self, hub: Hub, shipment: Shipment, rules: TierRules) -> float:
        cfg = self.settings
        score = BASE_SCORE

        hub_point = _hub_coords(hub)
        sender = resolve_coordinates(shipment.sender.city, shipment.sender.latitude, shipment.sender.longitude)
        buyer = resolve_coordinates(shipment.buyer.city, shipment.buyer.latitude, shipment.buyer.longitude)
        if hub_point and sender and buyer:
            total_km = haversine_km(*sender, *hub_point) + haversine_km(*hub_point, *buyer)
            score += max(0.0, 100.0 - total_km / DISTANCE_DIVISOR_KM) * cfg.hub_weight_distance

        fee = self.reference_fee(hub, rules)
        score += max(0.0, 100.0 - max(0.0, (fee - FEE_FLOOR) / FEE_DIVISOR)) * cfg.hub_weight_cost

        ratios = [hub.capacity.auth_ratio]
        if rules.requires_sewing:
            ratios.append(hub.capacity.sewing_ratio)
        score += sum(ratios) / len(ratios) * 100.0 * cfg.hub_weight_capacity

        stock = hub.inventory.nfc_stock if rules.required_inventory == "nfc" else hub.inventory.tag_stock
        score += min(100, stock) * cfg.hub_weight_stock

        if rules.requires_sewing and not hub.has_sewing_capability:
            score -= cfg.hub_penalty_missing_sewing
        if hub.capacity.auth_ratio < LOW_AUTH_RATIO:
            score -= cfg.hub_penalty_low_capacity
        if fee > cfg.hub_high_fee_threshold:
            score -= cfg.hub_penalty_high_fee

        return max(0.0, score * hub.capacity_multiplier)

    def reference_fee(self, hub: Hub, rules: TierRules) -> float:
        """Authentication, sewing (tier 3) and unit inventory fee in the reference currency."""
        local = hub.auth_fee(rules.tier)
        if rules.requires_sewing:
            local += hub.fees.sewing_fee
            local += hub.fees.nfc_unit_cost
        else:
            local += hub.fees.tag_unit_cost
        return self.price_book.to_reference_currency(local, hub.currency)

    @staticmethod
    def _select_couturier(primary: Hub, ranked: Sequence[tuple[float, Hub]]) -> Hub | None:
        sewing_hubs = [
            hub for _, hub in ranked if hub.has_sewing_capability and hub.capacity.sewing_available > 0
        ]
        for hub in sewing_hubs:
            if hub.hub_id != primary.hub_id:
                return hub
        return sewing_hubs[0] if sewing_hubs else None

    @staticmethod
    def _describe_constraint(rules: TierRules) -> str:
        parts = ["authentication capacity", f"{rules.required_inventory} stock"]
        if rules.requires_sewing:
            parts.append("sewing capability")
        return " and ".join(parts)
