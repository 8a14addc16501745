"""Roll up leg, hub, insurance and surcharge costs into a client price."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from ...config import Settings, settings as default_settings
from ...data.geo_reference import is_remote_area
from ...data.hub_price_book import HubPriceBook
from ...models.domain import Hub, Shipment
from .models import CostBreakdown, HubFeeLine, Leg, Schedule, SelectedHubs, TransportLine

logger = logging.getLogger(__name__)

TRANSPORT_CATEGORIES = ("flights", "trains", "ground", "dhl")


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_peak_season(moment) -> bool:
    """Dec 15 through Jan 5 inclusive."""
    return (moment.month == 12 and moment.day >= 15) or (moment.month == 1 and moment.day <= 5)


class CostAggregator:
    def __init__(self, price_book: HubPriceBook, config: Settings | None = None) -> None:
        self.price_book = price_book
        self.settings = config or default_settings

    def hub_fee_lines(self, hubs: SelectedHubs, tier: int) -> list[HubFeeLine]:
        """Tier 2: authentication and tag at HubId. Tier 3: authentication and NFC at HubId, sewing and QA at HubCou."""
        if tier == 3:
            couturier = hubs.hub_cou or hubs.hub
            charges: list[tuple[Hub, str]] = [
                (hubs.hub, "authentication"),
                (hubs.hub, "nfc"),
                (couturier, "sewing"),
                (couturier, "qa"),
            ]
        else:
            charges = [(hubs.hub, "authentication"), (hubs.hub, "tag")]

        lines = []
        for hub, service in charges:
            amount = hub.service_fee(service, tier)
            lines.append(
                HubFeeLine(
                    hub_id=hub.hub_id,
                    service=service,
                    amount=amount,
                    currency=hub.currency,
                    amount_reference=round(self.price_book.to_reference_currency(amount, hub.currency), 2),
                )
            )
        return lines

    def aggregate(
        self,
        legs: Sequence[Leg],
        hubs: SelectedHubs,
        shipment: Shipment,
        schedule: Schedule,
    ) -> CostBreakdown:
        cfg = self.settings
        transport: dict[str, list[TransportLine]] = {category: [] for category in TRANSPORT_CATEGORIES}
        rollout_lines: list[TransportLine] = []
        labor = 0.0
        leg_costs: dict[int, float] = {}

        for leg in legs:
            if leg.plan is None:
                raise ValueError(f"Leg {leg.order} has not been resolved.")
            for line in leg.plan.transport_lines:
                if line.category == "internal_rollout":
                    rollout_lines.append(line)
                else:
                    transport.setdefault(line.category, []).append(line)
            if leg.plan.labor is not None:
                labor += leg.plan.labor.total
            leg_costs[leg.order] = leg.plan.total_cost

        transport_subtotal = round(sum(line.amount for lines in transport.values() for line in lines), 2)
        internal_rollout = round(sum(line.amount for line in rollout_lines), 2)
        hub_fees = self.hub_fee_lines(hubs, shipment.tier)
        hub_fees_total = round(sum(line.amount_reference for line in hub_fees), 2)
        insurance = round(max(shipment.declared_value * cfg.insurance_rate, cfg.insurance_minimum), 2)

        surcharges: dict[str, float] = {}
        if is_peak_season(schedule.estimated_delivery):
            surcharges["peak_season"] = round(labor * cfg.peak_surcharge_rate, 2)
        if schedule.estimated_delivery.weekday() >= 5:
            surcharges["weekend_delivery"] = cfg.weekend_surcharge
        if shipment.fragility == "high":
            surcharges["fragile_handling"] = round(shipment.declared_value * cfg.fragile_surcharge_rate, 2)
        remote_count = sum(
            1
            for party in (shipment.sender, shipment.buyer)
            if is_remote_area(party.city, party.address)
        )
        if remote_count:
            surcharges["remote_area"] = remote_count * cfg.remote_area_surcharge
        # Fuel applies to the transport subtotal only and is added last.
        surcharges["fuel"] = round(transport_subtotal * cfg.fuel_surcharge_rate, 2)
        surcharges_total = round(sum(surcharges.values()), 2)

        total = round(labor + transport_subtotal + internal_rollout + hub_fees_total + insurance + surcharges_total, 2)
        multiplier = cfg.margin_multipliers.get(shipment.tier, 1.0)
        client_price = round_half_up(total * multiplier)
        margin = round(client_price - total, 2)
        margin_percentage = round(margin / client_price * 100, 1) if client_price else 0.0

        logger.debug(f"Aggregated cost total={total} client_price={client_price} margin={margin_percentage}%")
        return CostBreakdown(
            labor=round(labor, 2),
            transport=transport,
            transport_subtotal=transport_subtotal,
            internal_rollout=internal_rollout,
            hub_fees=hub_fees,
            hub_fees_total=hub_fees_total,
            insurance=insurance,
            surcharges=surcharges,
            surcharges_total=surcharges_total,
            leg_costs=leg_costs,
            total=total,
            client_price=client_price,
            margin=margin,
            margin_percentage=margin_percentage,
            currency=cfg.reference_currency,
        )

