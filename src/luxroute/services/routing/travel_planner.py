"""Resolve a single leg into transport segments, cost and duration."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Any

from ...config import Settings, settings as default_settings
from ...data.geo_reference import CityInfo, city_code, is_international, lookup_city, train_route
from ...data.hub_price_book import HubPriceBook
from ...errors import LegResolutionError
from ...models.domain import Shipment
from ..geospatial import resolve_coordinates, travel_distance_km
from ..pricing.models import PricingResult, ServiceType
from ..pricing.service import ExternalPricingCache
from .models import Endpoint, LaborCost, Leg, LegPlan, LegType, Segment, TransportLine, TransportMode

logger = logging.getLogger(__name__)

WG_PICKUP_MINUTES = 30
WG_PICKUP_COST = 75.0
WG_DELIVERY_MINUTES = 45
WG_DELIVERY_COST = 85.0
WG_RETURN_MIN_MINUTES = 90
STATION_TRANSFER_COST = 15.0
FLIGHT_PROCEDURE_MINUTES = 90
MIN_GROUND_MINUTES = 20
DHL_TRANSIT_HOURS = {"express": 24, "standard": 48}

CATEGORY_BY_MODE = {
    TransportMode.FLIGHT: "flights",
    TransportMode.TRAIN: "trains",
    TransportMode.GROUND: "ground",
}


def _coords(endpoint: Endpoint) -> tuple[float, float] | None:
    return resolve_coordinates(endpoint.city, endpoint.latitude, endpoint.longitude)


class TravelPlanner:
    """Single canonical path from a built leg to a priced, timed LegPlan."""

    def __init__(
        self,
        pricing: ExternalPricingCache,
        price_book: HubPriceBook,
        config: Settings | None = None,
    ) -> None:
        self.pricing = pricing
        self.price_book = price_book
        self.settings = config or default_settings

    def resolve_leg(
        self,
        leg: Leg,
        shipment: Shipment,
        session_id: str,
        departure: datetime,
        force_refresh: bool = False,
    ) -> LegPlan:
        match leg.type:
            case LegType.WHITE_GLOVE:
                plan = self._white_glove(leg, shipment, session_id, departure, force_refresh)
            case LegType.DHL:
                plan = self._dhl(leg, shipment, session_id, departure, force_refresh)
            case LegType.INTERNAL_ROLLOUT:
                plan = self._internal_rollout(leg)
            case _:
                raise LegResolutionError(f"Unsupported leg type: {leg.type}", leg.order)
        logger.debug(
            f"Leg {leg.order} {leg.origin.label} -> {leg.destination.label} resolved by {plan.mode.value}: "
            f"{plan.travel_minutes:.0f} min, {plan.total_cost:.2f} {self.settings.reference_currency}"
        )
        return plan

    def distance_km(self, leg: Leg) -> float | None:
        return travel_distance_km(
            leg.origin.city,
            _coords(leg.origin),
            leg.destination.city,
            _coords(leg.destination),
        )

    # White glove

    def _white_glove(
        self,
        leg: Leg,
        shipment: Shipment,
        session_id: str,
        departure: datetime,
        force_refresh: bool,
    ) -> LegPlan:
        distance = self.distance_km(leg)
        if distance is None:
            raise LegResolutionError(
                f"Cannot locate {leg.origin.city} or {leg.destination.city} for white-glove leg {leg.order}",
                leg.order,
            )

        origin, destination = leg.origin.label, leg.destination.label
        segments = [Segment("pickup", None, origin, origin, WG_PICKUP_MINUTES, WG_PICKUP_COST)]
        lines = [TransportLine("ground", "White-glove pickup handling", WG_PICKUP_COST, leg.order)]

        transit_start = departure + timedelta(minutes=WG_PICKUP_MINUTES)
        mode, transit = self._main_transit(leg, shipment, distance, session_id, transit_start, force_refresh)
        segments.extend(segment for segment, _ in transit)
        lines.extend(line for _, line in transit)

        segments.append(Segment("delivery", None, destination, destination, WG_DELIVERY_MINUTES, WG_DELIVERY_COST))
        lines.append(TransportLine("ground", "White-glove delivery handling", WG_DELIVERY_COST, leg.order))

        transit_minutes = sum(segment.duration_minutes for segment, _ in transit)
        transit_cost = sum(segment.cost for segment, _ in transit)
        return_cost = round(transit_cost * self.settings.wg_return_discount, 2)
        segments.append(
            Segment(
                "return",
                mode,
                destination,
                "home hub",
                max(WG_RETURN_MIN_MINUTES, transit_minutes),
                return_cost,
                distance_km=distance,
                on_shipment_timeline=False,
            )
        )
        lines.append(TransportLine(CATEGORY_BY_MODE[mode], "Operator return to hub", return_cost, leg.order))

        plan = LegPlan(
            leg_order=leg.order,
            mode=mode,
            distance_km=round(distance, 1),
            segments=segments,
            transport_lines=lines,
        )
        plan.labor = self.labor_cost(plan.operator_minutes / 60.0, leg.destination.city)
        if plan.labor.overtime_hours > self.settings.max_overtime_hours:
            plan.warnings.append(f"Operator overtime {plan.labor.overtime_hours:.1f}h on leg {leg.order}")
        return plan

    def _main_transit(
        self,
        leg: Leg,
        shipment: Shipment,
        distance: float,
        session_id: str,
        start: datetime,
        force_refresh: bool,
    ) -> tuple[TransportMode, list[tuple[Segment, TransportLine]]]:
        cfg = self.settings
        origin_city = lookup_city(leg.origin.city)
        destination_city = lookup_city(leg.destination.city)

        if distance > cfg.flight_min_distance_km:
            if origin_city and destination_city and origin_city.airport_code and destination_city.airport_code:
                return TransportMode.FLIGHT, self._flight(
                    leg, shipment, distance, origin_city, destination_city, session_id, start, force_refresh
                )
            if distance <= cfg.max_ground_distance_km:
                return TransportMode.GROUND, [self._ground(leg, distance, session_id, start, force_refresh)]
            raise LegResolutionError(
                f"No airport serves {leg.origin.city} -> {leg.destination.city} and "
                f"{distance:.0f} km exceeds the ground range",
                leg.order,
            )

        if distance > cfg.train_min_distance_km:
            route = train_route(leg.origin.city, leg.destination.city)
            if route is not None:
                return TransportMode.TRAIN, self._train(
                    leg, distance, route.operator, route.duration_minutes, origin_city, destination_city,
                    session_id, start, force_refresh,
                )

        return TransportMode.GROUND, [self._ground(leg, distance, session_id, start, force_refresh)]

    def _flight(
        self,
        leg: Leg,
        shipment: Shipment,
        distance: float,
        origin_city: CityInfo,
        destination_city: CityInfo,
        session_id: str,
        start: datetime,
        force_refresh: bool,
    ) -> list[tuple[Segment, TransportLine]]:
        to_airport = Segment(
            "transfer",
            TransportMode.GROUND,
            leg.origin.label,
            origin_city.airport_code,
            origin_city.airport_transfer_minutes,
            origin_city.airport_transfer_cost,
        )
        departure = start + timedelta(minutes=origin_city.airport_transfer_minutes)
        params = {
            "origin": origin_city.code,
            "destination": destination_city.code,
            "departure": departure.isoformat(),
            "weight_kg": shipment.weight_kg,
        }
        result = self.pricing.get(session_id, ServiceType.FLIGHTS, params, force_refresh)
        minutes = result.quote.duration_minutes or (
            distance / self.settings.flight_speed_kmh * 60 + FLIGHT_PROCEDURE_MINUTES
        )
        amount = self._to_reference(result)
        flight = Segment(
            "flight",
            TransportMode.FLIGHT,
            origin_city.airport_code,
            destination_city.airport_code,
            round(minutes),
            amount,
            distance_km=distance,
            provider=result.quote.provider,
            source=result.source,
            fresh=result.fresh,
        )
        from_airport = Segment(
            "transfer",
            TransportMode.GROUND,
            destination_city.airport_code,
            leg.destination.label,
            destination_city.airport_transfer_minutes,
            destination_city.airport_transfer_cost,
        )
        return [
            (to_airport, TransportLine("ground", f"Transfer to {origin_city.airport_code}", to_airport.cost, leg.order)),
            (
                flight,
                TransportLine(
                    "flights",
                    f"Flight {origin_city.airport_code}-{destination_city.airport_code}",
                    amount,
                    leg.order,
                    source=result.source,
                    fresh=result.fresh,
                    provider=result.quote.provider,
                ),
            ),
            (
                from_airport,
                TransportLine("ground", f"Transfer from {destination_city.airport_code}", from_airport.cost, leg.order),
            ),
        ]

    def _train(
        self,
        leg: Leg,
        distance: float,
        operator: str,
        scheduled_minutes: int,
        origin_city: CityInfo | None,
        destination_city: CityInfo | None,
        session_id: str,
        start: datetime,
        force_refresh: bool,
    ) -> list[tuple[Segment, TransportLine]]:
        to_station_minutes = origin_city.station_transfer_minutes if origin_city else 20
        from_station_minutes = destination_city.station_transfer_minutes if destination_city else 20
        params = {
            "origin": city_code(leg.origin.city),
            "destination": city_code(leg.destination.city),
            "departure": (start + timedelta(minutes=to_station_minutes)).isoformat(),
            "operator": operator,
        }
        result = self.pricing.get(session_id, ServiceType.TRAINS, params, force_refresh)
        amount = self._to_reference(result)
        to_station = Segment(
            "transfer", TransportMode.GROUND, leg.origin.label, "station", to_station_minutes, STATION_TRANSFER_COST
        )
        train = Segment(
            "train",
            TransportMode.TRAIN,
            leg.origin.city,
            leg.destination.city,
            result.quote.duration_minutes or scheduled_minutes,
            amount,
            distance_km=distance,
            provider=result.quote.provider or operator,
            source=result.source,
            fresh=result.fresh,
        )
        from_station = Segment(
            "transfer", TransportMode.GROUND, "station", leg.destination.label, from_station_minutes, STATION_TRANSFER_COST
        )
        return [
            (to_station, TransportLine("ground", "Transfer to station", STATION_TRANSFER_COST, leg.order)),
            (
                train,
                TransportLine(
                    "trains",
                    f"{operator} {leg.origin.city}-{leg.destination.city}",
                    amount,
                    leg.order,
                    source=result.source,
                    fresh=result.fresh,
                    provider=train.provider,
                ),
            ),
            (from_station, TransportLine("ground", "Transfer from station", STATION_TRANSFER_COST, leg.order)),
        ]

    def _ground(
        self,
        leg: Leg,
        distance: float,
        session_id: str,
        start: datetime,
        force_refresh: bool,
    ) -> tuple[Segment, TransportLine]:
        params: dict[str, Any] = {
            "origin": city_code(leg.origin.city),
            "destination": city_code(leg.destination.city),
            "departure": start.isoformat(),
            "distance_km": round(distance, 1),
            "origin_city": leg.origin.city,
        }
        origin_point, destination_point = _coords(leg.origin), _coords(leg.destination)
        if origin_point and destination_point:
            params.update(
                origin_lat=origin_point[0],
                origin_lon=origin_point[1],
                destination_lat=destination_point[0],
                destination_lon=destination_point[1],
            )
        result = self.pricing.get(session_id, ServiceType.GROUND, params, force_refresh)
        minutes = result.quote.duration_minutes or max(
            MIN_GROUND_MINUTES, distance / self.settings.ground_speed_kmh * 60
        )
        amount = self._to_reference(result)
        segment = Segment(
            "ground",
            TransportMode.GROUND,
            leg.origin.label,
            leg.destination.label,
            round(minutes),
            amount,
            distance_km=distance,
            provider=result.quote.provider,
            source=result.source,
            fresh=result.fresh,
        )
        line = TransportLine(
            "ground",
            f"Ground {leg.origin.city}-{leg.destination.city}",
            amount,
            leg.order,
            source=result.source,
            fresh=result.fresh,
            provider=result.quote.provider,
        )
        return segment, line

    # Parcel and rollout

    def _dhl(
        self,
        leg: Leg,
        shipment: Shipment,
        session_id: str,
        departure: datetime,
        force_refresh: bool,
    ) -> LegPlan:
        warnings: list[str] = []
        distance = self.distance_km(leg)
        if distance is None:
            warnings.append(f"Distance unknown for DHL leg {leg.order}; priced on weight only")
            distance = 0.0
        product = "express" if leg.service == "express" else "standard"
        params = {
            "origin_postcode": leg.origin.postcode or city_code(leg.origin.city),
            "destination_postcode": leg.destination.postcode or city_code(leg.destination.city),
            "weight_kg": shipment.weight_kg,
            "product": product,
            "distance_km": round(distance, 1),
            "international": is_international(leg.origin.country, leg.destination.country),
            "departure": departure.isoformat(),
        }
        result = self.pricing.get(session_id, ServiceType.DHL, params, force_refresh)
        amount = self._to_reference(result)
        minutes = result.quote.duration_minutes or DHL_TRANSIT_HOURS[product] * 60
        segment = Segment(
            "dhl",
            TransportMode.PARCEL,
            leg.origin.label,
            leg.destination.label,
            minutes,
            amount,
            distance_km=distance,
            provider=result.quote.provider,
            source=result.source,
            fresh=result.fresh,
        )
        line = TransportLine(
            "dhl",
            f"DHL {product}",
            amount,
            leg.order,
            source=result.source,
            fresh=result.fresh,
            provider=result.quote.provider,
        )
        return LegPlan(
            leg_order=leg.order,
            mode=TransportMode.PARCEL,
            distance_km=round(distance, 1),
            segments=[segment],
            transport_lines=[line],
            warnings=warnings,
        )

    def _internal_rollout(self, leg: Leg) -> LegPlan:
        cfg = self.settings
        hub = leg.origin.hub
        if hub is not None:
            amount = self.price_book.to_reference_currency(hub.fees.internal_rollout_cost, hub.currency)
            amount += cfg.internal_rollout_run_cost
        else:
            amount = cfg.internal_rollout_base_cost
        amount = round(amount, 2)
        distance = self.distance_km(leg) or 0.0
        segment = Segment(
            "rollout",
            TransportMode.ROLLOUT,
            leg.origin.label,
            leg.destination.label,
            cfg.internal_rollout_transit_hours * 60,
            amount,
            distance_km=distance,
            provider="internal",
        )
        line = TransportLine(
            "internal_rollout",
            f"Internal rollout {leg.origin.label}-{leg.destination.label}",
            amount,
            leg.order,
            provider="internal",
        )
        return LegPlan(
            leg_order=leg.order,
            mode=TransportMode.ROLLOUT,
            distance_km=round(distance, 1),
            segments=[segment],
            transport_lines=[line],
        )

    # Costs

    def labor_cost(self, hours: float, city: str | None = None) -> LaborCost:
        cfg = self.settings
        base_hours = min(hours, cfg.wg_standard_hours)
        overtime_hours = max(0.0, hours - cfg.wg_standard_hours)
        labor = LaborCost(
            hours=round(hours, 2),
            base=round(base_hours * cfg.wg_hourly_rate, 2),
            overtime_hours=round(overtime_hours, 2),
            overtime=round(overtime_hours * cfg.wg_hourly_rate * cfg.wg_overtime_multiplier, 2),
        )
        if hours > cfg.wg_per_diem_after_hours:
            labor.per_diem = cfg.wg_per_diem
        if hours > cfg.wg_accommodation_after_hours:
            info = lookup_city(city)
            labor.accommodation = info.accommodation_rate if info and info.accommodation_rate else cfg.wg_accommodation_nightly
            labor.meals = math.ceil(hours / 8) * cfg.wg_meal_allowance
        return labor

    def _to_reference(self, result: PricingResult) -> float:
        return round(self.price_book.to_reference_currency(result.quote.amount, result.quote.currency), 2)
