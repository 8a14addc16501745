"""Deterministic static price tables used when no live quote is available."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from .models import Quote, ServiceType

FLIGHT_FARES_EUR: dict[frozenset[str], float] = {
    frozenset({"LON", "PAR"}): 120.0,
    frozenset({"LON", "MIL"}): 180.0,
    frozenset({"LON", "BER"}): 150.0,
    frozenset({"PAR", "MIL"}): 140.0,
    frozenset({"PAR", "BER"}): 160.0,
    frozenset({"MIL", "BER"}): 170.0,
}
DEFAULT_FLIGHT_FARE_EUR = 200.0
WEEKEND_FLIGHT_MULTIPLIER = 1.2

TRAIN_FARES_EUR: dict[frozenset[str], float] = {
    frozenset({"LON", "PAR"}): 80.0,
    frozenset({"PAR", "MIL"}): 100.0,
    frozenset({"PAR", "BER"}): 120.0,
    frozenset({"MIL", "BER"}): 110.0,
}
DEFAULT_TRAIN_FARE_EUR = 90.0

GROUND_RATE_PER_KM = 0.5
GROUND_MINIMUM = 15.0
GROUND_AIRPORT_SURCHARGE = 25.0

DHL_TARIFFS: dict[str, dict[str, float]] = {
    "standard": {"base": 30.0, "per_kg": 2.0, "per_km": 0.05},
    "express": {"base": 50.0, "per_kg": 3.0, "per_km": 0.08},
}
DHL_INTERNATIONAL_MULTIPLIER = 1.25


def _is_weekend(value: Any) -> bool:
    if isinstance(value, str) and value:
        value = datetime.fromisoformat(value)
    return isinstance(value, datetime) and value.weekday() >= 5


class StaticFallbackPricing:
    """Fallback price tables; always returns a quote so planning can proceed."""

    name = "static-table"

    def quote(self, service: ServiceType, params: Mapping[str, Any]) -> Quote:
        match service:
            case ServiceType.FLIGHTS:
                amount = self._flight(params)
            case ServiceType.TRAINS:
                pair = frozenset({params.get("origin"), params.get("destination")})
                amount = TRAIN_FARES_EUR.get(pair, DEFAULT_TRAIN_FARE_EUR)
            case ServiceType.GROUND:
                amount = self._ground(params)
            case ServiceType.DHL:
                amount = self._dhl(params)
            case _:
                raise ValueError(f"Unsupported service type: {service}")
        return Quote(amount=round(amount, 2), currency="EUR", provider=self.name)

    def _flight(self, params: Mapping[str, Any]) -> float:
        pair = frozenset({params.get("origin"), params.get("destination")})
        fare = FLIGHT_FARES_EUR.get(pair, DEFAULT_FLIGHT_FARE_EUR)
        if _is_weekend(params.get("departure")):
            fare *= WEEKEND_FLIGHT_MULTIPLIER
        return fare

    def _ground(self, params: Mapping[str, Any]) -> float:
        distance = float(params.get("distance_km") or 0.0)
        amount = max(GROUND_MINIMUM, distance * GROUND_RATE_PER_KM)
        if params.get("airport"):
            amount += GROUND_AIRPORT_SURCHARGE
        return amount

    def _dhl(self, params: Mapping[str, Any]) -> float:
        tariff = DHL_TARIFFS["express" if params.get("product") == "express" else "standard"]
        weight = float(params.get("weight_kg") or 0.0)
        distance = float(params.get("distance_km") or 0.0)
        amount = tariff["base"] + tariff["per_kg"] * weight + tariff["per_km"] * distance
        if params.get("international"):
            amount *= DHL_INTERNATIONAL_MULTIPLIER
        return amount
