"""Static geographic reference tables used by the planner.

These are simplified lookup models: city centroids, the airport serving each
city, scheduled rail links between city pairs and a handful of road distances
that differ noticeably from the great-circle figure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True, frozen=True)
class CityInfo:
    name: str
    country: str
    latitude: float
    longitude: float
    code: str
    airport_code: Optional[str] = None
    airport_transfer_minutes: int = 45
    airport_transfer_cost: float = 35.0
    station_transfer_minutes: int = 20
    accommodation_rate: Optional[float] = None


@dataclass(slots=True, frozen=True)
class TrainRoute:
    operator: str
    duration_minutes: int
    frequency_minutes: int


@dataclass(slots=True, frozen=True)
class TaxiRate:
    base: float
    per_km: float
    per_minute: float


CITIES: dict[str, CityInfo] = {
    "london": CityInfo("London", "GB", 51.5074, -0.1278, "LON", "LHR", 45, 35.0, 15, 180.0),
    "paris": CityInfo("Paris", "FR", 48.8566, 2.3522, "PAR", "CDG", 50, 32.0, 25, 160.0),
    "milan": CityInfo("Milan", "IT", 45.4642, 9.1900, "MIL", "MXP", 55, 38.0, 20, 140.0),
    "frankfurt": CityInfo("Frankfurt", "DE", 50.1109, 8.6821, "FRA", "FRA", 40, 28.0, 20, 120.0),
    "berlin": CityInfo("Berlin", "DE", 52.5200, 13.4050, "BER", "BER", 45, 30.0, 20),
    "madrid": CityInfo("Madrid", "ES", 40.4168, -3.7038, "MAD", "MAD", 40, 30.0, 20),
    "amsterdam": CityInfo("Amsterdam", "NL", 52.3676, 4.9041, "AMS", "AMS", 30, 30.0, 15),
    "brussels": CityInfo("Brussels", "BE", 50.8503, 4.3517, "BRU", "BRU", 35, 30.0, 20),
    "nice": CityInfo("Nice", "FR", 43.7102, 7.2620, "NCE", "NCE", 25, 30.0, 15),
    "lyon": CityInfo("Lyon", "FR", 45.7640, 4.8357, "LYS", "LYS", 40, 30.0, 20),
    "geneva": CityInfo("Geneva", "CH", 46.2044, 6.1432, "GVA", "GVA", 20, 35.0, 15),
    "zurich": CityInfo("Zurich", "CH", 47.3769, 8.5417, "ZRH", "ZRH", 25, 35.0, 15),
    "rome": CityInfo("Rome", "IT", 41.9028, 12.4964, "ROM", "FCO", 50, 40.0, 20),
    "manchester": CityInfo("Manchester", "GB", 53.4808, -2.2426, "MAN", "MAN", 30, 30.0, 15),
    "harrogate": CityInfo("Harrogate", "GB", 53.9921, -1.5418, "HRG"),
    "suresnes": CityInfo("Suresnes", "FR", 48.8711, 2.2290, "SRN"),
    "versailles": CityInfo("Versailles", "FR", 48.8049, 2.1204, "VRS"),
    "monaco": CityInfo("Monaco", "MC", 43.7384, 7.4246, "MCM"),
}

ROAD_DISTANCES_KM: dict[frozenset[str], float] = {
    frozenset({"london", "paris"}): 465.0,
    frozenset({"london", "milan"}): 1155.0,
    frozenset({"paris", "milan"}): 850.0,
    frozenset({"paris", "frankfurt"}): 480.0,
    frozenset({"london", "frankfurt"}): 930.0,
    frozenset({"paris", "nice"}): 940.0,
    frozenset({"london", "nice"}): 1280.0,
    frozenset({"paris", "suresnes"}): 15.0,
    frozenset({"london", "harrogate"}): 320.0,
}

TRAIN_ROUTES: dict[frozenset[str], TrainRoute] = {
    frozenset({"london", "paris"}): TrainRoute("Eurostar", 140, 60),
    frozenset({"london", "brussels"}): TrainRoute("Eurostar", 120, 120),
    frozenset({"paris", "brussels"}): TrainRoute("Thalys", 85, 30),
    frozenset({"paris", "frankfurt"}): TrainRoute("ICE", 240, 120),
    frozenset({"paris", "lyon"}): TrainRoute("TGV", 120, 60),
    frozenset({"milan", "zurich"}): TrainRoute("EuroCity", 200, 120),
}

TAXI_RATES: dict[str, TaxiRate] = {
    "london": TaxiRate(3.20, 2.40, 0.30),
    "paris": TaxiRate(2.60, 1.06, 0.35),
    "milan": TaxiRate(3.30, 1.10, 0.28),
    "berlin": TaxiRate(3.90, 2.00, 0.30),
    "madrid": TaxiRate(2.40, 1.05, 0.22),
    "amsterdam": TaxiRate(2.95, 2.17, 0.36),
}

REMOTE_AREAS: tuple[str, ...] = ("isle of skye", "faroe islands", "svalbard")

_COUNTRY_ALIASES = {"UK": "GB", "ENGLAND": "GB", "SCOTLAND": "GB", "WALES": "GB"}


def _key(city: str | None) -> str:
    return (city or "").strip().lower()


def lookup_city(city: str | None) -> Optional[CityInfo]:
    return CITIES.get(_key(city))


def city_code(city: str | None) -> str:
    info = lookup_city(city)
    if info:
        return info.code
    return _key(city)[:3].upper() or "XXX"


def road_distance_km(origin_city: str | None, destination_city: str | None) -> Optional[float]:
    return ROAD_DISTANCES_KM.get(frozenset({_key(origin_city), _key(destination_city)}))


def train_route(origin_city: str | None, destination_city: str | None) -> Optional[TrainRoute]:
    return TRAIN_ROUTES.get(frozenset({_key(origin_city), _key(destination_city)}))


def taxi_rate(city: str | None) -> TaxiRate:
    return TAXI_RATES.get(_key(city), TAXI_RATES["london"])


def normalize_country(country: str | None) -> str:
    code = (country or "").strip().upper()
    return _COUNTRY_ALIASES.get(code, code)


def is_international(origin_country: str | None, destination_country: str | None) -> bool:
    return normalize_country(origin_country) != normalize_country(destination_country)


def is_remote_area(*labels: str | None) -> bool:
    text = " ".join(label.lower() for label in labels if label)
    return any(area in text for area in REMOTE_AREAS)
