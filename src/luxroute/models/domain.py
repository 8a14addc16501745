"""Domain models for shipments and authentication hubs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass(slots=True, frozen=True)
class Party:
    """Sender or buyer of a shipment."""

    city: str
    country: str
    address: str = ""
    postcode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Shipment:
    """Immutable shipment record handed to the planner."""

    tier: int
    sender: Party
    buyer: Party
    declared_value: float
    sla_target_date: Optional[datetime]
    weight_kg: float = 1.0
    dimensions_cm: Optional[tuple[float, float, float]] = None
    fragility: str = "low"
    pickup_window_start: Optional[datetime] = None
    priority: bool = False
    shipment_id: str = ""


@dataclass(slots=True)
class HubFees:
    """Per-hub fee schedule, expressed in the hub's own currency."""

    tier2_auth_fee: float
    tier3_auth_fee: float
    sewing_fee: float
    qa_fee: float
    tag_unit_cost: float
    nfc_unit_cost: float
    internal_rollout_cost: float
    last_mile_base: float = 0.0


@dataclass(slots=True)
class HubCapacity:
    auth_available: int = 50
    auth_total: int = 100
    sewing_available: int = 20
    sewing_total: int = 40

    @property
    def auth_ratio(self) -> float:
        return self.auth_available / self.auth_total if self.auth_total > 0 else 0.0

    @property
    def sewing_ratio(self) -> float:
        return self.sewing_available / self.sewing_total if self.sewing_total > 0 else 0.0


@dataclass(slots=True)
class HubInventory:
    nfc_stock: int = 100
    tag_stock: int = 200


@dataclass(slots=True)
class Hub:
    """Authentication hub with its capabilities and current counters."""

    hub_id: str
    code: str
    name: str
    city: str
    country: str
    currency: str
    fees: HubFees
    capacity: HubCapacity = field(default_factory=HubCapacity)
    inventory: HubInventory = field(default_factory=HubInventory)
    has_sewing_capability: bool = False
    active: bool = True
    capacity_multiplier: float = 1.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def auth_fee(self, tier: int) -> float:
        return self.fees.tier3_auth_fee if tier == 3 else self.fees.tier2_auth_fee

    def service_fee(self, service: str, tier: int) -> float:
        """Fee for one hub service in the hub's own currency."""
        match service:
            case "authentication":
                return self.auth_fee(tier)
            case "sewing":
                return self.fees.sewing_fee
            case "qa":
                return self.fees.qa_fee
            case "tag":
                return self.fees.tag_unit_cost
            case "nfc":
                return self.fees.nfc_unit_cost
            case "internal_rollout":
                return self.fees.internal_rollout_cost
            case "last_mile":
                return self.fees.last_mile_base
            case _:
                raise ValueError(f"Unsupported hub service: {service}")


@dataclass(slots=True)
class HubSnapshot:
    """Capacity and stock counters reported by the hub-inventory service.

    Any field left as None falls back to the price book default.
    """

    hub_id: str
    auth_available: Optional[int] = None
    auth_total: Optional[int] = None
    sewing_available: Optional[int] = None
    sewing_total: Optional[int] = None
    nfc_stock: Optional[int] = None
    tag_stock: Optional[int] = None
    active: Optional[bool] = None
    snapshot_date: Optional[date] = None
