"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ...models.domain import Hub, Party
from ..pricing.models import QuoteSource


class RouteTemplate(str, Enum):
    FULL_WG = "FULL_WG"
    HYBRID_WG_DHL = "HYBRID_WG_DHL"
    HYBRID_DHL_WG = "HYBRID_DHL_WG"
    WG_END_TO_END = "WG_END_TO_END"
    DHL_END_TO_END = "DHL_END_TO_END"


class LegType(str, Enum):
    WHITE_GLOVE = "white-glove"
    DHL = "dhl"
    INTERNAL_ROLLOUT = "internal-rollout"


class EndpointKind(str, Enum):
    SELLER = "seller"
    BUYER = "buyer"
    HUB = "hub"


class ProcessingStep(str, Enum):
    AUTHENTICATION = "authentication"
    SEWING = "sewing"
    QA = "qa"
    TAGGING = "tagging"


class TransportMode(str, Enum):
    FLIGHT = "flight"
    TRAIN = "train"
    GROUND = "ground"
    PARCEL = "parcel"
    ROLLOUT = "rollout"


class Severity(str, Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


@dataclass(slots=True)
class Endpoint:
    kind: EndpointKind
    city: str
    country: str
    address: str = ""
    postcode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    hub: Optional[Hub] = None

    @classmethod
    def for_party(cls, kind: EndpointKind, party: Party) -> "Endpoint":
        return cls(
            kind=kind,
            city=party.city,
            country=party.country,
            address=party.address,
            postcode=party.postcode,
            latitude=party.latitude,
            longitude=party.longitude,
        )

    @classmethod
    def for_hub(cls, hub: Hub) -> "Endpoint":
        return cls(
            kind=EndpointKind.HUB,
            city=hub.city,
            country=hub.country,
            address=hub.name,
            postcode=hub.code,
            latitude=hub.latitude,
            longitude=hub.longitude,
            hub=hub,
        )

    @property
    def label(self) -> str:
        if self.hub is not None:
            return self.hub.hub_id
        return f"{self.kind.value}:{self.city}"


@dataclass(slots=True)
class Segment:
    kind: str
    mode: Optional[TransportMode]
    origin: str
    destination: str
    duration_minutes: float
    cost: float = 0.0
    distance_km: float = 0.0
    provider: Optional[str] = None
    source: Optional[QuoteSource] = None
    fresh: bool = True
    # Operator return trips run after hand-over and do not delay the shipment.
    on_shipment_timeline: bool = True


@dataclass(slots=True)
class LaborCost:
    hours: float = 0.0
    base: float = 0.0
    overtime_hours: float = 0.0
    overtime: float = 0.0
    per_diem: float = 0.0
    accommodation: float = 0.0
    meals: float = 0.0

    @property
    def total(self) -> float:
        return round(self.base + self.overtime + self.per_diem + self.accommodation + self.meals, 2)


@dataclass(slots=True)
class TransportLine:
    """One priced transport item; category is flights, trains, ground, dhl or internal_rollout."""

    category: str
    description: str
    amount: float
    leg_order: int
    source: Optional[QuoteSource] = None
    fresh: bool = True
    provider: Optional[str] = None


@dataclass(slots=True)
class LegPlan:
    leg_order: int
    mode: TransportMode
    distance_km: float
    segments: List[Segment]
    transport_lines: List[TransportLine]
    labor: Optional[LaborCost] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def travel_minutes(self) -> float:
        return sum(segment.duration_minutes for segment in self.segments if segment.on_shipment_timeline)

    @property
    def operator_minutes(self) -> float:
        return sum(segment.duration_minutes for segment in self.segments)

    @property
    def transport_cost(self) -> float:
        return round(sum(line.amount for line in self.transport_lines), 2)

    @property
    def total_cost(self) -> float:
        labor = self.labor.total if self.labor else 0.0
        return round(self.transport_cost + labor, 2)


@dataclass(slots=True)
class LegWindow:
    leg_order: int
    departure: datetime
    arrival: datetime
    processing_end: datetime


@dataclass(slots=True)
class Leg:
    order: int
    type: LegType
    origin: Endpoint
    destination: Endpoint
    carrier: str
    service: str
    processing: tuple[ProcessingStep, ...] = ()
    plan: Optional[LegPlan] = None
    window: Optional[LegWindow] = None

    @property
    def processing_label(self) -> str:
        if not self.processing:
            return "none"
        return "-".join(step.value for step in self.processing)

    @property
    def is_hub_transfer(self) -> bool:
        return self.origin.kind is EndpointKind.HUB and self.destination.kind is EndpointKind.HUB


@dataclass(slots=True)
class Schedule:
    start: datetime
    estimated_delivery: datetime
    total_hours: float
    total_days: int
    sla_target: Optional[datetime]
    feasible: bool
    sla_buffer_hours: Optional[float]
    windows: List[LegWindow]
    milestones: dict[str, datetime]


@dataclass(slots=True)
class HubFeeLine:
    hub_id: str
    service: str
    amount: float
    currency: str
    amount_reference: float


@dataclass(slots=True)
class CostBreakdown:
    labor: float
    transport: dict[str, List[TransportLine]]
    transport_subtotal: float
    internal_rollout: float
    hub_fees: List[HubFeeLine]
    hub_fees_total: float
    insurance: float
    surcharges: dict[str, float]
    surcharges_total: float
    leg_costs: dict[int, float]
    total: float
    client_price: int
    margin: float
    margin_percentage: float
    currency: str = "EUR"


@dataclass(slots=True)
class RouteScore:
    time: float
    cost: float
    risk: float
    total: float


@dataclass(slots=True)
class Guardrail:
    code: str
    severity: Severity
    message: str
    blocking: bool = False
    actionable: bool = False
    overridden: bool = False


@dataclass(slots=True)
class SelectedHubs:
    hub: Hub
    hub_cou: Optional[Hub] = None
    scores: dict[str, float] = field(default_factory=dict)

    @property
    def hub_id(self) -> str:
        return self.hub.hub_id

    @property
    def hub_cou_id(self) -> Optional[str]:
        return self.hub_cou.hub_id if self.hub_cou else None

    @property
    def same_hub(self) -> bool:
        return self.hub_cou is not None and self.hub_cou.hub_id == self.hub.hub_id


@dataclass(slots=True)
class RouteOption:
    template: RouteTemplate
    tier: int
    hubs: SelectedHubs
    legs: List[Leg]
    cost_breakdown: Optional[CostBreakdown] = None
    schedule: Optional[Schedule] = None
    score: Optional[RouteScore] = None
    grade: Optional[str] = None
    guardrails: List[Guardrail] = field(default_factory=list)
    feasible: bool = True
    is_blocked: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def pricing_sources(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for leg in self.legs:
            if leg.plan is None:
                continue
            for line in leg.plan.transport_lines:
                if line.source is not None:
                    counts[line.source.value] = counts.get(line.source.value, 0) + 1
        return counts


@dataclass(slots=True)
class RejectedOption:
    template: RouteTemplate
    reasons: List[str]


@dataclass(slots=True)
class RouteCalculationResult:
    session_id: str
    tier: int
    hubs: SelectedHubs
    options: List[RouteOption]
    rejected: List[RejectedOption]
    cost_report: dict
