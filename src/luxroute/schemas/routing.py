"""Route calculation request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PartyModel(BaseModel):
    city: str = Field(..., min_length=1)
    country: str = Field(..., min_length=2)
    address: str = ""
    postcode: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    name: Optional[str] = None


class ShipmentRequest(BaseModel):
    shipment_id: str = ""
    tier: int = Field(..., description="Service tier: 2 (tag) or 3 (NFC + sewing).")
    sender: PartyModel
    buyer: PartyModel
    declared_value: float = Field(..., ge=0)
    sla_target_date: Optional[datetime] = Field(
        default=None,
        description="Latest acceptable delivery time. Required for planning.",
    )
    weight_kg: float = Field(default=1.0, gt=0)
    dimensions_cm: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)
    fragility: Literal["low", "medium", "high"] = "low"
    pickup_window_start: Optional[datetime] = None
    priority: bool = False


class HubSnapshotModel(BaseModel):
    """Live counters from the hub-inventory service; empty fields keep defaults."""

    hub_id: str
    auth_available: Optional[int] = Field(None, ge=0)
    auth_total: Optional[int] = Field(None, ge=0)
    sewing_available: Optional[int] = Field(None, ge=0)
    sewing_total: Optional[int] = Field(None, ge=0)
    nfc_stock: Optional[int] = Field(None, ge=0)
    tag_stock: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None
    snapshot_date: Optional[date] = None


class RouteCalculationRequest(BaseModel):
    shipment: ShipmentRequest
    hub_snapshot: Optional[List[HubSnapshotModel]] = None
    session_id: Optional[str] = Field(default=None, description="Reuse an existing pricing session.")
    force_refresh: bool = False
    allow_margin_override: bool = Field(
        default=False,
        description="Downgrade margin guardrails to warnings for an authorised override.",
    )


class CacheRefreshRequest(BaseModel):
    services: Optional[List[Literal["flights", "trains", "ground", "dhl"]]] = Field(
        default=None,
        description="Services to clear. All services when omitted.",
    )


class HubSummaryModel(BaseModel):
    hub_id: str
    code: str
    name: str
    city: str
    country: str
    currency: str
    has_sewing_capability: bool


class SelectedHubsModel(BaseModel):
    hub_id: HubSummaryModel
    hub_cou: Optional[HubSummaryModel] = None
    scores: Dict[str, float]


class SegmentModel(BaseModel):
    kind: str
    mode: Optional[str]
    origin: str
    destination: str
    duration_minutes: float
    cost: float
    distance_km: float
    provider: Optional[str] = None
    source: Optional[str] = None
    fresh: bool
    on_shipment_timeline: bool


class LaborModel(BaseModel):
    hours: float
    base: float
    overtime_hours: float
    overtime: float
    per_diem: float
    accommodation: float
    meals: float
    total: float


class LegModel(BaseModel):
    order: int
    type: str
    carrier: str
    service: str
    origin: str
    destination: str
    processing: str
    mode: Optional[str] = None
    distance_km: Optional[float] = None
    travel_minutes: Optional[float] = None
    cost: Optional[float] = None
    departure: Optional[datetime] = None
    arrival: Optional[datetime] = None
    processing_end: Optional[datetime] = None
    segments: List[SegmentModel] = Field(default_factory=list)
    labor: Optional[LaborModel] = None


class TransportLineModel(BaseModel):
    description: str
    amount: float
    leg_order: int
    source: Optional[str] = None
    fresh: bool
    provider: Optional[str] = None


class HubFeeModel(BaseModel):
    hub_id: str
    service: str
    amount: float
    currency: str
    amount_reference: float


class CostBreakdownModel(BaseModel):
    currency: str
    labor: float
    transport: Dict[str, List[TransportLineModel]]
    transport_subtotal: float
    internal_rollout: float
    hub_fees: List[HubFeeModel]
    hub_fees_total: float
    insurance: float
    surcharges: Dict[str, float]
    surcharges_total: float
    leg_costs: Dict[int, float]
    total: float
    client_price: int
    margin: float
    margin_percentage: float


class ScheduleModel(BaseModel):
    start: datetime
    estimated_delivery: datetime
    total_hours: float
    total_days: int
    sla_target: Optional[datetime]
    feasible: bool
    sla_buffer_hours: Optional[float]
    milestones: Dict[str, datetime]


class ScoreModel(BaseModel):
    time: float
    cost: float
    risk: float
    total: float


class GuardrailModel(BaseModel):
    code: str
    severity: str
    message: str
    blocking: bool
    actionable: bool
    overridden: bool


class RouteOptionModel(BaseModel):
    template: str
    label: str
    tier: int
    hub_id: str
    hub_cou: Optional[str]
    legs: List[LegModel]
    cost_breakdown: CostBreakdownModel
    schedule: ScheduleModel
    score: Optional[ScoreModel]
    grade: Optional[str]
    guardrails: List[GuardrailModel]
    feasible: bool
    is_blocked: bool
    warnings: List[str]
    pricing_sources: Dict[str, int]


class RejectedOptionModel(BaseModel):
    template: str
    reasons: List[str]


class RouteCalculationResponse(BaseModel):
    session_id: str
    tier: int
    hubs: SelectedHubsModel
    options: List[RouteOptionModel]
    rejected: List[RejectedOptionModel]
    cost_report: dict


class CacheRefreshResponse(BaseModel):
    cleared: int
    services: List[str]
