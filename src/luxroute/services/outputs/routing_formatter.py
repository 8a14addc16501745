"""Conversions between API schemas and routing dataclasses."""

from __future__ import annotations

from dataclasses import asdict
from typing import Sequence

from ...models.domain import Hub, HubSnapshot, Party, Shipment
from ...schemas.routing import HubSnapshotModel, PartyModel, ShipmentRequest
from ..routing.models import Leg, RouteCalculationResult, RouteOption
from ..routing.templates import template_spec


def _party(model: PartyModel) -> Party:
    return Party(**model.model_dump())


def shipment_from_request(payload: ShipmentRequest) -> Shipment:
    return Shipment(
        tier=payload.tier,
        sender=_party(payload.sender),
        buyer=_party(payload.buyer),
        declared_value=payload.declared_value,
        sla_target_date=payload.sla_target_date,
        weight_kg=payload.weight_kg,
        dimensions_cm=tuple(payload.dimensions_cm) if payload.dimensions_cm else None,
        fragility=payload.fragility,
        pickup_window_start=payload.pickup_window_start,
        priority=payload.priority,
        shipment_id=payload.shipment_id,
    )


def snapshot_from_request(entries: Sequence[HubSnapshotModel] | None) -> list[HubSnapshot] | None:
    if entries is None:
        return None
    return [HubSnapshot(**entry.model_dump()) for entry in entries]


def _hub_summary(hub: Hub | None) -> dict | None:
    if hub is None:
        return None
    return {
        "hub_id": hub.hub_id,
        "code": hub.code,
        "name": hub.name,
        "city": hub.city,
        "country": hub.country,
        "currency": hub.currency,
        "has_sewing_capability": hub.has_sewing_capability,
    }


def _leg_to_json(leg: Leg) -> dict:
    data = {
        "order": leg.order,
        "type": leg.type.value,
        "carrier": leg.carrier,
        "service": leg.service,
        "origin": leg.origin.label,
        "destination": leg.destination.label,
        "processing": leg.processing_label,
        "segments": [],
    }
    if leg.plan is not None:
        data.update(
            mode=leg.plan.mode.value,
            distance_km=round(leg.plan.distance_km, 1),
            travel_minutes=round(leg.plan.travel_minutes, 1),
            cost=leg.plan.total_cost,
            segments=[
                {
                    "kind": segment.kind,
                    "mode": segment.mode.value if segment.mode else None,
                    "origin": segment.origin,
                    "destination": segment.destination,
                    "duration_minutes": segment.duration_minutes,
                    "cost": segment.cost,
                    "distance_km": segment.distance_km,
                    "provider": segment.provider,
                    "source": segment.source.value if segment.source else None,
                    "fresh": segment.fresh,
                    "on_shipment_timeline": segment.on_shipment_timeline,
                }
                for segment in leg.plan.segments
            ],
        )
        if leg.plan.labor is not None:
            data["labor"] = {**asdict(leg.plan.labor), "total": leg.plan.labor.total}
    if leg.window is not None:
        data.update(
            departure=leg.window.departure,
            arrival=leg.window.arrival,
            processing_end=leg.window.processing_end,
        )
    return data


def route_option_to_json(option: RouteOption) -> dict:
    breakdown = option.cost_breakdown
    schedule = option.schedule
    return {
        "template": option.template.value,
        "label": template_spec(option.template).label,
        "tier": option.tier,
        "hub_id": option.hubs.hub_id,
        "hub_cou": option.hubs.hub_cou_id,
        "legs": [_leg_to_json(leg) for leg in option.legs],
        "cost_breakdown": {
            "currency": breakdown.currency,
            "labor": breakdown.labor,
            "transport": {
                category: [
                    {
                        "description": line.description,
                        "amount": line.amount,
                        "leg_order": line.leg_order,
                        "source": line.source.value if line.source else None,
                        "fresh": line.fresh,
                        "provider": line.provider,
                    }
                    for line in lines
                ]
                for category, lines in breakdown.transport.items()
            },
            "transport_subtotal": breakdown.transport_subtotal,
            "internal_rollout": breakdown.internal_rollout,
            "hub_fees": [asdict(line) for line in breakdown.hub_fees],
            "hub_fees_total": breakdown.hub_fees_total,
            "insurance": breakdown.insurance,
            "surcharges": breakdown.surcharges,
            "surcharges_total": breakdown.surcharges_total,
            "leg_costs": breakdown.leg_costs,
            "total": breakdown.total,
            "client_price": breakdown.client_price,
            "margin": breakdown.margin,
            "margin_percentage": breakdown.margin_percentage,
        },
        "schedule": {
            "start": schedule.start,
            "estimated_delivery": schedule.estimated_delivery,
            "total_hours": schedule.total_hours,
            "total_days": schedule.total_days,
            "sla_target": schedule.sla_target,
            "feasible": schedule.feasible,
            "sla_buffer_hours": schedule.sla_buffer_hours,
            "milestones": schedule.milestones,
        },
        "score": asdict(option.score) if option.score else None,
        "grade": option.grade,
        "guardrails": [
            {**asdict(finding), "severity": finding.severity.value} for finding in option.guardrails
        ],
        "feasible": option.feasible,
        "is_blocked": option.is_blocked,
        "warnings": list(option.warnings),
        "pricing_sources": option.pricing_sources,
    }


def route_result_to_json(result: RouteCalculationResult) -> dict:
    return {
        "session_id": result.session_id,
        "tier": result.tier,
        "hubs": {
            "hub_id": _hub_summary(result.hubs.hub),
            "hub_cou": _hub_summary(result.hubs.hub_cou),
            "scores": {hub_id: round(score, 1) for hub_id, score in result.hubs.scores.items()},
        },
        "options": [route_option_to_json(option) for option in result.options],
        "rejected": [
            {"template": rejected.template.value, "reasons": list(rejected.reasons)} for rejected in result.rejected
        ],
        "cost_report": result.cost_report,
    }
