"""Assemble ordered legs for one route template."""

from __future__ import annotations

from typing import Sequence

from ...errors import ValidationError
from ...models.domain import Shipment
from .models import Endpoint, EndpointKind, Leg, LegType, ProcessingStep, RouteTemplate, SelectedHubs
from .templates import template_spec

WG_CARRIER = "white-glove"
DHL_CARRIER = "dhl"
ROLLOUT_CARRIER = "internal"

CARRIER_FAMILIES = {
    LegType.WHITE_GLOVE: WG_CARRIER,
    LegType.DHL: DHL_CARRIER,
    LegType.INTERNAL_ROLLOUT: ROLLOUT_CARRIER,
}

AUTH_ONLY = (ProcessingStep.AUTHENTICATION,)
AUTH_AND_TAGGING = (ProcessingStep.AUTHENTICATION, ProcessingStep.TAGGING)
SEWING_AND_QA = (ProcessingStep.SEWING, ProcessingStep.QA)
AUTH_SEWING_QA = (ProcessingStep.AUTHENTICATION, ProcessingStep.SEWING, ProcessingStep.QA)


def _dhl_service(shipment: Shipment) -> str:
    return "express" if shipment.priority else "standard"


def _leg(
    order: int,
    leg_type: LegType,
    origin: Endpoint,
    destination: Endpoint,
    service: str,
    processing: tuple[ProcessingStep, ...] = (),
) -> Leg:
    return Leg(
        order=order,
        type=leg_type,
        origin=origin,
        destination=destination,
        carrier=CARRIER_FAMILIES[leg_type],
        service=service,
        processing=processing,
    )


class LegBuilder:
    """Build the fixed leg sequence of a template for a shipment and its hubs."""

    def build(self, template: RouteTemplate, shipment: Shipment, hubs: SelectedHubs) -> list[Leg]:
        spec = template_spec(template)
        if spec.tier != shipment.tier:
            raise ValidationError(f"Template {template.value} is not available for tier {shipment.tier}.")
        if shipment.tier == 3 and hubs.hub_cou is None:
            raise ValidationError("Tier 3 routes require a couturier hub.")

        seller = Endpoint.for_party(EndpointKind.SELLER, shipment.sender)
        buyer = Endpoint.for_party(EndpointKind.BUYER, shipment.buyer)
        hub_id = Endpoint.for_hub(hubs.hub)
        dhl = _dhl_service(shipment)

        wg_pickup = (LegType.WHITE_GLOVE, "wg-pickup")
        wg_delivery = (LegType.WHITE_GLOVE, "wg-delivery")
        dhl_mile = (LegType.DHL, dhl)

        match template:
            case RouteTemplate.FULL_WG:
                return self._tier3(hubs, seller, buyer, wg_pickup, wg_delivery)
            case RouteTemplate.HYBRID_WG_DHL:
                return self._tier3(hubs, seller, buyer, wg_pickup, dhl_mile)
            case RouteTemplate.HYBRID_DHL_WG:
                return self._tier3(hubs, seller, buyer, dhl_mile, wg_delivery)
            case RouteTemplate.WG_END_TO_END:
                return [
                    _leg(1, LegType.WHITE_GLOVE, seller, hub_id, "wg-pickup", AUTH_AND_TAGGING),
                    _leg(2, LegType.WHITE_GLOVE, Endpoint.for_hub(hubs.hub), buyer, "wg-delivery"),
                ]
            case RouteTemplate.DHL_END_TO_END:
                return [
                    _leg(1, LegType.DHL, seller, hub_id, dhl, AUTH_AND_TAGGING),
                    _leg(2, LegType.DHL, Endpoint.for_hub(hubs.hub), buyer, dhl),
                ]
            case _:
                raise ValidationError(f"Unsupported route template: {template}")

    def _tier3(
        self,
        hubs: SelectedHubs,
        seller: Endpoint,
        buyer: Endpoint,
        first_mile: tuple[LegType, str],
        last_mile: tuple[LegType, str],
    ) -> list[Leg]:
        """First mile into HubId, rollout to HubCou unless they coincide, last mile out."""
        first_type, first_service = first_mile
        last_type, last_service = last_mile
        hub_id = Endpoint.for_hub(hubs.hub)
        if hubs.same_hub:
            return [
                _leg(1, first_type, seller, hub_id, first_service, AUTH_SEWING_QA),
                _leg(2, last_type, Endpoint.for_hub(hubs.hub), buyer, last_service),
            ]
        hub_cou = Endpoint.for_hub(hubs.hub_cou)
        return [
            _leg(1, first_type, seller, hub_id, first_service, AUTH_ONLY),
            _leg(2, LegType.INTERNAL_ROLLOUT, Endpoint.for_hub(hubs.hub), hub_cou, "daily-rollout", SEWING_AND_QA),
            _leg(3, last_type, Endpoint.for_hub(hubs.hub_cou), buyer, last_service),
        ]


def validate_route_pattern(template: RouteTemplate, legs: Sequence[Leg], tier: int) -> list[str]:
    """Structural check of built legs against the template skeleton.

    Returns the list of violations; an empty list means the route is acceptable.
    """
    spec = template_spec(template)
    violations: list[str] = []
    if spec.tier != tier:
        violations.append(f"template {template.value} belongs to tier {spec.tier}, not {tier}")

    same_hub = bool(legs) and not any(leg.type is LegType.INTERNAL_ROLLOUT for leg in legs) and tier == 3
    expected = spec.expected_leg_types(same_hub)
    actual = tuple(leg.type for leg in legs)
    if actual != expected:
        violations.append(
            f"leg types {[t.value for t in actual]} do not match {[t.value for t in expected]}"
        )

    for position, leg in enumerate(legs, start=1):
        if leg.order != position:
            violations.append(f"leg {leg.order} is out of order")
        if leg.carrier != CARRIER_FAMILIES[leg.type]:
            violations.append(f"leg {leg.order} carrier {leg.carrier} does not match type {leg.type.value}")
        if leg.type is LegType.DHL and leg.is_hub_transfer:
            violations.append(f"leg {leg.order} hands a hub-to-hub transfer to a parcel carrier")
        if leg.is_hub_transfer and leg.type is not LegType.INTERNAL_ROLLOUT:
            violations.append(f"leg {leg.order} hub-to-hub transfer must be an internal rollout")
        if position > 1 and legs[position - 2].destination.label != leg.origin.label:
            violations.append(f"leg {leg.order} does not start where leg {leg.order - 1} ends")

    if legs:
        if legs[0].origin.kind is not EndpointKind.SELLER:
            violations.append("route does not start at the seller")
        if legs[-1].destination.kind is not EndpointKind.BUYER:
            violations.append("route does not end at the buyer")

    steps = {step for leg in legs for step in leg.processing}
    if tier == 2:
        if len(legs) != 2:
            violations.append("tier 2 routes have exactly two legs")
        if len({leg.carrier for leg in legs}) > 1:
            violations.append("tier 2 legs must share one carrier family")
        if ProcessingStep.SEWING in steps:
            violations.append("tier 2 routes carry no sewing")
    elif ProcessingStep.SEWING not in steps or ProcessingStep.AUTHENTICATION not in steps:
        violations.append("tier 3 routes need authentication and sewing")

    return violations
