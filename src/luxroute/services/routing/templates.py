"""Fixed catalog of allowed route templates per tier."""

from __future__ import annotations

from dataclasses import dataclass

from ...errors import ValidationError
from .models import LegType, RouteTemplate


@dataclass(slots=True, frozen=True)
class TemplateSpec:
    template: RouteTemplate
    tier: int
    label: str
    description: str
    leg_types: tuple[LegType, ...]

    def expected_leg_types(self, same_hub: bool) -> tuple[LegType, ...]:
        """Leg skeleton; the inter-hub rollout disappears when both hubs coincide."""
        if same_hub:
            return tuple(leg_type for leg_type in self.leg_types if leg_type is not LegType.INTERNAL_ROLLOUT)
        return self.leg_types


@dataclass(slots=True, frozen=True)
class TierRules:
    tier: int
    templates: tuple[RouteTemplate, ...]
    option_count: int
    requires_sewing: bool
    required_inventory: str


ROUTE_TEMPLATES: dict[RouteTemplate, TemplateSpec] = {
    RouteTemplate.FULL_WG: TemplateSpec(
        RouteTemplate.FULL_WG,
        3,
        "Full White-Glove",
        "WG seller to HubId, internal rollout to HubCou, WG to buyer.",
        (LegType.WHITE_GLOVE, LegType.INTERNAL_ROLLOUT, LegType.WHITE_GLOVE),
    ),
    RouteTemplate.HYBRID_WG_DHL: TemplateSpec(
        RouteTemplate.HYBRID_WG_DHL,
        3,
        "Hybrid WG + DHL",
        "WG seller to HubId, internal rollout to HubCou, DHL to buyer.",
        (LegType.WHITE_GLOVE, LegType.INTERNAL_ROLLOUT, LegType.DHL),
    ),
    RouteTemplate.HYBRID_DHL_WG: TemplateSpec(
        RouteTemplate.HYBRID_DHL_WG,
        3,
        "Hybrid DHL + WG",
        "DHL seller to HubId, internal rollout to HubCou, WG to buyer.",
        (LegType.DHL, LegType.INTERNAL_ROLLOUT, LegType.WHITE_GLOVE),
    ),
    RouteTemplate.WG_END_TO_END: TemplateSpec(
        RouteTemplate.WG_END_TO_END,
        2,
        "White-Glove end to end",
        "WG seller to hub, WG hub to buyer.",
        (LegType.WHITE_GLOVE, LegType.WHITE_GLOVE),
    ),
    RouteTemplate.DHL_END_TO_END: TemplateSpec(
        RouteTemplate.DHL_END_TO_END,
        2,
        "DHL end to end",
        "DHL seller to hub, DHL hub to buyer.",
        (LegType.DHL, LegType.DHL),
    ),
}

TIER_RULES: dict[int, TierRules] = {
    2: TierRules(
        tier=2,
        templates=(RouteTemplate.WG_END_TO_END, RouteTemplate.DHL_END_TO_END),
        option_count=2,
        requires_sewing=False,
        required_inventory="tag",
    ),
    3: TierRules(
        tier=3,
        templates=(RouteTemplate.FULL_WG, RouteTemplate.HYBRID_WG_DHL, RouteTemplate.HYBRID_DHL_WG),
        option_count=3,
        requires_sewing=True,
        required_inventory="nfc",
    ),
}


def rules_for_tier(tier: int) -> TierRules:
    try:
        return TIER_RULES[tier]
    except KeyError as exc:
        raise ValidationError(f"Unsupported tier: {tier}. Supported tiers are 2 and 3.") from exc


def template_spec(template: RouteTemplate) -> TemplateSpec:
    return ROUTE_TEMPLATES[template]
