"""Business-rule findings attached to a costed and scheduled route option."""

from __future__ import annotations

import logging

from ...config import Settings, settings as default_settings
from ...data.geo_reference import is_international
from ...models.domain import Shipment
from .models import Guardrail, ProcessingStep, RouteOption, Severity

logger = logging.getLogger(__name__)

MIN_COUTURIER_SEWING_SLOTS = 2


class GuardrailValidator:
    """Produce structured findings for one route option.

    Findings never raise. A route is blocked only when at least one finding is
    blocking, and blocked routes are still returned to the caller.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self.settings = config or default_settings

    def validate(
        self,
        option: RouteOption,
        shipment: Shipment,
        allow_margin_override: bool = False,
    ) -> list[Guardrail]:
        findings: list[Guardrail] = []
        findings.extend(self._margin(option, shipment, allow_margin_override))
        findings.extend(self._capacity(option))
        findings.extend(self._sla_buffer(option))
        findings.extend(self._processing_coverage(option))
        findings.extend(self._operator_overtime(option))
        findings.extend(self._shipment_flags(option, shipment))

        option.guardrails = findings
        option.is_blocked = any(finding.blocking for finding in findings)
        if option.is_blocked:
            logger.info(f"Route {option.template.value} blocked: {[f.code for f in findings if f.blocking]}")
        return findings

    def _margin(self, option: RouteOption, shipment: Shipment, allow_override: bool) -> list[Guardrail]:
        breakdown = option.cost_breakdown
        if breakdown is None:
            return []
        minimum = self.settings.min_margin_percentage.get(shipment.tier, 0.0)
        if breakdown.margin_percentage >= minimum:
            return []
        message = f"Margin {breakdown.margin_percentage}% is below the tier {shipment.tier} minimum of {minimum:g}%."
        if allow_override:
            return [Guardrail("MARGIN_BELOW_MINIMUM", Severity.WARNING, message, actionable=True, overridden=True)]
        return [Guardrail("MARGIN_BELOW_MINIMUM", Severity.BLOCKING, message, blocking=True, actionable=True)]

    def _capacity(self, option: RouteOption) -> list[Guardrail]:
        findings = []
        hub = option.hubs.hub
        if hub.capacity.auth_available < self.settings.low_auth_capacity_threshold:
            findings.append(
                Guardrail(
                    "HUB_CAPACITY_LOW",
                    Severity.WARNING,
                    f"Hub {hub.hub_id} has only {hub.capacity.auth_available} authentication slots left.",
                )
            )
        couturier = option.hubs.hub_cou
        if couturier is not None and couturier.capacity.sewing_available < MIN_COUTURIER_SEWING_SLOTS:
            findings.append(
                Guardrail(
                    "HUB_CAPACITY_LOW",
                    Severity.WARNING,
                    f"Hub {couturier.hub_id} has only {couturier.capacity.sewing_available} sewing slots left.",
                )
            )
        return findings

    def _sla_buffer(self, option: RouteOption) -> list[Guardrail]:
        schedule = option.schedule
        if schedule is None or schedule.sla_buffer_hours is None:
            return []
        threshold_hours = self.settings.sla_buffer_warning_days * 24.0
        if schedule.sla_buffer_hours >= threshold_hours:
            return []
        days = schedule.sla_buffer_hours / 24.0
        return [
            Guardrail(
                "SLA_BUFFER_LOW",
                Severity.WARNING,
                f"Only {days:.1f} day(s) of buffer before the SLA deadline.",
                actionable=True,
            )
        ]

    def _processing_coverage(self, option: RouteOption) -> list[Guardrail]:
        if option.tier != 3:
            return []
        steps = {step for leg in option.legs for step in leg.processing}
        findings = []
        if ProcessingStep.AUTHENTICATION not in steps:
            findings.append(
                Guardrail("TIER3_PROCESSING_GAP", Severity.WARNING, "Tier 3 route has no authentication step.")
            )
        if ProcessingStep.SEWING not in steps:
            findings.append(
                Guardrail("TIER3_PROCESSING_GAP", Severity.WARNING, "Tier 3 route has no sewing step at HubCou.")
            )
        return findings

    def _operator_overtime(self, option: RouteOption) -> list[Guardrail]:
        findings = []
        for leg in option.legs:
            labor = leg.plan.labor if leg.plan else None
            if labor is not None and labor.overtime_hours > self.settings.max_overtime_hours:
                findings.append(
                    Guardrail(
                        "OPERATOR_OVERTIME",
                        Severity.WARNING,
                        f"Leg {leg.order} operator works {labor.overtime_hours:.1f}h overtime; "
                        "consider a second operator.",
                        actionable=True,
                    )
                )
        return findings

    def _shipment_flags(self, option: RouteOption, shipment: Shipment) -> list[Guardrail]:
        findings = []
        if shipment.declared_value > self.settings.high_value_threshold:
            findings.append(
                Guardrail("HIGH_VALUE", Severity.INFO, "High-value item: enhanced insurance and security protocols apply.")
            )
        if shipment.fragility == "high":
            findings.append(
                Guardrail("FRAGILE_HANDLING", Severity.WARNING, "Fragile item: specialised handling required on every leg.")
            )
        if option.schedule is not None and option.schedule.estimated_delivery.weekday() >= 5:
            findings.append(
                Guardrail("WEEKEND_DELIVERY", Severity.INFO, "Delivery falls on a weekend; weekend surcharge applied.")
            )
        if any(is_international(leg.origin.country, leg.destination.country) for leg in option.legs):
            findings.append(
                Guardrail(
                    "INTERNATIONAL_CUSTOMS",
                    Severity.INFO,
                    "International transport: customs documentation and extra delays possible.",
                )
            )
        return findings
