"""Route calculation orchestration service."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Iterable, Mapping, Sequence

from ...config import Settings, settings as default_settings
from ...data.hub_price_book import HubPriceBook
from ...errors import LegResolutionError, ValidationError
from ...models.domain import HubSnapshot, Shipment
from ..pricing import (
    APICallBudget,
    ExternalPricingCache,
    PricingCacheStore,
    PricingProvider,
    ServiceType,
    build_default_providers,
)
from .cost_aggregator import CostAggregator
from .guardrails import GuardrailValidator
from .hub_selector import HubSelector
from .leg_builder import LegBuilder, validate_route_pattern
from .models import RejectedOption, RouteCalculationResult, RouteOption, RouteTemplate, SelectedHubs
from .scheduler import Scheduler
from .scorer import RouteScorer
from .templates import TierRules, rules_for_tier
from .travel_planner import TravelPlanner

logger = logging.getLogger(__name__)

FRAGILITY_LEVELS = {"low", "medium", "high"}


def validate_shipment(shipment: Shipment) -> None:
    """Reject shipments that cannot be planned at all."""
    rules_for_tier(shipment.tier)
    for role, party in (("sender", shipment.sender), ("buyer", shipment.buyer)):
        if party is None or not (party.city or "").strip():
            raise ValidationError(f"Shipment {role} city is required.")
        if not (party.country or "").strip():
            raise ValidationError(f"Shipment {role} country is required.")
    if shipment.declared_value is None or shipment.declared_value < 0:
        raise ValidationError("Declared value must be zero or positive.")
    if shipment.sla_target_date is None:
        raise ValidationError("SLA target date is required.")
    if shipment.weight_kg <= 0:
        raise ValidationError("Weight must be positive.")
    if shipment.fragility not in FRAGILITY_LEVELS:
        raise ValidationError(f"Unsupported fragility level: {shipment.fragility}")


class RouteCalculationEngine:
    """Owns the pricing cache and call budget and runs the planning pipeline.

    One engine serves many requests; each request gets its own pricing
    session so the live-call cap applies per calculation.
    """

    def __init__(
        self,
        price_book: HubPriceBook | None = None,
        providers: Mapping[ServiceType, Sequence[PricingProvider]] | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = config or default_settings
        self.price_book = price_book or HubPriceBook.from_settings(self.settings)
        self.cache = PricingCacheStore(self.settings, clock)
        self.budget = APICallBudget(
            self.cache, self.settings.api_hard_cap, timedelta(minutes=self.settings.session_ttl_minutes)
        )
        if providers is None:
            providers = build_default_providers(self.settings)
        self.pricing = ExternalPricingCache(self.budget, providers)

        self.hub_selector = HubSelector(self.price_book, self.settings)
        self.leg_builder = LegBuilder()
        self.travel_planner = TravelPlanner(self.pricing, self.price_book, self.settings)
        self.scheduler = Scheduler(self.settings, clock)
        self.cost_aggregator = CostAggregator(self.price_book, self.settings)
        self.guardrails = GuardrailValidator(self.settings)
        self.scorer = RouteScorer(self.settings)

    def calculate_route_options(
        self,
        shipment: Shipment,
        hub_snapshot: Sequence[HubSnapshot] | None = None,
        session_id: str | None = None,
        force_refresh: bool = False,
        allow_margin_override: bool = False,
    ) -> RouteCalculationResult:
        validate_shipment(shipment)
        rules = rules_for_tier(shipment.tier)
        session = self.budget.start_session(session_id)

        hubs = self.price_book.merge_snapshot(hub_snapshot)
        selected = self.hub_selector.select(shipment, hubs, rules)

        evaluated = self._evaluate_templates(
            rules, shipment, selected, session.session_id, force_refresh, allow_margin_override
        )
        candidates = [item for item in evaluated if isinstance(item, RouteOption)]
        rejected = [item for item in evaluated if isinstance(item, RejectedOption)]
        for option in candidates:
            if not option.feasible:
                rejected.append(
                    RejectedOption(
                        option.template,
                        [f"Estimated delivery {option.schedule.estimated_delivery.isoformat()} misses the SLA target."],
                    )
                )

        ranked = self.scorer.score_and_rank(candidates, rules, shipment)
        logger.info(
            f"Session {session.session_id}: {len(ranked)} option(s), {len(rejected)} rejected "
            f"for tier {shipment.tier} {shipment.sender.city} -> {shipment.buyer.city}"
        )
        return RouteCalculationResult(
            session_id=session.session_id,
            tier=shipment.tier,
            hubs=selected,
            options=ranked,
            rejected=rejected,
            cost_report=self.budget.cost_report(session.session_id),
        )

    def cost_report(self, session_id: str) -> dict:
        return self.budget.cost_report(session_id)

    def end_session(self, session_id: str) -> dict | None:
        return self.budget.end_session(session_id)

    def refresh_services(self, services: Iterable[ServiceType] | None = None) -> int:
        return self.pricing.refresh_services(services)

    def _evaluate_templates(
        self,
        rules: TierRules,
        shipment: Shipment,
        hubs: SelectedHubs,
        session_id: str,
        force_refresh: bool,
        allow_margin_override: bool,
    ) -> list[RouteOption | RejectedOption]:
        def evaluate(template: RouteTemplate) -> RouteOption | RejectedOption:
            return self.evaluate_template(template, shipment, hubs, session_id, force_refresh, allow_margin_override)

        if self.settings.parallel_template_evaluation and len(rules.templates) > 1:
            with ThreadPoolExecutor(max_workers=len(rules.templates)) as executor:
                return list(executor.map(evaluate, rules.templates))
        return [evaluate(template) for template in rules.templates]

    def evaluate_template(
        self,
        template: RouteTemplate,
        shipment: Shipment,
        hubs: SelectedHubs,
        session_id: str,
        force_refresh: bool = False,
        allow_margin_override: bool = False,
    ) -> RouteOption | RejectedOption:
        """Build, resolve, schedule, cost and check one template."""
        legs = self.leg_builder.build(template, shipment, hubs)
        violations = validate_route_pattern(template, legs, shipment.tier)
        if violations:
            logger.warning(f"Discarding {template.value}: {violations}")
            return RejectedOption(template, violations)

        warnings: list[str] = []
        ready = self.scheduler.start_time(shipment)
        try:
            for leg in legs:
                departure = self.scheduler.leg_departure(leg, ready)
                leg.plan = self.travel_planner.resolve_leg(leg, shipment, session_id, departure, force_refresh)
                warnings.extend(leg.plan.warnings)
                ready = departure + timedelta(
                    minutes=leg.plan.travel_minutes, hours=self.scheduler.processing_hours(leg)
                )
        except LegResolutionError as exc:
            logger.warning(f"Template {template.value} infeasible: {exc}")
            return RejectedOption(template, [str(exc)])

        schedule = self.scheduler.build_schedule(legs, shipment, hubs)
        breakdown = self.cost_aggregator.aggregate(legs, hubs, shipment, schedule)
        option = RouteOption(
            template=template,
            tier=shipment.tier,
            hubs=hubs,
            legs=legs,
            cost_breakdown=breakdown,
            schedule=schedule,
            feasible=schedule.feasible,
            warnings=warnings,
        )
        self.guardrails.validate(option, shipment, allow_margin_override)
        return option
