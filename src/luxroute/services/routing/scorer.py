"""Time, cost and risk scoring of route options within one candidate set."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import Settings, settings as default_settings
from ...data.geo_reference import is_international
from ...models.domain import Shipment
from .models import RouteOption, RouteScore, Severity
from .templates import TierRules

logger = logging.getLogger(__name__)

BLOCKING_PENALTY = 50.0
WARNING_PENALTY = 25.0
MULTI_HOP_PENALTY = 5.0
INTERNATIONAL_LEG_PENALTY = 5.0
HIGH_VALUE_PENALTY = 10.0


def _relative_score(value: float, maximum: float) -> float:
    """100 for the cheapest or fastest possible, 0 for the worst of the set."""
    if maximum <= 0:
        return 100.0
    return (maximum - value) / maximum * 100.0


class RouteScorer:
    def __init__(self, config: Settings | None = None) -> None:
        self.settings = config or default_settings

    def grade(self, total: float) -> str:
        if total >= self.settings.grade_a_threshold:
            return "A"
        if total >= self.settings.grade_b_threshold:
            return "B"
        return "C"

    def risk_score(self, option: RouteOption, shipment: Shipment) -> float:
        score = 100.0
        if any(finding.blocking for finding in option.guardrails):
            score -= BLOCKING_PENALTY
        warnings = sum(1 for finding in option.guardrails if finding.severity is Severity.WARNING)
        score -= WARNING_PENALTY * warnings

        score -= MULTI_HOP_PENALTY * max(0, len(option.legs) - 2)
        score -= INTERNATIONAL_LEG_PENALTY * sum(
            1 for leg in option.legs if is_international(leg.origin.country, leg.destination.country)
        )
        if shipment.declared_value > self.settings.high_value_threshold:
            score -= HIGH_VALUE_PENALTY
        return max(0.0, min(100.0, score))

    def score_and_rank(
        self,
        options: Sequence[RouteOption],
        rules: TierRules,
        shipment: Shipment,
    ) -> list[RouteOption]:
        """Drop infeasible options, score the rest and keep the tier's best N."""
        feasible = [option for option in options if option.feasible]
        if not feasible:
            return []

        cfg = self.settings
        max_days = max(option.schedule.total_days for option in feasible)
        max_cost = max(option.cost_breakdown.total for option in feasible)

        for option in feasible:
            time_score = _relative_score(option.schedule.total_days, max_days)
            cost_score = _relative_score(option.cost_breakdown.total, max_cost)
            risk_score = self.risk_score(option, shipment)
            total = (
                time_score * cfg.score_weight_time
                + cost_score * cfg.score_weight_cost
                + risk_score * cfg.score_weight_risk
            )
            option.score = RouteScore(
                time=round(time_score, 1),
                cost=round(cost_score, 1),
                risk=round(risk_score, 1),
                total=round(total, 1),
            )
            option.grade = self.grade(option.score.total)

        ranked = sorted(feasible, key=lambda option: option.score.total, reverse=True)
        logger.debug(f"Ranked {[(o.template.value, o.score.total) for o in ranked]}")
        return ranked[: rules.option_count]
