"""External pricing lookups: cache, live provider chain, static fallback."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from ...errors import ProviderError
from .budget import APICallBudget
from .fallback import StaticFallbackPricing
from .models import CallReason, PricingResult, QuoteSource, ServiceType
from .providers import PricingProvider

logger = logging.getLogger(__name__)


class ExternalPricingCache:
    """Resolve a price for one lookup, labelling where it came from.

    Order: fresh cache entry, then the live providers in configured order
    (budget permitting), then a stale cache entry, then the static tables.
    """

    def __init__(
        self,
        budget: APICallBudget,
        providers: Mapping[ServiceType, Sequence[PricingProvider]] | None = None,
        fallback: StaticFallbackPricing | None = None,
    ) -> None:
        self.budget = budget
        self.providers = {service: list((providers or {}).get(service, ())) for service in ServiceType}
        self.fallback = fallback or StaticFallbackPricing()

    def get(
        self,
        session_id: str,
        service: ServiceType,
        params: Mapping[str, Any],
        force_refresh: bool = False,
    ) -> PricingResult:
        with self.budget.session_lock(session_id):
            return self._resolve(session_id, service, params, force_refresh)

    def _resolve(
        self,
        session_id: str,
        service: ServiceType,
        params: Mapping[str, Any],
        force_refresh: bool,
    ) -> PricingResult:
        decision = self.budget.check_call(session_id, service, params, force_refresh)

        if decision.reason is CallReason.CACHE_HIT and decision.cached is not None:
            self.budget.record_cache_hit(session_id, service)
            return PricingResult(decision.cached.payload, QuoteSource.CACHE, True, decision.reason, decision.cache_key)

        if decision.should_call:
            for provider in self.providers[service]:
                try:
                    quote = provider.quote(params)
                except ProviderError as exc:
                    logger.warning(f"Pricing provider failed for {service.value}: {exc}")
                    self.budget.record_call(session_id, service, params, None, provider.name, error=str(exc))
                    continue
                except Exception as exc:
                    logger.warning(f"Pricing provider {provider.name} raised unexpectedly for {service.value}: {exc}")
                    self.budget.record_call(session_id, service, params, None, provider.name, error=str(exc))
                    continue
                if quote is None:
                    logger.debug(f"Provider {provider.name} returned no {service.value} quote")
                    continue
                self.budget.record_call(session_id, service, params, quote, provider.name)
                return PricingResult(quote, QuoteSource.LIVE, True, decision.reason, decision.cache_key)

        if decision.cached is not None:
            logger.warning(f"Serving stale {service.value} quote for {decision.cache_key}")
            return PricingResult(decision.cached.payload, QuoteSource.CACHE, False, decision.reason, decision.cache_key)

        logger.warning(f"Using static fallback pricing for {service.value} ({decision.reason.value})")
        quote = self.fallback.quote(service, params)
        return PricingResult(quote, QuoteSource.FALLBACK, False, decision.reason, decision.cache_key)

    def refresh_services(self, services: Iterable[ServiceType] | None = None) -> int:
        """Drop cached quotes so the next lookup for those services goes live."""
        return self.budget.cache.clear(services)
