"""External pricing: cache, call budget and provider chain."""

from .budget import APICallBudget, Session
from .cache import PricingCacheStore
from .fallback import StaticFallbackPricing
from .models import CallDecision, CallReason, PricingResult, Quote, QuoteSource, ServiceType
from .providers import HttpQuoteProvider, PricingProvider, build_default_providers
from .service import ExternalPricingCache

__all__ = [
    "APICallBudget",
    "CallDecision",
    "CallReason",
    "ExternalPricingCache",
    "HttpQuoteProvider",
    "PricingCacheStore",
    "PricingProvider",
    "PricingResult",
    "Quote",
    "QuoteSource",
    "ServiceType",
    "Session",
    "StaticFallbackPricing",
    "build_default_providers",
]
