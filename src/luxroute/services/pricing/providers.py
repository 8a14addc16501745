"""Live pricing providers."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol
from urllib.parse import urlparse

import httpx

from ...config import Settings, settings as default_settings
from ...errors import ProviderError
from .models import Quote, ServiceType
from .osrm_client import OSRMClient, OSRMGroundProvider

logger = logging.getLogger(__name__)


class PricingProvider(Protocol):
    name: str

    def quote(self, params: Mapping[str, Any]) -> Quote | None:
        """Return a quote, None when the provider has no offer, or raise ProviderError."""


class HttpQuoteProvider:
    """Generic JSON quote endpoint.

    POSTs the lookup parameters and expects ``{"amount": ..., "currency": ...}``
    back. A 204 or an empty body means the provider has no offer.
    """

    def __init__(
        self,
        name: str,
        url: str,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.name = name
        self.url = url
        self.timeout = timeout if timeout is not None else default_settings.provider_timeout_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self._transport,
        )

    def quote(self, params: Mapping[str, Any]) -> Quote | None:
        client = self._get_client()
        try:
            response = client.post(self.url, json=dict(params))
            if response.status_code == httpx.codes.NO_CONTENT:
                return None
            response.raise_for_status()
            data = response.json() if response.content else None
        except httpx.TimeoutException as exc:
            raise ProviderError(self.name, f"timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, str(exc)) from exc
        except ValueError as exc:
            raise ProviderError(self.name, f"invalid JSON response: {exc}") from exc
        finally:
            client.close()

        if not data:
            return None
        try:
            amount = float(data["amount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderError(self.name, "response missing a numeric amount") from exc
        duration = data.get("duration_minutes")
        return Quote(
            amount=amount,
            currency=str(data.get("currency") or "EUR").upper(),
            provider=self.name,
            duration_minutes=float(duration) if duration is not None else None,
            details={k: v for k, v in data.items() if k not in {"amount", "currency", "duration_minutes"}},
        )


def _provider_name(service: ServiceType, url: str) -> str:
    host = urlparse(url).hostname or url
    return f"{service.value}:{host}"


def build_default_providers(config: Settings | None = None) -> dict[ServiceType, list[PricingProvider]]:
    """Provider chains in fallback order, built from configured endpoints."""
    config = config or default_settings
    configured = {
        ServiceType.FLIGHTS: config.flight_provider_urls,
        ServiceType.TRAINS: config.train_provider_urls,
        ServiceType.DHL: config.dhl_provider_urls,
        ServiceType.GROUND: config.ground_provider_urls,
    }
    providers: dict[ServiceType, list[PricingProvider]] = {service: [] for service in ServiceType}
    if config.osrm_base_url:
        providers[ServiceType.GROUND].append(
            OSRMGroundProvider(OSRMClient(config.osrm_base_url, config.osrm_profile, timeout=config.provider_timeout_seconds))
        )
    for service, urls in configured.items():
        for url in urls:
            providers[service].append(
                HttpQuoteProvider(_provider_name(service, url), url, timeout=config.provider_timeout_seconds)
            )
    logger.info(
        "Pricing providers: "
        + ", ".join(f"{service.value}={len(chain)}" for service, chain in providers.items())
    )
    return providers
