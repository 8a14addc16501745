"""Error taxonomy for route calculation."""

from __future__ import annotations


class RoutePlanningError(Exception):
    """Base class for all route planning failures."""


class ValidationError(RoutePlanningError, ValueError):
    """Unsupported tier or a shipment missing a required field. Aborts the whole call."""


class HubUnavailableError(RoutePlanningError):
    """No hub satisfies the tier constraints, even after the relaxed fallbacks."""

    def __init__(self, constraint: str, message: str | None = None) -> None:
        self.constraint = constraint
        super().__init__(message or f"No hub available satisfying constraint: {constraint}")


NoHubAvailable = HubUnavailableError


class LegResolutionError(RoutePlanningError):
    """No transit mode could be resolved for a leg; only the owning option becomes infeasible."""

    def __init__(self, message: str, leg_order: int | None = None) -> None:
        self.leg_order = leg_order
        super().__init__(message)


class ProviderError(RoutePlanningError):
    """A live pricing provider failed. Handled inside the provider chain."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}")
