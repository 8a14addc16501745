"""Route group exports."""

from . import health, routes

__all__ = ["health", "routes"]
