"""Route group exports."""

from . import health, routes, visits

__all__ = ["health", "routes", "visits"]
