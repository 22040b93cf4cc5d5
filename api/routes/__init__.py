"""API Routes Package."""

from api.routes import distru, health, menu, messaging

__all__ = [
    "distru",
    "health",
    "menu",
    "messaging",
]
