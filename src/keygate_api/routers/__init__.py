"""API routers package."""

from keygate_api.routers import admin, auth, keys

__all__ = [
    "admin",
    "auth",
    "keys",
]
