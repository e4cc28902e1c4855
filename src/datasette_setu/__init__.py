"""Datasette plugin exposing the setu-gateway voice-to-catalog actions."""

from datasette_setu.plugin import (
    register_routes,
    skip_csrf,
    startup,
)

__all__ = [
    "register_routes",
    "skip_csrf",
    "startup",
]
