"""
REST surface: envelopes, the resource compiler, routes and the router.
"""

from .envelope import ApiContext, ApiRequest, status_for
from .families import ALL_FAMILIES
from .router import Router
from .routes import cross_cutting_routes


def build_router(families=ALL_FAMILIES) -> Router:
    """Router over the hand-written routes and every family."""
    return Router(cross_cutting_routes(), list(families))


__all__ = ["ApiContext", "ApiRequest", "Router", "build_router", "status_for"]
