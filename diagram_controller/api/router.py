"""
Router - matches (verb, path) to a handler and dispatches.

Lookup order:
1. Hand-written cross-cutting routes
2. Each family's compiled routes, in registration order
3. GET /api/status (or /) introspection
4. "Not found: METHOD path"

Patterns use single-segment ":name" parameters only. The first structural
match wins; parameters are percent-decoded after matching.
"""

import re
from typing import Any, Iterable, Optional
from urllib.parse import unquote

from .. import __version__
from ..core.errors import ValidationError
from ..core.models import CompiledRoute, FamilyConfiguration, check_unique_prefixes
from ..utils import get_logger
from .compiler import compile_family
from .envelope import ApiContext, ApiRequest, HandlerResult, fail, ok

logger = get_logger("router")

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_component(value: str) -> str:
    """Strict percent-decoding; malformed escapes are a client error."""
    if _BAD_ESCAPE.search(value):
        raise ValidationError("Invalid URL encoding")
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        raise ValidationError("Invalid URL encoding")


def parse_url(url: str) -> tuple[str, dict[str, str]]:
    """
    Split a raw URL into (path, query).

    The path keeps its percent-encoding (it is matched raw) but must decode
    cleanly. A trailing slash is stripped except on the root path.

    Raises:
        ValidationError: on malformed percent-encoding
    """
    path, _, raw_query = url.partition("?")
    decode_component(path)

    query: dict[str, str] = {}
    for pair in raw_query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        query[decode_component(key.replace("+", " "))] = decode_component(value.replace("+", " "))

    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path, query


def route_collisions(routes: Iterable[CompiledRoute]) -> list[str]:
    """(method, pattern) pairs declared more than once."""
    seen: set[tuple[str, str]] = set()
    collisions = []
    for route in routes:
        key = (route.method, route.pattern)
        if key in seen:
            collisions.append(route.describe())
        seen.add(key)
    return collisions


class Router:
    """Immutable routing table built once at start-up."""

    def __init__(self, cross_cutting: list[CompiledRoute], families: list[FamilyConfiguration]):
        check_unique_prefixes(families)
        self._cross_cutting = list(cross_cutting)
        self._families = [(family, compile_family(family)) for family in families]
        self._routes = list(self._cross_cutting)
        for _, family_routes in self._families:
            self._routes.extend(family_routes)

        collisions = route_collisions(self.routes)
        if collisions:
            raise ValueError(f"Route collisions: {', '.join(collisions)}")

        logger.info("Router ready: %d routes across %d families",
                    len(self.routes), len(self._families))

    @property
    def routes(self) -> list[CompiledRoute]:
        """Every route, in match order."""
        return list(self._routes)

    @property
    def families(self) -> list[FamilyConfiguration]:
        return [family for family, _ in self._families]

    def endpoints(self) -> list[str]:
        return ["GET    /api/status", *(route.describe() for route in self.routes)]

    def match(self, method: str, path: str) -> Optional[tuple[CompiledRoute, dict[str, str]]]:
        """Find the first matching route and its decoded path parameters."""
        for route in self._routes:
            raw = route.match(method, path)
            if raw is not None:
                return route, {name: decode_component(value) for name, value in raw.items()}
        return None

    def dispatch(self, ctx: ApiContext, method: str, url: str,
                 body: Optional[dict[str, Any]] = None) -> HandlerResult:
        """
        Route one request.

        Returns an envelope, or an awaitable of one for deferred handlers.
        """
        method = method.upper()
        try:
            path, query = parse_url(url)
        except ValidationError as e:
            return fail(ApiRequest(method=method, path=url), str(e))

        req = ApiRequest(method=method, path=path, query=query, body=body or {})
        try:
            found = self.match(method, path)
        except ValidationError as e:
            return fail(req, str(e))

        if found is not None:
            route, params = found
            req.params = params
            logger.debug("%s %s -> %s", method, path, route.pattern)
            return route.handler(ctx, req)

        if method == "GET" and path in ("/api/status", "/"):
            return ok(req, "Server is running", {
                "status": "running",
                "version": __version__,
                "families": [f.prefix for f in self.families],
                "endpoints": self.endpoints(),
            })

        return fail(req, f"Not found: {method} {path}")
