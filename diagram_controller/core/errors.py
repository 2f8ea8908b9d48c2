"""
Error taxonomy for controller operations.

Every failure a handler can report to a caller is one of these. Handlers
raise them; the compiled-route boundary turns them into response envelopes.
Anything else escaping a handler is an internal failure.
"""


class ControllerError(ValueError):
    """Base class for errors reported back to the caller."""


class ValidationError(ControllerError):
    """Malformed or disallowed request shape, detected before touching the graph."""


class NotFoundError(ControllerError):
    """Identifier absent or resolving to the wrong kind of element."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class IntegrityError(ControllerError):
    """Operation refused because it would leave dangling references."""

    def __init__(self, message: str, referents: list | None = None):
        self.referents = referents or []
        super().__init__(message)


class ConstructionError(ControllerError):
    """The graph factory or engine rejected an otherwise well-formed request."""


class GeometryError(ControllerError):
    """A geometry step could not be computed for the given views."""
