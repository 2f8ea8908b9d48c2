"""
Host model graph - the collaborator layer the controller drives.

Elements, diagrams and views live in one in-memory tree owned by the
ModelEngine, which journals every mutation for undo/redo. The Repository is
the read-only lookup facade handlers use.
"""

from .graph import Element, Diagram, View, generate_element_id, generate_view_id
from .engine import ModelEngine
from .repository import Repository
from . import metamodel

__all__ = [
    # Graph
    "Element",
    "Diagram",
    "View",
    "generate_element_id",
    "generate_view_id",
    # Engine
    "ModelEngine",
    "Repository",
    "metamodel",
]
