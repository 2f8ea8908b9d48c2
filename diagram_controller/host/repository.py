"""
Repository - read-only lookup facade over the model graph.

Handlers resolve every identifier through this facade on each call and never
keep elements or views between requests.
"""

from typing import Optional

from .engine import ModelEngine
from .graph import Diagram, Element, View


class Repository:
    """Lookups and selections over the engine's live graph."""

    def __init__(self, engine: ModelEngine):
        self._engine = engine

    def get_by_id(self, identifier: str) -> Optional[Element | View]:
        return self._engine.get_by_id(identifier)

    def get_element(self, identifier: str) -> Optional[Element]:
        """Like get_by_id, but never returns a view."""
        found = self._engine.get_by_id(identifier)
        return found if isinstance(found, Element) else None

    def get_diagram(self, identifier: str) -> Optional[Diagram]:
        found = self._engine.get_by_id(identifier)
        return found if isinstance(found, Diagram) else None

    def get_view(self, identifier: str) -> Optional[View]:
        found = self._engine.get_by_id(identifier)
        return found if isinstance(found, View) else None

    def select_by_type(self, type_tag: str) -> list[Element]:
        return self._engine.select_by_type(type_tag)

    def select_by_types(self, type_tags) -> list[Element]:
        found: list[Element] = []
        for type_tag in type_tags:
            found.extend(self._engine.select_by_type(type_tag))
        return found

    def all_diagrams(self) -> list[Diagram]:
        return self._engine.all_diagrams()

    def find_view_on_diagram(self, diagram: Diagram, model_id: str) -> Optional[View]:
        """The first view on the diagram showing the given element."""
        for view in diagram.owned_views:
            if view.model is not None and view.model.id == model_id:
                return view
        return None

    def find_view_by_any_id(self, diagram: Diagram, identifier: str) -> Optional[View]:
        """Match a view on the diagram by its own id or by its model's id."""
        for view in diagram.owned_views:
            if view.id == identifier:
                return view
            if view.model is not None and view.model.id == identifier:
                return view
        return None

    def get_views_of(self, element: Element) -> list[View]:
        """Every view of the element, across all diagrams."""
        return self._engine.views_of(element)

    def diagrams_with_view_of(self, element: Element) -> list[Diagram]:
        seen: dict[str, Diagram] = {}
        for view in self._engine.views_of(element):
            if view.diagram is not None:
                seen.setdefault(view.diagram.id, view.diagram)
        return list(seen.values())

    def model_ids_on(self, diagram: Diagram) -> set[str]:
        return {v.model.id for v in diagram.owned_views if v.model is not None}
