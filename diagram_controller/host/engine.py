"""
Model Engine - mutation, factory, history and persistence for the model graph.

This module implements:
- One open project (a tree of elements, diagrams and views)
- O(1) element/view lookups via index dictionaries
- Linear undo/redo history using snapshots, one snapshot per compound unit
- The factory: model-only, diagram, and model-with-view construction
- JSON file persistence

Every change to the graph goes through this engine so that it lands in the
undo history. Nested `compound()` blocks collapse into a single undo unit.
"""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from ..core.errors import ConstructionError
from ..core.geometry import get_bounds
from ..utils import get_logger
from . import metamodel
from .graph import DEFAULT_COLLECTION, Diagram, Element, View, from_json_dict

logger = get_logger("engine")

PROJECT_FORMAT_VERSION = 1


class ModelEngine:
    """
    Owns the project graph and every mutation made to it.

    The history system works via snapshots:
    - The first mutation of a unit saves a full snapshot of the project
    - Undo restores the previous snapshot
    - Redo re-applies a snapshot from the future stack

    Restoring a snapshot rebuilds every object, so callers must re-resolve
    identifiers after undo/redo instead of holding on to objects.
    """

    def __init__(self, max_history: int = 100, project_name: str = "Untitled"):
        self._project: Optional[Element] = None
        self._file_path: Optional[Path] = None
        self._history: list[dict] = []  # Past states (snapshots)
        self._future: list[dict] = []   # Future states (for redo)
        self._max_history = max_history
        self._dirty = False
        self._depth = 0            # compound() nesting level
        self._unit_open = False    # snapshot already taken for the current unit
        self._on_change_callbacks: list[Callable] = []

        # O(1) lookup indexes
        self._index: dict[str, Element] = {}                    # id -> element
        self._type_index: dict[str, dict[str, Element]] = {}    # type -> {id: element}
        self._view_index: dict[str, View] = {}                  # id -> view
        self._views_by_model: dict[str, dict[str, View]] = {}   # model id -> {view id: view}

        self.new_project(project_name)

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current project tree."""
        self._index.clear()
        self._type_index.clear()
        self._view_index.clear()
        self._views_by_model.clear()
        if self._project is not None:
            self._index_tree(self._project)

    def _index_tree(self, element: Element):
        for item in [element, *element.descendants()]:
            self._index[item.id] = item
            self._type_index.setdefault(item.type, {})[item.id] = item
            if isinstance(item, Diagram):
                for view in item.owned_views:
                    self._index_view(view)

    def _unindex_tree(self, element: Element):
        for item in [element, *element.descendants()]:
            self._index.pop(item.id, None)
            self._type_index.get(item.type, {}).pop(item.id, None)
            if isinstance(item, Diagram):
                for view in item.owned_views:
                    self._unindex_view(view)

    def _index_view(self, view: View):
        self._view_index[view.id] = view
        if view.model is not None:
            self._views_by_model.setdefault(view.model.id, {})[view.id] = view

    def _unindex_view(self, view: View):
        self._view_index.pop(view.id, None)
        if view.model is not None:
            self._views_by_model.get(view.model.id, {}).pop(view.id, None)

    # --- Properties ---

    @property
    def project(self) -> Element:
        """Get the root element of the open project."""
        return self._project

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for graph changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    # --- History Management ---

    @contextmanager
    def compound(self) -> Iterator["ModelEngine"]:
        """Group every mutation made inside the block into one undo unit."""
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if self._depth == 0 and self._unit_open:
                self._unit_open = False
                self._notify_change()

    def _begin_mutation(self):
        """Snapshot once per unit, before its first change."""
        if self._unit_open:
            return
        self._save_to_history()
        self._unit_open = True
        self._dirty = True

    def _save_to_history(self):
        # New action invalidates the redo stack
        self._future.clear()
        self._history.append(self._project.to_json_dict())
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _restore(self, snapshot: dict):
        self._project = from_json_dict(snapshot)
        self._dirty = True
        self._rebuild_indexes()
        self._notify_change()

    def undo(self) -> bool:
        """Undo the last unit. Returns False if there is nothing to undo."""
        if not self.can_undo:
            return False
        self._future.append(self._project.to_json_dict())
        self._restore(self._history.pop())
        return True

    def redo(self) -> bool:
        """Redo the last undone unit. Returns False if there is nothing to redo."""
        if not self.can_redo:
            return False
        self._history.append(self._project.to_json_dict())
        self._restore(self._future.pop())
        return True

    # --- Project Operations ---

    def new_project(self, name: str = "Untitled") -> Element:
        """Replace the graph with an empty project."""
        self._project = Element(type="Project", name=name)
        self._file_path = None
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._rebuild_indexes()
        self._notify_change()
        return self._project

    def open_project(self, file_path: str | Path) -> Element:
        """Load a project from a JSON file."""
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Project file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)
        if "project" not in data:
            raise ValueError(f"Not a project file: {path}")

        self._project = from_json_dict(data["project"])
        self._file_path = path
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._rebuild_indexes()
        self._notify_change()
        logger.info("Opened project %s from %s", self._project.name, path)
        return self._project

    def save_project(self, file_path: Optional[str | Path] = None) -> Path:
        """
        Save the project to a JSON file.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump({"version": PROJECT_FORMAT_VERSION, "project": self._project.to_json_dict()},
                      f, indent=2)

        self._file_path = path
        self._dirty = False
        logger.info("Saved project to %s", path)
        return path

    def export_diagram(self, diagram: Diagram, file_path: str | Path) -> Path:
        """Write one diagram, its views and the elements they show to a JSON file."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        models = {}
        for view in diagram.owned_views:
            if view.model is not None and view.model is not diagram:
                models[view.model.id] = {
                    "_id": view.model.id,
                    "_type": view.model.type,
                    "name": view.model.name,
                }
        with open(path, "w") as f:
            json.dump({
                "diagram": {"_id": diagram.id, "_type": diagram.type, "name": diagram.name},
                "views": [v.to_json_dict() for v in diagram.owned_views],
                "elements": list(models.values()),
            }, f, indent=2)
        return path

    # --- Lookups ---

    def get_by_id(self, identifier: str) -> Optional[Element | View]:
        """O(1) lookup of an element or view by id."""
        found = self._index.get(identifier)
        if found is not None:
            return found
        return self._view_index.get(identifier)

    def select_by_type(self, type_tag: str) -> list[Element]:
        """All elements carrying a type tag. "Diagram" selects every diagram."""
        if type_tag == "Diagram":
            return self.all_diagrams()
        return list(self._type_index.get(type_tag, {}).values())

    def all_diagrams(self) -> list[Diagram]:
        return [e for e in self._index.values() if isinstance(e, Diagram)]

    def all_elements(self) -> list[Element]:
        return list(self._index.values())

    def views_of(self, element: Element) -> list[View]:
        return list(self._views_by_model.get(element.id, {}).values())

    def search(self, keyword: str, type_tag: Optional[str] = None) -> list[Element]:
        """Case-insensitive match against name and documentation."""
        needle = keyword.lower()
        candidates = self.select_by_type(type_tag) if type_tag else self.all_elements()
        return [
            e for e in candidates
            if e is not self._project
            and (needle in e.name.lower() or needle in e.documentation.lower())
        ]

    # --- Factory ---

    def create_model(self, type_tag: str, parent: Element,
                     field: Optional[str] = None, init: Optional[dict] = None) -> Element:
        """Create a model-only element in one of the parent's collections."""
        if type_tag in metamodel.VIEW_ANCHORED_TYPES:
            raise ConstructionError(
                f'Type "{type_tag}" cannot be created without a view'
            )
        with self.compound():
            self._begin_mutation()
            element = Element(type=metamodel.model_type_of(type_tag))
            for key, value in (init or {}).items():
                element.assign(key, value)
            parent.add_child(element, field or DEFAULT_COLLECTION)
            self._index_tree(element)
        return element

    def create_diagram(self, type_tag: str, parent: Element,
                       name: Optional[str] = None) -> Diagram:
        """
        Create a diagram under the parent.

        Containers the diagram type requires (e.g. a state machine for a
        statechart) are created between parent and diagram unless the parent
        already is one of them. Diagram types with a frame get a frame view.
        """
        chain = metamodel.containers_for(type_tag)
        start = 0
        for i, container_type in enumerate(chain):
            if parent.type == container_type:
                start = i + 1

        with self.compound():
            self._begin_mutation()
            owner = parent
            for container_type in chain[start:]:
                container = Element(type=container_type, name=container_type.removeprefix("UML"))
                owner.add_child(container)
                self._index_tree(container)
                owner = container

            diagram = Diagram(type=type_tag, name=name or type_tag.removeprefix("UML"))
            owner.add_child(diagram)
            self._index_tree(diagram)

            frame_type = metamodel.frame_view_type_of(type_tag)
            if frame_type:
                left, top, width, height = metamodel.DEFAULT_FRAME_GEOMETRY
                frame = View(type=frame_type, diagram=diagram, model=diagram,
                             left=left, top=top, width=width, height=height)
                diagram.owned_views.append(frame)
                self._index_view(frame)
        return diagram

    def create_model_and_view(
        self,
        type_tag: str,
        parent: Element,
        diagram: Diagram,
        geometry: tuple[float, float, float, float] = (100, 100, 200, 180),
        tail_view: Optional[View] = None,
        head_view: Optional[View] = None,
        container_view: Optional[View] = None,
        init: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> tuple[Element, View]:
        """
        Create an element together with its view on a diagram.

        With a tail view the element is a relation and its view an edge
        between tail and head; otherwise a node view placed at geometry
        (x1, y1, x2, y2). A diagram passed as parent is resolved to the
        diagram's own parent.
        """
        if not isinstance(diagram, Diagram):
            raise ConstructionError("A diagram is required to create a view")
        view_type = metamodel.view_type_of(type_tag, diagram.type)
        if view_type is None:
            raise ConstructionError(f'No view type registered for "{type_tag}"')

        owner = parent.parent if isinstance(parent, Diagram) else parent
        if owner is None:
            raise ConstructionError(f'Cannot resolve an owner for "{type_tag}"')

        x1, y1, x2, y2 = geometry
        model_type = metamodel.model_type_of(type_tag)

        with self.compound():
            self._begin_mutation()
            model = Element(type=model_type)
            for key, value in (init or {}).items():
                model.assign(key, value)
            owner.add_child(model, field or DEFAULT_COLLECTION)

            if tail_view is not None:
                self._link_relation(model, tail_view, head_view)
                start = get_bounds(tail_view).center()
                end = get_bounds(head_view).center() if head_view is not None else (x2, y2)
                view = View(type=view_type, diagram=diagram, model=model,
                            tail=tail_view, head=head_view, points=[start, end])
            else:
                view = View(type=view_type, diagram=diagram, model=model,
                            left=x1, top=y1, width=max(x2 - x1, 0), height=max(y2 - y1, 0),
                            container=container_view)

            if model_type == "UMLAction" and diagram.type in metamodel.INLINE_INTERACTION_DIAGRAMS:
                interaction = Element(type="UMLInteraction", name="Interaction")
                model.add_child(interaction)
                inline = Diagram(type="UMLSequenceDiagram", name="Sequence")
                interaction.add_child(inline)
                model.assign("target", inline)

            self._index_tree(model)
            diagram.owned_views.append(view)
            self._index_view(view)
        return model, view

    def _link_relation(self, model: Element, tail_view: View, head_view: Optional[View]):
        end_type = metamodel.ENDED_RELATION_TYPES.get(model.type)
        source = tail_view.model
        target = head_view.model if head_view is not None else None
        if end_type is None:
            model.assign("source", source)
            model.assign("target", target)
            return
        for key, reference in (("end1", source), ("end2", target)):
            end = Element(type=end_type)
            end.parent = model
            end.assign("reference", reference)
            model.props[key] = end

    # --- Mutation ---

    def set_property(self, target: Element | View, prop: str, value: Any):
        """Set one property as a journaled change."""
        with self.compound():
            self._begin_mutation()
            target.assign(prop, value)

    def update_fields(self, target: Element | View, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Apply several property changes as one undo unit.

        Computes the field-level diff against the current values first and
        replays only real changes. Returns the applied diff.
        """
        before = {prop: target.get(prop) for prop in changes}
        diff = {
            prop: value for prop, value in changes.items()
            if _comparable(before[prop]) != _comparable(value)
        }
        if not diff:
            return {}
        with self.compound():
            for prop, value in diff.items():
                self.set_property(target, prop, value)
        return diff

    def delete_elements(self, models: list[Element], views: list[View]):
        """
        Delete elements and views as one undo unit.

        Also removes the elements' descendants, every view showing a deleted
        element, relations left pointing at a deleted element, and edge views
        left without an endpoint.
        """
        doomed: set[Element] = set()
        for model in models:
            doomed.add(model)
            doomed.update(model.descendants())

        # Relations whose endpoints disappear go with them
        roots = list(models)
        changed = True
        while changed:
            changed = False
            for element in self.all_elements():
                if element in doomed:
                    continue
                if any(ref in doomed for ref in _relation_endpoints(element)):
                    roots.append(element)
                    doomed.add(element)
                    doomed.update(element.descendants())
                    changed = True

        doomed_views: set[View] = set(views)
        for element in doomed:
            doomed_views.update(self.views_of(element))
            if isinstance(element, Diagram):
                doomed_views.update(element.owned_views)
        changed = True
        while changed:
            changed = False
            for view in list(self._view_index.values()):
                if view not in doomed_views and (view.head in doomed_views or view.tail in doomed_views):
                    doomed_views.add(view)
                    changed = True

        with self.compound():
            self._begin_mutation()
            for view in doomed_views:
                if view.diagram is not None and view in view.diagram.owned_views:
                    view.diagram.owned_views.remove(view)
                self._unindex_view(view)
            for element in roots:
                if element.parent is not None and element.parent not in doomed:
                    element.parent.remove_child(element)
                self._unindex_tree(element)


def _relation_endpoints(element: Element) -> list[Element]:
    refs = [element.get("source"), element.get("target")]
    for key in ("end1", "end2"):
        end = element.get(key)
        if isinstance(end, Element):
            refs.append(end.get("reference"))
    return [r for r in refs if isinstance(r, Element)]


def _comparable(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_comparable(v) for v in value]
    return value
