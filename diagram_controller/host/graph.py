"""
In-memory model graph: elements, diagrams and views.

Every object carries an explicit type tag (e.g. "UMLClass", "UMLClassView")
that handlers compare by value. Elements own named collections of child
elements; diagrams additionally own their views. References between objects
are plain Python references in memory and ids on disk.

Serialization Format:
- Element: {_id, _type, name, documentation, props, collections}
- Diagram: Element plus ownedViews
- View: {_id, _type, model, left, top, width, height, points, head, tail,
  container, props}
- A reference to another object is written as {"$ref": "<id>"}
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


DEFAULT_COLLECTION = "ownedElements"


def generate_element_id() -> str:
    """Generate a unique element ID."""
    return f"e{uuid.uuid4().hex[:12]}"


def generate_view_id() -> str:
    """Generate a unique view ID."""
    return f"v{uuid.uuid4().hex[:12]}"


@dataclass(eq=False)
class Element:
    """A node of the model graph. Not drawable by itself."""
    type: str
    id: str = field(default_factory=generate_element_id)
    name: str = ""
    documentation: str = ""
    parent: Optional["Element"] = field(default=None, repr=False)
    parent_field: Optional[str] = None
    props: dict[str, Any] = field(default_factory=dict)
    collections: dict[str, list["Element"]] = field(default_factory=dict)

    # --- Property access ---

    def get(self, prop: str, default: Any = None) -> Any:
        if prop in ("name", "documentation"):
            return getattr(self, prop)
        return self.props.get(prop, default)

    def assign(self, prop: str, value: Any) -> None:
        """Raw write. Mutations outside the engine bypass the undo history."""
        if prop in ("name", "documentation"):
            setattr(self, prop, "" if value is None else value)
        elif value is None:
            self.props.pop(prop, None)
        else:
            self.props[prop] = value

    def resolve(self, path: str) -> Any:
        """Follow a dotted property path such as "end1.reference"."""
        current: Any = self
        for part in path.split("."):
            if not isinstance(current, Element):
                return None
            current = current.get(part)
        return current

    # --- Ownership ---

    def children(self, collection: str) -> list["Element"]:
        return self.collections.get(collection, [])

    def owned(self) -> Iterator["Element"]:
        """All directly owned elements, across every collection."""
        for items in self.collections.values():
            yield from items
        for value in self.props.values():
            if isinstance(value, Element) and value.parent is self:
                yield value

    def descendants(self) -> Iterator["Element"]:
        """Depth-first walk of the ownership tree, excluding self."""
        for child in self.owned():
            yield child
            yield from child.descendants()

    def add_child(self, child: "Element", collection: str = DEFAULT_COLLECTION) -> None:
        child.parent = self
        child.parent_field = collection
        self.collections.setdefault(collection, []).append(child)

    def remove_child(self, child: "Element") -> None:
        items = self.collections.get(child.parent_field or DEFAULT_COLLECTION, [])
        if child in items:
            items.remove(child)
        for key, value in list(self.props.items()):
            if value is child:
                del self.props[key]
        child.parent = None

    @property
    def is_diagram(self) -> bool:
        return False

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict."""
        return {
            "_id": self.id,
            "_type": self.type,
            "name": self.name,
            "documentation": self.documentation,
            "props": {k: _encode(v, self) for k, v in self.props.items()},
            "collections": {
                k: [c.to_json_dict() for c in items]
                for k, items in self.collections.items()
            },
        }


@dataclass(eq=False)
class Diagram(Element):
    """A model element that owns views."""
    owned_views: list["View"] = field(default_factory=list, repr=False)

    @property
    def is_diagram(self) -> bool:
        return True

    def to_json_dict(self) -> dict:
        result = super().to_json_dict()
        result["ownedViews"] = [v.to_json_dict() for v in self.owned_views]
        return result


@dataclass(eq=False)
class View:
    """
    A diagram-scoped placement of an element.

    Node views use left/top/width/height. Edge views carry an ordered point
    list and head/tail endpoint views; their box stays zero until a layout
    pass assigns one.
    """
    type: str
    diagram: Optional[Diagram] = field(default=None, repr=False)
    model: Optional[Element] = field(default=None, repr=False)
    id: str = field(default_factory=generate_view_id)
    left: float = 0
    top: float = 0
    width: float = 0
    height: float = 0
    points: list[tuple[float, float]] = field(default_factory=list)
    head: Optional["View"] = field(default=None, repr=False)
    tail: Optional["View"] = field(default=None, repr=False)
    container: Optional["View"] = field(default=None, repr=False)
    props: dict[str, Any] = field(default_factory=dict)

    GEOMETRY = ("left", "top", "width", "height", "points")
    LINKS = ("head", "tail", "container")

    @property
    def is_edge(self) -> bool:
        return self.head is not None or self.tail is not None

    def get(self, prop: str, default: Any = None) -> Any:
        if prop in self.GEOMETRY or prop in self.LINKS:
            return getattr(self, prop)
        return self.props.get(prop, default)

    def assign(self, prop: str, value: Any) -> None:
        if prop == "points":
            self.points = [tuple(p) for p in value or []]
        elif prop in self.GEOMETRY or prop in self.LINKS:
            setattr(self, prop, value)
        elif value is None:
            self.props.pop(prop, None)
        else:
            self.props[prop] = value

    def to_json_dict(self) -> dict:
        return {
            "_id": self.id,
            "_type": self.type,
            "model": self.model.id if self.model else None,
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
            "points": [list(p) for p in self.points],
            "head": self.head.id if self.head else None,
            "tail": self.tail.id if self.tail else None,
            "container": self.container.id if self.container else None,
            "props": dict(self.props),
        }


# --- Serialization helpers ---

def _encode(value: Any, owner: Element) -> Any:
    if isinstance(value, Element):
        if value.parent is owner and value.parent_field is None:
            # Owned structured value (e.g. an association end)
            return {"$owned": value.to_json_dict()}
        return {"$ref": value.id}
    if isinstance(value, View):
        return {"$ref": value.id}
    if isinstance(value, list):
        return [_encode(v, owner) for v in value]
    return value


def from_json_dict(data: dict) -> Element:
    """
    Rebuild an ownership tree from its JSON form.

    Objects are created in a first pass and references relinked in a second,
    so forward references within the tree are allowed.
    """
    objects: dict[str, Any] = {}
    pending_props: list[tuple[Any, dict]] = []
    pending_views: list[tuple[View, dict]] = []

    def build(node: dict, parent: Optional[Element], collection: Optional[str]) -> Element:
        cls = Diagram if "ownedViews" in node else Element
        element = cls(
            type=node["_type"],
            id=node["_id"],
            name=node.get("name", ""),
            documentation=node.get("documentation", ""),
        )
        element.parent = parent
        element.parent_field = collection
        objects[element.id] = element

        raw_props = {}
        for key, value in node.get("props", {}).items():
            if isinstance(value, dict) and "$owned" in value:
                element.props[key] = build(value["$owned"], element, None)
            else:
                raw_props[key] = value
        pending_props.append((element, raw_props))

        for key, items in node.get("collections", {}).items():
            element.collections[key] = [build(child, element, key) for child in items]

        if isinstance(element, Diagram):
            for view_data in node["ownedViews"]:
                view = View(
                    type=view_data["_type"],
                    id=view_data["_id"],
                    diagram=element,
                    left=view_data.get("left", 0),
                    top=view_data.get("top", 0),
                    width=view_data.get("width", 0),
                    height=view_data.get("height", 0),
                    points=[tuple(p) for p in view_data.get("points", [])],
                    props=dict(view_data.get("props", {})),
                )
                objects[view.id] = view
                element.owned_views.append(view)
                pending_views.append((view, view_data))
        return element

    def decode(value: Any) -> Any:
        if isinstance(value, dict) and "$ref" in value:
            return objects.get(value["$ref"])
        if isinstance(value, list):
            return [decode(v) for v in value]
        return value

    root = build(data, None, None)

    for element, props in pending_props:
        for key, value in props.items():
            element.props[key] = decode(value)

    for view, view_data in pending_views:
        view.model = objects.get(view_data.get("model"))
        view.head = objects.get(view_data.get("head"))
        view.tail = objects.get(view_data.get("tail"))
        view.container = objects.get(view_data.get("container"))

    return root
