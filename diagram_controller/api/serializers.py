"""
Default JSON serializers for elements, diagrams, views and tags.

Family configurations may pass their own serializer; most build on these.
References to other objects are always emitted as ids.
"""

from typing import Any, Callable, Iterable, Optional

from ..core.models import RelationSpec
from ..host import Diagram, Element, View

CHILD_PROPS = ("type", "defaultValue", "visibility", "isStatic")


def plain(value: Any) -> Any:
    """JSON form of a property value."""
    if isinstance(value, (Element, View)):
        return value.id
    if isinstance(value, (list, tuple)):
        return [plain(v) for v in value]
    return value


def serialize_node(elem: Optional[Element]) -> Optional[dict]:
    if elem is None:
        return None
    result = {"_id": elem.id, "_type": elem.type, "name": elem.name}
    if elem.documentation:
        result["documentation"] = elem.documentation
    if elem.parent is not None:
        result["_parentId"] = elem.parent.id
    return result


def node_with(*props: str, **collections: Callable[[Element], dict]) -> Callable[[Element], dict]:
    """
    Build a node serializer that also emits the given properties.

    Keyword arguments name child collections and the serializer to use for
    each of their members, e.g. node_with("kind", columns=serialize_column).
    """
    def serialize(elem: Element) -> dict:
        result = serialize_node(elem)
        for prop in props:
            value = elem.get(prop)
            if value is not None:
                result[prop] = plain(value)
        for name, child_serializer in collections.items():
            result[name] = [child_serializer(c) for c in elem.children(name)]
        return result

    return serialize


def serialize_end(end: Optional[Element], fields: Iterable[str]) -> Optional[dict]:
    if end is None:
        return None
    result = {}
    reference = end.get("reference")
    if reference is not None:
        result["reference"] = reference.id
    for name in fields:
        if name == "reference":
            continue
        value = end.get(name)
        if value is not None:
            result[name] = plain(value)
    return result


def serialize_relation(elem: Optional[Element], spec: Optional[RelationSpec] = None) -> Optional[dict]:
    if elem is None:
        return None
    result = serialize_node(elem)
    end1, end2 = elem.get("end1"), elem.get("end2")
    if spec is not None and spec.has_ends and end1 is not None and end2 is not None:
        fields = [f.target for f in spec.end_fields]
        result["end1"] = serialize_end(end1, fields)
        result["end2"] = serialize_end(end2, fields)
    else:
        source, target = elem.get("source"), elem.get("target")
        if source is not None:
            result["sourceId"] = source.id
            result["sourceName"] = source.name
        if target is not None:
            result["targetId"] = target.id
            result["targetName"] = target.name
    if spec is not None:
        for field_spec in spec.create_fields:
            value = elem.get(field_spec.target)
            if value is not None:
                result[field_spec.name] = plain(value)
    return result


def serialize_child(elem: Optional[Element]) -> Optional[dict]:
    if elem is None:
        return None
    result = serialize_node(elem)
    for prop in CHILD_PROPS:
        value = elem.props.get(prop)
        if value is not None:
            result[prop] = plain(value)
    return result


def serialize_tag(tag: Optional[Element]) -> Optional[dict]:
    if tag is None:
        return None
    result = {
        "_id": tag.id,
        "_type": tag.type,
        "name": tag.name,
        "kind": tag.get("kind", 0),
        "value": plain(tag.get("value", "")),
    }
    if tag.parent is not None:
        result["_parentId"] = tag.parent.id
    return result


def serialize_diagram(diagram: Optional[Diagram]) -> Optional[dict]:
    if diagram is None:
        return None
    return {
        "_id": diagram.id,
        "_type": diagram.type,
        "name": diagram.name,
        "_parentId": diagram.parent.id if diagram.parent is not None else None,
    }


def serialize_diagram_detail(diagram: Optional[Diagram]) -> Optional[dict]:
    if diagram is None:
        return None
    result = serialize_diagram(diagram)
    result["ownedViewsCount"] = len(diagram.owned_views)
    return result


def serialize_view(view: Optional[View]) -> Optional[dict]:
    if view is None:
        return None
    result = {
        "_id": view.id,
        "_type": view.type,
        "left": view.left,
        "top": view.top,
        "width": view.width,
        "height": view.height,
    }
    if view.model is not None:
        result["modelId"] = view.model.id
    if view.is_edge:
        result["points"] = [list(p) for p in view.points]
        result["tailId"] = view.tail.id if view.tail is not None else None
        result["headId"] = view.head.id if view.head is not None else None
    if view.container is not None:
        result["containerId"] = view.container.id
    for prop, value in view.props.items():
        result[prop] = plain(value)
    return result
