"""
Hand-written cross-cutting routes.

These work across families: generic element/tag access, search, undo/redo,
diagram and view operations, layout, and project persistence. They are
matched before any compiled family route.
"""

import asyncio
import re
from pathlib import PureWindowsPath

from ..core.errors import ControllerError, NotFoundError, ValidationError
from ..core.geometry import (
    auto_expand_frame,
    clear_edge_waypoints,
    find_frame_view,
    fit_frame_to_views,
    reroute_edges,
)
from ..core.integrity import check_can_delete, delete_diagrams
from ..core.layout import (
    ALIGNMENTS,
    AXES,
    STRATEGIES,
    Box,
    align_boxes,
    distribute_boxes,
    grid_layout,
    tree_layout,
)
from ..core.models import CompiledRoute, FieldSpec, FieldType
from ..core.validation import (
    check_enum,
    check_field_type,
    check_non_empty_string,
    check_not_empty,
    check_required,
    check_unknown_fields,
    require_valid,
)
from ..host import Diagram, Element, View, metamodel
from ..utils import get_logger
from .common import STYLE_FIELDS, deletion_views, get_diagram, propagate_name, type_checks
from .envelope import ApiContext, ApiRequest, fail, guarded, ok
from .families import erd
from .serializers import (
    serialize_diagram_detail,
    serialize_node,
    serialize_relation,
    serialize_tag,
    serialize_view,
)

logger = get_logger("routes")

ELEMENT_UPDATE_FIELDS = ("name", "documentation")

TAG_FIELDS = ("name", "kind", "value")
TAG_KINDS = {0: "string", 1: "boolean", 2: "number", 3: "reference", 4: "hidden"}

VIEW_UPDATE_FIELDS = (
    FieldSpec(name="left", type=FieldType.NUMBER),
    FieldSpec(name="top", type=FieldType.NUMBER),
    FieldSpec(name="width", type=FieldType.NUMBER),
    FieldSpec(name="height", type=FieldType.NUMBER),
    *(FieldSpec(name=f) for f in STYLE_FIELDS),
)

PROJECT_FIELDS = ("path",)
PROJECT_EXTENSION = ".json"


# --- Shared helpers ---

def _get_element(ctx: ApiContext, identifier: str) -> Element:
    elem = ctx.repository.get_element(identifier)
    if elem is None:
        raise NotFoundError("Element", identifier)
    return elem


def _get_view(ctx: ApiContext, identifier: str) -> View:
    view = ctx.repository.get_view(identifier)
    if view is None:
        raise NotFoundError("View", identifier)
    return view


def serialize_any(elem: Element) -> dict:
    """Kind-specific serialization for the generic element routes."""
    if elem.type in erd.SERIALIZERS:
        return erd.SERIALIZERS[elem.type](elem)
    if isinstance(elem, Diagram):
        return serialize_diagram_detail(elem)
    if elem.type == "Tag":
        return serialize_tag(elem)
    if elem.get("end1") is not None or elem.get("source") is not None:
        return serialize_relation(elem)
    return serialize_node(elem)


def _check_tag_kind(body: dict):
    if "kind" not in body or body["kind"] in TAG_KINDS:
        return None
    labels = ", ".join(f"{k}={label}" for k, label in TAG_KINDS.items())
    return f"Invalid tag kind {body['kind']}. Allowed values: {labels}"


def _check_tag_value(body: dict):
    if "value" not in body:
        return None
    value = body["value"]
    if not isinstance(value, (str, int, float)):
        kind = "object" if value is None or isinstance(value, (dict, list)) else type(value).__name__
        return f'Field "value" must be a string, number, or boolean, got {kind}'
    return None


def _check_absolute_json_path(body: dict):
    path = body.get("path", "")
    if not (path.startswith("/") or PureWindowsPath(path).is_absolute()):
        return f'Field "path" must be an absolute path (e.g. "/home/.../project{PROJECT_EXTENSION}")'
    if not path.lower().endswith(PROJECT_EXTENSION):
        return f'Field "path" must have {PROJECT_EXTENSION} extension (e.g. "/home/.../project{PROJECT_EXTENSION}")'
    return None


def _validate_project_path(body: dict) -> str:
    require_valid(
        check_unknown_fields(body, PROJECT_FIELDS),
        check_field_type(body, "path", FieldType.STRING),
    )
    require_valid(
        check_required(body, "path"),
        check_non_empty_string(body, "path"),
    )
    require_valid(_check_absolute_json_path(body))
    return body["path"]


def _node_views(diagram: Diagram) -> list[View]:
    """Top-level node views a layout pass may move."""
    return [
        v for v in diagram.owned_views
        if not v.is_edge and v.container is None and not v.type.endswith("FrameView")
    ]


def _selected_views(ctx: ApiContext, diagram: Diagram, ids: list) -> list[View]:
    views = []
    for identifier in ids:
        view = ctx.repository.find_view_by_any_id(diagram, identifier)
        if view is None:
            raise ValidationError(f"View not found on diagram: {identifier}")
        if view.is_edge:
            raise ValidationError(f"View is an edge and cannot be aligned: {identifier}")
        views.append(view)
    return views


def _check_id_list(body: dict, field: str):
    value = body.get(field)
    if not isinstance(value, list) or not value or not all(isinstance(v, str) for v in value):
        return f'Field "{field}" must be a non-empty array of strings'
    return None


def _apply_boxes(ctx: ApiContext, views: list[View], boxes: list[Box]) -> list[dict]:
    """Write box positions back and re-route every edge attached to a moved view."""
    by_id = {view.id: view for view in views}
    reroute = []
    for box in boxes:
        view = by_id[box.id]
        if ctx.engine.update_fields(view, {"left": box.x, "top": box.y}):
            reroute.extend(r.to_dict() for r in reroute_edges(ctx.engine, view))
    return reroute


# --- Elements ---

def get_element(ctx: ApiContext, req: ApiRequest):
    elem = _get_element(ctx, req.params["id"])
    return ok(req, f'Retrieved element "{elem.name or elem.id}" (type: {elem.type})', serialize_any(elem))


def update_element(ctx: ApiContext, req: ApiRequest):
    body = req.body
    require_valid(
        check_unknown_fields(body, ELEMENT_UPDATE_FIELDS),
        check_field_type(body, "name", FieldType.STRING),
        check_field_type(body, "documentation", FieldType.STRING),
    )
    require_valid(check_not_empty(body, ELEMENT_UPDATE_FIELDS), check_non_empty_string(body, "name"))
    elem = _get_element(ctx, req.params["id"])
    changes = {f: body[f] for f in ELEMENT_UPDATE_FIELDS if f in body}
    with ctx.engine.compound():
        ctx.engine.update_fields(elem, changes)
        if "name" in changes:
            propagate_name(ctx.engine, elem, changes["name"])
    return ok(req, f'Updated element "{elem.name or elem.id}" (fields: {", ".join(changes)})',
              serialize_any(elem))


def delete_element(ctx: ApiContext, req: ApiRequest):
    elem = _get_element(ctx, req.params["id"])
    if elem is ctx.engine.project:
        raise ValidationError("Cannot delete the project root")
    name = elem.name or elem.id
    check_can_delete(ctx.engine, elem, "element")
    if isinstance(elem, Diagram):
        plan = delete_diagrams(ctx.engine, [elem], metamodel.is_auto_container)
        return ok(req, f'Deleted element "{name}"',
                  {"deleted": elem.id, "name": name, "cascade": plan.summary()})
    ctx.engine.delete_elements([elem], deletion_views(ctx, elem))
    return ok(req, f'Deleted element "{name}"', {"deleted": elem.id, "name": name})


# --- Tags ---

def list_tags(ctx: ApiContext, req: ApiRequest):
    elem = _get_element(ctx, req.params["id"])
    tags = elem.children("tags")
    return ok(req, f'Retrieved {len(tags)} tag(s) from "{elem.name or elem.id}"',
              [serialize_tag(t) for t in tags])


def _tag_checks(body: dict) -> list:
    return [
        check_unknown_fields(body, TAG_FIELDS),
        check_field_type(body, "name", FieldType.STRING),
        check_field_type(body, "kind", FieldType.NUMBER),
        _check_tag_kind(body),
        _check_tag_value(body),
    ]


def create_tag(ctx: ApiContext, req: ApiRequest):
    body = req.body
    require_valid(*_tag_checks(body))
    require_valid(check_non_empty_string(body, "name"))
    elem = _get_element(ctx, req.params["id"])
    tag = ctx.engine.create_model("Tag", elem, "tags", init={
        "name": body.get("name") or "new_tag",
        "kind": body.get("kind", 0),
        "value": body.get("value", ""),
    })
    return ok(req, f'Created tag "{tag.name}" on "{elem.name or elem.id}"', serialize_tag(tag))


def _get_tag(ctx: ApiContext, identifier: str) -> Element:
    tag = ctx.repository.get_element(identifier)
    if tag is None or tag.type != "Tag":
        raise NotFoundError("Tag", identifier)
    return tag


def get_tag(ctx: ApiContext, req: ApiRequest):
    tag = _get_tag(ctx, req.params["id"])
    return ok(req, f'Retrieved tag "{tag.name}"', serialize_tag(tag))


def update_tag(ctx: ApiContext, req: ApiRequest):
    body = req.body
    require_valid(*_tag_checks(body))
    require_valid(check_not_empty(body, TAG_FIELDS), check_non_empty_string(body, "name"))
    tag = _get_tag(ctx, req.params["id"])
    changes = {f: body[f] for f in TAG_FIELDS if f in body}
    ctx.engine.update_fields(tag, changes)
    return ok(req, f'Updated tag "{tag.name}" (fields: {", ".join(changes)})', serialize_tag(tag))


def delete_tag(ctx: ApiContext, req: ApiRequest):
    tag = _get_tag(ctx, req.params["id"])
    name = tag.name
    ctx.engine.delete_elements([tag], [])
    return ok(req, f'Deleted tag "{name}"', {"deleted": tag.id, "name": name})


# --- Search and history ---

def search(ctx: ApiContext, req: ApiRequest):
    query = req.query
    require_valid(
        check_unknown_fields(query, ("keyword", "type")),
        check_required(query, "keyword"),
    )
    found = ctx.engine.search(query["keyword"], query.get("type") or None)
    return ok(req, f'Found {len(found)} element(s) matching "{query["keyword"]}"',
              [serialize_node(e) for e in found])


def _history_state(ctx: ApiContext) -> dict:
    return {"canUndo": ctx.engine.can_undo, "canRedo": ctx.engine.can_redo}


def undo(ctx: ApiContext, req: ApiRequest):
    if not ctx.engine.undo():
        return fail(req, "Nothing to undo", _history_state(ctx))
    return ok(req, "Undo successful", _history_state(ctx))


def redo(ctx: ApiContext, req: ApiRequest):
    if not ctx.engine.redo():
        return fail(req, "Nothing to redo", _history_state(ctx))
    return ok(req, "Redo successful", _history_state(ctx))


# --- Diagrams ---

def list_diagrams(ctx: ApiContext, req: ApiRequest):
    require_valid(check_unknown_fields(req.query, ("type",)))
    diagrams = ctx.repository.all_diagrams()
    if req.query.get("type"):
        diagrams = [d for d in diagrams if d.type == req.query["type"]]
    return ok(req, f"Retrieved {len(diagrams)} diagram(s)", [serialize_diagram_detail(d) for d in diagrams])


def get_any_diagram(ctx: ApiContext, req: ApiRequest):
    diagram = get_diagram(ctx, req.params["id"])
    return ok(req, f'Retrieved diagram "{diagram.name or diagram.id}"', serialize_diagram_detail(diagram))


def delete_any_diagram(ctx: ApiContext, req: ApiRequest):
    diagram = get_diagram(ctx, req.params["id"])
    name = diagram.name
    plan = delete_diagrams(ctx.engine, [diagram], metamodel.is_auto_container)
    return ok(req, f'Deleted diagram "{name}"',
              {"deleted": diagram.id, "name": name, "cascade": plan.summary()})


def delete_diagram_batch(ctx: ApiContext, req: ApiRequest):
    """Delete several diagrams as one unit; orphans are judged after the whole batch."""
    body = req.body
    require_valid(check_unknown_fields(body, ("diagramIds",)), _check_id_list(body, "diagramIds"))
    diagrams = [get_diagram(ctx, i) for i in dict.fromkeys(body["diagramIds"])]
    plan = delete_diagrams(ctx.engine, diagrams, metamodel.is_auto_container)
    return ok(req, f"Deleted {len(diagrams)} diagram(s)", plan.summary())


def list_diagram_views(ctx: ApiContext, req: ApiRequest):
    diagram = get_diagram(ctx, req.params["id"])
    return ok(req, f'Retrieved {len(diagram.owned_views)} view(s) from diagram "{diagram.name}"',
              [serialize_view(v) for v in diagram.owned_views])


# --- Views ---

def update_view(ctx: ApiContext, req: ApiRequest):
    """Move/resize a view or restyle it; attached edges are re-routed best-effort."""
    body = req.body
    names = [spec.name for spec in VIEW_UPDATE_FIELDS]
    require_valid(check_unknown_fields(body, names), *type_checks(body, VIEW_UPDATE_FIELDS))
    require_valid(check_not_empty(body, names))
    for field in ("width", "height"):
        if body.get(field, 0) < 0:
            raise ValidationError(f'Field "{field}" must not be negative')
    view = _get_view(ctx, req.params["id"])

    reroute = []
    with ctx.engine.compound():
        diff = ctx.engine.update_fields(view, dict(body))
        moved = any(f in diff for f in ("left", "top", "width", "height"))
        if moved and not view.is_edge:
            reroute = [r.to_dict() for r in reroute_edges(ctx.engine, view)]
        if view.diagram is not None and not view.type.endswith("FrameView"):
            auto_expand_frame(ctx.engine, view.diagram, ctx.frame_margin)

    data = serialize_view(view)
    data["reroute"] = reroute
    return ok(req, f'Updated view {view.id} (fields: {", ".join(body)})', data)


def reconnect_view(ctx: ApiContext, req: ApiRequest):
    """Re-anchor an edge's ends and reset it to a straight two-point path."""
    body = req.body
    allowed = ("sourceId", "targetId")
    require_valid(
        check_unknown_fields(body, allowed),
        check_field_type(body, "sourceId", FieldType.STRING),
        check_field_type(body, "targetId", FieldType.STRING),
    )
    require_valid(check_not_empty(body, allowed))
    edge = _get_view(ctx, req.params["id"])
    if not edge.is_edge or edge.diagram is None:
        raise ValidationError(f"View is not an edge: {edge.id}")

    ends = {}
    for field, link, label in (("sourceId", "tail", "Source"), ("targetId", "head", "Target")):
        if field in body:
            endpoint = ctx.repository.find_view_by_any_id(edge.diagram, body[field])
            if endpoint is None or endpoint is edge:
                raise ValidationError(f"{label} element not found on diagram: {body[field]}")
            ends[link] = endpoint

    model = edge.model
    with ctx.engine.compound():
        ctx.engine.update_fields(edge, ends)
        if model is not None:
            for link, end_key, plain_key in (("tail", "end1", "source"), ("head", "end2", "target")):
                if link not in ends:
                    continue
                new_model = ends[link].model
                end = model.get(end_key)
                if isinstance(end, Element):
                    ctx.engine.update_fields(end, {"reference": new_model})
                else:
                    ctx.engine.update_fields(model, {plain_key: new_model})
        points = clear_edge_waypoints(ctx.engine, edge)
        auto_expand_frame(ctx.engine, edge.diagram, ctx.frame_margin)

    data = serialize_view(edge)
    data["points"] = [list(p) for p in points]
    return ok(req, f"Reconnected edge {edge.id}", data)


# --- Layout ---

def layout_diagram(ctx: ApiContext, req: ApiRequest):
    body = req.body
    allowed = ("strategy", "spacingX", "spacingY", "startX", "startY", "columns", "orientation")
    require_valid(
        check_unknown_fields(body, allowed),
        check_field_type(body, "strategy", FieldType.STRING),
        *(check_field_type(body, f, FieldType.NUMBER) for f in allowed[1:6]),
        check_field_type(body, "orientation", FieldType.STRING),
    )
    require_valid(
        check_enum(body, "strategy", STRATEGIES),
        check_enum(body, "orientation", ("vertical", "horizontal")),
    )
    diagram = get_diagram(ctx, req.params["id"])
    views = _node_views(diagram)
    boxes = [Box.from_view(v) for v in views]
    options = {
        "spacing_x": body.get("spacingX", 200),
        "spacing_y": body.get("spacingY", 150),
        "start_x": body.get("startX", 100),
        "start_y": body.get("startY", 100),
    }
    strategy = body.get("strategy", "grid")
    if strategy == "tree":
        links = [
            (v.tail.id, v.head.id) for v in diagram.owned_views
            if v.is_edge and v.tail is not None and v.head is not None
        ]
        tree_layout(boxes, links, orientation=body.get("orientation", "vertical"), **options)
    else:
        columns = body.get("columns")
        grid_layout(boxes, columns=int(columns) if columns else None, **options)

    with ctx.engine.compound():
        reroute = _apply_boxes(ctx, views, boxes)
        frame = fit_frame_to_views(ctx.engine, diagram, ctx.frame_margin)

    return ok(req, f'Applied {strategy} layout to {len(views)} view(s) on diagram "{diagram.name}"', {
        "views": [serialize_view(v) for v in views],
        "frame": frame.to_dict() if frame else None,
        "reroute": reroute,
    })


def align_views(ctx: ApiContext, req: ApiRequest):
    body = req.body
    require_valid(
        check_unknown_fields(body, ("viewIds", "alignment")),
        _check_id_list(body, "viewIds"),
        check_field_type(body, "alignment", FieldType.STRING),
    )
    require_valid(check_required(body, "alignment"), check_enum(body, "alignment", ALIGNMENTS))
    diagram = get_diagram(ctx, req.params["id"])
    views = _selected_views(ctx, diagram, body["viewIds"])
    boxes = [Box.from_view(v) for v in views]
    if not align_boxes(boxes, body["alignment"]):
        raise ValidationError("At least 2 views are required to align")
    with ctx.engine.compound():
        reroute = _apply_boxes(ctx, views, boxes)
        auto_expand_frame(ctx.engine, diagram, ctx.frame_margin)
    return ok(req, f'Aligned {len(views)} view(s) ({body["alignment"]})',
              {"views": [serialize_view(v) for v in views], "reroute": reroute})


def distribute_views(ctx: ApiContext, req: ApiRequest):
    body = req.body
    require_valid(
        check_unknown_fields(body, ("viewIds", "axis")),
        _check_id_list(body, "viewIds"),
        check_field_type(body, "axis", FieldType.STRING),
    )
    require_valid(check_enum(body, "axis", AXES))
    diagram = get_diagram(ctx, req.params["id"])
    views = _selected_views(ctx, diagram, body["viewIds"])
    boxes = [Box.from_view(v) for v in views]
    axis = body.get("axis", "horizontal")
    if not distribute_boxes(boxes, axis):
        raise ValidationError("At least 3 views are required to distribute")
    with ctx.engine.compound():
        reroute = _apply_boxes(ctx, views, boxes)
        auto_expand_frame(ctx.engine, diagram, ctx.frame_margin)
    return ok(req, f"Distributed {len(views)} view(s) ({axis})",
              {"views": [serialize_view(v) for v in views], "reroute": reroute})


def fit_frame(ctx: ApiContext, req: ApiRequest):
    body = req.body
    require_valid(
        check_unknown_fields(body, ("margin",)),
        check_field_type(body, "margin", FieldType.NUMBER),
    )
    diagram = get_diagram(ctx, req.params["id"])
    if find_frame_view(diagram) is None:
        raise ValidationError(f'Diagram "{diagram.name}" has no frame view')
    frame = fit_frame_to_views(ctx.engine, diagram, body.get("margin", ctx.frame_margin))
    return ok(req, f'Fitted frame of diagram "{diagram.name}"', frame.to_dict())


# --- Project persistence (deferred) ---

def save_project(ctx: ApiContext, req: ApiRequest):
    path = _validate_project_path(req.body)

    async def run():
        try:
            await asyncio.to_thread(ctx.engine.save_project, path)
        except OSError as e:
            raise ControllerError(f"Failed to save project: {e}") from e
        return ok(req, f'Project saved to "{path}"', {"path": path})

    return run()


def open_project(ctx: ApiContext, req: ApiRequest):
    path = _validate_project_path(req.body)

    async def run():
        try:
            project = await asyncio.to_thread(ctx.engine.open_project, path)
        except (OSError, ValueError) as e:
            raise ControllerError(f"Failed to open project: {e}") from e
        return ok(req, f'Project opened from "{path}"', {"path": path, "projectName": project.name})

    return run()


def export_diagram(ctx: ApiContext, req: ApiRequest):
    path = _validate_project_path(req.body)
    diagram = get_diagram(ctx, req.params["id"])

    async def run():
        try:
            await asyncio.to_thread(ctx.engine.export_diagram, diagram, path)
        except OSError as e:
            raise ControllerError(f"Failed to export diagram: {e}") from e
        return ok(req, f'Diagram "{diagram.name}" exported to "{path}"', {"path": path, "diagramId": diagram.id})

    return run()


_TABLE = [
    ("GET", "/api/elements/:id", get_element),
    ("PUT", "/api/elements/:id", update_element),
    ("DELETE", "/api/elements/:id", delete_element),
    ("GET", "/api/elements/:id/tags", list_tags),
    ("POST", "/api/elements/:id/tags", create_tag),
    ("GET", "/api/tags/:id", get_tag),
    ("PUT", "/api/tags/:id", update_tag),
    ("DELETE", "/api/tags/:id", delete_tag),
    ("GET", "/api/search", search),
    ("POST", "/api/undo", undo),
    ("POST", "/api/redo", redo),
    ("GET", "/api/diagrams", list_diagrams),
    ("POST", "/api/diagrams/delete", delete_diagram_batch),
    ("GET", "/api/diagrams/:id", get_any_diagram),
    ("DELETE", "/api/diagrams/:id", delete_any_diagram),
    ("GET", "/api/diagrams/:id/views", list_diagram_views),
    ("POST", "/api/diagrams/:id/layout", layout_diagram),
    ("POST", "/api/diagrams/:id/align", align_views),
    ("POST", "/api/diagrams/:id/distribute", distribute_views),
    ("POST", "/api/diagrams/:id/fit-frame", fit_frame),
    ("POST", "/api/diagrams/:id/export", export_diagram),
    ("PUT", "/api/views/:id", update_view),
    ("PUT", "/api/views/:id/reconnect", reconnect_view),
    ("POST", "/api/project/save", save_project),
    ("POST", "/api/project/open", open_project),
]


def cross_cutting_routes() -> list[CompiledRoute]:
    """The hand-written route table, ERD extras included."""
    table = _TABLE + erd.ROUTES
    return [CompiledRoute.build(method, pattern, guarded(handler)) for method, pattern, handler in table]
