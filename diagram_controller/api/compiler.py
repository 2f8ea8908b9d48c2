"""
Resource compiler - turns one FamilyConfiguration into its CRUD routes.

For a family with prefix P the compiler produces, in order:

    GET/POST            /api/P/diagrams           (when the family has diagram types)
    GET/PUT/DELETE      /api/P/diagrams/:id
    GET/POST            /api/P/<resource>
    GET/PUT/DELETE      /api/P/<resource>/:id
    GET/POST            /api/P/<resource>/:id/<child>
    GET/POST            /api/P/<relation>
    GET/PUT/DELETE      /api/P/<relation>/:id

Handlers are closures over the frozen specs; they hold no graph state and
re-resolve every identifier per call. Each one is wrapped by `guarded`, so
controller errors come back as envelopes instead of escaping the router.
"""

from functools import partial

from ..core.errors import ConstructionError, ValidationError
from ..core.geometry import auto_expand_frame, clear_edge_waypoints
from ..core.integrity import check_can_delete, delete_diagrams
from ..core.models import (
    ChildSpec,
    CompiledRoute,
    FamilyConfiguration,
    FieldSpec,
    FieldType,
    RelationSpec,
    ResourceSpec,
)
from ..core.validation import (
    check_field_type,
    check_non_empty_string,
    check_not_empty,
    check_required,
    check_unknown_fields,
    require_valid,
)
from ..host import Element, metamodel
from ..utils import get_logger
from .common import (
    COORDINATE_FIELDS,
    DEFAULT_GEOMETRY,
    STYLE_FIELDS,
    allowed_fields,
    deletion_views,
    enum_checks,
    get_diagram,
    get_typed,
    pick_type,
    propagate_name,
    resolve_fields,
    type_checks,
)
from .envelope import ApiContext, ApiRequest, guarded, ok
from .serializers import serialize_child, serialize_diagram_detail, serialize_node, serialize_relation

logger = get_logger("compiler")

RESOURCE_CREATE_FIELDS = ("diagramId", "name", *COORDINATE_FIELDS, "tailViewId", *STYLE_FIELDS)
RELATION_CREATE_FIELDS = ("diagramId", "sourceId", "targetId", "name", *COORDINATE_FIELDS, *STYLE_FIELDS)
CHILD_CREATE_FIELDS = ("name", "diagramId")
END_KEYS = ("end1", "end2")

# Wire names the create handlers consume themselves; never applied as properties
RESERVED_FIELDS = frozenset(
    RESOURCE_CREATE_FIELDS + RELATION_CREATE_FIELDS + END_KEYS + ("type",)
)


def compile_family(config: FamilyConfiguration) -> list[CompiledRoute]:
    """Build the complete route table for one family."""
    prefix = f"/api/{config.prefix}"
    routes: list[CompiledRoute] = []

    def add(method: str, pattern: str, handler):
        routes.append(CompiledRoute.build(method, pattern, guarded(handler)))

    if config.diagram_types:
        base = f"{prefix}/diagrams"
        add("GET", base, _list_diagrams(config))
        add("POST", base, _create_diagram(config))
        add("GET", f"{base}/:id", _get_diagram(config))
        add("PUT", f"{base}/:id", _update_diagram(config))
        add("DELETE", f"{base}/:id", _delete_diagram(config))

    for res in config.resources:
        base = f"{prefix}/{res.name}"
        add("GET", base, _list_resource(res))
        add("POST", base, _create_resource(res))
        add("GET", f"{base}/:id", _get_resource(res))
        add("PUT", f"{base}/:id", _update_resource(res))
        add("DELETE", f"{base}/:id", _delete_resource(res))
        for child in res.children:
            add("GET", f"{base}/:id/{child.name}", _list_children(res, child))
            add("POST", f"{base}/:id/{child.name}", _create_child(res, child))

    for rel in config.relations:
        base = f"{prefix}/{rel.name}"
        add("GET", base, _list_relation(rel))
        add("POST", base, _create_relation(rel))
        add("GET", f"{base}/:id", _get_relation(rel))
        add("PUT", f"{base}/:id", _update_relation(rel))
        add("DELETE", f"{base}/:id", _delete_relation(rel))

    return routes


def _filter_on_diagram(ctx: ApiContext, req: ApiRequest, elements: list[Element]) -> list[Element]:
    """Apply the optional ?diagramId= filter of list handlers."""
    diagram_id = req.query.get("diagramId")
    if not diagram_id:
        return elements
    on_diagram = ctx.repository.model_ids_on(get_diagram(ctx, diagram_id))
    return [e for e in elements if e.id in on_diagram]


def _apply(ctx: ApiContext, target, values: list[tuple[FieldSpec, object]]) -> None:
    for spec, value in values:
        ctx.engine.set_property(target, spec.target, value)


# --- Diagram handlers ---

def _list_diagrams(config: FamilyConfiguration):
    def handler(ctx: ApiContext, req: ApiRequest):
        diagrams = ctx.repository.select_by_types(config.diagram_types)
        return ok(req, f"Retrieved {len(diagrams)} diagram(s)",
                  [serialize_diagram_detail(d) for d in diagrams])
    return handler


def _create_diagram(config: FamilyConfiguration):
    allowed = ["name", "parentId"]
    if len(config.diagram_types) > 1:
        allowed.append("type")

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(
            check_unknown_fields(body, allowed),
            check_field_type(body, "name", FieldType.STRING),
            check_field_type(body, "parentId", FieldType.STRING),
            check_field_type(body, "type", FieldType.STRING),
        )
        require_valid(check_non_empty_string(body, "name"))
        diagram_type = pick_type(body, config.diagram_types, label="diagram type")

        if body.get("parentId"):
            parent = ctx.repository.get_element(body["parentId"])
            if parent is None:
                raise ValidationError(f"Parent not found: {body['parentId']}")
        else:
            parent = ctx.engine.project

        try:
            diagram = ctx.engine.create_diagram(diagram_type, parent, name=body.get("name"))
        except ConstructionError as e:
            logger.warning("Diagram construction failed: %s", e)
            raise ConstructionError(f"Failed to create diagram: {e}") from e
        return ok(req, f'Created diagram "{diagram.name}" ({diagram_type})',
                  serialize_diagram_detail(diagram))
    return handler


def _get_diagram(config: FamilyConfiguration):
    def handler(ctx: ApiContext, req: ApiRequest):
        diagram = get_diagram(ctx, req.params["id"], config.diagram_types)
        return ok(req, f'Retrieved diagram "{diagram.name or diagram.id}"',
                  serialize_diagram_detail(diagram))
    return handler


def _update_diagram(config: FamilyConfiguration):
    allowed = ["name"]

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(
            check_unknown_fields(body, allowed),
            check_field_type(body, "name", FieldType.STRING),
        )
        require_valid(check_not_empty(body, allowed), check_non_empty_string(body, "name"))
        diagram = get_diagram(ctx, req.params["id"], config.diagram_types)
        ctx.engine.update_fields(diagram, {"name": body["name"]})
        return ok(req, f'Updated diagram "{diagram.name}"', serialize_diagram_detail(diagram))
    return handler


def _delete_diagram(config: FamilyConfiguration):
    def handler(ctx: ApiContext, req: ApiRequest):
        diagram = get_diagram(ctx, req.params["id"], config.diagram_types)
        name = diagram.name
        plan = delete_diagrams(ctx.engine, [diagram], metamodel.is_auto_container)
        return ok(req, f'Deleted diagram "{name}"',
                  {"deleted": req.params["id"], "name": name, "cascade": plan.summary()})
    return handler


# --- Resource (node) handlers ---

def _list_resource(res: ResourceSpec):
    serialize = res.serializer or serialize_node

    def handler(ctx: ApiContext, req: ApiRequest):
        elements = _filter_on_diagram(ctx, req, ctx.repository.select_by_types(res.lookup_types))
        return ok(req, f"Retrieved {len(elements)} {res.name}", [serialize(e) for e in elements])
    return handler


def _create_resource(res: ResourceSpec):
    base = RESOURCE_CREATE_FIELDS + (("type",) if len(res.types) > 1 else ())
    allowed = allowed_fields(base, res.create_fields)
    serialize = res.serializer or serialize_node

    def factory_type(elem_type: str) -> str:
        alias = res.aliases.get(elem_type)
        return alias.factory_type if alias else elem_type

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(
            check_unknown_fields(body, allowed),
            check_field_type(body, "diagramId", FieldType.STRING),
            check_field_type(body, "name", FieldType.STRING),
            *(check_field_type(body, f, FieldType.NUMBER) for f in COORDINATE_FIELDS),
            check_field_type(body, "type", FieldType.STRING),
            check_field_type(body, "tailViewId", FieldType.STRING),
            *(check_field_type(body, f, FieldType.STRING) for f in STYLE_FIELDS),
            *type_checks(body, res.create_fields),
        )
        require_valid(check_required(body, "diagramId"), *enum_checks(body, res.create_fields))

        diagram = get_diagram(ctx, body["diagramId"])
        elem_type = pick_type(body, res.types)
        if diagram.parent is None:
            raise ValidationError("Diagram has no parent model")
        parent = diagram if elem_type in res.diagram_as_parent else diagram.parent

        alias = res.aliases.get(elem_type)
        if metamodel.view_type_of(factory_type(elem_type), diagram.type) is None:
            creatable = [
                t for t in res.types
                if metamodel.view_type_of(factory_type(t), diagram.type) is not None
            ]
            raise ValidationError(
                f'Type "{elem_type}" cannot be created on a diagram (no view type registered). '
                f'Allowed: {", ".join(creatable)}'
            )

        geometry = tuple(body.get(f, d) for f, d in zip(COORDINATE_FIELDS, DEFAULT_GEOMETRY))

        container = None
        if body.get("tailViewId"):
            container = ctx.repository.find_view_by_any_id(diagram, body["tailViewId"])
            if container is None:
                raise ValidationError(f"View not found on diagram: {body['tailViewId']}")
            if container.model is not None:
                # A frame view shows the diagram itself; its content belongs to the diagram's owner
                parent = diagram.parent if container.model is diagram else container.model
        elif diagram.type == "UMLTimingDiagram":
            container = next(
                (v for v in diagram.owned_views if v.type == "UMLTimingFrameView"), None
            )
            if container is not None:
                parent = diagram.parent

        values = resolve_fields(ctx, body, res.create_fields, skip=RESERVED_FIELDS)

        with ctx.engine.compound():
            try:
                model, view = ctx.engine.create_model_and_view(
                    factory_type(elem_type), parent, diagram,
                    geometry=geometry,
                    container_view=container,
                    init=dict(alias.init) if alias else None,
                )
            except ConstructionError as e:
                logger.warning("Element construction failed for %s: %s", elem_type, e)
                raise ConstructionError(f"Failed to create element: {e}") from e

            if body.get("name"):
                ctx.engine.set_property(model, "name", body["name"])
                propagate_name(ctx.engine, model, body["name"])
            _apply(ctx, model, values)
            for prop in STYLE_FIELDS:
                if prop in body:
                    ctx.engine.set_property(view, prop, body[prop])
            auto_expand_frame(ctx.engine, diagram, ctx.frame_margin)

        return ok(req, f'Created {res.kind} "{model.name or elem_type}"', serialize(model))
    return handler


def _get_resource(res: ResourceSpec):
    serialize = res.serializer or serialize_node

    def handler(ctx: ApiContext, req: ApiRequest):
        elem = get_typed(ctx, req.params["id"], res.lookup_types, res.title)
        return ok(req, f'Retrieved {res.kind} "{elem.name or elem.id}"', serialize(elem))
    return handler


def _update_element(ctx: ApiContext, req: ApiRequest, elem: Element,
                    specs: tuple[FieldSpec, ...]) -> list[str]:
    """Apply an already-validated update body. Returns the wire names applied."""
    values = resolve_fields(ctx, req.body, specs)
    changes = {spec.target: value for spec, value in values}
    with ctx.engine.compound():
        ctx.engine.update_fields(elem, changes)
        if "name" in changes:
            propagate_name(ctx.engine, elem, changes["name"])
    return [spec.name for spec, _ in values]


def _update_resource(res: ResourceSpec):
    names = [spec.name for spec in res.update_fields]
    serialize = res.serializer or serialize_node

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(check_unknown_fields(body, names), *type_checks(body, res.update_fields))
        require_valid(
            check_not_empty(body, names),
            check_non_empty_string(body, "name"),
            *enum_checks(body, res.update_fields),
        )
        elem = get_typed(ctx, req.params["id"], res.lookup_types, res.title)
        updated = _update_element(ctx, req, elem, res.update_fields)
        return ok(req, f'Updated {res.kind} "{elem.name or elem.id}" (fields: {", ".join(updated)})',
                  serialize(elem))
    return handler


def _delete_element(ctx: ApiContext, req: ApiRequest, elem: Element, kind: str):
    check_can_delete(ctx.engine, elem, kind)
    name = elem.name or elem.id
    ctx.engine.delete_elements([elem], deletion_views(ctx, elem))
    return ok(req, f'Deleted {kind} "{name}"', {"deleted": elem.id, "name": name})


def _delete_resource(res: ResourceSpec):
    def handler(ctx: ApiContext, req: ApiRequest):
        elem = get_typed(ctx, req.params["id"], res.lookup_types, res.title)
        return _delete_element(ctx, req, elem, res.kind)
    return handler


# --- Child handlers ---

def _list_children(res: ResourceSpec, child: ChildSpec):
    serialize = child.serializer or serialize_child

    def handler(ctx: ApiContext, req: ApiRequest):
        parent = get_typed(ctx, req.params["id"], res.lookup_types, res.title)
        children = parent.children(child.field)
        return ok(req, f"Retrieved {len(children)} {child.name}", [serialize(c) for c in children])
    return handler


def _create_child_with_view(ctx: ApiContext, body: dict, parent: Element, child: ChildSpec) -> Element:
    """Fallback for types that can only exist anchored to their parent's view."""
    diagram, parent_view = None, None
    if body.get("diagramId"):
        diagram = ctx.repository.get_diagram(body["diagramId"])
        if diagram is not None:
            parent_view = ctx.repository.find_view_on_diagram(diagram, parent.id)
    if diagram is None:
        for candidate in ctx.repository.diagrams_with_view_of(parent):
            diagram = candidate
            parent_view = ctx.repository.find_view_on_diagram(candidate, parent.id)
            break
    if diagram is None:
        raise ValidationError(
            f"Cannot create {child.kind}: no diagram found with a view of the parent element. "
            f"Specify diagramId or create the parent on a diagram first."
        )

    geometry = DEFAULT_GEOMETRY
    if parent_view is not None:
        geometry = (parent_view.left, parent_view.top, parent_view.left + 20, parent_view.top + 20)
    try:
        model, _ = ctx.engine.create_model_and_view(
            child.type, parent, diagram,
            geometry=geometry, container_view=parent_view, field=child.field,
        )
    except ConstructionError as e:
        logger.warning("Child construction failed for %s: %s", child.type, e)
        raise ConstructionError(f"Failed to create {child.kind}: {e}") from e
    auto_expand_frame(ctx.engine, diagram, ctx.frame_margin)
    return model


def _create_child(res: ResourceSpec, child: ChildSpec):
    allowed = allowed_fields(CHILD_CREATE_FIELDS, child.create_fields)
    serialize = child.serializer or serialize_child

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(
            check_unknown_fields(body, allowed),
            check_field_type(body, "name", FieldType.STRING),
            check_field_type(body, "diagramId", FieldType.STRING),
            *type_checks(body, child.create_fields),
        )
        require_valid(check_non_empty_string(body, "name"), *enum_checks(body, child.create_fields))
        parent = get_typed(ctx, req.params["id"], res.lookup_types, res.title)
        values = resolve_fields(ctx, body, child.create_fields, skip=CHILD_CREATE_FIELDS)

        with ctx.engine.compound():
            try:
                model = ctx.engine.create_model(child.type, parent, child.field)
            except ConstructionError as e:
                logger.debug("Model-only construction refused for %s (%s), using a view", child.type, e)
                model = _create_child_with_view(ctx, body, parent, child)
            if body.get("name"):
                ctx.engine.set_property(model, "name", body["name"])
            _apply(ctx, model, values)

        return ok(req, f'Created {child.kind} "{model.name or child.type}"', serialize(model))
    return handler


# --- Relation (edge) handlers ---

def _end_specs(rel: RelationSpec, key: str, update: bool = False) -> list[FieldSpec]:
    """
    End sub-fields flattened to "end1.name" style wire names.

    The flattened spec keeps the end's own property name as its target, so
    "end1.name" still writes `name` on the end element.
    """
    specs = rel.end_fields + (rel.end_update_fields if update else ())
    return [
        spec.model_copy(update={"name": f"{key}.{spec.name}", "prop": spec.target})
        for spec in specs
    ]


def _flatten_end(body: dict, key: str) -> dict:
    end = body.get(key)
    if not isinstance(end, dict):
        return {}
    return {f"{key}.{name}": value for name, value in end.items()}


def _end_checks(rel: RelationSpec, body: dict, update: bool) -> list:
    checks = []
    for key in END_KEYS:
        if key not in body or not isinstance(body[key], dict):
            continue
        flat = _flatten_end(body, key)
        specs = _end_specs(rel, key, update)
        names = [s.name for s in specs]
        checks.append(check_unknown_fields(flat, names))
        if update and not flat:
            checks.append(check_not_empty(flat, names))
        checks.extend(type_checks(flat, specs))
        # An end always points somewhere; its reference can be moved, never cleared
        checks.extend(
            check_non_empty_string(flat, s.name) for s in specs if s.type == FieldType.REFERENCE
        )
    return checks


def _resolve_ends(ctx: ApiContext, rel: RelationSpec, body: dict,
                  update: bool = False) -> dict[str, list[tuple[FieldSpec, object]]]:
    """Validate end enums and resolve end values per end key."""
    resolved = {}
    for key in END_KEYS:
        if key not in body:
            continue
        flat = _flatten_end(body, key)
        specs = _end_specs(rel, key, update)
        require_valid(*enum_checks(flat, specs))
        resolved[key] = resolve_fields(ctx, flat, specs)
    return resolved


def _apply_ends(ctx: ApiContext, model: Element,
                ends: dict[str, list[tuple[FieldSpec, object]]]) -> list[str]:
    """Write resolved end values. Returns the flattened wire names applied."""
    applied = []
    for key, values in ends.items():
        end = model.get(key)
        if isinstance(end, Element) and values:
            ctx.engine.update_fields(end, {spec.target: value for spec, value in values})
            applied.extend(spec.name for spec, _ in values)
    return applied


def _reanchor_edges(ctx: ApiContext, model: Element,
                    ends: dict[str, list[tuple[FieldSpec, object]]]) -> None:
    """
    Follow retargeted end references with the relation's edge views.

    An edge end moves onto the new referent's view when that referent is
    shown on the edge's diagram; otherwise the edge is left as drawn.
    """
    retargeted = {
        link: value
        for key, link in zip(END_KEYS, ("tail", "head"))
        for spec, value in ends.get(key, ())
        if spec.target == "reference" and isinstance(value, Element)
    }
    if not retargeted:
        return
    for edge in ctx.repository.get_views_of(model):
        if not edge.is_edge or edge.diagram is None:
            continue
        anchors = {}
        for link, target in retargeted.items():
            view = ctx.repository.find_view_on_diagram(edge.diagram, target.id)
            if view is not None and view is not edge.get(link):
                anchors[link] = view
        if anchors:
            ctx.engine.update_fields(edge, anchors)
            clear_edge_waypoints(ctx.engine, edge)


def _list_relation(rel: RelationSpec):
    serialize = rel.serializer or partial(serialize_relation, spec=rel)

    def handler(ctx: ApiContext, req: ApiRequest):
        elements = _filter_on_diagram(ctx, req, ctx.repository.select_by_type(rel.lookup_type))
        return ok(req, f"Retrieved {len(elements)} {rel.name}", [serialize(e) for e in elements])
    return handler


def _create_relation(rel: RelationSpec):
    base = RELATION_CREATE_FIELDS + (END_KEYS if rel.has_ends else ())
    allowed = allowed_fields(base, rel.create_fields)
    serialize = rel.serializer or partial(serialize_relation, spec=rel)

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(
            check_unknown_fields(body, allowed),
            check_field_type(body, "diagramId", FieldType.STRING),
            check_field_type(body, "sourceId", FieldType.STRING),
            check_field_type(body, "targetId", FieldType.STRING),
            check_field_type(body, "name", FieldType.STRING),
            *(check_field_type(body, f, FieldType.NUMBER) for f in COORDINATE_FIELDS),
            *(check_field_type(body, f, FieldType.STRING) for f in STYLE_FIELDS),
            *(check_field_type(body, k, FieldType.OBJECT) for k in END_KEYS),
            *type_checks(body, rel.create_fields),
            *_end_checks(rel, body, update=False),
        )
        require_valid(
            check_required(body, "diagramId"),
            check_required(body, "sourceId"),
            None if rel.target_optional else check_required(body, "targetId"),
            *enum_checks(body, rel.create_fields),
        )

        diagram = get_diagram(ctx, body["diagramId"])
        tail_view = ctx.repository.find_view_by_any_id(diagram, body["sourceId"])
        if tail_view is None:
            raise ValidationError(f"Source element not found on diagram: {body['sourceId']}")
        head_view = None
        if body.get("targetId"):
            head_view = ctx.repository.find_view_by_any_id(diagram, body["targetId"])
            if head_view is None:
                raise ValidationError(f"Target element not found on diagram: {body['targetId']}")
        if diagram.parent is None:
            raise ValidationError("Diagram has no parent model")

        values = resolve_fields(ctx, body, rel.create_fields, skip=RESERVED_FIELDS)
        ends = _resolve_ends(ctx, rel, body) if rel.has_ends else {}
        geometry = tuple(body.get(f, d) for f, d in zip(COORDINATE_FIELDS, DEFAULT_GEOMETRY))

        with ctx.engine.compound():
            try:
                model, view = ctx.engine.create_model_and_view(
                    rel.type, diagram.parent, diagram,
                    geometry=geometry, tail_view=tail_view, head_view=head_view,
                )
            except ConstructionError as e:
                logger.warning("Relation construction failed for %s: %s", rel.type, e)
                raise ConstructionError(f"Failed to create relation: {e}") from e

            if body.get("name"):
                ctx.engine.set_property(model, "name", body["name"])
            _apply_ends(ctx, model, ends)
            _apply(ctx, model, values)
            for prop in STYLE_FIELDS:
                if prop in body:
                    ctx.engine.set_property(view, prop, body[prop])
            auto_expand_frame(ctx.engine, diagram, ctx.frame_margin)

        return ok(req, f'Created {rel.kind} "{model.name or rel.type}"', serialize(model))
    return handler


def _get_relation(rel: RelationSpec):
    serialize = rel.serializer or partial(serialize_relation, spec=rel)

    def handler(ctx: ApiContext, req: ApiRequest):
        elem = get_typed(ctx, req.params["id"], (rel.lookup_type,), rel.title)
        return ok(req, f'Retrieved {rel.kind} "{elem.name or elem.id}"', serialize(elem))
    return handler


def _update_relation(rel: RelationSpec):
    names = [spec.name for spec in rel.update_fields]
    if rel.has_ends:
        names += [k for k in END_KEYS if k not in names]
    serialize = rel.serializer or partial(serialize_relation, spec=rel)

    def handler(ctx: ApiContext, req: ApiRequest):
        body = req.body
        require_valid(
            check_unknown_fields(body, names),
            *type_checks(body, rel.update_fields),
            *(check_field_type(body, k, FieldType.OBJECT) for k in END_KEYS if rel.has_ends),
            *(_end_checks(rel, body, update=True) if rel.has_ends else ()),
        )
        require_valid(
            check_not_empty(body, names),
            check_non_empty_string(body, "name"),
            *enum_checks(body, rel.update_fields),
        )
        elem = get_typed(ctx, req.params["id"], (rel.lookup_type,), rel.title)
        ends = _resolve_ends(ctx, rel, body, update=True) if rel.has_ends else {}
        with ctx.engine.compound():
            updated = _update_element(ctx, req, elem, rel.update_fields)
            updated += _apply_ends(ctx, elem, ends)
            _reanchor_edges(ctx, elem, ends)
        return ok(req, f'Updated {rel.kind} "{elem.name or elem.id}" (fields: {", ".join(updated)})',
                  serialize(elem))
    return handler


def _delete_relation(rel: RelationSpec):
    def handler(ctx: ApiContext, req: ApiRequest):
        elem = get_typed(ctx, req.params["id"], (rel.lookup_type,), rel.title)
        return _delete_element(ctx, req, elem, rel.kind)
    return handler

