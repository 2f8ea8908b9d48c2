"""
Entity-relationship family.

Entities, their columns and relationships are compiled like any other
family. Data models, direct column access, sequences, indexes and DDL
generation don't fit the compiled shape and are exposed through the
hand-written routes in ROUTES:

    GET/POST            /api/erd/data-models
    GET/PUT/DELETE      /api/erd/data-models/:id
    GET/PUT/DELETE      /api/erd/columns/:id
    GET/POST            /api/erd/entities/:id/sequences
    GET/PUT/DELETE      /api/erd/sequences/:id
    GET/POST            /api/erd/entities/:id/indexes
    GET/PUT/DELETE      /api/erd/indexes/:id
    POST                /api/erd/postgresql/ddl

Sequences and indexes are stored as entity tags ("sequence#<name>",
"index#<name>") and are left out of the entity's plain tag list.
"""

import asyncio
from pathlib import Path, PureWindowsPath

from ...core.ddl import INDEX_PREFIX, SEQUENCE_PREFIX, generate_postgresql_ddl, is_index_tag, is_sequence_tag
from ...core.errors import ControllerError, IntegrityError, NotFoundError, ValidationError
from ...core.integrity import check_can_delete
from ...core.models import (
    ChildSpec,
    DEFAULT_UPDATE_FIELDS,
    FamilyConfiguration,
    FieldSpec,
    FieldType,
    RelationSpec,
    ResourceSpec,
)
from ...core.validation import (
    check_field_type,
    check_non_empty_string,
    check_not_empty,
    check_required,
    check_unknown_fields,
    require_valid,
)
from ...utils import get_logger
from ..common import enum_checks, get_typed, resolve_fields, type_checks
from ..envelope import ApiContext, ApiRequest, ok
from ..serializers import serialize_diagram_detail, serialize_node, serialize_tag

logger = get_logger("erd")


ALLOWED_COLUMN_TYPES = (
    "CHAR", "VARCHAR", "TEXT", "CLOB",
    "BOOLEAN",
    "SMALLINT", "INTEGER", "INT", "BIGINT", "TINYINT",
    "FLOAT", "DOUBLE", "REAL", "DECIMAL", "NUMERIC",
    "DATE", "TIME", "DATETIME", "TIMESTAMP",
    "BLOB", "BINARY", "VARBINARY",
    "UUID", "JSON", "JSONB", "XML",
    "SERIAL", "BIGSERIAL",
)

COLUMN_FIELDS = (
    FieldSpec(name="name"),
    FieldSpec(name="type", normalize=str.upper, choices=ALLOWED_COLUMN_TYPES),
    FieldSpec(name="length"),
    FieldSpec(name="primaryKey", type=FieldType.BOOLEAN),
    FieldSpec(name="foreignKey", type=FieldType.BOOLEAN),
    FieldSpec(name="nullable", type=FieldType.BOOLEAN),
    FieldSpec(name="unique", type=FieldType.BOOLEAN),
    FieldSpec(name="documentation"),
    FieldSpec(name="referenceToId", prop="referenceTo", type=FieldType.REFERENCE, ref_types=("ERDColumn",)),
)

DATA_MODEL_FIELDS = ("name",)


# --- Serializers ---

def serialize_column(col):
    if col is None:
        return None
    result = {
        "_id": col.id,
        "_type": col.type,
        "name": col.name,
        "type": col.get("type", ""),
        "length": col.get("length", ""),
        "primaryKey": col.get("primaryKey", False),
        "foreignKey": col.get("foreignKey", False),
        "nullable": col.get("nullable", False),
        "unique": col.get("unique", False),
    }
    if col.documentation:
        result["documentation"] = col.documentation
    reference = col.get("referenceTo")
    if reference is not None:
        result["referenceTo"] = reference.id
    if col.parent is not None:
        result["_parentId"] = col.parent.id
    result["tags"] = [serialize_tag(t) for t in col.children("tags")]
    return result


def serialize_entity(entity):
    if entity is None:
        return None
    result = serialize_node(entity)
    result["columns"] = [serialize_column(c) for c in entity.children("columns")]
    result["tags"] = [
        serialize_tag(t) for t in entity.children("tags")
        if not is_sequence_tag(t) and not is_index_tag(t)
    ]
    return result


def serialize_sequence(tag):
    result = {
        "_id": tag.id,
        "_type": "Sequence",
        "name": tag.name[len(SEQUENCE_PREFIX):],
        "value": tag.get("value", ""),
    }
    if tag.parent is not None:
        result["_parentId"] = tag.parent.id
    return result


def serialize_index(tag):
    result = {
        "_id": tag.id,
        "_type": "Index",
        "name": tag.name[len(INDEX_PREFIX):],
        "definition": tag.get("value", ""),
    }
    if tag.parent is not None:
        result["_parentId"] = tag.parent.id
    return result


def _serialize_end(end):
    reference = end.get("reference")
    return {
        "name": end.name,
        "cardinality": end.get("cardinality", ""),
        "reference": reference.id if reference is not None else None,
    }


def serialize_relationship(rel):
    if rel is None:
        return None
    result = {"_id": rel.id, "_type": rel.type, "name": rel.name,
              "identifying": rel.get("identifying", False)}
    for key in ("end1", "end2"):
        end = rel.get(key)
        if end is not None:
            result[key] = _serialize_end(end)
    if rel.parent is not None:
        result["_parentId"] = rel.parent.id
    return result


def serialize_erd_diagram(diagram):
    result = serialize_diagram_detail(diagram)
    result["entityIds"] = [
        v.model.id for v in diagram.owned_views
        if v.model is not None and v.model.type == "ERDEntity"
    ]
    return result


SERIALIZERS = {
    "ERDEntity": serialize_entity,
    "ERDColumn": serialize_column,
    "ERDRelationship": serialize_relationship,
    "ERDDiagram": serialize_erd_diagram,
    "ERDDataModel": serialize_node,
}


ERD = FamilyConfiguration(
    prefix="erd",
    label="ER Diagram",
    diagram_types=("ERDDiagram",),
    resources=(
        ResourceSpec(
            name="entities",
            types=("ERDEntity",),
            serializer=serialize_entity,
            children=(
                ChildSpec(name="columns", type="ERDColumn", field="columns",
                          create_fields=COLUMN_FIELDS, serializer=serialize_column),
            ),
        ),
    ),
    relations=(
        RelationSpec(
            name="relationships",
            type="ERDRelationship",
            has_ends=True,
            end_fields=("name", "cardinality"),
            end_update_fields=(
                FieldSpec(name="reference", type=FieldType.REFERENCE, ref_types=("ERDEntity",)),
            ),
            create_fields=({"name": "identifying", "type": FieldType.BOOLEAN},),
            update_fields=DEFAULT_UPDATE_FIELDS + (FieldSpec(name="identifying", type=FieldType.BOOLEAN),),
            serializer=serialize_relationship,
        ),
    ),
)

FAMILIES = (ERD,)


# --- Data models ---

def _get_data_model(ctx: ApiContext, identifier: str):
    return get_typed(ctx, identifier, ("ERDDataModel",), "Data model")


def _check_data_model_body(body: dict, update: bool) -> None:
    require_valid(
        check_unknown_fields(body, DATA_MODEL_FIELDS),
        check_field_type(body, "name", FieldType.STRING),
    )
    require_valid(
        check_not_empty(body, DATA_MODEL_FIELDS) if update else None,
        check_non_empty_string(body, "name"),
    )


def list_data_models(ctx: ApiContext, req: ApiRequest):
    models = ctx.repository.select_by_type("ERDDataModel")
    return ok(req, f"Retrieved {len(models)} data model(s)", [serialize_node(m) for m in models])


def create_data_model(ctx: ApiContext, req: ApiRequest):
    _check_data_model_body(req.body, update=False)
    model = ctx.engine.create_model("ERDDataModel", ctx.engine.project,
                                    init={"name": req.body.get("name") or "ERDDataModel1"})
    return ok(req, f'Created data model "{model.name}"', serialize_node(model))


def get_data_model(ctx: ApiContext, req: ApiRequest):
    model = _get_data_model(ctx, req.params["id"])
    return ok(req, f'Retrieved data model "{model.name}"', serialize_node(model))


def update_data_model(ctx: ApiContext, req: ApiRequest):
    _check_data_model_body(req.body, update=True)
    model = _get_data_model(ctx, req.params["id"])
    ctx.engine.update_fields(model, {"name": req.body["name"]})
    return ok(req, f'Updated data model "{model.name}" (fields: name)', serialize_node(model))


def delete_data_model(ctx: ApiContext, req: ApiRequest):
    """Refused while any entity, relationship or diagram lives directly under the model."""
    model = _get_data_model(ctx, req.params["id"])
    owned = list(model.owned())
    entities = sum(1 for e in owned if e.type == "ERDEntity")
    relationships = sum(1 for e in owned if e.type == "ERDRelationship")
    diagrams = sum(1 for e in owned if e.type == "ERDDiagram")
    if entities or relationships or diagrams:
        raise IntegrityError(
            f'Cannot delete data model "{model.name}": {entities} entity(ies), '
            f"{relationships} relationship(s), and {diagrams} diagram(s) exist under it. "
            f"Delete them first."
        )
    name = model.name
    ctx.engine.delete_elements([model], [])
    return ok(req, f'Deleted data model "{name}"', {"deleted": model.id, "name": name})


# --- Columns ---

def _get_column(ctx: ApiContext, identifier: str):
    column = ctx.repository.get_element(identifier)
    if column is None or column.type != "ERDColumn":
        raise NotFoundError("Column", identifier)
    return column


def get_column(ctx: ApiContext, req: ApiRequest):
    column = _get_column(ctx, req.params["id"])
    return ok(req, f'Retrieved column "{column.name}"', serialize_column(column))


def update_column(ctx: ApiContext, req: ApiRequest):
    body = req.body
    names = [spec.name for spec in COLUMN_FIELDS]
    require_valid(check_unknown_fields(body, names), *type_checks(body, COLUMN_FIELDS))
    require_valid(
        check_not_empty(body, names),
        check_non_empty_string(body, "name"),
        *enum_checks(body, COLUMN_FIELDS),
    )
    column = _get_column(ctx, req.params["id"])
    if body.get("referenceToId") == column.id:
        raise ValidationError("A column cannot reference itself via referenceToId")

    values = resolve_fields(ctx, body, COLUMN_FIELDS)
    ctx.engine.update_fields(column, {spec.target: value for spec, value in values})
    updated = ", ".join(spec.target for spec, _ in values)
    return ok(req, f'Updated column "{column.name}" (fields: {updated})', serialize_column(column))


def delete_column(ctx: ApiContext, req: ApiRequest):
    column = _get_column(ctx, req.params["id"])
    check_can_delete(ctx.engine, column, "column")
    name = column.name
    ctx.engine.delete_elements([column], [])
    return ok(req, f'Deleted column "{name}"', {"deleted": column.id, "name": name})


# --- Sequences and indexes (entity tags) ---

SEQUENCE_FIELDS = ("name",)
INDEX_FIELDS = ("name", "definition")


def _get_entity(ctx: ApiContext, identifier: str):
    return get_typed(ctx, identifier, ("ERDEntity",), "Entity")


def _check_tag_body(body: dict, fields: tuple[str, ...], update: bool) -> None:
    require_valid(
        check_unknown_fields(body, fields),
        *(check_field_type(body, f, FieldType.STRING) for f in fields),
    )
    if update:
        require_valid(check_not_empty(body, fields))
    else:
        require_valid(*(check_required(body, f) for f in fields))
    require_valid(*(check_non_empty_string(body, f) for f in fields))


def _check_unique_tag(entity, prefix: str, name: str, kind: str, current=None) -> None:
    for tag in entity.children("tags"):
        if tag is not current and tag.name == prefix + name:
            raise ValidationError(f'{kind} "{name}" already exists on entity "{entity.name}"')


def list_sequences(ctx: ApiContext, req: ApiRequest):
    entity = _get_entity(ctx, req.params["id"])
    tags = [t for t in entity.children("tags") if is_sequence_tag(t)]
    return ok(req, f'Retrieved {len(tags)} sequence(s) from entity "{entity.name}"',
              [serialize_sequence(t) for t in tags])


def create_sequence(ctx: ApiContext, req: ApiRequest):
    _check_tag_body(req.body, SEQUENCE_FIELDS, update=False)
    entity = _get_entity(ctx, req.params["id"])
    name = req.body["name"]
    _check_unique_tag(entity, SEQUENCE_PREFIX, name, "Sequence")
    tag = ctx.engine.create_model("Tag", entity, "tags", init={
        "name": SEQUENCE_PREFIX + name,
        "kind": 0,
        "value": f"CREATE SEQUENCE {name}",
    })
    return ok(req, f'Created sequence "{name}" on entity "{entity.name}"', serialize_sequence(tag))


def _get_sequence(ctx: ApiContext, identifier: str):
    tag = ctx.repository.get_element(identifier)
    if tag is None or not is_sequence_tag(tag):
        raise NotFoundError("Sequence", identifier)
    return tag


def get_sequence(ctx: ApiContext, req: ApiRequest):
    tag = _get_sequence(ctx, req.params["id"])
    result = serialize_sequence(tag)
    return ok(req, f'Retrieved sequence "{result["name"]}"', result)


def update_sequence(ctx: ApiContext, req: ApiRequest):
    """Renaming rewrites the CREATE SEQUENCE statement as well."""
    _check_tag_body(req.body, SEQUENCE_FIELDS, update=True)
    tag = _get_sequence(ctx, req.params["id"])
    name = req.body["name"]
    if tag.parent is not None:
        _check_unique_tag(tag.parent, SEQUENCE_PREFIX, name, "Sequence", current=tag)
    ctx.engine.update_fields(tag, {"name": SEQUENCE_PREFIX + name, "value": f"CREATE SEQUENCE {name}"})
    return ok(req, f'Updated sequence "{name}"', serialize_sequence(tag))


def delete_sequence(ctx: ApiContext, req: ApiRequest):
    tag = _get_sequence(ctx, req.params["id"])
    name = serialize_sequence(tag)["name"]
    ctx.engine.delete_elements([tag], [])
    return ok(req, f'Deleted sequence "{name}"', {"deleted": tag.id, "name": name})


def list_indexes(ctx: ApiContext, req: ApiRequest):
    entity = _get_entity(ctx, req.params["id"])
    tags = [t for t in entity.children("tags") if is_index_tag(t)]
    return ok(req, f'Retrieved {len(tags)} index(es) from entity "{entity.name}"',
              [serialize_index(t) for t in tags])


def create_index(ctx: ApiContext, req: ApiRequest):
    _check_tag_body(req.body, INDEX_FIELDS, update=False)
    entity = _get_entity(ctx, req.params["id"])
    name = req.body["name"]
    _check_unique_tag(entity, INDEX_PREFIX, name, "Index")
    tag = ctx.engine.create_model("Tag", entity, "tags", init={
        "name": INDEX_PREFIX + name,
        "kind": 0,
        "value": req.body["definition"],
    })
    return ok(req, f'Created index "{name}" on entity "{entity.name}"', serialize_index(tag))


def _get_index(ctx: ApiContext, identifier: str):
    tag = ctx.repository.get_element(identifier)
    if tag is None or not is_index_tag(tag):
        raise NotFoundError("Index", identifier)
    return tag


def get_index(ctx: ApiContext, req: ApiRequest):
    tag = _get_index(ctx, req.params["id"])
    result = serialize_index(tag)
    return ok(req, f'Retrieved index "{result["name"]}"', result)


def update_index(ctx: ApiContext, req: ApiRequest):
    body = req.body
    _check_tag_body(body, INDEX_FIELDS, update=True)
    tag = _get_index(ctx, req.params["id"])
    changes = {}
    if "name" in body:
        if tag.parent is not None:
            _check_unique_tag(tag.parent, INDEX_PREFIX, body["name"], "Index", current=tag)
        changes["name"] = INDEX_PREFIX + body["name"]
    if "definition" in body:
        changes["value"] = body["definition"]
    ctx.engine.update_fields(tag, changes)
    result = serialize_index(tag)
    updated = ", ".join(f for f in INDEX_FIELDS if f in body)
    return ok(req, f'Updated index "{result["name"]}" (fields: {updated})', result)


def delete_index(ctx: ApiContext, req: ApiRequest):
    tag = _get_index(ctx, req.params["id"])
    name = serialize_index(tag)["name"]
    ctx.engine.delete_elements([tag], [])
    return ok(req, f'Deleted index "{name}"', {"deleted": tag.id, "name": name})


# --- PostgreSQL DDL (deferred) ---

DDL_FIELDS = (
    FieldSpec(name="path"),
    FieldSpec(name="dataModelId", type=FieldType.REFERENCE, ref_types=("ERDDataModel",)),
)


def _check_absolute_path(body: dict):
    path = body.get("path") or ""
    if not (path.startswith("/") or PureWindowsPath(path).is_absolute()):
        return 'Field "path" must be an absolute path (e.g. "/home/.../schema.sql")'
    return None


def generate_ddl(ctx: ApiContext, req: ApiRequest):
    """Render the script now, write it off the event loop."""
    body = req.body
    names = [spec.name for spec in DDL_FIELDS]
    require_valid(check_unknown_fields(body, names), *type_checks(body, DDL_FIELDS))
    require_valid(check_required(body, "path"), check_non_empty_string(body, "path"))
    require_valid(_check_absolute_path(body))
    values = {spec.name: value for spec, value in resolve_fields(ctx, body, DDL_FIELDS)}
    path = values["path"]
    data_model = values.get("dataModelId")
    text = generate_postgresql_ddl(ctx.engine, data_model.id if data_model is not None else None)

    async def run():
        try:
            await asyncio.to_thread(Path(path).write_text, text, encoding="utf-8")
        except OSError as e:
            raise ControllerError(f"Failed to generate DDL: {e}") from e
        logger.info("DDL written to %s", path)
        return ok(req, f'DDL generated to "{path}"', {"path": path})

    return run()


ROUTES = [
    ("GET", "/api/erd/data-models", list_data_models),
    ("POST", "/api/erd/data-models", create_data_model),
    ("GET", "/api/erd/data-models/:id", get_data_model),
    ("PUT", "/api/erd/data-models/:id", update_data_model),
    ("DELETE", "/api/erd/data-models/:id", delete_data_model),
    ("GET", "/api/erd/columns/:id", get_column),
    ("PUT", "/api/erd/columns/:id", update_column),
    ("DELETE", "/api/erd/columns/:id", delete_column),
    ("GET", "/api/erd/entities/:id/sequences", list_sequences),
    ("POST", "/api/erd/entities/:id/sequences", create_sequence),
    ("GET", "/api/erd/sequences/:id", get_sequence),
    ("PUT", "/api/erd/sequences/:id", update_sequence),
    ("DELETE", "/api/erd/sequences/:id", delete_sequence),
    ("GET", "/api/erd/entities/:id/indexes", list_indexes),
    ("POST", "/api/erd/entities/:id/indexes", create_index),
    ("GET", "/api/erd/indexes/:id", get_index),
    ("PUT", "/api/erd/indexes/:id", update_index),
    ("DELETE", "/api/erd/indexes/:id", delete_index),
    ("POST", "/api/erd/postgresql/ddl", generate_ddl),
]
