"""
PostgreSQL DDL generation for entity-relationship models.

Renders every data model (or one) as a single script, section by section:

    Schema, Drop sequences, Drop tables, Sequences, Create tables,
    Unique constraints, FK indexes, Foreign key constraints, Indexes, Comments

Names come from tags where present (tag names compare case-insensitively):
- "schema" on a data model, defaulting to public
- "table" on an entity, "column" and "default" on a column
Otherwise entity and column names are used with spaces turned into
underscores. Sequences and indexes live on entities as tags named
"sequence#<name>" and "index#<name>" whose value is the SQL statement.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..host.engine import ModelEngine
    from ..host.graph import Element


SEQUENCE_PREFIX = "sequence#"
INDEX_PREFIX = "index#"
DEFAULT_SCHEMA = "public"

_SEQUENCE_NAME = re.compile(r"CREATE SEQUENCE\s+(?:IF NOT EXISTS\s+)?(\S+)", re.IGNORECASE)
_SEQUENCE_HEAD = re.compile(r"CREATE SEQUENCE(\s+(?:IF NOT EXISTS\s+)?)", re.IGNORECASE)
_UNQUALIFIED_ON = re.compile(r"\bON\s+(?!public\.|\w+\.)(\w+)", re.IGNORECASE)


@dataclass(frozen=True)
class PgType:
    """How one column type is written in PostgreSQL."""
    name: str
    has_length: bool = False
    serial: Optional[str] = None  # auto-increment form, chosen by length "-1"


PG_TYPES = {
    "CHAR": PgType("char", has_length=True),
    "VARCHAR": PgType("varchar", has_length=True),
    "TEXT": PgType("text"),
    "CLOB": PgType("text"),
    "BOOLEAN": PgType("boolean"),
    "SMALLINT": PgType("smallint", serial="smallserial"),
    "INTEGER": PgType("integer", serial="serial"),
    "INT": PgType("integer", serial="serial"),
    "BIGINT": PgType("bigint", serial="bigserial"),
    "TINYINT": PgType("smallint"),
    "FLOAT": PgType("real"),
    "DOUBLE": PgType("double precision"),
    "REAL": PgType("real"),
    "DECIMAL": PgType("numeric", has_length=True),
    "NUMERIC": PgType("numeric", has_length=True),
    "DATE": PgType("date"),
    "TIME": PgType("time without time zone"),
    "DATETIME": PgType("timestamp with time zone"),
    "TIMESTAMP": PgType("timestamp without time zone"),
    "BLOB": PgType("bytea"),
    "BINARY": PgType("bytea"),
    "VARBINARY": PgType("bytea"),
    "UUID": PgType("uuid"),
    "JSON": PgType("json"),
    "JSONB": PgType("jsonb"),
    "XML": PgType("xml"),
    "SERIAL": PgType("serial"),
    "BIGSERIAL": PgType("bigserial"),
}


# --- Naming helpers ---

def is_sequence_tag(tag: "Element") -> bool:
    return tag.type == "Tag" and tag.name.startswith(SEQUENCE_PREFIX)


def is_index_tag(tag: "Element") -> bool:
    return tag.type == "Tag" and tag.name.startswith(INDEX_PREFIX)


def tag_value(elem: "Element", tag_name: str) -> Optional[str]:
    """Value of the element's first tag with this name, ignoring case."""
    wanted = tag_name.lower()
    for tag in elem.children("tags"):
        if tag.name.lower() == wanted:
            value = tag.get("value")
            return None if value is None else str(value)
    return None


def table_name(entity: "Element") -> str:
    return tag_value(entity, "table") or entity.name.replace(" ", "_")


def column_name(column: "Element") -> str:
    return tag_value(column, "column") or column.name.replace(" ", "_")


def schema_name(data_model: "Element") -> str:
    return tag_value(data_model, "schema") or DEFAULT_SCHEMA


def map_column_type(column: "Element") -> str:
    """PostgreSQL type of a column; a length of -1 selects the serial form."""
    declared = column.get("type") or ""
    pg_type = PG_TYPES.get((declared or "VARCHAR").upper())
    if pg_type is None:
        return declared or "varchar"
    length = column.get("length")
    length = "" if length is None else str(length)
    if pg_type.serial and length == "-1":
        return pg_type.serial
    if pg_type.has_length and length and length != "-1":
        return f"{pg_type.name}({length})"
    return pg_type.name


def escape_literal(text: str) -> str:
    """Escape text for a single-quoted SQL literal."""
    return text.replace("\\", "\\\\").replace("'", "''")


def ensure_semicolon(statement: str) -> str:
    statement = statement.strip()
    return statement if statement.endswith(";") else statement + ";"


# --- Generation ---

@dataclass
class _Script:
    """Statements collected per section, in output order."""
    schemas: list[str] = field(default_factory=list)
    drop_sequences: list[str] = field(default_factory=list)
    drop_tables: list[str] = field(default_factory=list)
    sequences: list[str] = field(default_factory=list)
    tables: list[str] = field(default_factory=list)
    uniques: list[str] = field(default_factory=list)
    fk_indexes: list[str] = field(default_factory=list)
    foreign_keys: list[str] = field(default_factory=list)
    indexes: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)

    def lines(self) -> list[str]:
        sections = [
            ("Schema", self.schemas),
            ("Drop sequences", self.drop_sequences),
            ("Drop tables", self.drop_tables),
            ("Sequences", self.sequences),
        ]
        out: list[str] = []
        for title, statements in sections:
            if statements:
                out += [f"-- {title}", *statements, ""]
        if self.tables:
            # Each table is already followed by a blank line
            out += ["-- Create tables", *self.tables]
        for title, statements in (
            ("Unique constraints", self.uniques),
            ("FK indexes", self.fk_indexes),
            ("Foreign key constraints", self.foreign_keys),
            ("Indexes", self.indexes),
            ("Comments", self.comments),
        ):
            if statements:
                out += [f"-- {title}", *statements, ""]
        return out


def _collect_sequences(entity: "Element", schema: str, script: _Script) -> None:
    for tag in entity.children("tags"):
        statement = tag.get("value")
        if not is_sequence_tag(tag) or not statement:
            continue
        statement = str(statement)
        match = _SEQUENCE_NAME.search(statement)
        if match:
            name = match.group(1)
            if "." not in name:
                name = f"{schema}.{name}"
                statement = _SEQUENCE_HEAD.sub(
                    lambda m: f"CREATE SEQUENCE{m.group(1)}{schema}.", statement, count=1
                )
            script.drop_sequences.append(f"DROP SEQUENCE IF EXISTS {name} CASCADE;")
        script.sequences.append(ensure_semicolon(statement))


def _render_table(entity: "Element", schema: str, script: _Script) -> None:
    table = table_name(entity)
    full_table = f"{schema}.{table}"
    columns = entity.children("columns")
    definitions = []
    primary_keys = []

    for col in columns:
        name = column_name(col)
        pg_type = map_column_type(col)
        definition = f"    {name} {pg_type}"
        if col.get("primaryKey") or not col.get("nullable"):
            definition += " NOT NULL"
        if "serial" not in pg_type:
            default = tag_value(col, "default")
            if default is not None:
                definition += f" DEFAULT {default}"
        if col.get("primaryKey"):
            primary_keys.append(name)
        if col.get("unique"):
            script.uniques.append(f"ALTER TABLE {full_table} ADD UNIQUE ({name});")

        referenced = col.get("referenceTo")
        if referenced is not None and referenced.parent is not None:
            ref_entity = referenced.parent
            ref_schema = schema
            if ref_entity.parent is not None and ref_entity.parent.type == "ERDDataModel":
                ref_schema = schema_name(ref_entity.parent)
            script.foreign_keys.append(
                f"ALTER TABLE {full_table} ADD CONSTRAINT FK_{table}_{name} FOREIGN KEY ({name}) "
                f"REFERENCES {ref_schema}.{table_name(ref_entity)} ({column_name(referenced)});"
            )
            script.fk_indexes.append(f"CREATE INDEX ON {full_table}\n    ({name});")
        definitions.append(definition)

    if primary_keys:
        definitions.append(f"    PRIMARY KEY ({', '.join(primary_keys)})")
    script.tables += [f"CREATE TABLE {full_table} (", ",\n".join(definitions), ") WITHOUT OIDS;", ""]

    if entity.documentation:
        script.comments.append(f"COMMENT ON TABLE {full_table} IS '{escape_literal(entity.documentation)}';")
    for col in columns:
        if col.documentation:
            script.comments.append(
                f"COMMENT ON COLUMN {full_table}.{column_name(col)} IS '{escape_literal(col.documentation)}';"
            )

    for tag in entity.children("tags"):
        statement = tag.get("value")
        if is_index_tag(tag) and statement:
            statement = _UNQUALIFIED_ON.sub(lambda m: f"ON {schema}.{m.group(1)}", str(statement), count=1)
            script.indexes.append(ensure_semicolon(statement))


def generate_postgresql_ddl(
    engine: "ModelEngine",
    data_model_id: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Render the PostgreSQL DDL script for the project's ER data models.

    Args:
        engine: Model engine holding the project
        data_model_id: Render only this data model
        generated_at: Timestamp written in the header (defaults to now)

    Returns:
        The script text, lines joined with newlines
    """
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    lines = ["-- PostgreSQL DDL", "-- Generated by diagram-controller", f"-- Date: {stamp}", ""]

    data_models = engine.select_by_type("ERDDataModel")
    if data_model_id:
        data_models = [dm for dm in data_models if dm.id == data_model_id]
    if not data_models:
        lines.append("-- No data models found")
        return "\n".join(lines)

    script = _Script()
    for data_model in data_models:
        schema = schema_name(data_model)
        entities = [e for e in data_model.owned() if e.type == "ERDEntity"]
        if not entities:
            continue
        if schema != DEFAULT_SCHEMA:
            script.schemas.append(f"CREATE SCHEMA IF NOT EXISTS {schema};")
        for entity in entities:
            _collect_sequences(entity, schema, script)
        # Reverse creation order so dependents drop first
        for entity in reversed(entities):
            script.drop_tables.append(f"DROP TABLE IF EXISTS {schema}.{table_name(entity)} CASCADE;")
        for entity in entities:
            _render_table(entity, schema, script)

    lines += script.lines()
    return "\n".join(lines)
