"""
PostgreSQL DDL generation from ER data models.
"""

from datetime import datetime

import pytest

from diagram_controller.core.ddl import generate_postgresql_ddl, map_column_type

GENERATED_AT = datetime(2024, 1, 2, 3, 4, 5)


def _column(engine, entity, **init):
    return engine.create_model("ERDColumn", entity, "columns", init=init)


def _tag(engine, elem, name, value):
    return engine.create_model("Tag", elem, "tags", init={"name": name, "kind": 0, "value": value})


@pytest.fixture
def data_model(engine):
    """customers(id serial pk, full name) and orders(customer_id -> customers.id)."""
    diagram = engine.create_diagram("ERDDiagram", engine.project)
    data_model = diagram.parent
    customers, _ = engine.create_model_and_view("ERDEntity", data_model, diagram, init={"name": "customers"})
    orders, _ = engine.create_model_and_view("ERDEntity", data_model, diagram, init={"name": "orders"})
    pk = _column(engine, customers, name="id", type="INTEGER", length="-1", primaryKey=True)
    _column(engine, customers, name="full name", type="VARCHAR", length="80", nullable=True,
            unique=True, documentation="Customer's name")
    _column(engine, orders, name="customer_id", type="INTEGER", referenceTo=pk)
    return data_model, customers, orders


def _generate(engine, data_model_id=None):
    return generate_postgresql_ddl(engine, data_model_id, generated_at=GENERATED_AT).splitlines()


class TestColumnTypes:

    @pytest.mark.parametrize("declared, length, expected", [
        ("VARCHAR", "80", "varchar(80)"),
        ("VARCHAR", "", "varchar"),
        ("INTEGER", "-1", "serial"),
        ("BIGINT", -1, "bigserial"),
        ("INTEGER", "10", "integer"),
        ("DATETIME", "", "timestamp with time zone"),
        ("DECIMAL", "10,2", "numeric(10,2)"),
        ("money", "", "money"),
    ])
    def test_mapping(self, engine, declared, length, expected):
        diagram = engine.create_diagram("ERDDiagram", engine.project)
        entity, _ = engine.create_model_and_view("ERDEntity", diagram.parent, diagram)
        column = _column(engine, entity, name="c", type=declared, length=length)
        assert map_column_type(column) == expected


class TestGenerate:

    def test_header_without_data_models(self, engine):
        assert _generate(engine) == [
            "-- PostgreSQL DDL",
            "-- Generated by diagram-controller",
            "-- Date: 2024-01-02 03:04:05",
            "",
            "-- No data models found",
        ]

    def test_tables_keys_and_comments(self, engine, data_model):
        lines = _generate(engine)
        assert lines.index("-- Drop tables") < lines.index("-- Create tables") < lines.index("-- Comments")
        drops = lines.index("-- Drop tables")
        assert lines[drops + 1:drops + 3] == [
            "DROP TABLE IF EXISTS public.orders CASCADE;",
            "DROP TABLE IF EXISTS public.customers CASCADE;",
        ]
        create = lines.index("CREATE TABLE public.customers (")
        assert lines[create + 1:create + 5] == [
            "    id serial NOT NULL,",
            "    full_name varchar(80),",
            "    PRIMARY KEY (id)",
            ") WITHOUT OIDS;",
        ]
        assert "    customer_id integer NOT NULL" in lines
        assert "ALTER TABLE public.customers ADD UNIQUE (full_name);" in lines
        assert ("ALTER TABLE public.orders ADD CONSTRAINT FK_orders_customer_id FOREIGN KEY (customer_id) "
                "REFERENCES public.customers (id);") in lines
        assert "CREATE INDEX ON public.orders" in lines
        assert "COMMENT ON COLUMN public.customers.full_name IS 'Customer''s name';" in lines

    def test_tags_name_schema_table_and_default(self, engine, data_model):
        model, customers, orders = data_model
        _tag(engine, model, "Schema", "sales")
        _tag(engine, customers, "table", "client")
        status = _column(engine, orders, name="status", type="VARCHAR", length="20")
        _tag(engine, status, "default", "'new'")
        lines = _generate(engine)
        assert lines[lines.index("-- Schema") + 1] == "CREATE SCHEMA IF NOT EXISTS sales;"
        assert "CREATE TABLE sales.client (" in lines
        assert "    status varchar(20) NOT NULL DEFAULT 'new'" in lines
        assert any(line.endswith("REFERENCES sales.client (id);") for line in lines)

    def test_sequences_and_indexes(self, engine, data_model):
        _, customers, _ = data_model
        _tag(engine, customers, "sequence#customer_seq", "CREATE SEQUENCE customer_seq")
        _tag(engine, customers, "index#idx_name", "CREATE INDEX idx_name ON customers (full_name)")
        lines = _generate(engine)
        assert "DROP SEQUENCE IF EXISTS public.customer_seq CASCADE;" in lines
        assert lines[lines.index("-- Sequences") + 1] == "CREATE SEQUENCE public.customer_seq;"
        assert lines[lines.index("-- Indexes") + 1] == "CREATE INDEX idx_name ON public.customers (full_name);"

    def test_single_data_model(self, engine, data_model):
        other = engine.create_diagram("ERDDiagram", engine.project)
        engine.create_model_and_view("ERDEntity", other.parent, other, init={"name": "audit"})
        lines = _generate(engine, other.parent.id)
        assert "CREATE TABLE public.audit (" in lines
        assert "CREATE TABLE public.customers (" not in lines
