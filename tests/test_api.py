"""
End-to-end request handling through the router and the HTTP app.
"""

import pytest

from diagram_controller import __version__, config
from diagram_controller.api import status_for


def _ok(result):
    assert result["success"], result
    return result["data"]


def _failed(result, status=400):
    assert not result["success"], result
    assert status_for(result) == status
    return result["error"]


@pytest.fixture
def class_diagram(call):
    """A class diagram with three classes laid out left to right."""
    diagram = _ok(call("POST", "/api/class/diagrams", {"name": "Domain"}))
    classes = []
    for i, name in enumerate(("Customer", "Order", "Invoice")):
        x = 100 + i * 300
        classes.append(_ok(call("POST", "/api/class/classes", {
            "diagramId": diagram["_id"], "name": name,
            "x1": x, "y1": 100, "x2": x + 100, "y2": 160,
        })))
    return diagram, classes


def _views_by_model(call, diagram_id):
    views = _ok(call("GET", f"/api/diagrams/{diagram_id}/views"))
    return {v["modelId"]: v for v in views if "modelId" in v}


class TestRouting:

    def test_status(self, call):
        data = _ok(call("GET", "/api/status"))
        assert data["version"] == __version__
        assert "erd" in data["families"]
        assert "GET    /api/status" in data["endpoints"]

    def test_unknown_route(self, call):
        error = _failed(call("GET", "/api/nothing"), status=404)
        assert error == "Not found: GET /api/nothing"

    def test_wrong_verb(self, call):
        _failed(call("PATCH", "/api/diagrams"), status=404)

    def test_bad_percent_encoding(self, call):
        assert _failed(call("GET", "/api/elements/%zz")) == "Invalid URL encoding"

    def test_trailing_slash(self, call):
        _ok(call("GET", "/api/diagrams/"))

    def test_request_echo(self, call):
        result = call("GET", "/api/search?keyword=x")
        assert result["request"] == {"method": "GET", "path": "/api/search", "query": {"keyword": "x"}}


class TestCompiledResources:

    def test_create_then_get_returns_the_same_entity(self, call, erd_diagram):
        created = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "orders"}))
        fetched = _ok(call("GET", f"/api/erd/entities/{created['_id']}"))
        assert fetched == created
        assert created["_type"] == "ERDEntity"
        assert created["columns"] == []

    def test_update_round_trip(self, call, erd_diagram):
        created = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "orders"}))
        result = call("PUT", f"/api/erd/entities/{created['_id']}", {"name": "order", "documentation": "One sale"})
        assert result["message"] == 'Updated entity "order" (fields: name, documentation)'
        fetched = _ok(call("GET", f"/api/erd/entities/{created['_id']}"))
        assert fetched["name"] == "order"
        assert fetched["documentation"] == "One sale"

    def test_unknown_field_rejected_on_create(self, call, erd_diagram):
        result = call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "foo": 1})
        assert _failed(result).startswith("Unknown field(s): foo. Allowed fields: diagramId, name")
        assert _ok(call("GET", "/api/erd/entities")) == []

    def test_unknown_field_rejected(self, call, erd_diagram):
        created = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"]}))
        error = _failed(call("PUT", f"/api/erd/entities/{created['_id']}", {"foo": 1}))
        assert error.startswith("Unknown field(s): foo.")

    def test_empty_update_rejected(self, call, erd_diagram):
        created = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"]}))
        error = _failed(call("PUT", f"/api/erd/entities/{created['_id']}", {}))
        assert error.startswith("At least one field must be provided")

    def test_diagram_id_required(self, call):
        assert _failed(call("POST", "/api/erd/entities", {"name": "x"})) == 'Field "diagramId" is required'

    def test_wrong_kind_is_not_found(self, call, erd_diagram):
        error = _failed(call("GET", f"/api/erd/entities/{erd_diagram['_id']}"), status=404)
        assert error == f"Entity not found: {erd_diagram['_id']}"

    def test_list_filtered_by_diagram(self, call, erd_diagram):
        _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "a"}))
        other = _ok(call("POST", "/api/erd/diagrams", {"name": "Other"}))
        _ok(call("POST", "/api/erd/entities", {"diagramId": other["_id"], "name": "b"}))
        names = [e["name"] for e in _ok(call("GET", f"/api/erd/entities?diagramId={other['_id']}"))]
        assert names == ["b"]
        assert len(_ok(call("GET", "/api/erd/entities"))) == 2

    def test_multi_type_resource_validates_type(self, call):
        diagram = _ok(call("POST", "/api/c4/diagrams", {}))
        error = _failed(call("POST", "/api/c4/elements", {"diagramId": diagram["_id"], "type": "C4Nope"}))
        assert error.startswith('Invalid type "C4Nope"')

    def test_alias_builds_its_factory_type(self, call):
        diagram = _ok(call("POST", "/api/c4/diagrams", {}))
        created = _ok(call("POST", "/api/c4/elements",
                           {"diagramId": diagram["_id"], "type": "C4ContainerDatabase", "name": "db"}))
        assert created["_type"] == "C4Container"
        assert created["kind"] == "database"

    def test_enum_field_on_create(self, call):
        diagram = _ok(call("POST", "/api/statemachine/diagrams", {}))
        created = _ok(call("POST", "/api/statemachine/pseudostates",
                           {"diagramId": diagram["_id"], "pseudostateKind": "choice"}))
        assert created["kind"] == "choice"
        error = _failed(call("POST", "/api/statemachine/pseudostates",
                             {"diagramId": diagram["_id"], "pseudostateKind": "nope"}))
        assert error.startswith('Invalid value "nope" for field "pseudostateKind"')

    def test_class_attributes(self, call, class_diagram):
        _, classes = class_diagram
        order = classes[1]
        attr = _ok(call("POST", f"/api/class/classes/{order['_id']}/attributes",
                        {"name": "total", "type": "Money", "visibility": "private"}))
        assert attr["visibility"] == "private"
        fetched = _ok(call("GET", f"/api/class/classes/{order['_id']}"))
        assert [a["name"] for a in fetched["attributes"]] == ["total"]

    def test_delete_diagram_cascades(self, call, class_diagram):
        diagram, classes = class_diagram
        data = _ok(call("DELETE", f"/api/class/diagrams/{diagram['_id']}"))
        assert sorted(data["cascade"]["elements"]) == sorted(c["_id"] for c in classes)
        assert data["cascade"]["containers"] == [diagram["_parentId"]]
        assert diagram["_parentId"] not in data["cascade"]["elements"]
        _failed(call("GET", f"/api/elements/{classes[0]['_id']}"), status=404)


class TestRelations:

    def test_plain_relation(self, call, class_diagram):
        diagram, (customer, order, _) = class_diagram
        dep = _ok(call("POST", "/api/class/dependencies", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
        }))
        assert dep["sourceId"] == customer["_id"]
        assert dep["targetName"] == "Order"

    def test_source_must_be_on_the_diagram(self, call, class_diagram):
        diagram, (customer, _, _) = class_diagram
        error = _failed(call("POST", "/api/class/dependencies", {
            "diagramId": diagram["_id"], "sourceId": "missing", "targetId": customer["_id"],
        }))
        assert error == "Source element not found on diagram: missing"

    def test_association_ends(self, call, class_diagram):
        diagram, (customer, order, _) = class_diagram
        assoc = _ok(call("POST", "/api/class/associations", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
            "end2": {"multiplicity": "0..*", "aggregation": "composite"},
        }))
        assert assoc["end1"]["reference"] == customer["_id"]
        assert assoc["end2"]["reference"] == order["_id"]
        assert assoc["end2"]["aggregation"] == "composite"
        assert assoc["end2"]["multiplicity"] == "0..*"

        updated = _ok(call("PUT", f"/api/class/associations/{assoc['_id']}", {"end1": {"navigable": False}}))
        assert updated["end1"]["navigable"] is False

    def test_association_end_name_and_multiplicity_update(self, call, class_diagram):
        diagram, (customer, order, _) = class_diagram
        assoc = _ok(call("POST", "/api/class/associations", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
        }))
        result = call("PUT", f"/api/class/associations/{assoc['_id']}",
                      {"end1": {"name": "owner", "multiplicity": "1"}})
        updated = _ok(result)
        assert updated["end1"]["name"] == "owner"
        assert updated["end1"]["multiplicity"] == "1"
        assert updated["end1"]["reference"] == customer["_id"]
        assert result["message"].endswith("(fields: end1.name, end1.multiplicity)")
        fetched = _ok(call("GET", f"/api/class/associations/{assoc['_id']}"))
        assert fetched["end1"]["name"] == "owner"

    def test_end_reference_is_not_accepted_outside_erd(self, call, class_diagram):
        diagram, (customer, order, invoice) = class_diagram
        assoc = _ok(call("POST", "/api/class/associations", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
        }))
        error = _failed(call("PUT", f"/api/class/associations/{assoc['_id']}",
                             {"end2": {"reference": invoice["_id"]}}))
        assert error.startswith("Unknown field(s): end2.reference.")

    def test_unknown_end_field(self, call, class_diagram):
        diagram, (customer, order, _) = class_diagram
        error = _failed(call("POST", "/api/class/associations", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
            "end1": {"colour": "red"},
        }))
        assert error.startswith("Unknown field(s): end1.colour.")


class TestErd:

    @pytest.fixture
    def schema(self, call, erd_diagram):
        customers = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "customers"}))
        orders = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "orders"}))
        pk = _ok(call("POST", f"/api/erd/entities/{customers['_id']}/columns",
                      {"name": "id", "type": "integer", "primaryKey": True}))
        fk = _ok(call("POST", f"/api/erd/entities/{orders['_id']}/columns",
                      {"name": "customer_id", "type": "INTEGER", "foreignKey": True, "referenceToId": pk["_id"]}))
        return customers, orders, pk, fk

    def test_column_type_normalized(self, schema):
        _, _, pk, fk = schema
        assert pk["type"] == "INTEGER"
        assert pk["primaryKey"] is True
        assert fk["referenceTo"] == pk["_id"]

    def test_blank_column_name_rejected(self, call, schema):
        customers = schema[0]
        error = _failed(call("POST", f"/api/erd/entities/{customers['_id']}/columns", {"name": "   "}))
        assert error == 'Field "name" must be a non-empty string'
        fetched = _ok(call("GET", f"/api/erd/entities/{customers['_id']}"))
        assert [c["name"] for c in fetched["columns"]] == ["id"]

    def test_invalid_column_type(self, call, schema):
        customers = schema[0]
        error = _failed(call("POST", f"/api/erd/entities/{customers['_id']}/columns",
                             {"name": "x", "type": "varcharx"}))
        assert error.startswith('Invalid value "VARCHARX" for field "type"')

    def test_reference_must_be_a_column(self, call, schema):
        customers, orders, _, _ = schema
        error = _failed(call("POST", f"/api/erd/entities/{orders['_id']}/columns",
                             {"name": "x", "referenceToId": customers["_id"]}))
        assert error == f"referenceToId must refer to an ERDColumn. Not found or wrong type: {customers['_id']}"

    def test_referenced_entity_delete_refused(self, call, schema):
        customers, _, _, fk = schema
        result = call("DELETE", f"/api/erd/entities/{customers['_id']}")
        error = _failed(result)
        assert error.startswith('Cannot delete entity "customers": 1 element(s) reference it.')
        assert result["data"]["referents"][0]["holderId"] == fk["_id"]
        _ok(call("GET", f"/api/erd/entities/{customers['_id']}"))

    def test_referencing_column_removed_first(self, call, schema):
        customers, _, _, fk = schema
        _ok(call("DELETE", f"/api/erd/columns/{fk['_id']}"))
        _ok(call("DELETE", f"/api/erd/entities/{customers['_id']}"))

    def test_column_cannot_reference_itself(self, call, schema):
        pk = schema[2]
        error = _failed(call("PUT", f"/api/erd/columns/{pk['_id']}", {"referenceToId": pk["_id"]}))
        assert error == "A column cannot reference itself via referenceToId"

    def test_clear_column_reference(self, call, schema):
        fk = schema[3]
        updated = _ok(call("PUT", f"/api/erd/columns/{fk['_id']}", {"referenceToId": None}))
        assert "referenceTo" not in updated

    def test_relationship_with_ends(self, call, erd_diagram, schema):
        customers, orders, _, _ = schema
        rel = _ok(call("POST", "/api/erd/relationships", {
            "diagramId": erd_diagram["_id"], "sourceId": customers["_id"], "targetId": orders["_id"],
            "identifying": True, "end2": {"cardinality": "0..*"},
        }))
        assert rel["identifying"] is True
        assert rel["end1"]["reference"] == customers["_id"]
        assert rel["end2"]["cardinality"] == "0..*"
        error = _failed(call("DELETE", f"/api/erd/entities/{orders['_id']}"))
        assert "end2.reference" in error

    def test_relationship_end_moved_to_another_entity(self, call, erd_diagram, schema):
        customers, orders, _, _ = schema
        invoices = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "invoices"}))
        rel = _ok(call("POST", "/api/erd/relationships", {
            "diagramId": erd_diagram["_id"], "sourceId": customers["_id"], "targetId": orders["_id"],
        }))
        result = call("PUT", f"/api/erd/relationships/{rel['_id']}",
                      {"end2": {"reference": invoices["_id"], "cardinality": "1"}})
        updated = _ok(result)
        assert updated["end2"]["reference"] == invoices["_id"]
        assert updated["end2"]["cardinality"] == "1"
        assert result["message"].endswith("(fields: end2.cardinality, end2.reference)")

        views = _views_by_model(call, erd_diagram["_id"])
        assert views[rel["_id"]]["headId"] == views[invoices["_id"]]["_id"]
        assert views[rel["_id"]]["tailId"] == views[customers["_id"]]["_id"]
        # orders is no longer referenced by the relationship
        _ok(call("DELETE", f"/api/erd/entities/{orders['_id']}"))

    def test_relationship_end_reference_cannot_be_cleared(self, call, erd_diagram, schema):
        customers, orders, _, _ = schema
        rel = _ok(call("POST", "/api/erd/relationships", {
            "diagramId": erd_diagram["_id"], "sourceId": customers["_id"], "targetId": orders["_id"],
        }))
        error = _failed(call("PUT", f"/api/erd/relationships/{rel['_id']}", {"end1": {"reference": None}}))
        assert error == 'Field "end1.reference" must be a non-empty string'

    def test_relationship_end_reference_must_be_an_entity(self, call, erd_diagram, schema):
        customers, orders, pk, _ = schema
        rel = _ok(call("POST", "/api/erd/relationships", {
            "diagramId": erd_diagram["_id"], "sourceId": customers["_id"], "targetId": orders["_id"],
        }))
        error = _failed(call("PUT", f"/api/erd/relationships/{rel['_id']}", {"end1": {"reference": pk["_id"]}}))
        assert error == f"end1.reference must refer to an ERDEntity. Not found or wrong type: {pk['_id']}"
        fetched = _ok(call("GET", f"/api/erd/relationships/{rel['_id']}"))
        assert fetched["end1"]["reference"] == customers["_id"]

    def test_diagram_delete_refused_while_kept_entities_reference_it(self, call, erd_diagram):
        other = _ok(call("POST", "/api/erd/diagrams", {"name": "Customers"}))
        customers = _ok(call("POST", "/api/erd/entities", {"diagramId": other["_id"], "name": "customers"}))
        orders = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "orders"}))
        pk = _ok(call("POST", f"/api/erd/entities/{customers['_id']}/columns", {"name": "id"}))
        fk = _ok(call("POST", f"/api/erd/entities/{orders['_id']}/columns",
                      {"name": "customer_id", "referenceToId": pk["_id"]}))

        result = call("DELETE", f"/api/erd/diagrams/{other['_id']}")
        error = _failed(result)
        assert error.startswith('Cannot delete diagram "Customers": 1 element(s) reference elements')
        assert result["data"]["referents"][0]["holderId"] == fk["_id"]
        _ok(call("GET", f"/api/erd/diagrams/{other['_id']}"))
        assert _ok(call("GET", f"/api/erd/columns/{fk['_id']}"))["referenceTo"] == pk["_id"]

        _ok(call("DELETE", f"/api/erd/columns/{fk['_id']}"))
        _ok(call("DELETE", f"/api/erd/diagrams/{other['_id']}"))
        _failed(call("GET", f"/api/erd/entities/{customers['_id']}"), status=404)

    def test_sequence_lifecycle(self, call, schema):
        customers = schema[0]
        created = call("POST", f"/api/erd/entities/{customers['_id']}/sequences", {"name": "customer_seq"})
        assert created["message"] == 'Created sequence "customer_seq" on entity "customers"'
        seq = _ok(created)
        assert seq["_type"] == "Sequence"
        assert seq["value"] == "CREATE SEQUENCE customer_seq"
        assert seq["_parentId"] == customers["_id"]

        listed = call("GET", f"/api/erd/entities/{customers['_id']}/sequences")
        assert listed["message"] == 'Retrieved 1 sequence(s) from entity "customers"'
        renamed = _ok(call("PUT", f"/api/erd/sequences/{seq['_id']}", {"name": "client_seq"}))
        assert renamed["value"] == "CREATE SEQUENCE client_seq"
        assert _ok(call("GET", f"/api/erd/entities/{customers['_id']}"))["tags"] == []

        deleted = _ok(call("DELETE", f"/api/erd/sequences/{seq['_id']}"))
        assert deleted == {"deleted": seq["_id"], "name": "client_seq"}
        error = _failed(call("GET", f"/api/erd/sequences/{seq['_id']}"), status=404)
        assert error == f"Sequence not found: {seq['_id']}"

    def test_duplicate_sequence_rejected(self, call, schema):
        customers = schema[0]
        _ok(call("POST", f"/api/erd/entities/{customers['_id']}/sequences", {"name": "customer_seq"}))
        error = _failed(call("POST", f"/api/erd/entities/{customers['_id']}/sequences", {"name": "customer_seq"}))
        assert error == 'Sequence "customer_seq" already exists on entity "customers"'
        assert _failed(call("POST", f"/api/erd/entities/{customers['_id']}/sequences", {})) == \
            'Field "name" is required'

    def test_index_lifecycle(self, call, schema):
        customers = schema[0]
        idx = _ok(call("POST", f"/api/erd/entities/{customers['_id']}/indexes",
                       {"name": "idx_id", "definition": "CREATE INDEX idx_id ON customers (id)"}))
        assert idx["_type"] == "Index"
        assert idx["definition"] == "CREATE INDEX idx_id ON customers (id)"
        listed = call("GET", f"/api/erd/entities/{customers['_id']}/indexes")
        assert listed["message"] == 'Retrieved 1 index(es) from entity "customers"'

        result = call("PUT", f"/api/erd/indexes/{idx['_id']}",
                      {"name": "idx_customer", "definition": "CREATE UNIQUE INDEX idx_customer ON customers (id)"})
        assert result["message"] == 'Updated index "idx_customer" (fields: name, definition)'
        assert _ok(call("GET", f"/api/erd/indexes/{idx['_id']}"))["name"] == "idx_customer"

        error = _failed(call("POST", f"/api/erd/entities/{customers['_id']}/indexes", {"name": "idx_other"}))
        assert error == 'Field "definition" is required'
        _ok(call("DELETE", f"/api/erd/indexes/{idx['_id']}"))
        assert _ok(call("GET", f"/api/erd/entities/{customers['_id']}/indexes")) == []

    def test_sequence_routes_need_an_entity(self, call, schema):
        pk = schema[2]
        error = _failed(call("GET", f"/api/erd/entities/{pk['_id']}/sequences"), status=404)
        assert error == f"Entity not found: {pk['_id']}"

    def test_data_model_delete_refused_while_not_empty(self, call, erd_diagram):
        error = _failed(call("DELETE", f"/api/erd/data-models/{erd_diagram['_parentId']}"))
        assert error == (
            'Cannot delete data model "ERDDataModel": 0 entity(ies), 0 relationship(s), '
            "and 1 diagram(s) exist under it. Delete them first."
        )

    def test_data_model_lifecycle(self, call):
        model = _ok(call("POST", "/api/erd/data-models", {"name": "Warehouse"}))
        assert [m["name"] for m in _ok(call("GET", "/api/erd/data-models"))] == ["Warehouse"]
        _ok(call("PUT", f"/api/erd/data-models/{model['_id']}", {"name": "Stock"}))
        _ok(call("DELETE", f"/api/erd/data-models/{model['_id']}"))
        _failed(call("GET", f"/api/erd/data-models/{model['_id']}"), status=404)

    def test_erd_diagram_lists_entities(self, call, erd_diagram, schema):
        data = _ok(call("GET", f"/api/elements/{erd_diagram['_id']}"))
        assert sorted(data["entityIds"]) == sorted([schema[0]["_id"], schema[1]["_id"]])


class TestElementsAndTags:

    def test_rename_any_element(self, call, class_diagram):
        order = class_diagram[1][1]
        data = _ok(call("PUT", f"/api/elements/{order['_id']}", {"name": "PurchaseOrder"}))
        assert data["name"] == "PurchaseOrder"

    def test_delete_missing_element(self, call):
        assert _failed(call("DELETE", "/api/elements/nope"), status=404) == "Element not found: nope"

    def test_project_root_cannot_be_deleted(self, call, ctx):
        error = _failed(call("DELETE", f"/api/elements/{ctx.engine.project.id}"))
        assert error == "Cannot delete the project root"

    def test_tag_lifecycle(self, call, class_diagram):
        order = class_diagram[1][1]
        tag = _ok(call("POST", f"/api/elements/{order['_id']}/tags", {"name": "owner", "value": "sales"}))
        assert tag == {"_id": tag["_id"], "_type": "Tag", "name": "owner", "kind": 0,
                       "value": "sales", "_parentId": order["_id"]}
        _ok(call("PUT", f"/api/tags/{tag['_id']}", {"kind": 2, "value": 3}))
        assert _ok(call("GET", f"/api/elements/{order['_id']}/tags"))[0]["value"] == 3
        _ok(call("DELETE", f"/api/tags/{tag['_id']}"))
        assert _ok(call("GET", f"/api/elements/{order['_id']}/tags")) == []

    def test_invalid_tag_kind(self, call, class_diagram):
        order = class_diagram[1][1]
        error = _failed(call("POST", f"/api/elements/{order['_id']}/tags", {"name": "x", "kind": 9}))
        assert error.startswith("Invalid tag kind 9. Allowed values: 0=string")

    def test_tag_value_must_be_scalar(self, call, class_diagram):
        order = class_diagram[1][1]
        error = _failed(call("POST", f"/api/elements/{order['_id']}/tags", {"name": "x", "value": None}))
        assert error == 'Field "value" must be a string, number, or boolean, got object'

    def test_search(self, call, class_diagram):
        found = _ok(call("GET", "/api/search?keyword=ord"))
        assert [e["name"] for e in found] == ["Order"]
        assert _failed(call("GET", "/api/search")) == 'Field "keyword" is required'


class TestHistory:

    def test_nothing_to_undo(self, call):
        result = call("POST", "/api/undo")
        assert _failed(result) == "Nothing to undo"
        assert result["data"] == {"canUndo": False, "canRedo": False}

    def test_undo_and_redo_creation(self, call, erd_diagram):
        created = _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "orders"}))
        assert _ok(call("POST", "/api/undo"))["canRedo"] is True
        _failed(call("GET", f"/api/erd/entities/{created['_id']}"), status=404)
        _ok(call("POST", "/api/redo"))
        assert _ok(call("GET", f"/api/erd/entities/{created['_id']}"))["name"] == "orders"

    def test_create_is_a_single_undo_unit(self, call, erd_diagram):
        _ok(call("POST", "/api/erd/entities", {"diagramId": erd_diagram["_id"], "name": "orders"}))
        _ok(call("POST", "/api/undo"))
        # The diagram survives: only the entity creation was undone
        _ok(call("GET", f"/api/diagrams/{erd_diagram['_id']}"))


class TestDiagramsAndViews:

    def test_list_and_filter(self, call, class_diagram, erd_diagram):
        assert len(_ok(call("GET", "/api/diagrams"))) == 2
        only_erd = _ok(call("GET", "/api/diagrams?type=ERDDiagram"))
        assert [d["_id"] for d in only_erd] == [erd_diagram["_id"]]

    def test_batch_delete(self, call, class_diagram, erd_diagram):
        diagram = class_diagram[0]
        data = _ok(call("POST", "/api/diagrams/delete", {"diagramIds": [diagram["_id"], diagram["_id"]]}))
        assert data["diagrams"] == [diagram["_id"]]
        assert len(_ok(call("GET", "/api/diagrams"))) == 1

    def test_batch_delete_needs_ids(self, call):
        error = _failed(call("POST", "/api/diagrams/delete", {"diagramIds": []}))
        assert error == 'Field "diagramIds" must be a non-empty array of strings'

    def test_move_view_reroutes_edges(self, call, class_diagram):
        diagram, (customer, order, _) = class_diagram
        dep = _ok(call("POST", "/api/class/dependencies", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
        }))
        views = _views_by_model(call, diagram["_id"])
        data = _ok(call("PUT", f"/api/views/{views[order['_id']]['_id']}", {"top": 300}))
        assert data["top"] == 300
        assert data["reroute"] == [{
            "edgeId": views[dep["_id"]]["_id"], "ok": True, "points": [[150, 130], [450, 330]],
        }]

    def test_negative_size_rejected(self, call, class_diagram):
        diagram, (customer, _, _) = class_diagram
        view_id = _views_by_model(call, diagram["_id"])[customer["_id"]]["_id"]
        error = _failed(call("PUT", f"/api/views/{view_id}", {"width": -1}))
        assert error == 'Field "width" must not be negative'

    def test_missing_view(self, call):
        assert _failed(call("PUT", "/api/views/nope", {"left": 1}), status=404) == "View not found: nope"

    def test_reconnect(self, call, class_diagram):
        diagram, (customer, order, invoice) = class_diagram
        dep = _ok(call("POST", "/api/class/dependencies", {
            "diagramId": diagram["_id"], "sourceId": customer["_id"], "targetId": order["_id"],
        }))
        views = _views_by_model(call, diagram["_id"])
        data = _ok(call("PUT", f"/api/views/{views[dep['_id']]['_id']}/reconnect",
                        {"targetId": invoice["_id"]}))
        assert data["headId"] == views[invoice["_id"]]["_id"]
        assert data["points"] == [[150, 130], [750, 130]]
        assert _ok(call("GET", f"/api/class/dependencies/{dep['_id']}"))["targetId"] == invoice["_id"]

    def test_reconnect_needs_an_edge(self, call, class_diagram):
        diagram, (customer, _, _) = class_diagram
        view_id = _views_by_model(call, diagram["_id"])[customer["_id"]]["_id"]
        error = _failed(call("PUT", f"/api/views/{view_id}/reconnect", {"targetId": customer["_id"]}))
        assert error == f"View is not an edge: {view_id}"


class TestLayoutRoutes:

    def test_grid_layout(self, call, class_diagram):
        diagram = class_diagram[0]
        data = _ok(call("POST", f"/api/diagrams/{diagram['_id']}/layout", {"columns": 2}))
        positions = sorted((v["left"], v["top"]) for v in data["views"])
        assert positions == [(100, 100), (100, 250), (300, 100)]
        assert data["frame"] is None

    def test_unknown_strategy(self, call, class_diagram):
        diagram = class_diagram[0]
        error = _failed(call("POST", f"/api/diagrams/{diagram['_id']}/layout", {"strategy": "force"}))
        assert error == 'Invalid value "force" for field "strategy". Allowed: grid, tree'

    def test_align(self, call, class_diagram):
        diagram, classes = class_diagram
        call("PUT", f"/api/views/{_views_by_model(call, diagram['_id'])[classes[0]['_id']]['_id']}", {"top": 40})
        data = _ok(call("POST", f"/api/diagrams/{diagram['_id']}/align", {
            "viewIds": [c["_id"] for c in classes], "alignment": "top",
        }))
        assert {v["top"] for v in data["views"]} == {40}

    def test_align_needs_two(self, call, class_diagram):
        diagram, classes = class_diagram
        error = _failed(call("POST", f"/api/diagrams/{diagram['_id']}/align",
                             {"viewIds": [classes[0]["_id"]], "alignment": "left"}))
        assert error == "At least 2 views are required to align"

    def test_align_unknown_view(self, call, class_diagram):
        diagram = class_diagram[0]
        error = _failed(call("POST", f"/api/diagrams/{diagram['_id']}/align",
                             {"viewIds": ["nope", "other"], "alignment": "left"}))
        assert error == "View not found on diagram: nope"

    def test_distribute_needs_three(self, call, class_diagram):
        diagram, classes = class_diagram
        error = _failed(call("POST", f"/api/diagrams/{diagram['_id']}/distribute",
                             {"viewIds": [c["_id"] for c in classes[:2]]}))
        assert error == "At least 3 views are required to distribute"

    def test_fit_frame_needs_a_frame(self, call, class_diagram):
        diagram = class_diagram[0]
        error = _failed(call("POST", f"/api/diagrams/{diagram['_id']}/fit-frame", {}))
        assert error == 'Diagram "Domain" has no frame view'

    def test_frame_expands_on_create(self, call):
        diagram = _ok(call("POST", "/api/communication/diagrams", {}))
        _ok(call("POST", "/api/communication/lifelines", {
            "diagramId": diagram["_id"], "x1": 600, "y1": 100, "x2": 700, "y2": 180,
        }))
        frame = next(v for v in _ok(call("GET", f"/api/diagrams/{diagram['_id']}/views"))
                     if v["_type"] == "UMLFrameView")
        assert frame["width"] == 730
        fitted = _ok(call("POST", f"/api/diagrams/{diagram['_id']}/fit-frame", {}))
        assert fitted["right"] == 730


class TestHttp:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_status_codes(self, client):
        assert client.get("/api/status").status_code == 200
        assert client.delete("/api/elements/nope").status_code == 404
        assert client.put("/api/views/nope", json={"foo": 1}).status_code == 400

    def test_invalid_json(self, client):
        response = client.post("/api/undo", content=b"{not json",
                               headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON in request body"

    def test_body_must_be_an_object(self, client):
        response = client.post("/api/diagrams/delete", json=["a"])
        assert response.status_code == 400
        assert response.json()["error"] == "Request body must be a JSON object"

    def test_body_too_large(self, client, monkeypatch):
        monkeypatch.setattr(config, "MAX_BODY_BYTES", 16)
        response = client.post("/api/erd/diagrams", json={"name": "x" * 64})
        assert response.status_code == 413
        assert response.json()["error"].startswith("Request body too large")

    def test_save_and_open_project(self, client, tmp_path):
        created = client.post("/api/class/diagrams", json={"name": "Domain"}).json()["data"]
        path = str(tmp_path / "project.json")
        response = client.post("/api/project/save", json={"path": path})
        assert response.status_code == 200, response.json()
        client.delete(f"/api/diagrams/{created['_id']}")

        response = client.post("/api/project/open", json={"path": path})
        assert response.status_code == 200
        assert response.json()["data"]["projectName"] == "Test"
        assert client.get(f"/api/diagrams/{created['_id']}").status_code == 200

    def test_project_path_must_be_absolute_json(self, client):
        response = client.post("/api/project/save", json={"path": "relative.json"})
        assert response.status_code == 400
        assert "must be an absolute path" in response.json()["error"]
        response = client.post("/api/project/save", json={"path": "/tmp/project.txt"})
        assert "must have .json extension" in response.json()["error"]

    def test_open_missing_project(self, client, tmp_path):
        response = client.post("/api/project/open", json={"path": str(tmp_path / "missing.json")})
        assert response.status_code == 400
        assert response.json()["error"].startswith("Failed to open project: Project file not found")

    def test_export_diagram(self, client, tmp_path):
        created = client.post("/api/class/diagrams", json={"name": "Domain"}).json()["data"]
        path = str(tmp_path / "domain.json")
        response = client.post(f"/api/diagrams/{created['_id']}/export", json={"path": path})
        assert response.status_code == 200
        assert (tmp_path / "domain.json").exists()

    def test_generate_postgresql_ddl(self, client, tmp_path):
        diagram = client.post("/api/erd/diagrams", json={"name": "Schema"}).json()["data"]
        entity = client.post("/api/erd/entities", json={"diagramId": diagram["_id"], "name": "customers"}).json()["data"]
        client.post(f"/api/erd/entities/{entity['_id']}/columns", json={"name": "id", "type": "INTEGER", "primaryKey": True})
        path = str(tmp_path / "schema.sql")
        response = client.post("/api/erd/postgresql/ddl", json={"path": path, "dataModelId": diagram["_parentId"]})
        assert response.status_code == 200, response.json()
        assert response.json()["message"] == f'DDL generated to "{path}"'
        text = (tmp_path / "schema.sql").read_text(encoding="utf-8")
        assert "CREATE TABLE public.customers (" in text
        assert "    PRIMARY KEY (id)" in text

    def test_ddl_request_validation(self, client, tmp_path):
        response = client.post("/api/erd/postgresql/ddl", json={"path": "schema.sql"})
        assert response.status_code == 400
        assert "must be an absolute path" in response.json()["error"]
        response = client.post("/api/erd/postgresql/ddl", json={})
        assert response.json()["error"] == 'Field "path" is required'
        response = client.post("/api/erd/postgresql/ddl",
                               json={"path": str(tmp_path / "schema.sql"), "dataModelId": "nope"})
        assert response.json()["error"] == "dataModelId must refer to an ERDDataModel. Not found or wrong type: nope"
        assert not (tmp_path / "schema.sql").exists()

    def test_ddl_write_failure(self, client, tmp_path):
        path = str(tmp_path / "missing" / "schema.sql")
        response = client.post("/api/erd/postgresql/ddl", json={"path": path})
        assert response.status_code == 400
        assert response.json()["error"].startswith("Failed to generate DDL:")

    def test_websocket_ping_and_model_updates(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_text("ping")
            assert websocket.receive_json() == {"type": "pong"}
            client.post("/api/class/diagrams", json={"name": "Domain"})
            message = websocket.receive_json()
            assert message["type"] == "model_updated"
            assert message["canUndo"] is True
