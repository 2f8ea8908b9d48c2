"""
Delete-blocking references and the diagram deletion cascade.
"""

import pytest

from diagram_controller.core.errors import IntegrityError
from diagram_controller.core.integrity import (
    check_can_delete,
    delete_diagrams,
    find_blocking_references,
    plan_diagram_deletion,
)
from diagram_controller.host import metamodel


@pytest.fixture
def schema(engine):
    """Two ER entities where orders.customer_id references customers.id."""
    diagram = engine.create_diagram("ERDDiagram", engine.project)
    data_model = diagram.parent
    customers, _ = engine.create_model_and_view("ERDEntity", data_model, diagram, init={"name": "customers"})
    orders, _ = engine.create_model_and_view("ERDEntity", data_model, diagram, init={"name": "orders"})
    customer_pk = engine.create_model("ERDColumn", customers, "columns", init={"name": "id"})
    fk = engine.create_model("ERDColumn", orders, "columns",
                             init={"name": "customer_id", "referenceTo": customer_pk})
    return customers, orders, customer_pk, fk


class TestBlockingReferences:

    def test_referenced_entity_cannot_be_deleted(self, engine, schema):
        customers, orders, customer_pk, fk = schema
        with pytest.raises(IntegrityError) as excinfo:
            check_can_delete(engine, customers, "entity")
        error = excinfo.value
        assert str(error).startswith('Cannot delete entity "customers": 1 element(s) reference it.')
        assert "orders.customer_id" in str(error)
        assert error.referents == [{
            "holderId": fk.id,
            "holderType": "ERDColumn",
            "holderName": "customer_id",
            "path": "referenceTo",
            "targetId": customer_pk.id,
        }]

    def test_referencing_side_can_be_deleted(self, engine, schema):
        customers, orders, customer_pk, fk = schema
        check_can_delete(engine, orders, "entity")

    def test_references_inside_the_subtree_do_not_block(self, engine, schema):
        customers, orders, customer_pk, fk = schema
        self_ref = engine.create_model("ERDColumn", customers, "columns",
                                       init={"name": "parent_id", "referenceTo": customer_pk})
        assert [r.holder for r in find_blocking_references(engine, customers)] == [fk]
        assert self_ref not in [r.holder for r in find_blocking_references(engine, customers)]

    def test_relationship_ends_block(self, engine):
        diagram = engine.create_diagram("ERDDiagram", engine.project)
        _, a = engine.create_model_and_view("ERDEntity", diagram.parent, diagram)
        _, b = engine.create_model_and_view("ERDEntity", diagram.parent, diagram)
        engine.create_model_and_view("ERDRelationship", diagram.parent, diagram, tail_view=a, head_view=b)
        paths = sorted(r.path for r in find_blocking_references(engine, a.model))
        assert paths == ["end1.reference"]
        with pytest.raises(IntegrityError):
            check_can_delete(engine, b.model, "entity")

    def test_non_erd_relations_do_not_block(self, engine):
        diagram = engine.create_diagram("UMLClassDiagram", engine.project)
        _, a = engine.create_model_and_view("UMLClass", diagram.parent, diagram)
        _, b = engine.create_model_and_view("UMLClass", diagram.parent, diagram)
        engine.create_model_and_view("UMLAssociation", diagram.parent, diagram, tail_view=a, head_view=b)
        check_can_delete(engine, a.model, "class")


class TestDiagramCascade:

    @pytest.fixture
    def two_diagrams(self, engine):
        """Two class diagrams sharing one auto-created UMLModel; one class on the first."""
        first = engine.create_diagram("UMLClassDiagram", engine.project, name="First")
        model = first.parent
        second = engine.create_diagram("UMLClassDiagram", model, name="Second")
        cls, _ = engine.create_model_and_view("UMLClass", model, first, init={"name": "Order"})
        return model, first, second, cls

    def test_container_is_reused_when_parent_already_is_one(self, two_diagrams):
        model, first, second, cls = two_diagrams
        assert model.type == "UMLModel"
        assert second.parent is model

    def test_elements_only_shown_on_the_diagram_go_with_it(self, engine, two_diagrams):
        model, first, second, cls = two_diagrams
        plan = delete_diagrams(engine, [first], metamodel.is_auto_container)
        assert plan.summary()["elements"] == [cls.id]
        assert engine.get_by_id(cls.id) is None
        assert engine.get_by_id(first.id) is None

    def test_container_with_surviving_sibling_is_kept(self, engine, two_diagrams):
        model, first, second, cls = two_diagrams
        plan = delete_diagrams(engine, [first], metamodel.is_auto_container)
        assert plan.containers == []
        assert engine.get_by_id(model.id) is model

    def test_batch_removes_the_emptied_container(self, engine, two_diagrams):
        model, first, second, cls = two_diagrams
        plan = plan_diagram_deletion(engine, [first, second], metamodel.is_auto_container)
        assert plan.containers == [model]
        summary = plan.summary()
        assert summary["diagrams"] == [first.id, second.id]
        assert summary["containers"] == [model.id]
        assert summary["elements"] == [cls.id]
        assert summary["views"] == 1

    def test_sequential_deletes_end_in_the_same_state(self, engine, two_diagrams):
        model, first, second, cls = two_diagrams
        delete_diagrams(engine, [first], metamodel.is_auto_container)
        plan = delete_diagrams(engine, [second], metamodel.is_auto_container)
        assert plan.containers == [model]
        assert engine.project.children("ownedElements") == []

    def test_sibling_diagram_under_the_grandparent_survives(self, engine):
        doomed = engine.create_diagram("UMLClassDiagram", engine.project)
        sibling = engine.create_diagram("UMLUseCaseDiagram", engine.project)
        plan = delete_diagrams(engine, [doomed], metamodel.is_auto_container)
        assert plan.containers == [doomed.parent]
        assert engine.get_by_id(sibling.id) is sibling
        assert engine.get_by_id(sibling.parent.id) is sibling.parent

    def test_project_root_is_never_removed(self, engine):
        diagram = engine.create_diagram("UMLClassDiagram", engine.project)
        delete_diagrams(engine, [diagram], metamodel.is_auto_container)
        assert engine.get_by_id(engine.project.id) is engine.project

    def test_non_auto_containers_stay(self, engine):
        diagram = engine.create_diagram("ERDDiagram", engine.project)
        data_model = diagram.parent
        plan = delete_diagrams(engine, [diagram], metamodel.is_auto_container)
        assert plan.containers == []
        assert engine.get_by_id(data_model.id) is data_model

    def test_cascade_is_one_undo_unit(self, engine, two_diagrams):
        model, first, second, cls = two_diagrams
        delete_diagrams(engine, [first, second], metamodel.is_auto_container)
        assert engine.undo()
        assert engine.get_by_id(cls.id) is not None
        assert engine.get_by_id(model.id) is not None


class TestCascadeBlocking:

    @pytest.fixture
    def split_schema(self, engine):
        """orders on one ER diagram, the customers it references on another."""
        kept = engine.create_diagram("ERDDiagram", engine.project, name="Orders")
        data_model = kept.parent
        doomed = engine.create_diagram("ERDDiagram", data_model, name="Customers")
        customers, _ = engine.create_model_and_view("ERDEntity", data_model, doomed, init={"name": "customers"})
        orders, _ = engine.create_model_and_view("ERDEntity", data_model, kept, init={"name": "orders"})
        customer_pk = engine.create_model("ERDColumn", customers, "columns", init={"name": "id"})
        fk = engine.create_model("ERDColumn", orders, "columns",
                                 init={"name": "customer_id", "referenceTo": customer_pk})
        return kept, doomed, customers, customer_pk, fk

    def test_plan_collects_references_from_survivors(self, engine, split_schema):
        kept, doomed, customers, customer_pk, fk = split_schema
        plan = plan_diagram_deletion(engine, [doomed], metamodel.is_auto_container)
        assert customers in plan.models
        assert [(r.holder, r.path, r.target) for r in plan.blocking] == [(fk, "referenceTo", customer_pk)]

    def test_deletion_refused_as_a_whole(self, engine, split_schema):
        kept, doomed, customers, customer_pk, fk = split_schema
        with pytest.raises(IntegrityError) as excinfo:
            delete_diagrams(engine, [doomed], metamodel.is_auto_container)
        assert str(excinfo.value).startswith(
            'Cannot delete diagram "Customers": 1 element(s) reference elements the deletion would remove.'
        )
        assert excinfo.value.referents[0]["holderId"] == fk.id
        assert engine.get_by_id(doomed.id) is doomed
        assert engine.get_by_id(customers.id) is customers
        assert fk.get("referenceTo") is customer_pk

    def test_holder_removed_in_the_same_batch_does_not_block(self, engine, split_schema):
        kept, doomed, customers, customer_pk, fk = split_schema
        plan = delete_diagrams(engine, [kept, doomed], metamodel.is_auto_container)
        assert plan.blocking == []
        assert engine.get_by_id(customers.id) is None
        assert engine.get_by_id(fk.id) is None
