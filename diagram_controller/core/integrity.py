"""
Referential integrity and diagram-deletion cascade.

Two independent policies:
- Pre-delete block: an element cannot be deleted while elements outside its
  subtree hold a blocking reference to it (or to anything it owns). Callers
  must remove the referencing elements first; references are never nulled.
- Diagram cascade: deleting diagrams also deletes the elements they show
  that are shown nowhere else, and walks up through auto-created containers
  left empty by the deletion.

Batch deletes are evaluated against the state after the whole batch: an
element shown only on diagrams of the same batch is deleted with them.
The cascade honours the pre-delete block too: a diagram deletion that would
remove the target of a blocking reference held by a surviving element is
refused as a whole.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

from .errors import IntegrityError

if TYPE_CHECKING:
    from ..host.engine import ModelEngine
    from ..host.graph import Diagram, Element, View


# Holder type -> property paths whose target cannot be deleted while set
BLOCKING_REFERENCES = {
    "ERDColumn": ("referenceTo",),
    "ERDRelationship": ("end1.reference", "end2.reference"),
}


@dataclass
class Reference:
    """One element holding a blocking reference into a delete target."""
    holder: "Element"
    path: str
    target: "Element"

    def describe(self) -> str:
        owner = self.holder.parent
        prefix = f"{owner.name}." if owner is not None and owner.name else ""
        return (
            f"{prefix}{self.holder.name or self.holder.id} "
            f"({self.holder.type} {self.holder.id}) references "
            f"{self.target.name or self.target.id} via {self.path}"
        )

    def to_dict(self) -> dict:
        return {
            "holderId": self.holder.id,
            "holderType": self.holder.type,
            "holderName": self.holder.name,
            "path": self.path,
            "targetId": self.target.id,
        }


def _references_into(
    engine: "ModelEngine",
    removed: set["Element"],
    blocking: dict[str, tuple[str, ...]],
) -> list[Reference]:
    """Blocking references into `removed` held by elements that survive."""
    found = []
    for holder_type, paths in blocking.items():
        for holder in engine.select_by_type(holder_type):
            if holder in removed:
                continue
            for path in paths:
                target = holder.resolve(path)
                if target is not None and target in removed:
                    found.append(Reference(holder=holder, path=path, target=target))
    return found


def find_blocking_references(
    engine: "ModelEngine",
    element: "Element",
    blocking: dict[str, tuple[str, ...]] = BLOCKING_REFERENCES,
) -> list[Reference]:
    """Every reference into the element's subtree held from outside it."""
    return _references_into(engine, {element, *element.descendants()}, blocking)


def check_can_delete(engine: "ModelEngine", element: "Element", kind: str) -> None:
    """
    Refuse deletion while blocking references exist.

    Raises:
        IntegrityError: listing every referencing element
    """
    references = find_blocking_references(engine, element)
    if references:
        raise IntegrityError(
            f'Cannot delete {kind} "{element.name or element.id}": '
            f"{len(references)} element(s) reference it. "
            + ", ".join(r.describe() for r in references),
            referents=[r.to_dict() for r in references],
        )


@dataclass
class DeletionPlan:
    """What a diagram deletion removes."""
    diagrams: list["Diagram"]
    models: list["Element"] = field(default_factory=list)
    views: list["View"] = field(default_factory=list)
    containers: list["Element"] = field(default_factory=list)
    blocking: list[Reference] = field(default_factory=list)

    def summary(self) -> dict:
        """Ids removed, by role. Diagrams and containers are not repeated under elements."""
        return {
            "diagrams": [d.id for d in self.diagrams],
            "elements": [
                m.id for m in self.models
                if m not in self.diagrams and m not in self.containers
            ],
            "containers": [c.id for c in self.containers],
            "views": len(self.views),
        }

    def describe(self) -> str:
        names = ", ".join(f'"{d.name or d.id}"' for d in self.diagrams)
        return f"diagram {names}" if len(self.diagrams) == 1 else f"diagrams {names}"


def plan_diagram_deletion(
    engine: "ModelEngine",
    diagrams: Iterable["Diagram"],
    is_auto_container: Callable[[str], bool],
) -> DeletionPlan:
    """
    Work out everything deleting the diagrams removes.

    - Each diagram and all of its views
    - Each element shown on them, unless it also has a view on a diagram
      outside the batch
    - Auto-created ancestor containers, one level at a time, while every
      child they have is already being deleted; the walk stops at the first
      container with a surviving child, or at a parentless root

    Blocking references from surviving elements into anything the plan
    removes are collected in `plan.blocking`; nothing is mutated here.
    """
    plan = DeletionPlan(diagrams=list(diagrams))
    batch = {d.id for d in plan.diagrams}
    doomed: set[str] = set(batch)
    plan.models.extend(plan.diagrams)

    for diagram in plan.diagrams:
        for view in diagram.owned_views:
            plan.views.append(view)
            model = view.model
            if model is None or model.id in doomed:
                continue
            elsewhere = [
                v for v in engine.views_of(model)
                if v.diagram is not None and v.diagram.id not in batch
            ]
            if not elsewhere:
                doomed.add(model.id)
                plan.models.append(model)

    for diagram in plan.diagrams:
        container = diagram.parent
        while (container is not None and container.parent is not None
               and is_auto_container(container.type)):
            if container.id not in doomed:
                survivors = [c for c in container.owned() if c.id not in doomed]
                if survivors:
                    break
                doomed.add(container.id)
                plan.models.append(container)
                plan.containers.append(container)
            container = container.parent

    removed: set["Element"] = set()
    for model in plan.models:
        removed.add(model)
        removed.update(model.descendants())
    plan.blocking = _references_into(engine, removed, BLOCKING_REFERENCES)
    return plan


def delete_diagrams(
    engine: "ModelEngine",
    diagrams: Iterable["Diagram"],
    is_auto_container: Callable[[str], bool],
) -> DeletionPlan:
    """
    Plan and execute a diagram deletion as one undo unit.

    Raises:
        IntegrityError: when a surviving element holds a blocking reference
            into something the cascade would remove; nothing is deleted
    """
    plan = plan_diagram_deletion(engine, diagrams, is_auto_container)
    if plan.blocking:
        raise IntegrityError(
            f"Cannot delete {plan.describe()}: {len(plan.blocking)} element(s) "
            f"reference elements the deletion would remove. "
            + ", ".join(r.describe() for r in plan.blocking),
            referents=[r.to_dict() for r in plan.blocking],
        )
    engine.delete_elements(plan.models, plan.views)
    return plan
