"""
Helpers shared by compiled and hand-written handlers.
"""

from typing import Any, Iterable, Optional

from ..core.errors import NotFoundError, ValidationError
from ..core.models import FieldSpec, FieldType
from ..core.validation import check_enum, check_field_type
from ..host import Diagram, Element, ModelEngine
from .envelope import ApiContext

STYLE_FIELDS = ("lineColor", "fillColor", "fontColor")
COORDINATE_FIELDS = ("x1", "y1", "x2", "y2")
DEFAULT_GEOMETRY = (100, 100, 200, 180)


def allowed_fields(base: Iterable[str], specs: Iterable[FieldSpec]) -> list[str]:
    """Base wire names followed by any extra spec names, without duplicates."""
    allowed = list(base)
    for spec in specs:
        if spec.name not in allowed:
            allowed.append(spec.name)
    return allowed


def type_checks(body: dict, specs: Iterable[FieldSpec]) -> list[Optional[str]]:
    return [check_field_type(body, spec.name, spec.type) for spec in specs]


def enum_checks(body: dict, specs: Iterable[FieldSpec]) -> list[Optional[str]]:
    """
    Closed-set checks. Run only after type checks pass, since values are
    normalized before comparison.
    """
    checks = []
    for spec in specs:
        if spec.choices is None or spec.name not in body:
            continue
        value = body[spec.name]
        if spec.normalize is not None and value is not None:
            value = spec.normalize(value)
        checks.append(check_enum({spec.name: value}, spec.name, spec.choices))
    return checks


def _article(word: str) -> str:
    return "an" if word[:1].upper() in "AEIOU" else "a"


def resolve_value(ctx: ApiContext, spec: FieldSpec, value: Any) -> Any:
    """Normalize a wire value and resolve reference ids to elements."""
    if spec.normalize is not None and value is not None:
        value = spec.normalize(value)
    if spec.type != FieldType.REFERENCE or value is None:
        return value
    target = ctx.repository.get_element(value)
    if target is None or (spec.ref_types and target.type not in spec.ref_types):
        kinds = " or ".join(spec.ref_types or ("element",))
        raise ValidationError(
            f"{spec.name} must refer to {_article(kinds)} {kinds}. "
            f"Not found or wrong type: {value}"
        )
    return target


def resolve_fields(ctx: ApiContext, body: dict, specs: Iterable[FieldSpec],
                   skip: Iterable[str] = ()) -> list[tuple[FieldSpec, Any]]:
    """Resolve every present field before any mutation runs."""
    skip = set(skip)
    return [
        (spec, resolve_value(ctx, spec, body[spec.name]))
        for spec in specs
        if spec.name in body and spec.name not in skip
    ]


def get_diagram(ctx: ApiContext, identifier: str, types: Optional[Iterable[str]] = None) -> Diagram:
    diagram = ctx.repository.get_diagram(identifier)
    if diagram is None or (types is not None and diagram.type not in types):
        raise NotFoundError("Diagram", identifier)
    return diagram


def get_typed(ctx: ApiContext, identifier: str, types: Iterable[str], kind: str) -> Element:
    """Resolve an element whose type tag is one of `types`, else not-found."""
    elem = ctx.repository.get_element(identifier)
    if elem is None or elem.type not in types:
        raise NotFoundError(kind, identifier)
    return elem


def pick_type(body: dict, types: tuple[str, ...], label: str = "type") -> str:
    """The creation type: the only one, the requested one, or the first."""
    if len(types) == 1 or not body.get("type"):
        return types[0]
    if body["type"] not in types:
        raise ValidationError(f'Invalid {label} "{body["type"]}". Allowed: {", ".join(types)}')
    return body["type"]


def propagate_name(engine: ModelEngine, model: Element, name: str) -> None:
    """
    Rename the interaction an action stands for.

    On interaction overview diagrams the action's view shows its
    interaction's name. Links followed:
    - action.target -> sequence diagram -> owning interaction
    - action.target -> interaction use -> refersTo interaction
    """
    if model.type != "UMLAction":
        return
    target = model.get("target")
    if not isinstance(target, Element):
        return
    interaction = None
    if target.type == "UMLSequenceDiagram" and target.parent is not None \
            and target.parent.type == "UMLInteraction":
        interaction = target.parent
    elif target.type == "UMLInteractionUse":
        refers_to = target.get("refersTo")
        if isinstance(refers_to, Element) and refers_to.type == "UMLInteraction":
            interaction = refers_to
    if interaction is not None:
        engine.set_property(interaction, "name", name)


def deletion_views(ctx: ApiContext, elem: Element) -> list:
    """Every view showing the element, plus a diagram's own views."""
    views = list(ctx.repository.get_views_of(elem))
    if isinstance(elem, Diagram):
        views.extend(elem.owned_views)
    return views
