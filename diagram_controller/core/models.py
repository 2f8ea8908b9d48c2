"""
Configuration schemas for element families.

These models describe the REST surface the compiler builds:
- FieldSpec: one wire field, its underlying property name, and its type
- NamedSpec: shared naming of the collection specs (URL segment, message kind)
- ResourceSpec / ChildSpec: node-like element kinds and their sub-collections
- RelationSpec: edge-like element kinds, with plain source/target or two ends
- FamilyConfiguration: one URL prefix with its diagram types and specs

All of them are frozen and built once at start-up. CompiledRoute and
BoundingBox are derived values, never stored in the graph.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


KEBAB_CASE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class FieldType(str, Enum):
    """JSON types a request field may be declared with."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    NULLABLE_STRING = "string|null"
    REFERENCE = "reference"  # element id (or null to clear), resolved before assignment


class FieldSpec(BaseModel):
    """
    An explicit (wire name, property name, type) triple.

    `prop` defaults to the wire name. Reference fields carry the element types
    their id may resolve to; enum fields carry their closed set of choices.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    prop: Optional[str] = None
    type: FieldType = FieldType.STRING
    choices: Optional[tuple[Any, ...]] = None
    ref_types: Optional[tuple[str, ...]] = None
    normalize: Optional[Callable[[Any], Any]] = None

    @property
    def target(self) -> str:
        """Underlying property name."""
        return self.prop or self.name

    @classmethod
    def parse(cls, entry: "FieldSpec | str | dict") -> "FieldSpec":
        """Accept the shorthand forms used in family configurations."""
        if isinstance(entry, FieldSpec):
            return entry
        if isinstance(entry, str):
            return cls(name=entry)
        return cls(**entry)


def _parse_fields(value: Any) -> tuple[FieldSpec, ...]:
    return tuple(FieldSpec.parse(entry) for entry in value)


DEFAULT_UPDATE_FIELDS = (FieldSpec(name="name"), FieldSpec(name="documentation"))

DEFAULT_END_FIELDS = (
    FieldSpec(name="name"),
    FieldSpec(name="navigable", type=FieldType.BOOLEAN),
    FieldSpec(name="aggregation", choices=("none", "shared", "composite")),
    FieldSpec(name="multiplicity"),
)


def singular(name: str) -> str:
    """Singular of a plural kebab-case collection name ("entities" -> "entity")."""
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith("sses"):
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


class NamedSpec(BaseModel):
    """
    Common base of the collection specs.

    `name` is the plural URL segment. Messages use the singular `kind`,
    derived from the name unless `label` overrides it.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    label: Optional[str] = None

    @property
    def kind(self) -> str:
        """Lower-case singular used inside messages ("data-types" -> "data type")."""
        return self.label or singular(self.name).replace("-", " ")

    @property
    def title(self) -> str:
        """Capitalized kind, as not-found errors start with it."""
        return self.kind[:1].upper() + self.kind[1:]


class TypeAlias(BaseModel):
    """A surface type that builds another type with fixed initial fields."""
    model_config = ConfigDict(frozen=True)

    factory_type: str
    init: dict[str, Any] = Field(default_factory=dict)


class ChildSpec(NamedSpec):
    """A sub-collection of a resource, e.g. a class's attributes."""

    type: str
    field: str
    create_fields: tuple[FieldSpec, ...] = ()
    serializer: Optional[Callable[[Any], dict]] = None

    @field_validator("create_fields", mode="before")
    @classmethod
    def normalize_fields(cls, v: Any) -> tuple[FieldSpec, ...]:
        return _parse_fields(v)


class ResourceSpec(NamedSpec):
    """A node-like element kind exposed as a collection resource."""

    types: tuple[str, ...]
    model_types: Optional[tuple[str, ...]] = None
    aliases: dict[str, TypeAlias] = Field(default_factory=dict)
    create_fields: tuple[FieldSpec, ...] = ()
    update_fields: tuple[FieldSpec, ...] = DEFAULT_UPDATE_FIELDS
    serializer: Optional[Callable[[Any], dict]] = None
    children: tuple[ChildSpec, ...] = ()
    diagram_as_parent: tuple[str, ...] = ()

    @field_validator("create_fields", "update_fields", mode="before")
    @classmethod
    def normalize_fields(cls, v: Any) -> tuple[FieldSpec, ...]:
        return _parse_fields(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not KEBAB_CASE.match(v):
            raise ValueError(f"Resource name must be kebab-case: {v}")
        return v

    @model_validator(mode="after")
    def check_children(self) -> "ResourceSpec":
        if not self.types:
            raise ValueError(f"Resource {self.name} declares no types")
        names = [c.name for c in self.children]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate child names in resource {self.name}")
        return self

    @property
    def lookup_types(self) -> tuple[str, ...]:
        """Types accepted by list/get/update/delete."""
        return self.model_types or self.types


class RelationSpec(NamedSpec):
    """
    An edge-like element kind, anchored to node views on a diagram.

    With `has_ends`, end1/end2 sub-objects accept `end_fields` on create and
    update, plus `end_update_fields` on update only.
    """

    type: str
    model_type: Optional[str] = None
    has_ends: bool = False
    end_fields: tuple[FieldSpec, ...] = DEFAULT_END_FIELDS
    end_update_fields: tuple[FieldSpec, ...] = ()
    create_fields: tuple[FieldSpec, ...] = ()
    update_fields: tuple[FieldSpec, ...] = DEFAULT_UPDATE_FIELDS
    serializer: Optional[Callable[[Any], dict]] = None
    target_optional: bool = False

    @field_validator("end_fields", "end_update_fields", "create_fields", "update_fields", mode="before")
    @classmethod
    def normalize_fields(cls, v: Any) -> tuple[FieldSpec, ...]:
        return _parse_fields(v)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not KEBAB_CASE.match(v):
            raise ValueError(f"Relation name must be kebab-case: {v}")
        return v

    @property
    def lookup_type(self) -> str:
        return self.model_type or self.type


class FamilyConfiguration(BaseModel):
    """One cohesive group of element kinds sharing a URL prefix."""
    model_config = ConfigDict(frozen=True)

    prefix: str
    label: str
    diagram_types: tuple[str, ...] = ()
    resources: tuple[ResourceSpec, ...] = ()
    relations: tuple[RelationSpec, ...] = ()

    @field_validator("prefix")
    @classmethod
    def check_prefix(cls, v: str) -> str:
        if not KEBAB_CASE.match(v):
            raise ValueError(f"Family prefix must be kebab-case: {v}")
        return v

    @model_validator(mode="after")
    def check_unique_names(self) -> "FamilyConfiguration":
        names = [r.name for r in self.resources] + [r.name for r in self.relations]
        if self.diagram_types:
            names.append("diagrams")
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(
                f"Family {self.prefix} declares duplicate names: {', '.join(duplicates)}"
            )
        return self


def check_unique_prefixes(families: list[FamilyConfiguration]) -> None:
    """Raise if two families claim the same URL prefix."""
    seen: set[str] = set()
    for family in families:
        if family.prefix in seen:
            raise ValueError(f"Duplicate family prefix: {family.prefix}")
        seen.add(family.prefix)


# --- Derived values ---

@dataclass(frozen=True)
class CompiledRoute:
    """A (verb, path pattern) pair bound to its handler."""
    method: str
    pattern: str
    handler: Callable
    param_names: tuple[str, ...] = ()
    regex: re.Pattern = field(default=None, compare=False, repr=False)

    @classmethod
    def build(cls, method: str, pattern: str, handler: Callable) -> "CompiledRoute":
        param_names = tuple(re.findall(r":(\w+)", pattern))
        escaped = re.escape(pattern)
        regex = re.compile("^" + re.sub(r":(\w+)", r"([^/]+)", escaped) + "$")
        return cls(method=method, pattern=pattern, handler=handler,
                   param_names=param_names, regex=regex)

    def match(self, method: str, path: str) -> Optional[dict[str, str]]:
        """Return raw (still percent-encoded) path params, or None."""
        if method != self.method:
            return None
        found = self.regex.match(path)
        if found is None:
            return None
        return dict(zip(self.param_names, found.groups()))

    def describe(self) -> str:
        return f"{self.method:<6} {self.pattern}"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in diagram coordinates (Y grows downward)."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def center(self) -> tuple[float, float]:
        """Get the center point of the box."""
        return ((self.left + self.right) / 2, (self.top + self.bottom) / 2)

    def to_dict(self) -> dict:
        return {"left": self.left, "top": self.top, "right": self.right, "bottom": self.bottom}
