"""
Controller Core - Configuration schemas, validation, integrity, geometry, layout, and DDL.

This module holds everything the REST surface needs that does not touch
HTTP: the family schemas the compiler consumes, the request checks, and the
consistency rules every mutation runs through.
"""

from .errors import (
    ControllerError,
    ValidationError,
    NotFoundError,
    IntegrityError,
    ConstructionError,
    GeometryError,
)

from .models import (
    # Enums
    FieldType,
    # Configuration schemas
    FieldSpec,
    NamedSpec,
    TypeAlias,
    ChildSpec,
    ResourceSpec,
    RelationSpec,
    FamilyConfiguration,
    check_unique_prefixes,
    # Derived values
    CompiledRoute,
    BoundingBox,
)

from .validation import require_valid, first_error
from .integrity import check_can_delete, plan_diagram_deletion, delete_diagrams
from .geometry import auto_expand_frame, fit_frame_to_views, clear_edge_waypoints, reroute_edges
from .layout import grid_layout, tree_layout, align_boxes, distribute_boxes
from .ddl import generate_postgresql_ddl

__all__ = [
    # Errors
    "ControllerError",
    "ValidationError",
    "NotFoundError",
    "IntegrityError",
    "ConstructionError",
    "GeometryError",
    # Schemas
    "FieldType",
    "FieldSpec",
    "NamedSpec",
    "TypeAlias",
    "ChildSpec",
    "ResourceSpec",
    "RelationSpec",
    "FamilyConfiguration",
    "check_unique_prefixes",
    "CompiledRoute",
    "BoundingBox",
    # Validation
    "require_valid",
    "first_error",
    # Integrity
    "check_can_delete",
    "plan_diagram_deletion",
    "delete_diagrams",
    # Geometry
    "auto_expand_frame",
    "fit_frame_to_views",
    "clear_edge_waypoints",
    "reroute_edges",
    # Layout
    "grid_layout",
    "tree_layout",
    "align_boxes",
    "distribute_boxes",
    # DDL
    "generate_postgresql_ddl",
]
