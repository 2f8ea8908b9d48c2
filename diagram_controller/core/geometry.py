"""
Geometry invariants for diagram frames and edges.

Provides the geometric clean-up every mutating endpoint runs:
- Bounds: bounding box of a node or edge view
- Expand: grow a diagram's frame to contain its views (never shrinks)
- Fit: tightly refit a frame after an explicit layout pass
- Waypoints: reset an edge to a straight two-point path between its endpoints

All coordinates are diagram units with the origin top-left and Y growing
downward. Mutations go through the engine so they land in the undo history.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from .errors import ControllerError, GeometryError
from .models import BoundingBox
from ..utils import get_logger

if TYPE_CHECKING:
    from ..host.engine import ModelEngine
    from ..host.graph import Diagram, View

logger = get_logger("geometry")

DEFAULT_MARGIN = 30

# View types whose width always equals their diagram frame's width
FRAME_TRACKING_VIEW_TYPES = frozenset({"UMLTimingLifelineView"})


def get_bounds(view: "View") -> BoundingBox:
    """
    Bounding box of a view.

    Preference order:
    1. Position and size, when the box is non-degenerate (authoritative once
       a layout pass has run, even for edges)
    2. Min/max of the point list, for edges still in pre-layout state
    3. Raw position with zero size
    """
    if view.width > 0 or view.height > 0:
        return BoundingBox(view.left, view.top, view.left + view.width, view.top + view.height)
    if view.points:
        xs = [p[0] for p in view.points]
        ys = [p[1] for p in view.points]
        return BoundingBox(min(xs), min(ys), max(xs), max(ys))
    return BoundingBox(view.left, view.top, view.left, view.top)


def find_frame_view(diagram: "Diagram") -> Optional["View"]:
    """The diagram's frame view, if it has one."""
    for view in diagram.owned_views:
        if view.type.endswith("FrameView"):
            return view
    return None


def _content_views(diagram: "Diagram", frame: "View") -> list["View"]:
    return [v for v in diagram.owned_views if v is not frame]


def _sync_tracking_views(engine: "ModelEngine", tracking: Iterable["View"], frame: "View",
                         align_left: bool = False):
    for view in tracking:
        changes = {"width": frame.width}
        if align_left:
            changes["left"] = frame.left
        engine.update_fields(view, changes)


def auto_expand_frame(
    engine: "ModelEngine",
    diagram: "Diagram",
    margin: float = DEFAULT_MARGIN,
    tracking_types: frozenset[str] = FRAME_TRACKING_VIEW_TYPES,
) -> Optional[BoundingBox]:
    """
    Grow the diagram frame so every view fits inside it plus a margin.

    Frame-tracking views count toward the bottom edge only; counting their
    width would stop the frame from ever settling. The frame never shrinks.
    Tracking views are resized to the new frame width afterwards.

    Returns:
        The frame's bounds after expansion, or None if the diagram has no frame
    """
    frame = find_frame_view(diagram)
    if frame is None:
        return None

    views = _content_views(diagram, frame)
    tracking = [v for v in views if v.type in tracking_types]

    max_right: Optional[float] = None
    max_bottom: Optional[float] = None
    for view in views:
        bounds = get_bounds(view)
        if view.type not in tracking_types:
            max_right = bounds.right if max_right is None else max(max_right, bounds.right)
        max_bottom = bounds.bottom if max_bottom is None else max(max_bottom, bounds.bottom)

    changes = {}
    if max_right is not None and max_right + margin > frame.left + frame.width:
        changes["width"] = max_right + margin - frame.left
    if max_bottom is not None and max_bottom + margin > frame.top + frame.height:
        changes["height"] = max_bottom + margin - frame.top

    with engine.compound():
        if changes:
            engine.update_fields(frame, changes)
        _sync_tracking_views(engine, tracking, frame)
    return get_bounds(frame)


def fit_frame_to_views(
    engine: "ModelEngine",
    diagram: "Diagram",
    margin: float = DEFAULT_MARGIN,
    tracking_types: frozenset[str] = FRAME_TRACKING_VIEW_TYPES,
) -> Optional[BoundingBox]:
    """
    Refit the frame tightly around its content after a layout pass.

    The frame only moves leftward/upward: tracking views are positioned
    relative to the frame, so moving it right would never converge. Width and
    height become the larger of the current size and the content extent plus
    margin, measured from the new top-left, so the far edges may pull back
    toward the content. Tracking views are then aligned to the frame's left
    and width. Calling this twice in a row gives the same frame.
    """
    frame = find_frame_view(diagram)
    if frame is None:
        return None

    views = _content_views(diagram, frame)
    tracking = [v for v in views if v.type in tracking_types]
    content = [get_bounds(v) for v in views if v.type not in tracking_types]
    tracking_boxes = [get_bounds(v) for v in tracking]
    if not content and not tracking_boxes:
        return get_bounds(frame)

    tops = [b.top for b in content] + [b.top for b in tracking_boxes]
    bottoms = [b.bottom for b in content] + [b.bottom for b in tracking_boxes]

    new_left = frame.left
    new_width = frame.width
    if content:
        new_left = min(frame.left, min(b.left for b in content) - margin)
        new_width = max(frame.width, max(b.right for b in content) + margin - new_left)
    new_top = min(frame.top, min(tops) - margin)
    new_height = max(frame.height, max(bottoms) + margin - new_top)

    with engine.compound():
        engine.update_fields(frame, {
            "left": new_left,
            "top": new_top,
            "width": new_width,
            "height": new_height,
        })
        _sync_tracking_views(engine, tracking, frame, align_left=True)
    return get_bounds(frame)


def clear_edge_waypoints(engine: "ModelEngine", edge: "View") -> list[tuple[float, float]]:
    """
    Replace an edge's points with the centers of its tail and head views.

    Applied through the engine as a single undo unit.

    Raises:
        GeometryError: if the view is not an edge with both endpoints
    """
    if edge.tail is None or edge.head is None:
        raise GeometryError(f"View {edge.id} is not an edge with two endpoints")
    points = [get_bounds(edge.tail).center(), get_bounds(edge.head).center()]
    engine.update_fields(edge, {"points": points})
    return points


@dataclass
class RerouteResult:
    """Outcome of re-routing one edge after an endpoint moved."""
    edge_id: str
    ok: bool
    points: Optional[list[tuple[float, float]]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"edgeId": self.edge_id, "ok": self.ok}
        if self.points is not None:
            result["points"] = [list(p) for p in self.points]
        if self.error:
            result["error"] = self.error
        return result


def reroute_edges(engine: "ModelEngine", view: "View") -> list[RerouteResult]:
    """
    Best-effort re-route of every edge attached to a moved view.

    A failure on one edge is logged and reported in its result; it never
    fails the operation that moved the view.
    """
    results = []
    if view.diagram is None:
        return results
    for edge in view.diagram.owned_views:
        if edge.head is not view and edge.tail is not view:
            continue
        try:
            points = clear_edge_waypoints(engine, edge)
        except ControllerError as e:
            logger.warning("Could not re-route edge %s: %s", edge.id, e)
            results.append(RerouteResult(edge_id=edge.id, ok=False, error=str(e)))
        else:
            results.append(RerouteResult(edge_id=edge.id, ok=True, points=points))
    return results
