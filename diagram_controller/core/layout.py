"""
Layout algorithms for node views.

Provides layout strategies that can be applied to a diagram's node views:
- Grid: Simple grid arrangement
- Tree: Hierarchical layout based on edge directions
- Align / distribute: line up or evenly space a selection

The algorithms work on lightweight Box objects and modify them in-place.
Callers read views into boxes, run a layout, and write the changed
positions back through the engine.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..host.graph import View


# Default layout parameters
DEFAULT_SPACING_X = 200
DEFAULT_SPACING_Y = 150
DEFAULT_START_X = 100
DEFAULT_START_Y = 100

ALIGNMENTS = ("left", "right", "top", "bottom", "center_h", "center_v")
AXES = ("horizontal", "vertical")
STRATEGIES = ("grid", "tree")


@dataclass
class Box:
    """Position and size of one node view during a layout pass."""
    id: str
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_view(cls, view: "View") -> "Box":
        return cls(id=view.id, x=view.left, y=view.top, width=view.width, height=view.height)


def grid_layout(
    boxes: list[Box],
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    columns: int | None = None
) -> list[Box]:
    """
    Arrange boxes in a grid pattern.

    Args:
        boxes: Boxes to arrange
        spacing_x: Horizontal spacing between box origins
        spacing_y: Vertical spacing between box origins
        start_x: X coordinate of first box
        start_y: Y coordinate of first box
        columns: Number of columns (auto-calculated if None)

    Returns:
        The same list of boxes (modified in-place)
    """
    if not boxes:
        return boxes

    if columns is None:
        columns = max(3, int(len(boxes) ** 0.5) + 1)

    for i, box in enumerate(boxes):
        row = i // columns
        col = i % columns
        box.x = start_x + col * spacing_x
        box.y = start_y + row * spacing_y

    return boxes


def tree_layout(
    boxes: list[Box],
    links: list[tuple[str, str]],
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    orientation: str = "vertical"  # "vertical" or "horizontal"
) -> list[Box]:
    """
    Arrange boxes in levels following (source, target) links.

    Boxes with no incoming link are placed at the root level, children
    one level below their parents. Unreachable boxes join the root level.

    Returns:
        The same list of boxes (modified in-place)
    """
    if not boxes:
        return boxes

    children: dict[str, list[str]] = {b.id: [] for b in boxes}
    has_parent: set[str] = set()
    for source, target in links:
        if source in children and target in children and source != target:
            children[source].append(target)
            has_parent.add(target)

    roots = [b.id for b in boxes if b.id not in has_parent] or [boxes[0].id]

    # BFS to assign levels
    levels: dict[str, int] = {}
    queue = [(r, 0) for r in roots]
    while queue:
        box_id, level = queue.pop(0)
        if box_id in levels:
            continue
        levels[box_id] = level
        for child in children.get(box_id, []):
            queue.append((child, level + 1))

    for box in boxes:
        levels.setdefault(box.id, 0)

    level_counts: dict[int, int] = defaultdict(int)
    for box in boxes:
        level = levels[box.id]
        idx = level_counts[level]
        level_counts[level] += 1
        if orientation == "vertical":
            box.x = start_x + idx * spacing_x
            box.y = start_y + level * spacing_y
        else:
            box.x = start_x + level * spacing_x
            box.y = start_y + idx * spacing_y

    return boxes


def align_boxes(boxes: list[Box], alignment: str = "left") -> bool:
    """
    Align boxes along an edge or center.

    Args:
        boxes: Boxes to align
        alignment: One of "left", "right", "top", "bottom", "center_h", "center_v"

    Returns:
        True if alignment was performed, False if fewer than two boxes
        or an unknown alignment
    """
    if len(boxes) < 2:
        return False

    if alignment == "left":
        min_x = min(b.x for b in boxes)
        for b in boxes:
            b.x = min_x
    elif alignment == "right":
        max_x = max(b.x + b.width for b in boxes)
        for b in boxes:
            b.x = max_x - b.width
    elif alignment == "top":
        min_y = min(b.y for b in boxes)
        for b in boxes:
            b.y = min_y
    elif alignment == "bottom":
        max_y = max(b.y + b.height for b in boxes)
        for b in boxes:
            b.y = max_y - b.height
    elif alignment == "center_h":
        center_x = sum(b.x + b.width / 2 for b in boxes) / len(boxes)
        for b in boxes:
            b.x = center_x - b.width / 2
    elif alignment == "center_v":
        center_y = sum(b.y + b.height / 2 for b in boxes) / len(boxes)
        for b in boxes:
            b.y = center_y - b.height / 2
    else:
        return False

    return True


def distribute_boxes(boxes: list[Box], axis: str = "horizontal") -> bool:
    """
    Evenly space boxes between the outermost two along an axis.

    Returns:
        True if distribution was performed, False if fewer than three boxes
    """
    if len(boxes) < 3:
        return False

    if axis == "horizontal":
        boxes.sort(key=lambda b: b.x)
        min_x, max_x = boxes[0].x, boxes[-1].x
        spacing = (max_x - min_x) / (len(boxes) - 1)
        for i, b in enumerate(boxes):
            b.x = min_x + i * spacing
    elif axis == "vertical":
        boxes.sort(key=lambda b: b.y)
        min_y, max_y = boxes[0].y, boxes[-1].y
        spacing = (max_y - min_y) / (len(boxes) - 1)
        for i, b in enumerate(boxes):
            b.y = min_y + i * spacing
    else:
        return False

    return True
