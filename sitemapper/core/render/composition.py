"""
Composition renderer.

Turns the annotation model into an ordered list of backend-neutral draw
operations, in base-image pixel coordinates (origin top-left, y down).
The live surface, the raster exporter and the PDF exporter all replay
the same list, so the three outputs share one composition:

1. base image
2. user lines
3. leader lines with their target dots
4. markers (badge with the sorted typology, appendix with the number)

Every linear size is a fraction of the image width multiplied by the
marker scale. Screen zoom never enters here.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from reportlab.pdfbase.pdfmetrics import stringWidth

from ..annotation.state import InteractionMode, Line, Point, ProjectState
from ..annotation.transitions import Hit
from ..annotation.utils import display_typology
from ..geometry import percent_to_pixels

# One size unit is 1/50 of the image width
UNIT_DIVISOR = 50.0

LINE_WIDTH = 0.15
LINE_OPACITY = 0.8
LEADER_WIDTH = 0.1
TARGET_DOT_RADIUS = 0.15
BADGE_HEIGHT = 1.2
BADGE_FONT = 0.6
BADGE_PADDING = 0.3
BADGE_BORDER = 0.08
APPENDIX_HEIGHT = 0.6
APPENDIX_FONT = 0.45
APPENDIX_PADDING = 0.15
APPENDIX_BORDER = 0.03
APPENDIX_RADIUS = 0.12
# Appendix top-left, relative to the badge box
APPENDIX_OFFSET_X = 0.8
APPENDIX_OFFSET_Y = -0.4

MARKER_COLOR = "#dc2626"
SELECTED_COLOR = "#2563eb"
BADGE_TEXT_COLOR = "#ffffff"
APPENDIX_FILL = "#ffffff"
APPENDIX_BORDER_COLOR = "#cbd5e1"
APPENDIX_TEXT_COLOR = "#1e293b"

FONT_NAME = "Helvetica-Bold"

PREVIEW_DASH = (5.0, 5.0)


class MarkerStyle(Enum):
    """Badge shapes; resolved per marker when drawing."""

    CIRCLE = "circle"
    PILL = "pill"


# Draw operations


@dataclass(frozen=True)
class BaseImageOp:
    width: float
    height: float
    background: str = "#ffffff"


@dataclass(frozen=True)
class SegmentOp:
    start: Tuple[float, float]
    end: Tuple[float, float]
    color: str
    width: float
    opacity: float = 1.0
    dash: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class DiscOp:
    center: Tuple[float, float]
    radius: float
    fill: str
    stroke: Optional[str] = None
    stroke_width: float = 0.0


@dataclass(frozen=True)
class RoundedRectOp:
    x: float
    y: float
    width: float
    height: float
    radius: float
    fill: str
    stroke: Optional[str] = None
    stroke_width: float = 0.0


@dataclass(frozen=True)
class TextOp:
    text: str
    center: Tuple[float, float]
    size: float
    color: str
    width: float  # measured advance width, shared by every backend


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


@dataclass(frozen=True)
class LiveOverlay:
    """Live-surface extras; exports never pass one."""

    selected_point_id: Optional[str] = None
    selected_line_id: Optional[str] = None
    preview_mode: Optional[InteractionMode] = None
    preview_anchor: Optional[Tuple[float, float]] = None
    preview_current: Optional[Tuple[float, float]] = None
    preview_color: str = MARKER_COLOR


@dataclass(frozen=True)
class Metrics:
    """Pixel sizes for one image width and marker scale."""

    unit: float

    @classmethod
    def for_image(cls, width: float, marker_scale: float = 1.0):
        return cls(unit=width / UNIT_DIVISOR * marker_scale)

    @property
    def line_width(self) -> float:
        return LINE_WIDTH * self.unit

    @property
    def leader_width(self) -> float:
        return LEADER_WIDTH * self.unit

    @property
    def target_dot_radius(self) -> float:
        return TARGET_DOT_RADIUS * self.unit

    @property
    def badge_height(self) -> float:
        return BADGE_HEIGHT * self.unit

    @property
    def badge_font(self) -> float:
        return BADGE_FONT * self.unit

    @property
    def badge_padding(self) -> float:
        return BADGE_PADDING * self.unit

    @property
    def badge_border(self) -> float:
        return BADGE_BORDER * self.unit

    @property
    def appendix_height(self) -> float:
        return APPENDIX_HEIGHT * self.unit

    @property
    def appendix_font(self) -> float:
        return APPENDIX_FONT * self.unit

    @property
    def appendix_padding(self) -> float:
        return APPENDIX_PADDING * self.unit

    @property
    def appendix_border(self) -> float:
        return APPENDIX_BORDER * self.unit

    @property
    def appendix_radius(self) -> float:
        return APPENDIX_RADIUS * self.unit


@dataclass(frozen=True)
class MarkerLayout:
    point_id: str
    style: MarkerStyle
    badge: Rect
    badge_text: str
    badge_text_width: float
    appendix: Rect
    appendix_text: str
    appendix_text_width: float


def measure_text(text: str, size: float) -> float:
    """Advance width of ``text`` in the marker font, in pixels."""
    return stringWidth(text, FONT_NAME, size)


def resolve_marker_style(text_width: float, metrics: Metrics) -> MarkerStyle:
    if text_width + 2 * metrics.badge_padding <= metrics.badge_height:
        return MarkerStyle.CIRCLE
    return MarkerStyle.PILL


def layout_marker(point: Point, width: float, height: float, metrics: Metrics) -> MarkerLayout:
    """Compute the badge and appendix boxes of one point."""
    cx = point.x / 100.0 * width
    cy = point.y / 100.0 * height

    badge_text = display_typology(point.typology)
    badge_text_width = measure_text(badge_text, metrics.badge_font)
    style = resolve_marker_style(badge_text_width, metrics)
    badge_h = metrics.badge_height
    if style == MarkerStyle.CIRCLE:
        badge_w = badge_h
    else:
        badge_w = badge_text_width + 2 * metrics.badge_padding
    badge = Rect(cx - badge_w / 2, cy - badge_h / 2, badge_w, badge_h)

    appendix_text = str(point.number)
    appendix_text_width = measure_text(appendix_text, metrics.appendix_font)
    appendix_h = metrics.appendix_height
    appendix_w = max(appendix_h, appendix_text_width + 2 * metrics.appendix_padding)
    appendix = Rect(
        badge.x + badge_w * APPENDIX_OFFSET_X,
        badge.y + badge_h * APPENDIX_OFFSET_Y,
        appendix_w,
        appendix_h,
    )

    return MarkerLayout(
        point_id=point.id,
        style=style,
        badge=badge,
        badge_text=badge_text,
        badge_text_width=badge_text_width,
        appendix=appendix,
        appendix_text=appendix_text,
        appendix_text_width=appendix_text_width,
    )


def _line_ops(lines: Sequence[Line], width, height, metrics, overlay) -> List:
    ops = []
    for line in lines:
        stroke = metrics.line_width
        if overlay is not None and overlay.selected_line_id == line.id:
            stroke *= 1.6
        ops.append(
            SegmentOp(
                start=percent_to_pixels(line.start_x, line.start_y, width, height),
                end=percent_to_pixels(line.end_x, line.end_y, width, height),
                color=line.color.value,
                width=stroke,
                opacity=LINE_OPACITY,
            )
        )
    return ops


def _leader_ops(points: Sequence[Point], width, height, metrics) -> List:
    ops = []
    for point in points:
        if not point.has_leader:
            continue
        target = percent_to_pixels(*point.target, width, height)
        badge = percent_to_pixels(point.x, point.y, width, height)
        ops.append(SegmentOp(target, badge, MARKER_COLOR, metrics.leader_width))
        ops.append(DiscOp(target, metrics.target_dot_radius, MARKER_COLOR))
    return ops


def _preview_ops(overlay: Optional[LiveOverlay], width, height, metrics) -> List:
    if overlay is None or overlay.preview_anchor is None or overlay.preview_current is None:
        return []
    anchor = percent_to_pixels(*overlay.preview_anchor, width, height)
    current = percent_to_pixels(*overlay.preview_current, width, height)
    if overlay.preview_mode == InteractionMode.LINE:
        return [
            SegmentOp(anchor, current, overlay.preview_color, metrics.line_width,
                      opacity=LINE_OPACITY, dash=PREVIEW_DASH)
        ]
    return [
        SegmentOp(anchor, current, MARKER_COLOR, metrics.leader_width, dash=PREVIEW_DASH),
        DiscOp(anchor, metrics.target_dot_radius, MARKER_COLOR),
    ]


def _marker_ops(layout: MarkerLayout, metrics: Metrics, selected: bool) -> List:
    fill = SELECTED_COLOR if selected else MARKER_COLOR
    ops = []
    if layout.style == MarkerStyle.CIRCLE:
        ops.append(
            DiscOp(layout.badge.center, layout.badge.height / 2, fill,
                   stroke=BADGE_TEXT_COLOR, stroke_width=metrics.badge_border)
        )
    else:
        ops.append(
            RoundedRectOp(
                layout.badge.x, layout.badge.y, layout.badge.width, layout.badge.height,
                radius=layout.badge.height / 2, fill=fill,
                stroke=BADGE_TEXT_COLOR, stroke_width=metrics.badge_border,
            )
        )
    ops.append(
        TextOp(layout.badge_text, layout.badge.center, metrics.badge_font,
               BADGE_TEXT_COLOR, layout.badge_text_width)
    )

    appendix_stroke = SELECTED_COLOR if selected else APPENDIX_BORDER_COLOR
    appendix_text = SELECTED_COLOR if selected else APPENDIX_TEXT_COLOR
    ops.append(
        RoundedRectOp(
            layout.appendix.x, layout.appendix.y, layout.appendix.width, layout.appendix.height,
            radius=metrics.appendix_radius, fill=APPENDIX_FILL,
            stroke=appendix_stroke, stroke_width=metrics.appendix_border,
        )
    )
    ops.append(
        TextOp(layout.appendix_text, layout.appendix.center, metrics.appendix_font,
               appendix_text, layout.appendix_text_width)
    )
    return ops


def compose(
    project: ProjectState,
    overlay: Optional[LiveOverlay] = None,
    background: str = "#ffffff",
) -> List:
    """
    Build the draw list for a project.

    Args:
        project: Model snapshot; ``image_size`` must be known
        overlay: Selection highlight and creation preview, live view only
        background: Fill shown through transparent image areas

    Returns:
        Draw operations in paint order
    """
    if project.image_size is None:
        raise ValueError("Project has no base image size")
    width, height = project.image_size
    metrics = Metrics.for_image(width, project.marker_scale)

    ops: List = [BaseImageOp(width, height, background)]
    ops.extend(_line_ops(project.lines, width, height, metrics, overlay))
    ops.extend(_leader_ops(project.points, width, height, metrics))
    ops.extend(_preview_ops(overlay, width, height, metrics))

    selected_id = overlay.selected_point_id if overlay is not None else None
    for point in project.points:
        layout = layout_marker(point, width, height, metrics)
        ops.extend(_marker_ops(layout, metrics, selected=point.id == selected_id))
    return ops


def _segment_distance(p, a, b) -> float:
    ax, ay = a
    bx, by = b
    px, py = p
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)
    t = max(0.0, min(1.0, ((px - ax) * dx + (py - ay) * dy) / length_sq))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def hit_test(
    project: ProjectState,
    pos: Tuple[float, float],
    include_lines: bool = True,
) -> Optional[Hit]:
    """
    Find what is drawn under a percentage position.

    Markers are checked topmost first, then target dots, then lines.
    """
    if project.image_size is None:
        return None
    width, height = project.image_size
    metrics = Metrics.for_image(width, project.marker_scale)
    px, py = percent_to_pixels(*pos, width, height)

    for point in reversed(project.points):
        layout = layout_marker(point, width, height, metrics)
        if layout.badge.contains(px, py) or layout.appendix.contains(px, py):
            return Hit("badge", point.id)

    grab = max(metrics.target_dot_radius * 2, metrics.unit * 0.3)
    for point in reversed(project.points):
        if point.has_leader:
            tx, ty = percent_to_pixels(*point.target, width, height)
            if math.hypot(px - tx, py - ty) <= grab:
                return Hit("target", point.id)

    if include_lines:
        for line in reversed(project.lines):
            a = percent_to_pixels(line.start_x, line.start_y, width, height)
            b = percent_to_pixels(line.end_x, line.end_y, width, height)
            if _segment_distance((px, py), a, b) <= max(metrics.line_width, grab / 2):
                return Hit("line", line.id)
    return None
