"""
State management for annotation sessions.

Contains the data classes of the annotation model (points, lines, the
project snapshot) and the serializable interaction state owned by the
state machine.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, List, Optional, Tuple

PROJECT_FORMAT_VERSION = 1

# Leader lines are drawn only past this distance (percentage points, per axis)
LEADER_TOLERANCE = 0.1


class LineColor(str, Enum):
    RED = "#dc2626"
    BLUE = "#2563eb"
    CYAN = "#06b6d4"
    GREEN = "#16a34a"
    ORANGE = "#f97316"


class InteractionMode(str, Enum):
    PAN = "pan"
    ADD = "add"
    MOVE = "move"
    LINE = "line"
    REPOSITION = "reposition"


class DragPart(str, Enum):
    """Which anchor of a point a move gesture is bound to."""

    BADGE = "badge"
    TARGET = "target"


def generate_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Point:
    """One annotated location, coordinates in percent of the base image."""

    id: str
    number: int
    x: float
    y: float
    typology: str = ""
    target_x: Optional[float] = None
    target_y: Optional[float] = None
    description: str = ""
    images: List[Any] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)

    @property
    def target(self) -> Tuple[float, float]:
        """Target position, falling back to the badge when none is set."""
        if self.target_x is None or self.target_y is None:
            return self.x, self.y
        return self.target_x, self.target_y

    @property
    def has_leader(self) -> bool:
        if self.target_x is None or self.target_y is None:
            return False
        return (
            abs(self.target_x - self.x) > LEADER_TOLERANCE
            or abs(self.target_y - self.y) > LEADER_TOLERANCE
        )

    def to_dict(self):
        """Convert to dictionary for serialization."""
        data = {
            "id": self.id,
            "number": self.number,
            "typology": self.typology,
            "x": self.x,
            "y": self.y,
            "description": self.description,
            "images": list(self.images),
            "createdAt": self.created_at,
        }
        if self.target_x is not None and self.target_y is not None:
            data["targetX"] = self.target_x
            data["targetY"] = self.target_y
        return data

    @classmethod
    def from_dict(cls, data: dict):
        """Create from dictionary."""
        return cls(
            id=str(data.get("id") or generate_id()),
            number=int(data.get("number", 0)),
            typology=str(data.get("typology") or ""),
            x=float(data["x"]),
            y=float(data["y"]),
            target_x=_optional_float(data.get("targetX")),
            target_y=_optional_float(data.get("targetY")),
            description=str(data.get("description") or ""),
            images=list(data.get("images") or []),
            created_at=int(data.get("createdAt") or now_ms()),
        )


@dataclass
class Line:
    """A free-drawn colored segment."""

    id: str
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    color: LineColor = LineColor.RED

    def to_dict(self):
        return {
            "id": self.id,
            "startX": self.start_x,
            "startY": self.start_y,
            "endX": self.end_x,
            "endY": self.end_y,
            "color": self.color.value,
        }

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=str(data.get("id") or generate_id()),
            start_x=float(data["startX"]),
            start_y=float(data["startY"]),
            end_x=float(data["endX"]),
            end_y=float(data["endY"]),
            color=LineColor(data.get("color", LineColor.RED.value)),
        )


@dataclass
class ProjectState:
    """
    Complete annotation document for one base image.

    Coordinates are always relative to the unrotated image; rotation and
    marker scale are presentation parameters stored alongside.
    """

    plan_name: str = ""
    floor: str = ""
    image_name: str = ""
    image_size: Optional[Tuple[int, int]] = None  # (width, height)
    rotation: float = 0.0
    marker_scale: float = 1.0
    points: List[Point] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)
    version: int = PROJECT_FORMAT_VERSION

    def find_point(self, point_id: str) -> Optional[Point]:
        for point in self.points:
            if point.id == point_id:
                return point
        return None

    def find_line(self, line_id: str) -> Optional[Line]:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None

    def sorted_points(self) -> List[Point]:
        return sorted(self.points, key=lambda p: p.number)

    def to_dict(self):
        """Convert to the native snapshot format."""
        data = {
            "version": self.version,
            "planName": self.plan_name,
            "floor": self.floor,
            "imageName": self.image_name,
            "rotation": self.rotation,
            "markerScale": self.marker_scale,
            "points": [p.to_dict() for p in self.points],
            "lines": [line.to_dict() for line in self.lines],
        }
        if self.image_size is not None:
            data["imageWidth"], data["imageHeight"] = self.image_size
        return data

    @classmethod
    def from_dict(cls, data: dict):
        """Create from the native snapshot format."""
        image_size = None
        if data.get("imageWidth") and data.get("imageHeight"):
            image_size = (int(data["imageWidth"]), int(data["imageHeight"]))
        return cls(
            plan_name=str(data.get("planName") or ""),
            floor=str(data.get("floor") or ""),
            image_name=str(data.get("imageName") or ""),
            image_size=image_size,
            rotation=float(data.get("rotation") or 0.0),
            marker_scale=float(data.get("markerScale") or 1.0),
            points=[Point.from_dict(p) for p in data.get("points") or []],
            lines=[Line.from_dict(line) for line in data.get("lines") or []],
            version=int(data.get("version") or PROJECT_FORMAT_VERSION),
        )


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)


# Interaction state. Frozen so transitions can only produce new values.


@dataclass(frozen=True)
class PanSession:
    start_screen: Tuple[float, float]
    start_scroll: Tuple[float, float]


@dataclass(frozen=True)
class CreationSession:
    """Down-to-up gesture in add, line or reposition mode."""

    mode: InteractionMode
    anchor: Tuple[float, float]
    current: Tuple[float, float]


@dataclass(frozen=True)
class DragSession:
    point_id: str
    part: DragPart


@dataclass(frozen=True)
class InteractionState:
    """
    Everything the interaction state machine knows.

    At most one of ``pan``, ``creation`` and ``drag`` is set at a time.
    """

    mode: InteractionMode = InteractionMode.PAN
    line_color: LineColor = LineColor.RED
    selected_point_id: Optional[str] = None
    selected_line_id: Optional[str] = None
    reposition_point_id: Optional[str] = None
    scroll: Tuple[float, float] = (0.0, 0.0)
    pan: Optional[PanSession] = None
    creation: Optional[CreationSession] = None
    drag: Optional[DragSession] = None
    pending_decodes: int = 0

    @property
    def has_session(self) -> bool:
        return self.pan is not None or self.creation is not None or self.drag is not None

    @property
    def decode_pending(self) -> bool:
        return self.pending_decodes > 0

    def without_sessions(self) -> "InteractionState":
        return replace(self, pan=None, creation=None, drag=None)

    def to_dict(self):
        def session(obj):
            if obj is None:
                return None
            return {
                k: (v.value if isinstance(v, Enum) else v)
                for k, v in obj.__dict__.items()
            }

        return {
            "mode": self.mode.value,
            "line_color": self.line_color.value,
            "selected_point_id": self.selected_point_id,
            "selected_line_id": self.selected_line_id,
            "reposition_point_id": self.reposition_point_id,
            "scroll": self.scroll,
            "pan": session(self.pan),
            "creation": session(self.creation),
            "drag": session(self.drag),
            "pending_decodes": self.pending_decodes,
        }
