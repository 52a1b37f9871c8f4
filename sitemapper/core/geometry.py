"""
Pointer <-> annotation space mapping.

Annotation coordinates are percentages of the *unrotated* base image
(``[0, 100] x [0, 100]``). The on-screen container is physically resized
to apply zoom and visually rotated around its center, so converting a
pointer position only needs the container center, its current layout
size and the rotation angle.
"""

import math
from dataclasses import dataclass
from typing import Tuple


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_rotation(degrees: float) -> float:
    """Bring an angle into ``[0, 360)``."""
    angle = math.fmod(degrees, 360.0)
    if angle < 0:
        angle += 360.0
    # fmod can return 360.0 - tiny; keep the half-open range
    return 0.0 if angle >= 360.0 else angle


def rotate_vector(dx: float, dy: float, degrees: float) -> Tuple[float, float]:
    """Rotate ``(dx, dy)`` by ``degrees`` using screen axes (y pointing down)."""
    radians = math.radians(degrees)
    cos = math.cos(radians)
    sin = math.sin(radians)
    return dx * cos - dy * sin, dx * sin + dy * cos


@dataclass(frozen=True)
class ContainerBox:
    """
    Screen placement of the annotation container.

    ``center_x``/``center_y`` come from the bounding rect of the rotated
    element (rotation keeps the center fixed), ``width``/``height`` are the
    element's own layout size, which already includes zoom.
    """

    center_x: float
    center_y: float
    width: float
    height: float

    @classmethod
    def from_rect(cls, left: float, top: float, width: float, height: float,
                  layout_width: float, layout_height: float):
        """Build from a bounding client rect plus the unrotated layout size."""
        return cls(
            center_x=left + width / 2,
            center_y=top + height / 2,
            width=layout_width,
            height=layout_height,
        )


@dataclass(frozen=True)
class ViewportTransform:
    """Rotation-aware mapping between screen pixels and percentages."""

    box: ContainerBox
    rotation: float = 0.0

    @classmethod
    def for_image(
        cls,
        natural_width: float,
        natural_height: float,
        zoom: float = 1.0,
        rotation: float = 0.0,
        center: Tuple[float, float] = (0.0, 0.0),
    ):
        """Container sized ``natural * zoom`` and centered at ``center``."""
        box = ContainerBox(
            center_x=center[0],
            center_y=center[1],
            width=natural_width * zoom,
            height=natural_height * zoom,
        )
        return cls(box=box, rotation=rotation)

    def to_percent(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """
        Convert a pointer position to annotation percentages.

        The result is not clamped; callers decide whether an out-of-range
        position is rejected or clamped. A container without area
        maps every position to ``(nan, nan)``.
        """
        width, height = self.box.width, self.box.height
        if width <= 0 or height <= 0:
            # No content area; NaN fails every range check
            return math.nan, math.nan

        dx = screen_x - self.box.center_x
        dy = screen_y - self.box.center_y
        local_dx, local_dy = rotate_vector(dx, dy, -self.rotation)

        local_x = local_dx + width / 2
        local_y = local_dy + height / 2
        return 100.0 * local_x / width, 100.0 * local_y / height

    def to_screen(self, x: float, y: float) -> Tuple[float, float]:
        """Inverse of :meth:`to_percent`."""
        width, height = self.box.width, self.box.height
        local_dx = x / 100.0 * width - width / 2
        local_dy = y / 100.0 * height - height / 2
        dx, dy = rotate_vector(local_dx, local_dy, self.rotation)
        return self.box.center_x + dx, self.box.center_y + dy


def in_percent_range(x: float, y: float) -> bool:
    return 0.0 <= x <= 100.0 and 0.0 <= y <= 100.0


def clamp_percent(x: float, y: float) -> Tuple[float, float]:
    return clamp(x, 0.0, 100.0), clamp(y, 0.0, 100.0)


def percent_to_pixels(x: float, y: float, width: float, height: float) -> Tuple[float, float]:
    return x / 100.0 * width, y / 100.0 * height


def step_clamped(value: float, step: float, low: float, high: float) -> float:
    """Add ``step`` and clamp; rounding keeps repeated 0.2 steps from drifting."""
    return round(clamp(value + step, low, high), 6)
