"""
Raster backend.

Replays a composition onto a numpy/OpenCV canvas. Drawing happens at a
supersampled resolution and is area-downsampled back to the image's
native size, which anti-aliases markers while leaving untouched base
pixels exactly as they were.
"""

import logging
import unicodedata
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import cv2
import numpy as np
from matplotlib.colors import to_rgb

from ...utils.misc import write_atomic
from ..annotation.state import ProjectState
from ..annotation.utils import (
    ImagePayload,
    composite_on_background,
    decode_image,
    image_size,
)
from ..errors import ExportError, ImageDecodeError
from .composition import (
    BaseImageOp,
    DiscOp,
    LiveOverlay,
    RoundedRectOp,
    SegmentOp,
    TextOp,
    compose,
)

logger = logging.getLogger(__name__)

# Fixed-point bits for sub-pixel coordinates in cv2 drawing calls
SHIFT = 4
_FIXED = 1 << SHIFT

# Hershey fonts only cover printable ASCII
FONT = cv2.FONT_HERSHEY_SIMPLEX
# Cap height of the marker font, as a fraction of its size
CAP_HEIGHT = 0.72


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    r, g, b = to_rgb(color)
    return int(round(b * 255)), int(round(g * 255)), int(round(r * 255))


def hershey_text(text: str) -> str:
    """Fold text onto ASCII: accents are dropped, other characters become ``?``."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.encode("ascii", "replace").decode("ascii")


def _fixed(value: float) -> int:
    return int(round(value * _FIXED))


def _fixed_pt(x: float, y: float) -> Tuple[int, int]:
    return _fixed(x), _fixed(y)


class RasterCanvas:
    """
    Draws composition operations on a BGR image.

    Args:
        image: Canvas, modified in place
        scale: Pixels per composition unit (the supersampling factor)
    """

    def __init__(self, image: np.ndarray, scale: float = 1.0):
        self.image = image
        self.scale = scale

    def draw_all(self, ops: Iterable):
        for op in ops:
            self.draw(op)

    def draw(self, op):
        if isinstance(op, BaseImageOp):
            # The canvas starts as the flattened base image
            return
        if isinstance(op, SegmentOp):
            self._segment(op)
        elif isinstance(op, DiscOp):
            self._disc(op)
        elif isinstance(op, RoundedRectOp):
            self._rounded_rect(op)
        elif isinstance(op, TextOp):
            self._text(op)
        else:
            raise TypeError(f"Unknown draw operation: {op!r}")

    def _segment(self, op: SegmentOp):
        s = self.scale
        thickness = max(1, int(round(op.width * s)))
        color = hex_to_bgr(op.color)
        pieces = _dash_segments(op.start, op.end, op.dash) if op.dash else [(op.start, op.end)]

        if op.opacity >= 1.0:
            target = self.image
            offset = (0.0, 0.0)
        else:
            # Blend only the region the stroke can touch
            xs = [op.start[0] * s, op.end[0] * s]
            ys = [op.start[1] * s, op.end[1] * s]
            pad = thickness + 2
            h, w = self.image.shape[:2]
            x0 = max(0, int(min(xs)) - pad)
            y0 = max(0, int(min(ys)) - pad)
            x1 = min(w, int(max(xs)) + pad + 1)
            y1 = min(h, int(max(ys)) + pad + 1)
            if x0 >= x1 or y0 >= y1:
                return
            target = self.image[y0:y1, x0:x1].copy()
            offset = (x0, y0)

        for start, end in pieces:
            cv2.line(
                target,
                _fixed_pt(start[0] * s - offset[0], start[1] * s - offset[1]),
                _fixed_pt(end[0] * s - offset[0], end[1] * s - offset[1]),
                color,
                thickness,
                cv2.LINE_AA,
                SHIFT,
            )

        if op.opacity < 1.0:
            x0, y0 = offset
            roi = self.image[y0:y0 + target.shape[0], x0:x0 + target.shape[1]]
            blended = cv2.addWeighted(target, op.opacity, roi, 1.0 - op.opacity, 0)
            roi[:] = blended

    def _fill_disc(self, center, radius: float, color):
        if radius <= 0:
            return
        s = self.scale
        cv2.circle(
            self.image,
            _fixed_pt(center[0] * s, center[1] * s),
            _fixed(radius * s),
            color,
            -1,
            cv2.LINE_AA,
            SHIFT,
        )

    def _disc(self, op: DiscOp):
        if op.stroke and op.stroke_width > 0:
            self._fill_disc(op.center, op.radius + op.stroke_width / 2, hex_to_bgr(op.stroke))
            self._fill_disc(op.center, op.radius - op.stroke_width / 2, hex_to_bgr(op.fill))
        else:
            self._fill_disc(op.center, op.radius, hex_to_bgr(op.fill))

    def _fill_rounded_rect(self, x, y, w, h, r, color):
        if w <= 0 or h <= 0:
            return
        s = self.scale
        r = max(0.0, min(r, w / 2, h / 2))
        for rx, ry, rw, rh in ((x + r, y, w - 2 * r, h), (x, y + r, w, h - 2 * r)):
            if rw > 0 and rh > 0:
                cv2.rectangle(
                    self.image,
                    _fixed_pt(rx * s, ry * s),
                    _fixed_pt((rx + rw) * s, (ry + rh) * s),
                    color,
                    -1,
                    cv2.LINE_AA,
                    SHIFT,
                )
        if r > 0:
            for cx, cy in ((x + r, y + r), (x + w - r, y + r), (x + r, y + h - r), (x + w - r, y + h - r)):
                self._fill_disc((cx, cy), r, color)

    def _rounded_rect(self, op: RoundedRectOp):
        if op.stroke and op.stroke_width > 0:
            half = op.stroke_width / 2
            self._fill_rounded_rect(
                op.x - half, op.y - half, op.width + op.stroke_width, op.height + op.stroke_width,
                op.radius + half, hex_to_bgr(op.stroke),
            )
            self._fill_rounded_rect(
                op.x + half, op.y + half, op.width - op.stroke_width, op.height - op.stroke_width,
                max(0.0, op.radius - half), hex_to_bgr(op.fill),
            )
        else:
            self._fill_rounded_rect(op.x, op.y, op.width, op.height, op.radius, hex_to_bgr(op.fill))

    def _text(self, op: TextOp):
        text = hershey_text(op.text)
        if not text:
            return
        s = self.scale
        pixel_height = max(1, int(round(op.size * CAP_HEIGHT * s)))
        thickness = max(1, int(round(pixel_height / 7)))
        font_scale = cv2.getFontScaleFromHeight(FONT, pixel_height, thickness)
        (text_w, text_h), _ = cv2.getTextSize(text, FONT, font_scale, thickness)

        # Hershey glyphs are wider than the layout font; never overflow the box
        max_w = op.width * s
        if text_w > max_w > 0:
            font_scale *= max_w / text_w
            (text_w, text_h), _ = cv2.getTextSize(text, FONT, font_scale, thickness)

        org = (
            int(round(op.center[0] * s - text_w / 2)),
            int(round(op.center[1] * s + text_h / 2)),
        )
        cv2.putText(self.image, text, org, FONT, font_scale, hex_to_bgr(op.color),
                    thickness, cv2.LINE_AA)


def _dash_segments(start, end, dash):
    on, off = dash
    length = float(np.hypot(end[0] - start[0], end[1] - start[1]))
    if length == 0 or on <= 0:
        return [(start, end)]
    ux = (end[0] - start[0]) / length
    uy = (end[1] - start[1]) / length
    pieces = []
    pos = 0.0
    while pos < length:
        stop = min(pos + on, length)
        pieces.append(
            ((start[0] + ux * pos, start[1] + uy * pos), (start[0] + ux * stop, start[1] + uy * stop))
        )
        pos = stop + off
    return pieces


def rasterize(
    project: ProjectState,
    base_image: np.ndarray,
    supersample: int = 2,
    overlay: Optional[LiveOverlay] = None,
    background: str = "#ffffff",
) -> np.ndarray:
    """
    Render the composition over the base image.

    Args:
        project: Model snapshot to draw
        base_image: Decoded BGR(A) base image at native resolution
        supersample: Integer drawing multiplier, 1 disables supersampling
        overlay: Live-only decorations
        background: Color transparent pixels are flattened onto

    Returns:
        Opaque BGR image at the base image's native size
    """
    supersample = max(1, int(supersample))
    width, height = image_size(base_image)
    project = replace(project, image_size=(width, height))

    flat = composite_on_background(base_image, hex_to_bgr(background))
    if supersample > 1:
        canvas_image = cv2.resize(
            flat, (width * supersample, height * supersample), interpolation=cv2.INTER_NEAREST
        )
    else:
        canvas_image = flat

    canvas = RasterCanvas(canvas_image, scale=supersample)
    canvas.draw_all(compose(project, overlay=overlay, background=background))

    if supersample > 1:
        return cv2.resize(canvas.image, (width, height), interpolation=cv2.INTER_AREA)
    return canvas.image


def encode_jpeg(image: np.ndarray, quality: int = 92) -> bytes:
    """
    Encode a BGR image as JPEG.

    Raises:
        ExportError: If OpenCV refuses to encode the image
    """
    try:
        ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    except cv2.error as e:
        raise ExportError(f"JPEG encoding failed: {e}") from e
    if not ok:
        raise ExportError("JPEG encoding failed")
    return buffer.tobytes()


def render_raster_bytes(
    project: ProjectState,
    base_image: Union[np.ndarray, ImagePayload],
    supersample: int = 2,
    quality: int = 92,
    background: str = "#ffffff",
) -> bytes:
    """
    Produce the flattened JPEG export in memory.

    Raises:
        ExportError: On any decode, rasterization or encode failure
    """
    try:
        if not isinstance(base_image, np.ndarray):
            base_image = decode_image(base_image)
        image = rasterize(project, base_image, supersample=supersample, background=background)
    except ImageDecodeError as e:
        raise ExportError(f"Base image could not be decoded: {e}") from e
    except (cv2.error, ValueError) as e:
        raise ExportError(f"Rasterization failed: {e}") from e
    return encode_jpeg(image, quality)


def export_raster(
    project: ProjectState,
    base_image: Union[np.ndarray, ImagePayload],
    output_path: Path,
    supersample: int = 2,
    quality: int = 92,
    background: str = "#ffffff",
) -> Path:
    """
    Write the flattened image export.

    The file is written only once the whole JPEG is encoded.

    Raises:
        ExportError: On any failure; no file is left behind
    """
    data = render_raster_bytes(
        project, base_image, supersample=supersample, quality=quality, background=background
    )
    try:
        path = write_atomic(Path(output_path), data)
    except OSError as e:
        raise ExportError(f"Could not write {output_path}: {e}") from e
    logger.info(f"Saved image export to {path}")
    return path
