"""
Vector document export.

Page one reproduces the composition with PDF vector primitives over the
embedded base image, sized to the image itself. The following pages are
a report of every point sorted by number, either as 2x2 cards per page or
as a table whose rows grow with their content.
"""

import io
import logging
from dataclasses import replace
from gettext import gettext as _
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import cv2
import numpy as np
from matplotlib.colors import to_rgb
from reportlab.lib.pagesizes import A4, letter
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas as pdf_canvas

from ...utils.misc import write_atomic
from ..annotation.state import Point, ProjectState
from ..annotation.utils import (
    ImagePayload,
    composite_on_background,
    contain_fit,
    decode_image,
    image_size,
    sort_typology,
)
from ..errors import ExportError, ImageDecodeError
from .composition import (
    FONT_NAME,
    BaseImageOp,
    DiscOp,
    RoundedRectOp,
    SegmentOp,
    TextOp,
    compose,
)
from .raster import CAP_HEIGHT, hex_to_bgr

logger = logging.getLogger(__name__)

PAGE_SIZES = {"A4": A4, "LETTER": letter}
REPORT_LAYOUTS = ("cards", "table")

BODY_FONT = "Helvetica"
ITALIC_FONT = "Helvetica-Oblique"


def _rgb(color: str) -> Tuple[float, float, float]:
    return to_rgb(color)


def _image_reader(image: np.ndarray, ext: str = ".png", quality: int = 90) -> ImageReader:
    params = [int(cv2.IMWRITE_JPEG_QUALITY), quality] if ext == ".jpg" else []
    ok, buffer = cv2.imencode(ext, image, params)
    if not ok:
        raise ExportError(f"Could not encode image as {ext}")
    return ImageReader(io.BytesIO(buffer.tobytes()))


class PdfCompositionPainter:
    """Replays composition operations on a reportlab canvas page."""

    def __init__(self, canvas, page_height: float, base_image: np.ndarray):
        self.canvas = canvas
        self.page_height = page_height
        self.base_image = base_image

    def y(self, value: float) -> float:
        return self.page_height - value

    def draw_all(self, ops: Iterable):
        for op in ops:
            self.canvas.saveState()
            try:
                self.draw(op)
            finally:
                self.canvas.restoreState()

    def draw(self, op):
        c = self.canvas
        if isinstance(op, BaseImageOp):
            c.setFillColorRGB(*_rgb(op.background))
            c.rect(0, 0, op.width, op.height, stroke=0, fill=1)
            flat = composite_on_background(self.base_image, hex_to_bgr(op.background))
            c.drawImage(_image_reader(flat), 0, 0, width=op.width, height=op.height)
        elif isinstance(op, SegmentOp):
            c.setStrokeColorRGB(*_rgb(op.color), alpha=op.opacity)
            c.setLineWidth(op.width)
            c.setLineCap(1)
            if op.dash:
                c.setDash(list(op.dash))
            c.line(op.start[0], self.y(op.start[1]), op.end[0], self.y(op.end[1]))
        elif isinstance(op, DiscOp):
            c.setFillColorRGB(*_rgb(op.fill))
            stroke = 0
            if op.stroke and op.stroke_width > 0:
                c.setStrokeColorRGB(*_rgb(op.stroke))
                c.setLineWidth(op.stroke_width)
                stroke = 1
            c.circle(op.center[0], self.y(op.center[1]), op.radius, stroke=stroke, fill=1)
        elif isinstance(op, RoundedRectOp):
            c.setFillColorRGB(*_rgb(op.fill))
            stroke = 0
            if op.stroke and op.stroke_width > 0:
                c.setStrokeColorRGB(*_rgb(op.stroke))
                c.setLineWidth(op.stroke_width)
                stroke = 1
            c.roundRect(op.x, self.y(op.y + op.height), op.width, op.height, op.radius,
                        stroke=stroke, fill=1)
        elif isinstance(op, TextOp):
            c.setFillColorRGB(*_rgb(op.color))
            c.setFont(FONT_NAME, op.size)
            baseline = self.y(op.center[1]) - op.size * CAP_HEIGHT / 2
            c.drawCentredString(op.center[0], baseline, op.text)
        else:
            raise TypeError(f"Unknown draw operation: {op!r}")


class PhotoCache:
    """Decodes each photo payload once; failures are logged and remembered."""

    def __init__(self):
        self._cache: Dict[int, Optional[np.ndarray]] = {}

    def get(self, point: Point, index: int) -> Optional[np.ndarray]:
        payload = point.images[index]
        key = id(payload)
        if key not in self._cache:
            try:
                self._cache[key] = composite_on_background(decode_image(payload))
            except (ImageDecodeError, ValueError, cv2.error) as e:
                logger.warning(
                    f"Skipping photo {index + 1} of point {point.number}: {e}"
                )
                self._cache[key] = None
        return self._cache[key]


class ReportWriter:
    """
    Draws report pages in top-down page coordinates.

    Args:
        canvas: reportlab canvas, positioned after the diagram page
        page_size: ``(width, height)`` in points
        max_photos: Photos shown per point
    """

    def __init__(self, canvas, page_size=A4, max_photos: int = 2):
        self.canvas = canvas
        self.page_width, self.page_height = page_size
        self.page_size = page_size
        self.max_photos = max_photos
        self.photos = PhotoCache()

    def y(self, top: float) -> float:
        return self.page_height - top

    def new_page(self):
        self.canvas.showPage()
        self.canvas.setPageSize(self.page_size)

    def point_title(self, point: Point) -> str:
        typology = sort_typology(point.typology)
        title = _("Point N. {number}").format(number=point.number)
        if typology:
            title += " " + _("(Typ. {typology})").format(typology=typology)
        return title

    def draw_photos(self, point: Point, x: float, top: float, width: float, height: float,
                    gap: float = 5.0) -> int:
        """
        Contain-fit up to ``max_photos`` photos side by side in a region.

        Returns:
            Number of photos actually drawn
        """
        payloads = point.images[: self.max_photos]
        if not payloads:
            return 0
        slot_w = width if len(payloads) == 1 else (width - gap) / 2
        drawn = 0
        c = self.canvas
        for k in range(len(payloads)):
            photo = self.photos.get(point, k)
            if photo is None:
                continue
            src_w, src_h = image_size(photo)
            fit = contain_fit(src_w, src_h, slot_w, height)
            if fit is None:
                continue
            off_x, off_y, draw_w, draw_h = fit
            px = x + k * (slot_w + gap) + off_x
            ptop = top + off_y
            c.drawImage(_image_reader(photo, ".jpg"), px, self.y(ptop + draw_h),
                        width=draw_w, height=draw_h)
            c.setStrokeGray(220 / 255)
            c.setLineWidth(0.5)
            c.rect(px, self.y(ptop + draw_h), draw_w, draw_h, stroke=1, fill=0)
            drawn += 1
        return drawn

    def draw_text_lines(self, lines: List[str], x: float, top: float, leading: float):
        for i, text in enumerate(lines):
            self.canvas.drawString(x, self.y(top + (i + 1) * leading - 2), text)

    # Card layout

    def write_cards(self, points: List[Point]):
        """Four cells per page, filled left-to-right, top-to-bottom."""
        c = self.canvas
        cell_w = self.page_width / 2
        cell_h = self.page_height / 2
        header_h = 25.0
        padding = 10.0
        desc_h = 60.0
        leading = 12.0

        for start in range(0, len(points), 4):
            self.new_page()
            for i, point in enumerate(points[start:start + 4]):
                x0 = (i % 2) * cell_w
                y0 = (i // 2) * cell_h

                c.setStrokeGray(200 / 255)
                c.setLineWidth(1)
                c.rect(x0, self.y(y0 + cell_h), cell_w, cell_h, stroke=1, fill=0)

                c.setFillGray(240 / 255)
                c.rect(x0, self.y(y0 + header_h), cell_w, header_h, stroke=0, fill=1)
                c.line(x0, self.y(y0 + header_h), x0 + cell_w, self.y(y0 + header_h))

                c.setFillGray(0)
                c.setFont(FONT_NAME, 12)
                c.drawString(x0 + padding, self.y(y0 + 17), self.point_title(point))

                content_top = y0 + header_h + padding
                content_w = cell_w - 2 * padding
                content_h = cell_h - header_h - 2 * padding
                photo_h = content_h - desc_h - padding

                if point.images:
                    self.draw_photos(point, x0 + padding, content_top, content_w, photo_h)
                else:
                    c.setFont(ITALIC_FONT, 10)
                    c.setFillGray(150 / 255)
                    c.drawCentredString(x0 + cell_w / 2, self.y(content_top + photo_h / 2),
                                        _("No photo attached"))

                desc_top = content_top + photo_h + padding
                c.setStrokeGray(240 / 255)
                c.line(x0 + padding, self.y(desc_top - 5), x0 + cell_w - padding, self.y(desc_top - 5))

                c.setFont(BODY_FONT, 10)
                c.setFillGray(50 / 255)
                lines = simpleSplit(point.description or "-", BODY_FONT, 10, content_w)
                max_lines = max(1, int(desc_h // leading))
                if len(lines) > max_lines:
                    lines = lines[:max_lines]
                    lines[-1] = lines[-1].rstrip() + "…"
                self.draw_text_lines(lines, x0 + padding, desc_top, leading)

    # Table layout

    def write_table(self, points: List[Point]):
        """One row per point; rows grow with wrapped text and break pages."""
        c = self.canvas
        margin = 36.0
        pad = 4.0
        leading = 12.0
        thumb_h = 70.0
        usable_w = self.page_width - 2 * margin
        col_number = 40.0
        col_typology = 100.0
        col_photos = 150.0
        col_desc = usable_w - col_number - col_typology - col_photos
        columns = [
            (_("No."), col_number),
            (_("Typology"), col_typology),
            (_("Description"), col_desc),
            (_("Photos"), col_photos),
        ]
        header_h = 20.0
        bottom = self.page_height - margin
        max_text_lines = int((bottom - margin - header_h - 2 * pad) // leading)

        def draw_header(top):
            c.setFillGray(240 / 255)
            c.rect(margin, self.y(top + header_h), usable_w, header_h, stroke=0, fill=1)
            c.setFillGray(0)
            c.setFont(FONT_NAME, 10)
            x = margin
            for title, w in columns:
                c.drawString(x + pad, self.y(top + 14), title)
                x += w
            return top + header_h

        self.new_page()
        top = draw_header(margin)

        for point in points:
            typ_lines = simpleSplit(sort_typology(point.typology) or "-", BODY_FONT, 10,
                                    col_typology - 2 * pad)
            desc_lines = simpleSplit(point.description or "-", BODY_FONT, 10, col_desc - 2 * pad)
            if len(desc_lines) > max_text_lines:
                desc_lines = desc_lines[:max_text_lines]
                desc_lines[-1] = desc_lines[-1].rstrip() + "…"
            text_h = max(len(desc_lines), len(typ_lines[:max_text_lines]), 1) * leading
            photo_h = thumb_h if point.images[: self.max_photos] else 0.0
            row_h = max(text_h, photo_h) + 2 * pad

            if top + row_h > bottom:
                self.new_page()
                top = draw_header(margin)

            c.setStrokeGray(200 / 255)
            c.setLineWidth(0.5)
            c.rect(margin, self.y(top + row_h), usable_w, row_h, stroke=1, fill=0)

            c.setFillGray(0)
            c.setFont(FONT_NAME, 10)
            c.drawString(margin + pad, self.y(top + pad + leading - 2), str(point.number))

            c.setFont(BODY_FONT, 10)
            c.setFillGray(50 / 255)
            self.draw_text_lines(typ_lines[:max_text_lines], margin + col_number + pad, top + pad, leading)
            self.draw_text_lines(desc_lines, margin + col_number + col_typology + pad, top + pad, leading)

            if photo_h:
                photos_x = margin + col_number + col_typology + col_desc + pad
                self.draw_photos(point, photos_x, top + pad, col_photos - 2 * pad, thumb_h)
            top += row_h


def render_pdf_bytes(
    project: ProjectState,
    base_image: Union[np.ndarray, ImagePayload],
    layout: str = "cards",
    page_size: Union[str, Tuple[float, float]] = "A4",
    max_photos: int = 2,
) -> bytes:
    """
    Build the PDF document in memory.

    Args:
        project: Model snapshot
        base_image: Decoded image or encoded payload
        layout: ``"cards"`` or ``"table"``
        page_size: Report page size name or ``(width, height)`` in points
        max_photos: Photos per point in the report

    Raises:
        ExportError: If the base image cannot be decoded or the document
            cannot be serialized. Undecodable photos are skipped instead.
    """
    if layout not in REPORT_LAYOUTS:
        raise ValueError(f"Unknown report layout: {layout}")
    if isinstance(page_size, str):
        page_size = PAGE_SIZES[page_size.upper()]

    try:
        if not isinstance(base_image, np.ndarray):
            base_image = decode_image(base_image)
    except ImageDecodeError as e:
        raise ExportError(f"Base image could not be decoded: {e}") from e

    width, height = image_size(base_image)
    project = replace(project, image_size=(width, height))

    buffer = io.BytesIO()
    try:
        c = pdf_canvas.Canvas(buffer, pagesize=(width, height))
        if project.plan_name:
            c.setTitle(project.plan_name)

        PdfCompositionPainter(c, height, base_image).draw_all(compose(project))

        points = project.sorted_points()
        if points:
            writer = ReportWriter(c, page_size=page_size, max_photos=max_photos)
            if layout == "table":
                writer.write_table(points)
            else:
                writer.write_cards(points)
        c.save()
    except ExportError:
        raise
    except Exception as e:
        raise ExportError(f"PDF generation failed: {e}") from e
    return buffer.getvalue()


def export_pdf(
    project: ProjectState,
    base_image: Union[np.ndarray, ImagePayload],
    output_path: Path,
    layout: str = "cards",
    page_size: Union[str, Tuple[float, float]] = "A4",
    max_photos: int = 2,
) -> Path:
    """
    Write the PDF report.

    Raises:
        ExportError: On any failure; no file is left behind
    """
    data = render_pdf_bytes(
        project, base_image, layout=layout, page_size=page_size, max_photos=max_photos
    )
    try:
        path = write_atomic(Path(output_path), data)
    except OSError as e:
        raise ExportError(f"Could not write {output_path}: {e}") from e
    logger.info(f"Saved PDF report to {path}")
    return path
