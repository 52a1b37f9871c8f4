"""
Annotation session management.

Core logic for managing an interactive annotation session.
UI-agnostic - can be used with any interface (GUI, Web, CLI).
"""

import asyncio
import copy
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from ...config import load_config
from ..errors import ExportError, ImageDecodeError
from ..geometry import (
    ContainerBox,
    ViewportTransform,
    normalize_rotation,
    step_clamped,
)
from .events import AnnotationEvent, EventEmitter, EventType
from .state import (
    DragPart,
    InteractionMode,
    InteractionState,
    Line,
    LineColor,
    Point,
    ProjectState,
    generate_id,
)
from .transitions import (
    BeginDrag,
    CreateLine,
    CreatePoint,
    DecodeFinished,
    DecodeStarted,
    MovePointPart,
    PointerDown,
    PointerLeave,
    PointerMove,
    PointerUp,
    RelocatePoint,
    SelectLine,
    SelectPoint,
    SetLineColor,
    SetMode,
    SetScroll,
    StartReposition,
    transition,
)
from .utils import ImagePayload, decode_image, image_size, numbers_are_dense, renumber_points

logger = logging.getLogger(__name__)

EDITABLE_POINT_FIELDS = ("typology", "description", "images")


class AnnotationSession:
    """
    Manages the state and logic of an annotation session.

    This class handles:
    - Pointer gestures, through the interaction state machine
    - Point and line lifecycle (create, move, edit, delete, renumber)
    - State history for undo
    - View parameters (zoom, rotation, marker scale)
    - Event emission for UI updates
    - Read-only snapshots for exporters

    The session is the single writer of the model. It emits events that
    surfaces listen to, rather than manipulating them directly.
    """

    def __init__(self, config=None):
        """
        Initialize annotation session.

        Args:
            config: EasyDict configuration, defaults to :func:`load_config`
        """
        self.config = config if config is not None else load_config()

        self.project = ProjectState()
        self.interaction = InteractionState()
        self.zoom = 1.0

        self._image: Optional[np.ndarray] = None
        self._container: Optional[ContainerBox] = None

        # History for undo functionality
        self._state_history: list = []
        self._drag_unsaved = False

        # Event emitter for UI notifications
        self.events = EventEmitter()

    # Model loading

    def load_image(self, image: np.ndarray, image_name: Optional[str] = None):
        """
        Set the base image of the current project.

        Args:
            image: Decoded BGR(A) image
            image_name: Optional file name of the image
        """
        self._image = image
        self.project.image_size = image_size(image)
        if image_name is not None:
            self.project.image_name = image_name

        self.events.emit(
            AnnotationEvent(
                EventType.IMAGE_LOADED,
                {"image_size": self.project.image_size, "name": self.project.image_name},
            )
        )

    async def load_image_async(self, payload: ImagePayload, image_name: Optional[str] = None):
        """
        Decode a payload off the control thread, then load it.

        While the decode is outstanding the state machine refuses new
        creation and drag sessions; viewing and field edits keep working.

        Raises:
            ImageDecodeError: If the payload cannot be decoded
        """
        self.handle(DecodeStarted())
        self.events.emit(AnnotationEvent(EventType.DECODE_STARTED, {"name": image_name}))
        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, decode_image, payload)
        except ImageDecodeError as e:
            self.events.emit(AnnotationEvent(EventType.DECODE_FAILED, {"error": str(e)}))
            raise
        finally:
            self.handle(DecodeFinished())
        self.load_image(image, image_name)
        return image

    def load_project(self, project: ProjectState, image: Optional[np.ndarray] = None):
        """
        Replace the whole model, e.g. after loading from the store.

        Point numbers are rebuilt from list order if they are not dense.
        """
        self.project = copy.deepcopy(project)
        if not numbers_are_dense(self.project.points):
            self.project.points = renumber_points(
                sorted(self.project.points, key=lambda p: p.number)
            )
        self.project.rotation = normalize_rotation(self.project.rotation)
        self.interaction = replace(InteractionState(), pending_decodes=self.interaction.pending_decodes)
        self.zoom = 1.0
        self._state_history.clear()
        if image is not None:
            self.load_image(image)

        self.events.emit(
            AnnotationEvent(
                EventType.PROJECT_LOADED,
                {"points": len(self.project.points), "lines": len(self.project.lines)},
            )
        )

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    # Viewport

    def set_container(self, box: Optional[ContainerBox]):
        """Record where the surface currently shows the annotation container."""
        self._container = box

    @property
    def viewport(self) -> ViewportTransform:
        if self._container is not None:
            return ViewportTransform(self._container, self.project.rotation)
        width, height = self.project.image_size or (0, 0)
        return ViewportTransform.for_image(
            width,
            height,
            zoom=self.zoom,
            rotation=self.project.rotation,
            center=(width * self.zoom / 2, height * self.zoom / 2),
        )

    def zoom_in(self):
        view = self.config.view
        self._set_zoom(step_clamped(self.zoom, view.zoom_step, view.zoom_min, view.zoom_max))

    def zoom_out(self):
        view = self.config.view
        self._set_zoom(step_clamped(self.zoom, -view.zoom_step, view.zoom_min, view.zoom_max))

    def _set_zoom(self, zoom: float):
        self.zoom = zoom
        self._emit_view_changed()

    def set_rotation(self, degrees: float):
        self.project.rotation = normalize_rotation(degrees)
        self._emit_view_changed()

    def reset_view(self):
        self.zoom = 1.0
        self.project.rotation = 0.0
        self._emit_view_changed()

    def increase_marker_scale(self):
        view = self.config.view
        self.project.marker_scale = step_clamped(
            self.project.marker_scale, view.marker_scale_step,
            view.marker_scale_min, view.marker_scale_max,
        )
        self._emit_view_changed()

    def decrease_marker_scale(self):
        view = self.config.view
        self.project.marker_scale = step_clamped(
            self.project.marker_scale, -view.marker_scale_step,
            view.marker_scale_min, view.marker_scale_max,
        )
        self._emit_view_changed()

    def _emit_view_changed(self):
        self.events.emit(
            AnnotationEvent(
                EventType.VIEW_CHANGED,
                {
                    "zoom": self.zoom,
                    "rotation": self.project.rotation,
                    "marker_scale": self.project.marker_scale,
                },
            )
        )

    # Pointer input (screen coordinates)

    def pointer_down(self, screen_x: float, screen_y: float):
        from ..render.composition import hit_test

        if self.project.image_size is None:
            return
        pos = self.viewport.to_percent(screen_x, screen_y)
        include_lines = self.interaction.mode != InteractionMode.PAN
        hit = hit_test(self.project, pos, include_lines=include_lines)
        self.handle(PointerDown(pos=pos, screen=(screen_x, screen_y), hit=hit))

    def pointer_move(self, screen_x: float, screen_y: float):
        pos = self.viewport.to_percent(screen_x, screen_y)
        self.handle(PointerMove(pos=pos, screen=(screen_x, screen_y)))

    def pointer_up(self, screen_x: float, screen_y: float):
        """Must be wired to a window-wide release handler, not the content only."""
        pos = self.viewport.to_percent(screen_x, screen_y)
        self.handle(PointerUp(pos=pos, screen=(screen_x, screen_y)))

    def pointer_leave(self):
        self.handle(PointerLeave())

    # Commands

    def set_mode(self, mode: InteractionMode):
        self.handle(SetMode(InteractionMode(mode)))

    def set_line_color(self, color: LineColor):
        self.handle(SetLineColor(LineColor(color)))

    def start_reposition(self, point_id: Optional[str] = None) -> bool:
        """
        Enter reposition mode for a point (the selected one by default).

        Returns:
            False when there is no such point
        """
        point_id = point_id or self.interaction.selected_point_id
        if point_id is None or self.project.find_point(point_id) is None:
            return False
        self.handle(StartReposition(point_id))
        return True

    def select_point(self, point_id: Optional[str]):
        self.handle(SelectPoint(point_id))

    def select_line(self, line_id: Optional[str]):
        self.handle(SelectLine(line_id))

    def handle(self, event):
        """Run one event through the state machine and apply its effects."""
        result = transition(self.interaction, event)
        previous = self.interaction
        self.interaction = result.state

        for effect in result.effects:
            self._apply(effect)

        self._emit_interaction_changes(previous, self.interaction)
        return result

    def _apply(self, effect):
        if isinstance(effect, CreatePoint):
            self._save_state()
            point = Point(
                id=generate_id(),
                number=len(self.project.points) + 1,
                x=effect.badge[0],
                y=effect.badge[1],
                target_x=effect.target[0],
                target_y=effect.target[1],
            )
            self.project.points.append(point)
            self.interaction = replace(
                self.interaction, selected_point_id=point.id, selected_line_id=None
            )
            self.events.emit(AnnotationEvent(EventType.POINT_ADDED, {"point": point.to_dict()}))

        elif isinstance(effect, CreateLine):
            self._save_state()
            line = Line(
                id=generate_id(),
                start_x=effect.start[0],
                start_y=effect.start[1],
                end_x=effect.end[0],
                end_y=effect.end[1],
                color=effect.color,
            )
            self.project.lines.append(line)
            self.events.emit(AnnotationEvent(EventType.LINE_ADDED, {"line": line.to_dict()}))

        elif isinstance(effect, BeginDrag):
            # History is recorded on the first move of the drag
            self._drag_unsaved = True

        elif isinstance(effect, MovePointPart):
            point = self.project.find_point(effect.point_id)
            if point is None:
                return
            if self._drag_unsaved:
                self._save_state()
                self._drag_unsaved = False
            if effect.part == DragPart.TARGET:
                point.target_x, point.target_y = effect.pos
            else:
                point.x, point.y = effect.pos
            self.events.emit(
                AnnotationEvent(
                    EventType.POINT_MOVED,
                    {"point_id": point.id, "part": effect.part.value, "pos": effect.pos},
                )
            )

        elif isinstance(effect, RelocatePoint):
            point = self.project.find_point(effect.point_id)
            if point is None:
                return
            self._save_state()
            point.target_x, point.target_y = effect.target
            point.x, point.y = effect.badge
            self.events.emit(
                AnnotationEvent(EventType.POINT_MOVED, {"point_id": point.id, "part": "all"})
            )

        elif isinstance(effect, SetScroll):
            self.events.emit(
                AnnotationEvent(EventType.SCROLL_CHANGED, {"left": effect.left, "top": effect.top})
            )

    def _emit_interaction_changes(self, before: InteractionState, after: InteractionState):
        if before == after:
            return
        if before.mode != after.mode:
            self.events.emit(AnnotationEvent(EventType.MODE_CHANGED, {"mode": after.mode.value}))
        if (before.selected_point_id, before.selected_line_id) != (
            after.selected_point_id,
            after.selected_line_id,
        ):
            self.events.emit(
                AnnotationEvent(
                    EventType.SELECTION_CHANGED,
                    {"point_id": after.selected_point_id, "line_id": after.selected_line_id},
                )
            )
        if before.creation != after.creation:
            self.events.emit(AnnotationEvent(EventType.PREVIEW_CHANGED))
        self.events.emit(AnnotationEvent(EventType.STATE_CHANGED, after.to_dict()))

    # Direct edits

    def update_point(self, point_id: str, **fields) -> bool:
        """
        Edit typology, description or images of a point.

        Returns:
            False if the point does not exist
        """
        unknown = set(fields) - set(EDITABLE_POINT_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be edited: {sorted(unknown)}")
        point = self.project.find_point(point_id)
        if point is None:
            return False

        self._save_state()
        for name, value in fields.items():
            setattr(point, name, list(value) if name == "images" else str(value))
        self.events.emit(
            AnnotationEvent(EventType.POINT_UPDATED, {"point_id": point_id, "fields": sorted(fields)})
        )
        return True

    def add_photo(self, point_id: str, payload: ImagePayload) -> bool:
        point = self.project.find_point(point_id)
        if point is None:
            return False
        return self.update_point(point_id, images=[*point.images, payload])

    def remove_photo(self, point_id: str, index: int) -> bool:
        point = self.project.find_point(point_id)
        if point is None or not 0 <= index < len(point.images):
            return False
        images = list(point.images)
        del images[index]
        return self.update_point(point_id, images=images)

    def delete_point(self, point_id: str) -> bool:
        """
        Delete a point and renumber every point after it.

        Returns:
            False if the point does not exist
        """
        if self.project.find_point(point_id) is None:
            return False

        self._save_state()
        self.project.points = renumber_points(
            [p for p in self.project.points if p.id != point_id]
        )
        if self.interaction.selected_point_id == point_id:
            self.interaction = replace(self.interaction, selected_point_id=None)
        if self.interaction.drag is not None and self.interaction.drag.point_id == point_id:
            self.interaction = replace(self.interaction, drag=None)
        if self.interaction.reposition_point_id == point_id:
            self.interaction = replace(
                self.interaction.without_sessions(),
                mode=InteractionMode.PAN,
                reposition_point_id=None,
            )

        self.events.emit(AnnotationEvent(EventType.POINT_DELETED, {"point_id": point_id}))
        return True

    def delete_line(self, line_id: str) -> bool:
        if self.project.find_line(line_id) is None:
            return False

        self._save_state()
        self.project.lines = [line for line in self.project.lines if line.id != line_id]
        if self.interaction.selected_line_id == line_id:
            self.interaction = replace(self.interaction, selected_line_id=None)

        self.events.emit(AnnotationEvent(EventType.LINE_DELETED, {"line_id": line_id}))
        return True

    def undo(self) -> bool:
        """
        Undo the last model mutation.

        Returns:
            True if undo was successful, False if no history
        """
        if not self._state_history:
            return False

        prev_state = self._state_history.pop()
        self.project.points = prev_state["points"]
        self.project.lines = prev_state["lines"]

        # Selections may point to items that no longer exist
        selected_point = self.interaction.selected_point_id
        if selected_point is not None and self.project.find_point(selected_point) is None:
            selected_point = None
        selected_line = self.interaction.selected_line_id
        if selected_line is not None and self.project.find_line(selected_line) is None:
            selected_line = None
        self.interaction = replace(
            self.interaction.without_sessions(),
            selected_point_id=selected_point,
            selected_line_id=selected_line,
        )

        self.events.emit(AnnotationEvent(EventType.HISTORY_UNDONE))
        return True

    def _save_state(self):
        """Save current points and lines to history for undo."""
        self._state_history.append(
            {
                "points": copy.deepcopy(self.project.points),
                "lines": copy.deepcopy(self.project.lines),
            }
        )

        # Limit history size
        max_history = self.config.history.max_size
        if len(self._state_history) > max_history:
            self._state_history.pop(0)

    # Read side

    def snapshot(self) -> ProjectState:
        """Deep copy of the model; later edits never reach it."""
        return copy.deepcopy(self.project)

    def live_overlay(self):
        from ..render.composition import LiveOverlay

        creation = self.interaction.creation
        return LiveOverlay(
            selected_point_id=self.interaction.selected_point_id,
            selected_line_id=self.interaction.selected_line_id,
            preview_mode=creation.mode if creation else None,
            preview_anchor=creation.anchor if creation else None,
            preview_current=creation.current if creation else None,
            preview_color=self.interaction.line_color.value,
        )

    def get_visualization_data(self) -> Dict[str, Any]:
        """
        Get data needed for visualization.

        Returns:
            Dictionary with visualization data
        """
        return {
            "image": self._image,
            "project": self.project,
            "overlay": self.live_overlay(),
            "mode": self.interaction.mode,
            "zoom": self.zoom,
            "scroll": self.interaction.scroll,
            "num_points": len(self.project.points),
            "num_lines": len(self.project.lines),
        }

    # Export

    def export_image(self, output_path: Path) -> Path:
        """Write the flattened JPEG export of a snapshot taken now."""
        from ..render.raster import export_raster

        if self._image is None:
            raise ExportError("No base image loaded")
        cfg = self.config.export
        return export_raster(
            self.snapshot(),
            self._image.copy(),
            output_path,
            supersample=cfg.supersample,
            quality=cfg.jpeg_quality,
            background=cfg.background,
        )

    def export_pdf(self, output_path: Path, layout: Optional[str] = None) -> Path:
        """Write the PDF report of a snapshot taken now."""
        from ..render.pdf import export_pdf

        if self._image is None:
            raise ExportError("No base image loaded")
        cfg = self.config.report
        return export_pdf(
            self.snapshot(),
            self._image.copy(),
            output_path,
            layout=layout or cfg.layout,
            page_size=cfg.page_size,
            max_photos=cfg.max_photos,
        )
