"""
GUI adapter for annotation session.

Bridges the AnnotationSession with a live drawing surface (Tkinter,
Qt, a web canvas...). The adapter forwards pointer input, listens to
session events and renders the live composition on request.
"""

from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from ..core.annotation import AnnotationEvent, AnnotationSession, EventType
from ..core.render.raster import rasterize

# Events after which the live composition must be redrawn
REDRAW_EVENTS = (
    EventType.IMAGE_LOADED,
    EventType.PROJECT_LOADED,
    EventType.POINT_ADDED,
    EventType.POINT_MOVED,
    EventType.POINT_UPDATED,
    EventType.POINT_DELETED,
    EventType.LINE_ADDED,
    EventType.LINE_DELETED,
    EventType.SELECTION_CHANGED,
    EventType.PREVIEW_CHANGED,
    EventType.VIEW_CHANGED,
    EventType.HISTORY_UNDONE,
)


class GUIAnnotationAdapter:
    """
    Adapter connecting AnnotationSession to a GUI surface.

    Provides a compatibility layer that:
    - Wraps AnnotationSession with widget-friendly methods
    - Translates events to GUI callbacks
    - Handles visualization rendering
    """

    def __init__(
        self,
        session: AnnotationSession,
        update_image_callback: Optional[Callable] = None,
        scroll_callback: Optional[Callable[[float, float], None]] = None,
    ):
        """
        Initialize adapter.

        Args:
            session: Core annotation session
            update_image_callback: Called whenever the live view must be redrawn
            scroll_callback: Called with the new scroll offsets while panning
        """
        self.session = session
        self.update_image_callback = update_image_callback
        self.scroll_callback = scroll_callback

        # Subscribe to session events
        self._setup_event_handlers()

    def _setup_event_handlers(self):
        """Setup event handlers for session events."""
        for event_type in REDRAW_EVENTS:
            self.session.events.on(event_type, self._on_redraw)
        self.session.events.on(EventType.SCROLL_CHANGED, self._on_scroll_changed)

    def detach(self):
        """Stop listening to the session."""
        for event_type in REDRAW_EVENTS:
            self.session.events.off(event_type, self._on_redraw)
        self.session.events.off(EventType.SCROLL_CHANGED, self._on_scroll_changed)

    def _on_redraw(self, event: AnnotationEvent):
        if self.update_image_callback:
            self.update_image_callback()

    def _on_scroll_changed(self, event: AnnotationEvent):
        if self.scroll_callback:
            self.scroll_callback(event.data["left"], event.data["top"])

    # Widget input, in screen coordinates

    def on_press(self, x: float, y: float):
        self.session.pointer_down(x, y)

    def on_motion(self, x: float, y: float):
        self.session.pointer_move(x, y)

    def on_release(self, x: float, y: float):
        self.session.pointer_up(x, y)

    def on_leave(self):
        self.session.pointer_leave()

    def on_wheel(self, delta: float):
        """Zoom one step in or out depending on the wheel direction."""
        if delta > 0:
            self.session.zoom_in()
        elif delta < 0:
            self.session.zoom_out()

    def to_screen(self, x: float, y: float) -> Tuple[float, float]:
        """Screen position of a percent-space location, for widget overlays."""
        return self.session.viewport.to_screen(x, y)

    def get_visualization(self) -> Optional[np.ndarray]:
        """
        Get visualization for display.

        The live composition includes selection highlights and the creation
        preview, which never appear in exports.

        Returns:
            RGB image at the base image's native size, or None without an image
        """
        viz_data = self.session.get_visualization_data()

        image = viz_data["image"]
        if image is None:
            return None

        vis = rasterize(
            viz_data["project"],
            image,
            supersample=1,
            overlay=viz_data["overlay"],
            background=self.session.config.export.background,
        )
        return cv2.cvtColor(vis, cv2.COLOR_BGR2RGB)
