"""
Event system for annotation workflow.

Provides a decoupled way for the annotation core to notify surfaces
(live view, exporters, storage glue) about state changes without
depending on specific UI frameworks.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events that can occur during annotation."""

    # Image events
    IMAGE_LOADED = "image_loaded"
    DECODE_STARTED = "decode_started"
    DECODE_FAILED = "decode_failed"

    # Point events
    POINT_ADDED = "point_added"
    POINT_MOVED = "point_moved"
    POINT_UPDATED = "point_updated"
    POINT_DELETED = "point_deleted"

    # Line events
    LINE_ADDED = "line_added"
    LINE_DELETED = "line_deleted"

    # Interaction events
    MODE_CHANGED = "mode_changed"
    SELECTION_CHANGED = "selection_changed"
    SCROLL_CHANGED = "scroll_changed"
    PREVIEW_CHANGED = "preview_changed"
    VIEW_CHANGED = "view_changed"

    # Session events
    PROJECT_LOADED = "project_loaded"
    HISTORY_UNDONE = "history_undone"
    STATE_CHANGED = "state_changed"


@dataclass
class AnnotationEvent:
    """Event that occurs during annotation."""

    event_type: EventType
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.data is None:
            self.data = {}


class EventEmitter:
    """
    Simple event emitter for pub/sub pattern.

    Allows components to subscribe to events without tight coupling.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}

    def on(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Subscribe to an event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(callback)

    def off(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Unsubscribe from an event type."""
        if event_type in self._listeners:
            self._listeners[event_type].remove(callback)

    def emit(self, event: AnnotationEvent):
        """Emit an event to all subscribers."""
        for callback in list(self._listeners.get(event.event_type, [])):
            try:
                callback(event)
            except Exception:
                # Log but don't crash on listener errors
                logger.exception("Error in event listener for %s", event.event_type.value)

    def clear(self):
        """Clear all event listeners."""
        self._listeners.clear()
