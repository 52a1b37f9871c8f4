"""
Core annotation module - UI-agnostic annotation logic.

This module provides the data model, the interaction state machine and
the session that ties them together. It can be driven by any surface
(Qt, Tk, web, tests).
"""

from .state import (
    DragPart,
    InteractionMode,
    InteractionState,
    Line,
    LineColor,
    Point,
    ProjectState,
)
from .events import AnnotationEvent, EventType, EventEmitter
from .session import AnnotationSession

__all__ = [
    "AnnotationSession",
    "AnnotationEvent",
    "EventType",
    "EventEmitter",
    "DragPart",
    "InteractionMode",
    "InteractionState",
    "Line",
    "LineColor",
    "Point",
    "ProjectState",
]
