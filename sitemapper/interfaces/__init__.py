"""
Interfaces module - UI adapters for annotation core.

Provides adapters to connect the core annotation logic
with live drawing surfaces (Tkinter, Qt, web canvases).
"""

from .gui_adapter import GUIAnnotationAdapter

__all__ = ['GUIAnnotationAdapter']
