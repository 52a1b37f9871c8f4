"""
Interaction state machine.

Pointer gestures are turned into model mutations by a pure function:
``transition(state, event) -> Transition(state, effects)``. The function
never touches the annotation model; it returns *effects* that the session
applies. This keeps every gesture rule unit-testable without a pointer
device or a GUI toolkit.

Pointer events carry both the annotation-space position (percentages,
already converted by the viewport transform and *not* clamped) and the raw
screen position, which panning needs.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from ..geometry import clamp_percent, in_percent_range
from .state import (
    CreationSession,
    DragPart,
    DragSession,
    InteractionMode,
    InteractionState,
    LineColor,
    PanSession,
)
from .utils import distance

# Drag longer than this (percent units) turns a click into target+badge
OFFSET_DRAG_THRESHOLD = 1.0
# Per-axis displacement a line needs to not be degenerate
MIN_LINE_EXTENT = 0.5

CREATION_MODES = (InteractionMode.ADD, InteractionMode.LINE, InteractionMode.REPOSITION)


# Hits


@dataclass(frozen=True)
class Hit:
    """What lies under the pointer: a point's badge/target, or a line."""

    kind: str  # "badge", "target" or "line"
    item_id: str

    @property
    def is_point(self) -> bool:
        return self.kind in ("badge", "target")


# Input events


@dataclass(frozen=True)
class PointerDown:
    pos: Tuple[float, float]
    screen: Tuple[float, float] = (0.0, 0.0)
    hit: Optional[Hit] = None


@dataclass(frozen=True)
class PointerMove:
    pos: Tuple[float, float]
    screen: Tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True)
class PointerUp:
    pos: Tuple[float, float]
    screen: Tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True)
class PointerLeave:
    """Pointer left the window."""


@dataclass(frozen=True)
class SetMode:
    mode: InteractionMode


@dataclass(frozen=True)
class SetLineColor:
    color: LineColor


@dataclass(frozen=True)
class StartReposition:
    point_id: str


@dataclass(frozen=True)
class SelectPoint:
    point_id: Optional[str]


@dataclass(frozen=True)
class SelectLine:
    line_id: Optional[str]


@dataclass(frozen=True)
class DecodeStarted:
    pass


@dataclass(frozen=True)
class DecodeFinished:
    pass


# Effects


@dataclass(frozen=True)
class CreatePoint:
    target: Tuple[float, float]
    badge: Tuple[float, float]


@dataclass(frozen=True)
class CreateLine:
    start: Tuple[float, float]
    end: Tuple[float, float]
    color: LineColor


@dataclass(frozen=True)
class MovePointPart:
    point_id: str
    part: DragPart
    pos: Tuple[float, float]


@dataclass(frozen=True)
class BeginDrag:
    """A move gesture grabbed a point; the session snapshots history once."""

    point_id: str


@dataclass(frozen=True)
class RelocatePoint:
    point_id: str
    target: Tuple[float, float]
    badge: Tuple[float, float]


@dataclass(frozen=True)
class SetScroll:
    left: float
    top: float


@dataclass
class Transition:
    state: InteractionState
    effects: List[object] = field(default_factory=list)


def split_offset_gesture(
    down: Tuple[float, float], up: Tuple[float, float]
) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """
    Target and badge positions for an add/reposition gesture.

    Returns:
        ``(target, badge)``; both equal ``up`` for a plain click
    """
    if distance(down, up) > OFFSET_DRAG_THRESHOLD:
        return down, up
    return up, up


def line_is_degenerate(start: Tuple[float, float], end: Tuple[float, float]) -> bool:
    return (
        abs(end[0] - start[0]) <= MIN_LINE_EXTENT
        and abs(end[1] - start[1]) <= MIN_LINE_EXTENT
    )


def transition(state: InteractionState, event) -> Transition:
    """
    Advance the interaction state by one event.

    Args:
        state: Current interaction state
        event: One of the input event dataclasses of this module

    Returns:
        New state plus the effects to apply on the model, in order
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown interaction event: {event!r}")
    return handler(state, event)


def _on_set_mode(state: InteractionState, event: SetMode) -> Transition:
    new_state = replace(state.without_sessions(), mode=event.mode)
    if event.mode != InteractionMode.REPOSITION:
        new_state = replace(new_state, reposition_point_id=None)
    elif state.selected_point_id is None:
        # Nothing to reposition
        return Transition(state.without_sessions())
    else:
        new_state = replace(new_state, reposition_point_id=state.selected_point_id)
    return Transition(new_state)


def _on_set_line_color(state: InteractionState, event: SetLineColor) -> Transition:
    return Transition(replace(state, line_color=LineColor(event.color)))


def _on_start_reposition(state: InteractionState, event: StartReposition) -> Transition:
    return Transition(
        replace(
            state.without_sessions(),
            mode=InteractionMode.REPOSITION,
            selected_point_id=event.point_id,
            selected_line_id=None,
            reposition_point_id=event.point_id,
        )
    )


def _on_select_point(state: InteractionState, event: SelectPoint) -> Transition:
    selected_line = None if event.point_id is not None else state.selected_line_id
    return Transition(
        replace(state, selected_point_id=event.point_id, selected_line_id=selected_line)
    )


def _on_select_line(state: InteractionState, event: SelectLine) -> Transition:
    selected_point = None if event.line_id is not None else state.selected_point_id
    return Transition(
        replace(state, selected_line_id=event.line_id, selected_point_id=selected_point)
    )


def _on_decode_started(state: InteractionState, event: DecodeStarted) -> Transition:
    return Transition(replace(state, pending_decodes=state.pending_decodes + 1))


def _on_decode_finished(state: InteractionState, event: DecodeFinished) -> Transition:
    return Transition(replace(state, pending_decodes=max(0, state.pending_decodes - 1)))


def _on_pointer_down(state: InteractionState, event: PointerDown) -> Transition:
    if state.has_session:
        # A second button going down mid-gesture does not start another session
        return Transition(state)

    mode = state.mode
    hit = event.hit

    if mode == InteractionMode.PAN:
        if hit is not None and hit.is_point:
            return Transition(
                replace(state, selected_point_id=hit.item_id, selected_line_id=None)
            )
        pan = PanSession(start_screen=event.screen, start_scroll=state.scroll)
        return Transition(replace(state, pan=pan))

    if mode == InteractionMode.REPOSITION:
        return _begin_creation(state, event)

    if hit is not None and hit.kind == "line":
        return Transition(
            replace(state, selected_line_id=hit.item_id, selected_point_id=None)
        )

    if hit is not None and hit.is_point:
        new_state = replace(state, selected_point_id=hit.item_id, selected_line_id=None)
        if mode == InteractionMode.MOVE and not state.decode_pending:
            part = DragPart.TARGET if hit.kind == "target" else DragPart.BADGE
            drag = DragSession(point_id=hit.item_id, part=part)
            return Transition(replace(new_state, drag=drag), [BeginDrag(hit.item_id)])
        return Transition(new_state)

    # Empty canvas in a non-pan mode
    new_state = replace(state, selected_line_id=None)
    if mode in CREATION_MODES:
        return _begin_creation(new_state, event)
    return Transition(new_state)


def _begin_creation(state: InteractionState, event: PointerDown) -> Transition:
    if state.decode_pending or not in_percent_range(*event.pos):
        return Transition(state)
    creation = CreationSession(mode=state.mode, anchor=event.pos, current=event.pos)
    return Transition(replace(state, creation=creation))


def _on_pointer_move(state: InteractionState, event: PointerMove) -> Transition:
    if state.pan is not None:
        dx = event.screen[0] - state.pan.start_screen[0]
        dy = event.screen[1] - state.pan.start_screen[1]
        left = max(0.0, state.pan.start_scroll[0] - dx)
        top = max(0.0, state.pan.start_scroll[1] - dy)
        return Transition(replace(state, scroll=(left, top)), [SetScroll(left, top)])

    if state.drag is not None:
        pos = clamp_percent(*event.pos)
        return Transition(state, [MovePointPart(state.drag.point_id, state.drag.part, pos)])

    if state.creation is not None:
        creation = replace(state.creation, current=event.pos)
        return Transition(replace(state, creation=creation))

    return Transition(state)


def _on_pointer_up(state: InteractionState, event: PointerUp) -> Transition:
    if state.creation is not None:
        return _finish_creation(state, event)
    # No matching pointer-down: nothing to finish
    return Transition(state.without_sessions())


def _finish_creation(state: InteractionState, event: PointerUp) -> Transition:
    creation = state.creation
    ended = state.without_sessions()
    if not in_percent_range(*event.pos):
        return Transition(ended)

    if creation.mode == InteractionMode.ADD:
        target, badge = split_offset_gesture(creation.anchor, event.pos)
        return Transition(ended, [CreatePoint(target=target, badge=badge)])

    if creation.mode == InteractionMode.LINE:
        if line_is_degenerate(creation.anchor, event.pos):
            return Transition(ended)
        return Transition(
            ended, [CreateLine(start=creation.anchor, end=event.pos, color=state.line_color)]
        )

    # Reposition: one gesture, then back to pan
    target, badge = split_offset_gesture(creation.anchor, event.pos)
    effects = []
    if state.reposition_point_id is not None:
        effects.append(RelocatePoint(state.reposition_point_id, target=target, badge=badge))
    return Transition(
        replace(ended, mode=InteractionMode.PAN, reposition_point_id=None), effects
    )


def _on_pointer_leave(state: InteractionState, event: PointerLeave) -> Transition:
    if state.pan is not None:
        return Transition(replace(state, pan=None))
    return Transition(state)


_HANDLERS = {
    SetMode: _on_set_mode,
    SetLineColor: _on_set_line_color,
    StartReposition: _on_start_reposition,
    SelectPoint: _on_select_point,
    SelectLine: _on_select_line,
    DecodeStarted: _on_decode_started,
    DecodeFinished: _on_decode_finished,
    PointerDown: _on_pointer_down,
    PointerMove: _on_pointer_move,
    PointerUp: _on_pointer_up,
    PointerLeave: _on_pointer_leave,
}
