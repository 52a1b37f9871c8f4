"""
Tests for the interaction state machine.

Transitions are pure, so gestures are replayed as plain event lists.
"""

from dataclasses import replace

import pytest

from sitemapper.core.annotation.state import (
    DragPart,
    InteractionMode,
    InteractionState,
    LineColor,
)
from sitemapper.core.annotation.transitions import (
    BeginDrag,
    CreateLine,
    CreatePoint,
    DecodeFinished,
    DecodeStarted,
    Hit,
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
    line_is_degenerate,
    split_offset_gesture,
    transition,
)


def run(state, *events):
    """Apply events in order; return the final state and all effects."""
    effects = []
    for event in events:
        result = transition(state, event)
        state = result.state
        effects.extend(result.effects)
    return state, effects


def in_mode(mode, **kwargs):
    return InteractionState(mode=mode, **kwargs)


class TestAddMode:
    def test_click_creates_point_without_leader(self):
        state, effects = run(
            in_mode(InteractionMode.ADD),
            PointerDown((10, 10)),
            PointerUp((10.05, 10.05)),
        )
        assert effects == [CreatePoint(target=(10.05, 10.05), badge=(10.05, 10.05))]
        assert not state.has_session

    def test_drag_splits_target_and_badge(self):
        _, effects = run(
            in_mode(InteractionMode.ADD),
            PointerDown((10, 10)),
            PointerMove((30, 30)),
            PointerUp((50, 50)),
        )
        assert effects == [CreatePoint(target=(10, 10), badge=(50, 50))]

    def test_threshold_is_exclusive(self):
        assert split_offset_gesture((0, 0), (1, 0)) == ((1, 0), (1, 0))
        assert split_offset_gesture((0, 0), (1.01, 0)) == ((0, 0), (1.01, 0))

    def test_down_outside_image_is_rejected(self):
        state, effects = run(
            in_mode(InteractionMode.ADD),
            PointerDown((-1, 50)),
            PointerUp((20, 20)),
        )
        assert effects == []
        assert state.creation is None

    def test_up_outside_image_discards(self):
        state, effects = run(
            in_mode(InteractionMode.ADD),
            PointerDown((10, 10)),
            PointerUp((101, 50)),
        )
        assert effects == []
        assert not state.has_session
        assert state.mode == InteractionMode.ADD

    def test_move_updates_preview(self):
        state, _ = run(in_mode(InteractionMode.ADD), PointerDown((10, 10)), PointerMove((15, 12)))
        assert state.creation.anchor == (10, 10)
        assert state.creation.current == (15, 12)

    def test_clicking_a_marker_selects_instead_of_creating(self):
        state, effects = run(
            in_mode(InteractionMode.ADD),
            PointerDown((10, 10), hit=Hit("badge", "p1")),
            PointerUp((10, 10)),
        )
        assert effects == []
        assert state.selected_point_id == "p1"


class TestLineMode:
    def test_short_line_is_discarded(self):
        state, effects = run(
            in_mode(InteractionMode.LINE),
            PointerDown((20, 20)),
            PointerUp((20.2, 20)),
        )
        assert effects == []
        assert not state.has_session

    def test_line_is_created_with_current_color(self):
        _, effects = run(
            in_mode(InteractionMode.LINE),
            SetLineColor(LineColor.GREEN),
            PointerDown((20, 20)),
            PointerUp((21, 20)),
        )
        assert effects == [CreateLine(start=(20, 20), end=(21, 20), color=LineColor.GREEN)]

    def test_degenerate_is_per_axis(self):
        assert line_is_degenerate((0, 0), (0.5, 0.5))
        assert not line_is_degenerate((0, 0), (0.51, 0))
        assert not line_is_degenerate((0, 0), (0, -0.6))

    def test_line_hit_selects_line_and_clears_point(self):
        state = in_mode(InteractionMode.LINE, selected_point_id="p1")
        state, effects = run(state, PointerDown((50, 50), hit=Hit("line", "l1")))
        assert state.selected_line_id == "l1"
        assert state.selected_point_id is None
        assert state.creation is None
        assert effects == []

    def test_empty_canvas_clears_line_selection(self):
        state = in_mode(InteractionMode.LINE, selected_line_id="l1")
        state, _ = run(state, PointerDown((50, 50)))
        assert state.selected_line_id is None
        assert state.creation is not None


class TestMoveMode:
    def test_drag_badge_clamps_to_image(self):
        state, effects = run(
            in_mode(InteractionMode.MOVE),
            PointerDown((40, 40), hit=Hit("badge", "p1")),
            PointerMove((50, 60)),
            PointerMove((120, -5)),
            PointerUp((120, -5)),
        )
        assert effects == [
            BeginDrag("p1"),
            MovePointPart("p1", DragPart.BADGE, (50, 60)),
            MovePointPart("p1", DragPart.BADGE, (100, 0)),
        ]
        assert state.drag is None
        assert state.selected_point_id == "p1"

    def test_drag_target(self):
        _, effects = run(
            in_mode(InteractionMode.MOVE),
            PointerDown((40, 40), hit=Hit("target", "p1")),
            PointerMove((41, 42)),
        )
        assert effects[-1] == MovePointPart("p1", DragPart.TARGET, (41, 42))

    def test_moves_after_release_do_nothing(self):
        _, effects = run(
            in_mode(InteractionMode.MOVE),
            PointerDown((40, 40), hit=Hit("badge", "p1")),
            PointerUp((40, 40)),
            PointerMove((60, 60)),
        )
        assert effects == [BeginDrag("p1")]

    def test_empty_canvas_does_nothing(self):
        state, effects = run(in_mode(InteractionMode.MOVE), PointerDown((40, 40)), PointerMove((45, 45)))
        assert effects == []
        assert not state.has_session


class TestPanMode:
    def test_pan_scrolls_opposite_to_pointer(self):
        state = in_mode(InteractionMode.PAN, scroll=(100, 100))
        state, effects = run(
            state,
            PointerDown((0, 0), screen=(200, 200)),
            PointerMove((0, 0), screen=(150, 170)),
        )
        assert state.scroll == (150, 130)
        assert effects == [SetScroll(150, 130)]

    def test_scroll_never_negative(self):
        state, _ = run(
            in_mode(InteractionMode.PAN),
            PointerDown((0, 0), screen=(0, 0)),
            PointerMove((0, 0), screen=(30, 40)),
        )
        assert state.scroll == (0, 0)

    def test_point_hit_selects_without_panning(self):
        state, _ = run(in_mode(InteractionMode.PAN), PointerDown((10, 10), hit=Hit("badge", "p2")))
        assert state.selected_point_id == "p2"
        assert state.pan is None

    def test_leave_ends_pan(self):
        state, _ = run(in_mode(InteractionMode.PAN), PointerDown((0, 0), screen=(5, 5)), PointerLeave())
        assert state.pan is None


class TestReposition:
    def test_set_mode_without_selection_is_ignored(self):
        state, _ = run(in_mode(InteractionMode.ADD), SetMode(InteractionMode.REPOSITION))
        assert state.mode == InteractionMode.ADD

    def test_set_mode_uses_selected_point(self):
        state = in_mode(InteractionMode.PAN, selected_point_id="p1")
        state, _ = run(state, SetMode(InteractionMode.REPOSITION))
        assert state.mode == InteractionMode.REPOSITION
        assert state.reposition_point_id == "p1"

    def test_gesture_relocates_then_reverts_to_pan(self):
        state, effects = run(
            in_mode(InteractionMode.PAN),
            StartReposition("p1"),
            PointerDown((30, 30), hit=Hit("badge", "p9")),
            PointerUp((35, 30)),
        )
        assert effects == [RelocatePoint("p1", target=(30, 30), badge=(35, 30))]
        assert state.mode == InteractionMode.PAN
        assert state.reposition_point_id is None

    def test_click_relocates_without_leader(self):
        _, effects = run(
            in_mode(InteractionMode.PAN),
            StartReposition("p1"),
            PointerDown((30, 30)),
            PointerUp((30.5, 30)),
        )
        assert effects == [RelocatePoint("p1", target=(30.5, 30), badge=(30.5, 30))]

    def test_leaving_mode_forgets_point(self):
        state, _ = run(in_mode(InteractionMode.PAN), StartReposition("p1"), SetMode(InteractionMode.ADD))
        assert state.reposition_point_id is None


class TestSessions:
    @pytest.mark.parametrize(
        "mode,hit",
        [
            (InteractionMode.ADD, None),
            (InteractionMode.LINE, None),
            (InteractionMode.MOVE, Hit("badge", "p1")),
            (InteractionMode.PAN, None),
        ],
    )
    def test_release_anywhere_ends_session(self, mode, hit):
        state, _ = run(in_mode(mode), PointerDown((50, 50), screen=(10, 10), hit=hit))
        assert state.has_session
        state, _ = run(state, PointerUp((500, 500), screen=(9999, 9999)))
        assert not state.has_session

    def test_second_down_is_ignored(self):
        state, _ = run(in_mode(InteractionMode.ADD), PointerDown((10, 10)))
        again, effects = run(state, PointerDown((60, 60)))
        assert again == state
        assert effects == []

    def test_at_most_one_session(self):
        state, _ = run(
            in_mode(InteractionMode.MOVE),
            PointerDown((40, 40), hit=Hit("badge", "p1")),
            SetMode(InteractionMode.ADD),
        )
        assert not state.has_session

    def test_up_without_down_is_harmless(self):
        state, effects = run(in_mode(InteractionMode.ADD), PointerUp((10, 10)))
        assert effects == []
        assert state == in_mode(InteractionMode.ADD)

    def test_unknown_event(self):
        with pytest.raises(TypeError):
            transition(InteractionState(), object())


class TestSelection:
    def test_point_and_line_selection_are_exclusive(self):
        state, _ = run(InteractionState(), SelectLine("l1"), SelectPoint("p1"))
        assert state.selected_point_id == "p1"
        assert state.selected_line_id is None
        state, _ = run(state, SelectLine("l2"))
        assert state.selected_line_id == "l2"
        assert state.selected_point_id is None

    def test_clearing_keeps_other_selection(self):
        state = InteractionState(selected_line_id="l1")
        state, _ = run(state, SelectPoint(None))
        assert state.selected_line_id == "l1"


class TestDecodePending:
    def test_blocks_creation(self):
        state, effects = run(
            in_mode(InteractionMode.ADD),
            DecodeStarted(),
            PointerDown((10, 10)),
            PointerUp((10, 10)),
        )
        assert effects == []
        assert state.decode_pending

    def test_blocks_drag_but_not_selection(self):
        state, effects = run(
            in_mode(InteractionMode.MOVE),
            DecodeStarted(),
            PointerDown((10, 10), hit=Hit("badge", "p1")),
        )
        assert effects == []
        assert state.selected_point_id == "p1"
        assert state.drag is None

    def test_does_not_block_panning(self):
        state, _ = run(
            in_mode(InteractionMode.PAN, scroll=(50, 50)),
            DecodeStarted(),
            PointerDown((0, 0), screen=(0, 0)),
            PointerMove((0, 0), screen=(10, 10)),
        )
        assert state.scroll == (40, 40)

    def test_finishing_unblocks(self):
        state, effects = run(
            in_mode(InteractionMode.ADD),
            DecodeStarted(),
            DecodeStarted(),
            DecodeFinished(),
            DecodeFinished(),
            PointerDown((10, 10)),
            PointerUp((10, 10)),
        )
        assert len(effects) == 1
        assert not state.decode_pending

    def test_finished_never_goes_negative(self):
        state, _ = run(InteractionState(), DecodeFinished())
        assert state.pending_decodes == 0


def test_states_are_immutable():
    state = InteractionState()
    with pytest.raises(Exception):
        state.mode = InteractionMode.ADD
    assert replace(state, mode=InteractionMode.ADD).mode == InteractionMode.ADD
