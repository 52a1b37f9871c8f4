"""Tests for the pointer <-> percent transform."""

import math

import pytest

from sitemapper.core.geometry import (
    ContainerBox,
    ViewportTransform,
    clamp_percent,
    in_percent_range,
    normalize_rotation,
    percent_to_pixels,
    step_clamped,
)


def approx_pair(pair, expected, abs_tol=1e-6):
    assert pair[0] == pytest.approx(expected[0], abs=abs_tol)
    assert pair[1] == pytest.approx(expected[1], abs=abs_tol)


class TestViewportTransform:
    def test_unrotated_corners_and_center(self):
        view = ViewportTransform.for_image(1000, 500, center=(500, 250))
        approx_pair(view.to_percent(0, 0), (0, 0))
        approx_pair(view.to_percent(1000, 500), (100, 100))
        approx_pair(view.to_percent(500, 250), (50, 50))
        approx_pair(view.to_percent(250, 125), (25, 25))

    def test_zoom_resizes_container(self):
        view = ViewportTransform.for_image(1000, 500, zoom=2.0, center=(1000, 500))
        approx_pair(view.to_percent(500, 250), (25, 25))

    def test_center_maps_to_middle_at_any_rotation(self):
        for rotation in (0, 45, 90, 180, 270, 313):
            view = ViewportTransform.for_image(800, 600, rotation=rotation, center=(400, 300))
            approx_pair(view.to_percent(400, 300), (50, 50))

    def test_quarter_turn(self):
        # Rotated 90 degrees clockwise, the image's top-left corner sits top-right
        box = ContainerBox(center_x=0, center_y=0, width=200, height=100)
        view = ViewportTransform(box, rotation=90)
        approx_pair(view.to_screen(0, 0), (50, -100))
        approx_pair(view.to_percent(50, -100), (0, 0))

    @pytest.mark.parametrize("rotation", [0, 30, 90, 135, 180, 270, 359])
    @pytest.mark.parametrize("zoom", [0.5, 1.0, 2.4])
    def test_round_trip(self, rotation, zoom):
        view = ViewportTransform.for_image(640, 480, zoom=zoom, rotation=rotation, center=(321, 123))
        for x, y in [(0, 0), (12.5, 87.5), (50, 50), (100, 100), (73.2, 4.1)]:
            screen = view.to_screen(x, y)
            approx_pair(view.to_percent(*screen), (x, y))

    def test_outside_positions_are_not_clamped(self):
        view = ViewportTransform.for_image(100, 100, center=(50, 50))
        approx_pair(view.to_percent(-10, 150), (-10, 150))

    def test_empty_container(self):
        view = ViewportTransform.for_image(0, 0)
        x, y = view.to_percent(10, 10)
        assert math.isnan(x) and math.isnan(y)
        assert not in_percent_range(x, y)

    def test_from_rect_uses_bounding_center(self):
        box = ContainerBox.from_rect(10, 20, 300, 200, layout_width=200, layout_height=300)
        assert (box.center_x, box.center_y) == (160, 120)
        assert (box.width, box.height) == (200, 300)


class TestHelpers:
    @pytest.mark.parametrize(
        "degrees,expected",
        [(0, 0), (360, 0), (450, 90), (-90, 270), (-720, 0), (359.5, 359.5)],
    )
    def test_normalize_rotation(self, degrees, expected):
        assert normalize_rotation(degrees) == pytest.approx(expected)

    def test_percent_range(self):
        assert in_percent_range(0, 100)
        assert not in_percent_range(-0.01, 50)
        assert not in_percent_range(50, 100.01)
        assert clamp_percent(-5, 120) == (0, 100)

    def test_percent_to_pixels(self):
        assert percent_to_pixels(50, 25, 200, 400) == (100, 100)

    def test_step_clamped(self):
        value = 1.0
        for _ in range(5):
            value = step_clamped(value, 0.2, 0.5, 3.0)
        assert value == 2.0
        assert step_clamped(2.9, 0.2, 0.5, 3.0) == 3.0
        assert step_clamped(0.6, -0.2, 0.5, 3.0) == 0.5
