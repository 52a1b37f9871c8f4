"""Tests for the raster backend and JPEG export."""

from dataclasses import replace

import cv2
import numpy as np
import pytest

from sitemapper.core.annotation.state import ProjectState
from sitemapper.core.annotation.utils import composite_on_background
from sitemapper.core.errors import ExportError
from sitemapper.core.render.composition import LiveOverlay
from sitemapper.core.render.raster import (
    _dash_segments,
    encode_jpeg,
    export_raster,
    hershey_text,
    hex_to_bgr,
    rasterize,
    render_raster_bytes,
)


def test_hex_to_bgr():
    assert hex_to_bgr("#dc2626") == (38, 38, 220)
    assert hex_to_bgr("#ffffff") == (255, 255, 255)


class TestRasterize:
    @pytest.mark.parametrize("supersample", [1, 2, 3])
    def test_no_annotations_reproduces_base(self, test_image, supersample):
        project = ProjectState(image_size=(500, 400))
        out = rasterize(project, test_image, supersample=supersample)
        np.testing.assert_array_equal(out, test_image)

    def test_transparency_is_flattened_on_white(self, test_image_rgba):
        out = rasterize(ProjectState(), test_image_rgba)
        assert out.shape == (120, 160, 3)
        np.testing.assert_array_equal(out, composite_on_background(test_image_rgba))
        assert out[0, 0].tolist() == [255, 255, 255]

    def test_output_keeps_native_size(self, sample_project, test_image):
        out = rasterize(sample_project, test_image, supersample=2)
        assert out.shape == test_image.shape
        assert out.dtype == np.uint8

    def test_markers_are_drawn(self, sample_project, test_image):
        out = rasterize(sample_project, test_image)
        # Badge of point 1 is centered at (100, 80); sample above its label
        b, g, r = out[76, 100].tolist()
        assert r > 150 and g < 120 and b < 120
        # Far from any annotation the base is untouched
        np.testing.assert_array_equal(out[5:30, 5:30], test_image[5:30, 5:30])

    def test_image_size_comes_from_base(self, sample_project, test_image):
        wrong = replace(sample_project, image_size=(10, 10))
        np.testing.assert_array_equal(
            rasterize(wrong, test_image), rasterize(sample_project, test_image)
        )

    def test_live_overlay_changes_only_live_view(self, sample_project, test_image):
        plain = rasterize(sample_project, test_image, supersample=1)
        live = rasterize(
            sample_project, test_image, supersample=1,
            overlay=LiveOverlay(selected_point_id="p2"),
        )
        assert not np.array_equal(plain, live)

    def test_does_not_modify_base(self, sample_project, test_image):
        before = test_image.copy()
        rasterize(sample_project, test_image)
        np.testing.assert_array_equal(test_image, before)


class TestExport:
    def test_export_writes_jpeg(self, sample_project, test_image, tmp_path):
        path = export_raster(sample_project, test_image, tmp_path / "map.jpg")

        data = path.read_bytes()
        assert data[:2] == b"\xff\xd8"
        decoded = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        assert decoded.shape == (400, 500, 3)

    def test_export_accepts_encoded_payload(self, sample_project, png_payload, tmp_path):
        path = export_raster(sample_project, png_payload, tmp_path / "nested" / "map.jpg")
        assert path.exists()

    def test_quality_changes_size(self, sample_project, test_image):
        noisy = np.random.RandomState(0).randint(0, 255, test_image.shape, dtype=np.uint8)
        low = render_raster_bytes(sample_project, noisy, quality=20)
        high = render_raster_bytes(sample_project, noisy, quality=95)
        assert len(low) < len(high)

    def test_bad_base_image_leaves_no_file(self, sample_project, tmp_path):
        target = tmp_path / "map.jpg"
        with pytest.raises(ExportError):
            export_raster(sample_project, b"not an image", target)
        assert list(tmp_path.iterdir()) == []

    def test_invalid_array_is_export_error(self, sample_project, tmp_path):
        with pytest.raises(ExportError):
            export_raster(sample_project, np.zeros((10, 10), np.uint8), tmp_path / "x.jpg")
        assert not (tmp_path / "x.jpg").exists()

    def test_encode_jpeg(self, test_image):
        assert encode_jpeg(test_image, 90)[:2] == b"\xff\xd8"


def test_dash_segments():
    pieces = _dash_segments((0, 0), (20, 0), (5, 5))
    assert [(round(a[0]), round(b[0])) for a, b in pieces] == [(0, 5), (10, 15)]
    assert _dash_segments((1, 1), (1, 1), (5, 5)) == [((1, 1), (1, 1))]


def test_hershey_text_folds_to_ascii():
    assert hershey_text("città 3") == "citta 3"
    assert hershey_text("A, €") == "A, ?"
    assert hershey_text("1, 2") == "1, 2"


def test_accented_typology_draws_folded_text(sample_project, test_image):
    sample_project.points[0].typology = "città"
    accented = rasterize(sample_project, test_image, supersample=1)
    sample_project.points[0].typology = "citta"
    plain = rasterize(sample_project, test_image, supersample=1)
    assert np.array_equal(accented, plain)
