"""Tests for the PDF report export."""

import logging
import re
from unittest.mock import Mock

import pytest

from sitemapper.core.annotation.state import Point, ProjectState
from sitemapper.core.errors import ExportError
from sitemapper.core.render.pdf import ReportWriter, export_pdf, render_pdf_bytes

PAGE_RE = re.compile(rb"/Type /Page\b")


def page_count(data: bytes) -> int:
    return len(PAGE_RE.findall(data))


def many_points(count, description=""):
    return [
        Point(id=f"p{i}", number=i, x=5 + (i * 7) % 90, y=5 + (i * 13) % 90,
              typology=str(i), description=description)
        for i in range(1, count + 1)
    ]


class TestRenderPdf:
    def test_diagram_plus_cards(self, sample_project, test_image):
        data = render_pdf_bytes(sample_project, test_image)
        assert data.startswith(b"%PDF")
        # Three points fit in one page of four cards
        assert page_count(data) == 2

    def test_diagram_page_has_image_size(self, sample_project, test_image):
        data = render_pdf_bytes(sample_project, test_image)
        assert re.search(rb"/MediaBox \[\s*0 0 500 400\s*\]", data)

    def test_no_points_no_report(self, test_image):
        data = render_pdf_bytes(ProjectState(), test_image)
        assert page_count(data) == 1

    def test_cards_paginate_by_four(self, test_image):
        project = ProjectState(points=many_points(9))
        assert page_count(render_pdf_bytes(project, test_image)) == 1 + 3

    def test_table_grows_with_descriptions(self, test_image):
        short = ProjectState(points=many_points(12, "Short"))
        long = ProjectState(points=many_points(12, "A long description of the damage. " * 30))

        short_pages = page_count(render_pdf_bytes(short, test_image, layout="table"))
        long_pages = page_count(render_pdf_bytes(long, test_image, layout="table"))
        assert short_pages == 2
        assert long_pages > short_pages

    def test_letter_pages(self, sample_project, test_image):
        data = render_pdf_bytes(sample_project, test_image, page_size="letter")
        assert re.search(rb"/MediaBox \[\s*0 0 612 792\s*\]", data)

    def test_broken_photo_is_skipped(self, sample_project, test_image, caplog):
        sample_project.points[0].images = [b"garbage", *sample_project.points[0].images]
        with caplog.at_level(logging.WARNING, logger="sitemapper.core.render.pdf"):
            data = render_pdf_bytes(sample_project, test_image)
        assert data.startswith(b"%PDF")
        assert page_count(data) == 2
        assert "Skipping photo 1 of point 1" in caplog.text

    def test_only_photo_broken_keeps_report(self, sample_project, test_image, caplog):
        sample_project.points[1].images = [b"garbage"]
        sample_project.points[1].description = "Ceiling stain"
        with caplog.at_level(logging.WARNING, logger="sitemapper.core.render.pdf"):
            data = render_pdf_bytes(sample_project, test_image)
        assert page_count(data) == 2
        assert "Skipping photo 1 of point 2" in caplog.text

    def test_transparent_base(self, sample_project, test_image_rgba):
        assert render_pdf_bytes(sample_project, test_image_rgba).startswith(b"%PDF")

    def test_unknown_layout(self, sample_project, test_image):
        with pytest.raises(ValueError):
            render_pdf_bytes(sample_project, test_image, layout="poster")

    def test_bad_base_image(self, sample_project, tmp_path):
        target = tmp_path / "report.pdf"
        with pytest.raises(ExportError):
            export_pdf(sample_project, b"garbage", target)
        assert not target.exists()


def test_export_pdf_writes_file(sample_project, png_payload, tmp_path):
    path = export_pdf(sample_project, png_payload, tmp_path / "report.pdf", layout="table")
    assert path.read_bytes().startswith(b"%PDF")


def test_point_title():
    writer = ReportWriter(Mock())
    assert writer.point_title(Point(id="a", number=3, x=0, y=0, typology="b 2 a")) == (
        "Point N. 3 (Typ. 2, a, b)"
    )
    assert writer.point_title(Point(id="a", number=4, x=0, y=0)) == "Point N. 4"


def test_cards_keep_header_and_description_without_photo(sample_project):
    sample_project.points[1].images = [b"garbage"]
    sample_project.points[1].description = "Ceiling stain"
    canvas = Mock()
    writer = ReportWriter(canvas)
    writer.write_cards(sample_project.sorted_points())

    strings = [call.args[2] for call in canvas.drawString.call_args_list]
    assert "Point N. 2" in strings
    assert "Ceiling stain" in strings
    # Only the photos of points 1 and 3 decode
    assert canvas.drawImage.call_count == 3
