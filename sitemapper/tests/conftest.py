"""
Test fixtures and utilities for sitemapper tests.

Provides synthetic plans, encoded payloads and ready-to-use sessions.
"""

import base64
from unittest.mock import Mock

import cv2
import numpy as np
import pytest

from sitemapper.config import load_config
from sitemapper.core.annotation.state import Line, LineColor, Point, ProjectState


@pytest.fixture
def test_image():
    """Create a test BGR plan, wider than tall."""
    image = np.full((400, 500, 3), 230, dtype=np.uint8)
    # A few walls so the plan is not uniform
    cv2.rectangle(image, (50, 50), (450, 350), (40, 40, 40), 3)
    cv2.line(image, (250, 50), (250, 350), (40, 40, 40), 2)
    return image


@pytest.fixture
def test_image_rgba():
    """Create a BGRA plan with a transparent left half."""
    image = np.zeros((120, 160, 4), dtype=np.uint8)
    image[:, :, :3] = (10, 120, 200)
    image[:, 80:, 3] = 255
    image[:, 40:80, 3] = 128
    return image


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


def to_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(data).decode("ascii")


@pytest.fixture
def png_payload(test_image):
    """PNG bytes of the test plan."""
    return encode_png(test_image)


@pytest.fixture
def photo_data_url():
    """A small photo as a data URL, as stored in point images."""
    photo = np.zeros((60, 90, 3), dtype=np.uint8)
    photo[:, :45] = (0, 0, 255)
    photo[:, 45:] = (255, 0, 0)
    return to_data_url(encode_png(photo))


@pytest.fixture
def config():
    return load_config(env={})


@pytest.fixture
def session(config):
    """An AnnotationSession without an image."""
    from sitemapper.core.annotation import AnnotationSession

    return AnnotationSession(config)


@pytest.fixture
def loaded_session(session, test_image):
    """An AnnotationSession with the test plan loaded at zoom 1, no rotation."""
    session.load_image(test_image, "plan.png")
    return session


@pytest.fixture
def listener():
    return Mock()


@pytest.fixture
def sample_project(photo_data_url):
    """A project with points (one with a leader) and a line."""
    return ProjectState(
        plan_name="Ground floor",
        floor="0",
        image_name="plan.png",
        image_size=(500, 400),
        points=[
            Point(id="p1", number=1, x=20.0, y=20.0, typology="3 A, 1",
                  description="Crack near the window", images=[photo_data_url]),
            Point(id="p2", number=2, x=60.0, y=40.0, typology="",
                  target_x=50.0, target_y=50.0, description=""),
            Point(id="p3", number=3, x=80.0, y=75.0, typology="b/a",
                  description="Damp patch", images=[photo_data_url, photo_data_url]),
        ],
        lines=[
            Line(id="l1", start_x=10.0, start_y=90.0, end_x=90.0, end_y=90.0,
                 color=LineColor.BLUE),
        ],
    )


@pytest.fixture
def png_encoder():
    """Function encoding an array to PNG bytes."""
    return encode_png
