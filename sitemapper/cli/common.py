"""Helpers shared by the subcommands."""

import json
import logging
from gettext import gettext as _
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from sitemapper.core.annotation.state import ProjectState
from sitemapper.core.annotation.utils import decode_image, image_size
from sitemapper.core.errors import ImportFormatError, SiteMapperError
from sitemapper.storage.importers import normalize_project

logger = logging.getLogger(__name__)


def load_inputs(project_path: Path, image_path: Optional[Path] = None) -> Tuple[ProjectState, np.ndarray]:
    """
    Load a project file and its base image.

    The image comes from ``image_path`` when given, otherwise from the
    ``imageData`` embedded by the project store.
    """
    assert project_path.exists(), _("Project file must exist")
    try:
        raw = json.loads(project_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"{project_path}: {e}") from e
    project = normalize_project(raw)

    if image_path is not None:
        assert image_path.exists(), _("Image file must exist")
        image = decode_image(image_path.read_bytes())
        if not project.image_name:
            project.image_name = image_path.name
    elif isinstance(raw, dict) and raw.get("imageData"):
        image = decode_image(raw["imageData"])
    else:
        raise SiteMapperError(_("No base image: pass --image or use a project with embedded image data"))

    project.image_size = image_size(image)
    logger.debug(
        f"Loaded {len(project.points)} points and {len(project.lines)} lines over a {project.image_size} image"
    )
    return project, image


def run_guarded(fn, *args, **kwargs):
    """Run a handler step, turning library errors into a clean exit."""
    try:
        return fn(*args, **kwargs)
    except SiteMapperError as e:
        logger.error(str(e))
        raise SystemExit(1) from e
