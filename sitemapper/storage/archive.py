"""
Project archive: a zip bundling the snapshot, the base image and the
rendered map, written in one go.
"""

import io
import json
import logging
import re
import zipfile
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from ..core.annotation.state import ProjectState
from ..core.annotation.utils import ImagePayload, decode_image, payload_to_bytes
from ..core.errors import ExportError, ImageDecodeError
from ..core.render.raster import render_raster_bytes
from ..utils.misc import write_atomic

logger = logging.getLogger(__name__)

DEFAULT_STEM = "project"
_UNSAFE = re.compile(r"[^\w.\- ]+")


def archive_stem(project: ProjectState) -> str:
    """File name stem derived from the plan name."""
    stem = _UNSAFE.sub("_", project.plan_name).strip(" ._")
    return stem or DEFAULT_STEM


def _base_image_entry(project: ProjectState, base_image: Union[np.ndarray, ImagePayload]):
    name = Path(project.image_name).name if project.image_name else ""
    if not isinstance(base_image, np.ndarray):
        # Keep the original encoded bytes untouched
        return name or "plan.png", payload_to_bytes(base_image)

    ext = Path(name).suffix.lower() or ".png"
    ok, buffer = cv2.imencode(ext, base_image)
    if not ok:
        raise ExportError(f"Could not encode base image as {ext}")
    return name or f"plan{ext}", buffer.tobytes()


def build_archive(
    project: ProjectState,
    base_image: Union[np.ndarray, ImagePayload],
    supersample: int = 2,
    quality: int = 92,
) -> bytes:
    """
    Build the archive in memory.

    Returns:
        Zip file contents

    Raises:
        ExportError: If the base image cannot be decoded or encoded
    """
    stem = archive_stem(project)
    try:
        decoded = base_image if isinstance(base_image, np.ndarray) else decode_image(base_image)
        image_name, image_bytes = _base_image_entry(project, base_image)
    except ImageDecodeError as e:
        raise ExportError(f"Base image could not be decoded: {e}") from e
    except cv2.error as e:
        raise ExportError(f"Base image could not be encoded: {e}") from e

    map_bytes = render_raster_bytes(project, decoded, supersample=supersample, quality=quality)
    snapshot = json.dumps(project.to_dict(), indent=2).encode("utf-8")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(f"{stem}.json", snapshot)
        zf.writestr(image_name, image_bytes)
        zf.writestr(f"{stem}_map.jpg", map_bytes)
    return buffer.getvalue()


def export_archive(
    project: ProjectState,
    base_image: Union[np.ndarray, ImagePayload],
    output_path: Union[str, Path],
    supersample: int = 2,
    quality: int = 92,
) -> Path:
    """Write the project archive; nothing is written on failure."""
    data = build_archive(project, base_image, supersample=supersample, quality=quality)
    try:
        path = write_atomic(Path(output_path), data)
    except OSError as e:
        raise ExportError(f"Could not write {output_path}: {e}") from e
    logger.info(f"Saved project archive to {path}")
    return path


def read_archive_snapshot(path: Union[str, Path], stem: Optional[str] = None) -> dict:
    """Return the snapshot JSON stored in an archive."""
    with zipfile.ZipFile(path) as zf:
        names = [n for n in zf.namelist() if n.endswith(".json")]
        if stem is not None:
            names = [n for n in names if n == f"{stem}.json"]
        if not names:
            raise KeyError(f"No project snapshot in {path}")
        return json.loads(zf.read(names[0]).decode("utf-8"))
