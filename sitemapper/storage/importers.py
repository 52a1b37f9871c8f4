"""
Import normalization.

Every external project format enters through :func:`normalize_project`,
which returns a canonical :class:`ProjectState`. Two shapes are accepted:

- the native snapshot (``{"version": ..., "points": [...], ...}``)
- a flat list of row records without coordinates (either a bare JSON list
  or ``{"rows": [...]}``); rows are laid out on a deterministic grid
"""

import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from ..core.annotation.state import Line, Point, ProjectState, generate_id
from ..core.annotation.utils import numbers_are_dense, renumber_points
from ..core.errors import ImportFormatError

logger = logging.getLogger(__name__)

# Grid occupies the central 80% of the plan
GRID_MARGIN = 10.0
GRID_SPAN = 80.0

# Row field names accepted for each point attribute
_ROW_FIELDS = {
    "number": ("number", "no", "n"),
    "typology": ("typology", "type_label", "tipologia"),
    "description": ("description", "desc", "descrizione", "notes"),
}

# Superseded point fields dropped on import
_LEGACY_POINT_FIELDS = ("type",)


def grid_position(index: int, count: int) -> Tuple[float, float]:
    """Percent position of the ``index``-th of ``count`` items on the grid."""
    cols = max(1, math.ceil(math.sqrt(count)))
    rows = max(1, math.ceil(count / cols))
    col = index % cols
    row = index // cols
    return (
        GRID_MARGIN + GRID_SPAN * (col + 0.5) / cols,
        GRID_MARGIN + GRID_SPAN * (row + 0.5) / rows,
    )


def _row_value(row: Dict[str, Any], attribute: str, default=None):
    for key in _ROW_FIELDS[attribute]:
        if key in row and row[key] is not None:
            return row[key]
    return default


def _row_number(row: Dict[str, Any]):
    value = _row_value(row, "number")
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def points_from_rows(rows: List[Dict[str, Any]]) -> List[Point]:
    """
    Place coordinate-less row records onto the grid.

    Rows carrying a numeric number are ordered by it; the others follow in
    their original order. Numbers are reassigned densely afterwards.
    """
    for row in rows:
        if not isinstance(row, dict):
            raise ImportFormatError(f"Row record must be an object, got {type(row).__name__}")

    indexed = list(enumerate(rows))
    indexed.sort(
        key=lambda item: (
            _row_number(item[1]) is None,
            _row_number(item[1]) or 0,
            item[0],
        )
    )

    points = []
    for index, (_, row) in enumerate(indexed):
        x, y = grid_position(index, len(indexed))
        images = row.get("images") or []
        points.append(
            Point(
                id=str(row.get("uuid") or generate_id()),
                number=index + 1,
                x=x,
                y=y,
                typology=str(_row_value(row, "typology", "")),
                description=str(_row_value(row, "description", "")),
                images=list(images) if isinstance(images, list) else [images],
            )
        )
    return points


def _from_snapshot(data: Dict[str, Any]) -> ProjectState:
    points = []
    for raw in data.get("points") or []:
        if not isinstance(raw, dict):
            raise ImportFormatError("Point entries must be objects")
        raw = {k: v for k, v in raw.items() if k not in _LEGACY_POINT_FIELDS}
        try:
            points.append(Point.from_dict(raw))
        except (KeyError, TypeError, ValueError) as e:
            raise ImportFormatError(f"Invalid point entry: {e}") from e

    try:
        lines = [Line.from_dict(line) for line in data.get("lines") or []]
        project = ProjectState.from_dict({**data, "points": [], "lines": []})
    except (KeyError, TypeError, ValueError) as e:
        raise ImportFormatError(f"Invalid project snapshot: {e}") from e

    project.points = points
    project.lines = lines
    if not numbers_are_dense(project.points):
        project.points = renumber_points(sorted(project.points, key=lambda p: p.number))
    return project


def normalize_project(payload: Union[str, bytes, list, dict]) -> ProjectState:
    """
    Convert any accepted import payload into a project.

    Args:
        payload: Parsed JSON value, or its text

    Returns:
        Canonical project model

    Raises:
        ImportFormatError: If the payload matches no known format
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Not valid JSON: {e}") from e

    if isinstance(payload, list):
        logger.debug(f"Importing {len(payload)} flat row records")
        return ProjectState(points=points_from_rows(payload))

    if not isinstance(payload, dict):
        raise ImportFormatError(f"Unsupported payload type: {type(payload).__name__}")

    if isinstance(payload.get("points"), list):
        return _from_snapshot(payload)

    if isinstance(payload.get("rows"), list):
        project = ProjectState(
            plan_name=str(payload.get("planName") or ""),
            floor=str(payload.get("floor") or ""),
            image_name=str(payload.get("imageName") or ""),
            points=points_from_rows(payload["rows"]),
        )
        logger.debug(f"Importing {len(project.points)} flat row records")
        return project

    raise ImportFormatError("Payload is neither a project snapshot nor a list of rows")


def load_project_file(path: Union[str, Path]) -> ProjectState:
    """Read and normalize a JSON project file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ImportFormatError(f"Could not read {path}: {e}") from e
    return normalize_project(text)
