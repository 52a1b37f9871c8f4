"""
Project persistence.

Directory-backed key-value store: one ``<id>.json`` file per project,
holding the native snapshot plus the base image as a data URL.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..core.annotation.state import ProjectState, generate_id, now_ms
from ..core.annotation.utils import decode_image, encode_data_url
from ..core.errors import ProjectNotFoundError
from ..utils.misc import write_atomic

logger = logging.getLogger(__name__)


@dataclass
class SavedProject:
    """A stored project: model, base image payload and bookkeeping."""

    id: str
    project: ProjectState
    image_data: str
    last_modified: int

    def decode_image(self) -> np.ndarray:
        return decode_image(self.image_data)

    def to_dict(self) -> Dict[str, Any]:
        data = self.project.to_dict()
        data.update(
            id=self.id,
            lastModified=self.last_modified,
            imageData=self.image_data,
        )
        return data

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=str(data["id"]),
            project=ProjectState.from_dict(data),
            image_data=data.get("imageData") or "",
            last_modified=int(data.get("lastModified") or 0),
        )


class ProjectStore:
    """
    Stores projects under a directory.

    Features:
    - save (assigns an id on first save, stamps last modification)
    - list metadata, most recent first
    - load / delete by id
    """

    def __init__(self, root: Union[str, Path]):
        """
        Args:
            root: Directory holding the project files, created if missing
        """
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, project_id: str) -> Path:
        # ids become file names; keep them inside the store
        safe = Path(project_id).name
        if not safe or safe != project_id:
            raise ProjectNotFoundError(project_id)
        return self.root / f"{safe}.json"

    def save(
        self,
        project: ProjectState,
        image: Union[np.ndarray, str],
        project_id: Optional[str] = None,
    ) -> str:
        """
        Save a project.

        Args:
            project: Model to store
            image: Decoded base image or its data URL
            project_id: Existing id to overwrite, new id when None

        Returns:
            Id of the stored project
        """
        project_id = project_id or generate_id()
        image_data = image if isinstance(image, str) else encode_data_url(image, ".png")
        saved = SavedProject(
            id=project_id,
            project=project,
            image_data=image_data,
            last_modified=now_ms(),
        )
        path = write_atomic(
            self._path(project_id), json.dumps(saved.to_dict()).encode("utf-8")
        )
        logger.info(f"Saved project {project_id} to {path}")
        return project_id

    def list(self) -> List[Dict[str, Any]]:
        """Metadata of every stored project, most recently modified first."""
        entries = []
        for path in self.root.glob("*.json"):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable project file {path}: {e}")
                continue
            entries.append(
                {
                    "id": data.get("id", path.stem),
                    "planName": data.get("planName", ""),
                    "floor": data.get("floor", ""),
                    "imageName": data.get("imageName", ""),
                    "lastModified": int(data.get("lastModified") or 0),
                    "pointCount": len(data.get("points") or []),
                    "lineCount": len(data.get("lines") or []),
                }
            )
        entries.sort(key=lambda e: e["lastModified"], reverse=True)
        return entries

    def load(self, project_id: str) -> SavedProject:
        """
        Load a project.

        Raises:
            ProjectNotFoundError: If no project has this id
        """
        path = self._path(project_id)
        if not path.exists():
            raise ProjectNotFoundError(project_id)
        data = json.loads(path.read_text(encoding="utf-8"))
        logger.info(f"Loaded project {project_id}")
        return SavedProject.from_dict(data)

    def delete(self, project_id: str):
        """
        Delete a project.

        Raises:
            ProjectNotFoundError: If no project has this id
        """
        path = self._path(project_id)
        if not path.exists():
            raise ProjectNotFoundError(project_id)
        path.unlink()
        logger.info(f"Deleted project {project_id}")
