from .archive import build_archive, export_archive
from .importers import load_project_file, normalize_project
from .store import ProjectStore, SavedProject

__all__ = [
    "ProjectStore",
    "SavedProject",
    "normalize_project",
    "load_project_file",
    "build_archive",
    "export_archive",
]
