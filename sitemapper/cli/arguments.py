"""Argument groups shared by the subcommands."""

from gettext import gettext as _
from pathlib import Path


def add_project_arguments(subparser):
    subparser.add_argument("project", type=Path, help=_("Project JSON file"))
    subparser.add_argument(
        "-i",
        "--image",
        dest="image",
        type=Path,
        help=_("Base image, defaults to the image embedded in the project"),
    )
