from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Manage the saved project store")


def command(subparser):
    subparser.add_argument(
        "action",
        choices=["list", "save", "export", "delete"],
        help=_("What to do with the store"),
    )
    subparser.add_argument(
        "target",
        nargs="?",
        help=_("Project id (export, delete) or project JSON file (save)"),
    )
    subparser.add_argument(
        "-i",
        "--image",
        dest="image",
        type=Path,
        help=_("Base image to store with the project (save)"),
    )
    subparser.add_argument(
        "-o",
        "--output",
        dest="output",
        type=Path,
        help=_("Where to write the stored project JSON (export)"),
    )
    subparser.add_argument(
        "--root",
        dest="root",
        type=Path,
        help=_("Store directory, defaults to the configured value"),
    )

    def handle(args):
        from .projects import handle as projects_handle

        projects_handle(args)

    return handle
