from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Bundle a project, its base image and the rendered map in a zip")


def command(subparser):
    from sitemapper.cli.arguments import add_project_arguments

    add_project_arguments(subparser)
    subparser.add_argument("output", type=Path, help=_("Where to save the zip archive"))

    def handle(args):
        from .archive import handle as archive_handle

        archive_handle(args)

    return handle
