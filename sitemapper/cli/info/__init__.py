from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Show a summary of a project file")


def command(subparser):
    subparser.add_argument("project", type=Path, help=_("Project JSON file"))
    subparser.add_argument(
        "-s",
        "--search",
        dest="search",
        help=_("Only list points matching this text"),
    )

    def handle(args):
        from .info import handle as info_handle

        info_handle(args)

    return handle
