from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Export the annotated plan as a flattened JPEG")


def command(subparser):
    from sitemapper.cli.arguments import add_project_arguments

    add_project_arguments(subparser)
    subparser.add_argument("output", type=Path, help=_("Where to save the JPEG"))
    subparser.add_argument(
        "--supersample",
        type=int,
        help=_("Drawing resolution multiplier, defaults to the configured value"),
    )
    subparser.add_argument(
        "-q",
        "--quality",
        type=int,
        help=_("JPEG quality (0-100), defaults to the configured value"),
    )

    def handle(args):
        from .export_image import handle as export_image_handle

        export_image_handle(args)

    return handle
