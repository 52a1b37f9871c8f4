from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Export the annotated plan and point report as a PDF")


def command(subparser):
    from sitemapper.cli.arguments import add_project_arguments

    add_project_arguments(subparser)
    subparser.add_argument("output", type=Path, help=_("Where to save the PDF"))
    subparser.add_argument(
        "-l",
        "--layout",
        choices=["cards", "table"],
        help=_("Report layout, defaults to the configured value"),
    )
    subparser.add_argument(
        "--page-size",
        dest="page_size",
        choices=["A4", "LETTER"],
        help=_("Report page size, defaults to the configured value"),
    )
    subparser.add_argument(
        "--max-photos",
        dest="max_photos",
        type=int,
        help=_("Photos shown per point, defaults to the configured value"),
    )

    def handle(args):
        from .export_pdf import handle as export_pdf_handle

        export_pdf_handle(args)

    return handle
