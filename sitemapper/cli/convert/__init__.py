from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Convert a row list or project JSON to a native project snapshot")


def command(subparser):
    subparser.add_argument("input", type=Path, help=_("JSON file to convert"))
    subparser.add_argument("output", type=Path, help=_("Where to save the snapshot"))
    subparser.add_argument("--plan-name", dest="plan_name", help=_("Plan name to set"))
    subparser.add_argument("--floor", dest="floor", help=_("Floor label to set"))
    subparser.add_argument(
        "--overwrite",
        action="store_true",
        help=_("Overwrite output file if it exists"),
    )

    def handle(args):
        from .convert import handle as convert_handle

        convert_handle(args)

    return handle
