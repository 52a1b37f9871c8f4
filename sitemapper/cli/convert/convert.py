import json
import logging
from gettext import gettext as _

from sitemapper.cli.common import run_guarded
from sitemapper.storage.importers import load_project_file
from sitemapper.utils.misc import write_atomic

logger = logging.getLogger(__name__)


def handle(args):
    assert args.input.exists(), _("Input file must exist")
    if not args.overwrite:
        assert not args.output.exists(), _(
            "Output file already exists, pass --overwrite to replace it"
        )

    project = run_guarded(load_project_file, args.input)
    if args.plan_name is not None:
        project.plan_name = args.plan_name
    if args.floor is not None:
        project.floor = args.floor

    data = json.dumps(project.to_dict(), indent=2).encode("utf-8")
    write_atomic(args.output, data)
    logger.info(f"Converted {len(project.points)} points from {args.input}")
    print(_("Snapshot saved to {path}").format(path=args.output))
