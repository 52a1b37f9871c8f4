import logging
from gettext import gettext as _

from sitemapper.cli.common import load_inputs, run_guarded
from sitemapper.config import load_config
from sitemapper.core.render.pdf import export_pdf

logger = logging.getLogger(__name__)


def handle(args):
    cfg = load_config().report
    project, image = run_guarded(load_inputs, args.project, args.image)
    path = run_guarded(
        export_pdf,
        project,
        image,
        args.output,
        layout=args.layout or cfg.layout,
        page_size=args.page_size or cfg.page_size,
        max_photos=args.max_photos if args.max_photos is not None else cfg.max_photos,
    )
    print(_("Report saved to {path}").format(path=path))
