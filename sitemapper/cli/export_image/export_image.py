import logging
from gettext import gettext as _

from sitemapper.cli.common import load_inputs, run_guarded
from sitemapper.config import load_config
from sitemapper.core.render.raster import export_raster

logger = logging.getLogger(__name__)


def handle(args):
    cfg = load_config().export
    project, image = run_guarded(load_inputs, args.project, args.image)
    path = run_guarded(
        export_raster,
        project,
        image,
        args.output,
        supersample=args.supersample or cfg.supersample,
        quality=args.quality if args.quality is not None else cfg.jpeg_quality,
        background=cfg.background,
    )
    print(_("Image saved to {path}").format(path=path))
