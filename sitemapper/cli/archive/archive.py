from gettext import gettext as _

from sitemapper.cli.common import load_inputs, run_guarded
from sitemapper.config import load_config
from sitemapper.storage.archive import export_archive


def handle(args):
    cfg = load_config().export
    project, image = run_guarded(load_inputs, args.project, args.image)
    path = run_guarded(
        export_archive,
        project,
        image,
        args.output,
        supersample=cfg.supersample,
        quality=cfg.jpeg_quality,
    )
    print(_("Archive saved to {path}").format(path=path))
