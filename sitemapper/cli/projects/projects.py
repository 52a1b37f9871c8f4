import json
import logging
import time
from gettext import gettext as _
from pathlib import Path

from sitemapper.cli.common import load_inputs, run_guarded
from sitemapper.config import load_config
from sitemapper.storage.store import ProjectStore
from sitemapper.utils.misc import write_atomic

logger = logging.getLogger(__name__)


def _format_time(ms: int) -> str:
    return time.strftime("%Y-%m-%d %H:%M", time.localtime(ms / 1000))


def handle(args):
    root = args.root or Path(load_config().store.root)
    store = ProjectStore(root)

    if args.action == "list":
        for entry in store.list():
            print(
                "{id}  {modified}  {name} [{floor}]  {points} pts / {lines} lines".format(
                    id=entry["id"],
                    modified=_format_time(entry["lastModified"]),
                    name=entry["planName"] or _("(unnamed)"),
                    floor=entry["floor"] or "-",
                    points=entry["pointCount"],
                    lines=entry["lineCount"],
                )
            )
        return

    assert args.target, _("This action needs a target")

    if args.action == "save":
        project, image = run_guarded(load_inputs, Path(args.target), args.image)
        project_id = store.save(project, image)
        print(project_id)
    elif args.action == "export":
        saved = run_guarded(store.load, args.target)
        data = json.dumps(saved.to_dict(), indent=2).encode("utf-8")
        if args.output is None:
            print(data.decode("utf-8"))
        else:
            write_atomic(args.output, data)
            print(_("Project saved to {path}").format(path=args.output))
    elif args.action == "delete":
        run_guarded(store.delete, args.target)
        print(_("Deleted {id}").format(id=args.target))
