from gettext import gettext as _

from sitemapper.cli.common import run_guarded
from sitemapper.core.annotation.utils import display_typology, filter_points, sort_typology
from sitemapper.storage.importers import load_project_file


def handle(args):
    project = run_guarded(load_project_file, args.project)

    print(_("Plan: {name}").format(name=project.plan_name or "-"))
    print(_("Floor: {floor}").format(floor=project.floor or "-"))
    print(_("Image: {name}").format(name=project.image_name or "-"))
    if project.image_size is not None:
        print(_("Size: {w}x{h}").format(w=project.image_size[0], h=project.image_size[1]))
    print(_("Rotation: {deg:g} deg, marker scale {scale:g}").format(
        deg=project.rotation, scale=project.marker_scale
    ))
    print(_("Lines: {count}").format(count=len(project.lines)))

    points = project.sorted_points()
    if args.search:
        points = filter_points(points, args.search)
    print(_("Points: {count}").format(count=len(points)))
    for point in points:
        leader = " ->" if point.has_leader else ""
        print(
            f"  {point.number:>3}  {display_typology(sort_typology(point.typology)):<20}"
            f" ({point.x:.1f}, {point.y:.1f}){leader}  {len(point.images)} photo(s)  {point.description}"
        )
