import json

from sitemapper.core.annotation.state import Line, LineColor, Point, ProjectState


def test_project_json_round_trip():
    project = ProjectState(
        plan_name="Basement",
        floor="-1",
        image_name="basement.webp",
        image_size=(1200, 800),
        rotation=180.0,
        marker_scale=1.6,
        points=[
            Point(id="a", number=1, x=12.5, y=40.0, typology="2 1", target_x=10.0, target_y=38.0,
                  description="Leak", images=["data:image/png;base64,AAAA"]),
        ],
        lines=[Line(id="l", start_x=0, start_y=0, end_x=50, end_y=50, color=LineColor.CYAN)],
    )

    restored = ProjectState.from_dict(json.loads(json.dumps(project.to_dict())))

    assert restored == project


def test_point_keys_are_camel_case():
    data = Point(id="a", number=1, x=1, y=2, target_x=3, target_y=4).to_dict()
    assert {"targetX", "targetY", "createdAt"} <= set(data)
    assert "type" not in data
