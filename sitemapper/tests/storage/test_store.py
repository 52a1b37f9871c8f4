"""Tests for the directory-backed project store."""

import json
import time

import numpy as np
import pytest

from sitemapper.core.errors import ProjectNotFoundError
from sitemapper.storage.store import ProjectStore


@pytest.fixture
def store(tmp_path):
    return ProjectStore(tmp_path / "projects")


class TestProjectStore:
    def test_save_assigns_id_and_round_trips(self, store, sample_project, test_image):
        sample_project.rotation = 90.0
        sample_project.marker_scale = 1.4
        project_id = store.save(sample_project, test_image)
        assert project_id

        saved = store.load(project_id)
        assert saved.id == project_id
        assert saved.project.to_dict() == sample_project.to_dict()
        assert saved.project.rotation == 90.0
        assert saved.project.marker_scale == 1.4
        assert saved.image_data.startswith("data:image/png;base64,")
        np.testing.assert_array_equal(saved.decode_image(), test_image)

    def test_save_keeps_given_id(self, store, sample_project, test_image):
        project_id = store.save(sample_project, test_image)
        sample_project.plan_name = "Renamed"
        assert store.save(sample_project, test_image, project_id=project_id) == project_id
        assert store.load(project_id).project.plan_name == "Renamed"
        assert len(store.list()) == 1

    def test_list_most_recent_first(self, store, sample_project, test_image):
        first = store.save(sample_project, test_image)
        time.sleep(0.01)
        second = store.save(sample_project, test_image)

        entries = store.list()
        assert [e["id"] for e in entries] == [second, first]
        assert entries[0]["planName"] == "Ground floor"
        assert entries[0]["pointCount"] == 3
        assert entries[0]["lineCount"] == 1
        assert entries[0]["lastModified"] >= entries[1]["lastModified"]

    def test_list_skips_unreadable_files(self, store, sample_project, test_image):
        store.save(sample_project, test_image)
        (store.root / "broken.json").write_text("{not json")
        assert len(store.list()) == 1

    def test_delete(self, store, sample_project, test_image):
        project_id = store.save(sample_project, test_image)
        store.delete(project_id)
        assert store.list() == []
        with pytest.raises(ProjectNotFoundError):
            store.delete(project_id)

    def test_missing_project(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.load("nope")
        # Lookups cannot escape the store directory
        with pytest.raises(KeyError):
            store.load("../outside")

    def test_stored_file_is_native_json(self, store, sample_project, test_image):
        project_id = store.save(sample_project, "data:image/png;base64,AAAA")
        data = json.loads((store.root / f"{project_id}.json").read_text())
        assert data["imageData"] == "data:image/png;base64,AAAA"
        assert data["version"] == 1
        assert {"id", "lastModified", "points", "lines", "planName"} <= set(data)
