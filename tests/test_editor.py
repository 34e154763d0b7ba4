# Main window tests: undo/redo, opening projects and the API requests
# logged for every committed record.

import json
import logging

import pytest
from PySide6.QtCore import QPointF, QSettings
from PySide6.QtWidgets import QMessageBox

from floorplan_editor import MainWindow


@pytest.fixture
def window(qtbot, tmp_path, monkeypatch):
    # autosave and QSettings must not touch the real home directory
    monkeypatch.chdir(tmp_path)
    for fmt in (QSettings.NativeFormat, QSettings.IniFormat):
        QSettings.setPath(fmt, QSettings.UserScope, str(tmp_path))
    win = MainWindow()
    qtbot.addWidget(win)
    return win


@pytest.fixture
def dialogs(monkeypatch):
    calls = []
    monkeypatch.setattr(QMessageBox, "critical", lambda *args: calls.append(args))
    return calls


def _add_hall(win):
    item = win.scene.factory.create_from_meta({"kind": "region", "name": "Hall"}, QPointF(0, 0))
    win.scene._push_snapshot("add")
    return item


class TestApiRequests:

    @pytest.mark.parametrize("kind,expected", [
        ("region", "PUT admin/locations/1"),
        ("region.deleted", "DELETE admin/locations/1"),
        ("table", "PUT admin/tables/1"),
        ("table.deleted", "DELETE admin/tables/1"),
    ])
    def test_commit_kind_maps_to_request(self, window, caplog, kind, expected):
        with caplog.at_level(logging.INFO, logger="floorplan.editor"):
            window._on_record_committed(kind, {"id": 1})
        assert expected in caplog.text

    def test_scene_commits_are_logged(self, window, caplog):
        with caplog.at_level(logging.INFO, logger="floorplan.editor"):
            item = _add_hall(window)
            window.scene.plan.remove_region(item.record_id)
        assert f"PUT admin/locations/{item.record_id}" in caplog.text
        assert f"DELETE admin/locations/{item.record_id}" in caplog.text


class TestUndoRedo:

    def test_undo_commits_the_reverted_move(self, window):
        item = _add_hall(window)
        item.setPos(QPointF(0, 400))
        window.scene.commit_item_move(item)
        assert window.act_undo.isEnabled()
        committed = []
        window.scene.recordCommitted.connect(lambda kind, payload: committed.append((kind, payload)))

        window._undo()

        assert [kind for kind, _ in committed] == ["region"]
        assert committed[0][1]["position_y"] == 0
        assert window.scene.region_item(item.record_id).pos() == QPointF(0, 0)
        assert window.act_redo.isEnabled()

        window._redo()

        assert len(committed) == 2
        assert committed[1][1]["position_y"] == 400
        assert window.scene.plan.region(item.record_id).y == 400

    def test_undo_of_creation_deletes_the_record(self, window):
        item = _add_hall(window)
        committed = []
        window.scene.recordCommitted.connect(lambda kind, payload: committed.append(kind))

        window._undo()

        assert committed == ["region.deleted"]
        assert window.scene.plan.regions == {}
        assert window.scene.region_item(item.record_id) is None
        assert not window.act_undo.isEnabled()

    def test_nothing_to_undo_is_a_no_op(self, window, qtbot):
        with qtbot.assertNotEmitted(window.scene.recordCommitted):
            window._undo()
            window._redo()


class TestOpenProject:

    def test_open_valid_project(self, window, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text(json.dumps({"locations": [
            {"id": 4, "name": "Hall", "position_x": 0, "position_y": 0, "width": 300, "height": 200},
        ]}), encoding="utf-8")

        assert window.open_project(str(path))

        assert list(window.scene.plan.regions) == [4]
        assert window.scene.region_item(4) is not None
        assert not window.act_undo.isEnabled()
        assert window.settings.value("last_project") == str(path)

    @pytest.mark.parametrize("text", [
        "{not json",
        '{"locations": [{"id": 4, "position_x": 0, "position_y": 0, "width": -10, "height": 200}]}',
        '{"locations": [{"id": 4, "position_x": NaN, "position_y": 0, "width": 300, "height": 200}]}',
    ])
    def test_bad_project_keeps_current_plan(self, window, dialogs, tmp_path, text):
        item = _add_hall(window)
        path = tmp_path / "bad.json"
        path.write_text(text, encoding="utf-8")

        assert not window.open_project(str(path))

        assert len(dialogs) == 1
        assert list(window.scene.plan.regions) == [item.record_id]
        assert window.scene.region_item(item.record_id) is item
        assert window.act_undo.isEnabled()

    def test_missing_file_is_reported(self, window, dialogs, tmp_path):
        assert not window.open_project(str(tmp_path / "missing.json"))
        assert len(dialogs) == 1
