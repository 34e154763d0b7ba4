# Floor plan editing tests
#
# Regions and tables go through FloorPlan the same way the editor gestures
# do: snap, search for a free spot, verify, then report via on_commit.

import pytest

from floorplan import layout
from floorplan.geometry import CanvasBounds, Rect, rectangles_overlap
from floorplan.layout import FloorPlan, PlacementError, RecordNotFoundError
from floorplan.models import Region, Table


def _identity_placement(proposed, obstacles, **kwargs):
    return proposed


class TestRegions:

    def test_add_region_snaps_position(self, plan):
        region = plan.add_region("A", 13, 27, 300, 200)
        assert (region.x, region.y) == (20, 20)
        assert (region.width, region.height) == (300, 200)

    def test_add_region_enforces_minimum_size(self, plan):
        region = plan.add_region("Small", 0, 0, 40, 30)
        assert (region.width, region.height) == (100, 100)

    def test_add_region_reports_commit(self, plan, commits):
        region = plan.add_region("A", 0, 0)
        assert commits == [("region", region.id)]

    def test_overlapping_region_is_moved_aside(self, plan, hall):
        other = plan.add_region("Terrace", 100, 0, 300, 200)
        assert (other.x, other.y) == (420, 0)
        assert not rectangles_overlap(hall, other)

    def test_move_region_avoids_neighbour(self, plan, hall):
        other = plan.add_region("Terrace", 400, 0, 300, 200)
        plan.move_region(other.id, 100, 0)
        assert (other.x, other.y) == (420, 0)

    def test_move_region_to_free_spot(self, plan, hall):
        plan.move_region(hall.id, 41, 59)
        assert (hall.x, hall.y) == (40, 60)

    def test_move_region_rejected_when_no_free_spot(self, plan, hall, monkeypatch):
        other = plan.add_region("Terrace", 400, 0, 300, 200)
        monkeypatch.setattr(layout, "find_non_overlapping_placement", _identity_placement)
        with pytest.raises(PlacementError):
            plan.move_region(other.id, 100, 0)
        assert (other.x, other.y) == (400, 0)

    def test_resize_rejected_on_overlap(self, plan, hall):
        plan.add_region("Terrace", 400, 0, 300, 200)
        with pytest.raises(PlacementError):
            plan.resize_region(hall.id, 500, 200)
        assert hall.width == 300

    def test_resize_rejected_when_table_does_not_fit(self, plan, hall):
        plan.add_table("1", x=240, y=140, location_id=hall.id)
        with pytest.raises(PlacementError):
            plan.resize_region(hall.id, 200, 200)
        assert (hall.width, hall.height) == (300, 200)

    def test_resize_from_top_left_keeps_tables_in_place(self, plan, commits):
        region = plan.add_region("R", 100, 100, 300, 200)
        table = plan.add_table("1", x=40, y=40, location_id=region.id)
        before = plan.absolute_rect(table)

        plan.resize_region(region.id, 320, 220, x=80, y=80)

        assert (region.x, region.y, region.width, region.height) == (80, 80, 320, 220)
        assert (table.x, table.y) == (60, 60)
        assert plan.absolute_rect(table) == before
        assert commits[-2:] == [("region", region.id), ("table", table.id)]

    def test_update_region(self, plan, hall):
        plan.update_region(hall.id, name="Hall 2", metadata={"gridSize": 25})
        assert hall.name == "Hall 2"
        assert hall.grid_size == 25

    def test_remove_region_unassigns_its_tables(self, plan, commits):
        region = plan.add_region("R", 100, 100, 300, 200)
        table = plan.add_table("1", x=20, y=20, location_id=region.id)

        plan.remove_region(region.id)

        assert region.id not in plan.regions
        assert table.location_id is None
        assert (table.x, table.y) == (120, 120)
        assert commits[-1] == ("region.deleted", region.id)

    def test_region_at(self, plan, hall):
        assert plan.region_at(10, 10) is hall
        assert plan.region_at(300, 10) is None
        assert plan.region_at(500, 500) is None

    def test_unknown_region_raises_key_error(self, plan):
        with pytest.raises(KeyError):
            plan.region(99)
        with pytest.raises(RecordNotFoundError):
            plan.move_region(99, 0, 0)

    def test_canvas_bounds_follow_regions(self, plan, hall):
        assert plan.canvas_bounds() == CanvasBounds(-50, -50, 350, 250)


class TestTables:

    def test_drop_snaps_inside_region(self, plan, hall):
        table = plan.add_table("1")
        plan.drop_table(table.id, hall.id, 13, 27)
        assert table.location_id == hall.id
        assert (table.x, table.y) == (20, 20)

    def test_drop_onto_taken_spot_moves_table_aside(self, plan, hall):
        first = plan.add_table("1", x=20, y=20, location_id=hall.id)
        second = plan.add_table("2")
        plan.drop_table(second.id, hall.id, 20, 20)
        assert (second.x, second.y) == (80, 20)
        assert not rectangles_overlap(first, second)

    def test_drop_near_edge_is_clamped(self, plan, hall):
        table = plan.add_table("1", x=290, y=190, location_id=hall.id)
        assert (table.x, table.y) == (240, 140)
        assert table.x + table.width <= hall.width
        assert table.y + table.height <= hall.height

    def test_drop_uses_region_grid(self, plan):
        region = plan.add_region("G", 0, 0, 300, 200, metadata={"gridSize": 25})
        table = plan.add_table("1", x=30, y=30, location_id=region.id)
        assert (table.x, table.y) == (25, 25)

    def test_full_region_rejects_new_table(self, plan):
        region = plan.add_region("Tiny", 0, 0, 100, 100)
        plan.add_table("1", location_id=region.id)
        with pytest.raises(PlacementError):
            plan.add_table("2", location_id=region.id)
        assert len(plan.tables) == 1

    def test_move_table_inside_region(self, plan, hall, commits):
        table = plan.add_table("1", location_id=hall.id)
        plan.move_table(table.id, 101, 99)
        assert (table.x, table.y) == (100, 100)
        assert commits[-1] == ("table", table.id)

    def test_move_unassigned_table(self, plan):
        table = plan.add_table("1", x=500, y=500)
        plan.move_table(table.id, 611, 589)
        assert table.location_id is None
        assert (table.x, table.y) == (620, 580)

    def test_unassign_keeps_canvas_position(self, plan):
        region = plan.add_region("R", 100, 100, 300, 200)
        table = plan.add_table("1", x=20, y=20, location_id=region.id)
        plan.unassign_table(table.id)
        assert table.location_id is None
        assert (table.x, table.y) == (120, 120)

    def test_update_and_remove_table(self, plan, commits):
        table = plan.add_table("1")
        plan.update_table(table.id, table_number="12", capacity=6, is_active=False)
        assert (table.table_number, table.capacity, table.is_active) == ("12", 6, False)
        plan.remove_table(table.id)
        assert table.id not in plan.tables
        assert commits[-1] == ("table.deleted", table.id)

    def test_listings_skip_inactive_tables(self, plan, hall):
        t1 = plan.add_table("1", location_id=hall.id)
        t2 = plan.add_table("2", location_id=hall.id)
        loose = plan.add_table("3", x=500, y=500)
        plan.update_table(t2.id, is_active=False)

        assert plan.tables_for_region(hall.id) == [t1]
        assert plan.unassigned_tables() == [loose]

    def test_next_table_number(self, plan):
        assert plan.next_table_number() == "1"
        plan.add_table("1")
        plan.add_table("5", x=100)
        plan.add_table("bar", x=200)
        assert plan.next_table_number() == "6"

    def test_absolute_rect(self, plan):
        region = plan.add_region("R", 100, 100, 300, 200)
        table = plan.add_table("1", x=40, y=60, location_id=region.id)
        assert plan.absolute_rect(table) == Rect(140, 160, 50, 50)


class TestValidate:

    def test_clean_plan_has_no_issues(self, plan, hall):
        plan.add_table("1", location_id=hall.id)
        plan.add_table("2", location_id=hall.id)
        assert plan.validate() == []

    def test_reports_every_kind_of_issue(self, commits):
        plan = FloorPlan(on_commit=lambda kind, record: commits.append((kind, record.id)))
        plan.load(
            [Region(1, "A", 0, 0, 200, 200), Region(2, "B", 100, 100, 200, 200)],
            [
                Table(1, "1", x=0, y=0, location_id=1),
                Table(2, "2", x=20, y=20, location_id=1),
                Table(3, "3", x=180, y=0, location_id=1),
                Table(4, "4", location_id=7),
            ],
        )
        kinds = {issue["type"] for issue in plan.validate()}
        assert kinds == {"overlapping_regions", "overlapping_tables", "table_out_of_bounds", "unknown_region"}
        # load does not go through on_commit
        assert commits == []


class TestRestore:

    @staticmethod
    def _copy(plan):
        return ([Region.from_payload(r.to_payload()) for r in plan.regions.values()],
                [Table.from_payload(t.to_payload()) for t in plan.tables.values()])

    def test_only_changed_records_are_committed(self, plan, hall, commits):
        plan.add_region("Terrace", 400, 0)
        plan.add_table("1", location_id=hall.id)
        regions, tables = self._copy(plan)
        plan.move_region(hall.id, 0, 300)
        commits.clear()

        assert plan.restore(regions, tables) == 1
        assert commits == [("region", hall.id)]
        assert plan.region(hall.id).y == 0

    def test_removed_records_come_back_as_commits(self, plan, hall, commits):
        table = plan.add_table("1", location_id=hall.id)
        regions, tables = self._copy(plan)
        plan.remove_region(hall.id)
        plan.remove_table(table.id)
        commits.clear()

        plan.restore(regions, tables)

        assert commits == [("region", hall.id), ("table", table.id)]
        assert plan.table(table.id).location_id == hall.id

    def test_vanished_records_are_committed_as_deleted(self, plan, hall, commits):
        regions, tables = self._copy(plan)
        table = plan.add_table("1", location_id=hall.id)
        terrace = plan.add_region("Terrace", 400, 0)
        commits.clear()

        plan.restore(regions, tables)

        assert commits == [("table.deleted", table.id), ("region.deleted", terrace.id)]
        assert list(plan.regions) == [hall.id] and plan.tables == {}

    def test_identical_snapshot_commits_nothing(self, plan, hall, commits):
        plan.add_table("1", location_id=hall.id)
        commits.clear()
        assert plan.restore(*self._copy(plan)) == 0
        assert commits == []
