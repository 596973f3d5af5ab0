"""Tests for the TagOrganizer command facade."""

import pytest

from tagme.database import Database
from tagme.dragdrop import DropAction, DropKind, DragState
from tagme.organizer import FILTER_MODE_SETTING, TagOrganizer
from tagme.selection import FilterMode

from conftest import group_order


@pytest.fixture
def organizer(seeded_db, clock):
    org = TagOrganizer(seeded_db, clock=clock)
    org.errors = []
    org.tree_changes = 0
    org.selection_changes = 0

    def on_tree_changed():
        org.tree_changes += 1

    def on_selection_changed():
        org.selection_changes += 1

    org.on_error = org.errors.append
    org.on_tree_changed = on_tree_changed
    org.on_selection_changed = on_selection_changed
    return org


class TestLoading:
    def test_snapshot_matches_storage(self, organizer):
        assert len(organizer.tree) == 8
        assert [t.id for t in organizer.tree.roots()] == [1, 2, 3]

    def test_filter_mode_is_restored(self, seeded_db, clock):
        seeded_db.set_setting(FILTER_MODE_SETTING, "any")
        assert TagOrganizer(seeded_db, clock=clock).filter.mode is FilterMode.ANY

    def test_unknown_filter_mode_falls_back_to_all(self, seeded_db, clock):
        seeded_db.set_setting(FILTER_MODE_SETTING, "sideways")
        assert TagOrganizer(seeded_db, clock=clock).filter.mode is FilterMode.ALL


class TestMoveTag:
    def test_success_refreshes_snapshot(self, organizer):
        assert organizer.move_tag(3, None, 0)
        assert [t.id for t in organizer.tree.roots()] == [3, 1, 2]
        assert organizer.tree_changes == 1
        assert organizer.errors == []

    def test_failure_reports_and_keeps_snapshot(self, organizer):
        tree = organizer.tree

        assert not organizer.move_tag(1, 8, 0)

        assert organizer.tree is tree
        assert organizer.tree_changes == 0
        assert len(organizer.errors) == 1
        assert organizer.errors[0].startswith("Failed to move tag:")


class TestTagEdits:
    def test_create(self, organizer):
        tag = organizer.create_tag("Research", 2)
        assert tag.position == 2
        assert [t.id for t in organizer.tree.children(2)] == [6, 7, tag.id]

    def test_create_failure(self, organizer):
        assert organizer.create_tag("") is None
        assert organizer.create_tag("x", 99) is None
        assert len(organizer.errors) == 2

    def test_rename(self, organizer):
        assert organizer.rename_tag(3, "Urgent")
        assert organizer.tree.get(3).name == "Urgent"
        assert organizer.tree.get(3).position == 2

    def test_rename_unknown(self, organizer):
        assert not organizer.rename_tag(99, "x")

    def test_delete_prunes_selection(self, organizer):
        organizer.toggle_tag(5)
        organizer.toggle_tag(3)
        assert organizer.delete_tag(5)

        assert organizer.filter.selected == [3]
        assert 8 not in organizer.tree
        assert organizer.tree.get(4).position == 0

    def test_delete_unknown(self, organizer):
        assert not organizer.delete_tag(99)
        assert organizer.tree_changes == 0


class TestSelection:
    def test_subtree_toggle_loosens_and_persists_mode(self, organizer, seeded_db):
        change = organizer.toggle_tag(1)

        assert sorted(change.selected) == [1, 4, 5, 8]
        assert organizer.filter.mode is FilterMode.ANY
        assert seeded_db.get_setting(FILTER_MODE_SETTING) == "any"
        assert organizer.selection_changes == 1

    def test_unknown_tag_is_ignored(self, organizer):
        assert organizer.toggle_tag(99) is None
        assert organizer.selection_changes == 0

    def test_toggle_is_suppressed_by_drag(self, organizer, clock):
        organizer.drag.press(6)
        assert organizer.toggle_tag(3) is None

        organizer.drag.hover(3, 0.5)
        organizer.drag.release()
        assert organizer.toggle_tag(3) is None

        # Learning (6) now sits under Important (3)
        clock.now = 0.2
        assert organizer.toggle_tag(3) is not None
        assert organizer.filter.selected == [3, 6]

    def test_toggle_filter_mode(self, organizer, seeded_db):
        assert organizer.toggle_filter_mode() is FilterMode.ANY
        assert seeded_db.get_setting(FILTER_MODE_SETTING) == "any"

    def test_displayed_files(self, organizer, seeded_db):
        seeded_db.add_file_tag("/a.txt", 4)
        seeded_db.add_file_tag("/b.txt", 8)

        assert [f.path for f in organizer.displayed_files()] == ["/a.txt", "/b.txt"]

        organizer.toggle_tag(4)
        assert [f.path for f in organizer.displayed_files()] == ["/a.txt"]

        organizer.clear_selection()
        organizer.toggle_tag(1)
        assert [f.path for f in organizer.displayed_files()] == ["/a.txt", "/b.txt"]


class TestDragToStorage:
    def test_snap_to_next_sibling_in_other_parent(self, organizer, seeded_db):
        organizer.drag.press(6)
        organizer.drag.hover(4, 0.9)

        action = organizer.drag.release()

        assert action == DropAction(DropKind.BEFORE, 1, 1)
        assert group_order(seeded_db, 1) == [4, 6, 5]
        assert group_order(seeded_db, 2) == [7]
        assert organizer.tree.get(7).position == 0

    def test_forward_move_after_last_sibling(self, organizer, seeded_db):
        organizer.drag.press(1)
        organizer.drag.hover(3, 0.9)
        organizer.drag.release()

        assert group_order(seeded_db, None) == [2, 3, 1]

    def test_before_same_parent(self, organizer, seeded_db):
        organizer.drag.press(3)
        organizer.drag.hover(1, 0.1)
        assert organizer.drag.release().kind is DropKind.BEFORE_SAME_PARENT

        assert group_order(seeded_db, None) == [3, 1, 2]

    def test_drop_as_child(self, organizer, seeded_db):
        organizer.drag.press(2)
        organizer.drag.hover(3, 0.5)
        organizer.drag.release()

        assert group_order(seeded_db, 3) == [2]
        assert group_order(seeded_db, None) == [1, 3]
        assert organizer.tree.check_invariants() == []

    def test_cycle_leaves_storage_alone(self, organizer, seeded_db):
        before = seeded_db.get_all_tags()
        organizer.drag.press(1)
        organizer.drag.hover(8, 0.5)

        assert organizer.drag.release() is None
        assert seeded_db.get_all_tags() == before
        assert organizer.tree_changes == 0

    def test_vanished_target_drops_at_end_of_root(self, organizer, seeded_db):
        organizer.drag.press(6)
        organizer.drag.hover(4, 0.5)
        organizer.delete_tag(4)

        action = organizer.drag.release()

        assert action.kind is DropKind.TO_ROOT
        assert group_order(seeded_db, None) == [1, 2, 3, 6]
        assert organizer.tree.check_invariants() == []

    def test_failed_commit_keeps_snapshot(self, organizer, seeded_db):
        seeded_db.create_tag("Learning", 3)
        organizer.reload()
        tree = organizer.tree

        organizer.drag.press(6)
        organizer.drag.hover(3, 0.5)

        assert organizer.drag.release() is None
        assert organizer.drag.state is DragState.IDLE
        assert organizer.tree is tree
        assert len(organizer.errors) == 1


def test_organizer_on_fresh_database(tmp_path):
    database = Database(tmp_path / "empty.db")
    try:
        org = TagOrganizer(database)
        assert len(org.tree) == 0
        assert org.displayed_files() == []
    finally:
        database.close()
