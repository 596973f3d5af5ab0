"""Tests for the TagTree snapshot."""

from conftest import make_tree


class TestLookup:
    def test_len_contains_and_get(self, sample_tree):
        assert len(sample_tree) == 8
        assert 5 in sample_tree
        assert 99 not in sample_tree
        assert sample_tree.get(4).name == "Project A"
        assert sample_tree.get(99) is None
        assert sample_tree.get(None) is None

    def test_siblings_are_ordered_by_position(self):
        tree = make_tree([
            (1, "c", None, 2),
            (2, "a", None, 0),
            (3, "b", None, 1),
        ])
        assert [t.id for t in tree.siblings(None)] == [2, 3, 1]

    def test_position_ties_break_by_id(self):
        tree = make_tree([(5, "x", None, 0), (2, "y", None, 0)])
        assert [t.id for t in tree.roots()] == [2, 5]

    def test_children(self, sample_tree):
        assert [t.id for t in sample_tree.children(1)] == [4, 5]
        assert sample_tree.children(3) == []


class TestNextSibling:
    def test_middle_sibling(self, sample_tree):
        assert sample_tree.next_sibling(4).id == 5

    def test_last_sibling_has_none(self, sample_tree):
        assert sample_tree.next_sibling(5) is None
        assert sample_tree.next_sibling(3) is None

    def test_unknown_tag(self, sample_tree):
        assert sample_tree.next_sibling(99) is None


class TestTraversal:
    def test_subtree_ids_include_self_and_descendants(self, sample_tree):
        assert sample_tree.subtree_ids(1) == [1, 4, 5, 8]
        assert sample_tree.subtree_ids(3) == [3]

    def test_subtree_of_unknown_tag_is_just_the_id(self, sample_tree):
        assert sample_tree.subtree_ids(99) == [99]

    def test_subtree_terminates_on_cycle(self):
        tree = make_tree([(1, "a", 2, 0), (2, "b", 1, 0)])
        assert sorted(tree.subtree_ids(1)) == [1, 2]

    def test_ancestors_and_depth(self, sample_tree):
        assert [t.id for t in sample_tree.ancestors(8)] == [5, 1]
        assert sample_tree.depth(8) == 2
        assert sample_tree.depth(1) == 0

    def test_ancestors_stop_on_cycle(self):
        tree = make_tree([(1, "a", 2, 0), (2, "b", 3, 0), (3, "c", 1, 0)])
        assert [t.id for t in tree.ancestors(1)] == [2, 3]

    def test_walk_is_display_order(self, sample_tree):
        walked = [(tag.id, depth) for tag, depth in sample_tree.walk()]
        assert walked == [
            (1, 0), (4, 1), (5, 1), (8, 2),
            (2, 0), (6, 1), (7, 1),
            (3, 0),
        ]

    def test_orphans_are_shown_as_roots(self):
        tree = make_tree([(1, "root", None, 0), (2, "orphan", 42, 0)])
        assert [t.id for t in tree.roots()] == [1, 2]
        assert [tag.id for tag, _ in tree.walk()] == [1, 2]


class TestInvariants:
    def test_sound_tree_has_no_problems(self, sample_tree):
        assert sample_tree.check_invariants() == []

    def test_gap_is_reported(self):
        tree = make_tree([(1, "a", None, 0), (2, "b", None, 2)])
        problems = tree.check_invariants()
        assert len(problems) == 1
        assert "root" in problems[0]

    def test_duplicate_position_is_reported(self):
        tree = make_tree([(1, "p", None, 0), (2, "a", 1, 0), (3, "b", 1, 0)])
        problems = tree.check_invariants()
        assert problems == ["positions under parent 1 are [0, 0], expected 0..1"]

    def test_missing_parent_is_reported(self):
        tree = make_tree([(1, "a", None, 0), (2, "b", 7, 0)])
        assert any("missing parent 7" in p for p in tree.check_invariants())

    def test_cycle_is_reported(self):
        tree = make_tree([(1, "a", 2, 0), (2, "b", 1, 0)])
        assert any("cycle" in p for p in tree.check_invariants())
