"""Shared fixtures for the TagMe tests.

Tag ids in the sample tree match the ids the seeded database hands out:

    1 Work            (root, 0)
        4 Project A   (1, 0)
        5 Project B   (1, 1)
            8 Backend (5, 0)
    2 Personal        (root, 1)
        6 Learning    (2, 0)
        7 Entertainment (2, 1)
    3 Important       (root, 2)
"""

from typing import Dict, Optional, Tuple

import pytest

from tagme.database import Database, TagNode
from tagme.tree import TagTree


SAMPLE_TAGS = [
    (1, "Work", None, 0),
    (2, "Personal", None, 1),
    (3, "Important", None, 2),
    (4, "Project A", 1, 0),
    (5, "Project B", 1, 1),
    (6, "Learning", 2, 0),
    (7, "Entertainment", 2, 1),
    (8, "Backend", 5, 0),
]


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_tree(rows) -> TagTree:
    """Build a TagTree from (id, name, parent_id, position) tuples."""
    return TagTree(
        TagNode(id=tag_id, name=name, parent_id=parent_id, position=position)
        for tag_id, name, parent_id, position in rows
    )


def snapshot(db: Database) -> Dict[int, Tuple[Optional[int], int]]:
    """Map every tag id to its (parent_id, position)."""
    return {tag.id: (tag.parent_id, tag.position) for tag in db.get_all_tags()}


def group_order(db: Database, parent_id: Optional[int]):
    return [tag.id for tag in db.get_children(parent_id)]


@pytest.fixture
def sample_tree() -> TagTree:
    return make_tree(SAMPLE_TAGS)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "tagme.db")
    yield database
    database.close()


@pytest.fixture
def seeded_db(tmp_path):
    """Database holding the default tags plus Backend (id 8) under Project B."""
    database = Database(tmp_path / "tagme.db", seed_defaults=True)
    database.create_tag("Backend", 5)
    yield database
    database.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
