"""Subtree-aware tag selection and the file filter built on it."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Iterable

from tagme.tree import TagTree

logger = logging.getLogger(__name__)


class FilterMode(Enum):
    """How selected tags combine when filtering files."""
    ALL = "all"  # file must carry every selected tag
    ANY = "any"  # file must carry at least one


@dataclass(frozen=True)
class SelectionChange:
    """Result of toggling one tag."""
    selected: List[int]
    subtree_ids: List[int]
    selecting: bool
    force_loosen: bool


def toggle_subtree(tree: TagTree, tag_id: int, selected: Iterable[int]) -> SelectionChange:
    """Toggle tag_id together with all of its descendants.

    If tag_id was not selected the whole subtree is added, otherwise the
    whole subtree is removed. Selecting more than one tag at once sets
    force_loosen, asking the caller to switch the filter to ANY.
    """
    current = list(dict.fromkeys(selected))
    subtree = tree.subtree_ids(tag_id)
    selecting = tag_id not in current

    if selecting:
        present = set(current)
        result = current + [tid for tid in subtree if tid not in present]
    else:
        removed = set(subtree)
        result = [tid for tid in current if tid not in removed]

    return SelectionChange(
        selected=result,
        subtree_ids=subtree,
        selecting=selecting,
        force_loosen=selecting and len(subtree) > 1
    )


class TagFilter:
    """Selected tags plus the mode used to match files against them."""

    def __init__(self, mode: FilterMode = FilterMode.ALL):
        self.selected: List[int] = []
        self.mode = mode

    @property
    def match_all(self) -> bool:
        return self.mode is FilterMode.ALL

    def is_selected(self, tag_id: int) -> bool:
        return tag_id in self.selected

    def toggle(self, tree: TagTree, tag_id: int) -> SelectionChange:
        change = toggle_subtree(tree, tag_id, self.selected)
        self.selected = change.selected
        if change.force_loosen and self.mode is not FilterMode.ANY:
            logger.debug("Subtree of tag %s selected, switching filter to ANY", tag_id)
            self.mode = FilterMode.ANY
        return change

    def toggle_mode(self) -> FilterMode:
        self.mode = FilterMode.ANY if self.mode is FilterMode.ALL else FilterMode.ALL
        return self.mode

    def clear(self):
        self.selected = []

    def prune(self, tree: TagTree) -> List[int]:
        """Drop selected ids that no longer exist. Returns the removed ids."""
        removed = [tid for tid in self.selected if tid not in tree]
        if removed:
            self.selected = [tid for tid in self.selected if tid in tree]
        return removed
