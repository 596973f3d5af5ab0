"""Command facade tying storage, the tree snapshot, drags and selection together."""

import logging
import time
from dataclasses import replace
from typing import Optional, Callable, List

from tagme.database import Database, TagNode, FileRecord, TagStoreError
from tagme.dragdrop import DragController
from tagme.selection import TagFilter, FilterMode, SelectionChange
from tagme.tree import TagTree

logger = logging.getLogger(__name__)

FILTER_MODE_SETTING = "filter_mode"


class TagOrganizer:
    """Application-level operations on the tag tree.

    Every edit goes to the database first; the TagTree snapshot is rebuilt
    only after a successful commit.
    """

    def __init__(self, db: Database, clock: Callable[[], float] = time.monotonic):
        self.db = db
        self.tree = TagTree()

        stored_mode = self.db.get_setting(FILTER_MODE_SETTING, FilterMode.ALL.value)
        try:
            mode = FilterMode(stored_mode)
        except ValueError:
            logger.warning("Ignoring unknown filter mode setting %r", stored_mode)
            mode = FilterMode.ALL
        self.filter = TagFilter(mode)

        self.drag = DragController(lambda: self.tree, clock=clock)
        self.drag.on_drop = self.move_tag

        # Callbacks
        self.on_tree_changed: Optional[Callable[[], None]] = None
        self.on_selection_changed: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

        self.reload()

    def reload(self):
        """Rebuild the snapshot from storage."""
        self.tree = TagTree(self.db.get_all_tags())

        removed = self.filter.prune(self.tree)
        if removed:
            logger.debug("Dropped vanished tags %s from the selection", removed)
            self._notify_selection()

        if self.on_tree_changed:
            self.on_tree_changed()

    def _report(self, message: str):
        if self.on_error:
            self.on_error(message)

    def _notify_selection(self):
        if self.on_selection_changed:
            self.on_selection_changed()

    def _save_filter_mode(self):
        self.db.set_setting(FILTER_MODE_SETTING, self.filter.mode.value)

    # ==================== Tree edits ====================

    def move_tag(self, tag_id: int, parent_id: Optional[int], position: int) -> bool:
        """Persist a move and refresh. Returns False if storage refused it."""
        try:
            self.db.move_tag(tag_id, parent_id, position)
        except TagStoreError as exc:
            logger.warning("Failed to move tag %s: %s", tag_id, exc)
            self._report(f"Failed to move tag: {exc}")
            return False

        self.reload()
        return True

    def create_tag(self, name: str, parent_id: Optional[int] = None,
                   color: Optional[str] = None) -> Optional[TagNode]:
        try:
            tag = self.db.create_tag(name, parent_id, color)
        except (TagStoreError, ValueError) as exc:
            logger.warning("Failed to create tag %r: %s", name, exc)
            self._report(f"Failed to create tag: {exc}")
            return None

        self.reload()
        return tag

    def rename_tag(self, tag_id: int, name: str) -> bool:
        tag = self.tree.get(tag_id)
        if tag is None:
            return False

        try:
            self.db.update_tag(replace(tag, name=name))
        except (TagStoreError, ValueError) as exc:
            logger.warning("Failed to rename tag %s: %s", tag_id, exc)
            self._report(f"Failed to rename tag: {exc}")
            return False

        self.reload()
        return True

    def delete_tag(self, tag_id: int) -> bool:
        """Delete a tag with its subtree."""
        try:
            deleted = self.db.delete_tag(tag_id)
        except TagStoreError as exc:
            logger.warning("Failed to delete tag %s: %s", tag_id, exc)
            self._report(f"Failed to delete tag: {exc}")
            return False

        if deleted:
            self.reload()
        return deleted

    # ==================== Selection ====================

    def toggle_tag(self, tag_id: int) -> Optional[SelectionChange]:
        """Toggle a tag's subtree in the selection.

        Ignored while a drag is active or has just ended, so the click that
        finishes a drop does not also toggle a checkbox.
        """
        if self.drag.suppresses_click():
            logger.debug("Selection toggle of tag %s suppressed by drag", tag_id)
            return None
        if tag_id not in self.tree:
            return None

        previous_mode = self.filter.mode
        change = self.filter.toggle(self.tree, tag_id)
        if self.filter.mode is not previous_mode:
            self._save_filter_mode()

        self._notify_selection()
        return change

    def toggle_filter_mode(self) -> FilterMode:
        mode = self.filter.toggle_mode()
        self._save_filter_mode()
        self._notify_selection()
        return mode

    def clear_selection(self):
        self.filter.clear()
        self._notify_selection()

    def displayed_files(self) -> List[FileRecord]:
        """Files matching the current selection (all files when nothing is selected)."""
        return self.db.get_files_by_tags(self.filter.selected, self.filter.match_all)
