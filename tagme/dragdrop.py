"""Drag-and-drop reorganization of the tag tree.

Turns pointer positions over tag rows into tree edits: hover snapping,
drop classification, the cycle check and the drag session state machine.
Everything here works on a TagTree snapshot and never touches storage;
committing is delegated to the on_drop callback.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable, Tuple

from tagme.tree import TagTree

logger = logging.getLogger(__name__)

# Pointer ratio bands over a row: [0, BEFORE_ZONE) inserts before,
# (AFTER_ZONE, 1] inserts after, anything between nests as a child.
BEFORE_ZONE = 0.25
AFTER_ZONE = 0.75

# Seconds after a drop during which the trailing click is ignored
DRAG_END_DEBOUNCE = 0.1

PRIMARY_BUTTON = 1


class DropKind(Enum):
    """Kinds of tree edit a drop can produce."""
    BEFORE = "before"
    BEFORE_SAME_PARENT = "before_same_parent"
    AFTER = "after"
    AS_CHILD = "as_child"
    TO_ROOT = "to_root"


@dataclass(frozen=True)
class DropAction:
    """Where a dropped tag goes: new parent and insertion slot."""
    kind: DropKind
    parent_id: Optional[int]
    position: int


def _clamp_ratio(ratio: float) -> float:
    return max(0.0, min(1.0, ratio))


def ratio_from_pointer(y: float, top: float, height: float) -> Optional[float]:
    """Vertical pointer offset within a row as a fraction in [0, 1]."""
    if height <= 0:
        return None
    return _clamp_ratio((y - top) / height)


def resolve_hover(tree: TagTree, current: int, raw_ratio: float) -> Tuple[int, float]:
    """Snap a hover so "after X" and "before X's next sibling" coincide.

    Over the lower band the target moves to the next sibling with the ratio
    forced to 0.0. Over the upper band the ratio snaps to 0.0.
    """
    ratio = _clamp_ratio(raw_ratio)

    if ratio > AFTER_ZONE:
        sibling = tree.next_sibling(current)
        if sibling is not None:
            return sibling.id, 0.0
        return current, ratio

    if ratio < BEFORE_ZONE:
        return current, 0.0

    return current, ratio


def is_descendant(tree: TagTree, ancestor_id: int, tag_id: int) -> bool:
    """True if tag_id is ancestor_id or lies beneath it.

    The walk stops at a root, at an id missing from the snapshot, or after
    len(tree) steps, so a corrupted parent chain cannot loop forever.
    """
    current: Optional[int] = tag_id
    for _ in range(len(tree) + 1):
        if current is None:
            return False
        if current == ancestor_id:
            return True
        tag = tree.get(current)
        if tag is None:
            return False
        current = tag.parent_id
    return False


def classify_drop(tree: TagTree, dragged_id: int, target_id: int,
                  ratio: float) -> Optional[DropAction]:
    """Decide what dropping dragged_id on target_id at ratio means.

    Returns None when the drop must be ignored (self drop or cycle).
    """
    if dragged_id == target_id:
        logger.debug("Ignoring drop of tag %s onto itself", dragged_id)
        return None

    if is_descendant(tree, dragged_id, target_id):
        logger.debug("Ignoring drop of tag %s onto its descendant %s", dragged_id, target_id)
        return None

    target = tree.get(target_id)
    if target is None:
        return DropAction(DropKind.TO_ROOT, None, 0)

    if ratio < BEFORE_ZONE:
        dragged = tree.get(dragged_id)
        dragged_parent = dragged.parent_id if dragged else None
        if target.parent_id == dragged_parent:
            return DropAction(DropKind.BEFORE_SAME_PARENT, target.parent_id, target.position)
        return DropAction(DropKind.BEFORE, target.parent_id, target.position)

    if ratio > AFTER_ZONE:
        return DropAction(DropKind.AFTER, target.parent_id, target.position + 1)

    return DropAction(DropKind.AS_CHILD, target.id, 0)


def commit_position(tree: TagTree, dragged_id: int, action: DropAction) -> int:
    """Translate a drop slot into the final index Database.move_tag expects.

    Slots are counted with the dragged tag still in its old place, so a
    forward move within one parent lands one index earlier. A root drop
    appends to the end of the root group.
    """
    dragged = tree.get(dragged_id)

    if action.kind is DropKind.TO_ROOT:
        size = len(tree.siblings(None))
        if dragged is not None and dragged.parent_id is None:
            size -= 1
        return max(0, size)

    if dragged is not None and dragged.parent_id == action.parent_id \
            and dragged.position < action.position:
        return action.position - 1
    return action.position


class DragState(Enum):
    """Pointer state of the tag tree."""
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class DragSession:
    """Ephemeral state of one drag gesture."""
    dragged_id: Optional[int] = None
    pending_target_id: Optional[int] = None
    pending_ratio: float = 0.5
    ended_at: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.dragged_id is not None

    def begin(self, tag_id: int):
        self.dragged_id = tag_id
        self.pending_target_id = None
        self.pending_ratio = 0.5
        self.ended_at = None

    def end(self, now: Optional[float] = None):
        """Forget the gesture; now (if given) starts the just-ended window."""
        self.dragged_id = None
        self.pending_target_id = None
        self.pending_ratio = 0.5
        self.ended_at = now

    def just_ended(self, now: float) -> bool:
        """True for DRAG_END_DEBOUNCE seconds after a drop."""
        return self.ended_at is not None and now - self.ended_at < DRAG_END_DEBOUNCE


class DragController:
    """State machine driving tag drags from raw pointer events.

    tree_source returns the current TagTree snapshot. on_drop receives
    (tag_id, parent_id, position) with position already a final index, and
    returns True when the move was persisted.
    """

    def __init__(self, tree_source: Callable[[], TagTree],
                 clock: Callable[[], float] = time.monotonic):
        self._tree_source = tree_source
        self._clock = clock
        self.session = DragSession()
        self._committing = False

        # Callbacks
        self.on_drop: Optional[Callable[[int, Optional[int], int], bool]] = None

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self.session.active else DragState.IDLE

    @property
    def is_dragging(self) -> bool:
        return self.session.active

    @property
    def is_committing(self) -> bool:
        return self._committing

    def press(self, tag_id: int, button: int = PRIMARY_BUTTON, on_control: bool = False) -> bool:
        """Start dragging tag_id. Returns False if the press is ignored."""
        if self._committing or self.session.active:
            return False
        if button != PRIMARY_BUTTON or on_control:
            return False
        if tag_id not in self._tree_source():
            return False

        self.session.begin(tag_id)
        logger.debug("Drag started on tag %s", tag_id)
        return True

    def hover(self, tag_id: Optional[int], raw_ratio: float) -> Optional[Tuple[int, float]]:
        """Record the row under the pointer. None tag_id clears the target."""
        if not self.session.active:
            return None

        if tag_id is None:
            self.session.pending_target_id = None
            self.session.pending_ratio = 0.5
            return None

        target_id, ratio = resolve_hover(self._tree_source(), tag_id, raw_ratio)
        self.session.pending_target_id = target_id
        self.session.pending_ratio = ratio
        return target_id, ratio

    def release(self) -> Optional[DropAction]:
        """Finish the drag and commit the drop. Returns the committed action."""
        if self._committing or not self.session.active:
            return None

        dragged_id = self.session.dragged_id
        target_id = self.session.pending_target_id
        ratio = self.session.pending_ratio
        self.session.end(self._clock())

        if target_id is None or target_id == dragged_id:
            logger.debug("Drag of tag %s cancelled without a target", dragged_id)
            return None

        tree = self._tree_source()
        action = classify_drop(tree, dragged_id, target_id, ratio)
        if action is None:
            return None

        position = commit_position(tree, dragged_id, action)
        logger.debug(
            "Dropping tag %s: %s -> parent %s, position %s",
            dragged_id, action.kind.value, action.parent_id, position
        )

        if self.on_drop is None:
            return action

        self._committing = True
        try:
            committed = self.on_drop(dragged_id, action.parent_id, position)
        finally:
            self._committing = False

        return action if committed else None

    def cancel(self):
        """Abandon the current drag without committing."""
        if self.session.active:
            logger.debug("Drag of tag %s cancelled", self.session.dragged_id)
            self.session.end()

    def suppresses_click(self) -> bool:
        """True while a drag is active or has just ended."""
        return self.session.active or self.session.just_ended(self._clock())

    def drop_zone(self, tag_id: int) -> Optional[DropKind]:
        """The drop kind to indicate on tag_id's row, if it is the pending target."""
        if not self.session.active or self.session.pending_target_id != tag_id:
            return None
        action = classify_drop(
            self._tree_source(), self.session.dragged_id, tag_id, self.session.pending_ratio
        )
        return action.kind if action else None
