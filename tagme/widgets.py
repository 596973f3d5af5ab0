"""Custom widgets for the TagMe application."""

import logging
from dataclasses import dataclass
from typing import Optional, List, Tuple
import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk

import cairo

from tagme.database import TagNode, FileRecord
from tagme.dragdrop import DropKind, PRIMARY_BUTTON, ratio_from_pointer
from tagme.organizer import TagOrganizer

logger = logging.getLogger(__name__)


def hex_to_rgb(color: Optional[str],
               fallback: Tuple[float, float, float]) -> Tuple[float, float, float]:
    """Parse #RRGGBB into a cairo colour tuple."""
    if not color:
        return fallback
    try:
        value = color.lstrip('#')
        r = int(value[0:2], 16) / 255
        g = int(value[2:4], 16) / 255
        b = int(value[4:6], 16) / 255
        return (r, g, b)
    except (ValueError, IndexError):
        return fallback


@dataclass
class RenderedRow:
    """A tag row with its vertical placement."""
    tag: TagNode
    depth: int
    y: float


class TagTreeView(Gtk.DrawingArea):
    """Tag tree with checkboxes and drag-and-drop reordering."""

    COLORS = {
        'bg': (0.118, 0.118, 0.118),             # #1e1e1e
        'row_selected': (0.165, 0.165, 0.165),   # #2a2a2a
        'text_primary': (0.878, 0.878, 0.878),   # #e0e0e0
        'checkbox': (0.533, 0.533, 0.533),       # #888888
        'check': (1.0, 0.176, 0.176),            # #ff2d2d
        'drop': (0.302, 0.651, 1.0),             # #4da6ff
    }

    ROW_HEIGHT = 28
    INDENT = 20
    PADDING = 8
    CHECKBOX_SIZE = 14
    DRAG_THRESHOLD = 5

    def __init__(self, organizer: TagOrganizer):
        super().__init__()

        self.organizer = organizer
        self.rows: List[RenderedRow] = []

        # Drag threshold
        self._drag_pending_id: Optional[int] = None
        self._drag_start_y = 0.0

        self.set_focusable(True)
        self.set_draw_func(self._on_draw)

        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(Gdk.BUTTON_PRIMARY)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_ctrl)

        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(Gdk.BUTTON_PRIMARY)
        click_ctrl.connect("released", self._on_click_released)
        self.add_controller(click_ctrl)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        self.refresh()

    def refresh(self):
        """Re-lay out rows from the organizer's current snapshot."""
        self.rows = [
            RenderedRow(tag=tag, depth=depth, y=self.PADDING + index * self.ROW_HEIGHT)
            for index, (tag, depth) in enumerate(self.organizer.tree.walk())
        ]
        self.set_content_height(int(self.PADDING * 2 + len(self.rows) * self.ROW_HEIGHT))
        self.queue_draw()

    def _row_at(self, y: float) -> Optional[RenderedRow]:
        index = int((y - self.PADDING) // self.ROW_HEIGHT)
        if y < self.PADDING or index >= len(self.rows):
            return None
        return self.rows[index]

    def _checkbox_x(self, row: RenderedRow) -> float:
        return self.PADDING + row.depth * self.INDENT

    def _on_checkbox(self, row: RenderedRow, x: float) -> bool:
        left = self._checkbox_x(row)
        return left <= x <= left + self.CHECKBOX_SIZE + 4

    # ==================== Input ====================

    def _on_drag_begin(self, gesture, start_x, start_y):
        """Remember the pressed row; the drag only starts past the threshold."""
        row = self._row_at(start_y)
        self._drag_start_y = start_y
        if row is None or self._on_checkbox(row, start_x):
            self._drag_pending_id = None
            return
        self._drag_pending_id = row.tag.id

    def _on_drag_update(self, gesture, offset_x, offset_y):
        drag = self.organizer.drag

        if not drag.is_dragging:
            if self._drag_pending_id is None:
                return
            if (offset_x ** 2 + offset_y ** 2) ** 0.5 < self.DRAG_THRESHOLD:
                return
            if not drag.press(self._drag_pending_id, PRIMARY_BUTTON, on_control=False):
                logger.debug("Drag press on tag %s refused", self._drag_pending_id)
                self._drag_pending_id = None
                return

        y = self._drag_start_y + offset_y
        row = self._row_at(y)
        if row is None:
            drag.hover(None, 0.5)
        else:
            ratio = ratio_from_pointer(y, row.y, self.ROW_HEIGHT)
            drag.hover(row.tag.id, ratio if ratio is not None else 0.5)
        self.queue_draw()

    def _on_drag_end(self, gesture, offset_x, offset_y):
        self._drag_pending_id = None
        if self.organizer.drag.is_dragging:
            self.organizer.drag.release()
            self.queue_draw()

    def _on_click_released(self, gesture, n_press, x, y):
        if self.organizer.drag.suppresses_click():
            return
        row = self._row_at(y)
        if row is not None:
            self.organizer.toggle_tag(row.tag.id)
            self.queue_draw()

    def _on_key_pressed(self, controller, keyval, keycode, state):
        if keyval == Gdk.KEY_Escape and self.organizer.drag.is_dragging:
            self.organizer.drag.cancel()
            self._drag_pending_id = None
            self.queue_draw()
            return True
        return False

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        cr.set_source_rgb(*self.COLORS['bg'])
        cr.paint()

        cr.select_font_face("Sans", cairo.FONT_SLANT_NORMAL, cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(13)

        dragged_id = self.organizer.drag.session.dragged_id
        for row in self.rows:
            self._draw_row(cr, row, width, row.tag.id == dragged_id)

    def _draw_row(self, cr, row: RenderedRow, width: float, is_dragged: bool):
        tag = row.tag
        selected = self.organizer.filter.is_selected(tag.id)
        alpha = 0.4 if is_dragged else 1.0

        if selected:
            cr.set_source_rgb(*self.COLORS['row_selected'])
            cr.rectangle(0, row.y, width, self.ROW_HEIGHT)
            cr.fill()

        # Checkbox
        box_x = self._checkbox_x(row)
        box_y = row.y + (self.ROW_HEIGHT - self.CHECKBOX_SIZE) / 2
        cr.set_line_width(1.5)
        cr.set_source_rgba(*self.COLORS['checkbox'], alpha)
        cr.rectangle(box_x, box_y, self.CHECKBOX_SIZE, self.CHECKBOX_SIZE)
        cr.stroke()
        if selected:
            cr.set_source_rgba(*self.COLORS['check'], alpha)
            cr.rectangle(box_x + 3, box_y + 3, self.CHECKBOX_SIZE - 6, self.CHECKBOX_SIZE - 6)
            cr.fill()

        # Name in the tag's colour
        cr.set_source_rgba(*hex_to_rgb(tag.color, self.COLORS['text_primary']), alpha)
        extents = cr.text_extents(tag.name)
        cr.move_to(box_x + self.CHECKBOX_SIZE + 8,
                   row.y + self.ROW_HEIGHT / 2 + extents.height / 2)
        cr.show_text(tag.name)

        kind = self.organizer.drag.drop_zone(tag.id)
        if kind is not None:
            self._draw_drop_indicator(cr, row, width, kind)

    def _draw_drop_indicator(self, cr, row: RenderedRow, width: float, kind: DropKind):
        left = self._checkbox_x(row)
        cr.set_source_rgb(*self.COLORS['drop'])
        cr.set_line_width(2)

        if kind in (DropKind.BEFORE, DropKind.BEFORE_SAME_PARENT):
            cr.move_to(left, row.y + 1)
            cr.line_to(width - self.PADDING, row.y + 1)
        elif kind is DropKind.AFTER:
            cr.move_to(left, row.y + self.ROW_HEIGHT - 1)
            cr.line_to(width - self.PADDING, row.y + self.ROW_HEIGHT - 1)
        else:
            cr.rectangle(left - 2, row.y + 1, width - left - self.PADDING + 2, self.ROW_HEIGHT - 2)
        cr.stroke()


class FileListView(Gtk.ListBox):
    """Files matching the current tag selection."""

    def __init__(self):
        super().__init__()
        self.set_selection_mode(Gtk.SelectionMode.NONE)
        self.add_css_class("boxed-list")

    def set_files(self, files: List[FileRecord]):
        child = self.get_first_child()
        while child is not None:
            next_child = child.get_next_sibling()
            self.remove(child)
            child = next_child

        if not files:
            placeholder = Gtk.Label(label="No matching files")
            placeholder.add_css_class("dim-label")
            placeholder.set_margin_top(12)
            placeholder.set_margin_bottom(12)
            self.append(placeholder)
            return

        for record in files:
            label = Gtk.Label(label=record.path)
            label.set_halign(Gtk.Align.START)
            label.set_margin_start(12)
            label.set_margin_top(6)
            label.set_margin_bottom(6)
            self.append(label)
