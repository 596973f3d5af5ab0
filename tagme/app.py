"""Main TagMe application."""

import sys
import logging
from typing import Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, Adw

from tagme import __version__, __app_id__
from tagme.database import Database
from tagme.organizer import TagOrganizer
from tagme.selection import FilterMode
from tagme.widgets import TagTreeView, FileListView

logger = logging.getLogger(__name__)


class TagMeWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, db: Database):
        super().__init__(application=app)
        self.db = db

        self.organizer = TagOrganizer(db)
        self.organizer.on_tree_changed = self._on_tree_changed
        self.organizer.on_selection_changed = self._on_selection_changed
        self.organizer.on_error = self._show_toast

        # Window setup
        self.set_title("TagMe")
        self.set_default_size(900, 640)

        self._build_ui()
        self._setup_shortcuts()

        self.tree_view.refresh()
        self._on_selection_changed()

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        paned = Gtk.Paned(orientation=Gtk.Orientation.HORIZONTAL)
        paned.set_vexpand(True)
        paned.set_position(320)

        # Tag tree with the add-tag entry underneath
        tree_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=6)
        self.tree_view = TagTreeView(self.organizer)
        tree_scroll = Gtk.ScrolledWindow()
        tree_scroll.set_vexpand(True)
        tree_scroll.set_child(self.tree_view)
        tree_box.append(tree_scroll)

        self.new_tag_entry = Gtk.Entry()
        self.new_tag_entry.set_placeholder_text("New tag name")
        self.new_tag_entry.set_margin_start(8)
        self.new_tag_entry.set_margin_end(8)
        self.new_tag_entry.set_margin_bottom(8)
        self.new_tag_entry.connect("activate", self._on_new_tag)
        tree_box.append(self.new_tag_entry)

        paned.set_start_child(tree_box)
        paned.set_shrink_start_child(False)

        # Filtered files
        self.file_list = FileListView()
        files_scroll = Gtk.ScrolledWindow()
        files_scroll.set_child(self.file_list)
        paned.set_end_child(files_scroll)

        # Wrap in toast overlay for in-app notifications
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(paned)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()

        menu = Gio.Menu()
        menu.append("Delete Selected Tags", "win.delete-selected")
        menu.append("About TagMe", "win.show-about")
        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")
        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_end(menu_btn)

        self.mode_btn = Gtk.ToggleButton()
        self.mode_btn.set_tooltip_text("Match files with all / any selected tag (Ctrl+M)")
        self.mode_btn.connect("toggled", self._on_mode_toggled)
        header.pack_start(self.mode_btn)

        show_all_btn = Gtk.Button(label="Show All")
        show_all_btn.set_tooltip_text("Clear the tag selection (Ctrl+L)")
        show_all_btn.connect("clicked", lambda _btn: self.organizer.clear_selection())
        header.pack_start(show_all_btn)

        return header

    def _setup_shortcuts(self):
        """Setup keyboard shortcuts."""
        actions = [
            ("toggle-mode", self._toggle_mode, "<Control>m"),
            ("show-all", self.organizer.clear_selection, "<Control>l"),
            ("delete-selected", self._delete_selected, None),
            ("show-about", self._show_about, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]

        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)

            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

    def _on_tree_changed(self):
        self.tree_view.refresh()
        self.file_list.set_files(self.organizer.displayed_files())

    def _on_selection_changed(self):
        mode = self.organizer.filter.mode
        self.mode_btn.handler_block_by_func(self._on_mode_toggled)
        self.mode_btn.set_active(mode is FilterMode.ANY)
        self.mode_btn.handler_unblock_by_func(self._on_mode_toggled)
        self.mode_btn.set_label("Any" if mode is FilterMode.ANY else "All")

        self.file_list.set_files(self.organizer.displayed_files())
        self.tree_view.queue_draw()

    def _on_mode_toggled(self, button):
        self.organizer.toggle_filter_mode()

    def _toggle_mode(self):
        self.organizer.toggle_filter_mode()

    def _on_new_tag(self, entry):
        name = entry.get_text().strip()
        if not name:
            return
        # A single selected tag becomes the parent
        selected = self.organizer.filter.selected
        parent_id = selected[0] if len(selected) == 1 else None
        if self.organizer.create_tag(name, parent_id) is not None:
            entry.set_text("")

    def _delete_selected(self):
        # Descendants of a deleted tag vanish from the tree with it
        for tag_id in list(self.organizer.filter.selected):
            if tag_id in self.organizer.tree:
                self.organizer.delete_tag(tag_id)

    def _show_about(self):
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="TagMe",
            application_icon=__app_id__,
            version=__version__,
            comments="Hierarchical tag organizer with drag-and-drop reordering",
            license_type=Gtk.License.MIT_X11,
        )
        about.present()

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class TagMeApp(Adw.Application):
    """Main application class."""

    def __init__(self):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.db: Optional[Database] = None
        self.window: Optional[TagMeWindow] = None

    def do_startup(self):
        """Initialize application."""
        Adw.Application.do_startup(self)

        # Initialize database
        self.db = Database(seed_defaults=True)
        logger.info("Using tag database at %s", self.db.db_path)

    def do_activate(self):
        """Activate application."""
        if not self.window:
            self.window = TagMeWindow(self, self.db)

        self.window.present()

    def do_shutdown(self):
        """Shutdown application."""
        if self.db:
            self.db.close()

        Adw.Application.do_shutdown(self)


def main() -> int:
    """Application entry point."""
    app = TagMeApp()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
