"""TagMe - hierarchical tag organizer with drag-and-drop reordering."""

__version__ = "0.4.0"
__app_id__ = "com.tagme.TagMe"
