"""SQLite database layer for TagMe."""

import sqlite3
import json
import os
import logging
from contextlib import contextmanager
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterator, Sequence, Union
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get("TAGME_DATA_DIR")
    if override:
        data_dir = Path(override).expanduser()
    else:
        data_dir = Path.home() / ".local" / "share" / "tagme"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "tagme.db"


# (name, parent name, color) seeded into an empty database on first start
DEFAULT_TAGS = [
    ("Work", None, "#FF6B6B"),
    ("Personal", None, "#4ECDC4"),
    ("Important", None, "#45B7D1"),
    ("Project A", "Work", "#96CEB4"),
    ("Project B", "Work", "#FECA57"),
    ("Learning", "Personal", "#DDA0DD"),
    ("Entertainment", "Personal", "#98D8C8"),
]


class TagStoreError(Exception):
    """A tag operation could not be persisted."""


class TagNotFoundError(TagStoreError):
    """A referenced tag does not exist."""


@dataclass
class TagNode:
    """Represents a tag in the hierarchy."""
    id: int = 0
    name: str = ""
    parent_id: Optional[int] = None
    position: int = 0
    color: Optional[str] = None
    created_at: str = ""


@dataclass
class FileRecord:
    """Represents a tagged file."""
    id: int = 0
    path: str = ""
    created_at: str = ""


class Database:
    """Database manager for TagMe."""

    def __init__(self, db_path: Optional[Union[Path, str]] = None, seed_defaults: bool = False):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()
        if seed_defaults and self.count_tags() == 0:
            self._seed_default_tags()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if str(self.db_path) != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()

        cursor.executescript("""
            -- Tags table
            CREATE TABLE IF NOT EXISTS tags (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                parent_id INTEGER,
                color TEXT,
                position INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (parent_id) REFERENCES tags(id) ON DELETE CASCADE,
                UNIQUE(name, parent_id)
            );

            -- Files that carry at least one tag
            CREATE TABLE IF NOT EXISTS files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS file_tags (
                file_id INTEGER NOT NULL,
                tag_id INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (file_id, tag_id),
                FOREIGN KEY (file_id) REFERENCES files(id) ON DELETE CASCADE,
                FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE
            );

            -- App settings table
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON
            );
        """)

        # Databases created before ordering existed have no position column
        columns = {row["name"] for row in cursor.execute("PRAGMA table_info(tags)")}
        needs_positions = "position" not in columns
        if needs_positions:
            logger.info("Adding position column to legacy tags table at %s", self.db_path)
            cursor.execute("ALTER TABLE tags ADD COLUMN position INTEGER NOT NULL DEFAULT 0")

        cursor.executescript("""
            CREATE INDEX IF NOT EXISTS idx_tags_parent_position ON tags(parent_id, position);
            CREATE INDEX IF NOT EXISTS idx_file_tags_tag_id ON file_tags(tag_id);
        """)

        self.conn.commit()

        if needs_positions:
            self.normalize_positions()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run a block of statements as one transaction.

        Any failure rolls every statement of the block back; SQLite errors
        surface as TagStoreError.
        """
        cursor = self.conn.cursor()
        cursor.execute("BEGIN IMMEDIATE")
        try:
            yield cursor
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise TagStoreError(str(exc)) from exc
        except BaseException:
            self.conn.rollback()
            raise

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> TagNode:
        created_at = row["created_at"]
        return TagNode(
            id=row["id"],
            name=row["name"],
            parent_id=row["parent_id"],
            position=row["position"],
            color=row["color"],
            created_at=str(created_at) if created_at is not None else ""
        )

    # ==================== Tag Operations ====================

    def count_tags(self) -> int:
        """Return the number of tags."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM tags")
        return int(cursor.fetchone()[0])

    def create_tag(self, name: str, parent_id: Optional[int] = None,
                   color: Optional[str] = None) -> TagNode:
        """Create a tag appended after its existing siblings."""
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"Invalid tag name: {name!r}")
        name = name.strip()
        now = datetime.now().isoformat()

        with self._transaction() as cursor:
            if parent_id is not None and not self._tag_exists(cursor, parent_id):
                raise TagNotFoundError(f"Parent tag {parent_id} does not exist")

            cursor.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM tags WHERE parent_id IS ?",
                (parent_id,)
            )
            position = cursor.fetchone()[0]

            cursor.execute(
                """INSERT INTO tags (name, parent_id, color, position, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (name, parent_id, color, position, now)
            )
            tag_id = cursor.lastrowid

        logger.debug("Created tag %s %r under %s at position %s", tag_id, name, parent_id, position)
        return TagNode(
            id=tag_id,
            name=name,
            parent_id=parent_id,
            position=position,
            color=color,
            created_at=now
        )

    def get_all_tags(self) -> List[TagNode]:
        """Get all tags ordered by parent, then position."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM tags ORDER BY parent_id, position, id")
        tags = [self._row_to_tag(row) for row in cursor.fetchall()]
        logger.debug("Loaded %d tags", len(tags))
        return tags

    def get_tag(self, tag_id: int) -> Optional[TagNode]:
        """Get a tag by ID."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM tags WHERE id = ?", (tag_id,))
        row = cursor.fetchone()

        if not row:
            return None

        return self._row_to_tag(row)

    def get_children(self, parent_id: Optional[int]) -> List[TagNode]:
        """Get the tags directly under parent_id (None for the root level)."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM tags WHERE parent_id IS ? ORDER BY position, id",
            (parent_id,)
        )
        return [self._row_to_tag(row) for row in cursor.fetchall()]

    def update_tag(self, tag: TagNode):
        """Update a tag's name and color. Parent and position are left alone."""
        if not isinstance(tag.name, str) or not tag.name.strip():
            raise ValueError(f"Invalid tag name: {tag.name!r}")

        with self._transaction() as cursor:
            cursor.execute(
                "UPDATE tags SET name = ?, color = ? WHERE id = ?",
                (tag.name.strip(), tag.color, tag.id)
            )
            if cursor.rowcount == 0:
                raise TagNotFoundError(f"Tag {tag.id} does not exist")

    def delete_tag(self, tag_id: int) -> bool:
        """Delete a tag and all its descendants.

        The former siblings are renumbered so their positions stay dense.
        """
        with self._transaction() as cursor:
            cursor.execute("SELECT parent_id FROM tags WHERE id = ?", (tag_id,))
            row = cursor.fetchone()
            if not row:
                return False

            parent_id = row["parent_id"]
            cursor.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
            self._reindex_group(cursor, parent_id)

        logger.debug("Deleted tag %s (parent %s)", tag_id, parent_id)
        return True

    def move_tag(self, tag_id: int, new_parent_id: Optional[int], target_position: int):
        """Move a tag to a new parent and/or position.

        target_position is the tag's final index among its new siblings and
        is clamped into range. Within one parent the siblings between the old
        and new slot shift by one; across parents both groups are renumbered
        from scratch. Everything commits together or not at all.
        """
        with self._transaction() as cursor:
            cursor.execute("SELECT parent_id, position FROM tags WHERE id = ?", (tag_id,))
            row = cursor.fetchone()
            if not row:
                raise TagNotFoundError(f"Tag {tag_id} does not exist")

            old_parent_id = row["parent_id"]
            old_position = row["position"]

            if new_parent_id is not None:
                self._check_new_parent(cursor, tag_id, new_parent_id)

            if old_parent_id == new_parent_id:
                last = self._group_size(cursor, new_parent_id) - 1
                position = max(0, min(target_position, last))

                if old_position < position:
                    # Moving forward: close the gap behind the tag
                    cursor.execute(
                        """UPDATE tags SET position = position - 1
                           WHERE parent_id IS ? AND position > ? AND position <= ? AND id != ?""",
                        (new_parent_id, old_position, position, tag_id)
                    )
                elif old_position > position:
                    # Moving backward: open a slot in front of the tag
                    cursor.execute(
                        """UPDATE tags SET position = position + 1
                           WHERE parent_id IS ? AND position >= ? AND position < ? AND id != ?""",
                        (new_parent_id, position, old_position, tag_id)
                    )

                cursor.execute(
                    "UPDATE tags SET parent_id = ?, position = ? WHERE id = ?",
                    (new_parent_id, position, tag_id)
                )
            else:
                position = max(0, min(target_position, self._group_size(cursor, new_parent_id)))
                cursor.execute(
                    "UPDATE tags SET parent_id = ?, position = ? WHERE id = ?",
                    (new_parent_id, position, tag_id)
                )
                self._reindex_group(cursor, old_parent_id)

            # Destination is always renumbered; a dense group costs no writes
            self._reindex_group(cursor, new_parent_id, first_id=tag_id)

        logger.debug(
            "Moved tag %s from (%s, %s) to (%s, %s)",
            tag_id, old_parent_id, old_position, new_parent_id, position
        )

    def normalize_positions(self) -> int:
        """Renumber every sibling group to 0..n-1. Returns the rows changed."""
        with self._transaction() as cursor:
            cursor.execute("SELECT DISTINCT parent_id FROM tags")
            parent_ids = [row["parent_id"] for row in cursor.fetchall()]
            changed = sum(self._reindex_group(cursor, parent_id) for parent_id in parent_ids)

        if changed:
            logger.info("Normalized %d tag positions", changed)
        return changed

    @staticmethod
    def _tag_exists(cursor: sqlite3.Cursor, tag_id: int) -> bool:
        cursor.execute("SELECT 1 FROM tags WHERE id = ?", (tag_id,))
        return cursor.fetchone() is not None

    @staticmethod
    def _group_size(cursor: sqlite3.Cursor, parent_id: Optional[int]) -> int:
        cursor.execute("SELECT COUNT(*) FROM tags WHERE parent_id IS ?", (parent_id,))
        return int(cursor.fetchone()[0])

    def _check_new_parent(self, cursor: sqlite3.Cursor, tag_id: int, new_parent_id: int):
        """Reject a parent that is missing, the tag itself or one of its descendants."""
        cursor.execute("SELECT COUNT(*) FROM tags")
        remaining = int(cursor.fetchone()[0])

        current: Optional[int] = new_parent_id
        first = True
        while current is not None and remaining >= 0:
            if current == tag_id:
                raise TagStoreError(f"Cannot move tag {tag_id} under its own descendant {new_parent_id}")
            cursor.execute("SELECT parent_id FROM tags WHERE id = ?", (current,))
            row = cursor.fetchone()
            if row is None:
                if first:
                    raise TagNotFoundError(f"Parent tag {new_parent_id} does not exist")
                break
            first = False
            current = row["parent_id"]
            remaining -= 1

    @staticmethod
    def _reindex_group(cursor: sqlite3.Cursor, parent_id: Optional[int],
                       first_id: Optional[int] = None) -> int:
        """Renumber one sibling group in its current order.

        first_id wins a tie on position; other ties keep id order. Only rows
        whose position changes are written.
        """
        cursor.execute(
            """SELECT id, position FROM tags WHERE parent_id IS ?
               ORDER BY position, CASE WHEN id = ? THEN 0 ELSE 1 END, id""",
            (parent_id, first_id)
        )
        rows = cursor.fetchall()

        changed = 0
        for index, row in enumerate(rows):
            if row["position"] != index:
                cursor.execute("UPDATE tags SET position = ? WHERE id = ?", (index, row["id"]))
                changed += 1
        return changed

    def _seed_default_tags(self):
        """Create the starter tag set."""
        created: Dict[str, int] = {}
        for name, parent_name, color in DEFAULT_TAGS:
            parent_id = created.get(parent_name) if parent_name else None
            created[name] = self.create_tag(name, parent_id, color).id
        logger.info("Seeded %d default tags", len(created))

    # ==================== File Operations ====================

    @staticmethod
    def _row_to_file(row: sqlite3.Row) -> FileRecord:
        return FileRecord(id=row["id"], path=row["path"], created_at=str(row["created_at"]))

    def add_file_tag(self, path: str, tag_id: int) -> FileRecord:
        """Attach a tag to a file, registering the file if needed."""
        now = datetime.now().isoformat()

        with self._transaction() as cursor:
            cursor.execute(
                "INSERT OR IGNORE INTO files (path, created_at) VALUES (?, ?)",
                (path, now)
            )
            cursor.execute("SELECT * FROM files WHERE path = ?", (path,))
            record = self._row_to_file(cursor.fetchone())
            cursor.execute(
                "INSERT OR IGNORE INTO file_tags (file_id, tag_id, created_at) VALUES (?, ?, ?)",
                (record.id, tag_id, now)
            )

        return record

    def remove_file_tag(self, file_id: int, tag_id: int):
        """Detach a tag from a file."""
        with self._transaction() as cursor:
            cursor.execute(
                "DELETE FROM file_tags WHERE file_id = ? AND tag_id = ?",
                (file_id, tag_id)
            )

    def get_file_tags(self, file_id: int) -> List[TagNode]:
        """Get the tags attached to a file."""
        cursor = self.conn.cursor()
        cursor.execute(
            """SELECT t.* FROM tags t
               JOIN file_tags ft ON t.id = ft.tag_id
               WHERE ft.file_id = ?
               ORDER BY t.name""",
            (file_id,)
        )
        return [self._row_to_tag(row) for row in cursor.fetchall()]

    def get_all_files(self) -> List[FileRecord]:
        """Get every registered file."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM files ORDER BY path")
        return [self._row_to_file(row) for row in cursor.fetchall()]

    def get_files_by_tags(self, tag_ids: Sequence[int], match_all: bool = True) -> List[FileRecord]:
        """Get files carrying all (match_all) or any of the given tags."""
        ids = list(dict.fromkeys(tag_ids))
        if not ids:
            return self.get_all_files()

        placeholders = ",".join("?" for _ in ids)
        cursor = self.conn.cursor()

        if match_all:
            cursor.execute(
                f"""SELECT f.* FROM files f
                    WHERE (SELECT COUNT(DISTINCT ft.tag_id) FROM file_tags ft
                           WHERE ft.file_id = f.id AND ft.tag_id IN ({placeholders})) = ?
                    ORDER BY f.path""",
                (*ids, len(ids))
            )
        else:
            cursor.execute(
                f"""SELECT DISTINCT f.* FROM files f
                    JOIN file_tags ft ON f.id = ft.file_id
                    WHERE ft.tag_id IN ({placeholders})
                    ORDER BY f.path""",
                ids
            )

        return [self._row_to_file(row) for row in cursor.fetchall()]

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()
