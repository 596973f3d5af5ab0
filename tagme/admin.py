"""Maintenance CLI for the TagMe tag database.

Usage:
  tagme-admin verify
  tagme-admin repair
  tagme-admin list
  tagme-admin add "Project C" --parent 1 --color "#FF6B6B"
  tagme-admin move 4 --parent 2 --position 0
  tagme-admin move 4 --root

All commands accept --db PATH to work on a database other than the one in
the data directory (TAGME_DATA_DIR or ~/.local/share/tagme).
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from tagme.database import Database, TagStoreError, get_db_path
from tagme.launcher import setup_logging
from tagme.tree import TagTree

logger = logging.getLogger(__name__)


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db).expanduser() if args.db else get_db_path()


def _open_existing(args: argparse.Namespace) -> Database | None:
    path = _db_path(args)
    if not path.exists():
        print(f"No DB found at {path}")
        return None
    return Database(path)


def _cmd_verify(args: argparse.Namespace) -> int:
    db = _open_existing(args)
    if db is None:
        return 2

    try:
        row = db.conn.execute("PRAGMA integrity_check").fetchone()
        integrity_ok = row[0] == "ok"
        tree = TagTree(db.get_all_tags())
        problems = tree.check_invariants()
    finally:
        db.close()

    print("TagMe database verification")
    print(f"  DB: {db.db_path}")
    print(f"  SQLite integrity_check: {'OK' if integrity_ok else 'FAILED'}")
    print(f"  Tags: {len(tree)}")
    if problems:
        print(f"  Tree invariants: {len(problems)} problem(s)")
        for problem in problems:
            print(f"    - {problem}")
    else:
        print("  Tree invariants: OK")

    return 0 if integrity_ok and not problems else 2


def _cmd_repair(args: argparse.Namespace) -> int:
    db = _open_existing(args)
    if db is None:
        return 2

    try:
        changed = db.normalize_positions()
        problems = TagTree(db.get_all_tags()).check_invariants()
    finally:
        db.close()

    print(f"Renumbered {changed} tag position(s)")
    for problem in problems:
        print(f"  still broken: {problem}")
    return 0 if not problems else 2


def _cmd_list(args: argparse.Namespace) -> int:
    db = _open_existing(args)
    if db is None:
        return 2

    try:
        tree = TagTree(db.get_all_tags())
    finally:
        db.close()

    for tag, depth in tree.walk():
        color = f" {tag.color}" if tag.color else ""
        print(f"{'  ' * depth}{tag.name} [id={tag.id} pos={tag.position}]{color}")
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    db = Database(_db_path(args))
    try:
        tag = db.create_tag(args.name, args.parent, args.color)
    except (TagStoreError, ValueError) as exc:
        print(f"Could not add tag: {exc}")
        return 1
    finally:
        db.close()

    print(f"Added tag {tag.id} at position {tag.position}")
    return 0


def _cmd_move(args: argparse.Namespace) -> int:
    db = _open_existing(args)
    if db is None:
        return 2

    parent_id = None if args.root else args.parent
    try:
        if args.position is None:
            # Append after the last sibling
            position = len(db.get_children(parent_id))
        else:
            position = args.position
        db.move_tag(args.tag_id, parent_id, position)
        moved = db.get_tag(args.tag_id)
    except TagStoreError as exc:
        print(f"Could not move tag: {exc}")
        return 1
    finally:
        db.close()

    print(f"Moved tag {moved.id} to parent {moved.parent_id} at position {moved.position}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="tagme-admin")
    parser.add_argument("--db", help="Path to the tag database (default: data directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_ver = sub.add_parser("verify", help="Check SQLite integrity and tree invariants")
    p_ver.set_defaults(func=_cmd_verify)

    p_rep = sub.add_parser("repair", help="Renumber every sibling group densely")
    p_rep.set_defaults(func=_cmd_repair)

    p_list = sub.add_parser("list", help="Print the tag tree")
    p_list.set_defaults(func=_cmd_list)

    p_add = sub.add_parser("add", help="Create a tag")
    p_add.add_argument("name", help="Tag name")
    p_add.add_argument("--parent", type=int, help="Parent tag id (default: root level)")
    p_add.add_argument("--color", help="Colour as #RRGGBB")
    p_add.set_defaults(func=_cmd_add)

    p_mov = sub.add_parser("move", help="Reparent and/or reorder a tag")
    p_mov.add_argument("tag_id", type=int, help="Tag to move")
    target = p_mov.add_mutually_exclusive_group(required=True)
    target.add_argument("--parent", type=int, help="New parent tag id")
    target.add_argument("--root", action="store_true", help="Move to the root level")
    p_mov.add_argument("--position", type=int, help="Final index among the new siblings (default: last)")
    p_mov.set_defaults(func=_cmd_move)

    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)
    logger.debug("Running %s on %s", args.cmd, _db_path(args))
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
