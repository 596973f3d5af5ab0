"""In-memory snapshot of the tag hierarchy."""

import logging
from typing import Optional, List, Dict, Iterable, Iterator, Tuple

from tagme.database import TagNode

logger = logging.getLogger(__name__)


class TagTree:
    """Read-only tag snapshot with id lookup and ordered sibling groups.

    Built from the flat list returned by Database.get_all_tags(). Nodes whose
    parent is missing from the snapshot are kept reachable as roots.
    """

    def __init__(self, tags: Iterable[TagNode] = ()):
        self._by_id: Dict[int, TagNode] = {}
        self._children: Dict[Optional[int], List[TagNode]] = {}

        for tag in tags:
            self._by_id[tag.id] = tag

        for tag in self._by_id.values():
            self._children.setdefault(tag.parent_id, []).append(tag)

        for group in self._children.values():
            group.sort(key=lambda t: (t.position, t.id))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, tag_id) -> bool:
        return tag_id in self._by_id

    def __iter__(self) -> Iterator[TagNode]:
        return iter(self._by_id.values())

    def get(self, tag_id: Optional[int]) -> Optional[TagNode]:
        """Get a tag by ID, or None."""
        if tag_id is None:
            return None
        return self._by_id.get(tag_id)

    def siblings(self, parent_id: Optional[int]) -> List[TagNode]:
        """Tags sharing parent_id, in position order."""
        return list(self._children.get(parent_id, []))

    def children(self, tag_id: int) -> List[TagNode]:
        return self.siblings(tag_id)

    def roots(self) -> List[TagNode]:
        """Root-level tags plus any whose parent is not in the snapshot."""
        roots = self.siblings(None)
        orphans = [
            tag for tag in self._by_id.values()
            if tag.parent_id is not None and tag.parent_id not in self._by_id
        ]
        orphans.sort(key=lambda t: (t.position, t.id))
        return roots + orphans

    def next_sibling(self, tag_id: int) -> Optional[TagNode]:
        """The first sibling positioned after tag_id, or None if it is last."""
        tag = self._by_id.get(tag_id)
        if tag is None:
            return None
        for sibling in self._children.get(tag.parent_id, []):
            if sibling.position > tag.position:
                return sibling
        return None

    def ancestors(self, tag_id: int) -> List[TagNode]:
        """Parents of tag_id, nearest first. Stops at a root or a repeated id."""
        result: List[TagNode] = []
        seen = {tag_id}
        tag = self._by_id.get(tag_id)
        while tag is not None and tag.parent_id is not None and len(result) < len(self._by_id):
            parent = self._by_id.get(tag.parent_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            result.append(parent)
            tag = parent
        return result

    def depth(self, tag_id: int) -> int:
        return len(self.ancestors(tag_id))

    def subtree_ids(self, tag_id: int) -> List[int]:
        """tag_id followed by all of its descendants (depth-first)."""
        result: List[int] = []
        visited = set()
        stack = [tag_id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            result.append(current)
            # Reversed so children come out in position order
            for child in reversed(self._children.get(current, [])):
                stack.append(child.id)
        return result

    def walk(self) -> Iterator[Tuple[TagNode, int]]:
        """Yield (tag, depth) in display order."""
        visited = set()
        stack = [(tag, 0) for tag in reversed(self.roots())]
        while stack:
            tag, depth = stack.pop()
            if tag.id in visited:
                continue
            visited.add(tag.id)
            yield tag, depth
            for child in reversed(self._children.get(tag.id, [])):
                stack.append((child, depth + 1))

    def check_invariants(self) -> List[str]:
        """Return a description of every broken tree invariant (empty if sound)."""
        problems: List[str] = []

        for parent_id, group in sorted(self._children.items(), key=lambda kv: (kv[0] is not None, kv[0] or 0)):
            positions = [tag.position for tag in group]
            if positions != list(range(len(group))):
                label = "root" if parent_id is None else f"parent {parent_id}"
                problems.append(f"positions under {label} are {positions}, expected 0..{len(group) - 1}")

        for tag in self._by_id.values():
            if tag.parent_id is not None and tag.parent_id not in self._by_id:
                problems.append(f"tag {tag.id} references missing parent {tag.parent_id}")

        for tag in self._by_id.values():
            seen = {tag.id}
            current = tag
            while current is not None and current.parent_id is not None:
                if current.parent_id in seen:
                    problems.append(f"tag {tag.id} is part of a parent cycle")
                    break
                seen.add(current.parent_id)
                current = self._by_id.get(current.parent_id)

        if problems:
            logger.warning("Tag tree has %d invariant violations", len(problems))
        return problems
