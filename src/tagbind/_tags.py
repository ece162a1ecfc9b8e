from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable


class TagMode(Enum):
    AND = "AND"
    OR = "OR"


class TagIndex:
    """Inverse index tag -> names, kept in registration order.

    Queries only touch the adjacency sets of the queried tags.
    """

    def __init__(self) -> None:
        self._by_tag: dict[str, dict[str, None]] = {}
        # registration order of every indexed name, for stable query results
        self._order: dict[str, int] = {}
        self._counter = 0

    def add(self, name: str, tags: Iterable[str]) -> None:
        if name not in self._order:
            self._order[name] = self._counter
            self._counter += 1
        for tag in tags:
            self._by_tag.setdefault(tag, {})[name] = None

    def discard(self, name: str) -> None:
        """Drop `name` from every tag; its registration position is kept."""
        for tag in list(self._by_tag):
            names = self._by_tag[tag]
            names.pop(name, None)
            if not names:
                del self._by_tag[tag]

    def by_tags_all(self, tags: Iterable[str]) -> list[str]:
        tags = list(dict.fromkeys(tags))
        if not tags:
            return []
        # walk the smallest adjacency set and check membership in the others
        sets = sorted((self._by_tag.get(tag, {}) for tag in tags), key=len)
        smallest, rest = sets[0], sets[1:]
        return self._ordered(name for name in smallest if all(name in s for s in rest))

    def by_tags_any(self, tags: Iterable[str]) -> list[str]:
        found: dict[str, None] = {}
        for tag in tags:
            found.update(self._by_tag.get(tag, {}))
        return self._ordered(found)

    def query(self, tags: Iterable[str], mode: TagMode) -> list[str]:
        if mode is TagMode.AND:
            return self.by_tags_all(tags)
        return self.by_tags_any(tags)

    def all_tags(self) -> list[str]:
        return sorted(self._by_tag)

    def group_by_tag(self) -> dict[str, list[str]]:
        return {tag: self._ordered(names) for tag, names in self._by_tag.items()}

    def _ordered(self, names: Iterable[str]) -> list[str]:
        return sorted(names, key=self._order.__getitem__)
