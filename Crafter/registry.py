"""Bidirectional element name <-> id mapping."""
from __future__ import annotations

from typing import Dict, Iterator, List

ElementId = int

# Reserved result the oracle gives for pairs that combine into nothing.
NOTHING = "Nothing"
NOTHING_ID: ElementId = 0


class ElementRegistry:
    """
    Append-only registry assigning dense integer ids to element names.

    Id 0 always belongs to the ``Nothing`` sentinel; every other name gets
    the next free id the first time it is seen. Ids are never reused and
    names are never renamed.
    """

    def __init__(self) -> None:
        self._names: List[str] = []
        self._ids: Dict[str, ElementId] = {}
        self.element_id(NOTHING)

    def element_id(self, name: str) -> ElementId:
        """Return the id for ``name``, allocating one on first sight."""
        existing = self._ids.get(name)
        if existing is not None:
            return existing
        new_id = len(self._names)
        self._names.append(name)
        self._ids[name] = new_id
        return new_id

    def element_name(self, element: ElementId) -> str:
        """Return the name for an allocated id."""
        if not 0 <= element < len(self._names):
            raise LookupError(f"Element id {element} was never allocated")
        return self._names[element]

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)
