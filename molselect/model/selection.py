"""StructureSelection: the value every compiled query returns."""

from __future__ import annotations

from typing import Iterable, Iterator

from molselect.model.loci import Loci, LociElement
from molselect.model.structure import Structure


class StructureSelection:
    """Either one flattened sub-structure (singletons) or an ordered list of groups.

    ``source`` is the structure the selection was computed against. Groups are
    child structures of ``source.root``; empty groups are dropped on
    construction.
    """

    SINGLETONS = "singletons"
    SEQUENCE = "sequence"

    __slots__ = ("source", "kind", "_structures")

    def __init__(self, source: Structure, kind: str, structures: Iterable[Structure]):
        if kind not in (self.SINGLETONS, self.SEQUENCE):
            raise ValueError(f"Unknown selection kind: {kind}")
        self.source = source
        self.kind = kind
        self._structures: list[Structure] = [s for s in structures if s.element_count > 0]

    @classmethod
    def empty(cls, source: Structure) -> "StructureSelection":
        return cls(source, cls.SINGLETONS, ())

    @classmethod
    def singletons(cls, source: Structure, structure: Structure) -> "StructureSelection":
        return cls(source, cls.SINGLETONS, (structure,))

    @classmethod
    def sequence(cls, source: Structure, structures: Iterable[Structure]) -> "StructureSelection":
        return cls(source, cls.SEQUENCE, structures)

    @classmethod
    def from_loci(cls, loci: Loci) -> "StructureSelection":
        return cls.singletons(loci.structure, loci.to_structure())

    @property
    def is_singletons(self) -> bool:
        return self.kind == self.SINGLETONS

    @property
    def groups(self) -> list[Structure]:
        return list(self._structures)

    @property
    def group_count(self) -> int:
        return len(self._structures)

    @property
    def element_count(self) -> int:
        """Number of distinct selected atoms."""
        if self.is_singletons or len(self._structures) < 2:
            return sum(s.element_count for s in self._structures)
        return self.to_loci().element_count

    @property
    def is_empty(self) -> bool:
        return not self._structures

    def to_loci(self) -> Loci:
        elements = []
        for s in self._structures:
            if s.root is not self.source.root:
                continue
            for u in s.units:
                elements.append(LociElement(self.source.root.unit_map.get(u.id, u), u.elements))
        return Loci(self.source, elements)

    def union_structure(self) -> Structure:
        """All groups merged into one child structure of the source root."""
        if self.is_singletons and self._structures:
            return self._structures[0]
        return self.to_loci().to_structure()

    def __iter__(self) -> Iterator[Structure]:
        return iter(self._structures)

    def __repr__(self) -> str:
        return (
            f"<StructureSelection {self.kind} groups={self.group_count} "
            f"atoms={self.element_count}>"
        )
