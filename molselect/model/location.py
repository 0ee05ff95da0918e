from __future__ import annotations

from typing import Optional

from molselect.model.structure import Structure, Unit


class Location:
    """Handle to one atom: (structure, unit, element).

    Generators reuse a single Location as a cursor while scanning, so
    predicates must not keep references to it; use ``clone()`` instead.
    """

    __slots__ = ("structure", "unit", "element")

    def __init__(self, structure: Optional[Structure] = None, unit: Optional[Unit] = None, element: int = 0):
        self.structure = structure
        self.unit = unit
        self.element = element

    def set(self, unit: Unit, element: int) -> "Location":
        self.unit = unit
        self.element = element
        return self

    def clone(self) -> "Location":
        return Location(self.structure, self.unit, self.element)

    @property
    def residue_index(self) -> int:
        return int(self.unit.model.atom_residue[self.element])

    @property
    def chain_index(self) -> int:
        return self.unit.chain_index

    @property
    def entity_index(self) -> int:
        return int(self.unit.model.chain_entity[self.unit.chain_index])

    def __repr__(self) -> str:
        return f"<Location unit={self.unit.id if self.unit else None} element={self.element}>"


class BondLocation:
    """Both endpoints of a bond plus its flags; the context of bond tests."""

    __slots__ = ("structure", "a_unit", "a", "b_unit", "b", "flags")

    def __init__(self, structure: Optional[Structure] = None):
        self.structure = structure
        self.a_unit: Optional[Unit] = None
        self.a = -1
        self.b_unit: Optional[Unit] = None
        self.b = -1
        self.flags = 0

    def set(self, a_unit: Unit, a: int, b_unit: Unit, b: int, flags: int) -> "BondLocation":
        self.a_unit = a_unit
        self.a = a
        self.b_unit = b_unit
        self.b = b
        self.flags = flags
        return self

    def __repr__(self) -> str:
        return f"<BondLocation {self.a}-{self.b} flags={self.flags}>"
