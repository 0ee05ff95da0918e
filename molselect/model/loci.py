"""Loci: a sub-selection of a structure expressed as element indices per unit.

Invariants:
  * every entry holds a non-empty, sorted, duplicate-free index array;
  * entries are ordered by unit id and each unit appears at most once;
  * an empty Loci has no entries.

Two Loci are only combinable when they share a root structure. Mixing
structures is not an error: the foreign operand contributes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

import numpy as np
import pandas as pd

from molselect.core.logging_utils import get_logger
from molselect.model.location import Location
from molselect.model.structure import Structure, Unit

logger = get_logger(__name__)


@dataclass(frozen=True)
class LociElement:
    unit: Unit
    indices: np.ndarray


class Loci:
    """Set of atoms of one structure, without copying atom data."""

    __slots__ = ("structure", "elements")

    def __init__(self, structure: Structure, elements: Iterable[LociElement] = ()):
        merged: dict[int, LociElement] = {}
        for e in elements:
            if len(e.indices) == 0:
                continue
            prev = merged.get(e.unit.id)
            if prev is None:
                merged[e.unit.id] = LociElement(e.unit, np.unique(e.indices))
            else:
                merged[e.unit.id] = LociElement(prev.unit, np.union1d(prev.indices, e.indices))
        self.structure = structure
        self.elements: tuple[LociElement, ...] = tuple(merged[k] for k in sorted(merged))

    # -- construction ---------------------------------------------------------

    @classmethod
    def empty(cls, structure: Structure) -> "Loci":
        return cls(structure)

    @classmethod
    def from_structure(cls, structure: Structure, root: Optional[Structure] = None) -> "Loci":
        """All atoms of ``structure`` as a Loci over ``root`` (default: its root)."""
        target = root if root is not None else structure.root
        return cls(target, [LociElement(target.unit_map.get(u.id, u), u.elements) for u in structure.units])

    @classmethod
    def from_element_map(cls, structure: Structure, mapping: dict[int, Iterable[int]]) -> "Loci":
        elements = []
        for unit_id, idx in mapping.items():
            unit = structure.unit_map[unit_id]
            elements.append(LociElement(unit, np.fromiter(idx, dtype=np.int64)))
        return cls(structure, elements)

    # -- queries --------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.elements

    @property
    def element_count(self) -> int:
        return sum(len(e.indices) for e in self.elements)

    def element_map(self) -> dict[int, np.ndarray]:
        return {e.unit.id: e.indices for e in self.elements}

    def same_structure(self, other: "Loci") -> bool:
        return self.structure.root is other.structure.root

    def are_equal(self, other: "Loci") -> bool:
        if not self.same_structure(other) or len(self.elements) != len(other.elements):
            return False
        for a, b in zip(self.elements, other.elements):
            if a.unit.id != b.unit.id or not np.array_equal(a.indices, b.indices):
                return False
        return True

    def locations(self) -> Iterator[Location]:
        loc = Location(self.structure)
        for e in self.elements:
            for idx in e.indices:
                yield loc.set(e.unit, int(idx))

    def first_location(self) -> Optional[Location]:
        if self.is_empty:
            return None
        e = self.elements[0]
        return Location(self.structure, e.unit, int(e.indices[0]))

    # -- set algebra ----------------------------------------------------------

    def _combine(
        self, other: "Loci", op: Callable[[np.ndarray, np.ndarray], np.ndarray], keep_missing: bool
    ) -> tuple["Loci", dict[int, np.ndarray]]:
        theirs = other.element_map()
        out = []
        for e in self.elements:
            o = theirs.pop(e.unit.id, None)
            if o is None:
                if keep_missing:
                    out.append(e)
                continue
            out.append(LociElement(e.unit, op(e.indices, o)))
        return Loci(self.structure, out), theirs

    def union(self, other: "Loci") -> "Loci":
        if not self.same_structure(other):
            logger.debug("union: ignoring loci from a different structure")
            return self
        combined, rest = self._combine(other, np.union1d, keep_missing=True)
        extra = [LociElement(self.structure.unit_map.get(uid, other.structure.unit_map[uid]), idx) for uid, idx in rest.items()]
        return Loci(self.structure, list(combined.elements) + extra)

    def intersect(self, other: "Loci") -> "Loci":
        if not self.same_structure(other):
            logger.debug("intersect: ignoring loci from a different structure")
            return Loci.empty(self.structure)
        combined, _ = self._combine(
            other, lambda a, b: np.intersect1d(a, b, assume_unique=True), keep_missing=False
        )
        return combined

    def subtract(self, other: "Loci") -> "Loci":
        if not self.same_structure(other):
            logger.debug("subtract: ignoring loci from a different structure")
            return self
        combined, _ = self._combine(
            other, lambda a, b: np.setdiff1d(a, b, assume_unique=True), keep_missing=True
        )
        return combined

    # -- conversion -----------------------------------------------------------

    def to_structure(self) -> Structure:
        return self.structure.subset(self.element_map())

    def to_dataframe(self) -> pd.DataFrame:
        """One row per selected atom with hierarchy labels and transformed coordinates."""
        frames = []
        for e in self.elements:
            unit, idx = e.unit, e.indices
            model = unit.model
            chain = model.chains[unit.chain_index]
            entity = model.entity_of_chain(unit.chain_index)
            residues = model.atom_residue[idx]
            xyz = unit.coordinates(idx)
            frames.append(pd.DataFrame({
                "unit_id": unit.id,
                "operator": unit.operator.name,
                "entity_id": entity.entity_id,
                "label_asym_id": chain.chain_id,
                "auth_asym_id": chain.auth_chain_id or chain.chain_id,
                "comp_id": [model.residues[r].name for r in residues],
                "seq_id": [model.residues[r].seq_id for r in residues],
                "atom_id": model.atom_names[idx],
                "element": model.elements[idx],
                "serial": model.serials[idx],
                "x": xyz[:, 0],
                "y": xyz[:, 1],
                "z": xyz[:, 2],
            }))
        if not frames:
            return pd.DataFrame(columns=[
                "unit_id", "operator", "entity_id", "label_asym_id", "auth_asym_id",
                "comp_id", "seq_id", "atom_id", "element", "serial", "x", "y", "z",
            ])
        return pd.concat(frames, ignore_index=True)

    def __repr__(self) -> str:
        return f"<Loci {self.structure.label} units={len(self.elements)} atoms={self.element_count}>"
