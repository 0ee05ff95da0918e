"""Bond adjacency over model atom indices.

Bonds live on the Model (computed by ``props.bonds.BondsProvider`` and stored
under ``model.custom_properties["bonds"]``). Units reach partners in other
chains through the unit that carries the same operator.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

import numpy as np

from molselect.model.model import Model
from molselect.model.structure import Structure, Unit
from molselect.model.types import BondType

BONDS_PROPERTY = "bonds"


class BondTable:
    """Compressed sparse row adjacency with per-edge ``BondType`` flags."""

    def __init__(self, atom_count: int, a: np.ndarray, b: np.ndarray, flags: np.ndarray):
        self.atom_count = atom_count
        # unique undirected edges, a < b
        self.a = a
        self.b = b
        self.flags = flags

        src = np.concatenate([a, b])
        dst = np.concatenate([b, a])
        fl = np.concatenate([flags, flags])
        order = np.argsort(src, kind="stable")
        self.neighbors = dst[order]
        self.edge_flags = fl[order]
        counts = np.bincount(src, minlength=atom_count) if len(src) else np.zeros(atom_count, np.int64)
        self.offsets = np.concatenate([[0], np.cumsum(counts)]).astype(np.int64)

    @classmethod
    def from_pairs(cls, atom_count: int, pairs: Iterable[tuple[int, int, int]]) -> "BondTable":
        """Build from (a, b, flags) triples; duplicate edges are merged by OR-ing flags."""
        merged: dict[tuple[int, int], int] = {}
        for a, b, f in pairs:
            if a == b:
                continue
            key = (a, b) if a < b else (b, a)
            merged[key] = merged.get(key, 0) | int(f)
        if not merged:
            empty = np.zeros(0, dtype=np.int64)
            return cls(atom_count, empty, empty, np.zeros(0, dtype=np.int64))
        keys = sorted(merged)
        arr = np.asarray(keys, dtype=np.int64)
        flags = np.asarray([merged[k] for k in keys], dtype=np.int64)
        return cls(atom_count, arr[:, 0], arr[:, 1], flags)

    @classmethod
    def from_model(cls, model: Model) -> "BondTable":
        return cls.from_pairs(model.element_count, model.explicit_bonds)

    @property
    def bond_count(self) -> int:
        return len(self.a)

    def neighbors_of(self, atom: int) -> tuple[np.ndarray, np.ndarray]:
        lo, hi = self.offsets[atom], self.offsets[atom + 1]
        return self.neighbors[lo:hi], self.edge_flags[lo:hi]

    def flags_between(self, a: int, b: int) -> int:
        nb, fl = self.neighbors_of(a)
        hit = np.nonzero(nb == b)[0]
        return int(fl[hit[0]]) if len(hit) else 0

    def pairs(self) -> Iterator[tuple[int, int, int]]:
        for a, b, f in zip(self.a, self.b, self.flags):
            yield int(a), int(b), int(f)

    def __repr__(self) -> str:
        return f"<BondTable atoms={self.atom_count} bonds={self.bond_count}>"


def get_bond_table(model: Model) -> BondTable:
    """Computed bonds if present, otherwise a table of the explicit bonds only."""
    table = model.custom_properties.get(BONDS_PROPERTY)
    if table is None:
        return BondTable.from_model(model)
    return table


def partner_unit(structure: Structure, unit: Unit, partner: int) -> Optional[Unit]:
    """Unit of ``structure`` holding model atom ``partner`` under ``unit``'s operator."""
    chain = int(unit.model.atom_chain[partner])
    if chain == unit.chain_index:
        target = structure.unit_map.get(unit.id)
    else:
        target = structure.lookup_unit(unit.operator.name, chain, unit.model.id)
    if target is None or not target.contains(partner):
        return None
    return target


def iter_bonded(
    structure: Structure,
    unit: Unit,
    element: int,
    table: Optional[BondTable] = None,
) -> Iterator[tuple[Unit, int, int]]:
    """Yield ``(partner_unit, partner_element, flags)`` for every bond of one atom."""
    table = table if table is not None else get_bond_table(unit.model)
    neighbors, flags = table.neighbors_of(element)
    for nb, f in zip(neighbors, flags):
        target = partner_unit(structure, unit, int(nb))
        if target is not None:
            yield target, int(nb), int(f)
