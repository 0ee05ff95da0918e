"""Generators: produce the initial selection by scanning the input structure.

Tests are compiled predicates ``(QueryContext) -> bool``; ``None`` means
"always true". Entity and chain tests run once per unit on its first atom,
residue tests once per residue on its first atom, atom tests per atom.
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional

import numpy as np

from molselect.model.bonds import iter_bonded
from molselect.model.selection import StructureSelection
from molselect.model.structure import Unit
from molselect.model.types import BondType
from molselect.runtime.context import QueryContext
from molselect.runtime.rings import find_rings, ring_bond_flags

Test = Optional[Callable[[QueryContext], bool]]


def residue_segments(unit: Unit) -> Iterator[tuple[int, int, int]]:
    """(residue index, start, end) runs over positions of ``unit.elements``."""
    residues = unit.model.atom_residue[unit.elements]
    if len(residues) == 0:
        return
    breaks = np.flatnonzero(np.diff(residues)) + 1
    starts = np.concatenate([[0], breaks])
    ends = np.concatenate([breaks, [len(residues)]])
    for s, e in zip(starts, ends):
        yield int(residues[s]), int(s), int(e)


def all_atoms(ctx: QueryContext) -> StructureSelection:
    structure = ctx.input_structure
    return StructureSelection.singletons(structure, structure)


def current(ctx: QueryContext) -> StructureSelection:
    return ctx.current_selection()


def atom_groups(
    ctx: QueryContext,
    entity_test: Test = None,
    chain_test: Test = None,
    residue_test: Test = None,
    atom_test: Test = None,
) -> StructureSelection:
    """Every atom passing all tests, as a single group."""
    structure = ctx.input_structure
    loc = ctx.element
    selected: dict[int, np.ndarray] = {}

    for unit in structure.units:
        elements = unit.elements
        if len(elements) == 0:
            continue
        loc.set(unit, int(elements[0]))
        if entity_test is not None and not entity_test(ctx):
            continue
        if chain_test is not None and not chain_test(ctx):
            continue

        picked = []
        for _, start, end in residue_segments(unit):
            loc.element = int(elements[start])
            if residue_test is not None and not residue_test(ctx):
                continue
            if atom_test is None:
                picked.append(elements[start:end])
                continue
            for j in range(start, end):
                loc.element = int(elements[j])
                if atom_test(ctx):
                    picked.append(elements[j:j + 1])
        if picked:
            selected[unit.id] = np.concatenate(picked)

    if not selected:
        return StructureSelection.empty(structure)
    return StructureSelection.sequence(structure, [structure.subset(selected)])


def rings(ctx: QueryContext, only_aromatic: bool = False) -> StructureSelection:
    """One group per ring found inside a residue."""
    structure = ctx.input_structure
    groups = []
    for unit in structure.units:
        table = ctx.bond_table(unit.model)
        elements = unit.elements
        for _, start, end in residue_segments(unit):
            atoms = elements[start:end]
            if len(atoms) < 3:
                continue
            members = set(atoms.tolist())
            graph: dict[int, dict[int, int]] = {}
            for a in members:
                neighbors, flags = table.neighbors_of(a)
                graph[a] = {int(n): int(f) for n, f in zip(neighbors, flags) if int(n) in members}
            for ring in find_rings(graph):
                if only_aromatic and not all(f & BondType.AROMATIC for f in ring_bond_flags(graph, ring)):
                    continue
                groups.append(structure.subset({unit.id: np.asarray(sorted(ring), dtype=np.int64)}))
    return StructureSelection.sequence(structure, groups)


def bonded_atomic_pairs(ctx: QueryContext, bond_test: Test = None) -> StructureSelection:
    """One two-atom group per bond passing ``bond_test``; each bond visited once."""
    structure = ctx.input_structure
    groups = []
    for unit in structure.units:
        table = ctx.bond_table(unit.model)
        degree = np.diff(table.offsets)[unit.elements]
        for a in unit.elements[degree > 0]:
            a = int(a)
            for partner, b, flags in iter_bonded(structure, unit, a, table):
                if (partner.id, b) <= (unit.id, a):
                    continue
                if bond_test is not None:
                    ctx.element.set(unit, a)
                    ctx.bond.set(unit, a, partner, b, flags)
                    if not bond_test(ctx):
                        continue
                if partner.id == unit.id:
                    pair = {unit.id: np.asarray(sorted((a, b)), dtype=np.int64)}
                else:
                    pair = {unit.id: np.asarray([a]), partner.id: np.asarray([b])}
                groups.append(structure.subset(pair))
    return StructureSelection.sequence(structure, groups)
