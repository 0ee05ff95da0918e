"""Combinators and modifiers over StructureSelection values.

Everything except ``merge`` flattens its input to a Loci first and returns
the singletons form.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

import numpy as np

from molselect.core.logging_utils import get_logger
from molselect.model.bonds import iter_bonded
from molselect.model.loci import Loci, LociElement
from molselect.model.selection import StructureSelection
from molselect.runtime.context import QueryContext
from molselect.runtime.spatial import StructureLookup3D

logger = get_logger(__name__)

BondTest = Optional[Callable[[QueryContext], bool]]


def _flatten(ctx: QueryContext, selection: StructureSelection) -> Loci:
    if selection.source.root is not ctx.input_structure.root:
        logger.debug("Operand selection belongs to another structure; treating it as empty")
        return Loci.empty(ctx.input_structure)
    return selection.to_loci()


def _result(ctx: QueryContext, loci: Loci) -> StructureSelection:
    if loci.is_empty:
        return StructureSelection.empty(ctx.input_structure)
    return StructureSelection.singletons(ctx.input_structure, loci.to_structure())


def expand_whole_residues(ctx: QueryContext, loci: Loci) -> Loci:
    """Add every atom of each touched residue that the input structure contains."""
    out = []
    for e in loci.elements:
        unit = ctx.unit(e.unit.id) or e.unit
        model = unit.model
        residues = np.unique(model.atom_residue[e.indices])
        starts = model.residue_offsets[residues]
        ends = model.residue_offsets[residues + 1]
        full = np.concatenate([np.arange(s, t) for s, t in zip(starts, ends)])
        out.append(LociElement(unit, np.intersect1d(full, unit.elements, assume_unique=True)))
    return Loci(loci.structure, out)


# -- Combinators --------------------------------------------------------------

def merge(ctx: QueryContext, selections: Iterable[StructureSelection]) -> StructureSelection:
    """Concatenate groups in argument order, without deduplication."""
    groups = []
    for selection in selections:
        if selection.source.root is not ctx.input_structure.root:
            logger.debug("merge: skipping selection from another structure")
            continue
        groups.extend(selection.groups)
    return StructureSelection.sequence(ctx.input_structure, groups)


# -- Set algebra --------------------------------------------------------------

def union(ctx: QueryContext, selection: StructureSelection) -> StructureSelection:
    return _result(ctx, _flatten(ctx, selection))


def except_by(ctx: QueryContext, selection: StructureSelection, by: StructureSelection) -> StructureSelection:
    return _result(ctx, _flatten(ctx, selection).subtract(_flatten(ctx, by)))


def intersect_by(ctx: QueryContext, selection: StructureSelection, by: StructureSelection) -> StructureSelection:
    return _result(ctx, _flatten(ctx, selection).intersect(_flatten(ctx, by)))


# -- Expansion ----------------------------------------------------------------

def whole_residues(ctx: QueryContext, selection: StructureSelection) -> StructureSelection:
    return _result(ctx, expand_whole_residues(ctx, _flatten(ctx, selection)))


def include_connected(
    ctx: QueryContext,
    selection: StructureSelection,
    layer_count: int = 1,
    as_whole_residues: bool = False,
    bond_test: BondTest = None,
    fixed_point: bool = False,
) -> StructureSelection:
    """Breadth-first expansion over bonds, ``layer_count`` hops or until nothing is added."""
    structure = ctx.input_structure
    seed = _flatten(ctx, selection)
    if as_whole_residues:
        seed = expand_whole_residues(ctx, seed)

    selected: dict[int, set[int]] = {e.unit.id: set(e.indices.tolist()) for e in seed.elements}
    units = {e.unit.id: ctx.unit(e.unit.id) or e.unit for e in seed.elements}
    frontier = [(units[e.unit.id], int(i)) for e in seed.elements for i in e.indices]

    layer = 0
    while frontier and (fixed_point or layer < layer_count):
        layer += 1
        added = []
        for unit, a in frontier:
            table = ctx.bond_table(unit.model)
            for partner, b, flags in iter_bonded(structure, unit, a, table):
                if b in selected.get(partner.id, ()):
                    continue
                if bond_test is not None:
                    ctx.element.set(unit, a)
                    ctx.bond.set(unit, a, partner, b, flags)
                    if not bond_test(ctx):
                        continue
                selected.setdefault(partner.id, set()).add(b)
                units.setdefault(partner.id, partner)
                added.append((partner, b))
        frontier = added

    result = Loci(structure, [
        LociElement(units[uid], np.asarray(sorted(atoms), dtype=np.int64))
        for uid, atoms in selected.items()
    ])
    if as_whole_residues:
        result = expand_whole_residues(ctx, result)
    return _result(ctx, result)


def include_surroundings(
    ctx: QueryContext,
    selection: StructureSelection,
    radius: float,
    as_whole_residues: bool = False,
) -> StructureSelection:
    """Every atom within ``radius`` Angstrom (inclusive) of any seed atom."""
    structure = ctx.input_structure
    seed = _flatten(ctx, selection)
    if as_whole_residues:
        seed = expand_whole_residues(ctx, seed)
    if seed.is_empty:
        return StructureSelection.empty(structure)

    lookup = StructureLookup3D(structure)
    points = np.concatenate([e.unit.coordinates(e.indices) for e in seed.elements])
    found = Loci.from_element_map(structure, lookup.element_map(lookup.within(points, radius)))
    result = seed.union(found)
    if as_whole_residues:
        result = expand_whole_residues(ctx, result)
    return _result(ctx, result)
