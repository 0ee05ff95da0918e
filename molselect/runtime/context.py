from __future__ import annotations

from typing import Union

import numpy as np

from molselect.core.logging_utils import get_logger
from molselect.model.bonds import BondTable, get_bond_table
from molselect.model.location import BondLocation, Location
from molselect.model.loci import Loci, LociElement
from molselect.model.model import Model
from molselect.model.selection import StructureSelection
from molselect.model.structure import Structure

logger = get_logger(__name__)

CurrentSelection = Union[Loci, StructureSelection, Structure, None]


def normalize_current(structure: Structure, current: CurrentSelection) -> Loci:
    """Turn whatever the caller holds into a Loci over ``structure``.

    A selection made on another structure (e.g. a stale one kept after a new
    file was loaded) becomes empty. A selection over the root is clipped
    to the atoms of a child ``structure``.
    """
    if current is None:
        return Loci.empty(structure)
    if isinstance(current, StructureSelection):
        current = current.to_loci()
    elif isinstance(current, Structure):
        current = Loci.from_structure(current)
    if current.structure.root is not structure.root:
        logger.debug("Current selection belongs to another structure; using an empty selection")
        return Loci.empty(structure)
    if current.structure is structure:
        return current
    elements = []
    for e in current.elements:
        unit = structure.unit_map.get(e.unit.id)
        if unit is not None:
            elements.append(LociElement(unit, np.intersect1d(e.indices, unit.elements, assume_unique=True)))
    return Loci(structure, elements)


class QueryContext:
    """State of one evaluation: the input structure, the current selection and cursors.

    Created per call and discarded afterwards. Bond tables resolved here are
    scratch data of this evaluation only.
    """

    def __init__(self, structure: Structure, current_selection: CurrentSelection = None):
        self.input_structure = structure
        self.current_loci = normalize_current(structure, current_selection)
        self.element = Location(structure)
        self.bond = BondLocation(structure)
        self._bond_tables: dict[int, BondTable] = {}

    def bond_table(self, model: Model) -> BondTable:
        table = self._bond_tables.get(model.id)
        if table is None:
            table = get_bond_table(model)
            self._bond_tables[model.id] = table
        return table

    def current_selection(self) -> StructureSelection:
        return StructureSelection.from_loci(self.current_loci)

    def unit(self, unit_id: int):
        return self.input_structure.unit_map.get(unit_id)
