"""molselect.model — read-only structure model consumed by the query runtime.

Architecture:
    - hierarchy.py: value objects (Entity, Chain, Residue, Atom) built by parsers
    - model.py: Model, the hierarchy flattened into numpy arrays
    - structure.py: Unit / Structure (chains placed by symmetry operators)
    - location.py: Location and BondLocation cursors
    - loci.py: Loci, per-unit atom index sets with set algebra
    - selection.py: StructureSelection (singletons or groups)
    - bonds.py: BondTable adjacency and cross-unit bond iteration

Usage::

    from molselect.model import Model, Structure, Loci

    structure = Structure.from_model(model)
    everything = Loci.from_structure(structure)
"""

from molselect.model.bonds import BondTable, get_bond_table, iter_bonded
from molselect.model.hierarchy import (
    Atom,
    Chain,
    Entity,
    ExplicitBond,
    Residue,
    SecondaryStructureRange,
    StructureMetadata,
)
from molselect.model.location import BondLocation, Location
from molselect.model.loci import Loci, LociElement
from molselect.model.model import Model
from molselect.model.selection import StructureSelection
from molselect.model.structure import IDENTITY, Structure, SymmetryOperator, Unit, UnitSymmetryGroup
from molselect.model.types import BondType, SecondaryStructureType

__all__ = [
    # Hierarchy
    "Atom",
    "Chain",
    "Entity",
    "ExplicitBond",
    "Residue",
    "SecondaryStructureRange",
    "StructureMetadata",
    # Runtime view
    "Model",
    "Structure",
    "SymmetryOperator",
    "IDENTITY",
    "Unit",
    "UnitSymmetryGroup",
    "Location",
    "BondLocation",
    "Loci",
    "LociElement",
    "StructureSelection",
    # Bonds
    "BondTable",
    "BondType",
    "SecondaryStructureType",
    "get_bond_table",
    "iter_bonded",
]
