"""Bond topology: explicit bonds from the file plus distance-based inference."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree

from molselect.config import SelectionSettings
from molselect.core.logging_utils import get_logger
from molselect.model.bonds import BONDS_PROPERTY, BondTable
from molselect.model.model import Model
from molselect.model.types import (
    AROMATIC_RING_ATOMS,
    COVALENT_RADII,
    DEFAULT_COVALENT_RADIUS,
    METAL_ELEMENTS,
    WATER_NAMES,
    BondType,
)
from molselect.props.base import CustomPropertyProvider, register_provider

logger = get_logger(__name__)

_INFERRED = int(BondType.COVALENT | BondType.COMPUTED)
_DISULFIDE = int(BondType.COVALENT | BondType.DISULFIDE | BondType.COMPUTED)

# (atom in residue i, atom in residue i + 1) linking consecutive polymer residues
_POLYMER_LINKS = {("C", "N"), ("O3'", "P"), ("O3*", "P")}


def _radii(model: Model) -> np.ndarray:
    return np.asarray(
        [COVALENT_RADII.get(e, DEFAULT_COVALENT_RADIUS) for e in model.elements], dtype=np.float64
    )


def _is_polymer_link(model: Model, a: int, b: int) -> bool:
    ra, rb = int(model.atom_residue[a]), int(model.atom_residue[b])
    if model.residue_chain[ra] != model.residue_chain[rb] or abs(ra - rb) != 1:
        return False
    if ra > rb:
        a, b = b, a
    return (model.atom_names[a], model.atom_names[b]) in _POLYMER_LINKS


def _is_disulfide(model: Model, a: int, b: int) -> bool:
    if model.atom_names[a] != "SG" or model.atom_names[b] != "SG":
        return False
    ra, rb = model.residues[model.atom_residue[a]], model.residues[model.atom_residue[b]]
    return ra.name == "CYS" and rb.name == "CYS"


def infer_bonds(model: Model, settings: SelectionSettings) -> list[tuple[int, int, int]]:
    """Covalent bonds from interatomic distances.

    Within a residue any pair closer than the sum of covalent radii plus the
    tolerance is bonded. Across residues only polymer links between
    consecutive residues, CYS SG-SG disulfides and bonds touching a
    non-standard residue are kept. Metals and waters only get explicit bonds.
    """
    n = model.element_count
    if n < 2:
        return []
    radii = _radii(model)
    cutoff = 2 * float(radii.max()) + settings.bond_tolerance
    tree = cKDTree(model.coords)
    pairs = tree.query_pairs(r=max(cutoff, settings.disulfide_max_distance), output_type="ndarray")
    if len(pairs) == 0:
        return []

    a, b = pairs[:, 0], pairs[:, 1]
    d = np.linalg.norm(model.coords[a] - model.coords[b], axis=1)
    metal = np.asarray([e in METAL_ELEMENTS for e in model.elements], dtype=bool)
    water = np.asarray([r.name in WATER_NAMES for r in model.residues], dtype=bool)
    standard = np.asarray([r.is_standard for r in model.residues], dtype=bool)
    res_a, res_b = model.atom_residue[a], model.atom_residue[b]

    keep = ~metal[a] & ~metal[b] & ~water[res_a] & ~water[res_b]
    covalent = keep & (d <= radii[a] + radii[b] + settings.bond_tolerance)

    bonds = []
    for i in np.flatnonzero(keep):
        ia, ib = int(a[i]), int(b[i])
        if res_a[i] == res_b[i]:
            if covalent[i]:
                bonds.append((ia, ib, _INFERRED))
        elif _is_disulfide(model, ia, ib):
            if d[i] <= settings.disulfide_max_distance:
                bonds.append((ia, ib, _DISULFIDE))
        elif covalent[i] and (
            _is_polymer_link(model, ia, ib) or not standard[res_a[i]] or not standard[res_b[i]]
        ):
            bonds.append((ia, ib, _INFERRED))
    return bonds


def mark_aromatic(model: Model, pairs: list[tuple[int, int, int]]) -> list[tuple[int, int, int]]:
    """Add AROMATIC to intra-residue bonds between ring atoms of standard aromatic residues."""
    out = []
    for a, b, f in pairs:
        ra = int(model.atom_residue[a])
        if ra == int(model.atom_residue[b]):
            ring = AROMATIC_RING_ATOMS.get(model.residues[ra].name)
            if ring and model.atom_names[a] in ring and model.atom_names[b] in ring:
                f |= int(BondType.AROMATIC)
        out.append((a, b, f))
    return out


class BondsProvider(CustomPropertyProvider):
    name = BONDS_PROPERTY
    label = "Bonds"

    def compute(self, model: Model, settings: SelectionSettings) -> BondTable:
        pairs = list(model.explicit_bonds)
        if settings.infer_bonds:
            pairs.extend(infer_bonds(model, settings))
        table = BondTable.from_pairs(model.element_count, mark_aromatic(model, pairs))
        logger.debug("%s: %d bonds (%d explicit)", model.label, table.bond_count, len(model.explicit_bonds))
        return table

    def attach(self, model: Model, table: BondTable) -> None:
        """Use a table built elsewhere instead of computing one."""
        if table.atom_count != model.element_count:
            raise ValueError(
                f"Bond table covers {table.atom_count} atoms, model has {model.element_count}"
            )
        model.custom_properties[self.name] = table


BONDS = register_provider(BondsProvider())
