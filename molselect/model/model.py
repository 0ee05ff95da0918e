"""Model: one set of coordinates with its hierarchy flattened into arrays.

Atoms are stored in hierarchy order (entity, chain, residue, atom), so every
chain and every residue covers a contiguous range of atom indices. The
runtime addresses atoms by that index ("element").
"""

from __future__ import annotations

import itertools
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from molselect.core.logging_utils import get_logger
from molselect.model.hierarchy import (
    Chain,
    Entity,
    ExplicitBond,
    Residue,
    SecondaryStructureRange,
    StructureMetadata,
)

logger = get_logger(__name__)

_model_ids = itertools.count(1)


class Model:
    """Flat, read-only view of an entity/chain/residue/atom hierarchy."""

    def __init__(
        self,
        metadata: StructureMetadata,
        entities: Sequence[Entity],
        bonds: Iterable[ExplicitBond] = (),
        secondary_structure: Iterable[SecondaryStructureRange] = (),
        chem_comp_names: Optional[dict[str, str]] = None,
    ):
        self.id = next(_model_ids)
        self.metadata = metadata
        self.entities: list[Entity] = list(entities)
        self.chem_comp_names: dict[str, str] = dict(chem_comp_names or {})
        self.secondary_structure_ranges: list[SecondaryStructureRange] = list(secondary_structure)
        self.custom_properties: dict[str, Any] = {}

        chains: list[Chain] = []
        chain_entity: list[int] = []
        residues: list[Residue] = []
        residue_chain: list[int] = []
        chain_residue_offsets = [0]
        residue_offsets = [0]
        coords: list[tuple[float, float, float]] = []
        names: list[str] = []
        elements: list[str] = []
        serials: list[int] = []
        b_factors: list[float] = []
        occupancies: list[float] = []

        for ei, entity in enumerate(self.entities):
            for chain in entity.chains:
                ci = len(chains)
                chains.append(chain)
                chain_entity.append(ei)
                for residue in chain.residues:
                    residues.append(residue)
                    residue_chain.append(ci)
                    for atom in residue.atoms:
                        coords.append(atom.coords)
                        names.append(atom.name)
                        elements.append(atom.element.upper())
                        serials.append(atom.serial)
                        b_factors.append(atom.b_factor)
                        occupancies.append(atom.occupancy)
                    residue_offsets.append(len(coords))
                chain_residue_offsets.append(len(residues))

        self.chains = chains
        self.residues = residues
        self.chain_entity = np.asarray(chain_entity, dtype=np.int32)
        self.residue_chain = np.asarray(residue_chain, dtype=np.int32)
        self.chain_residue_offsets = np.asarray(chain_residue_offsets, dtype=np.int64)
        self.residue_offsets = np.asarray(residue_offsets, dtype=np.int64)
        self.coords = np.asarray(coords, dtype=np.float64).reshape(-1, 3)
        self.atom_names = np.asarray(names, dtype=object)
        self.elements = np.asarray(elements, dtype=object)
        self.serials = np.asarray(serials, dtype=np.int64)
        self.b_factors = np.asarray(b_factors, dtype=np.float64)
        self.occupancies = np.asarray(occupancies, dtype=np.float64)

        residue_sizes = np.diff(self.residue_offsets)
        self.atom_residue = np.repeat(np.arange(len(residues), dtype=np.int32), residue_sizes)
        self.chain_atom_offsets = self.residue_offsets[self.chain_residue_offsets]
        self.atom_chain = self.residue_chain[self.atom_residue] if len(residues) else np.zeros(0, np.int32)

        self.serial_index: dict[int, int] = {int(s): i for i, s in enumerate(self.serials)}
        self.explicit_bonds = self._resolve_bonds(bonds)

    def _resolve_bonds(self, bonds: Iterable[ExplicitBond]) -> list[tuple[int, int, int]]:
        resolved = []
        for bond in bonds:
            a = self.serial_index.get(bond.serial_a)
            b = self.serial_index.get(bond.serial_b)
            if a is None or b is None or a == b:
                logger.debug("Skipping bond %d-%d: atom not in model", bond.serial_a, bond.serial_b)
                continue
            resolved.append((a, b, int(bond.flags)))
        return resolved

    @property
    def label(self) -> str:
        return self.metadata.entry_id

    @property
    def element_count(self) -> int:
        return int(self.coords.shape[0])

    @property
    def residue_count(self) -> int:
        return len(self.residues)

    def residue_atoms(self, residue_index: int) -> np.ndarray:
        """Atom indices of one residue."""
        return np.arange(self.residue_offsets[residue_index], self.residue_offsets[residue_index + 1])

    def chain_atoms(self, chain_index: int) -> np.ndarray:
        return np.arange(self.chain_atom_offsets[chain_index], self.chain_atom_offsets[chain_index + 1])

    def entity_of_chain(self, chain_index: int) -> Entity:
        return self.entities[int(self.chain_entity[chain_index])]

    def find_chain(self, chain_id: str) -> Optional[int]:
        for i, c in enumerate(self.chains):
            if c.chain_id == chain_id:
                return i
        return None

    def __repr__(self) -> str:
        return (
            f"<Model {self.label} id={self.id} chains={len(self.chains)} "
            f"residues={self.residue_count} atoms={self.element_count}>"
        )
