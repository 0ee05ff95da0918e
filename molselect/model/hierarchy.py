"""Value objects describing a structure before it is flattened into a Model.

Hierarchy:
    Entity
    └── chains: tuple[Chain]
        └── residues: tuple[Residue]
            └── atoms: tuple[Atom]

Parsers and tests build this tree; ``Model`` turns it into flat arrays.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from molselect.model.types import BondType, SecondaryStructureType


@dataclass(frozen=True)
class Atom:
    """Single atom with coordinates and identity."""

    serial: int
    name: str
    element: str
    x: float
    y: float
    z: float
    occupancy: float = 1.0
    b_factor: float = 0.0
    alt_id: str = ""
    charge: float = 0.0

    @property
    def coords(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Residue:
    """Single residue (amino acid, nucleotide, ligand or water)."""

    name: str
    seq_id: int
    atoms: tuple[Atom, ...] = ()
    one_letter: str = "X"
    ins_code: str = ""
    is_standard: bool = True
    chem_comp_type: str = ""

    @property
    def ca(self) -> Optional[Atom]:
        """Alpha-carbon atom, or None."""
        for a in self.atoms:
            if a.name.strip() == "CA":
                return a
        return None

    @property
    def num_atoms(self) -> int:
        return len(self.atoms)


@dataclass(frozen=True)
class Chain:
    """Single chain of residues. ``chain_id`` is the label (asym) id."""

    chain_id: str
    residues: tuple[Residue, ...] = ()
    entity_id: str = ""
    auth_chain_id: str = ""
    object_primitive: str = "atomistic"

    @property
    def sequence(self) -> str:
        return "".join(r.one_letter for r in self.residues if r.is_standard)

    @property
    def num_residues(self) -> int:
        return len(self.residues)

    def __len__(self) -> int:
        return len(self.residues)

    def __iter__(self) -> Iterator[Residue]:
        return iter(self.residues)


@dataclass(frozen=True)
class Entity:
    """Biological entity (polymer, non-polymer, water, branched)."""

    entity_id: str
    entity_type: str
    description: str = ""
    chains: tuple[Chain, ...] = ()
    subtype: str = ""

    @property
    def is_polymer(self) -> bool:
        return self.entity_type == "polymer"

    @property
    def is_nonpolymer(self) -> bool:
        return self.entity_type == "non-polymer"

    @property
    def is_water(self) -> bool:
        return self.entity_type == "water"

    @property
    def descriptions(self) -> tuple[str, ...]:
        """Description split into its comma separated parts."""
        if not self.description:
            return ()
        return tuple(p.strip() for p in self.description.split(",") if p.strip())


@dataclass(frozen=True)
class StructureMetadata:
    entry_id: str
    format: str = "unknown"
    method: Optional[str] = None
    resolution: Optional[float] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class ExplicitBond:
    """Bond declared by the source file, addressed by atom serials."""

    serial_a: int
    serial_b: int
    flags: BondType = BondType.COVALENT


@dataclass(frozen=True)
class SecondaryStructureRange:
    """Annotated helix or strand over an inclusive residue range of one chain."""

    chain_id: str
    start_seq_id: int
    end_seq_id: int
    kind: SecondaryStructureType
