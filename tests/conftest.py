"""Shared fixtures: small synthetic structures built atom by atom."""

from __future__ import annotations

import itertools
from typing import Optional

import pytest

from molselect.config import SelectionSettings
from molselect.model import (
    Atom,
    BondType,
    Chain,
    Entity,
    ExplicitBond,
    Model,
    Residue,
    SecondaryStructureRange,
    Structure,
    StructureMetadata,
)
from molselect.model.types import (
    STANDARD_RESIDUE_NAMES,
    THREE_TO_ONE,
    SecondaryStructureType,
    guess_chem_comp_type,
)


class StructureBuilder:
    """Assemble a hierarchy with sequential atom serials.

    Atoms are given as ``(name, element, (x, y, z))``; residues as
    ``(name, seq_id, atoms)``. Bonds address atoms as ``(chain_id, seq_id, atom_name)``.
    """

    def __init__(self, entry_id: str = "TEST"):
        self.entry_id = entry_id
        self._serial = itertools.count(1)
        self._entities: dict[str, tuple[str, str, str, list[Chain]]] = {}
        self.serials: dict[tuple[str, int, str], int] = {}
        self.bonds: list[ExplicitBond] = []
        self.ranges: list[SecondaryStructureRange] = []
        self.chem_comp_names: dict[str, str] = {}

    def entity(self, entity_id: str, entity_type: str, subtype: str = "", description: str = "") -> "StructureBuilder":
        self._entities[entity_id] = (entity_type, subtype, description, [])
        return self

    def chain(self, entity_id: str, chain_id: str, residues, object_primitive: str = "atomistic") -> "StructureBuilder":
        built = tuple(self._residue(chain_id, *r) for r in residues)
        self._entities[entity_id][3].append(
            Chain(chain_id, built, entity_id, chain_id, object_primitive)
        )
        return self

    def _residue(self, chain_id: str, name: str, seq_id: int, atoms, chem_comp_type: str = "") -> Residue:
        built = []
        for atom_name, element, xyz in atoms:
            serial = next(self._serial)
            self.serials[(chain_id, seq_id, atom_name)] = serial
            built.append(Atom(serial, atom_name, element, *xyz))
        return Residue(
            name=name,
            seq_id=seq_id,
            atoms=tuple(built),
            one_letter=THREE_TO_ONE.get(name, "X"),
            is_standard=name in STANDARD_RESIDUE_NAMES,
            chem_comp_type=chem_comp_type or guess_chem_comp_type(name),
        )

    def bond(self, a, b, flags: BondType = BondType.COVALENT) -> "StructureBuilder":
        self.bonds.append(ExplicitBond(self.serials[a], self.serials[b], flags))
        return self

    def helix(self, chain_id: str, start: int, end: int) -> "StructureBuilder":
        self.ranges.append(SecondaryStructureRange(chain_id, start, end, SecondaryStructureType.HELIX))
        return self

    def model(self) -> Model:
        entities = [
            Entity(eid, etype, desc, tuple(chains), subtype)
            for eid, (etype, subtype, desc, chains) in self._entities.items()
        ]
        return Model(
            StructureMetadata(self.entry_id, format="test"),
            entities,
            bonds=self.bonds,
            secondary_structure=self.ranges,
            chem_comp_names=self.chem_comp_names,
        )

    def structure(self) -> Structure:
        return Structure.from_model(self.model())


def backbone(x: float, y: float = 0.0):
    """N, CA, C, O of one residue laid out along x."""
    return [
        ("N", "N", (x, y, 0.0)),
        ("CA", "C", (x + 1.46, y, 0.0)),
        ("C", "C", (x + 2.0, y + 1.4, 0.0)),
        ("O", "O", (x + 1.4, y + 2.4, 0.0)),
    ]


@pytest.fixture
def no_inference() -> SelectionSettings:
    return SelectionSettings(infer_bonds=False, compute_secondary_structure=False)


@pytest.fixture
def protein_ligand() -> Structure:
    """One ALA residue in a polypeptide entity plus a single-atom ligand."""
    return (
        StructureBuilder("PL01")
        .entity("1", "polymer", "polypeptide(L)", "LYSOZYME")
        .chain("1", "A", [("ALA", 1, backbone(0.0))])
        .entity("2", "non-polymer", description="ZINC ION")
        .chain("2", "B", [("LIG", 101, [("C1", "C", (20.0, 0.0, 0.0))])])
        .structure()
    )


@pytest.fixture
def disulfide() -> Structure:
    """CYS 1 and CYS 3 linked through SG-SG (2.05 A); ALA 2 far away."""
    return (
        StructureBuilder("SS01")
        .entity("1", "polymer", "polypeptide(L)")
        .chain("1", "A", [
            ("CYS", 1, [
                ("N", "N", (0.0, 0.0, 0.0)),
                ("CA", "C", (1.5, 0.0, 0.0)),
                ("SG", "S", (1.5, 1.8, 0.0)),
            ]),
            ("ALA", 2, [
                ("N", "N", (12.0, 0.0, 0.0)),
                ("CA", "C", (13.5, 0.0, 0.0)),
            ]),
            ("CYS", 3, [
                ("SG", "S", (1.5, 3.85, 0.0)),
                ("CA", "C", (1.5, 5.65, 0.0)),
                ("N", "N", (0.0, 5.65, 0.0)),
            ]),
        ])
        .structure()
    )


@pytest.fixture
def shells() -> Structure:
    """Seed atom at the origin (seq 1) and atoms at 1, 4, 5, 6 and 10 A (seq 2-6)."""
    residues = [("UNL", 1, [("C1", "C", (0.0, 0.0, 0.0))])]
    for seq_id, d in enumerate((1.0, 4.0, 5.0, 6.0, 10.0), start=2):
        residues.append(("UNL", seq_id, [("C1", "C", (d, 0.0, 0.0))]))
    return (
        StructureBuilder("SH01")
        .entity("1", "non-polymer")
        .chain("1", "X", residues)
        .structure()
    )


@pytest.fixture
def linear_chain() -> Structure:
    """Atoms A-B-C-D bonded in a line, one residue each."""
    b = StructureBuilder("LC01").entity("1", "non-polymer")
    names = "ABCD"
    b.chain("1", "X", [
        ("UNL", i + 1, [(name, "C", (3.0 * i, 0.0, 0.0))]) for i, name in enumerate(names)
    ])
    for i in range(3):
        b.bond(("X", i + 1, names[i]), ("X", i + 2, names[i + 1]))
    return b.structure()


@pytest.fixture
def mixed() -> Structure:
    """Protein (3 residues, helix 1-2), heme-like ligand bonded to residue 3, benzene, water."""
    b = StructureBuilder("MX01")
    b.chem_comp_names["HEM"] = "PROTOPORPHYRIN IX CONTAINING FE"
    b.entity("1", "polymer", "polypeptide(L)", "GLOBIN")
    b.chain("1", "A", [
        ("ALA", 1, backbone(0.0)),
        ("GLY", 2, backbone(3.8)),
        ("HIS", 3, backbone(7.6) + [("NE2", "N", (10.0, -1.5, 0.0))]),
    ])
    b.entity("2", "non-polymer", description="PROTOPORPHYRIN IX CONTAINING FE")
    b.chain("2", "B", [("HEM", 201, [
        ("FE", "FE", (10.0, -3.6, 0.0)),
        ("NA", "N", (11.5, -4.5, 0.0)),
    ])])
    b.entity("3", "non-polymer", description="BENZENE")
    ring = [
        ("C1", "C", (30.0 + 1.39, 0.0, 0.0)),
        ("C2", "C", (30.0 + 0.695, 1.204, 0.0)),
        ("C3", "C", (30.0 - 0.695, 1.204, 0.0)),
        ("C4", "C", (30.0 - 1.39, 0.0, 0.0)),
        ("C5", "C", (30.0 - 0.695, -1.204, 0.0)),
        ("C6", "C", (30.0 + 0.695, -1.204, 0.0)),
    ]
    b.chain("3", "C", [("BNZ", 301, ring)])
    b.entity("4", "water", description="water")
    b.chain("4", "W", [
        ("HOH", 401, [("O", "O", (0.0, 10.0, 0.0))]),
        ("HOH", 402, [("O", "O", (40.0, 10.0, 0.0))]),
    ])
    b.bond(("A", 3, "NE2"), ("B", 201, "FE"), BondType.METALLIC_COORDINATION)
    for i in range(6):
        b.bond(("C", 301, f"C{i + 1}"), ("C", 301, f"C{(i + 1) % 6 + 1}"), BondType.COVALENT | BondType.AROMATIC)
    b.helix("A", 1, 2)
    return b.structure()


def atom_names(selection) -> list[str]:
    """Selected atom names in unit/element order."""
    return [loc.unit.model.atom_names[loc.element] for loc in selection.to_loci().locations()]


def seq_ids(selection) -> list[int]:
    out = []
    for loc in selection.to_loci().locations():
        model = loc.unit.model
        out.append(model.residues[model.atom_residue[loc.element]].seq_id)
    return out


def first_unit(structure: Structure, chain_id: Optional[str] = None):
    for u in structure.units:
        if chain_id is None or u.model.chains[u.chain_index].chain_id == chain_id:
            return u
    raise KeyError(chain_id)


# -- PDB text ---------------------------------------------------------------------


def pdb_record(*fields) -> str:
    """Fixed-column record from ``(column, text)`` pairs."""
    line = [" "] * 80
    for col, text in fields:
        line[col:col + len(text)] = text
    return "".join(line).rstrip()


def pdb_atom(rec, serial, name, res, chain, seq, xyz, element, alt=" ") -> str:
    x, y, z = xyz
    return pdb_record(
        (0, rec), (6, f"{serial:>5}"), (12, f" {name:<3}" if len(name) < 4 else name),
        (16, alt), (17, res), (21, chain), (22, f"{seq:>4}"),
        (30, f"{x:8.3f}"), (38, f"{y:8.3f}"), (46, f"{z:8.3f}"),
        (54, "  1.00"), (60, " 10.00"), (76, f"{element:>2}"),
    )
