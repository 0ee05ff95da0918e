"""Legacy PDB format reader.

Reads .pdb / .ent / .ent.gz files into a Model. Polymer chains keep the
author chain id; every ligand instance gets its own non-polymer chain and
the waters of each author chain are collected into one water chain, so the
result has the same shape as an mmCIF file of the same entry.

Single Responsibility: only handles PDB format.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from molselect.core.logging_utils import get_logger
from molselect.model.hierarchy import (
    Atom,
    Chain,
    Entity,
    ExplicitBond,
    Residue,
    SecondaryStructureRange,
    StructureMetadata,
)
from molselect.model.model import Model
from molselect.model.types import (
    METAL_ELEMENTS,
    WATER_NAMES,
    BondType,
    SecondaryStructureType,
    guess_chem_comp_type,
)
from molselect.parsers.base import (
    StructureParser,
    guess_nonpolymer_subtype,
    guess_polymer_subtype,
    is_standard_residue,
    one_letter,
    parse_float,
    parse_int,
    read_lines,
)

logger = get_logger(__name__)

_BACKBONE_HINTS = ({"N", "CA", "C"}, {"P", "O3'"})


@dataclass
class _PendingResidue:
    chain: str
    name: str
    seq_id: int
    ins_code: str
    is_het: bool
    after_ter: bool
    alt_id: str = ""
    atoms: list[Atom] = field(default_factory=list)

    def to_residue(self) -> Residue:
        return Residue(
            name=self.name,
            seq_id=self.seq_id,
            atoms=tuple(self.atoms),
            one_letter=one_letter(self.name),
            ins_code=self.ins_code,
            is_standard=is_standard_residue(self.name),
            chem_comp_type=guess_chem_comp_type(self.name),
        )

    def looks_polymeric(self) -> bool:
        names = {a.name for a in self.atoms}
        return any(hint <= names for hint in _BACKBONE_HINTS)


def _element_from(line: str, name: str) -> str:
    element = line[76:78].strip()
    if element:
        return element.upper()
    letters = "".join(c for c in name if c.isalpha())
    return letters[:1].upper() or "X"


class PDBModelReader:
    """Builds a Model from the lines of one PDB file."""

    def __init__(self, lines: list[str], source_path: Optional[Path] = None):
        self._lines = [line.rstrip("\r\n").ljust(80) for line in lines]
        self._source_path = source_path
        self._residues: list[_PendingResidue] = []
        self._lookup: dict[tuple[str, int, str, str], int] = {}
        self._serial_elements: dict[int, str] = {}
        self._het_names: dict[str, str] = {}

    def read(self) -> Model:
        self._read_atoms()
        self._het_names = self._read_het_names()
        entities = self._build_entities()
        return Model(
            self._build_metadata(),
            entities,
            bonds=self._build_bonds(),
            secondary_structure=self._build_secondary_structure(),
            chem_comp_names=self._het_names,
        )

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _build_metadata(self) -> StructureMetadata:
        entry_id = ""
        title = ""
        method = None
        resolution = None

        for line in self._lines:
            rec = line[:6].strip()
            if rec == "HEADER":
                entry_id = line[62:66].strip()
            elif rec == "TITLE":
                title += line[10:80].strip() + " "
            elif rec == "EXPDTA":
                method = line[10:79].strip()
            elif rec == "REMARK" and line[7:10].strip() == "2" and "RESOLUTION" in line.upper():
                m = re.search(r"(\d+\.\d+)\s*ANGSTROM", line, re.I)
                if m:
                    resolution = float(m.group(1))

        if not entry_id and self._source_path:
            m = re.search(r"(?:pdb)?([0-9][a-z0-9]{3})", self._source_path.stem, re.I)
            entry_id = m.group(1).upper() if m else self._source_path.stem

        return StructureMetadata(
            entry_id=entry_id,
            format="pdb",
            method=method,
            resolution=resolution,
            title=title.strip() or None,
        )

    def _read_atoms(self) -> None:
        terminated: set[str] = set()
        current: Optional[_PendingResidue] = None
        for line in self._lines:
            rec = line[:6].strip()
            if rec == "ENDMDL":
                break
            if rec == "TER":
                if line[6:].strip():
                    terminated.add(line[21])
                elif current is not None:
                    terminated.add(current.chain)
                continue
            if rec not in ("ATOM", "HETATM"):
                continue
            try:
                serial = int(line[6:11])
                name = line[12:16].strip()
                x, y, z = float(line[30:38]), float(line[38:46]), float(line[46:54])
                seq_id = int(line[22:26])
            except (ValueError, IndexError):
                logger.debug("Skipping malformed record: %s", line.rstrip())
                continue
            alt = line[16].strip()
            res_name = line[17:20].strip()
            chain_id = line[21]
            ins_code = line[26].strip()

            if (
                current is None
                or current.chain != chain_id
                or current.seq_id != seq_id
                or current.ins_code != ins_code
                or current.name != res_name
            ):
                current = _PendingResidue(
                    chain_id, res_name, seq_id, ins_code,
                    is_het=rec == "HETATM", after_ter=chain_id in terminated,
                )
                self._residues.append(current)
            if alt:
                if not current.alt_id:
                    current.alt_id = alt
                elif alt != current.alt_id:
                    continue

            element = _element_from(line, name)
            current.atoms.append(Atom(
                serial=serial,
                name=name,
                element=element,
                x=x,
                y=y,
                z=z,
                occupancy=parse_float(line[54:60], 1.0),
                b_factor=parse_float(line[60:66]),
                alt_id=alt,
                charge=_parse_charge(line[78:80]),
            ))
            self._lookup[(chain_id, seq_id, ins_code, name)] = serial
            self._serial_elements[serial] = element

    def _read_het_names(self) -> dict[str, str]:
        names: dict[str, str] = {}
        for line in self._lines:
            if line[:6].strip() != "HETNAM":
                continue
            het_id = line[11:14].strip()
            text = line[15:70].strip()
            if not het_id or not text:
                continue
            previous = names.get(het_id, "")
            if previous and not previous.endswith("-"):
                previous += " "
            names[het_id] = previous + text
        return names

    def _read_compounds(self) -> list[tuple[str, list[str]]]:
        """(molecule name, chain ids) per COMPND MOL_ID."""
        text = "".join(line[10:80].rstrip() + " " for line in self._lines if line[:6].strip() == "COMPND")
        molecules: list[tuple[str, list[str]]] = []
        name = ""
        chains: list[str] = []
        for part in text.split(";"):
            key, sep, value = part.partition(":")
            if not sep:
                continue
            key = key.strip().upper()
            value = value.strip()
            if key == "MOL_ID":
                if chains:
                    molecules.append((name, chains))
                name, chains = "", []
            elif key == "MOLECULE":
                name = value
            elif key == "CHAIN":
                chains = [c.strip() for c in value.split(",") if c.strip()]
        if chains:
            molecules.append((name, chains))
        return molecules

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def _classify(self) -> tuple[dict[str, list[_PendingResidue]], list[_PendingResidue], dict[str, list[_PendingResidue]]]:
        by_chain: dict[str, list[_PendingResidue]] = {}
        for r in self._residues:
            by_chain.setdefault(r.chain, []).append(r)

        polymer: dict[str, list[_PendingResidue]] = {}
        ligands: list[_PendingResidue] = []
        waters: dict[str, list[_PendingResidue]] = {}
        for chain_id, residues in by_chain.items():
            last_atom = max((i for i, r in enumerate(residues) if not r.is_het), default=-1)
            for i, r in enumerate(residues):
                if r.name.upper() in WATER_NAMES:
                    waters.setdefault(chain_id, []).append(r)
                elif not r.is_het or (not r.after_ter and (i < last_atom or r.looks_polymeric())):
                    polymer.setdefault(chain_id, []).append(r)
                else:
                    ligands.append(r)
        return polymer, ligands, waters

    def _build_entities(self) -> list[Entity]:
        polymer, ligands, waters = self._classify()
        entities: list[Entity] = []

        def next_id() -> str:
            return str(len(entities) + 1)

        polymer_chains = {
            cid: Chain(cid, tuple(r.to_residue() for r in residues), auth_chain_id=cid)
            for cid, residues in polymer.items()
        }
        grouped: list[tuple[str, list[str]]] = []
        assigned: set[str] = set()
        for name, chain_ids in self._read_compounds():
            members = [c for c in chain_ids if c in polymer_chains and c not in assigned]
            if members:
                grouped.append((name, members))
                assigned.update(members)
        grouped.extend(("", [cid]) for cid in polymer_chains if cid not in assigned)
        grouped.sort(key=lambda g: list(polymer_chains).index(g[1][0]))

        for name, members in grouped:
            eid = next_id()
            chains = tuple(_with_entity(polymer_chains[c], eid) for c in members)
            subtype = guess_polymer_subtype(r.name for r in chains[0].residues)
            entities.append(Entity(eid, "polymer", name, chains, subtype))

        by_name: dict[str, list[Chain]] = {}
        counters: dict[str, int] = {}
        for r in ligands:
            counters[r.chain] = counters.get(r.chain, 0) + 1
            label = f"{r.chain}_{counters[r.chain]}"
            by_name.setdefault(r.name, []).append(Chain(label, (r.to_residue(),), auth_chain_id=r.chain))
        for res_name, chains in by_name.items():
            eid = next_id()
            subtype = guess_nonpolymer_subtype([guess_chem_comp_type(res_name)])
            entities.append(Entity(
                eid, "non-polymer", self._het_names.get(res_name, res_name),
                tuple(_with_entity(c, eid) for c in chains), subtype,
            ))

        if waters:
            eid = next_id()
            chains = tuple(
                Chain(f"{cid}_W", tuple(r.to_residue() for r in residues), eid, cid)
                for cid, residues in waters.items()
            )
            entities.append(Entity(eid, "water", "water", chains))
        return entities

    # ------------------------------------------------------------------
    # Bonds and secondary structure
    # ------------------------------------------------------------------

    def _link_flags(self, a: int, b: int) -> BondType:
        if self._serial_elements.get(a) in METAL_ELEMENTS or self._serial_elements.get(b) in METAL_ELEMENTS:
            return BondType.METALLIC_COORDINATION
        return BondType.COVALENT

    def _build_bonds(self) -> list[ExplicitBond]:
        bonds: list[ExplicitBond] = []
        for line in self._lines:
            rec = line[:6].strip()
            if rec == "SSBOND":
                a = self._lookup.get((line[15], parse_int(line[17:21]), line[21].strip(), "SG"))
                b = self._lookup.get((line[29], parse_int(line[31:35]), line[35].strip(), "SG"))
                if a is not None and b is not None:
                    bonds.append(ExplicitBond(a, b, BondType.COVALENT | BondType.DISULFIDE))
            elif rec == "LINK":
                a = self._lookup.get((line[21], parse_int(line[22:26]), line[26].strip(), line[12:16].strip()))
                b = self._lookup.get((line[51], parse_int(line[52:56]), line[56].strip(), line[42:46].strip()))
                if a is not None and b is not None:
                    bonds.append(ExplicitBond(a, b, self._link_flags(a, b)))
            elif rec == "CONECT":
                a = parse_int(line[6:11], -1)
                for start in (11, 16, 21, 26):
                    b = parse_int(line[start:start + 5], -1)
                    if a in self._serial_elements and b in self._serial_elements:
                        bonds.append(ExplicitBond(a, b, self._link_flags(a, b)))
        return bonds

    def _build_secondary_structure(self) -> list[SecondaryStructureRange]:
        ranges = []
        for line in self._lines:
            rec = line[:6].strip()
            if rec == "HELIX":
                ranges.append(SecondaryStructureRange(
                    line[19], parse_int(line[21:25]), parse_int(line[33:37]), SecondaryStructureType.HELIX
                ))
            elif rec == "SHEET":
                ranges.append(SecondaryStructureRange(
                    line[21], parse_int(line[22:26]), parse_int(line[33:37]), SecondaryStructureType.BETA
                ))
        return ranges


def _with_entity(chain: Chain, entity_id: str) -> Chain:
    return Chain(chain.chain_id, chain.residues, entity_id, chain.auth_chain_id, chain.object_primitive)


def _parse_charge(text: str) -> float:
    text = text.strip()
    if len(text) == 2 and text[0].isdigit() and text[1] in "+-":
        return float(text[0]) * (1 if text[1] == "+" else -1)
    return 0.0


class PDBFormatParser(StructureParser):
    """Parse PDB-format files (.pdb, .ent, .ent.gz) into a Model."""

    def parse(self, path: Path) -> Model:
        path = Path(path)
        return PDBModelReader(read_lines(path), source_path=path).read()

    @staticmethod
    def extensions() -> list[str]:
        return [".pdb", ".ent", ".ent.gz", ".pdb.gz"]
