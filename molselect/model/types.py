"""Flag types, name sets and element tables shared by the model and the runtime."""

from __future__ import annotations

from enum import IntFlag


class BondType(IntFlag):
    """Bond annotation flags; a bond may carry several."""

    NONE = 0x0
    COVALENT = 0x1
    METALLIC_COORDINATION = 0x2
    HYDROGEN_BOND = 0x4
    DISULFIDE = 0x8
    AROMATIC = 0x10
    COMPUTED = 0x20


class SecondaryStructureType(IntFlag):
    """Per-residue secondary structure flags."""

    NONE = 0x0
    HELIX = 0x2
    BETA = 0x4
    BEND = 0x8
    TURN = 0x10


THREE_TO_ONE = {
    "ALA": "A", "ARG": "R", "ASN": "N", "ASP": "D", "CYS": "C",
    "GLN": "Q", "GLU": "E", "GLY": "G", "HIS": "H", "ILE": "I",
    "LEU": "L", "LYS": "K", "MET": "M", "PHE": "F", "PRO": "P",
    "SER": "S", "THR": "T", "TRP": "W", "TYR": "Y", "VAL": "V",
    "SEC": "U", "PYL": "O",
    "ASX": "B", "GLX": "Z", "XLE": "J", "UNK": "X",
}

AMINO_ACID_NAMES_L = frozenset({
    "HIS", "ARG", "LYS", "ILE", "PHE", "LEU", "TRP", "ALA", "MET", "PRO",
    "CYS", "ASN", "VAL", "GLY", "SER", "GLN", "TYR", "ASP", "GLU", "THR",
    "SEC", "PYL", "UNK",
})

RNA_BASE_NAMES = frozenset({"A", "C", "T", "G", "I", "U", "N"})
DNA_BASE_NAMES = frozenset({"DA", "DC", "DT", "DG", "DI", "DU", "DN"})

WATER_NAMES = frozenset({
    "SOL", "WAT", "HOH", "H2O", "W", "DOD", "D3O", "TIP", "TIP3", "TIP4", "SPC",
})

STANDARD_RESIDUE_NAMES = AMINO_ACID_NAMES_L | RNA_BASE_NAMES | DNA_BASE_NAMES | WATER_NAMES

PROTEIN_BACKBONE_ATOMS = frozenset({
    "CA", "C", "N", "O", "O1", "O2", "OC1", "OC2", "OT1", "OT2", "OX1", "OXT",
    "H", "H1", "H2", "H3", "HA", "HN", "HXT", "HA2", "HA3",
})

NUCLEIC_BACKBONE_ATOMS = frozenset({
    "P", "OP1", "OP2", "HOP2", "HOP3",
    "O2'", "O3'", "O4'", "O5'", "C1'", "C2'", "C3'", "C4'", "C5'",
    "H1'", "H2'", "H2''", "HO2'", "H3'", "H4'", "H5'", "H5''", "HO3'", "HO5'",
    "O2*", "O3*", "O4*", "O5*", "C1*", "C2*", "C3*", "C4*", "C5*",
})

_PURINE_RING = ("N9", "C8", "N7", "C5", "C6", "N1", "C2", "N3", "C4")
_PYRIMIDINE_RING = ("N1", "C2", "N3", "C4", "C5", "C6")
_BENZENE_RING = ("CG", "CD1", "CD2", "CE1", "CE2", "CZ")

# Atoms whose mutual bonds are aromatic in standard residues.
AROMATIC_RING_ATOMS: dict[str, frozenset[str]] = {
    "PHE": frozenset(_BENZENE_RING),
    "TYR": frozenset(_BENZENE_RING),
    "TRP": frozenset({"CG", "CD1", "CD2", "NE1", "CE2", "CE3", "CZ2", "CZ3", "CH2"}),
    "HIS": frozenset({"CG", "ND1", "CD2", "CE1", "NE2"}),
}
for _name in ("A", "G", "DA", "DG"):
    AROMATIC_RING_ATOMS[_name] = frozenset(_PURINE_RING)
for _name in ("C", "T", "U", "DC", "DT", "DU"):
    AROMATIC_RING_ATOMS[_name] = frozenset(_PYRIMIDINE_RING)

# Single-bond covalent radii in Angstrom.
COVALENT_RADII = {
    "H": 0.31, "B": 0.84, "C": 0.76, "N": 0.71, "O": 0.66, "F": 0.57,
    "SI": 1.11, "P": 1.07, "S": 1.05, "CL": 1.02, "SE": 1.20, "BR": 1.20,
    "I": 1.39,
}
DEFAULT_COVALENT_RADIUS = 0.77

METAL_ELEMENTS = frozenset({
    "LI", "NA", "K", "RB", "CS", "BE", "MG", "CA", "SR", "BA", "AL", "GA",
    "SC", "TI", "V", "CR", "MN", "FE", "CO", "NI", "CU", "ZN", "Y", "ZR",
    "MO", "RU", "RH", "PD", "AG", "CD", "IN", "SN", "W", "RE", "OS", "IR",
    "PT", "AU", "HG", "TL", "PB", "BI", "LA", "CE", "GD", "YB", "LU", "U",
})

ELEMENT_NAMES = {
    "H": "Hydrogen", "HE": "Helium", "LI": "Lithium", "BE": "Beryllium",
    "B": "Boron", "C": "Carbon", "N": "Nitrogen", "O": "Oxygen",
    "F": "Fluorine", "NE": "Neon", "NA": "Sodium", "MG": "Magnesium",
    "AL": "Aluminum", "SI": "Silicon", "P": "Phosphorus", "S": "Sulfur",
    "CL": "Chlorine", "AR": "Argon", "K": "Potassium", "CA": "Calcium",
    "SC": "Scandium", "TI": "Titanium", "V": "Vanadium", "CR": "Chromium",
    "MN": "Manganese", "FE": "Iron", "CO": "Cobalt", "NI": "Nickel",
    "CU": "Copper", "ZN": "Zinc", "GA": "Gallium", "GE": "Germanium",
    "AS": "Arsenic", "SE": "Selenium", "BR": "Bromine", "KR": "Krypton",
    "RB": "Rubidium", "SR": "Strontium", "Y": "Yttrium", "ZR": "Zirconium",
    "MO": "Molybdenum", "RU": "Ruthenium", "RH": "Rhodium", "PD": "Palladium",
    "AG": "Silver", "CD": "Cadmium", "IN": "Indium", "SN": "Tin",
    "SB": "Antimony", "TE": "Tellurium", "I": "Iodine", "XE": "Xenon",
    "CS": "Cesium", "BA": "Barium", "LA": "Lanthanum", "CE": "Cerium",
    "GD": "Gadolinium", "YB": "Ytterbium", "LU": "Lutetium", "W": "Tungsten",
    "RE": "Rhenium", "OS": "Osmium", "IR": "Iridium", "PT": "Platinum",
    "AU": "Gold", "HG": "Mercury", "TL": "Thallium", "PB": "Lead",
    "BI": "Bismuth", "U": "Uranium", "D": "Deuterium", "X": "Unknown",
}


def guess_chem_comp_type(name: str) -> str:
    """Chemical component type for formats that carry no chem_comp table."""
    name = name.upper()
    if name in AMINO_ACID_NAMES_L:
        return "L-peptide linking"
    if name in RNA_BASE_NAMES:
        return "RNA linking"
    if name in DNA_BASE_NAMES:
        return "DNA linking"
    return "non-polymer"
