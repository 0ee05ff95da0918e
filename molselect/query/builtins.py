"""Built-in selection query catalog and structure-derived query factories.

Usage::

    from molselect.query.builtins import BUILTIN_QUERIES, list_queries

    for q in list_queries(category="Type"):
        print(q.label)
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from molselect.language import builder as B
from molselect.model.structure import Structure
from molselect.model.types import (
    ELEMENT_NAMES,
    NUCLEIC_BACKBONE_ATOMS,
    PROTEIN_BACKBONE_ATOMS,
    STANDARD_RESIDUE_NAMES,
    BondType,
    SecondaryStructureType,
)
from molselect.query.selection_query import StructureSelectionCategory as Category
from molselect.query.selection_query import StructureSelectionQuery

BUILTIN_QUERIES: dict[str, StructureSelectionQuery] = {}


def _reg(key: str, query: StructureSelectionQuery) -> StructureSelectionQuery:
    BUILTIN_QUERIES[key] = query
    return query


def _entity_subtype(pattern: str):
    return B.and_(
        B.eq(B.prop("entityType"), "polymer"),
        B.match(B.re_(pattern, "i"), B.prop("entitySubtype")),
    )


_PROTEIN_SUBTYPES = "(polypeptide|cyclic-pseudo-peptide)"
_NUCLEIC_SUBTYPES = "(nucleotide|peptide nucleic acid)"
_ATOMISTIC = B.eq(B.prop("objectPrimitive"), "atomistic")
_COARSE = B.has(B.set_("sphere", "gaussian"), B.prop("objectPrimitive"))


# -- Whole structure / current ----------------------------------------------

all_ = _reg("all", StructureSelectionQuery(
    "All", B.all_atoms(), category="", priority=1000,
))
current = _reg("current", StructureSelectionQuery(
    "Current Selection", B.current(), category="", references_current=True,
))

# -- Types ------------------------------------------------------------------

polymer = _reg("polymer", StructureSelectionQuery("Polymer", B.union(
    B.atom_groups(entity_test=_entity_subtype(
        "(polypeptide|cyclic-pseudo-peptide|nucleotide|peptide nucleic acid)"
    )),
), category=Category.TYPE.value))

trace = _reg("trace", StructureSelectionQuery("Trace", B.union(B.merge(
    B.union(B.atom_groups(
        entity_test=B.eq(B.prop("entityType"), "polymer"),
        chain_test=_COARSE,
    )),
    B.union(B.atom_groups(
        entity_test=B.eq(B.prop("entityType"), "polymer"),
        chain_test=_ATOMISTIC,
        atom_test=B.has(B.set_("CA", "P"), B.prop("label_atom_id")),
    )),
)), category=Category.STRUCTURE.value))

backbone = _reg("backbone", StructureSelectionQuery("Backbone", B.union(B.merge(
    B.union(B.atom_groups(
        entity_test=_entity_subtype(_PROTEIN_SUBTYPES),
        chain_test=_ATOMISTIC,
        atom_test=B.has(B.set_(*sorted(PROTEIN_BACKBONE_ATOMS)), B.prop("label_atom_id")),
    )),
    B.union(B.atom_groups(
        entity_test=_entity_subtype(_NUCLEIC_SUBTYPES),
        chain_test=_ATOMISTIC,
        atom_test=B.has(B.set_(*sorted(NUCLEIC_BACKBONE_ATOMS)), B.prop("label_atom_id")),
    )),
)), category=Category.STRUCTURE.value))

protein = _reg("protein", StructureSelectionQuery("Protein", B.union(
    B.atom_groups(entity_test=_entity_subtype(_PROTEIN_SUBTYPES)),
), category=Category.TYPE.value))

nucleic = _reg("nucleic", StructureSelectionQuery("Nucleic", B.union(
    B.atom_groups(entity_test=_entity_subtype(_NUCLEIC_SUBTYPES)),
), category=Category.TYPE.value))

helix = _reg("helix", StructureSelectionQuery("Helix", B.union(B.atom_groups(
    entity_test=_entity_subtype(_PROTEIN_SUBTYPES),
    residue_test=B.has_any(B.prop("secondaryStructureFlags"), B.bitflags(SecondaryStructureType.HELIX)),
)), category=Category.STRUCTURE.value))

beta = _reg("beta", StructureSelectionQuery("Beta Strand/Sheet", B.union(B.atom_groups(
    entity_test=_entity_subtype(_PROTEIN_SUBTYPES),
    residue_test=B.has_any(B.prop("secondaryStructureFlags"), B.bitflags(SecondaryStructureType.BETA)),
)), category=Category.STRUCTURE.value))

water = _reg("water", StructureSelectionQuery("Water", B.union(
    B.atom_groups(entity_test=B.eq(B.prop("entityType"), "water")),
), category=Category.TYPE.value))

# -- Carbohydrates and ligands ----------------------------------------------

branched = _reg("branched", StructureSelectionQuery("Carbohydrate", B.union(B.atom_groups(
    entity_test=B.or_(
        B.eq(B.prop("entityType"), "branched"),
        B.and_(
            B.eq(B.prop("entityType"), "non-polymer"),
            B.match(B.re_("oligosaccharide", "i"), B.prop("entitySubtype")),
        ),
    ),
)), category=Category.TYPE.value))

branched_plus_connected = _reg("branchedPlusConnected", StructureSelectionQuery(
    "Carbohydrate with Connected",
    B.union(B.include_connected(branched.expression, layer_count=1, as_whole_residues=True)),
    category=Category.INTERNAL.value, is_hidden=True,
))

branched_connected_only = _reg("branchedConnectedOnly", StructureSelectionQuery(
    "Connected to Carbohydrate",
    B.union(B.except_by(branched_plus_connected.expression, branched.expression)),
    category=Category.INTERNAL.value, is_hidden=True,
))

ligand = _reg("ligand", StructureSelectionQuery("Ligand", B.union(B.merge(
    B.union(B.atom_groups(
        entity_test=B.and_(
            B.eq(B.prop("entityType"), "non-polymer"),
            B.not_(B.match(B.re_("oligosaccharide", "i"), B.prop("entitySubtype"))),
        ),
        chain_test=_ATOMISTIC,
        residue_test=B.not_(B.match(B.re_("saccharide", "i"), B.prop("chemCompType"))),
    )),
    # non-polymer and terminus components inside polymer entities (e.g. ACE caps)
    B.union(B.atom_groups(
        entity_test=B.eq(B.prop("entityType"), "polymer"),
        chain_test=_ATOMISTIC,
        residue_test=B.match(
            B.re_("non-polymer|(amino|carboxy) terminus|peptide-like", "i"), B.prop("chemCompType")
        ),
    )),
)), category=Category.TYPE.value))

# branched entities have their own link representation
ligand_plus_connected = _reg("ligandPlusConnected", StructureSelectionQuery(
    "Ligand with Connected",
    B.union(B.except_by(
        B.union(B.include_connected(
            ligand.expression,
            layer_count=1,
            as_whole_residues=True,
            bond_test=B.has_any(
                B.prop("bondFlags"),
                B.bitflags(BondType.COVALENT | BondType.METALLIC_COORDINATION),
            ),
        )),
        branched.expression,
    )),
    category=Category.INTERNAL.value, is_hidden=True,
))

ligand_connected_only = _reg("ligandConnectedOnly", StructureSelectionQuery(
    "Connected to Ligand",
    B.union(B.except_by(ligand_plus_connected.expression, ligand.expression)),
    category=Category.INTERNAL.value, is_hidden=True,
))

connected_only = _reg("connectedOnly", StructureSelectionQuery(
    "Connected to Ligand or Carbohydrate",
    B.union(B.merge(branched_connected_only.expression, ligand_connected_only.expression)),
    category=Category.INTERNAL.value, is_hidden=True,
))

# -- Bonds and residues -----------------------------------------------------

disulfide_bridges = _reg("disulfideBridges", StructureSelectionQuery("Disulfide Bridges", B.union(
    B.whole_residues(B.union(B.bonded_atomic_pairs(
        B.has_any(B.prop("bondFlags"), B.bitflags(BondType.DISULFIDE)),
    ))),
), category=Category.BOND.value))

non_standard_polymer = _reg("nonStandardPolymer", StructureSelectionQuery(
    "Non-standard Residues in Polymers",
    B.union(B.atom_groups(
        entity_test=B.eq(B.prop("entityType"), "polymer"),
        chain_test=_ATOMISTIC,
        residue_test=B.prop("isNonStandard"),
    )),
    category=Category.RESIDUE.value,
))

coarse = _reg("coarse", StructureSelectionQuery(
    "Coarse Elements", B.union(B.atom_groups(chain_test=_COARSE)), category=Category.TYPE.value,
))

ring = _reg("ring", StructureSelectionQuery(
    "Rings in Residues", B.union(B.rings()), category=Category.RESIDUE.value,
))

aromatic_ring = _reg("aromaticRing", StructureSelectionQuery(
    "Aromatic Rings in Residues", B.union(B.rings(only_aromatic=True)), category=Category.RESIDUE.value,
))

# -- Manipulate the current selection ---------------------------------------

surroundings = _reg("surroundings", StructureSelectionQuery(
    "Surrounding Residues (5 Å) of Selection",
    B.union(B.except_by(
        B.include_surroundings(B.current(), radius=5, as_whole_residues=True),
        B.current(),
    )),
    description="Select residues within 5 Å of the current selection.",
    category=Category.MANIPULATE.value, references_current=True,
))

complement = _reg("complement", StructureSelectionQuery(
    "Inverse / Complement of Selection",
    B.union(B.except_by(B.all_atoms(), B.current())),
    description="Select everything not in the current selection.",
    category=Category.MANIPULATE.value, references_current=True,
))

bonded = _reg("bonded", StructureSelectionQuery(
    "Residues Bonded to Selection",
    B.union(B.include_connected(B.current(), layer_count=1, as_whole_residues=True)),
    description="Select residues covalently bonded to current selection.",
    category=Category.MANIPULATE.value, references_current=True,
))

whole_residues = _reg("wholeResidues", StructureSelectionQuery(
    "Whole Residues of Selection",
    B.union(B.whole_residues(B.current())),
    description="Expand current selection to whole residues.",
    category=Category.MANIPULATE.value, references_current=True,
))


def list_queries(category: Optional[str] = None, include_hidden: bool = False) -> list[StructureSelectionQuery]:
    """Built-in queries, optionally filtered by category."""
    result = []
    for q in BUILTIN_QUERIES.values():
        if q.is_hidden and not include_hidden:
            continue
        if category is not None and q.category != category:
            continue
        result.append(q)
    return result


def get_query(key: str) -> StructureSelectionQuery:
    if key not in BUILTIN_QUERIES:
        raise ValueError(f"Unknown query: {key}. Available: {list(BUILTIN_QUERIES)}")
    return BUILTIN_QUERIES[key]


# ==========================================================================
# Residue families
# ==========================================================================

STANDARD_AMINO_ACIDS: list[tuple[tuple[str, ...], str]] = sorted([
    (("HIS",), "HISTIDINE"),
    (("ARG",), "ARGININE"),
    (("LYS",), "LYSINE"),
    (("ILE",), "ISOLEUCINE"),
    (("PHE",), "PHENYLALANINE"),
    (("LEU",), "LEUCINE"),
    (("TRP",), "TRYPTOPHAN"),
    (("ALA",), "ALANINE"),
    (("MET",), "METHIONINE"),
    (("PRO",), "PROLINE"),
    (("CYS",), "CYSTEINE"),
    (("ASN",), "ASPARAGINE"),
    (("VAL",), "VALINE"),
    (("GLY",), "GLYCINE"),
    (("SER",), "SERINE"),
    (("GLN",), "GLUTAMINE"),
    (("TYR",), "TYROSINE"),
    (("ASP",), "ASPARTIC ACID"),
    (("GLU",), "GLUTAMIC ACID"),
    (("THR",), "THREONINE"),
    (("SEC",), "SELENOCYSTEINE"),
    (("PYL",), "PYRROLYSINE"),
    (("UNK",), "UNKNOWN"),
], key=lambda item: item[1])

STANDARD_NUCLEIC_BASES: list[tuple[tuple[str, ...], str]] = sorted([
    (("A", "DA"), "ADENOSINE"),
    (("C", "DC"), "CYTIDINE"),
    (("T", "DT"), "THYMIDINE"),
    (("G", "DG"), "GUANOSINE"),
    (("I", "DI"), "INOSINE"),
    (("U", "DU"), "URIDINE"),
    (("N", "DN"), "UNKNOWN"),
], key=lambda item: item[1])


def residue_query(
    entry: tuple[Sequence[str], str], category: str, priority: int = 0
) -> StructureSelectionQuery:
    names, label = entry
    return StructureSelectionQuery(
        f"{label} ({', '.join(names)})",
        B.union(B.atom_groups(residue_test=B.has(B.set_(*names), B.prop("auth_comp_id")))),
        description=label,
        category=category,
        priority=priority,
    )


def element_symbol_query(
    entry: tuple[Sequence[str], str], category: str, priority: int
) -> StructureSelectionQuery:
    names, label = entry
    return StructureSelectionQuery(
        f"{label} ({', '.join(names)})",
        B.union(B.atom_groups(atom_test=B.has(B.set_(*names), B.prop("elementSymbol")))),
        category=category,
        priority=priority,
    )


def entity_description_query(
    entry: tuple[Sequence[str], str], category: str, priority: int
) -> StructureSelectionQuery:
    description, label = entry
    return StructureSelectionQuery(
        label,
        B.union(B.atom_groups(entity_test=B.list_equal(B.list_(*description), B.prop("entityDescription")))),
        description=", ".join(description),
        category=category,
        priority=priority,
    )


def amino_acid_queries() -> list[StructureSelectionQuery]:
    return [residue_query(v, Category.AMINO_ACID.value) for v in STANDARD_AMINO_ACIDS]


def nucleic_base_queries() -> list[StructureSelectionQuery]:
    return [residue_query(v, Category.NUCLEIC_BASE.value) for v in STANDARD_NUCLEIC_BASES]


# ==========================================================================
# Structure-derived queries
# ==========================================================================

def get_element_queries(structures: Iterable[Structure]) -> list[StructureSelectionQuery]:
    """One query per element symbol present."""
    unique: dict[str, None] = {}
    for structure in structures:
        for e in structure.unique_element_symbols:
            unique.setdefault(e, None)
    return [
        element_symbol_query(((e,), ELEMENT_NAMES.get(e, e)), "Element Symbol", 0)
        for e in unique
    ]


def get_non_standard_residue_queries(structures: Iterable[Structure]) -> list[StructureSelectionQuery]:
    """One query per residue name present that is not a standard residue."""
    labels: dict[str, str] = {}
    unique: dict[str, None] = {}
    for structure in structures:
        names = structure.unique_residue_names
        for r in names:
            unique.setdefault(r, None)
        for model in structure.models:
            for r in names:
                name = model.chem_comp_names.get(r)
                if name:
                    labels[r] = name
    return [
        residue_query(((r,), labels.get(r, r)), "Ligand/Non-standard Residue", 200)
        for r in unique
        if r not in STANDARD_RESIDUE_NAMES
    ]


def get_polymer_and_branched_entity_queries(structures: Iterable[Structure]) -> list[StructureSelectionQuery]:
    """One query per polymer or branched entity description, read once per unit symmetry group."""
    unique: dict[str, tuple[str, ...]] = {}
    for structure in structures:
        for group in structure.unit_symmetry_groups:
            unit = group.units[0]
            entity = unit.model.entity_of_chain(unit.chain_index)
            if entity.entity_type in ("polymer", "branched"):
                description = entity.descriptions
                unique[", ".join(description)] = description
    return [
        entity_description_query((v, k), "Polymer/Carbohydrate Entities", 300)
        for k, v in unique.items()
    ]
