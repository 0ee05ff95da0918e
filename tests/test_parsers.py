"""Tests for the mmCIF and PDB readers and the parser registry."""

import gzip

import pytest

from conftest import atom_names, pdb_atom, pdb_record, seq_ids
from molselect.model import BondType, SecondaryStructureType
from molselect.parsers import (
    CIFParser,
    PDBFormatParser,
    auto_parser,
    load_model,
    load_structure,
    read_cif_block,
    supported_extensions,
)
from molselect.parsers.mmcif import model_from_block
from molselect.query import get_query, select

CIF_TEXT = """\
data_1ABC
#
_entry.id 1ABC
_struct.title 'Test protein with heme'
_exptl.method 'X-RAY DIFFRACTION'
_refine.ls_d_res_high 1.80
#
loop_
_entity.id
_entity.type
_entity.pdbx_description
1 polymer GLOBIN
2 non-polymer 'PROTOPORPHYRIN IX CONTAINING FE'
3 water water
#
_entity_poly.entity_id 1
_entity_poly.type 'polypeptide(L)'
#
loop_
_chem_comp.id
_chem_comp.type
_chem_comp.name
ALA 'L-peptide linking' ALANINE
CYS 'L-peptide linking' CYSTEINE
HEM non-polymer
;PROTOPORPHYRIN IX CONTAINING FE
;
HOH non-polymer WATER
#
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.type_symbol
_atom_site.label_atom_id
_atom_site.label_alt_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_entity_id
_atom_site.label_seq_id
_atom_site.pdbx_PDB_ins_code
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
_atom_site.occupancy
_atom_site.B_iso_or_equiv
_atom_site.auth_seq_id
_atom_site.auth_asym_id
_atom_site.pdbx_PDB_model_num
ATOM 1 N N . CYS A 1 1 ? 0.000 0.000 0.000 1.00 10.00 1 A 1
ATOM 2 C CA . CYS A 1 1 ? 1.500 0.000 0.000 1.00 10.00 1 A 1
ATOM 3 S SG A CYS A 1 1 ? 1.500 1.800 0.000 0.60 10.00 1 A 1
ATOM 4 S SG B CYS A 1 1 ? 1.700 1.800 0.000 0.40 10.00 1 A 1
ATOM 5 N N . ALA A 1 2 ? 12.000 0.000 0.000 1.00 12.00 2 A 1
ATOM 6 C CA . ALA A 1 2 ? 13.500 0.000 0.000 1.00 12.00 2 A 1
ATOM 7 S SG . CYS A 1 3 ? 1.500 3.850 0.000 1.00 11.00 3 A 1
ATOM 8 C CA . CYS A 1 3 ? 1.500 5.650 0.000 1.00 11.00 3 A 1
HETATM 9 FE FE . HEM B 2 . ? 1.500 6.150
2.000 1.00 20.00 101 A 1
HETATM 10 O O . HOH C 3 . ? 30.000 0.000 0.000 1.00 30.00 201 A 1
ATOM 11 N N . CYS A 1 1 ? 0.100 0.000 0.000 1.00 10.00 1 A 2
#
loop_
_struct_conn.id
_struct_conn.conn_type_id
_struct_conn.ptnr1_label_asym_id
_struct_conn.ptnr1_label_seq_id
_struct_conn.ptnr1_auth_seq_id
_struct_conn.ptnr1_label_atom_id
_struct_conn.ptnr2_label_asym_id
_struct_conn.ptnr2_label_seq_id
_struct_conn.ptnr2_auth_seq_id
_struct_conn.ptnr2_label_atom_id
disulf1 disulf A 1 1 SG A 3 3 SG
metalc1 metalc A 3 3 SG B . 101 FE
hydrog1 hydrog A 1 1 N A 9 9 N
#
loop_
_struct_conf.conf_type_id
_struct_conf.id
_struct_conf.beg_label_asym_id
_struct_conf.beg_label_seq_id
_struct_conf.end_label_seq_id
HELX_P HELX_P1 A 1 2
#
_struct_sheet_range.sheet_id A
_struct_sheet_range.beg_label_asym_id A
_struct_sheet_range.beg_label_seq_id 3
_struct_sheet_range.end_label_seq_id 3
#
data_SECOND
_entry.id SECOND
"""


PDB_LINES = [
    pdb_record((0, "HEADER"), (10, "OXYGEN TRANSPORT"), (62, "1TST")),
    pdb_record((0, "TITLE"), (10, "TEST GLOBIN")),
    pdb_record((0, "COMPND"), (10, "MOL_ID: 1;")),
    pdb_record((0, "COMPND"), (7, "  2"), (10, "MOLECULE: GLOBIN;")),
    pdb_record((0, "COMPND"), (7, "  3"), (10, "CHAIN: A;")),
    pdb_record((0, "EXPDTA"), (10, "X-RAY DIFFRACTION")),
    pdb_record((0, "REMARK"), (7, "  2"), (10, "RESOLUTION.    1.90 ANGSTROMS.")),
    pdb_record((0, "HETNAM"), (11, "HEM"), (15, "PROTOPORPHYRIN IX CONTAINING")),
    pdb_record((0, "HETNAM"), (8, " 2"), (11, "HEM"), (15, "FE")),
    pdb_record((0, "HELIX"), (7, "  1"), (19, "A"), (21, "   1"), (33, "   2")),
    pdb_record((0, "SHEET"), (7, "  1"), (21, "A"), (22, "   3"), (33, "   4")),
    pdb_record((0, "SSBOND"), (7, "  1"), (11, "CYS"), (15, "A"), (17, "   2"), (25, "CYS"), (29, "A"), (31, "   4")),
    pdb_record((0, "LINK"), (12, " NE2"), (17, "HIS"), (21, "A"), (22, "   3"),
          (42, "FE  "), (47, "HEM"), (51, "A"), (52, " 101")),
    "MODEL        1",
    pdb_atom("ATOM", 1, "N", "ALA", "A", 1, (0.0, 0.0, 0.0), "N"),
    pdb_atom("ATOM", 2, "CA", "ALA", "A", 1, (1.46, 0.0, 0.0), "C"),
    pdb_atom("ATOM", 3, "C", "ALA", "A", 1, (2.0, 1.4, 0.0), "C"),
    pdb_atom("ATOM", 4, "O", "ALA", "A", 1, (1.4, 2.4, 0.0), "O"),
    pdb_atom("ATOM", 5, "N", "CYS", "A", 2, (3.8, 0.0, 0.0), "N"),
    pdb_atom("ATOM", 6, "CA", "CYS", "A", 2, (5.3, 0.0, 0.0), "C"),
    pdb_atom("ATOM", 7, "SG", "CYS", "A", 2, (5.3, 1.8, 0.0), "S"),
    pdb_atom("ATOM", 8, "N", "HIS", "A", 3, (7.6, 0.0, 0.0), "N"),
    pdb_atom("ATOM", 9, "CA", "HIS", "A", 3, (9.0, 0.0, 0.0), "C"),
    pdb_atom("ATOM", 10, "NE2", "HIS", "A", 3, (10.0, -1.5, 0.0), "N", alt="A"),
    pdb_atom("ATOM", 11, "NE2", "HIS", "A", 3, (10.2, -1.5, 0.0), "N", alt="B"),
    pdb_atom("ATOM", 12, "N", "CYS", "A", 4, (3.8, 5.0, 0.0), "N"),
    pdb_atom("ATOM", 13, "CA", "CYS", "A", 4, (5.3, 5.0, 0.0), "C"),
    pdb_atom("ATOM", 14, "SG", "CYS", "A", 4, (5.3, 3.85, 0.0), "S"),
    pdb_record((0, "TER"), (6, "   15"), (17, "CYS"), (21, "A"), (22, "   4")),
    pdb_atom("HETATM", 16, "FE", "HEM", "A", 101, (10.0, -3.6, 0.0), "FE"),
    pdb_atom("HETATM", 17, "NA", "HEM", "A", 101, (11.5, -4.5, 0.0), "N"),
    pdb_atom("HETATM", 18, "S", "SO4", "A", 102, (20.0, 0.0, 0.0), "S"),
    pdb_atom("HETATM", 19, "S", "SO4", "A", 103, (25.0, 0.0, 0.0), "S"),
    pdb_atom("HETATM", 20, "O", "HOH", "A", 201, (0.0, 10.0, 0.0), "O"),
    pdb_atom("HETATM", 21, "O", "HOH", "A", 202, (0.0, 14.0, 0.0), "O"),
    pdb_atom("HETATM", 22, "O", "HOH", "B", 301, (0.0, 18.0, 0.0), "O"),
    pdb_record((0, "CONECT"), (6, "   16"), (11, "   17")),
    pdb_record((0, "CONECT"), (6, "   17"), (11, "   16")),
    "ENDMDL",
    "MODEL        2",
    pdb_atom("ATOM", 1, "N", "ALA", "A", 1, (0.1, 0.0, 0.0), "N"),
    "ENDMDL",
    "END",
]

PDB_TEXT = "\n".join(PDB_LINES) + "\n"


@pytest.fixture
def cif_path(tmp_path):
    path = tmp_path / "1abc.cif"
    path.write_text(CIF_TEXT)
    return path


@pytest.fixture
def pdb_path(tmp_path):
    path = tmp_path / "1tst.pdb"
    path.write_text(PDB_TEXT)
    return path


# -- mmCIF ------------------------------------------------------------------------


class TestCIFBlock:
    def test_single_items_and_loops(self):
        block = read_cif_block(CIF_TEXT.splitlines(keepends=True))
        assert block["entry"]["id"] == ["1ABC"]
        assert block["entity"]["pdbx_description"] == [
            "GLOBIN", "PROTOPORPHYRIN IX CONTAINING FE", "water",
        ]
        assert len(block["atom_site"]["id"]) == 11

    def test_text_fields_and_nulls(self):
        block = read_cif_block(CIF_TEXT.splitlines(keepends=True))
        assert block["chem_comp"]["name"][2] == "PROTOPORPHYRIN IX CONTAINING FE"
        assert block["atom_site"]["label_alt_id"][0] == ""
        assert block["atom_site"]["pdbx_pdb_ins_code"][0] == ""

    def test_only_first_data_block(self):
        block = read_cif_block(CIF_TEXT.splitlines(keepends=True))
        assert block["entry"]["id"] == ["1ABC"]

    def test_quoted_values_keep_inner_quotes(self):
        block = read_cif_block(["data_q\n", "_atom.name \"C1'\"\n", "_atom.label 'it's fine'\n"])
        assert block["atom"]["name"] == ["C1'"]
        assert block["atom"]["label"] == ["it's fine"]

    def test_partial_row_dropped(self):
        block = read_cif_block(["data_x\n", "loop_\n", "_a.b\n", "_a.c\n", "1 2 3\n"])
        assert block["a"] == {"b": ["1"], "c": ["2"]}

    def test_missing_atom_site(self):
        with pytest.raises(ValueError, match="No _atom_site records"):
            model_from_block(read_cif_block(["data_x\n", "_entry.id X\n"]), "X")


class TestCIFModel:
    def test_metadata(self, cif_path):
        model = CIFParser().parse(cif_path)
        assert model.metadata.entry_id == "1ABC"
        assert model.metadata.format == "mmCIF"
        assert model.metadata.method == "X-RAY DIFFRACTION"
        assert model.metadata.resolution == pytest.approx(1.8)
        assert model.metadata.title == "Test protein with heme"

    def test_hierarchy(self, cif_path):
        model = CIFParser().parse(cif_path)
        assert [(e.entity_id, e.entity_type, e.subtype) for e in model.entities] == [
            ("1", "polymer", "polypeptide(L)"),
            ("2", "non-polymer", "other"),
            ("3", "water", ""),
        ]
        assert [c.chain_id for c in model.chains] == ["A", "B", "C"]
        assert model.chains[1].auth_chain_id == "A"
        assert [r.seq_id for r in model.residues] == [1, 2, 3, 101, 201]

    def test_first_model_and_first_alt_location(self, cif_path):
        model = CIFParser().parse(cif_path)
        assert model.element_count == 9
        sg = list(model.atom_names).index("SG")
        assert model.coords[sg][0] == pytest.approx(1.5)
        assert model.occupancies[sg] == pytest.approx(0.6)

    def test_chem_comp(self, cif_path):
        model = CIFParser().parse(cif_path)
        assert model.chem_comp_names["HEM"] == "PROTOPORPHYRIN IX CONTAINING FE"
        assert model.residues[0].chem_comp_type == "L-peptide linking"

    def test_struct_conn(self, cif_path):
        model = CIFParser().parse(cif_path)
        flags = sorted(f for _, _, f in model.explicit_bonds)
        assert flags == sorted([
            int(BondType.COVALENT | BondType.DISULFIDE),
            int(BondType.METALLIC_COORDINATION),
        ])

    def test_secondary_structure(self, cif_path):
        model = CIFParser().parse(cif_path)
        kinds = [(r.chain_id, r.start_seq_id, r.end_seq_id, r.kind) for r in model.secondary_structure_ranges]
        assert kinds == [
            ("A", 1, 2, SecondaryStructureType.HELIX),
            ("A", 3, 3, SecondaryStructureType.BETA),
        ]

    def test_queries_on_parsed_file(self, cif_path, no_inference):
        structure = load_structure(cif_path)
        assert sorted(set(seq_ids(select(get_query("disulfideBridges"), structure, settings=no_inference)))) == [1, 3]
        assert atom_names(select(get_query("ligand"), structure, settings=no_inference)) == ["FE"]
        assert select(get_query("water"), structure, settings=no_inference).element_count == 1
        helix = select(get_query("helix"), structure, settings=no_inference)
        assert sorted(set(seq_ids(helix))) == [1, 2]


# -- PDB ----------------------------------------------------------------------------


class TestPDBModel:
    def test_metadata(self, pdb_path):
        model = PDBFormatParser().parse(pdb_path)
        assert model.metadata.entry_id == "1TST"
        assert model.metadata.format == "pdb"
        assert model.metadata.method == "X-RAY DIFFRACTION"
        assert model.metadata.resolution == pytest.approx(1.9)
        assert model.metadata.title == "TEST GLOBIN"

    def test_ligands_and_waters_get_their_own_chains(self, pdb_path):
        model = PDBFormatParser().parse(pdb_path)
        assert [c.chain_id for c in model.chains] == ["A", "A_1", "A_2", "A_3", "A_W", "B_W"]
        assert [(e.entity_id, e.entity_type, e.description) for e in model.entities] == [
            ("1", "polymer", "GLOBIN"),
            ("2", "non-polymer", "PROTOPORPHYRIN IX CONTAINING FE"),
            ("3", "non-polymer", "SO4"),
            ("4", "water", "water"),
        ]
        assert model.entities[0].subtype == "polypeptide(L)"
        assert {c.auth_chain_id for c in model.chains} == {"A", "B"}

    def test_first_model_and_first_alt_location(self, pdb_path):
        model = PDBFormatParser().parse(pdb_path)
        assert model.element_count == 20
        assert list(model.atom_names).count("NE2") == 1

    def test_explicit_bonds(self, pdb_path):
        model = PDBFormatParser().parse(pdb_path)
        flags = sorted(f for _, _, f in model.explicit_bonds)
        metallic = int(BondType.METALLIC_COORDINATION)
        assert flags == sorted([int(BondType.COVALENT | BondType.DISULFIDE), metallic, metallic, metallic])

    def test_secondary_structure(self, pdb_path):
        model = PDBFormatParser().parse(pdb_path)
        kinds = [(r.chain_id, r.start_seq_id, r.end_seq_id, r.kind) for r in model.secondary_structure_ranges]
        assert kinds == [
            ("A", 1, 2, SecondaryStructureType.HELIX),
            ("A", 3, 4, SecondaryStructureType.BETA),
        ]

    def test_queries_on_parsed_file(self, pdb_path, no_inference):
        structure = load_structure(pdb_path)
        assert select(get_query("ligand"), structure, settings=no_inference).element_count == 4
        assert select(get_query("water"), structure, settings=no_inference).element_count == 3
        bridges = select(get_query("disulfideBridges"), structure, settings=no_inference)
        assert sorted(set(seq_ids(bridges))) == [2, 4]
        connected = select(get_query("ligandConnectedOnly"), structure, settings=no_inference)
        assert set(seq_ids(connected)) == {3}

    def test_het_residue_inside_polymer(self, tmp_path, no_inference):
        lines = [
            pdb_atom("ATOM", 1, "N", "ALA", "A", 1, (0.0, 0.0, 0.0), "N"),
            pdb_atom("ATOM", 2, "CA", "ALA", "A", 1, (1.5, 0.0, 0.0), "C"),
            pdb_atom("HETATM", 3, "N", "MSE", "A", 2, (3.8, 0.0, 0.0), "N"),
            pdb_atom("HETATM", 4, "CA", "MSE", "A", 2, (5.3, 0.0, 0.0), "C"),
            pdb_atom("HETATM", 5, "C", "MSE", "A", 2, (6.0, 1.3, 0.0), "C"),
            pdb_atom("HETATM", 6, "SE", "MSE", "A", 2, (5.3, -1.9, 0.0), "SE"),
            pdb_atom("ATOM", 7, "N", "ALA", "A", 3, (7.6, 0.0, 0.0), "N"),
            pdb_atom("ATOM", 8, "CA", "ALA", "A", 3, (9.1, 0.0, 0.0), "C"),
        ]
        path = tmp_path / "pdb2abc.ent"
        path.write_text("\n".join(lines) + "\n")
        model = load_model(path)
        assert model.metadata.entry_id == "2ABC"
        assert [c.chain_id for c in model.chains] == ["A"]
        sel = select(get_query("nonStandardPolymer"), load_structure(path), settings=no_inference)
        assert atom_names(sel) == ["N", "CA", "C", "SE"]


# -- Registry ----------------------------------------------------------------------------


class TestRegistry:
    def test_auto_parser_by_extension(self):
        assert isinstance(auto_parser("1abc.cif"), CIFParser)
        assert isinstance(auto_parser("1ABC.CIF.GZ"), CIFParser)
        assert isinstance(auto_parser("pdb1abc.ent.gz"), PDBFormatParser)
        assert ".mmcif" in supported_extensions()

    def test_unknown_extension(self):
        with pytest.raises(ValueError, match="No parser for 'model.xyz'"):
            auto_parser("model.xyz")

    def test_gzipped_input(self, tmp_path):
        path = tmp_path / "1tst.pdb.gz"
        with gzip.open(path, "wt") as fh:
            fh.write(PDB_TEXT)
        assert load_model(path).element_count == 20
