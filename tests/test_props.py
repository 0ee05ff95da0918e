"""Tests for custom property providers: bonds and secondary structure."""

import asyncio

import numpy as np
import pytest

from conftest import StructureBuilder
from molselect.config import SelectionSettings
from molselect.model import BondTable, BondType, SecondaryStructureType
from molselect.props import (
    BONDS,
    SECONDARY_STRUCTURE,
    CustomPropertyContext,
    ensure_properties,
    get_provider,
)
from molselect.props.bonds import infer_bonds
from molselect.props.secondary_structure import assign_from_ca, flags_from_ranges
from molselect.query import get_query, select
from molselect.runtime import RuntimeContext


def index_of(model, chain_id, seq_id, atom_name):
    for i in range(model.element_count):
        residue = model.residues[model.atom_residue[i]]
        chain = model.chains[model.atom_chain[i]]
        if chain.chain_id == chain_id and residue.seq_id == seq_id and model.atom_names[i] == atom_name:
            return i
    raise KeyError((chain_id, seq_id, atom_name))


@pytest.fixture
def dipeptide():
    return (
        StructureBuilder("DP01")
        .entity("1", "polymer", "polypeptide(L)")
        .chain("1", "A", [
            ("ALA", 1, [
                ("N", "N", (0.0, 0.0, 0.0)),
                ("CA", "C", (1.45, 0.0, 0.0)),
                ("C", "C", (2.0, 1.35, 0.0)),
            ]),
            ("ALA", 2, [
                ("N", "N", (3.3, 1.35, 0.0)),
                ("CA", "C", (4.75, 1.35, 0.0)),
            ]),
        ])
        .model()
    )


class TestBonds:
    def test_disulfide_inferred(self, disulfide):
        model = disulfide.models[0]
        table = BONDS.compute(model, SelectionSettings())
        flags = table.flags_between(index_of(model, "A", 1, "SG"), index_of(model, "A", 3, "SG"))
        assert flags & BondType.DISULFIDE
        assert flags & BondType.COMPUTED

    def test_disulfide_distance_limit(self, disulfide):
        model = disulfide.models[0]
        table = BONDS.compute(model, SelectionSettings(disulfide_max_distance=2.0))
        assert table.flags_between(index_of(model, "A", 1, "SG"), index_of(model, "A", 3, "SG")) == 0

    def test_polymer_link_between_consecutive_residues(self, dipeptide):
        pairs = {(a, b) for a, b, _ in infer_bonds(dipeptide, SelectionSettings())}
        c1 = index_of(dipeptide, "A", 1, "C")
        n2 = index_of(dipeptide, "A", 2, "N")
        assert (c1, n2) in pairs
        assert len(pairs) == 4

    def test_metals_keep_only_explicit_bonds(self, mixed):
        model = mixed.models[0]
        table = BONDS.compute(model, SelectionSettings())
        fe = index_of(model, "B", 201, "FE")
        neighbors, flags = table.neighbors_of(fe)
        assert list(model.atom_names[neighbors]) == ["NE2"]
        assert int(flags[0]) == int(BondType.METALLIC_COORDINATION)

    def test_inference_disabled(self, mixed):
        model = mixed.models[0]
        table = BONDS.compute(model, SelectionSettings(infer_bonds=False))
        assert table.bond_count == len(model.explicit_bonds) == 7

    def test_aromatic_flag_on_standard_rings(self):
        model = (
            StructureBuilder("PH01")
            .entity("1", "polymer", "polypeptide(L)")
            .chain("1", "A", [("PHE", 1, [
                ("CB", "C", (-1.5, 0.0, 0.0)),
                ("CG", "C", (0.0, 0.0, 0.0)),
                ("CD1", "C", (1.39, 0.0, 0.0)),
            ])])
            .model()
        )
        table = BONDS.compute(model, SelectionSettings())
        assert table.flags_between(1, 2) & BondType.AROMATIC
        assert not table.flags_between(0, 1) & BondType.AROMATIC

    def test_attach_checks_atom_count(self, mixed):
        model = mixed.models[0]
        with pytest.raises(ValueError, match="Bond table covers 3 atoms"):
            BONDS.attach(model, BondTable.from_pairs(3, [(0, 1, 1)]))
        table = BondTable.from_model(model)
        BONDS.attach(model, table)
        assert BONDS.get(model) is table

    def test_from_pairs_merges_duplicates(self):
        table = BondTable.from_pairs(3, [(0, 1, 1), (1, 0, 0x10), (2, 2, 1)])
        assert table.bond_count == 1
        assert table.flags_between(1, 0) == 0x11


class TestEnsure:
    def test_skips_models_that_have_the_property(self, mixed):
        model = mixed.models[0]
        table = BondTable.from_model(model)
        BONDS.attach(model, table)
        runtime = RuntimeContext()
        asyncio.run(BONDS.ensure(CustomPropertyContext(runtime, SelectionSettings()), mixed))
        assert BONDS.get(model) is table
        assert runtime.messages == []

    def test_hook_runs_providers_in_order(self, mixed, no_inference):
        runtime = RuntimeContext()
        hook = ensure_properties(BONDS, SECONDARY_STRUCTURE)
        asyncio.run(hook(CustomPropertyContext(runtime, no_inference), mixed))
        assert runtime.messages == [
            "Computing Bonds for MX01",
            "Computing Secondary Structure for MX01",
        ]

    def test_get_provider_unknown(self):
        with pytest.raises(ValueError, match="Unknown custom property"):
            get_provider("accessible-surface-area")


def helix_ca(n, radius=2.3, rise=1.5, turn=100.0):
    return [
        (radius * np.cos(np.radians(turn * i)), radius * np.sin(np.radians(turn * i)), rise * i)
        for i in range(n)
    ]


@pytest.fixture
def trace_only():
    """Chain H: ideal 8-residue helix CA trace; chain S: 6-residue extended strand."""
    return (
        StructureBuilder("CA01")
        .entity("1", "polymer", "polypeptide(L)")
        .chain("1", "H", [("ALA", i + 1, [("CA", "C", xyz)]) for i, xyz in enumerate(helix_ca(8))])
        .chain("1", "S", [("ALA", i + 1, [("CA", "C", (3.3 * i, 20.0, 0.0))]) for i in range(6)])
        .structure()
    )


class TestSecondaryStructure:
    def test_flags_from_ranges(self, mixed):
        flags = flags_from_ranges(mixed.models[0])
        helix = int(SecondaryStructureType.HELIX)
        assert list(flags) == [helix, helix, 0, 0, 0, 0, 0]

    def test_ranges_win_over_trace(self, mixed):
        flags = SECONDARY_STRUCTURE.compute(mixed.models[0], SelectionSettings())
        assert list(flags[:3]) == [int(SecondaryStructureType.HELIX)] * 2 + [0]

    def test_assign_from_ca_trace(self, trace_only):
        flags = assign_from_ca(trace_only.models[0])
        assert list(flags[:8]) == [int(SecondaryStructureType.HELIX)] * 8
        assert list(flags[8:]) == [int(SecondaryStructureType.BETA)] * 6

    def test_trace_assignment_can_be_disabled(self, trace_only):
        settings = SelectionSettings(compute_secondary_structure=False)
        flags = SECONDARY_STRUCTURE.compute(trace_only.models[0], settings)
        assert not flags.any()

    def test_helix_and_beta_queries(self, trace_only):
        settings = SelectionSettings(infer_bonds=False)
        assert select(get_query("helix"), trace_only, settings=settings).element_count == 8
        assert select(get_query("beta"), trace_only, settings=settings).element_count == 6
