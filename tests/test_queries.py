"""Tests for named queries: the built-in catalog, evaluation, registry and derived queries."""

import asyncio

import pytest

from conftest import atom_names, seq_ids
from molselect.config import SelectionSettings
from molselect.errors import PrerequisiteError, QueryCancelledError, SelectionQueryError
from molselect.language import builder as B
from molselect.model import Loci, StructureSelection
from molselect.props import BONDS, SECONDARY_STRUCTURE
from molselect.query import (
    BUILTIN_QUERIES,
    StructureSelectionQuery,
    StructureSelectionQueryRegistry,
    evaluate,
    get_element_queries,
    get_non_standard_residue_queries,
    get_polymer_and_branched_entity_queries,
    get_query,
    list_queries,
    select,
)
from molselect.runtime import RuntimeContext


def loci_where(structure, expr):
    return select(StructureSelectionQuery("tmp", B.union(expr)), structure).to_loci()


# -- Catalog ---------------------------------------------------------------------


class TestCatalog:
    def test_protein_and_ligand(self, protein_ligand, no_inference):
        protein = select(get_query("protein"), protein_ligand, settings=no_inference)
        ligand = select(get_query("ligand"), protein_ligand, settings=no_inference)
        assert protein.element_count == 4
        assert atom_names(ligand) == ["C1"]

    def test_disulfide_bridges_from_inferred_bonds(self, disulfide):
        settings = SelectionSettings(compute_secondary_structure=False)
        sel = select(get_query("disulfideBridges"), disulfide, settings=settings)
        assert sorted(set(seq_ids(sel))) == [1, 3]
        assert sel.element_count == 6

    def test_disulfide_needs_bonds(self, disulfide, no_inference):
        assert select(get_query("disulfideBridges"), disulfide, settings=no_inference).is_empty

    @pytest.mark.parametrize("key, count", [
        ("all", 23),
        ("polymer", 13),
        ("protein", 13),
        ("nucleic", 0),
        ("water", 2),
        ("trace", 3),
        ("backbone", 12),
        ("helix", 8),
        ("beta", 0),
        ("ligand", 8),
        ("branched", 0),
        ("ligandPlusConnected", 13),
        ("ligandConnectedOnly", 5),
        ("connectedOnly", 5),
        ("nonStandardPolymer", 0),
        ("coarse", 0),
        ("ring", 6),
        ("aromaticRing", 6),
    ])
    def test_counts_on_mixed(self, mixed, no_inference, key, count):
        assert select(get_query(key), mixed, settings=no_inference).element_count == count

    def test_ligand_connected_only_is_the_coordinating_residue(self, mixed, no_inference):
        sel = select(get_query("ligandConnectedOnly"), mixed, settings=no_inference)
        assert set(seq_ids(sel)) == {3}

    def test_helix_computes_secondary_structure(self, mixed, no_inference):
        model = mixed.models[0]
        assert not SECONDARY_STRUCTURE.is_available(model)
        select(get_query("helix"), mixed, settings=no_inference)
        assert SECONDARY_STRUCTURE.is_available(model)
        assert not BONDS.is_available(model)

    def test_get_query_unknown(self):
        with pytest.raises(ValueError, match="Unknown query: nope"):
            get_query("nope")

    def test_list_queries_by_category(self):
        labels = {q.label for q in list_queries(category="Type")}
        assert {"Polymer", "Protein", "Water", "Ligand", "Carbohydrate"} <= labels
        assert all(not q.is_hidden for q in list_queries())
        assert any(q.is_hidden for q in list_queries(include_hidden=True))


class TestCurrentSelectionQueries:
    def _heme(self, mixed):
        return loci_where(mixed, B.atom_groups(residue_test=B.eq(B.prop("label_comp_id"), "HEM")))

    def test_complement(self, mixed, no_inference):
        water = loci_where(mixed, B.atom_groups(entity_test=B.eq(B.prop("entityType"), "water")))
        sel = select(get_query("complement"), mixed, water, settings=no_inference)
        assert sel.element_count == 21

    def test_surroundings(self, mixed, no_inference):
        sel = select(get_query("surroundings"), mixed, self._heme(mixed), settings=no_inference)
        assert set(seq_ids(sel)) == {3}
        assert sel.element_count == 5

    def test_bonded(self, mixed, no_inference):
        sel = select(get_query("bonded"), mixed, self._heme(mixed), settings=no_inference)
        assert sorted(set(seq_ids(sel))) == [3, 201]

    def test_whole_residues(self, mixed, no_inference):
        fe = loci_where(mixed, B.atom_groups(atom_test=B.eq(B.prop("elementSymbol"), "FE")))
        sel = select(get_query("wholeResidues"), mixed, fe, settings=no_inference)
        assert atom_names(sel) == ["FE", "NA"]

    def test_stale_current_selects_nothing(self, mixed, protein_ligand, no_inference):
        stale = Loci.from_structure(protein_ligand)
        assert select(get_query("current"), mixed, stale, settings=no_inference).is_empty

    def test_current_provider_is_called_with_structure(self, mixed, no_inference):
        seen = []

        def provider(structure):
            seen.append(structure)
            return Loci.from_structure(structure)

        sel = asyncio.run(evaluate(get_query("complement"), mixed, provider, settings=no_inference))
        assert seen == [mixed]
        assert sel.is_empty


# -- StructureSelectionQuery --------------------------------------------------------------


class TestSelectionQuery:
    def test_compiled_once_per_instance(self, mixed):
        q = StructureSelectionQuery("Waters", B.union(B.atom_groups(
            entity_test=B.eq(B.prop("entityType"), "water"),
        )))
        assert not q.is_compiled
        first = q.query
        select(q, mixed)
        assert q.query is first

    def test_equal_expressions_compile_separately(self):
        a = StructureSelectionQuery("A", B.all_atoms())
        b = StructureSelectionQuery("B", a.expression)
        assert a.query is not b.query

    def test_compile_error_carries_label(self):
        q = StructureSelectionQuery("Bad", B.eq(B.prop("entityType"), "water"))
        with pytest.raises(SelectionQueryError, match="Query 'Bad' failed"):
            q.query

    def test_prerequisite_from_requires(self):
        assert get_query("water").prerequisite() is None
        hook = get_query("helix").prerequisite()
        assert hook.providers == (SECONDARY_STRUCTURE,)
        assert get_query("ring").prerequisite().providers == (BONDS,)

    def test_prerequisite_failure(self, mixed):
        async def broken(ctx, structure):
            raise RuntimeError("boom")

        q = StructureSelectionQuery("Broken", B.all_atoms(), ensure_custom_properties=broken)
        with pytest.raises(PrerequisiteError, match="Query 'Broken' failed: prerequisite failed: boom"):
            select(q, mixed)

    def test_cancelled_before_prerequisite(self, mixed, no_inference):
        runtime = RuntimeContext()
        runtime.cancel()
        with pytest.raises(QueryCancelledError):
            asyncio.run(evaluate(get_query("ring"), mixed, runtime=runtime, settings=no_inference))
        assert not BONDS.is_available(mixed.models[0])

    def test_cancelled_without_prerequisite(self, mixed):
        runtime = RuntimeContext()
        runtime.cancel()
        with pytest.raises(QueryCancelledError):
            asyncio.run(evaluate(get_query("water"), mixed, runtime=runtime))

    def test_progress_messages(self, mixed, no_inference):
        runtime = RuntimeContext()
        asyncio.run(evaluate(get_query("ring"), mixed, runtime=runtime, settings=no_inference))
        assert runtime.messages == ["Computing Bonds for MX01"]

    def test_result_type(self, mixed):
        assert isinstance(select(get_query("all"), mixed), StructureSelection)


# -- Registry ------------------------------------------------------------------------------


class TestRegistry:
    def test_builtins_and_residue_families(self):
        registry = StructureSelectionQueryRegistry()
        assert len(registry) == 56
        assert registry.version == 1
        assert registry.find("ALANINE (ALA)") is not None
        assert registry.find("ADENOSINE (A, DA)") is not None
        assert [o[0] for o in registry.options] == registry.list

    def test_add_and_remove_bump_version(self):
        registry = StructureSelectionQueryRegistry()
        q = StructureSelectionQuery("Custom", B.all_atoms())
        registry.add(q)
        assert registry.version == 2
        assert q in registry
        assert registry.options[-1] == (q, "Custom", q.category)
        registry.remove(q)
        assert registry.version == 3
        assert q not in registry
        registry.remove(q)
        assert registry.version == 3

    def test_remove_is_by_identity(self):
        registry = StructureSelectionQueryRegistry(include_builtins=False)
        a = StructureSelectionQuery("Same", B.all_atoms())
        b = StructureSelectionQuery("Same", B.all_atoms())
        registry.add(a)
        registry.remove(b)
        assert list(registry) == [a]

    def test_to_dataframe_hides_internal_queries(self):
        registry = StructureSelectionQueryRegistry()
        df = registry.to_dataframe()
        assert len(df) == 51
        assert len(registry.to_dataframe(include_hidden=True)) == 56
        assert "Ligand with Connected" not in set(df["label"])


# -- Structure-derived queries -------------------------------------------------------------


class TestDerivedQueries:
    def test_element_queries(self, mixed):
        queries = get_element_queries([mixed])
        assert [q.label for q in queries] == ["Nitrogen (N)", "Carbon (C)", "Oxygen (O)", "Iron (FE)"]
        assert {q.category for q in queries} == {"Element Symbol"}
        iron = queries[-1]
        assert atom_names(select(iron, mixed)) == ["FE"]

    def test_non_standard_residue_queries(self, mixed):
        queries = get_non_standard_residue_queries([mixed])
        assert [q.label for q in queries] == ["PROTOPORPHYRIN IX CONTAINING FE (HEM)", "BNZ (BNZ)"]
        assert all(q.priority == 200 for q in queries)
        assert select(queries[1], mixed).element_count == 6

    def test_polymer_entity_queries(self, mixed):
        queries = get_polymer_and_branched_entity_queries([mixed, mixed])
        assert [q.label for q in queries] == ["GLOBIN"]
        assert select(queries[0], mixed).element_count == 13

    def test_registry_accepts_derived_queries(self, mixed):
        registry = StructureSelectionQueryRegistry()
        for q in get_element_queries([mixed]):
            registry.add(q)
        assert registry.version == 5
        assert registry.find("Iron (FE)") is not None


def test_builtin_keys():
    assert {"all", "current", "surroundings", "complement", "bonded", "wholeResidues"} <= set(BUILTIN_QUERIES)
