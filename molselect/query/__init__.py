"""molselect.query — named selection queries and their registry.

Architecture:
    - selection_query.py: StructureSelectionQuery, evaluate(), select()
    - builtins.py: built-in catalog, residue families, structure-derived queries
    - registry.py: StructureSelectionQueryRegistry (ordered, versioned)

Usage::

    from molselect.query import StructureSelectionQueryRegistry, get_query, select

    registry = StructureSelectionQueryRegistry()
    for q in get_element_queries([structure]):
        registry.add(q)
    ligand = select(get_query("ligand"), structure)
"""

from molselect.query.builtins import (
    BUILTIN_QUERIES,
    STANDARD_AMINO_ACIDS,
    STANDARD_NUCLEIC_BASES,
    element_symbol_query,
    entity_description_query,
    get_element_queries,
    get_non_standard_residue_queries,
    get_polymer_and_branched_entity_queries,
    get_query,
    list_queries,
    residue_query,
)
from molselect.query.registry import StructureSelectionQueryRegistry
from molselect.query.selection_query import (
    StructureSelectionCategory,
    StructureSelectionQuery,
    evaluate,
    select,
)

__all__ = [
    "StructureSelectionCategory",
    "StructureSelectionQuery",
    "StructureSelectionQueryRegistry",
    "evaluate",
    "select",
    "BUILTIN_QUERIES",
    "STANDARD_AMINO_ACIDS",
    "STANDARD_NUCLEIC_BASES",
    "residue_query",
    "element_symbol_query",
    "entity_description_query",
    "get_element_queries",
    "get_non_standard_residue_queries",
    "get_polymer_and_branched_entity_queries",
    "get_query",
    "list_queries",
]
