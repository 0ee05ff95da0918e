from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import pandas as pd
import typer

from molselect.config import load_settings
from molselect.core.logging_utils import get_logger
from molselect.errors import MolSelectError
from molselect.language import builder as B
from molselect.language.serialize import from_dict
from molselect.model.structure import Structure
from molselect.parsers import load_structure
from molselect.query import (
    BUILTIN_QUERIES,
    StructureSelectionCategory,
    StructureSelectionQuery,
    StructureSelectionQueryRegistry,
    get_element_queries,
    get_non_standard_residue_queries,
    get_polymer_and_branched_entity_queries,
    select as run_query,
)

logger = get_logger(__name__)
app = typer.Typer(no_args_is_help=True)


def _derived_queries(structure: Structure) -> list[StructureSelectionQuery]:
    structures = [structure]
    return (
        get_element_queries(structures)
        + get_non_standard_residue_queries(structures)
        + get_polymer_and_branched_entity_queries(structures)
    )


def _resolve_query(name: str, structure: Structure, radius: Optional[float] = None) -> StructureSelectionQuery:
    """Built-in key, registry label, structure-derived label or a JSON expression file."""
    path = Path(name)
    if path.suffix == ".json" and path.is_file():
        expression = from_dict(json.loads(path.read_text()))
        return StructureSelectionQuery(path.stem, expression)

    if name == "surroundings" and radius is not None:
        return StructureSelectionQuery(
            f"Surrounding Residues ({radius:g} Å) of Selection",
            B.union(B.except_by(
                B.include_surroundings(B.current(), radius=radius, as_whole_residues=True),
                B.current(),
            )),
            category=StructureSelectionCategory.MANIPULATE.value,
            references_current=True,
        )
    if name in BUILTIN_QUERIES:
        return BUILTIN_QUERIES[name]

    registry = StructureSelectionQueryRegistry()
    for q in _derived_queries(structure):
        registry.add(q)
    query = registry.find(name)
    if query is None:
        raise typer.BadParameter(
            f"Unknown query: {name}. Use a built-in key ({', '.join(BUILTIN_QUERIES)}), "
            "a label from `molselect queries` / `molselect derived`, or a .json expression file."
        )
    return query


def _run(query: StructureSelectionQuery, structure: Structure, *args, **kwargs):
    try:
        return run_query(query, structure, *args, **kwargs)
    except MolSelectError as exc:
        logger.error("%s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _write_table(df: pd.DataFrame, output: Path) -> None:
    if output.suffix == ".parquet":
        df.to_parquet(output, index=False)
    else:
        df.to_csv(output, index=False)


@app.command("queries")
def list_registry(
    category: Optional[str] = typer.Option(None, help="Only show this category."),
    include_hidden: bool = typer.Option(False, help="Include hidden/internal queries."),
):
    """List the registered selection queries."""
    df = StructureSelectionQueryRegistry().to_dataframe(include_hidden=include_hidden)
    if category:
        df = df[df["category"] == category]
    with pd.option_context("display.max_rows", None, "display.width", 200):
        typer.echo(df[["label", "category", "priority"]].to_string(index=False))


@app.command("derived")
def list_derived(file: Path = typer.Argument(..., exists=True, help="Structure file (mmCIF or PDB).")):
    """List the queries derived from the contents of a structure."""
    structure = load_structure(file)
    for q in _derived_queries(structure):
        typer.echo(f"{q.category}\t{q.label}")


@app.command("select")
def select_command(
    file: Path = typer.Argument(..., exists=True, help="Structure file (mmCIF or PDB)."),
    query: str = typer.Argument(..., help="Built-in key, query label or .json expression file."),
    current: Optional[str] = typer.Option(None, help="Query whose result is the current selection."),
    radius: Optional[float] = typer.Option(
        None, help="Radius for the surroundings query (default from MOLSELECT_SURROUNDINGS_RADIUS)."
    ),
    output: Optional[Path] = typer.Option(None, help="Write the selected atoms to .csv or .parquet."),
):
    """Evaluate a selection query against a structure file."""
    settings = load_settings()
    structure = load_structure(file)
    if query == "surroundings" and radius is None:
        radius = settings.surroundings_radius

    current_loci = None
    if current:
        current_loci = _run(_resolve_query(current, structure), structure, settings=settings).to_loci()

    target = _resolve_query(query, structure, radius)
    selection = _run(target, structure, current_loci, settings=settings)
    loci = selection.to_loci()
    logger.info("Query '%s' selected %d atoms in %d groups", target.label, loci.element_count, selection.group_count)
    typer.echo(f"{target.label}: {loci.element_count} atoms, {selection.group_count} groups")

    if output:
        _write_table(loci.to_dataframe(), output)
        typer.echo(f"Wrote {output}")
