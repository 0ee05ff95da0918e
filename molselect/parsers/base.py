"""Parser protocol, registry and the helpers shared by the format readers.

Open/Closed: a new format registers a ``StructureParser`` subclass; callers
go through ``auto_parser`` / ``load_structure`` and never name a format.
"""

from __future__ import annotations

import gzip
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from molselect.core.logging_utils import get_logger
from molselect.model.model import Model
from molselect.model.structure import Structure, SymmetryOperator
from molselect.model.types import (
    AMINO_ACID_NAMES_L,
    DNA_BASE_NAMES,
    RNA_BASE_NAMES,
    STANDARD_RESIDUE_NAMES,
    THREE_TO_ONE,
    guess_chem_comp_type,
)

logger = get_logger(__name__)


# ======================================================================
# Parser protocol (factory)
# ======================================================================

class StructureParser(ABC):
    """Parse a file into a Model (first model only).

    Single Responsibility: one parser per format.
    """

    @abstractmethod
    def parse(self, path: Path) -> Model:
        """Parse a file and return a Model."""
        ...

    @staticmethod
    @abstractmethod
    def extensions() -> list[str]:
        """File extensions this parser handles (e.g. ['.cif', '.cif.gz'])."""
        ...


def read_lines(path: Path) -> list[str]:
    """Read a text file, transparently decompressing ``.gz``."""
    path = Path(path)
    if path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8", errors="replace") as fh:
            return fh.readlines()
    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        return fh.readlines()


# ======================================================================
# Parser registry
# ======================================================================

_REGISTRY: dict[str, type[StructureParser]] = {}


def register_parser(parser_cls: type[StructureParser]) -> type[StructureParser]:
    """Register a parser class for its declared extensions."""
    for ext in parser_cls.extensions():
        _REGISTRY[ext.lower()] = parser_cls
    return parser_cls


def _ensure_registry() -> None:
    if _REGISTRY:
        return
    from molselect.parsers.mmcif import CIFParser
    from molselect.parsers.pdb_format import PDBFormatParser

    register_parser(CIFParser)
    register_parser(PDBFormatParser)


def supported_extensions() -> list[str]:
    _ensure_registry()
    return sorted(_REGISTRY)


def auto_parser(path: Union[str, Path]) -> StructureParser:
    """Pick the parser whose extension matches ``path`` (longest match wins)."""
    _ensure_registry()
    name = str(path).lower()
    for ext in sorted(_REGISTRY, key=len, reverse=True):
        if name.endswith(ext):
            return _REGISTRY[ext]()
    available = ", ".join(sorted(_REGISTRY))
    raise ValueError(f"No parser for '{path}'. Supported: {available}")


def load_model(path: Union[str, Path], parser: Optional[StructureParser] = None) -> Model:
    path = Path(path)
    parser = parser or auto_parser(path)
    model = parser.parse(path)
    logger.info("Parsed %s: %r", path.name, model)
    return model


def load_structure(
    path: Union[str, Path],
    parser: Optional[StructureParser] = None,
    operators: Optional[Sequence[SymmetryOperator]] = None,
) -> Structure:
    """Parse ``path`` and wrap its first model in a Structure."""
    return Structure.from_model(load_model(path, parser), operators=operators)


# ======================================================================
# Helpers shared by the format readers
# ======================================================================

def parse_int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value: str, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def one_letter(name: str) -> str:
    return THREE_TO_ONE.get(name.upper(), "X")


def is_standard_residue(name: str) -> bool:
    return name.upper() in STANDARD_RESIDUE_NAMES


def guess_polymer_subtype(residue_names: Iterable[str]) -> str:
    """Polymer subtype from the majority residue class of a chain."""
    counts = {"polypeptide(L)": 0, "polyribonucleotide": 0, "polydeoxyribonucleotide": 0}
    for name in residue_names:
        name = name.upper()
        if name in AMINO_ACID_NAMES_L:
            counts["polypeptide(L)"] += 1
        elif name in DNA_BASE_NAMES:
            counts["polydeoxyribonucleotide"] += 1
        elif name in RNA_BASE_NAMES:
            counts["polyribonucleotide"] += 1
    best = max(counts, key=counts.get)
    return best if counts[best] else "other"


def chem_comp_type_for(name: str, known: dict[str, str]) -> str:
    return known.get(name.upper()) or guess_chem_comp_type(name)


def guess_nonpolymer_subtype(chem_comp_types: Iterable[str]) -> str:
    types = [t.lower() for t in chem_comp_types]
    if types and all("saccharide" in t for t in types):
        return "oligosaccharide"
    return "other"
