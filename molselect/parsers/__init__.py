"""molselect.parsers — read structure files into a Model / Structure.

Architecture:
    - base.py: StructureParser protocol, parser registry, load_structure()
    - mmcif.py: CIFParser (.cif, .cif.gz, .mmcif)
    - pdb_format.py: PDBFormatParser (.pdb, .ent, .ent.gz, .pdb.gz)

Usage::

    from molselect.parsers import load_structure

    structure = load_structure("1abc.cif.gz")
"""

from molselect.parsers.base import (
    StructureParser,
    auto_parser,
    load_model,
    load_structure,
    register_parser,
    supported_extensions,
)
from molselect.parsers.mmcif import CIFParser, read_cif_block
from molselect.parsers.pdb_format import PDBFormatParser

__all__ = [
    "StructureParser",
    "auto_parser",
    "load_model",
    "load_structure",
    "register_parser",
    "supported_extensions",
    "CIFParser",
    "PDBFormatParser",
    "read_cif_block",
]
