"""mmCIF reader.

Reads the first data block of a .cif / .cif.gz file into a Model: atom_site
(first model, first alternate location), entity / entity_poly /
pdbx_entity_branch, chem_comp, struct_conn (explicit bonds) and
struct_conf / struct_sheet_range (secondary structure).

Single Responsibility: only handles mmCIF format.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

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
from molselect.model.types import BondType, SecondaryStructureType, WATER_NAMES
from molselect.parsers.base import (
    StructureParser,
    chem_comp_type_for,
    guess_nonpolymer_subtype,
    guess_polymer_subtype,
    is_standard_residue,
    one_letter,
    parse_float,
    parse_int,
    read_lines,
)

logger = get_logger(__name__)

# category -> column -> values (single items are one-row categories)
CIFBlock = dict[str, dict[str, list[str]]]

_CONN_FLAGS = {
    "covale": BondType.COVALENT,
    "covale_base": BondType.COVALENT,
    "covale_phosphate": BondType.COVALENT,
    "covale_sugar": BondType.COVALENT,
    "disulf": BondType.COVALENT | BondType.DISULFIDE,
    "metalc": BondType.METALLIC_COORDINATION,
    "hydrog": BondType.HYDROGEN_BOND,
}


# ======================================================================
# Low-level mmCIF tokenizer
# ======================================================================

_TOKEN_RE = re.compile(r"""'(?:[^']|'(?=\S))*'(?=\s|$)|"(?:[^"]|"(?=\S))*"(?=\s|$)|\S+""")


def _tokens(lines: Iterable[str]) -> Iterator[tuple[str, bool]]:
    """Yield ``(text, is_value)``; quoted strings, text fields and nulls are values."""
    it = iter(lines)
    for line in it:
        if line.startswith(";"):
            text = [line[1:].rstrip("\r\n")]
            for line in it:
                if line.startswith(";"):
                    break
                text.append(line.rstrip("\r\n"))
            yield "\n".join(text).strip(), True
            continue
        for m in _TOKEN_RE.finditer(line):
            tok = m.group(0)
            if tok.startswith("#"):
                break
            if len(tok) >= 2 and tok[0] in "'\"" and tok[-1] == tok[0]:
                yield tok[1:-1], True
            elif tok in (".", "?"):
                yield "", True
            else:
                yield tok, False


def _split_name(name: str) -> tuple[str, str]:
    category, _, column = name[1:].partition(".")
    return category.lower(), column.lower()


def _is_keyword(tok: str, is_value: bool) -> bool:
    if is_value:
        return False
    low = tok.lower()
    return tok.startswith("_") or low == "loop_" or low.startswith(("data_", "save_"))


def _store_loop(block: CIFBlock, columns: list[str], values: list[str]) -> None:
    if not columns:
        return
    width = len(columns)
    if len(values) % width:
        logger.warning(
            "Loop %s has %d values for %d columns; dropping the partial row",
            columns[0], len(values), width,
        )
    rows = len(values) // width
    for j, name in enumerate(columns):
        category, column = _split_name(name)
        block.setdefault(category, {})[column] = values[j:rows * width:width]


def read_cif_block(lines: Iterable[str]) -> CIFBlock:
    """Tokenize the first data block into categories of equal-length columns."""
    tokens = list(_tokens(lines))
    block: CIFBlock = {}
    seen_data = False
    i, n = 0, len(tokens)
    while i < n:
        tok, is_value = tokens[i]
        low = tok.lower()
        if is_value:
            i += 1
        elif low.startswith("data_"):
            if seen_data:
                break
            seen_data = True
            i += 1
        elif low == "loop_":
            i += 1
            columns = []
            while i < n and not tokens[i][1] and tokens[i][0].startswith("_"):
                columns.append(tokens[i][0])
                i += 1
            start = i
            while i < n and not _is_keyword(*tokens[i]):
                i += 1
            _store_loop(block, columns, [t for t, _ in tokens[start:i]])
        elif tok.startswith("_"):
            if i + 1 < n and not _is_keyword(*tokens[i + 1]):
                category, column = _split_name(tok)
                block.setdefault(category, {})[column] = [tokens[i + 1][0]]
                i += 2
            else:
                i += 1
        else:
            i += 1
    return block


def _single(block: CIFBlock, category: str, column: str) -> Optional[str]:
    values = block.get(category, {}).get(column)
    return values[0] if values and values[0] else None


def _columns(block: CIFBlock, category: str, *names: str) -> list[list[str]]:
    table = block.get(category, {})
    rows = max((len(v) for v in table.values()), default=0)
    return [table.get(name, [""] * rows) for name in names]


def _opt_float(s: Optional[str]) -> Optional[float]:
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


# ======================================================================
# Hierarchy assembly
# ======================================================================

@dataclass
class _PendingResidue:
    name: str
    seq_id: int
    ins_code: str
    alt_id: str = ""
    atoms: list[Atom] = field(default_factory=list)


@dataclass
class _PendingChain:
    chain_id: str
    entity_id: str
    auth_chain_id: str
    residues: dict[tuple[str, str], _PendingResidue] = field(default_factory=dict)


def _read_atom_sites(block: CIFBlock) -> tuple[dict[str, _PendingChain], dict[tuple[str, str, str], int]]:
    (
        serials, symbols, atom_ids, alt_ids, comp_ids, asym_ids, entity_ids,
        label_seqs, auth_seqs, auth_asyms, ins_codes, xs, ys, zs,
        occupancies, b_factors, charges, model_nums,
    ) = _columns(
        block, "atom_site",
        "id", "type_symbol", "label_atom_id", "label_alt_id", "label_comp_id",
        "label_asym_id", "label_entity_id", "label_seq_id", "auth_seq_id",
        "auth_asym_id", "pdbx_pdb_ins_code", "cartn_x", "cartn_y", "cartn_z",
        "occupancy", "b_iso_or_equiv", "pdbx_formal_charge", "pdbx_pdb_model_num",
    )
    first_model = model_nums[0] if model_nums else ""
    chains: dict[str, _PendingChain] = {}
    lookup: dict[tuple[str, str, str], int] = {}

    for i in range(len(serials)):
        if model_nums[i] != first_model:
            continue
        asym = asym_ids[i] or auth_asyms[i]
        chain = chains.get(asym)
        if chain is None:
            chain = chains[asym] = _PendingChain(asym, entity_ids[i], auth_asyms[i] or asym)
        seq_key = label_seqs[i] or auth_seqs[i]
        key = (seq_key, ins_codes[i])
        residue = chain.residues.get(key)
        if residue is None:
            residue = chain.residues[key] = _PendingResidue(
                comp_ids[i], parse_int(seq_key), ins_codes[i]
            )
        alt = alt_ids[i]
        if alt:
            if not residue.alt_id:
                residue.alt_id = alt
            elif alt != residue.alt_id:
                continue
        serial = parse_int(serials[i], i + 1)
        name = atom_ids[i]
        residue.atoms.append(Atom(
            serial=serial,
            name=name,
            element=(symbols[i] or name[:1]).upper(),
            x=parse_float(xs[i]),
            y=parse_float(ys[i]),
            z=parse_float(zs[i]),
            occupancy=parse_float(occupancies[i], 1.0),
            b_factor=parse_float(b_factors[i]),
            alt_id=alt,
            charge=parse_float(charges[i]),
        ))
        lookup[(asym, seq_key, name)] = serial
    return chains, lookup


def _build_chain(pending: _PendingChain, chem_comp_types: dict[str, str]) -> Chain:
    residues = tuple(
        Residue(
            name=r.name,
            seq_id=r.seq_id,
            atoms=tuple(r.atoms),
            one_letter=one_letter(r.name),
            ins_code=r.ins_code,
            is_standard=is_standard_residue(r.name),
            chem_comp_type=chem_comp_type_for(r.name, chem_comp_types),
        )
        for r in pending.residues.values()
    )
    return Chain(pending.chain_id, residues, pending.entity_id, pending.auth_chain_id)


def _guess_entity_type(chain: Chain) -> str:
    names = [r.name.upper() for r in chain.residues]
    if names and all(n in WATER_NAMES for n in names):
        return "water"
    if len(names) > 1 and guess_polymer_subtype(names) != "other":
        return "polymer"
    return "non-polymer"


def _build_entities(
    block: CIFBlock,
    chains: list[Chain],
    chem_comp_types: dict[str, str],
) -> list[Entity]:
    ids, types, descriptions = _columns(block, "entity", "id", "type", "pdbx_description")
    poly_ids, poly_types = _columns(block, "entity_poly", "entity_id", "type")
    branch_ids, branch_types = _columns(block, "pdbx_entity_branch", "entity_id", "type")
    subtypes = dict(zip(poly_ids, poly_types))
    subtypes.update(zip(branch_ids, branch_types))

    by_entity: dict[str, list[Chain]] = {}
    for chain in chains:
        by_entity.setdefault(chain.entity_id, []).append(chain)

    entities = []
    for eid, etype, desc in zip(ids, types, descriptions):
        members = by_entity.pop(eid, [])
        if not members:
            continue
        etype = etype.lower()
        subtype = subtypes.get(eid, "")
        if not subtype and etype == "non-polymer":
            subtype = guess_nonpolymer_subtype(
                chem_comp_type_for(r.name, chem_comp_types) for c in members for r in c.residues
            )
        entities.append(Entity(eid, etype, desc, tuple(members), subtype))

    # chains whose entity is not declared
    for eid, members in by_entity.items():
        etype = _guess_entity_type(members[0])
        subtype = ""
        if etype == "polymer":
            subtype = guess_polymer_subtype(r.name for r in members[0].residues)
        entities.append(Entity(eid or f"?{members[0].chain_id}", etype, "", tuple(members), subtype))
    return entities


def _read_struct_conn(block: CIFBlock, lookup: dict[tuple[str, str, str], int]) -> list[ExplicitBond]:
    (
        conn_types, asym1, label_seq1, auth_seq1, atom1,
        asym2, label_seq2, auth_seq2, atom2,
    ) = _columns(
        block, "struct_conn",
        "conn_type_id", "ptnr1_label_asym_id", "ptnr1_label_seq_id", "ptnr1_auth_seq_id",
        "ptnr1_label_atom_id", "ptnr2_label_asym_id", "ptnr2_label_seq_id",
        "ptnr2_auth_seq_id", "ptnr2_label_atom_id",
    )
    bonds = []
    for i, conn in enumerate(conn_types):
        flags = _CONN_FLAGS.get(conn.lower())
        if flags is None:
            continue
        a = lookup.get((asym1[i], label_seq1[i] or auth_seq1[i], atom1[i]))
        b = lookup.get((asym2[i], label_seq2[i] or auth_seq2[i], atom2[i]))
        if a is None or b is None:
            logger.debug("struct_conn row %d references a missing atom", i)
            continue
        bonds.append(ExplicitBond(a, b, flags))
    return bonds


def _read_secondary_structure(block: CIFBlock) -> list[SecondaryStructureRange]:
    ranges = []
    conf_types, asyms, begs, ends = _columns(
        block, "struct_conf", "conf_type_id", "beg_label_asym_id", "beg_label_seq_id", "end_label_seq_id"
    )
    for conf, asym, beg, end in zip(conf_types, asyms, begs, ends):
        conf = conf.upper()
        if conf.startswith("HELX"):
            kind = SecondaryStructureType.HELIX
        elif conf.startswith("TURN"):
            kind = SecondaryStructureType.TURN
        elif conf.startswith("STRN"):
            kind = SecondaryStructureType.BETA
        else:
            continue
        ranges.append(SecondaryStructureRange(asym, parse_int(beg), parse_int(end), kind))

    asyms, begs, ends = _columns(
        block, "struct_sheet_range", "beg_label_asym_id", "beg_label_seq_id", "end_label_seq_id"
    )
    for asym, beg, end in zip(asyms, begs, ends):
        ranges.append(SecondaryStructureRange(asym, parse_int(beg), parse_int(end), SecondaryStructureType.BETA))
    return ranges


def model_from_block(block: CIFBlock, default_id: str = "") -> Model:
    if "atom_site" not in block:
        raise ValueError(f"No _atom_site records in '{default_id or 'mmCIF block'}'")

    comp_ids, comp_types, comp_names = _columns(block, "chem_comp", "id", "type", "name")
    chem_comp_types = {c.upper(): t for c, t in zip(comp_ids, comp_types) if t}
    chem_comp_names = {c: n for c, n in zip(comp_ids, comp_names) if n}

    pending, lookup = _read_atom_sites(block)
    chains = [_build_chain(p, chem_comp_types) for p in pending.values()]
    entities = _build_entities(block, chains, chem_comp_types)

    metadata = StructureMetadata(
        entry_id=_single(block, "entry", "id") or default_id,
        format="mmCIF",
        method=_single(block, "exptl", "method"),
        resolution=_opt_float(
            _single(block, "refine", "ls_d_res_high") or _single(block, "reflns", "d_resolution_high")
        ),
        title=_single(block, "struct", "title"),
    )
    return Model(
        metadata,
        entities,
        bonds=_read_struct_conn(block, lookup),
        secondary_structure=_read_secondary_structure(block),
        chem_comp_names=chem_comp_names,
    )


class CIFParser(StructureParser):
    """Parser for mmCIF format files."""

    def parse(self, path: Path) -> Model:
        path = Path(path)
        block = read_cif_block(read_lines(path))
        return model_from_block(block, default_id=path.name.split(".")[0].upper())

    @staticmethod
    def extensions() -> list[str]:
        return [".cif", ".cif.gz", ".mmcif"]
