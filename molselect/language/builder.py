"""Composable expression builders.

Plain Python values passed where an expression is expected are wrapped into
literals, so ``eq(prop("entityType"), "polymer")`` works without spelling out
the literal.

Usage::

    from molselect.language import builder as B

    protein = B.atom_groups(
        entity_test=B.and_(
            B.eq(B.prop("entityType"), "polymer"),
            B.match(B.re_("(polypeptide|cyclic-pseudo-peptide|peptide-like)", "i"),
                    B.prop("entitySubtype")),
        ),
    )
    around_current = B.except_by(
        B.include_surroundings(B.current(), radius=5, as_whole_residues=True),
        B.current(),
    )
"""

from __future__ import annotations

from enum import IntFlag
from typing import Any, Optional

from molselect.language.expression import (
    Combinator,
    CombinatorKind,
    CoreOp,
    CoreOpKind,
    Expression,
    Generator,
    GeneratorKind,
    Literal,
    Modifier,
    ModifierKind,
    PropertyRef,
    ValueKind,
    is_expression,
)
from molselect.model.types import BondType


def lit(value: Any) -> Expression:
    """Wrap a Python value as a literal (expressions pass through)."""
    if is_expression(value):
        return value
    if isinstance(value, IntFlag):
        return Literal(int(value), ValueKind.FLAGS)
    if isinstance(value, bool):
        return Literal(value, ValueKind.BOOL)
    if isinstance(value, (int, float)):
        return Literal(value, ValueKind.NUMBER)
    if isinstance(value, str):
        return Literal(value, ValueKind.STRING)
    if isinstance(value, (set, frozenset)):
        return Literal(frozenset(value), ValueKind.SET)
    if isinstance(value, (list, tuple)):
        return Literal(tuple(value), ValueKind.LIST)
    raise TypeError(f"Cannot use {type(value).__name__} as a literal")


def _opt(value: Any) -> Optional[Expression]:
    return None if value is None else lit(value)


# -- Literals ---------------------------------------------------------------

def prop(name: str) -> PropertyRef:
    return PropertyRef(name)


def re_(pattern: str, flags: str = "") -> Literal:
    return Literal((pattern, flags), ValueKind.REGEX)


def set_(*values: Any) -> Literal:
    return Literal(frozenset(values), ValueKind.SET)


def list_(*values: Any) -> Literal:
    return Literal(tuple(values), ValueKind.LIST)


def bitflags(value: int) -> Literal:
    return Literal(int(value), ValueKind.FLAGS)


def bond_flags(*names: str) -> Literal:
    """``bond_flags("covalent", "metallic-coordination")`` -> OR of the BondType members."""
    value = BondType.NONE
    for name in names:
        key = name.upper().replace("-", "_")
        if key not in BondType.__members__:
            raise ValueError(f"Unknown bond flag {name!r}. Available: {list(BondType.__members__)}")
        value |= BondType[key]
    return bitflags(value)


# -- Core -------------------------------------------------------------------

def _core(op: CoreOpKind, *args: Any) -> CoreOp:
    return CoreOp(op, tuple(lit(a) for a in args))


def and_(*args: Any) -> CoreOp:
    return _core(CoreOpKind.AND, *args)


def or_(*args: Any) -> CoreOp:
    return _core(CoreOpKind.OR, *args)


def not_(arg: Any) -> CoreOp:
    return _core(CoreOpKind.NOT, arg)


def eq(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.EQ, a, b)


def neq(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.NEQ, a, b)


def lt(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.LT, a, b)


def lte(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.LTE, a, b)


def gr(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.GR, a, b)


def gre(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.GRE, a, b)


def match(regex: Any, value: Any) -> CoreOp:
    return _core(CoreOpKind.MATCH, regex, value)


def has(collection: Any, value: Any) -> CoreOp:
    return _core(CoreOpKind.HAS, collection, value)


def list_equal(a: Any, b: Any) -> CoreOp:
    return _core(CoreOpKind.LIST_EQUAL, a, b)


def has_any(flags: Any, mask: Any) -> CoreOp:
    return _core(CoreOpKind.HAS_ANY, flags, mask)


def has_all(flags: Any, mask: Any) -> CoreOp:
    return _core(CoreOpKind.HAS_ALL, flags, mask)


# -- Generators -------------------------------------------------------------

def all_atoms() -> Generator:
    return Generator(GeneratorKind.ALL)


def current() -> Generator:
    return Generator(GeneratorKind.CURRENT)


def atom_groups(
    entity_test: Any = None,
    chain_test: Any = None,
    residue_test: Any = None,
    atom_test: Any = None,
) -> Generator:
    return Generator(GeneratorKind.ATOM_GROUPS, {
        "entity_test": _opt(entity_test),
        "chain_test": _opt(chain_test),
        "residue_test": _opt(residue_test),
        "atom_test": _opt(atom_test),
    })


def rings(only_aromatic: bool = False) -> Generator:
    return Generator(GeneratorKind.RINGS, {"only_aromatic": only_aromatic})


def bonded_atomic_pairs(bond_test: Any = None) -> Generator:
    return Generator(GeneratorKind.BONDED_ATOMIC_PAIRS, {"bond_test": _opt(bond_test)})


# -- Combinators & modifiers -------------------------------------------------

def merge(*exprs: Expression) -> Combinator:
    return Combinator(CombinatorKind.MERGE, tuple(exprs))


def union(expr: Expression) -> Modifier:
    return Modifier(ModifierKind.UNION, expr)


def except_by(expr: Expression, by: Expression) -> Modifier:
    return Modifier(ModifierKind.EXCEPT_BY, expr, {"by": by})


def intersect_by(expr: Expression, by: Expression) -> Modifier:
    return Modifier(ModifierKind.INTERSECT_BY, expr, {"by": by})


def whole_residues(expr: Expression) -> Modifier:
    return Modifier(ModifierKind.WHOLE_RESIDUES, expr)


def include_connected(
    expr: Expression,
    layer_count: int = 1,
    as_whole_residues: bool = False,
    bond_test: Any = None,
    fixed_point: bool = False,
) -> Modifier:
    return Modifier(ModifierKind.INCLUDE_CONNECTED, expr, {
        "layer_count": layer_count,
        "as_whole_residues": as_whole_residues,
        "bond_test": _opt(bond_test),
        "fixed_point": fixed_point,
    })


def include_surroundings(expr: Expression, radius: float, as_whole_residues: bool = False) -> Modifier:
    return Modifier(ModifierKind.INCLUDE_SURROUNDINGS, expr, {
        "radius": radius,
        "as_whole_residues": as_whole_residues,
    })
