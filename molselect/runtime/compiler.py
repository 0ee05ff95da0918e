"""Expression -> executable query.

``compile_query`` walks the expression once, checks arity and value kinds,
and returns a ``CompiledQuery``: a plain function of a ``QueryContext``.
Compilation never looks at a structure, so one compiled query can be run
against any number of structures.

Dispatch goes through two levels of tables: variant type, then kind. Every
kind enum member must have an entry (checked by the test-suite).
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from molselect.core.logging_utils import get_logger
from molselect.errors import QueryCompileError
from molselect.language.expression import (
    Combinator,
    CombinatorKind,
    CoreOp,
    CoreOpKind,
    Expression,
    Generator,
    GeneratorKind,
    Granularity,
    Literal,
    Modifier,
    ModifierKind,
    PropertyRef,
    ValueKind,
    is_expression,
)
from molselect.model.bonds import BONDS_PROPERTY
from molselect.model.selection import StructureSelection
from molselect.model.structure import Structure
from molselect.runtime import generators, modifiers
from molselect.runtime.context import CurrentSelection, QueryContext
from molselect.runtime.properties import get_property

logger = get_logger(__name__)


@dataclass(frozen=True)
class Compiled:
    """A compiled node: evaluation function plus what the type checker needs."""

    fn: Callable[[QueryContext], Any]
    kind: ValueKind
    needs_bond: bool = False
    requires: frozenset = frozenset()
    # kind of the members of a set literal; None when unknown or empty
    element_kind: Optional[ValueKind] = None


class CompiledQuery:
    """Executable form of a selection expression."""

    __slots__ = ("expression", "requires", "_fn")

    def __init__(self, expression: Expression, compiled: Compiled):
        self.expression = expression
        self.requires: frozenset[str] = compiled.requires
        self._fn = compiled.fn

    def __call__(self, ctx: QueryContext) -> StructureSelection:
        return self._fn(ctx)

    def run(self, structure: Structure, current_selection: CurrentSelection = None) -> StructureSelection:
        return self._fn(QueryContext(structure, current_selection))

    def __repr__(self) -> str:
        return f"<CompiledQuery {type(self.expression).__name__} requires={sorted(self.requires)}>"


_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "g": 0}

_GENERATOR_PARAMS: dict[GeneratorKind, frozenset[str]] = {
    GeneratorKind.ALL: frozenset(),
    GeneratorKind.CURRENT: frozenset(),
    GeneratorKind.ATOM_GROUPS: frozenset({"entity_test", "chain_test", "residue_test", "atom_test"}),
    GeneratorKind.RINGS: frozenset({"only_aromatic"}),
    GeneratorKind.BONDED_ATOMIC_PAIRS: frozenset({"bond_test"}),
}

_MODIFIER_PARAMS: dict[ModifierKind, frozenset[str]] = {
    ModifierKind.UNION: frozenset(),
    ModifierKind.EXCEPT_BY: frozenset({"by"}),
    ModifierKind.INTERSECT_BY: frozenset({"by"}),
    ModifierKind.WHOLE_RESIDUES: frozenset(),
    ModifierKind.INCLUDE_CONNECTED: frozenset({"layer_count", "as_whole_residues", "bond_test", "fixed_point"}),
    ModifierKind.INCLUDE_SURROUNDINGS: frozenset({"radius", "as_whole_residues"}),
}


class _Compiler:
    def __init__(self):
        # shared sub-trees compile once per compile_query call
        self._cache: dict[int, Compiled] = {}

    def compile(self, expr: Any) -> Compiled:
        if not is_expression(expr):
            raise QueryCompileError(f"Not an expression: {expr!r}")
        hit = self._cache.get(id(expr))
        if hit is not None:
            return hit
        rule = _VARIANTS.get(type(expr))
        if rule is None:
            raise QueryCompileError(f"Unknown expression tag: {type(expr).__name__}")
        compiled = rule(self, expr)
        self._cache[id(expr)] = compiled
        return compiled

    # -- argument helpers ---------------------------------------------------

    def test(self, expr: Any, name: str, allow_bond: bool = False) -> tuple[Optional[Callable], frozenset]:
        if expr is None:
            return None, frozenset()
        node = self.compile(expr)
        if node.kind != ValueKind.BOOL:
            raise QueryCompileError(f"{name} must be a boolean expression, got {node.kind.value}")
        if node.needs_bond and not allow_bond:
            raise QueryCompileError(f"{name} reads a bond property outside a bond test")
        return node.fn, node.requires

    def selection(self, expr: Any, name: str) -> Compiled:
        if expr is None:
            raise QueryCompileError(f"Missing {name}")
        node = self.compile(expr)
        if node.kind != ValueKind.SELECTION:
            raise QueryCompileError(f"{name} must be a selection expression, got {node.kind.value}")
        return node


def _const(params, key: str, default: Any, kind: type, minimum: Optional[float] = None) -> Any:
    value = params.get(key, default)
    if isinstance(value, Literal):
        value = value.value
    if kind is bool:
        if not isinstance(value, bool):
            raise QueryCompileError(f"{key} must be a boolean, got {value!r}")
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QueryCompileError(f"{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise QueryCompileError(f"{key} must be finite, got {value!r}")
    if kind is int and value != int(value):
        raise QueryCompileError(f"{key} must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise QueryCompileError(f"{key} must be >= {minimum}, got {value!r}")
    return kind(value)


def _kind(enum_cls, value: Any, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise QueryCompileError(
            f"Unknown {what}: {value!r}. Available: {[m.value for m in enum_cls]}"
        ) from None


def _check_params(kind_name: str, params, allowed: frozenset[str]) -> None:
    unknown = set(params) - allowed
    if unknown:
        raise QueryCompileError(
            f"Unknown parameter(s) {sorted(unknown)} for {kind_name}. Allowed: {sorted(allowed)}"
        )


def _merge_requires(*parts: frozenset) -> frozenset:
    out: frozenset = frozenset()
    for p in parts:
        out = out | p
    return out


# ==========================================================================
# Leaves
# ==========================================================================

def _compile_literal(c: _Compiler, expr: Literal) -> Compiled:
    if not isinstance(expr.kind, ValueKind):
        raise QueryCompileError(f"Unknown literal kind: {expr.kind!r}")
    value = expr.value
    if expr.kind == ValueKind.REGEX:
        try:
            pattern, flags = value
        except (TypeError, ValueError):
            raise QueryCompileError(f"Regex literal must be (pattern, flags), got {value!r}") from None
        re_flags = 0
        for f in flags:
            if f not in _REGEX_FLAGS:
                raise QueryCompileError(f"Unknown regex flag {f!r}. Available: {sorted(_REGEX_FLAGS)}")
            re_flags |= _REGEX_FLAGS[f]
        try:
            value = re.compile(pattern, re_flags)
        except re.error as exc:
            raise QueryCompileError(f"Invalid regex {pattern!r}: {exc}") from exc
    elif expr.kind == ValueKind.SELECTION:
        raise QueryCompileError("Selections cannot be literals")
    elif expr.kind == ValueKind.SET:
        return Compiled(lambda ctx: value, expr.kind, element_kind=_set_element_kind(value))
    return Compiled(lambda ctx: value, expr.kind)


def _set_element_kind(values) -> Optional[ValueKind]:
    kinds = set()
    for v in values:
        if isinstance(v, str):
            kinds.add(ValueKind.STRING)
        elif isinstance(v, (int, float)) and not isinstance(v, bool):
            kinds.add(ValueKind.NUMBER)
        else:
            raise QueryCompileError(f"Set members must be strings or numbers, got {v!r}")
    if len(kinds) > 1:
        raise QueryCompileError(f"Set literal mixes strings and numbers: {sorted(values, key=str)!r}")
    return kinds.pop() if kinds else None


def _compile_property(c: _Compiler, expr: PropertyRef) -> Compiled:
    accessor = get_property(expr.name)
    requires = frozenset({accessor.requires}) if accessor.requires else frozenset()
    return Compiled(
        accessor.getter,
        accessor.kind,
        needs_bond=accessor.granularity == Granularity.BOND,
        requires=requires,
    )


# ==========================================================================
# Core predicates
# ==========================================================================

def _args(c: _Compiler, expr: CoreOp, arity: Optional[int], kinds: Optional[tuple] = None) -> list[Compiled]:
    name = CoreOpKind(expr.op).value
    if arity is not None and len(expr.args) != arity:
        raise QueryCompileError(f"{name} takes {arity} argument(s), got {len(expr.args)}")
    if arity is None and not expr.args:
        raise QueryCompileError(f"{name} takes at least one argument")
    nodes = [c.compile(a) for a in expr.args]
    if kinds is not None:
        for i, (node, allowed) in enumerate(zip(nodes, kinds)):
            if node.kind not in allowed:
                raise QueryCompileError(
                    f"{name}: argument {i} must be {'/'.join(k.value for k in allowed)}, got {node.kind.value}"
                )
    return nodes


def _bool(fn, nodes: list[Compiled]) -> Compiled:
    return Compiled(
        fn,
        ValueKind.BOOL,
        needs_bond=any(n.needs_bond for n in nodes),
        requires=_merge_requires(*(n.requires for n in nodes)),
    )


def _logic_and(c: _Compiler, expr: CoreOp) -> Compiled:
    nodes = _args(c, expr, None)
    if any(n.kind != ValueKind.BOOL for n in nodes):
        raise QueryCompileError("and: all arguments must be boolean")
    fns = [n.fn for n in nodes]
    return _bool(lambda ctx: all(f(ctx) for f in fns), nodes)


def _logic_or(c: _Compiler, expr: CoreOp) -> Compiled:
    nodes = _args(c, expr, None)
    if any(n.kind != ValueKind.BOOL for n in nodes):
        raise QueryCompileError("or: all arguments must be boolean")
    fns = [n.fn for n in nodes]
    return _bool(lambda ctx: any(f(ctx) for f in fns), nodes)


def _logic_not(c: _Compiler, expr: CoreOp) -> Compiled:
    (node,) = _args(c, expr, 1, ((ValueKind.BOOL,),))
    fn = node.fn
    return _bool(lambda ctx: not fn(ctx), [node])


_EQUATABLE = (ValueKind.BOOL, ValueKind.NUMBER, ValueKind.STRING, ValueKind.FLAGS)


def _equality(negate: bool):
    def rule(c: _Compiler, expr: CoreOp) -> Compiled:
        a, b = _args(c, expr, 2, (_EQUATABLE, _EQUATABLE))
        if a.kind != b.kind:
            raise QueryCompileError(
                f"{CoreOpKind(expr.op).value}: cannot compare {a.kind.value} with {b.kind.value}"
            )
        fa, fb = a.fn, b.fn
        if negate:
            return _bool(lambda ctx: fa(ctx) != fb(ctx), [a, b])
        return _bool(lambda ctx: fa(ctx) == fb(ctx), [a, b])
    return rule


def _relational(op: Callable[[Any, Any], bool]):
    def rule(c: _Compiler, expr: CoreOp) -> Compiled:
        a, b = _args(c, expr, 2, ((ValueKind.NUMBER,), (ValueKind.NUMBER,)))
        fa, fb = a.fn, b.fn
        return _bool(lambda ctx: op(fa(ctx), fb(ctx)), [a, b])
    return rule


def _str_match(c: _Compiler, expr: CoreOp) -> Compiled:
    regex, value = _args(c, expr, 2, ((ValueKind.REGEX,), (ValueKind.STRING,)))
    fr, fv = regex.fn, value.fn
    return _bool(lambda ctx: fr(ctx).search(str(fv(ctx))) is not None, [regex, value])


def _set_has(c: _Compiler, expr: CoreOp) -> Compiled:
    coll, value = _args(c, expr, 2, ((ValueKind.SET,), (ValueKind.STRING, ValueKind.NUMBER)))
    if coll.element_kind is not None and coll.element_kind != value.kind:
        raise QueryCompileError(
            f"has: cannot look up a {value.kind.value} value in a set of {coll.element_kind.value} values"
        )
    fc, fv = coll.fn, value.fn
    return _bool(lambda ctx: fv(ctx) in fc(ctx), [coll, value])


def _list_equal(c: _Compiler, expr: CoreOp) -> Compiled:
    a, b = _args(c, expr, 2, ((ValueKind.LIST,), (ValueKind.LIST,)))
    fa, fb = a.fn, b.fn
    return _bool(lambda ctx: tuple(fa(ctx)) == tuple(fb(ctx)), [a, b])


def _flags_has_any(c: _Compiler, expr: CoreOp) -> Compiled:
    a, b = _args(c, expr, 2, ((ValueKind.FLAGS,), (ValueKind.FLAGS,)))
    fa, fb = a.fn, b.fn
    return _bool(lambda ctx: (int(fa(ctx)) & int(fb(ctx))) != 0, [a, b])


def _flags_has_all(c: _Compiler, expr: CoreOp) -> Compiled:
    a, b = _args(c, expr, 2, ((ValueKind.FLAGS,), (ValueKind.FLAGS,)))
    fa, fb = a.fn, b.fn

    def fn(ctx):
        mask = int(fb(ctx))
        return (int(fa(ctx)) & mask) == mask

    return _bool(fn, [a, b])


_CORE: dict[CoreOpKind, Callable[[_Compiler, CoreOp], Compiled]] = {
    CoreOpKind.AND: _logic_and,
    CoreOpKind.OR: _logic_or,
    CoreOpKind.NOT: _logic_not,
    CoreOpKind.EQ: _equality(negate=False),
    CoreOpKind.NEQ: _equality(negate=True),
    CoreOpKind.LT: _relational(lambda a, b: a < b),
    CoreOpKind.LTE: _relational(lambda a, b: a <= b),
    CoreOpKind.GR: _relational(lambda a, b: a > b),
    CoreOpKind.GRE: _relational(lambda a, b: a >= b),
    CoreOpKind.MATCH: _str_match,
    CoreOpKind.HAS: _set_has,
    CoreOpKind.LIST_EQUAL: _list_equal,
    CoreOpKind.HAS_ANY: _flags_has_any,
    CoreOpKind.HAS_ALL: _flags_has_all,
}


def _compile_core(c: _Compiler, expr: CoreOp) -> Compiled:
    return _CORE[_kind(CoreOpKind, expr.op, "core op")](c, expr)


# ==========================================================================
# Generators
# ==========================================================================

def _gen_all(c: _Compiler, expr: Generator) -> Compiled:
    return Compiled(generators.all_atoms, ValueKind.SELECTION)


def _gen_current(c: _Compiler, expr: Generator) -> Compiled:
    return Compiled(generators.current, ValueKind.SELECTION)


def _gen_atom_groups(c: _Compiler, expr: Generator) -> Compiled:
    p = expr.params
    entity_test, r1 = c.test(p.get("entity_test"), "entity_test")
    chain_test, r2 = c.test(p.get("chain_test"), "chain_test")
    residue_test, r3 = c.test(p.get("residue_test"), "residue_test")
    atom_test, r4 = c.test(p.get("atom_test"), "atom_test")

    def fn(ctx):
        return generators.atom_groups(ctx, entity_test, chain_test, residue_test, atom_test)

    return Compiled(fn, ValueKind.SELECTION, requires=_merge_requires(r1, r2, r3, r4))


def _gen_rings(c: _Compiler, expr: Generator) -> Compiled:
    only_aromatic = _const(expr.params, "only_aromatic", False, bool)
    return Compiled(
        lambda ctx: generators.rings(ctx, only_aromatic),
        ValueKind.SELECTION,
        requires=frozenset({BONDS_PROPERTY}),
    )


def _gen_bonded_atomic_pairs(c: _Compiler, expr: Generator) -> Compiled:
    bond_test, requires = c.test(expr.params.get("bond_test"), "bond_test", allow_bond=True)
    return Compiled(
        lambda ctx: generators.bonded_atomic_pairs(ctx, bond_test),
        ValueKind.SELECTION,
        requires=requires | {BONDS_PROPERTY},
    )


_GENERATORS: dict[GeneratorKind, Callable[[_Compiler, Generator], Compiled]] = {
    GeneratorKind.ALL: _gen_all,
    GeneratorKind.CURRENT: _gen_current,
    GeneratorKind.ATOM_GROUPS: _gen_atom_groups,
    GeneratorKind.RINGS: _gen_rings,
    GeneratorKind.BONDED_ATOMIC_PAIRS: _gen_bonded_atomic_pairs,
}


def _compile_generator(c: _Compiler, expr: Generator) -> Compiled:
    kind = _kind(GeneratorKind, expr.kind, "generator")
    _check_params(kind.value, expr.params, _GENERATOR_PARAMS[kind])
    return _GENERATORS[kind](c, expr)


# ==========================================================================
# Combinators
# ==========================================================================

def _comb_merge(c: _Compiler, expr: Combinator) -> Compiled:
    if not expr.args:
        raise QueryCompileError("merge takes at least one argument")
    nodes = [c.selection(a, f"merge argument {i}") for i, a in enumerate(expr.args)]
    fns = [n.fn for n in nodes]
    return Compiled(
        lambda ctx: modifiers.merge(ctx, [f(ctx) for f in fns]),
        ValueKind.SELECTION,
        requires=_merge_requires(*(n.requires for n in nodes)),
    )


_COMBINATORS: dict[CombinatorKind, Callable[[_Compiler, Combinator], Compiled]] = {
    CombinatorKind.MERGE: _comb_merge,
}


def _compile_combinator(c: _Compiler, expr: Combinator) -> Compiled:
    return _COMBINATORS[_kind(CombinatorKind, expr.kind, "combinator")](c, expr)


# ==========================================================================
# Modifiers
# ==========================================================================

def _mod_union(c: _Compiler, expr: Modifier, target: Compiled) -> Compiled:
    fn = target.fn
    return Compiled(lambda ctx: modifiers.union(ctx, fn(ctx)), ValueKind.SELECTION, requires=target.requires)


def _binary(op):
    def rule(c: _Compiler, expr: Modifier, target: Compiled) -> Compiled:
        by = c.selection(expr.params.get("by"), f"{ModifierKind(expr.kind).value} 'by' argument")
        ft, fb = target.fn, by.fn
        return Compiled(
            lambda ctx: op(ctx, ft(ctx), fb(ctx)),
            ValueKind.SELECTION,
            requires=target.requires | by.requires,
        )
    return rule


def _mod_whole_residues(c: _Compiler, expr: Modifier, target: Compiled) -> Compiled:
    fn = target.fn
    return Compiled(lambda ctx: modifiers.whole_residues(ctx, fn(ctx)), ValueKind.SELECTION, requires=target.requires)


def _mod_include_connected(c: _Compiler, expr: Modifier, target: Compiled) -> Compiled:
    p = expr.params
    layer_count = _const(p, "layer_count", 1, int, minimum=0)
    as_whole = _const(p, "as_whole_residues", False, bool)
    fixed_point = _const(p, "fixed_point", False, bool)
    bond_test, requires = c.test(p.get("bond_test"), "bond_test", allow_bond=True)
    fn = target.fn

    def run(ctx):
        return modifiers.include_connected(ctx, fn(ctx), layer_count, as_whole, bond_test, fixed_point)

    return Compiled(run, ValueKind.SELECTION, requires=target.requires | requires | {BONDS_PROPERTY})


def _mod_include_surroundings(c: _Compiler, expr: Modifier, target: Compiled) -> Compiled:
    if "radius" not in expr.params:
        raise QueryCompileError("includeSurroundings requires a radius")
    radius = _const(expr.params, "radius", 0.0, float, minimum=0)
    as_whole = _const(expr.params, "as_whole_residues", False, bool)
    fn = target.fn
    return Compiled(
        lambda ctx: modifiers.include_surroundings(ctx, fn(ctx), radius, as_whole),
        ValueKind.SELECTION,
        requires=target.requires,
    )


_MODIFIERS: dict[ModifierKind, Callable[[_Compiler, Modifier, Compiled], Compiled]] = {
    ModifierKind.UNION: _mod_union,
    ModifierKind.EXCEPT_BY: _binary(modifiers.except_by),
    ModifierKind.INTERSECT_BY: _binary(modifiers.intersect_by),
    ModifierKind.WHOLE_RESIDUES: _mod_whole_residues,
    ModifierKind.INCLUDE_CONNECTED: _mod_include_connected,
    ModifierKind.INCLUDE_SURROUNDINGS: _mod_include_surroundings,
}


def _compile_modifier(c: _Compiler, expr: Modifier) -> Compiled:
    kind = _kind(ModifierKind, expr.kind, "modifier")
    _check_params(kind.value, expr.params, _MODIFIER_PARAMS[kind])
    target = c.selection(expr.target, f"{kind.value} target")
    return _MODIFIERS[kind](c, expr, target)


_VARIANTS: dict[type, Callable[[_Compiler, Any], Compiled]] = {
    Literal: _compile_literal,
    PropertyRef: _compile_property,
    CoreOp: _compile_core,
    Generator: _compile_generator,
    Combinator: _compile_combinator,
    Modifier: _compile_modifier,
}


def compile_query(expression: Expression) -> CompiledQuery:
    """Compile a selection expression; raises QueryCompileError on malformed input."""
    compiled = _Compiler().compile(expression)
    if compiled.kind != ValueKind.SELECTION:
        raise QueryCompileError(f"A query must produce a selection, got {compiled.kind.value}")
    logger.debug("Compiled %s expression (requires=%s)", type(expression).__name__, sorted(compiled.requires))
    return CompiledQuery(expression, compiled)
