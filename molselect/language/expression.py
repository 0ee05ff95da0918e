"""Selection expressions: a closed set of immutable tagged variants.

An expression is pure data. ``runtime.compiler`` turns it into a function of
a ``QueryContext``; nothing here knows about structures.

Variants compare and hash by identity, so compiled results can be memoized
per instance: two structurally equal trees are still two expressions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Union


class ValueKind(str, Enum):
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SET = "set"
    LIST = "list"
    REGEX = "regex"
    FLAGS = "flags"
    SELECTION = "selection"


class Granularity(str, Enum):
    ENTITY = "entity"
    CHAIN = "chain"
    RESIDUE = "residue"
    ATOM = "atom"
    BOND = "bond"


class GeneratorKind(str, Enum):
    ALL = "all"
    CURRENT = "current"
    ATOM_GROUPS = "atomGroups"
    RINGS = "rings"
    BONDED_ATOMIC_PAIRS = "bondedAtomicPairs"


class CombinatorKind(str, Enum):
    MERGE = "merge"


class ModifierKind(str, Enum):
    UNION = "union"
    EXCEPT_BY = "exceptBy"
    INTERSECT_BY = "intersectBy"
    WHOLE_RESIDUES = "wholeResidues"
    INCLUDE_CONNECTED = "includeConnected"
    INCLUDE_SURROUNDINGS = "includeSurroundings"


class CoreOpKind(str, Enum):
    AND = "and"
    OR = "or"
    NOT = "not"
    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    LTE = "lte"
    GR = "gr"
    GRE = "gre"
    MATCH = "match"
    HAS = "has"
    LIST_EQUAL = "list.equal"
    HAS_ANY = "hasAny"
    HAS_ALL = "hasAll"


def _frozen(params: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType({k: v for k, v in params.items() if v is not None})


@dataclass(frozen=True, eq=False)
class Literal:
    """Constant value. Regex literals hold ``(pattern, flags)``."""

    value: Any
    kind: ValueKind


@dataclass(frozen=True, eq=False)
class PropertyRef:
    """Named property read from the current location (see ``runtime.properties``)."""

    name: str


@dataclass(frozen=True, eq=False)
class CoreOp:
    op: CoreOpKind
    args: tuple["Expression", ...] = ()


@dataclass(frozen=True, eq=False)
class Generator:
    """Produces a selection by scanning the structure.

    Params by kind:
      atomGroups: entity_test, chain_test, residue_test, atom_test
      rings: only_aromatic
      bondedAtomicPairs: bond_test
    """

    kind: GeneratorKind
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "params", _frozen(self.params))


@dataclass(frozen=True, eq=False)
class Combinator:
    kind: CombinatorKind
    args: tuple["Expression", ...] = ()


@dataclass(frozen=True, eq=False)
class Modifier:
    """Transforms the selection of ``target``.

    Params by kind:
      exceptBy / intersectBy: by
      includeConnected: layer_count, as_whole_residues, bond_test, fixed_point
      includeSurroundings: radius, as_whole_residues
    """

    kind: ModifierKind
    target: "Expression"
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "params", _frozen(self.params))


Expression = Union[Literal, PropertyRef, CoreOp, Generator, Combinator, Modifier]

EXPRESSION_TYPES = (Literal, PropertyRef, CoreOp, Generator, Combinator, Modifier)


def is_expression(value: Any) -> bool:
    return isinstance(value, EXPRESSION_TYPES)


def children(expr: Expression) -> Iterator[Expression]:
    """Direct sub-expressions, in evaluation order."""
    if isinstance(expr, (CoreOp, Combinator)):
        yield from expr.args
    elif isinstance(expr, Generator):
        for v in expr.params.values():
            if is_expression(v):
                yield v
    elif isinstance(expr, Modifier):
        yield expr.target
        for v in expr.params.values():
            if is_expression(v):
                yield v


def walk(expr: Expression) -> Iterator[Expression]:
    """Depth-first pre-order traversal."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(children(node))))


def references_current(expr: Expression) -> bool:
    """True when the tree reads the caller-supplied current selection."""
    return any(
        isinstance(n, Generator) and n.kind == GeneratorKind.CURRENT for n in walk(expr)
    )
