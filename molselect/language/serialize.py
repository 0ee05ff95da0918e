"""Expression <-> JSON-compatible dict.

Only the expression literal is persisted, never a compiled function::

    {"tag": "modifier", "kind": "union",
     "target": {"tag": "generator", "kind": "all", "params": {}}, "params": {}}
"""

from __future__ import annotations

from typing import Any

from molselect.errors import QueryCompileError
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


def _encode_param(value: Any) -> Any:
    return to_dict(value) if is_expression(value) else value


def _decode_param(value: Any) -> Any:
    if isinstance(value, dict) and "tag" in value:
        return from_dict(value)
    return value


def _encode_literal(lit: Literal) -> Any:
    if lit.kind == ValueKind.SET:
        return sorted(lit.value, key=str)
    if lit.kind in (ValueKind.LIST, ValueKind.REGEX):
        return list(lit.value)
    return lit.value


def _decode_literal(kind: ValueKind, value: Any) -> Literal:
    if kind == ValueKind.SET:
        return Literal(frozenset(value), kind)
    if kind == ValueKind.LIST:
        return Literal(tuple(value), kind)
    if kind == ValueKind.REGEX:
        pattern, flags = value
        return Literal((pattern, flags), kind)
    return Literal(value, kind)


def to_dict(expr: Expression) -> dict:
    if isinstance(expr, Literal):
        return {"tag": "literal", "kind": expr.kind.value, "value": _encode_literal(expr)}
    if isinstance(expr, PropertyRef):
        return {"tag": "property", "name": expr.name}
    if isinstance(expr, CoreOp):
        return {"tag": "core", "op": expr.op.value, "args": [to_dict(a) for a in expr.args]}
    if isinstance(expr, Generator):
        return {
            "tag": "generator",
            "kind": expr.kind.value,
            "params": {k: _encode_param(v) for k, v in expr.params.items()},
        }
    if isinstance(expr, Combinator):
        return {"tag": "combinator", "kind": expr.kind.value, "args": [to_dict(a) for a in expr.args]}
    if isinstance(expr, Modifier):
        return {
            "tag": "modifier",
            "kind": expr.kind.value,
            "target": to_dict(expr.target),
            "params": {k: _encode_param(v) for k, v in expr.params.items()},
        }
    raise QueryCompileError(f"Not an expression: {expr!r}")


def _enum(enum_cls, value: Any, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise QueryCompileError(
            f"Unknown {what} {value!r}. Available: {[m.value for m in enum_cls]}"
        ) from None


def from_dict(data: dict) -> Expression:
    if not isinstance(data, dict):
        raise QueryCompileError(f"Expected an expression dict, got {type(data).__name__}")
    tag = data.get("tag")
    try:
        if tag == "literal":
            return _decode_literal(_enum(ValueKind, data["kind"], "literal kind"), data["value"])
        if tag == "property":
            return PropertyRef(data["name"])
        if tag == "core":
            return CoreOp(
                _enum(CoreOpKind, data["op"], "core op"),
                tuple(from_dict(a) for a in data.get("args", ())),
            )
        if tag == "generator":
            return Generator(
                _enum(GeneratorKind, data["kind"], "generator"),
                {k: _decode_param(v) for k, v in data.get("params", {}).items()},
            )
        if tag == "combinator":
            return Combinator(
                _enum(CombinatorKind, data["kind"], "combinator"),
                tuple(from_dict(a) for a in data.get("args", ())),
            )
        if tag == "modifier":
            return Modifier(
                _enum(ModifierKind, data["kind"], "modifier"),
                from_dict(data["target"]),
                {k: _decode_param(v) for k, v in data.get("params", {}).items()},
            )
    except KeyError as exc:
        raise QueryCompileError(f"Malformed {tag} expression: missing {exc.args[0]!r}") from exc
    raise QueryCompileError(f"Unknown expression tag: {tag!r}")
