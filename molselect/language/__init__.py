"""molselect.language — the selection expression tree.

Architecture:
    - expression.py: tagged variants (Literal, PropertyRef, CoreOp, Generator,
      Combinator, Modifier) and their kind enums
    - builder.py: functional builders used by the query catalog
    - serialize.py: to_dict / from_dict for persisting expression literals
"""

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
    references_current,
    walk,
)
from molselect.language.serialize import from_dict, to_dict

__all__ = [
    "Expression",
    "Literal",
    "PropertyRef",
    "CoreOp",
    "Generator",
    "Combinator",
    "Modifier",
    "ValueKind",
    "Granularity",
    "GeneratorKind",
    "CombinatorKind",
    "ModifierKind",
    "CoreOpKind",
    "references_current",
    "walk",
    "to_dict",
    "from_dict",
]
