"""molselect.runtime — compiler and evaluation of selection expressions.

Architecture:
    - context.py: QueryContext (input structure, current selection, cursors)
    - properties.py: named property accessors
    - compiler.py: compile_query -> CompiledQuery
    - generators.py / modifiers.py: selection producers and transformers
    - rings.py / spatial.py: per-call ring perception and KD-tree lookup
    - task.py: RuntimeContext for progress and cancellation
"""

from molselect.runtime.compiler import CompiledQuery, compile_query
from molselect.runtime.context import QueryContext
from molselect.runtime.properties import PROPERTIES, PropertyAccessor, get_property
from molselect.runtime.task import RuntimeContext

__all__ = [
    "CompiledQuery",
    "compile_query",
    "QueryContext",
    "PROPERTIES",
    "PropertyAccessor",
    "get_property",
    "RuntimeContext",
]
