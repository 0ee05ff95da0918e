"""Named selection queries and the two-phase evaluation entry point.

Evaluation is: compile (once per query instance), ensure custom properties
(async, may be cancelled), then run the compiled query synchronously.

Usage::

    from molselect.query import get_query, select

    sel = select(get_query("ligand"), structure)
    print(sel.element_count)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from molselect.config import SelectionSettings, load_settings
from molselect.core.logging_utils import get_logger
from molselect.errors import PrerequisiteError, QueryCancelledError, QueryCompileError, SelectionQueryError
from molselect.language.expression import Expression
from molselect.model.selection import StructureSelection
from molselect.model.structure import Structure
from molselect.props import CustomPropertyContext, ensure_properties, get_provider
from molselect.props.base import EnsureHook
from molselect.runtime.compiler import CompiledQuery, compile_query
from molselect.runtime.context import CurrentSelection, QueryContext
from molselect.runtime.task import RuntimeContext

logger = get_logger(__name__)


class StructureSelectionCategory(str, Enum):
    TYPE = "Type"
    STRUCTURE = "Structure Property"
    ATOM = "Atom Property"
    BOND = "Bond Property"
    RESIDUE = "Residue Property"
    AMINO_ACID = "Amino Acid"
    NUCLEIC_BASE = "Nucleic Base"
    MANIPULATE = "Manipulate Selection"
    VALIDATION = "Validation"
    MISC = "Miscellaneous"
    INTERNAL = "Internal"


@dataclass(eq=False)
class StructureSelectionQuery:
    """A labelled expression with presentation metadata and an optional prerequisite.

    The compiled form is created on first use and kept for the lifetime of
    this instance. Two queries wrapping equal-looking expressions compile
    independently.
    """

    label: str
    expression: Expression
    description: str = ""
    category: str = StructureSelectionCategory.MISC.value
    priority: int = 0
    is_hidden: bool = False
    references_current: bool = False
    ensure_custom_properties: Optional[EnsureHook] = None
    _query: Optional[CompiledQuery] = field(default=None, init=False, repr=False)

    @property
    def is_compiled(self) -> bool:
        return self._query is not None

    @property
    def query(self) -> CompiledQuery:
        if self._query is None:
            try:
                self._query = compile_query(self.expression)
            except QueryCompileError as exc:
                raise SelectionQueryError(self.label, str(exc), exc) from exc
            logger.debug("Compiled query '%s'", self.label)
        return self._query

    def prerequisite(self) -> Optional[EnsureHook]:
        """Explicit hook, or one ensuring every custom property the expression reads."""
        if self.ensure_custom_properties is not None:
            return self.ensure_custom_properties
        required = sorted(self.query.requires)
        if not required:
            return None
        return ensure_properties(*(get_provider(name) for name in required))

    async def get_selection(
        self,
        structure: Structure,
        current_selection: CurrentSelection = None,
        runtime: Optional[RuntimeContext] = None,
        settings: Optional[SelectionSettings] = None,
    ) -> StructureSelection:
        query = self.query
        runtime = runtime if runtime is not None else RuntimeContext()
        hook = self.prerequisite()
        if hook is not None:
            ctx = CustomPropertyContext(runtime, settings if settings is not None else load_settings())
            try:
                await hook(ctx, structure)
            except QueryCancelledError:
                raise
            except Exception as exc:
                raise PrerequisiteError(self.label, f"prerequisite failed: {exc}", exc) from exc
        runtime.check()
        return query(QueryContext(structure, current_selection))


CurrentSelectionProvider = Callable[[Structure], CurrentSelection]


async def evaluate(
    query: StructureSelectionQuery,
    structure: Structure,
    current_selection_provider: Union[CurrentSelectionProvider, CurrentSelection] = None,
    runtime: Optional[RuntimeContext] = None,
    settings: Optional[SelectionSettings] = None,
) -> StructureSelection:
    """Evaluate ``query`` against ``structure``.

    ``current_selection_provider`` is called with the structure to obtain
    the current selection; a plain Loci/selection/structure is used as is.
    """
    current = current_selection_provider
    if callable(current):
        current = current(structure)
    return await query.get_selection(structure, current, runtime=runtime, settings=settings)


def select(
    query: StructureSelectionQuery,
    structure: Structure,
    current_selection: CurrentSelection = None,
    settings: Optional[SelectionSettings] = None,
) -> StructureSelection:
    """Synchronous convenience wrapper around ``evaluate``."""
    return asyncio.run(evaluate(query, structure, current_selection, settings=settings))
