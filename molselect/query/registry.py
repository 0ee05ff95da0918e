from __future__ import annotations

from typing import Iterator, Optional

import pandas as pd

from molselect.core.logging_utils import get_logger
from molselect.query.builtins import BUILTIN_QUERIES, amino_acid_queries, nucleic_base_queries
from molselect.query.selection_query import StructureSelectionQuery

logger = get_logger(__name__)


class StructureSelectionQueryRegistry:
    """Ordered, versioned catalog of named queries.

    ``options`` runs parallel to ``list`` as ``(query, label, category)``
    tuples for pickers. ``version`` starts at 1 and increases on every
    effective add or remove; observers compare it instead of the contents.
    """

    def __init__(self, include_builtins: bool = True):
        self.list: list[StructureSelectionQuery] = []
        self.options: list[tuple[StructureSelectionQuery, str, str]] = []
        self.version = 1
        if include_builtins:
            self.list.extend(BUILTIN_QUERIES.values())
            self.list.extend(amino_acid_queries())
            self.list.extend(nucleic_base_queries())
            self.options.extend((q, q.label, q.category) for q in self.list)

    def add(self, query: StructureSelectionQuery) -> None:
        self.list.append(query)
        self.options.append((query, query.label, query.category))
        self.version += 1
        logger.debug("Registered query '%s' (version %d)", query.label, self.version)

    def remove(self, query: StructureSelectionQuery) -> None:
        for idx, q in enumerate(self.list):
            if q is query:
                del self.list[idx]
                del self.options[idx]
                self.version += 1
                logger.debug("Removed query '%s' (version %d)", query.label, self.version)
                return

    def find(self, label: str) -> Optional[StructureSelectionQuery]:
        for q in self.list:
            if q.label == label:
                return q
        return None

    def to_dataframe(self, include_hidden: bool = False) -> pd.DataFrame:
        rows = [
            {
                "label": q.label,
                "category": q.category,
                "priority": q.priority,
                "hidden": q.is_hidden,
                "references_current": q.references_current,
                "description": q.description,
            }
            for q in self.list
            if include_hidden or not q.is_hidden
        ]
        return pd.DataFrame(
            rows, columns=["label", "category", "priority", "hidden", "references_current", "description"]
        )

    def __len__(self) -> int:
        return len(self.list)

    def __iter__(self) -> Iterator[StructureSelectionQuery]:
        return iter(self.list)

    def __contains__(self, query: object) -> bool:
        return any(q is query for q in self.list)
