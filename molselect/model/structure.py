"""Structure: an ordered set of units, each one chain of a model under a symmetry operator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence

import numpy as np

from molselect.model.model import Model


@dataclass(frozen=True)
class SymmetryOperator:
    """Named rigid transform; ``matrix`` is a 4x4 homogeneous matrix or None for identity."""

    name: str = "1_555"
    matrix: Optional[np.ndarray] = field(default=None, compare=False)

    @property
    def is_identity(self) -> bool:
        return self.matrix is None or bool(np.allclose(self.matrix, np.eye(4)))

    def apply(self, coords: np.ndarray) -> np.ndarray:
        if self.is_identity:
            return coords
        m = np.asarray(self.matrix, dtype=np.float64)
        return coords @ m[:3, :3].T + m[:3, 3]


IDENTITY = SymmetryOperator()


class Unit:
    """One chain of a model placed by one operator.

    ``elements`` is a sorted array of model atom indices. Child units (used by
    sub-structures) keep the parent's id and hold a subset of its elements.
    """

    __slots__ = ("id", "model", "chain_index", "operator", "elements")

    def __init__(
        self,
        id: int,
        model: Model,
        chain_index: int,
        operator: SymmetryOperator,
        elements: np.ndarray,
    ):
        self.id = id
        self.model = model
        self.chain_index = chain_index
        self.operator = operator
        self.elements = elements

    @property
    def invariant_id(self) -> tuple[int, int]:
        """Units sharing this key are symmetry copies of each other."""
        return (self.model.id, self.chain_index)

    def get_child(self, elements: np.ndarray) -> "Unit":
        return Unit(self.id, self.model, self.chain_index, self.operator, elements)

    def contains(self, element: int) -> bool:
        i = np.searchsorted(self.elements, element)
        return bool(i < len(self.elements) and self.elements[i] == element)

    def coordinates(self, elements: Optional[np.ndarray] = None) -> np.ndarray:
        """Operator-transformed coordinates of ``elements`` (default: all unit elements)."""
        idx = self.elements if elements is None else elements
        return self.operator.apply(self.model.coords[idx])

    def __len__(self) -> int:
        return len(self.elements)

    def __repr__(self) -> str:
        chain = self.model.chains[self.chain_index].chain_id
        return f"<Unit {self.id} chain={chain} op={self.operator.name} n={len(self.elements)}>"


@dataclass
class UnitSymmetryGroup:
    units: list[Unit]

    @property
    def elements(self) -> np.ndarray:
        return self.units[0].elements


class Structure:
    """Read-only collection of units; child structures reference their parent."""

    def __init__(self, units: Iterable[Unit], parent: Optional["Structure"] = None, label: str = ""):
        self.units: tuple[Unit, ...] = tuple(units)
        self.parent = parent
        self.label = label or (parent.label if parent is not None else "")
        self.unit_map: dict[int, Unit] = {u.id: u for u in self.units}
        self._symmetry_groups: Optional[list[UnitSymmetryGroup]] = None
        self._unit_lookup: Optional[dict[tuple[str, int, int], Unit]] = None
        self._unique_elements: Optional[list[str]] = None
        self._unique_residues: Optional[list[str]] = None

    @classmethod
    def from_model(
        cls,
        model: Model,
        operators: Optional[Sequence[SymmetryOperator]] = None,
        label: str = "",
    ) -> "Structure":
        """One unit per chain per operator, in operator-major order."""
        operators = list(operators) if operators else [IDENTITY]
        units = []
        for op in operators:
            for ci in range(len(model.chains)):
                elements = model.chain_atoms(ci)
                if len(elements) == 0:
                    continue
                units.append(Unit(len(units), model, ci, op, elements))
        return cls(units, label=label or model.label)

    @property
    def root(self) -> "Structure":
        s = self
        while s.parent is not None:
            s = s.parent
        return s

    @property
    def element_count(self) -> int:
        return sum(len(u.elements) for u in self.units)

    @property
    def is_empty(self) -> bool:
        return self.element_count == 0

    @property
    def models(self) -> list[Model]:
        seen: dict[int, Model] = {}
        for u in self.units:
            seen.setdefault(u.model.id, u.model)
        return list(seen.values())

    @property
    def unit_symmetry_groups(self) -> list[UnitSymmetryGroup]:
        if self._symmetry_groups is None:
            groups: dict[tuple[int, int], UnitSymmetryGroup] = {}
            for u in self.units:
                key = u.invariant_id
                if key not in groups:
                    groups[key] = UnitSymmetryGroup([])
                groups[key].units.append(u)
            self._symmetry_groups = list(groups.values())
        return self._symmetry_groups

    @property
    def unique_element_symbols(self) -> list[str]:
        if self._unique_elements is None:
            symbols: dict[str, None] = {}
            for g in self.unit_symmetry_groups:
                u = g.units[0]
                for s in u.model.elements[u.elements]:
                    symbols.setdefault(s, None)
            self._unique_elements = list(symbols)
        return self._unique_elements

    @property
    def unique_residue_names(self) -> list[str]:
        if self._unique_residues is None:
            names: dict[str, None] = {}
            for g in self.unit_symmetry_groups:
                u = g.units[0]
                for ri in np.unique(u.model.atom_residue[u.elements]):
                    names.setdefault(u.model.residues[ri].name, None)
            self._unique_residues = list(names)
        return self._unique_residues

    def lookup_unit(self, operator_name: str, chain_index: int, model_id: Optional[int] = None) -> Optional[Unit]:
        """Unit holding ``chain_index`` under ``operator_name`` (first model unless given)."""
        if self._unit_lookup is None:
            self._unit_lookup = {}
            for u in self.units:
                self._unit_lookup.setdefault((u.operator.name, u.model.id, u.chain_index), u)
        if model_id is None:
            model_id = self.units[0].model.id if self.units else -1
        return self._unit_lookup.get((operator_name, model_id, chain_index))

    def subset(self, elements_by_unit: dict[int, np.ndarray]) -> "Structure":
        """Child structure restricted to the given (sorted) elements per unit id."""
        units = []
        for u in self.root.units:
            idx = elements_by_unit.get(u.id)
            if idx is not None and len(idx):
                units.append(u.get_child(idx))
        return Structure(units, parent=self.root)

    def __iter__(self) -> Iterator[Unit]:
        return iter(self.units)

    def __repr__(self) -> str:
        return f"<Structure {self.label} units={len(self.units)} atoms={self.element_count}>"
