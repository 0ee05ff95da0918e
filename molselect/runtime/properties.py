"""Named property accessors read off the evaluation cursors.

Each accessor declares the granularity it reads at and the kind of value it
returns; the compiler uses both for type checks. Accessors read
``ctx.element`` (a Location) or, for bond properties, ``ctx.bond``.

Properties backed by a custom property that has not been computed return a
neutral value (``NONE`` flags), so tests over them evaluate false.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from molselect.errors import QueryCompileError
from molselect.language.expression import Granularity, ValueKind
from molselect.model.types import SecondaryStructureType, guess_chem_comp_type

if TYPE_CHECKING:
    from molselect.runtime.context import QueryContext

SECONDARY_STRUCTURE_PROPERTY = "secondary-structure"


@dataclass(frozen=True)
class PropertyAccessor:
    name: str
    granularity: Granularity
    kind: ValueKind
    getter: Callable[["QueryContext"], Any]
    requires: Optional[str] = None
    description: str = ""


PROPERTIES: dict[str, PropertyAccessor] = {}


def _reg(accessor: PropertyAccessor) -> None:
    PROPERTIES[accessor.name] = accessor


def get_property(name: str) -> PropertyAccessor:
    if name not in PROPERTIES:
        raise QueryCompileError(f"Unknown property: {name!r}. Available: {sorted(PROPERTIES)}")
    return PROPERTIES[name]


def list_properties(granularity: Optional[Granularity] = None) -> list[PropertyAccessor]:
    return [p for p in PROPERTIES.values() if granularity is None or p.granularity == granularity]


# -- helpers ----------------------------------------------------------------

def _entity(ctx):
    loc = ctx.element
    return loc.unit.model.entity_of_chain(loc.unit.chain_index)


def _chain(ctx):
    loc = ctx.element
    return loc.unit.model.chains[loc.unit.chain_index]


def _residue(ctx):
    loc = ctx.element
    model = loc.unit.model
    return model.residues[model.atom_residue[loc.element]]


def _secondary_structure_flags(ctx) -> int:
    loc = ctx.element
    model = loc.unit.model
    flags = model.custom_properties.get(SECONDARY_STRUCTURE_PROPERTY)
    if flags is None:
        return int(SecondaryStructureType.NONE)
    return int(flags[model.atom_residue[loc.element]])


# -- Entity -----------------------------------------------------------------

_reg(PropertyAccessor(
    name="entityType", granularity=Granularity.ENTITY, kind=ValueKind.STRING,
    getter=lambda ctx: _entity(ctx).entity_type,
    description="polymer, non-polymer, water or branched",
))
_reg(PropertyAccessor(
    name="entitySubtype", granularity=Granularity.ENTITY, kind=ValueKind.STRING,
    getter=lambda ctx: _entity(ctx).subtype,
    description="e.g. polypeptide(L), polyribonucleotide, oligosaccharide",
))
_reg(PropertyAccessor(
    name="entityDescription", granularity=Granularity.ENTITY, kind=ValueKind.LIST,
    getter=lambda ctx: _entity(ctx).descriptions,
))
_reg(PropertyAccessor(
    name="entityId", granularity=Granularity.ENTITY, kind=ValueKind.STRING,
    getter=lambda ctx: _entity(ctx).entity_id,
))

# -- Chain ------------------------------------------------------------------

_reg(PropertyAccessor(
    name="objectPrimitive", granularity=Granularity.CHAIN, kind=ValueKind.STRING,
    getter=lambda ctx: _chain(ctx).object_primitive,
    description="atomistic, sphere or gaussian",
))
_reg(PropertyAccessor(
    name="label_asym_id", granularity=Granularity.CHAIN, kind=ValueKind.STRING,
    getter=lambda ctx: _chain(ctx).chain_id,
))
_reg(PropertyAccessor(
    name="auth_asym_id", granularity=Granularity.CHAIN, kind=ValueKind.STRING,
    getter=lambda ctx: _chain(ctx).auth_chain_id or _chain(ctx).chain_id,
))

# -- Residue ----------------------------------------------------------------

_reg(PropertyAccessor(
    name="label_comp_id", granularity=Granularity.RESIDUE, kind=ValueKind.STRING,
    getter=lambda ctx: _residue(ctx).name,
))
_reg(PropertyAccessor(
    name="auth_comp_id", granularity=Granularity.RESIDUE, kind=ValueKind.STRING,
    getter=lambda ctx: _residue(ctx).name,
))
_reg(PropertyAccessor(
    name="label_seq_id", granularity=Granularity.RESIDUE, kind=ValueKind.NUMBER,
    getter=lambda ctx: _residue(ctx).seq_id,
))
_reg(PropertyAccessor(
    name="chemCompType", granularity=Granularity.RESIDUE, kind=ValueKind.STRING,
    getter=lambda ctx: _residue(ctx).chem_comp_type or guess_chem_comp_type(_residue(ctx).name),
))
_reg(PropertyAccessor(
    name="isNonStandard", granularity=Granularity.RESIDUE, kind=ValueKind.BOOL,
    getter=lambda ctx: not _residue(ctx).is_standard,
))
_reg(PropertyAccessor(
    name="secondaryStructureFlags", granularity=Granularity.RESIDUE, kind=ValueKind.FLAGS,
    getter=_secondary_structure_flags,
    requires=SECONDARY_STRUCTURE_PROPERTY,
))

# -- Atom -------------------------------------------------------------------

_reg(PropertyAccessor(
    name="label_atom_id", granularity=Granularity.ATOM, kind=ValueKind.STRING,
    getter=lambda ctx: ctx.element.unit.model.atom_names[ctx.element.element],
))
_reg(PropertyAccessor(
    name="elementSymbol", granularity=Granularity.ATOM, kind=ValueKind.STRING,
    getter=lambda ctx: ctx.element.unit.model.elements[ctx.element.element],
))
_reg(PropertyAccessor(
    name="B_iso_or_equiv", granularity=Granularity.ATOM, kind=ValueKind.NUMBER,
    getter=lambda ctx: float(ctx.element.unit.model.b_factors[ctx.element.element]),
))
_reg(PropertyAccessor(
    name="occupancy", granularity=Granularity.ATOM, kind=ValueKind.NUMBER,
    getter=lambda ctx: float(ctx.element.unit.model.occupancies[ctx.element.element]),
))

# -- Bond -------------------------------------------------------------------

_reg(PropertyAccessor(
    name="bondFlags", granularity=Granularity.BOND, kind=ValueKind.FLAGS,
    getter=lambda ctx: int(ctx.bond.flags),
    requires="bonds",
))
