"""molselect.props — custom properties computed before evaluation.

Architecture:
    - base.py: CustomPropertyProvider, CustomPropertyContext, ensure_properties
    - bonds.py: BondsProvider (explicit + inferred bonds, aromatic flags)
    - secondary_structure.py: SecondaryStructureProvider (ranges or CA trace)
"""

from molselect.props.base import (
    PROVIDERS,
    CustomPropertyContext,
    CustomPropertyProvider,
    ensure_properties,
    get_provider,
    register_provider,
)
from molselect.props.bonds import BONDS, BondsProvider
from molselect.props.secondary_structure import SECONDARY_STRUCTURE, SecondaryStructureProvider

__all__ = [
    "CustomPropertyContext",
    "CustomPropertyProvider",
    "ensure_properties",
    "get_provider",
    "register_provider",
    "PROVIDERS",
    "BondsProvider",
    "BONDS",
    "SecondaryStructureProvider",
    "SECONDARY_STRUCTURE",
]
