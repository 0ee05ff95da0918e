from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parents[1] / ".env"
if _env_path.is_file():
    load_dotenv(_env_path, override=False)


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass
class SelectionSettings:
    """Configuration loaded from MOLSELECT_* environment variables.

    Logging:
      MOLSELECT_LOG_LEVEL=INFO

    Custom property computation:
      MOLSELECT_INFER_BONDS=true
      MOLSELECT_BOND_TOLERANCE=0.45
      MOLSELECT_DISULFIDE_MAX_DISTANCE=2.3
      MOLSELECT_COMPUTE_SECONDARY_STRUCTURE=true

    CLI defaults:
      MOLSELECT_SURROUNDINGS_RADIUS=5.0
    """

    log_level: str = "INFO"

    # Bonds
    infer_bonds: bool = True
    bond_tolerance: float = 0.45
    disulfide_max_distance: float = 2.3

    # Secondary structure fallback when a model carries no annotation
    compute_secondary_structure: bool = True

    surroundings_radius: float = 5.0


def load_settings() -> SelectionSettings:
    """Load settings from environment variables."""
    return SelectionSettings(
        log_level=os.environ.get("MOLSELECT_LOG_LEVEL", "INFO").upper(),
        infer_bonds=_as_bool(os.environ.get("MOLSELECT_INFER_BONDS", "true")),
        bond_tolerance=float(os.environ.get("MOLSELECT_BOND_TOLERANCE", "0.45")),
        disulfide_max_distance=float(os.environ.get("MOLSELECT_DISULFIDE_MAX_DISTANCE", "2.3")),
        compute_secondary_structure=_as_bool(
            os.environ.get("MOLSELECT_COMPUTE_SECONDARY_STRUCTURE", "true")
        ),
        surroundings_radius=float(os.environ.get("MOLSELECT_SURROUNDINGS_RADIUS", "5.0")),
    )
