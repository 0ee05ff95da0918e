"""Per-residue secondary structure flags.

Annotated ranges (HELIX/SHEET records, struct_conf/struct_sheet_range) are
used when the model has them. Otherwise, if enabled, a P-SEA style
assignment from CA-CA distances over windows of five residues is computed.
"""

from __future__ import annotations

import numpy as np

from molselect.config import SelectionSettings
from molselect.core.logging_utils import get_logger
from molselect.model.model import Model
from molselect.model.types import SecondaryStructureType
from molselect.props.base import CustomPropertyProvider, register_provider
from molselect.runtime.properties import SECONDARY_STRUCTURE_PROPERTY

logger = get_logger(__name__)

# (target, tolerance) for d(i, i+2), d(i, i+3), d(i, i+4)
HELIX_CRITERIA = ((5.5, 0.5), (5.3, 0.5), (6.4, 0.6))
STRAND_CRITERIA = ((6.7, 0.6), (9.9, 0.9), (12.4, 1.1))
MIN_HELIX_LENGTH = 5
MIN_STRAND_LENGTH = 3


def flags_from_ranges(model: Model) -> np.ndarray:
    flags = np.zeros(model.residue_count, dtype=np.int64)
    for rng in model.secondary_structure_ranges:
        for ci, chain in enumerate(model.chains):
            if rng.chain_id not in (chain.chain_id, chain.auth_chain_id):
                continue
            lo, hi = model.chain_residue_offsets[ci], model.chain_residue_offsets[ci + 1]
            for ri in range(lo, hi):
                if rng.start_seq_id <= model.residues[ri].seq_id <= rng.end_seq_id:
                    flags[ri] |= int(rng.kind)
    return flags


def _matches(d: np.ndarray, criteria) -> np.ndarray:
    ok = np.ones(d.shape[0], dtype=bool)
    for k, (target, tol) in enumerate(criteria):
        ok &= np.abs(d[:, k] - target) <= tol
    return ok


def _drop_short(mask: np.ndarray, min_length: int) -> np.ndarray:
    out = mask.copy()
    i = 0
    while i < len(mask):
        if not mask[i]:
            i += 1
            continue
        j = i
        while j < len(mask) and mask[j]:
            j += 1
        if j - i < min_length:
            out[i:j] = False
        i = j
    return out


def assign_from_ca(model: Model) -> np.ndarray:
    """P-SEA style helix/strand assignment from CA trace distances."""
    flags = np.zeros(model.residue_count, dtype=np.int64)
    for ci in range(len(model.chains)):
        lo, hi = model.chain_residue_offsets[ci], model.chain_residue_offsets[ci + 1]
        residues, ca = [], []
        for ri in range(lo, hi):
            atoms = model.residue_atoms(ri)
            hit = np.flatnonzero(model.atom_names[atoms] == "CA")
            if len(hit):
                residues.append(ri)
                ca.append(model.coords[atoms[hit[0]]])
        n = len(ca)
        if n < 5:
            continue
        ca = np.asarray(ca)
        d = np.stack([
            np.linalg.norm(ca[: n - 4] - ca[k: n - 4 + k], axis=1) for k in (2, 3, 4)
        ], axis=1)
        helix = np.zeros(n, dtype=bool)
        strand = np.zeros(n, dtype=bool)
        for start in np.flatnonzero(_matches(d, HELIX_CRITERIA)):
            helix[start: start + 5] = True
        for start in np.flatnonzero(_matches(d, STRAND_CRITERIA)):
            strand[start: start + 5] = True
        helix = _drop_short(helix, MIN_HELIX_LENGTH)
        strand = _drop_short(strand & ~helix, MIN_STRAND_LENGTH)
        idx = np.asarray(residues)
        flags[idx[helix]] |= int(SecondaryStructureType.HELIX)
        flags[idx[strand]] |= int(SecondaryStructureType.BETA)
    return flags


class SecondaryStructureProvider(CustomPropertyProvider):
    name = SECONDARY_STRUCTURE_PROPERTY
    label = "Secondary Structure"

    def compute(self, model: Model, settings: SelectionSettings) -> np.ndarray:
        if model.secondary_structure_ranges:
            return flags_from_ranges(model)
        if settings.compute_secondary_structure:
            logger.info("%s has no secondary structure annotation; assigning from CA trace", model.label)
            return assign_from_ca(model)
        return np.zeros(model.residue_count, dtype=np.int64)


SECONDARY_STRUCTURE = register_provider(SecondaryStructureProvider())
