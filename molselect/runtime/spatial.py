"""KD-tree lookup over the transformed coordinates of a structure."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree

from molselect.model.structure import Structure

# Radius slack so atoms lying exactly on the boundary survive float rounding.
BOUNDARY_EPSILON = 1e-6


class StructureLookup3D:
    """Point index over every atom of ``structure`` (all units, all operators).

    Built per call; rows map back to ``(unit_ids[row], elements[row])``.
    """

    def __init__(self, structure: Structure):
        coords, unit_ids, elements = [], [], []
        for unit in structure.units:
            coords.append(unit.coordinates())
            unit_ids.append(np.full(len(unit.elements), unit.id, dtype=np.int64))
            elements.append(unit.elements)
        if coords:
            self.coords = np.concatenate(coords)
            self.unit_ids = np.concatenate(unit_ids)
            self.elements = np.concatenate(elements).astype(np.int64)
        else:
            self.coords = np.zeros((0, 3))
            self.unit_ids = np.zeros(0, dtype=np.int64)
            self.elements = np.zeros(0, dtype=np.int64)
        self.tree = cKDTree(self.coords) if len(self.coords) else None

    def within(self, points: np.ndarray, radius: float) -> np.ndarray:
        """Row indices of atoms within ``radius`` (inclusive) of any point."""
        if self.tree is None or len(points) == 0:
            return np.zeros(0, dtype=np.int64)
        hits = self.tree.query_ball_point(np.asarray(points, dtype=np.float64), r=radius + BOUNDARY_EPSILON)
        rows = [np.asarray(h, dtype=np.int64) for h in hits if len(h)]
        if not rows:
            return np.zeros(0, dtype=np.int64)
        return np.unique(np.concatenate(rows))

    def element_map(self, rows: np.ndarray) -> dict[int, np.ndarray]:
        out: dict[int, np.ndarray] = {}
        if len(rows) == 0:
            return out
        uids = self.unit_ids[rows]
        els = self.elements[rows]
        for uid in np.unique(uids):
            out[int(uid)] = np.unique(els[uids == uid])
        return out
