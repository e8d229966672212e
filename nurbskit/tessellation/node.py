"""
Quad-tree records of the adaptive tessellator.

Nodes live in a flat list (the arena) and refer to their children by
index. Cell corners are addressed on an integer lattice of 2**max_depth
steps per direction, so neighbouring cells of any depth agree exactly on
shared vertices.
"""

import numpy as np
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple, List


class SurfacePoint(NamedTuple):
    """Sampled surface point."""
    uv: Tuple[float, float]
    position: np.ndarray
    normal: np.ndarray


LatticeKey = Tuple[int, int]


@dataclass
class TessellationNode:
    """
    Cell [i0, i0+size] x [j0, j0+size] of the lattice.

    Attributes:
        depth: Number of splits from the root
        i0, j0: Lower-left lattice corner
        size: Edge length in lattice steps
        corners: Corner samples (counter-clockwise from (i0, j0))
        center: Center sample, if the node was considered for splitting
        children: Arena indices of the four children, None for a leaf
    """
    depth: int
    i0: int
    j0: int
    size: int
    corners: Tuple[SurfacePoint, SurfacePoint, SurfacePoint, SurfacePoint]
    center: Optional[SurfacePoint] = None
    children: Optional[Tuple[int, int, int, int]] = None

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    def corner_keys(self) -> List[LatticeKey]:
        """Lattice corners, counter-clockwise from (i0, j0)."""
        i0, j0, s = self.i0, self.j0, self.size
        return [(i0, j0), (i0 + s, j0), (i0 + s, j0 + s), (i0, j0 + s)]

    def center_key(self) -> LatticeKey:
        half = self.size // 2
        return (self.i0 + half, self.j0 + half)

    def child_origins(self) -> List[LatticeKey]:
        """Lower-left corners of the four children."""
        half = self.size // 2
        return [(self.i0, self.j0), (self.i0 + half, self.j0),
                (self.i0 + half, self.j0 + half), (self.i0, self.j0 + half)]

    def normal_deviation(self) -> float:
        """
        Deviation between the center normal and the corner normals.

        The larger of |n_c - normalize(mean corner normal)| and
        max_i |n_c - n_i|.
        """
        n_c = self.center.normal
        corner_normals = np.array([c.normal for c in self.corners])

        mean = corner_normals.mean(axis=0)
        length = np.linalg.norm(mean)
        if length > 0.0:
            deviation = float(np.linalg.norm(n_c - mean / length))
        else:
            # Opposite corner normals, or a collapsed cell without normals
            deviation = 2.0 if np.linalg.norm(n_c) > 0.0 else 0.0
        return max(deviation, float(np.max(np.linalg.norm(corner_normals - n_c, axis=1))))
