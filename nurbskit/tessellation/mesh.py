"""
Triangle mesh produced by surface tessellation.
"""

import numpy as np
from collections import Counter
from scipy.spatial import cKDTree
from typing import NamedTuple, List, Tuple


class MeshVertex(NamedTuple):
    """One mesh vertex."""
    position: np.ndarray
    normal: np.ndarray
    uv: np.ndarray


class Mesh:
    """
    Indexed triangle mesh.

    Attributes:
        positions: (n_vertices, 3) vertex coordinates
        normals: (n_vertices, 3) unit surface normals
        uvs: (n_vertices, 2) surface parameters of the vertices
        faces: (n_faces, 3) vertex indices, counter-clockwise in (u, v)

    All arrays are read-only.
    """

    def __init__(self, positions, normals, uvs, faces):
        self.positions = np.asarray(positions)
        self.normals = np.asarray(normals)
        self.uvs = np.asarray(uvs)
        self.faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)

        n = len(self.positions)
        if len(self.normals) != n or len(self.uvs) != n:
            raise ValueError("positions, normals and uvs must have the same length")
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= n):
            raise ValueError("Face index out of range")

        for array in (self.positions, self.normals, self.uvs, self.faces):
            array.setflags(write=False)

    def __repr__(self) -> str:
        return f"Mesh(n_vertices={self.n_vertices}, n_faces={self.n_faces})"

    @property
    def n_vertices(self) -> int:
        return len(self.positions)

    @property
    def n_faces(self) -> int:
        return len(self.faces)

    @property
    def vertices(self) -> List[MeshVertex]:
        """Vertices as (position, normal, uv) records."""
        return [MeshVertex(p, n, uv) for p, n, uv in zip(self.positions, self.normals, self.uvs)]

    def edge_counts(self) -> Counter:
        """Number of faces using each undirected edge (i, j), i < j."""
        counts: Counter = Counter()
        for a, b, c in self.faces:
            for e in ((a, b), (b, c), (c, a)):
                counts[(int(min(e)), int(max(e)))] += 1
        return counts

    def boundary_edges(self) -> List[Tuple[int, int]]:
        """Edges used by exactly one face."""
        return [e for e, count in self.edge_counts().items() if count == 1]

    def weld(self, tolerance: float) -> "Mesh":
        """
        Merge vertices whose positions are closer than tolerance.

        A merged vertex keeps the uv of its lowest-index member and the
        normalized mean of the members' normals. Faces that collapse onto
        an edge or a point are dropped.

        Parameters:
            tolerance: Largest distance between merged positions

        Returns:
            New Mesh
        """
        n = self.n_vertices
        parent = np.arange(n)

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for a, b in sorted(cKDTree(self.positions).query_pairs(tolerance)):
            ra, rb = find(a), find(b)
            if ra != rb:
                parent[max(ra, rb)] = min(ra, rb)

        roots = np.array([find(i) for i in range(n)], dtype=np.int64)
        kept, remap = np.unique(roots, return_inverse=True)
        remap = remap.reshape(-1)

        normals = np.zeros((len(kept), 3), dtype=self.normals.dtype)
        np.add.at(normals, remap, self.normals)
        lengths = np.linalg.norm(normals, axis=1)
        degenerate = lengths == 0.0
        normals[~degenerate] /= lengths[~degenerate, None]
        normals[degenerate] = self.normals[kept][degenerate]

        faces = remap[self.faces]
        keep = ((faces[:, 0] != faces[:, 1])
                & (faces[:, 1] != faces[:, 2])
                & (faces[:, 2] != faces[:, 0]))
        return Mesh(self.positions[kept], normals, self.uvs[kept], faces[keep])
