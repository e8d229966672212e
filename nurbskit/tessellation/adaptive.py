"""
Adaptive surface tessellation.

The parametric domain is subdivided as a quad-tree. A cell is split into
four at its midpoint lines when

- its depth is below min_depth, or
- its depth is below max_depth and the unit normal at its center deviates
  from the corner normals by more than norm_tolerance.

The tree is built with an explicit stack over an arena of nodes. Once
every leaf exists, each leaf is triangulated:

- a leaf whose edges carry no vertices of finer neighbours emits two
  triangles,
- otherwise it emits a fan around its center through all of its boundary
  vertices, including those of the finer neighbours.

Every boundary vertex lies on a shared integer lattice, so adjacent
leaves use identical vertices along shared edges and the mesh has no
cracks or T-junctions.
"""

import numpy as np
from collections import defaultdict
from typing import Dict, List, Optional

from loguru import logger

from .mesh import Mesh
from .node import LatticeKey, SurfacePoint, TessellationNode
from .options import AdaptiveTessellationOptions


class AdaptiveTessellator:
    """
    Quad-tree tessellator for one surface.

    Parameters:
        surface: NURBSSurface in 2D or 3D (2-D surfaces are placed in z = 0)
        options: AdaptiveTessellationOptions
    """

    def __init__(self, surface, options: Optional[AdaptiveTessellationOptions] = None):
        if surface.n_dim_physical == 2:
            surface = surface.elevate_dimension()
        if surface.n_dim_physical != 3:
            raise ValueError(
                f"Tessellation requires a 2-D or 3-D surface, got dimension {surface.n_dim_physical}"
            )
        self.surface = surface
        self.options = options if options is not None else AdaptiveTessellationOptions()
        self.lattice_size = 2 ** self.options.max_depth

        (self._u0, self._u1), (self._v0, self._v1) = surface.domain
        self._points: Dict[LatticeKey, SurfacePoint] = {}
        self.nodes: List[TessellationNode] = []

    def _uv(self, key: LatticeKey):
        i, j = key
        L = self.lattice_size
        u = self._u0 + (self._u1 - self._u0) * (i / L)
        v = self._v0 + (self._v1 - self._v0) * (j / L)
        return u, v

    def _sample(self, key: LatticeKey) -> SurfacePoint:
        """Surface point at a lattice position (cached)."""
        point = self._points.get(key)
        if point is None:
            u, v = self._uv(key)
            point = SurfacePoint((u, v), self.surface.evaluate(u, v), self.surface.normal(u, v))
            self._points[key] = point
        return point

    def _make_node(self, depth: int, i0: int, j0: int, size: int) -> int:
        node = TessellationNode(depth, i0, j0, size, corners=None)
        node.corners = tuple(self._sample(k) for k in node.corner_keys())
        self.nodes.append(node)
        return len(self.nodes) - 1

    def _should_split(self, node: TessellationNode) -> bool:
        if node.depth < self.options.min_depth:
            return True
        if node.depth >= self.options.max_depth:
            return False
        node.center = self._sample(node.center_key())
        return node.normal_deviation() > self.options.norm_tolerance

    def build_tree(self) -> List[TessellationNode]:
        """
        Subdivide the domain.

        Returns:
            The node arena; nodes[0] is the root
        """
        self.nodes = []
        stack = [self._make_node(0, 0, 0, self.lattice_size)]

        while stack:
            index = stack.pop()
            node = self.nodes[index]
            if not self._should_split(node):
                continue

            half = node.size // 2
            children = tuple(
                self._make_node(node.depth + 1, i0, j0, half)
                for i0, j0 in node.child_origins()
            )
            node.children = children
            stack.extend(children)

        return self.nodes

    def leaves(self) -> List[TessellationNode]:
        return [node for node in self.nodes if node.is_leaf]

    def triangulate(self) -> Mesh:
        """
        Stitch the leaves of the built tree into a triangle mesh.

        Returns:
            Mesh
        """
        leaves = self.leaves()

        # Leaf corners indexed by lattice row and column
        rows = defaultdict(set)
        columns = defaultdict(set)
        for leaf in leaves:
            for i, j in leaf.corner_keys():
                rows[j].add(i)
                columns[i].add(j)
        rows = {j: sorted(values) for j, values in rows.items()}
        columns = {i: sorted(values) for i, values in columns.items()}

        vertex_index: Dict[LatticeKey, int] = {}

        def vertex(key: LatticeKey) -> int:
            if key not in vertex_index:
                vertex_index[key] = len(vertex_index)
            return vertex_index[key]

        faces = []
        for leaf in leaves:
            i0, j0, s = leaf.i0, leaf.j0, leaf.size
            i1, j1 = i0 + s, j0 + s

            # Counter-clockwise boundary including vertices of finer neighbours
            boundary = [(i, j0) for i in rows[j0] if i0 <= i < i1]
            boundary += [(i1, j) for j in columns[i1] if j0 <= j < j1]
            boundary += [(i, j1) for i in reversed(rows[j1]) if i0 < i <= i1]
            boundary += [(i0, j) for j in reversed(columns[i0]) if j0 < j <= j1]

            ids = [vertex(key) for key in boundary]
            if len(ids) == 4:
                faces.append((ids[0], ids[1], ids[2]))
                faces.append((ids[0], ids[2], ids[3]))
            else:
                center_key = leaf.center_key()
                self._sample(center_key)
                c = vertex(center_key)
                for a, b in zip(ids, ids[1:] + ids[:1]):
                    faces.append((c, a, b))

        keys = sorted(vertex_index, key=vertex_index.get)
        samples = [self._points[key] for key in keys]
        dtype = self.surface.dtype
        positions = np.array([p.position for p in samples], dtype=dtype).reshape(-1, 3)
        normals = np.array([p.normal for p in samples], dtype=dtype).reshape(-1, 3)
        uvs = np.array([p.uv for p in samples], dtype=dtype).reshape(-1, 2)

        capped = sum(1 for leaf in leaves if leaf.depth >= self.options.max_depth)
        logger.debug(
            f"Tessellation: {len(leaves)} leaves, {len(positions)} vertices, "
            f"{len(faces)} triangles, {capped} leaves at max depth {self.options.max_depth}"
        )
        mesh = Mesh(positions, normals, uvs, faces)
        if self.options.weld_vertices:
            extent = float(np.ptp(positions, axis=0).max()) if len(positions) else 0.0
            mesh = mesh.weld(self.surface.backend.tolerance * max(1.0, extent))
        return mesh

    def run(self) -> Mesh:
        self.build_tree()
        return self.triangulate()


def tessellate_surface(surface, options: Optional[AdaptiveTessellationOptions] = None) -> Mesh:
    """
    Adaptive triangle mesh of a NURBS surface.

    Parameters:
        surface: NURBSSurface
        options: AdaptiveTessellationOptions (defaults if None)

    Returns:
        Mesh
    """
    return AdaptiveTessellator(surface, options).run()
