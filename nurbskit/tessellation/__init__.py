"""
Tessellation of curves and surfaces.

Provides:
- AdaptiveTessellationOptions: refinement controls
- AdaptiveTessellator / tessellate_surface: crack-free adaptive triangle meshes
- Mesh: indexed triangle mesh
- tessellate_curve: adaptive polylines
"""

from .options import AdaptiveTessellationOptions
from .node import SurfacePoint, TessellationNode
from .mesh import Mesh, MeshVertex
from .adaptive import AdaptiveTessellator, tessellate_surface
from .polyline import tessellate_curve
