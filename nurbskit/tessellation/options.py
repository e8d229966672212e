"""
Settings for adaptive surface tessellation.
"""

import math
from dataclasses import dataclass

from ..config import Defaults


@dataclass(frozen=True)
class AdaptiveTessellationOptions:
    """
    Refinement controls of the adaptive tessellator.

    Attributes:
        norm_tolerance: Largest accepted deviation between the unit normal
            at a cell center and the normals at its corners. Cells above it
            are split.
        min_depth: Every cell is split at least this many times
        max_depth: Cells are never split beyond this depth
        weld_vertices: Merge vertices that coincide in space (poles, collapsed
            edges, closed seams). Off by default so that every vertex keeps
            a single uv.
    """
    norm_tolerance: float = Defaults.TESSELLATION_NORM_TOLERANCE
    min_depth: int = Defaults.TESSELLATION_MIN_DEPTH
    max_depth: int = Defaults.TESSELLATION_MAX_DEPTH
    weld_vertices: bool = False

    def __post_init__(self):
        if not (math.isfinite(self.norm_tolerance) and self.norm_tolerance > 0):
            raise ValueError(f"norm_tolerance must be positive, got {self.norm_tolerance}")
        if int(self.min_depth) != self.min_depth or self.min_depth < 0:
            raise ValueError(f"min_depth must be a non-negative integer, got {self.min_depth}")
        if int(self.max_depth) != self.max_depth or self.max_depth < self.min_depth:
            raise ValueError(
                f"max_depth must be an integer >= min_depth ({self.min_depth}), got {self.max_depth}"
            )
