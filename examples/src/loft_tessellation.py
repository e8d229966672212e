#!/usr/bin/env python3
"""
Example: interpolate a profile, loft it and tessellate the result.

This example demonstrates the complete modeling pipeline:
1. Interpolate a planar outline with a cubic curve
2. Make a rotated and lifted copy of the profile
3. Loft a surface through both sections
4. Tessellate the surface adaptively and check the mesh

Usage:
    ./examples/src/loft_tessellation.py
    ./examples/src/loft_tessellation.py --tolerance 0.01 --max-depth 7
    ./examples/src/loft_tessellation.py --sweep
"""

import numpy as np
import sys
from pathlib import Path

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from nurbskit import try_interpolate, try_loft, extrude, AdaptiveTessellationOptions
from nurbskit.geometry.primitives import make_nurbs_circle


OUTLINE = np.array([
    [-1.0, -1.0, 0.0],
    [1.0, -1.0, 0.0],
    [1.0, 0.0, 0.0],
    [-1.0, 0.0, 0.0],
    [-1.0, 1.0, 0.0],
    [1.0, 1.0, 0.0],
])

# Rotation by 90 degrees about z, then 3 units along z
TWIST = np.array([
    [0.0, -1.0, 0.0, 0.0],
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 1.0, 3.0],
    [0.0, 0.0, 0.0, 1.0],
])


def run(tolerance: float = 2.5e-2,
        max_depth: int = 6,
        export_vtk: bool = True,
        verbose: bool = True):
    """
    Run the loft example.

    Parameters:
        tolerance: Normal deviation tolerance of the tessellator
        max_depth: Maximum quad-tree depth
        export_vtk: Whether to export the mesh as a VTK file
        verbose: Print progress information

    Returns:
        Dictionary with the curve, surface and mesh
    """
    if verbose:
        print("=" * 60)
        print("Loft and Tessellation Example")
        print("=" * 60)
        print()

    # ==========================================================================
    # 1. Interpolate the profile
    # ==========================================================================
    profile = try_interpolate(OUTLINE, degree=3)

    if verbose:
        print("Profile curve:")
        print(f"  {profile}")
        print(f"  Knots: {np.round(profile.knots, 4)}")
        print(f"  Length: {profile.length():.6f}")
        print()

    # ==========================================================================
    # 2. Loft through the profile and its transformed copy
    # ==========================================================================
    top = profile.transformed(TWIST)
    surface = try_loft([profile, top], v_degree=3)

    bottom_error = max(
        np.linalg.norm(surface.evaluate(u, 0.0) - profile.evaluate(u))
        for u in np.linspace(0, 1, 101)
    )
    top_error = max(
        np.linalg.norm(surface.evaluate(u, 1.0) - top.evaluate(u))
        for u in np.linspace(0, 1, 101)
    )

    if verbose:
        print("Lofted surface:")
        print(f"  {surface}")
        print(f"  Max deviation from bottom section: {bottom_error:.3e}")
        print(f"  Max deviation from top section: {top_error:.3e}")
        print()

    # ==========================================================================
    # 3. Tessellate
    # ==========================================================================
    options = AdaptiveTessellationOptions(norm_tolerance=tolerance, max_depth=max_depth)
    mesh = surface.tessellate(options)
    edge_counts = mesh.edge_counts()

    if verbose:
        print("Mesh:")
        print(f"  Vertices: {mesh.n_vertices}")
        print(f"  Triangles: {mesh.n_faces}")
        print(f"  Boundary edges: {len(mesh.boundary_edges())}")
        print(f"  Max faces per edge: {max(edge_counts.values())}")
        print()

    if export_vtk:
        output_file = Path(__file__).parent / "loft_mesh.vtk"
        _export_mesh_vtk(str(output_file), mesh)
        if verbose:
            print(f"Exported {output_file}")
            print()

    return {
        'profile': profile,
        'surface': surface,
        'mesh': mesh,
        'section_error': max(bottom_error, top_error),
    }


def _export_mesh_vtk(filename: str, mesh):
    """Helper to export a triangle mesh with normals to legacy VTK."""
    with open(filename, 'w') as f:
        f.write("# vtk DataFile Version 3.0\n")
        f.write("nurbskit mesh\n")
        f.write("ASCII\n")
        f.write("DATASET POLYDATA\n")

        f.write(f"POINTS {mesh.n_vertices} float\n")
        for x, y, z in mesh.positions:
            f.write(f"{x} {y} {z}\n")

        f.write(f"\nPOLYGONS {mesh.n_faces} {4 * mesh.n_faces}\n")
        for a, b, c in mesh.faces:
            f.write(f"3 {a} {b} {c}\n")

        f.write(f"\nPOINT_DATA {mesh.n_vertices}\n")
        f.write("NORMALS normals float\n")
        for x, y, z in mesh.normals:
            f.write(f"{x} {y} {z}\n")


def tolerance_sweep(tolerances: list = None, max_depth: int = 8):
    """
    Mesh sizes of an extruded circle for decreasing tolerances.

    Parameters:
        tolerances: Normal deviation tolerances to test
        max_depth: Maximum quad-tree depth
    """
    if tolerances is None:
        tolerances = [0.4, 0.2, 0.1, 0.05, 0.025]

    cylinder = extrude(make_nurbs_circle(radius=1.0, center=(0.0, 0.0, 0.0)), [0.0, 0.0, 1.0])

    print("=" * 50)
    print("Tolerance Sweep: Cylinder")
    print("=" * 50)
    print(f"{'Tolerance':>12} {'Vertices':>10} {'Triangles':>10} {'Max |r-1|':>12}")
    print("-" * 50)

    results = {}
    for tol in tolerances:
        options = AdaptiveTessellationOptions(norm_tolerance=tol, max_depth=max_depth)
        mesh = cylinder.tessellate(options)

        # Distance of the triangle centroids from the cylinder
        centroids = mesh.positions[mesh.faces].mean(axis=1)
        radial_error = np.abs(np.hypot(centroids[:, 0], centroids[:, 1]) - 1.0).max()
        print(f"{tol:>12.3f} {mesh.n_vertices:>10} {mesh.n_faces:>10} {radial_error:>12.3e}")

        results[tol] = {'n_faces': mesh.n_faces, 'radial_error': radial_error}

    return results


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Loft and tessellation example")
    parser.add_argument("--tolerance", "-t", type=float, default=2.5e-2,
                        help="Normal deviation tolerance (default: 0.025)")
    parser.add_argument("--max-depth", "-d", type=int, default=6,
                        help="Maximum subdivision depth (default: 6)")
    parser.add_argument("--sweep", "-s", action="store_true",
                        help="Run a tolerance sweep on a cylinder")
    parser.add_argument("--no-vtk", action="store_true",
                        help="Skip VTK export")

    args = parser.parse_args()

    if args.sweep:
        tolerance_sweep()
    else:
        run(tolerance=args.tolerance, max_depth=args.max_depth, export_vtk=not args.no_vtk)
