"""
Pytest configuration and shared fixtures for nurbskit tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for results of linear solves and quadrature."""
    return 1e-8


@pytest.fixture
def outline_points():
    """Six-point zig-zag outline in the plane."""
    return np.array([
        [-1.0, -1.0],
        [1.0, -1.0],
        [1.0, 0.0],
        [-1.0, 0.0],
        [-1.0, 1.0],
        [1.0, 1.0],
    ])


@pytest.fixture
def outline_points_3d(outline_points):
    """Six-point outline lifted to z = 0."""
    return np.hstack([outline_points, np.zeros((len(outline_points), 1))])


@pytest.fixture
def rotate_z_translate():
    """4x4 transform: rotation by 90 degrees about z, then translation by 3 along z."""
    return np.array([
        [0.0, -1.0, 0.0, 0.0],
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 1.0, 3.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
