"""
Mesh post-processing: normals, tangents, welding and vertex snapping.
"""

from .normals import compute_flat_normals, compute_tangents, smooth_normals
from .welding import WeldResult, snap_brush_vertices, weld_vertices

__all__ = [
    'compute_flat_normals',
    'compute_tangents',
    'smooth_normals',
    'WeldResult',
    'snap_brush_vertices',
    'weld_vertices',
]
