"""
Brush geometry model and per-face / per-brush conversion stages.
"""

from .brush_model import Brush, BrushGroup, Face, Plane, make_box_brush
from .batch import BatchExecutor
from .collider_builder import (
    ColliderBuilder,
    ColliderDescriptor,
    ColliderMode,
    ColliderShape,
    build_colliders,
)
from .face_culling import DiscardSet, DiscardSetFrozenError, cull_faces
from .mesh_builder import MeshBuffers, MeshBuilder, build_mesh, select_faces
from .obj_writer import ObjWriter
from .uv_projection import project_uv, project_uvs

__all__ = [
    'Brush',
    'BrushGroup',
    'Face',
    'Plane',
    'make_box_brush',
    'BatchExecutor',
    'ColliderBuilder',
    'ColliderDescriptor',
    'ColliderMode',
    'ColliderShape',
    'build_colliders',
    'DiscardSet',
    'DiscardSetFrozenError',
    'cull_faces',
    'MeshBuffers',
    'MeshBuilder',
    'build_mesh',
    'select_faces',
    'ObjWriter',
    'project_uv',
    'project_uvs',
]
