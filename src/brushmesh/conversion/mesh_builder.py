"""
Mesh builder for converting brush faces to renderable buffers.

Faces are convex with vertices already in ring order, so each one is fan
triangulated from its first vertex. All faces of a material group are packed
into one vertex/index buffer: offsets are prefix sums computed up front, then
faces are written in parallel into their own slices.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from brushmesh.conversion.batch import (
    MESH_BATCH_SIZE,
    BatchExecutor,
    get_default_executor,
)
from brushmesh.conversion.brush_model import Brush, Face
from brushmesh.conversion.plane_math import Vec3
from brushmesh.conversion.uv_projection import project_uvs

logger = logging.getLogger(__name__)

# Indices above this need a 32-bit index buffer.
MAX_UINT16_VERTICES = 65535

# hook(face, positions, uvs): in-place edits of one face's buffer slices.
FaceHook = Callable[[Face, np.ndarray, np.ndarray], None]


@dataclass
class MeshBuffers:
    """Packed mesh data for one material group."""
    # Shape: (N, 3), dtype=float32
    vertices: np.ndarray
    # Shape: (N, 2), dtype=float32
    uvs: np.ndarray
    # Flat triangle list, shape (M,), dtype=uint32
    indices: np.ndarray
    # Filled by the normal post-process; shape (N, 3)
    normals: Optional[np.ndarray] = None
    # Optional, shape (N, 4) with handedness in w
    tangents: Optional[np.ndarray] = None

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def triangles(self) -> np.ndarray:
        return self.indices.reshape(-1, 3)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0 or len(self.indices) == 0

    @property
    def index_format(self) -> str:
        return "uint32" if self.vertex_count > MAX_UINT16_VERTICES else "uint16"

    def bounds(self) -> Tuple[Vec3, Vec3]:
        """Axis-aligned bounds (min, max); zeros for an empty mesh."""
        if self.vertex_count == 0:
            return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)
        lo = self.vertices.min(axis=0)
        hi = self.vertices.max(axis=0)
        return tuple(float(c) for c in lo), tuple(float(c) for c in hi)

    @classmethod
    def empty(cls) -> "MeshBuffers":
        return cls(
            vertices=np.zeros((0, 3), dtype=np.float32),
            uvs=np.zeros((0, 2), dtype=np.float32),
            indices=np.zeros((0,), dtype=np.uint32),
            normals=np.zeros((0, 3), dtype=np.float32),
        )


@dataclass
class FaceOffsets:
    """Prefix sums over per-face counts; entry F holds the totals."""
    vertex_offsets: np.ndarray
    index_offsets: np.ndarray

    @property
    def vertex_count(self) -> int:
        return int(self.vertex_offsets[-1])

    @property
    def index_count(self) -> int:
        return int(self.index_offsets[-1])


def compute_face_offsets(faces: Sequence[Face]) -> FaceOffsets:
    """Vertex and index start offsets for each face, plus totals."""
    vertex_counts = np.array([f.vertex_count for f in faces], dtype=np.int64)
    index_counts = np.array([f.index_count for f in faces], dtype=np.int64)
    vertex_offsets = np.zeros(len(faces) + 1, dtype=np.int64)
    index_offsets = np.zeros(len(faces) + 1, dtype=np.int64)
    np.cumsum(vertex_counts, out=vertex_offsets[1:])
    np.cumsum(index_counts, out=index_offsets[1:])
    return FaceOffsets(vertex_offsets=vertex_offsets, index_offsets=index_offsets)


def fan_indices(first_vertex: int, vertex_count: int) -> np.ndarray:
    """Fan triangulation of a convex ring: [s, s+t-1, s+t] for t in 2..n-1."""
    if vertex_count < 3:
        return np.zeros((0,), dtype=np.int64)
    t = np.arange(2, vertex_count, dtype=np.int64)
    tris = np.empty((len(t), 3), dtype=np.int64)
    tris[:, 0] = first_vertex
    tris[:, 1] = first_vertex + t - 1
    tris[:, 2] = first_vertex + t
    return tris.reshape(-1)


def texture_matches(face: Face, texture_filter: Optional[str]) -> bool:
    """Case-insensitive texture name comparison; None matches everything."""
    if texture_filter is None:
        return True
    return face.texture_name.lower() == texture_filter.lower()


def select_faces(brushes: Iterable[Brush], discarded: Iterable[int] = frozenset(),
                 texture_filter: Optional[str] = None,
                 include_discarded: bool = False) -> List[Face]:
    """
    Faces that go into a mesh, in encounter order.

    Skips degenerate faces (fewer than 3 vertices), discarded faces unless
    include_discarded is set, and faces whose texture doesn't match the
    filter.
    """
    discarded = discarded if isinstance(discarded, (set, frozenset)) else frozenset(discarded)
    selected = []
    for brush in brushes:
        for face in brush.faces:
            if face.is_degenerate:
                continue
            if not include_discarded and face.face_id in discarded:
                continue
            if not texture_matches(face, texture_filter):
                continue
            selected.append(face)
    return selected


class MeshBuilder:
    """
    Converts brush faces to packed mesh buffers.

    Args:
        scaling_factor: Map units to host units
        global_texel_scale: Multiplier applied to every UV
        texture_size: (width, height) in pixels used for UV normalisation
        face_hook: Optional per-face callback editing positions/UVs in place
        executor: Batch executor, shared default when omitted
    """

    def __init__(self, scaling_factor: float = 1.0, global_texel_scale: float = 1.0,
                 texture_size: Tuple[int, int] = (128, 128),
                 face_hook: Optional[FaceHook] = None,
                 executor: Optional[BatchExecutor] = None):
        self.scaling_factor = scaling_factor
        self.global_texel_scale = global_texel_scale
        self.texture_size = texture_size
        self.face_hook = face_hook
        self.executor = executor or get_default_executor()

    def build(self, faces: Sequence[Face], origin: Vec3 = (0.0, 0.0, 0.0)) -> MeshBuffers:
        """Pack faces into one mesh; normals are left to the post-process."""
        faces = [f for f in faces if not f.is_degenerate]
        if not faces:
            return MeshBuffers.empty()

        offsets = compute_face_offsets(faces)
        vertices = np.empty((offsets.vertex_count, 3), dtype=np.float32)
        uvs = np.empty((offsets.vertex_count, 2), dtype=np.float32)
        indices = np.empty((offsets.index_count,), dtype=np.uint32)

        origin_arr = np.asarray(origin, dtype=np.float64)
        tex_w, tex_h = self.texture_size

        def job(i: int) -> None:
            face = faces[i]
            v0 = int(offsets.vertex_offsets[i])
            v1 = int(offsets.vertex_offsets[i + 1])
            i0 = int(offsets.index_offsets[i])
            i1 = int(offsets.index_offsets[i + 1])

            ring = np.asarray(face.vertices, dtype=np.float64)
            vertices[v0:v1] = ring * self.scaling_factor - origin_arr
            uvs[v0:v1] = project_uvs(ring, face, tex_w, tex_h, self.global_texel_scale)
            indices[i0:i1] = fan_indices(v0, v1 - v0)

            if self.face_hook is not None:
                self.face_hook(face, vertices[v0:v1], uvs[v0:v1])

        self.executor.run(job, len(faces), MESH_BATCH_SIZE)

        logger.debug("Built mesh: %d faces, %d vertices, %d triangles",
                     len(faces), offsets.vertex_count, offsets.index_count // 3)
        return MeshBuffers(vertices=vertices, uvs=uvs, indices=indices)


def build_mesh(faces: Sequence[Face], origin: Vec3 = (0.0, 0.0, 0.0),
               scaling_factor: float = 1.0, global_texel_scale: float = 1.0,
               texture_size: Tuple[int, int] = (128, 128),
               executor: Optional[BatchExecutor] = None) -> MeshBuffers:
    """Convenience function to build a mesh from faces in one call."""
    builder = MeshBuilder(scaling_factor=scaling_factor,
                          global_texel_scale=global_texel_scale,
                          texture_size=texture_size,
                          executor=executor)
    return builder.build(faces, origin)
