"""
Vertex normals and tangents for assembled meshes.

Mesh assembly leaves normals out. They are recomputed from the final
triangles (flat, since faces don't share vertices) and then optionally
smoothed across nearby vertices whose normals are within an angle threshold.
There are no smoothing groups: proximity and normal similarity decide.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from brushmesh.conversion.batch import (
    SMOOTHING_BATCH_SIZE,
    BatchExecutor,
    get_default_executor,
)

logger = logging.getLogger(__name__)

EPSILON = 1e-8

DEFAULT_SMOOTHING_ANGLE = 80.0
DEFAULT_SMOOTHING_DISTANCE = 0.1


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    return np.divide(vectors, lengths, out=np.zeros_like(vectors), where=lengths > EPSILON)


def compute_flat_normals(vertices: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """Area-weighted sum of adjacent triangle normals per vertex, normalised.

    Vertices not referenced by any triangle get a zero normal.
    """
    positions = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    normals = np.zeros_like(positions)
    tris = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    if len(tris):
        p0 = positions[tris[:, 0]]
        face_normals = np.cross(positions[tris[:, 1]] - p0, positions[tris[:, 2]] - p0)
        for corner in range(3):
            np.add.at(normals, tris[:, corner], face_normals)
    return _normalize_rows(normals).astype(np.float32)


def smooth_normals(vertices: np.ndarray, normals: np.ndarray,
                   angle_threshold: float = DEFAULT_SMOOTHING_ANGLE,
                   max_distance: float = DEFAULT_SMOOTHING_DISTANCE,
                   executor: Optional[BatchExecutor] = None) -> np.ndarray:
    """
    Average each normal with those of nearby, similarly oriented vertices.

    Vertex j contributes to vertex i when the squared distance between them
    is at most max_distance and dot(n_i, n_j) >= cos(angle_threshold). The
    vertex itself always qualifies. O(V^2).

    Args:
        vertices: Positions, shape (N, 3)
        normals: Unit normals, shape (N, 3)
        angle_threshold: Max angle in degrees between merged normals
        max_distance: Max squared distance between merged vertices
        executor: Batch executor, shared default when omitted

    Returns:
        Smoothed unit normals, shape (N, 3), dtype float32
    """
    positions = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    source = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    count = len(positions)
    result = source.copy()
    if count == 0:
        return result.astype(np.float32)

    cos_threshold = math.cos(math.radians(angle_threshold))
    executor = executor or get_default_executor()

    def job(i: int) -> None:
        delta = positions - positions[i]
        near = np.einsum("ij,ij->i", delta, delta) <= max_distance
        similar = source @ source[i] >= cos_threshold
        mask = near & similar
        mask[i] = True
        total = source[mask].sum(axis=0)
        ln = np.linalg.norm(total)
        if ln > EPSILON:
            result[i] = total / ln

    executor.run(job, count, SMOOTHING_BATCH_SIZE)
    logger.debug("Smoothed %d normals (angle %.1f, distance %.3f)",
                 count, angle_threshold, max_distance)
    return result.astype(np.float32)


def _any_perpendicular(normals: np.ndarray) -> np.ndarray:
    ref = np.where(np.abs(normals[:, [1]]) < 0.9,
                   np.array([[0.0, 1.0, 0.0]]), np.array([[1.0, 0.0, 0.0]]))
    return _normalize_rows(np.cross(normals, ref))


def compute_tangents(vertices: np.ndarray, normals: np.ndarray,
                     uvs: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """Per-vertex tangents from UV gradients (Lengyel's method).

    Returns:
        Shape (N, 4), dtype float32; xyz is the tangent orthogonalised
        against the normal, w is the bitangent sign (+1 or -1).
    """
    positions = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    nrm = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    tex = np.asarray(uvs, dtype=np.float64).reshape(-1, 2)
    tris = np.asarray(indices, dtype=np.int64).reshape(-1, 3)

    tan1 = np.zeros_like(positions)
    tan2 = np.zeros_like(positions)
    if len(tris):
        p0, p1, p2 = (positions[tris[:, c]] for c in range(3))
        w0, w1, w2 = (tex[tris[:, c]] for c in range(3))
        e1 = p1 - p0
        e2 = p2 - p0
        x1 = (w1[:, 0] - w0[:, 0])[:, None]
        x2 = (w2[:, 0] - w0[:, 0])[:, None]
        y1 = (w1[:, 1] - w0[:, 1])[:, None]
        y2 = (w2[:, 1] - w0[:, 1])[:, None]
        det = x1 * y2 - x2 * y1
        inv = np.divide(1.0, det, out=np.zeros_like(det), where=np.abs(det) > EPSILON)
        sdir = (e1 * y2 - e2 * y1) * inv
        tdir = (e2 * x1 - e1 * x2) * inv
        for corner in range(3):
            np.add.at(tan1, tris[:, corner], sdir)
            np.add.at(tan2, tris[:, corner], tdir)

    # Gram-Schmidt against the normal
    tangent = tan1 - nrm * np.einsum("ij,ij->i", nrm, tan1)[:, None]
    tangent = _normalize_rows(tangent)
    missing = np.linalg.norm(tangent, axis=1) < 0.5
    if missing.any():
        tangent[missing] = _any_perpendicular(nrm[missing])

    handedness = np.where(np.einsum("ij,ij->i", np.cross(nrm, tangent), tan2) < 0.0, -1.0, 1.0)
    return np.column_stack((tangent, handedness)).astype(np.float32)
