"""
Vertex welding and brush vertex snapping.

Welding is a mesh post-process: near-coincident vertices with similar
normals are merged and triangle indices remapped. Snapping runs on brushes
before culling and assembly and closes small cracks between the faces of a
brush by pulling nearby vertices onto the outermost one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from brushmesh.conversion.brush_model import Brush
from brushmesh.conversion.plane_math import length_squared, polygon_centroid, sub

logger = logging.getLogger(__name__)

DEFAULT_WELD_DELTA = 0.1
DEFAULT_WELD_ANGLE = 180.0
DEFAULT_SNAP_DISTANCE = 4.0


@dataclass
class WeldResult:
    """Deduplicated mesh data; remap[i] is the new index of old vertex i."""
    vertices: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray
    remap: np.ndarray

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)


def _angles_degrees(candidates: np.ndarray, normal: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(candidates, axis=1) * np.linalg.norm(normal)
    cosines = np.divide(candidates @ normal, lengths,
                        out=np.ones(len(candidates)), where=lengths > 1e-15)
    return np.degrees(np.arccos(np.clip(cosines, -1.0, 1.0)))


def weld_vertices(vertices: np.ndarray, normals: np.ndarray, uvs: np.ndarray,
                  indices: np.ndarray, max_delta: float = DEFAULT_WELD_DELTA,
                  max_angle: float = DEFAULT_WELD_ANGLE) -> WeldResult:
    """
    Merge near-coincident vertices.

    Vertices are scanned in order. Each is merged into the first already
    kept vertex whose squared distance is at most max_delta and whose normal
    is within max_angle degrees; otherwise it is kept. UVs are not compared,
    the kept vertex's UV wins. Deterministic for a given input order, and a
    no-op on input with no two vertices within tolerance.
    """
    positions = np.asarray(vertices).reshape(-1, 3)
    nrm = np.asarray(normals).reshape(-1, 3)
    tex = np.asarray(uvs).reshape(-1, 2)
    count = len(positions)

    pos64 = positions.astype(np.float64)
    nrm64 = nrm.astype(np.float64)
    kept = np.empty(count, dtype=np.int64)
    kept_count = 0
    remap = np.empty(count, dtype=np.int64)

    for i in range(count):
        match = -1
        if kept_count:
            candidates = kept[:kept_count]
            delta = pos64[candidates] - pos64[i]
            close = np.einsum("ij,ij->i", delta, delta) <= max_delta
            if close.any():
                hits = np.flatnonzero(close)
                angles = _angles_degrees(nrm64[candidates[hits]], nrm64[i])
                similar = hits[angles <= max_angle]
                if len(similar):
                    match = int(similar[0])
        if match >= 0:
            remap[i] = match
        else:
            kept[kept_count] = i
            remap[i] = kept_count
            kept_count += 1

    keep = kept[:kept_count]
    new_indices = remap[np.asarray(indices, dtype=np.int64)].astype(np.uint32)
    if kept_count < count:
        logger.debug("Welded %d vertices into %d", count, kept_count)
    return WeldResult(
        vertices=positions[keep].copy(),
        normals=nrm[keep].copy(),
        uvs=tex[keep].copy(),
        indices=new_indices,
        remap=remap,
    )


def snap_brush_vertices(brush: Brush, snap_distance: float = DEFAULT_SNAP_DISTANCE) -> int:
    """
    Snap nearby vertices of different faces of one brush together.

    For every ordered pair of distinct faces, each vertex pair closer than
    snap_distance is moved onto whichever of the two is farther from the
    brush's vertex centroid, keeping the outer silhouette. The centroid is
    taken once, before any vertex moves. Face planes are left as supplied.

    Returns:
        Number of vertex moves that changed a position.
    """
    all_vertices = list(brush.iter_vertices())
    if not all_vertices or snap_distance <= 0:
        return 0
    center = polygon_centroid(all_vertices)
    threshold = snap_distance * snap_distance
    moved = 0

    for face1 in brush.faces:
        for face2 in brush.faces:
            if face1 is face2:
                continue
            verts1 = face1.vertices
            verts2 = face2.vertices
            for a in range(len(verts1)):
                for b in range(len(verts2)):
                    va = verts1[a]
                    vb = verts2[b]
                    if length_squared(sub(va, vb)) >= threshold:
                        continue
                    if length_squared(sub(va, center)) > length_squared(sub(vb, center)):
                        if vb != va:
                            verts2[b] = va
                            moved += 1
                    elif va != vb:
                        verts1[a] = vb
                        moved += 1

    if moved:
        logger.debug("Brush %d: snapped %d vertices", brush.brush_id, moved)
    return moved
