"""
Hidden face culling.

Removes faces that are fully covered by a coincident, oppositely facing face
(two brushes pressed against each other). This is not general occlusion
culling: a face is only discarded when every one of its vertices, nudged
slightly toward its centroid, lies inside the opposing face's polygon.

Culling writes to a DiscardSet. Consumers (mesh assembly, collider
building) must only read it after it has been frozen.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set

import numpy as np

from brushmesh.conversion.batch import (
    CULLING_BATCH_SIZE,
    BatchExecutor,
    get_default_executor,
)
from brushmesh.conversion.brush_model import Face
from brushmesh.conversion.plane_math import (
    add,
    dominant_axis,
    normalize_or_zero,
    point_in_polygon,
    polygon_centroid,
    project_to_2d,
    scale,
    sub,
)

logger = logging.getLogger(__name__)

# Max |dist_a + dist_b| for two planes to count as coincident.
PLANE_DISTANCE_TOLERANCE = 0.5
# Max dot(normal_a, normal_b) for two planes to count as opposite.
OPPOSITE_NORMAL_DOT = -0.999
# How far each vertex moves toward the centroid before the inside test.
VERTEX_NUDGE_DISTANCE = 0.2


class DiscardSetFrozenError(RuntimeError):
    """Raised when a frozen discard set is modified."""


class DiscardSet:
    """
    Face ids excluded from mesh and collider generation.

    Grows monotonically while culling runs, then is frozen; readers get the
    frozenset returned by freeze().
    """

    def __init__(self):
        self._ids: Set[int] = set()
        self._frozen: Optional[FrozenSet[int]] = None

    @property
    def is_frozen(self) -> bool:
        return self._frozen is not None

    def add(self, face_id: int) -> None:
        if self._frozen is not None:
            raise DiscardSetFrozenError(f"cannot discard face {face_id}: set is frozen")
        self._ids.add(face_id)

    def update(self, face_ids: Iterable[int]) -> None:
        for face_id in face_ids:
            self.add(face_id)

    def freeze(self) -> FrozenSet[int]:
        """Stop accepting ids and return the read-only view."""
        if self._frozen is None:
            self._frozen = frozenset(self._ids)
        return self._frozen

    def clear(self) -> None:
        """Empty and unfreeze (start of a new conversion)."""
        self._ids.clear()
        self._frozen = None

    def contains_face(self, face: Face) -> bool:
        return face.face_id in self._ids

    def __contains__(self, face_id: object) -> bool:
        return face_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(self._ids)


def nudged_vertices(face: Face, distance: float = VERTEX_NUDGE_DISTANCE) -> List[tuple]:
    """Face vertices moved `distance` units toward the ring centroid."""
    center = polygon_centroid(face.vertices)
    return [add(v, scale(normalize_or_zero(sub(center, v)), distance))
            for v in face.vertices]


def is_face_covered(face: Face, other: Face) -> bool:
    """True when every nudged vertex of `face` lies inside `other`.

    Both rings are flattened by dropping the dominant axis of `face`'s
    normal. The plane test is not repeated here.
    """
    if face.is_degenerate or other.is_degenerate:
        return False
    axis = dominant_axis(face.plane.normal)
    polygon = [project_to_2d(v, axis) for v in other.vertices]
    for point in nudged_vertices(face):
        if not point_in_polygon(project_to_2d(point, axis), polygon):
            return False
    return True


def cull_faces(faces: Sequence[Face], discard: DiscardSet,
               executor: Optional[BatchExecutor] = None) -> Set[int]:
    """
    Mark faces hidden behind a coincident opposite face.

    Every face is tested against every other face (O(F^2)). Faces already in
    the discard set are skipped as subjects but still hide others. Workers
    only write their own result slot; the discard set is updated once all
    batches have joined.

    Args:
        faces: Registered faces (face_id assigned) of the whole conversion
        discard: Discard set to extend; must not be frozen
        executor: Batch executor, shared default when omitted

    Returns:
        Ids of faces newly marked hidden by this pass.

    Raises:
        ValueError: If a face has no face_id assigned
        DiscardSetFrozenError: If the discard set is already frozen
    """
    if discard.is_frozen:
        raise DiscardSetFrozenError("culling needs an unfrozen discard set")
    for face in faces:
        if face.face_id < 0:
            raise ValueError("cull_faces requires registered faces (face_id >= 0)")

    count = len(faces)
    if count == 0:
        return set()

    executor = executor or get_default_executor()

    normals = np.array([f.plane.normal for f in faces], dtype=np.float64)
    dists = np.array([f.plane.dist for f in faces], dtype=np.float64)
    initially_hidden = np.array([f.face_id in discard for f in faces], dtype=bool)
    results = initially_hidden.copy()

    def job(i: int) -> None:
        if results[i] or faces[i].is_degenerate:
            return
        # Coincident and opposite planes only
        candidates = np.flatnonzero(
            (np.abs(dists[i] + dists) <= PLANE_DISTANCE_TOLERANCE)
            & (normals @ normals[i] <= OPPOSITE_NORMAL_DOT)
        )
        for n in candidates:
            if is_face_covered(faces[i], faces[int(n)]):
                results[i] = True
                return

    executor.run(job, count, CULLING_BATCH_SIZE)

    newly_hidden = {faces[i].face_id for i in np.flatnonzero(results & ~initially_hidden)}
    discard.update(newly_hidden)
    logger.info("Culled %d of %d faces", len(newly_hidden), count)
    return newly_hidden
