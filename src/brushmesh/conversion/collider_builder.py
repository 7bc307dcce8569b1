"""
Collision geometry for brush groups.

A brush group becomes one or more colliders. Each is either a box (when
every face is axis aligned and the mode allows boxes) or a mesh collider,
convex per brush or one concave mesh for the whole group when merging is
configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

import numpy as np

from brushmesh.conversion.batch import (
    COLLIDER_BATCH_SIZE,
    BatchExecutor,
    get_default_executor,
)
from brushmesh.conversion.brush_model import Brush, BrushGroup, Face
from brushmesh.conversion.mesh_builder import compute_face_offsets, fan_indices
from brushmesh.conversion.plane_math import Vec3, is_normal_axis_aligned

logger = logging.getLogger(__name__)

DEFAULT_COLLIDER_NAME_FORMAT = "{name}_Collider{index:05d}"


class ColliderMode(Enum):
    """How brush groups turn into colliders."""
    BOX_ONLY = "box_only"
    BOX_AND_CONVEX = "box_and_convex"
    CONVEX_ONLY = "convex_only"
    MERGE_ALL_CONCAVE = "merge_all_concave"


class ColliderShape(Enum):
    BOX = "box"
    CONVEX_MESH = "convex_mesh"
    CONCAVE_MESH = "concave_mesh"


@dataclass
class ColliderDescriptor:
    """
    One collider for the host physics engine.

    Box colliders use center/size; mesh colliders use vertices/indices.
    Both carry the packed geometry so the host can choose.
    """
    name: str
    shape: ColliderShape
    vertices: np.ndarray  # Shape: (N, 3), dtype=float32
    indices: np.ndarray   # Shape: (M,), dtype=uint32
    center: Vec3
    size: Vec3
    is_convex: bool
    is_trigger: bool
    brush_count: int = 1

    @property
    def is_box(self) -> bool:
        return self.shape == ColliderShape.BOX

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


# ---------------------------------------------------------------------------
# Shape policy
# ---------------------------------------------------------------------------

def mode_allows_box(mode: ColliderMode) -> bool:
    return mode in (ColliderMode.BOX_ONLY, ColliderMode.BOX_AND_CONVEX)


def can_use_box_collider(normals: Iterable[Vec3], mode: ColliderMode) -> bool:
    """Whether a face set may be represented by its bounding box.

    BOX_ONLY skips the alignment test and always answers yes.
    """
    if not mode_allows_box(mode):
        return False
    if mode == ColliderMode.BOX_ONLY:
        return True
    return all(is_normal_axis_aligned(n) for n in normals)


def merges_into_one_collider(mode: ColliderMode, is_trigger: bool,
                             force_convex: bool) -> bool:
    """Whether all brushes of a group collapse into one concave collider.

    Triggers always stay per-brush convex.
    """
    return mode == ColliderMode.MERGE_ALL_CONCAVE and not is_trigger and not force_convex


def entity_matches(classname: Optional[str], patterns: Sequence[str]) -> bool:
    """Case-insensitive prefix match of a classname against patterns."""
    if not classname:
        return False
    lowered = classname.lower()
    return any(lowered.startswith(p.lower()) for p in patterns)


def partition_brushes(brushes: Sequence[Brush], merge: bool) -> List[List[Brush]]:
    """One group per brush, or a single group with every brush."""
    if not brushes:
        return []
    if merge:
        return [list(brushes)]
    return [[brush] for brush in brushes]


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class ColliderBuilder:
    """
    Builds collider descriptors for brush groups.

    Args:
        mode: Collider mode from the map config
        scaling_factor: Map units to host units
        discarded: Frozen discard set; hidden faces are left out
        nonsolid_entities / trigger_entities: Classname prefixes of merged
            entities whose brushes get no collider
        name_format: Format with {name} and {index} fields
        executor: Batch executor, shared default when omitted
    """

    def __init__(self, mode: ColliderMode = ColliderMode.BOX_AND_CONVEX,
                 scaling_factor: float = 1.0,
                 discarded: Iterable[int] = frozenset(),
                 nonsolid_entities: Sequence[str] = (),
                 trigger_entities: Sequence[str] = (),
                 name_format: str = DEFAULT_COLLIDER_NAME_FORMAT,
                 executor: Optional[BatchExecutor] = None):
        self.mode = mode
        self.scaling_factor = scaling_factor
        self.discarded = frozenset(discarded)
        self.nonsolid_entities = list(nonsolid_entities)
        self.trigger_entities = list(trigger_entities)
        self.name_format = name_format
        self.executor = executor or get_default_executor()

    def _is_solid(self, brush: Brush) -> bool:
        return not (entity_matches(brush.entity_classname, self.nonsolid_entities)
                    or entity_matches(brush.entity_classname, self.trigger_entities))

    def _collider_faces(self, brushes: Sequence[Brush]) -> List[Face]:
        return [face for brush in brushes for face in brush.faces
                if not face.is_degenerate and face.face_id not in self.discarded]

    def build(self, group: BrushGroup, is_trigger: Optional[bool] = None,
              force_convex: Optional[bool] = None) -> List[ColliderDescriptor]:
        """Colliders for one brush group, in brush order."""
        is_trigger = group.is_trigger if is_trigger is None else is_trigger
        force_convex = group.force_convex if force_convex is None else force_convex

        solids = [b for b in group.brushes if self._is_solid(b)]
        skipped = len(group.brushes) - len(solids)
        if skipped:
            logger.debug("%s: %d nonsolid/trigger brushes get no collider", group.name, skipped)

        merge = merges_into_one_collider(self.mode, is_trigger, force_convex)
        is_convex = is_trigger or force_convex or self.mode != ColliderMode.MERGE_ALL_CONCAVE
        partitions = partition_brushes(solids, merge)
        if not partitions:
            return []

        origin = np.asarray(group.origin, dtype=np.float64)
        results: List[Optional[ColliderDescriptor]] = [None] * len(partitions)

        def job(i: int) -> None:
            faces = self._collider_faces(partitions[i])
            offsets = compute_face_offsets(faces)
            vertices = np.empty((offsets.vertex_count, 3), dtype=np.float32)
            indices = np.empty((offsets.index_count,), dtype=np.uint32)
            for k, face in enumerate(faces):
                v0 = int(offsets.vertex_offsets[k])
                v1 = int(offsets.vertex_offsets[k + 1])
                ring = np.asarray(face.vertices, dtype=np.float64)
                vertices[v0:v1] = ring * self.scaling_factor - origin
                indices[offsets.index_offsets[k]:offsets.index_offsets[k + 1]] = \
                    fan_indices(v0, v1 - v0)

            if len(vertices):
                lo = vertices.min(axis=0).astype(np.float64)
                hi = vertices.max(axis=0).astype(np.float64)
            else:
                lo = hi = np.zeros(3)

            if can_use_box_collider((f.plane.normal for f in faces), self.mode):
                shape = ColliderShape.BOX
            elif is_convex:
                shape = ColliderShape.CONVEX_MESH
            else:
                shape = ColliderShape.CONCAVE_MESH

            results[i] = ColliderDescriptor(
                name="",
                shape=shape,
                vertices=vertices,
                indices=indices,
                center=tuple(float(c) for c in (lo + hi) * 0.5),
                size=tuple(float(c) for c in hi - lo),
                is_convex=is_convex,
                is_trigger=is_trigger,
                brush_count=len(partitions[i]),
            )

        self.executor.run(job, len(partitions), COLLIDER_BATCH_SIZE)

        colliders = [c for c in results if c is not None and c.vertices.size]
        # Names index the kept colliders only
        for index, collider in enumerate(colliders):
            collider.name = self.name_format.format(name=group.name, index=index)
        logger.debug("%s: %d colliders (%d box)", group.name, len(colliders),
                     sum(1 for c in colliders if c.is_box))
        return colliders


def build_colliders(group: BrushGroup, mode: ColliderMode = ColliderMode.BOX_AND_CONVEX,
                    is_trigger: Optional[bool] = None, force_convex: Optional[bool] = None,
                    scaling_factor: float = 1.0, discarded: Iterable[int] = frozenset(),
                    executor: Optional[BatchExecutor] = None) -> List[ColliderDescriptor]:
    """Convenience function to build colliders for one group in one call."""
    builder = ColliderBuilder(mode=mode, scaling_factor=scaling_factor,
                              discarded=discarded, executor=executor)
    return builder.build(group, is_trigger=is_trigger, force_convex=force_convex)
