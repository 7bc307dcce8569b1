"""
Brush to mesh conversion pipeline.

Runs the conversion stages in order over all brush groups of a map:
face registration, vertex snapping, hidden face culling, then per group the
material meshes (with normals, optional welding and tangents) and the
colliders. Culling must finish before any mesh or collider is built; the
discard set is frozen in between.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

from brushmesh.conversion.batch import BatchExecutor
from brushmesh.conversion.brush_model import BrushGroup, Face
from brushmesh.conversion.collider_builder import ColliderBuilder, ColliderDescriptor
from brushmesh.conversion.entity_properties import parse_bool, parse_float
from brushmesh.conversion.face_culling import DiscardSet, cull_faces
from brushmesh.conversion.mesh_builder import MeshBuffers, MeshBuilder, select_faces
from brushmesh.conversion.plane_math import Vec3
from brushmesh.pipeline.map_config import MapConfig, MeshCompression
from brushmesh.postprocess.normals import (
    compute_flat_normals,
    compute_tangents,
    smooth_normals,
)
from brushmesh.postprocess.welding import snap_brush_vertices, weld_vertices
from brushmesh.validation.core import Severity, ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)

DEGENERATE_FACE_CODE = "GEOM-001"

# Below this the config smoothing angle counts as "no smoothing".
MIN_SMOOTHING_ANGLE = 0.01

# Angle used when `_phong` turns smoothing on and neither `_phong_angle`
# nor the config gives one.
DEFAULT_SMOOTHING_ANGLE = 80.0


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ConversionStage(Enum):
    REGISTER = "register"
    SNAP = "snap"
    CULL = "cull"
    BUILD = "build"
    COMPLETE = "complete"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConversionError(Exception):
    pass


# ---------------------------------------------------------------------------
# Per-conversion state
# ---------------------------------------------------------------------------

class ConversionContext:
    """
    State owned by one conversion: the face registry and the discard set.

    Faces get their ids here, in encounter order. The context is reset when
    entered and may only be used by one conversion at a time.
    """

    def __init__(self):
        self.faces: List[Face] = []
        self.discard = DiscardSet()
        self._busy = False
        self._lock = threading.Lock()

    @property
    def is_busy(self) -> bool:
        return self._busy

    def __enter__(self) -> "ConversionContext":
        with self._lock:
            if self._busy:
                raise ConversionError("conversion context is already in use")
            self._busy = True
        self.reset()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        with self._lock:
            self._busy = False

    def reset(self) -> None:
        self.faces = []
        self.discard.clear()

    def register_face(self, face: Face) -> int:
        face.face_id = len(self.faces)
        self.faces.append(face)
        return face.face_id

    def freeze_discards(self) -> FrozenSet[int]:
        return self.discard.freeze()


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class MaterialMesh:
    """All faces of one group sharing a texture, packed into one mesh.

    add_lightmap_uv2 and compression are requests for the host engine,
    which owns lightmap unwrapping and vertex compression.
    """
    name: str
    material: str
    texture_name: str
    buffers: MeshBuffers
    face_count: int
    add_lightmap_uv2: bool = False
    compression: MeshCompression = MeshCompression.OFF

    @property
    def vertex_count(self) -> int:
        return self.buffers.vertex_count

    @property
    def triangle_count(self) -> int:
        return self.buffers.triangle_count


@dataclass
class GroupResult:
    name: str
    origin: Vec3
    meshes: List[MaterialMesh] = field(default_factory=list)
    colliders: List[ColliderDescriptor] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return sum(m.triangle_count for m in self.meshes)

    def mesh_for(self, texture_name: str) -> Optional[MaterialMesh]:
        lowered = texture_name.lower()
        for mesh in self.meshes:
            if mesh.texture_name.lower() == lowered:
                return mesh
        return None


@dataclass
class ConversionResult:
    groups: List[GroupResult] = field(default_factory=list)
    face_count: int = 0
    culled_face_count: int = 0
    snapped_vertex_count: int = 0
    validation: ValidationResult = field(default_factory=ValidationResult)
    elapsed_time: float = 0.0

    @property
    def mesh_count(self) -> int:
        return sum(len(g.meshes) for g in self.groups)

    @property
    def collider_count(self) -> int:
        return sum(len(g.colliders) for g in self.groups)

    def group(self, name: str) -> Optional[GroupResult]:
        for group in self.groups:
            if group.name == name:
                return group
        return None


ProgressCallback = Callable[[ConversionStage, str], None]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class ConversionPipeline:
    """
    Converts brush groups to meshes and colliders.

    Args:
        config: Conversion settings; defaults when omitted
        executor: Batch executor; when omitted one is created from
            config.max_workers and shut down after each run
        progress_callback: Called with (stage, message) as stages start
    """

    def __init__(self, config: Optional[MapConfig] = None,
                 executor: Optional[BatchExecutor] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self.config = config or MapConfig()
        self.executor = executor
        self.progress_callback = progress_callback
        self.context = ConversionContext()

    def _update_progress(self, stage: ConversionStage, message: str) -> None:
        logger.debug("[%s] %s", stage.value, message)
        if self.progress_callback:
            self.progress_callback(stage, message)

    def run(self, groups: Sequence[BrushGroup]) -> ConversionResult:
        owns_executor = self.executor is None
        executor = self.executor or BatchExecutor(max_workers=self.config.max_workers)
        try:
            with self.context:
                return self._run(groups, executor)
        finally:
            if owns_executor:
                executor.shutdown()

    def _run(self, groups: Sequence[BrushGroup], executor: BatchExecutor) -> ConversionResult:
        config = self.config
        start = time.perf_counter()
        result = ConversionResult()

        self._update_progress(ConversionStage.REGISTER, f"Registering faces of {len(groups)} groups")
        self._register(groups, result.validation)
        result.face_count = len(self.context.faces)

        if config.snapping_threshold > 0:
            self._update_progress(ConversionStage.SNAP, "Snapping brush vertices")
            for group in groups:
                for brush in group.brushes:
                    result.snapped_vertex_count += snap_brush_vertices(
                        brush, config.snapping_threshold)
            logger.info("Snapped %d vertices", result.snapped_vertex_count)

        if config.remove_hidden_faces:
            self._update_progress(ConversionStage.CULL, "Culling hidden faces")
            cull_faces(self.context.faces, self.context.discard, executor)
        discarded = self.context.freeze_discards()
        result.culled_face_count = len(discarded)

        self._update_progress(ConversionStage.BUILD, "Building meshes and colliders")
        collider_builder = ColliderBuilder(
            mode=config.collider_mode,
            scaling_factor=config.scaling_factor,
            discarded=discarded,
            nonsolid_entities=config.nonsolid_entities,
            trigger_entities=config.trigger_entities,
            name_format=config.collider_name_format,
            executor=executor,
        )
        for group in groups:
            group_result = GroupResult(name=group.name, origin=group.origin)
            group_result.meshes = self._build_group_meshes(
                group, discarded, executor, result.validation)
            group_result.colliders = collider_builder.build(group)
            result.groups.append(group_result)

        result.elapsed_time = time.perf_counter() - start
        self._update_progress(ConversionStage.COMPLETE, "Conversion complete")
        logger.info("Converted %d groups: %d meshes, %d colliders, %d/%d faces culled (%.2fs)",
                    len(result.groups), result.mesh_count, result.collider_count,
                    result.culled_face_count, result.face_count, result.elapsed_time)
        return result

    def _register(self, groups: Sequence[BrushGroup], issues: ValidationResult) -> None:
        for group in groups:
            for brush in group.brushes:
                for index, face in enumerate(brush.faces):
                    self.context.register_face(face)
                    if face.is_degenerate:
                        location = f"{group.name}:brush{brush.brush_id}:face{index}"
                        logger.debug("Skipping degenerate face at %s (%d vertices)",
                                     location, face.vertex_count)
                        issues.add_issue(ValidationIssue(
                            severity=Severity.WARN,
                            code=DEGENERATE_FACE_CODE,
                            message=f"Face has {face.vertex_count} vertices; skipped",
                            location=location,
                        ))

    def _smoothing_angle(self, group: BrushGroup, issues: ValidationResult) -> Optional[float]:
        """Smoothing angle for a group, or None when smoothing is off.

        A `_phong` key decides on its own; without one the config angle does.
        `_phong_angle` overrides the angle either way.
        """
        props = group.properties
        config_angle = self.config.smoothing_angle
        config_on = config_angle > MIN_SMOOTHING_ANGLE
        if "_phong" in props:
            if not parse_bool(props, "_phong", False, issues, group.name):
                return None
            fallback = config_angle if config_on else DEFAULT_SMOOTHING_ANGLE
            return parse_float(props, "_phong_angle", fallback, issues, group.name)
        if not config_on:
            return None
        return parse_float(props, "_phong_angle", config_angle, issues, group.name)

    def _build_group_meshes(self, group: BrushGroup, discarded: FrozenSet[int],
                            executor: BatchExecutor,
                            issues: ValidationResult) -> List[MaterialMesh]:
        config = self.config

        # Material groups in encounter order, texture names case-insensitive
        by_texture: Dict[str, List[Face]] = {}
        spelling: Dict[str, str] = {}
        for face in select_faces(group.brushes, discarded):
            key = face.texture_name.lower()
            if key not in by_texture:
                by_texture[key] = []
                spelling[key] = face.texture_name
            by_texture[key].append(face)

        smoothing_angle = self._smoothing_angle(group, issues)
        meshes = []
        for key, faces in by_texture.items():
            texture_name = spelling[key]
            override = config.find_material_override(texture_name)
            builder = MeshBuilder(
                scaling_factor=config.scaling_factor,
                global_texel_scale=config.global_texel_scale,
                texture_size=config.texture_size_for(texture_name),
                face_hook=override.custom_face_hook if override else None,
                executor=executor,
            )
            buffers = builder.build(faces, group.origin)
            if buffers.is_empty:
                continue

            normals = compute_flat_normals(buffers.vertices, buffers.indices)
            if smoothing_angle is not None:
                normals = smooth_normals(buffers.vertices, normals, smoothing_angle,
                                         config.smoothing_max_distance, executor)
            buffers.normals = normals

            if config.weld_vertices:
                welded = weld_vertices(buffers.vertices, buffers.normals, buffers.uvs,
                                       buffers.indices, config.weld_max_delta,
                                       config.weld_max_angle)
                buffers = MeshBuffers(vertices=welded.vertices, uvs=welded.uvs,
                                      indices=welded.indices, normals=welded.normals)

            if config.add_tangents:
                buffers.tangents = compute_tangents(buffers.vertices, buffers.normals,
                                                    buffers.uvs, buffers.indices)

            material = config.material_for(texture_name)
            meshes.append(MaterialMesh(
                name=f"{group.name}_{material}",
                material=material,
                texture_name=texture_name,
                buffers=buffers,
                face_count=len(faces),
                add_lightmap_uv2=config.add_lightmap_uv2,
                compression=config.mesh_compression,
            ))
        logger.debug("%s: %d material meshes", group.name, len(meshes))
        return meshes


def convert_brush_groups(groups: Sequence[BrushGroup], config: Optional[MapConfig] = None,
                         executor: Optional[BatchExecutor] = None) -> ConversionResult:
    """Convenience function to run one conversion."""
    return ConversionPipeline(config=config, executor=executor).run(groups)
