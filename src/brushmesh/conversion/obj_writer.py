"""
Wavefront OBJ export of converted meshes.

Writes the material meshes of a conversion as .obj (and optional .mtl) for
inspection in any DCC tool. Positions are written as built, in host units
relative to each group's origin plus that origin.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from brushmesh.conversion.mesh_builder import MeshBuffers
from brushmesh.conversion.plane_math import Vec3

logger = logging.getLogger(__name__)


class ObjWriter:
    """Write mesh buffers as Wavefront OBJ + optional MTL."""

    def __init__(self, apply_origin: bool = True):
        self.apply_origin = apply_origin
        # (object name, material, buffers, origin)
        self._meshes: List[Tuple[str, str, MeshBuffers, Vec3]] = []
        self._materials: Dict[str, bool] = {}

    def add_mesh(self, name: str, material: str, buffers: MeshBuffers,
                 origin: Vec3 = (0.0, 0.0, 0.0)):
        if buffers.is_empty:
            return
        self._meshes.append((name, material, buffers, origin))
        self._materials[material] = True

    def add_result(self, result) -> None:
        """Add every material mesh of a ConversionResult."""
        for group in result.groups:
            for mesh in group.meshes:
                self.add_mesh(mesh.name, mesh.material, mesh.buffers, group.origin)

    def to_obj_text(self, mtl_name: Optional[str] = None) -> str:
        lines = []
        lines.append("# brushmesh OBJ export")
        lines.append(f"# {self.vertex_count} vertices, {self.triangle_count} triangles")
        if mtl_name:
            lines.append(f"mtllib {mtl_name}")
        lines.append("")

        base = 1  # OBJ indices are 1-based and global
        for name, material, buffers, origin in self._meshes:
            positions = buffers.vertices.astype(np.float64)
            if self.apply_origin:
                positions = positions + np.asarray(origin, dtype=np.float64)
            has_normals = buffers.normals is not None and len(buffers.normals) == len(positions)

            lines.append(f"o {name}")
            for v in positions:
                lines.append(f"v {v[0]:.6f} {v[1]:.6f} {v[2]:.6f}")
            for uv in buffers.uvs:
                # OBJ texture space has V pointing up
                lines.append(f"vt {uv[0]:.6f} {-uv[1]:.6f}")
            if has_normals:
                for n in buffers.normals:
                    lines.append(f"vn {n[0]:.6f} {n[1]:.6f} {n[2]:.6f}")

            lines.append(f"usemtl {material}")
            for tri in buffers.triangles:
                refs = []
                for index in tri:
                    i = int(index) + base
                    refs.append(f"{i}/{i}/{i}" if has_normals else f"{i}/{i}")
                lines.append("f " + " ".join(refs))
            lines.append("")
            base += len(positions)

        return "\n".join(lines) + "\n"

    def to_mtl_text(self) -> str:
        lines = ["# brushmesh MTL", ""]
        for mat in sorted(self._materials.keys()):
            lines.append(f"newmtl {mat}")
            lines.append("Ka 0.2 0.2 0.2")
            lines.append("Kd 0.8 0.8 0.8")
            lines.append("Ks 0.0 0.0 0.0")
            lines.append("d 1.0")
            lines.append("")
        return "\n".join(lines) + "\n"

    def write(self, obj_path: str, write_mtl: bool = True):
        """Write .obj (and optionally .mtl) files."""
        obj_p = Path(obj_path)
        mtl_name = obj_p.stem + ".mtl" if write_mtl else None

        obj_p.write_text(self.to_obj_text(mtl_name))
        if write_mtl:
            (obj_p.parent / mtl_name).write_text(self.to_mtl_text())
        logger.info("Wrote %s (%d meshes, %d vertices)", obj_p, len(self._meshes),
                    self.vertex_count)

    @property
    def vertex_count(self) -> int:
        return sum(b.vertex_count for _, _, b, _ in self._meshes)

    @property
    def triangle_count(self) -> int:
        return sum(b.triangle_count for _, _, b, _ in self._meshes)

    @property
    def mesh_count(self) -> int:
        return len(self._meshes)
