"""
Texture coordinate projection for brush faces.

Maps world-space vertices to UVs from a face's texture basis (U/V axes and
scales), shift and rotation, normalised by the texture's pixel size.

The shift handling mirrors the authoring tool (TrenchBroom-style Valve 220
data) exactly, including the asymmetric sign and axis swap for rotated
faces; do not "tidy" it, existing maps depend on it.

Remainders use math.fmod / np.fmod (sign follows the dividend), not
Python's floored %.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from brushmesh.conversion.brush_model import Face
from brushmesh.conversion.plane_math import Vec2, Vec3


def _safe_scale(value: float) -> float:
    return value if value != 0 else 1.0


def is_unrotated(angle: float) -> bool:
    """True for 0 and any multiple of 360 degrees."""
    return angle == 0.0 or math.fmod(angle, 360.0) == 0.0


def compute_uv_shift(shift_x: float, shift_y: float, angle: float,
                     texture_width: float, texture_height: float) -> Vec2:
    """Texel shift added to the raw projection before normalising.

    Args:
        shift_x / shift_y: Face shift in texels
        angle: Face rotation in degrees
        texture_width / texture_height: Texture size in pixels

    Returns:
        (shift_u, shift_v) in texels
    """
    if is_unrotated(angle):
        return (math.fmod(shift_x, texture_width),
                math.fmod(-shift_y, texture_height))
    if angle >= 90.0:
        return (math.fmod(-shift_y, texture_height),
                math.fmod(shift_x, texture_width))
    return (math.fmod(-shift_x, texture_width),
            math.fmod(-shift_y, texture_height))


def rotate_uv(uv: np.ndarray, angle: float) -> np.ndarray:
    """Rotate UVs (n,2) by -angle degrees about the UV origin."""
    if angle == 0.0:
        return uv
    rad = math.radians(-angle)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    u = uv[:, 0] * cos_r - uv[:, 1] * sin_r
    v = uv[:, 0] * sin_r + uv[:, 1] * cos_r
    return np.column_stack((u, v))


def project_uvs(vertices: Sequence[Vec3], face: Face,
                texture_width: float, texture_height: float,
                global_texel_scale: float = 1.0) -> np.ndarray:
    """
    Project vertices to UVs with the face's texture basis.

    Args:
        vertices: World-space positions (unscaled map units), shape (n, 3)
        face: Face supplying axes, scales, shift and rotation
        texture_width / texture_height: Texture size in pixels
        global_texel_scale: Final multiplier applied to every UV

    Returns:
        Array of shape (n, 2), dtype float64
    """
    points = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    u_axis = np.asarray(face.u_axis, dtype=np.float64) / _safe_scale(face.x_scale)
    v_axis = np.asarray(face.v_axis, dtype=np.float64) / -_safe_scale(face.y_scale)

    shift = compute_uv_shift(face.x_shift, face.y_shift, face.rotation,
                             texture_width, texture_height)

    uv = np.column_stack((points @ u_axis + shift[0], points @ v_axis + shift[1]))
    uv /= np.array([texture_width, texture_height], dtype=np.float64)
    uv = rotate_uv(uv, face.rotation)
    return uv * global_texel_scale


def project_uv(vertex: Vec3, face: Face, texture_width: float,
               texture_height: float, global_texel_scale: float = 1.0) -> Tuple[float, float]:
    """Single-vertex form of project_uvs."""
    u, v = project_uvs([vertex], face, texture_width, texture_height,
                       global_texel_scale)[0]
    return (float(u), float(v))
