"""
Spatial primitives for brush faces.

Tuple-based vector helpers plus the 2D predicates used by face culling:
dominant-axis selection, projection onto the plane of the two remaining
axes, and an even-odd point-in-polygon test.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Sequence, Tuple

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

EPSILON = 1e-6

# Normal components strictly between these bounds are "not axis aligned".
AXIS_ALIGNED_MIN = 0.01
AXIS_ALIGNED_MAX = 0.99


class Axis(Enum):
    X = 0
    Y = 1
    Z = 2


# ---------------------------------------------------------------------------
# Vector math helpers
# ---------------------------------------------------------------------------

def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def scale(v: Vec3, s: float) -> Vec3:
    return (v[0] * s, v[1] * s, v[2] * s)


def length(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def length_squared(v: Vec3) -> float:
    return v[0] * v[0] + v[1] * v[1] + v[2] * v[2]


def normalize(v: Vec3) -> Vec3:
    """Unit vector along v, or +Z for a degenerate input."""
    ln = length(v)
    if ln < EPSILON:
        return (0.0, 0.0, 1.0)
    return (v[0] / ln, v[1] / ln, v[2] / ln)


def normalize_or_zero(v: Vec3) -> Vec3:
    """Unit vector along v, or the zero vector for a degenerate input."""
    ln = length(v)
    if ln < EPSILON:
        return (0.0, 0.0, 0.0)
    return (v[0] / ln, v[1] / ln, v[2] / ln)


def polygon_centroid(vertices: Sequence[Vec3]) -> Vec3:
    """Average of a vertex ring (not the area centroid)."""
    count = len(vertices)
    if count == 0:
        return (0.0, 0.0, 0.0)
    return (
        sum(v[0] for v in vertices) / count,
        sum(v[1] for v in vertices) / count,
        sum(v[2] for v in vertices) / count,
    )


# ---------------------------------------------------------------------------
# Axis classification
# ---------------------------------------------------------------------------

def dominant_axis(normal: Vec3) -> Axis:
    """Pick the axis to drop when flattening a face to 2D.

    Ties resolve X first, then Z, then Y. The editor ranks its axes X, Y, Z
    and its Y and Z are swapped relative to ours, hence the odd order.
    """
    ax, ay, az = abs(normal[0]), abs(normal[1]), abs(normal[2])
    if ax >= ay and ax >= az:
        return Axis.X
    if az >= ay:
        return Axis.Z
    return Axis.Y


def is_normal_axis_aligned(normal: Vec3) -> bool:
    """True when every component is (nearly) 0 or (nearly) +/-1."""
    for component in normal:
        c = abs(component)
        if AXIS_ALIGNED_MIN < c < AXIS_ALIGNED_MAX:
            return False
    return True


# ---------------------------------------------------------------------------
# 2D projection and point-in-polygon
# ---------------------------------------------------------------------------

# (horizontal, vertical) source components for each dropped axis.
_PROJECTION_COMPONENTS = {
    Axis.X: (2, 1),
    Axis.Y: (2, 0),
    Axis.Z: (0, 1),
}


def project_to_2d(point: Vec3, drop: Axis) -> Vec2:
    """Flatten a 3D point by discarding one axis."""
    h, v = _PROJECTION_COMPONENTS[drop]
    return (point[h], point[v])


def point_in_polygon(point: Vec2, polygon: Sequence[Vec2]) -> bool:
    """Even-odd ray crossing test.

    Points exactly on an edge may land either side; callers that care nudge
    their test points away from edges first.
    """
    px, py = point
    inside = False
    count = len(polygon)
    j = count - 1
    for i in range(count):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if (yi > py) != (yj > py):
            if px < (xj - xi) * (py - yi) / (yj - yi) + xi:
                inside = not inside
        j = i
    return inside
