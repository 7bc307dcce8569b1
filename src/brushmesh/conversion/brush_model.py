"""
Brush geometry model.

Value types handed over by the map parser: planes, faces, brushes, and the
brush groups that make up one placed object.

Coordinate System:
- Vertices are in map units, already in the host's axis convention.
- Face rings are convex, coplanar, and counter-clockwise when viewed from
  outside the brush, so the right-handed plane normal points outward.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from brushmesh.conversion.plane_math import (
    EPSILON,
    Vec2,
    Vec3,
    cross,
    dot,
    length,
    normalize,
    sub,
)


@dataclass(frozen=True)
class Plane:
    """
    Face plane: unit normal plus signed distance from the origin.

    Points on the plane satisfy ``dot(normal, p) == dist``.
    """
    normal: Vec3 = (0.0, 0.0, 1.0)
    dist: float = 0.0

    @classmethod
    def from_points(cls, p1: Vec3, p2: Vec3, p3: Vec3) -> "Plane":
        """Plane through three points, normal facing the CCW side."""
        normal = normalize(cross(sub(p2, p1), sub(p3, p1)))
        return cls(normal=normal, dist=dot(normal, p1))

    @classmethod
    def from_vertices(cls, vertices: Sequence[Vec3]) -> Optional["Plane"]:
        """Plane of a vertex ring, from its first non-collinear triple.

        Returns None when the ring is degenerate.
        """
        if len(vertices) < 3:
            return None
        p1 = vertices[0]
        for i in range(1, len(vertices) - 1):
            for k in range(i + 1, len(vertices)):
                n = cross(sub(vertices[i], p1), sub(vertices[k], p1))
                if length(n) > EPSILON:
                    return cls.from_points(p1, vertices[i], vertices[k])
        return None

    def distance_to(self, point: Vec3) -> float:
        """Signed distance; positive on the side the normal points to."""
        return dot(self.normal, point) - self.dist


@dataclass(eq=False)
class Face:
    """
    One convex polygon side of a brush with its texture projection.

    Faces compare by identity: two faces with equal values are still two
    faces. ``face_id`` is assigned when a conversion registers the face and
    is what the discard set stores.

    Attributes:
        vertices: Vertex ring (mutable only through vertex snapping)
        plane: Plane of the ring; derived from the vertices when omitted
        texture_name: Texture identifier used for material grouping
        u_axis / v_axis: Texture projection axes
        x_scale / y_scale: Texture scale along U / V
        x_shift / y_shift: Texture shift in texels
        rotation: Texture rotation in degrees
    """
    vertices: List[Vec3] = field(default_factory=list)
    plane: Optional[Plane] = None
    texture_name: str = ""
    u_axis: Vec3 = (1.0, 0.0, 0.0)
    v_axis: Vec3 = (0.0, -1.0, 0.0)
    x_scale: float = 1.0
    y_scale: float = 1.0
    x_shift: float = 0.0
    y_shift: float = 0.0
    rotation: float = 0.0
    face_id: int = -1

    def __post_init__(self):
        self.vertices = [tuple(float(c) for c in v) for v in self.vertices]
        if self.plane is None:
            self.plane = Plane.from_vertices(self.vertices) or Plane()

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def index_count(self) -> int:
        """Fan-triangulated index count, zero for degenerate faces."""
        return max(len(self.vertices) - 2, 0) * 3

    @property
    def is_degenerate(self) -> bool:
        return len(self.vertices) < 3

    @property
    def shift(self) -> Vec2:
        return (self.x_shift, self.y_shift)


@dataclass(eq=False)
class Brush:
    """
    A convex solid bounded by its faces.

    ``entity_classname`` is set for brushes that were merged into a group
    from another entity; collider building uses it to leave out brushes of
    nonsolid and trigger entities.
    """
    faces: List[Face] = field(default_factory=list)
    brush_id: int = 0
    entity_classname: Optional[str] = None

    def validate(self) -> bool:
        """Validate brush has minimum required faces."""
        return len(self.faces) >= 4  # Minimum for a tetrahedron

    def iter_vertices(self):
        for face in self.faces:
            yield from face.vertices


@dataclass(eq=False)
class BrushGroup:
    """
    All brushes of one placed object (worldspawn or a brush entity).

    Attributes:
        name: Object name, used for mesh and collider names
        brushes: Brushes in authored order
        origin: World position the output is made relative to (host units)
        classname: Entity classname
        properties: Raw entity key/value strings
        is_trigger: Trigger volume (always convex colliders)
        force_convex: Keep colliders convex even when merging is configured
    """
    name: str
    brushes: List[Brush] = field(default_factory=list)
    origin: Vec3 = (0.0, 0.0, 0.0)
    classname: str = "worldspawn"
    properties: Dict[str, str] = field(default_factory=dict)
    is_trigger: bool = False
    force_convex: bool = False

    def iter_faces(self):
        for brush in self.brushes:
            yield from brush.faces

    @property
    def face_count(self) -> int:
        return sum(len(b.faces) for b in self.brushes)


# ---------------------------------------------------------------------------
# Box brush construction
# ---------------------------------------------------------------------------

# Standard Quake texture axes per face normal: (u_axis, v_axis).
_BOX_TEXTURE_AXES = {
    (-1, 0, 0): ((0.0, 1.0, 0.0), (0.0, 0.0, -1.0)),
    (1, 0, 0): ((0.0, 1.0, 0.0), (0.0, 0.0, -1.0)),
    (0, -1, 0): ((1.0, 0.0, 0.0), (0.0, 0.0, -1.0)),
    (0, 1, 0): ((1.0, 0.0, 0.0), (0.0, 0.0, -1.0)),
    (0, 0, -1): ((1.0, 0.0, 0.0), (0.0, -1.0, 0.0)),
    (0, 0, 1): ((1.0, 0.0, 0.0), (0.0, -1.0, 0.0)),
}


def make_box_brush(min_point: Vec3, max_point: Vec3,
                   texture: str = "CRATE1_5",
                   brush_id: int = 0) -> Optional[Brush]:
    """Axis-aligned box brush (6 faces). Returns None if degenerate."""
    x1, y1, z1 = min_point
    x2, y2, z2 = max_point
    # Guard against zero-volume brushes which produce invalid planes
    if x1 >= x2 or y1 >= y2 or z1 >= z2:
        return None

    rings: List[Tuple[Tuple[int, int, int], List[Vec3]]] = [
        # Left face (X = x1 plane)
        ((-1, 0, 0), [(x1, y1, z1), (x1, y1, z2), (x1, y2, z2), (x1, y2, z1)]),
        # Right face (X = x2 plane)
        ((1, 0, 0), [(x2, y1, z1), (x2, y2, z1), (x2, y2, z2), (x2, y1, z2)]),
        # Front face (Y = y1 plane)
        ((0, -1, 0), [(x1, y1, z1), (x2, y1, z1), (x2, y1, z2), (x1, y1, z2)]),
        # Back face (Y = y2 plane)
        ((0, 1, 0), [(x1, y2, z1), (x1, y2, z2), (x2, y2, z2), (x2, y2, z1)]),
        # Bottom face (Z = z1 plane)
        ((0, 0, -1), [(x1, y1, z1), (x1, y2, z1), (x2, y2, z1), (x2, y1, z1)]),
        # Top face (Z = z2 plane)
        ((0, 0, 1), [(x1, y1, z2), (x2, y1, z2), (x2, y2, z2), (x1, y2, z2)]),
    ]

    faces = []
    for normal, ring in rings:
        u_axis, v_axis = _BOX_TEXTURE_AXES[normal]
        faces.append(Face(vertices=ring, texture_name=texture,
                          u_axis=u_axis, v_axis=v_axis))
    return Brush(faces=faces, brush_id=brush_id)
