"""Tests for normals, tangents, welding and snapping."""
import math

import numpy as np
import pytest

from brushmesh.conversion.brush_model import make_box_brush
from brushmesh.conversion.mesh_builder import build_mesh
from brushmesh.postprocess.normals import (
    compute_flat_normals,
    compute_tangents,
    smooth_normals,
)
from brushmesh.postprocess.welding import snap_brush_vertices, weld_vertices


@pytest.fixture
def cube_mesh(unit_cube, executor):
    mesh = build_mesh(unit_cube.faces, executor=executor)
    mesh.normals = compute_flat_normals(mesh.vertices, mesh.indices)
    return mesh


class TestFlatNormals:

    def test_cube_faces(self, cube_mesh, unit_cube):
        for k, face in enumerate(unit_cube.faces):
            np.testing.assert_allclose(cube_mesh.normals[4 * k:4 * k + 4],
                                       [face.plane.normal] * 4, atol=1e-6)

    def test_unreferenced_vertex_gets_zero(self):
        vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [5, 5, 5]], dtype=np.float32)
        normals = compute_flat_normals(vertices, np.array([0, 1, 2], dtype=np.uint32))
        np.testing.assert_allclose(normals[0], [0, 0, 1])
        np.testing.assert_allclose(normals[3], [0, 0, 0])


class TestSmoothNormals:
    """Test angle and distance thresholded smoothing."""

    def test_right_angles_stay_sharp_at_80_degrees(self, cube_mesh, executor):
        smoothed = smooth_normals(cube_mesh.vertices, cube_mesh.normals, 80.0, 0.1, executor)
        np.testing.assert_allclose(smoothed, cube_mesh.normals, atol=1e-6)

    def test_wide_angle_rounds_corners(self, cube_mesh, executor):
        smoothed = smooth_normals(cube_mesh.vertices, cube_mesh.normals, 100.0, 0.1, executor)
        corner = 1.0 / math.sqrt(3.0)
        np.testing.assert_allclose(np.abs(smoothed), corner, atol=1e-6)
        # Still unit length and pointing out of the cube
        np.testing.assert_allclose(np.linalg.norm(smoothed, axis=1), 1.0, atol=1e-6)
        assert np.all(np.einsum("ij,ij->i", smoothed, cube_mesh.vertices - 0.5) > 0)

    def test_distance_is_squared(self, executor):
        vertices = np.array([[0, 0, 0], [0.3, 0, 0]], dtype=np.float32)
        normals = np.array([[0, 0, 1], [1, 0, 0]], dtype=np.float32)
        # 0.3^2 = 0.09 <= 0.1 even though 0.3 > 0.1
        smoothed = smooth_normals(vertices, normals, 180.0, 0.1, executor)
        np.testing.assert_allclose(smoothed[0], [math.sqrt(0.5), 0, math.sqrt(0.5)], atol=1e-6)

    def test_far_vertices_untouched(self, executor):
        vertices = np.array([[0, 0, 0], [1, 0, 0]], dtype=np.float32)
        normals = np.array([[0, 0, 1], [1, 0, 0]], dtype=np.float32)
        smoothed = smooth_normals(vertices, normals, 180.0, 0.1, executor)
        np.testing.assert_allclose(smoothed, normals)

    def test_threaded_matches_inline(self, executor, threaded_executor):
        brushes = [make_box_brush((x, 0, 0), (x + 1, 1, 1)) for x in range(20)]
        mesh = build_mesh([f for b in brushes for f in b.faces], executor=executor)
        normals = compute_flat_normals(mesh.vertices, mesh.indices)
        a = smooth_normals(mesh.vertices, normals, 100.0, 0.1, executor)
        b = smooth_normals(mesh.vertices, normals, 100.0, 0.1, threaded_executor)
        np.testing.assert_array_equal(a, b)

    def test_empty(self, executor):
        smoothed = smooth_normals(np.zeros((0, 3)), np.zeros((0, 3)), executor=executor)
        assert smoothed.shape == (0, 3)


class TestTangents:

    def test_shape_and_handedness(self, cube_mesh):
        tangents = compute_tangents(cube_mesh.vertices, cube_mesh.normals,
                                    cube_mesh.uvs, cube_mesh.indices)
        assert tangents.shape == (24, 4)
        assert tangents.dtype == np.float32
        assert set(np.unique(tangents[:, 3])) <= {-1.0, 1.0}

    def test_tangents_are_unit_and_orthogonal(self, cube_mesh):
        tangents = compute_tangents(cube_mesh.vertices, cube_mesh.normals,
                                    cube_mesh.uvs, cube_mesh.indices)
        xyz = tangents[:, :3]
        np.testing.assert_allclose(np.linalg.norm(xyz, axis=1), 1.0, atol=1e-5)
        np.testing.assert_allclose(np.einsum("ij,ij->i", xyz, cube_mesh.normals), 0.0, atol=1e-5)

    def test_tangent_follows_u_axis(self, cube_mesh, unit_cube):
        tangents = compute_tangents(cube_mesh.vertices, cube_mesh.normals,
                                    cube_mesh.uvs, cube_mesh.indices)
        top = unit_cube.faces[5]
        np.testing.assert_allclose(tangents[20:24, :3], [top.u_axis] * 4, atol=1e-6)

    def test_flat_uvs_fall_back_to_perpendicular(self):
        vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
        normals = np.array([[0, 0, 1]] * 3, dtype=np.float32)
        uvs = np.zeros((3, 2), dtype=np.float32)
        tangents = compute_tangents(vertices, normals, uvs, np.array([0, 1, 2]))
        np.testing.assert_allclose(np.linalg.norm(tangents[:, :3], axis=1), 1.0, atol=1e-6)
        np.testing.assert_allclose(tangents[:, 2], 0.0, atol=1e-6)


class TestWelding:
    """Test ordered vertex welding."""

    def test_cube_corners_merge(self, cube_mesh):
        welded = weld_vertices(cube_mesh.vertices, cube_mesh.normals, cube_mesh.uvs,
                               cube_mesh.indices)
        assert welded.vertex_count == 8
        assert len(welded.indices) == 36
        assert welded.indices.max() == 7

    def test_angle_limit_keeps_hard_edges(self, cube_mesh):
        welded = weld_vertices(cube_mesh.vertices, cube_mesh.normals, cube_mesh.uvs,
                               cube_mesh.indices, max_angle=45.0)
        assert welded.vertex_count == 24

    def test_welding_welded_mesh_is_identity(self, cube_mesh):
        once = weld_vertices(cube_mesh.vertices, cube_mesh.normals, cube_mesh.uvs,
                             cube_mesh.indices)
        twice = weld_vertices(once.vertices, once.normals, once.uvs, once.indices)
        np.testing.assert_array_equal(twice.vertices, once.vertices)
        np.testing.assert_array_equal(twice.indices, once.indices)
        np.testing.assert_array_equal(twice.remap, np.arange(once.vertex_count))

    def test_first_kept_vertex_wins(self):
        vertices = np.array([[0, 0, 0], [0.2, 0, 0], [0.1, 0, 0]], dtype=np.float32)
        normals = np.array([[0, 0, 1]] * 3, dtype=np.float32)
        uvs = np.array([[0, 0], [1, 1], [2, 2]], dtype=np.float32)
        welded = weld_vertices(vertices, normals, uvs, np.array([0, 1, 2]), max_delta=0.015)
        # 0 and 2 are within sqrt(0.015); 1 is not close to 0
        assert welded.remap.tolist() == [0, 1, 0]
        np.testing.assert_allclose(welded.uvs, [[0, 0], [1, 1]])

    def test_no_close_vertices_is_noop(self):
        vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32)
        normals = np.array([[0, 0, 1]] * 3, dtype=np.float32)
        uvs = np.zeros((3, 2), dtype=np.float32)
        welded = weld_vertices(vertices, normals, uvs, np.array([0, 1, 2]))
        assert welded.vertex_count == 3
        assert welded.indices.tolist() == [0, 1, 2]


class TestSnapping:
    """Test crack closing between faces of a brush."""

    def test_misplaced_vertex_snaps_outward(self):
        brush = make_box_brush((0, 0, 0), (64, 64, 64))
        top = brush.faces[5]
        assert top.vertices[0] == (0.0, 0.0, 64.0)
        top.vertices[0] = (0.5, 0.0, 64.0)
        moved = snap_brush_vertices(brush, 4.0)
        assert moved == 1
        assert top.vertices[0] == (0.0, 0.0, 64.0)

    def test_second_pass_moves_nothing(self):
        brush = make_box_brush((0, 0, 0), (64, 64, 64))
        brush.faces[5].vertices[0] = (0.5, 0.5, 63.5)
        brush.faces[2].vertices[0] = (0.3, 0.0, 0.2)
        assert snap_brush_vertices(brush, 4.0) > 0
        assert snap_brush_vertices(brush, 4.0) == 0

    def test_clean_brush_untouched(self):
        brush = make_box_brush((0, 0, 0), (64, 64, 64))
        before = [list(f.vertices) for f in brush.faces]
        assert snap_brush_vertices(brush, 4.0) == 0
        assert [f.vertices for f in brush.faces] == before

    def test_threshold_is_strict(self):
        brush = make_box_brush((0, 0, 0), (64, 64, 64))
        brush.faces[5].vertices[0] = (4.0, 0.0, 64.0)
        assert snap_brush_vertices(brush, 4.0) == 0

    def test_zero_distance_disabled(self):
        brush = make_box_brush((0, 0, 0), (64, 64, 64))
        brush.faces[5].vertices[0] = (0.5, 0.0, 64.0)
        assert snap_brush_vertices(brush, 0.0) == 0
