"""Tests for texture coordinate projection."""
import math

import numpy as np
import pytest

from brushmesh.conversion.brush_model import Face
from brushmesh.conversion.uv_projection import (
    compute_uv_shift,
    is_unrotated,
    project_uv,
    project_uvs,
    rotate_uv,
)


def floor_face(**kwargs):
    ring = [(0, 0, 0), (64, 0, 0), (64, 64, 0), (0, 64, 0)]
    return Face(vertices=ring, u_axis=(1, 0, 0), v_axis=(0, -1, 0), **kwargs)


class TestShift:
    """Test the shift rules, including the rotated-face asymmetry."""

    def test_unrotated(self):
        assert compute_uv_shift(10, 20, 0, 128, 128) == (10, -20)

    def test_full_turn_counts_as_unrotated(self):
        assert is_unrotated(360.0)
        assert is_unrotated(-720.0)
        assert compute_uv_shift(10, 20, 360, 128, 128) == (10, -20)

    def test_small_rotation_negates_x(self):
        assert compute_uv_shift(10, 20, 45, 128, 128) == (-10, -20)

    def test_large_rotation_swaps_axes(self):
        assert compute_uv_shift(10, 20, 90, 128, 64) == (-20, 10)
        assert compute_uv_shift(10, 20, 180, 128, 64) == (-20, 10)

    def test_remainder_is_truncated(self):
        # Sign follows the dividend, unlike Python's %
        assert compute_uv_shift(130, 0, 0, 128, 128)[0] == pytest.approx(2.0)
        assert compute_uv_shift(-130, 0, 0, 128, 128)[0] == pytest.approx(-2.0)
        assert compute_uv_shift(0, 130, 0, 128, 128)[1] == pytest.approx(-2.0)

    def test_negative_rotation_is_small_branch(self):
        assert compute_uv_shift(10, 20, -90, 128, 128) == (-10, -20)


class TestProjection:
    """Test the projection itself."""

    def test_zero_rotation_zero_shift_is_raw_projection(self):
        face = floor_face()
        vertex = (32.0, 16.0, 0.0)
        u, v = project_uv(vertex, face, 128, 128)
        assert u == pytest.approx(32.0 / 128)
        assert v == pytest.approx(16.0 / 128)

    def test_scale_divides(self):
        face = floor_face(x_scale=2.0, y_scale=0.5)
        u, v = project_uv((32.0, 16.0, 0.0), face, 128, 128)
        assert u == pytest.approx(16.0 / 128)
        assert v == pytest.approx(32.0 / 128)

    def test_zero_scale_falls_back_to_one(self):
        face = floor_face(x_scale=0.0, y_scale=0.0)
        assert project_uv((32.0, 16.0, 0.0), face, 128, 128) == pytest.approx(
            (32.0 / 128, 16.0 / 128))

    def test_shift_applied_before_normalising(self):
        face = floor_face(x_shift=64.0)
        u, _ = project_uv((0.0, 0.0, 0.0), face, 128, 128)
        assert u == pytest.approx(0.5)

    def test_rotation_about_origin(self):
        face = floor_face(rotation=90.0)
        u, v = project_uv((128.0, 0.0, 0.0), face, 128, 128)
        # (1, 0) rotated by -90 degrees
        assert u == pytest.approx(0.0, abs=1e-12)
        assert v == pytest.approx(-1.0)

    def test_global_texel_scale(self):
        face = floor_face()
        u, v = project_uv((32.0, 16.0, 0.0), face, 128, 128, global_texel_scale=2.0)
        assert (u, v) == pytest.approx((0.5, 0.25))

    def test_batch_matches_single(self):
        face = floor_face(x_shift=5, y_shift=-7, rotation=30, x_scale=0.5)
        uvs = project_uvs(face.vertices, face, 64, 32)
        assert uvs.shape == (4, 2)
        for vertex, uv in zip(face.vertices, uvs):
            assert project_uv(vertex, face, 64, 32) == pytest.approx(tuple(uv))

    def test_rotate_uv(self):
        uv = np.array([[1.0, 0.0]])
        rotated = rotate_uv(uv, 90.0)
        np.testing.assert_allclose(rotated, [[math.cos(-math.pi / 2), -1.0]], atol=1e-12)
