"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting sphere from outside (front face)
- Ray missing sphere
- Ray starting inside sphere (back face)
- Interval bounds and root selection
- Face orientation of normals
"""

import numpy as np
import pytest
import taichi as ti


def _make_probe():
    """Build result fields and a kernel that intersects one ray with one sphere."""
    from rayweave.geometry.sphere import Sphere, hit_sphere

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    point = ti.Vector.field(3, dtype=ti.f32, shape=())
    normal = ti.Vector.field(3, dtype=ti.f32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def probe(
        origin: ti.math.vec3,
        direction: ti.math.vec3,
        center: ti.math.vec3,
        radius: ti.f32,
        t_min: ti.f32,
        t_max: ti.f32,
    ):
        rec = hit_sphere(origin, direction, Sphere(center=center, radius=radius), t_min, t_max)
        hit[None] = rec.hit
        t_val[None] = rec.t
        point[None] = rec.point
        normal[None] = rec.normal
        front_face[None] = rec.front_face

    def run(origin, direction, center=(0.0, 0.0, 0.0), radius=1.0, t_min=0.001, t_max=1000.0):
        probe(
            ti.math.vec3(*origin),
            ti.math.vec3(*direction),
            ti.math.vec3(*center),
            radius,
            t_min,
            t_max,
        )
        return {
            "hit": int(hit[None]),
            "t": float(t_val[None]),
            "point": point.to_numpy(),
            "normal": normal.to_numpy(),
            "front_face": int(front_face[None]),
        }

    return run


class TestSphereIntersection:
    """Tests for ray-sphere intersection."""

    def test_direct_hit_from_outside(self):
        run = _make_probe()
        rec = run((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(4.0, abs=1e-5)
        np.testing.assert_allclose(rec["point"], [0.0, 0.0, 1.0], atol=1e-5)
        np.testing.assert_allclose(rec["normal"], [0.0, 0.0, 1.0], atol=1e-5)
        assert rec["front_face"] == 1

    def test_miss(self):
        run = _make_probe()
        rec = run((0.0, 2.0, 5.0), (0.0, 0.0, -1.0))
        assert rec["hit"] == 0

    def test_sphere_behind_ray(self):
        run = _make_probe()
        rec = run((0.0, 0.0, 5.0), (0.0, 0.0, 1.0))
        assert rec["hit"] == 0

    def test_ray_from_inside_is_back_face(self):
        run = _make_probe()
        rec = run((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))

        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(1.0, abs=1e-5)
        assert rec["front_face"] == 0
        # Normal is flipped to oppose the ray
        np.testing.assert_allclose(rec["normal"], [-1.0, 0.0, 0.0], atol=1e-5)

    def test_near_root_outside_interval_uses_far_root(self):
        run = _make_probe()
        # Roots at t=4 and t=6; only the far one lies in [5, 1000]
        rec = run((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_min=5.0)

        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(6.0, abs=1e-5)
        assert rec["front_face"] == 0

    def test_t_max_excludes_hit(self):
        run = _make_probe()
        rec = run((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), t_max=3.0)
        assert rec["hit"] == 0

    def test_unnormalized_direction(self):
        run = _make_probe()
        rec = run((0.0, 0.0, 5.0), (0.0, 0.0, -2.0))

        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(2.0, abs=1e-5)
        np.testing.assert_allclose(rec["point"], [0.0, 0.0, 1.0], atol=1e-5)

    def test_ray_through_center_normal_is_unit_and_points_away(self):
        run = _make_probe()
        center = (1.0, -2.0, -3.0)
        radius = 2.5
        origin = (4.0, 2.0, 9.0)
        direction = np.subtract(center, origin)
        rec = run(origin, tuple(direction), center=center, radius=radius)

        assert rec["hit"] == 1
        assert np.linalg.norm(rec["normal"]) == pytest.approx(1.0, abs=1e-5)
        # Outward normal at the entry point points back towards the origin
        away = rec["point"] - np.asarray(center)
        assert np.dot(rec["normal"], away) > 0.0

    def test_far_away_sphere_keeps_precision(self):
        run = _make_probe()
        rec = run(
            (0.0, 0.0, 0.0),
            (0.0, 0.0, -1.0),
            center=(0.0, 0.0, -100.0),
            radius=1.0,
            t_max=1e9,
        )
        assert rec["hit"] == 1
        assert rec["t"] == pytest.approx(99.0, rel=1e-5)
        np.testing.assert_allclose(rec["normal"], [0.0, 0.0, 1.0], atol=1e-4)


class TestFaceNormal:
    """Tests for set_face_normal."""

    @pytest.mark.parametrize(
        "direction, expected_front",
        [
            ((0.0, 0.0, -1.0), 1),
            ((0.0, 0.0, 1.0), 0),
            ((1.0, 0.0, -0.1), 1),
            ((1.0, 0.0, 0.1), 0),
        ],
    )
    def test_front_face_iff_opposing(self, direction, expected_front):
        from rayweave.geometry.sphere import set_face_normal

        front = ti.field(dtype=ti.i32, shape=())
        normal = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def run(d: ti.math.vec3):
            f, n = set_face_normal(d, ti.math.vec3(0.0, 0.0, 1.0))
            front[None] = f
            normal[None] = n

        run(ti.math.vec3(*direction))
        assert front[None] == expected_front
        # The stored normal always opposes the ray
        assert np.dot(normal.to_numpy(), direction) <= 0.0
