"""Tests for scene-level intersection over the sphere list.

Tests cover:
- Sphere storage (add, count, clear, capacity errors)
- Closest-hit selection across several spheres
- Material ids carried through the hit record
- Host-side query_hit()
"""

import math

import pytest


class TestSphereStorage:
    """Tests for adding and clearing spheres."""

    def test_add_sphere_returns_sequential_indices(self):
        from rayweave.scene.intersection import add_sphere, get_sphere_count, vec3

        assert add_sphere(vec3(0.0, 0.0, -1.0), 0.5, 0) == 0
        assert add_sphere(vec3(0.0, 0.0, -3.0), 0.5, 1) == 1
        assert get_sphere_count() == 2

    def test_clear_scene(self):
        from rayweave.scene.intersection import add_sphere, clear_scene, get_sphere_count, vec3

        add_sphere(vec3(0.0, 0.0, -1.0), 0.5)
        clear_scene()
        assert get_sphere_count() == 0

    @pytest.mark.parametrize("radius", [0.0, -1.0, float("nan")])
    def test_add_sphere_rejects_bad_radius(self, radius):
        from rayweave.scene.intersection import add_sphere, get_sphere_count, vec3

        with pytest.raises(ValueError, match="radius must be positive"):
            add_sphere(vec3(0.0, 0.0, -1.0), radius)
        assert get_sphere_count() == 0

    def test_capacity_exceeded(self):
        from rayweave.scene.intersection import MAX_SPHERES, add_sphere, num_spheres, vec3

        num_spheres[None] = MAX_SPHERES
        with pytest.raises(RuntimeError, match="Maximum number of spheres"):
            add_sphere(vec3(0.0, 0.0, -1.0), 0.5)


class TestQueryHit:
    """Tests for closest-hit queries."""

    def test_empty_scene_misses(self):
        from rayweave.scene.intersection import query_hit

        assert query_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0)) is None

    def test_single_sphere_hit(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        add_sphere(vec3(0.0, 0.0, -1.0), 0.5, material_id=7)
        info = query_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))

        assert info is not None
        assert info.t == pytest.approx(0.5, abs=1e-5)
        assert info.point == pytest.approx((0.0, 0.0, -0.5), abs=1e-5)
        assert info.normal == pytest.approx((0.0, 0.0, 1.0), abs=1e-5)
        assert info.front_face is True
        assert info.material_id == 7

    def test_closest_hit_wins_regardless_of_order(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        # Far sphere added first
        add_sphere(vec3(0.0, 0.0, -5.0), 1.0, material_id=1)
        add_sphere(vec3(0.0, 0.0, -2.0), 0.5, material_id=2)
        add_sphere(vec3(0.0, 0.0, -8.0), 1.0, material_id=3)

        info = query_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert info.material_id == 2
        assert info.t == pytest.approx(1.5, abs=1e-5)

    def test_t_min_skips_self_intersection(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        add_sphere(vec3(0.0, 0.0, -1.0), 0.5)
        # Start exactly on the surface, heading outwards
        assert query_hit((0.0, 0.0, -0.5), (0.0, 0.0, 1.0)) is None

    def test_t_max_limits_search(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        add_sphere(vec3(0.0, 0.0, -10.0), 1.0)
        assert query_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=5.0) is None
        assert query_hit((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=math.inf) is not None

    def test_hit_from_inside(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        add_sphere(vec3(0.0, 0.0, 0.0), 2.0)
        info = query_hit((0.0, 0.0, 0.0), (0.0, 1.0, 0.0))

        assert info.front_face is False
        assert info.t == pytest.approx(2.0, abs=1e-5)
        assert info.normal == pytest.approx((0.0, -1.0, 0.0), abs=1e-5)

    def test_normal_has_unit_length(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        add_sphere(vec3(0.3, -0.2, -4.0), 1.7)
        info = query_hit((0.0, 0.0, 0.0), (0.1, 0.05, -1.0))

        assert info is not None
        assert math.sqrt(sum(c * c for c in info.normal)) == pytest.approx(1.0, abs=1e-5)

    def test_repeated_queries_are_identical(self):
        from rayweave.scene.intersection import add_sphere, query_hit, vec3

        add_sphere(vec3(0.0, 0.0, -1.0), 0.5)
        first = query_hit((0.1, 0.1, 0.0), (0.0, 0.0, -1.0))
        second = query_hit((0.1, 0.1, 0.0), (0.0, 0.0, -1.0))
        assert first == second
