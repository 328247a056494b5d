"""Unit tests for the pinhole camera module.

Tests cover:
- Camera validation
- Camera setup and orthonormal basis computation
- Ray generation for center and corner pixels
- Jittered sampling for anti-aliasing
- Edge cases (different FOV, aspect ratios, camera orientations)
"""

import math

import numpy as np
import pytest
import taichi as ti


def _camera(**overrides):
    from rayweave.camera.pinhole import PinholeCamera

    params = dict(
        lookfrom=(0.0, 0.0, 0.0),
        lookat=(0.0, 0.0, -1.0),
        vup=(0.0, 1.0, 0.0),
        vfov=90.0,
        aspect_ratio=1.0,
    )
    params.update(overrides)
    return PinholeCamera(**params)


def _ray_directions(pixels, width, height):
    """Directions of unjittered rays through the given pixels."""
    from rayweave.camera.pinhole import ray_for_pixel

    n = len(pixels)
    coords = ti.Vector.field(2, dtype=ti.i32, shape=n)
    out = ti.Vector.field(3, dtype=ti.f32, shape=n)
    coords.from_numpy(np.asarray(pixels, dtype=np.int32))

    @ti.kernel
    def run(w: ti.i32, h: ti.i32):
        for k in range(n):
            out[k] = ray_for_pixel(coords[k][0], coords[k][1], w, h).direction

    run(width, height)
    return out.to_numpy()


class TestCameraValidation:
    """Tests for PinholeCamera.validate()."""

    def test_default_camera_is_valid(self):
        from rayweave.camera.pinhole import PinholeCamera

        camera = PinholeCamera.default()
        camera.validate()
        assert camera.aspect_ratio == pytest.approx(16.0 / 9.0)
        assert camera.vfov == 90.0

    @pytest.mark.parametrize("vfov", [0.0, 180.0, -10.0, 200.0])
    def test_invalid_vfov(self, vfov):
        with pytest.raises(ValueError, match="vfov"):
            _camera(vfov=vfov).validate()

    @pytest.mark.parametrize("aspect_ratio", [0.0, -1.0, float("inf")])
    def test_invalid_aspect_ratio(self, aspect_ratio):
        with pytest.raises(ValueError, match="aspect_ratio"):
            _camera(aspect_ratio=aspect_ratio).validate()

    def test_lookfrom_equals_lookat(self):
        with pytest.raises(ValueError, match="must differ"):
            _camera(lookfrom=(1.0, 2.0, 3.0), lookat=(1.0, 2.0, 3.0)).validate()

    def test_vup_parallel_to_view(self):
        with pytest.raises(ValueError, match="parallel"):
            _camera(vup=(0.0, 0.0, 1.0)).validate()

    def test_setup_rejects_invalid_camera(self):
        from rayweave.camera.pinhole import is_camera_ready, setup_camera

        with pytest.raises(ValueError):
            setup_camera(_camera(vfov=0.0))
        assert not is_camera_ready()


class TestCameraSetup:
    """Tests for camera setup and basis computation."""

    def test_orthonormal_basis(self):
        from rayweave.camera.pinhole import get_camera_info, setup_camera

        setup_camera(_camera(lookfrom=(3.0, 2.0, 1.0), lookat=(0.0, 0.5, -2.0)))
        info = get_camera_info()
        u, v, w = (np.asarray(info[k]) for k in ("u", "v", "w"))

        assert abs(np.dot(u, v)) < 1e-6
        assert abs(np.dot(u, w)) < 1e-6
        assert abs(np.dot(v, w)) < 1e-6
        for vec in (u, v, w):
            assert np.linalg.norm(vec) == pytest.approx(1.0, abs=1e-6)

    def test_default_viewport(self):
        from rayweave.camera.pinhole import get_camera_info, setup_camera

        setup_camera(_camera())
        info = get_camera_info()

        assert info["origin"] == pytest.approx((0.0, 0.0, 0.0))
        assert info["w"] == pytest.approx((0.0, 0.0, 1.0), abs=1e-6)
        assert info["horizontal"] == pytest.approx((2.0, 0.0, 0.0), abs=1e-6)
        assert info["vertical"] == pytest.approx((0.0, 2.0, 0.0), abs=1e-6)
        assert info["lower_left"] == pytest.approx((-1.0, -1.0, -1.0), abs=1e-6)

    def test_aspect_ratio_scales_width(self):
        from rayweave.camera.pinhole import get_camera_info, setup_camera

        setup_camera(_camera(aspect_ratio=2.0))
        info = get_camera_info()
        assert info["horizontal"] == pytest.approx((4.0, 0.0, 0.0), abs=1e-6)
        assert info["vertical"] == pytest.approx((0.0, 2.0, 0.0), abs=1e-6)

    def test_vfov_sets_viewport_height(self):
        from rayweave.camera.pinhole import get_camera_info, setup_camera

        setup_camera(_camera(vfov=60.0))
        height = 2.0 * math.tan(math.radians(30.0))
        assert get_camera_info()["vertical"][1] == pytest.approx(height, abs=1e-6)

    def test_ready_flag(self):
        from rayweave.camera.pinhole import is_camera_ready, reset_camera, setup_camera

        assert not is_camera_ready()
        setup_camera(_camera())
        assert is_camera_ready()
        reset_camera()
        assert not is_camera_ready()


class TestRayGeneration:
    """Tests for primary ray generation."""

    def test_center_ray_looks_at_target(self, default_camera):
        from rayweave.camera.pinhole import get_ray

        out = ti.Vector.field(3, dtype=ti.f32, shape=2)

        @ti.kernel
        def run():
            ray = get_ray(0.5, 0.5)
            out[0] = ray.origin
            out[1] = ray.direction

        run()
        origin, direction = out.to_numpy()
        np.testing.assert_allclose(origin, [0.0, 0.0, 0.0], atol=1e-6)
        np.testing.assert_allclose(direction, [0.0, 0.0, -1.0], atol=1e-6)

    def test_corner_pixels_hit_viewport_corners(self, default_camera):
        dirs = _ray_directions([(0, 0), (3, 0), (0, 3), (3, 3)], 4, 4)

        np.testing.assert_allclose(dirs[0], [-1.0, -1.0, -1.0], atol=1e-6)
        np.testing.assert_allclose(dirs[1], [1.0, -1.0, -1.0], atol=1e-6)
        np.testing.assert_allclose(dirs[2], [-1.0, 1.0, -1.0], atol=1e-6)
        np.testing.assert_allclose(dirs[3], [1.0, 1.0, -1.0], atol=1e-6)

    def test_single_pixel_image(self, default_camera):
        dirs = _ray_directions([(0, 0)], 1, 1)
        np.testing.assert_allclose(dirs[0], [-1.0, -1.0, -1.0], atol=1e-6)

    def test_camera_orientation(self):
        from rayweave.camera.pinhole import setup_camera

        # Looking down +X from the origin
        setup_camera(_camera(lookat=(1.0, 0.0, 0.0)))
        dirs = _ray_directions([(1, 1)], 3, 3)
        direction = dirs[0] / np.linalg.norm(dirs[0])
        np.testing.assert_allclose(direction, [1.0, 0.0, 0.0], atol=1e-6)

    def test_jittered_rays_stay_inside_pixel_footprint(self, default_camera):
        from rayweave.camera.pinhole import get_ray_jittered

        n = 256
        width = height = 5
        out = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def run(seed: ti.u32):
            state = seed
            ti.loop_config(serialize=True)
            for k in range(n):
                ray, state = get_ray_jittered(2, 1, width, height, state)
                out[k] = ray.direction

        run(17)
        dirs = out.to_numpy()
        # Viewport x = -1 + 2 * u with u = (2 + jx) / 4, y likewise with (1 + jy) / 4
        x = (dirs[:, 0] + 1.0) * 2.0
        y = (dirs[:, 1] + 1.0) * 2.0
        assert np.all((x >= 2.0 - 1e-5) & (x < 3.0 + 1e-5))
        assert np.all((y >= 1.0 - 1e-5) & (y < 2.0 + 1e-5))
        # Jitter actually moves the samples around
        assert x.std() > 0.1
        assert y.std() > 0.1
