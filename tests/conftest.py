"""Pytest configuration for rayweave tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    invalidate every field declared at module import time.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene, materials, camera and render target around each test."""
    # Import here so the field declarations happen after ti.init()
    from rayweave.camera.pinhole import reset_camera
    from rayweave.core.integrator import reset_render_target
    from rayweave.materials.diffuse import clear_diffuse_materials
    from rayweave.materials.material import clear_material_ids
    from rayweave.materials.normal_map import clear_normal_map_materials
    from rayweave.scene.intersection import clear_scene

    def _clear_all():
        clear_scene()
        clear_normal_map_materials()
        clear_diffuse_materials()
        clear_material_ids()
        reset_render_target()
        reset_camera()

    _clear_all()

    yield

    _clear_all()


@pytest.fixture
def default_camera():
    """Set up the default camera (origin, looking down -Z) with aspect 1."""
    from rayweave.camera.pinhole import PinholeCamera, setup_camera

    camera = PinholeCamera.default(aspect_ratio=1.0)
    setup_camera(camera)
    return camera
