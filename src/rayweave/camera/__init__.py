"""Camera module for primary ray generation.

Components:
    pinhole: Pinhole (perspective) camera with look-at positioning

Viewport coordinates:
    u in [0, 1]: left to right across the image
    v in [0, 1]: bottom to top across the image
"""

from .pinhole import (
    PinholeCamera,
    get_camera_basis,
    get_camera_info,
    get_camera_origin,
    get_ray,
    get_ray_jittered,
    is_camera_ready,
    ray_for_pixel,
    reset_camera,
    setup_camera,
)

__all__ = [
    "PinholeCamera",
    "setup_camera",
    "reset_camera",
    "is_camera_ready",
    "get_ray",
    "ray_for_pixel",
    "get_ray_jittered",
    "get_camera_origin",
    "get_camera_basis",
    "get_camera_info",
]
