"""Pinhole camera and primary ray generation.

The camera is described on the host by a PinholeCamera dataclass. setup_camera()
derives the viewport geometry once with NumPy and stores it in Taichi fields,
after which kernels generate rays with get_ray(), ray_for_pixel() or
get_ray_jittered().

Image coordinates follow the usual ray-tracing convention: pixel (0, 0) is the
bottom-left corner, u grows to the right and v grows upwards.

Example:
    >>> from rayweave.camera.pinhole import PinholeCamera, setup_camera
    >>> setup_camera(PinholeCamera.default(aspect_ratio=16.0 / 9.0))
    >>> @ti.kernel
    ... def centre() -> vec3:
    ...     return get_ray(0.5, 0.5).direction
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from rayweave.core.ray import Ray, as_vector, make_ray, normalize_host, vec3
from rayweave.core.sampler import random_f32

logger = logging.getLogger(__name__)

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at (x, y, z).
        vup: Up direction used to orient the camera (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height of the output image.
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float]
    vfov: float
    aspect_ratio: float

    @classmethod
    def default(cls, aspect_ratio: float = 16.0 / 9.0) -> "PinholeCamera":
        """Camera at the origin looking down -Z.

        With a vertical field of view of 90 degrees the viewport is
        2 * aspect_ratio wide and 2 high at focal length 1.
        """
        return cls(
            lookfrom=(0.0, 0.0, 0.0),
            lookat=(0.0, 0.0, -1.0),
            vup=(0.0, 1.0, 0.0),
            vfov=90.0,
            aspect_ratio=aspect_ratio,
        )

    def validate(self) -> None:
        """Check that the configuration describes a usable camera.

        Raises:
            ValueError: If vfov is outside (0, 180), aspect_ratio is not
                positive, lookfrom equals lookat, or vup is parallel to the
                viewing direction.
        """
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        if not (math.isfinite(self.aspect_ratio) and self.aspect_ratio > 0.0):
            raise ValueError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        lookfrom = as_vector(self.lookfrom, "lookfrom")
        lookat = as_vector(self.lookat, "lookat")
        if np.array_equal(lookfrom, lookat):
            raise ValueError("lookfrom and lookat must differ")
        w = normalize_host(lookfrom - lookat, "view direction")
        vup = normalize_host(self.vup, "vup")
        if np.linalg.norm(np.cross(vup, w)) < 1e-8:
            raise ValueError("vup must not be parallel to the viewing direction")


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis: u right, v up, w backward (opposite the view direction)
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())

_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())

_camera_initialized = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Camera Setup (host side)
# =============================================================================


def setup_camera(camera: PinholeCamera) -> None:
    """Derive the viewport of a camera and store it for ray generation.

    Must be called before rendering. The viewport lies at unit distance in
    front of the camera; rays are cast from the camera origin through points
    lower_left + u * horizontal + v * vertical.

    Args:
        camera: Camera configuration.

    Raises:
        ValueError: If the camera configuration is invalid (see
            PinholeCamera.validate).
    """
    camera.validate()

    h = math.tan(math.radians(camera.vfov) / 2.0)
    viewport_height = 2.0 * h
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = as_vector(camera.lookfrom, "lookfrom")
    lookat = as_vector(camera.lookat, "lookat")

    w = normalize_host(lookfrom - lookat, "view direction")
    u = normalize_host(np.cross(camera.vup, w), "camera right vector")
    v = np.cross(w, u)

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = lookfrom - w - horizontal / 2.0 - vertical / 2.0

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _camera_initialized[None] = 1

    logger.debug(
        "Camera at %s: horizontal=%s vertical=%s lower_left=%s",
        lookfrom.tolist(),
        horizontal.tolist(),
        vertical.tolist(),
        lower_left.tolist(),
    )


def reset_camera() -> None:
    """Mark the camera as not set up."""
    _camera_initialized[None] = 0


def is_camera_ready() -> bool:
    """Whether setup_camera() has been called since the last reset."""
    return bool(_camera_initialized[None])


# =============================================================================
# Ray Generation (kernel side)
# =============================================================================


@ti.func
def get_ray(u: ti.f32, v: ti.f32) -> Ray:
    """Ray from the camera origin through viewport coordinates (u, v).

    Args:
        u: Horizontal coordinate, 0 at the left edge and 1 at the right.
        v: Vertical coordinate, 0 at the bottom edge and 1 at the top.

    Returns:
        A Ray whose direction runs from the origin to the viewport point.
        The direction is not normalized.
    """
    origin = _camera_origin[None]
    target = _lower_left_corner[None] + u * _viewport_horizontal[None] + v * _viewport_vertical[None]
    return make_ray(origin, target - origin)


@ti.func
def _pixel_to_viewport(x: ti.f32, y: ti.f32, width: ti.i32, height: ti.i32):
    u = x / ti.cast(ti.max(width - 1, 1), ti.f32)
    v = y / ti.cast(ti.max(height - 1, 1), ti.f32)
    return u, v


@ti.func
def ray_for_pixel(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Ray through pixel (i, j) without jitter.

    Uses u = i / (width - 1) and v = j / (height - 1), so the corner pixels
    map exactly onto the viewport corners. Row j = 0 is the bottom row.
    """
    u, v = _pixel_to_viewport(
        ti.cast(pixel_i, ti.f32), ti.cast(pixel_j, ti.f32), width, height
    )
    return get_ray(u, v)


@ti.func
def get_ray_jittered(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    state: ti.u32,
):
    """Ray through a random point of pixel (i, j), for anti-aliasing.

    Offsets both pixel coordinates by independent uniform values in [0, 1)
    before applying the same mapping as ray_for_pixel().

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        state: Random stream state of the pixel.

    Returns:
        A tuple (ray, new_state).
    """
    rng = state
    jitter_u, rng = random_f32(rng)
    jitter_v, rng = random_f32(rng)
    u, v = _pixel_to_viewport(
        ti.cast(pixel_i, ti.f32) + jitter_u,
        ti.cast(pixel_j, ti.f32) + jitter_v,
        width,
        height,
    )
    return get_ray(u, v), rng


@ti.func
def get_camera_origin() -> vec3:
    """Camera position in world space."""
    return _camera_origin[None]


@ti.func
def get_camera_basis():
    """Camera basis vectors (u right, v up, w backward)."""
    return _camera_u[None], _camera_v[None], _camera_w[None]


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Current camera state as plain tuples, for logging and tests.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left.
    """
    fields = {
        "origin": _camera_origin,
        "u": _camera_u,
        "v": _camera_v,
        "w": _camera_w,
        "horizontal": _viewport_horizontal,
        "vertical": _viewport_vertical,
        "lower_left": _lower_left_corner,
    }
    info = {}
    for name, fld in fields.items():
        vec = fld[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
