"""Ray data structure and vector utilities for ray tracing kernels.

This module provides the fundamental Ray dataclass and the vector helpers used
by the intersection, material and integrator code. The ``@ti.func`` helpers run
inside Taichi kernels; ``normalize_host`` is the host-side counterpart used while
building the scene and camera.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

from collections.abc import Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Components below this magnitude count as zero
NEAR_ZERO_EPSILON = 1e-8


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            normalized; the parametric point at t is origin + t * direction.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    """Compute the Euclidean length of a vector."""
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector.

    Cheaper than length() when only comparing magnitudes.
    """
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    """Normalize a vector to unit length.

    The input must be non-zero; use safe_normalize() where a degenerate
    vector can occur.
    """
    return tm.normalize(v)


@ti.func
def safe_normalize(v: vec3, fallback: vec3) -> vec3:
    """Normalize a vector, returning ``fallback`` for near-zero input.

    Args:
        v: The vector to normalize.
        fallback: Unit vector returned when v has (near) zero length.

    Returns:
        The unit vector along v, or fallback.
    """
    result = fallback
    len_sq = tm.dot(v, v)
    if len_sq > NEAR_ZERO_EPSILON * NEAR_ZERO_EPSILON:
        result = v / ti.sqrt(len_sq)
    return result


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    """Compute the dot product a . b."""
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    """Compute the cross product a x b."""
    return tm.cross(a, b)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Used to detect degenerate scatter directions.

    Args:
        v: The vector to check.

    Returns:
        1 if all components are near zero, 0 otherwise.
    """
    s = NEAR_ZERO_EPSILON
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Host-side helpers
# =============================================================================


def as_vector(values: Sequence[float], name: str = "vector") -> npt.NDArray[np.float64]:
    """Convert a 3-sequence to a float64 NumPy vector.

    Args:
        values: Three numeric components.
        name: Name used in the error message.

    Returns:
        A NumPy array of shape (3,).

    Raises:
        ValueError: If values does not have exactly three finite components.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have exactly 3 components, got {list(values)!r}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {list(values)!r}")
    return arr


def normalize_host(values: Sequence[float], name: str = "vector") -> npt.NDArray[np.float64]:
    """Normalize a vector on the host.

    Args:
        values: Three numeric components.
        name: Name used in the error message.

    Returns:
        The unit vector as a NumPy array of shape (3,).

    Raises:
        ValueError: If the vector has zero length.
    """
    arr = as_vector(values, name)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        raise ValueError(f"Cannot normalize zero-length {name}")
    return arr / norm
