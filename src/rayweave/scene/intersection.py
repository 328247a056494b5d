"""Scene-level ray intersection over the sphere list.

Spheres are stored as a structure of arrays in global Taichi fields. The list
is append-only while a scene is being built and read-only while rendering, so
every parallel render thread can read it without synchronisation.

``intersect_scene`` walks the list linearly and narrows ``t_max`` to the
closest hit found so far, so the returned record is always the nearest hit.

Example:
    >>> from rayweave.scene.intersection import add_sphere, clear_scene, query_hit
    >>> clear_scene()
    >>> add_sphere(vec3(0, 0, -1), 0.5, material_id=0)
    >>> info = query_hit((0, 0, 0), (0, 0, -1))
    >>> info.t
    0.5
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from rayweave.geometry.sphere import HitRecord, Sphere, hit_sphere

vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Closest hit of a ray against the whole scene.

    Same fields as HitRecord plus the unified material id of the object that
    was hit. A miss has hit == 0 and material_id == -1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32


@dataclass(frozen=True)
class HitInfo:
    """Host-side copy of a scene hit, returned by query_hit()."""

    t: float
    point: tuple[float, float, float]
    normal: tuple[float, float, float]
    front_face: bool
    material_id: int


MAX_SPHERES = 1024

# Sphere storage (structure of arrays)
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Scratch storage for query_hit()
_query_record = SceneHitRecord.field(shape=())

# Bumped on every clear; identifies the scene currently held in the fields
_scene_generation = 0


def clear_scene() -> None:
    """Remove every sphere from the scene."""
    global _scene_generation
    num_spheres[None] = 0
    _scene_generation += 1


def get_scene_generation() -> int:
    """Number of times the sphere list has been cleared.

    A built scene records this value; if it has changed since, the fields
    hold a different scene.
    """
    return _scene_generation


def add_sphere(center: vec3, radius: float, material_id: int = 0) -> int:
    """Append a sphere to the scene.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere (must be positive).
        material_id: Unified material id of the sphere.

    Returns:
        The index of the added sphere.

    Raises:
        ValueError: If the radius is not positive.
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    if not radius > 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = center
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
    )


@ti.func
def _with_material(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        material_id=material_id,
    )


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Find the closest sphere hit by a ray.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Smallest accepted ray parameter.
        t_max: Largest accepted ray parameter.

    Returns:
        The closest hit in [t_min, t_max], or a miss record.
    """
    closest_t = t_max
    result = _make_miss_record()

    for i in range(num_spheres[None]):
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _with_material(rec, sphere_material_ids[i])

    return result


@ti.kernel
def _query_kernel(origin: vec3, direction: vec3, t_min: ti.f32, t_max: ti.f32):
    _query_record[None] = intersect_scene(origin, direction, t_min, t_max)


def query_hit(
    origin: Sequence[float],
    direction: Sequence[float],
    t_min: float = 1e-3,
    t_max: float = math.inf,
) -> HitInfo | None:
    """Intersect a single ray with the scene from Python.

    Args:
        origin: Ray origin as (x, y, z).
        direction: Ray direction as (x, y, z).
        t_min: Smallest accepted ray parameter.
        t_max: Largest accepted ray parameter.

    Returns:
        A HitInfo for the closest hit, or None if the ray misses everything.
    """
    _query_kernel(
        vec3(origin[0], origin[1], origin[2]),
        vec3(direction[0], direction[1], direction[2]),
        t_min,
        t_max,
    )
    if _query_record.hit[None] == 0:
        return None
    point = _query_record.point[None]
    normal = _query_record.normal[None]
    return HitInfo(
        t=float(_query_record.t[None]),
        point=(float(point[0]), float(point[1]), float(point[2])),
        normal=(float(normal[0]), float(normal[1]), float(normal[2])),
        front_face=bool(_query_record.front_face[None]),
        material_id=int(_query_record.material_id[None]),
    )
