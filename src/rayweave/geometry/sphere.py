"""Sphere primitive and ray-sphere intersection.

The intersection solves the half-b form of the ray/sphere quadratic and picks
its roots with the cancellation-free formulation (Ray Tracing Gems, ch. 7), so
grazing rays and rays starting far from the sphere keep their precision.

Example:
    >>> from rayweave.geometry.sphere import Sphere, hit_sphere
    >>> @ti.kernel
    ... def probe() -> ti.f32:
    ...     s = Sphere(center=vec3(0, 0, -1), radius=0.5)
    ...     rec = hit_sphere(vec3(0, 0, 0), vec3(0, 0, -1), s, 0.001, 1e9)
    ...     return rec.t
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere given by its center and a strictly positive radius."""

    center: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Result of intersecting a ray with a single object.

    Attributes:
        hit: 1 if the ray intersected the object within [t_min, t_max], else 0.
            The remaining fields are only meaningful when hit == 1.
        t: Ray parameter of the intersection.
        point: Intersection point, origin + t * direction.
        normal: Unit surface normal, flipped so that it always opposes the
            incoming ray.
        front_face: 1 if the ray arrived from outside the surface, i.e.
            dot(direction, outward_normal) < 0.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def _quadratic_roots(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Roots of a*t^2 + 2*h*t + c = 0, ordered so that t0 <= t1."""
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-10:
        # h and the discriminant are both ~0: fall back to the textbook form
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        tmp = t0
        t0 = t1
        t1 = tmp

    return t0, t1


@ti.func
def set_face_normal(direction: vec3, outward_normal: vec3):
    """Orient a geometric normal against the incoming ray.

    Args:
        direction: Ray direction.
        outward_normal: Unit normal pointing out of the surface.

    Returns:
        Tuple (front_face, normal) where normal opposes the ray.
    """
    front_face = 0
    normal = -outward_normal
    if tm.dot(direction, outward_normal) < 0.0:
        front_face = 1
        normal = outward_normal
    return front_face, normal


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a sphere.

    With oc = origin - center, the hit parameter solves

        a*t^2 + 2*h*t + c = 0,  a = d.d,  h = d.oc,  c = oc.oc - r^2

    A negative discriminant is a miss. Otherwise the nearer root is taken if
    it lies in [t_min, t_max], else the farther root, else the ray misses.

    Args:
        ray_origin: Ray origin.
        ray_direction: Ray direction, need not be normalized.
        sphere: The sphere to test.
        t_min: Smallest accepted ray parameter (inclusive).
        t_max: Largest accepted ray parameter (inclusive).

    Returns:
        A HitRecord; check ``hit`` before reading the other fields.
    """
    oc = ray_origin - sphere.center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if discriminant >= 0.0 and a > 0.0:
        t0, t1 = _quadratic_roots(h, a, c, ti.sqrt(discriminant))

        t = t0
        valid = (t >= t_min) and (t <= t_max)
        if not valid:
            t = t1
            valid = (t >= t_min) and (t <= t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction
            outward_normal = (hit_point - sphere.center) / sphere.radius
            is_front_face, hit_normal = set_face_normal(ray_direction, outward_normal)

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
    )
