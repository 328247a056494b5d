"""Diffuse (Lambertian) material.

A diffuse surface scatters every incoming ray into the direction

    normal + random_unit_vector()

which distributes outgoing directions over the hemisphere around the normal
with density proportional to cos(theta). The attenuation is the surface
albedo, the fraction of light reflected per colour channel.

Example:
    >>> from rayweave.materials.diffuse import add_diffuse_material
    >>> idx = add_diffuse_material((0.5, 0.5, 0.5))
    >>> # in a kernel:
    >>> # direction, attenuation, state = scatter_diffuse(albedo, normal, state)
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from rayweave.core.ray import near_zero
from rayweave.core.sampler import random_unit_vector

vec3 = tm.vec3

# Resampling attempts before falling back to the normal
MAX_SCATTER_ATTEMPTS = 4


@ti.dataclass
class DiffuseMaterial:
    """Diffuse material properties.

    Attributes:
        albedo: Reflectance per RGB channel, each component in [0, 1].
    """

    albedo: vec3


@ti.func
def scatter_diffuse(albedo: vec3, normal: vec3, state: ti.u32):
    """Scatter a ray off a diffuse surface.

    A candidate direction that cancels out to (near) zero is redrawn. If all
    MAX_SCATTER_ATTEMPTS candidates are degenerate the normal is used.

    Args:
        albedo: Reflectance of the surface (RGB).
        normal: Unit shading normal, facing the incoming ray.
        state: Current random stream state.

    Returns:
        A tuple (scattered_direction, attenuation, state).
    """
    rng = state
    scattered_direction = normal
    found = 0
    for _ in range(MAX_SCATTER_ATTEMPTS):
        if found == 0:
            offset, rng = random_unit_vector(rng)
            candidate = normal + offset
            if near_zero(candidate) == 0:
                scattered_direction = candidate
                found = 1

    return scattered_direction, albedo, rng


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_DIFFUSE_MATERIALS = 1024

diffuse_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_DIFFUSE_MATERIALS)
num_diffuse_materials = ti.field(dtype=ti.i32, shape=())


def validate_albedo(albedo: Sequence[float]) -> tuple[float, float, float]:
    """Check an albedo colour and return it as a float triple.

    Raises:
        ValueError: If albedo does not have three components, or any
            component lies outside [0, 1].
    """
    if len(albedo) != 3:
        raise ValueError(f"Albedo must have 3 components, got {len(albedo)}")
    for i, component in enumerate(albedo):
        if not 0.0 <= component <= 1.0:
            raise ValueError(f"Albedo component {i} = {component} is outside [0, 1]")
    return (float(albedo[0]), float(albedo[1]), float(albedo[2]))


def clear_diffuse_materials() -> None:
    """Clear all diffuse materials."""
    num_diffuse_materials[None] = 0


def add_diffuse_material(albedo: Sequence[float]) -> int:
    """Add a diffuse material to the registry.

    Args:
        albedo: Reflectance as (R, G, B), each component in [0, 1].

    Returns:
        The type-local index of the material.

    Raises:
        ValueError: If any albedo component is outside [0, 1].
        RuntimeError: If the maximum number of materials is exceeded.
    """
    r, g, b = validate_albedo(albedo)

    idx = num_diffuse_materials[None]
    if idx >= MAX_DIFFUSE_MATERIALS:
        raise RuntimeError(f"Maximum number of diffuse materials ({MAX_DIFFUSE_MATERIALS}) exceeded")

    diffuse_albedos[idx] = vec3(r, g, b)
    num_diffuse_materials[None] = idx + 1
    return idx


def get_diffuse_material_count() -> int:
    """Get the number of diffuse materials in the registry."""
    return int(num_diffuse_materials[None])


@ti.func
def get_diffuse_albedo(material_idx: ti.i32) -> vec3:
    """Look up the albedo of a diffuse material by type-local index."""
    return diffuse_albedos[material_idx]
