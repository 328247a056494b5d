"""Normal-visualisation material.

A normal-map surface ends the path at the first hit and reports its shading
normal as a colour, mapping each component from [-1, 1] to [0, 1]. It draws no
random numbers, so renders of normal-map scenes are fully deterministic.
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Normal-map materials carry no parameters; the registry only counts them
MAX_NORMAL_MAP_MATERIALS = 1024

num_normal_map_materials = ti.field(dtype=ti.i32, shape=())


@ti.func
def normal_to_color(normal: vec3) -> vec3:
    """Map a unit normal to an RGB colour: 0.5 * (n + 1)."""
    return 0.5 * (normal + vec3(1.0, 1.0, 1.0))


@ti.func
def scatter_normal_map(normal: vec3):
    """Resolve a hit on a normal-map surface.

    Args:
        normal: Shading normal at the hit point.

    Returns:
        A tuple (scattered_direction, colour, bounced). The surface is
        terminal, so bounced is always 0 and the direction is unused.
    """
    return vec3(0.0, 0.0, 0.0), normal_to_color(normal), 0


def clear_normal_map_materials() -> None:
    """Clear all normal-map materials."""
    num_normal_map_materials[None] = 0


def add_normal_map_material() -> int:
    """Register a normal-map material.

    Returns:
        The type-local index of the material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_normal_map_materials[None]
    if idx >= MAX_NORMAL_MAP_MATERIALS:
        raise RuntimeError(
            f"Maximum number of normal-map materials ({MAX_NORMAL_MAP_MATERIALS}) exceeded"
        )
    num_normal_map_materials[None] = idx + 1
    return idx


def get_normal_map_material_count() -> int:
    """Get the number of normal-map materials in the registry."""
    return int(num_normal_map_materials[None])
